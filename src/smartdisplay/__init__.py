"""Smart Display Server.

Drives a small MQTT-connected pixel display:
- Rotating apps (clock, room weather, city weather)
- Readiness-aware scheduling with a 15 second hold per app
- Remote power on/off over MQTT
"""

__version__ = "1.0.0"
