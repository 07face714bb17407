"""Formatting helpers."""

from .strings import round_to_fixed

__all__ = ["round_to_fixed"]
