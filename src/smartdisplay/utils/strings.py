"""Number formatting for the display."""

from decimal import ROUND_HALF_DOWN, ROUND_HALF_UP, Decimal


def round_to_fixed(value: float | None, fraction_digits: int = 1) -> str | None:
    """Round halves toward positive infinity and format with fixed decimals.

    ``21.25`` shows as ``"21.3"`` and ``-2.25`` as ``"-2.2"``.

    Args:
        value: Number to format (None passes through)
        fraction_digits: Digits after the decimal point

    Returns:
        Formatted string, or None if value is None
    """
    if value is None:
        return None

    number = Decimal(str(value))
    # Half-down on a negative number moves the half toward zero, i.e. upward
    rounding = ROUND_HALF_UP if number >= 0 else ROUND_HALF_DOWN
    rounded = number.quantize(Decimal(1).scaleb(-fraction_digits), rounding=rounding)
    if rounded.is_zero():
        rounded = abs(rounded)
    return f"{rounded:.{fraction_digits}f}"
