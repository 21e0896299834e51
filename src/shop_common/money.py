"""Currency arithmetic.

Inside the service every amount is a major-unit Decimal quantized to 2 dp.
The payment provider speaks integer minor units (paise/cents); crossing that
boundary goes through to_minor_units only.
"""

from decimal import ROUND_HALF_UP, Decimal

_CENT = Decimal("0.01")


def quantize(amount: Decimal) -> Decimal:
    """Round a major-unit amount half-up to 2 decimal places."""
    return Decimal(amount).quantize(_CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """Convert major units to provider minor units: round(amount * 100), half-up.

    1500 -> 150000, Decimal("10.005") -> 1001
    """
    if isinstance(amount, float):
        # str() keeps the literal the caller wrote instead of the binary expansion
        amount = Decimal(str(amount))
    scaled = (Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(scaled)


def minor_to_display(amount_minor: int, currency: str = "INR") -> str:
    """150000 -> 'INR 1,500.00'."""
    sign = "-" if amount_minor < 0 else ""
    abs_minor = abs(amount_minor)
    return f"{sign}{currency} {abs_minor // 100:,}.{abs_minor % 100:02d}"
