"""Money helpers: everything is Decimal with two fraction digits."""
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENTS = Decimal("0.01")


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Coerce to a two-decimal Decimal. Raises ValueError on garbage."""
    try:
        return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"invalid amount: {value!r}") from e


def format_amount(value: Decimal | int | float | str) -> str:
    """Gateway wire format: 1500 -> '1500.00'."""
    return f"{to_money(value):.2f}"
