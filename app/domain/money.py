# app/domain/money.py
"""
Kwoty trzymamy jako Decimal (Numeric(12, 2) w bazie), nigdy float.
Na zewnatrz (API, JSON w koszyku) zawsze string z dokladnie dwoma miejscami po przecinku.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable

from app.domain.errors import InvalidAmount

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

FREE_SHIPPING_THRESHOLD = Decimal("100")
FLAT_SHIPPING = Decimal("10")
TAX_RATE = Decimal("0.21")


def parse_amount(value: Any) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise InvalidAmount(f"Niepoprawna kwota: {value!r}")
    try:
        # float przez str, zeby 0.1 nie zamienilo sie w 0.1000000000000000055511151231257827
        amount = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"Niepoprawna kwota: {value!r}")

    if not amount.is_finite() or amount < 0:
        raise InvalidAmount(f"Niepoprawna kwota: {value!r}")
    return amount


def round2(value: Any) -> Decimal:
    try:
        return parse_amount(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # wynik nie miesci sie w precyzji kontekstu Decimal (np. 1e30)
        raise InvalidAmount(f"Kwota poza zakresem: {value!r}")


def to_fixed_string(value: Any) -> str:
    return f"{round2(value):.2f}"


def to_minor_units(value: Any) -> int:
    """Kwota w centach dla Stripe."""
    return int(round2(value) * 100)


def calc_prices(items: Iterable[Dict[str, Any]]) -> Dict[str, str]:
    """
    Sumy koszyka jako czysta funkcja pozycji:
    items = sum(price * qty), shipping = 0 powyzej 100 inaczej 10,
    tax = 21% od items, total = items + shipping + tax.
    """
    items_price = round2(sum((parse_amount(i["price"]) * int(i["qty"]) for i in items), ZERO))
    shipping_price = round2(ZERO if items_price > FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING)
    tax_price = round2(TAX_RATE * items_price)
    total_price = round2(items_price + shipping_price + tax_price)

    return {
        "items_price": to_fixed_string(items_price),
        "shipping_price": to_fixed_string(shipping_price),
        "tax_price": to_fixed_string(tax_price),
        "total_price": to_fixed_string(total_price),
    }
