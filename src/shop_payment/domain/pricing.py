"""Server-side order pricing.

Unit prices always come from the catalog. Quantities are the only thing the
client decides.

    subtotal = Σ unit_price × quantity
    shipping = 0 if subtotal ≥ free_shipping_threshold else shipping_fee
    tax      = round_half_up(subtotal × tax_rate_percent / 100, 2dp)
    cod      = cod_surcharge for cash-on-delivery orders, else 0
    grand    = subtotal + shipping + tax + cod
"""
from dataclasses import dataclass
from decimal import Decimal

from src.shop_catalog.domain.models import ProductSnapshot
from src.shop_common.errors import InvalidOrderError, ProductNotFoundError, ProductUnavailableError
from src.shop_common.money import quantize
from src.shop_payment.domain.models import LineItem, OrderTotals

_ZERO = Decimal("0.00")


@dataclass(frozen=True)
class PricingPolicy:
    shipping_fee: Decimal = Decimal("50.00")
    free_shipping_threshold: Decimal = Decimal("500.00")
    tax_rate_percent: Decimal = Decimal("18")
    cod_surcharge: Decimal = Decimal("50.00")

    def price(self, lines: list[LineItem], cash_on_delivery: bool = False) -> OrderTotals:
        subtotal = quantize(sum((line.line_total for line in lines), _ZERO))
        shipping = _ZERO if subtotal >= self.free_shipping_threshold else quantize(self.shipping_fee)
        tax = quantize(subtotal * self.tax_rate_percent / 100)
        cod = quantize(self.cod_surcharge) if cash_on_delivery else _ZERO
        return OrderTotals(
            subtotal=subtotal,
            shipping_fee=shipping,
            tax_amount=tax,
            cod_charges=cod,
            grand_total=subtotal + shipping + tax + cod,
        )


def build_line_items(
    requested: list[tuple[str, int]], catalog: dict[str, ProductSnapshot]
) -> list[LineItem]:
    """Resolve (product_id, quantity) pairs against catalog snapshots.

    Raises ProductNotFoundError / ProductUnavailableError for unknown or
    out-of-stock products; InvalidOrderError for an empty cart or qty < 1.
    """
    if not requested:
        raise InvalidOrderError("order has no items")
    # Stock is checked against the total quantity per product, not per line
    totals: dict[str, int] = {}
    for product_id, quantity in requested:
        if quantity < 1:
            raise InvalidOrderError(f"quantity for {product_id} must be at least 1")
        totals[product_id] = totals.get(product_id, 0) + quantity
    for product_id, total in totals.items():
        product = catalog.get(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        if not product.is_available(total):
            raise ProductUnavailableError(product_id, total)
    return [
        LineItem(
            product_id=product_id,
            name=catalog[product_id].name,
            quantity=quantity,
            unit_price=quantize(catalog[product_id].unit_price),
        )
        for product_id, quantity in requested
    ]
