"""Catalog read model: what checkout needs to know about a product."""
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class ProductSnapshot:
    id: str
    name: str
    unit_price: Decimal  # major units
    stock: int
    is_active: bool = True

    def is_available(self, quantity: int) -> bool:
        return self.is_active and self.stock >= quantity
