"""Amount reconciliation between the server-held order total and the provider.

The server total must be the one captured on the order (or computed from
catalog prices for a new order), never a figure from the request body.
"""
from dataclasses import dataclass
from decimal import Decimal

from src.shop_common.money import to_minor_units


@dataclass(frozen=True)
class AmountCheck:
    expected_minor: int
    reported_minor: int

    @property
    def ok(self) -> bool:
        return self.expected_minor == self.reported_minor


def reconcile(server_total: Decimal, provider_amount_minor: int) -> AmountCheck:
    """Compare exactly: any difference, even one minor unit, is a mismatch."""
    return AmountCheck(
        expected_minor=to_minor_units(server_total),
        reported_minor=int(provider_amount_minor),
    )
