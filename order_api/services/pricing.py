"""
Order pricing.

Computes an order's subtotal and total from authoritative menu-item and
add-on prices. Client-supplied discount and fees are applied as given.
"""

from dataclasses import dataclass
from typing import Iterable, Mapping

from order_api.models import Addon, MenuItem
from order_api.schemas import OrderItemCreate


@dataclass(frozen=True)
class OrderPricing:
    subtotal: float
    discount: float = 0.0
    platform_fee: float = 0.0
    payment_fee: float = 0.0
    delivery_charge: float = 0.0
    delivery_discount: float = 0.0

    @property
    def total(self) -> float:
        return round(
            self.subtotal
            - self.discount
            + self.platform_fee
            + self.payment_fee
            + self.delivery_charge
            - self.delivery_discount,
            2,
        )


def line_total(item: OrderItemCreate, menu_item: MenuItem, addons: Mapping[int, Addon]) -> float:
    """Price of one order line: (menu price + add-on prices) x quantity."""
    unit_price = menu_item.price + sum(addons[addon_id].price for addon_id in item.addon_ids)
    return unit_price * item.quantity


def price_order(
    items: Iterable[OrderItemCreate],
    menu_items: Mapping[int, MenuItem],
    addons: Mapping[int, Addon],
    discount: float = 0.0,
    platform_fee: float = 0.0,
    payment_fee: float = 0.0,
) -> OrderPricing:
    """
    Price an order whose menu items and add-ons are already resolved.

    Delivery pricing is not computed here; delivery charge and discount
    are always zero.
    """
    subtotal = sum(
        line_total(item, menu_items[item.menu_item.id], addons) for item in items
    )
    return OrderPricing(
        subtotal=round(subtotal, 2),
        discount=discount,
        platform_fee=platform_fee,
        payment_fee=payment_fee,
    )


def totals_match(submitted: float, computed: float, tolerance: float) -> bool:
    return abs(round(submitted, 2) - computed) <= tolerance + 1e-9
