from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import TYPE_CHECKING, Dict, List, Optional

from .catalog import Product

if TYPE_CHECKING:
    from .notifications import NotificationDispatcher

logger = logging.getLogger("storefront.cart")


@dataclass(frozen=True)
class CartLine:
    """One product-quantity pairing within the cart."""
    product: Product
    quantity: int

    @property
    def product_id(self) -> str:
        return self.product.id

    @property
    def line_total(self) -> Decimal:
        return self.product.price * self.quantity


class CartEngine:
    """Owns the cart lines for the current session and computes totals.

    At most one line exists per product id and every line has quantity >= 1; a
    line whose quantity drops to zero is removed. Line order follows first insertion.
    """

    def __init__(self, dispatcher: Optional["NotificationDispatcher"] = None) -> None:
        self._lines: Dict[str, CartLine] = {}
        self._dispatcher = dispatcher

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._lines

    def is_empty(self) -> bool:
        return not self._lines

    def add_item(self, product: Product, quantity: int = 1) -> CartLine:
        """Purpose: Add a product to the cart, merging with an existing line.
        Inputs/Outputs: Inputs are a Product and a positive quantity; returns the
            resulting CartLine.
        Side Effects / State: Mutates the cart and emits a stock-changed event
            carrying the cart item count computed after the mutation.
        Dependencies: NotificationDispatcher.notify_stock_changed when configured.
        Failure Modes: quantity < 1 raises ValueError; dispatch never raises here.
        If Removed: Nothing can be put in the cart.
        Testing Notes: Add the same product twice and assert a single merged line.
        """
        if quantity < 1:
            raise ValueError("quantity must be >= 1")
        existing = self._lines.get(product.id)
        if existing:
            line = replace(existing, quantity=existing.quantity + quantity)
        else:
            line = CartLine(product=product, quantity=quantity)
        self._lines[product.id] = line
        cart_total_items = self.item_count()
        logger.info(
            "cart add product=%s quantity=%d line_quantity=%d cart_total_items=%d",
            product.id,
            quantity,
            line.quantity,
            cart_total_items,
        )
        if self._dispatcher is not None:
            self._dispatcher.notify_stock_changed(
                {
                    "action": "product_added_to_cart",
                    "product": product.to_payload(),
                    "quantity": quantity,
                    "cart_total_items": cart_total_items,
                }
            )
        return line

    def remove_item(self, product_id: str) -> None:
        # Absent ids are a no-op.
        if self._lines.pop(product_id, None) is not None:
            logger.info("cart remove product=%s", product_id)

    def set_quantity(self, product_id: str, quantity: int) -> Optional[CartLine]:
        """Overwrite a line's quantity; zero or less removes the line."""
        if quantity <= 0:
            self.remove_item(product_id)
            return None
        existing = self._lines.get(product_id)
        if existing is None:
            return None
        line = replace(existing, quantity=quantity)
        self._lines[product_id] = line
        logger.info("cart set_quantity product=%s quantity=%d", product_id, quantity)
        return line

    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def total(self) -> Decimal:
        return sum((line.line_total for line in self._lines.values()), Decimal("0"))

    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def clear(self) -> None:
        self._lines.clear()
        logger.info("cart cleared")
