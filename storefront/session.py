from __future__ import annotations

import logging
import threading
from typing import Any, List, Optional

from .cart import CartEngine, CartLine
from .catalog import Catalog
from .notifications import NotificationDispatcher, NotificationSettings
from .orders import (
    CheckoutNotReadyError,
    CheckoutResult,
    CustomerInfo,
    OrderBook,
    OrderCounter,
    checkout_blockers,
    submit_checkout,
)
from .reply_engine import reply
from .session_store import ConversationLog
from .settings_store import SettingsStore

logger = logging.getLogger("storefront.session")

GREETING_TEMPLATE = (
    "🍻 E aí! Chegou no lugar certo: {store_name} na área! "
    "Diz aí, no que a gente pode te dar aquela força hoje?"
)


class StorefrontSession:
    """The single cart/customer/order session of a running storefront.

    Operations run one at a time under a session lock; only webhook dispatch runs
    concurrently with them, on the dispatcher's worker threads.
    """

    def __init__(
        self,
        catalog: Catalog,
        dispatcher: NotificationDispatcher,
        settings_store: SettingsStore,
        conversation: ConversationLog,
        order_number_start: int = 1,
    ) -> None:
        """Purpose: Wire catalog, cart, customer info, counter and collaborators together.
        Inputs/Outputs: Inputs are the loaded catalog, dispatcher, settings store,
            conversation log and first order number; no return value.
        Side Effects / State: Applies stored notification settings to the dispatcher.
        Dependencies: CartEngine, OrderCounter, OrderBook, SettingsStore.
        Failure Modes: order_number_start < 1 raises ValueError.
        If Removed: The HTTP layer has no state to operate on.
        Testing Notes: Build with a MockTransport-backed dispatcher and temp paths.
        """
        self.catalog = catalog
        self.dispatcher = dispatcher
        self.settings_store = settings_store
        self.conversation = conversation
        self.cart = CartEngine(dispatcher=dispatcher)
        self.customer = CustomerInfo()
        self.counter = OrderCounter(order_number_start)
        self.orders = OrderBook()
        self._lock = threading.RLock()
        dispatcher.update_settings(settings_store.load_notification_settings())

    def add_item(self, product_id: str, quantity: int = 1) -> CartLine:
        product = self.catalog.get(product_id)
        with self._lock:
            return self.cart.add_item(product, quantity)

    def remove_item(self, product_id: str) -> None:
        with self._lock:
            self.cart.remove_item(product_id)

    def set_quantity(self, product_id: str, quantity: int) -> Optional[CartLine]:
        if quantity > 0:
            self.catalog.get(product_id)
        with self._lock:
            return self.cart.set_quantity(product_id, quantity)

    def update_customer(self, **fields: Any) -> CustomerInfo:
        with self._lock:
            self.customer.update(**fields)
            return self.customer

    def checkout_blockers(self) -> List[str]:
        return checkout_blockers(self.cart, self.customer)

    def checkout(self) -> CheckoutResult:
        """Purpose: Submit checkout if every precondition holds.
        Inputs/Outputs: No inputs; output is CheckoutResult.
        Side Effects / State: Places the order, records it in the order book and
            appends the confirmation to the conversation log.
        Dependencies: checkout_blockers, submit_checkout.
        Failure Modes: Unmet preconditions raise CheckoutNotReadyError before any
            id is allocated.
        If Removed: Customers cannot finish an order.
        Testing Notes: Empty cart must raise with "cart_empty" in blockers.
        """
        with self._lock:
            blockers = self.checkout_blockers()
            if blockers:
                logger.info("checkout blocked blockers=%s", blockers)
                raise CheckoutNotReadyError(blockers)
            result = submit_checkout(self.cart, self.customer, self.counter, self.dispatcher)
            self.orders.add(result.order)
        self.conversation.append(result.confirmation, is_bot=True)
        return result

    def send_message(self, text: str):
        """Append the customer's message and the scripted reply; returns both messages."""
        user_message = self.conversation.append(text, is_bot=False)
        with self._lock:
            answer = reply(text, self.catalog, len(self.cart))
        bot_message = self.conversation.append(answer, is_bot=True)
        return user_message, bot_message

    def save_notification_settings(self, settings: NotificationSettings) -> NotificationSettings:
        self.settings_store.save_notification_settings(settings)
        self.dispatcher.update_settings(settings)
        return settings
