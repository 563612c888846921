"""Order lifecycle: checkout readiness, sequential ids, immutable orders, history.

Checkout contract:
    Preconditions (checked by the caller through checkout_blockers):
        non-empty cart; address, number, neighborhood and payment method filled;
        card type chosen when paying by card.
    Steps:
        allocate_id -> build_order -> notify_order -> notify_payment (PIX only)
        -> reset_session.
    The id is allocated before anything else, so a submission that fails later
    still consumes its number; ids are never reused. Notification steps are best
    effort: their outcome, even an exception while building the event, never
    affects the placed order or the reset. There is no rollback.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from .cart import CartEngine, CartLine
from .pipeline import Step, StepRunner
from .utils import format_brl, parse_amount, utc_now

if TYPE_CHECKING:
    from .notifications import NotificationDispatcher

logger = logging.getLogger("storefront.orders")

ORDER_ID_WIDTH = 3


class PaymentMethod(str, Enum):
    PIX = "pix"
    CARD = "card"
    CASH = "cash"


class CardType(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DELIVERED = "delivered"


NEXT_STATUS = {
    OrderStatus.PENDING: OrderStatus.CONFIRMED,
    OrderStatus.CONFIRMED: OrderStatus.DELIVERED,
}

CARD_LABELS = {
    CardType.DEBIT: "débito",
    CardType.CREDIT: "crédito",
}

PIX_FOLLOW_UP = "📸 Aguardando comprovante PIX para confirmar!"
DELIVERY_FOLLOW_UP = "🛵 Já estamos preparando sua entrega!"


class CheckoutNotReadyError(ValueError):
    """Raised when checkout is requested while preconditions are unmet."""

    def __init__(self, blockers: List[str]) -> None:
        super().__init__("checkout not ready: " + ", ".join(blockers))
        self.blockers = blockers


@dataclass
class CustomerInfo:
    """Delivery and payment details typed in by the customer."""
    name: str = ""
    address: str = ""
    number: str = ""
    neighborhood: str = ""
    payment_method: Optional[PaymentMethod] = None
    card_type: Optional[CardType] = None
    change_for: Optional[Decimal] = None

    def update(self, **fields: Any) -> None:
        """Purpose: Apply a partial update from form-style input.
        Inputs/Outputs: Keyword fields among the dataclass attributes; no return value.
        Side Effects / State: Mutates this object in place.
        Dependencies: PaymentMethod/CardType enums and parse_amount.
        Failure Modes: Unknown fields, invalid enum values and bad amounts raise ValueError.
        If Removed: Customer details cannot be filled in incrementally.
        Testing Notes: Update payment_method="card" then card_type="credit".
        """
        for key, value in fields.items():
            if key not in _CUSTOMER_FIELDS:
                raise ValueError(f"unknown customer field: {key}")
            if key == "payment_method":
                value = PaymentMethod(value) if value else None
            elif key == "card_type":
                value = CardType(value) if value else None
            elif key == "change_for":
                value = value if isinstance(value, Decimal) else parse_amount(value)
            else:
                value = (value or "").strip()
            setattr(self, key, value)

    def reset(self) -> None:
        for name, default in _CUSTOMER_DEFAULTS.items():
            setattr(self, name, default)

    def missing_fields(self) -> List[str]:
        missing = [name for name in ("address", "number", "neighborhood") if not getattr(self, name)]
        if self.payment_method is None:
            missing.append("payment_method")
        elif self.payment_method is PaymentMethod.CARD and self.card_type is None:
            missing.append("card_type")
        return missing

    def composed_address(self) -> str:
        return f"{self.address}, {self.number} - {self.neighborhood}"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "number": self.number,
            "neighborhood": self.neighborhood,
            "paymentMethod": self.payment_method.value if self.payment_method else "",
            "cardType": self.card_type.value if self.card_type else "",
            "changeFor": float(self.change_for) if self.change_for is not None else None,
        }


_CUSTOMER_DEFAULTS = {name: value for name, value in CustomerInfo().__dict__.items()}
_CUSTOMER_FIELDS = set(_CUSTOMER_DEFAULTS)


class OrderCounter:
    """Monotonic order number source; numbers are never decremented or reused."""

    def __init__(self, start: int = 1) -> None:
        if start < 1:
            raise ValueError("order counter must start at >= 1")
        self._next = start
        self._lock = threading.Lock()

    @property
    def next_value(self) -> int:
        return self._next

    def allocate(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
        return value


def format_order_id(number: int) -> str:
    return f"#{number:0{ORDER_ID_WIDTH}d}"


@dataclass(frozen=True)
class Order:
    """Immutable record of a placed order."""
    id: str
    lines: Tuple[CartLine, ...]
    total: Decimal
    customer_name: str
    address: str
    payment_method: PaymentMethod
    card_type: Optional[CardType]
    change_for: Optional[Decimal]
    created_at: datetime
    status: OrderStatus = OrderStatus.PENDING
    customer: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def to_payload(self) -> Dict[str, Any]:
        # Wire shape for the order-created webhook.
        return {
            "id": self.id,
            "items": [dict(line.product.to_payload(), quantity=line.quantity) for line in self.lines],
            "total": float(self.total),
            "customer": dict(self.customer),
            "address": self.address,
            "paymentMethod": self.payment_method.value,
            "cardType": self.card_type.value if self.card_type else None,
            "changeFor": float(self.change_for) if self.change_for is not None else None,
            "timestamp": self.created_at.isoformat(),
            "status": self.status.value,
        }


@dataclass
class CheckoutResult:
    order: Order
    confirmation: str


@dataclass
class CheckoutContext:
    """Mutable context passed through each checkout step."""
    cart: CartEngine
    customer: CustomerInfo
    counter: OrderCounter
    dispatcher: Optional["NotificationDispatcher"] = None
    number: int = 0
    order: Optional[Order] = None


def checkout_blockers(cart: CartEngine, customer: CustomerInfo) -> List[str]:
    """List unmet checkout preconditions; empty means checkout may be submitted."""
    blockers: List[str] = []
    if cart.is_empty():
        blockers.append("cart_empty")
    blockers.extend(customer.missing_fields())
    return blockers


def _step_allocate_id(context: CheckoutContext) -> None:
    context.number = context.counter.allocate()


def _step_build_order(context: CheckoutContext) -> None:
    customer = context.customer
    method = customer.payment_method
    if method is None:
        raise CheckoutNotReadyError(["payment_method"])
    context.order = Order(
        id=format_order_id(context.number),
        lines=tuple(context.cart.lines()),
        total=context.cart.total(),
        customer_name=customer.name,
        address=customer.composed_address(),
        payment_method=method,
        card_type=customer.card_type if method is PaymentMethod.CARD else None,
        change_for=customer.change_for if method is PaymentMethod.CASH else None,
        created_at=utc_now(),
        customer=customer.to_payload(),
    )


def _step_notify_order(context: CheckoutContext) -> None:
    context.dispatcher.notify_order_created({"action": "new_order", "order": context.order.to_payload()})


def _step_notify_payment(context: CheckoutContext) -> None:
    order = context.order
    context.dispatcher.notify_payment_pending(
        {
            "action": "payment_pending",
            "order_id": order.id,
            "payment_method": PaymentMethod.PIX.value,
            "amount": float(order.total),
        }
    )


def _step_reset_session(context: CheckoutContext) -> None:
    context.cart.clear()
    context.customer.reset()


def _without_dispatcher(context: CheckoutContext) -> bool:
    return context.dispatcher is None


def _not_pix(context: CheckoutContext) -> bool:
    return context.dispatcher is None or context.order.payment_method is not PaymentMethod.PIX


CHECKOUT_RUNNER = StepRunner(
    steps=[
        Step("allocate_id", _step_allocate_id),
        Step("build_order", _step_build_order),
        Step("notify_order", _step_notify_order, skip_if=_without_dispatcher, best_effort=True),
        Step("notify_payment", _step_notify_payment, skip_if=_not_pix, best_effort=True),
        Step("reset_session", _step_reset_session),
    ]
)


def submit_checkout(
    cart: CartEngine,
    customer: CustomerInfo,
    counter: OrderCounter,
    dispatcher: Optional["NotificationDispatcher"] = None,
) -> CheckoutResult:
    """Purpose: Turn the current cart and customer details into a placed order.
    Inputs/Outputs: Inputs are the cart, customer info, order counter and optional
        dispatcher; output is CheckoutResult with the Order and confirmation text.
    Side Effects / State: Advances the counter, emits order/payment events, clears
        the cart and resets customer info.
    Dependencies: CHECKOUT_RUNNER steps; NotificationDispatcher for events.
    Failure Modes: Preconditions are not re-validated here; a missing payment method
        raises CheckoutNotReadyError after the id has been consumed.
    If Removed: No order can ever be placed.
    Testing Notes: Two checkouts yield "#001" then "#002"; cart is empty afterwards.
    """
    context = CheckoutContext(cart=cart, customer=customer, counter=counter, dispatcher=dispatcher)
    CHECKOUT_RUNNER.run(context)
    order = context.order
    logger.info(
        "order placed id=%s items=%d total=%s payment=%s",
        order.id,
        order.item_count,
        order.total,
        order.payment_method.value,
    )
    return CheckoutResult(order=order, confirmation=build_confirmation(order))


def payment_summary(order: Order) -> str:
    if order.payment_method is PaymentMethod.PIX:
        return "PIX"
    if order.payment_method is PaymentMethod.CARD:
        label = CARD_LABELS.get(order.card_type)
        return f"Cartão de {label}" if label else "Cartão"
    if order.change_for is not None:
        return f"Dinheiro (troco para {format_brl(order.change_for)})"
    return "Dinheiro"


def build_confirmation(order: Order) -> str:
    """Human-readable acknowledgement appended to the conversation after checkout."""
    follow_up = PIX_FOLLOW_UP if order.payment_method is PaymentMethod.PIX else DELIVERY_FOLLOW_UP
    return (
        f"✅ Perfeito! Seu pedido {order.id} foi confirmado!\n\n"
        f"📦 Total: {format_brl(order.total)}\n"
        f"📍 Endereço: {order.address}\n"
        f"💳 Pagamento: {payment_summary(order)}\n\n"
        f"{follow_up}"
    )


class OrderBook:
    """In-memory history of orders placed in this session."""

    def __init__(self) -> None:
        self._orders: Dict[str, Order] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._orders)

    def add(self, order: Order) -> None:
        with self._lock:
            if order.id in self._orders:
                raise ValueError(f"duplicate order id: {order.id}")
            self._orders[order.id] = order

    def get(self, order_id: str) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise KeyError(order_id)
        return order

    def list(self) -> List[Order]:
        return list(self._orders.values())

    def advance_status(self, order_id: str) -> Order:
        """Move an order one step along pending -> confirmed -> delivered."""
        with self._lock:
            order = self.get(order_id)
            next_status = NEXT_STATUS.get(order.status)
            if next_status is None:
                raise ValueError(f"order {order_id} is already {order.status.value}")
            updated = replace(order, status=next_status)
            self._orders[order_id] = updated
        logger.info("order status id=%s status=%s", order_id, next_status.value)
        return updated
