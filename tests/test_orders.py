from decimal import Decimal

import httpx
import pytest

from storefront.cart import CartEngine
from storefront.orders import (
    CardType,
    CheckoutNotReadyError,
    CustomerInfo,
    OrderBook,
    OrderCounter,
    OrderStatus,
    PaymentMethod,
    build_confirmation,
    checkout_blockers,
    format_order_id,
    submit_checkout,
)


def _ready_customer(method="pix", **extra):
    customer = CustomerInfo()
    customer.update(
        name="Kekê",
        address="Rua das Flores",
        number="42",
        neighborhood="Centro",
        payment_method=method,
        **extra,
    )
    return customer


def test_format_order_id_pads_to_three_digits():
    assert format_order_id(1) == "#001"
    assert format_order_id(42) == "#042"
    assert format_order_id(1234) == "#1234"


def test_counter_is_monotonic_from_start():
    counter = OrderCounter(start=7)
    assert [counter.allocate() for _ in range(3)] == [7, 8, 9]
    assert counter.next_value == 10


def test_counter_rejects_start_below_one():
    with pytest.raises(ValueError):
        OrderCounter(start=0)


def test_order_ids_increase_across_checkouts(beer):
    cart = CartEngine()
    counter = OrderCounter()
    ids = []
    for _ in range(3):
        cart.add_item(beer)
        ids.append(submit_checkout(cart, _ready_customer(), counter).order.id)
    assert ids == ["#001", "#002", "#003"]


def test_checkout_builds_snapshot_and_resets_state(beer, soda):
    cart = CartEngine()
    cart.add_item(beer, 2)
    cart.add_item(soda, 1)
    customer = _ready_customer("cash", change_for="50,00")

    result = submit_checkout(cart, customer, OrderCounter())
    order = result.order

    assert order.id == "#001"
    assert order.total == Decimal("11.00")
    assert order.address == "Rua das Flores, 42 - Centro"
    assert order.customer_name == "Kekê"
    assert order.payment_method is PaymentMethod.CASH
    assert order.change_for == Decimal("50.00")
    assert order.card_type is None
    assert order.status is OrderStatus.PENDING
    assert [(line.product_id, line.quantity) for line in order.lines] == [(beer.id, 2), (soda.id, 1)]

    assert cart.is_empty()
    assert customer == CustomerInfo()


def test_later_cart_changes_do_not_touch_placed_order(beer):
    cart = CartEngine()
    cart.add_item(beer, 2)
    order = submit_checkout(cart, _ready_customer(), OrderCounter()).order

    cart.add_item(beer, 10)
    assert order.lines[0].quantity == 2
    assert order.total == Decimal("7.00")


def test_card_type_kept_only_for_card_payments(beer):
    cart = CartEngine()
    cart.add_item(beer)
    card_order = submit_checkout(cart, _ready_customer("card", card_type="credit"), OrderCounter()).order
    assert card_order.card_type is CardType.CREDIT
    assert card_order.change_for is None


def test_failed_submission_still_consumes_id(beer):
    cart = CartEngine()
    cart.add_item(beer)
    counter = OrderCounter()
    customer = CustomerInfo()

    with pytest.raises(CheckoutNotReadyError):
        submit_checkout(cart, customer, counter)

    assert counter.next_value == 2
    order = submit_checkout(cart, _ready_customer(), counter).order
    assert order.id == "#002"


def test_blockers_list_every_missing_precondition():
    assert checkout_blockers(CartEngine(), CustomerInfo()) == [
        "cart_empty",
        "address",
        "number",
        "neighborhood",
        "payment_method",
    ]


def test_card_without_type_blocks_checkout(beer):
    cart = CartEngine()
    cart.add_item(beer)
    assert checkout_blockers(cart, _ready_customer("card")) == ["card_type"]
    assert checkout_blockers(cart, _ready_customer("card", card_type="debit")) == []


def test_customer_update_rejects_unknown_field_and_bad_values():
    customer = CustomerInfo()
    with pytest.raises(ValueError):
        customer.update(email="x@example.com")
    with pytest.raises(ValueError):
        customer.update(payment_method="bitcoin")
    with pytest.raises(ValueError):
        customer.update(change_for="cinquenta")


def test_pix_checkout_emits_order_then_payment(beer, recorder, make_dispatcher):
    dispatcher = make_dispatcher(recorder, max_workers=1)
    cart = CartEngine()
    cart.add_item(beer, 2)

    submit_checkout(cart, _ready_customer("pix"), OrderCounter(), dispatcher)
    assert dispatcher.drain(timeout=5)

    assert recorder.urls() == [
        "https://hooks.example.test/new-order",
        "https://hooks.example.test/payment",
    ]
    new_order, payment = recorder.bodies()
    assert new_order["action"] == "new_order"
    assert new_order["order"]["id"] == "#001"
    assert new_order["order"]["total"] == 7.0
    assert new_order["order"]["items"][0]["quantity"] == 2
    assert new_order["source"] == "deposito_do_keke"
    assert payment == {
        "action": "payment_pending",
        "order_id": "#001",
        "payment_method": "pix",
        "amount": 7.0,
        "timestamp": payment["timestamp"],
        "source": "deposito_do_keke",
    }


def test_non_pix_checkout_sends_no_payment_event(beer, recorder, make_dispatcher):
    dispatcher = make_dispatcher(recorder)
    cart = CartEngine()
    cart.add_item(beer)

    submit_checkout(cart, _ready_customer("cash"), OrderCounter(), dispatcher)
    assert dispatcher.drain(timeout=5)

    assert recorder.urls() == ["https://hooks.example.test/new-order"]


def test_checkout_succeeds_when_endpoint_is_down(beer, make_recorder, make_dispatcher):
    failing = make_recorder(error=httpx.ConnectError("unreachable"))
    dispatcher = make_dispatcher(failing)
    cart = CartEngine()
    cart.add_item(beer)

    result = submit_checkout(cart, _ready_customer("pix"), OrderCounter(), dispatcher)
    assert dispatcher.drain(timeout=5)

    assert result.order.id == "#001"
    assert cart.is_empty()
    assert len(failing.requests) == 2


class _BrokenOrderHook:
    def __init__(self):
        self.payments = []

    def notify_order_created(self, payload):
        raise RuntimeError("order hook exploded")

    def notify_payment_pending(self, payload):
        self.payments.append(payload)


def test_notification_step_error_does_not_abort_checkout(beer):
    dispatcher = _BrokenOrderHook()
    cart = CartEngine()
    cart.add_item(beer)
    customer = _ready_customer("pix")

    result = submit_checkout(cart, customer, OrderCounter(), dispatcher)

    assert result.order.id == "#001"
    assert cart.is_empty()
    assert customer.address == ""
    assert [payment["order_id"] for payment in dispatcher.payments] == ["#001"]


def test_confirmation_text(beer):
    cart = CartEngine()
    cart.add_item(beer, 2)
    pix = submit_checkout(cart, _ready_customer("pix"), OrderCounter())
    assert "#001" in pix.confirmation
    assert "R$ 7.00" in pix.confirmation
    assert "Rua das Flores, 42 - Centro" in pix.confirmation
    assert "💳 Pagamento: PIX" in pix.confirmation
    assert "comprovante PIX" in pix.confirmation

    cart.add_item(beer)
    card = submit_checkout(cart, _ready_customer("card", card_type="debit"), OrderCounter(start=5))
    assert "Cartão de débito" in card.confirmation
    assert "preparando sua entrega" in card.confirmation
    assert card.confirmation == build_confirmation(card.order)


def test_order_book_advances_status(beer):
    cart = CartEngine()
    cart.add_item(beer)
    book = OrderBook()
    order = submit_checkout(cart, _ready_customer(), OrderCounter()).order
    book.add(order)

    assert book.advance_status("#001").status is OrderStatus.CONFIRMED
    assert book.advance_status("#001").status is OrderStatus.DELIVERED
    with pytest.raises(ValueError):
        book.advance_status("#001")
    with pytest.raises(KeyError):
        book.get("#999")
    assert order.status is OrderStatus.PENDING
