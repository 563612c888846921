from __future__ import annotations

from typing import Dict, List, Optional, Union

from pydantic import AnyHttpUrl, BaseModel, Field, TypeAdapter, ValidationError, field_validator

from .cart import CartLine
from .catalog import BeverageType, Product
from .notifications import NotificationSettings
from .orders import CardType, CustomerInfo, Order, OrderStatus, PaymentMethod


class ConversationMessage(BaseModel):
    """Conversation log record shown by the chat view."""
    id: str
    content: str
    is_bot: bool
    timestamp: float


class ChatRequest(BaseModel):
    """Request payload for chat API."""
    message: str = Field(min_length=1)


class ChatResponse(BaseModel):
    """Reply plus the two messages appended to the log."""
    reply: str
    user_message: ConversationMessage
    bot_message: ConversationMessage


class ProductView(BaseModel):
    id: str
    name: str
    type: BeverageType
    volume: str
    price: float
    is_returnable: bool
    category: str

    @classmethod
    def from_product(cls, product: Product) -> "ProductView":
        return cls(
            id=product.id,
            name=product.name,
            type=product.type,
            volume=product.volume,
            price=float(product.price),
            is_returnable=product.is_returnable,
            category=product.category,
        )


class CatalogResponse(BaseModel):
    """Products grouped by category label."""
    categories: Dict[str, List[ProductView]]


class CartLineView(BaseModel):
    product: ProductView
    quantity: int
    line_total: float

    @classmethod
    def from_line(cls, line: CartLine) -> "CartLineView":
        return cls(
            product=ProductView.from_product(line.product),
            quantity=line.quantity,
            line_total=float(line.line_total),
        )


class CartView(BaseModel):
    lines: List[CartLineView]
    total: float
    item_count: int
    checkout_ready: bool
    checkout_blockers: List[str]


class AddItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)


class SetQuantityRequest(BaseModel):
    quantity: int


class CustomerUpdate(BaseModel):
    """Partial customer update; only fields sent are applied."""
    name: Optional[str] = None
    address: Optional[str] = None
    number: Optional[str] = None
    neighborhood: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    card_type: Optional[CardType] = None
    change_for: Optional[Union[str, float]] = None


class CustomerView(BaseModel):
    name: str
    address: str
    number: str
    neighborhood: str
    payment_method: Optional[PaymentMethod]
    card_type: Optional[CardType]
    change_for: Optional[float]

    @classmethod
    def from_customer(cls, customer: CustomerInfo) -> "CustomerView":
        return cls(
            name=customer.name,
            address=customer.address,
            number=customer.number,
            neighborhood=customer.neighborhood,
            payment_method=customer.payment_method,
            card_type=customer.card_type,
            change_for=float(customer.change_for) if customer.change_for is not None else None,
        )


class OrderView(BaseModel):
    id: str
    lines: List[CartLineView]
    total: float
    customer_name: str
    address: str
    payment_method: PaymentMethod
    card_type: Optional[CardType]
    change_for: Optional[float]
    created_at: str
    status: OrderStatus

    @classmethod
    def from_order(cls, order: Order) -> "OrderView":
        return cls(
            id=order.id,
            lines=[CartLineView.from_line(line) for line in order.lines],
            total=float(order.total),
            customer_name=order.customer_name,
            address=order.address,
            payment_method=order.payment_method,
            card_type=order.card_type,
            change_for=float(order.change_for) if order.change_for is not None else None,
            created_at=order.created_at.isoformat(),
            status=order.status,
        )


class CheckoutResponse(BaseModel):
    order: OrderView
    confirmation: str


class NotificationSettingsPayload(BaseModel):
    """Webhook endpoints and enable flag as edited in the settings view."""
    new_order_webhook: str = ""
    payment_webhook: str = ""
    stock_webhook: str = ""
    enabled: bool = False

    @classmethod
    def from_settings(cls, settings: NotificationSettings) -> "NotificationSettingsPayload":
        return cls(
            new_order_webhook=settings.new_order_webhook,
            payment_webhook=settings.payment_webhook,
            stock_webhook=settings.stock_webhook,
            enabled=settings.enabled,
        )

    def to_settings(self) -> NotificationSettings:
        return NotificationSettings(
            new_order_webhook=self.new_order_webhook,
            payment_webhook=self.payment_webhook,
            stock_webhook=self.stock_webhook,
            enabled=self.enabled,
        )


_HTTP_URL = TypeAdapter(AnyHttpUrl)


class NotificationSettingsUpdate(NotificationSettingsPayload):
    """Settings as submitted for saving; each URL is blank or an http(s) URL."""

    @field_validator("new_order_webhook", "payment_webhook", "stock_webhook")
    @classmethod
    def check_webhook_url(cls, value: str) -> str:
        value = value.strip()
        if value:
            try:
                _HTTP_URL.validate_python(value)
            except ValidationError as exc:
                raise ValueError(f"invalid webhook url: {value}") from exc
        return value
