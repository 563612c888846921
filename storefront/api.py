from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .catalog import CatalogLoader, UnknownProductError
from .config import Settings, load_settings
from .models import (
    AddItemRequest,
    CartLineView,
    CartView,
    CatalogResponse,
    ChatRequest,
    ChatResponse,
    CheckoutResponse,
    ConversationMessage,
    CustomerUpdate,
    CustomerView,
    NotificationSettingsPayload,
    NotificationSettingsUpdate,
    OrderView,
    ProductView,
    SetQuantityRequest,
)
from .notifications import NotificationDispatcher
from .orders import CheckoutNotReadyError
from .session import GREETING_TEMPLATE, StorefrontSession
from .session_store import ConversationLog
from .settings_store import SettingsStore

logger = logging.getLogger("storefront.api")


def build_session(settings: Settings, dispatcher: Optional[NotificationDispatcher] = None) -> StorefrontSession:
    """Purpose: Construct the storefront session and its collaborators from settings.
    Inputs/Outputs: Inputs are Settings and an optional dispatcher; output is a session.
    Side Effects / State: Loads the catalog, settings file and conversation log.
    Dependencies: CatalogLoader, SettingsStore, ConversationLog, NotificationDispatcher.
    Failure Modes: Catalog read/parse errors propagate and stop startup.
    If Removed: The API cannot be wired to any state.
    Testing Notes: Point DATA_DIR-style settings at tmp_path.
    """
    catalog, _ = CatalogLoader(settings.catalog_path).load()
    settings_store = SettingsStore(settings.notification_settings_path)
    conversation = ConversationLog(
        settings.messages_path if settings.persist_messages else None,
        greeting=GREETING_TEMPLATE.format(store_name=settings.store_name),
    )
    dispatcher = dispatcher or NotificationDispatcher(
        source=settings.notification_source,
        timeout=settings.webhook_timeout,
        max_workers=settings.dispatch_workers,
    )
    return StorefrontSession(
        catalog=catalog,
        dispatcher=dispatcher,
        settings_store=settings_store,
        conversation=conversation,
        order_number_start=settings.order_number_start,
    )


def create_app(
    settings: Optional[Settings] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> FastAPI:
    settings = settings or load_settings()
    session = build_session(settings, dispatcher=dispatcher)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        # Drain pending webhooks, then stop the workers.
        session.dispatcher.drain(timeout=settings.webhook_timeout)
        session.dispatcher.close()

    app = FastAPI(title=f"{settings.store_name} Storefront", lifespan=lifespan)
    app.state.session = session

    @app.exception_handler(UnknownProductError)
    def unknown_product(_: Request, exc: UnknownProductError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(CheckoutNotReadyError)
    def checkout_not_ready(_: Request, exc: CheckoutNotReadyError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc), "blockers": exc.blockers})

    @app.exception_handler(ValueError)
    def invalid_value(_: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    def cart_view() -> CartView:
        blockers = session.checkout_blockers()
        return CartView(
            lines=[CartLineView.from_line(line) for line in session.cart.lines()],
            total=float(session.cart.total()),
            item_count=session.cart.item_count(),
            checkout_ready=not blockers,
            checkout_blockers=blockers,
        )

    @app.get("/api/catalog", response_model=CatalogResponse)
    def get_catalog() -> CatalogResponse:
        return CatalogResponse(
            categories={
                category: [ProductView.from_product(product) for product in products]
                for category, products in session.catalog.by_category().items()
            }
        )

    @app.get("/api/cart", response_model=CartView)
    def get_cart() -> CartView:
        return cart_view()

    @app.post("/api/cart/items", response_model=CartView)
    def add_cart_item(request: AddItemRequest) -> CartView:
        session.add_item(request.product_id, request.quantity)
        return cart_view()

    @app.put("/api/cart/items/{product_id}", response_model=CartView)
    def set_cart_quantity(product_id: str, request: SetQuantityRequest) -> CartView:
        session.set_quantity(product_id, request.quantity)
        return cart_view()

    @app.delete("/api/cart/items/{product_id}", response_model=CartView)
    def remove_cart_item(product_id: str) -> CartView:
        session.remove_item(product_id)
        return cart_view()

    @app.get("/api/customer", response_model=CustomerView)
    def get_customer() -> CustomerView:
        return CustomerView.from_customer(session.customer)

    @app.patch("/api/customer", response_model=CustomerView)
    def update_customer(request: CustomerUpdate) -> CustomerView:
        customer = session.update_customer(**request.model_dump(exclude_unset=True))
        return CustomerView.from_customer(customer)

    @app.post("/api/checkout", response_model=CheckoutResponse)
    def checkout() -> CheckoutResponse:
        result = session.checkout()
        return CheckoutResponse(order=OrderView.from_order(result.order), confirmation=result.confirmation)

    @app.get("/api/orders", response_model=List[OrderView])
    def list_orders() -> List[OrderView]:
        return [OrderView.from_order(order) for order in session.orders.list()]

    @app.get("/api/orders/{order_number}", response_model=OrderView)
    def get_order(order_number: str) -> OrderView:
        try:
            order = session.orders.get(_order_id(order_number))
        except KeyError:
            raise HTTPException(status_code=404, detail=f"unknown order: {order_number}")
        return OrderView.from_order(order)

    @app.post("/api/orders/{order_number}/advance", response_model=OrderView)
    def advance_order(order_number: str) -> OrderView:
        try:
            order = session.orders.advance_status(_order_id(order_number))
        except KeyError:
            raise HTTPException(status_code=404, detail=f"unknown order: {order_number}")
        return OrderView.from_order(order)

    @app.post("/api/chat", response_model=ChatResponse)
    def chat(request: ChatRequest) -> ChatResponse:
        user_message, bot_message = session.send_message(request.message)
        return ChatResponse(reply=bot_message.content, user_message=user_message, bot_message=bot_message)

    @app.get("/api/messages", response_model=List[ConversationMessage])
    def list_messages() -> List[ConversationMessage]:
        return session.conversation.messages()

    @app.get("/api/settings/notifications", response_model=NotificationSettingsPayload)
    def get_notification_settings() -> NotificationSettingsPayload:
        return NotificationSettingsPayload.from_settings(session.dispatcher.settings)

    @app.put("/api/settings/notifications", response_model=NotificationSettingsPayload)
    def save_notification_settings(request: NotificationSettingsUpdate) -> NotificationSettingsPayload:
        saved = session.save_notification_settings(request.to_settings())
        return NotificationSettingsPayload.from_settings(saved)

    logger.info("storefront ready store=%s products=%d", settings.store_name, len(session.catalog))
    return app


def _order_id(order_number: str) -> str:
    # "#" cannot travel in a URL path, so "001" addresses order "#001".
    return order_number if order_number.startswith("#") else f"#{order_number}"
