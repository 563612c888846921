import json
from decimal import Decimal
from pathlib import Path

import httpx
import pytest

from storefront.catalog import BeverageType, Catalog, CatalogLoader, Product
from storefront.config import BASE_DIR, Settings
from storefront.notifications import NotificationDispatcher, NotificationSettings

BUNDLED_CATALOG = BASE_DIR / "resources" / "catalog.json"

ENABLED_SETTINGS = NotificationSettings(
    new_order_webhook="https://hooks.example.test/new-order",
    payment_webhook="https://hooks.example.test/payment",
    stock_webhook="https://hooks.example.test/stock",
    enabled=True,
)


class Recorder:
    """MockTransport handler that keeps every outbound request."""

    def __init__(self, status_code: int = 200, error: Exception = None):
        self.status_code = status_code
        self.error = error
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code)

    def urls(self):
        return [str(request.url) for request in self.requests]

    def bodies(self):
        return [json.loads(request.content) for request in self.requests]


@pytest.fixture
def beer():
    return Product(
        id="b1",
        name="Cerveja Teste",
        type=BeverageType.BEER,
        volume="350ml",
        price=Decimal("3.50"),
        category="Cervejas",
    )


@pytest.fixture
def soda():
    return Product(
        id="s1",
        name="Refri Teste",
        type=BeverageType.SODA,
        volume="350ml",
        price=Decimal("4.00"),
        category="Refrigerantes",
    )


@pytest.fixture
def small_catalog(beer, soda):
    return Catalog([beer, soda])


@pytest.fixture
def catalog():
    loaded, _ = CatalogLoader(BUNDLED_CATALOG).load()
    return loaded


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def make_recorder():
    return Recorder


@pytest.fixture
def make_dispatcher():
    created = []

    def factory(recorder, settings=ENABLED_SETTINGS, **kwargs):
        client = httpx.Client(transport=httpx.MockTransport(recorder))
        dispatcher = NotificationDispatcher(settings=settings, client=client, **kwargs)
        created.append(dispatcher)
        return dispatcher

    yield factory
    for dispatcher in created:
        dispatcher.close()


@pytest.fixture
def app_settings(tmp_path: Path):
    return Settings(
        catalog_path=BUNDLED_CATALOG,
        data_dir=tmp_path / "data",
        store_name="Depósito do Kekê",
        notification_source="deposito_do_keke",
        order_number_start=1,
        webhook_timeout=5.0,
        dispatch_workers=2,
        persist_messages=True,
    )
