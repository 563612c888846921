from __future__ import annotations

"""Catalog loader and lookup helpers for the beverage storefront.

This module loads the catalog JSON resource into immutable Product objects once at
startup and provides the read-only lookups used by the cart, order and reply code.
"""

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .utils import normalize_key, to_money

logger = logging.getLogger("storefront.catalog")


ID_KEYS = ["id", "sku", "code", "codigo"]
NAME_KEYS = ["name", "nome", "product name"]
TYPE_KEYS = ["type", "tipo", "beverage type"]
VOLUME_KEYS = ["volume", "size", "tamanho"]
PRICE_KEYS = ["price", "preco", "valor"]
RETURNABLE_KEYS = ["is_returnable", "returnable", "retornavel"]
CATEGORY_KEYS = ["category", "categoria"]

TRUE_VALUES = {"1", "true", "yes", "sim", "s"}


class BeverageType(str, Enum):
    BEER = "beer"
    WINE = "wine"
    SODA = "soda"
    WATER = "water"
    ENERGY = "energy"


class UnknownProductError(KeyError):
    """Raised when a product id is not part of the catalog."""

    def __init__(self, product_id: str) -> None:
        super().__init__(product_id)
        self.product_id = product_id

    def __str__(self) -> str:
        return f"unknown product: {self.product_id}"


@dataclass(frozen=True)
class Product:
    """Immutable catalog entry."""
    id: str
    name: str
    type: BeverageType
    volume: str
    price: Decimal
    category: str
    is_returnable: bool = False

    def to_payload(self) -> Dict[str, Any]:
        # Wire shape used by webhook bodies and the API.
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "volume": self.volume,
            "price": float(self.price),
            "isReturnable": self.is_returnable,
            "category": self.category,
        }


@dataclass
class CatalogMeta:
    """Metadata describing the catalog file version for logging."""
    file_name: str
    updated_at: str
    sha256: str


class Catalog:
    """Read-only product collection with id, type and category lookups."""

    def __init__(self, products: Iterable[Product]) -> None:
        """Purpose: Index products by id while keeping catalog order.
        Inputs/Outputs: Input is an iterable of Product; no return value.
        Side Effects / State: Builds the id index once; the catalog is never mutated.
        Dependencies: Product dataclass.
        Failure Modes: Duplicate ids raise ValueError.
        If Removed: Cart and reply code cannot resolve product ids.
        Testing Notes: Build with a duplicate id and expect ValueError.
        """
        self._products: Tuple[Product, ...] = tuple(products)
        self._by_id: Dict[str, Product] = {}
        for product in self._products:
            if product.id in self._by_id:
                raise ValueError(f"duplicate product id in catalog: {product.id}")
            self._by_id[product.id] = product

    def __iter__(self):
        return iter(self._products)

    def __len__(self) -> int:
        return len(self._products)

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._by_id

    @property
    def products(self) -> Tuple[Product, ...]:
        return self._products

    def get(self, product_id: str) -> Product:
        product = self._by_id.get(product_id)
        if product is None:
            raise UnknownProductError(product_id)
        return product

    def by_type(self, beverage_type: BeverageType) -> List[Product]:
        return [product for product in self._products if product.type == beverage_type]

    def by_category(self) -> Dict[str, List[Product]]:
        """Group products by category label in first-appearance order."""
        groups: Dict[str, List[Product]] = {}
        for product in self._products:
            groups.setdefault(product.category, []).append(product)
        return groups


class CatalogLoader:
    def __init__(self, path: Path) -> None:
        # Store the catalog file location for subsequent loads.
        self._path = path

    def load(self) -> Tuple[Catalog, CatalogMeta]:
        """Purpose: Load and normalize catalog data from the resource file.
        Inputs/Outputs: No inputs; returns a Catalog and CatalogMeta.
        Side Effects / State: Reads file contents and computes hash/mtime.
        Dependencies: Uses json, hashlib, and helper _get_first_value.
        Failure Modes: JSON decode errors, missing required fields, non-positive
            prices, unknown beverage types and duplicate ids raise ValueError.
        If Removed: The storefront has nothing to sell and cannot start.
        Testing Notes: Load the bundled catalog.json and a temp file with bad rows.
        """
        # Read bytes for hashing and parse JSON into products.
        raw_bytes = self._path.read_bytes()
        sha256 = hashlib.sha256(raw_bytes).hexdigest()
        updated_at = datetime.fromtimestamp(self._path.stat().st_mtime).isoformat()

        data = json.loads(raw_bytes.decode("utf-8-sig"))
        items: List[Dict[str, Any]]
        if isinstance(data, dict):
            items = data.get("items", [])
        elif isinstance(data, list):
            items = data
        else:
            items = []

        products = [_parse_product(item) for item in items if isinstance(item, dict)]
        catalog = Catalog(products)
        meta = CatalogMeta(
            file_name=self._path.name,
            updated_at=updated_at,
            sha256=sha256,
        )
        logger.info(
            "catalog loaded file=%s products=%d sha256=%s updated_at=%s",
            meta.file_name,
            len(catalog),
            meta.sha256[:12],
            meta.updated_at,
        )
        return catalog, meta


def _parse_product(item: Dict[str, Any]) -> Product:
    """Purpose: Convert a raw catalog record into a validated Product.
    Inputs/Outputs: Input is a raw dict; output is a Product.
    Side Effects / State: None.
    Dependencies: Uses _get_first_value and to_money.
    Failure Modes: Raises ValueError for missing id/name/price, bad type or price <= 0.
    If Removed: Catalog records would reach the cart unvalidated.
    Testing Notes: Verify synonym keys ("preco", "tipo") resolve correctly.
    """
    product_id = str(_get_first_value(item, ID_KEYS) or "").strip()
    name = str(_get_first_value(item, NAME_KEYS) or "").strip()
    if not product_id or not name:
        raise ValueError(f"catalog item requires id and name: {item!r}")

    raw_type = str(_get_first_value(item, TYPE_KEYS) or "").strip().lower()
    try:
        beverage_type = BeverageType(raw_type)
    except ValueError as exc:
        raise ValueError(f"unknown beverage type {raw_type!r} for product {product_id}") from exc

    raw_price = _get_first_value(item, PRICE_KEYS)
    try:
        price = to_money(raw_price) if raw_price is not None else None
    except InvalidOperation as exc:
        raise ValueError(f"invalid price {raw_price!r} for product {product_id}") from exc
    if price is None or price <= 0:
        raise ValueError(f"price must be positive for product {product_id}")

    return Product(
        id=product_id,
        name=name,
        type=beverage_type,
        volume=str(_get_first_value(item, VOLUME_KEYS) or "").strip(),
        price=price,
        category=str(_get_first_value(item, CATEGORY_KEYS) or "").strip(),
        is_returnable=_as_bool(_get_first_value(item, RETURNABLE_KEYS)),
    )


def _get_first_value(item: Dict[str, Any], keys: List[str]) -> Optional[Any]:
    """Purpose: Find the first matching field in a dict by key synonyms.
    Inputs/Outputs: Input is a raw dict and a list of candidate keys; returns value or None.
    Side Effects / State: None.
    Dependencies: Uses normalize_key and _has_value.
    Failure Modes: Returns None when no keys match or values are empty.
    If Removed: Field mapping for id/name/price fails in load().
    Testing Notes: Verify synonym keys resolve to the expected value.
    """
    # Exact normalized key matches only.
    normalized_map = {normalize_key(k): k for k in item.keys()}
    for key in keys:
        normalized = normalize_key(key)
        if normalized in normalized_map:
            value = item.get(normalized_map[normalized])
            if _has_value(value):
                return value
    return None


def _has_value(value: Any) -> bool:
    # Treat None or empty strings as missing values.
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUE_VALUES
