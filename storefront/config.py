from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent

DEFAULT_STORE_NAME = "Depósito do Kekê"
DEFAULT_NOTIFICATION_SOURCE = "deposito_do_keke"


@dataclass(frozen=True)
class Settings:
    """Configuration container for catalog, storage paths, and dispatch limits."""
    catalog_path: Path
    data_dir: Path
    store_name: str
    notification_source: str
    order_number_start: int
    webhook_timeout: float
    dispatch_workers: int
    persist_messages: bool

    @property
    def notification_settings_path(self) -> Path:
        return self.data_dir / "notification_settings.json"

    @property
    def messages_path(self) -> Path:
        return self.data_dir / "messages.json"


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables and filesystem paths.
    Dependencies: Uses os.getenv and BASE_DIR for default paths.
    Failure Modes: Invalid numeric env values raise ValueError; a start number
        below 1 or a non-positive worker count raises ValueError.
    If Removed: App cannot locate the catalog or configure dispatch and fails at startup.
    Testing Notes: Verify defaults and overrides via environment variables.
    """
    # Resolve catalog and data paths, then build Settings.
    catalog_path = os.getenv("CATALOG_PATH")
    if catalog_path:
        catalog_file = Path(catalog_path)
    else:
        catalog_file = BASE_DIR / "resources" / "catalog.json"

    data_dir = os.getenv("DATA_DIR")
    data_path = Path(data_dir) if data_dir else BASE_DIR / "data"

    order_number_start = int(os.getenv("ORDER_NUMBER_START", "1"))
    if order_number_start < 1:
        raise ValueError("ORDER_NUMBER_START must be >= 1")
    dispatch_workers = int(os.getenv("DISPATCH_WORKERS", "4"))
    if dispatch_workers < 1:
        raise ValueError("DISPATCH_WORKERS must be >= 1")

    return Settings(
        catalog_path=catalog_file,
        data_dir=data_path,
        store_name=os.getenv("STORE_NAME", DEFAULT_STORE_NAME),
        notification_source=os.getenv("NOTIFICATION_SOURCE", DEFAULT_NOTIFICATION_SOURCE),
        order_number_start=order_number_start,
        webhook_timeout=float(os.getenv("WEBHOOK_TIMEOUT", "10")),
        dispatch_workers=dispatch_workers,
        persist_messages=os.getenv("PERSIST_MESSAGES", "1") != "0",
    )
