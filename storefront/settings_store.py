from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Optional

from .notifications import NotificationSettings

logger = logging.getLogger("storefront.settings")

NEW_ORDER_KEY = "n8n_new_order_webhook"
PAYMENT_KEY = "n8n_payment_webhook"
STOCK_KEY = "n8n_stock_webhook"
ENABLED_KEY = "n8n_enabled"


class SettingsStore:
    """Persisted key-value entries backing the notification settings."""

    def __init__(self, path: Optional[Path] = None) -> None:
        """Purpose: Initialize the store and load prior entries from disk.
        Inputs/Outputs: Input is an optional Path; no return value.
        Side Effects / State: Loads string entries into an in-memory dict.
        Dependencies: Calls _load; uses a JSON file on disk.
        Failure Modes: JSON decode errors are ignored, leaving an empty store.
        If Removed: Webhook configuration is lost between restarts.
        Testing Notes: Ensure a saved entry is persisted and reloaded.
        """
        # Keep the backing file path and hydrate cached entries.
        self._path = path
        self._entries: Dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        """Purpose: Load entries from the JSON file if it exists.
        Inputs/Outputs: Reads self._path; no return value.
        Side Effects / State: Populates self._entries.
        Dependencies: json.loads and Path.read_text.
        Failure Modes: Missing file or JSONDecodeError results in empty cache.
        If Removed: Existing settings are never loaded on startup.
        Testing Notes: Validate behavior with missing and malformed files.
        """
        if not self._path or not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("settings file unreadable path=%s", self._path)
            return
        if isinstance(data, dict):
            self._entries = {str(key): str(value) for key, value in data.items() if value is not None}

    def _persist(self) -> None:
        # Entries are stored as strings.
        if not self._path:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(self._entries, ensure_ascii=False, indent=2), encoding="utf-8")

    def get(self, key: str, default: str = "") -> str:
        return self._entries.get(key, default)

    def set_many(self, entries: Dict[str, str]) -> None:
        self._entries.update({key: str(value) for key, value in entries.items()})
        self._persist()

    def load_notification_settings(self) -> NotificationSettings:
        """Purpose: Build NotificationSettings from the stored entries.
        Inputs/Outputs: No inputs; returns NotificationSettings.
        Side Effects / State: None.
        Dependencies: Entry keys NEW_ORDER_KEY, PAYMENT_KEY, STOCK_KEY, ENABLED_KEY.
        Failure Modes: None; absent entries mean empty URL or disabled.
        If Removed: The dispatcher starts without configured endpoints.
        Testing Notes: Empty store yields disabled settings with empty URLs.
        """
        return NotificationSettings(
            new_order_webhook=self.get(NEW_ORDER_KEY).strip(),
            payment_webhook=self.get(PAYMENT_KEY).strip(),
            stock_webhook=self.get(STOCK_KEY).strip(),
            enabled=self.get(ENABLED_KEY) == "true",
        )

    def save_notification_settings(self, settings: NotificationSettings) -> None:
        self.set_many(
            {
                NEW_ORDER_KEY: settings.new_order_webhook,
                PAYMENT_KEY: settings.payment_webhook,
                STOCK_KEY: settings.stock_webhook,
                ENABLED_KEY: "true" if settings.enabled else "false",
            }
        )
        logger.info("notification settings saved path=%s enabled=%s", self._path, settings.enabled)
