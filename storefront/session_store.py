from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from pathlib import Path
from typing import List, Optional

from .models import ConversationMessage

logger = logging.getLogger("storefront.conversation")


class ConversationLog:
    """Append-only chat history for the running storefront session."""

    def __init__(self, path: Optional[Path] = None, greeting: Optional[str] = None) -> None:
        """Purpose: Initialize the log and hydrate from disk if available.
        Inputs/Outputs: Inputs are an optional file path and greeting text; no return value.
        Side Effects / State: Loads persisted messages; seeds the greeting when empty.
        Dependencies: Calls _load; relies on the ConversationMessage model.
        Failure Modes: JSON decode errors are swallowed and leave an empty log.
        If Removed: Chat history is neither shown nor kept across restarts.
        Testing Notes: Verify a fresh log holds exactly the greeting message.
        """
        # Keep configuration and preload persisted messages if present.
        self._path = path
        self._messages: List[ConversationMessage] = []
        self._lock = threading.Lock()
        self._load()
        if not self._messages and greeting:
            self.append(greeting, is_bot=True)

    def _load(self) -> None:
        """Purpose: Load persisted messages from disk into memory.
        Inputs/Outputs: Reads from self._path; no return value.
        Side Effects / State: Populates the _messages cache.
        Dependencies: Uses json.loads and pydantic validation.
        Failure Modes: Missing file or JSONDecodeError results in an empty log.
        If Removed: Previously stored messages are never restored on startup.
        Testing Notes: Corrupt JSON should not crash; valid JSON should hydrate the log.
        """
        if not self._path or not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("conversation file unreadable path=%s", self._path)
            return
        messages = data.get("messages", []) if isinstance(data, dict) else []
        self._messages = [ConversationMessage(**message) for message in messages if isinstance(message, dict)]

    def _persist(self) -> None:
        # Serialize current messages to disk for persistence.
        if not self._path:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"messages": [message.model_dump() for message in self._messages]}
        self._path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")

    def append(self, content: str, is_bot: bool) -> ConversationMessage:
        """Purpose: Append one message to the log.
        Inputs/Outputs: Inputs are content and author flag; output is the stored message.
        Side Effects / State: Mutates the in-memory log and persists to disk.
        Dependencies: ConversationMessage, _persist.
        Failure Modes: Persist can raise IO errors.
        If Removed: Replies and order confirmations never reach the chat view.
        Testing Notes: Append two messages and verify order and unique ids.
        """
        message = ConversationMessage(
            id=uuid.uuid4().hex,
            content=content,
            is_bot=is_bot,
            timestamp=time.time(),
        )
        with self._lock:
            self._messages.append(message)
            self._persist()
        return message

    def messages(self) -> List[ConversationMessage]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)
