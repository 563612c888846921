from __future__ import annotations

"""Best-effort webhook dispatch for storefront lifecycle events.

Events are POSTed as JSON to the automation endpoint configured for their class.
Each dispatch runs as a detached task on a small thread pool; callers never wait
on it and never see its outcome. Delivery is at-most-once: there is no retry, no
queue and no acknowledgement. A disabled flag or an empty endpoint URL turns the
corresponding emit into a silent no-op.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Set

import httpx

from .config import DEFAULT_NOTIFICATION_SOURCE
from .utils import utc_now

logger = logging.getLogger("storefront.notifications")


class EventClass(str, Enum):
    ORDER_CREATED = "order-created"
    PAYMENT_PENDING = "payment-pending"
    STOCK_CHANGED = "stock-changed"


@dataclass(frozen=True)
class NotificationSettings:
    """Endpoint URLs per event class plus the global enable flag."""
    new_order_webhook: str = ""
    payment_webhook: str = ""
    stock_webhook: str = ""
    enabled: bool = False

    def url_for(self, event_class: EventClass) -> str:
        if event_class is EventClass.ORDER_CREATED:
            return self.new_order_webhook
        if event_class is EventClass.PAYMENT_PENDING:
            return self.payment_webhook
        return self.stock_webhook


class NotificationDispatcher:
    """Fire-and-forget forwarder of lifecycle events to external endpoints."""

    def __init__(
        self,
        settings: Optional[NotificationSettings] = None,
        source: str = DEFAULT_NOTIFICATION_SOURCE,
        timeout: float = 10.0,
        max_workers: int = 4,
        client: Optional[httpx.Client] = None,
    ) -> None:
        """Purpose: Configure the dispatcher with settings, HTTP client and worker pool.
        Inputs/Outputs: Inputs are notification settings, source tag, request timeout,
            worker count and an optional pre-built httpx.Client; no return value.
        Side Effects / State: Creates a ThreadPoolExecutor and (if not given) an httpx.Client.
        Dependencies: httpx for transport, concurrent.futures for detached tasks.
        Failure Modes: None at init.
        If Removed: Lifecycle events never reach the automation endpoints.
        Testing Notes: Pass an httpx.Client with MockTransport to observe requests.
        """
        self._settings = settings or NotificationSettings()
        self._source = source
        self._client = client or httpx.Client(timeout=timeout)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="webhook")
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()

    @property
    def settings(self) -> NotificationSettings:
        return self._settings

    def update_settings(self, settings: NotificationSettings) -> None:
        self._settings = settings
        logger.info(
            "notification settings updated enabled=%s new_order=%s payment=%s stock=%s",
            settings.enabled,
            bool(settings.new_order_webhook),
            bool(settings.payment_webhook),
            bool(settings.stock_webhook),
        )

    def emit(self, event_class: EventClass, url: str, payload: Dict[str, Any]) -> Optional[Future]:
        """Purpose: Launch a detached POST of an event payload to an endpoint.
        Inputs/Outputs: Inputs are the event class, endpoint URL and event fields; output
            is the Future of the detached task, or None when the emit was skipped.
        Side Effects / State: Schedules a network call on the worker pool.
        Dependencies: _post runs on the executor; settings.enabled gates every emit.
        Failure Modes: None surface to the caller; network errors are logged in _post.
        If Removed: No lifecycle event is ever forwarded.
        Testing Notes: Disabled flag or empty URL must return None with no request made.
        """
        if not self._settings.enabled or not url:
            logger.debug("dispatch skipped event=%s enabled=%s url_set=%s", event_class.value, self._settings.enabled, bool(url))
            return None
        body = dict(payload)
        body["timestamp"] = utc_now().isoformat()
        body["source"] = self._source
        try:
            future = self._executor.submit(self._post, event_class, url, body)
        except RuntimeError:
            # Executor already shut down.
            logger.warning("dispatch dropped event=%s reason=executor_closed", event_class.value)
            return None
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def notify_order_created(self, payload: Dict[str, Any]) -> Optional[Future]:
        return self._notify(EventClass.ORDER_CREATED, payload)

    def notify_payment_pending(self, payload: Dict[str, Any]) -> Optional[Future]:
        return self._notify(EventClass.PAYMENT_PENDING, payload)

    def notify_stock_changed(self, payload: Dict[str, Any]) -> Optional[Future]:
        return self._notify(EventClass.STOCK_CHANGED, payload)

    def _notify(self, event_class: EventClass, payload: Dict[str, Any]) -> Optional[Future]:
        return self.emit(event_class, self._settings.url_for(event_class), payload)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for in-flight dispatches; returns True when none remain."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        self._client.close()

    def _post(self, event_class: EventClass, url: str, body: Dict[str, Any]) -> bool:
        """Purpose: Perform the HTTP POST for one event inside a worker thread.
        Inputs/Outputs: Inputs are event class, URL and final body; returns True when a
            response of any status came back, False on transport failure.
        Side Effects / State: Network I/O and logging only.
        Dependencies: httpx.Client.post with a JSON body.
        Failure Modes: httpx.HTTPError and httpx.InvalidURL are logged and swallowed;
            the response body is never parsed or validated.
        If Removed: Detached tasks have nothing to run.
        Testing Notes: Use MockTransport raising ConnectError and expect False.
        """
        try:
            response = self._client.post(url, json=body, headers={"Content-Type": "application/json"})
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("dispatch failed event=%s url=%s error=%s", event_class.value, url, exc)
            return False
        logger.info("dispatch sent event=%s url=%s status=%d", event_class.value, url, response.status_code)
        return True

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.error("dispatch crashed error=%r", future.exception())
