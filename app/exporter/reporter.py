from __future__ import annotations

"""Fire-and-forget progress notifications for export listeners."""

import threading
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

import requests

from . import config
from .utils import log_line

Notification = Dict[str, Any]
Listener = Callable[[Notification], None]


class StatusReporter:
    """Deliver ``progress`` / ``complete`` / ``error`` notifications.

    Delivery is best-effort: a listener that raises is logged and skipped, and
    nothing is reported back to the caller. A bounded buffer of recent
    notifications lets a listener that attaches mid-export catch up.
    """

    def __init__(self, *, recent_limit: Optional[int] = None) -> None:
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()
        self._recent: Deque[Notification] = deque(
            maxlen=max(1, recent_limit or config.RECENT_EVENTS_LIMIT)
        )

    def add_listener(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def recent(self) -> List[Notification]:
        with self._lock:
            return list(self._recent)

    def _emit(self, notification: Notification) -> None:
        with self._lock:
            self._recent.append(notification)
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(notification)
            except Exception as exc:  # noqa: BLE001
                log_line(f"[REPORT][WARN] Listener failed for {notification.get('action')}: {exc}")

    def progress(self, current: int, total: int, message: Optional[str] = None) -> None:
        log_line(f"[PROGRESS] {current}/{total} {message or ''}".rstrip())
        self._emit({"action": "progress", "current": current, "total": total, "message": message})

    def complete(self, order_count: int) -> None:
        log_line(f"[COMPLETE] Export finished: {order_count} orders")
        self._emit({"action": "complete", "orderCount": order_count})

    def error(self, message: str) -> None:
        log_line(f"[ERROR] {message}")
        self._emit({"action": "error", "message": message})


def make_webhook_listener(url: str, *, timeout: int = 5) -> Listener:
    """Return a listener that POSTs each notification as JSON to ``url``."""

    def _post(notification: Notification) -> None:
        resp = requests.post(url, json=notification, timeout=timeout)
        resp.raise_for_status()

    return _post


def build_default_reporter() -> StatusReporter:
    reporter = StatusReporter()
    if config.NOTIFY_WEBHOOK_URL:
        reporter.add_listener(make_webhook_listener(config.NOTIFY_WEBHOOK_URL))
    return reporter


__all__ = [
    "Listener",
    "Notification",
    "StatusReporter",
    "make_webhook_listener",
    "build_default_reporter",
]
