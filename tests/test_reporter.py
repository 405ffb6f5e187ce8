from __future__ import annotations

import pytest

from app.exporter import config, reporter as reporter_module
from app.exporter.reporter import StatusReporter, build_default_reporter


def test_notification_shapes() -> None:
    received: list[dict] = []
    reporter = StatusReporter()
    reporter.add_listener(received.append)

    reporter.progress(10, 25, "Fetching page 2...")
    reporter.complete(25)
    reporter.error("No orders found for 2024")

    assert received == [
        {"action": "progress", "current": 10, "total": 25, "message": "Fetching page 2..."},
        {"action": "complete", "orderCount": 25},
        {"action": "error", "message": "No orders found for 2024"},
    ]


def test_failing_listener_does_not_break_delivery() -> None:
    received: list[dict] = []

    def broken(_notification: dict) -> None:
        raise RuntimeError("popup closed")

    reporter = StatusReporter()
    reporter.add_listener(broken)
    reporter.add_listener(received.append)

    reporter.complete(3)

    assert received == [{"action": "complete", "orderCount": 3}]


def test_no_listener_is_fine_and_recent_is_bounded() -> None:
    reporter = StatusReporter(recent_limit=2)

    reporter.progress(1, 3)
    reporter.progress(2, 3)
    reporter.progress(3, 3)

    assert [n["current"] for n in reporter.recent()] == [2, 3]


def test_remove_listener() -> None:
    received: list[dict] = []
    reporter = StatusReporter()
    reporter.add_listener(received.append)
    reporter.remove_listener(received.append)

    reporter.complete(1)

    assert received == []


def test_default_reporter_posts_to_webhook(monkeypatch: pytest.MonkeyPatch) -> None:
    posted: list[tuple[str, dict]] = []

    class _Resp:
        def raise_for_status(self) -> None:
            return None

    def fake_post(url, json=None, timeout=None):
        posted.append((url, json))
        return _Resp()

    monkeypatch.setattr(config, "NOTIFY_WEBHOOK_URL", "https://hooks.example/export")
    monkeypatch.setattr(reporter_module.requests, "post", fake_post)

    reporter = build_default_reporter()
    reporter.complete(7)

    assert posted == [("https://hooks.example/export", {"action": "complete", "orderCount": 7})]
