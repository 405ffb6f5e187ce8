from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from app.exporter import browser
from app.exporter.controller import ExportController, ExportSettings, ExportState
from app.exporter.error_codes import ErrorCode
from app.exporter.invoice_client import InvoiceFetchError
from app.exporter.page_reader import OrderHistoryPageReader
from app.exporter.session import SessionStore
from tests.test_controller import _pages
from tests.test_session import _configure_temp_paths


class _FakeResponse:
    def __init__(self, status: int, body: str = "") -> None:
        self.status = status
        self._body = body

    def text(self) -> str:
        return self._body


class _FakeRequestContext:
    def __init__(self, response: Optional[_FakeResponse] = None) -> None:
        self.response = response or _FakeResponse(200, "<ul></ul>")
        self.urls: List[str] = []

    def get(self, url: str, timeout: float = 0) -> _FakeResponse:
        self.urls.append(url)
        return self.response


class _FakePage:
    def __init__(self, pages: Dict[int, str], fail_on: Optional[int] = None) -> None:
        self._pages = pages
        self._reader = OrderHistoryPageReader()
        self._fail_on = fail_on
        self.url = "about:blank"
        self.visited: List[str] = []

    def goto(self, url: str, wait_until: str = "load", timeout: float = 0) -> None:
        index = self._reader.read_current_page_index(url)
        if index == self._fail_on:
            raise browser.PWTimeout("Timeout 30000ms exceeded")
        self.url = url
        self.visited.append(url)

    def wait_for_load_state(self, state: str = "load", timeout: float = 0) -> None:
        return None

    def content(self) -> str:
        return self._pages[self._reader.read_current_page_index(self.url)]


class _FakeContext:
    def __init__(self, page: _FakePage) -> None:
        self.pages = [page]
        self.request = _FakeRequestContext()
        self.closed = False

    def new_page(self) -> _FakePage:  # pragma: no cover - pages is never empty here
        return self.pages[0]

    def close(self) -> None:
        self.closed = True


def _install_fake_playwright(monkeypatch: pytest.MonkeyPatch, context: _FakeContext) -> Dict[str, object]:
    launched: Dict[str, object] = {}

    class _Chromium:
        def launch_persistent_context(self, user_data_dir: str, **kwargs):
            launched["user_data_dir"] = user_data_dir
            launched.update(kwargs)
            return context

    class _Playwright:
        chromium = _Chromium()

    @contextmanager
    def fake_sync_playwright():
        yield _Playwright()

    monkeypatch.setattr(browser, "sync_playwright", fake_sync_playwright)
    return launched


def _controller(tmp_path: Path) -> ExportController:
    return ExportController(
        SessionStore(scope_id=browser.new_scope_id()),
        sleep=lambda _seconds: None,
        output_dir=tmp_path / "exports",
    )


def test_run_browser_export_follows_navigation(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    page = _FakePage(_pages())
    context = _FakeContext(page)
    launched = _install_fake_playwright(monkeypatch, context)
    controller = _controller(tmp_path)

    outcome = browser.run_browser_export(
        ExportSettings(year=2024),
        controller=controller,
        headless=True,
        user_data_dir=tmp_path / "profile",
    )

    assert outcome.state == ExportState.COMPLETED
    assert outcome.order_count == 25
    assert len(page.visited) == 3
    assert context.closed is True
    assert launched["headless"] is True
    assert launched["user_data_dir"] == str(tmp_path / "profile")
    assert controller.invoice_fetcher is not None


def test_navigation_timeout_fails_export(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    context = _FakeContext(_FakePage(_pages(), fail_on=1))
    _install_fake_playwright(monkeypatch, context)
    controller = _controller(tmp_path)

    outcome = browser.run_browser_export(ExportSettings(year=2024), controller=controller)

    assert outcome.state == ExportState.FAILED
    assert outcome.error_code == ErrorCode.TRANSPORT
    assert not controller.store.exists()
    assert context.closed is True


def test_playwright_fetcher_classifies_http_errors() -> None:
    api = _FakeRequestContext(_FakeResponse(503))
    fetch = browser.make_playwright_fetcher(api)

    with pytest.raises(InvoiceFetchError) as excinfo:
        fetch("https://www.amazon.co.jp/your-orders/invoice/popover?orderId=1")

    assert excinfo.value.error_code == ErrorCode.HTTP_5XX
    assert excinfo.value.http_status == 503


def test_playwright_fetcher_returns_body() -> None:
    api = _FakeRequestContext(_FakeResponse(200, "<ul><li>ok</li></ul>"))

    assert browser.make_playwright_fetcher(api)("https://x/popover") == "<ul><li>ok</li></ul>"
    assert api.urls == ["https://x/popover"]


class _SigninPage(_FakePage):
    """Every navigation ends on the sign-in form."""

    def goto(self, url: str, wait_until: str = "load", timeout: float = 0) -> None:
        self.visited.append(url)
        self.url = "https://www.amazon.co.jp/ap/signin?openid.return_to=your-orders"

    def content(self) -> str:
        return "<html><form name='signIn'></form></html>"


def test_safe_goto_logs_navigation_target(monkeypatch: pytest.MonkeyPatch) -> None:
    from app.exporter import logging_utils

    lines: List[str] = []
    monkeypatch.setattr(logging_utils, "log_line", lines.append)
    page = _FakePage(_pages())
    url = OrderHistoryPageReader().build_page_url(2024, 0)

    assert browser._safe_goto(page, url, label="start") is True

    assert page.visited == [url]
    assert lines[0].startswith("[EXPORT][NAV]")
    assert "target='start'" in lines[0]


def test_login_redirect_fails_instead_of_looping(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    page = _SigninPage({})
    context = _FakeContext(page)
    _install_fake_playwright(monkeypatch, context)
    controller = _controller(tmp_path)

    outcome = browser.run_browser_export(ExportSettings(year=2024), controller=controller)

    assert outcome.state == ExportState.FAILED
    assert outcome.error_code == ErrorCode.TRANSPORT
    assert "login required" in outcome.message
    assert len(page.visited) == 2
    assert not controller.store.exists()
    assert context.closed is True


def test_page_load_limit_stops_export(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    page = _FakePage(_pages())
    _install_fake_playwright(monkeypatch, _FakeContext(page))
    controller = _controller(tmp_path)

    outcome = browser.run_browser_export(
        ExportSettings(year=2024), controller=controller, max_page_loads=2
    )

    assert outcome.state == ExportState.FAILED
    assert outcome.error_code == ErrorCode.TRANSPORT
    assert "2 page loads" in outcome.message
    assert len(page.visited) == 2
    assert not controller.store.exists()


def test_entrypoint_reaches_runtime_validation(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    seen: List[tuple] = []
    monkeypatch.setattr(
        browser, "validate_runtime_config", lambda entrypoint, *, mode=None: seen.append((entrypoint, mode))
    )
    _install_fake_playwright(monkeypatch, _FakeContext(_FakePage(_pages())))

    outcome = browser.run_browser_export(
        ExportSettings(year=2024), controller=_controller(tmp_path), entrypoint="ui"
    )

    assert outcome.state == ExportState.COMPLETED
    assert seen == [("ui", "by-order")]
