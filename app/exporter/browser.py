"""Playwright driver for the order-history export.

Workflow:

- Launch a persistent Chromium profile (the operator logs in there once).
- Open the first order-history page for the requested year.
- Hand each loaded page to ``ExportController`` and follow the navigation it
  requests until the export completes, fails, or is cancelled.

The browser context is the browsing session: its ``scope_id`` is stamped on the
persisted session so a later, unrelated browser launch never resumes it.
"""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Optional

from playwright.sync_api import (
    APIRequestContext,
    Error as PWError,
    Page,
    TimeoutError as PWTimeout,
    sync_playwright,
)

from . import config
from .config_validation import Entrypoint, validate_runtime_config
from .controller import CycleOutcome, ExportController, ExportSettings, ExportState, LoadedPage
from .error_codes import ErrorCode, classify_http_status
from .invoice_client import HtmlFetcher, InvoiceFetchError
from .logging_utils import _export_event
from .reporter import StatusReporter
from .session import SessionStore
from .utils import ensure_dirs, log_line


def new_scope_id() -> str:
    return uuid.uuid4().hex


def make_playwright_fetcher(api: APIRequestContext) -> HtmlFetcher:
    """Return an ``HtmlFetcher`` sharing cookies with the browser context."""

    def _fetch(url: str) -> str:
        try:
            res = api.get(url, timeout=config.PLAYWRIGHT_REQUEST_TIMEOUT_SECONDS * 1000)
        except PWError as exc:
            raise InvoiceFetchError(ErrorCode.TRANSPORT, str(exc)) from exc
        if res.status != 200:
            raise InvoiceFetchError(
                classify_http_status(res.status),
                f"HTTP {res.status}",
                http_status=res.status,
            )
        return res.text()

    return _fetch


def _safe_goto(page: Page, url: str, *, label: str) -> bool:
    """Navigate to ``url`` with bounded timeouts and structured logging."""

    try:
        _export_event("nav", step="goto", target=label, url=url)
        page.goto(
            url,
            wait_until="domcontentloaded",
            timeout=config.PLAYWRIGHT_NAV_TIMEOUT_SECONDS * 1000,
        )
        page.wait_for_load_state(
            "load", timeout=config.PLAYWRIGHT_NAV_TIMEOUT_SECONDS * 1000
        )
        return True
    except PWTimeout as exc:
        log_line(f"[EXPORT][ERROR][NAV] goto({url!r}) timed out: {exc}")
        _export_event(
            "error",
            phase="nav",
            step="goto_timeout",
            target=label,
            url=url,
            error=str(exc),
        )
        return False
    except PWError as exc:
        log_line(f"[EXPORT][ERROR][NAV] goto({url!r}) failed: {exc}")
        _export_event(
            "error",
            phase="nav",
            step="goto_error",
            target=label,
            url=url,
            error=str(exc),
        )
        return False


def snapshot_page(page: Page) -> LoadedPage:
    return LoadedPage(url=page.url, html=page.content())


def build_controller(
    *,
    scope_id: Optional[str] = None,
    reporter: Optional[StatusReporter] = None,
    write_xlsx: bool = False,
) -> ExportController:
    store = SessionStore(scope_id=scope_id or new_scope_id())
    return ExportController(store, reporter=reporter, write_xlsx=write_xlsx)


def run_browser_export(
    settings: ExportSettings,
    *,
    controller: Optional[ExportController] = None,
    headless: Optional[bool] = None,
    user_data_dir: Optional[Path] = None,
    start_url: Optional[str] = None,
    entrypoint: Entrypoint = "cli",
    max_page_loads: Optional[int] = None,
) -> CycleOutcome:
    """Run an export end to end in a persistent Chromium profile."""

    validate_runtime_config(entrypoint, mode=settings.export_mode)
    ensure_dirs()

    controller = controller or build_controller()
    profile_dir = Path(user_data_dir or config.BROWSER_PROFILE_DIR)
    profile_dir.mkdir(parents=True, exist_ok=True)
    run_headless = config.PLAYWRIGHT_HEADLESS if headless is None else headless
    page_load_limit = max_page_loads or config.MAX_PAGE_LOADS

    with sync_playwright() as pw:
        context = pw.chromium.launch_persistent_context(
            str(profile_dir),
            headless=run_headless,
            user_agent=config.COMMON_HEADERS["User-Agent"],
            locale="ja-JP",
        )
        try:
            if controller.invoice_fetcher is None:
                controller.invoice_fetcher = make_playwright_fetcher(context.request)
            page = context.pages[0] if context.pages else context.new_page()

            url = start_url or controller.reader.build_page_url(settings.year, 0)
            log_line(f"[EXPORT] Opening {url}")
            if not _safe_goto(page, url, label="start"):
                return controller.report_transport_failure(f"Failed to load {url}")

            outcome = controller.start_export(settings, snapshot_page(page))
            page_loads = 1
            while outcome.state == ExportState.NAVIGATING and outcome.next_url:
                if page_loads >= page_load_limit:
                    return controller.report_transport_failure(
                        f"Stopped after {page_loads} page loads without completing"
                    )
                next_url = outcome.next_url
                if not _safe_goto(page, next_url, label="next_page"):
                    return controller.report_transport_failure(f"Failed to load {next_url}")
                page_loads += 1
                outcome = controller.on_page_load(snapshot_page(page))

            if outcome.state == ExportState.IDLE:
                log_line("[EXPORT] No active session after page load; stopping.")
            return outcome
        finally:
            context.close()


__all__ = [
    "build_controller",
    "make_playwright_fetcher",
    "new_scope_id",
    "run_browser_export",
    "snapshot_page",
]
