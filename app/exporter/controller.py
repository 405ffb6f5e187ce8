"""Resumable export controller.

Each call handles exactly one loaded page and returns a ``CycleOutcome``.
Advancing to the next result page is a full navigation performed by the
driver, which ends the cycle; the next page load calls ``on_page_load`` and the
controller picks up from the persisted ``ExportSession``.

States::

    IDLE -> AWAITING_PAGE -> NAVIGATING -> (page load) -> AWAITING_PAGE ...
                          -> FINALIZING -> COMPLETED
    any -> CANCELLED (cancel_export)
    AWAITING_PAGE -> FAILED (no orders, unreadable page, transport failure)
    NAVIGATING -> FAILED (a redirect lands off the order history again)

Terminal failures and cancellation clear the persisted session so a later page
load cannot resume a broken export.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from bs4 import BeautifulSoup

from . import config
from .config_validation import validate_export_settings
from .csv_export import write_csv_download
from .error_codes import ErrorCode, ExportError
from .export_excel import write_xlsx_download
from .extractor import extract_order
from .invoice_client import HtmlFetcher
from .logging_utils import _export_event
from .models import OrderRecord
from .page_reader import Document, OrderHistoryPageReader, parse_document
from .reporter import StatusReporter
from .session import ExportSession, SessionStore
from .utils import log_line


class ExportState(str, Enum):
    IDLE = "idle"
    AWAITING_PAGE = "awaiting_page"
    NAVIGATING = "navigating"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATES = {
    ExportState.IDLE,
    ExportState.COMPLETED,
    ExportState.CANCELLED,
    ExportState.FAILED,
}


@dataclass
class ExportSettings:
    year: int
    export_mode: str = config.EXPORT_MODE_BY_ORDER
    fetch_invoice: bool = False


@dataclass
class LoadedPage:
    """A page as seen right after a load: its URL and HTML."""

    url: str
    html: str = ""
    _document: Optional[BeautifulSoup] = field(default=None, repr=False)

    @property
    def document(self) -> Document:
        if self._document is None:
            self._document = parse_document(self.html)
        return self._document


@dataclass
class CycleOutcome:
    state: ExportState
    next_url: Optional[str] = None
    output_path: Optional[Path] = None
    order_count: int = 0
    message: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def to_dict(self) -> Dict[str, object]:
        return {
            "state": self.state.value,
            "next_url": self.next_url,
            "output_path": str(self.output_path) if self.output_path else None,
            "order_count": self.order_count,
            "message": self.message,
            "error_code": self.error_code,
        }


class ExportController:
    """Drive one export across page loads using a persisted session."""

    def __init__(
        self,
        store: SessionStore,
        *,
        reader: Optional[OrderHistoryPageReader] = None,
        reporter: Optional[StatusReporter] = None,
        invoice_fetcher: Optional[HtmlFetcher] = None,
        sleep: Callable[[float], None] = time.sleep,
        output_dir: Optional[Path] = None,
        write_xlsx: bool = False,
    ) -> None:
        self.store = store
        self.reader = reader or OrderHistoryPageReader()
        self.reporter = reporter or StatusReporter()
        self.invoice_fetcher = invoice_fetcher
        self.output_dir = output_dir
        self.write_xlsx = write_xlsx
        self._sleep = sleep
        self._cycle_lock = threading.Lock()
        self._cancel_requested = False
        self.state = ExportState.IDLE

    # ------------------------------------------------------------------
    # Control messages
    # ------------------------------------------------------------------

    @property
    def is_cycle_running(self) -> bool:
        return self._cycle_lock.locked()

    def start_export(self, settings: ExportSettings, page: Optional[LoadedPage]) -> CycleOutcome:
        """Begin an export, or keep the session already running for the same year/mode."""

        try:
            year, export_mode = validate_export_settings(settings.year, settings.export_mode)
        except ValueError as exc:
            self.reporter.error(str(exc))
            return CycleOutcome(
                state=self.state, message=str(exc), error_code=ErrorCode.INVALID_SETTINGS
            )
        settings = ExportSettings(
            year=year, export_mode=export_mode, fetch_invoice=settings.fetch_invoice
        )

        if not self._cycle_lock.acquire(blocking=False):
            return self._reject_concurrent_start(settings)

        try:
            self._cancel_requested = False
            existing = self.store.load()
            if existing is not None and existing.matches(settings.year, settings.export_mode):
                session = existing
                session.redirect_url = None
                _export_event(
                    "session",
                    kind="resume_on_start",
                    year=session.year,
                    export_mode=session.export_mode,
                    collected=session.collected_count,
                    processed_pages=sorted(session.processed_pages),
                )
            else:
                if existing is not None:
                    _export_event(
                        "session",
                        kind="discard_stale",
                        year=existing.year,
                        export_mode=existing.export_mode,
                        collected=existing.collected_count,
                    )
                self.store.clear()
                session = ExportSession(
                    year=settings.year,
                    export_mode=settings.export_mode,
                    fetch_invoice=settings.fetch_invoice,
                    page_size=self.reader.page_size,
                )
                self.store.save(session)
                _export_event(
                    "session",
                    kind="created",
                    year=session.year,
                    export_mode=session.export_mode,
                    fetch_invoice=session.fetch_invoice,
                )

            log_line(f"[EXPORT] Start: year={settings.year} mode={settings.export_mode}")
            self.reporter.progress(
                session.collected_count,
                session.total_orders,
                f"Checking orders for {session.year}...",
            )
            return self._run_cycle(session, page)
        finally:
            self._cycle_lock.release()

    def on_page_load(self, page: LoadedPage) -> CycleOutcome:
        """Resume a persisted export after a page load; no session means idle."""

        if not self._cycle_lock.acquire(blocking=False):
            return CycleOutcome(
                state=self.state,
                message="A page cycle is already in progress",
                error_code=ErrorCode.ALREADY_RUNNING,
            )

        try:
            self._cancel_requested = False
            session = self.store.load()
            if session is None:
                self.state = ExportState.IDLE
                return CycleOutcome(state=ExportState.IDLE)
            return self._run_cycle(session, page)
        finally:
            self._cycle_lock.release()

    def cancel_export(self) -> CycleOutcome:
        """Clear the persisted session regardless of the current state."""

        self._cancel_requested = True
        self.store.clear()
        self.state = ExportState.CANCELLED
        _export_event("session", kind="cancelled", cycle_running=self.is_cycle_running)
        log_line("[EXPORT] Cancelled")
        return CycleOutcome(state=ExportState.CANCELLED, message="Export cancelled")

    def report_transport_failure(self, message: str) -> CycleOutcome:
        """Terminate the export after the driver failed to load a page."""

        return self._fail(ErrorCode.TRANSPORT, message)

    def get_status(self) -> Dict[str, object]:
        session = self.store.load()
        return {
            "isRunning": session is not None,
            "collectedCount": session.collected_count if session is not None else 0,
        }

    # ------------------------------------------------------------------
    # Page cycle
    # ------------------------------------------------------------------

    def _reject_concurrent_start(self, settings: ExportSettings) -> CycleOutcome:
        message = "An export is already running"
        _export_event(
            "error",
            phase="start",
            error_code=ErrorCode.ALREADY_RUNNING,
            year=settings.year,
            export_mode=settings.export_mode,
        )
        self.reporter.error(message)
        return CycleOutcome(state=self.state, message=message, error_code=ErrorCode.ALREADY_RUNNING)

    def _is_target_page(self, session: ExportSession, page: Optional[LoadedPage]) -> bool:
        if page is None or not self.reader.is_order_history_url(page.url):
            return False
        return self.reader.read_year_filter(page.url) == str(session.year)

    def _cancelled_mid_cycle(self) -> Optional[CycleOutcome]:
        # Cancel from another process removes the record mid-cycle.
        if self._cancel_requested or not self.store.exists():
            self.store.clear()
            self.state = ExportState.CANCELLED
            return CycleOutcome(state=ExportState.CANCELLED, message="Export cancelled")
        return None

    def _redirect_to_target(self, session: ExportSession, page: Optional[LoadedPage]) -> CycleOutcome:
        current_url = page.url if page is not None else None
        if session.redirect_url is not None:
            # The last redirect did not reach the target page either.
            return self._fail(
                ErrorCode.TRANSPORT,
                f"Redirected away from order history to {current_url}; login required?",
            )

        # The site lands on the most recent year by default; redirect first.
        target_page = session.next_unprocessed_page()
        next_url = self.reader.build_page_url(session.year, target_page or 0)
        cancelled = self._cancelled_mid_cycle()
        if cancelled is not None:
            return cancelled
        session.redirect_url = next_url
        self.store.save(session)

        self.state = ExportState.NAVIGATING
        _export_event(
            "nav",
            kind="redirect_to_target_year",
            current_url=current_url,
            next_url=next_url,
        )
        return CycleOutcome(state=ExportState.NAVIGATING, next_url=next_url)

    def _run_cycle(self, session: ExportSession, page: Optional[LoadedPage]) -> CycleOutcome:
        if not self._is_target_page(session, page):
            return self._redirect_to_target(session, page)

        self.state = ExportState.AWAITING_PAGE
        try:
            document = page.document
            total_orders = self.reader.read_total_order_count(document)
            if total_orders == 0:
                raise ExportError(ErrorCode.EMPTY_RESULT, f"No orders found for {session.year}")
            page_index = self.reader.read_current_page_index(page.url)
            orders = self._extract_page(document, session)
        except ExportError as exc:
            return self._fail(exc.error_code, str(exc))
        except Exception as exc:  # noqa: BLE001
            return self._fail(ErrorCode.INTERNAL, f"Failed to read order page: {exc}")

        cancelled = self._cancelled_mid_cycle()
        if cancelled is not None:
            return cancelled

        session.redirect_url = None
        session.total_orders = total_orders
        added = session.merge_orders(orders)
        session.mark_page_processed(page_index)
        self.store.save(session)

        _export_event(
            "page",
            page_index=page_index,
            cards=len(orders),
            added=added,
            collected=session.collected_count,
            total_orders=session.total_orders,
            total_pages=session.total_pages,
            processed_pages=sorted(session.processed_pages),
        )
        self.reporter.progress(session.collected_count, session.total_orders)

        if session.is_complete():
            return self._finalize(session)

        next_page = session.next_unprocessed_page()
        next_url = self.reader.build_page_url(session.year, next_page or 0)
        self._sleep(config.PAGE_DELAY_SECONDS)
        self.state = ExportState.NAVIGATING
        _export_event("nav", kind="next_page", page_index=next_page, next_url=next_url)
        return CycleOutcome(
            state=ExportState.NAVIGATING,
            next_url=next_url,
            order_count=session.collected_count,
        )

    def _extract_page(self, document: Document, session: ExportSession) -> List[OrderRecord]:
        orders: List[OrderRecord] = []
        for card in self.reader.read_cards(document):
            if self._cancel_requested:
                break
            try:
                order = extract_order(
                    card,
                    session.year,
                    fetch_invoice=session.fetch_invoice,
                    invoice_fetcher=self.invoice_fetcher,
                    selectors=self.reader.selectors,
                )
            except Exception as exc:  # noqa: BLE001
                log_line(f"[EXTRACT][WARN] Skipping unreadable order card: {exc}")
                _export_event("error", phase="extract", error_code=ErrorCode.INTERNAL, error=str(exc))
                continue
            if order is not None:
                orders.append(order)
        return orders

    def _finalize(self, session: ExportSession) -> CycleOutcome:
        self.state = ExportState.FINALIZING
        orders = list(session.collected_orders.values())
        try:
            output_path = write_csv_download(
                orders, session.export_mode, session.year, dest_dir=self.output_dir
            )
            if self.write_xlsx:
                write_xlsx_download(orders, session.export_mode, session.year, dest_dir=self.output_dir)
        except Exception as exc:  # noqa: BLE001
            return self._fail(ErrorCode.INTERNAL, f"Failed to write export: {exc}")

        self.store.clear()
        self.state = ExportState.COMPLETED
        _export_event(
            "complete",
            year=session.year,
            export_mode=session.export_mode,
            orders=len(orders),
            output_path=str(output_path),
        )
        self.reporter.complete(len(orders))
        return CycleOutcome(
            state=ExportState.COMPLETED,
            output_path=output_path,
            order_count=len(orders),
        )

    def _fail(self, error_code: str, message: str) -> CycleOutcome:
        self.store.clear()
        self.state = ExportState.FAILED
        _export_event("error", phase="export", error_code=error_code, error=message)
        self.reporter.error(message)
        return CycleOutcome(state=ExportState.FAILED, message=message, error_code=error_code)


__all__ = [
    "CycleOutcome",
    "ExportController",
    "ExportSettings",
    "ExportState",
    "LoadedPage",
    "TERMINAL_STATES",
]
