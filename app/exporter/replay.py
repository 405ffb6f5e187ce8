"""Offline replay of saved order-history pages.

Pages are read from ``page_<N>.html`` files (``N`` is the zero-based page
index) instead of a live browser. Navigation requests from the controller are
resolved to the matching file, so the full resume/merge/finalize cycle runs
without Playwright. Invoice popovers are only fetched when ``fetch_invoice`` is
set, through ``requests`` with the cookie header of a logged-in browser.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from . import config
from .config_validation import validate_export_settings, validate_runtime_config
from .controller import ExportController, ExportSettings, ExportState, LoadedPage
from .invoice_client import make_requests_fetcher
from .logging_utils import _export_event
from .page_reader import OrderHistoryPageReader
from .session import SessionStore
from .utils import log_line


@dataclass
class ReplayConfig:
    pages_dir: Path
    year: int
    export_mode: str = config.EXPORT_MODE_BY_ORDER
    output_root: Optional[Path] = None
    fetch_invoice: bool = False
    cookie: str = ""
    max_cycles: int = 500


def _prepare_output_root(config_obj: ReplayConfig) -> Path:
    if config_obj.output_root:
        return Path(config_obj.output_root)
    suffix = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
    return config.DATA_DIR / "replay_runs" / f"replay_{suffix}"


def _load_page(pages_dir: Path, url: str, reader: OrderHistoryPageReader) -> Optional[LoadedPage]:
    page_index = reader.read_current_page_index(url)
    path = pages_dir / f"page_{page_index}.html"
    if not path.is_file():
        return None
    return LoadedPage(url=url, html=path.read_text(encoding="utf-8", errors="replace"))


def run_replay(config_obj: ReplayConfig) -> Dict[str, Any]:
    validate_runtime_config("replay")
    year, export_mode = validate_export_settings(
        config_obj.year, config_obj.export_mode, entrypoint="replay"
    )

    output_root = _prepare_output_root(config_obj)
    output_root.mkdir(parents=True, exist_ok=True)
    pages_dir = Path(config_obj.pages_dir)

    invoice_fetcher = make_requests_fetcher(cookie=config_obj.cookie) if config_obj.fetch_invoice else None
    reader = OrderHistoryPageReader()
    controller = ExportController(
        SessionStore(output_root / "replay_session.json"),
        reader=reader,
        invoice_fetcher=invoice_fetcher,
        sleep=lambda _seconds: None,
        output_dir=output_root,
    )

    _export_event("replay", phase="start", pages_dir=str(pages_dir), year=year, export_mode=export_mode)

    summary: Dict[str, Any] = {"pages_loaded": 0, "state": None, "output_path": None, "orders": 0}

    url = reader.build_page_url(year, 0)
    page = _load_page(pages_dir, url, reader)
    if page is None:
        outcome = controller.report_transport_failure(f"Replay page missing for {url}")
    else:
        summary["pages_loaded"] += 1
        settings = ExportSettings(
            year=year, export_mode=export_mode, fetch_invoice=config_obj.fetch_invoice
        )
        outcome = controller.start_export(settings, page)

    cycles = 1
    while outcome.state == ExportState.NAVIGATING and outcome.next_url:
        if cycles >= config_obj.max_cycles:
            outcome = controller.report_transport_failure("Replay exceeded the maximum number of page loads")
            break
        page = _load_page(pages_dir, outcome.next_url, reader)
        if page is None:
            outcome = controller.report_transport_failure(f"Replay page missing for {outcome.next_url}")
            break
        summary["pages_loaded"] += 1
        outcome = controller.on_page_load(page)
        cycles += 1

    summary["state"] = outcome.state.value
    summary["orders"] = outcome.order_count
    summary["output_path"] = str(outcome.output_path) if outcome.output_path else None
    summary["message"] = outcome.message

    log_line(f"[REPLAY] Finished: {summary}")
    _export_event("replay", phase="end", **summary)
    return summary


__all__ = ["ReplayConfig", "run_replay"]
