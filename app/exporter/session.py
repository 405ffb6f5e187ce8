"""Persisted export session shared across page loads.

A page navigation ends the controller cycle that issued it, so everything the
next cycle needs lives in one JSON record. The record is rewritten once per
page cycle with a single atomic replace; whoever writes last wins.

Sessions are scoped to one browsing session (one browser context). A record
written under a different ``scope_id`` is treated as absent so a fresh browser
never resumes a stale export.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Set

from . import config
from .logging_utils import _export_event
from .models import OrderRecord
from .utils import load_json_file, log_line, save_json_file, utc_now_iso

SESSION_SCHEMA_VERSION = 1


@dataclass
class ExportSession:
    year: int
    export_mode: str
    fetch_invoice: bool = False
    total_orders: int = 0
    collected_orders: Dict[str, OrderRecord] = field(default_factory=dict)
    processed_pages: Set[int] = field(default_factory=set)
    page_size: int = config.PAGE_SIZE
    scope_id: Optional[str] = None
    # Set while a redirect to the target page is outstanding.
    redirect_url: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def total_pages(self) -> int:
        if self.total_orders <= 0:
            return 0
        return math.ceil(self.total_orders / self.page_size)

    @property
    def collected_count(self) -> int:
        return len(self.collected_orders)

    def matches(self, year: int, export_mode: str) -> bool:
        return int(self.year) == int(year) and self.export_mode == export_mode

    def merge_orders(self, orders: Iterable[OrderRecord]) -> int:
        """Append orders whose id is new; return how many were added."""

        added = 0
        for order in orders:
            if not order.order_id or order.order_id in self.collected_orders:
                continue
            self.collected_orders[order.order_id] = order
            added += 1
        return added

    def mark_page_processed(self, page_index: int) -> None:
        self.processed_pages.add(int(page_index))

    def is_complete(self) -> bool:
        total = self.total_pages
        return total > 0 and set(range(total)).issubset(self.processed_pages)

    def next_unprocessed_page(self) -> Optional[int]:
        for page_index in range(self.total_pages):
            if page_index not in self.processed_pages:
                return page_index
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": SESSION_SCHEMA_VERSION,
            "year": int(self.year),
            "export_mode": self.export_mode,
            "fetch_invoice": bool(self.fetch_invoice),
            "total_orders": int(self.total_orders),
            "total_pages": self.total_pages,
            "page_size": int(self.page_size),
            "collected_orders": [order.to_dict() for order in self.collected_orders.values()],
            "processed_pages": sorted(self.processed_pages),
            "redirect_url": self.redirect_url,
            "scope_id": self.scope_id,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExportSession":
        collected: Dict[str, OrderRecord] = {}
        for item in data.get("collected_orders") or []:
            if not isinstance(item, dict):
                continue
            order = OrderRecord.from_dict(item)
            if order.order_id and order.order_id not in collected:
                collected[order.order_id] = order

        processed: Set[int] = set()
        for value in data.get("processed_pages") or []:
            try:
                processed.add(int(value))
            except (TypeError, ValueError):
                continue

        return cls(
            year=int(data["year"]),
            export_mode=str(data["export_mode"]),
            fetch_invoice=bool(data.get("fetch_invoice", False)),
            total_orders=int(data.get("total_orders") or 0),
            collected_orders=collected,
            processed_pages=processed,
            page_size=int(data.get("page_size") or config.PAGE_SIZE),
            redirect_url=data.get("redirect_url"),
            scope_id=data.get("scope_id"),
            updated_at=data.get("updated_at"),
        )


class SessionStore:
    """Load, replace and clear the persisted ``ExportSession``."""

    def __init__(self, path: Optional[Path] = None, *, scope_id: Optional[str] = None) -> None:
        self.path = Path(path) if path is not None else config.SESSION_FILE
        self.scope_id = scope_id

    def load(self) -> Optional[ExportSession]:
        data = load_json_file(self.path)
        if not isinstance(data, dict):
            return None
        try:
            session = ExportSession.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            log_line(f"[SESSION] Ignoring malformed session record: {exc}")
            return None

        if self.scope_id is not None and session.scope_id != self.scope_id:
            _export_event(
                "session",
                kind="scope_mismatch",
                stored_scope=session.scope_id,
                current_scope=self.scope_id,
            )
            return None
        return session

    def save(self, session: ExportSession) -> None:
        if self.scope_id is not None:
            session.scope_id = self.scope_id
        session.updated_at = utc_now_iso()
        save_json_file(self.path, session.to_dict())

    def exists(self) -> bool:
        return self.path.is_file()

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


__all__ = ["ExportSession", "SessionStore", "SESSION_SCHEMA_VERSION"]
