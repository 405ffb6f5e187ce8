from __future__ import annotations

"""Read order cards and pagination hints from a loaded order-history page."""

import re
import urllib.parse
from typing import List, Optional, Union

from bs4 import BeautifulSoup, Tag

from . import config
from .selectors import ORDER_HISTORY_SELECTORS, OrderHistorySelectors

Document = Union[BeautifulSoup, Tag]

_YEAR_FILTER_RE = re.compile(r"^year-(\d+)$")
_DIGITS_RE = re.compile(r"(\d+)")


def parse_document(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html5lib")


def _query_value(url: str, name: str) -> Optional[str]:
    try:
        query = urllib.parse.urlparse(url or "").query
    except ValueError:
        return None
    values = urllib.parse.parse_qs(query).get(name)
    return values[0] if values else None


class OrderHistoryPageReader:
    """Page reader for the paginated order-history listing.

    ``requires_navigation`` is True: pages 2..N are only reachable by a full
    browser navigation, so the export controller persists its session between
    page loads instead of fetching pages in memory.
    """

    requires_navigation = True

    def __init__(
        self,
        *,
        base_url: str | None = None,
        page_size: int = config.PAGE_SIZE,
        selectors: OrderHistorySelectors = ORDER_HISTORY_SELECTORS,
    ) -> None:
        self.base_url = (base_url or config.BASE_URL).rstrip("/")
        self.page_size = page_size
        self.selectors = selectors

    def read_cards(self, document: Document) -> List[Tag]:
        return list(document.select(self.selectors.card))

    def read_total_order_count(self, document: Document) -> int:
        label = document.select_one(self.selectors.total_orders_label)
        if label is None:
            return 0
        match = _DIGITS_RE.search(label.get_text().replace(",", ""))
        return int(match.group(1)) if match else 0

    def read_current_page_index(self, location_url: str) -> int:
        raw = _query_value(location_url, "startIndex")
        try:
            start_index = int(raw) if raw is not None else 0
        except ValueError:
            return 0
        return max(0, start_index) // self.page_size

    def read_year_filter(self, location_url: str) -> Optional[str]:
        raw = _query_value(location_url, "timeFilter")
        if not raw:
            return None
        match = _YEAR_FILTER_RE.match(raw.strip())
        return match.group(1) if match else None

    def build_page_url(self, year: int, page_index: int) -> str:
        query = urllib.parse.urlencode(
            {"timeFilter": f"year-{int(year)}", "startIndex": int(page_index) * self.page_size}
        )
        return f"{self.base_url}{config.ORDERS_PATH}?{query}"

    def is_order_history_url(self, location_url: str) -> bool:
        parsed = urllib.parse.urlparse(location_url or "")
        return any(parsed.path.startswith(path) for path in config.ORDER_HISTORY_PATHS)


__all__ = ["Document", "OrderHistoryPageReader", "parse_document"]
