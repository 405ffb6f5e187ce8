"""Configuration constants for the order history exporter."""
from __future__ import annotations

import os
from pathlib import Path

DATA_DIR: Path = Path(os.getenv("ORDER_EXPORTER_DATA_DIR", "/app/data"))
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "latest.log"
EXPORTS_DIR: Path = DATA_DIR / "exports"
# Persisted ExportSession; rewritten once per page cycle.
SESSION_FILE: Path = DATA_DIR / "export_session.json"
BROWSER_PROFILE_DIR: Path = DATA_DIR / "browser_profile"
# Health check threshold for free space under DATA_DIR.
MIN_FREE_MB: int = int(os.getenv("ORDER_EXPORTER_MIN_FREE_MB", "50"))

BASE_URL: str = os.getenv("ORDER_EXPORTER_BASE_URL", "https://www.amazon.co.jp").rstrip("/")
ORDERS_PATH: str = "/your-orders/orders"
ORDER_HISTORY_PATHS: tuple[str, ...] = ("/your-orders", "/gp/css/order-history")

DATASET_NAME: str = "order_history"

PAGE_SIZE: int = 10
PAGE_DELAY_SECONDS: float = float(os.getenv("PAGE_DELAY_SECONDS", "1.5"))
INVOICE_FETCH_DELAY_SECONDS: float = float(os.getenv("INVOICE_FETCH_DELAY_SECONDS", "0.5"))
# Upper bound on page loads a single browser export may perform.
MAX_PAGE_LOADS: int = int(os.getenv("ORDER_EXPORTER_MAX_PAGE_LOADS", "500"))

EXPORT_MODE_BY_ORDER: str = "by-order"
EXPORT_MODE_BY_PRODUCT: str = "by-product"
EXPORT_MODES: tuple[str, ...] = (EXPORT_MODE_BY_ORDER, EXPORT_MODE_BY_PRODUCT)

# Oldest year the order history filter offers.
MIN_EXPORT_YEAR: int = 2008

CSV_SEPARATOR: str = " / "
MISSING_PRODUCT_PLACEHOLDER: str = "(product name unavailable)"

# Visible link text on the invoice popover, matched by substring.
INVOICE_LABELS_PRINT_SUMMARY: tuple[str, ...] = ("印刷可能な注文概要", "Printable Order Summary")
INVOICE_LABELS_INVOICE: tuple[str, ...] = ("明細書", "適格請求書", "Invoice")
INVOICE_LABELS_INVOICE_REQUEST: tuple[str, ...] = ("請求書のリクエスト", "Request invoice")

NOTIFY_WEBHOOK_URL: str = os.getenv("ORDER_EXPORTER_NOTIFY_WEBHOOK_URL", "").strip()
RECENT_EVENTS_LIMIT: int = int(os.getenv("RECENT_EVENTS_LIMIT", "50"))


def _parse_timeout_seconds(env_var: str, default: int, *, minimum: int = 1) -> int:
    """Parse a timeout value in seconds from the environment with bounds."""

    try:
        value = int(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(minimum, value)


# Navigation timeout for page.goto calls.
PLAYWRIGHT_NAV_TIMEOUT_SECONDS: int = _parse_timeout_seconds(
    "ORDER_EXPORTER_NAV_TIMEOUT_SECONDS", 30
)
# Secondary fetches (invoice popovers) through the browser request context.
PLAYWRIGHT_REQUEST_TIMEOUT_SECONDS: int = _parse_timeout_seconds(
    "ORDER_EXPORTER_REQUEST_TIMEOUT_SECONDS", 30
)
PLAYWRIGHT_HEADLESS: bool = os.getenv("ORDER_EXPORTER_HEADLESS", "0").strip().lower() not in {
    "0",
    "false",
}

COMMON_HEADERS: dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,*/*;q=0.8",
    "Accept-Language": "ja,en-US;q=0.9,en;q=0.8",
    "Connection": "keep-alive",
}


def normalize_export_mode(mode: str | None) -> str:
    """Return a canonical export mode, or the raw lower-cased value if unknown."""

    raw = (mode or "").strip().lower().replace("_", "-")
    if raw in {"order", "orders"}:
        return EXPORT_MODE_BY_ORDER
    if raw in {"product", "products"}:
        return EXPORT_MODE_BY_PRODUCT
    return raw


def is_by_order(mode: str) -> bool:
    """Return ``True`` when ``mode`` requests one row per order."""

    return normalize_export_mode(mode) == EXPORT_MODE_BY_ORDER
