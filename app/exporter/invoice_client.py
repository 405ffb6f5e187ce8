from __future__ import annotations

"""Secondary fetch of the invoice popover for one order."""

import time
from typing import Callable, Optional

import requests
from bs4 import BeautifulSoup

from . import config
from .error_codes import ErrorCode, classify_http_status
from .logging_utils import _export_event
from .models import InvoiceLinks
from .selectors import ORDER_HISTORY_SELECTORS, OrderHistorySelectors
from .utils import clean_text, log_line, to_full_url

# url -> HTML body. Implementations raise on transport or HTTP failure.
HtmlFetcher = Callable[[str], str]


class InvoiceFetchError(Exception):
    def __init__(self, error_code: str, message: str, *, http_status: int | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.http_status = http_status


def make_requests_fetcher(
    *,
    cookie: str = "",
    session: Optional[requests.Session] = None,
    timeout: int = 30,
) -> HtmlFetcher:
    """Return an ``HtmlFetcher`` backed by a ``requests`` session.

    ``cookie`` is sent verbatim as the Cookie header so a logged-in browser
    session can be reused outside Playwright.
    """

    http = session or requests.Session()
    headers = dict(config.COMMON_HEADERS)
    if cookie:
        headers["Cookie"] = cookie

    def _fetch(url: str) -> str:
        try:
            resp = http.get(url, headers=headers, timeout=timeout)
        except requests.RequestException as exc:
            raise InvoiceFetchError(ErrorCode.TRANSPORT, str(exc)) from exc
        if resp.status_code != 200:
            raise InvoiceFetchError(
                classify_http_status(resp.status_code),
                f"HTTP {resp.status_code}",
                http_status=resp.status_code,
            )
        return resp.text

    return _fetch


def parse_invoice_links(
    html: str,
    *,
    selectors: OrderHistorySelectors = ORDER_HISTORY_SELECTORS,
) -> InvoiceLinks:
    """Classify popover anchors by their visible label.

    The first anchor matching a category wins; later matches are ignored.
    """

    soup = BeautifulSoup(html, "html5lib")
    links = InvoiceLinks()

    for anchor in soup.select(selectors.invoice_popover_links):
        text = clean_text(anchor.get_text())
        href = anchor.get("href") or ""
        if not text or not href:
            continue

        if any(label in text for label in config.INVOICE_LABELS_PRINT_SUMMARY):
            if not links.print_summary:
                links.print_summary = to_full_url(href)
        elif any(label in text for label in config.INVOICE_LABELS_INVOICE_REQUEST):
            if not links.invoice_request:
                links.invoice_request = to_full_url(href)
        elif any(label in text for label in config.INVOICE_LABELS_INVOICE):
            if not links.invoice:
                links.invoice = to_full_url(href)

    return links


def fetch_invoice_links(
    order_id: str,
    popover_url: str,
    fetcher: HtmlFetcher,
    *,
    delay_seconds: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> InvoiceLinks:
    """Fetch and classify the invoice popover; degrade to empty links on failure."""

    delay = config.INVOICE_FETCH_DELAY_SECONDS if delay_seconds is None else delay_seconds
    if delay > 0:
        sleep(delay)

    url = to_full_url(popover_url)
    try:
        html = fetcher(url)
        links = parse_invoice_links(html)
    except Exception as exc:  # noqa: BLE001
        error_code = getattr(exc, "error_code", ErrorCode.INVOICE_FETCH)
        log_line(f"[INVOICE][WARN] Invoice links unavailable for {order_id}: {exc}")
        _export_event(
            "error",
            phase="invoice_fetch",
            order_id=order_id,
            url=url,
            error_code=error_code,
            error=str(exc),
        )
        return InvoiceLinks()

    _export_event(
        "invoice",
        order_id=order_id,
        print_summary=bool(links.print_summary),
        invoice=bool(links.invoice),
        invoice_request=bool(links.invoice_request),
    )
    return links


__all__ = [
    "HtmlFetcher",
    "InvoiceFetchError",
    "make_requests_fetcher",
    "parse_invoice_links",
    "fetch_invoice_links",
]
