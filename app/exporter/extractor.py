"""Field extraction for a single order card.

``extract_order`` turns one ``.order-card`` element into an ``OrderRecord``.
Cards without an order id are not real orders and yield ``None``.

Invoice popover URLs are resolved with an ordered list of strategies:

- ``_popover_url_from_json_attribute``: the popover trigger carries a JSON
  ``data-a-popover`` attribute whose ``url`` points at the popover;
- ``_popover_url_from_direct_link``: the card links to the popover directly.

The first strategy returning a URL wins.
"""

from __future__ import annotations

import json
import re
from typing import Callable, List, Optional

from bs4 import Tag

from .error_codes import ErrorCode
from .invoice_client import HtmlFetcher, fetch_invoice_links
from .logging_utils import _export_event
from .models import InvoiceLinks, OrderRecord, ProductRecord
from .selectors import ORDER_HISTORY_SELECTORS, OrderHistorySelectors
from .utils import clean_text, to_full_url

PopoverStrategy = Callable[[Tag, OrderHistorySelectors], Optional[str]]


def _text(parent: Tag, selector: str) -> str:
    el = parent.select_one(selector)
    return clean_text(el.get_text()) if el is not None else ""


def _href(parent: Tag, selector: str) -> str:
    el = parent.select_one(selector)
    if el is None:
        return ""
    return to_full_url(el.get("href"))


def product_dedup_key(product_link: str, selectors: OrderHistorySelectors = ORDER_HISTORY_SELECTORS) -> str:
    """Return the catalog id embedded in ``product_link``, else the link itself."""

    match = re.search(selectors.catalog_id_pattern, product_link or "")
    return match.group(1) if match else product_link


def _item_container(title_link: Tag, selectors: OrderHistorySelectors) -> Optional[Tag]:
    for container_selector in selectors.item_containers:
        container = title_link.css.closest(container_selector)
        if container is not None:
            return container
    return None


def extract_products(card: Tag, selectors: OrderHistorySelectors = ORDER_HISTORY_SELECTORS) -> List[ProductRecord]:
    """Return the card's products in document order, deduplicated by catalog id."""

    products: List[ProductRecord] = []
    seen: set[str] = set()

    for title_link in card.select(selectors.product_title_link):
        product_name = clean_text(title_link.get_text())
        if not product_name:
            continue

        product_link = to_full_url(title_link.get("href"))
        key = product_dedup_key(product_link, selectors)
        if key in seen:
            continue
        seen.add(key)

        product = ProductRecord(product_name=product_name, product_link=product_link)

        container = _item_container(title_link, selectors)
        if container is not None:
            image = container.select_one(selectors.product_image)
            product.product_image = (image.get("src") or "") if image is not None else ""
            product.buy_again_link = _href(container, selectors.buy_again_link)
            product.view_product_link = _href(container, selectors.view_product_link)

        products.append(product)

    return products


def _popover_url_from_json_attribute(card: Tag, selectors: OrderHistorySelectors) -> Optional[str]:
    for holder in card.select(selectors.invoice_popover_attr_holder):
        raw = holder.get(selectors.invoice_popover_attribute)
        if not raw:
            continue
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            continue
        url = data.get("url") if isinstance(data, dict) else None
        if isinstance(url, str) and selectors.invoice_popover_path in url:
            return url
    return None


def _popover_url_from_direct_link(card: Tag, selectors: OrderHistorySelectors) -> Optional[str]:
    for anchor in card.select("a[href]"):
        href = anchor.get("href") or ""
        if selectors.invoice_popover_path in href:
            return href
    return None


POPOVER_STRATEGIES: tuple[PopoverStrategy, ...] = (
    _popover_url_from_json_attribute,
    _popover_url_from_direct_link,
)


def resolve_invoice_popover_url(
    card: Tag,
    selectors: OrderHistorySelectors = ORDER_HISTORY_SELECTORS,
    strategies: tuple[PopoverStrategy, ...] = POPOVER_STRATEGIES,
) -> str:
    for strategy in strategies:
        url = strategy(card, selectors)
        if url:
            return url
    return ""


def extract_order(
    card: Tag,
    year: int,
    *,
    fetch_invoice: bool = False,
    invoice_fetcher: Optional[HtmlFetcher] = None,
    selectors: OrderHistorySelectors = ORDER_HISTORY_SELECTORS,
) -> Optional[OrderRecord]:
    """Extract one order record, or ``None`` when the card has no order id."""

    order_id = _text(card, selectors.order_id)
    if not order_id:
        _export_event("skip", phase="extract", reason=ErrorCode.NOT_AN_ORDER)
        return None

    products = extract_products(card, selectors)

    invoice_links = InvoiceLinks()
    popover_url = resolve_invoice_popover_url(card, selectors)
    if fetch_invoice and popover_url and invoice_fetcher is not None:
        invoice_links = fetch_invoice_links(order_id, popover_url, invoice_fetcher)

    return OrderRecord(
        year=int(year),
        order_id=order_id,
        order_date=_text(card, selectors.order_date),
        total=_text(card, selectors.total),
        recipient=_text(card, selectors.recipient),
        delivery_status=_text(card, selectors.delivery_status),
        order_details_link=_href(card, selectors.order_details_link),
        invoice_links=invoice_links,
        problem_link=_href(card, selectors.problem_link),
        return_link=_href(card, selectors.return_link),
        seller_feedback_link=_href(card, selectors.seller_feedback_link),
        review_link=_href(card, selectors.review_link),
        products=products,
    )


__all__ = [
    "POPOVER_STRATEGIES",
    "extract_order",
    "extract_products",
    "product_dedup_key",
    "resolve_invoice_popover_url",
]
