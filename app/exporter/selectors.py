from __future__ import annotations

"""Selectors and attribute hints for the order-history listing."""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class OrderHistorySelectors:
    """Site-specific selector hints for the order-history page.

    Every order is rendered as an ``.order-card``. Product rows inside a card
    have moved between layouts, so the item container is probed with several
    fallbacks, first match wins.
    """

    card: str = ".order-card"
    total_orders_label: str = ".num-orders"

    order_id: str = '.yohtmlc-order-id span[dir="ltr"]'
    order_date: str = ".a-column.a-span3 .a-color-secondary.aok-break-word"
    total: str = ".a-column.a-span2 .a-color-secondary.aok-break-word"
    recipient: str = ".yohtmlc-recipient .a-popover-trigger"
    delivery_status: str = ".delivery-box__primary-text"

    order_details_link: str = 'a[href*="order-details"]'
    problem_link: str = 'a[href*="/hz/pwo"]'
    return_link: str = 'a[href*="returns/cart"]'
    seller_feedback_link: str = 'a[href*="feedback"]'
    review_link: str = 'a[href*="review-your-purchases"]'

    product_title_link: str = ".yohtmlc-product-title a"
    item_containers: Tuple[str, ...] = (".a-fixed-left-grid", ".item-box", "li")
    product_image: str = ".product-image img, img"
    buy_again_link: str = 'a[href*="buyagain"]'
    view_product_link: str = 'a[href*="/your-orders/pop"]'

    invoice_popover_attr_holder: str = ".yohtmlc-order-level-connections [data-a-popover]"
    invoice_popover_attribute: str = "data-a-popover"
    invoice_popover_path: str = "invoice/popover"
    invoice_popover_links: str = ".invoice-list a, ul a"

    catalog_id_pattern: str = r"/dp/([A-Z0-9]+)"


ORDER_HISTORY_SELECTORS = OrderHistorySelectors()

__all__ = [
    "OrderHistorySelectors",
    "ORDER_HISTORY_SELECTORS",
]
