"""CSV projection of collected orders.

Two grains are supported:

- ``by-order``: one row per order, multi-valued product fields joined with
  ``config.CSV_SEPARATOR``;
- ``by-product``: one row per product. Orders without products still emit a
  single row so order-level data is never dropped.

Projected tables hold raw cell values; ``render_csv`` passes every cell
through ``escape_csv`` and prefixes a UTF-8 BOM so spreadsheet applications
detect the encoding.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from . import config
from .models import OrderRecord
from .utils import ensure_dirs, log_line

BOM = "\ufeff"

BY_ORDER_HEADERS: List[str] = [
    "Year",
    "Order ID",
    "Order Date",
    "Order Total",
    "Recipient",
    "Delivery Status",
    "Product Count",
    "Product Names",
    "Product Links",
    "Product Image URLs",
    "Order Details Link",
    "Printable Order Summary",
    "Invoice",
    "Invoice Request",
    "Problem With Order",
    "Return Or Replace",
    "Seller Feedback",
    "Product Review",
]

BY_PRODUCT_HEADERS: List[str] = [
    "Year",
    "Order ID",
    "Order Date",
    "Order Total",
    "Recipient",
    "Delivery Status",
    "Product Name",
    "Product Link",
    "Product Image URL",
    "Order Details Link",
    "Printable Order Summary",
    "Invoice",
    "Invoice Request",
    "Buy Again Link",
    "View Product Link",
    "Problem With Order",
    "Return Or Replace",
    "Seller Feedback",
    "Product Review",
]


@dataclass
class CsvTable:
    headers: List[str]
    rows: List[List[str]]


def escape_csv(value: object) -> str:
    """Quote ``value`` when it contains a comma, quote or newline."""

    if value is None:
        return ""
    text = str(value)
    if "," in text or '"' in text or "\n" in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def _order_prefix(order: OrderRecord) -> List[str]:
    return [
        str(order.year),
        order.order_id,
        order.order_date,
        order.total,
        order.recipient,
        order.delivery_status,
    ]


def _invoice_columns(order: OrderRecord) -> List[str]:
    return [
        order.order_details_link,
        order.invoice_links.print_summary,
        order.invoice_links.invoice,
        order.invoice_links.invoice_request,
    ]


def _action_columns(order: OrderRecord) -> List[str]:
    return [
        order.problem_link,
        order.return_link,
        order.seller_feedback_link,
        order.review_link,
    ]


def project_by_order(orders: Iterable[OrderRecord]) -> CsvTable:
    sep = config.CSV_SEPARATOR
    rows: List[List[str]] = []
    for order in orders:
        names = sep.join(p.product_name for p in order.products) or config.MISSING_PRODUCT_PLACEHOLDER
        links = sep.join(p.product_link for p in order.products)
        images = sep.join(p.product_image for p in order.products if p.product_image)
        rows.append(
            _order_prefix(order)
            + [str(len(order.products)), names, links, images]
            + _invoice_columns(order)
            + _action_columns(order)
        )
    return CsvTable(headers=list(BY_ORDER_HEADERS), rows=rows)


def project_by_product(orders: Iterable[OrderRecord]) -> CsvTable:
    rows: List[List[str]] = []
    for order in orders:
        if not order.products:
            rows.append(
                _order_prefix(order)
                + [config.MISSING_PRODUCT_PLACEHOLDER, "", ""]
                + _invoice_columns(order)
                + ["", ""]
                + _action_columns(order)
            )
            continue

        for product in order.products:
            rows.append(
                _order_prefix(order)
                + [
                    product.product_name,
                    product.product_link,
                    product.product_image,
                ]
                + _invoice_columns(order)
                + [product.buy_again_link, product.view_product_link]
                + _action_columns(order)
            )
    return CsvTable(headers=list(BY_PRODUCT_HEADERS), rows=rows)


def project(orders: Iterable[OrderRecord], export_mode: str) -> CsvTable:
    if config.is_by_order(export_mode):
        return project_by_order(orders)
    return project_by_product(orders)


def render_csv(table: CsvTable) -> str:
    lines = [",".join(escape_csv(header) for header in table.headers)]
    lines.extend(",".join(escape_csv(cell) for cell in row) for row in table.rows)
    return BOM + "\n".join(lines)


def export_filename(export_mode: str, year: int, *, extension: str = "csv") -> str:
    grain = "by_order" if config.is_by_order(export_mode) else "by_product"
    return f"{config.DATASET_NAME}_{grain}_{int(year)}.{extension}"


def write_csv_download(
    orders: Iterable[OrderRecord],
    export_mode: str,
    year: int,
    dest_dir: Optional[Path] = None,
) -> Path:
    """Project ``orders`` and write the CSV file; return its path."""

    table = project(orders, export_mode)
    if dest_dir is None:
        ensure_dirs()
        dest_dir = config.EXPORTS_DIR
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)

    path = dest_dir / export_filename(export_mode, year)
    tmp_path = path.with_suffix(".csv.tmp")
    # newline="" keeps "\n" row separators as-is on every platform.
    with tmp_path.open("w", encoding="utf-8", newline="") as handle:
        handle.write(render_csv(table))
    tmp_path.replace(path)

    log_line(f"[CSV] Wrote {len(table.rows)} rows -> {path}")
    return path


__all__ = [
    "BOM",
    "BY_ORDER_HEADERS",
    "BY_PRODUCT_HEADERS",
    "CsvTable",
    "escape_csv",
    "project",
    "project_by_order",
    "project_by_product",
    "render_csv",
    "export_filename",
    "write_csv_download",
]
