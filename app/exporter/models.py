from __future__ import annotations

"""Record types produced by the field extractor and persisted in the session."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List


def _str(value: Any) -> str:
    return "" if value is None else str(value)


@dataclass
class InvoiceLinks:
    print_summary: str = ""
    invoice: str = ""
    invoice_request: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "InvoiceLinks":
        data = data or {}
        return cls(
            print_summary=_str(data.get("print_summary")),
            invoice=_str(data.get("invoice")),
            invoice_request=_str(data.get("invoice_request")),
        )


@dataclass
class ProductRecord:
    """One line item within an order."""

    product_name: str
    product_link: str = ""
    product_image: str = ""
    buy_again_link: str = ""
    view_product_link: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProductRecord":
        return cls(
            product_name=_str(data.get("product_name")),
            product_link=_str(data.get("product_link")),
            product_image=_str(data.get("product_image")),
            buy_again_link=_str(data.get("buy_again_link")),
            view_product_link=_str(data.get("view_product_link")),
        )


@dataclass
class OrderRecord:
    """One order as shown on an order-history card.

    ``order_id`` is the identity of the record within an export session.
    """

    year: int
    order_id: str
    order_date: str = ""
    total: str = ""
    recipient: str = ""
    delivery_status: str = ""
    order_details_link: str = ""
    invoice_links: InvoiceLinks = field(default_factory=InvoiceLinks)
    problem_link: str = ""
    return_link: str = ""
    seller_feedback_link: str = ""
    review_link: str = ""
    products: List[ProductRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderRecord":
        return cls(
            year=int(data.get("year") or 0),
            order_id=_str(data.get("order_id")),
            order_date=_str(data.get("order_date")),
            total=_str(data.get("total")),
            recipient=_str(data.get("recipient")),
            delivery_status=_str(data.get("delivery_status")),
            order_details_link=_str(data.get("order_details_link")),
            invoice_links=InvoiceLinks.from_dict(data.get("invoice_links")),
            problem_link=_str(data.get("problem_link")),
            return_link=_str(data.get("return_link")),
            seller_feedback_link=_str(data.get("seller_feedback_link")),
            review_link=_str(data.get("review_link")),
            products=[
                ProductRecord.from_dict(item)
                for item in data.get("products") or []
                if isinstance(item, dict)
            ],
        )


__all__ = ["InvoiceLinks", "ProductRecord", "OrderRecord"]
