"""Invoice record types and their JSON representation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from .formatting import display, parse_amount


@dataclass(frozen=True)
class LineItem:
    code: str = ""
    description: str = ""
    qty: str = ""
    price: str = ""
    discount: str = ""
    final_price: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "LineItem":
        if not isinstance(data, Mapping):
            return cls()
        return cls(
            code=display(data.get("code")),
            description=display(data.get("description")),
            qty=display(data.get("qty")),
            price=display(data.get("price")),
            discount=display(data.get("discount")),
            final_price=display(data.get("finalPrice")),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "code": self.code,
            "description": self.description,
            "qty": self.qty,
            "price": self.price,
            "discount": self.discount,
            "finalPrice": self.final_price,
        }


@dataclass(frozen=True)
class InvoiceRecord:
    """A stored invoice. Created once per submission and never mutated."""

    id: int
    invoice_number: str
    timestamp: str
    client_name: str = ""
    phone_number: str = ""
    address: str = ""
    account_number: str = ""
    address_title: str = ""
    entry_number: str = ""
    total_amount: float = 0.0
    amount_received: float = 0.0
    remaining_amount: float = 0.0
    sales_representative: str = ""
    date: str = ""
    day: str = ""
    delivery_date: str = ""
    delivery_day: str = ""
    notes: str = ""
    items: List[LineItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InvoiceRecord":
        raw_id = data.get("id", 0)
        try:
            record_id = int(raw_id)
        except (TypeError, ValueError):
            record_id = 0
        items = data.get("items") or []
        if not isinstance(items, list):
            items = []
        return cls(
            id=record_id,
            invoice_number=display(data.get("invoiceNumber")),
            timestamp=display(data.get("timestamp")),
            client_name=display(data.get("clientName")),
            phone_number=display(data.get("phoneNumber")),
            address=display(data.get("address")),
            account_number=display(data.get("accountNumber")),
            address_title=display(data.get("addressTitle")),
            entry_number=display(data.get("entryNumber")),
            total_amount=parse_amount(data.get("totalAmount")),
            amount_received=parse_amount(data.get("amountReceived")),
            remaining_amount=parse_amount(data.get("remainingAmount")),
            sales_representative=display(data.get("salesRepresentative")),
            date=display(data.get("date")),
            day=display(data.get("day")),
            delivery_date=display(data.get("deliveryDate")),
            delivery_day=display(data.get("deliveryDay")),
            notes=display(data.get("notes")),
            items=[LineItem.from_dict(item) for item in items],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "invoiceNumber": self.invoice_number,
            "clientName": self.client_name,
            "phoneNumber": self.phone_number,
            "address": self.address,
            "totalAmount": self.total_amount,
            "amountReceived": self.amount_received,
            "remainingAmount": self.remaining_amount,
            "salesRepresentative": self.sales_representative,
            "date": self.date,
            "day": self.day,
            "deliveryDate": self.delivery_date,
            "deliveryDay": self.delivery_day,
            "items": [item.to_dict() for item in self.items],
            "notes": self.notes,
            "timestamp": self.timestamp,
            "accountNumber": self.account_number,
            "addressTitle": self.address_title,
            "entryNumber": self.entry_number,
        }


@dataclass
class StoreStats:
    total_sales: int = 0
    total_amount: float = 0.0
    last_invoice_number: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> "StoreStats":
        if not isinstance(data, Mapping):
            return cls()
        try:
            last_number = int(data.get("lastInvoiceNumber", 0) or 0)
        except (TypeError, ValueError):
            last_number = 0
        try:
            total_sales = int(data.get("totalSales", 0) or 0)
        except (TypeError, ValueError):
            total_sales = 0
        return cls(
            total_sales=total_sales,
            total_amount=parse_amount(data.get("totalAmount")),
            last_invoice_number=last_number,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalSales": self.total_sales,
            "totalAmount": self.total_amount,
            "lastInvoiceNumber": self.last_invoice_number,
        }
