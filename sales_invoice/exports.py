"""Phone-number exports over the stored invoices."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from . import config
from .formatting import fmt_money
from .models import InvoiceRecord

RULE = "=" * 50


@dataclass
class ClientSummary:
    phone: str
    client_name: str
    invoice_count: int
    first_invoice: str
    last_invoice: str
    total_amount: float


def unique_phone_numbers(records: Sequence[InvoiceRecord]) -> List[str]:
    phones = {record.phone_number.strip() for record in records if record.phone_number.strip()}
    return sorted(phones)


def export_phone_numbers(records: Sequence[InvoiceRecord]) -> str:
    return "\n".join(unique_phone_numbers(records))


def summarize_clients(records: Sequence[InvoiceRecord]) -> List[ClientSummary]:
    """One summary per distinct phone number, in record order for first/last invoice."""
    by_phone: Dict[str, ClientSummary] = {}
    for record in records:
        phone = record.phone_number.strip()
        if not phone:
            continue
        number = record.invoice_number or "N/A"
        summary = by_phone.get(phone)
        if summary is None:
            by_phone[phone] = ClientSummary(
                phone=phone,
                client_name=record.client_name or "Unknown",
                invoice_count=1,
                first_invoice=number,
                last_invoice=number,
                total_amount=record.total_amount,
            )
            continue
        summary.invoice_count += 1
        summary.last_invoice = number
        summary.total_amount += record.total_amount
    return sorted(by_phone.values(), key=lambda s: s.phone)


def export_phone_numbers_detailed(
    records: Sequence[InvoiceRecord],
    generated_at: Optional[datetime] = None,
) -> str:
    clients = summarize_clients(records)
    generated_at = generated_at or datetime.now()
    brand = config.APP_NAME.split()[0]

    lines = [
        f"{brand} - Client Phone Numbers Export",
        f"Generated: {generated_at:%Y-%m-%d %H:%M:%S}",
        f"Total Unique Numbers: {len(clients)}",
        RULE,
        "",
    ]
    for index, client in enumerate(clients, start=1):
        lines.extend(
            [
                f"{index}. {client.client_name}",
                f"   Phone: {client.phone}",
                f"   Invoices: {client.invoice_count}",
                f"   Total Spent: {fmt_money(client.total_amount)}",
                f"   First Invoice: {client.first_invoice}",
                f"   Last Invoice: {client.last_invoice}",
                "",
            ]
        )
    lines.extend([RULE, "PHONE NUMBERS ONLY (for easy copying):", RULE])
    lines.extend(client.phone for client in clients)
    return "\n".join(lines) + "\n"
