"""Entry points tying the record store to document rendering."""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Optional

from .models import InvoiceRecord
from .store import AppendResult, InvoiceRepository, Snapshot

UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def document_data(payload: Mapping[str, Any], record: InvoiceRecord) -> Dict[str, Any]:
    """What to render for a submission: the input as given plus the assigned number and time."""
    data = dict(payload)
    data["invoiceNumber"] = record.invoice_number
    data["timestamp"] = record.timestamp
    return data


def invoice_filename(invoice_number: str, fallback: str) -> str:
    stem = UNSAFE_FILENAME_CHARS.sub("-", invoice_number).strip("-.") or fallback
    return f"invoice-{stem}.pdf"


class InvoiceService:
    def __init__(
        self,
        store: InvoiceRepository,
        logo_path: Optional[str] = None,
        watermark_path: Optional[str] = None,
    ) -> None:
        self.store = store
        self.logo_path = logo_path
        self.watermark_path = watermark_path

    def create_invoice(self, payload: Mapping[str, Any]) -> AppendResult:
        return self.store.append(payload)

    def list_invoices(self) -> Snapshot:
        return self.store.load()

    def get_invoice(self, record_id: int) -> Optional[InvoiceRecord]:
        return self.store.get(record_id)

    def render_to_buffer(self, data: Any) -> bytes:
        from .sinks import render_to_buffer

        return render_to_buffer(data, logo_path=self.logo_path, watermark_path=self.watermark_path)

    def render_to_stream(self, data: Any, sink: Any, filename: str) -> None:
        from .sinks import render_to_stream

        render_to_stream(data, sink, filename=filename, logo_path=self.logo_path, watermark_path=self.watermark_path)
