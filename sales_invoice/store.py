"""Flat-file invoice persistence.

The whole store is one JSON document, read and rewritten in full on every
operation. There is no locking: two concurrent ``append`` calls can both load
the same state and the later write wins, dropping the other record.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple

from .formatting import display, invoice_number_suffix
from .models import InvoiceRecord, StoreStats

logger = logging.getLogger(__name__)

STORAGE_UNAVAILABLE = "storage_unavailable"
STORAGE_WRITE_FAILURE = "storage_write_failure"


@dataclass(frozen=True)
class StoreError:
    kind: str
    detail: str

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.kind, "detail": self.detail}


Snapshot = Tuple[List[InvoiceRecord], StoreStats]
AppendResult = Tuple[InvoiceRecord, Optional[StoreError]]


class InvoiceRepository(Protocol):
    def load(self) -> Snapshot:
        ...

    def append(self, data: Mapping[str, Any]) -> AppendResult:
        ...

    def get(self, record_id: int) -> Optional[InvoiceRecord]:
        ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def empty_snapshot() -> Snapshot:
    return [], StoreStats()


def reconcile_stats(records: List[InvoiceRecord], cached: StoreStats) -> StoreStats:
    """Stats recomputed from the records; the cached invoice counter never moves back."""
    highest = max((invoice_number_suffix(r.invoice_number) for r in records), default=0)
    return StoreStats(
        total_sales=len(records),
        total_amount=sum(r.total_amount for r in records),
        last_invoice_number=max(cached.last_invoice_number, highest),
    )


class JsonInvoiceStore:
    def __init__(self, path: str, clock: Callable[[], datetime] = utc_now) -> None:
        self.path = path
        self.clock = clock

    def initialize(self) -> bool:
        """Create an empty store file if none exists. Returns True if one was created."""
        if os.path.exists(self.path):
            return False
        error = self._write(*empty_snapshot())
        if error is not None:
            logger.error("Could not initialize database %s: %s", self.path, error.detail)
            return False
        logger.info("Database initialized: %s", self.path)
        return True

    def _read(self) -> Tuple[Snapshot, Optional[StoreError]]:
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                document = json.load(fh)
        except FileNotFoundError:
            return empty_snapshot(), StoreError(STORAGE_UNAVAILABLE, f"{self.path} does not exist")
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.error("Error reading database %s: %s", self.path, exc)
            return empty_snapshot(), StoreError(STORAGE_UNAVAILABLE, str(exc))

        if not isinstance(document, dict):
            logger.error("Database %s is not a JSON object", self.path)
            return empty_snapshot(), StoreError(STORAGE_UNAVAILABLE, "root is not an object")

        raw_records = document.get("invoices", document.get("records", []))
        if not isinstance(raw_records, list):
            raw_records = []
        records = [InvoiceRecord.from_dict(raw) for raw in raw_records if isinstance(raw, dict)]
        stats = reconcile_stats(records, StoreStats.from_dict(document.get("stats")))
        return (records, stats), None

    def load(self) -> Snapshot:
        """Current records and stats; a missing or corrupt file reads as an empty store."""
        snapshot, _ = self._read()
        return snapshot

    def list_invoices(self) -> Snapshot:
        return self.load()

    def get(self, record_id: int) -> Optional[InvoiceRecord]:
        records, _ = self.load()
        for record in records:
            if record.id == record_id:
                return record
        return None

    def _write(self, records: List[InvoiceRecord], stats: StoreStats) -> Optional[StoreError]:
        document = {
            "invoices": [record.to_dict() for record in records],
            "stats": stats.to_dict(),
        }
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".sales_database.", suffix=".tmp", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as exc:
            logger.error("Error writing to database %s: %s", self.path, exc)
            return StoreError(STORAGE_WRITE_FAILURE, str(exc))
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except FileNotFoundError:
                    pass
        return None

    def _next_id(self, records: List[InvoiceRecord], now: datetime) -> int:
        candidate = int(now.timestamp() * 1000)
        highest = max((r.id for r in records), default=0)
        return max(candidate, highest + 1)

    def append(self, data: Mapping[str, Any]) -> AppendResult:
        """Store a new invoice built from ``data``.

        Always returns the built record. The error is set when it could not be
        persisted; the record is then usable for rendering but will not
        survive a restart.
        """
        records, stats = self.load()
        now = self.clock()

        fields = dict(data)
        invoice_number = display(fields.get("invoiceNumber")).strip()
        if not invoice_number:
            invoice_number = f"INV-{stats.last_invoice_number + 1}"
        fields.update(
            id=self._next_id(records, now),
            invoiceNumber=invoice_number,
            timestamp=now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        )
        record = InvoiceRecord.from_dict(fields)

        records.append(record)
        stats.total_sales += 1
        stats.total_amount += record.total_amount
        stats.last_invoice_number = max(stats.last_invoice_number, invoice_number_suffix(record.invoice_number))

        error = self._write(records, stats)
        if error is None:
            logger.info("Invoice saved to database: %s - %s", record.invoice_number, record.client_name)
        return record, error
