"""Destinations for rendered invoice documents."""

from __future__ import annotations

import io
from typing import BinaryIO, Optional, Protocol

from .rendering import InvoiceInput, InvoiceRenderer

PDF_CONTENT_TYPE = "application/pdf"
DEFAULT_FILENAME = "sales-invoice.pdf"


class RenderSink(Protocol):
    def write_document(self, document: bytes, filename: str) -> None:
        ...


class BufferSink:
    """Collects the document in memory for attachments, relays or temp files."""

    def __init__(self) -> None:
        self._buffer = io.BytesIO()
        self.filename: Optional[str] = None

    def write_document(self, document: bytes, filename: str) -> None:
        self._buffer.write(document)
        self.filename = filename

    def getvalue(self) -> bytes:
        return self._buffer.getvalue()


class ResponseChannel(Protocol):
    wfile: BinaryIO

    def send_response(self, code: int, message: Optional[str] = None) -> None:
        ...

    def send_header(self, keyword: str, value: str) -> None:
        ...

    def end_headers(self) -> None:
        ...


class StreamSink:
    """Writes the document as a downloadable attachment on an open HTTP response."""

    def __init__(self, channel: ResponseChannel, extra_headers: Optional[dict] = None) -> None:
        self.channel = channel
        self.extra_headers = dict(extra_headers or {})

    def write_document(self, document: bytes, filename: str) -> None:
        self.channel.send_response(200)
        self.channel.send_header("Content-Type", PDF_CONTENT_TYPE)
        self.channel.send_header("Content-Disposition", f'attachment; filename="{filename}"')
        self.channel.send_header("Content-Length", str(len(document)))
        for keyword, value in self.extra_headers.items():
            self.channel.send_header(keyword, value)
        self.channel.end_headers()
        self.channel.wfile.write(document)


def render_to_stream(
    record: InvoiceInput,
    sink: RenderSink,
    filename: str = DEFAULT_FILENAME,
    logo_path: Optional[str] = None,
    watermark_path: Optional[str] = None,
) -> None:
    # The document is complete before the sink sees any byte.
    document = InvoiceRenderer(record, logo_path=logo_path, watermark_path=watermark_path).render()
    sink.write_document(document, filename)


def render_to_buffer(
    record: InvoiceInput,
    logo_path: Optional[str] = None,
    watermark_path: Optional[str] = None,
) -> bytes:
    sink = BufferSink()
    render_to_stream(record, sink, logo_path=logo_path, watermark_path=watermark_path)
    return sink.getvalue()
