"""HTTP server entrypoints for the invoice application."""

from __future__ import annotations

import errno
import json
import logging
import sys
import traceback
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Optional, Tuple
from urllib.parse import unquote, urlsplit

from . import config
from .exports import export_phone_numbers, export_phone_numbers_detailed
from .relay import RelayError, WhatsAppRelay
from .service import InvoiceService, document_data, invoice_filename
from .settings_store import ConfigStore
from .store import JsonInvoiceStore
from .tempfiles import CleanupWorker, TempFileStore

logger = logging.getLogger(__name__)

ValidationError = Tuple[int, Dict[str, Any]]
RELAY_FILE_RETENTION_S = 30 * 60

DISCONNECT_ERRNOS = {errno.EPIPE, errno.ECONNRESET, errno.ETIMEDOUT}


class DependencyError(RuntimeError):
    """Raised when a required runtime dependency is missing."""


RENDER_DEPENDENCIES = {
    "fpdf": "fpdf2",
    "PIL": "Pillow",
    "arabic_reshaper": "arabic-reshaper",
    "bidi": "python-bidi",
}


def check_render_dependencies() -> None:
    try:
        from . import sinks  # noqa: F401
    except ModuleNotFoundError as exc:
        package = RENDER_DEPENDENCIES.get((exc.name or "").split(".")[0])
        if package:
            raise DependencyError(
                f"Missing dependency '{package}'. Install the project with 'pip install -e .'."
            ) from exc
        raise


def is_client_disconnect(exc: BaseException) -> bool:
    if isinstance(exc, (BrokenPipeError, ConnectionResetError, TimeoutError)):
        return True
    return isinstance(exc, OSError) and exc.errno in DISCONNECT_ERRNOS


def parse_json_object(body: bytes) -> Tuple[Optional[Dict[str, Any]], Optional[ValidationError]]:
    try:
        payload = json.loads(body.decode("utf-8"))
    except UnicodeDecodeError:
        return None, (
            400,
            {"error": "invalid_encoding", "detail": "Body must be UTF-8 encoded JSON."},
        )
    except json.JSONDecodeError as exc:
        return None, (
            400,
            {
                "error": "invalid_json",
                "detail": f"{exc.msg} (line {exc.lineno}, column {exc.colno})",
            },
        )

    if not isinstance(payload, dict):
        return None, (
            400,
            {"error": "invalid_payload", "detail": "JSON root must be an object."},
        )
    return payload, None


def validate_invoice_payload(body: bytes) -> Tuple[Optional[Dict[str, Any]], Optional[ValidationError]]:
    payload, error = parse_json_object(body)
    if payload is None:
        return None, error

    items = payload.get("items", [])
    if items is None:
        payload["items"] = []
    elif not isinstance(items, list):
        return None, (
            400,
            {"error": "invalid_payload", "detail": "'items' must be an array."},
        )
    return payload, None


@dataclass
class Application:
    service: InvoiceService
    settings: ConfigStore
    temp_files: TempFileStore
    relay: WhatsAppRelay
    public_base_url: str = ""

    @classmethod
    def from_config(cls) -> "Application":
        store = JsonInvoiceStore(config.DATABASE_FILE)
        store.initialize()
        settings = ConfigStore(config.CONFIG_FILE)
        settings.initialize()
        return cls(
            service=InvoiceService(store, logo_path=config.LOGO_PATH, watermark_path=config.WATERMARK_PATH),
            settings=settings,
            temp_files=TempFileStore(config.TEMP_DIR, config.TEMP_FILE_MAX_AGE_S),
            relay=WhatsAppRelay(),
            public_base_url=config.PUBLIC_BASE_URL,
        )


class InvoiceHandler(BaseHTTPRequestHandler):
    MAX_BODY_BYTES = config.MAX_BODY_BYTES
    server: "InvoiceHTTPServer"

    @property
    def app(self) -> Application:
        return self.server.app

    def _write_response(
        self,
        status: int,
        content_type: str,
        body: bytes,
        headers: Optional[Dict[str, str]] = None,
    ) -> bool:
        try:
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            for keyword, value in (headers or {}).items():
                self.send_header(keyword, value)
            self.end_headers()
            self.wfile.write(body)
            return True
        except Exception as exc:
            if is_client_disconnect(exc):
                return False
            raise

    def _send_json(self, status: int, payload: Any) -> bool:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        return self._write_response(status, "application/json; charset=utf-8", body)

    def _send_attachment(self, content_type: str, filename: str, body: bytes) -> bool:
        return self._write_response(
            200,
            content_type,
            body,
            {"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    def _read_body(self) -> Optional[bytes]:
        header = self.headers.get("Content-Length")
        if header is None:
            self._send_json(
                411,
                {
                    "error": "missing_content_length",
                    "detail": "Content-Length header is required.",
                },
            )
            return None

        try:
            content_length = int(header)
        except ValueError:
            self._send_json(
                400,
                {
                    "error": "invalid_content_length",
                    "detail": "Content-Length must be an integer.",
                },
            )
            return None

        if content_length <= 0:
            self._send_json(400, {"error": "empty_body", "detail": "Request body cannot be empty."})
            return None

        if content_length > self.MAX_BODY_BYTES:
            self._send_json(
                413,
                {
                    "error": "payload_too_large",
                    "detail": f"Body exceeds {self.MAX_BODY_BYTES} bytes.",
                },
            )
            return None

        try:
            return self.rfile.read(content_length)
        except Exception as exc:
            if is_client_disconnect(exc):
                return None
            raise

    def _read_json(self) -> Optional[Dict[str, Any]]:
        body = self._read_body()
        if body is None:
            return None
        payload, error = parse_json_object(body)
        if error is not None:
            self._send_json(*error)
            return None
        return payload

    def _read_invoice_payload(self) -> Optional[Dict[str, Any]]:
        body = self._read_body()
        if body is None:
            return None
        payload, error = validate_invoice_payload(body)
        if error is not None:
            self._send_json(*error)
            return None
        return payload

    def _base_url(self) -> str:
        if self.app.public_base_url:
            return self.app.public_base_url.rstrip("/")
        host = self.headers.get("Host") or f"localhost:{self.server.server_address[1]}"
        return f"http://{host}"

    def _generate_pdf(self) -> None:
        payload = self._read_invoice_payload()
        if payload is None:
            return

        record, store_error = self.app.service.create_invoice(payload)
        headers = {"X-Invoice-Id": str(record.id), "X-Invoice-Number": record.invoice_number}
        if store_error is not None:
            headers["X-Invoice-Storage"] = store_error.kind

        from .sinks import StreamSink

        # Nothing reaches the response until rendering has finished.
        sink = StreamSink(self, extra_headers=headers)
        try:
            self.app.service.render_to_stream(document_data(payload, record), sink, "sales-invoice.pdf")
        except Exception as exc:
            if is_client_disconnect(exc):
                return
            traceback.print_exc(file=sys.stderr)
            self._send_json(500, {"error": "render_failed", "detail": str(exc)})

    def _send_whatsapp(self) -> None:
        payload = self._read_invoice_payload()
        if payload is None:
            return

        if not str(payload.get("phoneNumber") or "").strip():
            self._send_json(
                400,
                {"success": False, "error": "Phone number is required to send via WhatsApp"},
            )
            return

        record, store_error = self.app.service.create_invoice(payload)
        data = document_data(payload, record)
        try:
            document = self.app.service.render_to_buffer(data)
        except Exception as exc:
            traceback.print_exc(file=sys.stderr)
            self._send_json(500, {"success": False, "error": "render_failed", "detail": str(exc)})
            return

        file_name = invoice_filename(record.invoice_number, str(record.id))
        try:
            self.app.temp_files.save(file_name, document)
        except OSError as exc:
            logger.error("Could not save temp PDF %s: %s", file_name, exc)
            self._send_json(500, {"success": False, "error": "temp_file_failed", "detail": str(exc)})
            return

        pdf_url = f"{self._base_url()}/temp-pdf/{file_name}"
        try:
            sent = self.app.relay.send_invoice(data, file_name)
        except RelayError as exc:
            logger.error("Error sending WhatsApp message: %s", exc)
            self._send_json(
                502,
                {
                    "success": False,
                    "error": str(exc),
                    "code": exc.code,
                    "invoiceNumber": record.invoice_number,
                    "stored": store_error is None,
                    "pdfUrl": pdf_url,
                },
            )
            return

        self.app.temp_files.remove_later(file_name, RELAY_FILE_RETENTION_S)
        self._send_json(
            200,
            {
                "success": True,
                "message": "Invoice sent successfully via WhatsApp",
                "phoneNumber": payload.get("phoneNumber"),
                "fileName": file_name,
                "pdfUrl": pdf_url,
                "invoiceNumber": record.invoice_number,
                "stored": store_error is None,
                "storageError": store_error.to_dict() if store_error else None,
                **sent,
            },
        )

    def _admin_verify(self) -> None:
        payload = self._read_json()
        if payload is None:
            return
        if self.app.settings.verify_password(payload.get("password")):
            self._send_json(200, {"success": True})
        else:
            self._send_json(200, {"success": False, "message": "Invalid password"})

    def _admin_change_password(self) -> None:
        payload = self._read_json()
        if payload is None:
            return
        ok, message = self.app.settings.change_password(
            payload.get("currentPassword"), payload.get("newPassword")
        )
        self._send_json(200, {"success": ok, "message": message})

    def do_POST(self) -> None:
        path = urlsplit(self.path).path
        routes = {
            "/generate-pdf": self._generate_pdf,
            "/send-whatsapp": self._send_whatsapp,
            "/admin-verify": self._admin_verify,
            "/admin-change-password": self._admin_change_password,
        }
        route = routes.get(path)
        if route is None:
            self._send_json(404, {"error": "not_found", "detail": "Unsupported endpoint."})
            return
        route()

    def _get_invoice(self, raw_id: str) -> None:
        try:
            record_id = int(raw_id)
        except ValueError:
            self._send_json(404, {"error": "Invoice not found"})
            return
        record = self.app.service.get_invoice(record_id)
        if record is None:
            self._send_json(404, {"error": "Invoice not found"})
            return
        self._send_json(200, record.to_dict())

    def _serve_temp_pdf(self, name: str) -> None:
        document = self.app.temp_files.read(name)
        if document is None:
            self._write_response(404, "text/plain; charset=utf-8", b"File not found")
            return
        if self._send_attachment("application/pdf", name, document):
            self.app.temp_files.remove_later(name, config.TEMP_DOWNLOAD_DELETE_DELAY_S)

    def do_GET(self) -> None:
        path = urlsplit(self.path).path
        if path in ("/", "/health", "/healthz", "/ready"):
            self._send_json(200, {"status": "ok"})
            return
        if path == "/api/invoices":
            records, stats = self.app.service.list_invoices()
            self._send_json(
                200,
                {"invoices": [record.to_dict() for record in records], "stats": stats.to_dict()},
            )
            return
        if path.startswith("/api/invoice/"):
            self._get_invoice(unquote(path[len("/api/invoice/"):]))
            return
        if path.startswith("/temp-pdf/"):
            self._serve_temp_pdf(unquote(path[len("/temp-pdf/"):]))
            return
        if path == "/admin-export-phones":
            records, _ = self.app.service.list_invoices()
            text = export_phone_numbers(records)
            self._send_attachment("text/plain; charset=utf-8", "phone-numbers.txt", text.encode("utf-8"))
            return
        if path == "/admin-export-phones-detailed":
            records, _ = self.app.service.list_invoices()
            text = export_phone_numbers_detailed(records)
            self._send_attachment("text/plain; charset=utf-8", "clients-detailed.txt", text.encode("utf-8"))
            return
        self._send_json(404, {"error": "not_found", "detail": "Unsupported endpoint."})

    def handle_one_request(self) -> None:
        try:
            super().handle_one_request()
        except Exception as exc:
            if is_client_disconnect(exc):
                return
            raise

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)


class InvoiceHTTPServer(ThreadingHTTPServer):
    daemon_threads = True
    allow_reuse_address = True
    request_queue_size = config.LISTEN_BACKLOG

    def __init__(self, address: Tuple[str, int], app: Application) -> None:
        self.app = app
        super().__init__(address, InvoiceHandler)


def run(host: str = "0.0.0.0", port: int = 3000) -> None:
    check_render_dependencies()
    app = Application.from_config()
    cleanup = CleanupWorker(app.temp_files, config.TEMP_CLEANUP_INTERVAL_S)
    cleanup.start()
    server = InvoiceHTTPServer((host, port), app)
    print(f"Invoice server listening on http://{host}:{port}")
    if not app.relay.enabled:
        print("WhatsApp relay disabled: set TWILIO_* environment variables to enable it.")
    try:
        server.serve_forever()
    finally:
        cleanup.stop()
        server.server_close()
