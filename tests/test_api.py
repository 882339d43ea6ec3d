import http.client
import json
import os
import tempfile
import threading
import unittest
from importlib import util as importlib_util
from typing import Any, Dict, Optional, Tuple

from sales_invoice.relay import RelayError
from sales_invoice.server import Application, InvoiceHTTPServer, parse_json_object, validate_invoice_payload
from sales_invoice.service import InvoiceService
from sales_invoice.settings_store import ConfigStore
from sales_invoice.store import JsonInvoiceStore
from sales_invoice.tempfiles import TempFileStore

RENDER_AVAILABLE = all(
    importlib_util.find_spec(name) is not None for name in ("fpdf", "PIL", "arabic_reshaper", "bidi")
)


class ApiValidationTests(unittest.TestCase):
    def _json_bytes(self, payload: object) -> bytes:
        return json.dumps(payload).encode("utf-8")

    def test_accepts_valid_payload(self) -> None:
        payload, error = validate_invoice_payload(
            self._json_bytes({"clientName": "Sara", "items": [{"description": "Sofa", "qty": "1"}]})
        )

        self.assertIsNone(error)
        assert payload is not None
        self.assertEqual(payload["clientName"], "Sara")

    def test_null_items_become_empty(self) -> None:
        payload, error = validate_invoice_payload(self._json_bytes({"items": None}))

        self.assertIsNone(error)
        assert payload is not None
        self.assertEqual(payload["items"], [])

    def test_rejects_invalid_utf8(self) -> None:
        _, error = validate_invoice_payload(b"\xff")

        self.assertIsNotNone(error)
        assert error is not None
        self.assertEqual(error[0], 400)
        self.assertEqual(error[1]["error"], "invalid_encoding")

    def test_rejects_invalid_json(self) -> None:
        _, error = validate_invoice_payload(b'{"items":')

        self.assertIsNotNone(error)
        assert error is not None
        self.assertEqual(error[0], 400)
        self.assertEqual(error[1]["error"], "invalid_json")

    def test_rejects_non_object_root(self) -> None:
        _, error = parse_json_object(self._json_bytes(["bad-root"]))

        self.assertIsNotNone(error)
        assert error is not None
        self.assertEqual(error[0], 400)
        self.assertEqual(error[1]["error"], "invalid_payload")

    def test_rejects_non_array_items(self) -> None:
        _, error = validate_invoice_payload(self._json_bytes({"items": "bad"}))

        self.assertIsNotNone(error)
        assert error is not None
        self.assertEqual(error[0], 400)
        self.assertEqual(error[1]["error"], "invalid_payload")


class FakeRelay:
    enabled = True

    def __init__(self, error: Optional[RelayError] = None) -> None:
        self.error = error
        self.sent = []

    def send_invoice(self, data: Dict[str, Any], file_name: str) -> Dict[str, str]:
        if self.error is not None:
            raise self.error
        self.sent.append((data, file_name))
        return {"messageSid": "SM1", "templateSid": "HX1", "whatsappNumber": "whatsapp:+962791234567"}


class ServerTestCase(unittest.TestCase):
    def _start_server(self, database_path: str) -> None:
        root = self.tmp.name
        store = JsonInvoiceStore(database_path)
        store.initialize()
        settings = ConfigStore(os.path.join(root, "config.json"))
        settings.initialize()
        self.relay = FakeRelay()
        self.temp_dir = os.path.join(root, "temp")
        app = Application(
            service=InvoiceService(store),
            settings=settings,
            temp_files=TempFileStore(self.temp_dir, 3600),
            relay=self.relay,  # type: ignore[arg-type]
            public_base_url="http://invoices.test",
        )
        self.server = InvoiceHTTPServer(("127.0.0.1", 0), app)
        thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        thread.start()
        self.addCleanup(thread.join, 5)
        self.addCleanup(self.server.server_close)
        self.addCleanup(self.server.shutdown)

    def _request(self, method: str, path: str, payload: Any = None) -> Tuple[int, Dict[str, str], bytes]:
        conn = http.client.HTTPConnection("127.0.0.1", self.server.server_address[1], timeout=10)
        try:
            body = None if payload is None else json.dumps(payload).encode("utf-8")
            headers = {} if body is None else {"Content-Type": "application/json"}
            conn.request(method, path, body=body, headers=headers)
            response = conn.getresponse()
            return response.status, dict(response.getheaders()), response.read()
        finally:
            conn.close()


class ServerTests(ServerTestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self._start_server(os.path.join(self.tmp.name, "database.json"))

    def test_health(self) -> None:
        status, _, body = self._request("GET", "/health")

        self.assertEqual(status, 200)
        self.assertEqual(json.loads(body), {"status": "ok"})

    def test_unknown_route(self) -> None:
        status, _, body = self._request("GET", "/nope")

        self.assertEqual(status, 404)
        self.assertEqual(json.loads(body)["error"], "not_found")

    def test_empty_store_listing(self) -> None:
        status, _, body = self._request("GET", "/api/invoices")

        self.assertEqual(status, 200)
        self.assertEqual(
            json.loads(body),
            {"invoices": [], "stats": {"totalSales": 0, "totalAmount": 0.0, "lastInvoiceNumber": 0}},
        )

    def test_missing_invoice(self) -> None:
        status, _, body = self._request("GET", "/api/invoice/12345")

        self.assertEqual(status, 404)
        self.assertEqual(json.loads(body), {"error": "Invoice not found"})

    def test_admin_password_flow(self) -> None:
        _, _, body = self._request("POST", "/admin-verify", {"password": "123"})
        self.assertTrue(json.loads(body)["success"])

        _, _, body = self._request("POST", "/admin-change-password", {"currentPassword": "nope", "newPassword": "x"})
        self.assertFalse(json.loads(body)["success"])

        _, _, body = self._request("POST", "/admin-change-password", {"currentPassword": "123", "newPassword": "grove"})
        self.assertTrue(json.loads(body)["success"])

        _, _, body = self._request("POST", "/admin-verify", {"password": "123"})
        self.assertEqual(json.loads(body), {"success": False, "message": "Invalid password"})

    def test_post_requires_body(self) -> None:
        status, _, body = self._request("POST", "/generate-pdf")

        self.assertIn(status, (400, 411))

    def test_invalid_items_are_rejected(self) -> None:
        status, _, body = self._request("POST", "/generate-pdf", {"items": "bad"})

        self.assertEqual(status, 400)
        self.assertEqual(json.loads(body)["error"], "invalid_payload")

    def test_whatsapp_requires_phone(self) -> None:
        status, _, body = self._request("POST", "/send-whatsapp", {"clientName": "Sara"})

        self.assertEqual(status, 400)
        self.assertFalse(json.loads(body)["success"])
        self.assertEqual(self.relay.sent, [])

    def test_missing_temp_pdf(self) -> None:
        status, _, body = self._request("GET", "/temp-pdf/missing.pdf")

        self.assertEqual(status, 404)
        self.assertEqual(body, b"File not found")

    @unittest.skipUnless(RENDER_AVAILABLE, "render dependencies are not installed")
    def test_generate_pdf_stores_and_streams(self) -> None:
        payload = {"clientName": "Sara", "phoneNumber": "0791234567", "totalAmount": "150", "items": []}

        status, headers, body = self._request("POST", "/generate-pdf", payload)

        self.assertEqual(status, 200)
        self.assertEqual(headers["Content-Type"], "application/pdf")
        self.assertTrue(body.startswith(b"%PDF"))
        self.assertEqual(headers["X-Invoice-Number"], "INV-1")
        self.assertNotIn("X-Invoice-Storage", headers)

        _, _, listing = self._request("GET", "/api/invoices")
        data = json.loads(listing)
        self.assertEqual(data["stats"]["totalSales"], 1)
        self.assertEqual(data["stats"]["totalAmount"], 150.0)
        self.assertEqual(data["invoices"][0]["clientName"], "Sara")

        record_id = data["invoices"][0]["id"]
        status, _, single = self._request("GET", f"/api/invoice/{record_id}")
        self.assertEqual(status, 200)
        self.assertEqual(json.loads(single)["invoiceNumber"], "INV-1")

    @unittest.skipUnless(RENDER_AVAILABLE, "render dependencies are not installed")
    def test_send_whatsapp_publishes_temp_pdf(self) -> None:
        status, _, body = self._request("POST", "/send-whatsapp", {"phoneNumber": "0791234567", "items": []})

        self.assertEqual(status, 200)
        result = json.loads(body)
        self.assertTrue(result["success"])
        self.assertEqual(result["fileName"], "invoice-INV-1.pdf")
        self.assertEqual(result["pdfUrl"], "http://invoices.test/temp-pdf/invoice-INV-1.pdf")
        self.assertEqual(result["messageSid"], "SM1")
        self.assertEqual(self.relay.sent[0][0]["invoiceNumber"], "INV-1")

        status, headers, document = self._request("GET", "/temp-pdf/invoice-INV-1.pdf")
        self.assertEqual(status, 200)
        self.assertTrue(document.startswith(b"%PDF"))
        self.assertIn("invoice-INV-1.pdf", headers["Content-Disposition"])

    @unittest.skipUnless(RENDER_AVAILABLE, "render dependencies are not installed")
    def test_relay_failure_reports_bad_gateway(self) -> None:
        self.relay.error = RelayError("Invalid phone number format", code=21211, status=400)

        status, _, body = self._request("POST", "/send-whatsapp", {"phoneNumber": "1", "items": []})

        self.assertEqual(status, 502)
        result = json.loads(body)
        self.assertFalse(result["success"])
        self.assertEqual(result["code"], 21211)
        self.assertTrue(result["stored"])

    def test_phone_export_downloads(self) -> None:
        status, headers, body = self._request("GET", "/admin-export-phones")

        self.assertEqual(status, 200)
        self.assertIn("phone-numbers.txt", headers["Content-Disposition"])
        self.assertEqual(body, b"")


@unittest.skipUnless(RENDER_AVAILABLE, "render dependencies are not installed")
class StorageFailureTests(ServerTestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        blocker = os.path.join(self.tmp.name, "blocker")
        with open(blocker, "w", encoding="utf-8") as fh:
            fh.write("")
        self._start_server(os.path.join(blocker, "database.json"))

    def test_generate_pdf_still_returns_document(self) -> None:
        status, headers, body = self._request("POST", "/generate-pdf", {"clientName": "Sara", "items": []})

        self.assertEqual(status, 200)
        self.assertTrue(body.startswith(b"%PDF"))
        self.assertEqual(headers["X-Invoice-Storage"], "storage_write_failure")
        self.assertEqual(headers["X-Invoice-Number"], "INV-1")

    def test_send_whatsapp_reports_unsaved_invoice(self) -> None:
        status, _, body = self._request("POST", "/send-whatsapp", {"phoneNumber": "0791234567", "items": []})

        self.assertEqual(status, 200)
        result = json.loads(body)
        self.assertTrue(result["success"])
        self.assertFalse(result["stored"])
        self.assertEqual(result["storageError"]["error"], "storage_write_failure")
        self.assertEqual(len(self.relay.sent), 1)


if __name__ == "__main__":
    unittest.main()
