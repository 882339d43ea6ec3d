import io
import os
import tempfile
import unittest
from importlib import util as importlib_util
from unittest.mock import patch

RENDER_AVAILABLE = all(
    importlib_util.find_spec(name) is not None for name in ("fpdf", "PIL", "arabic_reshaper", "bidi")
)
if RENDER_AVAILABLE:
    from fpdf import FPDF
    from PIL import Image

    from sales_invoice.fonts import FontManager
    from sales_invoice.layout import Canvas, CellStyle, plan_text
    from sales_invoice.models import LineItem
    from sales_invoice.rendering import InvoiceRenderer, render_invoice, table_rows
    from sales_invoice.sinks import BufferSink, StreamSink, render_to_buffer, render_to_stream


def sample_invoice(item_count: int = 3) -> dict:
    return {
        "invoiceNumber": "INV-7",
        "timestamp": "2026-01-15T09:30:00.000Z",
        "clientName": "Sara Haddad",
        "phoneNumber": "0791234567",
        "address": "Amman",
        "date": "2026-01-15",
        "day": "Thursday",
        "totalAmount": "1,200.00",
        "amountReceived": "200.00",
        "remainingAmount": "1,000.00",
        "salesRepresentative": "Omar",
        "deliveryDate": "2026-02-01",
        "deliveryDay": "Sunday",
        "notes": "Deliver after 5 pm",
        "items": [
            {"code": f"C{i}", "description": f"Item {i}", "qty": "1", "price": "100", "discount": "0", "finalPrice": "100"}
            for i in range(item_count)
        ],
    }


class FakeChannel:
    def __init__(self) -> None:
        self.status = None
        self.headers = {}
        self.wfile = io.BytesIO()

    def send_response(self, code: int, message=None) -> None:
        self.status = code

    def send_header(self, keyword: str, value: str) -> None:
        self.headers[keyword] = value

    def end_headers(self) -> None:
        pass


@unittest.skipUnless(RENDER_AVAILABLE, "rendering dependencies are not installed")
class TextPlacementTests(unittest.TestCase):
    def test_arabic_description_is_right_aligned_and_shaped(self) -> None:
        placement = plan_text("كنبة جلدية", CellStyle(font_size=8, description=True))

        self.assertEqual(placement.align, "right")
        self.assertTrue(placement.rtl)
        self.assertTrue(placement.shaped)

    def test_latin_description_keeps_default_alignment(self) -> None:
        placement = plan_text("Leather Sofa", CellStyle(font_size=8, description=True))

        self.assertEqual(placement.align, "left")
        self.assertFalse(placement.rtl)
        self.assertFalse(placement.shaped)

    def test_long_description_renders_smaller(self) -> None:
        style = CellStyle(font_size=10, description=True)

        self.assertEqual(plan_text("x" * 30, style).font_size, 8)
        self.assertEqual(plan_text("x" * 10, style).font_size, 10)
        self.assertEqual(plan_text("x" * 30, CellStyle(font_size=10)).font_size, 10)

    def test_size_floor_is_seven_points(self) -> None:
        self.assertEqual(plan_text("x" * 30, CellStyle(font_size=8, description=True)).font_size, 7)

    def test_rtl_alignment_can_be_kept(self) -> None:
        placement = plan_text("عمر", CellStyle(align="center", rtl_right=False))

        self.assertEqual(placement.align, "center")
        self.assertTrue(placement.shaped)


@unittest.skipUnless(RENDER_AVAILABLE, "rendering dependencies are not installed")
class TableTests(unittest.TestCase):
    def test_table_rows_pads_and_truncates(self) -> None:
        items = [LineItem(code=str(i)) for i in range(10)]

        rows = table_rows(items)

        self.assertEqual(len(rows), 8)
        self.assertEqual([row.code for row in rows if row], [str(i) for i in range(8)])

        rows = table_rows(items[:3])
        self.assertEqual(len(rows), 8)
        self.assertEqual(sum(1 for row in rows if row is not None), 3)

    def _description_cells(self, item_count: int) -> list:
        drawn = []
        original = Canvas.draw_cell

        def record(canvas, x, y, width, height, text, style):
            if style.description:
                drawn.append(text)
            return original(canvas, x, y, width, height, text, style)

        with patch.object(Canvas, "draw_cell", autospec=True, side_effect=record):
            render_invoice(sample_invoice(item_count))
        return drawn

    def test_ten_items_render_first_eight(self) -> None:
        self.assertEqual(self._description_cells(10), [f"Item {i}" for i in range(8)])

    def test_three_items_render_five_blank_rows(self) -> None:
        self.assertEqual(
            self._description_cells(3),
            ["Item 0", "Item 1", "Item 2", "", "", "", "", ""],
        )


@unittest.skipUnless(RENDER_AVAILABLE, "rendering dependencies are not installed")
class FontFallbackTests(unittest.TestCase):
    def test_core_font_fallback_reduces_text_to_latin1(self) -> None:
        with patch("sales_invoice.fonts.find_font_path", return_value=None):
            fonts = FontManager(FPDF(unit="pt"))

        self.assertFalse(fonts.unicode)
        self.assertFalse(fonts.has_arabic)
        self.assertEqual(fonts.encode("a \u2022 b\u2026"), "a - b...")
        self.assertEqual(fonts.encode("caf\u00e9"), "caf\u00e9")
        self.assertEqual(fonts.encode("\u0645\u0631\u062d\u0628\u0627"), "?????")


@unittest.skipUnless(RENDER_AVAILABLE, "rendering dependencies are not installed")
class RenderingTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.missing = os.path.join(self.tmp.name, "missing.png")

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def _image(self, name: str) -> str:
        path = os.path.join(self.tmp.name, name)
        Image.new("RGB", (40, 20), (184, 134, 11)).save(path)
        return path

    def test_render_invoice_returns_pdf_bytes(self) -> None:
        pdf = render_invoice(sample_invoice())

        self.assertIsInstance(pdf, bytes)
        self.assertTrue(pdf.startswith(b"%PDF"))
        self.assertGreater(len(pdf), 100)

    def test_rendering_is_deterministic_across_sinks(self) -> None:
        data = sample_invoice()
        first = render_to_buffer(data, logo_path=self.missing, watermark_path=self.missing)
        second = render_to_buffer(data, logo_path=self.missing, watermark_path=self.missing)
        channel = FakeChannel()
        render_to_stream(
            data,
            StreamSink(channel),
            logo_path=self.missing,
            watermark_path=self.missing,
        )

        self.assertEqual(first, second)
        self.assertEqual(first, channel.wfile.getvalue())

    def test_rendering_with_assets_is_deterministic_across_sinks(self) -> None:
        logo = self._image("logo.png")
        watermark = self._image("watermark.png")
        data = sample_invoice()
        data["notes"] = "\u064a\u0631\u062c\u0649 \u0627\u0644\u062a\u0648\u0635\u064a\u0644 \u0628\u0639\u062f \u0627\u0644\u062e\u0627\u0645\u0633\u0629"
        first = render_to_buffer(data, logo_path=logo, watermark_path=watermark)
        channel = FakeChannel()
        render_to_stream(data, StreamSink(channel), logo_path=logo, watermark_path=watermark)

        self.assertEqual(first, channel.wfile.getvalue())
        self.assertIn(b"/ca 0.1", first)

    def test_package_render_matches_module_render(self) -> None:
        import sales_invoice

        self.assertEqual(sales_invoice.render_invoice(sample_invoice()), render_invoice(sample_invoice()))

    def test_stream_sink_sends_attachment_headers(self) -> None:
        channel = FakeChannel()

        render_to_stream(sample_invoice(), StreamSink(channel, {"X-Invoice-Id": "1"}), filename="inv.pdf")

        self.assertEqual(channel.status, 200)
        self.assertEqual(channel.headers["Content-Type"], "application/pdf")
        self.assertEqual(channel.headers["Content-Disposition"], 'attachment; filename="inv.pdf"')
        self.assertEqual(channel.headers["Content-Length"], str(len(channel.wfile.getvalue())))
        self.assertEqual(channel.headers["X-Invoice-Id"], "1")

    def test_buffer_sink_keeps_filename(self) -> None:
        sink = BufferSink()

        render_to_stream(sample_invoice(), sink, filename="a.pdf")

        self.assertEqual(sink.filename, "a.pdf")
        self.assertTrue(sink.getvalue().startswith(b"%PDF"))

    def test_missing_assets_fall_back(self) -> None:
        renderer = InvoiceRenderer(sample_invoice(), logo_path=self.missing, watermark_path=self.missing)

        self.assertFalse(renderer.canvas.draw_logo(self.missing, 50, 50, 130, 65, 14))
        self.assertFalse(renderer.canvas.draw_watermark(self.missing))
        self.assertTrue(renderer.render().startswith(b"%PDF"))

    def test_unreadable_assets_fall_back(self) -> None:
        broken = os.path.join(self.tmp.name, "broken.png")
        with open(broken, "wb") as fh:
            fh.write(b"not an image")

        pdf = render_to_buffer(sample_invoice(), logo_path=broken, watermark_path=broken)

        self.assertTrue(pdf.startswith(b"%PDF"))

    def test_assets_are_drawn_when_present(self) -> None:
        logo = self._image("logo.png")
        watermark = self._image("watermark.png")
        renderer = InvoiceRenderer(sample_invoice(), logo_path=logo, watermark_path=watermark)

        self.assertTrue(renderer.canvas.draw_logo(logo, 50, 50, 130, 65, 14))
        self.assertTrue(renderer.canvas.draw_watermark(watermark))

        with_assets = render_to_buffer(sample_invoice(), logo_path=logo, watermark_path=watermark)
        without = render_to_buffer(sample_invoice(), logo_path=self.missing, watermark_path=self.missing)
        self.assertNotEqual(with_assets, without)

    def test_absent_fields_and_arabic_text_render(self) -> None:
        data = {
            "items": [{"description": "كنبة جلدية فاخرة مع وسائد إضافية"}, None, "bad"],
            "notes": "التسليم بعد الساعة الخامسة",
            "salesRepresentative": "عمر",
        }

        pdf = render_invoice(data)

        self.assertTrue(pdf.startswith(b"%PDF"))


if __name__ == "__main__":
    unittest.main()
