"""Invoice PDF rendering logic."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from dateutil import parser as dateutil_parser
from fpdf import FPDF  # type: ignore

from . import config
from .fonts import FontManager
from .formatting import display
from .layout import Canvas, CellStyle
from .models import InvoiceRecord, LineItem
from .pdf_constants import (
    ACCENT_RULE_WIDTH,
    COLOR_ACCENT,
    COLOR_BLACK,
    COLOR_LIGHT_GRAY,
    COLOR_MUTED,
    COLOR_PRIMARY,
    COLOR_WHITE,
    CONTENT_RIGHT,
    CONTENT_W,
    DATE_TABLE_GAP,
    DELIVERY_LABEL_W,
    DELIVERY_VALUE_W,
    DELIVERY_X,
    FIELD_H,
    FIELD_LABEL_W,
    FIELD_VALUE_W,
    FONT_SIZE_FIELD,
    FONT_SIZE_FOOTER,
    FONT_SIZE_ITEM,
    FONT_SIZE_NOTES,
    FONT_SIZE_NOTES_LABEL,
    FONT_SIZE_NUMBER,
    FONT_SIZE_PLACEHOLDER,
    FONT_SIZE_SIGNATURE,
    FONT_SIZE_TITLE,
    FOOTER_LINE_GAP,
    FOOTER_LINES,
    FOOTER_OFFSET,
    HEADER_BLOCK_H,
    HEADER_FIELDS_GAP,
    LOGO_H,
    LOGO_W,
    MARGIN_LEFT,
    NOTES_BOX_H,
    NOTES_OFFSET,
    NOTES_TEXT_H,
    NOTES_TEXT_W,
    SIGNATURE_LEFT_END,
    SIGNATURE_NAME_OFFSET,
    SIGNATURE_OFFSET,
    SIGNATURE_RIGHT_X,
    SIGNATURE_RULE_OFFSET,
    SIGNATURE_RULE_WIDTH,
    SUMMARY_LABEL_W,
    SUMMARY_VALUE_W,
    TABLE,
    TITLE_TEXT,
    TITLE_X,
    TOP_Y,
    TableLayout,
)

# Used when the input carries no timestamp, so output stays reproducible.
FALLBACK_CREATION_DATE = datetime(2000, 1, 1, tzinfo=timezone.utc)

LABEL_STYLE = CellStyle(
    align="center",
    bold=True,
    font_size=FONT_SIZE_FIELD,
    text_color=COLOR_PRIMARY,
    fill_color=COLOR_LIGHT_GRAY,
)
VALUE_STYLE = CellStyle(font_size=FONT_SIZE_FIELD)
HEADER_STYLE = CellStyle(
    align="center",
    bold=True,
    font_size=FONT_SIZE_FIELD,
    text_color=COLOR_WHITE,
    fill_color=COLOR_PRIMARY,
)
ITEM_STYLE = CellStyle(font_size=FONT_SIZE_ITEM)
NOTES_STYLE = CellStyle(font_size=FONT_SIZE_NOTES, fill_color=None, border_color=None, padding=0, wrap=True)

InvoiceInput = Union[InvoiceRecord, Mapping[str, Any]]


def table_rows(items: Sequence[LineItem], layout: TableLayout = TABLE) -> List[Optional[LineItem]]:
    """Exactly ``layout.row_capacity`` rows: items in order, blanks after, extras dropped."""
    rows: List[Optional[LineItem]] = list(items[: layout.row_capacity])
    rows.extend([None] * (layout.row_capacity - len(rows)))
    return rows


def creation_date(raw: str) -> datetime:
    if not raw:
        return FALLBACK_CREATION_DATE
    try:
        parsed = dateutil_parser.isoparse(raw)
    except (ValueError, OverflowError):
        return FALLBACK_CREATION_DATE
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class InvoiceRenderer:
    """Lays out one fixed-template A4 invoice page.

    The only state is the vertical cursor ``y``; everything drawn derives from
    the input data and the constants in ``pdf_constants``.
    """

    def __init__(
        self,
        data: InvoiceInput,
        logo_path: Optional[str] = None,
        watermark_path: Optional[str] = None,
        table: TableLayout = TABLE,
    ) -> None:
        if isinstance(data, InvoiceRecord):
            data = data.to_dict()
        self.data: Dict[str, Any] = dict(data)
        self.logo_path = config.LOGO_PATH if logo_path is None else logo_path
        self.watermark_path = config.WATERMARK_PATH if watermark_path is None else watermark_path
        self.table = table

        self.pdf = FPDF(orientation="P", unit="pt", format="A4")
        self.pdf.set_auto_page_break(False)
        self.pdf.creation_date = creation_date(self._field("timestamp"))
        self.pdf.add_page()

        self.fonts = FontManager(self.pdf)
        self.canvas = Canvas(self.pdf, self.fonts)
        raw_items = self.data.get("items") or []
        if not isinstance(raw_items, list):
            raw_items = []
        self.items = [LineItem.from_dict(item) for item in raw_items]
        self.y = TOP_Y

    def _field(self, name: str) -> str:
        return display(self.data.get(name))

    def _label_value(self, x: float, y: float, label: str, value: str, label_w: float, value_w: float, height: float) -> None:
        self.canvas.draw_cell(x, y, label_w, height, label, LABEL_STYLE)
        self.canvas.draw_cell(x + label_w, y, value_w, height, value, VALUE_STYLE)

    def _field_pair(self, y: float, left: tuple, right: tuple) -> None:
        left_label, left_value = left
        right_label, right_value = right
        self._label_value(MARGIN_LEFT, y, left_label, left_value, FIELD_LABEL_W, FIELD_VALUE_W, FIELD_H)
        self._label_value(
            MARGIN_LEFT + FIELD_LABEL_W + FIELD_VALUE_W,
            y,
            right_label,
            right_value,
            FIELD_LABEL_W,
            FIELD_VALUE_W,
            FIELD_H,
        )

    def _draw_header(self) -> None:
        self.canvas.rule(MARGIN_LEFT, self.y, CONTENT_RIGHT, self.y, COLOR_ACCENT, ACCENT_RULE_WIDTH)
        self.y += 10

        self.fonts.draw_text(
            TITLE_X,
            self.y + 10 + FONT_SIZE_TITLE * 0.8,
            TITLE_TEXT,
            FONT_SIZE_TITLE,
            COLOR_PRIMARY,
            bold=True,
        )
        self.fonts.draw_text(
            TITLE_X,
            self.y + 35 + FONT_SIZE_NUMBER * 0.8,
            f"Invoice #: {self._field('invoiceNumber')}",
            FONT_SIZE_NUMBER,
            COLOR_MUTED,
        )
        self.canvas.draw_logo(self.logo_path, MARGIN_LEFT, self.y + 10, LOGO_W, LOGO_H, FONT_SIZE_PLACEHOLDER)
        self.y += HEADER_BLOCK_H

    def _draw_client_fields(self) -> None:
        pairs = [
            (("Client Name:", self._field("clientName")), ("Phone Number:", self._field("phoneNumber"))),
            (("Address:", self._field("address")), ("Account Number:", self._field("accountNumber"))),
            (("Address Title:", self._field("addressTitle")), ("Entry Number:", self._field("entryNumber"))),
        ]
        for left, right in pairs:
            self._field_pair(self.y, left, right)
            self.y += FIELD_H
        self.y += HEADER_FIELDS_GAP

        self._field_pair(self.y, ("Day:", self._field("day")), ("Date:", self._field("date")))
        self.y += FIELD_H + DATE_TABLE_GAP

    def _draw_table(self) -> None:
        table = self.table
        x = MARGIN_LEFT
        for header, width in zip(table.headers, table.column_widths):
            self.canvas.draw_cell(x, self.y, width, table.header_height, header, HEADER_STYLE)
            x += width
        self.y += table.header_height

        for item in table_rows(self.items, table):
            values = item.to_dict().values() if item is not None else [""] * len(table.headers)
            x = MARGIN_LEFT
            for column, (value, width, align) in enumerate(zip(values, table.column_widths, table.column_aligns)):
                style = ITEM_STYLE.with_(align=align)
                if column == table.description_column:
                    style = style.with_(description=True)
                self.canvas.draw_cell(x, self.y, width, table.row_height, value, style)
                x += width
            self.y += table.row_height

    def _draw_summary(self) -> None:
        y = self.y
        amounts = [
            ("Total Amount:", self._field("totalAmount")),
            ("Amount Received:", self._field("amountReceived")),
            ("Remaining Amount:", self._field("remainingAmount")),
        ]
        for i, (label, value) in enumerate(amounts):
            row_y = y + i * FIELD_H
            self.canvas.draw_cell(MARGIN_LEFT, row_y, SUMMARY_LABEL_W, FIELD_H, label, LABEL_STYLE)
            self.canvas.draw_cell(
                MARGIN_LEFT + SUMMARY_LABEL_W,
                row_y,
                SUMMARY_VALUE_W,
                FIELD_H,
                value,
                VALUE_STYLE.with_(align="right"),
            )

        self._label_value(
            DELIVERY_X, y, "Delivery Day:", self._field("deliveryDay"), DELIVERY_LABEL_W, DELIVERY_VALUE_W, FIELD_H
        )
        self._label_value(
            DELIVERY_X,
            y + FIELD_H,
            "Delivery Date:",
            self._field("deliveryDate"),
            DELIVERY_LABEL_W,
            DELIVERY_VALUE_W,
            FIELD_H * 2,
        )
        self.y = y + NOTES_OFFSET

    def _draw_notes(self) -> None:
        y = self.y
        self.canvas.box(MARGIN_LEFT, y + 10, CONTENT_W, NOTES_BOX_H, border=COLOR_BLACK)
        self.canvas.box(MARGIN_LEFT + 10, y + 5, 40, 10, fill=COLOR_WHITE)
        self.fonts.draw_text(
            MARGIN_LEFT + 15,
            y + 7 + FONT_SIZE_NOTES_LABEL * 0.8,
            "Notes:",
            FONT_SIZE_NOTES_LABEL,
            COLOR_PRIMARY,
            bold=True,
        )
        self.canvas.text_block(MARGIN_LEFT + 10, y + 20, NOTES_TEXT_W, NOTES_TEXT_H, self._field("notes"), NOTES_STYLE)
        self.y = y + FOOTER_OFFSET

    def _draw_footer(self) -> None:
        for i, line in enumerate(FOOTER_LINES):
            self.fonts.draw_text(
                MARGIN_LEFT,
                self.y + i * FOOTER_LINE_GAP + FONT_SIZE_FOOTER * 0.8,
                line,
                FONT_SIZE_FOOTER,
                COLOR_BLACK,
            )
        self.y += SIGNATURE_OFFSET

    def _draw_signatures(self) -> None:
        y = self.y
        label_baseline = y + FONT_SIZE_SIGNATURE * 0.8
        self.fonts.draw_text(MARGIN_LEFT, label_baseline, "Client Approval:", FONT_SIZE_SIGNATURE, COLOR_PRIMARY, bold=True)
        self.fonts.draw_text(
            SIGNATURE_RIGHT_X, label_baseline, "Sales Representative:", FONT_SIZE_SIGNATURE, COLOR_PRIMARY, bold=True
        )

        rule_y = y + SIGNATURE_RULE_OFFSET
        self.canvas.rule(MARGIN_LEFT, rule_y, SIGNATURE_LEFT_END, rule_y, COLOR_ACCENT, SIGNATURE_RULE_WIDTH)
        self.canvas.rule(SIGNATURE_RIGHT_X, rule_y, CONTENT_RIGHT, rule_y, COLOR_ACCENT, SIGNATURE_RULE_WIDTH)

        representative = self._field("salesRepresentative")
        if representative:
            self.canvas.text_block(
                SIGNATURE_RIGHT_X,
                y + SIGNATURE_NAME_OFFSET,
                CONTENT_RIGHT - SIGNATURE_RIGHT_X,
                FONT_SIZE_SIGNATURE,
                representative,
                CellStyle(
                    align="center",
                    italic=True,
                    font_size=FONT_SIZE_SIGNATURE,
                    text_color=COLOR_PRIMARY,
                    fill_color=None,
                    border_color=None,
                    padding=0,
                    rtl_right=False,
                ),
            )

    def compose(self) -> None:
        self._draw_header()
        self._draw_client_fields()
        self._draw_table()
        self._draw_summary()
        self._draw_notes()
        self._draw_footer()
        self._draw_signatures()
        # Last, so it composites over everything else.
        self.canvas.draw_watermark(self.watermark_path)

    def render(self) -> bytes:
        self.compose()
        pdf_blob = self.pdf.output()
        if isinstance(pdf_blob, (bytes, bytearray)):
            return bytes(pdf_blob)
        raise RuntimeError(f"Unexpected PDF output type: {type(pdf_blob).__name__}")


def render_invoice(data: InvoiceInput) -> bytes:
    return InvoiceRenderer(data).render()
