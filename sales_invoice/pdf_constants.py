"""Page geometry, palette and fixed layout configuration (points, top-left origin)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

Color = Tuple[int, int, int]

PAGE_W = 595.28

MARGIN_LEFT = 50.0
CONTENT_RIGHT = 545.0
CONTENT_W = CONTENT_RIGHT - MARGIN_LEFT
TOP_Y = 40.0

COLOR_PRIMARY: Color = (44, 62, 80)
COLOR_ACCENT: Color = (184, 134, 11)
COLOR_LIGHT_GRAY: Color = (248, 249, 250)
COLOR_WHITE: Color = (255, 255, 255)
COLOR_BLACK: Color = (0, 0, 0)
COLOR_MUTED: Color = (102, 102, 102)
COLOR_PLACEHOLDER: Color = (224, 224, 224)

FONT_SIZE_TITLE = 18
FONT_SIZE_NUMBER = 10
FONT_SIZE_FIELD = 9
FONT_SIZE_ITEM = 8
FONT_SIZE_NOTES_LABEL = 10
FONT_SIZE_NOTES = 8
FONT_SIZE_FOOTER = 8
FONT_SIZE_SIGNATURE = 11
FONT_SIZE_PLACEHOLDER = 14

LINE_HEIGHT_FACTOR = 1.15
CELL_PADDING = 5.0
BORDER_WIDTH = 0.5
ACCENT_RULE_WIDTH = 2.0
SIGNATURE_RULE_WIDTH = 1.0

TITLE_X = 380.0
LOGO_W = 130.0
LOGO_H = 65.0

FIELD_LABEL_W = 100.0
FIELD_VALUE_W = 147.5
FIELD_H = 21.0
HEADER_BLOCK_H = 60.0
HEADER_FIELDS_GAP = 12.0
DATE_TABLE_GAP = 10.0

SUMMARY_LABEL_W = 120.0
SUMMARY_VALUE_W = 100.0
DELIVERY_X = 330.0
DELIVERY_LABEL_W = 110.0
DELIVERY_VALUE_W = 105.0

NOTES_OFFSET = 65.0
NOTES_BOX_H = 55.0
NOTES_TEXT_W = 480.0
NOTES_TEXT_H = 40.0

FOOTER_OFFSET = 70.0
FOOTER_LINE_GAP = 15.0
SIGNATURE_OFFSET = 45.0
SIGNATURE_RULE_OFFSET = 30.0
SIGNATURE_NAME_OFFSET = 15.0
SIGNATURE_RIGHT_X = 300.0
SIGNATURE_LEFT_END = 250.0

WATERMARK_OPACITY = 0.10
WATERMARK_AREA_H = 701.89
WATERMARK_MARGIN_X = 30.0
WATERMARK_MARGIN_Y = 80.0

TITLE_TEXT = "SALES INVOICE"
PLACEHOLDER_TEXT = "LOGO"
FOOTER_LINES = (
    "• After reviewing all form items, I confirm my approval of everything mentioned.",
    "• Sold goods are non-returnable and non-exchangeable",
    "• Deposit is non-refundable",
)


@dataclass(frozen=True)
class TableLayout:
    """Geometry of the line-item table: fixed columns and a fixed row capacity."""

    headers: Tuple[str, ...] = ("Code", "Description", "Qty", "Price", "Disc %", "Final Price")
    column_widths: Tuple[float, ...] = (60.0, 220.0, 40.0, 50.0, 50.0, 75.0)
    column_aligns: Tuple[str, ...] = ("left", "left", "center", "right", "center", "right")
    row_capacity: int = 8
    header_height: float = 23.0
    row_height: float = 23.0
    description_column: int = 1


TABLE = TableLayout()
