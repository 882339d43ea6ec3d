"""Cell and box drawing primitives over an absolute-coordinate PDF page."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import List, Optional

import arabic_reshaper  # type: ignore
from bidi.algorithm import get_display  # type: ignore
from fpdf import FPDF  # type: ignore
from PIL import Image

from .fonts import FontManager
from .formatting import adaptive_font_size, contains_rtl, fit_lines
from .pdf_constants import (
    BORDER_WIDTH,
    CELL_PADDING,
    COLOR_BLACK,
    COLOR_MUTED,
    COLOR_PLACEHOLDER,
    COLOR_WHITE,
    LINE_HEIGHT_FACTOR,
    PAGE_W,
    PLACEHOLDER_TEXT,
    WATERMARK_AREA_H,
    WATERMARK_MARGIN_X,
    WATERMARK_MARGIN_Y,
    WATERMARK_OPACITY,
    Color,
)

logger = logging.getLogger(__name__)

ALIGNMENTS = ("left", "center", "right")


@dataclass(frozen=True)
class CellStyle:
    align: str = "left"
    bold: bool = False
    italic: bool = False
    font_size: float = 10
    text_color: Color = COLOR_BLACK
    fill_color: Optional[Color] = COLOR_WHITE
    border_color: Optional[Color] = COLOR_BLACK
    padding: float = CELL_PADDING
    wrap: bool = False
    description: bool = False
    rtl_right: bool = True

    def with_(self, **changes) -> "CellStyle":
        return replace(self, **changes)


@dataclass(frozen=True)
class TextPlacement:
    """How a piece of text will be placed: resolved size, alignment and direction."""

    text: str
    font_size: float
    align: str
    rtl: bool
    shaped: bool
    wrap: bool


def plan_text(text: str, style: CellStyle) -> TextPlacement:
    """Resolve alignment, size and bidi handling for ``text`` drawn in ``style``.

    Right-to-left script enables bidi shaping and, unless the style opts out,
    forces right alignment. Description cells shrink long text by a fixed step.
    """
    rtl = contains_rtl(text)
    size = adaptive_font_size(text, style.font_size) if style.description else style.font_size
    align = style.align if style.align in ALIGNMENTS else "left"
    if rtl and style.rtl_right:
        align = "right"
    return TextPlacement(
        text=text,
        font_size=size,
        align=align,
        rtl=rtl,
        shaped=rtl,
        wrap=style.wrap or style.description,
    )


def shape_rtl(text: str) -> str:
    """Reshape Arabic letters and reorder the line into visual order."""
    return get_display(arabic_reshaper.reshape(text))


class _FaceWidth:
    """Measures text in the face that will actually draw it."""

    def __init__(self, fonts: FontManager, rtl: bool) -> None:
        self.fonts = fonts
        self.rtl = rtl

    def text_width(self, text: str, size: float, bold: bool = False) -> float:
        return self.fonts.text_width(text, size, bold=bold, rtl=self.rtl)


def image_usable(path: Optional[str]) -> bool:
    if not path or not os.path.exists(path):
        return False
    try:
        with Image.open(path) as img:
            img.verify()
    except Exception as exc:
        logger.warning("Ignoring unreadable image %s: %s", path, exc)
        return False
    return True


class Canvas:
    def __init__(self, pdf: FPDF, fonts: FontManager) -> None:
        self.pdf = pdf
        self.fonts = fonts

    def rule(self, x1: float, y1: float, x2: float, y2: float, color: Color, width: float) -> None:
        self.pdf.set_draw_color(*color)
        self.pdf.set_line_width(width)
        self.pdf.line(x1, y1, x2, y2)

    def box(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        fill: Optional[Color] = None,
        border: Optional[Color] = None,
    ) -> None:
        if fill is not None:
            self.pdf.set_fill_color(*fill)
            self.pdf.rect(x, y, width, height, style="F")
        if border is not None:
            self.pdf.set_draw_color(*border)
            self.pdf.set_line_width(BORDER_WIDTH)
            self.pdf.rect(x, y, width, height, style="D")

    def _line_x(self, x: float, width: float, line: str, placement: TextPlacement, style: CellStyle) -> float:
        if placement.align == "left":
            return x + style.padding
        line_w = self.fonts.text_width(line, placement.font_size, bold=style.bold, rtl=placement.rtl)
        if placement.align == "center":
            return x + (width - line_w) / 2.0
        return x + width - line_w - style.padding

    def wrapped_lines(self, text: str, width: float, height: float, style: CellStyle) -> List[str]:
        """Lines a wrapping cell shows for ``text``, in logical order."""
        placement = plan_text(text, style)
        line_h = placement.font_size * LINE_HEIGHT_FACTOR
        max_lines = int((height - style.padding * 2) // line_h)
        measure = _FaceWidth(self.fonts, placement.rtl)
        return fit_lines(
            measure,
            text,
            width - style.padding * 2,
            max_lines,
            placement.font_size,
            bold=style.bold,
        )

    def text_block(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        text: str,
        style: CellStyle,
    ) -> TextPlacement:
        """Draw ``text`` inside a box without drawing the box itself."""
        placement = plan_text(text, style)
        if not text:
            return placement
        size = placement.font_size

        if placement.wrap:
            line_h = size * LINE_HEIGHT_FACTOR
            lines = self.wrapped_lines(text, width, height, style)
            baseline = y + style.padding + size * 0.8
        else:
            lines = [text]
            line_h = 0.0
            baseline = y + height / 2.0 + size * 0.35

        for i, line in enumerate(lines):
            visual = shape_rtl(line) if placement.shaped else line
            self.fonts.draw_text(
                self._line_x(x, width, visual, placement, style),
                baseline + i * line_h,
                visual,
                size,
                style.text_color,
                bold=style.bold,
                italic=style.italic,
                rtl=placement.rtl,
            )
        return placement

    def draw_cell(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        text: str,
        style: CellStyle,
    ) -> TextPlacement:
        self.box(x, y, width, height, fill=style.fill_color, border=style.border_color)
        return self.text_block(x, y, width, height, text, style)

    def draw_logo(self, path: Optional[str], x: float, y: float, width: float, height: float, label_size: float) -> bool:
        """Draw the logo image, or a labelled placeholder box. Returns True if the image was used."""
        if image_usable(path):
            self.pdf.image(path, x, y, w=width)
            return True
        self.box(x, y, width, height, fill=COLOR_PLACEHOLDER)
        self.text_block(
            x,
            y,
            width,
            height,
            PLACEHOLDER_TEXT,
            CellStyle(
                align="center",
                font_size=label_size,
                text_color=COLOR_MUTED,
                fill_color=None,
                border_color=None,
            ),
        )
        return False

    def draw_watermark(self, path: Optional[str]) -> bool:
        """Overlay ``path`` centered on the page at low opacity; skipped if unusable."""
        if not image_usable(path):
            return False
        width = PAGE_W - WATERMARK_MARGIN_X
        height = WATERMARK_AREA_H - WATERMARK_MARGIN_Y
        x = (PAGE_W - width) / 2.0
        y = (WATERMARK_AREA_H - height) / 2.0
        with self.pdf.local_context(fill_opacity=WATERMARK_OPACITY, stroke_opacity=WATERMARK_OPACITY):
            self.pdf.image(path, x, y, w=width, h=height, keep_aspect_ratio=True)
        return True
