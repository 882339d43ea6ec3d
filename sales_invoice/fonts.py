"""Font discovery and text rendering helpers."""

from __future__ import annotations

import logging
import os
from typing import List, Optional, Tuple

from fpdf import FPDF  # type: ignore

from .config import ASSETS_DIR

logger = logging.getLogger(__name__)

FONTS_DIR = os.path.join(ASSETS_DIR, "fonts")

# Substitutes for characters outside the built-in fonts' Latin-1 range.
CORE_FONT_SUBSTITUTES = str.maketrans({"•": "-", "…": "...", "‘": "'", "’": "'", "“": '"', "”": '"'})


def find_font_path(env_var: str, candidates: List[str]) -> Optional[str]:
    override = os.getenv(env_var)
    if override and os.path.exists(override):
        return override

    for path in candidates:
        if os.path.exists(path):
            return path
    return None


class FontManager:
    """Registers the invoice faces on a document and draws text with them.

    A Unicode face (DejaVu Sans) is preferred; without one the built-in Times
    family is used and text is reduced to Latin-1. An Arabic face is optional
    and only used for right-to-left text.
    """

    FAMILY = "InvoiceFont"
    ARABIC_FAMILY = "InvoiceArabic"
    CORE_FAMILY = "Times"
    BUNDLED_REGULAR = os.path.join(FONTS_DIR, "DejaVuSans.ttf")
    BUNDLED_BOLD = os.path.join(FONTS_DIR, "DejaVuSans-Bold.ttf")
    BUNDLED_ITALIC = os.path.join(FONTS_DIR, "DejaVuSans-Oblique.ttf")
    BUNDLED_ARABIC = os.path.join(FONTS_DIR, "NotoNaskhArabic-Regular.ttf")
    SYSTEM_REGULAR_CANDIDATES = [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/dejavu/DejaVuSans.ttf",
        "/Library/Fonts/DejaVuSans.ttf",
    ]
    SYSTEM_BOLD_CANDIDATES = [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf",
        "/Library/Fonts/DejaVuSans-Bold.ttf",
    ]
    SYSTEM_ITALIC_CANDIDATES = [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Oblique.ttf",
        "/usr/share/fonts/dejavu/DejaVuSans-Oblique.ttf",
    ]
    SYSTEM_ARABIC_CANDIDATES = [
        "/usr/share/fonts/truetype/noto/NotoNaskhArabic-Regular.ttf",
        "/usr/share/fonts/noto/NotoNaskhArabic-Regular.ttf",
    ]

    def __init__(self, pdf: FPDF) -> None:
        self.pdf = pdf
        self.has_arabic = False

        regular_path = find_font_path(
            "INVOICE_FONT_PATH",
            [self.BUNDLED_REGULAR, *self.SYSTEM_REGULAR_CANDIDATES],
        )
        if regular_path:
            self.family = self.FAMILY
            self.unicode = True
            self.pdf.add_font(self.FAMILY, style="", fname=regular_path)
            self.has_bold = self._register_optional(
                "B", "INVOICE_FONT_BOLD_PATH", [self.BUNDLED_BOLD, *self.SYSTEM_BOLD_CANDIDATES]
            )
            self.has_italic = self._register_optional(
                "I", "INVOICE_FONT_ITALIC_PATH", [self.BUNDLED_ITALIC, *self.SYSTEM_ITALIC_CANDIDATES]
            )
        else:
            logger.warning("Unicode font not found, falling back to built-in %s", self.CORE_FAMILY)
            self.family = self.CORE_FAMILY
            self.unicode = False
            self.has_bold = True
            self.has_italic = True

        arabic_path = find_font_path(
            "INVOICE_ARABIC_FONT_PATH",
            [self.BUNDLED_ARABIC, *self.SYSTEM_ARABIC_CANDIDATES],
        )
        if arabic_path:
            self.pdf.add_font(self.ARABIC_FAMILY, style="", fname=arabic_path)
            self.has_arabic = True

    def _register_optional(self, style: str, env_var: str, candidates: List[str]) -> bool:
        path = find_font_path(env_var, candidates)
        if not path:
            return False
        self.pdf.add_font(self.FAMILY, style=style, fname=path)
        return True

    def _select(self, size: float, bold: bool = False, italic: bool = False, rtl: bool = False) -> bool:
        """Set the current font; returns True when bold must be emulated."""
        if rtl and self.has_arabic:
            self.pdf.set_font(self.ARABIC_FAMILY, "", size)
            return False
        style = ""
        if bold and self.has_bold:
            style += "B"
        if italic and self.has_italic:
            style += "I"
        self.pdf.set_font(self.family, style, size)
        return bold and not self.has_bold

    def encode(self, text: str, rtl: bool = False) -> str:
        if self.unicode or (rtl and self.has_arabic):
            return text
        return text.translate(CORE_FONT_SUBSTITUTES).encode("latin-1", "replace").decode("latin-1")

    def text_width(self, text: str, size: float, bold: bool = False, rtl: bool = False) -> float:
        self._select(size, bold=bold, rtl=rtl)
        return self.pdf.get_string_width(self.encode(text, rtl))

    def draw_text(
        self,
        x: float,
        y: float,
        text: str,
        size: float,
        color: Tuple[int, int, int],
        bold: bool = False,
        italic: bool = False,
        rtl: bool = False,
    ) -> None:
        self.pdf.set_text_color(*color)
        emulate_bold = self._select(size, bold=bold, italic=italic, rtl=rtl)
        text = self.encode(text, rtl)
        if emulate_bold:
            self.pdf.text(x, y, text)
            self.pdf.text(x + 0.4, y, text)
        else:
            self.pdf.text(x, y, text)
