"""Formatting, parsing and text-measurement helpers."""

from __future__ import annotations

import math
import re
from typing import Any, List, Protocol

RTL_PATTERN = re.compile("[\\u0600-\\u06FF\\u0750-\\u077F]")
LEADING_NUMBER = re.compile(r"\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)")
NON_DIGITS = re.compile(r"\D")
# Longest digit run still read as an invoice counter.
MAX_SUFFIX_DIGITS = 15

ADAPTIVE_LENGTH_THRESHOLD = 22
ADAPTIVE_SHRINK = 2
ADAPTIVE_MIN_SIZE = 7
ELLIPSIS = "..."


class TextWidthProvider(Protocol):
    def text_width(self, text: str, size: float, bold: bool = False) -> float:
        ...


def display(value: Any) -> str:
    """Render an optional input value as display text; ``None`` becomes ``""``."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return fmt_number(value)
    return str(value)


def fmt_number(value: Any) -> str:
    try:
        number = float(value)
        if number.is_integer():
            return str(int(number))
        return str(number)
    except Exception:
        return str(value)


def fmt_money(amount: float, symbol: str = "$") -> str:
    return f"{symbol}{amount:,.2f}"


def parse_amount(value: Any, default: float = 0.0) -> float:
    """Parse the leading decimal number of ``value``; anything else is ``default``.

    ``"12.5 JOD"`` parses as 12.5, ``"abc"`` and ``None`` as the default.
    Non-finite values are treated as unparseable.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = LEADING_NUMBER.match(str(value))
        if not match:
            return default
        try:
            number = float(match.group(1))
        except ValueError:
            return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def invoice_number_suffix(invoice_number: Any) -> int:
    """Digits of an invoice number read as one integer (``"INV-12"`` -> 12).

    Numbers with no digits, or more than ``MAX_SUFFIX_DIGITS`` of them, count as 0.
    """
    digits = NON_DIGITS.sub("", display(invoice_number))
    if not digits or len(digits) > MAX_SUFFIX_DIGITS:
        return 0
    return int(digits)


def contains_rtl(text: str) -> bool:
    return bool(text) and RTL_PATTERN.search(text) is not None


def adaptive_font_size(text: str, base_size: float) -> float:
    if text and len(text) > ADAPTIVE_LENGTH_THRESHOLD:
        return max(ADAPTIVE_MIN_SIZE, base_size - ADAPTIVE_SHRINK)
    return base_size


def wrap_text(
    fonts_obj: TextWidthProvider,
    text: str,
    max_width: float,
    font_size: float,
    bold: bool = False,
) -> List[str]:
    def line_width(value: str) -> float:
        return fonts_obj.text_width(value, font_size, bold=bold)

    def wrap_paragraph(paragraph: str) -> List[str]:
        words = paragraph.split()
        if not words:
            return []

        lines: List[str] = []
        current = ""
        for word in words:
            candidate = word if not current else f"{current} {word}"
            if line_width(candidate) <= max_width:
                current = candidate
                continue

            if current:
                lines.append(current)
                current = word
                if line_width(word) <= max_width:
                    continue

            chunk = ""
            for char in word:
                candidate_chunk = chunk + char
                if chunk and line_width(candidate_chunk) > max_width:
                    lines.append(chunk)
                    chunk = char
                else:
                    chunk = candidate_chunk
            current = chunk

        if current:
            lines.append(current)
        return lines

    result: List[str] = []
    for paragraph in text.split("\n"):
        result.extend(wrap_paragraph(paragraph))
    return result


def ellipsize(
    fonts_obj: TextWidthProvider,
    text: str,
    max_width: float,
    font_size: float,
    bold: bool = False,
) -> str:
    """Cut ``text`` so that it plus a trailing ellipsis fits ``max_width``."""
    if fonts_obj.text_width(text + ELLIPSIS, font_size, bold=bold) <= max_width:
        return text + ELLIPSIS
    cut = text
    while cut and fonts_obj.text_width(cut.rstrip() + ELLIPSIS, font_size, bold=bold) > max_width:
        cut = cut[:-1]
    return cut.rstrip() + ELLIPSIS


def fit_lines(
    fonts_obj: TextWidthProvider,
    text: str,
    max_width: float,
    max_lines: int,
    font_size: float,
    bold: bool = False,
) -> List[str]:
    """Wrap ``text`` into at most ``max_lines`` lines, ellipsizing the last one on overflow."""
    lines = wrap_text(fonts_obj, text, max_width, font_size, bold=bold)
    max_lines = max(1, max_lines)
    if len(lines) <= max_lines:
        return lines
    kept = lines[:max_lines]
    kept[-1] = ellipsize(fonts_obj, kept[-1], max_width, font_size, bold=bold)
    return kept
