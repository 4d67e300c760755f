"""Normalize price and interest values across payload shapes."""

from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any

_CURRENCY_SYMBOLS = "$£€"
_TEXT_PRICE = re.compile(r"[$£€]\s?(\d[\d,]*(?:\.\d{2})?)")
_FORMATTED_CLEANUP = re.compile(r"[^\d.\-]")


def _to_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and math.isfinite(value):
        return float(value)
    return None


def parse_formatted(value: Any) -> float | None:
    """Parse a currency string such as ``"$1,234.50"``; anything else yields None."""

    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    has_symbol = any(symbol in text for symbol in _CURRENCY_SYMBOLS)
    if not has_symbol and not text[0].isdigit():
        return None
    cleaned = _FORMATTED_CLEANUP.sub("", text)
    if not cleaned:
        return None
    try:
        return float(Decimal(cleaned))
    except InvalidOperation:
        return None


def parse_text(*texts: str | None) -> float | None:
    """First currency amount found in the given texts, searched in order."""

    for text in texts:
        if not text:
            continue
        match = _TEXT_PRICE.search(text)
        if match:
            try:
                return float(Decimal(match.group(1).replace(",", "")))
            except InvalidOperation:
                continue
    return None


def extract_price(
    structured: Any = None,
    formatted: Any = None,
    title: str | None = None,
    snippet: str | None = None,
) -> float | None:
    """Structured number, then formatted string, then free text (title before snippet)."""

    value = _to_float(structured)
    if value is not None:
        return value
    if isinstance(structured, str):
        formatted = formatted or structured
    value = parse_formatted(formatted)
    if value is not None:
        return value
    return parse_text(title, snippet)


def extract_interest(point: Any) -> float | None:
    """Numeric interest of one trend timeline value entry."""

    if not isinstance(point, dict):
        return _to_float(point)
    value = _to_float(point.get("extracted_value"))
    if value is not None:
        return value
    raw = str(point.get("value") or "").strip()
    if raw == "<1":
        return 0.0
    try:
        result = float(Decimal(raw.replace(",", "")))
    except (InvalidOperation, ValueError):
        return None
    return result if math.isfinite(result) else None


__all__ = ["extract_interest", "extract_price", "parse_formatted", "parse_text"]
