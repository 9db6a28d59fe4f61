"""
Result sanitizer — field-level normalization of model output.

Never raises. A bad field is narrowed to ``None`` (or the default type);
it does not invalidate the rest of the record.
"""
from __future__ import annotations

import math
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from docvault.schemas import CANONICAL_TYPES, DEFAULT_TYPE, ExtractionResult

_NOT_AMOUNT = re.compile(r"[^0-9.,]")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TYPES_BY_KEY = {t.lower(): t for t in CANONICAL_TYPES}


# ---------------------------------------------------------------------------
# Field rules
# ---------------------------------------------------------------------------

def normalize_amount(raw: Optional[str]) -> Optional[str]:
    """Reduce ``raw`` to plain decimal text, or ``None`` if it is not a number.

    >>> normalize_amount("1,251.74 EUR")
    '1251.74'
    >>> normalize_amount("12,50 €")
    '12.50'
    """
    if raw is None:
        return None
    s = _NOT_AMOUNT.sub("", str(raw)).rstrip(".,")
    if not s:
        return None

    if "," in s and "." in s:
        # right-most separator is the decimal one
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        head, _, tail = s.rpartition(",")
        if s.count(",") == 1 and 1 <= len(tail) <= 2:
            s = f"{head}.{tail}"
        else:
            s = s.replace(",", "")

    if s.count(".") > 1:
        head, _, tail = s.rpartition(".")
        s = f"{head.replace('.', '')}.{tail}"
    if s.startswith("."):
        s = "0" + s

    try:
        value = Decimal(s)
    except InvalidOperation:
        return None
    if not value.is_finite() or value < 0:
        return None
    return s


def normalize_date(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    s = str(raw).strip()
    if not _ISO_DATE.match(s):
        return None
    try:
        date.fromisoformat(s)
    except ValueError:
        return None
    return s


def normalize_type(raw: Optional[str]) -> str:
    if not raw:
        return DEFAULT_TYPE
    return _TYPES_BY_KEY.get(str(raw).strip().lower(), DEFAULT_TYPE)


def normalize_vendor(raw: Optional[str]) -> Optional[str]:
    # the writer substitutes the "Unknown Vendor" default
    if raw is None:
        return None
    return str(raw).strip() or None


def normalize_confidence(raw) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value):
        return 0.0
    return min(max(value, 0.0), 1.0)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def sanitize(raw: ExtractionResult) -> ExtractionResult:
    return ExtractionResult(
        vendor=normalize_vendor(raw.vendor),
        date=normalize_date(raw.date),
        amount=normalize_amount(raw.amount),
        type=normalize_type(raw.type),
        confidence=normalize_confidence(raw.confidence),
        extraction_failed=raw.extraction_failed,
        error_message=raw.error_message,
    )


def is_usable(result: ExtractionResult) -> bool:
    """False when nothing identifying survived sanitization."""
    return any(v is not None for v in (result.vendor, result.date, result.amount))
