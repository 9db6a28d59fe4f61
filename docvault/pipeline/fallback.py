"""
Fallback policy — a degraded but valid result when extraction fails.
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from docvault.schemas import DEFAULT_TYPE, ExtractionResult

REVIEW_VENDOR = "Review Needed"


def fallback_result(reason: str = "", today: Optional[date] = None) -> ExtractionResult:
    today = today or date.today()
    return ExtractionResult(
        vendor=REVIEW_VENDOR,
        date=today.isoformat(),
        amount=None,
        type=DEFAULT_TYPE,
        confidence=0.0,
        extraction_failed=True,
        error_message=reason or None,
    )
