"""
Reminder due-dates. A document with a ``reminder_date`` is due for a
notification ``lead_days`` before that date; past dates are due at once.
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Optional

from docvault.models import DocumentModel


def notify_on(reminder_date: Optional[str], lead_days: int) -> Optional[date]:
    if not reminder_date:
        return None
    try:
        target = date.fromisoformat(reminder_date)
    except ValueError:
        return None
    return target - timedelta(days=lead_days)


def due_reminders(
    rows: Iterable[DocumentModel], lead_days: int, today: Optional[date] = None
) -> list[DocumentModel]:
    today = today or date.today()
    due = []
    for row in rows:
        when = notify_on(row.reminder_date, lead_days)
        if when is not None and when <= today:
            due.append(row)
    return due
