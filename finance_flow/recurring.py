# finance_flow/recurring.py
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from finance_flow.core.models import RecurrenceFrequency, Transaction
from finance_flow.utils import new_id, parse_timestamp, shift_months


def _parse_frequency(value) -> RecurrenceFrequency:
    if isinstance(value, RecurrenceFrequency):
        return value
    try:
        return RecurrenceFrequency(str(value).strip().upper())
    except ValueError:
        raise ValueError(f"Unsupported frequency '{value}'.") from None


def _nth_date(start: datetime, frequency: RecurrenceFrequency, n: int) -> datetime:
    if frequency == RecurrenceFrequency.DAILY:
        return start + timedelta(days=n)
    if frequency == RecurrenceFrequency.WEEKLY:
        return start + timedelta(weeks=n)
    if frequency == RecurrenceFrequency.MONTHLY:
        # anchored on the start day so Jan 31 -> Feb 28 -> Mar 31
        return shift_months(start, n)
    raise ValueError(f"Unsupported frequency '{frequency.value}'.")


def expand_recurrence(
    draft: Transaction,
    frequency=RecurrenceFrequency.NONE,
    count: Optional[int] = None,
    end_date=None,
    id_factory: Callable[[], str] = new_id,
) -> List[Transaction]:
    """
    Expand one recurring-entry request into its dated instances.

    ``count`` caps the number of instances and ``end_date`` (inclusive) bounds
    them; at least one is required unless the frequency is NONE. Every
    instance gets a fresh id; when more than one is produced they share a new
    ``recurrence_id``.
    """
    frequency = _parse_frequency(frequency)
    if frequency == RecurrenceFrequency.NONE:
        if count not in (None, 1):
            raise ValueError("A non-recurring entry cannot have a count other than 1.")
        return [replace(draft, id=id_factory(), is_recurring=False, recurrence_id=None)]

    end = parse_timestamp(end_date) if end_date is not None else None
    if end is None and count is None:
        raise ValueError("Recurring entries require either 'end_date' or 'count'.")
    if count is not None:
        count = int(count)
        if count <= 0:
            raise ValueError("Recurring entries require 'count' to be greater than 0.")
    if end is not None and end.date() < draft.date.date():
        raise ValueError("'end_date' must not be before the first occurrence.")

    dates = []
    n = 0
    while True:
        if count is not None and n >= count:
            break
        current = _nth_date(draft.date, frequency, n)
        if end is not None and current.date() > end.date():
            break
        dates.append(current)
        n += 1

    if len(dates) == 1:
        return [replace(draft, id=id_factory(), date=dates[0], is_recurring=False, recurrence_id=None)]

    recurrence_id = id_factory()
    return [
        replace(draft, id=id_factory(), date=when, is_recurring=True, recurrence_id=recurrence_id)
        for when in dates
    ]
