from datetime import date, datetime
from itertools import count

import pytest

from finance_flow.core.models import RecurrenceFrequency, Transaction, TransactionType
from finance_flow.recurring import expand_recurrence


def _draft(when="2025-01-31"):
    return Transaction(
        id="draft",
        account_id="a",
        amount=100,
        description="Rent",
        category="Home",
        type=TransactionType.EXPENSE,
        date=datetime.fromisoformat(when),
    )


def test_expand_recurrence_daily_weekly_monthly():
    daily = expand_recurrence(_draft("2025-01-01"), "daily", end_date="2025-01-03")
    assert [tx.date.date() for tx in daily] == [
        date(2025, 1, 1),
        date(2025, 1, 2),
        date(2025, 1, 3),
    ]

    weekly = expand_recurrence(_draft("2025-01-01"), RecurrenceFrequency.WEEKLY, count=3)
    assert [tx.date.date() for tx in weekly] == [
        date(2025, 1, 1),
        date(2025, 1, 8),
        date(2025, 1, 15),
    ]

    monthly = expand_recurrence(_draft("2025-01-31"), "monthly", count=3)
    assert [tx.date.date() for tx in monthly] == [
        date(2025, 1, 31),
        date(2025, 2, 28),
        date(2025, 3, 31),
    ]


def test_instances_share_a_recurrence_id():
    ids = count()
    items = expand_recurrence(_draft(), "monthly", count=3, id_factory=lambda: f"id{next(ids)}")
    assert {tx.recurrence_id for tx in items} == {"id0"}
    assert [tx.id for tx in items] == ["id1", "id2", "id3"]
    assert all(tx.is_recurring for tx in items)


def test_end_date_is_inclusive_regardless_of_time():
    items = expand_recurrence(_draft("2025-01-01T18:30:00"), "daily", end_date="2025-01-02T00:00:00")
    assert len(items) == 2


def test_count_and_end_date_both_bound():
    items = expand_recurrence(_draft("2025-01-01"), "weekly", count=10, end_date="2025-01-20")
    assert len(items) == 3


def test_single_instance_is_not_recurring():
    once = expand_recurrence(_draft(), "none")
    assert len(once) == 1
    assert once[0].id != "draft"
    assert not once[0].is_recurring
    assert once[0].recurrence_id is None

    single_monthly = expand_recurrence(_draft(), "monthly", count=1)
    assert not single_monthly[0].is_recurring


@pytest.mark.parametrize(
    "kwargs",
    [
        {"frequency": "monthly"},
        {"frequency": "monthly", "count": 0},
        {"frequency": "daily", "end_date": "2024-12-31"},
        {"frequency": "none", "count": 3},
        {"frequency": "yearly", "count": 2},
    ],
)
def test_invalid_requests(kwargs):
    with pytest.raises(ValueError):
        expand_recurrence(_draft("2025-01-01"), **kwargs)
