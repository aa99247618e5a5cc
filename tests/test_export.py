import json
from datetime import date, datetime, timedelta

from src.reminder.export import build_export, productivity_trend, recent, summary_counts
from src.reminder.models import ReminderRecord


def test_summary_counts(sample_records, now) -> None:
    assert summary_counts(sample_records, now) == {
        "total": 3,
        "active": 2,
        "completed": 1,
        "overdue": 1,
    }


def test_export_bundle(sample_records, now) -> None:
    bundle = build_export(sample_records, now=now)

    assert bundle.total_count == 3
    assert bundle.active_count == 2
    assert bundle.completed_count == 1
    assert bundle.overdue_count == 1
    assert bundle.app_version == "1.0.0"
    assert bundle.export_date == now

    payload = json.loads(bundle.to_json())
    assert payload["exportDate"] == now.isoformat()
    assert payload["appVersion"] == "1.0.0"
    assert payload["totalCount"] == 3
    assert payload["activeCount"] == 2
    assert payload["completedCount"] == 1
    assert payload["overdueCount"] == 1
    assert payload["reminders"] == [r.to_dict() for r in sample_records]


def test_export_is_a_snapshot(sample_records, now) -> None:
    bundle = build_export(sample_records, now=now, app_version="2.0.0")

    sample_records[0].title = "Changed"

    assert bundle.reminders[0].title == "Keys"
    assert bundle.app_version == "2.0.0"


def test_empty_export(now) -> None:
    payload = build_export([], now=now).to_dict()

    assert payload["reminders"] == []
    assert payload["totalCount"] == payload["overdueCount"] == 0


def test_productivity_trend() -> None:
    today = date(2026, 10, 19)
    noon = datetime(2026, 10, 19, 12, 0)
    records = [
        ReminderRecord(title="a", due_at=noon, created_at=noon, completed=True),
        ReminderRecord(title="b", due_at=noon, created_at=noon),
        ReminderRecord(title="c", due_at=noon, created_at=noon - timedelta(days=2), completed=True),
        ReminderRecord(title="d", due_at=noon, created_at=noon - timedelta(days=10)),
    ]

    trend = productivity_trend(records, today=today)

    assert len(trend) == 7
    assert [d.day for d in trend[:3]] == [date(2026, 10, 19), date(2026, 10, 18), date(2026, 10, 17)]
    assert (trend[0].total, trend[0].completed, trend[0].completion_ratio) == (2, 1, 0.5)
    assert (trend[1].total, trend[1].completion_ratio) == (0, 0.0)
    assert (trend[2].total, trend[2].completed) == (1, 1)
    assert sum(d.total for d in trend) == 3


def test_recent(sample_records) -> None:
    assert recent(sample_records, limit=2) == sample_records[:2]
    assert recent(sample_records) == sample_records


def test_explicit_zero_is_not_the_default(sample_records) -> None:
    assert productivity_trend(sample_records, days=0, today=date(2026, 10, 19)) == []
    assert recent(sample_records, limit=0) == []
