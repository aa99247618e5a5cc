from datetime import datetime, timedelta, timezone

import pytest

from src.reminder.models import ReminderRecord, to_local_naive


def make(due_at: datetime, **kwargs) -> ReminderRecord:
    return ReminderRecord(title="Keys", due_at=due_at, **kwargs)


def test_defaults() -> None:
    first = make(datetime(2026, 1, 1))
    second = make(datetime(2026, 1, 1))

    assert first.id != second.id
    assert first.completed is False
    assert first.notes == ""
    assert first.photo is None
    assert first.external_task_id is None


def test_overdue_requires_active_and_past(now) -> None:
    assert make(now - timedelta(seconds=1)).is_overdue(now)
    assert not make(now).is_overdue(now)
    assert not make(now + timedelta(seconds=1)).is_overdue(now)
    assert not make(now - timedelta(days=1), completed=True).is_overdue(now)


@pytest.mark.parametrize(
    "delta, expected",
    [
        (timedelta(seconds=0), "Overdue"),
        (timedelta(minutes=-5), "Overdue"),
        (timedelta(minutes=42, seconds=30), "42m"),
        (timedelta(hours=3, minutes=7), "3h 7m"),
        (timedelta(hours=24, minutes=30), "24h 30m"),
        (timedelta(hours=25), "1 day"),
        (timedelta(days=3, hours=2), "3 days"),
    ],
)
def test_time_until(now, delta, expected) -> None:
    assert make(now + delta).time_until(now) == expected


def test_formatted_date() -> None:
    assert make(datetime(2026, 10, 19, 15, 30)).formatted_date() == "Oct 19, 2026 at 3:30 PM"
    assert make(datetime(2026, 1, 2, 0, 5)).formatted_date() == "Jan 2, 2026 at 12:05 AM"
    assert make(datetime(2026, 1, 2, 12, 0)).formatted_date() == "Jan 2, 2026 at 12:00 PM"


def test_notification_body_falls_back() -> None:
    assert make(datetime(2026, 1, 1)).notification_body() == "Time for your visual reminder!"
    assert make(datetime(2026, 1, 1), notes="By the door").notification_body() == "By the door"


def test_share_text() -> None:
    record = make(datetime(2026, 10, 19, 15, 30))

    assert record.share_text() == (
        "Visual Reminder: Keys\n"
        "\n"
        "No additional notes\n"
        "\n"
        "Reminder for: Oct 19, 2026 at 3:30 PM\n"
        "\n"
        "Shared from VisReminder"
    )


def test_copy_is_independent(now) -> None:
    record = make(now, notes="hook")
    clone = record.copy()

    assert clone == record

    clone.title = "Wallet"

    assert record.title == "Keys"
    assert clone.id == record.id
    assert clone.created_at == record.created_at


def test_dict_round_trip(sample_records) -> None:
    for record in sample_records:
        assert ReminderRecord.from_dict(record.to_dict()) == record


def test_offset_timestamps_load_as_local_time() -> None:
    aware = datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)
    data = make(datetime(2026, 10, 19, 12, 0)).to_dict()
    data["reminderDate"] = aware.isoformat()

    record = ReminderRecord.from_dict(data)

    assert record.due_at.tzinfo is None
    assert record.due_at == aware.astimezone().replace(tzinfo=None)
    assert isinstance(record.is_overdue(), bool)


def test_to_local_naive() -> None:
    naive = datetime(2026, 10, 19, 12, 0)
    assert to_local_naive(naive) is naive

    aware = datetime(2026, 10, 19, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    assert to_local_naive(aware) == aware.astimezone().replace(tzinfo=None)
    assert to_local_naive(aware).tzinfo is None
