"""
Export bundle and dashboard statistics for reminders.
"""

import json
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Sequence

from dateutil.relativedelta import relativedelta

from config import settings
from src.reminder.models import ReminderRecord


def summary_counts(records: Sequence[ReminderRecord], now: datetime = None) -> Dict[str, int]:
    """
    Count reminders by state.

    Args:
        records: Reminders to count
        now: Reference time for overdue (default: current time)

    Returns:
        Dictionary with total, active, completed and overdue counts
    """
    if now is None:
        now = datetime.now()

    return {
        'total': len(records),
        'active': sum(1 for r in records if not r.completed),
        'completed': sum(1 for r in records if r.completed),
        'overdue': sum(1 for r in records if r.is_overdue(now)),
    }


@dataclass
class ExportBundle:
    """Read-only snapshot of the collection for sharing. Never re-imported."""

    reminders: List[ReminderRecord]
    export_date: datetime
    app_version: str
    total_count: int
    active_count: int
    completed_count: int
    overdue_count: int

    def to_dict(self) -> dict:
        return {
            'reminders': [r.to_dict() for r in self.reminders],
            'exportDate': self.export_date.isoformat(),
            'appVersion': self.app_version,
            'totalCount': self.total_count,
            'activeCount': self.active_count,
            'completedCount': self.completed_count,
            'overdueCount': self.overdue_count,
        }

    def to_json(self, indent: int = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)


def build_export(records: Sequence[ReminderRecord], now: datetime = None,
                 app_version: str = None) -> ExportBundle:
    """
    Build an export bundle with precomputed counts.

    Args:
        records: Reminders to export, in order
        now: Export timestamp and overdue reference (default: current time)
        app_version: Version tag (default from settings)

    Returns:
        ExportBundle
    """
    if now is None:
        now = datetime.now()

    counts = summary_counts(records, now)
    return ExportBundle(
        reminders=[r.copy() for r in records],
        export_date=now,
        app_version=app_version or settings.APP_VERSION,
        total_count=counts['total'],
        active_count=counts['active'],
        completed_count=counts['completed'],
        overdue_count=counts['overdue'],
    )


@dataclass
class DayActivity:
    """Reminders created on one day and how many of them are done."""
    day: date
    total: int
    completed: int

    @property
    def completion_ratio(self) -> float:
        return self.completed / self.total if self.total else 0.0


def productivity_trend(records: Sequence[ReminderRecord], days: int = None,
                       today: date = None) -> List[DayActivity]:
    """
    Per-day creation and completion counts for the last few days.

    Args:
        records: Reminders to inspect
        days: Number of days, today included (default from settings)
        today: Reference day (default: today)

    Returns:
        One DayActivity per day, today first
    """
    if days is None:
        days = settings.PRODUCTIVITY_TREND_DAYS
    if today is None:
        today = date.today()

    trend = []
    for offset in range(days):
        day = today - relativedelta(days=offset)
        created = [r for r in records if r.created_at.date() == day]
        trend.append(DayActivity(
            day=day,
            total=len(created),
            completed=sum(1 for r in created if r.completed),
        ))
    return trend


def recent(records: Sequence[ReminderRecord], limit: int = None) -> List[ReminderRecord]:
    """First ``limit`` reminders of the collection."""
    if limit is None:
        limit = settings.RECENT_REMINDERS_LIMIT
    return list(records[:limit])
