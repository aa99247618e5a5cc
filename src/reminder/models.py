"""
Data models for visual reminders.
"""

import base64
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Union

from config import settings


def _new_id() -> str:
    return str(uuid.uuid4()).upper()


def to_local_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time. Naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def _parse_timestamp(value: Union[str, int, float]) -> datetime:
    """Accept ISO-8601 strings or Unix epoch seconds."""
    if isinstance(value, bool):
        raise ValueError(f"not a timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value)
    if not isinstance(value, str):
        raise ValueError(f"not a timestamp: {value!r}")
    return to_local_naive(datetime.fromisoformat(value))


def _text(data: dict, key: str, optional: bool = False) -> str:
    value = data.get(key) if optional else data[key]
    if value is None and optional:
        return ''
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string, got {type(value).__name__}")
    return value


@dataclass
class ReminderRecord:
    """Visual reminder data model."""

    title: str
    due_at: datetime
    notes: str = ""
    photo: Optional[bytes] = None
    completed: bool = False
    external_task_id: Optional[str] = None
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        """String representation."""
        time_str = self.due_at.strftime("%Y-%m-%d %H:%M")
        status = "✓" if self.completed else ("!" if self.is_overdue() else "●")
        photo = " [photo]" if self.photo else ""
        return f"{status} {self.title}{photo} @ {time_str}"

    def copy(self) -> 'ReminderRecord':
        """Snapshot copy safe to hand out of the store."""
        return replace(self)

    def is_overdue(self, now: datetime = None) -> bool:
        """Active and past due, evaluated against ``now``."""
        if now is None:
            now = datetime.now()
        return not self.completed and self.due_at < now

    def time_until(self, now: datetime = None) -> str:
        """Human readable countdown to the due time."""
        if now is None:
            now = datetime.now()

        seconds = int((self.due_at - now).total_seconds())
        if seconds <= 0:
            return "Overdue"

        hours = seconds // 3600
        minutes = seconds % 3600 // 60

        if hours > 24:
            days = hours // 24
            return f"{days} day{'' if days == 1 else 's'}"
        elif hours > 0:
            return f"{hours}h {minutes}m"
        return f"{minutes}m"

    def formatted_date(self) -> str:
        """Medium date with short time, e.g. 'Oct 19, 2026 at 3:30 PM'."""
        hour = self.due_at.hour % 12 or 12
        meridiem = "AM" if self.due_at.hour < 12 else "PM"
        return (
            f"{self.due_at.strftime('%b')} {self.due_at.day}, {self.due_at.year} "
            f"at {hour}:{self.due_at.minute:02d} {meridiem}"
        )

    def notification_body(self) -> str:
        return self.notes or settings.DEFAULT_NOTIFICATION_BODY

    def share_text(self) -> str:
        """Plain-text card used when sharing a reminder."""
        notes = self.notes or "No additional notes"
        return (
            f"Visual Reminder: {self.title}\n"
            f"\n"
            f"{notes}\n"
            f"\n"
            f"Reminder for: {self.formatted_date()}\n"
            f"\n"
            f"Shared from {settings.APP_NAME}"
        )

    def to_dict(self) -> dict:
        """Convert to the persisted dictionary shape."""
        return {
            'id': self.id,
            'title': self.title,
            'notes': self.notes,
            'photoData': base64.b64encode(self.photo).decode('ascii') if self.photo is not None else None,
            'reminderDate': self.due_at.isoformat(),
            'isCompleted': self.completed,
            'appleReminderID': self.external_task_id,
            'createdAt': self.created_at.isoformat()
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ReminderRecord':
        """Create from the persisted dictionary shape."""
        photo = data.get('photoData')
        return cls(
            id=_text(data, 'id'),
            title=_text(data, 'title'),
            notes=_text(data, 'notes', optional=True),
            photo=base64.b64decode(photo) if photo is not None else None,
            due_at=_parse_timestamp(data['reminderDate']),
            completed=bool(data.get('isCompleted', False)),
            external_task_id=data.get('appleReminderID'),
            created_at=_parse_timestamp(data['createdAt'])
        )
