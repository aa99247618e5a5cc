"""
Error taxonomy for the reminder store and its adapters.
"""


class ReminderError(Exception):
    """Base class for reminder errors."""


class ValidationError(ReminderError):
    """Caller-supplied input violates a precondition (e.g. empty title)."""


class NotFoundError(ReminderError):
    """Referenced reminder id does not exist in the collection."""

    def __init__(self, reminder_id: str):
        self.reminder_id = reminder_id
        super().__init__(f"Reminder not found: {reminder_id}")


class PersistenceError(ReminderError):
    """Underlying storage read or write failed."""


class AdapterFailure(ReminderError):
    """A notification or external-sync call failed. Never fatal."""

    def __init__(self, adapter: str, operation: str, reason: str):
        self.adapter = adapter
        self.operation = operation
        self.reason = reason
        super().__init__(f"{adapter}.{operation} failed: {reason}")
