"""
Reminder record store.
Sole owner of the reminder collection: mutations, filtered views,
persistence, and fire-and-forget notification/external-sync side effects.
"""

import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Set, Union

from config.logging_config import get_logger
from config import settings
from config.settings import EventType, ReminderFilter
from src.reminder.errors import AdapterFailure, NotFoundError, PersistenceError, ValidationError
from src.reminder.models import ReminderRecord, to_local_naive
from src.reminder.repository import ReminderRepository
from src.reminder.scheduler import NotificationAdapter
from src.reminder.sync import ExternalTaskSyncAdapter

logger = get_logger(__name__)


class ReminderStore:
    """
    In-memory, insertion-ordered reminder collection.

    Mutations are serialized with an asyncio lock and must be awaited from
    the event loop that owns the store. Each mutation commits to memory and
    to the repository before any adapter is called; adapter calls run as
    background tasks whose failures are logged and never undo the mutation.
    """

    def __init__(self, repository: ReminderRepository,
                 notifier: Optional[NotificationAdapter] = None,
                 sync: Optional[ExternalTaskSyncAdapter] = None,
                 event_bus=None,
                 adapter_timeout: float = None):
        """
        Initialize store.

        Args:
            repository: Persistence adapter for the whole collection
            notifier: Local notification adapter (None = no notifications)
            sync: External task-list adapter (None = no mirroring)
            event_bus: Optional EventBus receiving change events
            adapter_timeout: Seconds before an adapter call counts as failed
        """
        self.repository = repository
        self.notifier = notifier
        self.sync = sync
        self.event_bus = event_bus
        self.adapter_timeout = adapter_timeout or settings.ADAPTER_TIMEOUT

        self._records: List[ReminderRecord] = []
        self._lock = asyncio.Lock()
        self._pending: Set[asyncio.Task] = set()

        # True while the durable copy lags memory after a failed save
        self.is_dirty = False

    def __len__(self) -> int:
        return len(self._records)

    # ---------- Loading ----------

    def load(self) -> int:
        """
        Replace the in-memory collection with the persisted one.

        Returns:
            Number of records loaded
        """
        self._records = self.repository.load()
        self.is_dirty = False
        return len(self._records)

    # ---------- Mutations ----------

    async def add(self, title: str, notes: str, due_at: datetime,
                  photo: Optional[bytes] = None) -> str:
        """
        Create a reminder.

        Args:
            title: Reminder title (must not be blank)
            notes: Free-form notes, may be empty
            due_at: When the reminder should fire
            photo: Optional image bytes

        Returns:
            The new reminder id

        Raises:
            ValidationError: If the input is invalid
        """
        due_at = self._validate(title, due_at)

        async with self._lock:
            record = ReminderRecord(
                title=title,
                notes=notes or "",
                photo=photo,
                due_at=due_at
            )
            self._records.append(record)
            saved = self._persist()
            snapshot = record.copy()

        logger.info(f"Created reminder: {snapshot}")
        await self._after_save(saved)
        await self._publish(EventType.REMINDER_CREATED, snapshot)

        self._dispatch_schedule(snapshot)
        if self.sync:
            self._spawn(f"sync.create[{snapshot.id}]", lambda: self._mirror(snapshot))

        return snapshot.id

    async def update(self, reminder_id: str, title: str, notes: str,
                     due_at: datetime, photo: Optional[bytes] = None) -> None:
        """
        Replace the editable fields of a reminder.

        Args:
            reminder_id: Reminder id
            title: New title (must not be blank)
            notes: New notes
            due_at: New due time
            photo: New photo (None removes it)

        Raises:
            NotFoundError: If the id is unknown
            ValidationError: If the input is invalid
        """
        due_at = self._validate(title, due_at)

        async with self._lock:
            record = self._find(reminder_id)
            record.title = title
            record.notes = notes or ""
            record.photo = photo
            record.due_at = due_at
            saved = self._persist()
            snapshot = record.copy()

        logger.info(f"Updated reminder {reminder_id}")
        await self._after_update(snapshot, saved)

    async def toggle_completed(self, reminder_id: str) -> None:
        """
        Flip the completion flag of a reminder.

        Raises:
            NotFoundError: If the id is unknown
        """
        async with self._lock:
            record = self._find(reminder_id)
            record.completed = not record.completed
            saved = self._persist()
            snapshot = record.copy()

        logger.info(
            f"Reminder {reminder_id} marked "
            f"{'completed' if snapshot.completed else 'active'}"
        )
        await self._after_update(snapshot, saved)

    async def delete(self, reminder_id: str) -> None:
        """
        Remove a reminder.

        Raises:
            NotFoundError: If the id is unknown
        """
        async with self._lock:
            record = self._find(reminder_id)
            self._records.remove(record)
            saved = self._persist()

        logger.info(f"Deleted reminder {reminder_id}")
        await self._after_save(saved)
        await self._publish(EventType.REMINDER_DELETED, reminder_id)

        if self.notifier:
            self._spawn(f"notify.cancel[{reminder_id}]",
                        lambda: self.notifier.cancel(reminder_id))

        external_id = record.external_task_id
        if self.sync and external_id:
            self._spawn(f"sync.delete[{reminder_id}]",
                        lambda: self.sync.delete(external_id))

    async def clear_all(self) -> None:
        """
        Remove every reminder.

        Pending notifications and external mirrors of the cleared records
        are left in place.
        """
        async with self._lock:
            count = len(self._records)
            self._records = []
            saved = self._persist()

        logger.info(f"Cleared {count} reminders")
        await self._after_save(saved)
        await self._publish(EventType.REMINDERS_CLEARED, count)

    async def attach_external_id(self, reminder_id: str, external_id: str) -> None:
        """
        Record the identifier of a reminder's external counterpart.
        Second phase of external mirroring; triggers no further side effects.

        Raises:
            NotFoundError: If the id is unknown
        """
        async with self._lock:
            record = self._find(reminder_id)
            record.external_task_id = external_id
            saved = self._persist()

        logger.debug(f"Attached external id {external_id} to {reminder_id}")
        await self._after_save(saved)
        await self._publish(EventType.EXTERNAL_ID_ATTACHED, reminder_id)

    # ---------- Queries ----------

    def get(self, reminder_id: str) -> ReminderRecord:
        """
        Get a snapshot of one reminder.

        Raises:
            NotFoundError: If the id is unknown
        """
        return self._find(reminder_id).copy()

    def list(self, filter: Union[ReminderFilter, str] = ReminderFilter.ALL,
             search: Optional[str] = None,
             now: datetime = None) -> List[ReminderRecord]:
        """
        Filtered snapshot of the collection in insertion order.

        Args:
            filter: ReminderFilter member or its value ("Overdue", ...)
            search: Case-insensitive substring matched against title or notes
            now: Reference time for overdue/upcoming (default: current time)

        Returns:
            Copies of the matching records
        """
        filter = ReminderFilter(filter)
        if now is None:
            now = datetime.now()

        predicates = {
            ReminderFilter.ALL: lambda r: True,
            ReminderFilter.ACTIVE: lambda r: not r.completed,
            ReminderFilter.OVERDUE: lambda r: r.is_overdue(now),
            ReminderFilter.UPCOMING: lambda r: not r.completed and not r.is_overdue(now),
            ReminderFilter.COMPLETED: lambda r: r.completed,
        }
        predicate = predicates[filter]
        needle = search.casefold() if search else None

        return [
            record.copy() for record in self._records
            if predicate(record) and (
                needle is None
                or needle in record.title.casefold()
                or needle in record.notes.casefold()
            )
        ]

    # ---------- Background side effects ----------

    @property
    def pending_side_effects(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every outstanding side effect to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def resync_notifications(self) -> int:
        """
        Schedule notifications for every active reminder due in the future.

        Returns:
            Number of notifications requested
        """
        if not self.notifier:
            return 0

        now = datetime.now()
        requested = 0
        for record in self.list(ReminderFilter.UPCOMING, now=now):
            if record.due_at > now:
                self._dispatch_schedule(record)
                requested += 1

        logger.info(f"Requested {requested} notifications from stored reminders")
        return requested

    def _dispatch_schedule(self, record: ReminderRecord) -> None:
        if not self.notifier:
            return

        if record.completed:
            self._spawn(f"notify.cancel[{record.id}]",
                        lambda: self.notifier.cancel(record.id))
        else:
            self._spawn(
                f"notify.schedule[{record.id}]",
                lambda: self.notifier.schedule(
                    record.id, record.title, record.notification_body(),
                    record.photo, record.due_at
                )
            )

    async def _after_update(self, snapshot: ReminderRecord, saved: bool) -> None:
        await self._after_save(saved)
        await self._publish(EventType.REMINDER_UPDATED, snapshot)

        self._dispatch_schedule(snapshot)

        external_id = snapshot.external_task_id
        if self.sync and external_id:
            self._spawn(f"sync.update[{snapshot.id}]",
                        lambda: self.sync.update(external_id, snapshot))

    async def _mirror(self, snapshot: ReminderRecord) -> None:
        """
        Create the external counterpart, then attach its id.

        Changes made locally while the create was in flight are pushed
        afterwards; a record deleted meanwhile has its counterpart removed.
        """
        external_id = await self.sync.create(snapshot)

        try:
            await self.attach_external_id(snapshot.id, external_id)
        except NotFoundError:
            logger.warning(
                f"Reminder {snapshot.id} was removed before external id "
                f"{external_id} could be attached, deleting it"
            )
            await self.sync.delete(external_id)
            return

        try:
            current = self.get(snapshot.id)
        except NotFoundError:
            # Deleted after attaching; delete() already removed the counterpart
            return

        if replace(current, external_task_id=None) != snapshot:
            await self.sync.update(external_id, current)

    def _spawn(self, name: str, call: Callable[[], Awaitable]) -> None:
        task = asyncio.create_task(self._run_side_effect(name, call), name=name)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run_side_effect(self, name: str, call: Callable[[], Awaitable]) -> None:
        try:
            await asyncio.wait_for(call(), timeout=self.adapter_timeout)

        except asyncio.TimeoutError:
            logger.warning(f"{name} timed out after {self.adapter_timeout}s")
            await self._publish(EventType.ADAPTER_FAILED, name)

        except AdapterFailure as e:
            logger.warning(f"{name}: {e}")
            await self._publish(EventType.ADAPTER_FAILED, name)

        except Exception as e:
            logger.error(f"{name} failed: {e}", exc_info=True)
            await self._publish(EventType.ADAPTER_FAILED, name)

    # ---------- Internal helpers ----------

    @staticmethod
    def _validate(title: str, due_at: datetime) -> datetime:
        """Check user input and return the due time as naive local time."""
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("Title must not be empty")
        if not isinstance(due_at, datetime):
            raise ValidationError(f"Due time must be a datetime, got {type(due_at).__name__}")
        return to_local_naive(due_at)

    def _find(self, reminder_id: str) -> ReminderRecord:
        for record in self._records:
            if record.id == reminder_id:
                return record
        raise NotFoundError(reminder_id)

    def _persist(self) -> bool:
        try:
            self.repository.save(self._records)
        except PersistenceError as e:
            logger.warning(f"Reminders not saved, memory and disk now differ: {e}")
            self.is_dirty = True
            return False

        self.is_dirty = False
        return True

    async def _after_save(self, saved: bool) -> None:
        if not saved:
            await self._publish(EventType.PERSISTENCE_FAILED, len(self._records))

    async def _publish(self, event_type: EventType, data=None) -> None:
        if self.event_bus:
            await self.event_bus.publish(event_type, data)
