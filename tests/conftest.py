import asyncio
import os
import tempfile
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

# Keep data and logs of the test run out of the project tree
_TMP = tempfile.mkdtemp(prefix="visreminder-tests-")
os.environ.setdefault("VISREMINDER_DATA_DIR", os.path.join(_TMP, "data"))
os.environ.setdefault("VISREMINDER_LOGS_DIR", os.path.join(_TMP, "logs"))
os.environ["VISREMINDER_EXTERNAL_SYNC"] = "false"

import pytest  # noqa: E402

from src.core.event_bus import EventBus  # noqa: E402
from src.reminder.errors import AdapterFailure, PersistenceError  # noqa: E402
from src.reminder.models import ReminderRecord  # noqa: E402
from src.reminder.repository import ReminderRepository  # noqa: E402
from src.reminder.scheduler import NotificationAdapter  # noqa: E402
from src.reminder.store import ReminderStore  # noqa: E402
from src.reminder.sync import ExternalTaskSyncAdapter  # noqa: E402


class RecordingNotifier(NotificationAdapter):
    def __init__(self) -> None:
        self.scheduled: Dict[str, Tuple[str, str, Optional[bytes], datetime]] = {}
        self.cancelled: List[str] = []
        self.fail = False

    async def schedule(self, reminder_id, title, body, photo, fires_at) -> bool:
        if self.fail:
            raise RuntimeError("notification center unavailable")
        self.scheduled[reminder_id] = (title, body, photo, fires_at)
        return True

    async def cancel(self, reminder_id) -> bool:
        self.cancelled.append(reminder_id)
        return self.scheduled.pop(reminder_id, None) is not None


class RecordingSync(ExternalTaskSyncAdapter):
    name = "recording"

    def __init__(self) -> None:
        self.created: List[str] = []
        self.updated: List[Tuple[str, ReminderRecord]] = []
        self.deleted: List[str] = []
        self.fail = False
        self.hang = False
        self._counter = 0

    async def _maybe_fail(self, operation: str) -> None:
        if self.hang:
            await asyncio.sleep(60)
        if self.fail:
            raise AdapterFailure(self.name, operation, "service unavailable")

    async def create(self, record: ReminderRecord) -> str:
        await self._maybe_fail("create")
        self._counter += 1
        self.created.append(record.id)
        return f"EXT-{self._counter}"

    async def update(self, external_id: str, record: ReminderRecord) -> None:
        await self._maybe_fail("update")
        self.updated.append((external_id, record))

    async def delete(self, external_id: str) -> None:
        await self._maybe_fail("delete")
        self.deleted.append(external_id)


class BrokenRepository(ReminderRepository):
    """Repository whose writes always fail."""

    def write_blob(self, blob: bytes) -> None:
        raise PersistenceError("disk full")


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 10, 19, 12, 0, 0)


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "reminders.db")


@pytest.fixture
def repository(db_path) -> ReminderRepository:
    return ReminderRepository(db_path=db_path)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def sync() -> RecordingSync:
    return RecordingSync()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def store(repository, notifier, sync, event_bus) -> ReminderStore:
    return ReminderStore(
        repository=repository,
        notifier=notifier,
        sync=sync,
        event_bus=event_bus,
        adapter_timeout=0.2,
    )


@pytest.fixture
def sample_records(now) -> List[ReminderRecord]:
    return [
        ReminderRecord(
            title="Keys",
            notes="On the hook by the door",
            due_at=now - timedelta(hours=1),
            created_at=now - timedelta(days=1),
        ),
        ReminderRecord(
            title="Parking spot",
            notes="Level 3, row F",
            photo=b"\xff\xd8\xff\xe0fake-jpeg",
            due_at=now + timedelta(hours=2),
            created_at=now - timedelta(hours=3),
        ),
        ReminderRecord(
            title="Return library book",
            due_at=now - timedelta(days=2),
            completed=True,
            external_task_id="EK-42",
            created_at=now - timedelta(days=3),
        ),
    ]
