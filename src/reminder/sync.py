"""
External task-list mirroring.
Defines the sync adapter contract and an Apple Reminders implementation
driven through the remindctl command line tool.
"""

import asyncio
import json
import shutil
from abc import ABC, abstractmethod
from typing import List, Optional

from config.logging_config import get_logger
from config import settings
from src.reminder.errors import AdapterFailure
from src.reminder.models import ReminderRecord

logger = get_logger(__name__)


class ExternalTaskSyncAdapter(ABC):
    """
    Best-effort mirror of reminders into an external task list.
    Every operation raises AdapterFailure on failure; callers log it.
    """

    name = "external_sync"

    @abstractmethod
    async def create(self, record: ReminderRecord) -> str:
        """Create the external counterpart and return its identifier."""

    @abstractmethod
    async def update(self, external_id: str, record: ReminderRecord) -> None:
        """Push the record's current fields to its external counterpart."""

    @abstractmethod
    async def delete(self, external_id: str) -> None:
        """Remove the external counterpart."""


class RemindctlSyncAdapter(ExternalTaskSyncAdapter):
    """
    Apple Reminders mirror using the ``remindctl`` macOS CLI.
    """

    name = "remindctl"

    def __init__(self, executable: str = None, list_name: str = None):
        """
        Initialize adapter.

        Args:
            executable: remindctl binary (default from settings)
            list_name: Reminders list to write into (None = default list)
        """
        self.executable = executable or settings.REMINDCTL_PATH
        self.list_name = list_name if list_name is not None else settings.REMINDCTL_LIST

        logger.info(f"RemindctlSyncAdapter initialized: {self.executable}")

    @classmethod
    def is_available(cls, executable: str = None) -> bool:
        """Check whether the remindctl binary can be found."""
        return shutil.which(executable or settings.REMINDCTL_PATH) is not None

    async def create(self, record: ReminderRecord) -> str:
        args = ["add", *self._record_args(record)]
        if self.list_name:
            args += ["--list", self.list_name]

        output = await self._run(*args, "--json", operation="create")

        try:
            payload = json.loads(output)
        except ValueError as e:
            raise AdapterFailure(self.name, "create", f"unreadable output: {e}") from e

        external_id = None
        if isinstance(payload, dict):
            external_id = payload.get("id") or payload.get("calendarItemIdentifier")
        if not external_id:
            raise AdapterFailure(self.name, "create", "no identifier returned")

        logger.info(f"Mirrored reminder {record.id} as {external_id}")
        return str(external_id)

    async def update(self, external_id: str, record: ReminderRecord) -> None:
        await self._run(
            "edit", external_id,
            *self._record_args(record),
            "--completed", "true" if record.completed else "false",
            operation="update"
        )
        logger.info(f"Updated mirrored reminder {external_id}")

    async def delete(self, external_id: str) -> None:
        await self._run("delete", external_id, "--force", operation="delete")
        logger.info(f"Deleted mirrored reminder {external_id}")

    def _record_args(self, record: ReminderRecord) -> List[str]:
        return [
            "--title", record.title,
            "--notes", record.notes,
            # Minute precision, matching what Reminders stores
            "--due", record.due_at.isoformat(timespec="minutes"),
        ]

    async def _run(self, *args: str, operation: str) -> str:
        """
        Run remindctl and return its stdout.

        Raises:
            AdapterFailure: If the binary is missing or exits non-zero
        """
        logger.debug(f"remindctl {operation}: {args[0]}")

        try:
            process = await asyncio.create_subprocess_exec(
                self.executable, *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise AdapterFailure(self.name, operation, str(e)) from e

        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            # Timed out by the caller; don't leave the child behind
            if process.returncode is None:
                process.kill()
            raise

        if process.returncode != 0:
            reason = stderr.decode(errors="replace").strip() or f"exit code {process.returncode}"
            raise AdapterFailure(self.name, operation, reason)

        return stdout.decode(errors="replace")


def build_sync_adapter(enabled: bool = None) -> Optional[ExternalTaskSyncAdapter]:
    """
    Create the configured external sync adapter, if any.

    Args:
        enabled: Override settings.ENABLE_EXTERNAL_SYNC

    Returns:
        Adapter instance, or None when sync is disabled or unavailable
    """
    if enabled is None:
        enabled = settings.ENABLE_EXTERNAL_SYNC

    if not enabled:
        logger.info("External sync disabled")
        return None

    if not RemindctlSyncAdapter.is_available():
        logger.warning(
            f"{settings.REMINDCTL_PATH} not found, external sync will be disabled"
        )
        return None

    return RemindctlSyncAdapter()
