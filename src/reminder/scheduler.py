"""
Local notification scheduling for reminders.
Defines the notification adapter contract and an APScheduler implementation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.triggers.date import DateTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR

from config.logging_config import get_logger
from config import settings
from config.settings import EventType

logger = get_logger(__name__)


@dataclass
class Notification:
    """A delivered local notification."""
    reminder_id: str
    title: str
    body: str
    attachment: Optional[Path] = None
    fired_at: datetime = None

    def __post_init__(self):
        if self.fired_at is None:
            self.fired_at = datetime.now()


class NotificationAdapter(ABC):
    """
    Schedules one time-triggered local notification per reminder.

    Scheduling is idempotent per reminder id. Implementations log their own
    failures and report them through the boolean result only.
    """

    @abstractmethod
    async def schedule(self, reminder_id: str, title: str, body: str,
                       photo: Optional[bytes], fires_at: datetime) -> bool:
        """Schedule (or replace) the notification for ``reminder_id``."""

    @abstractmethod
    async def cancel(self, reminder_id: str) -> bool:
        """Remove a pending notification. No-op if none is pending."""


class ReminderScheduler(NotificationAdapter):
    """
    APScheduler wrapper delivering reminder notifications.
    Pending jobs live in memory; the coordinator re-schedules from the
    store on startup.
    """

    def __init__(self, callback: Optional[Callable] = None, event_bus=None,
                 attachments_dir: Path = None):
        """
        Initialize scheduler.

        Args:
            callback: Async function to call when a notification fires
                     Signature: async def callback(notification: Notification) -> None
            event_bus: Optional EventBus receiving REMINDER_TRIGGERED events
            attachments_dir: Where photo attachments are written (default from settings)
        """
        self.callback = callback
        self.event_bus = event_bus
        self.attachments_dir = Path(attachments_dir or settings.ATTACHMENTS_DIR)

        # Configure scheduler
        self.scheduler = AsyncIOScheduler(
            jobstores={'default': MemoryJobStore()},
            job_defaults={
                'coalesce': settings.SCHEDULER_COALESCE,
                'max_instances': settings.SCHEDULER_MAX_INSTANCES,
                'misfire_grace_time': settings.SCHEDULER_MISFIRE_GRACE_TIME
            }
        )

        # Add event listeners
        self.scheduler.add_listener(
            self._job_executed,
            EVENT_JOB_EXECUTED
        )
        self.scheduler.add_listener(
            self._job_error,
            EVENT_JOB_ERROR
        )

        logger.info("ReminderScheduler initialized")

    @staticmethod
    def job_id(reminder_id: str) -> str:
        return f"{settings.NOTIFICATION_JOB_PREFIX}{reminder_id}"

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        """Start the scheduler. Must be called from a running event loop."""
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Scheduler started")

    def shutdown(self, wait: bool = True) -> None:
        """
        Shutdown the scheduler.

        Args:
            wait: Wait for running jobs to complete
        """
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Scheduler shutdown")

    async def schedule(self, reminder_id: str, title: str, body: str,
                       photo: Optional[bytes], fires_at: datetime) -> bool:
        """
        Schedule a notification for a reminder.

        Args:
            reminder_id: Reminder identifier (also the notification identity)
            title: Notification title
            body: Notification body text
            photo: Optional image bytes attached to the notification
            fires_at: When to deliver

        Returns:
            True if scheduled successfully
        """
        if fires_at <= datetime.now():
            logger.warning(
                f"Cannot schedule notification for {reminder_id} in the past: "
                f"{fires_at}"
            )
            # A stale job for this id must not fire with the old time
            await self.cancel(reminder_id)
            return False

        try:
            attachment = self._write_attachment(reminder_id, photo)

            self.scheduler.add_job(
                func=self._deliver,
                trigger=DateTrigger(run_date=fires_at),
                id=self.job_id(reminder_id),
                args=[reminder_id, title, body, attachment],
                replace_existing=True
            )

            logger.info(
                f"Scheduled notification {reminder_id} for "
                f"{fires_at.strftime('%Y-%m-%d %H:%M:%S')}"
            )
            return True

        except Exception as e:
            logger.error(f"Failed to schedule notification {reminder_id}: {e}", exc_info=True)
            return False

    async def cancel(self, reminder_id: str) -> bool:
        """
        Cancel a scheduled notification.

        Args:
            reminder_id: Reminder identifier

        Returns:
            True if a pending notification was removed
        """
        self._remove_attachment(reminder_id)

        try:
            self.scheduler.remove_job(self.job_id(reminder_id))
            logger.info(f"Cancelled notification {reminder_id}")
            return True

        except JobLookupError:
            logger.debug(f"No pending notification for {reminder_id}")
            return False

    def get_scheduled_count(self) -> int:
        """
        Get number of currently scheduled notifications.

        Returns:
            Number of scheduled jobs
        """
        return len(self.scheduler.get_jobs())

    def scheduled_ids(self) -> List[str]:
        """Reminder ids with a pending notification."""
        prefix = settings.NOTIFICATION_JOB_PREFIX
        return [job.id[len(prefix):] for job in self.scheduler.get_jobs()
                if job.id.startswith(prefix)]

    def get_next_run_time(self, reminder_id: str) -> Optional[datetime]:
        """
        Get next delivery time for a reminder.

        Args:
            reminder_id: Reminder identifier

        Returns:
            Next run time or None if not scheduled
        """
        job = self.scheduler.get_job(self.job_id(reminder_id))

        if job:
            # Pending jobs (scheduler not started) carry no next_run_time yet
            return getattr(job, 'next_run_time', None) or job.trigger.run_date

        return None

    def _attachment_path(self, reminder_id: str) -> Path:
        return self.attachments_dir / f"{reminder_id}.jpg"

    def _write_attachment(self, reminder_id: str, photo: Optional[bytes]) -> Optional[Path]:
        if not photo:
            self._remove_attachment(reminder_id)
            return None

        path = self._attachment_path(reminder_id)
        try:
            self.attachments_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(photo)
        except OSError as e:
            # Deliver without the photo rather than not at all
            logger.warning(f"Could not write attachment for {reminder_id}: {e}")
            return None
        return path

    def _remove_attachment(self, reminder_id: str) -> None:
        try:
            self._attachment_path(reminder_id).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove attachment for {reminder_id}: {e}")

    async def _deliver(self, reminder_id: str, title: str, body: str,
                       attachment: Optional[Path]) -> None:
        """
        Deliver a notification (internal).

        Args:
            reminder_id: Reminder identifier
            title: Notification title
            body: Notification body
            attachment: Optional photo path
        """
        notification = Notification(
            reminder_id=reminder_id,
            title=title,
            body=body,
            attachment=attachment
        )
        logger.info(f"Notification fired for {reminder_id}: {title}")

        if self.event_bus:
            await self.event_bus.publish(EventType.REMINDER_TRIGGERED, notification)

        if self.callback:
            try:
                await self.callback(notification)
            except Exception as e:
                logger.error(
                    f"Error in notification callback for {reminder_id}: {e}",
                    exc_info=True
                )

    def _job_executed(self, event) -> None:
        """
        Event listener for successful job execution.

        Args:
            event: Job execution event
        """
        logger.debug(f"Job executed: {event.job_id}")

    def _job_error(self, event) -> None:
        """
        Event listener for job errors.

        Args:
            event: Job error event
        """
        logger.error(
            f"Job error: {event.job_id}, "
            f"exception: {event.exception}",
            exc_info=event.exception
        )
