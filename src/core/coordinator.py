"""
Main application coordinator.
Builds the reminder store with its adapters and runs the notification loop.
"""

import asyncio
from typing import Optional

from config.logging_config import get_logger
from config import settings
from config.settings import EventType, ReminderFilter
from src.core.event_bus import EventBus, Event
from src.reminder.repository import ReminderRepository
from src.reminder.scheduler import ReminderScheduler, Notification
from src.reminder.store import ReminderStore
from src.reminder.sync import ExternalTaskSyncAdapter, build_sync_adapter

logger = get_logger(__name__)


class Coordinator:
    """
    Main application coordinator.
    Initializes components in dependency order and, when running as a
    service, keeps notifications in step with the stored reminders.
    """

    def __init__(self, db_path: str = None, enable_notifications: bool = True,
                 sync: Optional[ExternalTaskSyncAdapter] = None,
                 enable_sync: bool = None):
        """
        Initialize coordinator.

        Args:
            db_path: SQLite database path (default from settings)
            enable_notifications: Run the local notification scheduler
            sync: Explicit external sync adapter (overrides enable_sync)
            enable_sync: Build the configured sync adapter (default from settings)
        """
        self.db_path = db_path
        self.enable_notifications = enable_notifications
        self._sync_override = sync
        self.enable_sync = enable_sync

        self.event_bus: Optional[EventBus] = None
        self.repository: Optional[ReminderRepository] = None
        self.scheduler: Optional[ReminderScheduler] = None
        self.sync: Optional[ExternalTaskSyncAdapter] = None
        self.store: Optional[ReminderStore] = None

        # Runtime state
        self.running = False
        self.main_task: Optional[asyncio.Task] = None
        self.triggered_queue: Optional[asyncio.Queue] = None

    async def initialize(self) -> bool:
        """
        Initialize all components in dependency order.

        Returns:
            True if all components initialized successfully
        """
        try:
            logger.debug("Initializing components...")

            # 1. Event bus
            self.event_bus = EventBus()

            # 2. Persistence
            self.repository = ReminderRepository(db_path=self.db_path)

            # 3. Notifications (only meaningful in a long-running process)
            if self.enable_notifications:
                self.scheduler = ReminderScheduler(event_bus=self.event_bus)
                self.scheduler.start()

            # 4. External sync (optional, may not be available)
            self.sync = self._sync_override or build_sync_adapter(self.enable_sync)

            # 5. Store
            self.store = ReminderStore(
                repository=self.repository,
                notifier=self.scheduler,
                sync=self.sync,
                event_bus=self.event_bus
            )
            count = self.store.load()
            logger.debug(f"Store ready with {count} reminders")

            # Restore scheduled notifications
            await self.store.resync_notifications()

            return True

        except Exception as e:
            logger.error(f"Initialization failed: {e}", exc_info=True)
            return False

    async def start(self, on_notification=None) -> None:
        """
        Start the notification loop.

        Args:
            on_notification: Optional async callable receiving each fired Notification
        """
        if self.running:
            logger.warning("Coordinator already running")
            return

        self.running = True
        self.triggered_queue = await self.event_bus.subscribe(EventType.REMINDER_TRIGGERED)
        self.main_task = asyncio.create_task(self._main_loop(on_notification))

        logger.info("Coordinator started")

    async def stop(self) -> None:
        """Stop the coordinator."""
        logger.debug("Stopping coordinator...")

        self.running = False

        if self.main_task:
            self.main_task.cancel()
            try:
                await self.main_task
            except asyncio.CancelledError:
                pass

        await self._cleanup()

        logger.debug("Coordinator stopped")

    async def _cleanup(self) -> None:
        """Flush side effects and release components."""
        if self.store:
            await self.store.drain()

        if self.scheduler:
            self.scheduler.shutdown(wait=False)

        if self.event_bus:
            await self.event_bus.clear_all()

    async def refresh(self) -> None:
        """
        Reload reminders written by other processes and realign notifications.
        """
        self.store.load()

        if not self.scheduler:
            return

        active_ids = {r.id for r in self.store.list(ReminderFilter.UPCOMING)}
        for reminder_id in self.scheduler.scheduled_ids():
            if reminder_id not in active_ids:
                await self.scheduler.cancel(reminder_id)

        await self.store.resync_notifications()

    async def _main_loop(self, on_notification) -> None:
        """Deliver fired notifications and periodically reload the store."""
        logger.info("Main loop started")
        loop = asyncio.get_running_loop()
        next_refresh = loop.time() + settings.STORE_RELOAD_INTERVAL

        try:
            while self.running:
                timeout = max(0.0, next_refresh - loop.time())
                try:
                    event: Event = await asyncio.wait_for(
                        self.triggered_queue.get(), timeout=timeout
                    )
                except asyncio.TimeoutError:
                    await self.refresh()
                    next_refresh = loop.time() + settings.STORE_RELOAD_INTERVAL
                    continue

                await self._handle_notification(event.data, on_notification)

        except asyncio.CancelledError:
            logger.debug("Main loop cancelled")
            raise

        finally:
            logger.info("Main loop stopped")

    async def _handle_notification(self, notification: Notification, on_notification) -> None:
        logger.info(f"Reminder due: {notification.title} - {notification.body}")

        if on_notification:
            try:
                await on_notification(notification)
            except Exception as e:
                logger.error(f"Error presenting notification: {e}", exc_info=True)
