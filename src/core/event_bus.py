"""
Event bus for reminder change notifications.
Lets the host react to store mutations and fired notifications without the
store knowing who listens.
"""

import asyncio
from collections import defaultdict
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime
from config.logging_config import get_logger
from config.settings import EventType

logger = get_logger(__name__)


@dataclass
class Event:
    """Event data structure."""
    event_type: EventType
    data: Any = None
    timestamp: datetime = field(default_factory=datetime.now)


class EventBus:
    """
    Asynchronous pub/sub bus.
    Publishing never blocks: a full subscriber queue drops the event.
    """

    def __init__(self):
        """Initialize the event bus."""
        self.subscribers: Dict[EventType, List[asyncio.Queue]] = defaultdict(list)
        self.all_subscribers: List[asyncio.Queue] = []  # Subscribe to all events
        self.lock = asyncio.Lock()
        logger.debug("EventBus initialized")

    async def subscribe(self, event_type: Optional[EventType] = None,
                        queue_size: int = 100) -> asyncio.Queue:
        """
        Subscribe to events.

        Args:
            event_type: Specific event type to subscribe to (None = all events)
            queue_size: Maximum queue size for buffering

        Returns:
            Queue that will receive events
        """
        queue = asyncio.Queue(maxsize=queue_size)

        async with self.lock:
            if event_type is None:
                self.all_subscribers.append(queue)
                logger.debug("New subscriber added for ALL events")
            else:
                self.subscribers[event_type].append(queue)
                logger.debug(f"New subscriber added for {event_type.value}")

        return queue

    async def unsubscribe(self, queue: asyncio.Queue,
                          event_type: Optional[EventType] = None) -> None:
        """
        Unsubscribe from events.

        Args:
            queue: Queue to remove
            event_type: Event type to unsubscribe from (None = all)
        """
        async with self.lock:
            if event_type is None:
                if queue in self.all_subscribers:
                    self.all_subscribers.remove(queue)
            elif queue in self.subscribers.get(event_type, []):
                self.subscribers[event_type].remove(queue)

    async def publish(self, event_type: EventType, data: Any = None) -> None:
        """
        Publish an event to all subscribers.

        Args:
            event_type: Type of event
            data: Event payload (reminder id, record snapshot, notification...)
        """
        event = Event(event_type=event_type, data=data)

        logger.debug(f"Publishing event: {event_type.value}")

        async with self.lock:
            target_queues = list(self.subscribers.get(event_type, []))
            target_queues.extend(self.all_subscribers)

        for q in target_queues:
            try:
                q.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    f"Subscriber queue full for {event_type.value}, "
                    "dropping event (slow subscriber)"
                )

    async def wait_for_event(self, event_type: EventType,
                             timeout: Optional[float] = None) -> Optional[Event]:
        """
        Wait for a specific event (one-time subscription).

        Args:
            event_type: Event type to wait for
            timeout: Optional timeout in seconds

        Returns:
            Event if received, None if timeout
        """
        queue = await self.subscribe(event_type, queue_size=10)

        try:
            return await asyncio.wait_for(queue.get(), timeout=timeout)

        except asyncio.TimeoutError:
            logger.debug(f"Timeout waiting for {event_type.value}")
            return None

        finally:
            await self.unsubscribe(queue, event_type)

    async def clear_all(self) -> None:
        """Clear all subscribers (for cleanup)."""
        async with self.lock:
            self.subscribers.clear()
            self.all_subscribers.clear()
            logger.debug("All event bus subscribers cleared")
