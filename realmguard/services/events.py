"""
RealmGuard - Event Bus
======================

Typed outbound channel for lifecycle, player and moderation events.

Emitting never awaits: each subscriber owns a bounded queue and the bus
enqueues with ``put_nowait``. A subscriber that falls behind loses its
oldest events, not the tenant's dispatch path.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from realmguard.core.logger import logger


DEFAULT_QUEUE_SIZE = 1000


# =============================================================================
# Event Model
# =============================================================================

class EventType:
    """Outbound event type constants."""

    # Lifecycle
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    KICKED = "kicked"
    REALM_CLOSED = "realm-closed"
    REALM_CRASHED = "realm-crashed"

    # Players
    JOIN = "join"
    LEAVE = "leave"
    CHAT = "chat"
    DEATH = "death"

    # Moderation
    AUTOMOD_ACTION = "automod-action"
    AUTOMOD_FLAG = "automod-flag"


class RealmEvent(BaseModel):
    """One outbound event."""

    type: str
    tenant_id: str
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# =============================================================================
# Subscriptions
# =============================================================================

@dataclass(eq=False)
class Subscription:
    """A subscriber's queue, optionally scoped to one tenant."""

    tenant_id: Optional[str] = None
    queue: "asyncio.Queue[RealmEvent]" = field(
        default_factory=lambda: asyncio.Queue(maxsize=DEFAULT_QUEUE_SIZE)
    )
    dropped: int = 0

    def matches(self, event: RealmEvent) -> bool:
        return self.tenant_id is None or self.tenant_id == event.tenant_id

    async def get(self) -> RealmEvent:
        return await self.queue.get()

    def drain(self) -> List[RealmEvent]:
        """Return everything queued right now without waiting."""
        events = []
        while not self.queue.empty():
            events.append(self.queue.get_nowait())
        return events


class EventBus:
    """Fan-out of ``RealmEvent`` to subscriber queues."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self._subscriptions: List[Subscription] = []

    def subscribe(self, tenant_id: Optional[str] = None) -> Subscription:
        subscription = Subscription(
            tenant_id=tenant_id,
            queue=asyncio.Queue(maxsize=self.queue_size),
        )
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            return False
        return True

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def emit(self, event_type: str, tenant_id: str, data: Optional[Dict[str, Any]] = None) -> RealmEvent:
        """
        Build an event and enqueue it for every matching subscriber.

        Returns:
            The emitted event.
        """
        event = RealmEvent(type=event_type, tenant_id=tenant_id, data=data or {})

        for subscription in list(self._subscriptions):
            if not subscription.matches(event):
                continue
            if subscription.queue.full():
                subscription.queue.get_nowait()
                subscription.dropped += 1
                if subscription.dropped % 100 == 1:
                    logger.warning("Event Subscriber Lagging", [
                        ("Tenant Filter", subscription.tenant_id or "all"),
                        ("Dropped", str(subscription.dropped)),
                    ])
            subscription.queue.put_nowait(event)

        return event


__all__ = [
    "EventType",
    "RealmEvent",
    "Subscription",
    "EventBus",
    "DEFAULT_QUEUE_SIZE",
]
