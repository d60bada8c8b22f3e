"""
Outbound fleet events.

Services receive a ``Notifier`` at construction and publish structured
events to it without waiting for delivery. Email or webhook delivery lives
outside this package and subscribes by implementing ``publish``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


class NotificationEventType(str, Enum):
    MAINTENANCE_DUE = "MAINTENANCE_DUE"
    MAINTENANCE_OVERDUE = "MAINTENANCE_OVERDUE"
    STOCK_LOW = "STOCK_LOW"
    STOCK_OUT = "STOCK_OUT"
    COUPLING_CHANGED = "COUPLING_CHANGED"
    STATE_CHANGED = "STATE_CHANGED"
    INSPECTION_FAILED = "INSPECTION_FAILED"


@dataclass(frozen=True)
class FleetEvent:
    event_type: NotificationEventType
    title: str
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=datetime.now)


class Notifier(Protocol):
    def publish(self, event: FleetEvent) -> None:
        ...


class NullNotifier:
    """Drops every event."""

    def publish(self, event: FleetEvent) -> None:
        return None


class LoggingNotifier:
    """Default notifier: writes each event as a structured log line."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def publish(self, event: FleetEvent) -> None:
        self.log.info(
            f"Fleet event: {event.event_type.value}",
            extra={
                "event_type": event.event_type.value,
                "title": event.title,
                "payload": event.payload,
                "occurred_at": event.occurred_at.isoformat(),
            },
        )


class RecordingNotifier:
    """Keeps published events in memory (useful for tests and dry runs)."""

    def __init__(self):
        self.events: List[FleetEvent] = []

    def publish(self, event: FleetEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: NotificationEventType) -> List[FleetEvent]:
        return [e for e in self.events if e.event_type == event_type]


def safe_publish(notifier: Notifier, event: FleetEvent) -> None:
    """Publish without letting a subscriber failure leak into the operation."""
    try:
        notifier.publish(event)
    except Exception as e:
        logger.error(f"Failed to publish {event.event_type.value} event: {e}")
