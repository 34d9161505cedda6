from .domain_event import DomainEvent
from .event_bus import DomainEventBus
from .volume_events import (
    ChangeDetectedEvent,
    CommandCompletedEvent,
    ScanStartedEvent,
    VolumesReadyEvent,
    WatchAddResultEvent,
)

__all__ = [
    "DomainEvent",
    "DomainEventBus",
    "ChangeDetectedEvent",
    "CommandCompletedEvent",
    "ScanStartedEvent",
    "VolumesReadyEvent",
    "WatchAddResultEvent",
]
