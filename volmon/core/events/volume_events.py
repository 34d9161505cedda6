from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Tuple

from volmon.core.events.domain_event import DomainEvent
from volmon.models import Volume

if TYPE_CHECKING:
    from volmon.services.command.spawn_helper import SpawnResult


@dataclass(frozen=True)
class CommandCompletedEvent(DomainEvent):
    """Published once by a SpawnHelper when its process has exited."""
    result: "SpawnResult"


@dataclass(frozen=True)
class WatchAddResultEvent(DomainEvent):
    """Published by the VolumeWatcher for every entry passed to add_watches()."""
    target: str
    success: bool


@dataclass(frozen=True)
class ChangeDetectedEvent(DomainEvent):
    """Published by the VolumeWatcher when a watched folder changes."""
    event_type: str
    name: str
    target: Any = None


@dataclass(frozen=True)
class ScanStartedEvent(DomainEvent):
    """Published when a rescan is initiated ("scanning")."""


@dataclass(frozen=True)
class VolumesReadyEvent(DomainEvent):
    """Published when a scan completes or is reset ("ready")."""
    results: Tuple[Volume, ...] = ()
