from functools import lru_cache
from typing import Any, Dict

from volmon.core.events.event_bus import DomainEventBus

from .config import Settings
from .services.accessories import AccessoryRegistry
from .services.platform_context import PlatformContext
from .services.scan_orchestrator import VolumeScanOrchestrator

# Global singleton instances
_singletons: Dict[str, Any] = {}


@lru_cache
def get_settings() -> Settings:
    return Settings()


def get_event_bus() -> DomainEventBus:
    if "event_bus" not in _singletons:
        _singletons["event_bus"] = DomainEventBus("volumes")
    return _singletons["event_bus"]


def get_platform_context() -> PlatformContext:
    if "platform_context" not in _singletons:
        _singletons["platform_context"] = PlatformContext()
    return _singletons["platform_context"]


def get_scan_orchestrator() -> VolumeScanOrchestrator:
    if "scan_orchestrator" not in _singletons:
        _singletons["scan_orchestrator"] = VolumeScanOrchestrator(
            config=get_settings().scan_configuration,
            context=get_platform_context(),
            event_bus=get_event_bus(),
        )
    return _singletons["scan_orchestrator"]


def get_accessory_registry() -> AccessoryRegistry:
    if "accessory_registry" not in _singletons:
        _singletons["accessory_registry"] = AccessoryRegistry(event_bus=get_event_bus())
    return _singletons["accessory_registry"]


def reset_singletons() -> None:
    """Drop every singleton (used by tests)."""
    _singletons.clear()
    get_settings.cache_clear()
