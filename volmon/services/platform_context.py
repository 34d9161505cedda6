"""Host capabilities injected into the scan orchestrator and its strategies."""

import getpass
import platform
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import psutil
from watchdog.observers import Observer

from volmon.services.command.spawn_helper import SpawnHelper


@dataclass(frozen=True)
class ScanTimings:
    """Fixed delays used by the orchestrator (seconds)."""

    debounce_seconds: float = 1.0
    watchdog_seconds: float = 120.0
    min_uptime_seconds: float = 600.0


def host_uptime_seconds() -> float:
    return max(0.0, time.time() - psutil.boot_time())


@dataclass
class PlatformContext:
    system: str = field(default_factory=lambda: platform.system().lower())
    uptime: Callable[[], float] = host_uptime_seconds
    username: Callable[[], str] = getpass.getuser
    spawn_helper_factory: Callable[[], SpawnHelper] = SpawnHelper
    observer_factory: Callable[[], Any] = Observer
    timings: ScanTimings = field(default_factory=ScanTimings)
