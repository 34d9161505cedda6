"""
Pytest configuration and shared fixtures.
"""

import asyncio
import threading
from typing import Dict, List, Optional, Tuple

import pytest

from volmon.core.events.event_bus import DomainEventBus
from volmon.core.events.volume_events import ScanStartedEvent, VolumesReadyEvent
from volmon.dependencies import reset_singletons
from volmon.services.command.spawn_helper import SpawnHelper, SpawnRequest
from volmon.services.platform_context import PlatformContext, ScanTimings


@pytest.fixture(autouse=True)
def clean_singletons():
    """Automatically reset singletons before each test."""
    reset_singletons()
    yield
    reset_singletons()


class CommandScript:
    """Canned command output keyed by full command line, or by command name."""

    def __init__(self):
        self.responses: Dict[str, Tuple[bytes, bytes, bool]] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.calls: List[str] = []
        self.requests: List[SpawnRequest] = []

    def respond(self, command_line: str, stdout: str = "", stderr: str = "", process_error: bool = False):
        self.responses[command_line] = (stdout.encode(), stderr.encode(), process_error)

    def hold(self, command_line: str) -> asyncio.Event:
        """Block the command until the returned event is set."""
        gate = asyncio.Event()
        self.gates[command_line] = gate
        return gate

    def lookup(self, command_line: str, command: str) -> Tuple[bytes, bytes, bool]:
        if command_line in self.responses:
            return self.responses[command_line]
        if command in self.responses:
            return self.responses[command]
        return b"", f"{command_line}: not scripted".encode(), False

    def factory(self) -> SpawnHelper:
        return ScriptedSpawnHelper(self)


class ScriptedSpawnHelper(SpawnHelper):
    def __init__(self, script: CommandScript):
        super().__init__()
        self._script = script

    async def _run_process(self, request: SpawnRequest):
        command_line = " ".join([request.command, *request.arguments])
        self._script.calls.append(command_line)
        self._script.requests.append(request)

        gate: Optional[asyncio.Event] = self._script.gates.get(command_line)
        if gate is not None:
            await gate.wait()
        await asyncio.sleep(0)
        return self._script.lookup(command_line, request.command)


class FakeObserver:
    """Stands in for a watchdog Observer; tests drive the handler directly."""

    instances: List["FakeObserver"] = []

    def __init__(self):
        self.handler = None
        self.path = None
        self.recursive = None
        self.started = False
        self.stopped = False
        self.join_thread = None
        FakeObserver.instances.append(self)

    def schedule(self, handler, path, recursive=False):
        self.handler = handler
        self.path = path
        self.recursive = recursive

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=None):
        self.join_thread = threading.get_ident()


class EventRecorder:
    """Collects scanning/ready notifications published on a bus."""

    def __init__(self, bus: DomainEventBus):
        self.scanning: List[ScanStartedEvent] = []
        self.ready: List[VolumesReadyEvent] = []
        self._ready_signal = asyncio.Event()
        bus.subscribe(ScanStartedEvent, self._on_scanning)
        bus.subscribe(VolumesReadyEvent, self._on_ready)

    async def _on_scanning(self, event):
        self.scanning.append(event)

    async def _on_ready(self, event):
        self.ready.append(event)
        self._ready_signal.set()

    async def wait_ready(self, count: int = 1, timeout: float = 2.0) -> VolumesReadyEvent:
        async def _wait():
            while len(self.ready) < count:
                self._ready_signal.clear()
                await self._ready_signal.wait()

        await asyncio.wait_for(_wait(), timeout)
        return self.ready[count - 1]


@pytest.fixture
def command_script():
    return CommandScript()


@pytest.fixture
def fake_observer():
    FakeObserver.instances = []
    yield FakeObserver
    FakeObserver.instances = []


@pytest.fixture
def fast_timings():
    return ScanTimings(debounce_seconds=0.05, watchdog_seconds=0.5, min_uptime_seconds=0.0)


@pytest.fixture
def make_context(command_script, fake_observer, fast_timings):
    def _make(system: str = "linux", uptime: float = 100_000.0, timings: ScanTimings = None):
        return PlatformContext(
            system=system,
            uptime=lambda: uptime,
            username=lambda: "tester",
            spawn_helper_factory=command_script.factory,
            observer_factory=fake_observer,
            timings=timings or fast_timings,
        )

    return _make


@pytest.fixture
def event_recorder():
    return EventRecorder
