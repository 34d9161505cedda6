import asyncio
import logging
from typing import Callable, Optional, Set, Union

from volmon.core.events.event_bus import DomainEventBus
from volmon.core.events.volume_events import ChangeDetectedEvent
from volmon.core.exceptions import VolumeMonitorError
from volmon.models import MAX_PERIOD_HR, MIN_PERIOD_HR, ScanConfiguration, ScanStatus, Volume
from volmon.services.interrogation.base_interrogator import BaseInterrogator
from volmon.services.interrogation.platform_factory import PlatformFactory
from volmon.services.platform_context import PlatformContext
from volmon.services.watch.volume_watcher import VolumeWatcher, WatchEntry

from .notification_handler import NotificationHandler
from .scan_state import ScanState
from .volume_policy import VolumePolicy

SECONDS_PER_HOUR = 3600.0


class VolumeScanOrchestrator:
    """
    Drives periodic volume scans.

    States: idle -> scanning -> ready (or reset) -> idle. "scanning" and
    "ready" are published on ``event_bus`` as ScanStartedEvent and
    VolumesReadyEvent. Ready is published exactly once per scan, when the
    interrogator's pending work drains, or with an empty result when the scan
    is aborted or the watchdog fires.

    Start requests and filesystem changes that arrive while a scan is running
    are coalesced into one debounced rescan after it finishes.
    """

    def __init__(
        self,
        config: Union[ScanConfiguration, dict, None] = None,
        context: Optional[PlatformContext] = None,
        event_bus: Optional[DomainEventBus] = None,
        interrogator_factory: Optional[Callable[["VolumeScanOrchestrator"], BaseInterrogator]] = None,
    ):
        if config is None:
            config = ScanConfiguration()
        elif isinstance(config, dict):
            config = ScanConfiguration.model_validate(config)
        elif not isinstance(config, ScanConfiguration):
            raise TypeError(f"config must be a ScanConfiguration or mapping, got {type(config).__name__}")

        self._context = context or PlatformContext()
        self._timings = self._context.timings
        self._policy = VolumePolicy.from_configuration(config)
        self._period_hr = config.period_hr

        if interrogator_factory is None:
            interrogator_factory = PlatformFactory(self._context).create_interrogator
        self._interrogator = interrogator_factory(self)

        self.event_bus = event_bus or DomainEventBus("orchestrator")
        self._state = ScanState()
        self._notification_handler = NotificationHandler(self.event_bus)

        self._watcher = VolumeWatcher(observer_factory=self._context.observer_factory)
        self._watcher.events.subscribe(ChangeDetectedEvent, self._on_change_detected)
        self._watches_requested = False

        self._period_handle: Optional[asyncio.TimerHandle] = None
        self._deferred_start_handle: Optional[asyncio.TimerHandle] = None
        self._watchdog_handle: Optional[asyncio.TimerHandle] = None
        self._uptime_checked = False
        self._rescan_pending = False
        self._terminated = False
        self._tasks: Set[asyncio.Task] = set()

        logging.info(
            f"VolumeScanOrchestrator initialized: platform={self._interrogator.get_platform_name()} "
            f"period={self._period_hr}h"
        )

    # Public surface

    @property
    def period(self) -> float:
        return self._period_hr

    @period.setter
    def period(self, period_hr: float) -> None:
        if isinstance(period_hr, bool) or not isinstance(period_hr, (int, float)):
            raise TypeError(f"'period_hr' must be a number between {MIN_PERIOD_HR} and {MAX_PERIOD_HR}")
        if not (MIN_PERIOD_HR <= period_hr <= MAX_PERIOD_HR):
            raise ValueError(f"'period_hr' must be a number between {MIN_PERIOD_HR} and {MAX_PERIOD_HR}")

        self._period_hr = float(period_hr)
        self.stop()

    @property
    def minimum_period(self) -> float:
        return MIN_PERIOD_HR

    @property
    def maximum_period(self) -> float:
        return MAX_PERIOD_HR

    @property
    def active(self) -> bool:
        return self._period_handle is not None

    @property
    def is_scanning(self) -> bool:
        return self._state.check_in_progress

    @property
    def policy(self) -> VolumePolicy:
        return self._policy

    @property
    def interrogator(self) -> BaseInterrogator:
        return self._interrogator

    @property
    def watcher(self) -> VolumeWatcher:
        return self._watcher

    def status(self) -> ScanStatus:
        last_ready = self._state.last_ready_at
        return ScanStatus(
            refreshing=self._state.check_in_progress,
            active=self.active,
            period_hr=self._period_hr,
            minimum_period_hr=MIN_PERIOD_HR,
            maximum_period_hr=MAX_PERIOD_HR,
            volume_count=self._state.volume_count,
            last_ready_at=last_ready.isoformat() if last_ready else None,
        )

    def start(self) -> None:
        """Start (or restart) periodic scanning. Requires a running event loop."""
        loop = asyncio.get_running_loop()
        if self._terminated:
            logging.warning("start() ignored: orchestrator has been terminated")
            return

        self._cancel_deferred_start()
        self._ensure_watches()

        if self._state.check_in_progress:
            logging.debug("start() during a scan: rescan queued")
            self._rescan_pending = True
            return

        self.stop()

        if not self._uptime_checked:
            self._uptime_checked = True
            uptime = self._context.uptime()
            if uptime < self._timings.min_uptime_seconds:
                delay = self._timings.min_uptime_seconds - uptime
                logging.info(f"Host uptime {uptime:.0f}s is too short, deferring first scan by {delay:.0f}s")
                self._deferred_start_handle = loop.call_later(delay, self.start)
                return

        self._spawn_task(self._initiate_check())

    def stop(self) -> None:
        """Cancel the periodic timer. A scan in flight runs to completion."""
        if self._period_handle is not None:
            self._period_handle.cancel()
            self._period_handle = None

    async def terminate(self) -> None:
        if self._terminated:
            return
        self._terminated = True

        self.stop()
        self._cancel_deferred_start()
        self._cancel_watchdog()

        # Late completions from commands still running find nothing pending
        self._state.check_in_progress = False
        self._interrogator.do_reset()

        current = asyncio.current_task()
        pending = [task for task in self._tasks if task is not current]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        await self._watcher.terminate()
        self.event_bus.clear()
        logging.info("VolumeScanOrchestrator terminated")

    # Scan host interface used by the interrogators

    def add_volume(self, volume: Volume) -> None:
        self._state.add_volume(volume)

    async def update_check_in_progress(self) -> None:
        was_in_progress = self._state.check_in_progress
        self._state.check_in_progress = self._interrogator.is_check_in_progress

        if was_in_progress and not self._state.check_in_progress:
            self._cancel_watchdog()
            self._state.mark_ready()
            await self._notification_handler.handle_ready(self._state.snapshot())
            self._after_scan()

    async def abort_scan(self, reason: str) -> None:
        await self.reset_check(issue_ready=True, reason=reason)

    async def reset_check(self, issue_ready: bool = True, reason: str = "scan reset") -> None:
        if not isinstance(issue_ready, bool):
            raise TypeError("'issue_ready' is not a boolean.")

        self._state.check_in_progress = False
        self._cancel_watchdog()
        self._state.clear_volumes()
        self._interrogator.do_reset()
        self._cancel_deferred_start()

        if issue_ready:
            await self._notification_handler.handle_reset(reason)
        self._after_scan()

    # Internals

    async def _initiate_check(self) -> None:
        self._schedule_periodic_check()

        if self._state.check_in_progress:
            logging.debug("Periodic check during a scan: rescan queued")
            self._rescan_pending = True
            return

        self._state.check_in_progress = True
        self._state.clear_volumes()
        self._interrogator.do_reset()
        self._arm_watchdog()

        await self._notification_handler.handle_scan_started()

        try:
            self._interrogator.initiate_interrogation()
        except (TypeError, ValueError, VolumeMonitorError) as e:
            await self.abort_scan(f"Unable to start interrogation: {e}")

    def _schedule_periodic_check(self) -> None:
        self.stop()
        if self._terminated:
            return
        loop = asyncio.get_running_loop()
        self._period_handle = loop.call_later(
            self._period_hr * SECONDS_PER_HOUR, self._on_period_elapsed
        )

    def _on_period_elapsed(self) -> None:
        self._period_handle = None
        self._spawn_task(self._initiate_check())

    def _arm_watchdog(self) -> None:
        self._cancel_watchdog()
        loop = asyncio.get_running_loop()
        self._watchdog_handle = loop.call_later(
            self._timings.watchdog_seconds, self._on_watchdog_expired
        )

    def _on_watchdog_expired(self) -> None:
        self._watchdog_handle = None
        if self._state.check_in_progress:
            self._spawn_task(
                self.reset_check(
                    issue_ready=True,
                    reason=f"scan did not finish within {self._timings.watchdog_seconds}s",
                )
            )

    def _cancel_watchdog(self) -> None:
        if self._watchdog_handle is not None:
            self._watchdog_handle.cancel()
            self._watchdog_handle = None

    def _cancel_deferred_start(self) -> None:
        if self._deferred_start_handle is not None:
            self._deferred_start_handle.cancel()
            self._deferred_start_handle = None

    def _schedule_debounced_start(self) -> None:
        self._cancel_deferred_start()
        if self._terminated:
            return
        loop = asyncio.get_running_loop()
        self._deferred_start_handle = loop.call_later(self._timings.debounce_seconds, self.start)

    def _after_scan(self) -> None:
        if self._rescan_pending:
            self._rescan_pending = False
            self._schedule_debounced_start()

    async def _on_change_detected(self, event: ChangeDetectedEvent) -> None:
        logging.debug(
            f"Volume watcher change detected: type:{event.event_type} name:{event.name} "
            f"active:{self.active} scanning:{self._state.check_in_progress}"
        )
        if self.active:
            self._schedule_debounced_start()

    def _ensure_watches(self) -> None:
        if self._watches_requested:
            return
        self._watches_requested = True
        self._spawn_task(self._install_watches())

    async def _install_watches(self) -> None:
        folders = self._interrogator.watch_folders
        if not folders:
            return
        entries = [WatchEntry(target=folder) for folder in folders]
        success = await self._watcher.add_watches(entries)
        logging.info(f"Volume watches installed: {self._watcher.list_watches()} all_ok:{success}")

    def _spawn_task(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logging.error(
                f"Orchestrator task failed: {task.exception()}", exc_info=task.exception()
            )
