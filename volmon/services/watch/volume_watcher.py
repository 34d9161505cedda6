"""Watches mount-root folders and forwards change notifications."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import aiofiles.os
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from volmon.core.events.event_bus import DomainEventBus
from volmon.core.events.volume_events import ChangeDetectedEvent, WatchAddResultEvent

OBSERVER_JOIN_TIMEOUT = 5.0


class WatchEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    target: StrictStr = Field(..., min_length=1)
    recursive: StrictBool = False
    ignore_access: StrictBool = False


class _ChangeForwarder(FileSystemEventHandler):
    """Runs on the observer thread; hands every event back to the loop."""

    def __init__(self, watcher: "VolumeWatcher", target: str):
        super().__init__()
        self._watcher = watcher
        self._target = target

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in ("opened", "closed", "closed_no_write"):
            return
        self._watcher._notify_change(self._target, event.event_type, event.src_path)


class VolumeWatcher:
    """
    Maintains one watchdog observer per watched target.

    Notifications are published on ``events``:
    - WatchAddResultEvent for every entry passed to add_watches()
    - ChangeDetectedEvent for every change reported by an observer, delivered
      on the event loop after the current turn. No debouncing or filtering.
    """

    def __init__(self, observer_factory: Callable[[], Any] = Observer):
        self.events = DomainEventBus("watcher")
        self._observer_factory = observer_factory
        self._watchers: Dict[str, Any] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending_notifications: set = set()

    async def add_watches(self, watch_list) -> bool:
        """
        Install watches for every entry whose target exists (or ignores access).

        Args:
            watch_list: non-empty list of WatchEntry or mappings with
                        target, recursive and ignore_access

        Returns:
            True only if every entry was watched successfully

        Raises:
            TypeError: watch_list is not a non-empty list
            ValueError: an entry does not carry a valid target
        """
        if not isinstance(watch_list, (list, tuple)) or len(watch_list) == 0:
            raise TypeError("'watch_list' is not a non-zero length list.")
        entries = [
            item if isinstance(item, WatchEntry) else WatchEntry.model_validate(item)
            for item in watch_list
        ]

        self._loop = asyncio.get_running_loop()

        access_results = await asyncio.gather(
            *(self.validate_access(entry.target) for entry in entries)
        )

        success = True
        for entry, access_ok in zip(entries, access_results):
            watch_ok = access_ok or entry.ignore_access
            if watch_ok:
                exists = entry.target in self._watchers
                logging.debug(
                    f"Watch target: '{entry.target}' access_ok:{access_ok} exists:{exists}"
                )
                if exists:
                    await self.delete_watch(entry.target)
                watch_ok = self._start_observer(entry)
            else:
                logging.warning(f"Unable to watch target: '{entry.target}'")

            success = success and watch_ok
            await self.events.publish(
                WatchAddResultEvent(target=entry.target, success=watch_ok)
            )

        return success

    async def delete_watch(self, target: str) -> bool:
        observer = self._watchers.pop(target, None)
        if observer is None:
            return False
        await self._stop_observer(observer)
        return True

    def list_watches(self) -> List[str]:
        return list(self._watchers.keys())

    async def validate_access(self, target: str) -> bool:
        if not isinstance(target, str) or len(target) < 1:
            raise TypeError("'target' is not a non-zero length string.")
        try:
            return await aiofiles.os.path.exists(target)
        except OSError:
            return False

    async def terminate(self) -> None:
        for target in list(self._watchers.keys()):
            logging.debug(f"Volume watcher closing target '{target}'")
            await self.delete_watch(target)

        if self._pending_notifications:
            await asyncio.gather(*self._pending_notifications, return_exceptions=True)

        self.events.clear()

    def _start_observer(self, entry: WatchEntry) -> bool:
        observer = self._observer_factory()
        try:
            observer.schedule(
                _ChangeForwarder(self, entry.target),
                entry.target,
                recursive=entry.recursive,
            )
            observer.start()
        except OSError as e:
            logging.warning(f"Failed to start watch on '{entry.target}': {e}")
            return False

        self._watchers[entry.target] = observer
        return True

    @staticmethod
    async def _stop_observer(observer) -> None:
        observer.stop()
        # join blocks until the observer thread exits
        await asyncio.to_thread(observer.join, OBSERVER_JOIN_TIMEOUT)

    def _notify_change(self, target: str, event_type: str, src_path) -> None:
        """Called from observer threads."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        name = Path(str(src_path)).name or str(src_path)
        loop.call_soon_threadsafe(self._schedule_publish, target, event_type, name)

    def _schedule_publish(self, target: str, event_type: str, name: str) -> None:
        if target not in self._watchers:
            return
        logging.debug(f"Volume watcher change detected: type:{event_type} name:{name}")
        task = asyncio.ensure_future(
            self.events.publish(
                ChangeDetectedEvent(event_type=event_type, name=name, target=target)
            )
        )
        self._pending_notifications.add(task)
        task.add_done_callback(self._pending_notifications.discard)
