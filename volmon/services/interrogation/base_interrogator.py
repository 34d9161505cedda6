"""Abstract interrogation strategy - one implementation per host OS."""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Optional

from volmon.core.events.volume_events import CommandCompletedEvent
from volmon.services.command.spawn_helper import SpawnResult
from volmon.services.platform_context import PlatformContext

if TYPE_CHECKING:
    from volmon.services.scan_orchestrator.scan_orchestrator import VolumeScanOrchestrator

CompletionHandler = Callable[[CommandCompletedEvent], Awaitable[None]]

# Tabular output must not be localised
C_LOCALE_OPTIONS = ["LC_ALL=C"]


class BaseInterrogator(ABC):
    """
    Runs the command pipeline that discovers volumes for one scan.

    Discovered volumes are handed to the orchestrator with add_volume(); after
    every completion the orchestrator is asked to re-evaluate whether the scan
    is done (update_check_in_progress). Failures abort the whole scan through
    abort_scan().
    """

    def __init__(self, host: "VolumeScanOrchestrator", context: PlatformContext):
        self._host = host
        self._context = context

    @abstractmethod
    def initiate_interrogation(self) -> None:
        """Start the command pipeline. Must be called with a running event loop."""

    @abstractmethod
    def do_reset(self) -> None:
        """Forget all strategy-local pending bookkeeping."""

    @property
    @abstractmethod
    def is_check_in_progress(self) -> bool:
        pass

    @property
    @abstractmethod
    def watch_folders(self) -> List[str]:
        pass

    @abstractmethod
    def get_platform_name(self) -> str:
        pass

    def _spawn(
        self,
        command: str,
        arguments: List[str],
        handler: CompletionHandler,
        token: Optional[Any] = None,
    ) -> None:
        helper = self._context.spawn_helper_factory()
        helper.events.subscribe(CommandCompletedEvent, handler)

        request = {"command": command, "arguments": arguments, "options": C_LOCALE_OPTIONS}
        if token is not None:
            request["token"] = token
        logging.debug(f"[{self.get_platform_name()}] Spawning '{command} {' '.join(arguments)}'")
        helper.spawn(request)

    def _log_response(self, result: SpawnResult) -> None:
        logging.debug(
            f"'{result.source.describe()}' result: valid:{result.valid} token:{result.token}"
        )
        logging.debug(result.text())
