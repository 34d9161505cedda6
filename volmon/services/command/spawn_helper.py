"""Wrapper for spawning one external command and collecting its output."""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Any, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator, model_validator

from volmon.core.events.event_bus import DomainEventBus
from volmon.core.events.volume_events import CommandCompletedEvent
from volmon.core.exceptions import SpawnAlreadyPendingError

# Strong references to in-flight helper tasks
_running_tasks: Set[asyncio.Task] = set()


class SpawnRequest(BaseModel):
    """
    Validated spawn request.

    options are NAME=value environment assignments applied to the child
    process on top of the current environment.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    command: StrictStr = Field(..., min_length=1)
    arguments: List[StrictStr] = Field(default_factory=list)
    options: List[StrictStr] = Field(default_factory=list)
    token: Any = None

    @model_validator(mode="before")
    @classmethod
    def _token_must_be_defined(cls, data):
        if isinstance(data, dict) and "token" in data and data["token"] is None:
            raise ValueError("'token' must be something if it is specified")
        return data

    @field_validator("options")
    @classmethod
    def _options_are_assignments(cls, value: List[str]) -> List[str]:
        for option in value:
            name, sep, _ = option.partition("=")
            if not sep or not name:
                raise ValueError(f"Option is not a NAME=value assignment: {option!r}")
        return value

    def environment(self) -> Optional[dict]:
        if not self.options:
            return None
        env = dict(os.environ)
        for option in self.options:
            name, _, value = option.partition("=")
            env[name] = value
        return env


@dataclass(frozen=True)
class SpawnResult:
    """Outcome of one spawned command."""

    valid: bool
    payload: Optional[bytes]  # stdout when valid, stderr otherwise
    token: Any
    source: "SpawnHelper"

    def text(self) -> str:
        return self.payload.decode("utf-8", errors="replace") if self.payload else ""


class SpawnHelper:
    """
    Spawns one external process and reports its completion exactly once.

    The completion is published as a CommandCompletedEvent on ``events``
    from a task scheduled on the running loop, never from inside spawn().
    """

    def __init__(self):
        self.events = DomainEventBus("spawn")

        self._request: Optional[SpawnRequest] = None
        self._result_data: Optional[bytes] = None
        self._error_data: Optional[bytes] = None
        self._error_encountered = False
        self._pending = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_pending(self) -> bool:
        return self._pending

    @property
    def is_valid(self) -> bool:
        return self._request is not None and not self._pending and not self._error_encountered

    @property
    def result(self) -> Optional[bytes]:
        return self._result_data

    @property
    def error(self) -> Optional[bytes]:
        return self._error_data

    @property
    def command(self) -> Optional[str]:
        return self._request.command if self._request else None

    @property
    def arguments(self) -> Optional[List[str]]:
        return list(self._request.arguments) if self._request else None

    @property
    def options(self) -> Optional[List[str]]:
        return list(self._request.options) if self._request else None

    @property
    def token(self) -> Any:
        return self._request.token if self._request else None

    def describe(self) -> str:
        return " ".join([self.command or "<none>", *(self.arguments or [])])

    def spawn(self, request) -> None:
        """
        Validate the request and start the process.

        Args:
            request: SpawnRequest or a mapping with command/arguments/options/token

        Raises:
            SpawnAlreadyPendingError: a spawned process is still in progress
            TypeError: request is not a mapping or SpawnRequest
            ValueError: request fields are invalid (pydantic.ValidationError)
        """
        if self._pending:
            raise SpawnAlreadyPendingError(self.command)

        if isinstance(request, SpawnRequest):
            validated = request
        elif isinstance(request, dict):
            validated = SpawnRequest.model_validate(request)
        else:
            raise TypeError(f"request must be a mapping, got {type(request).__name__}")

        # Requires a running loop; nothing is touched before this point.
        loop = asyncio.get_running_loop()

        self._request = validated
        self._result_data = None
        self._error_data = None
        self._error_encountered = False
        self._pending = True

        self._task = loop.create_task(self._execute())
        _running_tasks.add(self._task)
        self._task.add_done_callback(_running_tasks.discard)

    async def wait(self) -> None:
        """Wait for the current process (and its completion notification) to finish."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def _execute(self) -> None:
        try:
            stdout, stderr, process_error = await self._run_process(self._request)
        except asyncio.CancelledError:
            self._pending = False
            raise

        if stdout:
            self._result_data = stdout
        if stderr:
            self._error_data = stderr
            self._error_encountered = True
        if process_error:
            self._error_encountered = True

        self._pending = False

        is_valid = self.is_valid
        result = SpawnResult(
            valid=is_valid,
            payload=self._result_data if is_valid else self._error_data,
            token=self._request.token,
            source=self,
        )
        await self.events.publish(CommandCompletedEvent(result=result))

    async def _run_process(self, request: SpawnRequest) -> Tuple[bytes, bytes, bool]:
        """Run the process to completion. Returns (stdout, stderr, process_error)."""
        try:
            process = await asyncio.create_subprocess_exec(
                request.command,
                *request.arguments,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=request.environment(),
            )
        except OSError as e:
            logging.debug(f"Child process for {request.command}: spawn error {e}")
            return b"", b"", True

        stdout_chunks: List[bytes] = []
        stderr_chunks: List[bytes] = []
        await asyncio.gather(
            self._pump(process.stdout, stdout_chunks),
            self._pump(process.stderr, stderr_chunks),
        )
        exit_code = await process.wait()
        logging.debug(f"Child process for {request.command}: exit_code:{exit_code}")

        return b"".join(stdout_chunks), b"".join(stderr_chunks), False

    @staticmethod
    async def _pump(stream: asyncio.StreamReader, sink: List[bytes]) -> None:
        while True:
            chunk = await stream.read(65536)
            if not chunk:
                break
            sink.append(chunk)
