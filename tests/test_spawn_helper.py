"""
Tests for SpawnHelper against real processes.
"""

import asyncio

import pytest
from pydantic import ValidationError

from volmon.core.events.volume_events import CommandCompletedEvent
from volmon.core.exceptions import SpawnAlreadyPendingError
from volmon.services.command.spawn_helper import SpawnHelper, SpawnRequest

pytestmark = pytest.mark.asyncio


async def _run(helper: SpawnHelper, request) -> list:
    received = []

    async def on_complete(event: CommandCompletedEvent):
        received.append(event.result)

    helper.events.subscribe(CommandCompletedEvent, on_complete)
    helper.spawn(request)
    await helper.wait()
    return received


async def test_successful_command():
    helper = SpawnHelper()
    results = await _run(helper, {"command": "echo", "arguments": ["hello", "world"], "token": "t-1"})

    assert len(results) == 1
    result = results[0]
    assert result.valid
    assert result.text() == "hello world\n"
    assert result.token == "t-1"
    assert result.source is helper
    assert helper.is_valid
    assert not helper.is_pending
    assert helper.command == "echo"
    assert helper.arguments == ["hello", "world"]


async def test_stderr_output_marks_result_invalid():
    helper = SpawnHelper()
    results = await _run(helper, {"command": "sh", "arguments": ["-c", "echo out; echo oops >&2"]})

    result = results[0]
    assert not result.valid
    assert result.payload == b"oops\n"
    assert helper.result == b"out\n"
    assert helper.error == b"oops\n"


async def test_missing_executable_reports_invalid():
    helper = SpawnHelper()
    results = await _run(helper, {"command": "volmon-no-such-command"})

    assert len(results) == 1
    assert not results[0].valid
    assert not helper.is_valid


async def test_options_set_child_environment():
    helper = SpawnHelper()
    results = await _run(
        helper,
        SpawnRequest(command="sh", arguments=["-c", "echo $VOLMON_PROBE"], options=["VOLMON_PROBE=42"]),
    )
    assert results[0].text() == "42\n"
    assert helper.options == ["VOLMON_PROBE=42"]


async def test_completion_is_never_synchronous():
    helper = SpawnHelper()
    received = []

    async def on_complete(event):
        received.append(event)

    helper.events.subscribe(CommandCompletedEvent, on_complete)
    helper.spawn({"command": "echo"})

    assert received == []
    assert helper.is_pending
    await helper.wait()
    assert len(received) == 1


async def test_second_spawn_while_pending_is_rejected():
    helper = SpawnHelper()
    helper.spawn({"command": "sleep", "arguments": ["0.1"]})

    with pytest.raises(SpawnAlreadyPendingError):
        helper.spawn({"command": "echo"})

    await helper.wait()
    assert helper.is_valid


async def test_helper_can_be_reused_after_completion():
    helper = SpawnHelper()
    await _run(helper, {"command": "echo", "arguments": ["one"]})
    helper.events.clear()
    results = await _run(helper, {"command": "echo", "arguments": ["two"]})
    assert results[0].text() == "two\n"


@pytest.mark.parametrize(
    "request_data",
    [
        {},
        {"command": ""},
        {"command": 42},
        {"command": "echo", "arguments": ["ok", 3]},
        {"command": "echo", "options": [None]},
        {"command": "echo", "options": ["NOT_AN_ASSIGNMENT"]},
        {"command": "echo", "token": None},
    ],
)
async def test_invalid_requests_are_rejected_before_spawning(request_data):
    helper = SpawnHelper()

    with pytest.raises(ValidationError):
        helper.spawn(request_data)

    assert not helper.is_pending
    assert helper.command is None


async def test_non_mapping_request_is_rejected():
    helper = SpawnHelper()
    with pytest.raises(TypeError):
        helper.spawn(["echo"])
