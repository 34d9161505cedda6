"""
Tests for singleton wiring and the application lifespan.
"""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from volmon import dependencies
from volmon.main import app, lifespan


def test_singletons_are_shared_and_resettable(monkeypatch):
    monkeypatch.setenv("VOLMON_PERIOD_HR", "3")

    orchestrator = dependencies.get_scan_orchestrator()
    registry = dependencies.get_accessory_registry()

    assert dependencies.get_scan_orchestrator() is orchestrator
    assert dependencies.get_accessory_registry() is registry
    assert orchestrator.period == 3.0
    assert orchestrator.event_bus is dependencies.get_event_bus()

    dependencies.reset_singletons()
    assert dependencies.get_accessory_registry() is not registry


@pytest.mark.asyncio
async def test_lifespan_starts_and_terminates_orchestrator():
    orchestrator = Mock()
    orchestrator.terminate = AsyncMock()

    with patch("volmon.main.setup_logging") as mock_setup_logging, \
            patch("volmon.main.get_scan_orchestrator", return_value=orchestrator), \
            patch("volmon.main.get_accessory_registry") as mock_registry:
        async with lifespan(app):
            mock_setup_logging.assert_called_once()
            mock_registry.assert_called_once()
            orchestrator.start.assert_called_once_with()
            orchestrator.terminate.assert_not_awaited()

    orchestrator.terminate.assert_awaited_once()
