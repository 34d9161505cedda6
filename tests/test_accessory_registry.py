"""
Tests for the accessory projection of scan results.
"""

import pytest

from volmon.core.events.event_bus import DomainEventBus
from volmon.core.events.volume_events import ScanStartedEvent, VolumesReadyEvent
from volmon.models import ChargingState, Volume, VolumeType
from volmon.services.accessories.accessory_registry import AccessoryRegistry

pytestmark = pytest.mark.asyncio


def _volume(name, free=40, visible=True, shown=True, alert=False):
    return Volume(
        name=name,
        volume_type=VolumeType.APFS,
        mount_point=f"/Volumes/{name}",
        volume_uuid=f"uuid-{name}",
        capacity_bytes=100,
        free_space_bytes=free,
        visible=visible,
        shown=shown,
        low_space_alert=alert,
    )


@pytest.fixture
def bus():
    return DomainEventBus("test")


async def test_refreshing_follows_scan(bus):
    registry = AccessoryRegistry(bus)

    await bus.publish(ScanStartedEvent())
    assert registry.refreshing

    await bus.publish(VolumesReadyEvent(results=()))
    assert not registry.refreshing


async def test_shown_volumes_are_projected(bus):
    registry = AccessoryRegistry(bus)

    await bus.publish(VolumesReadyEvent(results=(
        _volume("Data", free=13, alert=True),
        _volume("Hidden", shown=False),
        _volume("Invisible", visible=False),
    )))

    (accessory,) = registry.get_accessories()
    assert accessory.name == "Data"
    assert accessory.percent_free == 13
    assert accessory.low_space_alert is True
    assert accessory.charging_state is ChargingState.NOT_CHARGEABLE
    assert accessory.model == "apfs"
    assert accessory.serial_number == "uuid-Data"
    assert accessory.reachable


async def test_missing_volume_becomes_unreachable_and_can_be_purged(bus):
    registry = AccessoryRegistry(bus)

    await bus.publish(VolumesReadyEvent(results=(_volume("Data"), _volume("Backup"))))
    await bus.publish(VolumesReadyEvent(results=(_volume("Data", free=30),)))

    assert registry.get_accessory("Data").reachable
    assert registry.get_accessory("Data").percent_free == 30
    assert not registry.get_accessory("Backup").reachable

    assert registry.purge_offline() == ["Backup"]
    assert registry.get_accessory("Backup") is None
    assert registry.purge_offline() == []


async def test_returning_volume_is_reachable_again(bus):
    registry = AccessoryRegistry(bus)

    await bus.publish(VolumesReadyEvent(results=(_volume("Data"),)))
    await bus.publish(VolumesReadyEvent(results=()))
    assert not registry.get_accessory("Data").reachable

    await bus.publish(VolumesReadyEvent(results=(_volume("Data"),)))
    assert registry.get_accessory("Data").reachable


async def test_detach_stops_updates(bus):
    registry = AccessoryRegistry(bus)
    registry.detach()

    await bus.publish(VolumesReadyEvent(results=(_volume("Data"),)))
    assert registry.get_accessories() == []
