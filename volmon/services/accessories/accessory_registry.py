"""Projects scan results onto user-facing volume accessories."""

import logging
from typing import Dict, List

from volmon.core.events.event_bus import DomainEventBus
from volmon.core.events.volume_events import ScanStartedEvent, VolumesReadyEvent
from volmon.models import ChargingState, Volume, VolumeAccessoryState


class AccessoryRegistry:
    """
    Keeps one accessory per volume that has been shown.

    Volumes missing from a later scan stay registered but unreachable until
    purge_offline() removes them.
    """

    def __init__(self, event_bus: DomainEventBus):
        self._event_bus = event_bus
        self._accessories: Dict[str, VolumeAccessoryState] = {}
        self._refreshing = False

        event_bus.subscribe(ScanStartedEvent, self.handle_scan_started)
        event_bus.subscribe(VolumesReadyEvent, self.handle_volumes_ready)

    @property
    def refreshing(self) -> bool:
        return self._refreshing

    def get_accessories(self) -> List[VolumeAccessoryState]:
        return list(self._accessories.values())

    def get_accessory(self, name: str):
        return self._accessories.get(name)

    async def handle_scan_started(self, event: ScanStartedEvent) -> None:
        self._refreshing = True

    async def handle_volumes_ready(self, event: VolumesReadyEvent) -> None:
        self._refreshing = False

        seen = set()
        for volume in event.results:
            if not (volume.visible and volume.shown) or not volume.name:
                continue
            seen.add(volume.name)
            if volume.name not in self._accessories:
                logging.info(f"Adding volume accessory '{volume.name}'")
            self._accessories[volume.name] = self._project(volume)

        for name, accessory in list(self._accessories.items()):
            if name not in seen and accessory.reachable:
                logging.info(f"Volume accessory '{name}' is offline")
                self._accessories[name] = accessory.model_copy(update={"reachable": False})

    def purge_offline(self) -> List[str]:
        offline = [name for name, acc in self._accessories.items() if not acc.reachable]
        for name in offline:
            logging.info(f"Purging offline volume accessory '{name}'")
            del self._accessories[name]
        return offline

    def detach(self) -> None:
        self._event_bus.unsubscribe(ScanStartedEvent, self.handle_scan_started)
        self._event_bus.unsubscribe(VolumesReadyEvent, self.handle_volumes_ready)

    @staticmethod
    def _project(volume: Volume) -> VolumeAccessoryState:
        return VolumeAccessoryState(
            name=volume.name,
            reachable=True,
            percent_free=min(max(round(volume.percent_free), 0), 100),
            low_space_alert=volume.low_space_alert,
            charging_state=ChargingState.NOT_CHARGEABLE,
            model=volume.volume_type.value,
            serial_number=volume.volume_uuid,
        )
