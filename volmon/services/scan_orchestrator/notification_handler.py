import logging
from typing import Sequence

from volmon.core.events.event_bus import DomainEventBus
from volmon.core.events.volume_events import ScanStartedEvent, VolumesReadyEvent
from volmon.models import Volume, bytes_to_gb


class NotificationHandler:
    def __init__(self, event_bus: DomainEventBus):
        self._event_bus = event_bus

    async def handle_scan_started(self) -> None:
        logging.info("Volume scan started")
        await self._event_bus.publish(ScanStartedEvent())

    async def handle_ready(self, volumes: Sequence[Volume]) -> None:
        logging.info(f"Volume scan ready: {len(volumes)} volume(s)")
        for volume in volumes:
            logging.debug(
                f"Volume '{volume.name}' visible:{volume.visible} shown:{volume.shown} "
                f"mount:{volume.mount_point} dev:{volume.device_node} "
                f"capacity:{bytes_to_gb(volume.capacity_bytes):.4f}GB "
                f"free:{bytes_to_gb(volume.free_space_bytes):.4f}GB "
                f"used:{bytes_to_gb(volume.used_space_bytes):.4f}GB "
                f"({volume.percent_used:.2f}% used)",
                extra={
                    "operation": "volume_summary",
                    "volume_name": volume.name,
                    "low_space_alert": volume.low_space_alert,
                },
            )

        await self._event_bus.publish(VolumesReadyEvent(results=tuple(volumes)))

    async def handle_reset(self, reason: str) -> None:
        logging.error(f"Volume scan reset: {reason}")
        await self._event_bus.publish(VolumesReadyEvent(results=()))
