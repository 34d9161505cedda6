from datetime import datetime
from typing import List, Optional, Tuple

from volmon.models import Volume


class ScanState:
    """Volumes accumulated by the scan in flight. Only snapshots leave this class."""

    def __init__(self):
        self._volumes: List[Volume] = []
        self._check_in_progress = False
        self._last_ready_at: Optional[datetime] = None

    @property
    def check_in_progress(self) -> bool:
        return self._check_in_progress

    @check_in_progress.setter
    def check_in_progress(self, value: bool) -> None:
        self._check_in_progress = value

    @property
    def last_ready_at(self) -> Optional[datetime]:
        return self._last_ready_at

    @property
    def volume_count(self) -> int:
        return len(self._volumes)

    def add_volume(self, volume: Volume) -> None:
        self._volumes.append(volume)

    def clear_volumes(self) -> None:
        self._volumes = []

    def snapshot(self) -> Tuple[Volume, ...]:
        return tuple(self._volumes)

    def mark_ready(self) -> None:
        self._last_ready_at = datetime.now()
