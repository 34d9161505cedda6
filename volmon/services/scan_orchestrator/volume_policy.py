import re
from typing import List, Sequence

from volmon.models import (
    MAX_LOW_SPACE_THRESHOLD,
    MIN_LOW_SPACE_THRESHOLD,
    ScanConfiguration,
    VolumeCustomization,
)


class VolumePolicy:
    """Low space alert and exclusion rules, fixed at construction."""

    def __init__(
        self,
        default_threshold: float,
        customizations: Sequence[VolumeCustomization] = (),
        exclusion_masks: Sequence[str] = (),
    ):
        self._default_threshold = default_threshold
        self._customizations: List[VolumeCustomization] = list(customizations)
        self._exclusion_patterns = [re.compile(mask) for mask in exclusion_masks]

    @classmethod
    def from_configuration(cls, config: ScanConfiguration) -> "VolumePolicy":
        return cls(
            default_threshold=config.default_alarm_threshold,
            customizations=config.volume_customizations,
            exclusion_masks=config.exclusion_masks,
        )

    @property
    def default_threshold(self) -> float:
        return self._default_threshold

    def determine_low_space_alert(
        self, volume_name: str, volume_uuid: str, percent_free: float
    ) -> bool:
        """
        Decide the low space alert for one volume.

        Matching customizations (by name or serial number, case-insensitive)
        replace the default decision entirely: the alert is raised only if one
        of them is active and tripped.

        Raises:
            TypeError: name/uuid is not a non-empty string or percent_free is not a number
            ValueError: percent_free is outside 0..100
        """
        if not isinstance(volume_name, str) or not volume_name:
            raise TypeError("'volume_name' must be a non-zero length string")
        if not isinstance(volume_uuid, str) or not volume_uuid:
            raise TypeError("'volume_uuid' must be a non-zero length string")
        if isinstance(percent_free, bool) or not isinstance(percent_free, (int, float)):
            raise TypeError("'percent_free' must be a number")
        if not (MIN_LOW_SPACE_THRESHOLD <= percent_free <= MAX_LOW_SPACE_THRESHOLD):
            raise ValueError(
                f"'percent_free' must be in the range of {MIN_LOW_SPACE_THRESHOLD}..."
                f"{MAX_LOW_SPACE_THRESHOLD}. {percent_free}"
            )

        matching = [c for c in self._customizations if c.matches(volume_name, volume_uuid)]
        if matching:
            return any(c.is_tripped(percent_free) for c in matching)

        return percent_free < self._default_threshold

    def is_volume_shown(self, mount_point: str) -> bool:
        """A volume is shown unless its mount point matches an exclusion mask."""
        if not isinstance(mount_point, str):
            raise TypeError(f"mount_point is not valid: {mount_point!r}")
        return not any(pattern.search(mount_point) for pattern in self._exclusion_patterns)
