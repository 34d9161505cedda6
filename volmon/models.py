import re
from enum import Enum, IntEnum
from typing import List, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    field_validator,
    model_validator,
)

# Conversion factors
BYTES_TO_GB_BASE2 = 1024.0 * 1024.0 * 1024.0
BYTES_TO_GB_BASE10 = 1000.0 * 1000.0 * 1000.0
BLOCK_SIZE_1K = 1024
BLOCK_SIZE_512 = 512

# Scan period bounds (hours)
DEFAULT_PERIOD_HR = 6.0
MIN_PERIOD_HR = 5.0 / 60.0  # Once every 5 minutes
MAX_PERIOD_HR = 31.0 * 24.0  # Once per month

# Low space threshold bounds (percent)
DEFAULT_LOW_SPACE_THRESHOLD = 15.0
MIN_LOW_SPACE_THRESHOLD = 0.0
MAX_LOW_SPACE_THRESHOLD = 100.0


class VolumeType(str, Enum):
    """Filesystem types the interrogators know how to report."""

    UNKNOWN = "unknown"
    HFS_PLUS = "hfs"  # Legacy Apple file system
    APFS = "apfs"
    UDF = "udf"  # Universal Disk Format (ISO etc.)
    MSDOS = "msdos"  # FAT32 / EFI
    NTFS = "ntfs"
    SMBFS = "smbfs"  # Remote file share
    EXT4 = "ext4"
    VFAT = "vfat"
    EXFAT = "exfat"
    XFS = "xfs"
    BTRFS = "btrfs"

    @classmethod
    def is_known(cls, value: str) -> bool:
        return value != cls.UNKNOWN.value and value in cls._value2member_map_


class ConversionBase(IntEnum):
    BASE_2 = 2
    BASE_10 = 10


class VolumeIdentificationMethod(str, Enum):
    NAME = "name"
    SERIAL_NUMBER = "serial_num"


class Volume(BaseModel):
    """
    Immutable snapshot of one storage volume.

    A fresh Volume is built for every scan pass. Matching (is_match) only
    considers name, filesystem type, device node and mount point, so two
    observations of the same volume match even when their metrics differ.
    """

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    disk_id: Optional[str] = None
    volume_type: VolumeType = VolumeType.UNKNOWN
    mount_point: Optional[str] = None
    device_node: Optional[str] = None
    volume_uuid: Optional[str] = None
    capacity_bytes: int = Field(default=0, ge=0)
    free_space_bytes: int = Field(default=0, ge=0)
    used_space_bytes: int = Field(default=0, ge=0)
    visible: bool = False
    shown: bool = False
    low_space_alert: bool = False

    @model_validator(mode="before")
    @classmethod
    def _derive_used_space(cls, data):
        if isinstance(data, dict) and data.get("used_space_bytes") is None:
            data = dict(data)
            data.pop("used_space_bytes", None)
            capacity = data.get("capacity_bytes", 0)
            free = data.get("free_space_bytes", 0)
            if isinstance(capacity, (int, float)) and isinstance(free, (int, float)):
                used = capacity - free
                if used < 0:
                    raise ValueError(
                        f"Used space cannot be negative ({capacity} - {free} = {used})"
                    )
                data["used_space_bytes"] = used
        return data

    @property
    def is_mounted(self) -> bool:
        return bool(self.mount_point)

    @property
    def percent_free(self) -> float:
        """Free space as a percentage of capacity (0 when capacity is unknown)."""
        if self.capacity_bytes <= 0:
            return 0.0
        return (self.free_space_bytes / self.capacity_bytes) * 100.0

    @property
    def percent_used(self) -> float:
        if self.capacity_bytes <= 0:
            return 0.0
        return (self.used_space_bytes / self.capacity_bytes) * 100.0

    def is_match(self, other: object) -> bool:
        return (
            isinstance(other, Volume)
            and self.name == other.name
            and self.volume_type == other.volume_type
            and self.device_node == other.device_node
            and self.mount_point == other.mount_point
        )


def bytes_to_gb(
    size_bytes: Union[int, float], base: Union[ConversionBase, int] = ConversionBase.BASE_2
) -> float:
    """
    Convert a byte count to gigabytes.

    Args:
        size_bytes: Size in bytes. Negative values are converted as-is.
        base: ConversionBase.BASE_2 (GiB, default) or ConversionBase.BASE_10 (GB)

    Raises:
        TypeError: size_bytes is not a number
        ValueError: base is not a supported conversion base
    """
    if isinstance(size_bytes, bool) or not isinstance(size_bytes, (int, float)):
        raise TypeError(f"'size_bytes' must be a number, got {type(size_bytes).__name__}")
    if base not in (ConversionBase.BASE_2, ConversionBase.BASE_10):
        raise ValueError(f"Unsupported conversion base: {base}")

    factor = BYTES_TO_GB_BASE10 if base == ConversionBase.BASE_10 else BYTES_TO_GB_BASE2
    return size_bytes / factor


def blocks_to_bytes(blocks: Union[int, float], block_size: int = BLOCK_SIZE_1K) -> int:
    """Convert a block count (1K blocks by default) to bytes."""
    if isinstance(blocks, bool) or not isinstance(blocks, (int, float)):
        raise TypeError(f"'blocks' must be a number, got {type(blocks).__name__}")
    if blocks < 0:
        raise ValueError(f"'blocks' must not be negative ({blocks})")

    return int(blocks * block_size)


class VolumeCustomization(BaseModel):
    """Per-volume override of the low space alarm, keyed by name or serial number."""

    model_config = ConfigDict(frozen=True)

    volume_id_method: VolumeIdentificationMethod
    volume_name: Optional[str] = None
    volume_serial_num: Optional[str] = None
    volume_low_space_alarm_active: StrictBool
    volume_alarm_threshold: Optional[float] = None

    @model_validator(mode="after")
    def _check_identity_and_threshold(self) -> "VolumeCustomization":
        if self.volume_id_method == VolumeIdentificationMethod.NAME and not self.volume_name:
            raise ValueError("'volume_name' is required when identifying by name")
        if (
            self.volume_id_method == VolumeIdentificationMethod.SERIAL_NUMBER
            and not self.volume_serial_num
        ):
            raise ValueError(
                "'volume_serial_num' is required when identifying by serial number"
            )
        if self.volume_low_space_alarm_active:
            threshold = self.volume_alarm_threshold
            if threshold is None or not (
                MIN_LOW_SPACE_THRESHOLD < threshold < MAX_LOW_SPACE_THRESHOLD
            ):
                raise ValueError(
                    f"'volume_alarm_threshold' must be between {MIN_LOW_SPACE_THRESHOLD} "
                    f"and {MAX_LOW_SPACE_THRESHOLD} (exclusive) when the alarm is active"
                )
        return self

    def matches(self, volume_name: str, volume_uuid: str) -> bool:
        if self.volume_id_method == VolumeIdentificationMethod.NAME:
            return self.volume_name.lower() == volume_name.lower()
        return self.volume_serial_num.lower() == volume_uuid.lower()

    def is_tripped(self, percent_free: float) -> bool:
        return self.volume_low_space_alarm_active and (
            percent_free < self.volume_alarm_threshold
        )


class ScanConfiguration(BaseModel):
    """Construction inputs for the scan orchestrator."""

    period_hr: float = Field(default=DEFAULT_PERIOD_HR, ge=MIN_PERIOD_HR, le=MAX_PERIOD_HR)
    default_alarm_threshold: float = Field(
        default=DEFAULT_LOW_SPACE_THRESHOLD,
        gt=MIN_LOW_SPACE_THRESHOLD,
        lt=MAX_LOW_SPACE_THRESHOLD,
    )
    exclusion_masks: List[str] = Field(default_factory=list)
    volume_customizations: List[VolumeCustomization] = Field(default_factory=list)

    @field_validator("exclusion_masks", mode="before")
    @classmethod
    def _check_masks(cls, value):
        if not isinstance(value, (list, tuple)):
            raise TypeError("'exclusion_masks' must be a list of strings")
        for mask in value:
            if not isinstance(mask, str):
                raise TypeError(f"Exclusion mask is not a string: {mask!r}")
            try:
                re.compile(mask)
            except re.error as e:
                raise ValueError(f"Invalid exclusion mask {mask!r}: {e}")
        return list(value)


class ChargingState(str, Enum):
    NOT_CHARGING = "NOT_CHARGING"
    CHARGING = "CHARGING"
    NOT_CHARGEABLE = "NOT_CHARGEABLE"


class VolumeAccessoryState(BaseModel):
    """User-facing projection of one shown volume."""

    name: str
    reachable: bool = True
    percent_free: Optional[int] = Field(default=None, ge=0, le=100)
    low_space_alert: Optional[bool] = None
    charging_state: Optional[ChargingState] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None


class ScanStatus(BaseModel):
    refreshing: bool
    active: bool
    period_hr: float
    minimum_period_hr: float
    maximum_period_hr: float
    volume_count: int
    last_ready_at: Optional[str] = None


