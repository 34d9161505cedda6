"""Parsing of `df` style free-space tables."""

from dataclasses import dataclass
from typing import List, Optional

from volmon.core.exceptions import ScanParseError
from volmon.models import BLOCK_SIZE_512, blocks_to_bytes


@dataclass(frozen=True)
class FreeSpaceRow:
    device_node: str
    fs_type: Optional[str]
    blocks: int
    used_blocks: int
    available_blocks: int
    capacity_percent: int
    mount_point: str

    @property
    def name(self) -> str:
        return volume_name_from_mount_point(self.mount_point)

    @property
    def capacity_bytes(self) -> int:
        return blocks_to_bytes(self.blocks, BLOCK_SIZE_512)

    @property
    def free_space_bytes(self) -> int:
        return blocks_to_bytes(max(self.blocks - self.used_blocks, 0), BLOCK_SIZE_512)

    @property
    def percent_available(self) -> float:
        """Available blocks as a percentage of all blocks, clamped to 0..100."""
        if self.blocks <= 0:
            return 0.0
        return min(max((self.available_blocks / self.blocks) * 100.0, 0.0), 100.0)


def volume_name_from_mount_point(mount_point: str) -> str:
    """Last '/' segment of the mount point, or the mount point itself."""
    candidate = mount_point.split("/")[-1]
    return candidate if candidate else mount_point


def table_lines(text: str, header_lines: int) -> List[str]:
    """Split command output into data lines, dropping headers and the trailing empty line."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines = lines[:-1]
    return lines[header_lines:]


def _parse_percent(field: str) -> int:
    # Pseudo filesystems report "-" instead of a percentage
    if field == "-":
        return 0
    return int(field.rstrip("%"))


def parse_free_space_table(
    text: str, command: str = "df", with_type_column: bool = False
) -> List[FreeSpaceRow]:
    """
    Parse POSIX `df` output expressed in 512-byte blocks.

    Columns: device, [type], blocks, used, available, capacity%, mount point.
    The mount point may contain spaces, so it is rebuilt from every field
    starting at its column.

    Raises:
        ScanParseError: a data row does not have the expected shape
    """
    offset = 1 if with_type_column else 0
    mount_column = 5 + offset

    rows = []
    for line in table_lines(text, header_lines=1):
        fields = line.split()
        if len(fields) <= mount_column:
            raise ScanParseError(command, f"unexpected row {line!r}")
        try:
            rows.append(
                FreeSpaceRow(
                    device_node=fields[0].lower(),
                    fs_type=fields[1] if with_type_column else None,
                    blocks=int(fields[1 + offset]),
                    used_blocks=int(fields[2 + offset]),
                    available_blocks=int(fields[3 + offset]),
                    capacity_percent=_parse_percent(fields[4 + offset]),
                    mount_point=" ".join(fields[mount_column:]),
                )
            )
        except ValueError as e:
            raise ScanParseError(command, f"unexpected row {line!r}: {e}") from e
    return rows
