"""
macOS interrogation pipeline.

ls /Volumes -> lsvfs -> df per filesystem type -> diskutil info per volume.
Every follow-up command carries a generated token; its context lives in a
pending table until the matching completion removes it.
"""

import logging
import plistlib
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional
from xml.parsers.expat import ExpatError

from volmon.core.events.volume_events import CommandCompletedEvent
from volmon.core.exceptions import ScanParseError
from volmon.models import Volume, VolumeType
from volmon.services.interrogation.base_interrogator import BaseInterrogator
from volmon.services.interrogation.free_space_table import (
    parse_free_space_table,
    table_lines,
)

VOLUMES_ROOT = "/Volumes"
LSVFS_HEADER_LINES = 2
UNKNOWN_UUID = "unknown"


@dataclass(frozen=True)
class PendingFileSystem:
    fs_type: str
    count: int
    flags: str


class DarwinInterrogator(BaseInterrogator):

    def __init__(self, host, context):
        super().__init__(host, context)
        self._listing_token: Optional[str] = None
        self._visible_volume_names: List[str] = []
        self._pending_filesystems: Dict[str, PendingFileSystem] = {}
        self._pending_volumes: Dict[str, Volume] = {}

    def get_platform_name(self) -> str:
        return "darwin"

    def initiate_interrogation(self) -> None:
        self._listing_token = uuid.uuid4().hex
        self._spawn("ls", [VOLUMES_ROOT], self._on_visible_volumes, token=self._listing_token)

    def do_reset(self) -> None:
        self._listing_token = None
        self._visible_volume_names = []
        self._pending_filesystems.clear()
        self._pending_volumes.clear()

    @property
    def is_check_in_progress(self) -> bool:
        logging.debug(
            f"Pending filesystems:{len(self._pending_filesystems)} "
            f"volumes:{len(self._pending_volumes)}"
        )
        return (
            self._listing_token is not None
            or len(self._pending_filesystems) > 0
            or len(self._pending_volumes) > 0
        )

    @property
    def watch_folders(self) -> List[str]:
        return [VOLUMES_ROOT]

    @property
    def pending_filesystems(self) -> List[PendingFileSystem]:
        return list(self._pending_filesystems.values())

    @property
    def pending_volumes(self) -> List[Volume]:
        return list(self._pending_volumes.values())

    async def _on_visible_volumes(self, event: CommandCompletedEvent) -> None:
        result = event.result
        self._log_response(result)

        if not self._host.is_scanning or result.token != self._listing_token:
            logging.debug("Ignoring stale 'ls' completion")
            return

        if not result.valid:
            await self._abort(result, "unable to list visible volumes")
            return

        self._visible_volume_names = [name for name in result.text().split("\n") if name]
        self._spawn("lsvfs", [], self._on_lsvfs_complete, token=self._listing_token)

    async def _on_lsvfs_complete(self, event: CommandCompletedEvent) -> None:
        result = event.result
        self._log_response(result)

        if not self._host.is_scanning or result.token != self._listing_token:
            logging.debug("Ignoring stale 'lsvfs' completion")
            return

        if not result.valid:
            await self._abort(result, "unable to list filesystem types")
            return

        for line in table_lines(result.text(), header_lines=LSVFS_HEADER_LINES):
            fields = line.split()
            if len(fields) < 3:
                logging.debug(f"lsvfs: skipping line '{line}'")
                continue
            try:
                count = int(fields[1])
            except ValueError:
                logging.debug(f"lsvfs: skipping line '{line}'")
                continue

            filesystem = PendingFileSystem(
                fs_type=fields[0].lower(), count=count, flags=" ".join(fields[2:]).lower()
            )
            if filesystem.count <= 0 or not VolumeType.is_known(filesystem.fs_type):
                continue
            if any(p.fs_type == filesystem.fs_type for p in self._pending_filesystems.values()):
                logging.debug(f"lsvfs: duplicated filesystem type '{filesystem.fs_type}'")
                continue

            token = uuid.uuid4().hex
            self._pending_filesystems[token] = filesystem
            self._spawn(
                "df", ["-a", "-P", "-T", filesystem.fs_type], self._on_df_complete, token=token
            )

        # Listing stage is over; from here on only the pending tables count
        self._listing_token = None
        await self._host.update_check_in_progress()

    async def _on_df_complete(self, event: CommandCompletedEvent) -> None:
        result = event.result
        self._log_response(result)

        if not self._host.is_scanning:
            return

        filesystem = self._pending_filesystems.pop(result.token, None)
        if filesystem is None:
            logging.warning(f"Ignoring 'df' completion for unknown token {result.token}")
            return

        if not result.valid:
            await self._abort(result, f"unable to query '{filesystem.fs_type}' free space")
            return

        try:
            rows = parse_free_space_table(result.text(), command="df")
            policy = self._host.policy
            provisional = []
            for row in rows:
                if row.blocks <= 0:
                    continue
                provisional.append(
                    Volume(
                        name=row.name,
                        volume_type=VolumeType(filesystem.fs_type),
                        mount_point=row.mount_point,
                        volume_uuid=UNKNOWN_UUID,
                        device_node=row.device_node,
                        capacity_bytes=row.capacity_bytes,
                        free_space_bytes=row.free_space_bytes,
                        visible=row.name in self._visible_volume_names,
                        shown=policy.is_volume_shown(row.mount_point),
                        low_space_alert=policy.determine_low_space_alert(
                            row.name, UNKNOWN_UUID, row.percent_available
                        ),
                    )
                )
        except (ScanParseError, ValueError) as e:
            await self._host.abort_scan(f"Unable to parse 'df' output: {e}")
            return

        for volume in provisional:
            token = uuid.uuid4().hex
            self._pending_volumes[token] = volume
            logging.debug(f"Initiating 'diskutil info' for '{volume.device_node}'")
            self._spawn(
                "diskutil", ["info", "-plist", volume.device_node],
                self._on_diskutil_info_complete, token=token,
            )

        await self._host.update_check_in_progress()

    async def _on_diskutil_info_complete(self, event: CommandCompletedEvent) -> None:
        result = event.result
        self._log_response(result)

        if not self._host.is_scanning:
            return

        provisional = self._pending_volumes.pop(result.token, None)
        if provisional is None:
            logging.warning(f"Ignoring 'diskutil' completion for unknown token {result.token}")
            return

        if not result.valid:
            # Sibling queries keep running; this volume keeps its df figures
            logging.warning(
                f"'{result.source.describe()}' failed, using provisional data for "
                f"'{provisional.name}'"
            )
            self._host.add_volume(self._refresh_shown(provisional))
            await self._host.update_check_in_progress()
            return

        try:
            info = plistlib.loads(result.payload or b"")
            if not isinstance(info, dict):
                raise ScanParseError("diskutil", "property list is not a dictionary")

            if isinstance(info.get("DeviceIdentifier"), str):
                volume = self._volume_from_info(info, provisional)
                if volume is not None:
                    self._host.add_volume(volume)
            elif info.get("Error") is True:
                # No local device, e.g. a network share
                self._host.add_volume(self._refresh_shown(provisional))
            else:
                raise ScanParseError("diskutil", f"unexpected property list {info}")
        except (ScanParseError, TypeError, ValueError, ExpatError, plistlib.InvalidFileException) as e:
            await self._host.abort_scan(f"Unable to process 'diskutil info': {e}")
            return

        await self._host.update_check_in_progress()

    def _volume_from_info(self, info: dict, provisional: Volume) -> Optional[Volume]:
        required_strings = ("VolumeName", "FilesystemType", "MountPoint", "DeviceNode")
        has_strings = all(isinstance(info.get(key), str) and info[key] for key in required_strings)
        # UDF volumes carry no VolumeUUID
        uuid_ok = "VolumeUUID" not in info or (isinstance(info["VolumeUUID"], str) and info["VolumeUUID"])
        size = info.get("Size")

        fs_type = info.get("FilesystemType")
        if fs_type == VolumeType.APFS.value:
            free_space = info.get("APFSContainerFree", info.get("FreeSpace"))
        else:
            free_space = info.get("FreeSpace", info.get("APFSContainerFree"))

        if not (has_strings and uuid_ok and _is_number(size) and _is_number(free_space)):
            logging.warning(
                f"Unable to handle 'diskutil info' response for '{provisional.device_node}'"
            )
            return None

        volume_uuid = info.get("VolumeUUID", info["DeviceNode"])
        percent_free = 0.0 if size <= 0 else min(max(free_space / size * 100.0, 0.0), 100.0)
        policy = self._host.policy

        return Volume(
            name=info["VolumeName"],
            volume_type=VolumeType(fs_type) if VolumeType.is_known(fs_type) else provisional.volume_type,
            disk_id=info["DeviceIdentifier"],
            mount_point=info["MountPoint"],
            device_node=info["DeviceNode"],
            volume_uuid=volume_uuid,
            capacity_bytes=int(size),
            free_space_bytes=int(free_space),
            visible=info["VolumeName"] in self._visible_volume_names,
            shown=policy.is_volume_shown(info["MountPoint"]),
            low_space_alert=policy.determine_low_space_alert(
                info["VolumeName"], volume_uuid, percent_free
            ),
        )

    def _refresh_shown(self, provisional: Volume) -> Volume:
        return provisional.model_copy(
            update={"shown": self._host.policy.is_volume_shown(provisional.mount_point)}
        )

    async def _abort(self, result, reason: str) -> None:
        await self._host.abort_scan(
            f"'{result.source.describe()}' {reason}: {result.text().strip()}"
        )


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
