"""Linux interrogation: a single `df` covering every real filesystem."""

import logging
from typing import List

from volmon.core.events.volume_events import CommandCompletedEvent
from volmon.core.exceptions import ScanParseError
from volmon.models import Volume, VolumeType
from volmon.services.interrogation.base_interrogator import BaseInterrogator
from volmon.services.interrogation.free_space_table import parse_free_space_table

DF_ARGUMENTS = [
    "--block-size=512",
    "--portability",
    "--print-type",
    "--exclude-type=tmpfs",
    "--exclude-type=devtmpfs",
]


class LinuxInterrogator(BaseInterrogator):

    def __init__(self, host, context):
        super().__init__(host, context)
        self._df_in_progress = False

    def get_platform_name(self) -> str:
        return "linux"

    def initiate_interrogation(self) -> None:
        self._df_in_progress = True
        self._spawn("df", DF_ARGUMENTS, self._on_df_complete)

    def do_reset(self) -> None:
        self._df_in_progress = False

    @property
    def is_check_in_progress(self) -> bool:
        return self._df_in_progress

    @property
    def watch_folders(self) -> List[str]:
        return [f"/media/{self._context.username()}", "/mnt"]

    async def _on_df_complete(self, event: CommandCompletedEvent) -> None:
        result = event.result
        self._log_response(result)

        self._df_in_progress = False

        # A prior failure or a reset already ended this scan
        if not self._host.is_scanning:
            return

        if not result.valid:
            await self._host.abort_scan(
                f"'{result.source.describe()}' failed: {result.text().strip()}"
            )
            return

        try:
            rows = parse_free_space_table(result.text(), command="df", with_type_column=True)
            policy = self._host.policy
            for row in rows:
                # Zero-size rows carry no meaningful free space figure
                if row.blocks <= 0 or not VolumeType.is_known(row.fs_type):
                    continue
                self._host.add_volume(
                    Volume(
                        name=row.name,
                        volume_type=VolumeType(row.fs_type),
                        mount_point=row.mount_point,
                        volume_uuid="unknown",
                        device_node=row.device_node,
                        capacity_bytes=row.capacity_bytes,
                        free_space_bytes=row.free_space_bytes,
                        visible=True,
                        shown=policy.is_volume_shown(row.mount_point),
                        low_space_alert=policy.determine_low_space_alert(
                            row.name, "unknown", row.percent_available
                        ),
                    )
                )
        except (ScanParseError, ValueError) as e:
            await self._host.abort_scan(f"Unable to parse 'df' output: {e}")
            return

        await self._host.update_check_in_progress()
