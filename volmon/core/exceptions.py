# volmon/core/exceptions.py


class VolumeMonitorError(Exception):
    """Base class for volume monitor failures."""


class SpawnAlreadyPendingError(VolumeMonitorError):
    """Raised when a command is spawned on a helper that is still running one."""

    def __init__(self, command: str):
        self.command = command
        super().__init__(f"Spawn is already in progress for '{command}'.")


class UnsupportedPlatformError(VolumeMonitorError):
    """Raised when there is no interrogation strategy for the host operating system."""


class ScanParseError(VolumeMonitorError):
    """Raised when command output does not have the expected shape."""

    def __init__(self, command: str, detail: str):
        self.command = command
        self.detail = detail
        super().__init__(f"Unable to parse output of '{command}': {detail}")
