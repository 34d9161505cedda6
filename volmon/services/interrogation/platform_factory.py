"""Platform Factory - selects the interrogation strategy for the host OS."""

import logging

from volmon.core.exceptions import UnsupportedPlatformError
from volmon.services.interrogation.base_interrogator import BaseInterrogator
from volmon.services.platform_context import PlatformContext


class PlatformFactory:
    """Factory for creating platform-specific interrogators."""

    def __init__(self, context: PlatformContext):
        self._context = context

    def detect_platform(self) -> str:
        """Detect current platform. Returns: darwin or linux."""
        system = (self._context.system or "").lower()

        if system in ("darwin", "linux"):
            return system
        raise UnsupportedPlatformError(f"Platform {system!r} not supported for volume interrogation")

    def create_interrogator(self, host) -> BaseInterrogator:
        platform_name = self.detect_platform()
        logging.debug(f"Creating {platform_name} interrogator")

        if platform_name == "darwin":
            from .darwin_interrogator import DarwinInterrogator
            return DarwinInterrogator(host, self._context)
        else:
            from .linux_interrogator import LinuxInterrogator
            return LinuxInterrogator(host, self._context)
