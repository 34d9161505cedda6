from .base_interrogator import BaseInterrogator
from .darwin_interrogator import DarwinInterrogator
from .linux_interrogator import LinuxInterrogator
from .platform_factory import PlatformFactory

__all__ = ["BaseInterrogator", "DarwinInterrogator", "LinuxInterrogator", "PlatformFactory"]
