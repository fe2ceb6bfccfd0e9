"""Platform adapters: host information, sandboxed files, clipboard, notifications."""

from jota_adapters.platform.base import (
    ColorScheme,
    OperatingSystem,
    Platform,
    PlatformAdapter,
    PlatformCapabilities,
    PlatformInfo,
)
from jota_adapters.platform.mock import MockPlatformAdapter
from jota_adapters.platform.native import NativePlatformAdapter

__all__ = [
    "ColorScheme",
    "MockPlatformAdapter",
    "NativePlatformAdapter",
    "OperatingSystem",
    "Platform",
    "PlatformAdapter",
    "PlatformCapabilities",
    "PlatformInfo",
]
