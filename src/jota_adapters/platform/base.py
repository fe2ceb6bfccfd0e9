"""Platform contract: host information, capabilities, files, clipboard, notifications."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Protocol, runtime_checkable

from jota_adapters.errors import PlatformError, PlatformErrorCode


class Platform(str, Enum):
    """Kind of host the application runs on."""

    DESKTOP = "desktop"
    SERVER = "server"
    UNKNOWN = "unknown"


class OperatingSystem(str, Enum):
    WINDOWS = "windows"
    MACOS = "macos"
    LINUX = "linux"
    UNKNOWN = "unknown"


class ColorScheme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


@dataclass(frozen=True, slots=True)
class PlatformInfo:
    """Description of the host."""

    platform: Platform
    version: str
    os: OperatingSystem = OperatingSystem.UNKNOWN
    device_type: str = "unknown"
    python_version: str | None = None


@dataclass(frozen=True, slots=True)
class PlatformCapabilities:
    """Features the platform adapter can provide on this host."""

    file_system: bool = False
    notifications: bool = False
    clipboard: bool = False
    share: bool = False
    persistent_storage: bool = False


def normalize_relative_path(path: str) -> PurePosixPath:
    """Validate a sandbox-relative path.

    Raises:
        PlatformError: INVALID_PATH for empty, absolute or escaping paths.
    """
    if not path or not path.strip():
        raise PlatformError("Path must not be empty", PlatformErrorCode.INVALID_PATH)

    candidate = PurePosixPath(path.replace("\\", "/"))
    if candidate.is_absolute() or ".." in candidate.parts:
        raise PlatformError(
            f"Path {path!r} escapes the application directory", PlatformErrorCode.INVALID_PATH
        )
    return candidate


@runtime_checkable
class PlatformAdapter(Protocol):
    """Protocol for host integration.

    File operations take paths relative to the adapter's base directory.
    """

    def get_platform(self) -> Platform: ...

    def get_platform_info(self) -> PlatformInfo: ...

    def get_version(self) -> str: ...

    def get_capabilities(self) -> PlatformCapabilities: ...

    async def read_file(self, path: str) -> bytes: ...

    async def read_text_file(self, path: str) -> str: ...

    async def write_file(self, path: str, data: bytes) -> None: ...

    async def write_text_file(self, path: str, text: str) -> None: ...

    async def file_exists(self, path: str) -> bool: ...

    async def delete_file(self, path: str) -> None: ...

    async def copy_to_clipboard(self, text: str) -> None: ...

    async def read_from_clipboard(self) -> str | None: ...

    async def show_notification(self, title: str, body: str | None = None) -> None: ...

    async def open_external_url(self, url: str) -> None: ...

    def get_locale(self) -> str: ...

    def get_color_scheme(self) -> ColorScheme: ...

    async def close(self) -> None: ...
