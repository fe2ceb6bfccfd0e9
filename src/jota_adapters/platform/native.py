"""Platform adapter for desktop and server hosts.

File I/O goes through aiofiles inside a sandbox directory. Clipboard and
notifications shell out to whichever system tool is on PATH.
"""

from __future__ import annotations

import asyncio
import locale
import logging
import os
import platform as host
import shutil
import sys
import webbrowser
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any, Self

import aiofiles
import aiofiles.os

from jota_adapters.errors import PlatformError, PlatformErrorCode
from jota_adapters.platform.base import (
    ColorScheme,
    OperatingSystem,
    Platform,
    PlatformAdapter,
    PlatformCapabilities,
    PlatformInfo,
    normalize_relative_path,
)

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".jota"

COPY_COMMANDS: tuple[tuple[str, ...], ...] = (
    ("pbcopy",),
    ("wl-copy",),
    ("xclip", "-selection", "clipboard"),
    ("xsel", "--clipboard", "--input"),
)
PASTE_COMMANDS: tuple[tuple[str, ...], ...] = (
    ("pbpaste",),
    ("wl-paste", "--no-newline"),
    ("xclip", "-selection", "clipboard", "-o"),
    ("xsel", "--clipboard", "--output"),
)


def _first_available(commands: tuple[tuple[str, ...], ...]) -> tuple[str, ...] | None:
    return next((cmd for cmd in commands if shutil.which(cmd[0])), None)


def clipboard_available() -> bool:
    return _first_available(COPY_COMMANDS) is not None


def notifications_available() -> bool:
    return bool(shutil.which("notify-send") or shutil.which("osascript"))


def _package_version() -> str:
    try:
        return version("jota-adapters")
    except PackageNotFoundError:
        return "0.0.0"


def detect_os() -> OperatingSystem:
    match sys.platform:
        case "win32" | "cygwin":
            return OperatingSystem.WINDOWS
        case "darwin":
            return OperatingSystem.MACOS
        case p if p.startswith("linux"):
            return OperatingSystem.LINUX
        case _:
            return OperatingSystem.UNKNOWN


def has_display() -> bool:
    """Whether a graphical session is reachable."""
    if sys.platform in ("win32", "darwin"):
        return True
    return bool(os.getenv("DISPLAY") or os.getenv("WAYLAND_DISPLAY"))


class NativePlatformAdapter(PlatformAdapter):
    """Platform adapter for the local machine.

    Args:
        base_dir: Sandbox for file operations. Defaults to JOTA_DATA_DIR or
            ``~/.jota``.
    """

    def __init__(self, base_dir: Path | str | None = None) -> None:
        self._base_dir = Path(base_dir or os.getenv("JOTA_DATA_DIR") or DEFAULT_DATA_DIR)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def get_platform(self) -> Platform:
        return Platform.DESKTOP if has_display() else Platform.SERVER

    def get_platform_info(self) -> PlatformInfo:
        platform = self.get_platform()
        return PlatformInfo(
            platform=platform,
            version=self.get_version(),
            os=detect_os(),
            device_type="desktop" if platform is Platform.DESKTOP else "server",
            python_version=host.python_version(),
        )

    def get_version(self) -> str:
        return _package_version()

    def get_capabilities(self) -> PlatformCapabilities:
        return PlatformCapabilities(
            file_system=True,
            notifications=notifications_available(),
            clipboard=clipboard_available(),
            share=False,
            persistent_storage=True,
        )

    def resolve_path(self, path: str) -> Path:
        """Map a sandbox-relative path to an absolute path inside base_dir.

        Raises:
            PlatformError: INVALID_PATH if the path leaves the sandbox.
        """
        relative = normalize_relative_path(path)
        root = self._base_dir.resolve()
        target = (root / relative).resolve()
        if not target.is_relative_to(root):
            raise PlatformError(
                f"Path {path!r} escapes the application directory", PlatformErrorCode.INVALID_PATH
            )
        return target

    async def read_file(self, path: str) -> bytes:
        target = self.resolve_path(path)
        try:
            async with aiofiles.open(target, "rb") as f:
                return await f.read()
        except OSError as exc:
            raise _translate(exc, path) from exc

    async def read_text_file(self, path: str) -> str:
        data = await self.read_file(path)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise PlatformError(f"{path} is not UTF-8 text", PlatformErrorCode.UNKNOWN) from exc

    async def write_file(self, path: str, data: bytes) -> None:
        target = self.resolve_path(path)
        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            async with aiofiles.open(target, "wb") as f:
                await f.write(data)
        except OSError as exc:
            raise _translate(exc, path) from exc

    async def write_text_file(self, path: str, text: str) -> None:
        await self.write_file(path, text.encode("utf-8"))

    async def file_exists(self, path: str) -> bool:
        return await aiofiles.os.path.isfile(self.resolve_path(path))

    async def delete_file(self, path: str) -> None:
        target = self.resolve_path(path)
        try:
            await aiofiles.os.remove(target)
        except OSError as exc:
            raise _translate(exc, path) from exc

    async def _run(self, argv: tuple[str, ...], stdin: bytes | None = None) -> bytes:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate(stdin)
        if process.returncode != 0:
            raise PlatformError(
                f"{argv[0]} failed: {stderr.decode('utf-8', 'replace').strip()}",
                PlatformErrorCode.UNKNOWN,
            )
        return stdout

    async def copy_to_clipboard(self, text: str) -> None:
        command = _first_available(COPY_COMMANDS)
        if command is None:
            raise PlatformError("No clipboard tool available", PlatformErrorCode.NOT_SUPPORTED)
        await self._run(command, text.encode("utf-8"))

    async def read_from_clipboard(self) -> str | None:
        command = _first_available(PASTE_COMMANDS)
        if command is None:
            raise PlatformError("No clipboard tool available", PlatformErrorCode.NOT_SUPPORTED)
        output = await self._run(command)
        return output.decode("utf-8", "replace") or None

    async def show_notification(self, title: str, body: str | None = None) -> None:
        if shutil.which("notify-send"):
            await self._run(("notify-send", title, body or ""))
            return
        if shutil.which("osascript"):
            script = f"display notification {_applescript_str(body or '')} with title {_applescript_str(title)}"
            await self._run(("osascript", "-e", script))
            return
        raise PlatformError("Notifications are not supported", PlatformErrorCode.NOT_SUPPORTED)

    async def open_external_url(self, url: str) -> None:
        opened = await asyncio.to_thread(webbrowser.open, url)
        if not opened:
            raise PlatformError(f"No browser available to open {url}", PlatformErrorCode.NOT_SUPPORTED)

    def get_locale(self) -> str:
        name = locale.getlocale()[0] or os.getenv("LANG", "").split(".")[0]
        if not name or name in ("C", "POSIX"):
            return "en-US"
        return name.replace("_", "-")

    def get_color_scheme(self) -> ColorScheme:
        return ColorScheme.SYSTEM

    async def close(self) -> None:
        return None


def _applescript_str(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _translate(exc: OSError, path: str) -> PlatformError:
    if isinstance(exc, FileNotFoundError):
        return PlatformError(f"{path} not found", PlatformErrorCode.NOT_FOUND)
    if isinstance(exc, PermissionError):
        return PlatformError(f"Permission denied: {path}", PlatformErrorCode.PERMISSION_DENIED)
    if isinstance(exc, IsADirectoryError | NotADirectoryError):
        return PlatformError(f"{path} is not a file", PlatformErrorCode.INVALID_PATH)
    return PlatformError(f"File operation on {path} failed: {exc}", PlatformErrorCode.UNKNOWN)
