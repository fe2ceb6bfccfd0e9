"""Runtime environment and capability detection.

Probes what the current process can use (durable storage primitives, an
HTTP client, a media player, desktop integration) and recommends the most
capable adapter configuration that works here.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from dataclasses import dataclass
from enum import Enum
from importlib.util import find_spec
from pathlib import Path

from jota_adapters.audio.element import DEFAULT_PLAYER_COMMAND
from jota_adapters.factory.config import (
    TEST_CONFIG,
    AdapterConfig,
    AudioConfig,
    AudioKind,
    CacheConfig,
    NetworkConfig,
    NetworkKind,
    PlatformConfig,
    PlatformKind,
    StorageConfig,
    StorageKind,
    resolve_data_dir,
)
from jota_adapters.platform.base import ColorScheme
from jota_adapters.platform.native import (
    clipboard_available,
    has_display,
    notifications_available,
)

logger = logging.getLogger(__name__)


class Environment(str, Enum):
    """Execution environment classes.

    Attributes:
        INTERACTIVE: A user-facing process attached to a terminal or display.
        TEST: Running under an automated test runner.
        HEADLESS: A server, daemon or batch process.
        UNKNOWN: Standard streams are missing; nothing can be assumed.
    """

    INTERACTIVE = "interactive"
    TEST = "test"
    HEADLESS = "headless"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class DetectedCapabilities:
    """Result of probing the host."""

    small_storage: bool = False
    document_storage: bool = False
    fetch: bool = False
    audio: bool = False
    notifications: bool = False
    clipboard: bool = False
    share: bool = False
    background_sync: bool = False
    online: bool = True


@dataclass(frozen=True, slots=True)
class StorageQuota:
    """Disk usage of the volume holding the data directory, in bytes."""

    usage: int
    quota: int


def detect_environment() -> Environment:
    """Classify the current process.

    JOTA_ENVIRONMENT wins when it names a valid environment. Otherwise a
    running pytest means TEST, missing standard streams mean UNKNOWN, a
    terminal on both stdin and stdout means INTERACTIVE and anything else
    is HEADLESS.
    """
    override = os.getenv("JOTA_ENVIRONMENT")
    if override:
        try:
            return Environment(override.strip().lower())
        except ValueError:
            logger.warning("Ignoring unknown JOTA_ENVIRONMENT=%r", override)

    if os.getenv("PYTEST_CURRENT_TEST") or "pytest" in sys.modules:
        return Environment.TEST

    if sys.stdin is None or sys.stdout is None:
        return Environment.UNKNOWN

    try:
        interactive = sys.stdin.isatty() and sys.stdout.isatty()
    except ValueError:
        # Closed streams.
        return Environment.UNKNOWN
    return Environment.INTERACTIVE if interactive else Environment.HEADLESS


def _nearest_existing(path: Path) -> Path:
    for candidate in (path, *path.parents):
        if candidate.exists():
            return candidate
    return Path.cwd()


def _is_writable(path: Path) -> bool:
    return os.access(_nearest_existing(path), os.W_OK)


def detect_capabilities(data_dir: Path | str | None = None) -> DetectedCapabilities:
    """Probe the host for every named capability.

    Args:
        data_dir: Directory the durable stores would live in.
    """
    writable = _is_writable(resolve_data_dir(data_dir))
    capabilities = DetectedCapabilities(
        small_storage=writable and find_spec("dbm") is not None,
        document_storage=writable
        and find_spec("sqlite3") is not None
        and find_spec("aiosqlite") is not None,
        fetch=find_spec("httpx") is not None,
        audio=shutil.which(DEFAULT_PLAYER_COMMAND[0]) is not None,
        notifications=notifications_available(),
        clipboard=clipboard_available(),
        share=bool(shutil.which("xdg-open") or shutil.which("open")),
        background_sync=bool(shutil.which("systemd-run") or shutil.which("crontab")),
        online=os.getenv("JOTA_OFFLINE") is None,
    )
    logger.debug("Detected capabilities: %s", capabilities)
    return capabilities


def recommend_storage(capabilities: DetectedCapabilities) -> StorageConfig:
    """Pick storage in fixed order: hybrid, sync-backed, document, memory."""
    if capabilities.small_storage and capabilities.document_storage:
        return StorageConfig(
            kind=StorageKind.HYBRID,
            small=StorageConfig(kind=StorageKind.SYNC_BACKED),
            large=StorageConfig(kind=StorageKind.DOCUMENT),
        )
    if capabilities.small_storage:
        return StorageConfig(kind=StorageKind.SYNC_BACKED)
    if capabilities.document_storage:
        return StorageConfig(kind=StorageKind.DOCUMENT)
    return StorageConfig(kind=StorageKind.MEMORY)


def get_recommended_config(
    environment: Environment | None = None,
    capabilities: DetectedCapabilities | None = None,
) -> AdapterConfig:
    """Return the most capable configuration the host supports.

    Test and unknown environments always get the all-memory/mock
    configuration.

    Args:
        environment: Environment to plan for. Detected when omitted.
        capabilities: Capabilities to plan with. Probed when omitted.
    """
    environment = environment or detect_environment()
    if environment in (Environment.TEST, Environment.UNKNOWN):
        return TEST_CONFIG

    capabilities = capabilities or detect_capabilities()
    config = AdapterConfig(
        storage=recommend_storage(capabilities),
        network=(
            NetworkConfig(kind=NetworkKind.FETCH, cache=CacheConfig(enabled=True))
            if capabilities.fetch
            else NetworkConfig(kind=NetworkKind.MOCK)
        ),
        audio=AudioConfig(
            kind=AudioKind.NATIVE_ELEMENT if capabilities.audio else AudioKind.MOCK
        ),
        platform=PlatformConfig(kind=PlatformKind.NATIVE),
    )
    logger.debug("Recommended %s storage for %s", config.storage.kind.value, environment.value)
    return config


def get_storage_quota(path: Path | str | None = None) -> StorageQuota | None:
    """Return used and total bytes of the volume holding path, if readable."""
    try:
        usage = shutil.disk_usage(_nearest_existing(resolve_data_dir(path)))
    except OSError:
        return None
    return StorageQuota(usage=usage.used, quota=usage.total)


def get_device_type() -> str:
    """Return ``"desktop"`` when a display is reachable, else ``"server"``."""
    return "desktop" if has_display() else "server"


def get_preferred_color_scheme() -> ColorScheme:
    """Read the desktop's dark-mode preference, defaulting to LIGHT."""
    probes: list[tuple[list[str], str]] = []
    if sys.platform == "darwin":
        probes.append((["defaults", "read", "-g", "AppleInterfaceStyle"], "dark"))
    if shutil.which("gsettings"):
        probes.append(
            (["gsettings", "get", "org.gnome.desktop.interface", "color-scheme"], "dark")
        )

    for argv, marker in probes:
        try:
            result = subprocess.run(argv, capture_output=True, text=True, timeout=2, check=False)
        except (OSError, subprocess.SubprocessError):
            continue
        if result.returncode == 0 and marker in result.stdout.lower():
            return ColorScheme.DARK
    return ColorScheme.LIGHT
