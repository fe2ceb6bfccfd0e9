"""Adapter configuration models and shallow merging.

This module defines the per-domain configuration dataclasses, the closed
kind enums the factory dispatches on, and the default production and test
configurations.
"""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from jota_adapters.errors import ConfigurationError
from jota_adapters.network.retry import RetryConfig
from jota_adapters.storage.document import DEFAULT_DB_NAME

DEFAULT_DATA_DIR = Path.home() / ".jota"
DEFAULT_CACHE_MAX_AGE_MS = 3_600_000.0


class StorageKind(str, Enum):
    """Storage backend kinds.

    Attributes:
        MEMORY: Process-local, non-durable.
        SYNC_BACKED: Synchronous key-value file behind the async contract.
        DOCUMENT: Transactional SQLite document store.
        HYBRID: Key-value to ``small``, collections to ``large``.
    """

    MEMORY = "memory"
    SYNC_BACKED = "sync-backed"
    DOCUMENT = "document"
    HYBRID = "hybrid"


class NetworkKind(str, Enum):
    FETCH = "fetch"
    MOCK = "mock"


class AudioKind(str, Enum):
    NATIVE_ELEMENT = "native-element"
    MOCK = "mock"


class PlatformKind(str, Enum):
    NATIVE = "native"
    MOCK = "mock"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Storage configuration.

    Attributes:
        kind: Backend kind.
        prefix: Namespace prefix for keys and collections.
        db_name: File stem of the durable stores.
        data_dir: Directory of the durable stores. Defaults to JOTA_DATA_DIR
            or ``~/.jota``.
        max_quota: Optional byte cap for the document store.
        small: Key-value backend of a hybrid. Must not be hybrid.
        large: Collection backend of a hybrid. Must not be hybrid.
    """

    kind: StorageKind = StorageKind.HYBRID
    prefix: str = ""
    db_name: str = DEFAULT_DB_NAME
    data_dir: Path | None = None
    max_quota: int | None = None
    small: StorageConfig | None = None
    large: StorageConfig | None = None


@dataclass(frozen=True, slots=True)
class CacheConfig:
    """Response cache configuration."""

    enabled: bool = True
    max_age_ms: float = DEFAULT_CACHE_MAX_AGE_MS


@dataclass(frozen=True, slots=True)
class NetworkConfig:
    """Network configuration.

    Attributes:
        kind: Adapter kind.
        base_url: Prefix for relative request URLs.
        timeout_ms: Request timeout. Defaults to JOTA_HTTP_TIMEOUT_MS or 30s.
        headers: Headers sent with every request.
        cache: Response cache settings.
        retry: Retry settings; None disables retries.
        http2: Enable HTTP/2.
    """

    kind: NetworkKind = NetworkKind.FETCH
    base_url: str = ""
    timeout_ms: float | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    cache: CacheConfig = field(default_factory=CacheConfig)
    retry: RetryConfig | None = None
    http2: bool = False


@dataclass(frozen=True, slots=True)
class AudioConfig:
    """Audio configuration."""

    kind: AudioKind = AudioKind.NATIVE_ELEMENT
    default_volume: float = 1.0
    default_playback_rate: float = 1.0
    player_command: tuple[str, ...] | None = None


@dataclass(frozen=True, slots=True)
class PlatformConfig:
    """Platform configuration."""

    kind: PlatformKind = PlatformKind.NATIVE
    base_dir: Path | None = None


@dataclass(frozen=True, slots=True)
class AdapterConfig:
    """Configuration of a complete adapter suite."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    platform: PlatformConfig = field(default_factory=PlatformConfig)


DEFAULT_CONFIG = AdapterConfig(
    storage=StorageConfig(
        kind=StorageKind.HYBRID,
        small=StorageConfig(kind=StorageKind.SYNC_BACKED),
        large=StorageConfig(kind=StorageKind.DOCUMENT),
    ),
    network=NetworkConfig(kind=NetworkKind.FETCH),
    audio=AudioConfig(kind=AudioKind.NATIVE_ELEMENT),
    platform=PlatformConfig(kind=PlatformKind.NATIVE),
)

TEST_CONFIG = AdapterConfig(
    storage=StorageConfig(kind=StorageKind.MEMORY),
    network=NetworkConfig(kind=NetworkKind.MOCK),
    audio=AudioConfig(kind=AudioKind.MOCK),
    platform=PlatformConfig(kind=PlatformKind.MOCK),
)


def resolve_data_dir(data_dir: Path | str | None) -> Path:
    """Return data_dir, else JOTA_DATA_DIR, else ``~/.jota``."""
    return Path(data_dir or os.getenv("JOTA_DATA_DIR") or DEFAULT_DATA_DIR)


_DOMAINS: dict[str, type] = {
    "storage": StorageConfig,
    "network": NetworkConfig,
    "audio": AudioConfig,
    "platform": PlatformConfig,
}

_KINDS: dict[type, type[Enum]] = {
    StorageConfig: StorageKind,
    NetworkConfig: NetworkKind,
    AudioConfig: AudioKind,
    PlatformConfig: PlatformKind,
}


def _coerce(config_type: type, name: str, value: Any) -> Any:
    """Convert a plain override value into the field's declared type."""
    if value is None:
        return None

    if name == "kind":
        kind_type = _KINDS[config_type]
        try:
            return kind_type(value)
        except ValueError as exc:
            choices = ", ".join(k.value for k in kind_type)
            raise ConfigurationError(
                f"Unknown {config_type.__name__} kind {value!r}; expected one of {choices}"
            ) from exc

    if config_type is StorageConfig and name in ("small", "large") and isinstance(value, Mapping):
        return _replace(StorageConfig(), value)
    if config_type is NetworkConfig and name == "cache" and isinstance(value, Mapping):
        return _replace(CacheConfig(), value)
    if config_type is NetworkConfig and name == "retry" and isinstance(value, Mapping):
        return _replace(RetryConfig(), value)
    if name in ("data_dir", "base_dir"):
        return Path(value)
    if name == "player_command":
        return tuple(value)
    return value


def _replace[C](base: C, overrides: Mapping[str, Any]) -> C:
    config_type = type(base)
    names = {f.name for f in dataclasses.fields(config_type)}
    unknown = set(overrides) - names
    if unknown:
        raise ConfigurationError(
            f"Unknown {config_type.__name__} option(s): {', '.join(sorted(unknown))}"
        )
    coerced = {name: _coerce(config_type, name, value) for name, value in overrides.items()}
    return dataclasses.replace(base, **coerced)


def merge_config(
    overrides: AdapterConfig | Mapping[str, Any] | None = None,
    defaults: AdapterConfig = DEFAULT_CONFIG,
) -> AdapterConfig:
    """Shallow-merge caller options over per-domain defaults.

    Each domain of ``overrides`` may be omitted (keep the default), a domain
    config object (replaces the default), or a mapping of options replacing
    single fields of the default. Nested values such as ``cache`` are
    replaced as a whole, not merged.

    Args:
        overrides: Caller configuration.
        defaults: Configuration supplying everything not overridden.

    Returns:
        AdapterConfig: The merged configuration.

    Raises:
        ConfigurationError: For unknown domains, options or kinds.

    Example:
        >>> merge_config({"storage": {"kind": "memory", "prefix": "app"}}).storage.kind
        <StorageKind.MEMORY: 'memory'>
    """
    if overrides is None:
        return defaults
    if isinstance(overrides, AdapterConfig):
        return overrides

    unknown = set(overrides) - set(_DOMAINS)
    if unknown:
        raise ConfigurationError(f"Unknown configuration domain(s): {', '.join(sorted(unknown))}")

    merged: dict[str, Any] = {}
    for domain, config_type in _DOMAINS.items():
        default = getattr(defaults, domain)
        value = overrides.get(domain)
        if value is None:
            merged[domain] = default
        elif isinstance(value, config_type):
            merged[domain] = value
        elif isinstance(value, Mapping):
            merged[domain] = _replace(default, value)
        else:
            raise ConfigurationError(
                f"{domain} configuration must be a {config_type.__name__} or a mapping"
            )
    return AdapterConfig(**merged)
