"""Configuration, capability detection and the adapter factory."""

from jota_adapters.factory.config import (
    DEFAULT_CONFIG,
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
    merge_config,
)
from jota_adapters.factory.detection import (
    DetectedCapabilities,
    Environment,
    StorageQuota,
    detect_capabilities,
    detect_environment,
    get_device_type,
    get_preferred_color_scheme,
    get_recommended_config,
    get_storage_quota,
)
from jota_adapters.factory.suite import (
    AdapterFactory,
    AdapterSuite,
    create_adapter_suite,
    create_audio_adapter,
    create_network_adapter,
    create_platform_adapter,
    create_recommended_suite,
    create_storage_adapter,
)

__all__ = [
    "DEFAULT_CONFIG",
    "TEST_CONFIG",
    "AdapterConfig",
    "AdapterFactory",
    "AdapterSuite",
    "AudioConfig",
    "AudioKind",
    "CacheConfig",
    "DetectedCapabilities",
    "Environment",
    "NetworkConfig",
    "NetworkKind",
    "PlatformConfig",
    "PlatformKind",
    "StorageConfig",
    "StorageKind",
    "StorageQuota",
    "create_adapter_suite",
    "create_audio_adapter",
    "create_network_adapter",
    "create_platform_adapter",
    "create_recommended_suite",
    "create_storage_adapter",
    "detect_capabilities",
    "detect_environment",
    "get_device_type",
    "get_preferred_color_scheme",
    "get_recommended_config",
    "get_storage_quota",
    "merge_config",
]
