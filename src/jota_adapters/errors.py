"""Error taxonomy shared by every adapter domain.

Each domain raises exactly one exception type carrying a code from a closed
enum, so callers never need backend-specific ``except`` branches.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class StorageErrorCode(str, Enum):
    """Failure categories surfaced by storage backends."""

    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    NOT_AVAILABLE = "NOT_AVAILABLE"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    INVALID_DATA = "INVALID_DATA"
    UNKNOWN = "UNKNOWN"


class NetworkErrorCode(str, Enum):
    """Failure categories surfaced by network adapters."""

    TIMEOUT = "TIMEOUT"
    OFFLINE = "OFFLINE"
    ABORTED = "ABORTED"
    NOT_FOUND = "NOT_FOUND"
    SERVER_ERROR = "SERVER_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    UNKNOWN = "UNKNOWN"


class AudioErrorCode(str, Enum):
    """Failure categories surfaced by audio adapters."""

    NOT_SUPPORTED = "NOT_SUPPORTED"
    NETWORK_ERROR = "NETWORK_ERROR"
    DECODE_ERROR = "DECODE_ERROR"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    ABORTED = "ABORTED"
    UNKNOWN = "UNKNOWN"


class PlatformErrorCode(str, Enum):
    """Failure categories surfaced by platform adapters."""

    NOT_SUPPORTED = "NOT_SUPPORTED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    INVALID_PATH = "INVALID_PATH"
    UNKNOWN = "UNKNOWN"


class AdapterError(Exception):
    """Base class for all typed adapter errors."""

    def __init__(self, message: str, code: Enum) -> None:
        super().__init__(message)
        self.code = code

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r}, code={self.code.value})"


class StorageError(AdapterError):
    """Raised by storage backends."""

    def __init__(self, message: str, code: StorageErrorCode = StorageErrorCode.UNKNOWN) -> None:
        super().__init__(message, code)
        self.code: StorageErrorCode = code


class NetworkError(AdapterError):
    """Raised by network adapters.

    Attributes:
        code: Failure category.
        status: HTTP status code when a response was received.
        response: Decoded response body when one was available.
    """

    def __init__(
        self,
        message: str,
        code: NetworkErrorCode = NetworkErrorCode.UNKNOWN,
        status: int | None = None,
        response: Any = None,
    ) -> None:
        super().__init__(message, code)
        self.code: NetworkErrorCode = code
        self.status = status
        self.response = response


class AudioError(AdapterError):
    """Raised by audio adapters."""

    def __init__(self, message: str, code: AudioErrorCode = AudioErrorCode.UNKNOWN) -> None:
        super().__init__(message, code)
        self.code: AudioErrorCode = code


class PlatformError(AdapterError):
    """Raised by platform adapters."""

    def __init__(self, message: str, code: PlatformErrorCode = PlatformErrorCode.UNKNOWN) -> None:
        super().__init__(message, code)
        self.code: PlatformErrorCode = code


class ConfigurationError(ValueError):
    """Raised when an adapter configuration cannot be resolved."""

    pass
