"""In-memory platform adapter for tests."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Self

from jota_adapters.errors import PlatformError, PlatformErrorCode
from jota_adapters.events import ListenerRegistry, Subscription
from jota_adapters.platform.base import (
    ColorScheme,
    OperatingSystem,
    Platform,
    PlatformAdapter,
    PlatformCapabilities,
    PlatformInfo,
    normalize_relative_path,
)


@dataclass(frozen=True, slots=True)
class ShownNotification:
    title: str
    body: str | None = None


class MockPlatformAdapter(PlatformAdapter):
    """Platform adapter keeping files, clipboard and notifications in memory."""

    def __init__(self) -> None:
        self._files: dict[str, bytes] = {}
        self._clipboard: str | None = None
        self._locale = "en-US"
        self._color_scheme = ColorScheme.LIGHT
        self._color_scheme_listeners: ListenerRegistry[ColorScheme] = ListenerRegistry(
            "mock_color_scheme"
        )
        self.notifications: list[ShownNotification] = []
        self.opened_urls: list[str] = []

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def set_mock_locale(self, locale: str) -> None:
        self._locale = locale

    def set_mock_color_scheme(self, scheme: ColorScheme) -> None:
        if scheme != self._color_scheme:
            self._color_scheme = scheme
            self._color_scheme_listeners.emit(scheme)

    def on_color_scheme_change(self, callback: Callable[[ColorScheme], None]) -> Subscription:
        return self._color_scheme_listeners.subscribe(callback)

    def get_platform(self) -> Platform:
        return Platform.UNKNOWN

    def get_platform_info(self) -> PlatformInfo:
        return PlatformInfo(platform=Platform.UNKNOWN, version="0.0.0-mock", os=OperatingSystem.UNKNOWN)

    def get_version(self) -> str:
        return "0.0.0-mock"

    def get_capabilities(self) -> PlatformCapabilities:
        return PlatformCapabilities(
            file_system=True,
            notifications=True,
            clipboard=True,
            share=False,
            persistent_storage=False,
        )

    def _key(self, path: str) -> str:
        return str(normalize_relative_path(path))

    async def read_file(self, path: str) -> bytes:
        key = self._key(path)
        try:
            return self._files[key]
        except KeyError:
            raise PlatformError(f"{path} not found", PlatformErrorCode.NOT_FOUND) from None

    async def read_text_file(self, path: str) -> str:
        return (await self.read_file(path)).decode("utf-8")

    async def write_file(self, path: str, data: bytes) -> None:
        self._files[self._key(path)] = bytes(data)

    async def write_text_file(self, path: str, text: str) -> None:
        await self.write_file(path, text.encode("utf-8"))

    async def file_exists(self, path: str) -> bool:
        return self._key(path) in self._files

    async def delete_file(self, path: str) -> None:
        key = self._key(path)
        if self._files.pop(key, None) is None:
            raise PlatformError(f"{path} not found", PlatformErrorCode.NOT_FOUND)

    async def copy_to_clipboard(self, text: str) -> None:
        self._clipboard = text

    async def read_from_clipboard(self) -> str | None:
        return self._clipboard

    async def show_notification(self, title: str, body: str | None = None) -> None:
        self.notifications.append(ShownNotification(title, body))

    async def open_external_url(self, url: str) -> None:
        self.opened_urls.append(url)

    def get_locale(self) -> str:
        return self._locale

    def get_color_scheme(self) -> ColorScheme:
        return self._color_scheme

    async def close(self) -> None:
        self._color_scheme_listeners.clear()
