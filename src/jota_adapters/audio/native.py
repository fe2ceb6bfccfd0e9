"""Audio adapter driving MediaElements through per-handle state machines."""

from __future__ import annotations

import dataclasses
import itertools
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from functools import partial
from typing import Any, Self

from jota_adapters.audio.base import (
    AudioAdapter,
    AudioEvent,
    AudioEventCallback,
    AudioEventType,
    AudioHandle,
    AudioMetadata,
    AudioOptions,
    AudioState,
    clamp_playback_rate,
    clamp_volume,
)
from jota_adapters.audio.element import (
    DEFAULT_PLAYER_COMMAND,
    ElementFactory,
    MediaElement,
    PlaybackNotAllowedError,
    SubprocessMediaElement,
    probe_metadata,
)
from jota_adapters.audio.state_machine import MediaEvent, PlaybackStateMachine
from jota_adapters.errors import AudioError, AudioErrorCode
from jota_adapters.events import ListenerRegistry, Subscription

logger = logging.getLogger(__name__)

MetadataProbe = Callable[[str], Awaitable[AudioMetadata]]


@dataclass
class _Instance:
    handle: AudioHandle
    machine: PlaybackStateMachine
    listeners: ListenerRegistry[AudioEvent]
    volume: float
    playback_rate: float
    element: MediaElement | None = None
    muted: bool = False
    previous_volume: float = 1.0


class NativeAudioAdapter(AudioAdapter):
    """Audio adapter backed by a MediaElement per playback.

    Args:
        default_volume: Volume for handles played without one.
        default_playback_rate: Rate for handles played without one.
        player_command: Command template for SubprocessMediaElement.
        element_factory: Builds the element for a URL; overrides
            player_command.
        metadata_probe: Reads metadata for a URL. Defaults to ffprobe.

    Example:
        ```python
        audio = NativeAudioAdapter(default_volume=0.8)
        handle = await audio.play("/srv/audio/john-3.mp3")
        audio.on_playback_change(handle, lambda event: print(event.type))
        await audio.pause(handle)
        await audio.stop(handle)
        ```
    """

    def __init__(
        self,
        default_volume: float = 1.0,
        default_playback_rate: float = 1.0,
        player_command: Sequence[str] | None = None,
        element_factory: ElementFactory | None = None,
        metadata_probe: MetadataProbe | None = None,
    ) -> None:
        self._default_volume = clamp_volume(default_volume)
        self._default_playback_rate = clamp_playback_rate(default_playback_rate)
        self._element_factory = element_factory or partial(
            SubprocessMediaElement, command=tuple(player_command or DEFAULT_PLAYER_COMMAND)
        )
        self._probe = metadata_probe or probe_metadata
        self._ids = itertools.count(1)
        self._instances: dict[str, _Instance] = {}
        self._preloaded: dict[str, AudioMetadata] = {}

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _emit(self, instance: _Instance, event_type: AudioEventType, error: str | None = None) -> None:
        element = instance.element
        instance.listeners.emit(
            AudioEvent(
                type=event_type,
                handle=dataclasses.replace(instance.handle),
                current_time=element.current_time if element is not None else 0.0,
                duration=element.duration if element is not None else None,
                error=error,
            )
        )

    def _on_media_event(self, instance: _Instance, event: MediaEvent, error: str | None) -> None:
        category = instance.machine.handle_media_event(event)
        if category is not None:
            self._emit(instance, category, error)

    async def play(self, url: str, options: AudioOptions | None = None) -> AudioHandle:
        options = options or AudioOptions()
        handle = AudioHandle(id=f"audio_{next(self._ids)}", url=url)
        volume = clamp_volume(
            options.volume if options.volume is not None else self._default_volume
        )
        instance = _Instance(
            handle=handle,
            machine=PlaybackStateMachine(handle),
            listeners=ListenerRegistry(f"audio:{handle.id}"),
            volume=volume,
            playback_rate=clamp_playback_rate(
                options.playback_rate
                if options.playback_rate is not None
                else self._default_playback_rate
            ),
            previous_volume=volume,
        )
        instance.machine.transition(AudioState.LOADING)
        self._instances[handle.id] = instance

        try:
            element = self._element_factory(
                url, lambda event, error: self._on_media_event(instance, event, error)
            )
            instance.element = element
            element.set_volume(instance.volume)
            element.set_playback_rate(instance.playback_rate)
            element.set_loop(options.loop)
            if options.start_time:
                await element.seek(options.start_time)
            await element.play()
        except PlaybackNotAllowedError as exc:
            await self._discard(instance)
            raise AudioError(
                "Playback not allowed. User interaction required.",
                AudioErrorCode.PERMISSION_DENIED,
            ) from exc
        except Exception as exc:
            await self._discard(instance)
            raise AudioError(f"Failed to play {url}", AudioErrorCode.UNKNOWN) from exc

        instance.machine.transition(AudioState.PLAYING)
        return handle

    async def _discard(self, instance: _Instance) -> None:
        instance.machine.transition(AudioState.ERROR)
        self._instances.pop(instance.handle.id, None)
        instance.listeners.clear()
        if instance.element is not None:
            await instance.element.release()

    async def pause(self, handle: AudioHandle) -> None:
        instance = self._instances.get(handle.id)
        if instance is None or instance.element is None:
            return
        await instance.element.pause()

    async def resume(self, handle: AudioHandle) -> None:
        instance = self._instances.get(handle.id)
        if instance is None or instance.element is None:
            return
        if instance.machine.state in (AudioState.ENDED, AudioState.ERROR):
            return
        try:
            await instance.element.play()
        except Exception as exc:
            raise AudioError("Failed to resume playback", AudioErrorCode.UNKNOWN) from exc

    async def stop(self, handle: AudioHandle) -> None:
        instance = self._instances.pop(handle.id, None)
        if instance is None:
            return
        if instance.element is not None:
            await instance.element.release()
        if instance.machine.stop():
            self._emit(instance, AudioEventType.STATECHANGE)
        instance.listeners.clear()

    async def get_current_time(self, handle: AudioHandle) -> float:
        instance = self._instances.get(handle.id)
        if instance is None or instance.element is None:
            return 0.0
        return instance.element.current_time

    async def set_current_time(self, handle: AudioHandle, time: float) -> None:
        instance = self._instances.get(handle.id)
        if instance is None or instance.element is None:
            return
        await instance.element.seek(max(0.0, time))

    async def get_duration(self, handle: AudioHandle | str) -> float:
        if isinstance(handle, str):
            return (await self.get_metadata(handle)).duration

        instance = self._instances.get(handle.id)
        if instance is None or instance.element is None:
            return 0.0
        return instance.element.duration or 0.0

    async def get_volume(self, handle: AudioHandle) -> float:
        instance = self._instances.get(handle.id)
        return instance.volume if instance is not None else 0.0

    def _apply_volume(self, instance: _Instance, volume: float) -> None:
        instance.volume = volume
        if instance.element is not None:
            instance.element.set_volume(volume)

    async def set_volume(self, handle: AudioHandle, volume: float) -> None:
        instance = self._instances.get(handle.id)
        if instance is None:
            return
        clamped = clamp_volume(volume)
        self._apply_volume(instance, clamped)
        instance.previous_volume = clamped
        instance.muted = False

    async def mute(self, handle: AudioHandle) -> None:
        instance = self._instances.get(handle.id)
        if instance is None or instance.muted:
            return
        instance.previous_volume = instance.volume
        self._apply_volume(instance, 0.0)
        instance.muted = True

    async def unmute(self, handle: AudioHandle) -> None:
        instance = self._instances.get(handle.id)
        if instance is None or not instance.muted:
            return
        self._apply_volume(instance, instance.previous_volume)
        instance.muted = False

    async def get_playback_rate(self, handle: AudioHandle) -> float:
        instance = self._instances.get(handle.id)
        return instance.playback_rate if instance is not None else 1.0

    async def set_playback_rate(self, handle: AudioHandle, rate: float) -> None:
        instance = self._instances.get(handle.id)
        if instance is None:
            return
        instance.playback_rate = clamp_playback_rate(rate)
        if instance.element is not None:
            instance.element.set_playback_rate(instance.playback_rate)

    async def get_metadata(self, url: str) -> AudioMetadata:
        cached = self._preloaded.get(url)
        if cached is not None:
            return cached
        return await self._probe(url)

    async def preload(self, url: str) -> None:
        """Read and keep metadata for url so the next lookup is immediate."""
        if url in self._preloaded:
            return
        self._preloaded[url] = await self._probe(url)

    async def cancel_preload(self, url: str) -> None:
        self._preloaded.pop(url, None)

    def on_playback_change(
        self, handle: AudioHandle, callback: AudioEventCallback
    ) -> Subscription:
        instance = self._instances.get(handle.id)
        if instance is None:
            return Subscription()
        return instance.listeners.subscribe(callback)

    async def close(self) -> None:
        instances = list(self._instances.values())
        self._instances.clear()
        for instance in instances:
            instance.listeners.clear()
            if instance.element is not None:
                await instance.element.release()
            instance.machine.stop()
        self._preloaded.clear()
        logger.debug("Released %d audio instances", len(instances))
