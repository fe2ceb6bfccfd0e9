"""Audio adapter that simulates playback without producing sound."""

from __future__ import annotations

import asyncio
import dataclasses
import itertools
from dataclasses import dataclass
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
from jota_adapters.audio.state_machine import PlaybackStateMachine
from jota_adapters.events import ListenerRegistry, Subscription

DEFAULT_MOCK_DURATION = 180.0


@dataclass
class _MockInstance:
    handle: AudioHandle
    machine: PlaybackStateMachine
    listeners: ListenerRegistry[AudioEvent]
    current_time: float
    duration: float
    volume: float
    playback_rate: float
    muted: bool = False
    previous_volume: float = 1.0


class MockAudioAdapter(AudioAdapter):
    """In-memory audio adapter for tests.

    Playback starts immediately in PLAYING and a LOADED event is delivered
    on the next loop iteration. Test hooks simulate the end of a track or a
    playback error.
    """

    def __init__(self, default_volume: float = 1.0, default_playback_rate: float = 1.0) -> None:
        self._default_volume = clamp_volume(default_volume)
        self._default_playback_rate = clamp_playback_rate(default_playback_rate)
        self._ids = itertools.count(1)
        self._instances: dict[str, _MockInstance] = {}
        self._preloaded: set[str] = set()
        self._durations: dict[str, float] = {}

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def set_mock_duration(self, url: str, duration: float) -> None:
        """Set the duration reported for url."""
        self._durations[url] = duration

    def _emit(
        self, instance: _MockInstance, event_type: AudioEventType, error: str | None = None
    ) -> None:
        instance.listeners.emit(
            AudioEvent(
                type=event_type,
                handle=dataclasses.replace(instance.handle),
                current_time=instance.current_time,
                duration=instance.duration,
                error=error,
            )
        )

    def _emit_loaded(self, instance: _MockInstance) -> None:
        if instance.handle.id in self._instances:
            self._emit(instance, AudioEventType.LOADED)

    async def play(self, url: str, options: AudioOptions | None = None) -> AudioHandle:
        options = options or AudioOptions()
        handle = AudioHandle(id=f"mock_audio_{next(self._ids)}", url=url)
        volume = clamp_volume(
            options.volume if options.volume is not None else self._default_volume
        )
        instance = _MockInstance(
            handle=handle,
            machine=PlaybackStateMachine(handle),
            listeners=ListenerRegistry(f"mock_audio:{handle.id}"),
            current_time=options.start_time,
            duration=self._durations.get(url, DEFAULT_MOCK_DURATION),
            volume=volume,
            playback_rate=clamp_playback_rate(
                options.playback_rate
                if options.playback_rate is not None
                else self._default_playback_rate
            ),
            previous_volume=volume,
        )
        instance.machine.transition(AudioState.LOADING)
        instance.machine.transition(AudioState.PLAYING)
        self._instances[handle.id] = instance

        asyncio.get_running_loop().call_soon(self._emit_loaded, instance)
        return handle

    async def pause(self, handle: AudioHandle) -> None:
        instance = self._instances.get(handle.id)
        if instance is not None and instance.machine.transition(AudioState.PAUSED):
            self._emit(instance, AudioEventType.STATECHANGE)

    async def resume(self, handle: AudioHandle) -> None:
        instance = self._instances.get(handle.id)
        if instance is not None and instance.machine.transition(AudioState.PLAYING):
            self._emit(instance, AudioEventType.STATECHANGE)

    async def stop(self, handle: AudioHandle) -> None:
        instance = self._instances.pop(handle.id, None)
        if instance is None:
            return
        instance.current_time = 0.0
        if instance.machine.stop():
            self._emit(instance, AudioEventType.STATECHANGE)
        instance.listeners.clear()

    async def get_current_time(self, handle: AudioHandle) -> float:
        instance = self._instances.get(handle.id)
        return instance.current_time if instance is not None else 0.0

    async def set_current_time(self, handle: AudioHandle, time: float) -> None:
        instance = self._instances.get(handle.id)
        if instance is None:
            return
        instance.current_time = max(0.0, min(time, instance.duration))
        self._emit(instance, AudioEventType.TIMEUPDATE)

    async def get_duration(self, handle: AudioHandle | str) -> float:
        if isinstance(handle, str):
            return self._durations.get(handle, DEFAULT_MOCK_DURATION)
        instance = self._instances.get(handle.id)
        return instance.duration if instance is not None else 0.0

    async def get_volume(self, handle: AudioHandle) -> float:
        instance = self._instances.get(handle.id)
        return instance.volume if instance is not None else 0.0

    async def set_volume(self, handle: AudioHandle, volume: float) -> None:
        instance = self._instances.get(handle.id)
        if instance is None:
            return
        instance.volume = clamp_volume(volume)
        instance.previous_volume = instance.volume
        instance.muted = False

    async def mute(self, handle: AudioHandle) -> None:
        instance = self._instances.get(handle.id)
        if instance is None or instance.muted:
            return
        instance.previous_volume = instance.volume
        instance.volume = 0.0
        instance.muted = True

    async def unmute(self, handle: AudioHandle) -> None:
        instance = self._instances.get(handle.id)
        if instance is None or not instance.muted:
            return
        instance.volume = instance.previous_volume
        instance.muted = False

    async def get_playback_rate(self, handle: AudioHandle) -> float:
        instance = self._instances.get(handle.id)
        return instance.playback_rate if instance is not None else 1.0

    async def set_playback_rate(self, handle: AudioHandle, rate: float) -> None:
        instance = self._instances.get(handle.id)
        if instance is not None:
            instance.playback_rate = clamp_playback_rate(rate)

    async def get_metadata(self, url: str) -> AudioMetadata:
        return AudioMetadata(duration=self._durations.get(url, DEFAULT_MOCK_DURATION))

    async def preload(self, url: str) -> None:
        self._preloaded.add(url)

    async def cancel_preload(self, url: str) -> None:
        self._preloaded.discard(url)

    def is_preloaded(self, url: str) -> bool:
        return url in self._preloaded

    def on_playback_change(
        self, handle: AudioHandle, callback: AudioEventCallback
    ) -> Subscription:
        instance = self._instances.get(handle.id)
        if instance is None:
            return Subscription()
        return instance.listeners.subscribe(callback)

    async def close(self) -> None:
        for instance in self._instances.values():
            instance.listeners.clear()
            instance.machine.stop()
        self._instances.clear()
        self._preloaded.clear()

    def get_active_instances(self) -> list[AudioHandle]:
        """Handles that have not been stopped."""
        return [instance.handle for instance in self._instances.values()]

    def simulate_end(self, handle: AudioHandle) -> None:
        """Drive a handle to ENDED as if the track finished."""
        instance = self._instances.get(handle.id)
        if instance is None:
            return
        if instance.machine.transition(AudioState.ENDED):
            instance.current_time = instance.duration
            self._emit(instance, AudioEventType.ENDED)

    def simulate_error(self, handle: AudioHandle, message: str) -> None:
        """Drive a handle to ERROR as if playback failed."""
        instance = self._instances.get(handle.id)
        if instance is None:
            return
        if instance.machine.transition(AudioState.ERROR):
            self._emit(instance, AudioEventType.ERROR, error=message)
