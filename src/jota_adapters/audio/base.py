"""Audio contract: playback states, handles, events and the AudioAdapter protocol."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from jota_adapters.events import Subscription

MIN_VOLUME = 0.0
MAX_VOLUME = 1.0
MIN_PLAYBACK_RATE = 0.25
MAX_PLAYBACK_RATE = 4.0


class AudioState(str, Enum):
    """Playback state of a handle.

    Attributes:
        IDLE: Not started or stopped.
        LOADING: Source is being opened.
        PLAYING: Audio is playing.
        PAUSED: Playback is suspended.
        ENDED: Playback reached the end. Left only through stop.
        ERROR: Playback failed. Left only through stop.
    """

    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"
    ERROR = "error"


class AudioEventType(str, Enum):
    """Observable playback event categories."""

    STATECHANGE = "statechange"
    TIMEUPDATE = "timeupdate"
    ENDED = "ended"
    ERROR = "error"
    LOADED = "loaded"


@dataclass(slots=True)
class AudioHandle:
    """Reference to one playback instance, returned by ``play``.

    ``state`` is kept current by the adapter that issued the handle.
    """

    id: str
    url: str
    state: AudioState = AudioState.IDLE


@dataclass(frozen=True, slots=True)
class AudioEvent:
    """A playback event.

    Attributes:
        type: Event category.
        handle: Snapshot of the handle when the event fired.
        current_time: Playback position in seconds.
        duration: Total duration in seconds, if known.
        error: Error message for ERROR events.
    """

    type: AudioEventType
    handle: AudioHandle
    current_time: float | None = None
    duration: float | None = None
    error: str | None = None


AudioEventCallback = Callable[[AudioEvent], None]


@dataclass(frozen=True, slots=True)
class AudioOptions:
    """Options for ``play``; None fields fall back to adapter defaults."""

    volume: float | None = None
    playback_rate: float | None = None
    start_time: float = 0.0
    loop: bool = False


@dataclass(frozen=True, slots=True)
class AudioMetadata:
    """Metadata of an audio source."""

    duration: float
    sample_rate: int | None = None
    channels: int | None = None
    format: str | None = None


def clamp_volume(volume: float) -> float:
    return max(MIN_VOLUME, min(MAX_VOLUME, volume))


def clamp_playback_rate(rate: float) -> float:
    return max(MIN_PLAYBACK_RATE, min(MAX_PLAYBACK_RATE, rate))


@runtime_checkable
class AudioAdapter(Protocol):
    """Protocol for audio playback backends.

    ``play`` is the only operation that creates a handle. Every other
    per-handle operation is a no-op for unknown or stopped handles.
    """

    async def play(self, url: str, options: AudioOptions | None = None) -> AudioHandle:
        """Start playing url.

        Raises:
            AudioError: PERMISSION_DENIED if playback is not allowed,
                UNKNOWN for any other playback failure.
        """
        ...

    async def pause(self, handle: AudioHandle) -> None: ...

    async def resume(self, handle: AudioHandle) -> None: ...

    async def stop(self, handle: AudioHandle) -> None:
        """Stop playback and release the handle. Idempotent."""
        ...

    async def get_current_time(self, handle: AudioHandle) -> float: ...

    async def set_current_time(self, handle: AudioHandle, time: float) -> None: ...

    async def get_duration(self, handle: AudioHandle | str) -> float: ...

    async def get_volume(self, handle: AudioHandle) -> float: ...

    async def set_volume(self, handle: AudioHandle, volume: float) -> None:
        """Set volume, clamped to 0..1. Clears mute."""
        ...

    async def mute(self, handle: AudioHandle) -> None: ...

    async def unmute(self, handle: AudioHandle) -> None: ...

    async def get_playback_rate(self, handle: AudioHandle) -> float: ...

    async def set_playback_rate(self, handle: AudioHandle, rate: float) -> None:
        """Set playback rate, clamped to 0.25..4."""
        ...

    async def get_metadata(self, url: str) -> AudioMetadata: ...

    async def preload(self, url: str) -> None: ...

    async def cancel_preload(self, url: str) -> None: ...

    def on_playback_change(
        self, handle: AudioHandle, callback: AudioEventCallback
    ) -> Subscription:
        """Subscribe to events of one handle. Call the result to unsubscribe."""
        ...

    async def close(self) -> None:
        """Stop every playback and release all resources."""
        ...
