"""Playback state machine driven by media element events."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from enum import Enum

from jota_adapters.audio.base import AudioEventType, AudioHandle, AudioState

logger = logging.getLogger(__name__)


class MediaEvent(str, Enum):
    """Low-level events emitted by a media element."""

    PLAY = "play"
    PAUSE = "pause"
    ENDED = "ended"
    ERROR = "error"
    LOADED_METADATA = "loadedmetadata"
    TIME_UPDATE = "timeupdate"


# ENDED and ERROR leave only through stop.
TRANSITIONS: dict[AudioState, frozenset[AudioState]] = {
    AudioState.IDLE: frozenset({AudioState.LOADING}),
    AudioState.LOADING: frozenset(
        {AudioState.PLAYING, AudioState.PAUSED, AudioState.ENDED, AudioState.ERROR, AudioState.IDLE}
    ),
    AudioState.PLAYING: frozenset(
        {AudioState.PAUSED, AudioState.ENDED, AudioState.ERROR, AudioState.IDLE}
    ),
    AudioState.PAUSED: frozenset({AudioState.PLAYING, AudioState.ERROR, AudioState.IDLE}),
    AudioState.ENDED: frozenset({AudioState.IDLE}),
    AudioState.ERROR: frozenset({AudioState.IDLE}),
}

_EVENT_TARGETS: dict[MediaEvent, tuple[AudioState, AudioEventType]] = {
    MediaEvent.PLAY: (AudioState.PLAYING, AudioEventType.STATECHANGE),
    MediaEvent.PAUSE: (AudioState.PAUSED, AudioEventType.STATECHANGE),
    MediaEvent.ENDED: (AudioState.ENDED, AudioEventType.ENDED),
    MediaEvent.ERROR: (AudioState.ERROR, AudioEventType.ERROR),
}


class PlaybackStateMachine:
    """Explicit state machine for one audio handle.

    The machine owns ``handle.state``. Invalid transitions are ignored
    rather than raised, so a late media event racing a ``stop`` is harmless.

    Example:
        ```python
        machine = PlaybackStateMachine(AudioHandle("audio_1", url))
        machine.transition(AudioState.LOADING)
        machine.handle_media_event(MediaEvent.PLAY)  # AudioEventType.STATECHANGE
        ```
    """

    def __init__(self, handle: AudioHandle) -> None:
        self._handle = handle

    @property
    def handle(self) -> AudioHandle:
        return self._handle

    @property
    def state(self) -> AudioState:
        return self._handle.state

    def can_transition(self, target: AudioState) -> bool:
        """Whether target is reachable from the current state."""
        return target in TRANSITIONS[self._handle.state]

    def transition(self, target: AudioState) -> bool:
        """Move to target if allowed.

        Returns:
            bool: True if the state changed.
        """
        current = self._handle.state
        if target == current:
            return False
        if not self.can_transition(target):
            logger.debug(
                "Ignoring transition %s -> %s for %s", current.value, target.value, self._handle.id
            )
            return False

        self._handle.state = target
        logger.info(
            json.dumps(
                {
                    "event": "playback_state_change",
                    "handle": self._handle.id,
                    "from_state": current.value,
                    "to_state": target.value,
                    "timestamp": datetime.now(UTC).isoformat(),
                }
            )
        )
        return True

    def stop(self) -> bool:
        """Return to IDLE from any state."""
        return self.transition(AudioState.IDLE)

    def handle_media_event(self, event: MediaEvent) -> AudioEventType | None:
        """Apply a media event and return the observable category to emit.

        State-changing events report their category only when the transition
        happened; metadata and time updates are reported unless the handle
        is already stopped.
        """
        match event:
            case MediaEvent.LOADED_METADATA:
                return None if self.state == AudioState.IDLE else AudioEventType.LOADED
            case MediaEvent.TIME_UPDATE:
                return None if self.state == AudioState.IDLE else AudioEventType.TIMEUPDATE
            case _:
                target, category = _EVENT_TARGETS[event]
                return category if self.transition(target) else None
