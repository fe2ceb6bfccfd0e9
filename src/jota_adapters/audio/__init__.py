"""Audio adapters and the playback state machine."""

from jota_adapters.audio.base import (
    AudioAdapter,
    AudioEvent,
    AudioEventType,
    AudioHandle,
    AudioMetadata,
    AudioOptions,
    AudioState,
)
from jota_adapters.audio.element import (
    MediaElement,
    MediaElementError,
    PlaybackNotAllowedError,
    SubprocessMediaElement,
    probe_metadata,
)
from jota_adapters.audio.mock import MockAudioAdapter
from jota_adapters.audio.native import NativeAudioAdapter
from jota_adapters.audio.state_machine import MediaEvent, PlaybackStateMachine

__all__ = [
    "AudioAdapter",
    "AudioEvent",
    "AudioEventType",
    "AudioHandle",
    "AudioMetadata",
    "AudioOptions",
    "AudioState",
    "MediaElement",
    "MediaElementError",
    "MediaEvent",
    "MockAudioAdapter",
    "NativeAudioAdapter",
    "PlaybackNotAllowedError",
    "PlaybackStateMachine",
    "SubprocessMediaElement",
    "probe_metadata",
]
