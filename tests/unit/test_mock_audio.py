"""Tests for MockAudioAdapter."""

from __future__ import annotations

import asyncio

import pytest

from jota_adapters.audio import (
    AudioAdapter,
    AudioEvent,
    AudioEventType,
    AudioOptions,
    AudioState,
    MockAudioAdapter,
)
from jota_adapters.audio.mock import DEFAULT_MOCK_DURATION


class TestMockAudioAdapter:
    """Tests for simulated playback."""

    def test_satisfies_protocol(self) -> None:
        """MockAudioAdapter should be an AudioAdapter."""
        assert isinstance(MockAudioAdapter(), AudioAdapter)

    @pytest.mark.asyncio
    async def test_play_then_loaded(self) -> None:
        """play should return a PLAYING handle and deliver LOADED next tick."""
        audio = MockAudioAdapter()
        handle = await audio.play("a.mp3")
        events: list[AudioEvent] = []
        audio.on_playback_change(handle, events.append)

        await asyncio.sleep(0)

        assert handle.id == "mock_audio_1"
        assert handle.state == AudioState.PLAYING
        assert [e.type for e in events] == [AudioEventType.LOADED]
        assert events[0].duration == DEFAULT_MOCK_DURATION

    @pytest.mark.asyncio
    async def test_pause_resume_stop(self) -> None:
        """Each state change should be emitted once; stop is idempotent."""
        audio = MockAudioAdapter()
        handle = await audio.play("a.mp3")
        events: list[AudioEvent] = []
        audio.on_playback_change(handle, events.append)

        await audio.pause(handle)
        await audio.pause(handle)
        await audio.resume(handle)
        await audio.stop(handle)
        await audio.stop(handle)

        assert [e.handle.state for e in events if e.type is AudioEventType.STATECHANGE] == [
            AudioState.PAUSED,
            AudioState.PLAYING,
            AudioState.IDLE,
        ]
        assert audio.get_active_instances() == []

    @pytest.mark.asyncio
    async def test_simulated_end_is_terminal(self) -> None:
        """After simulate_end, resume should not leave ENDED."""
        audio = MockAudioAdapter()
        audio.set_mock_duration("a.mp3", 30)
        handle = await audio.play("a.mp3")
        events: list[AudioEvent] = []
        audio.on_playback_change(handle, events.append)

        audio.simulate_end(handle)
        await audio.resume(handle)

        assert handle.state == AudioState.ENDED
        assert await audio.get_current_time(handle) == 30
        assert [e.type for e in events if e.type is not AudioEventType.LOADED] == [
            AudioEventType.ENDED
        ]

    @pytest.mark.asyncio
    async def test_simulated_error(self) -> None:
        """simulate_error should emit ERROR with the message."""
        audio = MockAudioAdapter()
        handle = await audio.play("a.mp3")
        events: list[AudioEvent] = []
        audio.on_playback_change(handle, events.append)

        audio.simulate_error(handle, "network lost")

        assert handle.state == AudioState.ERROR
        assert events[-1].type is AudioEventType.ERROR
        assert events[-1].error == "network lost"

    @pytest.mark.asyncio
    async def test_seek_is_clamped_to_duration(self) -> None:
        """set_current_time should stay within 0..duration."""
        audio = MockAudioAdapter()
        audio.set_mock_duration("a.mp3", 60)
        handle = await audio.play("a.mp3", AudioOptions(start_time=5))

        assert await audio.get_current_time(handle) == 5
        await audio.set_current_time(handle, 500)
        assert await audio.get_current_time(handle) == 60
        await audio.set_current_time(handle, -1)
        assert await audio.get_current_time(handle) == 0

    @pytest.mark.asyncio
    async def test_controls(self) -> None:
        """Volume, mute and rate should behave like the native adapter."""
        audio = MockAudioAdapter(default_volume=0.8)
        handle = await audio.play("a.mp3")
        assert await audio.get_volume(handle) == 0.8

        await audio.mute(handle)
        assert await audio.get_volume(handle) == 0.0
        await audio.unmute(handle)
        assert await audio.get_volume(handle) == 0.8

        await audio.set_playback_rate(handle, 0)
        assert await audio.get_playback_rate(handle) == 0.25

    @pytest.mark.asyncio
    async def test_preload_and_metadata(self) -> None:
        """Preloading should be tracked and metadata reflect mock durations."""
        audio = MockAudioAdapter()
        audio.set_mock_duration("a.mp3", 12)

        await audio.preload("a.mp3")
        assert audio.is_preloaded("a.mp3")
        assert (await audio.get_metadata("a.mp3")).duration == 12
        assert await audio.get_duration("a.mp3") == 12

        await audio.cancel_preload("a.mp3")
        assert not audio.is_preloaded("a.mp3")

    @pytest.mark.asyncio
    async def test_stopped_handle_gets_no_loaded_event(self) -> None:
        """A handle stopped before the next tick should not report LOADED."""
        audio = MockAudioAdapter()
        handle = await audio.play("a.mp3")
        events: list[AudioEvent] = []
        audio.on_playback_change(handle, events.append)

        await audio.stop(handle)
        await asyncio.sleep(0)

        assert [e.type for e in events] == [AudioEventType.STATECHANGE]
