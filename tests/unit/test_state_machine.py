"""Tests for the playback state machine."""

from __future__ import annotations

import json
import logging

import pytest

from jota_adapters.audio.base import AudioEventType, AudioHandle, AudioState
from jota_adapters.audio.state_machine import TRANSITIONS, MediaEvent, PlaybackStateMachine


def machine_in(state: AudioState) -> PlaybackStateMachine:
    return PlaybackStateMachine(AudioHandle(id="audio_1", url="file.mp3", state=state))


class TestTransitions:
    """Tests for the transition table."""

    def test_every_state_has_an_entry(self) -> None:
        """The table should cover every state."""
        assert set(TRANSITIONS) == set(AudioState)

    @pytest.mark.parametrize("state", [AudioState.ENDED, AudioState.ERROR])
    def test_terminal_states_only_reach_idle(self, state: AudioState) -> None:
        """ENDED and ERROR should be left only through stop."""
        machine = machine_in(state)

        assert not machine.transition(AudioState.PLAYING)
        assert not machine.transition(AudioState.PAUSED)
        assert machine.state == state
        assert machine.stop()
        assert machine.state == AudioState.IDLE

    def test_idle_only_reaches_loading(self) -> None:
        """A stopped handle should not jump straight to PLAYING."""
        machine = machine_in(AudioState.IDLE)

        assert not machine.transition(AudioState.PLAYING)
        assert machine.transition(AudioState.LOADING)

    def test_same_state_is_not_a_transition(self) -> None:
        """Moving to the current state should report no change."""
        assert not machine_in(AudioState.PLAYING).transition(AudioState.PLAYING)

    def test_stop_from_idle_is_noop(self) -> None:
        """stop() on an idle handle should report no change."""
        assert not machine_in(AudioState.IDLE).stop()

    def test_transition_is_logged_as_json(self, caplog: pytest.LogCaptureFixture) -> None:
        """Accepted transitions should emit a structured info record."""
        machine = machine_in(AudioState.LOADING)

        with caplog.at_level(logging.INFO, logger="jota_adapters.audio.state_machine"):
            machine.transition(AudioState.PLAYING)

        record = json.loads(caplog.records[0].getMessage())
        assert record["event"] == "playback_state_change"
        assert record["handle"] == "audio_1"
        assert record["from_state"] == "loading"
        assert record["to_state"] == "playing"


class TestMediaEvents:
    """Tests for mapping media events to observable events."""

    @pytest.mark.parametrize(
        ("event", "state", "category"),
        [
            (MediaEvent.PLAY, AudioState.PLAYING, AudioEventType.STATECHANGE),
            (MediaEvent.PAUSE, AudioState.PAUSED, AudioEventType.STATECHANGE),
            (MediaEvent.ENDED, AudioState.ENDED, AudioEventType.ENDED),
            (MediaEvent.ERROR, AudioState.ERROR, AudioEventType.ERROR),
        ],
    )
    def test_state_events_from_loading(
        self, event: MediaEvent, state: AudioState, category: AudioEventType
    ) -> None:
        """Each state event should move the machine and name its category."""
        machine = machine_in(AudioState.LOADING)

        assert machine.handle_media_event(event) is category
        assert machine.state == state

    def test_ignored_transition_reports_nothing(self) -> None:
        """A media event that cannot apply should report no category."""
        machine = machine_in(AudioState.ENDED)

        assert machine.handle_media_event(MediaEvent.PLAY) is None
        assert machine.state == AudioState.ENDED

    def test_pause_after_end_is_ignored(self) -> None:
        """PAUSE racing an ENDED should not leave the terminal state."""
        machine = machine_in(AudioState.PLAYING)
        machine.handle_media_event(MediaEvent.ENDED)

        assert machine.handle_media_event(MediaEvent.PAUSE) is None
        assert machine.state == AudioState.ENDED

    def test_informational_events(self) -> None:
        """Metadata and time updates should be reported unless idle."""
        playing = machine_in(AudioState.PLAYING)
        idle = machine_in(AudioState.IDLE)

        assert playing.handle_media_event(MediaEvent.LOADED_METADATA) is AudioEventType.LOADED
        assert playing.handle_media_event(MediaEvent.TIME_UPDATE) is AudioEventType.TIMEUPDATE
        assert idle.handle_media_event(MediaEvent.TIME_UPDATE) is None
        assert playing.state == AudioState.PLAYING
