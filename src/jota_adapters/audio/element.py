"""Media element primitives.

A MediaElement plays one source and reports MediaEvents through a callback.
SubprocessMediaElement drives a command-line player as an asyncio
subprocess; ``probe_metadata`` reads stream information with ffprobe.
"""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
import signal
import time
from collections.abc import Callable, Sequence
from contextlib import suppress
from typing import Protocol, runtime_checkable

from jota_adapters.audio.base import AudioMetadata
from jota_adapters.audio.state_machine import MediaEvent
from jota_adapters.errors import AudioError, AudioErrorCode

logger = logging.getLogger(__name__)

DEFAULT_PLAYER_COMMAND: tuple[str, ...] = (
    "ffplay",
    "-nodisp",
    "-autoexit",
    "-loglevel",
    "error",
    "-ss",
    "{start}",
    "-volume",
    "{volume}",
    "-af",
    "atempo={rate}",
    "{url}",
)

MediaEventCallback = Callable[[MediaEvent, str | None], None]


class MediaElementError(Exception):
    """Raised when a media element cannot start playback."""

    pass


class PlaybackNotAllowedError(MediaElementError):
    """Raised when the environment refuses to start playback."""

    pass


@runtime_checkable
class MediaElement(Protocol):
    """One playable source.

    Implementations call their event callback with PLAY, PAUSE, ENDED,
    ERROR, LOADED_METADATA and TIME_UPDATE as playback progresses.
    """

    @property
    def current_time(self) -> float: ...

    @property
    def duration(self) -> float | None: ...

    def set_volume(self, volume: float) -> None: ...

    def set_playback_rate(self, rate: float) -> None: ...

    def set_loop(self, loop: bool) -> None: ...

    async def play(self) -> None:
        """Start or resume playback.

        Raises:
            PlaybackNotAllowedError: If playback is refused.
            MediaElementError: For any other start failure.
        """
        ...

    async def pause(self) -> None: ...

    async def seek(self, position: float) -> None: ...

    async def release(self) -> None:
        """Stop playback and free every resource. Emits nothing."""
        ...


ElementFactory = Callable[[str, MediaEventCallback], MediaElement]


class SubprocessMediaElement(MediaElement):
    """MediaElement running a command-line player per playback.

    The command is a template; ``{url}``, ``{start}`` (seconds),
    ``{volume}`` (0-100) and ``{rate}`` are substituted in each argument.
    Pause and resume send SIGSTOP and SIGCONT. Volume and rate changes
    apply from the next (re)start of the player. Exit status 0 reports
    ENDED (or restarts when looping), anything else reports ERROR.

    Args:
        url: Source to play.
        on_event: Callback receiving MediaEvents.
        command: Player command template.
        tick_interval: Seconds between TIME_UPDATE events while playing.
    """

    def __init__(
        self,
        url: str,
        on_event: MediaEventCallback,
        command: Sequence[str] = DEFAULT_PLAYER_COMMAND,
        tick_interval: float = 0.25,
    ) -> None:
        self._url = url
        self._on_event = on_event
        self._command = tuple(command)
        self._tick_interval = tick_interval
        self._volume = 1.0
        self._rate = 1.0
        self._loop = False
        self._duration: float | None = None

        self._process: asyncio.subprocess.Process | None = None
        self._suspended = False
        self._offset = 0.0
        self._resumed_at: float | None = None
        self._ticker: asyncio.Task[None] | None = None
        self._watcher: asyncio.Task[None] | None = None
        self._prober: asyncio.Task[None] | None = None

    @property
    def current_time(self) -> float:
        if self._resumed_at is None:
            return self._offset
        return self._offset + (time.monotonic() - self._resumed_at) * self._rate

    @property
    def duration(self) -> float | None:
        return self._duration

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    def set_volume(self, volume: float) -> None:
        self._volume = volume

    def set_playback_rate(self, rate: float) -> None:
        self._checkpoint()
        self._rate = rate

    def set_loop(self, loop: bool) -> None:
        self._loop = loop

    def build_command(self, start: float) -> list[str]:
        """Render the command template for a start position."""
        values = {
            "url": self._url,
            "start": f"{start:.3f}",
            "volume": str(round(self._volume * 100)),
            "rate": f"{self._rate:g}",
        }
        return [part.format(**values) for part in self._command]

    def _checkpoint(self) -> None:
        # Fold elapsed play time into the offset.
        if self._resumed_at is not None:
            now = time.monotonic()
            self._offset += (now - self._resumed_at) * self._rate
            self._resumed_at = now

    async def play(self) -> None:
        if self.is_running and self._suspended:
            self._signal(signal.SIGCONT)
            self._suspended = False
            self._resumed_at = time.monotonic()
            self._start_ticker()
            self._on_event(MediaEvent.PLAY, None)
            return
        if self.is_running:
            return

        await self._spawn(self._offset)
        self._on_event(MediaEvent.PLAY, None)

        if self._duration is None and self._prober is None and shutil.which("ffprobe"):
            self._prober = asyncio.create_task(self._probe())

    async def _spawn(self, start: float) -> None:
        argv = self.build_command(start)
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except PermissionError as exc:
            raise PlaybackNotAllowedError(f"Not allowed to run {argv[0]}") from exc
        except OSError as exc:
            raise MediaElementError(f"Failed to start {argv[0]}: {exc}") from exc

        logger.debug("Started player pid=%s for %s", process.pid, self._url)
        self._process = process
        self._suspended = False
        self._offset = start
        self._resumed_at = time.monotonic()
        self._watcher = asyncio.create_task(self._watch(process))
        self._start_ticker()

    async def pause(self) -> None:
        if not self.is_running or self._suspended:
            return
        self._signal(signal.SIGSTOP)
        self._suspended = True
        self._checkpoint()
        self._resumed_at = None
        self._stop_ticker()
        self._on_event(MediaEvent.PAUSE, None)

    async def seek(self, position: float) -> None:
        position = max(0.0, position)
        if not self.is_running:
            self._offset = position
            self._on_event(MediaEvent.TIME_UPDATE, None)
            return

        suspended = self._suspended
        await self._terminate()
        await self._spawn(position)
        if suspended:
            await self.pause()
        self._on_event(MediaEvent.TIME_UPDATE, None)

    async def release(self) -> None:
        for task in (self._prober, self._watcher):
            if task is not None and not task.done():
                task.cancel()
        self._prober = None
        await self._terminate()
        self._offset = 0.0

    async def _terminate(self) -> None:
        self._stop_ticker()
        process, self._process = self._process, None
        self._resumed_at = None
        if process is None or process.returncode is not None:
            return
        if self._suspended:
            self._send(process, signal.SIGCONT)
            self._suspended = False
        with suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        logger.debug("Stopped player pid=%s for %s", process.pid, self._url)

    def _signal(self, sig: signal.Signals) -> None:
        if self._process is not None:
            self._send(self._process, sig)

    @staticmethod
    def _send(process: asyncio.subprocess.Process, sig: signal.Signals) -> None:
        with suppress(ProcessLookupError):
            process.send_signal(sig)

    async def _watch(self, process: asyncio.subprocess.Process) -> None:
        _, stderr = await process.communicate()
        if process is not self._process:
            return

        self._stop_ticker()
        self._checkpoint()
        self._resumed_at = None
        self._process = None

        if process.returncode == 0:
            if self._loop:
                try:
                    await self._spawn(0.0)
                except MediaElementError as exc:
                    self._on_event(MediaEvent.ERROR, str(exc))
                return
            if self._duration is not None:
                self._offset = self._duration
            self._on_event(MediaEvent.ENDED, None)
            return

        message = (stderr or b"").decode("utf-8", "replace").strip()
        self._on_event(
            MediaEvent.ERROR, message or f"Player exited with status {process.returncode}"
        )

    def _start_ticker(self) -> None:
        self._stop_ticker()
        self._ticker = asyncio.create_task(self._tick())

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self._tick_interval)
            self._on_event(MediaEvent.TIME_UPDATE, None)

    async def _probe(self) -> None:
        try:
            metadata = await probe_metadata(self._url)
        except AudioError as exc:
            logger.debug("Metadata probe failed for %s: %s", self._url, exc)
            return
        self._duration = metadata.duration
        self._on_event(MediaEvent.LOADED_METADATA, None)


async def probe_metadata(url: str, ffprobe: str = "ffprobe") -> AudioMetadata:
    """Read duration and stream information with ffprobe.

    Raises:
        AudioError: NOT_SUPPORTED if ffprobe is missing, NETWORK_ERROR if
            the source cannot be read, DECODE_ERROR if the output is not
            understood.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            ffprobe,
            "-v",
            "error",
            "-print_format",
            "json",
            "-show_format",
            "-show_streams",
            url,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise AudioError(f"{ffprobe} is not installed", AudioErrorCode.NOT_SUPPORTED) from exc
    except OSError as exc:
        raise AudioError(f"Failed to run {ffprobe}: {exc}", AudioErrorCode.NOT_SUPPORTED) from exc

    stdout, stderr = await process.communicate()
    if process.returncode != 0:
        raise AudioError(
            f"Failed to load audio metadata: {stderr.decode('utf-8', 'replace').strip()}",
            AudioErrorCode.NETWORK_ERROR,
        )

    try:
        info = json.loads(stdout)
        fmt = info.get("format", {})
        stream = next(
            (s for s in info.get("streams", []) if s.get("codec_type") == "audio"), {}
        )
        return AudioMetadata(
            duration=float(fmt.get("duration") or stream.get("duration") or 0.0),
            sample_rate=int(stream["sample_rate"]) if "sample_rate" in stream else None,
            channels=stream.get("channels"),
            format=fmt.get("format_name"),
        )
    except (ValueError, TypeError, AttributeError) as exc:
        raise AudioError(
            f"Unreadable metadata for {url}", AudioErrorCode.DECODE_ERROR
        ) from exc
