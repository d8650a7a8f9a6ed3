"""
DuoMix audio engine.

One engine owns the whole signal graph:

    instrumental strip --+
                         +--> limiter --> master recorder --> destination
    vocal strip ---------+

plus the transport, the microphone and the realtime output. Every public
mutation and every render runs under one re-entrant lock, because the
sounddevice callback renders on its own thread.
"""
from __future__ import annotations
import logging
import threading
import time
from concurrent.futures import Executor, Future
from typing import Callable, Optional

from .capture import MicrophoneCapture, Recorder
from .channel_strip import ChannelStrip
from .config import AUDIO_CONFIG, PlaybackState, TrackType
from .errors import ExportEmptyError
from .graph import SignalGraph
from .nodes import LimiterNode
from .playback import AudioOutput, PlaybackScheduler
from .separation import StemPair, separate, separate_async
from .settings import AudioSettings, DEFAULT_SETTINGS
from .track import Track
from .types import AudioSource, StereoArray
from .wav import encode_wav

logger = logging.getLogger("DuoMix")


class AudioEngine:
    """
    Dual-track mixing engine: an instrumental and a vocal track with their
    own effect chains, kept in sync under an adjustable vocal offset.
    """

    def __init__(
        self,
        samplerate: int = AUDIO_CONFIG.default_samplerate,
        mic_factory: Optional[Callable[..., object]] = None
    ) -> None:
        self.samplerate = samplerate
        self.lock = threading.RLock()
        self.graph = SignalGraph(samplerate)

        self.strips: dict[TrackType, ChannelStrip] = {
            track_type: ChannelStrip(self.graph, track_type, lock=self.lock)
            for track_type in TrackType
        }
        self.limiter = self.graph.add(LimiterNode(samplerate))
        self.master_recorder = Recorder()
        recorder_handle = self.graph.add(self.master_recorder)
        for strip in self.strips.values():
            strip.connect_into(self.limiter)
        self.graph.chain(self.limiter, recorder_handle, self.graph.destination)

        self.scheduler = PlaybackScheduler(
            self.graph,
            self.strips[TrackType.INSTRUMENTAL].player,
            self.strips[TrackType.VOCAL].player,
            lock=self.lock,
        )
        self.mic = MicrophoneCapture(samplerate, stream_factory=mic_factory)
        self._output = AudioOutput(self.render, samplerate)
        self._recording_extent = 0.0
        logger.info("AudioEngine initialized (%d Hz)", samplerate)

    # --- Tracks ---

    def strip(self, track_type: TrackType) -> ChannelStrip:
        return self.strips[TrackType(track_type)]

    def track(self, track_type: TrackType) -> Optional[Track]:
        return self.strip(track_type).track

    def load_track(self, track_type: TrackType, source: AudioSource, name: Optional[str] = None) -> Track:
        """
        Decode source and install it as the given track.

        Raises:
            DecodeError: the previous track stays loaded
        """
        logger.info("Loading %s track", TrackType(track_type).value)
        return self.strip(track_type).load(source, name)

    def load_track_async(
        self,
        track_type: TrackType,
        source: AudioSource,
        name: Optional[str] = None,
        executor: Optional[Executor] = None
    ) -> "Future[Track]":
        return self.strip(track_type).load_async(source, name, executor)

    # --- Settings ---

    def settings(self, track_type: TrackType) -> AudioSettings:
        return self.strip(track_type).settings

    def update_settings(self, track_type: TrackType, settings: AudioSettings) -> None:
        self.strip(track_type).apply_settings(settings)

    # --- Transport ---

    @property
    def state(self) -> PlaybackState:
        return self.scheduler.state

    @property
    def is_playing(self) -> bool:
        return self.scheduler.is_playing

    def play(self, from_seconds: Optional[float] = None) -> bool:
        return self.scheduler.play(from_seconds)

    def pause(self) -> None:
        self.scheduler.pause()

    def stop(self) -> None:
        self.scheduler.stop()

    def seek(self, time_seconds: float) -> None:
        self.scheduler.seek(time_seconds)

    @property
    def vocal_offset(self) -> float:
        return self.scheduler.offset

    def set_vocal_offset(self, seconds: float) -> None:
        self.scheduler.set_offset(seconds)

    @property
    def current_time(self) -> float:
        return self.scheduler.current_time

    @property
    def duration(self) -> float:
        """
        Longest track in seconds. While the microphone is recording the
        timeline may run past it, and the duration follows (never shrinking).
        """
        with self.lock:
            longest = self.scheduler.max_duration()
            if self.mic.active:
                self._recording_extent = max(self._recording_extent, self.current_time)
            return max(longest, self._recording_extent)

    def poll(self) -> PlaybackState:
        """Auto-pause at the end of the project unless recording."""
        return self.scheduler.poll(recording=self.mic.active)

    # --- Rendering / output ---

    def render(self, frames: int) -> StereoArray:
        """Render the next block of the master bus and advance the clock."""
        with self.lock:
            block = self.graph.render(frames)
            self.poll()
            return block

    @property
    def output_active(self) -> bool:
        return self._output.active

    def start_output(self) -> bool:
        """Open the realtime output device; False if none is usable."""
        return self._output.start()

    def stop_output(self) -> None:
        self._output.stop()

    # --- Capture ---

    def start_mic_capture(self) -> None:
        """
        Open the microphone and play from the current position.

        Raises:
            MicrophonePermissionError: nothing is started in that case
        """
        with self.lock:
            self.mic.start()
            self._recording_extent = self.current_time
            self.scheduler.play(self.current_time, recording=True)
            logger.info("Recording vocal from %.3fs", self.current_time)

    def stop_mic_capture(self) -> Track:
        """
        Stop playback and the microphone and install the take as the vocal.

        Raises:
            ExportEmptyError: if the microphone produced no samples
        """
        with self.lock:
            self.scheduler.stop()
            data = self.mic.stop()
            self._recording_extent = 0.0
            if len(data) == 0:
                raise ExportEmptyError()
            name = f"Recorded Vocal {time.strftime('%H:%M:%S')}"
            track = Track(name=name, data=data, samplerate=self.mic.samplerate, track_type=TrackType.VOCAL)
            self.strip(TrackType.VOCAL).set_track(track)
            return self.strip(TrackType.VOCAL).track

    def start_master_capture(self) -> None:
        self.master_recorder.start()
        logger.info("Master capture started")

    def stop_master_capture(self) -> bytes:
        """
        Stop the master tap and return the recording as WAV bytes.

        Raises:
            ExportEmptyError: if nothing was recorded
        """
        data = self.master_recorder.stop()
        if len(data) == 0:
            raise ExportEmptyError()
        logger.info("Master capture stopped (%.2fs)", len(data) / self.samplerate)
        return encode_wav(data, self.samplerate)

    # --- Separation ---

    def separate(self, source: AudioSource) -> StemPair:
        return separate(source)

    def separate_async(self, source: AudioSource, executor: Optional[Executor] = None) -> "Future[StemPair]":
        return separate_async(source, executor)

    # --- Project ---

    def reset(self) -> None:
        """Stop, unload both tracks, restore default settings and a zero offset."""
        with self.lock:
            self.scheduler.stop()
            if self.mic.active:
                self.mic.stop()
            self._recording_extent = 0.0
            for strip in self.strips.values():
                strip.set_track(None)
                strip.apply_settings(DEFAULT_SETTINGS, ramp=False)
            self.scheduler.set_offset(0.0)
        logger.info("Engine reset")


_engine: Optional[AudioEngine] = None
_engine_lock = threading.Lock()


def get_engine() -> AudioEngine:
    """Process-wide engine, created (and connected to the sound card) on first use."""
    global _engine
    if _engine is not None:
        return _engine
    with _engine_lock:
        if _engine is None:
            engine = AudioEngine()
            if not engine.start_output():
                logger.warning("No audio output device; the engine will only render on demand")
            _engine = engine
    return _engine
