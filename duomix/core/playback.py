"""
Playback for DuoMix.

PlaybackScheduler keeps the instrumental and vocal players in lockstep on the
graph's sample clock, with the vocal shifted by a signed offset.
AudioOutput feeds the rendered graph to the sound card via sounddevice.
"""
from __future__ import annotations
import logging
import threading
from typing import Callable, Optional
import numpy as np

from .config import AUDIO_CONFIG, PlaybackState
from .graph import SignalGraph
from .nodes import PlayerNode
from .types import StereoArray

logger = logging.getLogger("DuoMix")


class PlaybackScheduler:
    """
    Transport for the two tracks.

    States: IDLE -> PLAYING <-> PAUSED -> IDLE. The master position is the
    instrumental timeline; the vocal reads (master - offset) and simply waits
    while that is negative.
    """

    def __init__(
        self,
        graph: SignalGraph,
        instrumental: PlayerNode,
        vocal: PlayerNode,
        lock: Optional[threading.RLock] = None,
        lookahead: float = AUDIO_CONFIG.schedule_lookahead
    ) -> None:
        self.graph = graph
        self.instrumental = instrumental
        self.vocal = vocal
        self.lookahead = lookahead
        self._lock = lock or threading.RLock()
        self._state = PlaybackState.IDLE
        self._offset = 0.0
        self._position = 0.0
        self._anchor_sample = 0
        self._anchor_time = 0.0

    # --- Queries ---

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._state == PlaybackState.PLAYING

    @property
    def offset(self) -> float:
        """Seconds the vocal timeline is shifted (positive = vocal later)."""
        return self._offset

    @property
    def current_time(self) -> float:
        """Master timeline position in seconds."""
        if self._state != PlaybackState.PLAYING:
            return self._position
        elapsed = max(0, self.graph.current_sample - self._anchor_sample)
        return self._anchor_time + elapsed / self.graph.samplerate

    @property
    def instrumental_position(self) -> float:
        if self.is_playing and self.instrumental.state == "started":
            return self.instrumental.position(self.graph.current_sample)
        return min(self.current_time, self.instrumental.duration)

    @property
    def vocal_position(self) -> float:
        if self.is_playing and self.vocal.state == "started":
            return self.vocal.position(self.graph.current_sample)
        position = max(0.0, self.current_time - self._offset)
        return min(position, self.vocal.duration) if self.vocal.loaded else position

    def max_duration(self) -> float:
        """Longest native track duration; the offset does not extend it."""
        return max(self.instrumental.duration, self.vocal.duration)

    # --- Transport ---

    def _start_players(self, from_seconds: float, at_sample: int) -> None:
        sr = self.graph.samplerate
        if self.instrumental.loaded:
            self.instrumental.start(at_sample, from_seconds)

        if self.vocal.loaded:
            vocal_seek = from_seconds - self._offset
            if vocal_seek >= 0:
                self.vocal.start(at_sample, vocal_seek)
            else:
                # wait silently until the vocal's timeline reaches 0
                self.vocal.start(at_sample + int(round(-vocal_seek * sr)), 0.0)

        self._anchor_sample = at_sample
        self._anchor_time = from_seconds

    def play(self, from_seconds: Optional[float] = None, recording: bool = False) -> bool:
        """
        Start both tracks at a shared instant one lookahead from now.

        Args:
            from_seconds: Master position to start from (default: current)
            recording: Run the clock even when nothing is loaded

        Returns:
            True if anything was scheduled. Playing before either track has
            loaded is a no-op, not an error, unless recording.
        """
        with self._lock:
            if from_seconds is None:
                if self.is_playing:
                    return False
                from_seconds = self._position
            from_seconds = max(0.0, float(from_seconds))

            if not (recording or self.instrumental.loaded or self.vocal.loaded):
                logger.warning("Play requested before any track finished loading")
                return False

            self.instrumental.stop()
            self.vocal.stop()
            when = self.graph.current_sample + self.graph.seconds_to_samples(self.lookahead)
            self._start_players(from_seconds, when)
            self._state = PlaybackState.PLAYING
            logger.info("Playback scheduled from %.3fs (offset %.3fs)", from_seconds, self._offset)
            return True

    def pause(self) -> None:
        """Stop both players, keeping the position."""
        with self._lock:
            if self._state == PlaybackState.PLAYING:
                self._position = self.current_time
                self._state = PlaybackState.PAUSED
            self.instrumental.stop()
            self.vocal.stop()
            logger.info("Playback paused at %.3fs", self._position)

    def stop(self) -> None:
        """Stop both players and return the playheads to 0."""
        with self._lock:
            self.instrumental.stop()
            self.vocal.stop()
            self._position = 0.0
            self._state = PlaybackState.IDLE
            logger.info("Playback stopped")

    def seek(self, time_seconds: float) -> None:
        """
        Move the master playhead. While playing both players are repositioned
        immediately; a vocal whose shifted time is negative is held back until
        its natural start.
        """
        with self._lock:
            t = max(0.0, float(time_seconds))
            if not self.is_playing:
                self._position = t
                return
            now = self.graph.current_sample
            self.instrumental.stop()
            self.vocal.stop()
            if self.instrumental.loaded and t < self.instrumental.duration:
                self.instrumental.start(now, t)
            if self.vocal.loaded:
                vocal_seek = t - self._offset
                if vocal_seek < 0:
                    self.vocal.start(now + int(round(-vocal_seek * self.graph.samplerate)), 0.0)
                elif vocal_seek < self.vocal.duration:
                    self.vocal.start(now, vocal_seek)
            self._anchor_sample = now
            self._anchor_time = t

    def set_offset(self, seconds: float) -> None:
        """
        Change the vocal offset. While playing, both tracks are stopped and
        replayed from the current master position so neither drifts.
        """
        with self._lock:
            self._offset = float(seconds)
            if self.is_playing:
                position = self.current_time
                self.instrumental.stop()
                self.vocal.stop()
                when = self.graph.current_sample + self.graph.seconds_to_samples(self.lookahead)
                self._start_players(position, when)
            logger.debug("Vocal offset set to %.3fs", self._offset)

    def poll(self, recording: bool = False) -> PlaybackState:
        """
        Auto-pause once the master passes the end of the longest track.
        While recording the timeline is allowed to run past it.
        """
        with self._lock:
            end = self.max_duration()
            if self.is_playing and not recording and end > 0 and self.current_time >= end:
                self.pause()
                self._position = end
            return self._state


class AudioOutput:
    """
    Streams a render function to the default output device.
    Uses sounddevice for low-latency output.
    """
    __slots__ = ('_render', '_samplerate', '_stream', '_blocksize')

    def __init__(
        self,
        render: Callable[[int], StereoArray],
        samplerate: int = AUDIO_CONFIG.default_samplerate,
        blocksize: int = AUDIO_CONFIG.playback_blocksize
    ) -> None:
        self._render = render
        self._samplerate = samplerate
        self._blocksize = blocksize
        self._stream = None

    @property
    def active(self) -> bool:
        return self._stream is not None and self._stream.active

    def start(self) -> bool:
        """Open the device stream. Returns False if no device is usable."""
        if self._stream is not None:
            return True
        # PortAudio is only needed once a device is actually opened
        try:
            import sounddevice as sd
        except OSError as e:
            logger.error("PortAudio is not available: %s", e)
            return False

        def playback_callback(
            outdata: np.ndarray,
            frames: int,
            time: object,
            status: "sd.CallbackFlags"
        ) -> None:
            """Real-time audio callback."""
            try:
                if status and status.output_underflow:
                    logger.debug("Output underflow")
                outdata[:] = self._render(frames)
            except Exception as e:
                logger.error("Playback callback error: %s", e, exc_info=True)
                raise sd.CallbackStop()

        try:
            self._stream = sd.OutputStream(
                samplerate=self._samplerate,
                channels=AUDIO_CONFIG.playback_channels,
                blocksize=self._blocksize,
                dtype='float32',
                callback=playback_callback,
            )
            self._stream.start()
            logger.info("Audio output started (%d Hz, block %d)", self._samplerate, self._blocksize)
            return True
        except (sd.PortAudioError, OSError) as e:
            logger.error("Failed to start audio output: %s", e, exc_info=True)
            self._stream = None
            return False

    def stop(self) -> None:
        """Close the device stream."""
        if self._stream is not None:
            import sounddevice as sd
            try:
                self._stream.stop()
                self._stream.close()
            except sd.PortAudioError as e:
                logger.warning("Error stopping stream: %s", e)
            self._stream = None
            logger.info("Audio output stopped")
