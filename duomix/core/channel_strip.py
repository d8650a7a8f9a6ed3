"""
Channel strip: the per-track signal path.

Instrumental: player -> bass boost (low shelf) -> EQ3 -> channel
Vocal:        player -> EQ3 -> de-esser -> pitch shift -> reverb -> delay -> channel

The strip owns its nodes inside the shared SignalGraph and rebinds their
parameters from AudioSettings values. The topology never changes after
construction; bypassing the de-esser is done by driving its parameters.
"""
from __future__ import annotations
import logging
import os
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Optional

from .config import AUDIO_CONFIG, CHAIN_CONFIG, TrackType
from .decoder import decode, resample
from .graph import SignalGraph
from .nodes import (
    ChannelNode, EQ3Node, FeedbackDelayNode, FilterNode,
    MultibandCompressorNode, PitchShiftNode, PlayerNode, ReverbNode,
)
from .settings import AudioSettings, DEFAULT_SETTINGS
from .track import Track
from .types import AudioSource

logger = logging.getLogger("DuoMix")

_decode_pool: Optional[ThreadPoolExecutor] = None
_decode_pool_lock = threading.Lock()


def _get_decode_pool() -> ThreadPoolExecutor:
    """Shared worker for background decodes, created on first use."""
    global _decode_pool
    if _decode_pool is not None:
        return _decode_pool
    with _decode_pool_lock:
        if _decode_pool is None:
            _decode_pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="duomix-decode")
    return _decode_pool


class ChannelStrip:
    """Signal path for one track type, living inside a SignalGraph."""

    def __init__(
        self,
        graph: SignalGraph,
        track_type: TrackType,
        lock: Optional[threading.RLock] = None
    ) -> None:
        self.graph = graph
        self.track_type = track_type
        self._lock = lock or threading.RLock()
        self._track: Optional[Track] = None
        self._settings = DEFAULT_SETTINGS
        sr = graph.samplerate

        self.player = PlayerNode(sr)
        self.eq = EQ3Node(sr)
        self.channel = ChannelNode(sr, volume=DEFAULT_SETTINGS.volume, pan=DEFAULT_SETTINGS.pan)

        if track_type is TrackType.INSTRUMENTAL:
            self.bass_boost = FilterNode(sr, CHAIN_CONFIG.bass_boost_frequency, kind="lowshelf")
            stages = [self.player, self.bass_boost, self.eq, self.channel]
        else:
            self.de_esser = MultibandCompressorNode(sr, high_frequency=DEFAULT_SETTINGS.de_esser_freq)
            self.pitch_shift = PitchShiftNode(sr)
            self.reverb = ReverbNode(sr)
            self.delay = FeedbackDelayNode(sr)
            stages = [self.player, self.eq, self.de_esser, self.pitch_shift,
                      self.reverb, self.delay, self.channel]

        self.handles = [graph.add(node) for node in stages]
        graph.chain(*self.handles)
        self.output = self.handles[-1]
        self.apply_settings(DEFAULT_SETTINGS, ramp=False)

    def __repr__(self) -> str:
        return f"ChannelStrip({self.track_type.value}, track={self._track!r})"

    # --- Track ---

    @property
    def track(self) -> Optional[Track]:
        return self._track

    @property
    def is_loaded(self) -> bool:
        return self._track is not None and self.player.loaded

    @property
    def duration(self) -> float:
        """Native duration in seconds; 0 until a track has been loaded."""
        return self.player.duration

    def load(self, source: AudioSource, name: Optional[str] = None) -> Track:
        """
        Decode source completely and make it this strip's track.

        Raises:
            DecodeError: if the source is not decodable audio; the previous
                track stays loaded
        """
        data, samplerate = decode(source, target_sr=self.graph.samplerate)
        if name is None:
            if isinstance(source, (str, os.PathLike)):
                name = os.path.basename(os.fspath(source))
            else:
                name = f"{self.track_type.value} track"
        track = Track(name=str(name), data=data, samplerate=samplerate, track_type=self.track_type)
        self.set_track(track)
        return track

    def load_async(
        self,
        source: AudioSource,
        name: Optional[str] = None,
        executor: Optional[Executor] = None
    ) -> "Future[Track]":
        """Decode in the background; the returned future resolves to the Track."""
        pool = executor or _get_decode_pool()
        return pool.submit(self.load, source, name)

    def set_track(self, track: Optional[Track]) -> None:
        """Swap the whole track. The player stops; settings stay."""
        with self._lock:
            if track is not None and track.samplerate != self.graph.samplerate:
                track = Track(track.name, resample(track.data, track.samplerate, self.graph.samplerate),
                              self.graph.samplerate, self.track_type)
            self._track = track
            self.player.set_buffer(None if track is None else track.data)
            if track is not None:
                logger.info("Loaded %r", track)

    # --- Settings ---

    @property
    def settings(self) -> AudioSettings:
        return self._settings

    def apply_settings(self, settings: AudioSettings, ramp: bool = True) -> None:
        """
        Rebind every stage parameter from settings. Each continuous parameter
        cancels its in-flight ramp and glides to the new value.
        """
        s = settings.clamped()
        with self._lock:
            now = self.graph.now()
            duration = AUDIO_CONFIG.ramp_time if ramp else 0.0

            self.channel.volume.ramp_to(s.volume, duration, now)
            self.channel.pan.ramp_to(s.pan, duration, now)
            self.player.set_playback_rate(s.speed, self.graph.current_sample)

            self.eq.low.ramp_to(s.eq_low, duration, now)
            self.eq.mid.ramp_to(s.eq_mid, duration, now)
            self.eq.high.ramp_to(s.eq_high, duration, now)

            if self.track_type is TrackType.INSTRUMENTAL:
                self.bass_boost.gain.ramp_to(s.bass_boost, duration, now)
            else:
                threshold = self.de_esser.threshold("high")
                ratio = self.de_esser.ratio("high")
                if s.enable_dynamics:
                    self.de_esser.set_high_frequency(s.de_esser_freq)
                    threshold.ramp_to(s.de_esser_thresh, duration, now)
                    ratio.ramp_to(CHAIN_CONFIG.deesser_ratio, duration, now)
                else:
                    threshold.ramp_to(0.0, duration, now)
                    ratio.ramp_to(1.0, duration, now)

                self.reverb.wet.ramp_to(s.reverb, duration, now)
                self.delay.wet.ramp_to(s.delay, duration, now)
                self.pitch_shift.pitch = s.pitch

            self._settings = s
        logger.debug("Applied %s settings: %s", self.track_type.value, s)

    # --- Routing ---

    def connect_into(self, bus: int) -> None:
        """Route this strip's output into bus (replacing any previous route)."""
        with self._lock:
            self.graph.disconnect(self.output)
            self.graph.connect(self.output, bus)
