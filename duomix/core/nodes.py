"""
Signal chain primitives for DuoMix.
Each node is a stateful, block-based processing stage for SignalGraph.
Continuous controls are Params (ramped per sample); filter coefficients
are control-rate and are recomputed at block boundaries.
"""
from __future__ import annotations
import logging
import math
from typing import Optional
import numpy as np
from scipy.signal import fftconvolve, sosfilt

from .config import AUDIO_CONFIG, CHAIN_CONFIG
from .dynamics import Compressor, Limiter
from .effects_basic import butter_sos, db_to_gain, linkwitz_riley_sos, low_shelf_sos, to_stereo
from .graph import Node
from .params import Param
from .types import AudioArray, StereoArray

logger = logging.getLogger("DuoMix")


class SosFilter:
    """Second-order-section filter that keeps its state between blocks."""
    __slots__ = ('sos', '_zi')

    def __init__(self, sos: np.ndarray, channels: int = 2) -> None:
        self.sos = sos
        self._zi = np.zeros((sos.shape[0], 2, channels))

    def set_sos(self, sos: np.ndarray) -> None:
        if sos.shape[0] != self.sos.shape[0]:
            self._zi = np.zeros((sos.shape[0],) + self._zi.shape[1:])
        self.sos = sos

    def process(self, block: np.ndarray) -> np.ndarray:
        out, self._zi = sosfilt(self.sos, block, axis=0, zi=self._zi)
        return out


class BandSplitter:
    """Three-way Linkwitz-Riley crossover with persistent state."""

    def __init__(self, sr: int, low_frequency: float, high_frequency: float) -> None:
        self.sr = sr
        self.low_frequency = low_frequency
        self.high_frequency = high_frequency
        self._low = SosFilter(linkwitz_riley_sos('low', low_frequency, sr))
        self._rest = SosFilter(linkwitz_riley_sos('high', low_frequency, sr))
        self._mid = SosFilter(linkwitz_riley_sos('low', high_frequency, sr))
        self._high = SosFilter(linkwitz_riley_sos('high', high_frequency, sr))

    def set_high_frequency(self, frequency: float) -> None:
        if frequency == self.high_frequency:
            return
        self.high_frequency = frequency
        self._mid.set_sos(linkwitz_riley_sos('low', frequency, self.sr))
        self._high.set_sos(linkwitz_riley_sos('high', frequency, self.sr))

    def process(self, block: StereoArray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        low = self._low.process(block)
        rest = self._rest.process(block)
        return low, self._mid.process(rest), self._high.process(rest)


# =============================================================================
# SOURCES
# =============================================================================

class PlayerNode(Node):
    """
    Buffer source with a sample-accurate scheduled start.
    Positions are kept in buffer samples; the anchor pair
    (_start_sample, _offset) maps graph time to buffer position.
    """
    name = "player"

    def __init__(self, sr: int) -> None:
        self.sr = sr
        self.buffer: Optional[StereoArray] = None
        self.playback_rate = 1.0
        self.state = "stopped"
        self._start_sample = 0
        self._offset = 0.0

    @property
    def loaded(self) -> bool:
        return self.buffer is not None and len(self.buffer) > 0

    @property
    def duration(self) -> float:
        return len(self.buffer) / self.sr if self.loaded else 0.0

    def set_buffer(self, data: Optional[AudioArray]) -> None:
        self.stop()
        self.buffer = None if data is None else to_stereo(data)

    def start(self, when_sample: int, offset_seconds: float = 0.0) -> None:
        if not self.loaded:
            return
        self._start_sample = int(when_sample)
        self._offset = max(0.0, offset_seconds) * self.sr
        self.state = "started"

    def stop(self) -> None:
        self.state = "stopped"

    def set_playback_rate(self, rate: float, at_sample: int) -> None:
        if rate == self.playback_rate:
            return
        if self.state == "started" and at_sample > self._start_sample:
            self._offset = self._position_samples(at_sample)
            self._start_sample = int(at_sample)
        self.playback_rate = rate

    def _position_samples(self, at_sample: int) -> float:
        elapsed = max(0, at_sample - self._start_sample)
        return self._offset + elapsed * self.playback_rate

    def position(self, at_sample: int) -> float:
        """Playhead in seconds at the given graph sample (0 when stopped)."""
        if self.state != "started" or not self.loaded:
            return 0.0
        return min(self._position_samples(at_sample), len(self.buffer)) / self.sr

    def process(self, block: StereoArray, start_sample: int) -> StereoArray:
        frames = len(block)
        out = np.zeros((frames, 2), dtype=np.float32)
        if self.state != "started" or not self.loaded:
            return out

        rel = np.arange(frames) + (start_sample - self._start_sample)
        active = rel >= 0
        if not np.any(active):
            return out

        length = len(self.buffer)
        pos = self._offset + rel[active] * self.playback_rate
        valid = pos <= length - 1
        idx = np.flatnonzero(active)[valid]
        pos = pos[valid]

        if len(pos):
            if self.playback_rate == 1.0 and float(self._offset).is_integer():
                out[idx] = self.buffer[pos.astype(np.int64)]
            else:
                # only the window this block touches
                lo = int(pos.min())
                hi = min(length, int(pos.max()) + 2)
                window = self.buffer[lo:hi]
                grid = np.arange(hi - lo)
                out[idx, 0] = np.interp(pos - lo, grid, window[:, 0])
                out[idx, 1] = np.interp(pos - lo, grid, window[:, 1])

        if self._position_samples(start_sample + frames) >= length:
            self.state = "stopped"
        return out


# =============================================================================
# GAIN STAGES
# =============================================================================

class ChannelNode(Node):
    """Channel fader: volume in dB followed by an equal-power stereo panner."""
    name = "channel"

    def __init__(self, sr: int, volume: float = -5.0, pan: float = 0.0) -> None:
        self.sr = sr
        self.volume = Param(volume, "volume")
        self.pan = Param(pan, "pan")

    def process(self, block: StereoArray, start_sample: int) -> StereoArray:
        t0 = start_sample / self.sr
        frames = len(block)
        gain = db_to_gain(self.volume.values(t0, frames, self.sr)).astype(np.float32)
        pan = self.pan.values(t0, frames, self.sr)

        left, right = block[:, 0] * gain, block[:, 1] * gain
        # pan <= 0 folds right into left, pan > 0 folds left into right
        x = np.where(pan <= 0, pan + 1.0, pan) * (math.pi / 2)
        g_l, g_r = np.cos(x), np.sin(x)
        neg = pan <= 0
        out = np.empty_like(block)
        out[:, 0] = np.where(neg, left + right * g_l, left * g_l)
        out[:, 1] = np.where(neg, right * g_r, right + left * g_r)
        return out


# =============================================================================
# FILTERS
# =============================================================================

class FilterNode(Node):
    """
    Single filter stage: 'lowpass', 'highpass' or 'lowshelf'.
    The shelf gain is a Param sampled once per block.
    """
    name = "filter"

    def __init__(
        self,
        sr: int,
        frequency: float,
        kind: str = "lowpass",
        slope_db: int = 12,
        gain_db: float = 0.0
    ) -> None:
        if kind not in ("lowpass", "highpass", "lowshelf"):
            raise ValueError(f"Unknown filter type: {kind}")
        self.sr = sr
        self.kind = kind
        self.frequency = frequency
        self.slope_db = slope_db
        self.gain = Param(gain_db, "gain")
        self._design_gain = gain_db
        self._filter = SosFilter(self._design(gain_db))

    def _design(self, gain_db: float) -> np.ndarray:
        if self.kind == "lowshelf":
            return low_shelf_sos(self.sr, self.frequency, gain_db)
        btype = 'low' if self.kind == "lowpass" else 'high'
        return butter_sos(btype, self.frequency, self.sr, self.slope_db)

    def process(self, block: StereoArray, start_sample: int) -> StereoArray:
        if self.kind == "lowshelf":
            gain_db = self.gain.value_at(start_sample / self.sr)
            if gain_db != self._design_gain:
                self._filter.set_sos(self._design(gain_db))
                self._design_gain = gain_db
        return self._filter.process(block).astype(np.float32)


class EQ3Node(Node):
    """Three-band equalizer: band split with a ramped dB gain per band."""
    name = "eq3"

    def __init__(
        self,
        sr: int,
        low_frequency: float = CHAIN_CONFIG.eq_low_frequency,
        high_frequency: float = CHAIN_CONFIG.eq_high_frequency
    ) -> None:
        self.sr = sr
        self.low = Param(0.0, "low")
        self.mid = Param(0.0, "mid")
        self.high = Param(0.0, "high")
        self._splitter = BandSplitter(sr, low_frequency, high_frequency)

    def process(self, block: StereoArray, start_sample: int) -> StereoArray:
        t0, frames = start_sample / self.sr, len(block)
        low, mid, high = self._splitter.process(block)
        g_low = db_to_gain(self.low.values(t0, frames, self.sr))[:, np.newaxis]
        g_mid = db_to_gain(self.mid.values(t0, frames, self.sr))[:, np.newaxis]
        g_high = db_to_gain(self.high.values(t0, frames, self.sr))[:, np.newaxis]
        return (low * g_low + mid * g_mid + high * g_high).astype(np.float32)


# =============================================================================
# DYNAMICS
# =============================================================================

class MultibandCompressorNode(Node):
    """
    Three-band compressor. Each band has ramped threshold (dB) and ratio.
    With ratio 1 a band passes through unchanged.
    """
    name = "multiband"

    def __init__(
        self,
        sr: int,
        low_frequency: float = CHAIN_CONFIG.deesser_low_frequency,
        high_frequency: float = 4000.0,
        attack: float = CHAIN_CONFIG.deesser_attack,
        release: float = CHAIN_CONFIG.deesser_release
    ) -> None:
        self.sr = sr
        self._splitter = BandSplitter(sr, low_frequency, high_frequency)
        self.bands: dict[str, tuple[Param, Param, Compressor]] = {}
        for band in ("low", "mid", "high"):
            self.bands[band] = (
                Param(0.0, f"{band}.threshold"),
                Param(1.0, f"{band}.ratio"),
                Compressor(sr, attack=attack, release=release),
            )

    @property
    def high_frequency(self) -> float:
        return self._splitter.high_frequency

    def set_high_frequency(self, frequency: float) -> None:
        self._splitter.set_high_frequency(frequency)

    def threshold(self, band: str) -> Param:
        return self.bands[band][0]

    def ratio(self, band: str) -> Param:
        return self.bands[band][1]

    def process(self, block: StereoArray, start_sample: int) -> StereoArray:
        t0, frames = start_sample / self.sr, len(block)
        out = np.zeros_like(block)
        for band_data, (threshold, ratio, compressor) in zip(self._splitter.process(block), self.bands.values()):
            out += compressor.process(
                band_data,
                threshold_db=threshold.values(t0, frames, self.sr),
                ratio=ratio.values(t0, frames, self.sr),
            )
        return out


class LimiterNode(Node):
    """Master bus limiter."""
    name = "limiter"

    def __init__(self, sr: int, threshold_db: float = AUDIO_CONFIG.limiter_threshold_db) -> None:
        self._limiter = Limiter(sr, threshold_db)

    def process(self, block: StereoArray, start_sample: int) -> StereoArray:
        return self._limiter.process(block)


# =============================================================================
# PITCH / SPATIAL
# =============================================================================

class PitchShiftNode(Node):
    """
    Delay-line pitch shifter: two taps sweep through a short window half a
    period apart and are crossfaded, so the read speed (and pitch) changes
    while the overall timing stays put.
    """
    name = "pitch_shift"

    def __init__(self, sr: int, window: float = CHAIN_CONFIG.pitch_window) -> None:
        self.sr = sr
        self.pitch = 0.0  # semitones
        self.window = window
        self._window_samples = max(2, int(window * sr))
        self._history = np.zeros((self._window_samples + 2, 2), dtype=np.float32)
        self._phase = 0.0

    def process(self, block: StereoArray, start_sample: int) -> StereoArray:
        frames = len(block)
        buf = np.concatenate((self._history, block))
        self._history = buf[-len(self._history):]
        if abs(self.pitch) < 0.01:
            return block

        ratio = 2.0 ** (self.pitch / 12.0)
        step = (1.0 - ratio) / self._window_samples
        phases = (self._phase + step * np.arange(1, frames + 1)) % 1.0
        self._phase = float(phases[-1])

        now = len(buf) - frames + np.arange(frames)
        grid = np.arange(len(buf))
        out = np.zeros_like(block)
        for shift in (0.0, 0.5):
            ph = (phases + shift) % 1.0
            read = now - ph * self._window_samples
            fade = (np.sin(math.pi * ph) ** 2)[:, np.newaxis]
            tap = np.column_stack((np.interp(read, grid, buf[:, 0]), np.interp(read, grid, buf[:, 1])))
            out += (tap * fade).astype(np.float32)
        return out


class _WetDryNode(Node):
    """Effect with a ramped wet/dry mix (0 = dry only)."""

    def __init__(self, sr: int) -> None:
        self.sr = sr
        self.wet = Param(0.0, "wet")

    def _effect(self, block: StereoArray) -> StereoArray:
        raise NotImplementedError

    def _idle(self) -> bool:
        return False

    def process(self, block: StereoArray, start_sample: int) -> StereoArray:
        wet = self.wet.values(start_sample / self.sr, len(block), self.sr)
        if not np.any(wet) and self._idle():
            return block
        effected = self._effect(block)
        w = wet[:, np.newaxis]
        return (block * (1.0 - w) + effected * w).astype(np.float32)


class ReverbNode(_WetDryNode):
    """Convolution reverb with a generated exponentially decaying noise response."""
    name = "reverb"

    def __init__(
        self,
        sr: int,
        decay: float = CHAIN_CONFIG.reverb_decay,
        predelay: float = CHAIN_CONFIG.reverb_predelay,
        seed: int = 0
    ) -> None:
        super().__init__(sr)
        self.impulse = self.generate_impulse(sr, decay, predelay, seed)
        self._tail = np.zeros((len(self.impulse) - 1, 2), dtype=np.float32)

    @staticmethod
    def generate_impulse(sr: int, decay: float, predelay: float, seed: int = 0) -> StereoArray:
        rng = np.random.default_rng(seed)
        pre = int(predelay * sr)
        length = int(decay * sr)
        t = np.arange(length) / sr
        # reaches -60 dB at `decay`
        envelope = np.power(10.0, -3.0 * t / decay)
        noise = rng.uniform(-1.0, 1.0, size=(length, 2)) * envelope[:, np.newaxis]
        noise /= np.sqrt(np.sum(noise ** 2, axis=0))
        return np.concatenate((np.zeros((pre, 2)), noise)).astype(np.float32)

    def _idle(self) -> bool:
        return not np.any(self._tail)

    def _effect(self, block: StereoArray) -> StereoArray:
        frames = len(block)
        full = fftconvolve(block, self.impulse, axes=0)
        full[:len(self._tail)] += self._tail
        self._tail = full[frames:].astype(np.float32)
        return full[:frames].astype(np.float32)


class FeedbackDelayNode(_WetDryNode):
    """Echo: w[n] = x[n - D] + feedback * w[n - D]."""
    name = "feedback_delay"

    def __init__(
        self,
        sr: int,
        delay_time: float = CHAIN_CONFIG.delay_time,
        feedback: float = CHAIN_CONFIG.delay_feedback
    ) -> None:
        super().__init__(sr)
        self.feedback = feedback
        self._delay = max(1, int(delay_time * sr))
        self._x_hist = np.zeros((self._delay, 2), dtype=np.float32)
        self._w_hist = np.zeros((self._delay, 2), dtype=np.float32)

    def _idle(self) -> bool:
        return not (np.any(self._x_hist) or np.any(self._w_hist))

    def _effect(self, block: StereoArray) -> StereoArray:
        out = np.empty_like(block)
        pos = 0
        # chunks no longer than the delay only read from history
        while pos < len(block):
            m = min(self._delay, len(block) - pos)
            x_chunk = block[pos:pos + m]
            w_chunk = self._x_hist[:m] + self.feedback * self._w_hist[:m]
            out[pos:pos + m] = w_chunk
            self._x_hist = np.concatenate((self._x_hist[m:], x_chunk))
            self._w_hist = np.concatenate((self._w_hist[m:], w_chunk))
            pos += m
        return out
