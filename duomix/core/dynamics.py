"""
Dynamics processing for DuoMix: envelope followers, compressor, gate, limiter.
The stateful classes carry their envelope across calls so they can run
block by block inside the live graph; the apply_* helpers wrap them for
whole-buffer (offline) use.
"""
from __future__ import annotations
import math
import numpy as np
from scipy.signal import lfilter, lfilter_zi

from .types import AudioArray
from .config import AUDIO_CONFIG


def _coeff(seconds: float, sr: int) -> float:
    samples = max(1, int(sr * seconds))
    return 1 - math.exp(-1.0 / samples)


def detection_level(data: AudioArray) -> np.ndarray:
    """Peak level across channels, per sample."""
    if data.ndim > 1:
        return np.max(np.abs(data), axis=1)
    return np.abs(data)


class EnvelopeFollower:
    """Peak follower with separate attack and release times."""
    __slots__ = ('_attack', '_release', '_env')

    def __init__(self, sr: int, attack: float, release: float) -> None:
        self._attack = _coeff(attack, sr)
        self._release = _coeff(release, sr)
        self._env = 0.0

    def process(self, level: np.ndarray) -> np.ndarray:
        envelope = np.empty(len(level), dtype=np.float64)
        env_prev = self._env
        attack, release = self._attack, self._release

        for i in range(len(level)):
            x = level[i]
            if x > env_prev:
                env_prev += attack * (x - env_prev)
            else:
                env_prev += release * (x - env_prev)
            envelope[i] = env_prev

        self._env = env_prev
        return envelope


class Smoother:
    """Symmetric one-pole lowpass, vectorized with lfilter."""
    __slots__ = ('_b', '_a', '_zi')

    def __init__(self, sr: int, seconds: float) -> None:
        c = _coeff(seconds, sr)
        self._b = np.array([c])
        self._a = np.array([1.0, -(1.0 - c)])
        self._zi = lfilter_zi(self._b, self._a) * 0.0

    def process(self, x: np.ndarray) -> np.ndarray:
        y, self._zi = lfilter(self._b, self._a, x, zi=self._zi)
        return y


def compression_gain(
    envelope: np.ndarray,
    threshold_db: float | np.ndarray,
    ratio: float | np.ndarray
) -> np.ndarray:
    """
    Gain curve of a hard-knee compressor evaluated on an envelope.
    threshold_db and ratio may be per-sample arrays.
    """
    threshold = np.broadcast_to(np.power(10.0, np.asarray(threshold_db) / 20.0), envelope.shape)
    ratio = np.broadcast_to(np.maximum(np.asarray(ratio, dtype=np.float64), 1.0), envelope.shape)

    gain = np.ones_like(envelope)
    above = envelope > threshold
    if np.any(above):
        env = envelope[above]
        thr = threshold[above]
        gain[above] = (thr + (env - thr) / ratio[above]) / env
    return gain


class Compressor:
    """Block-based compressor with carried envelope state."""

    def __init__(
        self,
        sr: int,
        threshold_db: float = -24.0,
        ratio: float = 4.0,
        attack: float = 0.005,
        release: float = 0.1,
        makeup_db: float = 0.0
    ) -> None:
        self.threshold_db = threshold_db
        self.ratio = ratio
        self.makeup_db = makeup_db
        self._follower = EnvelopeFollower(sr, attack, release)

    def process(
        self,
        data: AudioArray,
        threshold_db: float | np.ndarray | None = None,
        ratio: float | np.ndarray | None = None
    ) -> AudioArray:
        threshold_db = self.threshold_db if threshold_db is None else threshold_db
        ratio = self.ratio if ratio is None else ratio

        envelope = self._follower.process(detection_level(data))
        gain = compression_gain(envelope, threshold_db, ratio)
        gain *= 10 ** (self.makeup_db / 20)

        if data.ndim > 1:
            gain = gain[:, np.newaxis]
        return (data * gain).astype(np.float32)


class Gate:
    """Noise gate: passes signal only while the smoothed level is above threshold."""

    def __init__(self, sr: int, threshold_db: float = -40.0, smoothing: float = 0.1) -> None:
        self.threshold_db = threshold_db
        self._follower = Smoother(sr, smoothing)
        # keeps the open/close edge from clicking
        self._edge = Smoother(sr, 0.002)

    def process(self, data: AudioArray) -> AudioArray:
        level = self._follower.process(detection_level(data))
        threshold = 10 ** (self.threshold_db / 20)
        gain = self._edge.process((level > threshold).astype(np.float64))
        if data.ndim > 1:
            gain = gain[:, np.newaxis]
        return (data * gain).astype(np.float32)


class Limiter(Compressor):
    """Fast high-ratio compressor used on the master bus."""

    def __init__(self, sr: int, threshold_db: float = AUDIO_CONFIG.limiter_threshold_db) -> None:
        super().__init__(sr, threshold_db=threshold_db, ratio=20.0, attack=0.003, release=0.01)


def apply_compressor(
    data: AudioArray,
    sr: int,
    threshold_db: float = -20.0,
    ratio: float = 4.0,
    attack: float = 0.005,
    release: float = 0.1,
    makeup_db: float = 0.0
) -> AudioArray:
    """
    Apply dynamic range compression.

    Args:
        data: Audio samples
        sr: Sample rate
        threshold_db: Threshold level in dB
        ratio: Compression ratio (e.g., 4.0 = 4:1)
        attack: Attack time in seconds
        release: Release time in seconds
        makeup_db: Makeup gain in dB

    Returns:
        Compressed audio data
    """
    if ratio <= 1.0 and makeup_db == 0.0:
        return data
    return Compressor(sr, threshold_db, ratio, attack, release, makeup_db).process(data)


def apply_gate(
    data: AudioArray,
    sr: int,
    threshold_db: float = -40.0,
    smoothing: float = 0.1
) -> AudioArray:
    """Apply a noise gate to a whole buffer."""
    return Gate(sr, threshold_db, smoothing).process(data)
