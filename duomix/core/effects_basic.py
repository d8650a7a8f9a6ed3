"""
Basic audio effects for DuoMix.
All functions are pure (no side effects) and operate on numpy arrays.
Filter design helpers return second-order sections so the same
coefficients can drive both offline renders and the block-based nodes.
"""
from __future__ import annotations
import math
import numpy as np
from scipy.signal import butter, sosfilt

from .types import AudioArray


def db_to_gain(db: float | np.ndarray) -> float | np.ndarray:
    """Convert decibels to a linear amplitude factor."""
    return np.power(10.0, np.asarray(db) / 20.0)


def to_stereo(data: AudioArray) -> AudioArray:
    """Return a (samples, 2) view of mono or multichannel data."""
    if data.ndim == 1:
        return np.column_stack((data, data)).astype(np.float32)
    if data.shape[1] == 1:
        return np.repeat(data, 2, axis=1).astype(np.float32)
    if data.shape[1] > 2:
        return data[:, :2].astype(np.float32)
    return data.astype(np.float32)


# =============================================================================
# FILTER DESIGN
# =============================================================================

def _normal_cutoff(cutoff: float, sr: int) -> float:
    nyquist = 0.5 * sr
    return float(np.clip(cutoff / nyquist, 0.001, 0.999))


def butter_sos(btype: str, cutoff: float, sr: int, slope_db: int = 12) -> np.ndarray:
    """
    Design a Butterworth filter as second-order sections.

    Args:
        btype: 'low' or 'high'
        cutoff: Corner frequency in Hz
        sr: Sample rate
        slope_db: Roll-off in dB/octave (6 dB per filter order)
    """
    order = max(1, int(round(slope_db / 6)))
    return butter(order, _normal_cutoff(cutoff, sr), btype=btype, output='sos')


def linkwitz_riley_sos(btype: str, cutoff: float, sr: int) -> np.ndarray:
    """
    4th order Linkwitz-Riley section (two cascaded 2nd order Butterworths).
    Low and high outputs at the same corner sum back to a flat magnitude.
    """
    sos = butter(2, _normal_cutoff(cutoff, sr), btype=btype, output='sos')
    return np.vstack((sos, sos))


def low_shelf_sos(sr: int, cutoff: float = 200.0, gain_db: float = 6.0, Q: float = 0.707) -> np.ndarray:
    """
    Low-shelf biquad (RBJ cookbook) as a single second-order section.
    """
    A = 10 ** (gain_db / 40)
    omega = 2 * math.pi * cutoff / sr
    sn, cs = math.sin(omega), math.cos(omega)
    alpha = sn / (2 * Q)

    b0 = A * ((A + 1) - (A - 1) * cs + 2 * math.sqrt(A) * alpha)
    b1 = 2 * A * ((A - 1) - (A + 1) * cs)
    b2 = A * ((A + 1) - (A - 1) * cs - 2 * math.sqrt(A) * alpha)
    a0 = (A + 1) + (A - 1) * cs + 2 * math.sqrt(A) * alpha
    a1 = -2 * ((A - 1) + (A + 1) * cs)
    a2 = (A + 1) + (A - 1) * cs - 2 * math.sqrt(A) * alpha

    return np.array([[b0 / a0, b1 / a0, b2 / a0, 1.0, a1 / a0, a2 / a0]])


# =============================================================================
# OFFLINE FILTERS
# =============================================================================

def apply_lowpass(
    data: AudioArray,
    sr: int,
    cutoff: float = 1000.0,
    slope_db: int = 12
) -> AudioArray:
    """
    Apply Butterworth low-pass filter.

    Args:
        data: Audio samples
        sr: Sample rate
        cutoff: Cutoff frequency in Hz
        slope_db: Roll-off in dB/octave

    Returns:
        Filtered audio data
    """
    sos = butter_sos('low', cutoff, sr, slope_db)
    return sosfilt(sos, data, axis=0).astype(np.float32)


def apply_highpass(
    data: AudioArray,
    sr: int,
    cutoff: float = 100.0,
    slope_db: int = 12
) -> AudioArray:
    """
    Apply Butterworth high-pass filter.

    Args:
        data: Audio samples
        sr: Sample rate
        cutoff: Cutoff frequency in Hz
        slope_db: Roll-off in dB/octave

    Returns:
        Filtered audio data
    """
    sos = butter_sos('high', cutoff, sr, slope_db)
    return sosfilt(sos, data, axis=0).astype(np.float32)


def apply_bandpass(
    data: AudioArray,
    sr: int,
    low_cutoff: float = 200.0,
    high_cutoff: float = 4000.0,
    slope_db: int = 12
) -> AudioArray:
    """
    Band-pass as a highpass followed by a lowpass, each with the given slope.
    """
    out = apply_highpass(data, sr, cutoff=low_cutoff, slope_db=slope_db)
    return apply_lowpass(out, sr, cutoff=high_cutoff, slope_db=slope_db)

