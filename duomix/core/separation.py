"""
DSP stem separation for DuoMix.

Two offline renders of the same decoded source:
- Instrumental ("karaoke"): the bass band below 120 Hz is kept in stereo and
  everything above it is reduced to the L-R side signal, which cancels
  centre-panned material such as lead vocals.
- Vocal: the mid signal is band-limited to the voice range, gated and
  compressed.

Works best on professionally mixed music with centred vocals. Nothing is
cached between calls, so concurrent separations never share state.
"""
from __future__ import annotations
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional
import numpy as np

from .config import SEPARATION_CONFIG
from .decoder import decode
from .dynamics import apply_compressor, apply_gate
from .effects_basic import apply_bandpass, apply_highpass, apply_lowpass, to_stereo
from .errors import DecodeError, SeparationError
from .types import AudioArray, AudioSource, StereoArray
from .wav import encode_wav

logger = logging.getLogger("DuoMix")

_separation_pool: Optional[ThreadPoolExecutor] = None
_separation_pool_lock = threading.Lock()


def _get_separation_pool() -> ThreadPoolExecutor:
    global _separation_pool
    if _separation_pool is not None:
        return _separation_pool
    with _separation_pool_lock:
        if _separation_pool is None:
            _separation_pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="duomix-separate")
    return _separation_pool


@dataclass(frozen=True)
class StemPair:
    """Result of a separation: two stereo stems of the source's length."""
    vocal: StereoArray
    instrumental: StereoArray
    samplerate: int

    @property
    def duration_seconds(self) -> float:
        return len(self.instrumental) / self.samplerate if self.samplerate else 0.0

    def to_wav(self) -> tuple[bytes, bytes]:
        """Encode both stems as 16-bit WAV payloads: (vocal, instrumental)."""
        return (
            encode_wav(self.vocal, self.samplerate),
            encode_wav(self.instrumental, self.samplerate),
        )


def render_instrumental(data: AudioArray, samplerate: int) -> StereoArray:
    """
    Karaoke render: stereo bass plus the high band's side signal in both channels.

    Args:
        data: (samples, channels) source audio; mono is treated as dual mono
        samplerate: Sample rate

    Returns:
        (samples, 2) instrumental
    """
    cfg = SEPARATION_CONFIG
    stereo = to_stereo(data)

    bass = apply_lowpass(stereo, samplerate, cfg.bass_split_frequency, cfg.filter_slope_db)
    highs = apply_highpass(stereo, samplerate, cfg.bass_split_frequency, cfg.filter_slope_db)
    side = highs[:, 0] - highs[:, 1]

    return (bass + side[:, np.newaxis]).astype(np.float32)


def render_vocal(data: AudioArray, samplerate: int) -> StereoArray:
    """
    Vocal render: mid signal -> voice band-pass -> gate -> compressor -> makeup.

    Args:
        data: (samples, channels) source audio; mono is treated as dual mono
        samplerate: Sample rate

    Returns:
        (samples, 2) vocal, identical in both channels
    """
    cfg = SEPARATION_CONFIG
    stereo = to_stereo(data)
    mid = 0.5 * (stereo[:, 0] + stereo[:, 1])

    voice = apply_bandpass(mid, samplerate, cfg.vocal_highpass, cfg.vocal_lowpass, cfg.filter_slope_db)
    voice = apply_gate(voice, samplerate, cfg.gate_threshold_db, cfg.gate_smoothing)
    voice = apply_compressor(
        voice,
        samplerate,
        threshold_db=cfg.compressor_threshold_db,
        ratio=cfg.compressor_ratio,
        attack=cfg.compressor_attack,
        release=cfg.compressor_release,
    )
    voice = voice * cfg.makeup_gain

    return np.column_stack((voice, voice)).astype(np.float32)


def separate(source: AudioSource) -> StemPair:
    """
    Split a mixed song into vocal and instrumental stems.

    Args:
        source: Encoded file bytes, a path, or an (array, samplerate) pair

    Returns:
        StemPair whose stems have exactly the source's length

    Raises:
        SeparationError: "decode failed" if the input is not decodable audio,
            or wrapping any failure inside the renders
    """
    try:
        data, samplerate = decode(source)
    except DecodeError as e:
        logger.error("Separation input could not be decoded: %s", e)
        raise SeparationError("decode failed") from e

    logger.info("Starting stem separation (%.2fs @ %d Hz)", len(data) / samplerate, samplerate)
    if data.shape[1] == 1:
        logger.warning("Mono source: the instrumental side signal will be silent")

    try:
        instrumental = render_instrumental(data, samplerate)
        vocal = render_vocal(data, samplerate)
    except (ValueError, FloatingPointError, MemoryError) as e:
        logger.error("Stem separation failed: %s", e, exc_info=True)
        raise SeparationError(f"separation failed: {e}") from e

    logger.info("Stem separation completed")
    return StemPair(vocal=vocal, instrumental=instrumental, samplerate=samplerate)


def separate_async(source: AudioSource, executor: Optional[Executor] = None) -> "Future[StemPair]":
    """Run separate() on a worker; the future carries the StemPair or the SeparationError."""
    pool = executor or _get_separation_pool()
    return pool.submit(separate, source)
