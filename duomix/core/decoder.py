"""
In-memory audio decoding for DuoMix.
Everything is decoded to a complete float32 (samples, channels) buffer
before it is handed to a player, so scheduling never waits on I/O.
libsndfile (soundfile) handles WAV/FLAC/OGG/MP3; anything else (video
containers, AAC, ...) goes through ffmpeg when it is on PATH.
"""
from __future__ import annotations
import io
import logging
import os
import shutil
import subprocess
import tempfile
from typing import Optional
import numpy as np
import soundfile as sf

from .config import AUDIO_CONFIG
from .errors import DecodeError
from .types import AudioArray, AudioSource

logger = logging.getLogger("DuoMix")

FFMPEG_TIMEOUT = 120


def have_ffmpeg() -> bool:
    return shutil.which("ffmpeg") is not None


def read_source_bytes(source: AudioSource) -> bytes:
    """Return the raw bytes of a bytes-like or path source."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    try:
        with open(os.fspath(source), 'rb') as f:
            return f.read()
    except OSError as e:
        logger.error("Failed to read %s: %s", source, e)
        raise DecodeError(f"could not read input: {e}", kind=DecodeError.IO) from e


def _decode_soundfile(payload: bytes) -> tuple[AudioArray, int]:
    data, samplerate = sf.read(io.BytesIO(payload), dtype='float32', always_2d=True)
    return data, samplerate


def _decode_ffmpeg(payload: bytes, samplerate: int) -> tuple[AudioArray, int]:
    # containers like mp4 need a seekable input, so go through a temp file
    with tempfile.NamedTemporaryFile(suffix='.media', delete=False) as tmp:
        tmp.write(payload)
        tmp_path = tmp.name
    try:
        result = subprocess.run([
            'ffmpeg', '-hide_banner', '-loglevel', 'error',
            '-i', tmp_path,
            '-vn',
            '-ac', '2',
            '-ar', str(samplerate),
            '-f', 'f32le',
            'pipe:1'
        ], capture_output=True, timeout=FFMPEG_TIMEOUT, check=True)
    finally:
        os.unlink(tmp_path)
    data = np.frombuffer(result.stdout, dtype='<f4').reshape(-1, 2)
    return data.astype(np.float32), samplerate


def resample(data: AudioArray, orig_sr: int, target_sr: int) -> AudioArray:
    """Resample (samples, channels) data with librosa."""
    if orig_sr == target_sr or len(data) == 0:
        return data
    import librosa
    return librosa.resample(data, orig_sr=orig_sr, target_sr=target_sr, axis=0).astype(np.float32)


def decode(source: AudioSource, target_sr: Optional[int] = None) -> tuple[AudioArray, int]:
    """
    Decode a media source to PCM.

    Args:
        source: Raw bytes, a file path, or an already decoded (array, samplerate) pair
        target_sr: Resample to this rate if given

    Returns:
        (data, samplerate) with data shaped (samples, channels), float32

    Raises:
        DecodeError: kind "format" when the bytes are not decodable audio,
            kind "io" when the input could not be read at all
    """
    if isinstance(source, tuple):
        data, samplerate = source
        data = np.asarray(data, dtype=np.float32)
        if data.ndim == 1:
            data = data[:, np.newaxis]
    else:
        payload = read_source_bytes(source)
        if not payload:
            raise DecodeError()
        try:
            data, samplerate = _decode_soundfile(payload)
        except (RuntimeError, ValueError, TypeError) as e:
            logger.debug("soundfile could not decode input (%s), trying ffmpeg", e)
            if not have_ffmpeg():
                raise DecodeError() from e
            try:
                data, samplerate = _decode_ffmpeg(payload, target_sr or AUDIO_CONFIG.default_samplerate)
            except (subprocess.CalledProcessError, subprocess.TimeoutExpired, ValueError) as ff_err:
                logger.error("ffmpeg decode failed: %s", ff_err)
                raise DecodeError() from ff_err

    if len(data) == 0:
        raise DecodeError()

    if target_sr is not None and samplerate != target_sr:
        data = resample(data, samplerate, target_sr)
        samplerate = target_sr
    return np.ascontiguousarray(data, dtype=np.float32), int(samplerate)
