"""
WAV container I/O for mixdowns and stems.
Output is always canonical 16-bit PCM: a 44-byte RIFF header with one
"fmt " and one "data" chunk, interleaved little-endian samples.
"""
from __future__ import annotations
import io
import numpy as np
import soundfile as sf

from .types import AudioArray

WAV_HEADER_BYTES = 44


def quantize_pcm16(data: AudioArray) -> np.ndarray:
    """Clamp to [-1, 1] and scale to int16 with rounding."""
    clipped = np.clip(np.nan_to_num(data), -1.0, 1.0)
    return np.clip(np.round(clipped * 32768.0), -32768, 32767).astype('<i2')


def encode_wav(data: AudioArray, samplerate: int) -> bytes:
    """
    Encode float samples as a 16-bit PCM WAV file.

    Args:
        data: (samples,) or (samples, channels) float audio
        samplerate: Sample rate written to the header

    Returns:
        Complete WAV file bytes
    """
    if data.ndim == 1:
        data = data[:, np.newaxis]
    pcm = quantize_pcm16(data)

    buf = io.BytesIO()
    sf.write(buf, pcm, int(samplerate), format='WAV', subtype='PCM_16')
    return buf.getvalue()


def decode_wav(payload: bytes) -> tuple[AudioArray, int]:
    """Decode WAV bytes to float32 (samples, channels)."""
    data, samplerate = sf.read(io.BytesIO(payload), dtype='float32', always_2d=True)
    return data, samplerate


def write_wav(path: str, data: AudioArray, samplerate: int) -> int:
    """Encode and write to disk. Returns the number of bytes written."""
    payload = encode_wav(data, samplerate)
    with open(path, 'wb') as f:
        f.write(payload)
    return len(payload)
