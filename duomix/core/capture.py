"""
Capture for DuoMix: the master bus recorder and the microphone input.
"""
from __future__ import annotations
import logging
import threading
from typing import Any, Callable, Optional
import numpy as np

from .config import AUDIO_CONFIG
from .errors import MicrophonePermissionError
from .graph import Node
from .types import AudioArray, StereoArray

logger = logging.getLogger("DuoMix")


class Recorder(Node):
    """
    Pass-through tap that keeps a copy of every block while started.
    Connected after the master limiter, so it records exactly what is heard.
    """
    name = "recorder"

    def __init__(self) -> None:
        self._chunks: list[StereoArray] = []
        self._recording = False
        self._lock = threading.Lock()

    @property
    def recording(self) -> bool:
        return self._recording

    @property
    def recorded_frames(self) -> int:
        with self._lock:
            return sum(len(c) for c in self._chunks)

    def start(self) -> None:
        with self._lock:
            self._chunks = []
            self._recording = True

    def stop(self) -> StereoArray:
        """Stop and return everything recorded (possibly empty)."""
        with self._lock:
            self._recording = False
            chunks, self._chunks = self._chunks, []
        if not chunks:
            return np.zeros((0, 2), dtype=np.float32)
        return np.concatenate(chunks).astype(np.float32)

    def process(self, block: StereoArray, start_sample: int) -> StereoArray:
        if self._recording:
            with self._lock:
                self._chunks.append(block.copy())
        return block


def _default_input_stream(**kwargs: Any) -> Any:
    import sounddevice as sd
    return sd.InputStream(**kwargs)


class MicrophoneCapture:
    """
    Records the default input device into memory.
    The input is not part of the signal graph and is never
    monitored through the speakers.
    """

    def __init__(
        self,
        samplerate: int = AUDIO_CONFIG.default_samplerate,
        channels: int = 1,
        stream_factory: Optional[Callable[..., Any]] = None
    ) -> None:
        self.samplerate = samplerate
        self.channels = channels
        self._stream_factory = stream_factory or _default_input_stream
        self._stream = None
        self._chunks: list[AudioArray] = []
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._stream is not None

    def _callback(self, indata: np.ndarray, frames: int, time: object, status: object) -> None:
        if status:
            logger.debug("Microphone status: %s", status)
        with self._lock:
            self._chunks.append(indata.copy())

    def start(self) -> None:
        """
        Open the input device and start buffering.

        Raises:
            MicrophonePermissionError: if the device cannot be opened
        """
        if self._stream is not None:
            return
        with self._lock:
            self._chunks = []
        try:
            stream = self._stream_factory(
                samplerate=self.samplerate,
                channels=self.channels,
                dtype='float32',
                callback=self._callback,
            )
            stream.start()
        except Exception as e:
            # PortAudio reports denied access and missing devices the same way
            logger.error("Could not open microphone: %s", e, exc_info=True)
            raise MicrophonePermissionError(f"microphone unavailable: {e}") from e
        self._stream = stream
        logger.info("Microphone capture started")

    def stop(self) -> AudioArray:
        """Close the device and return the captured (samples, channels) buffer."""
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
            stream.close()
        with self._lock:
            chunks, self._chunks = self._chunks, []
        logger.info("Microphone capture stopped (%d blocks)", len(chunks))
        if not chunks:
            return np.zeros((0, self.channels), dtype=np.float32)
        return np.concatenate(chunks).astype(np.float32)
