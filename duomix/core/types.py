"""
Type definitions for the DuoMix core module.
Provides type aliases and protocols for type safety and better IDE support.
"""
from typing import Callable, Protocol, Union
import os
import numpy as np
from numpy.typing import NDArray

# Audio data types
AudioArray = NDArray[np.float32]  # Shape: (samples,) or (samples, channels)
MonoArray = NDArray[np.float32]   # Shape: (samples,)
StereoArray = NDArray[np.float32] # Shape: (samples, 2)
FrameArray = NDArray[np.uint8]    # Shape: (height, width, 3) RGB

# Anything the decoder accepts: raw bytes, a path, or already decoded PCM
AudioSource = Union[bytes, bytearray, str, os.PathLike, tuple[AudioArray, int]]

# Callback types
ProgressCallback = Callable[[float], None]  # percent 0..100


class FrameSource(Protocol):
    """Something that can draw one video frame for a point in time."""
    size: tuple[int, int]  # (width, height)

    def render(self, elapsed: float) -> FrameArray: ...
