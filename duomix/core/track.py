from __future__ import annotations
from dataclasses import dataclass, field
import numpy as np

from .config import TrackType
from .types import AudioArray


@dataclass(frozen=True)
class Track:
    """
    A decoded audio buffer bound to one channel strip.
    Immutable once loaded; re-uploading replaces the whole Track.
    """
    name: str
    data: AudioArray = field(repr=False)  # (samples, channels) float32
    samplerate: int
    track_type: TrackType = TrackType.INSTRUMENTAL

    def __post_init__(self) -> None:
        data = np.array(self.data, dtype=np.float32)
        if data.ndim == 1:
            data = data[:, np.newaxis]
        data.setflags(write=False)
        object.__setattr__(self, 'data', data)

    @property
    def duration_samples(self) -> int:
        """Returns the total number of samples in the track."""
        return len(self.data)

    @property
    def duration_seconds(self) -> float:
        """Returns the duration of the track in seconds."""
        return self.duration_samples / self.samplerate if self.samplerate > 0 else 0.0

    @property
    def channels(self) -> int:
        return self.data.shape[1]

    @property
    def is_stereo(self) -> bool:
        return self.channels >= 2

    def __repr__(self) -> str:
        return f"Track({self.name!r}, {self.track_type.value}, {self.duration_seconds:.2f}s, {self.channels}ch)"
