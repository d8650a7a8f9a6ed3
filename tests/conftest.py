"""
Pytest configuration and fixtures for DuoMix tests.
No audio hardware is needed: engines are driven with engine.render().
"""
from concurrent.futures import Executor, Future

import pytest
import numpy as np

from duomix.core.audio_engine import AudioEngine
from duomix.core.config import TrackType
from duomix.core.wav import encode_wav

# Low rate keeps the per-sample envelope loops fast
TEST_SR = 16000


def make_sine(seconds: float, freq: float = 440.0, amp: float = 0.5, sr: int = TEST_SR) -> np.ndarray:
    t = np.arange(int(seconds * sr)) / sr
    return (amp * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def rms(x: np.ndarray) -> float:
    return float(np.sqrt(np.mean(np.square(x)))) if len(x) else 0.0


class DeferredExecutor(Executor):
    """Executor that only runs submitted work when run_all() is called."""

    def __init__(self):
        self._pending = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self._pending.append((future, fn, args, kwargs))
        return future

    def run_all(self):
        pending, self._pending = self._pending, []
        for future, fn, args, kwargs in pending:
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)


class FakeInputStream:
    """Stands in for sounddevice.InputStream; delivers a few blocks on start()."""
    instances = []

    def __init__(self, samplerate, channels, dtype, callback, blocks=4, frames=256):
        self.samplerate = samplerate
        self.channels = channels
        self.callback = callback
        self.blocks = blocks
        self.frames = frames
        self.started = False
        self.closed = False
        FakeInputStream.instances.append(self)

    def start(self):
        self.started = True
        for _ in range(self.blocks):
            data = np.full((self.frames, self.channels), 0.25, dtype=np.float32)
            self.callback(data, self.frames, None, None)

    def stop(self):
        self.started = False

    def close(self):
        self.closed = True


@pytest.fixture
def sr() -> int:
    return TEST_SR


@pytest.fixture
def sample_mono_audio() -> np.ndarray:
    """Generate 1 second of mono sine wave audio."""
    return make_sine(1.0)


@pytest.fixture
def sample_stereo_audio() -> np.ndarray:
    """Generate 1 second of stereo sine wave audio."""
    left = make_sine(1.0, 440.0)
    right = make_sine(1.0, 880.0)
    return np.column_stack((left, right))


@pytest.fixture
def wav_bytes(sample_stereo_audio) -> bytes:
    return encode_wav(sample_stereo_audio, TEST_SR)


@pytest.fixture
def engine() -> AudioEngine:
    """Engine with no output device and a fake microphone."""
    FakeInputStream.instances = []
    return AudioEngine(samplerate=TEST_SR, mic_factory=FakeInputStream)


@pytest.fixture
def loaded_engine(engine) -> AudioEngine:
    """Engine with 5 s instrumental and vocal tracks."""
    engine.load_track(TrackType.INSTRUMENTAL, (make_sine(5.0, 220.0), TEST_SR), name="inst")
    engine.load_track(TrackType.VOCAL, (make_sine(5.0, 660.0), TEST_SR), name="vocal")
    return engine


@pytest.fixture
def short_engine(engine) -> AudioEngine:
    """Engine with 1 s tracks, for exports."""
    engine.load_track(TrackType.INSTRUMENTAL, (make_sine(1.0, 220.0), TEST_SR), name="inst")
    engine.load_track(TrackType.VOCAL, (make_sine(1.0, 660.0), TEST_SR), name="vocal")
    return engine
