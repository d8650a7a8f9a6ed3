"""
Tests for the master recorder tap and microphone capture.
"""
import pytest
import numpy as np

from duomix.core.capture import MicrophoneCapture, Recorder
from duomix.core.config import PlaybackState, TrackType
from duomix.core.errors import ExportEmptyError, MicrophonePermissionError

from conftest import TEST_SR, FakeInputStream, make_sine


def _denied(**kwargs):
    raise OSError("Error opening InputStream: Device unavailable")


class TestRecorder:

    def test_passthrough(self):
        rec = Recorder()
        block = np.ones((16, 2), np.float32)
        assert rec.process(block, 0) is block

    def test_records_only_while_started(self):
        rec = Recorder()
        rec.process(np.ones((16, 2), np.float32), 0)
        rec.start()
        rec.process(np.full((16, 2), 0.5, np.float32), 16)
        rec.process(np.full((8, 2), 0.25, np.float32), 32)
        assert rec.recording
        assert rec.recorded_frames == 24
        data = rec.stop()
        assert data.shape == (24, 2)
        assert np.all(data[:16] == 0.5)
        assert not rec.recording

    def test_blocks_are_copied(self):
        rec = Recorder()
        rec.start()
        block = np.ones((4, 2), np.float32)
        rec.process(block, 0)
        block[:] = 0
        assert np.all(rec.stop() == 1.0)

    def test_empty_stop(self):
        assert Recorder().stop().shape == (0, 2)


class TestMicrophoneCapture:

    def test_capture_buffers_input(self):
        mic = MicrophoneCapture(TEST_SR, stream_factory=FakeInputStream)
        mic.start()
        assert mic.active
        data = mic.stop()
        assert data.shape == (4 * 256, 1)
        assert np.allclose(data, 0.25)
        assert not mic.active

    def test_stream_is_closed(self):
        FakeInputStream.instances = []
        mic = MicrophoneCapture(TEST_SR, stream_factory=FakeInputStream)
        mic.start()
        mic.stop()
        assert FakeInputStream.instances[-1].closed

    def test_denied_access(self):
        mic = MicrophoneCapture(TEST_SR, stream_factory=_denied)
        with pytest.raises(MicrophonePermissionError) as info:
            mic.start()
        assert isinstance(info.value, PermissionError)
        assert not mic.active

    def test_stop_without_start(self):
        mic = MicrophoneCapture(TEST_SR, stream_factory=FakeInputStream)
        assert len(mic.stop()) == 0


class TestEngineCapture:

    def test_mic_capture_plays_and_extends_duration(self, engine):
        engine.load_track(TrackType.INSTRUMENTAL, (make_sine(0.5), TEST_SR))
        engine.start_mic_capture()
        assert engine.is_playing
        for _ in range(40):
            engine.render(512)
        # recording runs past the end of the instrumental
        assert engine.is_playing
        assert engine.duration > 0.5
        assert engine.duration == pytest.approx(engine.current_time)

    def test_recording_onto_empty_project_advances_clock(self, engine):
        engine.start_mic_capture()
        assert engine.state == PlaybackState.PLAYING
        for _ in range(40):
            engine.render(512)
        assert engine.current_time > 0
        assert engine.duration == pytest.approx(engine.current_time)
        track = engine.stop_mic_capture()
        assert engine.track(TrackType.VOCAL) is track

    def test_duration_never_shrinks_while_recording(self, engine):
        engine.load_track(TrackType.INSTRUMENTAL, (make_sine(0.5), TEST_SR))
        engine.start_mic_capture()
        previous = 0.0
        for _ in range(30):
            engine.render(512)
            assert engine.duration >= previous
            previous = engine.duration

    def test_stop_mic_capture_replaces_vocal(self, engine):
        engine.load_track(TrackType.VOCAL, (make_sine(2.0), TEST_SR), name="old")
        engine.start_mic_capture()
        engine.render(512)
        track = engine.stop_mic_capture()
        assert track.name.startswith("Recorded Vocal")
        assert track.track_type is TrackType.VOCAL
        assert engine.track(TrackType.VOCAL) is track
        assert engine.state == PlaybackState.IDLE
        assert engine.duration == pytest.approx(track.duration_seconds)

    def test_mic_denied_leaves_engine_idle(self):
        from duomix.core.audio_engine import AudioEngine
        engine = AudioEngine(samplerate=TEST_SR, mic_factory=_denied)
        engine.load_track(TrackType.INSTRUMENTAL, (make_sine(0.5), TEST_SR))
        with pytest.raises(MicrophonePermissionError):
            engine.start_mic_capture()
        assert engine.state == PlaybackState.IDLE

    def test_empty_take(self, engine):
        FakeInputStream.instances = []

        def silent_stream(**kwargs):
            return FakeInputStream(blocks=0, **kwargs)

        engine.mic = type(engine.mic)(TEST_SR, stream_factory=silent_stream)
        engine.start_mic_capture()
        with pytest.raises(ExportEmptyError):
            engine.stop_mic_capture()

    def test_master_capture_returns_wav(self, short_engine):
        short_engine.start_master_capture()
        short_engine.play(0)
        for _ in range(10):
            short_engine.render(512)
        payload = short_engine.stop_master_capture()
        assert payload[:4] == b"RIFF"

    def test_master_capture_empty(self, engine):
        engine.start_master_capture()
        with pytest.raises(ExportEmptyError):
            engine.stop_master_capture()
