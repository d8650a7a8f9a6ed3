"""
Tests for Track.
"""
import pytest
import numpy as np

from duomix.core.config import TrackType
from duomix.core.track import Track

from conftest import TEST_SR


class TestTrack:
    """Tests for Track functionality."""

    def test_stereo_track(self, sample_stereo_audio):
        track = Track("Test Track", sample_stereo_audio, TEST_SR)
        assert track.channels == 2
        assert track.is_stereo
        assert track.track_type is TrackType.INSTRUMENTAL

    def test_mono_is_column(self, sample_mono_audio):
        track = Track("mono", sample_mono_audio, TEST_SR, TrackType.VOCAL)
        assert track.data.shape == (len(sample_mono_audio), 1)
        assert track.channels == 1
        assert not track.is_stereo

    def test_duration(self, sample_stereo_audio):
        track = Track("t", sample_stereo_audio, TEST_SR)
        assert track.duration_samples == TEST_SR
        assert np.isclose(track.duration_seconds, 1.0)

    def test_zero_samplerate(self):
        track = Track("t", np.zeros(10, np.float32), 0)
        assert track.duration_seconds == 0.0

    def test_data_is_copied_and_read_only(self, sample_stereo_audio):
        track = Track("t", sample_stereo_audio, TEST_SR)
        sample_stereo_audio[:] = 0
        assert np.any(track.data != 0)
        with pytest.raises(ValueError):
            track.data[0, 0] = 1.0

    def test_dtype(self):
        track = Track("t", np.ones((4, 2), np.float64), TEST_SR)
        assert track.data.dtype == np.float32

    def test_frozen(self, sample_stereo_audio):
        track = Track("t", sample_stereo_audio, TEST_SR)
        with pytest.raises(AttributeError):
            track.name = "other"

    def test_repr(self, sample_stereo_audio):
        rep = repr(Track("Test Track", sample_stereo_audio, TEST_SR))
        assert "Test Track" in rep
        assert "1.00s" in rep
        assert "2ch" in rep
