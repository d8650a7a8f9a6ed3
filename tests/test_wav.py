"""
Tests for WAV encoding and the in-memory decoder.
"""
import struct

import pytest
import numpy as np

from duomix.core.decoder import decode, have_ffmpeg
from duomix.core.errors import DecodeError
from duomix.core.wav import WAV_HEADER_BYTES, decode_wav, encode_wav, quantize_pcm16, write_wav

from conftest import TEST_SR, make_sine

LSB = 1.0 / 32768


class TestEncodeWav:

    def test_round_trip_within_one_lsb(self):
        rng = np.random.default_rng(1)
        data = rng.uniform(-1.0, 1.0, size=(4000, 2)).astype(np.float32)
        decoded, sr = decode_wav(encode_wav(data, TEST_SR))
        assert sr == TEST_SR
        assert decoded.shape == data.shape
        assert np.max(np.abs(decoded - data)) <= LSB + 1e-7

    def test_canonical_header(self, sample_stereo_audio):
        payload = encode_wav(sample_stereo_audio, TEST_SR)
        assert len(payload) == WAV_HEADER_BYTES + sample_stereo_audio.size * 2
        assert payload[:4] == b"RIFF"
        assert payload[8:16] == b"WAVEfmt "
        assert payload[36:40] == b"data"
        riff_size, = struct.unpack("<I", payload[4:8])
        assert riff_size == len(payload) - 8
        channels, samplerate = struct.unpack("<HI", payload[22:28])
        assert (channels, samplerate) == (2, TEST_SR)

    def test_data_chunk_holds_quantized_samples(self):
        data = np.array([[0.5, -0.5], [1.0, -1.0], [0.0, 0.25]], dtype=np.float32)
        payload = encode_wav(data, TEST_SR)
        assert payload[WAV_HEADER_BYTES:] == quantize_pcm16(data).tobytes()

    def test_mono_input(self, sample_mono_audio):
        decoded, _ = decode_wav(encode_wav(sample_mono_audio, TEST_SR))
        assert decoded.shape == (len(sample_mono_audio), 1)

    def test_out_of_range_is_clipped(self):
        pcm = quantize_pcm16(np.array([2.0, -2.0, 1.0, -1.0, 0.0], dtype=np.float32))
        assert list(pcm) == [32767, -32768, 32767, -32768, 0]

    def test_nan_becomes_silence(self):
        pcm = quantize_pcm16(np.array([np.nan], dtype=np.float32))
        assert pcm[0] == 0

    def test_empty_buffer_is_valid_file(self):
        payload = encode_wav(np.zeros((0, 2), np.float32), TEST_SR)
        assert len(payload) == WAV_HEADER_BYTES

    def test_write_wav(self, tmp_path, sample_stereo_audio):
        path = tmp_path / "out.wav"
        written = write_wav(str(path), sample_stereo_audio, TEST_SR)
        assert path.stat().st_size == written


class TestDecode:

    def test_decode_wav_bytes(self, wav_bytes, sample_stereo_audio):
        data, sr = decode(wav_bytes)
        assert sr == TEST_SR
        assert data.dtype == np.float32
        assert data.shape == sample_stereo_audio.shape

    def test_decode_path(self, tmp_path, sample_stereo_audio):
        path = tmp_path / "in.wav"
        write_wav(str(path), sample_stereo_audio, TEST_SR)
        data, _ = decode(path)
        assert len(data) == len(sample_stereo_audio)

    def test_decode_array_pair(self):
        data, sr = decode((make_sine(0.5), TEST_SR))
        assert data.shape == (TEST_SR // 2, 1)
        assert sr == TEST_SR

    def test_decode_resamples(self, wav_bytes):
        pytest.importorskip("librosa")
        data, sr = decode(wav_bytes, target_sr=8000)
        assert sr == 8000
        assert abs(len(data) - 8000) <= 1

    def test_empty_input_is_format_error(self):
        with pytest.raises(DecodeError) as info:
            decode(b"")
        assert info.value.kind == DecodeError.FORMAT
        assert str(info.value) == "unsupported or corrupt format"

    def test_garbage_is_format_error(self):
        with pytest.raises(DecodeError) as info:
            decode(b"this is not audio at all" * 10)
        assert info.value.kind == DecodeError.FORMAT

    def test_missing_file_is_io_error(self, tmp_path):
        with pytest.raises(DecodeError) as info:
            decode(str(tmp_path / "missing.wav"))
        assert info.value.is_io_error

    def test_zero_length_audio_is_error(self):
        with pytest.raises(DecodeError):
            decode(encode_wav(np.zeros((0, 2), np.float32), TEST_SR))

    @pytest.mark.skipif(not have_ffmpeg(), reason="ffmpeg not installed")
    def test_ffmpeg_fallback_for_non_libsndfile_formats(self, tmp_path, sample_stereo_audio):
        import subprocess
        src = tmp_path / "in.wav"
        dst = tmp_path / "in.m4a"
        write_wav(str(src), sample_stereo_audio, TEST_SR)
        subprocess.run(["ffmpeg", "-loglevel", "error", "-y", "-i", str(src), str(dst)], check=True)
        data, sr = decode(dst, target_sr=TEST_SR)
        assert sr == TEST_SR
        assert data.shape[1] == 2
        assert abs(len(data) - len(sample_stereo_audio)) < TEST_SR // 10
