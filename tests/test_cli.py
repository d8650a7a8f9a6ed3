"""
Tests for the command line entry point.
"""
import numpy as np

from duomix.core.config import AUDIO_CONFIG
from duomix.core.project import ProjectFile
from duomix.core.settings import AudioSettings
from duomix.core.wav import decode_wav, write_wav

from main import main
from conftest import TEST_SR, make_sine


def _write_song(path, seconds=0.5):
    left = make_sine(seconds, 220.0)
    right = make_sine(seconds, 660.0)
    write_wav(str(path), np.column_stack((left, right)), TEST_SR)
    return str(path)


class TestSeparateCommand:

    def test_writes_both_stems(self, tmp_path):
        song = _write_song(tmp_path / "song.wav")
        out_dir = tmp_path / "stems"

        assert main(["separate", song, "-o", str(out_dir)]) == 0

        for name in ("vocal", "instrumental"):
            data, sr = decode_wav((out_dir / f"{name}.wav").read_bytes())
            assert sr == TEST_SR
            assert data.shape == (int(0.5 * TEST_SR), 2)

    def test_unreadable_input_fails(self, tmp_path):
        bad = tmp_path / "bad.wav"
        bad.write_bytes(b"not audio")
        assert main(["separate", str(bad), "-o", str(tmp_path / "stems")]) == 1


class TestMixCommand:

    def test_bounces_both_tracks(self, tmp_path, capsys):
        inst = _write_song(tmp_path / "inst.wav")
        vocal = _write_song(tmp_path / "vocal.wav")
        out = tmp_path / "mix.wav"

        assert main(["mix", inst, vocal, "-o", str(out), "--offset", "0.1"]) == 0

        data, sr = decode_wav(out.read_bytes())
        assert sr == AUDIO_CONFIG.default_samplerate
        assert len(data) >= int(0.5 * sr)
        assert np.max(np.abs(data)) > 0.01
        assert "wrote" in capsys.readouterr().out

    def test_project_settings_are_applied(self, tmp_path):
        inst = _write_song(tmp_path / "inst.wav")
        vocal = _write_song(tmp_path / "vocal.wav")
        project = ProjectFile(
            instrumental=AudioSettings(volume=-60.0),
            vocal=AudioSettings(volume=-60.0),
        )
        project.save(str(tmp_path / "quiet.json"))

        loud_path = tmp_path / "loud.wav"
        quiet_path = tmp_path / "quiet.wav"
        assert main(["mix", inst, vocal, "-o", str(loud_path)]) == 0
        assert main(["mix", inst, vocal, "-o", str(quiet_path),
                     "--project", str(tmp_path / "quiet.json")]) == 0

        loud, _ = decode_wav(loud_path.read_bytes())
        quiet, _ = decode_wav(quiet_path.read_bytes())
        assert np.max(np.abs(quiet)) < 0.1 * np.max(np.abs(loud))

    def test_missing_input_fails(self, tmp_path):
        vocal = _write_song(tmp_path / "vocal.wav")
        code = main(["mix", str(tmp_path / "missing.wav"), vocal, "-o", str(tmp_path / "mix.wav")])
        assert code == 1
