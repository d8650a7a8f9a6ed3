"""
Tests for ProjectFile.
"""
import json

import pytest

from duomix.core.config import TrackType
from duomix.core.project import PROJECT_VERSION, ProjectFile
from duomix.core.settings import AudioSettings, DEFAULT_SETTINGS


@pytest.fixture
def project():
    return ProjectFile(
        instrumental=AudioSettings(volume=-12.0, bass_boost=6.0),
        vocal=AudioSettings(reverb=0.4, pitch=-2.0),
        instrumental_name="beat.mp3",
        vocal_name="take.wav",
        vocal_shift=0.35,
        timestamp=1700000000000,
    )


class TestProjectFile:
    """Tests for ProjectFile serialization."""

    def test_defaults(self):
        project = ProjectFile()
        assert project.instrumental == DEFAULT_SETTINGS
        assert project.vocal_shift == 0.0
        assert project.version == PROJECT_VERSION
        assert project.timestamp > 0

    def test_json_layout(self, project):
        data = json.loads(project.dumps())
        assert set(data) == {"version", "timestamp", "settings", "metadata", "sync"}
        assert data["settings"]["instrumental"]["bassBoost"] == 6.0
        assert data["metadata"] == {"instrumentalName": "beat.mp3", "vocalName": "take.wav"}
        assert data["sync"] == {"vocalShift": 0.35}

    def test_round_trip(self, project):
        assert ProjectFile.loads(project.dumps()) == project

    def test_missing_sections_use_defaults(self):
        project = ProjectFile.from_dict({"settings": {}})
        assert project.vocal == DEFAULT_SETTINGS
        assert project.instrumental_name is None
        assert project.vocal_shift == 0.0

    def test_missing_settings(self):
        with pytest.raises(ValueError, match="Invalid project file"):
            ProjectFile.from_dict({"version": "1.0"})

    def test_not_an_object(self):
        with pytest.raises(ValueError, match="Invalid project file"):
            ProjectFile.loads("[1, 2, 3]")

    def test_invalid_json(self):
        with pytest.raises(ValueError, match="Invalid project file"):
            ProjectFile.loads("{not json")

    def test_bad_value_type(self):
        with pytest.raises(ValueError, match="Invalid project file"):
            ProjectFile.from_dict({"settings": {"vocal": {"volume": "loud"}}})

    def test_save_and_load(self, tmp_path, project):
        path = tmp_path / "song.duomix.json"
        project.save(path)
        assert ProjectFile.load(path) == project


class TestProjectWithEngine:

    def test_from_engine(self, loaded_engine):
        loaded_engine.update_settings(TrackType.VOCAL, AudioSettings(delay=0.3))
        loaded_engine.set_vocal_offset(-0.5)
        project = ProjectFile.from_engine(loaded_engine)
        assert project.vocal.delay == 0.3
        assert project.instrumental_name == "inst"
        assert project.vocal_name == "vocal"
        assert project.vocal_shift == -0.5

    def test_from_empty_engine(self, engine):
        project = ProjectFile.from_engine(engine)
        assert project.instrumental_name is None
        assert project.vocal_name is None

    def test_apply_to_restores_state(self, loaded_engine, project):
        project.apply_to(loaded_engine)
        assert loaded_engine.settings(TrackType.INSTRUMENTAL) == project.instrumental
        assert loaded_engine.settings(TrackType.VOCAL) == project.vocal
        assert loaded_engine.vocal_offset == pytest.approx(0.35)
        # audio stays loaded
        assert loaded_engine.track(TrackType.VOCAL).name == "vocal"
