"""
Project file abstraction for DuoMix.
A project stores the mixer settings of both tracks, their names and the
vocal offset. Audio itself is not saved; tracks are re-loaded by the user.
"""
from __future__ import annotations
import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from .config import TrackType
from .settings import AudioSettings, DEFAULT_SETTINGS

if TYPE_CHECKING:
    from .audio_engine import AudioEngine

logger = logging.getLogger("DuoMix")

PROJECT_VERSION = "1.0"


@dataclass
class ProjectFile:
    """
    Serializable mixer state.

    JSON layout:
        {"version", "timestamp", "settings": {"instrumental", "vocal"},
         "metadata": {"instrumentalName", "vocalName"}, "sync": {"vocalShift"}}
    """
    instrumental: AudioSettings = DEFAULT_SETTINGS
    vocal: AudioSettings = DEFAULT_SETTINGS
    instrumental_name: Optional[str] = None
    vocal_name: Optional[str] = None
    vocal_shift: float = 0.0
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))
    version: str = PROJECT_VERSION

    @classmethod
    def from_engine(cls, engine: "AudioEngine") -> "ProjectFile":
        """Snapshot the engine's current settings, track names and offset."""
        inst_track = engine.track(TrackType.INSTRUMENTAL)
        vocal_track = engine.track(TrackType.VOCAL)
        return cls(
            instrumental=engine.settings(TrackType.INSTRUMENTAL),
            vocal=engine.settings(TrackType.VOCAL),
            instrumental_name=inst_track.name if inst_track else None,
            vocal_name=vocal_track.name if vocal_track else None,
            vocal_shift=engine.vocal_offset,
        )

    def apply_to(self, engine: "AudioEngine") -> None:
        """Restore settings and offset. Loaded tracks are left alone."""
        engine.update_settings(TrackType.INSTRUMENTAL, self.instrumental)
        engine.update_settings(TrackType.VOCAL, self.vocal)
        engine.set_vocal_offset(self.vocal_shift)
        logger.info(
            "Project applied (tracks: %s & %s)",
            self.instrumental_name or "N/A", self.vocal_name or "N/A"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "timestamp": self.timestamp,
            "settings": {
                "instrumental": self.instrumental.to_dict(),
                "vocal": self.vocal.to_dict(),
            },
            "metadata": {
                "instrumentalName": self.instrumental_name,
                "vocalName": self.vocal_name,
            },
            "sync": {
                "vocalShift": self.vocal_shift,
            },
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ProjectFile":
        """
        Parse a project document.

        Raises:
            ValueError: if the document has no settings section
        """
        if not isinstance(data, dict) or not isinstance(data.get("settings"), dict):
            raise ValueError("Invalid project file: missing settings")
        settings = data["settings"]
        metadata = data.get("metadata") or {}
        sync = data.get("sync") or {}
        try:
            return cls(
                instrumental=AudioSettings.from_dict(settings.get("instrumental") or {}),
                vocal=AudioSettings.from_dict(settings.get("vocal") or {}),
                instrumental_name=metadata.get("instrumentalName"),
                vocal_name=metadata.get("vocalName"),
                vocal_shift=float(sync.get("vocalShift") or 0.0),
                timestamp=int(data.get("timestamp") or 0),
                version=str(data.get("version", PROJECT_VERSION)),
            )
        except (TypeError, ValueError, AttributeError) as e:
            raise ValueError(f"Invalid project file: {e}") from e

    def dumps(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def loads(cls, text: str) -> "ProjectFile":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid project file: {e}") from e
        return cls.from_dict(data)

    def save(self, path: str | os.PathLike) -> None:
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.dumps())
        logger.info("Project saved to %s", path)

    @classmethod
    def load(cls, path: str | os.PathLike) -> "ProjectFile":
        with open(path, "r", encoding="utf-8") as f:
            project = cls.loads(f.read())
        logger.info("Project loaded from %s", path)
        return project
