"""
Per-track mixer settings.
AudioSettings is a plain value object: the channel strip reads it, never
keeps a reference to it.
"""
from __future__ import annotations
from dataclasses import dataclass, fields, replace
from typing import Any

# field name -> (low, high)
SETTING_RANGES: dict[str, tuple[float, float]] = {
    'volume': (-60.0, 0.0),
    'pan': (-1.0, 1.0),
    'eq_high': (-10.0, 10.0),
    'eq_mid': (-10.0, 10.0),
    'eq_low': (-10.0, 10.0),
    'bass_boost': (0.0, 20.0),
    'reverb': (0.0, 1.0),
    'delay': (0.0, 1.0),
    'pitch': (-12.0, 12.0),
    'speed': (0.5, 1.5),
    'de_esser_thresh': (-60.0, 0.0),
    'de_esser_freq': (2000.0, 10000.0),
}

# Python field name -> project file key
_JSON_KEYS = {
    'volume': 'volume',
    'pan': 'pan',
    'eq_high': 'eqHigh',
    'eq_mid': 'eqMid',
    'eq_low': 'eqLow',
    'bass_boost': 'bassBoost',
    'reverb': 'reverb',
    'delay': 'delay',
    'pitch': 'pitch',
    'speed': 'speed',
    'de_esser_thresh': 'deEsserThresh',
    'de_esser_freq': 'deEsserFreq',
    'enable_dynamics': 'enableDynamics',
}


@dataclass(frozen=True)
class AudioSettings:
    """Mixer settings for one track."""
    volume: float = -5.0
    pan: float = 0.0
    eq_high: float = 0.0
    eq_mid: float = 0.0
    eq_low: float = 0.0
    bass_boost: float = 0.0
    reverb: float = 0.0
    delay: float = 0.0
    pitch: float = 0.0
    speed: float = 1.0
    de_esser_thresh: float = -10.0
    de_esser_freq: float = 4000.0
    enable_dynamics: bool = True

    def clamped(self) -> "AudioSettings":
        """Return a copy with every numeric field limited to its range."""
        changes = {}
        for name, (low, high) in SETTING_RANGES.items():
            value = float(getattr(self, name))
            changes[name] = min(max(value, low), high)
        return replace(self, **changes)

    def with_changes(self, **changes: Any) -> "AudioSettings":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the project file's camelCase keys."""
        return {_JSON_KEYS[f.name]: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AudioSettings":
        """Build from a project file dict; missing keys keep their default."""
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            key = _JSON_KEYS[f.name]
            if key in data:
                kwargs[f.name] = data[key]
            elif f.name in data:
                kwargs[f.name] = data[f.name]
        if 'enable_dynamics' in kwargs:
            kwargs['enable_dynamics'] = bool(kwargs['enable_dynamics'])
        for name in SETTING_RANGES:
            if name in kwargs:
                kwargs[name] = float(kwargs[name])
        return cls(**kwargs).clamped()


DEFAULT_SETTINGS = AudioSettings()
