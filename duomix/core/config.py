"""
Centralized configuration for DuoMix.
All magic numbers and default settings in one place.
"""
from dataclasses import dataclass
from enum import Enum, auto


class PlaybackState(Enum):
    """Playback state enumeration."""
    IDLE = auto()
    PLAYING = auto()
    PAUSED = auto()


class TrackType(Enum):
    """Which channel strip a track belongs to."""
    INSTRUMENTAL = "instrumental"
    VOCAL = "vocal"


@dataclass(frozen=True, slots=True)
class AudioConfig:
    """Audio engine configuration."""
    default_samplerate: int = 44100
    playback_blocksize: int = 1024
    playback_channels: int = 2
    schedule_lookahead: float = 0.1  # seconds between play() and audible start
    ramp_time: float = 0.1  # parameter smoothing
    limiter_threshold_db: float = -1.0


@dataclass(frozen=True, slots=True)
class ChainConfig:
    """Fixed topology constants of the two channel strips."""
    # EQ3 crossover points
    eq_low_frequency: float = 400.0
    eq_high_frequency: float = 2500.0

    # Instrumental bass boost shelf
    bass_boost_frequency: float = 200.0

    # Vocal de-esser (multiband compressor)
    deesser_low_frequency: float = 200.0
    deesser_ratio: float = 6.0
    deesser_attack: float = 0.005
    deesser_release: float = 0.05

    # Vocal spatial effects
    reverb_decay: float = 2.5
    reverb_predelay: float = 0.1
    delay_time: float = 0.25  # an eighth note at 120 bpm
    delay_feedback: float = 0.5

    # Pitch shifter
    pitch_window: float = 0.1


@dataclass(frozen=True, slots=True)
class SeparationConfig:
    """Stem separation heuristics."""
    bass_split_frequency: float = 120.0
    filter_slope_db: int = 48  # per octave
    vocal_highpass: float = 200.0
    vocal_lowpass: float = 4000.0
    gate_threshold_db: float = -32.0
    gate_smoothing: float = 0.1
    compressor_threshold_db: float = -24.0
    compressor_ratio: float = 3.0
    compressor_attack: float = 0.003
    compressor_release: float = 0.25
    makeup_gain: float = 2.0


@dataclass(frozen=True, slots=True)
class ExportConfig:
    """Mixdown export settings."""
    tail_buffer: float = 0.5  # seconds recorded past the project duration
    poll_interval: float = 0.1
    progress_cap: float = 99.0
    video_fps: int = 30
    video_size: tuple[int, int] = (1080, 1080)
    video_codec: str = "libx264"
    audio_codec: str = "aac"
    container: str = "mp4"


# Global config instances (immutable singletons)
AUDIO_CONFIG = AudioConfig()
CHAIN_CONFIG = ChainConfig()
SEPARATION_CONFIG = SeparationConfig()
EXPORT_CONFIG = ExportConfig()
