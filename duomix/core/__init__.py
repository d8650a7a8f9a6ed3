"""
DuoMix Core Module

This module contains the dual-track audio engine:
- AudioEngine: Main orchestrator (tracks, transport, capture, separation)
- ChannelStrip: Per-track effect chain inside the signal graph
- PlaybackScheduler: Sample-accurate transport with a vocal offset
- Separation: DSP vocal / instrumental stem extraction
- Mixdown: Audio and video export of the master bus
- ProjectFile: Settings persistence
"""
from .audio_engine import AudioEngine, get_engine
from .channel_strip import ChannelStrip
from .graph import SignalGraph
from .params import Param
from .playback import AudioOutput, PlaybackScheduler
from .project import ProjectFile
from .settings import AudioSettings, DEFAULT_SETTINGS
from .track import Track
from .mixdown import AudioExport, FfmpegMuxer, VideoExport
from .separation import StemPair
from .errors import (
    DecodeError,
    EngineError,
    ExportEmptyError,
    GraphError,
    MicrophonePermissionError,
    SeparationError,
)
from .config import (
    AUDIO_CONFIG,
    CHAIN_CONFIG,
    EXPORT_CONFIG,
    SEPARATION_CONFIG,
    PlaybackState,
    TrackType,
)
from . import effects_basic
from . import dynamics
from . import separation

__all__ = [
    # Main classes
    'AudioEngine',
    'get_engine',
    'ChannelStrip',
    'SignalGraph',
    'Param',
    'AudioOutput',
    'PlaybackScheduler',
    'ProjectFile',
    'AudioSettings',
    'DEFAULT_SETTINGS',
    'Track',
    'AudioExport',
    'VideoExport',
    'FfmpegMuxer',
    'StemPair',
    # Errors
    'EngineError',
    'DecodeError',
    'MicrophonePermissionError',
    'SeparationError',
    'ExportEmptyError',
    'GraphError',
    # Config
    'AUDIO_CONFIG',
    'CHAIN_CONFIG',
    'EXPORT_CONFIG',
    'SEPARATION_CONFIG',
    'PlaybackState',
    'TrackType',
    # Submodules
    'effects_basic',
    'dynamics',
    'separation',
]
