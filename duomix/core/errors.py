"""
Error taxonomy for DuoMix.
Every failure is local to the operation that raised it; none of these
leave the engine in a state that needs rebuilding.
"""


class EngineError(Exception):
    """Base class for all engine errors."""


class DecodeError(EngineError):
    """Input bytes could not be turned into audio."""
    FORMAT = "format"
    IO = "io"

    def __init__(self, message: str = "unsupported or corrupt format", kind: str = FORMAT):
        super().__init__(message)
        self.kind = kind

    @property
    def is_io_error(self) -> bool:
        return self.kind == self.IO


class MicrophonePermissionError(EngineError, PermissionError):
    """Microphone access was denied or no input device is available."""


class SeparationError(EngineError):
    """Stem separation failed (decode or render)."""


class ExportEmptyError(EngineError):
    """A capture finished without producing any data."""

    def __init__(self, message: str = "no data produced"):
        super().__init__(message)


class GraphError(EngineError):
    """Illegal edit of the signal graph."""
