"""
DuoMix - dual-track synchronized audio engine.

Loads an instrumental and a vocal track into separate channel strips,
plays them in lockstep under an adjustable offset, captures microphone
overdubs, separates mixed recordings into vocal/instrumental stems and
exports mixdowns to WAV or video.
"""
__version__ = "0.1.0"
