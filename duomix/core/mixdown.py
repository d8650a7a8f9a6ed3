"""
Mixdown export for DuoMix.

Both exports start the master capture and playback from 0 in one step, run
until the project duration plus a short tail, then collect the recording.
When no realtime output is open the export renders the graph itself as fast
as it can (offline bounce); otherwise it waits on the running clock.

Video frames are timed by the audio clock: frame k shows the overlay at
k / fps seconds after the shared start instant, so picture and sound stay
aligned regardless of how fast the export runs.
"""
from __future__ import annotations
import logging
import os
import shutil
import subprocess
import tempfile
import threading
import time
from typing import TYPE_CHECKING, Callable, Optional
import numpy as np

from .config import AUDIO_CONFIG, EXPORT_CONFIG
from .errors import EngineError, ExportEmptyError
from .types import FrameArray, FrameSource, ProgressCallback

if TYPE_CHECKING:
    from .audio_engine import AudioEngine

logger = logging.getLogger("DuoMix")

FFMPEG_TIMEOUT = 300


class FfmpegMuxer:
    """
    Streams RGB frames to an ffmpeg encoder and muxes the audio at the end.

    The video is encoded incrementally into a temporary file while the export
    runs; finalize() adds the WAV audio without re-encoding the video.
    """

    def __init__(
        self,
        size: tuple[int, int],
        fps: int = EXPORT_CONFIG.video_fps,
        video_codec: str = EXPORT_CONFIG.video_codec,
        audio_codec: str = EXPORT_CONFIG.audio_codec,
        container: str = EXPORT_CONFIG.container
    ) -> None:
        self.size = size
        self.fps = fps
        self.video_codec = video_codec
        self.audio_codec = audio_codec
        self.container = container
        self.frames_written = 0
        self._proc: Optional[subprocess.Popen] = None
        self._workdir: Optional[str] = None

    @property
    def _video_path(self) -> str:
        return os.path.join(self._workdir, f"video.{self.container}")

    def open(self) -> None:
        if shutil.which("ffmpeg") is None:
            raise EngineError("ffmpeg not found in PATH")
        self._workdir = tempfile.mkdtemp(prefix="duomix-video-")
        w, h = self.size
        cmd = [
            "ffmpeg", "-hide_banner", "-loglevel", "error", "-y",
            "-f", "rawvideo",
            "-pix_fmt", "rgb24",
            "-s", f"{w}x{h}",
            "-r", str(self.fps),
            "-i", "pipe:0",
            "-c:v", self.video_codec,
            "-pix_fmt", "yuv420p",
            self._video_path,
        ]
        try:
            self._proc = subprocess.Popen(cmd, stdin=subprocess.PIPE, stderr=subprocess.PIPE)
        except OSError as e:
            self._cleanup()
            raise EngineError(f"failed to start ffmpeg: {e}") from e
        self.frames_written = 0

    def write_frame(self, frame: FrameArray) -> None:
        if self._proc is None or self._proc.stdin is None:
            raise EngineError("muxer is not open")
        self._proc.stdin.write(np.ascontiguousarray(frame, dtype=np.uint8).tobytes())
        self.frames_written += 1

    def _close_video(self) -> None:
        proc, self._proc = self._proc, None
        if proc is None:
            return
        _, stderr = proc.communicate(timeout=FFMPEG_TIMEOUT)
        if proc.returncode != 0:
            raise EngineError(f"video encode failed: {stderr.decode(errors='replace').strip()}")

    def finalize(self, wav: bytes) -> bytes:
        """Close the video stream, mux in the WAV audio and return the container bytes."""
        try:
            self._close_video()
            audio_path = os.path.join(self._workdir, "audio.wav")
            out_path = os.path.join(self._workdir, f"mix.{self.container}")
            with open(audio_path, "wb") as f:
                f.write(wav)
            subprocess.run([
                "ffmpeg", "-hide_banner", "-loglevel", "error", "-y",
                "-i", self._video_path,
                "-i", audio_path,
                "-map", "0:v:0", "-map", "1:a:0",
                "-c:v", "copy",
                "-c:a", self.audio_codec,
                out_path,
            ], capture_output=True, timeout=FFMPEG_TIMEOUT, check=True)
            with open(out_path, "rb") as f:
                return f.read()
        except subprocess.CalledProcessError as e:
            raise EngineError(f"mux failed: {e.stderr.decode(errors='replace').strip()}") from e
        finally:
            self._cleanup()

    def abort(self) -> None:
        """Kill the encoder and drop any partial output."""
        proc, self._proc = self._proc, None
        if proc is not None:
            proc.kill()
            proc.wait()
        self._cleanup()

    def _cleanup(self) -> None:
        if self._workdir is not None:
            shutil.rmtree(self._workdir, ignore_errors=True)
            self._workdir = None


class AudioExport:
    """
    Records the master bus while the project plays once from the start.

    Usage:
        wav_bytes = AudioExport(engine).run(progress=print)
    """

    def __init__(self, engine: "AudioEngine", blocksize: int = AUDIO_CONFIG.playback_blocksize) -> None:
        self.engine = engine
        self.blocksize = blocksize
        self._stop_event = threading.Event()
        self._start_sample = 0
        self._duration = 0.0

    def stop(self) -> None:
        """End the export early; run() returns what was captured so far."""
        self._stop_event.set()

    @property
    def elapsed(self) -> float:
        """Seconds of audio captured since the shared start instant."""
        samples = self.engine.graph.current_sample - self._start_sample
        return max(0, samples) / self.engine.samplerate

    def _progress(self) -> float:
        if self._duration <= 0:
            return EXPORT_CONFIG.progress_cap
        fraction = min(self.elapsed / self._duration, EXPORT_CONFIG.progress_cap / 100)
        return fraction * 100

    def _begin(self) -> None:
        self._duration = self.engine.duration
        if self._duration <= 0:
            raise ExportEmptyError("nothing to export: no track loaded")
        with self.engine.lock:
            self.engine.start_master_capture()
            self._start_sample = self.engine.graph.current_sample
            self.engine.play(0.0)
        logger.info("Export started (%.2fs + %.2fs tail)", self._duration, EXPORT_CONFIG.tail_buffer)

    def _on_tick(self) -> None:
        """Hook called after each rendered block or clock poll."""

    def _drive(self, progress: Optional[ProgressCallback]) -> None:
        deadline = self._duration + EXPORT_CONFIG.tail_buffer
        next_report = 0.0

        if self.engine.output_active:
            while not self._stop_event.is_set() and self.elapsed < deadline:
                self._on_tick()
                if progress is not None:
                    progress(self._progress())
                time.sleep(self._poll_interval())
            return

        while not self._stop_event.is_set():
            remaining = self.engine.graph.seconds_to_samples(deadline) - (
                self.engine.graph.current_sample - self._start_sample)
            if remaining <= 0:
                break
            self.engine.render(min(self.blocksize, remaining))
            self._on_tick()
            if progress is not None and self.elapsed >= next_report:
                progress(self._progress())
                next_report = self.elapsed + EXPORT_CONFIG.poll_interval

    def _poll_interval(self) -> float:
        return EXPORT_CONFIG.poll_interval

    def _finish(self) -> bytes:
        with self.engine.lock:
            self.engine.stop()
            return self.engine.stop_master_capture()

    def _abort(self) -> None:
        with self.engine.lock:
            self.engine.stop()
            self.engine.master_recorder.stop()

    def run(self, progress: Optional[ProgressCallback] = None) -> bytes:
        """
        Play the whole project once and return the captured mix.

        Args:
            progress: Called with a percentage, capped at 99 until the end

        Returns:
            16-bit WAV bytes

        Raises:
            ExportEmptyError: if nothing was captured
        """
        self._begin()
        try:
            self._drive(progress)
        except BaseException:
            self._abort()
            raise
        wav = self._finish()
        if progress is not None:
            progress(100.0)
        logger.info("Audio export finished (%d bytes)", len(wav))
        return wav


class VideoExport(AudioExport):
    """
    Audio export plus a frame source rendered into one muxed container.

    Args:
        engine: The engine to record
        frames: Anything with a size and render(elapsed) -> RGB array
        fps: Frame rate of the video stream
        muxer_factory: Builds the muxer from (size, fps); defaults to FfmpegMuxer
    """

    def __init__(
        self,
        engine: "AudioEngine",
        frames: FrameSource,
        fps: int = EXPORT_CONFIG.video_fps,
        muxer_factory: Optional[Callable[[tuple[int, int], int], FfmpegMuxer]] = None,
        blocksize: int = AUDIO_CONFIG.playback_blocksize
    ) -> None:
        super().__init__(engine, blocksize)
        self.frames = frames
        self.fps = fps
        self._muxer_factory = muxer_factory or FfmpegMuxer
        self._muxer: Optional[FfmpegMuxer] = None
        self._next_frame = 0

    def _on_tick(self) -> None:
        # emit every frame whose timestamp the audio clock has reached
        elapsed = self.elapsed
        while self._next_frame / self.fps <= elapsed:
            self._muxer.write_frame(self.frames.render(self._next_frame / self.fps))
            self._next_frame += 1

    def _poll_interval(self) -> float:
        return min(EXPORT_CONFIG.poll_interval, 1.0 / self.fps)

    def run(self, progress: Optional[ProgressCallback] = None) -> bytes:
        """
        Play the whole project once and return the muxed video.

        Raises:
            ExportEmptyError: if no audio or no frames were captured
        """
        self._muxer = self._muxer_factory(self.frames.size, self.fps)
        self._next_frame = 0
        self._muxer.open()
        try:
            wav = super().run(progress)
            if self._muxer.frames_written == 0:
                raise ExportEmptyError()
        except BaseException:
            self._muxer.abort()
            raise
        data = self._muxer.finalize(wav)
        if not data:
            raise ExportEmptyError()
        logger.info("Video export finished (%d frames, %d bytes)", self._muxer.frames_written, len(data))
        return data
