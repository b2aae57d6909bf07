"""Raw recording: encode camera frames to a local WebM file between start/stop decisions."""

from __future__ import annotations

import logging
import time
from pathlib import Path

import av
from av import VideoFrame

from models.detection import RecordingDecision
from services.settings import get_recordings_dir

logger = logging.getLogger(__name__)

RECORDING_FPS = 30
RECORDING_PIX_FMT = "yuv420p"  # libvpx requirement


class RecordingWriter:
    """
    Encodes av.VideoFrame instances to a WebM file.
    The container is opened on the first frame, so a writer that never
    receives a frame never creates a file.
    """

    def __init__(self, path: Path, *, fps: int = RECORDING_FPS) -> None:
        self._path = path
        self._fps = fps
        self._container: av.container.OutputContainer | None = None
        self._stream: av.video.stream.VideoStream | None = None
        self._frame_count = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def frame_count(self) -> int:
        return self._frame_count

    def _ensure_container(self, width: int, height: int) -> None:
        if self._container is not None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._container = av.open(str(self._path), "w", format="webm")
        self._stream = self._container.add_stream("libvpx", rate=self._fps)
        self._stream.width = width
        self._stream.height = height
        self._stream.pix_fmt = RECORDING_PIX_FMT

    def add_frame(self, frame: VideoFrame) -> None:
        if frame.width <= 0 or frame.height <= 0:
            return
        self._ensure_container(frame.width, frame.height)
        assert self._stream is not None and self._container is not None
        width, height = self._stream.width, self._stream.height
        if frame.format.name != RECORDING_PIX_FMT or (frame.width, frame.height) != (width, height):
            frame = frame.reformat(width=width, height=height, format=RECORDING_PIX_FMT)
        for packet in self._stream.encode(frame):
            self._container.mux(packet)
        self._frame_count += 1

    def close(self) -> Path | None:
        """Flush the encoder and close the file. Returns the path, or None if nothing was written."""
        if self._container is None or self._stream is None:
            return None
        for packet in self._stream.encode():
            self._container.mux(packet)
        self._container.close()
        self._container = None
        self._stream = None
        return self._path


class FrameRecorder:
    """
    Owns the current recording file. start()/stop() are driven either by
    debounced decisions (apply) or directly by manual controls.
    """

    def __init__(self, *, output_dir: Path | None = None, fps: int = RECORDING_FPS) -> None:
        self._output_dir = output_dir
        self._fps = fps
        self._writer: RecordingWriter | None = None
        self._completed: list[Path] = []

    @property
    def is_recording(self) -> bool:
        return self._writer is not None

    @property
    def completed(self) -> list[Path]:
        return list(self._completed)

    @property
    def current_path(self) -> Path | None:
        return self._writer.path if self._writer is not None else None

    def start(self) -> Path:
        if self._writer is not None:
            return self._writer.path
        output_dir = self._output_dir or get_recordings_dir()
        path = output_dir / f"court_{int(time.time())}.webm"
        suffix = 1
        while path.exists():
            path = output_dir / f"court_{int(time.time())}_{suffix}.webm"
            suffix += 1
        self._writer = RecordingWriter(path, fps=self._fps)
        logger.info("[recorder] Recording to %s", path)
        return path

    def stop(self) -> Path | None:
        writer, self._writer = self._writer, None
        if writer is None:
            return None
        path = writer.close()
        if path is None:
            logger.info("[recorder] Stopped with no frames; nothing written")
            return None
        self._completed.append(path)
        logger.info("[recorder] Saved %d frames to %s", writer.frame_count, path)
        return path

    def add_frame(self, frame: VideoFrame) -> None:
        if self._writer is not None:
            self._writer.add_frame(frame)

    def apply(self, decision: RecordingDecision) -> Path | None:
        """Start or stop for a decision; returns the file started or finished."""
        if decision is RecordingDecision.START_RECORDING:
            return self.start()
        if decision is RecordingDecision.STOP_RECORDING:
            return self.stop()
        return None
