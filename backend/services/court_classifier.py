from __future__ import annotations

import asyncio
import logging
from fractions import Fraction

import av
from av import VideoFrame
from av.error import FFmpegError

from models.detection import DetectionSample
from services.analysis_client import AnalysisClient, RemoteCallError
from services.settings import CLASSIFY_EVERY_N_FRAMES, CLASSIFY_FRAME_SIZE

logger = logging.getLogger(__name__)

_JPEG_PIX_FMT = "yuvj420p"


def encode_jpeg(frame: VideoFrame, size: tuple[int, int] = CLASSIFY_FRAME_SIZE) -> bytes:
    """Downscale ``frame`` and encode it as a single JPEG image."""
    width, height = size
    small = frame.reformat(width=width, height=height, format=_JPEG_PIX_FMT)
    codec = av.CodecContext.create("mjpeg", "w")
    codec.width = width
    codec.height = height
    codec.pix_fmt = _JPEG_PIX_FMT
    codec.time_base = Fraction(1, 30)
    packets = list(codec.encode(small)) + list(codec.encode(None))
    return b"".join(bytes(p) for p in packets)


def decode_jpeg(data: bytes) -> VideoFrame:
    """Decode one JPEG image into a VideoFrame. Raises FFmpegError or ValueError on bad input."""
    codec = av.CodecContext.create("mjpeg", "r")
    frames = list(codec.decode(av.Packet(data))) + list(codec.decode(None))
    if not frames:
        raise ValueError("no image in JPEG data")
    return frames[0]


class CourtClassifier:
    """
    Sample every Nth camera frame and ask the remote service whether a court is in view.

    Failures drop the sample: a missed detection only delays the debouncer,
    it never produces a decision on its own.
    """

    def __init__(
        self,
        client: AnalysisClient,
        *,
        every_n_frames: int = CLASSIFY_EVERY_N_FRAMES,
        frame_size: tuple[int, int] = CLASSIFY_FRAME_SIZE,
    ) -> None:
        if every_n_frames < 1:
            raise ValueError("every_n_frames must be >= 1")
        self._client = client
        self._every_n = every_n_frames
        self._frame_size = frame_size
        self._frame_count = 0

    @property
    def frame_count(self) -> int:
        return self._frame_count

    def should_sample(self) -> bool:
        """Count one incoming frame; True for frames 0, N, 2N, ..."""
        sample = self._frame_count % self._every_n == 0
        self._frame_count += 1
        return sample

    def reset(self) -> None:
        self._frame_count = 0

    async def classify(self, frame: VideoFrame) -> DetectionSample | None:
        try:
            jpeg = await asyncio.to_thread(encode_jpeg, frame, self._frame_size)
        except (FFmpegError, ValueError):
            logger.warning("[court_classifier] Failed to encode frame", exc_info=True)
            return None
        return await self.classify_jpeg(jpeg)

    async def classify_jpeg(self, jpeg: bytes) -> DetectionSample | None:
        try:
            is_court = await self._client.is_court(jpeg)
        except RemoteCallError as exc:
            logger.warning("[court_classifier] isCourt request failed: %s", exc)
            return None
        return DetectionSample(is_court=is_court)
