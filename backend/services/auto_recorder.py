from __future__ import annotations

import asyncio
import logging
from typing import Any

from av import VideoFrame

from models.detection import DetectionSample, RecordingDecision
from services.court_classifier import CourtClassifier
from services.detection_debouncer import DetectionDebouncer
from services.event_hub import RECORDER_CHANNEL, EventHub
from services.frame_capture import FrameRecorder

logger = logging.getLogger(__name__)


class AutoRecorder:
    """
    Connects a frame source to the recorder.

    on_frame() is called for every camera frame: the frame is written to the
    active recording (if any) and every Nth frame is queued for court
    classification. The classifier worker pushes samples straight into the
    debouncer, whose decisions start/stop the recorder and are published on
    the recorder channel of the event hub.
    """

    def __init__(
        self,
        *,
        debouncer: DetectionDebouncer,
        recorder: FrameRecorder,
        classifier: CourtClassifier | None = None,
        hub: EventHub | None = None,
    ) -> None:
        self._debouncer = debouncer
        self._recorder = recorder
        self._classifier = classifier
        self._hub = hub
        self._frame_q: asyncio.Queue[VideoFrame] | None = None
        self._worker: asyncio.Task[None] | None = None
        debouncer.add_listener(self._on_decision)

    @property
    def debouncer(self) -> DetectionDebouncer:
        return self._debouncer

    @property
    def recorder(self) -> FrameRecorder:
        return self._recorder

    @property
    def classifier(self) -> CourtClassifier | None:
        return self._classifier

    def state(self) -> dict[str, Any]:
        current = self._recorder.current_path
        return {
            "auto_record_enabled": self._debouncer.auto_record_enabled,
            "is_recording": self._recorder.is_recording,
            "is_court": self._debouncer.last_stable_signal,
            "pending_signal": self._debouncer.pending_signal,
            "last_decision": self._debouncer.last_decision.value,
            "current_file": str(current) if current else None,
        }

    async def start(self) -> None:
        if self._worker is not None or self._classifier is None:
            return
        self._frame_q = asyncio.Queue(maxsize=1)
        self._worker = asyncio.create_task(self._run(), name="court-classifier")

    async def stop(self) -> None:
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        self._frame_q = None
        self._debouncer.close()
        self._recorder.stop()

    def on_frame(self, frame: VideoFrame) -> None:
        self._recorder.add_frame(frame)
        if self._classifier is None or self._frame_q is None:
            return
        if not self._classifier.should_sample():
            return
        # latest-wins: a slow classifier only ever sees the newest frame
        if self._frame_q.full():
            try:
                _ = self._frame_q.get_nowait()
            except asyncio.QueueEmpty:
                pass
        try:
            self._frame_q.put_nowait(frame)
        except asyncio.QueueFull:
            pass

    def observe(self, sample: DetectionSample | bool) -> RecordingDecision:
        return self._debouncer.observe(sample)

    def set_auto_record(self, enabled: bool) -> None:
        self._debouncer.set_auto_record(enabled)

    def manual(self, recording: bool) -> RecordingDecision:
        """User start/stop: applied immediately, never debounced."""
        decision = self._debouncer.manual_start() if recording else self._debouncer.manual_stop()
        self._apply(decision, source="manual")
        return decision

    async def _run(self) -> None:
        assert self._frame_q is not None and self._classifier is not None
        while True:
            frame = await self._frame_q.get()
            sample = await self._classifier.classify(frame)
            if sample is not None:
                self._debouncer.observe(sample)

    def _on_decision(self, decision: RecordingDecision) -> None:
        self._apply(decision, source="auto")

    def _apply(self, decision: RecordingDecision, *, source: str) -> None:
        if decision is RecordingDecision.NO_OP:
            return
        path = self._recorder.apply(decision)
        logger.info("[auto_recorder] %s (%s) %s", decision.value, source, path)
        if self._hub is not None:
            self._hub.publish_nowait(
                RECORDER_CHANNEL,
                {
                    "type": decision.value,
                    "source": source,
                    "file": str(path) if path else None,
                },
            )
