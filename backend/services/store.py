"""Process-wide service instances shared by the HTTP routes."""

from __future__ import annotations

from typing import Any

from models.job import SIDES, STROKES, AnalysisJob
from services.analysis_pipeline import AnalysisPipeline
from services.archive import ArchiveLog
from services.auto_recorder import AutoRecorder
from services.court_classifier import CourtClassifier
from services.detection_debouncer import DetectionDebouncer
from services.event_hub import JOBS_CHANNEL, event_hub
from services.frame_capture import FrameRecorder

COMPLETED_TITLE = "Analysis Complete"
COMPLETED_BODY = "The video has been successfully analyzed."


def job_completed_event(job: AnalysisJob) -> dict[str, Any]:
    counts = job.stroke_counts
    return {
        "type": "job_completed",
        "job_id": job.id,
        "title": COMPLETED_TITLE,
        "body": COMPLETED_BODY,
        "result_file": str(job.result_file) if job.result_file else None,
        "stroke_counts": {
            side: {stroke: counts.count(side, stroke) for stroke in STROKES} for side in SIDES
        }
        if counts is not None
        else None,
    }


async def publish_job_completed(job: AnalysisJob) -> None:
    await event_hub.publish(JOBS_CHANNEL, job_completed_event(job))


analysis_pipeline = AnalysisPipeline(notifier=publish_job_completed)
archive_log = ArchiveLog()
court_classifier = CourtClassifier(analysis_pipeline.client)
auto_recorder = AutoRecorder(
    debouncer=DetectionDebouncer(),
    recorder=FrameRecorder(),
    classifier=court_classifier,
    hub=event_hub,
)


def get_court_classifier() -> CourtClassifier:
    return court_classifier
