from .archive import ARCHIVE_DELIMITER, ArchiveEntry
from .detection import DetectionSample, RecordingDecision
from .job import (
    AnalysisJob,
    FailureKind,
    JobHandle,
    JobProgress,
    JobState,
    StrokeCounts,
)

__all__ = [
    "AnalysisJob",
    "JobState",
    "FailureKind",
    "JobHandle",
    "JobProgress",
    "StrokeCounts",
    "DetectionSample",
    "RecordingDecision",
    "ArchiveEntry",
    "ARCHIVE_DELIMITER",
]
