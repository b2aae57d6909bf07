from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

SIDES = ("near", "far")
STROKES = ("forehand", "backhand")


class JobState(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    ANALYZING = "analyzing"
    FETCHING = "fetching"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED)


class FailureKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    UPLOAD_FAILED = "upload_failed"
    ANALYZE_FAILED = "analyze_failed"
    FETCH_FAILED = "fetch_failed"
    BUSY = "busy"
    CANCELLED = "cancelled"


class SideCounts(dict):
    """Stroke type -> count for one side of the court. Missing strokes read as 0."""

    def __missing__(self, stroke: str) -> int:
        return 0


class StrokeCounts(dict):
    """
    Side -> SideCounts. Missing sides read as an empty SideCounts, so
    ``counts["far"]["backhand"]`` is always an int.
    """

    def __init__(self, raw: dict[str, dict[str, int]] | None = None) -> None:
        super().__init__()
        for side, strokes in (raw or {}).items():
            self[side] = SideCounts({k: max(0, int(v)) for k, v in strokes.items()})

    def __missing__(self, side: str) -> SideCounts:
        return SideCounts()

    def count(self, side: str, stroke: str) -> int:
        return self[side][stroke]

    def summary(self) -> str:
        return "\n".join(
            f"{side.capitalize()} - FH: {self.count(side, 'forehand')}, BH: {self.count(side, 'backhand')}"
            for side in SIDES
        )


@dataclass
class AnalysisJob:
    id: str
    source_file: Path
    owns_source: bool = False                  # delete source_file once terminal
    state: JobState = JobState.IDLE
    remote_key: str | None = None              # set by the upload phase
    estimated_duration_seconds: float | None = None
    elapsed_seconds: float = 0.0               # cosmetic, driven by the progress tick
    processed_key: str | None = None           # video_path returned by analyze
    stroke_counts: StrokeCounts | None = None
    result_file: Path | None = None
    failure: FailureKind | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    def succeed(self, result_file: Path, stroke_counts: StrokeCounts) -> None:
        # result_file and stroke_counts are only ever assigned together, here.
        self.result_file = result_file
        self.stroke_counts = stroke_counts
        self.state = JobState.SUCCEEDED
        self.finished_at = datetime.now(timezone.utc)

    def fail(self, kind: FailureKind) -> None:
        self.failure = kind
        self.state = JobState.FAILED
        self.finished_at = datetime.now(timezone.utc)


@dataclass(frozen=True)
class JobProgress:
    job_id: str
    state: JobState
    elapsed_seconds: float
    estimated_duration_seconds: float | None
    failure: FailureKind | None = None

    @property
    def fraction(self) -> float:
        """Elapsed/estimate clamped to [0, 1]; the tick is only an approximation."""
        if not self.estimated_duration_seconds or self.estimated_duration_seconds <= 0:
            return 0.0
        return max(0.0, min(self.elapsed_seconds / self.estimated_duration_seconds, 1.0))


@dataclass(frozen=True)
class JobHandle:
    job_id: str
