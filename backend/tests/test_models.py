from datetime import datetime
from pathlib import Path

from models import (
    AnalysisJob,
    ArchiveEntry,
    DetectionSample,
    FailureKind,
    JobProgress,
    JobState,
    RecordingDecision,
    StrokeCounts,
)


def test_analysis_job_defaults() -> None:
    job = AnalysisJob(id="job-1", source_file=Path("clip.mov"))
    assert job.state is JobState.IDLE
    assert isinstance(job.created_at, datetime)
    assert job.remote_key is None
    assert job.estimated_duration_seconds is None
    assert job.elapsed_seconds == 0.0
    assert job.stroke_counts is None
    assert job.result_file is None
    assert job.failure is None


def test_job_succeed_sets_result_and_counts_together() -> None:
    job = AnalysisJob(id="job-1", source_file=Path("clip.mov"))
    counts = StrokeCounts({"near": {"forehand": 3}})
    job.succeed(Path("/tmp/processed.mp4"), counts)

    assert job.state is JobState.SUCCEEDED
    assert job.result_file == Path("/tmp/processed.mp4")
    assert job.stroke_counts is counts
    assert job.finished_at is not None


def test_job_fail_records_kind() -> None:
    job = AnalysisJob(id="job-1", source_file=Path("clip.mov"))
    job.fail(FailureKind.UPLOAD_FAILED)
    assert job.state is JobState.FAILED
    assert job.state.is_terminal
    assert job.failure is FailureKind.UPLOAD_FAILED
    assert job.result_file is None


def test_stroke_counts_missing_entries_read_as_zero() -> None:
    counts = StrokeCounts({"near": {"forehand": 3}, "far": {}})
    assert counts["near"]["forehand"] == 3
    assert counts["near"]["backhand"] == 0
    assert counts["far"]["backhand"] == 0
    assert counts["sideline"]["volley"] == 0
    assert counts.count("far", "forehand") == 0


def test_stroke_counts_summary() -> None:
    counts = StrokeCounts({"near": {"forehand": 3, "backhand": 1}, "far": {"forehand": 2}})
    assert counts.summary() == "Near - FH: 3, BH: 1\nFar - FH: 2, BH: 0"


def test_job_progress_fraction_is_clamped() -> None:
    over = JobProgress(job_id="j", state=JobState.ANALYZING, elapsed_seconds=50.0, estimated_duration_seconds=42.0)
    half = JobProgress(job_id="j", state=JobState.ANALYZING, elapsed_seconds=21.0, estimated_duration_seconds=42.0)
    unknown = JobProgress(job_id="j", state=JobState.UPLOADING, elapsed_seconds=0.0, estimated_duration_seconds=None)
    assert over.fraction == 1.0
    assert half.fraction == 0.5
    assert unknown.fraction == 0.0


def test_detection_sample_and_archive_entry() -> None:
    sample = DetectionSample(is_court=True)
    assert sample.is_court is True
    assert sample.timestamp > 0
    assert RecordingDecision.NO_OP.value == "noop"

    entry = ArchiveEntry(name="Morning hit", key="out/abc123.mp4")
    assert entry.notes == ""
