"""Analysis job REST API: submit, poll, cancel, archive."""

import asyncio
import logging
import shutil
import uuid
from pathlib import Path

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel

from models.job import SIDES, STROKES, AnalysisJob, FailureKind, JobState
from services.analysis_pipeline import AnalysisError, UnknownJobError
from services.archive import entry_for_job
from services.settings import get_media_dir, get_uploads_dir
from services.store import analysis_pipeline, archive_log

router = APIRouter(tags=["jobs"])
logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    FailureKind.INVALID_INPUT: 400,
    FailureKind.BUSY: 409,
}


class JobSubmitRequest(BaseModel):
    path: str


class JobSubmitResponse(BaseModel):
    job_id: str
    state: JobState


class JobStatusResponse(BaseModel):
    """Job status for polling. GET /api/jobs/{id}."""

    job_id: str
    state: JobState
    elapsed_seconds: float
    estimated_duration_seconds: float | None = None
    progress: float
    failed: bool = False
    failure: FailureKind | None = None
    result_file: str | None = None
    stroke_counts: dict[str, dict[str, int]] | None = None
    summary: str | None = None


class ArchiveRequest(BaseModel):
    name: str | None = None


class ArchiveResponse(BaseModel):
    saved: bool
    name: str
    key: str
    notes: str


def _get_job(job_id: str) -> AnalysisJob:
    try:
        return analysis_pipeline.get_job(job_id)
    except UnknownJobError:
        raise HTTPException(status_code=404, detail="Job not found") from None


def _status(job: AnalysisJob) -> JobStatusResponse:
    progress = analysis_pipeline.progress(job.id)
    counts = job.stroke_counts
    return JobStatusResponse(
        job_id=job.id,
        state=progress.state,
        elapsed_seconds=progress.elapsed_seconds,
        estimated_duration_seconds=progress.estimated_duration_seconds,
        progress=progress.fraction,
        failed=progress.state is JobState.FAILED,
        failure=progress.failure,
        result_file=str(job.result_file) if job.result_file else None,
        stroke_counts={side: {s: counts.count(side, s) for s in STROKES} for side in SIDES}
        if counts is not None
        else None,
        summary=counts.summary() if counts is not None else None,
    )


def _submit(path: Path, *, owns_source: bool = False) -> JobSubmitResponse:
    try:
        handle = analysis_pipeline.submit(path, owns_source=owns_source)
    except AnalysisError as exc:
        raise HTTPException(status_code=_ERROR_STATUS.get(exc.kind, 400), detail=str(exc)) from exc
    return JobSubmitResponse(job_id=handle.job_id, state=analysis_pipeline.progress(handle).state)


def _media_path(raw: str) -> Path:
    media_dir = get_media_dir().resolve()
    path = Path(raw)
    if not path.is_absolute():
        path = media_dir / path
    path = path.resolve()
    if not path.is_relative_to(media_dir):
        raise HTTPException(status_code=403, detail="Path is outside the media directory")
    return path


def _save_upload(file: UploadFile, target: Path) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("wb") as fh:
        shutil.copyfileobj(file.file, fh)


@router.post("/jobs", response_model=JobSubmitResponse, status_code=202)
async def submit_job(body: JobSubmitRequest) -> JobSubmitResponse:
    """Start analysing a video from the media directory. A running job is superseded."""
    logger.info("[jobs] POST /api/jobs path=%s", body.path)
    return _submit(_media_path(body.path))


@router.post("/jobs/upload", response_model=JobSubmitResponse, status_code=202)
async def submit_uploaded_job(file: UploadFile = File(...)) -> JobSubmitResponse:
    """Stage an uploaded video and submit it; the staged copy is removed when the job ends."""
    suffix = Path(file.filename or "").suffix or ".mov"
    target = get_uploads_dir() / f"{uuid.uuid4().hex}{suffix}"
    await asyncio.to_thread(_save_upload, file, target)
    logger.info("[jobs] Saved upload %s to %s", file.filename, target)
    try:
        return _submit(target, owns_source=True)
    except HTTPException:
        target.unlink(missing_ok=True)
        raise


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job(job_id: str) -> JobStatusResponse:
    return _status(_get_job(job_id))


@router.delete("/jobs/{job_id}", response_model=JobStatusResponse)
async def cancel_job(job_id: str) -> JobStatusResponse:
    job = _get_job(job_id)
    analysis_pipeline.cancel(job_id)
    return _status(job)


@router.get("/jobs/{job_id}/result")
async def get_job_result(job_id: str) -> FileResponse:
    job = _get_job(job_id)
    if job.state is not JobState.SUCCEEDED or job.result_file is None:
        raise HTTPException(status_code=409, detail="Job has no result yet")
    return FileResponse(job.result_file, media_type="video/mp4")


@router.post("/jobs/{job_id}/archive", response_model=ArchiveResponse, status_code=201)
async def archive_job(job_id: str, body: ArchiveRequest) -> ArchiveResponse:
    job = _get_job(job_id)
    if job.state is not JobState.SUCCEEDED:
        raise HTTPException(status_code=409, detail="Only succeeded jobs can be archived")
    entry = entry_for_job(job, body.name)
    saved = archive_log.append(entry)
    return ArchiveResponse(saved=saved, name=entry.name, key=entry.key, notes=entry.notes)
