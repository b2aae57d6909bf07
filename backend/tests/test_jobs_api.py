"""Tests for /api/jobs: submit, poll, cancel, archive."""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import pytest

from app.main import app
from models.job import JobState
from services.analysis_client import AnalysisClient
from services.analysis_pipeline import AnalysisPipeline
from services.archive import ArchiveLog

ANALYZE_OK = {
    "video_path": "out/abc123.mp4",
    "heatmap_paths": [],
    "heatmap_folder": "",
    "processing_time_seconds": 3.2,
    "stroke_counts": {"near": {"forehand": 3}, "far": {}},
}


def _remote(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/upload":
        return httpx.Response(200, json={"s3_key": "abc123", "estimated_time": 42.0})
    if request.url.path == "/analyze3":
        return httpx.Response(200, json=ANALYZE_OK)
    if request.url.path == "/fetch":
        return httpx.Response(200, content=b"processed-video")
    return httpx.Response(404)


@pytest.fixture
def pipeline(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AnalysisPipeline:
    client = AnalysisClient(
        base_url="http://analysis.test",
        client=httpx.AsyncClient(transport=httpx.MockTransport(_remote)),
    )
    pipeline = AnalysisPipeline(client=client, results_dir=tmp_path / "results", tick_seconds=0.01)
    monkeypatch.setattr("routes.jobs.analysis_pipeline", pipeline)
    monkeypatch.setattr("routes.jobs.archive_log", ArchiveLog(tmp_path / "archive_log.txt"))
    monkeypatch.setenv("COURTCAM_MEDIA_DIR", str(tmp_path))
    monkeypatch.setenv("COURTCAM_UPLOADS_DIR", str(tmp_path / "uploads"))
    return pipeline


def _api() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


def _video(tmp_path: Path) -> Path:
    path = tmp_path / "match.mov"
    path.write_bytes(b"raw-video")
    return path


@pytest.mark.asyncio
async def test_submit_poll_and_archive_job(pipeline: AnalysisPipeline, tmp_path: Path) -> None:
    async with _api() as client:
        created = await client.post("/api/jobs", json={"path": str(_video(tmp_path))})
        assert created.status_code == 202
        job_id = created.json()["job_id"]

        await asyncio.wait_for(pipeline.wait(job_id), timeout=2)

        status = await client.get(f"/api/jobs/{job_id}")
        assert status.status_code == 200
        body = status.json()
        assert body["state"] == "succeeded"
        assert body["failed"] is False
        assert body["estimated_duration_seconds"] == 42.0
        assert body["stroke_counts"] == {
            "near": {"forehand": 3, "backhand": 0},
            "far": {"forehand": 0, "backhand": 0},
        }
        assert body["summary"] == "Near - FH: 3, BH: 0\nFar - FH: 0, BH: 0"
        assert Path(body["result_file"]).read_bytes() == b"processed-video"

        result = await client.get(f"/api/jobs/{job_id}/result")
        assert result.status_code == 200
        assert result.content == b"processed-video"

        archived = await client.post(f"/api/jobs/{job_id}/archive", json={"name": "Saturday"})
        assert archived.status_code == 201
        assert archived.json()["saved"] is True
        assert archived.json()["key"] == "out/abc123.mp4"

        again = await client.post(f"/api/jobs/{job_id}/archive", json={"name": "Saturday"})
        assert again.json()["saved"] is False


@pytest.mark.asyncio
async def test_submit_invalid_file_returns_400(pipeline: AnalysisPipeline, tmp_path: Path) -> None:
    async with _api() as client:
        response = await client.post("/api/jobs", json={"path": str(tmp_path / "missing.mov")})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unknown_job_returns_404(pipeline: AnalysisPipeline) -> None:
    async with _api() as client:
        assert (await client.get("/api/jobs/nope")).status_code == 404
        assert (await client.delete("/api/jobs/nope")).status_code == 404


@pytest.mark.asyncio
async def test_cancel_job_reports_cancelled(pipeline: AnalysisPipeline, tmp_path: Path) -> None:
    async with _api() as client:
        created = await client.post("/api/jobs", json={"path": str(_video(tmp_path))})
        job_id = created.json()["job_id"]
        cancelled = await client.delete(f"/api/jobs/{job_id}")
        assert cancelled.status_code == 200
        assert cancelled.json()["state"] == "failed"
        assert cancelled.json()["failure"] == "cancelled"

        archived = await client.post(f"/api/jobs/{job_id}/archive", json={})
        assert archived.status_code == 409
        assert (await client.get(f"/api/jobs/{job_id}/result")).status_code == 409


@pytest.mark.asyncio
async def test_relative_path_resolves_inside_media_dir(pipeline: AnalysisPipeline, tmp_path: Path) -> None:
    _video(tmp_path)
    async with _api() as client:
        created = await client.post("/api/jobs", json={"path": "match.mov"})
    assert created.status_code == 202
    job = pipeline.get_job(created.json()["job_id"])
    assert job.source_file == (tmp_path / "match.mov").resolve()
    await asyncio.wait_for(pipeline.wait(job.id), timeout=2)


@pytest.mark.asyncio
async def test_paths_outside_media_dir_are_forbidden(pipeline: AnalysisPipeline, tmp_path: Path) -> None:
    outside = tmp_path.parent / f"{tmp_path.name}-outside.mov"
    outside.write_bytes(b"raw-video")
    try:
        async with _api() as client:
            absolute = await client.post("/api/jobs", json={"path": str(outside)})
            escaped = await client.post("/api/jobs", json={"path": f"../{outside.name}"})
    finally:
        outside.unlink()
    assert absolute.status_code == 403
    assert escaped.status_code == 403
    assert pipeline.active_job_id is None


@pytest.mark.asyncio
async def test_uploaded_file_is_staged_then_removed(pipeline: AnalysisPipeline, tmp_path: Path) -> None:
    async with _api() as client:
        response = await client.post(
            "/api/jobs/upload",
            files={"file": ("picked.mov", b"raw-video", "video/quicktime")},
        )
    assert response.status_code == 202
    job = pipeline.get_job(response.json()["job_id"])
    assert job.source_file.parent == tmp_path / "uploads"
    assert job.source_file.suffix == ".mov"
    assert job.owns_source is True

    await asyncio.wait_for(pipeline.wait(job.id), timeout=2)
    assert job.state is JobState.SUCCEEDED
    assert not job.source_file.exists()


@pytest.mark.asyncio
async def test_rejected_upload_leaves_no_staged_file(pipeline: AnalysisPipeline, tmp_path: Path) -> None:
    async with _api() as client:
        response = await client.post(
            "/api/jobs/upload",
            files={"file": ("empty.mov", b"", "video/quicktime")},
        )
    assert response.status_code == 400
    assert list((tmp_path / "uploads").iterdir()) == []
