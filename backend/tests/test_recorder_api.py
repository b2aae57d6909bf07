from __future__ import annotations

import asyncio
from pathlib import Path

import av
import httpx
import pytest

from app.main import app
from services.analysis_client import AnalysisClient
from services.auto_recorder import AutoRecorder
from services.court_classifier import CourtClassifier, encode_jpeg
from services.detection_debouncer import DetectionDebouncer
from services.frame_capture import FrameRecorder

SETTLE = 0.05
WEBM_MAGIC = b"\x1a\x45\xdf\xa3"


@pytest.fixture
def auto(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AutoRecorder:
    recorder = AutoRecorder(
        debouncer=DetectionDebouncer(settle_delay=SETTLE),
        recorder=FrameRecorder(output_dir=tmp_path),
    )
    monkeypatch.setattr("routes.recorder.auto_recorder", recorder)
    return recorder


def _api() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_detections_are_debounced(auto: AutoRecorder) -> None:
    async with _api() as client:
        response = await client.post("/api/recorder/detections", json={"is_court": True})
        assert response.status_code == 200
        assert response.json()["decision"] == "noop"
        assert response.json()["state"]["pending_signal"] is True

        await asyncio.sleep(SETTLE * 2)
        state = (await client.get("/api/recorder")).json()
        assert state["is_recording"] is True
        assert state["is_court"] is True


@pytest.mark.asyncio
async def test_manual_and_auto_toggle(auto: AutoRecorder) -> None:
    async with _api() as client:
        toggled = await client.put("/api/recorder/auto", json={"enabled": False})
        assert toggled.json()["auto_record_enabled"] is False

        started = await client.post("/api/recorder/manual", json={"recording": True})
        assert started.json()["decision"] == "start_recording"
        assert started.json()["state"]["is_recording"] is True

        stopped = await client.post("/api/recorder/manual", json={"recording": False})
        assert stopped.json()["decision"] == "stop_recording"
        assert stopped.json()["state"]["is_recording"] is False


@pytest.mark.asyncio
async def test_classify_unavailable_returns_502(auto: AutoRecorder, monkeypatch: pytest.MonkeyPatch) -> None:
    class _Unavailable:
        async def classify_jpeg(self, jpeg: bytes):
            return None

    monkeypatch.setattr("routes.recorder.get_court_classifier", lambda: _Unavailable())
    async with _api() as client:
        response = await client.post(
            "/api/recorder/classify",
            files={"file": ("frame.jpg", b"\xff\xd8\xff", "image/jpeg")},
        )
    assert response.status_code == 502


def _jpeg(width: int = 64, height: int = 48) -> bytes:
    frame = av.VideoFrame(width, height, "rgb24")
    frame.planes[0].update(b"\x40" * (width * height * 3))
    return encode_jpeg(frame, (width, height))


async def _post_frame(client: httpx.AsyncClient, data: bytes) -> httpx.Response:
    return await client.post("/api/recorder/frames", files={"file": ("frame.jpg", data, "image/jpeg")})


@pytest.mark.asyncio
async def test_posted_frames_are_written_while_recording(auto: AutoRecorder) -> None:
    async with _api() as client:
        await client.post("/api/recorder/manual", json={"recording": True})
        for _ in range(3):
            response = await _post_frame(client, _jpeg())
            assert response.status_code == 202
        await client.post("/api/recorder/manual", json={"recording": False})

    [recording] = auto.recorder.completed
    assert recording.read_bytes()[:4] == WEBM_MAGIC


@pytest.mark.asyncio
async def test_undecodable_frame_returns_400(auto: AutoRecorder) -> None:
    async with _api() as client:
        assert (await _post_frame(client, b"")).status_code == 400
        assert (await _post_frame(client, b"not a jpeg")).status_code == 400


@pytest.mark.asyncio
async def test_posted_frames_drive_classifier_and_auto_record(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = AnalysisClient(
        base_url="http://analysis.test",
        client=httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"is_court": True}))
        ),
    )
    auto = AutoRecorder(
        debouncer=DetectionDebouncer(settle_delay=SETTLE),
        recorder=FrameRecorder(output_dir=tmp_path),
        classifier=CourtClassifier(client, every_n_frames=1),
    )
    monkeypatch.setattr("routes.recorder.auto_recorder", auto)
    await auto.start()
    try:
        async with _api() as api:
            await _post_frame(api, _jpeg())
            for _ in range(50):
                if auto.recorder.is_recording:
                    break
                await asyncio.sleep(0.01)
            assert auto.recorder.is_recording
            await _post_frame(api, _jpeg())
    finally:
        await auto.stop()

    [recording] = auto.recorder.completed
    assert recording.read_bytes()[:4] == WEBM_MAGIC
