"""Auto-record controls: frames and detections in, start/stop decisions out."""

import asyncio
import logging
from typing import Any

from av.error import FFmpegError
from fastapi import APIRouter, File, HTTPException, UploadFile
from pydantic import BaseModel

from models.detection import DetectionSample, RecordingDecision
from services.court_classifier import decode_jpeg
from services.store import auto_recorder, get_court_classifier

router = APIRouter(prefix="/recorder", tags=["recorder"])
logger = logging.getLogger(__name__)


class DetectionRequest(BaseModel):
    is_court: bool


class AutoRecordRequest(BaseModel):
    enabled: bool


class ManualRecordRequest(BaseModel):
    recording: bool


class DecisionResponse(BaseModel):
    decision: RecordingDecision
    state: dict[str, Any]


async def _read_jpeg(file: UploadFile) -> bytes:
    jpeg = await file.read()
    if not jpeg:
        raise HTTPException(status_code=400, detail="Empty frame")
    return jpeg


@router.get("")
async def get_recorder_state() -> dict[str, Any]:
    return auto_recorder.state()


@router.post("/detections", response_model=DecisionResponse)
async def post_detection(body: DetectionRequest) -> DecisionResponse:
    decision = auto_recorder.observe(DetectionSample(is_court=body.is_court))
    return DecisionResponse(decision=decision, state=auto_recorder.state())


@router.post("/frames", status_code=202)
async def post_frame(file: UploadFile = File(...)) -> dict[str, Any]:
    """
    Ingest one camera frame (JPEG). The frame is appended to the active
    recording and every Nth frame is queued for court classification.
    """
    jpeg = await _read_jpeg(file)
    try:
        frame = await asyncio.to_thread(decode_jpeg, jpeg)
    except (FFmpegError, ValueError) as exc:
        raise HTTPException(status_code=400, detail="Frame is not a decodable JPEG") from exc
    auto_recorder.on_frame(frame)
    return auto_recorder.state()


@router.post("/classify", response_model=DecisionResponse)
async def classify_frame(file: UploadFile = File(...)) -> DecisionResponse:
    """Classify one JPEG frame remotely right away and feed the result to the debouncer."""
    jpeg = await _read_jpeg(file)
    sample = await get_court_classifier().classify_jpeg(jpeg)
    if sample is None:
        raise HTTPException(status_code=502, detail="Court classification unavailable")
    decision = auto_recorder.observe(sample)
    return DecisionResponse(decision=decision, state=auto_recorder.state())


@router.put("/auto")
async def set_auto_record(body: AutoRecordRequest) -> dict[str, Any]:
    auto_recorder.set_auto_record(body.enabled)
    return auto_recorder.state()


@router.post("/manual", response_model=DecisionResponse)
async def manual_record(body: ManualRecordRequest) -> DecisionResponse:
    logger.info("[recorder] Manual recording=%s", body.recording)
    decision = auto_recorder.manual(body.recording)
    return DecisionResponse(decision=decision, state=auto_recorder.state())
