"""Archive log REST API."""

import logging

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel

from models.archive import ArchiveEntry
from services.analysis_client import RemoteCallError
from services.store import analysis_pipeline, archive_log

router = APIRouter(prefix="/archive", tags=["archive"])
logger = logging.getLogger(__name__)


class ArchiveEntryModel(BaseModel):
    name: str
    key: str
    notes: str = ""

    @classmethod
    def from_entry(cls, entry: ArchiveEntry) -> "ArchiveEntryModel":
        return cls(name=entry.name, key=entry.key, notes=entry.notes)


class ArchiveUpdateRequest(BaseModel):
    name: str | None = None
    notes: str | None = None


class DownloadResponse(BaseModel):
    key: str
    file: str


@router.get("", response_model=list[ArchiveEntryModel])
async def list_archive() -> list[ArchiveEntryModel]:
    return [ArchiveEntryModel.from_entry(e) for e in archive_log.load()]


@router.delete("", status_code=204)
async def clear_archive() -> Response:
    archive_log.clear()
    return Response(status_code=204)


@router.post("/{key:path}/download", response_model=DownloadResponse)
async def download_archived(key: str) -> DownloadResponse:
    """Fetch the processed video for an archived key into a fresh local file."""
    try:
        path = await analysis_pipeline.download(key)
    except RemoteCallError as exc:
        logger.warning("[archive] Download of %s failed: %s", key, exc)
        raise HTTPException(status_code=502, detail="Fetch failed") from exc
    return DownloadResponse(key=key, file=str(path))


@router.patch("/{key:path}", response_model=ArchiveEntryModel)
async def update_archive_entry(key: str, body: ArchiveUpdateRequest) -> ArchiveEntryModel:
    entry = archive_log.update(key, name=body.name, notes=body.notes)
    if entry is None:
        raise HTTPException(status_code=404, detail="Archive entry not found")
    return ArchiveEntryModel.from_entry(entry)
