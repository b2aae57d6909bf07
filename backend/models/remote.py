"""Decoded response contracts of the remote analysis service."""

from pydantic import BaseModel, Field, field_validator

from models.archive import ARCHIVE_DELIMITER


def _check_key(value: str) -> str:
    if not value:
        raise ValueError("key must be non-empty")
    if ARCHIVE_DELIMITER in value or "\n" in value or "\r" in value:
        raise ValueError("key contains a delimiter or newline")
    return value


class UploadResponse(BaseModel):
    s3_key: str
    estimated_time: float = Field(ge=0)

    @field_validator("s3_key")
    @classmethod
    def _valid_key(cls, v: str) -> str:
        return _check_key(v)


class AnalyzeResponse(BaseModel):
    video_path: str
    heatmap_paths: list[str] = Field(default_factory=list)
    heatmap_folder: str = ""
    processing_time_seconds: float = 0.0
    stroke_counts: dict[str, dict[str, int]] = Field(default_factory=dict)

    @field_validator("video_path")
    @classmethod
    def _valid_key(cls, v: str) -> str:
        return _check_key(v)


class CourtResponse(BaseModel):
    is_court: bool
