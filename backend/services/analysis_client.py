"""HTTP client for the remote tennis analysis service."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from models.remote import AnalyzeResponse, CourtResponse, UploadResponse
from services.settings import (
    ANALYZE_BATCH_SIZE,
    ANALYZE_SAMPLE_RATE,
    ANALYZE_THRESH,
    REQUEST_TIMEOUT_SECONDS,
    get_api_base_url,
)

logger = logging.getLogger(__name__)

_M = TypeVar("_M", bound=BaseModel)


class RemoteCallError(Exception):
    """A request to the analysis service failed (transport, status or decoding)."""

    def __init__(self, endpoint: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"{endpoint}: {message}")
        self.endpoint = endpoint
        self.status_code = status_code


class AnalysisClient:
    """
    Thin async wrapper over the analysis service endpoints:

      POST /upload    multipart "file" -> {s3_key, estimated_time}
      GET  /analyze3  ?key&thresh&sample_rate&batch_size -> {video_path, stroke_counts, ...}
      GET  /fetch     ?key -> raw video bytes
      POST /isCourt   multipart "file" (JPEG) -> {is_court}

    Every non-200 status, transport error or undecodable body raises RemoteCallError.
    Nothing is retried.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self._base_url = (base_url or get_api_base_url()).rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._owns_client = client is None

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def upload(self, video: Path) -> UploadResponse:
        data = await asyncio.to_thread(video.read_bytes)
        ext = video.suffix.lstrip(".").lower() or "mp4"
        files = {"file": (video.name, data, f"video/{ext}")}
        response = await self._send("/upload", "POST", files=files)
        return self._decode("/upload", response, UploadResponse)

    async def analyze(self, key: str) -> AnalyzeResponse:
        params = {
            "key": key,
            "thresh": str(ANALYZE_THRESH),
            "sample_rate": str(ANALYZE_SAMPLE_RATE),
            "batch_size": str(ANALYZE_BATCH_SIZE),
        }
        response = await self._send("/analyze3", "GET", params=params)
        return self._decode("/analyze3", response, AnalyzeResponse)

    async def fetch(self, key: str) -> bytes:
        response = await self._send("/fetch", "GET", params={"key": key})
        if not response.content:
            raise RemoteCallError("/fetch", "empty body", status_code=response.status_code)
        return response.content

    async def is_court(self, jpeg: bytes) -> bool:
        files = {"file": ("frame.jpg", jpeg, "image/jpeg")}
        response = await self._send("/isCourt", "POST", files=files)
        return self._decode("/isCourt", response, CourtResponse).is_court

    async def _send(self, endpoint: str, method: str, **kwargs) -> httpx.Response:
        url = f"{self._base_url}{endpoint}"
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteCallError(endpoint, f"transport error: {exc!r}") from exc
        if response.status_code != 200:
            raise RemoteCallError(
                endpoint,
                f"unexpected status {response.status_code}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _decode(endpoint: str, response: httpx.Response, model: type[_M]) -> _M:
        try:
            return model.model_validate_json(response.content)
        except ValidationError as exc:
            raise RemoteCallError(
                endpoint, f"undecodable body: {exc}", status_code=response.status_code
            ) from exc
