import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from routes import archive, events_ws, jobs, recorder
from services.store import analysis_pipeline, auto_recorder

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    await auto_recorder.start()
    try:
        yield
    finally:
        logger.info("[app] Shutting down: cancelling jobs and closing recorder.")
        await auto_recorder.stop()
        await analysis_pipeline.aclose()


app = FastAPI(title="CourtCam API", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(jobs.router, prefix="/api")
app.include_router(recorder.router, prefix="/api")
app.include_router(archive.router, prefix="/api")
app.include_router(events_ws.router, prefix="/api")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
