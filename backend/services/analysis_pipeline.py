"""Upload -> analyze -> fetch orchestration for one video at a time."""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
import uuid
from pathlib import Path
from typing import Any, Callable

from models.job import (
    AnalysisJob,
    FailureKind,
    JobHandle,
    JobProgress,
    JobState,
    StrokeCounts,
)
from services.analysis_client import AnalysisClient, RemoteCallError
from services.settings import (
    ANALYZE_TOTAL_TIMEOUT_SECONDS,
    PROGRESS_TICK_SECONDS,
    get_results_dir,
)
from services.timers import DelayedAction

logger = logging.getLogger(__name__)

Notifier = Callable[[AnalysisJob], Any]


class AnalysisError(Exception):
    def __init__(self, kind: FailureKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind


class UnknownJobError(KeyError):
    pass


MAX_FINISHED_JOBS = 32

_PHASE_FAILURES = {
    JobState.UPLOADING: FailureKind.UPLOAD_FAILED,
    JobState.ANALYZING: FailureKind.ANALYZE_FAILED,
    JobState.FETCHING: FailureKind.FETCH_FAILED,
}


def _job_id(handle: JobHandle | str) -> str:
    return handle.job_id if isinstance(handle, JobHandle) else handle


def _discard_written(write: asyncio.Future[Path]) -> None:
    if write.cancelled() or write.exception() is not None:
        return
    path = write.result()
    path.unlink(missing_ok=True)
    logger.info("[pipeline] Discarded %s written after cancel", path.name)


class AnalysisPipeline:
    """
    Drive AnalysisJobs through the three remote phases.

    - submit() validates the file, starts the job in the background and returns a handle.
    - progress() is a non-blocking snapshot, safe to poll from anywhere on the loop.
    - cancel() is idempotent; a cancelled job ends in FAILED/CANCELLED and any
      response that arrives afterwards is discarded.
    - Only one job is in flight. With ``supersede=True`` (default) a new submit
      cancels the previous job; otherwise it is rejected with BUSY.
    - Each phase is a single attempt. Any failure is terminal for the job.
    """

    def __init__(
        self,
        *,
        client: AnalysisClient | None = None,
        results_dir: Path | None = None,
        notifier: Notifier | None = None,
        supersede: bool = True,
        tick_seconds: float = PROGRESS_TICK_SECONDS,
        analyze_timeout: float = ANALYZE_TOTAL_TIMEOUT_SECONDS,
        max_finished_jobs: int = MAX_FINISHED_JOBS,
    ) -> None:
        self._client = client
        self._results_dir = results_dir
        self._notifier = notifier
        self._supersede = supersede
        self._tick_seconds = tick_seconds
        self._analyze_timeout = analyze_timeout
        self._max_finished_jobs = max_finished_jobs
        self._jobs: dict[str, AnalysisJob] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._done: dict[str, asyncio.Event] = {}
        self._ticks: dict[str, DelayedAction] = {}
        self._active_id: str | None = None

    @property
    def client(self) -> AnalysisClient:
        if self._client is None:
            self._client = AnalysisClient()
        return self._client

    @property
    def results_dir(self) -> Path:
        return self._results_dir or get_results_dir()

    @property
    def active_job_id(self) -> str | None:
        return self._active_id

    def set_notifier(self, notifier: Notifier | None) -> None:
        self._notifier = notifier

    def submit(self, source_file: str | os.PathLike[str], *, owns_source: bool = False) -> JobHandle:
        """
        Start a job for ``source_file``. With ``owns_source=True`` the file is
        deleted once the job is terminal; on InvalidInput it is left to the caller.
        """
        path = Path(source_file)
        self._validate_source(path)

        active = self._jobs.get(self._active_id) if self._active_id else None
        if active is not None and not active.state.is_terminal:
            if not self._supersede:
                raise AnalysisError(FailureKind.BUSY, f"job {active.id} is still running")
            logger.info("[pipeline] New submission supersedes job %s", active.id)
            self.cancel(active.id)

        self._prune()
        job = AnalysisJob(id=uuid.uuid4().hex, source_file=path, owns_source=owns_source)
        self._jobs[job.id] = job
        self._done[job.id] = asyncio.Event()
        self._active_id = job.id
        self._tasks[job.id] = asyncio.create_task(self._run(job), name=f"analysis-{job.id}")
        logger.info("[pipeline] Submitted job %s for %s", job.id, path.name)
        return JobHandle(job.id)

    def progress(self, handle: JobHandle | str) -> JobProgress:
        job = self.get_job(handle)
        return JobProgress(
            job_id=job.id,
            state=job.state,
            elapsed_seconds=round(job.elapsed_seconds, 3),
            estimated_duration_seconds=job.estimated_duration_seconds,
            failure=job.failure,
        )

    def get_job(self, handle: JobHandle | str) -> AnalysisJob:
        job_id = _job_id(handle)
        try:
            return self._jobs[job_id]
        except KeyError:
            raise UnknownJobError(job_id) from None

    def cancel(self, handle: JobHandle | str) -> None:
        job = self.get_job(handle)
        if job.state.is_terminal:
            return
        self._finish_failed(job, FailureKind.CANCELLED)
        task = self._tasks.get(job.id)
        if task is not None and not task.done():
            # Best effort: the server may still complete the abandoned request.
            task.cancel()

    async def wait(self, handle: JobHandle | str) -> AnalysisJob:
        """Block until the job reaches a terminal state and return it."""
        job = self.get_job(handle)
        await self._done[job.id].wait()
        return job

    async def download(self, key: str) -> Path:
        """Fetch a previously processed video by key into a fresh local file."""
        data = await self.client.fetch(key)
        return await asyncio.to_thread(self._write_result, data)

    async def aclose(self) -> None:
        for job_id in list(self._jobs):
            self.cancel(job_id)
        tasks = [t for t in self._tasks.values() if not t.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if self._client is not None:
            await self._client.aclose()

    @staticmethod
    def _validate_source(path: Path) -> None:
        if not path.is_file():
            raise AnalysisError(FailureKind.INVALID_INPUT, f"{path} is not a file")
        if not os.access(path, os.R_OK):
            raise AnalysisError(FailureKind.INVALID_INPUT, f"{path} is not readable")
        if path.stat().st_size == 0:
            raise AnalysisError(FailureKind.INVALID_INPUT, f"{path} is empty")

    def _prune(self) -> None:
        """Forget the oldest finished jobs beyond ``max_finished_jobs``."""
        finished = [
            job_id
            for job_id, job in self._jobs.items()
            if job.state.is_terminal and job_id not in self._tasks
        ]
        for job_id in finished[: max(len(finished) - self._max_finished_jobs, 0)]:
            self._jobs.pop(job_id, None)
            self._done.pop(job_id, None)

    async def _run(self, job: AnalysisJob) -> None:
        try:
            await self._execute(job)
        except asyncio.CancelledError:
            if not job.state.is_terminal:
                self._finish_failed(job, FailureKind.CANCELLED)
            raise
        except Exception:  # noqa: BLE001
            logger.error("[pipeline] Job %s crashed in %s", job.id, job.state.value, exc_info=True)
            self._finish_failed(job, _PHASE_FAILURES.get(job.state, FailureKind.UPLOAD_FAILED))
        finally:
            self._stop_tick(job)
            self._done[job.id].set()
            self._tasks.pop(job.id, None)
            if job.owns_source:
                job.source_file.unlink(missing_ok=True)
            self._prune()

    async def _execute(self, job: AnalysisJob) -> None:
        client = self.client

        job.state = JobState.UPLOADING
        try:
            upload = await client.upload(job.source_file)
        except (RemoteCallError, OSError):
            logger.error("[pipeline] Upload failed for job %s", job.id, exc_info=True)
            self._finish_failed(job, FailureKind.UPLOAD_FAILED)
            return
        if job.state.is_terminal:
            return

        job.remote_key = upload.s3_key
        job.estimated_duration_seconds = upload.estimated_time
        job.elapsed_seconds = 0.0
        job.state = JobState.ANALYZING
        self._start_tick(job)
        logger.info(
            "[pipeline] Uploaded job %s key=%s estimate=%.1fs",
            job.id,
            job.remote_key,
            upload.estimated_time,
        )

        try:
            analysis = await asyncio.wait_for(
                client.analyze(job.remote_key), timeout=self._analyze_timeout
            )
        except (RemoteCallError, asyncio.TimeoutError):
            logger.error("[pipeline] Analyze failed for job %s", job.id, exc_info=True)
            self._finish_failed(job, FailureKind.ANALYZE_FAILED)
            return
        if job.state.is_terminal:
            return

        self._stop_tick(job)
        job.processed_key = analysis.video_path
        job.state = JobState.FETCHING
        logger.info(
            "[pipeline] Analyzed job %s in %.1fs -> %s",
            job.id,
            analysis.processing_time_seconds,
            analysis.video_path,
        )

        try:
            data = await client.fetch(analysis.video_path)
            # The write thread cannot be interrupted; shield it so a cancel
            # can still find and delete the file it produces.
            write = asyncio.ensure_future(asyncio.to_thread(self._write_result, data))
            try:
                result_file = await asyncio.shield(write)
            except asyncio.CancelledError:
                write.add_done_callback(_discard_written)
                raise
        except (RemoteCallError, OSError):
            logger.error("[pipeline] Fetch failed for job %s", job.id, exc_info=True)
            self._finish_failed(job, FailureKind.FETCH_FAILED)
            return
        if job.state.is_terminal:
            result_file.unlink(missing_ok=True)
            return

        job.succeed(result_file, StrokeCounts(analysis.stroke_counts))
        logger.info("[pipeline] Job %s succeeded: %s", job.id, result_file)
        await self._notify(job)

    def _finish_failed(self, job: AnalysisJob, kind: FailureKind) -> None:
        if job.state.is_terminal:
            return
        self._stop_tick(job)
        job.fail(kind)
        self._done[job.id].set()
        logger.warning("[pipeline] Job %s failed: %s", job.id, kind.value)

    def _start_tick(self, job: AnalysisJob) -> None:
        def tick() -> None:
            if job.state is JobState.ANALYZING:
                job.elapsed_seconds += self._tick_seconds

        self._ticks[job.id] = DelayedAction(
            self._tick_seconds, tick, repeat=True, name=f"progress-{job.id}"
        ).start()

    def _stop_tick(self, job: AnalysisJob) -> None:
        ticker = self._ticks.pop(job.id, None)
        if ticker is not None:
            ticker.cancel()

    def _write_result(self, data: bytes) -> Path:
        results_dir = self.results_dir
        results_dir.mkdir(parents=True, exist_ok=True)
        target = results_dir / f"processed_{uuid.uuid4().hex}.mp4"
        partial = target.with_suffix(".part")
        partial.write_bytes(data)
        os.replace(partial, target)
        return target

    async def _notify(self, job: AnalysisJob) -> None:
        if self._notifier is None:
            return
        try:
            result = self._notifier(job)
            if inspect.isawaitable(result):
                await result
        except Exception:  # noqa: BLE001
            logger.error("[pipeline] Completion notifier failed for job %s", job.id, exc_info=True)
