"""Processing orchestrator: a bounded worker pool driving the job state machine.

Each job runs on one worker:
queued -> active (vision call, retried) -> tracing (calibrate + refine)
-> generating (export + store) -> completed. Any failure ends in ``failed``
and flips the upload to FAILED.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from services.config import PipelineSettings
from services.errors import JobNotFound, JobTimeout, UpstreamServiceFailure, describe_failure
from services.foam_geometry.cut_file_service import CutFileService
from services.foam_geometry.models import Calibration, CalibrationMethod, InnerPath, Outline
from services.foam_geometry.utils.calibration import calibration_from_reference, percent_to_inches
from services.foam_geometry.utils.refinement import (
    INCH_REFINEMENT_PARAMS,
    CategoryRefinementParams,
    refine_by_category,
)
from services.processing.job_store import JobStore
from services.processing.jobs import CalibrationHint, JobState, ProcessingJob
from services.processing.upload_store import UploadStore
from services.processing.vision_client import TraceResult, VisionClient
from services.progress_manager import ProgressManager

logger = logging.getLogger(__name__)

REMOVED_REASON = "Job removed from the queue before processing started"
INTERRUPTED_REASON = "Worker stopped before the job finished"


class ProcessingOrchestrator:
    def __init__(
        self,
        vision_client: VisionClient,
        upload_store: UploadStore,
        job_store: JobStore,
        cut_files: CutFileService,
        settings: PipelineSettings,
        progress_manager: Optional[ProgressManager] = None,
        refinement_params: CategoryRefinementParams = INCH_REFINEMENT_PARAMS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.vision_client = vision_client
        self.upload_store = upload_store
        self.job_store = job_store
        self.cut_files = cut_files
        self.settings = settings
        self.progress_manager = progress_manager
        self.refinement_params = refinement_params
        self._sleep = sleep

        self.jobs: Dict[str, ProcessingJob] = {}
        self._upload_jobs: Dict[str, str] = {}
        self._queue: "asyncio.Queue[str]" = asyncio.Queue()
        self._workers: List[asyncio.Task] = []
        self._submit_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._workers:
            return
        await self._recover()
        for index in range(self.settings.worker_concurrency):
            self._workers.append(asyncio.create_task(self._worker(index), name=f"processing-worker-{index}"))
        logger.info("Processing orchestrator started with %d workers", len(self._workers))

    async def stop(self) -> None:
        workers, self._workers = self._workers, []
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        # Queued jobs stay on the queue for the next start; cancelled in-flight ones cannot resume.
        for job in list(self.jobs.values()):
            if job.state is not JobState.QUEUED and not job.state.is_terminal:
                await self._fail(job, UpstreamServiceFailure(INTERRUPTED_REASON))
        logger.info("Processing orchestrator stopped")

    async def join(self) -> None:
        """Wait until every enqueued job has been handled."""
        await self._queue.join()

    async def _recover(self) -> None:
        loop = asyncio.get_event_loop()
        stored = await loop.run_in_executor(None, self.job_store.load_all)
        for job in sorted(stored.values(), key=lambda j: j.created_at):
            if job.id in self.jobs:
                continue
            self.jobs[job.id] = job
            self._upload_jobs[job.upload_id] = job.id
            if job.state is JobState.QUEUED:
                self._queue.put_nowait(job.id)
            elif not job.state.is_terminal:
                # No cooperative resume: in-flight work is lost on restart.
                await self._fail(job, UpstreamServiceFailure(INTERRUPTED_REASON))
        if stored:
            logger.info("Recovered %d stored jobs", len(stored))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def submit(
        self,
        upload_id: str,
        image_ref: str,
        calibration_hint: Optional[CalibrationHint] = None,
    ) -> str:
        """Queue an upload for processing and return the job id.

        A running job or a completed one for the same upload is returned
        instead of starting another.
        """
        async with self._submit_lock:
            existing = self.jobs.get(self._upload_jobs.get(upload_id, ""))
            if existing is not None and existing.state is not JobState.FAILED:
                logger.info("Upload %s already has job %s (%s)", upload_id, existing.id, existing.state.value)
                return existing.id

            job = ProcessingJob(
                id=uuid4().hex,
                upload_id=upload_id,
                image_ref=image_ref,
                calibration_hint=calibration_hint,
            )
            self.jobs[job.id] = job
            self._upload_jobs[upload_id] = job.id

            loop = asyncio.get_event_loop()
            ppi = calibration_hint.pixels_per_inch if calibration_hint else None
            await loop.run_in_executor(None, self.upload_store.register, upload_id, image_ref)
            await loop.run_in_executor(None, self.upload_store.mark_processing, upload_id, job.id, ppi)
            await self._persist(job)
            self._queue.put_nowait(job.id)

        logger.info("Job %s queued for upload %s", job.id, upload_id)
        await self._notify(job)
        return job.id

    def get_status(self, job_id: str) -> Dict[str, Any]:
        job = self.jobs.get(job_id)
        if job is None:
            raise JobNotFound(f"Job not found: {job_id}")
        return job.status()

    async def remove(self, job_id: str) -> bool:
        """Remove a queued job. In-flight and finished jobs are left alone."""
        job = self.jobs.get(job_id)
        if job is None:
            raise JobNotFound(f"Job not found: {job_id}")
        if job.state is not JobState.QUEUED:
            return False
        job.fail(REMOVED_REASON, "job_removed", "The job was removed before processing. Please re-submit the upload.")
        await self._persist(job)
        await self._mark_upload_failed(job, REMOVED_REASON)
        await self._notify(job)
        logger.info("Job %s removed from the queue", job.id)
        return True

    async def wait_for(self, job_id: str, timeout: Optional[float] = None, poll_interval: float = 0.5) -> Dict[str, Any]:
        """Poll until the job is terminal; raise JobTimeout once the budget runs out.

        The timeout is client-side only and leaves the job running.
        """
        budget = self.settings.status_poll_timeout_seconds if timeout is None else timeout
        loop = asyncio.get_event_loop()
        deadline = loop.time() + budget
        while True:
            status = self.get_status(job_id)
            if status["state"] in (JobState.COMPLETED.value, JobState.FAILED.value):
                return status
            if loop.time() >= deadline:
                raise JobTimeout(f"Job {job_id} still {status['state']} after {budget:.1f}s")
            await asyncio.sleep(poll_interval)

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    async def _worker(self, index: int) -> None:
        while True:
            job_id = await self._queue.get()
            try:
                job = self.jobs.get(job_id)
                if job is None or job.state is not JobState.QUEUED:
                    continue
                logger.info("Worker %d claimed job %s", index, job_id)
                await self._run(job)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Worker %d crashed while handling job %s", index, job_id)
            finally:
                self._queue.task_done()

    async def _run(self, job: ProcessingJob) -> None:
        loop = asyncio.get_event_loop()
        try:
            await self._advance(job, JobState.ACTIVE)
            trace = await self._trace_with_retry(job)

            await self._advance(job, JobState.TRACING)
            outlines, calibration = await loop.run_in_executor(None, self._prepare_outlines, job, trace)

            await self._advance(job, JobState.GENERATING)
            artifacts = await self.cut_files.export(outlines, None, None, upload_id=job.upload_id)
            job.report_progress(95.0)
            await self._notify(job)

            calibration_info = {"pixelsPerInch": calibration.pixels_per_inch, "method": calibration.method.value}
            outline_rows = [outline.to_dict() for outline in outlines]
            await loop.run_in_executor(
                None,
                self.upload_store.mark_processed,
                job.upload_id,
                artifacts,
                calibration_info,
                trace.raw,
            )

            job.complete({"outlines": outline_rows, "calibration": calibration_info, **artifacts})
            await self._persist(job)
            await self._notify(job)
            logger.info("Job %s completed after %d attempt(s)", job.id, job.attempts)
        except Exception as exc:
            await self._fail(job, exc)

    async def _advance(self, job: ProcessingJob, state: JobState) -> None:
        job.transition(state)
        logger.info("Job %s -> %s (%.0f%%)", job.id, state.value, job.progress)
        await self._persist(job)
        await self._notify(job)

    async def _trace_with_retry(self, job: ProcessingJob) -> TraceResult:
        max_attempts = max(1, self.settings.max_attempts)
        for attempt in range(1, max_attempts + 1):
            job.attempts = attempt
            try:
                return await self.vision_client.trace_outlines(job.image_ref)
            except Exception as exc:
                failure = exc if isinstance(exc, UpstreamServiceFailure) else UpstreamServiceFailure(str(exc))
                if attempt >= max_attempts:
                    if failure is exc:
                        raise
                    raise failure from exc
                delay = self.settings.backoff_base_seconds * (2 ** (attempt - 1))
                logger.warning(
                    "Job %s: vision call failed on attempt %d/%d (%s); retrying in %.1fs",
                    job.id,
                    attempt,
                    max_attempts,
                    failure,
                    delay,
                )
                await self._sleep(delay)
        raise UpstreamServiceFailure("Vision call was never attempted")

    def _resolve_calibration(self, hint: Optional[CalibrationHint], trace: TraceResult) -> Tuple[Calibration, int, int]:
        width = (hint.image_width if hint else None) or trace.image_width or self.settings.default_image_width
        height = (hint.image_height if hint else None) or trace.image_height or self.settings.default_image_height
        if hint is not None and hint.pixels_per_inch is not None:
            return Calibration(hint.pixels_per_inch, CalibrationMethod.MANUAL), width, height
        if trace.reference is not None:
            return calibration_from_reference(trace.reference, width, height), width, height
        return Calibration(self.settings.default_pixels_per_inch, CalibrationMethod.MANUAL), width, height

    def _prepare_outlines(self, job: ProcessingJob, trace: TraceResult) -> Tuple[List[Outline], Calibration]:
        """Calibrate percent-space outlines into inches and refine them."""
        calibration, width, height = self._resolve_calibration(job.calibration_hint, trace)
        prepared: List[Outline] = []
        for traced in trace.outlines:
            outer = percent_to_inches(traced.outer, width, height, calibration)
            refined = refine_by_category(outer, traced.category, traced.item_name, self.refinement_params)
            if len(refined) < 3:
                logger.warning("Job %s: refinement collapsed outline %s; keeping calibrated trace", job.id, traced.id)
                refined = outer
            inners = [
                InnerPath(id=inner.id, points=percent_to_inches(inner.points, width, height, calibration))
                for inner in traced.inners
            ]
            prepared.append(
                Outline(
                    id=traced.id,
                    outer=refined,
                    inners=inners,
                    depth=traced.depth,
                    item_name=traced.item_name,
                    category=traced.category,
                )
            )
        return prepared, calibration

    async def _fail(self, job: ProcessingJob, exc: BaseException) -> None:
        if job.state.is_terminal:
            logger.error("Job %s already %s; dropping late failure: %s", job.id, job.state.value, exc)
            return
        info = describe_failure(exc)
        job.fail(info["error"], info["errorCategory"], info["message"])
        logger.error("Job %s failed (%s): %s", job.id, info["errorCategory"], info["error"])
        try:
            await self._persist(job)
        except Exception as persist_exc:
            logger.error("Could not persist failure of job %s: %s", job.id, persist_exc)
        await self._mark_upload_failed(job, info["error"])
        await self._notify(job)

    async def _mark_upload_failed(self, job: ProcessingJob, reason: str) -> None:
        loop = asyncio.get_event_loop()
        try:
            await loop.run_in_executor(None, self.upload_store.mark_failed, job.upload_id, reason)
        except Exception as exc:
            logger.error("Could not mark upload %s as failed: %s", job.upload_id, exc)

    async def _persist(self, job: ProcessingJob) -> None:
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self.job_store.save, job.to_dict())

    async def _notify(self, job: ProcessingJob) -> None:
        if self.progress_manager is None:
            return
        try:
            await self.progress_manager.send_job_update(job.status())
        except Exception as exc:
            logger.warning("Progress broadcast for job %s failed: %s", job.id, exc)
