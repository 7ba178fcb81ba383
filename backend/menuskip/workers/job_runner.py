"""Background analysis job runner using asyncio."""
import asyncio
import enum
import logging
import traceback
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from menuskip.pipeline.cancellation import CancellationToken
from menuskip.pipeline.config import DetectionConfig
from menuskip.pipeline.errors import AnalysisCancelledError
from menuskip.pipeline.matchers import build_matcher
from menuskip.pipeline.media import MediaSource, OpenCVMediaSource, ReferenceImageLoader
from menuskip.pipeline.progress import ProcessingProgress
from menuskip.pipeline.runner import DetectionPipeline
from menuskip.pipeline.segments import TimelineResult

logger = logging.getLogger(__name__)


class JobStatus(str, enum.Enum):
    """Job status enumeration."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


FINISHED_STATUSES = {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AnalysisJob:
    """One analysis request and its outcome."""
    id: str
    video_path: str
    config: DetectionConfig
    reference: Optional[str] = None

    status: JobStatus = JobStatus.PENDING
    message: Optional[str] = None
    progress: Optional[ProcessingProgress] = None
    result: Optional[TimelineResult] = None
    error: Optional[str] = None

    created_at: datetime = field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    cancel_token: CancellationToken = field(default_factory=CancellationToken, repr=False)

    @property
    def is_finished(self) -> bool:
        return self.status in FINISHED_STATUSES


class JobRunner:
    """Async background runner for analysis jobs. Jobs live in memory only."""

    def __init__(
        self,
        source_factory: Callable[[str], MediaSource] = OpenCVMediaSource,
        reference_loader: Optional[ReferenceImageLoader] = None,
        max_finished_jobs: int = 100,
    ):
        self._source_factory = source_factory
        self._reference_loader = reference_loader or ReferenceImageLoader()
        self._max_finished_jobs = max_finished_jobs
        self._jobs: Dict[str, AnalysisJob] = {}
        self._running_jobs: Dict[str, asyncio.Task] = {}

    def create_job(
        self,
        video_path: str,
        config: DetectionConfig,
        reference: Optional[str] = None,
    ) -> AnalysisJob:
        """Register a new pending job."""
        job = AnalysisJob(
            id=uuid.uuid4().hex,
            video_path=str(video_path),
            config=config,
            reference=reference,
        )
        self._jobs[job.id] = job
        self._evict_finished()
        return job

    def get_job(self, job_id: str) -> Optional[AnalysisJob]:
        return self._jobs.get(job_id)

    def list_jobs(self) -> List[AnalysisJob]:
        return sorted(self._jobs.values(), key=lambda j: j.created_at)

    async def start_job(self, job_id: str) -> bool:
        """
        Start a pending job in the background.

        Returns:
            True if job started successfully
        """
        if job_id in self._running_jobs:
            logger.warning(f"Job {job_id} is already running")
            return False

        job = self._jobs.get(job_id)
        if not job:
            logger.error(f"Job {job_id} not found")
            return False

        if job.status != JobStatus.PENDING:
            logger.warning(f"Job {job_id} is {job.status.value}, not starting")
            return False

        task = asyncio.create_task(self._run_job(job))
        self._running_jobs[job_id] = task

        return True

    async def _run_job(self, job: AnalysisJob):
        """Run a job with error handling and status updates."""
        job.status = JobStatus.RUNNING
        job.started_at = _utcnow()
        job.message = "Starting..."

        def update_progress(progress: ProcessingProgress):
            job.progress = progress
            job.message = f"Scanned {progress.processed_frames}/{progress.total_frames} frames"

        try:
            reference = None
            if job.reference:
                job.message = "Loading reference image..."
                reference = await self._reference_loader.load(job.reference)

            matcher = build_matcher(job.config, reference)
            pipeline = DetectionPipeline(matcher, job.config)

            job.message = "Opening video..."
            source = await asyncio.to_thread(self._source_factory, job.video_path)
            try:
                result = await pipeline.analyze(
                    source,
                    progress_callback=update_progress,
                    cancel_token=job.cancel_token,
                )
            finally:
                close = getattr(source, "close", None)
                if close is not None:
                    # May block until a timed-out read returns
                    await asyncio.to_thread(close)

            job.result = result
            job.status = JobStatus.COMPLETED
            job.message = f"Found {result.interruption_count} interruptions"
            job.completed_at = _utcnow()

            logger.info(f"Job {job.id} completed successfully")

        except (AnalysisCancelledError, asyncio.CancelledError):
            job.status = JobStatus.CANCELLED
            job.message = "Job cancelled"
            job.completed_at = _utcnow()
            logger.info(f"Job {job.id} was cancelled")

        except Exception as e:
            error_msg = str(e)
            error_trace = traceback.format_exc()
            logger.error(f"Job {job.id} failed: {error_msg}\n{error_trace}")

            job.status = JobStatus.FAILED
            job.message = f"Failed: {error_msg}"
            job.error = f"{type(e).__name__}: {error_msg}"
            job.completed_at = _utcnow()

        finally:
            self._running_jobs.pop(job.id, None)

    async def wait_for_job(self, job_id: str) -> Optional[AnalysisJob]:
        """Wait until a running job finishes and return it."""
        task = self._running_jobs.get(job_id)
        if task:
            await asyncio.gather(task, return_exceptions=True)
        return self._jobs.get(job_id)

    async def cancel_job(self, job_id: str) -> bool:
        """Request cancellation; the run stops at its next frame."""
        job = self._jobs.get(job_id)
        if not job or job.is_finished:
            return False

        job.cancel_token.cancel()
        if job.status == JobStatus.PENDING and job_id not in self._running_jobs:
            job.status = JobStatus.CANCELLED
            job.message = "Job cancelled"
            job.completed_at = _utcnow()
        return True

    def is_job_running(self, job_id: str) -> bool:
        """Check if a job is currently running."""
        return job_id in self._running_jobs

    def _evict_finished(self):
        finished = [j for j in self.list_jobs() if j.is_finished]
        excess = len(finished) - self._max_finished_jobs
        for job in finished[:max(0, excess)]:
            del self._jobs[job.id]

    async def shutdown(self):
        """Cancel all running jobs."""
        for job_id, task in self._running_jobs.items():
            self._jobs[job_id].cancel_token.cancel()
            task.cancel()

        if self._running_jobs:
            await asyncio.gather(
                *self._running_jobs.values(),
                return_exceptions=True
            )

        self._running_jobs.clear()
