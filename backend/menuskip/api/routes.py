"""API routes."""
import logging

import cv2
from fastapi import APIRouter, Depends, HTTPException, Request

from menuskip.config import settings
from menuskip.pipeline.config import DetectionConfig
from menuskip.workers.job_runner import AnalysisJob, JobRunner, JobStatus
from menuskip.api.schemas import (
    AnalyzeRequest,
    HealthResponse,
    JobResponse,
    ProgressResponse,
    TimelineResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def get_job_runner(request: Request) -> JobRunner:
    """Job runner owned by the running application."""
    return request.app.state.job_runner


def _job_response(job: AnalysisJob) -> JobResponse:
    return JobResponse(
        id=job.id,
        video_path=job.video_path,
        status=job.status.value,
        message=job.message,
        progress=ProgressResponse(**job.progress.to_dict()) if job.progress else None,
        error=job.error,
        config=job.config.to_dict(),
        created_at=job.created_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
    )


def _get_job_or_404(runner: JobRunner, job_id: str) -> AnalysisJob:
    job = runner.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


# =============================================================================
# Health & System
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(runner: JobRunner = Depends(get_job_runner)):
    """Check API health."""
    running = sum(1 for job in runner.list_jobs() if runner.is_job_running(job.id))
    return HealthResponse(
        status="ok",
        opencv_version=cv2.__version__,
        running_jobs=running,
    )


# =============================================================================
# Analysis Jobs
# =============================================================================

@router.post("/analyze", response_model=JobResponse, status_code=202)
async def analyze_video(
    request: AnalyzeRequest,
    runner: JobRunner = Depends(get_job_runner),
):
    """Start a background analysis of a local video."""
    try:
        config = DetectionConfig.from_settings(
            settings,
            strategy=request.strategy,
            sample_rate_hz=request.sample_rate_hz,
            process_width=request.process_width,
            correlation_threshold=request.correlation_threshold,
            min_area_fraction=request.min_area_fraction,
            hsv_lower=request.hsv_lower,
            hsv_upper=request.hsv_upper,
            merge_gap_sec=request.merge_gap_sec,
            padding_sec=request.padding_sec,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if config.strategy == "template" and not request.reference:
        raise HTTPException(status_code=422, detail="Template strategy requires a reference image")

    job = runner.create_job(request.video_path, config, reference=request.reference)
    await runner.start_job(job.id)
    logger.info(f"Queued analysis job {job.id} for {request.video_path}")

    return _job_response(job)


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, runner: JobRunner = Depends(get_job_runner)):
    """Get job status and progress."""
    return _job_response(_get_job_or_404(runner, job_id))


@router.get("/jobs/{job_id}/timeline", response_model=TimelineResponse)
async def get_job_timeline(job_id: str, runner: JobRunner = Depends(get_job_runner)):
    """Get the bad/keep timeline of a completed job."""
    job = _get_job_or_404(runner, job_id)

    if job.status != JobStatus.COMPLETED or job.result is None:
        raise HTTPException(
            status_code=409,
            detail=f"Job is {job.status.value}, timeline not available",
        )

    return TimelineResponse(job_id=job.id, **job.result.to_dict())


@router.post("/jobs/{job_id}/cancel", response_model=JobResponse)
async def cancel_job(job_id: str, runner: JobRunner = Depends(get_job_runner)):
    """Cancel a pending or running job."""
    job = _get_job_or_404(runner, job_id)

    if not await runner.cancel_job(job_id):
        raise HTTPException(status_code=409, detail=f"Job is already {job.status.value}")

    return _job_response(job)
