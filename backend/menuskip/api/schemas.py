"""Pydantic schemas for API requests and responses."""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, conint, model_validator


# =============================================================================
# Analysis Schemas
# =============================================================================

class AnalyzeRequest(BaseModel):
    """Request to analyze a local video for interruptions."""
    video_path: str = Field(..., description="Path to local video file")
    strategy: Optional[Literal["template", "color"]] = Field(
        None, description="Matcher strategy (uses configured default if not provided)"
    )
    reference: Optional[str] = Field(
        None, description="Reference image path or http(s) URL (template strategy)"
    )
    sample_rate_hz: Optional[float] = Field(None, gt=0)
    process_width: Optional[int] = Field(None, gt=0)
    correlation_threshold: Optional[float] = Field(None, ge=0, le=1)
    min_area_fraction: Optional[float] = Field(None, ge=0, le=1)
    hsv_lower: Optional[List[conint(ge=0, le=255)]] = Field(None, min_length=3, max_length=3)
    hsv_upper: Optional[List[conint(ge=0, le=255)]] = Field(None, min_length=3, max_length=3)
    merge_gap_sec: Optional[float] = Field(None, ge=0)
    padding_sec: Optional[float] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_reference(self):
        if self.strategy == "template" and not self.reference:
            raise ValueError("Template strategy requires a reference image")
        return self


class ProgressResponse(BaseModel):
    """Latest per-frame progress snapshot."""
    processed_frames: int
    total_frames: int
    frames_per_second: float
    current_timestamp: float
    percent: float


class JobResponse(BaseModel):
    """Job response."""
    id: str
    video_path: str
    status: str
    message: Optional[str]
    progress: Optional[ProgressResponse]
    error: Optional[str]
    config: dict
    created_at: datetime
    started_at: Optional[datetime]
    completed_at: Optional[datetime]


class TimeRangeResponse(BaseModel):
    """A keep or remove range."""
    id: str
    start: float
    end: float
    duration: float
    kind: str


class TimelineResponse(BaseModel):
    """Bad and keep ranges for a completed job."""
    job_id: str
    bad_segments: List[TimeRangeResponse]
    keep_segments: List[TimeRangeResponse]
    total_duration: float
    removed_duration: float
    kept_duration: float
    interruption_count: int


# =============================================================================
# Health Check
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    opencv_version: str
    running_jobs: int
