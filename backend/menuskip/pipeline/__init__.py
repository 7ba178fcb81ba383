# Detection pipeline - menu and loading screen removal
"""
Detection Pipeline: Interruption Timeline Builder

Scans a video for the visual signature of a recurring interruption (menus,
loading screens) and converts the matches into a timeline of ranges to
remove and ranges to keep.

Pipeline stages:
1. Sampling: Seek the source at a fixed stride and read each frame
2. Matching: Template correlation or colour/shape heuristic per frame
3. Progress: One telemetry snapshot per sampled frame
4. Grouping: Merge nearby detections into padded bad segments
5. Inversion: Derive keep segments so bad + keep tile the timeline
"""

from .cancellation import CancellationToken
from .config import DetectionConfig, DEFAULT_DETECTION_CONFIG
from .errors import (
    DetectionError,
    MediaLoadError,
    SeekTimeoutError,
    FrameDecodeError,
    ReferenceImageLoadError,
    AnalysisCancelledError,
    PipelineBusyError,
)
from .matchers import FrameMatcher, TemplateMatcher, ColorShapeMatcher, build_matcher
from .media import MediaSource, OpenCVMediaSource, ReferenceImageLoader
from .progress import ProcessingProgress, ProgressReporter
from .runner import DetectionPipeline
from .segments import (
    DetectionEvent,
    DetectionKind,
    SegmentKind,
    TimeRange,
    TimelineResult,
    build_bad_segments,
    build_timeline,
    invert_segments,
)

__all__ = [
    "AnalysisCancelledError",
    "CancellationToken",
    "ColorShapeMatcher",
    "DEFAULT_DETECTION_CONFIG",
    "DetectionConfig",
    "DetectionError",
    "DetectionEvent",
    "DetectionKind",
    "DetectionPipeline",
    "FrameDecodeError",
    "FrameMatcher",
    "MediaLoadError",
    "MediaSource",
    "OpenCVMediaSource",
    "PipelineBusyError",
    "ProcessingProgress",
    "ProgressReporter",
    "ReferenceImageLoadError",
    "ReferenceImageLoader",
    "SeekTimeoutError",
    "SegmentKind",
    "TemplateMatcher",
    "TimeRange",
    "TimelineResult",
    "build_bad_segments",
    "build_matcher",
    "build_timeline",
    "invert_segments",
]
