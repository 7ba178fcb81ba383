"""Timeline segmentation.

Turns point-in-time detections into padded "remove" ranges, then inverts
those into "keep" ranges so that together they tile [0, total_duration]
with no gaps and no overlap.
"""
import enum
import logging
import uuid
from dataclasses import dataclass, field
from typing import Iterable, List

from .config import DEFAULT_MERGE_GAP_SEC, DEFAULT_PADDING_SEC

logger = logging.getLogger(__name__)


class DetectionKind(str, enum.Enum):
    """Position of a detection within an interruption."""
    START = "start"
    HOLD = "hold"
    END = "end"


class SegmentKind(str, enum.Enum):
    """What the editor should do with a time range."""
    KEEP = "keep"
    REMOVE = "remove"


@dataclass(frozen=True)
class DetectionEvent:
    """A single matched frame."""
    timestamp: float
    confidence: float  # 0-100
    kind: DetectionKind = DetectionKind.HOLD

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "confidence": self.confidence,
            "kind": self.kind.value,
        }


def _new_segment_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class TimeRange:
    """An immutable span of the timeline.

    The id is an opaque token and takes no part in equality, so two
    builds over the same detections compare equal.
    """
    start: float
    end: float
    kind: SegmentKind
    id: str = field(default_factory=_new_segment_id, compare=False)

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(f"TimeRange end {self.end} precedes start {self.start}")

    @property
    def duration(self) -> float:
        return self.end - self.start

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "start": self.start,
            "end": self.end,
            "duration": self.duration,
            "kind": self.kind.value,
        }

    def __repr__(self):
        return f"TimeRange({self.kind.value} {self.start:.2f}-{self.end:.2f})"


@dataclass(frozen=True)
class TimelineResult:
    """Bad and keep ranges for one analysed source."""
    bad_segments: List[TimeRange]
    keep_segments: List[TimeRange]
    total_duration: float

    @property
    def interruption_count(self) -> int:
        return len(self.bad_segments)

    @property
    def removed_duration(self) -> float:
        return sum(seg.duration for seg in self.bad_segments)

    @property
    def kept_duration(self) -> float:
        return sum(seg.duration for seg in self.keep_segments)

    def ordered_segments(self) -> List[TimeRange]:
        """All segments, bad and keep, in time order."""
        # Zero-width ranges sort before wider ones sharing the same start
        return sorted(
            self.bad_segments + self.keep_segments,
            key=lambda seg: (seg.start, seg.end),
        )

    def to_dict(self) -> dict:
        return {
            "bad_segments": [seg.to_dict() for seg in self.bad_segments],
            "keep_segments": [seg.to_dict() for seg in self.keep_segments],
            "total_duration": self.total_duration,
            "removed_duration": self.removed_duration,
            "kept_duration": self.kept_duration,
            "interruption_count": self.interruption_count,
        }


def format_timestamp(seconds: float) -> str:
    """Format seconds as MM:SS.cc for review listings."""
    seconds = max(0.0, seconds)
    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    centis = int((seconds % 1) * 100)
    return f"{minutes:02d}:{secs:02d}.{centis:02d}"


def _check_duration(total_duration: float):
    if total_duration < 0:
        raise ValueError(f"total_duration must be non-negative, got {total_duration}")


def create_bad_segment(
    run_start: float,
    run_end: float,
    total_duration: float,
    padding: float = DEFAULT_PADDING_SEC,
) -> TimeRange:
    """Pad a detection run on both sides and clamp it to the timeline."""
    return TimeRange(
        start=max(0.0, run_start - padding),
        end=min(total_duration, run_end + padding),
        kind=SegmentKind.REMOVE,
    )


def build_bad_segments(
    events: Iterable[DetectionEvent],
    total_duration: float,
    merge_gap: float = DEFAULT_MERGE_GAP_SEC,
    padding: float = DEFAULT_PADDING_SEC,
) -> List[TimeRange]:
    """
    Group detections into padded removal ranges.

    Consecutive detections no more than merge_gap apart belong to the same
    run. Each run becomes one range, widened by padding on both sides and
    clamped to [0, total_duration].

    Args:
        events: Detections in any order
        total_duration: Length of the timeline in seconds
        merge_gap: Max gap between detections of the same run
        padding: Margin added to each side of a run

    Returns:
        Non-overlapping ranges ordered by start

    Raises:
        ValueError: If merge_gap is below 2 * padding, so padded runs could
            overlap, or if a detection lies outside the timeline
    """
    _check_duration(total_duration)
    if padding < 0 or merge_gap < 0:
        raise ValueError("merge_gap and padding must be non-negative")
    if merge_gap < 2 * padding:
        raise ValueError(
            f"merge_gap ({merge_gap}) must be at least twice padding ({padding})"
        )

    # sorted() is stable, ties keep their input order
    ordered = sorted(events, key=lambda e: e.timestamp)
    if not ordered:
        return []

    for event in ordered:
        if not 0.0 <= event.timestamp <= total_duration:
            raise ValueError(
                f"Detection at {event.timestamp}s lies outside [0, {total_duration}]"
            )

    segments = []
    run_start = run_end = ordered[0].timestamp

    for event in ordered[1:]:
        if event.timestamp - run_end <= merge_gap:
            run_end = event.timestamp
        else:
            segments.append(create_bad_segment(run_start, run_end, total_duration, padding))
            run_start = run_end = event.timestamp

    segments.append(create_bad_segment(run_start, run_end, total_duration, padding))

    logger.debug(f"Grouped {len(ordered)} detections into {len(segments)} bad segments")
    return segments


def invert_segments(
    bad_segments: List[TimeRange],
    total_duration: float,
) -> List[TimeRange]:
    """
    Compute the keep ranges between and around the bad ranges.

    Bad segments must be sorted by start. Zero-width keep ranges are
    returned as-is, callers must tolerate them.
    """
    _check_duration(total_duration)

    keep_segments = []
    cursor = 0.0

    for bad in bad_segments:
        if bad.start > cursor:
            keep_segments.append(TimeRange(start=cursor, end=bad.start, kind=SegmentKind.KEEP))
        cursor = max(cursor, bad.end)

    if cursor < total_duration:
        keep_segments.append(TimeRange(start=cursor, end=total_duration, kind=SegmentKind.KEEP))

    return keep_segments


def build_timeline(
    events: Iterable[DetectionEvent],
    total_duration: float,
    merge_gap: float = DEFAULT_MERGE_GAP_SEC,
    padding: float = DEFAULT_PADDING_SEC,
) -> TimelineResult:
    """Convert raw detections into a complete bad/keep timeline."""
    bad_segments = build_bad_segments(events, total_duration, merge_gap, padding)
    keep_segments = invert_segments(bad_segments, total_duration)

    return TimelineResult(
        bad_segments=bad_segments,
        keep_segments=keep_segments,
        total_duration=total_duration,
    )
