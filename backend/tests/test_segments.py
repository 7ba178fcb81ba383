"""Tests for timeline segmentation."""
import numpy as np
import pytest

from menuskip.pipeline.segments import (
    DetectionEvent,
    DetectionKind,
    SegmentKind,
    TimeRange,
    TimelineResult,
    build_bad_segments,
    build_timeline,
    create_bad_segment,
    format_timestamp,
    invert_segments,
)


def events_at(*timestamps):
    return [DetectionEvent(timestamp=t, confidence=90.0) for t in timestamps]


def spans(segments):
    return [(seg.start, seg.end) for seg in segments]


def assert_covers(result: TimelineResult):
    """Bad + keep tile [0, total_duration] with no gap and no overlap."""
    ordered = result.ordered_segments()
    assert ordered[0].start == 0.0
    assert ordered[-1].end == result.total_duration
    for prev, nxt in zip(ordered, ordered[1:]):
        assert prev.end == nxt.start
    total = sum(seg.duration for seg in ordered)
    assert total == pytest.approx(result.total_duration)


# =============================================================================
# TimeRange
# =============================================================================

class TestTimeRange:
    """Tests for the TimeRange value type."""

    def test_duration(self):
        seg = TimeRange(start=1.5, end=4.0, kind=SegmentKind.KEEP)
        assert seg.duration == 2.5

    def test_rejects_inverted_range(self):
        with pytest.raises(ValueError):
            TimeRange(start=5.0, end=4.0, kind=SegmentKind.REMOVE)

    def test_ids_are_unique_but_not_compared(self):
        a = TimeRange(start=0.0, end=1.0, kind=SegmentKind.KEEP)
        b = TimeRange(start=0.0, end=1.0, kind=SegmentKind.KEEP)
        assert a.id != b.id
        assert a == b

    def test_to_dict(self):
        seg = TimeRange(start=0.75, end=1.75, kind=SegmentKind.REMOVE)
        data = seg.to_dict()
        assert data["kind"] == "remove"
        assert data["duration"] == 1.0
        assert data["id"] == seg.id


# =============================================================================
# Segment Builder
# =============================================================================

class TestBuildBadSegments:
    """Tests for grouping detections into bad segments."""

    def test_empty_input(self):
        assert build_bad_segments([], 10.0) == []

    def test_grouping_example(self):
        segments = build_bad_segments(events_at(1.0, 1.5, 5.0), 10.0)
        assert spans(segments) == [(0.75, 1.75), (4.75, 5.25)]
        assert all(seg.kind == SegmentKind.REMOVE for seg in segments)

    def test_single_event_gets_double_padding(self):
        segments = build_bad_segments(events_at(5.0), 10.0)
        assert spans(segments) == [(4.75, 5.25)]
        assert segments[0].duration == pytest.approx(0.5)

    def test_gap_equal_to_merge_gap_merges(self):
        segments = build_bad_segments(events_at(2.0, 3.0), 10.0)
        assert spans(segments) == [(1.75, 3.25)]

    def test_gap_above_merge_gap_splits(self):
        segments = build_bad_segments(events_at(2.0, 3.5), 10.0)
        assert spans(segments) == [(1.75, 2.25), (3.25, 3.75)]

    def test_unsorted_input(self):
        segments = build_bad_segments(events_at(5.0, 1.5, 1.0), 10.0)
        assert spans(segments) == [(0.75, 1.75), (4.75, 5.25)]

    def test_duplicate_timestamps(self):
        segments = build_bad_segments(events_at(3.0, 3.0, 3.0), 10.0)
        assert spans(segments) == [(2.75, 3.25)]

    def test_clamps_at_start(self):
        segments = build_bad_segments(events_at(0.0), 10.0)
        assert segments[0].start == 0.0
        assert segments[0].end == 0.25

    def test_clamps_at_end(self):
        segments = build_bad_segments(events_at(10.0), 10.0)
        assert segments[0].start == 9.75
        assert segments[0].end == 10.0

    def test_long_run_is_one_segment(self):
        timestamps = [t / 2 for t in range(4, 41)]  # 2.0 .. 20.0 every 0.5s
        segments = build_bad_segments(events_at(*timestamps), 30.0)
        assert spans(segments) == [(1.75, 20.25)]

    def test_custom_gap_and_padding(self):
        segments = build_bad_segments(events_at(1.0, 3.0), 10.0, merge_gap=2.5, padding=1.0)
        assert spans(segments) == [(0.0, 4.0)]

    def test_idempotent(self):
        events = events_at(1.0, 1.5, 5.0, 7.0, 7.5)
        first = build_bad_segments(events, 10.0)
        second = build_bad_segments(events, 10.0)
        assert first == second

    def test_kind_is_ignored(self):
        events = [
            DetectionEvent(1.0, 80.0, DetectionKind.START),
            DetectionEvent(1.5, 80.0, DetectionKind.HOLD),
            DetectionEvent(2.0, 80.0, DetectionKind.END),
        ]
        assert spans(build_bad_segments(events, 10.0)) == [(0.75, 2.25)]

    def test_rejects_event_outside_timeline(self):
        with pytest.raises(ValueError):
            build_bad_segments(events_at(12.0), 10.0)
        with pytest.raises(ValueError):
            build_bad_segments(events_at(-0.5), 10.0)

    def test_rejects_negative_duration(self):
        with pytest.raises(ValueError):
            build_bad_segments([], -1.0)

    def test_rejects_gap_that_lets_padding_overlap(self):
        with pytest.raises(ValueError, match="merge_gap"):
            build_bad_segments(events_at(1.0, 1.4), 10.0, merge_gap=0.3, padding=0.25)
        with pytest.raises(ValueError, match="merge_gap"):
            build_timeline(events_at(1.0), 10.0, merge_gap=0.3, padding=0.25)

    def test_rejects_negative_padding(self):
        with pytest.raises(ValueError):
            build_bad_segments(events_at(1.0), 10.0, padding=-0.1)

    def test_zero_gap_without_padding(self):
        segments = build_bad_segments(events_at(1.0, 1.5), 10.0, merge_gap=0.0, padding=0.0)
        assert spans(segments) == [(1.0, 1.0), (1.5, 1.5)]

    def test_distinct_runs_never_overlap(self):
        rng = np.random.default_rng(3)
        for _ in range(25):
            timestamps = rng.uniform(0, 60, size=30)
            segments = build_bad_segments(events_at(*timestamps), 60.0)
            for a, b in zip(segments, segments[1:]):
                assert a.end < b.start

    def test_create_bad_segment(self):
        seg = create_bad_segment(2.0, 4.0, 10.0, padding=0.5)
        assert (seg.start, seg.end) == (1.5, 4.5)


# =============================================================================
# Segment Inverter
# =============================================================================

class TestInvertSegments:
    """Tests for deriving keep segments."""

    def test_no_bad_segments(self):
        keep = invert_segments([], 10.0)
        assert spans(keep) == [(0.0, 10.0)]
        assert keep[0].kind == SegmentKind.KEEP

    def test_grouping_example(self):
        bad = build_bad_segments(events_at(1.0, 1.5, 5.0), 10.0)
        keep = invert_segments(bad, 10.0)
        assert spans(keep) == [(0.0, 0.75), (1.75, 4.75), (5.25, 10.0)]

    def test_bad_segment_at_start(self):
        bad = [TimeRange(0.0, 2.0, SegmentKind.REMOVE)]
        assert spans(invert_segments(bad, 10.0)) == [(2.0, 10.0)]

    def test_bad_segment_at_end(self):
        bad = [TimeRange(8.0, 10.0, SegmentKind.REMOVE)]
        assert spans(invert_segments(bad, 10.0)) == [(0.0, 8.0)]

    def test_whole_timeline_bad(self):
        bad = [TimeRange(0.0, 10.0, SegmentKind.REMOVE)]
        assert invert_segments(bad, 10.0) == []

    def test_touching_bad_segments(self):
        bad = [
            TimeRange(1.0, 2.0, SegmentKind.REMOVE),
            TimeRange(2.0, 3.0, SegmentKind.REMOVE),
        ]
        assert spans(invert_segments(bad, 5.0)) == [(0.0, 1.0), (3.0, 5.0)]

    def test_overlapping_bad_segments_advance_cursor(self):
        bad = [
            TimeRange(1.0, 4.0, SegmentKind.REMOVE),
            TimeRange(2.0, 3.0, SegmentKind.REMOVE),
        ]
        assert spans(invert_segments(bad, 5.0)) == [(0.0, 1.0), (4.0, 5.0)]


# =============================================================================
# Timeline
# =============================================================================

class TestBuildTimeline:
    """Tests for the combined timeline."""

    def test_empty_detections(self):
        result = build_timeline([], 10.0)
        assert result.bad_segments == []
        assert spans(result.keep_segments) == [(0.0, 10.0)]
        assert result.total_duration == 10.0

    def test_grouping_example(self):
        result = build_timeline(events_at(1.0, 1.5, 5.0), 10.0)
        assert spans(result.bad_segments) == [(0.75, 1.75), (4.75, 5.25)]
        assert spans(result.keep_segments) == [(0.0, 0.75), (1.75, 4.75), (5.25, 10.0)]
        assert_covers(result)

    def test_summary(self):
        result = build_timeline(events_at(1.0, 1.5, 5.0), 10.0)
        assert result.interruption_count == 2
        assert result.removed_duration == pytest.approx(1.5)
        assert result.kept_duration == pytest.approx(8.5)

        data = result.to_dict()
        assert data["interruption_count"] == 2
        assert len(data["bad_segments"]) == 2
        assert len(data["keep_segments"]) == 3

    def test_coverage_for_random_detections(self):
        rng = np.random.default_rng(11)
        for _ in range(50):
            duration = float(rng.uniform(1, 600))
            count = int(rng.integers(0, 40))
            timestamps = rng.uniform(0, duration, size=count)
            result = build_timeline(events_at(*timestamps), duration)
            assert_covers(result)

    def test_coverage_with_boundary_detections(self):
        result = build_timeline(events_at(0.0, 0.5, 9.5, 10.0), 10.0)
        assert spans(result.bad_segments) == [(0.0, 0.75), (9.25, 10.0)]
        assert_covers(result)

    def test_zero_duration(self):
        result = build_timeline(events_at(0.0), 0.0)
        assert spans(result.bad_segments) == [(0.0, 0.0)]
        assert result.keep_segments == []


class TestFormatTimestamp:
    """Tests for MM:SS.cc formatting."""

    def test_format(self):
        assert format_timestamp(0) == "00:00.00"
        assert format_timestamp(75.5) == "01:15.50"
        assert format_timestamp(3600) == "60:00.00"
