"""Detection pipeline runner.

Orchestrates one analysis run: sample frames, match each one, report
progress, then build the bad/keep timeline.
"""
import asyncio
import logging
from typing import List, Optional

from .cancellation import CancellationToken
from .config import DetectionConfig, DEFAULT_DETECTION_CONFIG
from .errors import PipelineBusyError
from .matchers import FrameMatcher
from .media import MediaSource
from .progress import ProgressCallback, ProgressReporter
from .sampler import FrameSampler
from .segments import DetectionEvent, TimelineResult, build_timeline, format_timestamp

logger = logging.getLogger(__name__)


class DetectionPipeline:
    """
    Service object owning a matcher and its configuration.

    Only one run may be in flight per instance. A second concurrent call to
    analyze() is rejected with PipelineBusyError.
    """

    def __init__(
        self,
        matcher: FrameMatcher,
        config: Optional[DetectionConfig] = None,
    ):
        self.matcher = matcher
        self.config = config or DEFAULT_DETECTION_CONFIG
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def _check_idle(self):
        if self._lock.locked():
            raise PipelineBusyError("An analysis run is already in progress")

    async def detect(
        self,
        source: MediaSource,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[DetectionEvent]:
        """
        Sample the whole source and return every matched frame, in time order.

        Holds the same run slot as analyze().
        """
        self._check_idle()
        async with self._lock:
            return await self._scan(source, progress_callback, cancel_token)

    async def _scan(
        self,
        source: MediaSource,
        progress_callback: Optional[ProgressCallback],
        cancel_token: Optional[CancellationToken],
    ) -> List[DetectionEvent]:
        cancel_token = cancel_token or CancellationToken()
        sampler = FrameSampler(source, self.config, cancel_token)
        reporter = ProgressReporter(sampler.total_frames, progress_callback)

        logger.info(
            f"Scanning {sampler.duration:.1f}s at {self.config.sample_rate_hz}Hz "
            f"({sampler.total_frames} frames, {self.matcher.name} matcher)"
        )

        detections = []
        async for frame in sampler:
            event = self.matcher.match(frame.pixels, frame.timestamp, scale=frame.scale)
            if event is not None:
                logger.debug(f"Match at {frame.timestamp:.2f}s ({event.confidence:.1f})")
                detections.append(event)

            await reporter.report(frame.timestamp)

            # Let the host scheduler run between frames
            await asyncio.sleep(0)
            cancel_token.raise_if_cancelled()

        return detections

    async def analyze(
        self,
        source: MediaSource,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> TimelineResult:
        """
        Run the full analysis on a media source.

        Args:
            source: Media to scan
            progress_callback: Called once per sampled frame, sync or async
            cancel_token: Checked at every suspension point

        Returns:
            TimelineResult covering [0, source.duration]

        Raises:
            PipelineBusyError: If a run is already in flight on this instance
            DetectionError: Any failure aborts the run, no partial result
        """
        self._check_idle()
        async with self._lock:
            detections = await self._scan(source, progress_callback, cancel_token)
            duration = float(source.duration)

            timeline = build_timeline(
                detections,
                duration,
                merge_gap=self.config.merge_gap_sec,
                padding=self.config.padding_sec,
            )

        logger.info(
            f"Found {timeline.interruption_count} interruptions from "
            f"{len(detections)} detections, removing "
            f"{format_timestamp(timeline.removed_duration)} of "
            f"{format_timestamp(duration)}"
        )
        return timeline
