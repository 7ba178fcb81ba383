"""Fixed-stride frame sampling.

Seeks the media source to t_i = i / R for i = 0 .. floor(D * R) and reads
the frame at each instant, optionally downscaled to a working width.
"""
import asyncio
import logging
import math
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

import cv2
import numpy as np

from .cancellation import CancellationToken
from .config import DetectionConfig, DEFAULT_DETECTION_CONFIG
from .errors import FrameDecodeError, MediaLoadError, SeekTimeoutError
from .media import MediaSource

logger = logging.getLogger(__name__)

# Absorbs float error in duration * rate, e.g. 4.35 * 100 = 434.99999999999994
_SAMPLE_COUNT_EPS = 1e-9


@dataclass(frozen=True)
class SampledFrame:
    """A frame read at a sample instant."""
    index: int
    timestamp: float
    pixels: np.ndarray
    scale: float = 1.0  # working width / source width


def count_samples(duration: float, sample_rate_hz: float) -> int:
    """Number of sample instants for a source of the given duration."""
    return int(math.floor(duration * sample_rate_hz + _SAMPLE_COUNT_EPS)) + 1


def sample_timestamps(duration: float, sample_rate_hz: float) -> List[float]:
    """Sample instants i / R, never past the end of the source."""
    return [
        min(duration, i / sample_rate_hz)
        for i in range(count_samples(duration, sample_rate_hz))
    ]


def resize_to_width(frame: np.ndarray, width: int) -> np.ndarray:
    """Scale a frame to the given width, preserving aspect ratio."""
    if not isinstance(frame, np.ndarray) or frame.ndim < 2 or frame.size == 0:
        raise FrameDecodeError("Cannot resize an empty or malformed frame")

    src_height, src_width = frame.shape[:2]
    if src_width == width:
        return frame

    height = max(1, int(width * src_height / src_width))
    try:
        return cv2.resize(frame, (width, height), interpolation=cv2.INTER_AREA)
    except cv2.error as exc:
        raise FrameDecodeError(f"Failed to resize frame: {exc}") from exc


class FrameSampler:
    """
    Lazy, finite, restartable sequence of sampled frames.

    Every iteration starts again from t = 0.
    """

    def __init__(
        self,
        source: MediaSource,
        config: Optional[DetectionConfig] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        self.source = source
        self.config = config or DEFAULT_DETECTION_CONFIG
        self.cancel_token = cancel_token or CancellationToken()

        duration = source.duration
        if duration is None or not math.isfinite(duration) or duration < 0:
            raise MediaLoadError(f"Media source reported an invalid duration: {duration}")
        self.duration = float(duration)

    @property
    def total_frames(self) -> int:
        return count_samples(self.duration, self.config.sample_rate_hz)

    async def _seek(self, timestamp: float):
        try:
            await asyncio.wait_for(
                self.source.seek(timestamp),
                timeout=self.config.seek_timeout_sec,
            )
        except asyncio.TimeoutError as exc:
            raise SeekTimeoutError(
                f"Seek to {timestamp:.2f}s did not complete within "
                f"{self.config.seek_timeout_sec}s"
            ) from exc

    async def frames(self) -> AsyncIterator[SampledFrame]:
        for index, timestamp in enumerate(
            sample_timestamps(self.duration, self.config.sample_rate_hz)
        ):
            self.cancel_token.raise_if_cancelled()
            await self._seek(timestamp)
            self.cancel_token.raise_if_cancelled()

            pixels = self.source.current_frame()
            if pixels is None:
                raise FrameDecodeError(f"No pixel data at {timestamp:.2f}s")
            scale = 1.0
            if self.config.process_width:
                resized = resize_to_width(pixels, self.config.process_width)
                scale = resized.shape[1] / pixels.shape[1]
                pixels = resized

            yield SampledFrame(index=index, timestamp=timestamp, pixels=pixels, scale=scale)

    def __aiter__(self) -> AsyncIterator[SampledFrame]:
        return self.frames()
