"""Per-frame progress telemetry."""
import inspect
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union


@dataclass(frozen=True)
class ProcessingProgress:
    """Snapshot emitted after each sampled frame."""
    processed_frames: int
    total_frames: int
    frames_per_second: float
    current_timestamp: float

    @property
    def percent(self) -> float:
        if self.total_frames <= 0:
            return 0.0
        return min(100.0, self.processed_frames / self.total_frames * 100)

    def to_dict(self) -> dict:
        return {
            "processed_frames": self.processed_frames,
            "total_frames": self.total_frames,
            "frames_per_second": self.frames_per_second,
            "current_timestamp": self.current_timestamp,
            "percent": self.percent,
        }


ProgressCallback = Callable[[ProcessingProgress], Union[None, Awaitable[None]]]


class ProgressReporter:
    """
    Emits one ProcessingProgress per sampled frame.

    The callback may be a plain function or a coroutine function; either
    way it runs to completion before the next frame is sampled.
    """

    def __init__(
        self,
        total_frames: int,
        callback: Optional[ProgressCallback] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.total_frames = total_frames
        self._callback = callback
        self._clock = clock
        self._started_at = clock()
        self._processed = 0
        self._last_timestamp: Optional[float] = None

    @property
    def processed_frames(self) -> int:
        return self._processed

    async def report(self, timestamp: float) -> ProcessingProgress:
        """Record one processed frame at the given timestamp."""
        if self._last_timestamp is not None and timestamp <= self._last_timestamp:
            raise ValueError(
                f"Progress timestamps must increase: {timestamp} after {self._last_timestamp}"
            )
        self._last_timestamp = timestamp
        self._processed += 1

        elapsed = self._clock() - self._started_at
        fps = self._processed / elapsed if elapsed > 0 else 0.0

        progress = ProcessingProgress(
            processed_frames=self._processed,
            total_frames=self.total_frames,
            frames_per_second=fps,
            current_timestamp=timestamp,
        )

        if self._callback is not None:
            result = self._callback(progress)
            if inspect.isawaitable(result):
                await result

        return progress
