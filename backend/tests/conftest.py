"""Shared fixtures: synthetic frames and an in-process media source."""
import asyncio

import cv2
import numpy as np
import pytest

# Inside the default HSV bounds (110-150, 50-255, 20-255)
MENU_HSV = (130, 200, 200)


def solid_rgba(height: int, width: int, hsv=MENU_HSV) -> np.ndarray:
    """RGBA frame filled with a single HSV colour."""
    hsv_frame = np.full((height, width, 3), hsv, dtype=np.uint8)
    rgb = cv2.cvtColor(hsv_frame, cv2.COLOR_HSV2RGB)
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2RGBA)


def gray_rgba(height: int, width: int, value: int = 128) -> np.ndarray:
    """RGBA frame of neutral gray, outside every saturation bound."""
    frame = np.full((height, width, 4), value, dtype=np.uint8)
    frame[..., 3] = 255
    return frame


class FakeMediaSource:
    """MediaSource whose frame at time t comes from a function."""

    def __init__(self, duration, frame_fn, seek_delay=0.0):
        self._duration = duration
        self._frame_fn = frame_fn
        self._seek_delay = seek_delay
        self._timestamp = None
        self.seeks = []
        self.closed = False

    @property
    def duration(self):
        return self._duration

    async def seek(self, timestamp):
        if self._seek_delay:
            await asyncio.sleep(self._seek_delay)
        self._timestamp = timestamp
        self.seeks.append(timestamp)

    def current_frame(self):
        return self._frame_fn(self._timestamp)

    def close(self):
        self.closed = True


def menu_at(timestamps, height=90, width=160):
    """Frame function showing the menu colour at the given instants only."""
    menu_times = set(timestamps)

    def frame_fn(t):
        if t in menu_times:
            return solid_rgba(height, width)
        return gray_rgba(height, width)

    return frame_fn


@pytest.fixture
def make_source():
    """Factory for fake media sources."""
    def _make(duration=10.0, menu_times=(), seek_delay=0.0, frame_fn=None):
        return FakeMediaSource(duration, frame_fn or menu_at(menu_times), seek_delay)
    return _make


@pytest.fixture
def menu_frame():
    return solid_rgba(90, 160)


@pytest.fixture
def plain_frame():
    return gray_rgba(90, 160)
