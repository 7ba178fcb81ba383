"""Media access for the detection pipeline.

The pipeline only depends on the MediaSource protocol. OpenCVMediaSource
is the stock implementation over cv2.VideoCapture; tests and other hosts
can supply their own.
"""
import asyncio
import logging
import threading
from pathlib import Path
from typing import Optional, Protocol, Union, runtime_checkable

import cv2
import httpx
import numpy as np

from .errors import FrameDecodeError, MediaLoadError, ReferenceImageLoadError

logger = logging.getLogger(__name__)

ImageSource = Union[bytes, bytearray, str, Path]


@runtime_checkable
class MediaSource(Protocol):
    """Seekable video the sampler can pull frames from."""

    @property
    def duration(self) -> float:
        """Total length in seconds."""
        ...

    async def seek(self, timestamp: float) -> None:
        """Move to timestamp and return once that frame is ready."""
        ...

    def current_frame(self) -> np.ndarray:
        """Pixel buffer of the frame at the last seek, H x W x 4 uint8."""
        ...


class OpenCVMediaSource:
    """MediaSource backed by cv2.VideoCapture."""

    def __init__(self, video_path: Union[str, Path]):
        self.video_path = Path(video_path)
        if not self.video_path.exists():
            raise MediaLoadError(f"Video file not found: {self.video_path}")

        capture = cv2.VideoCapture(str(self.video_path))
        if not capture.isOpened():
            capture.release()
            raise MediaLoadError(f"Could not open video: {self.video_path}")

        fps = capture.get(cv2.CAP_PROP_FPS)
        frame_count = int(capture.get(cv2.CAP_PROP_FRAME_COUNT))
        if fps <= 0 or frame_count <= 0:
            capture.release()
            raise MediaLoadError(
                f"Video has no decodable frames: {self.video_path} "
                f"(fps={fps}, frames={frame_count})"
            )

        self._capture = capture
        self.fps = fps
        self.frame_count = frame_count
        self.width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self._frame: Optional[np.ndarray] = None
        # A timed-out seek keeps reading in its worker thread; close() waits for it
        self._capture_lock = threading.Lock()
        self._closed = False

    def __repr__(self) -> str:
        return (
            f"OpenCVMediaSource({self.video_path.name}, "
            f"{self.width}x{self.height}, "
            f"{self.fps:.2f}fps, "
            f"{self.frame_count} frames)"
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def duration(self) -> float:
        return self.frame_count / self.fps

    @property
    def closed(self) -> bool:
        return self._closed

    def _decode(self, frame_index: int):
        self._capture.set(cv2.CAP_PROP_POS_FRAMES, frame_index)
        return self._capture.read()

    def _read_at(self, timestamp: float) -> np.ndarray:
        # Seeking past the end lands on the last frame
        frame_index = min(int(round(timestamp * self.fps)), self.frame_count - 1)
        with self._capture_lock:
            if self._closed:
                raise FrameDecodeError(f"Cannot read from closed video: {self.video_path}")
            ok, frame = self._decode(frame_index)
        if not ok or frame is None:
            raise FrameDecodeError(f"Failed to decode frame {frame_index} at {timestamp:.2f}s")
        return frame

    async def seek(self, timestamp: float) -> None:
        self._frame = await asyncio.to_thread(self._read_at, timestamp)

    def current_frame(self) -> np.ndarray:
        if self._frame is None:
            raise FrameDecodeError("No frame decoded yet, seek first")
        return cv2.cvtColor(self._frame, cv2.COLOR_BGR2RGBA)

    def close(self):
        """Release the capture once any in-flight read has finished."""
        with self._capture_lock:
            if not self._closed:
                self._capture.release()
                self._closed = True
        self._frame = None


def decode_image(data: bytes) -> np.ndarray:
    """Decode encoded image bytes (PNG, JPEG, ...) into an RGBA buffer."""
    if not data:
        raise ReferenceImageLoadError("Reference image is empty")

    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if image is None:
        raise ReferenceImageLoadError("Reference image could not be decoded")

    return cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)


class ReferenceImageLoader:
    """Loads the fingerprint image from bytes, a local path, or an http(s) URL."""

    def __init__(
        self,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self._transport = transport

    async def _download(self, url: str) -> bytes:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ReferenceImageLoadError(f"Timed out downloading reference image: {url}") from exc
        except httpx.HTTPStatusError as exc:
            raise ReferenceImageLoadError(
                f"Reference image download failed with HTTP {exc.response.status_code}: {url}"
            ) from exc
        except httpx.RequestError as exc:
            raise ReferenceImageLoadError(f"Reference image download failed: {exc}") from exc

        return response.content

    async def load(self, source: ImageSource) -> np.ndarray:
        """
        Load and decode a reference image.

        Args:
            source: Encoded image bytes, a file path, or an http(s) URL

        Returns:
            RGBA pixel buffer (H x W x 4, uint8)

        Raises:
            ReferenceImageLoadError: If the image cannot be fetched or decoded
        """
        if isinstance(source, (bytes, bytearray)):
            data = bytes(source)
        elif isinstance(source, str) and source.startswith(("http://", "https://")):
            logger.info(f"Downloading reference image from {source}")
            data = await self._download(source)
        else:
            path = Path(source)
            if not path.is_file():
                raise ReferenceImageLoadError(f"Reference image not found: {path}")
            try:
                data = path.read_bytes()
            except OSError as exc:
                raise ReferenceImageLoadError(f"Could not read reference image {path}: {exc}") from exc

        image = decode_image(data)
        logger.info(f"Loaded reference image {image.shape[1]}x{image.shape[0]}")
        return image
