"""Frame matchers.

Two interchangeable strategies decide whether a sampled frame shows the
interruption:

- TemplateMatcher: normalized cross-correlation against a reference image.
- ColorShapeMatcher: HSV colour mask, morphological closing, and the area
  of the largest external contour.

Both are stateless per call once constructed.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import cv2
import numpy as np

from .config import (
    DetectionConfig,
    DEFAULT_CORRELATION_THRESHOLD,
    DEFAULT_HSV_LOWER,
    DEFAULT_HSV_UPPER,
    DEFAULT_MIN_AREA_FRACTION,
    DEFAULT_MORPH_KERNEL_SIZE,
)
from .errors import FrameDecodeError, ReferenceImageLoadError
from .segments import DetectionEvent, DetectionKind

logger = logging.getLogger(__name__)


def validate_frame(frame) -> np.ndarray:
    """Reject anything that is not an H x W x 3|4 uint8 buffer."""
    if not isinstance(frame, np.ndarray):
        raise FrameDecodeError(f"Frame must be a numpy array, got {type(frame).__name__}")
    if frame.dtype != np.uint8:
        raise FrameDecodeError(f"Frame must be uint8, got {frame.dtype}")
    if frame.ndim != 3 or frame.shape[2] not in (3, 4):
        raise FrameDecodeError(f"Frame must be H x W x 3 or H x W x 4, got shape {frame.shape}")
    if frame.shape[0] == 0 or frame.shape[1] == 0:
        raise FrameDecodeError("Frame is empty")
    return frame


def to_grayscale(frame: np.ndarray) -> np.ndarray:
    """Single-channel intensity from an RGB or RGBA buffer."""
    code = cv2.COLOR_RGBA2GRAY if frame.shape[2] == 4 else cv2.COLOR_RGB2GRAY
    return cv2.cvtColor(frame, code)


def to_hsv(frame: np.ndarray) -> np.ndarray:
    """OpenCV HSV (H 0-180, S/V 0-255) from an RGB or RGBA buffer."""
    rgb = cv2.cvtColor(frame, cv2.COLOR_RGBA2RGB) if frame.shape[2] == 4 else frame
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2HSV)


class FrameMatcher(ABC):
    """Classifies one frame as showing the interruption or not."""

    name: str = "base"

    @abstractmethod
    def score(self, frame: np.ndarray, scale: float = 1.0) -> float:
        """Confidence in [0, 100] that the frame matches."""

    @abstractmethod
    def is_match(self, confidence: float) -> bool:
        """Whether a confidence is high enough to emit a detection."""

    def match(
        self,
        frame: np.ndarray,
        timestamp: float,
        scale: float = 1.0,
    ) -> Optional[DetectionEvent]:
        """
        Match a frame against the fingerprint.

        Args:
            frame: RGB or RGBA pixel buffer
            timestamp: Source time of the frame in seconds
            scale: Factor the frame was resized by from source resolution

        Returns:
            A detection, or None if the frame does not match

        Raises:
            FrameDecodeError: If the buffer is malformed or the vision call fails
        """
        frame = validate_frame(frame)
        try:
            confidence = self.score(frame, scale)
        except cv2.error as exc:
            raise FrameDecodeError(f"{self.name} matcher failed at {timestamp:.2f}s: {exc}") from exc

        if not self.is_match(confidence):
            return None

        return DetectionEvent(
            timestamp=timestamp,
            confidence=confidence,
            kind=DetectionKind.HOLD,
        )


class TemplateMatcher(FrameMatcher):
    """Normalized cross-correlation against a reference image."""

    name = "template"

    def __init__(
        self,
        reference: np.ndarray,
        threshold: float = DEFAULT_CORRELATION_THRESHOLD,
    ):
        try:
            reference = validate_frame(reference)
        except FrameDecodeError as exc:
            raise ReferenceImageLoadError(f"Invalid reference image: {exc}") from exc

        self.template = to_grayscale(reference)
        self.threshold = threshold
        self._scaled_templates = {1.0: self.template}

    def _scaled_template(self, scale: float) -> np.ndarray:
        """Template resized by the same factor as the sampled frames."""
        template = self._scaled_templates.get(scale)
        if template is None:
            tmpl_height, tmpl_width = self.template.shape[:2]
            size = (
                max(1, int(round(tmpl_width * scale))),
                max(1, int(round(tmpl_height * scale))),
            )
            interpolation = cv2.INTER_AREA if scale < 1.0 else cv2.INTER_LINEAR
            template = cv2.resize(self.template, size, interpolation=interpolation)
            self._scaled_templates[scale] = template
        return template

    def _fit_template(
        self,
        frame_height: int,
        frame_width: int,
        scale: float = 1.0,
    ) -> np.ndarray:
        """Rescale the template to frame scale, then shrink it, aspect preserved, to fit."""
        template = self._scaled_template(scale)
        tmpl_height, tmpl_width = template.shape[:2]
        if tmpl_height <= frame_height and tmpl_width <= frame_width:
            return template

        fit = min(frame_height / tmpl_height, frame_width / tmpl_width)
        width = max(1, min(frame_width, int(tmpl_width * fit)))
        height = max(1, min(frame_height, int(tmpl_height * fit)))
        return cv2.resize(template, (width, height), interpolation=cv2.INTER_AREA)

    def score(self, frame: np.ndarray, scale: float = 1.0) -> float:
        gray = to_grayscale(frame)
        template = self._fit_template(*gray.shape[:2], scale=scale)

        result = cv2.matchTemplate(gray, template, cv2.TM_CCOEFF_NORMED)
        _, max_val, _, _ = cv2.minMaxLoc(result)

        # Flat regions give undefined correlation
        if not np.isfinite(max_val):
            return 0.0
        return float(np.clip(max_val, 0.0, 1.0)) * 100.0

    def is_match(self, confidence: float) -> bool:
        return confidence > self.threshold * 100.0


class ColorShapeMatcher(FrameMatcher):
    """Large blob of the fingerprint colour, e.g. a menu background."""

    name = "color"

    def __init__(
        self,
        hsv_lower: Sequence[int] = DEFAULT_HSV_LOWER,
        hsv_upper: Sequence[int] = DEFAULT_HSV_UPPER,
        min_area_fraction: float = DEFAULT_MIN_AREA_FRACTION,
        kernel_size: int = DEFAULT_MORPH_KERNEL_SIZE,
    ):
        self.hsv_lower = np.array(hsv_lower, dtype=np.uint8)
        self.hsv_upper = np.array(hsv_upper, dtype=np.uint8)
        self.min_area_fraction = min_area_fraction
        self.kernel = np.ones((kernel_size, kernel_size), dtype=np.uint8)

    def largest_area(self, frame: np.ndarray) -> float:
        """Area in pixels of the largest external contour inside the colour mask."""
        hsv = to_hsv(frame)
        mask = cv2.inRange(hsv, self.hsv_lower, self.hsv_upper)
        # Text over the background leaves holes in the mask
        mask = cv2.morphologyEx(mask, cv2.MORPH_CLOSE, self.kernel)

        contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        if not contours:
            return 0.0
        return max(float(cv2.contourArea(c)) for c in contours)

    def score(self, frame: np.ndarray, scale: float = 1.0) -> float:
        # Area fraction does not depend on resolution
        frame_area = frame.shape[0] * frame.shape[1]
        return self.largest_area(frame) / frame_area * 100.0

    def is_match(self, confidence: float) -> bool:
        return confidence > self.min_area_fraction * 100.0


def build_matcher(
    config: DetectionConfig,
    reference: Optional[np.ndarray] = None,
) -> FrameMatcher:
    """Create the matcher selected by config.strategy."""
    if config.strategy == "template":
        if reference is None:
            raise ValueError("Template strategy requires a reference image")
        return TemplateMatcher(reference, threshold=config.correlation_threshold)

    if config.strategy == "color":
        return ColorShapeMatcher(
            hsv_lower=config.hsv_lower,
            hsv_upper=config.hsv_upper,
            min_area_fraction=config.min_area_fraction,
            kernel_size=config.morph_kernel_size,
        )

    raise ValueError(f"Unknown matcher strategy: {config.strategy}")
