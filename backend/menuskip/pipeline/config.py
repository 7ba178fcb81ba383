"""Detection pipeline configuration."""
from dataclasses import dataclass, field
from typing import Optional, Tuple

# Observed defaults. None of these are guaranteed optimal for every game.
DEFAULT_SAMPLE_RATE_HZ = 2.0
DEFAULT_PROCESS_WIDTH = 480
DEFAULT_SEEK_TIMEOUT_SEC = 10.0
DEFAULT_CORRELATION_THRESHOLD = 0.75
DEFAULT_MIN_AREA_FRACTION = 0.15
DEFAULT_HSV_LOWER = (110, 50, 20)
DEFAULT_HSV_UPPER = (150, 255, 255)
DEFAULT_MORPH_KERNEL_SIZE = 5
DEFAULT_MERGE_GAP_SEC = 1.0
DEFAULT_PADDING_SEC = 0.25

MATCHER_STRATEGIES = ("template", "color")
HSV_LIMITS = (180, 255, 255)


@dataclass
class DetectionConfig:
    """Configuration for a detection run."""

    # Sampling
    sample_rate_hz: float = DEFAULT_SAMPLE_RATE_HZ
    process_width: Optional[int] = DEFAULT_PROCESS_WIDTH  # None keeps source resolution
    seek_timeout_sec: float = DEFAULT_SEEK_TIMEOUT_SEC

    # Matching
    strategy: str = "color"
    correlation_threshold: float = DEFAULT_CORRELATION_THRESHOLD
    min_area_fraction: float = DEFAULT_MIN_AREA_FRACTION
    hsv_lower: Tuple[int, int, int] = field(default=DEFAULT_HSV_LOWER)
    hsv_upper: Tuple[int, int, int] = field(default=DEFAULT_HSV_UPPER)
    morph_kernel_size: int = DEFAULT_MORPH_KERNEL_SIZE

    # Segmentation
    merge_gap_sec: float = DEFAULT_MERGE_GAP_SEC
    padding_sec: float = DEFAULT_PADDING_SEC

    def __post_init__(self):
        self.hsv_lower = tuple(int(v) for v in self.hsv_lower)
        self.hsv_upper = tuple(int(v) for v in self.hsv_upper)

        if self.sample_rate_hz <= 0:
            raise ValueError(f"sample_rate_hz must be positive, got {self.sample_rate_hz}")
        if self.process_width is not None and self.process_width <= 0:
            raise ValueError(f"process_width must be positive or None, got {self.process_width}")
        if self.seek_timeout_sec <= 0:
            raise ValueError(f"seek_timeout_sec must be positive, got {self.seek_timeout_sec}")
        if self.strategy not in MATCHER_STRATEGIES:
            raise ValueError(f"Unknown matcher strategy: {self.strategy}")
        if not 0.0 <= self.correlation_threshold <= 1.0:
            raise ValueError("correlation_threshold must be within [0, 1]")
        if not 0.0 <= self.min_area_fraction <= 1.0:
            raise ValueError("min_area_fraction must be within [0, 1]")
        if len(self.hsv_lower) != 3 or len(self.hsv_upper) != 3:
            raise ValueError("HSV bounds must have exactly three components")
        for bound in (self.hsv_lower, self.hsv_upper):
            # OpenCV 8-bit HSV: H in [0, 180], S and V in [0, 255]
            if not all(0 <= v <= limit for v, limit in zip(bound, HSV_LIMITS)):
                raise ValueError(
                    f"HSV bound {list(bound)} out of range, limits are {list(HSV_LIMITS)}"
                )
        if self.morph_kernel_size < 1:
            raise ValueError("morph_kernel_size must be at least 1")
        if self.padding_sec < 0 or self.merge_gap_sec < 0:
            raise ValueError("merge_gap_sec and padding_sec must be non-negative")
        # Distinct runs may only be guaranteed disjoint after padding when this holds
        if self.merge_gap_sec <= 2 * self.padding_sec:
            raise ValueError(
                f"merge_gap_sec ({self.merge_gap_sec}) must exceed twice "
                f"padding_sec ({self.padding_sec})"
            )

    @property
    def sample_interval_sec(self) -> float:
        return 1.0 / self.sample_rate_hz

    def to_dict(self) -> dict:
        """Convert config to dictionary for serialization."""
        return {
            "sample_rate_hz": self.sample_rate_hz,
            "process_width": self.process_width,
            "seek_timeout_sec": self.seek_timeout_sec,
            "strategy": self.strategy,
            "correlation_threshold": self.correlation_threshold,
            "min_area_fraction": self.min_area_fraction,
            "hsv_lower": list(self.hsv_lower),
            "hsv_upper": list(self.hsv_upper),
            "morph_kernel_size": self.morph_kernel_size,
            "merge_gap_sec": self.merge_gap_sec,
            "padding_sec": self.padding_sec,
        }

    @classmethod
    def from_settings(cls, settings, **overrides) -> "DetectionConfig":
        """Build a config from application settings, with optional overrides."""
        values = {
            "sample_rate_hz": settings.sample_rate_hz,
            "process_width": settings.process_width or None,
            "seek_timeout_sec": settings.seek_timeout_sec,
            "strategy": settings.matcher_strategy,
            "correlation_threshold": settings.correlation_threshold,
            "min_area_fraction": settings.min_area_fraction,
            "hsv_lower": settings.hsv_lower,
            "hsv_upper": settings.hsv_upper,
            "morph_kernel_size": settings.morph_kernel_size,
            "merge_gap_sec": settings.merge_gap_sec,
            "padding_sec": settings.padding_sec,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


# Default configuration instance
DEFAULT_DETECTION_CONFIG = DetectionConfig()
