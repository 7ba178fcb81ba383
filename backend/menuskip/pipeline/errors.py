"""Error kinds raised by the detection pipeline.

A run either returns a complete timeline or raises exactly one of these.
"""


class DetectionError(Exception):
    """Base class for all detection pipeline errors."""
    pass


class MediaLoadError(DetectionError):
    """The media source could not be opened or decoded."""
    pass


class SeekTimeoutError(DetectionError):
    """A seek did not complete within the configured timeout."""
    pass


class FrameDecodeError(DetectionError):
    """A pixel buffer was malformed or could not be processed."""
    pass


class ReferenceImageLoadError(DetectionError):
    """The reference fingerprint image failed to load."""
    pass


class AnalysisCancelledError(DetectionError):
    """The caller cancelled the run."""
    pass


class PipelineBusyError(DetectionError):
    """A run is already in flight on this pipeline instance."""
    pass
