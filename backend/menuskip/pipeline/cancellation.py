"""Cooperative cancellation for analysis runs."""
from .errors import AnalysisCancelledError


class CancellationToken:
    """Flag checked by the pipeline at every suspension point."""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        self._cancelled = True

    def raise_if_cancelled(self):
        if self._cancelled:
            raise AnalysisCancelledError("Analysis cancelled by caller")
