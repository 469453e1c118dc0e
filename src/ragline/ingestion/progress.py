"""Progress snapshots emitted during ingestion."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class IngestionProgress:
    """Immutable progress report.

    Attributes
    ----------
    message:
        Description of what is happening.
    current_count:
        Running number of documents ingested for the current job.
    """

    message: str
    current_count: int = 0


ProgressSink = Callable[[IngestionProgress], None]


def report(progress: ProgressSink | None, message: str, current_count: int = 0) -> None:
    """Send a snapshot to *progress* when a sink was supplied."""
    if progress is not None:
        progress(IngestionProgress(message, current_count))
