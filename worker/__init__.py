"""geolens worker: extraction, scoring, citations, visibility and RQ jobs."""

from typing import Any

__all__ = ["JobQueue", "get_job_queue"]


def __getattr__(name: str) -> Any:
    """Import the job queue on first use so analysis code stays free of RQ."""
    if name in __all__:
        from worker import queue

        return getattr(queue, name)
    raise AttributeError(f"module 'worker' has no attribute '{name}'")
