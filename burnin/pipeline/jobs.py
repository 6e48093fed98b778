"""
In-process job state.

Tracks the latest progress of each export job. The store is owned by
whoever orchestrates exports; nothing here is module-global.
"""

import threading
import time
from typing import Callable, Optional

from loguru import logger

from ..config import get_settings
from ..models import ExportStage, ProgressUpdate


TERMINAL_STAGES = {ExportStage.COMPLETED, ExportStage.CANCELLED, ExportStage.ERROR}


class JobStore:
    """
    Thread-safe map of job id → latest ProgressUpdate.

    Entries are never expired implicitly; call sweep_expired() from a
    scheduler to drop stale jobs.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._jobs: dict[str, tuple[ProgressUpdate, float]] = {}
        self._lock = threading.Lock()

    def put(self, update: ProgressUpdate):
        with self._lock:
            self._jobs[update.job_id] = (update, self._clock())

    def get(self, job_id: str) -> Optional[ProgressUpdate]:
        with self._lock:
            entry = self._jobs.get(job_id)
        return entry[0] if entry else None

    def delete(self, job_id: str) -> bool:
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def job_ids(self) -> list[str]:
        with self._lock:
            return list(self._jobs)

    def sweep_expired(self, max_age: Optional[float] = None) -> list[str]:
        """
        Remove jobs whose last update is older than `max_age` seconds.

        Returns:
            The removed job ids
        """
        max_age = get_settings().job_ttl_seconds if max_age is None else max_age
        cutoff = self._clock() - max_age
        with self._lock:
            expired = [job_id for job_id, (_, ts) in self._jobs.items() if ts < cutoff]
            for job_id in expired:
                del self._jobs[job_id]
        if expired:
            logger.debug(f"Swept {len(expired)} expired job(s)")
        return expired

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)


class ProgressChannel:
    """
    Publishes progress for one job to a store and/or a callback.

    Percent never goes down: a lower value is raised to the last one
    published, and values are clamped to 0-100.
    """

    def __init__(
        self,
        job_id: str,
        store: Optional[JobStore] = None,
        callback: Optional[Callable[[ProgressUpdate], None]] = None,
    ):
        self.job_id = job_id
        self.store = store
        self.callback = callback
        self._last: Optional[ProgressUpdate] = None
        self._lock = threading.Lock()

    @property
    def latest(self) -> Optional[ProgressUpdate]:
        return self._last

    @property
    def percent(self) -> float:
        return self._last.percent if self._last else 0.0

    def publish(self, stage: ExportStage, percent: Optional[float] = None, message: str = "") -> ProgressUpdate:
        """Publish an update; `percent=None` keeps the current value."""
        with self._lock:
            current = self._last.percent if self._last else 0.0
            value = current if percent is None else max(current, min(100.0, max(0.0, percent)))
            update = ProgressUpdate(job_id=self.job_id, stage=stage, percent=value, message=message)
            self._last = update
            if self.store is not None:
                self.store.put(update)

        if self.callback is not None:
            self.callback(update)

        logger.debug(f"Job {self.job_id}: {stage.value} ({value:.0f}%) {message}")
        return update
