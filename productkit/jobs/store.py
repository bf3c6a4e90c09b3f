"""Generation job storage: in-memory, process-lifetime source of truth for run progress."""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from datetime import datetime, timedelta
from typing import Protocol

from productkit.jobs.models import GenerationJob, JobStatus
from productkit.schemas.models import utcnow

logger = logging.getLogger(__name__)


class JobStore(Protocol):
    def put(self, job: GenerationJob) -> None: ...
    def get(self, job_id: str) -> GenerationJob | None: ...
    def current_for_product(self, product_id: str) -> GenerationJob | None: ...
    def watch(self, product_id: str) -> "JobWatch": ...
    def prune(self, max_age: timedelta, now: datetime | None = None) -> int: ...


class JobWatch:
    """Change subscription for one product's jobs.

    Must be created inside a running event loop. ``put`` may be called from any
    thread; the notification is marshalled onto the subscriber's loop.
    """

    def __init__(self, store: "InMemoryJobStore", product_id: str):
        self.product_id = product_id
        self._store = store
        self._loop = asyncio.get_running_loop()
        self._event = asyncio.Event()

    def notify(self) -> None:
        try:
            self._loop.call_soon_threadsafe(self._event.set)
        except RuntimeError:
            # Subscriber's loop already closed
            self.close()

    async def wait(self, timeout: float) -> bool:
        """Wait for a change or until ``timeout``. Returns True if notified."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False
        finally:
            self._event.clear()

    def close(self) -> None:
        self._store._unwatch(self)

    def __enter__(self) -> "JobWatch":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class InMemoryJobStore:
    """Thread-safe jobId -> job map.

    Stores and returns copies, so a reader never sees a job the owning run is
    halfway through mutating. Entries are kept until ``prune`` is called.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, GenerationJob] = {}
        self._watchers: dict[str, set[JobWatch]] = {}
        self._lock = threading.Lock()

    def put(self, job: GenerationJob) -> None:
        snapshot = job.model_copy(deep=True)
        with self._lock:
            self._jobs[job.job_id] = snapshot
            watchers = list(self._watchers.get(job.product_id, ()))
        for watcher in watchers:
            watcher.notify()

    def get(self, job_id: str) -> GenerationJob | None:
        with self._lock:
            job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    def current_for_product(self, product_id: str) -> GenerationJob | None:
        """The job a status subscriber should follow for ``product_id``.

        A RUNNING job wins, then the oldest QUEUED one (next to acquire the
        product), then the most recently created finished job.
        """
        with self._lock:
            candidates = [j for j in self._jobs.values() if j.product_id == product_id]
        if not candidates:
            return None
        running = [j for j in candidates if j.status == JobStatus.RUNNING]
        queued = [j for j in candidates if j.status == JobStatus.QUEUED]
        if running:
            job = min(running, key=lambda j: j.created_at)
        elif queued:
            job = min(queued, key=lambda j: j.created_at)
        else:
            job = max(candidates, key=lambda j: j.created_at)
        return job.model_copy(deep=True)

    def watch(self, product_id: str) -> JobWatch:
        watcher = JobWatch(self, product_id)
        with self._lock:
            self._watchers.setdefault(product_id, set()).add(watcher)
        return watcher

    def _unwatch(self, watcher: JobWatch) -> None:
        with self._lock:
            watchers = self._watchers.get(watcher.product_id)
            if watchers is None:
                return
            watchers.discard(watcher)
            if not watchers:
                del self._watchers[watcher.product_id]

    def prune(self, max_age: timedelta, now: datetime | None = None) -> int:
        """Evict finished jobs last updated more than ``max_age`` ago."""
        cutoff = (now or utcnow()) - max_age
        with self._lock:
            expired = [
                job_id
                for job_id, job in self._jobs.items()
                if job.is_finished and job.updated_at < cutoff
            ]
            for job_id in expired:
                del self._jobs[job_id]
        if expired:
            logger.info("Pruned %d finished jobs", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)


def new_job_id() -> str:
    return f"job_{uuid.uuid4().hex[:16]}"
