"""
Job store contract and the process-wide store singleton.

Producers and consumers never talk to each other; every cross-process
guarantee (single delivery on claim, terminal writes that never overwrite
a different outcome) comes from the store implementation.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from testgen.config import config
from testgen.jobs.models import Job, JobState, QueueName


class JobStore(ABC):
    """Durable, shared storage for generation jobs."""

    @abstractmethod
    async def enqueue(self, queue_name: QueueName, payload: Dict[str, Any]) -> str:
        """Create a waiting job and make it visible to consumers. Returns the job id."""

    @abstractmethod
    async def claim_next(self, queue_name: QueueName) -> Optional[Job]:
        """Atomically move at most one waiting job to active and return it."""

    @abstractmethod
    async def mark_completed(
        self,
        queue_name: QueueName,
        job_id: str,
        result: Dict[str, Any]
    ) -> bool:
        """
        Terminal write for a successful job.

        Returns False (and changes nothing) when the job is not active,
        e.g. it already reached a terminal state. Raises NotFound for
        unknown ids.
        """

    @abstractmethod
    async def mark_failed(self, queue_name: QueueName, job_id: str, reason: str) -> bool:
        """Terminal write for a failed job. Same contract as mark_completed."""

    @abstractmethod
    async def get_job(self, queue_name: QueueName, job_id: str) -> Optional[Job]:
        """Look up a job; None if it never existed or has been evicted."""

    @abstractmethod
    async def queue_counts(self, queue_name: QueueName) -> Dict[str, int]:
        """Number of live jobs per state in a queue."""

    async def health_check(self) -> Dict[str, Any]:
        """
        Check store health. Never raises.

        Returns:
            Dict with status and per-queue counts
        """
        try:
            queues = {}
            for queue_name in QueueName:
                queues[queue_name.value] = await self.queue_counts(queue_name)
            return {
                "status": "healthy",
                "connected": True,
                "backend": self.backend_name,
                "queues": queues,
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "connected": False,
                "backend": self.backend_name,
                "error": str(e),
            }

    async def purge_expired(self) -> int:
        """Delete terminal jobs past their retention window. Returns rows removed."""
        return 0

    @property
    def needs_retention_sweep(self) -> bool:
        """True when expiry is not enforced by the backend itself."""
        return False

    @property
    @abstractmethod
    def backend_name(self) -> str:
        ...

    async def close(self):
        """Release connections."""


def empty_counts() -> Dict[str, int]:
    return {state.value: 0 for state in JobState}


# Singleton store
_store: Optional[JobStore] = None


async def get_job_store() -> JobStore:
    """
    Get the job store singleton, built from config on first use.

    Raises:
        ValueError: If the selected backend is not configured
        StoreUnavailable: If the backend cannot be reached
    """
    global _store

    if _store is not None:
        return _store

    if config.JOB_STORE_BACKEND == "redis":
        from testgen.jobs.redis_store import RedisJobStore
        store = RedisJobStore.from_url(config.REDIS_URL)
        opening = store.ping()
    else:
        from testgen.jobs.database import SQLiteJobStore
        store = SQLiteJobStore(config.SQLITE_JOB_DB_PATH)
        opening = store.connect()

    try:
        await opening
    except Exception:
        await store.close()
        raise

    # Another caller may have finished first while we were connecting
    if _store is not None:
        await store.close()
        return _store

    _store = store
    return _store


def set_job_store(store: Optional[JobStore]):
    """Install a specific store instance (used by tests and embedded workers)."""
    global _store
    _store = store


async def close_job_store():
    """Close the job store singleton (for cleanup)."""
    global _store

    if _store is not None:
        await _store.close()
        _store = None
