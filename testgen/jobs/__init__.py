"""
Generation job queue for background AI test generation.

Components:
- JobStore: store contract (RedisJobStore, SQLiteJobStore)
- GenerationJobQueue: producer side (validate + enqueue, status)
- GenerationWorker: claim -> generate -> terminal-write loop

Usage:
    # In an API endpoint - queue a job
    from testgen.jobs import GenerationJobQueue, get_job_store
    queue = GenerationJobQueue(await get_job_store())
    job_id = await queue.enqueue_suggestions(files)

    # Poll
    status = await queue.get_status("suggestions", job_id)

    # Worker process
    python -m testgen.jobs.run_worker
"""

from testgen.jobs.errors import (
    JobQueueError,
    InvalidRequest,
    NotFound,
    GenerationFailure,
    StoreUnavailable,
)
from testgen.jobs.models import Job, JobState, QueueName
from testgen.jobs.store import JobStore, get_job_store, set_job_store, close_job_store
from testgen.jobs.queue import GenerationJobQueue
from testgen.jobs.status import resolve_status
from testgen.jobs.worker import GenerationWorker, run_worker_pool

__all__ = [
    # Errors
    "JobQueueError",
    "InvalidRequest",
    "NotFound",
    "GenerationFailure",
    "StoreUnavailable",

    # Models
    "Job",
    "JobState",
    "QueueName",

    # Store
    "JobStore",
    "get_job_store",
    "set_job_store",
    "close_job_store",

    # Producer / status
    "GenerationJobQueue",
    "resolve_status",

    # Worker
    "GenerationWorker",
    "run_worker_pool",
]
