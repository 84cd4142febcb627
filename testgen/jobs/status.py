"""
Status resolver: maps a stored job onto the states callers can observe.
"""

from typing import Any, Dict

from testgen.jobs.errors import NotFound
from testgen.jobs.models import JobState, QueueName
from testgen.jobs.store import JobStore


STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


async def resolve_status(store: JobStore, queue_name: str, job_id: str) -> Dict[str, Any]:
    """
    Resolve the caller-visible status of a job.

    Waiting and active jobs both read as "processing"; callers only need
    to know the job is not done yet. Read-only, safe to poll.

    Raises:
        InvalidRequest: If queue_name is not a known queue
        NotFound: If the job never existed or has been evicted
    """
    queue = QueueName.parse(queue_name)

    job = await store.get_job(queue, job_id)
    if job is None:
        raise NotFound(f"Job {job_id} not found in queue {queue.value}")

    if job.state == JobState.COMPLETED:
        return {"status": STATUS_COMPLETED, "result": job.result}
    if job.state == JobState.FAILED:
        return {"status": STATUS_FAILED, "reason": job.failure_reason}
    return {"status": STATUS_PROCESSING}
