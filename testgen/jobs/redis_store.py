"""
Redis job store.

Layout per queue (prefix defaults to "testgen"):

    {prefix}:job:{queue}:{job_id}     hash, one per job
    {prefix}:queue:{queue}:waiting    list of waiting job ids (FIFO)
    {prefix}:queue:{queue}:active     list of claimed job ids

A claim is a single LMOVE from waiting to active, so each id is handed to
exactly one consumer. Terminal writes run under WATCH so a job that already
finished is never rewritten. Terminal hashes expire after the configured
retention window.
"""

from contextlib import contextmanager
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    TimeoutError as RedisTimeoutError,
    WatchError,
)

from testgen.config import config
from testgen.jobs.errors import NotFound, StoreUnavailable
from testgen.jobs.models import Job, JobState, QueueName, new_job_id, utc_now
from testgen.jobs.store import JobStore
from testgen.utils.logging import store_logger as logger


@contextmanager
def _translate_errors():
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as e:
        raise StoreUnavailable(f"Redis unavailable: {e}") from e


class RedisJobStore(JobStore):
    """Job store backed by a shared Redis instance."""

    def __init__(
        self,
        client: redis.Redis,
        key_prefix: Optional[str] = None,
        result_ttl: Optional[int] = None,
        failure_ttl: Optional[int] = None,
    ):
        self._redis = client
        self.key_prefix = key_prefix or config.REDIS_KEY_PREFIX
        self.result_ttl = result_ttl or config.RESULT_TTL_SECONDS
        self.failure_ttl = failure_ttl or config.FAILURE_TTL_SECONDS

    @classmethod
    def from_url(cls, redis_url: Optional[str], **kwargs) -> "RedisJobStore":
        """
        Build a store from a redis:// or rediss:// URL.

        Raises:
            ValueError: If no URL is configured
        """
        if not redis_url:
            raise ValueError(
                "REDIS_URL environment variable is required for the redis job store. "
                "Set REDIS_URL or use JOB_STORE_BACKEND=sqlite."
            )

        client = redis.Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=10,
            socket_connect_timeout=10,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        return cls(client, **kwargs)

    @property
    def backend_name(self) -> str:
        return "redis"

    # =========================================================================
    # Keys
    # =========================================================================

    def _job_key(self, queue_name: QueueName, job_id: str) -> str:
        return f"{self.key_prefix}:job:{queue_name.value}:{job_id}"

    def _waiting_key(self, queue_name: QueueName) -> str:
        return f"{self.key_prefix}:queue:{queue_name.value}:waiting"

    def _active_key(self, queue_name: QueueName) -> str:
        return f"{self.key_prefix}:queue:{queue_name.value}:active"

    # =========================================================================
    # Operations
    # =========================================================================

    async def ping(self):
        with _translate_errors():
            await self._redis.ping()
        logger.info("Redis job store connected", prefix=self.key_prefix)

    async def enqueue(self, queue_name: QueueName, payload: Dict[str, Any]) -> str:
        job = Job(job_id=new_job_id(), queue_name=queue_name, payload=payload)

        with _translate_errors():
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.hset(self._job_key(queue_name, job.job_id), mapping=job.to_record())
                pipe.rpush(self._waiting_key(queue_name), job.job_id)
                await pipe.execute()

        return job.job_id

    async def claim_next(self, queue_name: QueueName) -> Optional[Job]:
        with _translate_errors():
            while True:
                job_id = await self._redis.lmove(
                    self._waiting_key(queue_name),
                    self._active_key(queue_name),
                    "LEFT",
                    "RIGHT",
                )
                if job_id is None:
                    return None

                # Only this caller holds job_id now.
                key = self._job_key(queue_name, job_id)
                record = await self._redis.hgetall(key)
                if not record:
                    logger.warning("Dropping queued id with no job record", job_id=job_id, queue=queue_name.value)
                    await self._redis.lrem(self._active_key(queue_name), 0, job_id)
                    continue

                started_at = utc_now()
                await self._redis.hset(key, mapping={
                    "state": JobState.ACTIVE.value,
                    "started_at": started_at,
                })
                record["state"] = JobState.ACTIVE.value
                record["started_at"] = started_at
                return Job.from_record(record)

    async def mark_completed(
        self,
        queue_name: QueueName,
        job_id: str,
        result: Dict[str, Any]
    ) -> bool:
        return await self._finish(
            queue_name,
            job_id,
            {"result": Job.encode_result(result)},
            JobState.COMPLETED,
            self.result_ttl,
        )

    async def mark_failed(self, queue_name: QueueName, job_id: str, reason: str) -> bool:
        return await self._finish(
            queue_name,
            job_id,
            {"failure_reason": reason},
            JobState.FAILED,
            self.failure_ttl,
        )

    async def _finish(
        self,
        queue_name: QueueName,
        job_id: str,
        fields: Dict[str, str],
        state: JobState,
        ttl: int,
    ) -> bool:
        key = self._job_key(queue_name, job_id)
        fields = {**fields, "state": state.value, "completed_at": utc_now()}

        with _translate_errors():
            async with self._redis.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(key)
                        current = await pipe.hget(key, "state")
                        if current is None:
                            raise NotFound(f"Job {job_id} not found in queue {queue_name.value}")
                        if current != JobState.ACTIVE.value:
                            logger.warning(
                                "Ignoring terminal write for job that is not active",
                                job_id=job_id,
                                current_state=current,
                                requested_state=state.value,
                            )
                            return False

                        pipe.multi()
                        pipe.hset(key, mapping=fields)
                        pipe.expire(key, ttl)
                        pipe.lrem(self._active_key(queue_name), 0, job_id)
                        await pipe.execute()
                        return True
                    except WatchError:
                        continue

    async def get_job(self, queue_name: QueueName, job_id: str) -> Optional[Job]:
        with _translate_errors():
            record = await self._redis.hgetall(self._job_key(queue_name, job_id))
        if not record:
            return None
        return Job.from_record(record)

    async def queue_counts(self, queue_name: QueueName) -> Dict[str, int]:
        # Terminal hashes are only reachable by key; lists track live jobs.
        with _translate_errors():
            waiting = await self._redis.llen(self._waiting_key(queue_name))
            active = await self._redis.llen(self._active_key(queue_name))
        return {JobState.WAITING.value: waiting, JobState.ACTIVE.value: active}

    async def close(self):
        await self._redis.aclose()
