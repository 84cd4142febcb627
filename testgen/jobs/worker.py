"""
Background workers for generation jobs.

Each GenerationWorker runs an explicit claim -> generate -> terminal-write
loop and holds at most one job at a time. A pool is N independent loops;
they coordinate only through the store's atomic claim.
"""

import asyncio
import time
from typing import Iterable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from testgen.config import config
from testgen.jobs.errors import GenerationFailure, StoreUnavailable
from testgen.jobs.generator import ContentGenerator
from testgen.jobs.models import Job, QueueName
from testgen.jobs.store import JobStore
from testgen.jobs.tasks import run_task
from testgen.utils.logging import worker_logger as logger


class GenerationWorker:
    """
    Background worker that processes generation jobs.

    Polls its queues in rotation, runs the generator for each claimed job
    and records the result or the failure reason. Generation errors never
    escape process(); StoreUnavailable does, and stops the worker.
    """

    def __init__(
        self,
        store: JobStore,
        generator: ContentGenerator,
        queues: Optional[Iterable[QueueName]] = None,
        poll_interval_seconds: Optional[float] = None,
        generation_timeout: Optional[float] = None,
        name: str = "worker"
    ):
        self.store = store
        self.generator = generator
        self.queues = list(queues) if queues else list(QueueName)
        self.poll_interval = poll_interval_seconds or config.WORKER_POLL_INTERVAL
        self.generation_timeout = (
            config.generation_timeout if generation_timeout is None else generation_timeout
        )
        self.name = name

        self._next_queue = 0
        self._current_job_id: str | None = None
        self._processed = 0

    async def run_once(self) -> bool:
        """
        Claim and process at most one job.

        Queues are tried in rotation starting after the last queue that
        produced work, so a busy queue cannot starve the other.

        Returns:
            True if a job was processed, False if every queue was empty
        """
        for offset in range(len(self.queues)):
            index = (self._next_queue + offset) % len(self.queues)
            queue_name = self.queues[index]

            job = await self.store.claim_next(queue_name)
            if job is None:
                continue

            self._next_queue = (index + 1) % len(self.queues)
            await self.process(job)
            return True

        return False

    async def process(self, job: Job) -> bool:
        """
        Process a single claimed job and write its terminal state.

        Returns:
            True if the job completed, False if it failed or its result was discarded
        """
        self._current_job_id = job.job_id
        start_time = time.time()

        logger.info(
            "Processing job",
            worker=self.name,
            job_id=job.job_id,
            queue=job.queue_name.value
        )

        try:
            try:
                result = await run_task(job, self.generator, self.generation_timeout)
            except GenerationFailure as e:
                reason = str(e)
            except Exception as e:
                reason = f"{type(e).__name__}: {e}"
            else:
                if not await self.store.mark_completed(job.queue_name, job.job_id, result):
                    logger.warning(
                        "Discarding result for job that is no longer active",
                        worker=self.name,
                        job_id=job.job_id,
                        queue=job.queue_name.value
                    )
                    return False
                logger.info(
                    "Job completed",
                    worker=self.name,
                    job_id=job.job_id,
                    queue=job.queue_name.value,
                    generation_time=f"{time.time() - start_time:.1f}s"
                )
                return True

            reason = reason.strip() or "Generation failed"
            logger.error(
                f"Job failed: {reason}",
                worker=self.name,
                job_id=job.job_id,
                queue=job.queue_name.value,
                generation_time=f"{time.time() - start_time:.1f}s"
            )
            await self.store.mark_failed(job.queue_name, job.job_id, reason)
            return False
        finally:
            self._current_job_id = None
            self._processed += 1

    async def run(self, stop_event: Optional[asyncio.Event] = None, burst: bool = False):
        """
        Main job processing loop.

        Args:
            stop_event: Checked between jobs; set it to stop after the current job
            burst: Return as soon as every queue is empty
        """
        logger.info(
            "Worker started",
            worker=self.name,
            queues=[q.value for q in self.queues],
            poll_interval=self.poll_interval,
            burst=burst
        )

        while not (stop_event and stop_event.is_set()):
            if await self.run_once():
                continue
            if burst:
                break
            await self._idle(stop_event)

        logger.info("Worker stopped", worker=self.name, processed=self._processed)

    async def _idle(self, stop_event: Optional[asyncio.Event]):
        if stop_event is None:
            await asyncio.sleep(self.poll_interval)
            return
        try:
            await asyncio.wait_for(stop_event.wait(), self.poll_interval)
        except asyncio.TimeoutError:
            pass

    @property
    def current_job(self) -> str | None:
        """Get the ID of the currently processing job"""
        return self._current_job_id

    @property
    def processed_count(self) -> int:
        return self._processed


async def run_worker_pool(
    store: JobStore,
    generator: ContentGenerator,
    concurrency: Optional[int] = None,
    queues: Optional[Iterable[QueueName]] = None,
    poll_interval_seconds: Optional[float] = None,
    burst: bool = False,
    stop_event: Optional[asyncio.Event] = None,
    name: str = "worker"
):
    """
    Run `concurrency` independent worker loops until stopped.

    Stores without native expiry get a periodic retention sweep.
    If any loop fails (e.g. StoreUnavailable), the others are cancelled
    and the error is re-raised.
    """
    concurrency = concurrency or config.WORKER_CONCURRENCY
    queues = list(queues) if queues else list(QueueName)

    workers = [
        GenerationWorker(
            store,
            generator,
            queues=queues,
            poll_interval_seconds=poll_interval_seconds,
            name=f"{name}-{i + 1}"
        )
        for i in range(concurrency)
    ]

    scheduler: AsyncIOScheduler | None = None
    if store.needs_retention_sweep and not burst:
        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            _retention_sweep,
            trigger=IntervalTrigger(seconds=config.RETENTION_SWEEP_SECONDS),
            args=[store],
            id="retention_sweep",
            name="Purge expired generation jobs",
            replace_existing=True,
            max_instances=1
        )
        scheduler.start()

    tasks = [asyncio.create_task(w.run(stop_event, burst)) for w in workers]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            task.result()
    finally:
        if scheduler and scheduler.running:
            scheduler.shutdown(wait=False)


async def _retention_sweep(store: JobStore):
    try:
        await store.purge_expired()
    except StoreUnavailable as e:
        logger.error(f"Retention sweep failed: {e}")
