"""
Store contract tests, run against both the SQLite and the Redis backend.
"""

import asyncio

import pytest

from testgen.jobs.errors import NotFound
from testgen.jobs.models import JobState, QueueName


PAYLOAD = {"files": [{"name": "a.js", "content": "function add(a,b){return a+b}"}]}


@pytest.mark.asyncio
async def test_enqueue_creates_waiting_job(store):
    job_id = await store.enqueue(QueueName.SUGGESTIONS, PAYLOAD)

    job = await store.get_job(QueueName.SUGGESTIONS, job_id)
    assert job is not None
    assert job.state == JobState.WAITING
    assert job.payload == PAYLOAD
    assert job.created_at
    assert job.started_at is None


@pytest.mark.asyncio
async def test_job_ids_are_unique(store):
    ids = {await store.enqueue(QueueName.SUGGESTIONS, PAYLOAD) for _ in range(20)}
    assert len(ids) == 20


@pytest.mark.asyncio
async def test_job_is_scoped_to_its_queue(store):
    job_id = await store.enqueue(QueueName.SUGGESTIONS, PAYLOAD)
    assert await store.get_job(QueueName.CODE, job_id) is None


@pytest.mark.asyncio
async def test_claim_is_fifo_and_marks_active(store):
    first = await store.enqueue(QueueName.SUGGESTIONS, PAYLOAD)
    second = await store.enqueue(QueueName.SUGGESTIONS, PAYLOAD)

    claimed = await store.claim_next(QueueName.SUGGESTIONS)
    assert claimed.job_id == first
    assert claimed.state == JobState.ACTIVE
    assert claimed.started_at

    stored = await store.get_job(QueueName.SUGGESTIONS, first)
    assert stored.state == JobState.ACTIVE

    assert (await store.claim_next(QueueName.SUGGESTIONS)).job_id == second
    assert await store.claim_next(QueueName.SUGGESTIONS) is None


@pytest.mark.asyncio
async def test_claim_only_reads_requested_queue(store):
    await store.enqueue(QueueName.CODE, PAYLOAD)
    assert await store.claim_next(QueueName.SUGGESTIONS) is None
    assert await store.claim_next(QueueName.CODE) is not None


@pytest.mark.asyncio
async def test_mark_completed(store):
    job_id = await store.enqueue(QueueName.CODE, PAYLOAD)
    await store.claim_next(QueueName.CODE)

    assert await store.mark_completed(QueueName.CODE, job_id, {"code": "test()"}) is True

    job = await store.get_job(QueueName.CODE, job_id)
    assert job.state == JobState.COMPLETED
    assert job.result == {"code": "test()"}
    assert job.failure_reason is None
    assert job.completed_at


@pytest.mark.asyncio
async def test_mark_failed(store):
    job_id = await store.enqueue(QueueName.CODE, PAYLOAD)
    await store.claim_next(QueueName.CODE)

    assert await store.mark_failed(QueueName.CODE, job_id, "model exploded") is True

    job = await store.get_job(QueueName.CODE, job_id)
    assert job.state == JobState.FAILED
    assert job.failure_reason == "model exploded"
    assert job.result is None


@pytest.mark.asyncio
async def test_terminal_state_is_never_overwritten(store):
    job_id = await store.enqueue(QueueName.SUGGESTIONS, PAYLOAD)
    await store.claim_next(QueueName.SUGGESTIONS)
    await store.mark_completed(QueueName.SUGGESTIONS, job_id, {"suggestions": []})

    assert await store.mark_failed(QueueName.SUGGESTIONS, job_id, "late failure") is False
    assert await store.mark_completed(QueueName.SUGGESTIONS, job_id, {"suggestions": [{"title": "x"}]}) is False

    job = await store.get_job(QueueName.SUGGESTIONS, job_id)
    assert job.state == JobState.COMPLETED
    assert job.result == {"suggestions": []}
    assert job.failure_reason is None


@pytest.mark.asyncio
async def test_waiting_job_cannot_be_finished(store):
    job_id = await store.enqueue(QueueName.SUGGESTIONS, PAYLOAD)

    assert await store.mark_completed(QueueName.SUGGESTIONS, job_id, {"suggestions": []}) is False
    assert (await store.get_job(QueueName.SUGGESTIONS, job_id)).state == JobState.WAITING


@pytest.mark.asyncio
async def test_terminal_write_for_unknown_job(store):
    with pytest.raises(NotFound):
        await store.mark_completed(QueueName.CODE, "missing", {"code": "x"})
    with pytest.raises(NotFound):
        await store.mark_failed(QueueName.CODE, "missing", "boom")


@pytest.mark.asyncio
async def test_get_unknown_job(store):
    assert await store.get_job(QueueName.SUGGESTIONS, "does-not-exist") is None


@pytest.mark.asyncio
async def test_queue_counts(store):
    done = await store.enqueue(QueueName.SUGGESTIONS, PAYLOAD)
    await store.enqueue(QueueName.SUGGESTIONS, PAYLOAD)
    await store.enqueue(QueueName.SUGGESTIONS, PAYLOAD)
    await store.claim_next(QueueName.SUGGESTIONS)
    await store.claim_next(QueueName.SUGGESTIONS)
    await store.mark_completed(QueueName.SUGGESTIONS, done, {"suggestions": []})

    counts = await store.queue_counts(QueueName.SUGGESTIONS)
    assert counts["waiting"] == 1
    assert counts["active"] == 1

    code_counts = await store.queue_counts(QueueName.CODE)
    assert code_counts["waiting"] == 0
    assert code_counts["active"] == 0


@pytest.mark.asyncio
async def test_concurrent_claims_never_share_a_job(store):
    enqueued = [await store.enqueue(QueueName.CODE, PAYLOAD) for _ in range(10)]

    claims = await asyncio.gather(*[store.claim_next(QueueName.CODE) for _ in range(15)])
    claimed = [job.job_id for job in claims if job is not None]

    assert len(claimed) == 10
    assert sorted(claimed) == sorted(enqueued)


@pytest.mark.asyncio
async def test_health_check(store):
    await store.enqueue(QueueName.CODE, PAYLOAD)

    health = await store.health_check()
    assert health["status"] == "healthy"
    assert health["connected"] is True
    assert health["backend"] in ("sqlite", "redis")
    assert health["queues"]["code"]["waiting"] == 1
    assert health["queues"]["suggestions"]["waiting"] == 0
