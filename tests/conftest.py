"""
Pytest configuration and shared fixtures.

Stores are real: SQLite on tmp_path, Redis through fakeredis. The
generator is scripted so tests never reach a model.
"""
from __future__ import annotations

import asyncio
import json
from typing import Callable, List, Optional, Union

import fakeredis
import pytest

from testgen.jobs.database import SQLiteJobStore
from testgen.jobs.generator import ContentGenerator
from testgen.jobs.redis_store import RedisJobStore


SAMPLE_FILES = [
    {"name": "a.js", "content": "function add(a,b){return a+b}"},
]

SAMPLE_SUGGESTION = {
    "title": "Adds two positive numbers",
    "description": "add(2, 3) returns 5.",
}

SUGGESTIONS_RESPONSE = "```json\n" + json.dumps([
    {"title": "Adds two positive numbers", "description": "add(2, 3) returns 5."},
    {"title": "Adds negative numbers", "description": "add(-2, -3) returns -5."},
]) + "\n```"

CODE_RESPONSE = (
    "```javascript\n"
    "const { add } = require('./a');\n"
    "\n"
    "test('adds two positive numbers', () => {\n"
    "  expect(add(2, 3)).toBe(5);\n"
    "});\n"
    "```"
)


class FakeGenerator(ContentGenerator):
    """
    Scripted generator.

    `response` is either a fixed string or a function of the prompt.
    Set `error` to make every call raise it; `delay` simulates latency.
    """

    def __init__(
        self,
        response: Union[str, Callable[[str], str]] = "",
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.response = response
        self.error = error
        self.delay = delay
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if callable(self.response):
            return self.response(prompt)
        return self.response


def routing_response(prompt: str) -> str:
    """Answer like a well-behaved model for either queue."""
    if "Test Case to Implement" in prompt:
        return CODE_RESPONSE
    return SUGGESTIONS_RESPONSE


@pytest.fixture
def sample_files():
    return [dict(f) for f in SAMPLE_FILES]


@pytest.fixture
def sample_suggestion():
    return dict(SAMPLE_SUGGESTION)


@pytest.fixture
async def sqlite_store(tmp_path):
    store = SQLiteJobStore(str(tmp_path / "jobs.db"))
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
def fake_redis_server():
    return fakeredis.FakeServer()


@pytest.fixture
async def redis_store(fake_redis_server):
    client = fakeredis.FakeAsyncRedis(server=fake_redis_server, decode_responses=True)
    store = RedisJobStore(client, key_prefix="test")
    yield store
    await store.close()


@pytest.fixture(params=["sqlite", "redis"])
async def store(request, tmp_path, fake_redis_server):
    """Run the contract tests against both store backends."""
    if request.param == "sqlite":
        job_store = SQLiteJobStore(str(tmp_path / "jobs.db"))
        await job_store.connect()
    else:
        client = fakeredis.FakeAsyncRedis(server=fake_redis_server, decode_responses=True)
        job_store = RedisJobStore(client, key_prefix="test")
    yield job_store
    await job_store.close()
