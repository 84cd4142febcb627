"""
Job record and the enums that describe queues and job states.
"""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from testgen.jobs.errors import InvalidRequest


class QueueName(str, Enum):
    """The two independent job queues."""
    SUGGESTIONS = "suggestions"
    CODE = "code"

    @classmethod
    def parse(cls, value: str) -> "QueueName":
        try:
            return cls(value)
        except ValueError:
            raise InvalidRequest(f"Unknown queue: {value}") from None


class JobState(str, Enum):
    """Lifecycle of a job: waiting -> active -> completed | failed."""
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


def new_job_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Job:
    """One unit of requested generation work."""
    job_id: str
    queue_name: QueueName
    payload: Dict[str, Any]
    state: JobState = JobState.WAITING
    result: Optional[Dict[str, Any]] = None
    failure_reason: Optional[str] = None
    created_at: str = field(default_factory=utc_now)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None

    @staticmethod
    def encode_result(result: Dict[str, Any]) -> str:
        return json.dumps(result)

    def to_record(self) -> Dict[str, str]:
        """Flatten to string fields (Redis hash layout)."""
        record = {
            "job_id": self.job_id,
            "queue_name": self.queue_name.value,
            "payload": json.dumps(self.payload),
            "state": self.state.value,
            "created_at": self.created_at,
        }
        if self.result is not None:
            record["result"] = self.encode_result(self.result)
        if self.failure_reason is not None:
            record["failure_reason"] = self.failure_reason
        if self.started_at:
            record["started_at"] = self.started_at
        if self.completed_at:
            record["completed_at"] = self.completed_at
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Job":
        """Inverse of to_record; also accepts SQLite rows converted to dicts."""
        result = record.get("result")
        return cls(
            job_id=record["job_id"],
            queue_name=QueueName(record["queue_name"]),
            payload=json.loads(record["payload"]),
            state=JobState(record["state"]),
            result=json.loads(result) if result else None,
            failure_reason=record.get("failure_reason") or None,
            created_at=record["created_at"],
            started_at=record.get("started_at") or None,
            completed_at=record.get("completed_at") or None,
        )
