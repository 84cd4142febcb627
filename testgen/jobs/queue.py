"""
Generation job queue: the producer side.

Validates requests, creates jobs in the store and returns their ids
without waiting for generation.
"""

from typing import Any, Dict, List, Optional, Sequence

from testgen.jobs.errors import InvalidRequest
from testgen.jobs.models import QueueName
from testgen.jobs.status import resolve_status
from testgen.jobs.store import JobStore
from testgen.utils.logging import job_logger as logger


def validate_files(files: Optional[Sequence[Any]]) -> List[Dict[str, str]]:
    """Check the files list and normalise each entry to {name, content}."""
    if not files:
        raise InvalidRequest("No files provided for analysis.")

    normalised = []
    for index, item in enumerate(files):
        if not isinstance(item, dict):
            raise InvalidRequest(f"File {index} must be an object with name and content")
        name = item.get("name")
        content = item.get("content")
        if not isinstance(name, str) or not name.strip():
            raise InvalidRequest(f"File {index} is missing a name")
        if not isinstance(content, str):
            raise InvalidRequest(f"File {name} is missing its content")
        normalised.append({"name": name, "content": content})

    return normalised


def validate_suggestion(suggestion: Optional[Any]) -> Dict[str, str]:
    """Check the selected suggestion and normalise it to {title, description}."""
    if not suggestion:
        raise InvalidRequest("Missing suggestion for code generation.")
    if not isinstance(suggestion, dict):
        raise InvalidRequest("Suggestion must be an object with title and description")

    title = suggestion.get("title")
    description = suggestion.get("description", "")
    if not isinstance(title, str) or not title.strip():
        raise InvalidRequest("Suggestion is missing a title")
    if description is None:
        description = ""
    if not isinstance(description, str):
        raise InvalidRequest("Suggestion description must be a string")

    return {"title": title, "description": description}


class GenerationJobQueue:
    """
    High-level interface for the generation queues.

    Usage:
        queue = GenerationJobQueue(await get_job_store())

        job_id = await queue.enqueue_suggestions(files)
        status = await queue.get_status("suggestions", job_id)
    """

    def __init__(self, store: JobStore):
        self.store = store

    async def enqueue_suggestions(self, files: Optional[Sequence[Any]]) -> str:
        """
        Queue a test-suggestion analysis job.

        Args:
            files: Ordered list of {name, content} source files

        Returns:
            job_id: Unique identifier for polling the job

        Raises:
            InvalidRequest: If files is missing, empty or malformed
        """
        payload = {"files": validate_files(files)}
        job_id = await self.store.enqueue(QueueName.SUGGESTIONS, payload)

        logger.info(
            "Queued suggestions job",
            job_id=job_id,
            files=len(payload["files"])
        )
        return job_id

    async def enqueue_code(
        self,
        files: Optional[Sequence[Any]],
        suggestion: Optional[Any]
    ) -> str:
        """
        Queue a test-code synthesis job for one selected suggestion.

        Raises:
            InvalidRequest: If files or suggestion is missing or malformed
        """
        payload = {
            "files": validate_files(files),
            "suggestion": validate_suggestion(suggestion),
        }
        job_id = await self.store.enqueue(QueueName.CODE, payload)

        logger.info(
            "Queued code job",
            job_id=job_id,
            files=len(payload["files"]),
            title=payload["suggestion"]["title"]
        )
        return job_id

    async def get_status(self, queue_name: str, job_id: str) -> Dict[str, Any]:
        """Caller-visible status of a job. See resolve_status."""
        return await resolve_status(self.store, queue_name, job_id)
