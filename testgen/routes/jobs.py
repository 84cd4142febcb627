"""
Generation Jobs API Routes

Enqueue suggestion and code generation jobs, and poll their status.
Enqueue returns 202 with the job id immediately; results only ever
arrive through the status endpoint.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from testgen.jobs.errors import InvalidRequest, NotFound, StoreUnavailable
from testgen.jobs.models import QueueName
from testgen.jobs.queue import GenerationJobQueue
from testgen.jobs.store import JobStore, get_job_store


router = APIRouter(prefix="/jobs", tags=["jobs"])


# =============================================================================
# Request Models
# =============================================================================

class SourceFile(BaseModel):
    """One source file supplied by the repository browser."""
    name: str
    content: str


class SuggestionSelection(BaseModel):
    """The test case picked from an earlier suggestions result."""
    title: str
    description: str = ""


class SuggestionsJobRequest(BaseModel):
    files: Optional[List[SourceFile]] = None


class CodeJobRequest(BaseModel):
    files: Optional[List[SourceFile]] = None
    suggestion: Optional[SuggestionSelection] = None


# =============================================================================
# Dependencies
# =============================================================================

async def get_store() -> JobStore:
    """The configured job store; a misconfigured store is reported as unavailable."""
    try:
        return await get_job_store()
    except ValueError as e:
        raise StoreUnavailable(str(e)) from e


async def get_job_queue(store: JobStore = Depends(get_store)) -> GenerationJobQueue:
    return GenerationJobQueue(store)


def _accepted(job_id: str, queue_name: QueueName) -> dict:
    return {"jobId": job_id, "queue": queue_name.value, "status": "accepted"}


# =============================================================================
# Routes
# =============================================================================

@router.post("/suggestions", status_code=202)
async def create_suggestions_job(
    request: SuggestionsJobRequest,
    queue: GenerationJobQueue = Depends(get_job_queue)
):
    """
    Queue a test-suggestion analysis for the given files.

    Poll GET /jobs/suggestions/{jobId} for the result.
    """
    files = [f.model_dump() for f in request.files] if request.files else None

    try:
        job_id = await queue.enqueue_suggestions(files)
    except InvalidRequest as e:
        raise HTTPException(status_code=400, detail=str(e))

    return _accepted(job_id, QueueName.SUGGESTIONS)


@router.post("/code", status_code=202)
async def create_code_job(
    request: CodeJobRequest,
    queue: GenerationJobQueue = Depends(get_job_queue)
):
    """
    Queue test-code synthesis for one selected suggestion.

    Poll GET /jobs/code/{jobId} for the result.
    """
    files = [f.model_dump() for f in request.files] if request.files else None
    suggestion = request.suggestion.model_dump() if request.suggestion else None

    try:
        job_id = await queue.enqueue_code(files, suggestion)
    except InvalidRequest as e:
        raise HTTPException(status_code=400, detail=str(e))

    return _accepted(job_id, QueueName.CODE)


@router.get("/{queue_name}/{job_id}")
async def get_job_status(
    queue_name: str,
    job_id: str,
    queue: GenerationJobQueue = Depends(get_job_queue)
):
    """
    Get the status of a generation job.

    Returns {"status": "processing"}, {"status": "completed", "result": ...}
    or {"status": "failed", "reason": ...}.
    """
    try:
        return await queue.get_status(queue_name, job_id)
    except InvalidRequest:
        raise HTTPException(status_code=404, detail=f"Unknown queue: {queue_name}")
    except NotFound:
        raise HTTPException(status_code=404, detail="Job not found")
