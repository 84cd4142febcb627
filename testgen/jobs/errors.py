"""
Error taxonomy for the generation job queue.

InvalidRequest and NotFound are raised synchronously to API callers.
GenerationFailure never crosses the producer/consumer boundary: the
worker records it as the job's failure reason. StoreUnavailable is fatal
to both enqueue and claim and surfaces as a server error.
"""


class JobQueueError(Exception):
    """Base class for job queue errors."""


class InvalidRequest(JobQueueError):
    """Malformed enqueue payload or unknown queue name."""


class NotFound(JobQueueError):
    """No record for this (queue, job id): never created, or evicted."""


class GenerationFailure(JobQueueError):
    """The generator errored, timed out, or returned unusable content."""


class StoreUnavailable(JobQueueError):
    """The job store could not be reached."""
