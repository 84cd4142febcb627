"""
Task definitions for the generation queues.

Each queue has one handler: build the prompt, call the generator, parse the
response into the job result. Anything unusable in the response raises
GenerationFailure, which the worker records as the job's failure reason.
"""

import asyncio
import json
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional

from testgen.jobs.errors import GenerationFailure
from testgen.jobs.generator import ContentGenerator
from testgen.jobs.models import Job, QueueName
from testgen.jobs.prompts import get_code_prompt, get_suggestions_prompt


_LEADING_FENCE = re.compile(r"^```[\w.+#-]*[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?[ \t]*```$")
_EMBEDDED_BLOCK = re.compile(r"```[\w.+#-]*[ \t]*\n(.*?)\n[ \t]*```", re.DOTALL)
_JSON_ARRAY = re.compile(r"\[.*\]", re.DOTALL)


# =============================================================================
# RESPONSE PARSING
# =============================================================================

def strip_code_fences(text: str) -> str:
    """
    Remove markdown code fences around a model response.

    Handles ```json / ```python / bare ``` wrappers, and a fenced block
    with prose before or after it. Only the first closed block is kept.
    """
    text = text.strip()

    match = _EMBEDDED_BLOCK.search(text)
    if match:
        return match.group(1).strip()

    if text.startswith("```"):
        # Unclosed (or empty) block
        text = _LEADING_FENCE.sub("", text, count=1)
        text = _TRAILING_FENCE.sub("", text, count=1)
        return text.strip()

    return text


def parse_suggestions(text: str) -> List[Dict[str, str]]:
    """Parse a JSON array of {title, description} objects."""
    cleaned = strip_code_fences(text)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        # Model added prose around the array
        match = _JSON_ARRAY.search(cleaned)
        if not match:
            raise GenerationFailure("Generator response is not valid JSON")
        try:
            data = json.loads(match.group())
        except json.JSONDecodeError as e:
            raise GenerationFailure(f"Generator response is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise GenerationFailure("Expected a JSON array of suggestions")

    suggestions = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise GenerationFailure(f"Suggestion {index} is not an object")
        title = item.get("title")
        description = item.get("description")
        if not isinstance(title, str) or not title.strip():
            raise GenerationFailure(f"Suggestion {index} has no title")
        if not isinstance(description, str) or not description.strip():
            raise GenerationFailure(f"Suggestion {index} has no description")
        suggestions.append({"title": title.strip(), "description": description.strip()})

    return suggestions


def parse_code(text: str) -> str:
    """Extract raw test code from a fenced model response."""
    code = strip_code_fences(text)
    if not code:
        raise GenerationFailure("Generator returned no code")
    return code


# =============================================================================
# QUEUE HANDLERS
# =============================================================================

async def generate_suggestions_task(
    payload: Dict[str, Any],
    generator: ContentGenerator
) -> Dict[str, Any]:
    prompt = get_suggestions_prompt(payload["files"])
    text = await generator.generate(prompt)
    return {"suggestions": parse_suggestions(text)}


async def generate_code_task(
    payload: Dict[str, Any],
    generator: ContentGenerator
) -> Dict[str, Any]:
    prompt = get_code_prompt(payload["files"], payload["suggestion"])
    text = await generator.generate(prompt)
    return {"code": parse_code(text)}


TaskHandler = Callable[[Dict[str, Any], ContentGenerator], Awaitable[Dict[str, Any]]]

TASKS: Dict[QueueName, TaskHandler] = {
    QueueName.SUGGESTIONS: generate_suggestions_task,
    QueueName.CODE: generate_code_task,
}


async def run_task(
    job: Job,
    generator: ContentGenerator,
    timeout: Optional[float] = None
) -> Dict[str, Any]:
    """
    Run the handler for a claimed job.

    Args:
        job: The active job
        generator: Content generator to call
        timeout: Seconds before the call is abandoned (None = no limit)

    Returns:
        The job result

    Raises:
        GenerationFailure: On timeout or unusable output
    """
    handler = TASKS[job.queue_name]
    if not timeout:
        return await handler(job.payload, generator)

    try:
        return await asyncio.wait_for(handler(job.payload, generator), timeout)
    except asyncio.TimeoutError:
        raise GenerationFailure(f"Generation timed out after {timeout:g}s") from None
