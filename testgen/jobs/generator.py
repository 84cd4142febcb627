"""
Generative content producer used by the worker.

The worker only depends on ContentGenerator.generate(prompt) -> text, so
tests and alternative backends can swap the Claude client out.
"""

from typing import Optional

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage

from testgen.config import config


class ContentGenerator:
    """Turns a prompt into generated text."""

    async def generate(self, prompt: str) -> str:
        raise NotImplementedError


class AnthropicGenerator(ContentGenerator):
    """
    Claude-backed generator.

    Client-side retries are disabled: a failed call fails the job, and a
    retry is a new job enqueued by the caller.
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        if not config.ANTHROPIC_API_KEY:
            raise ValueError("ANTHROPIC_API_KEY environment variable is required for generation")

        self.model_name = model_name or config.MODEL_NAME
        self.llm = ChatAnthropic(
            model=self.model_name,
            temperature=config.TEMPERATURE if temperature is None else temperature,
            max_tokens=max_tokens or config.MAX_TOKENS,
            anthropic_api_key=config.ANTHROPIC_API_KEY,
            timeout=timeout or config.generation_timeout,
            max_retries=0,
        )

    async def generate(self, prompt: str) -> str:
        response = await self.llm.ainvoke([HumanMessage(content=prompt)])
        return _content_text(response.content)


def _content_text(content) -> str:
    """Message content is either a string or a list of content blocks."""
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)
