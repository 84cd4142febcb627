"""
Tests for prompt construction and response parsing.
"""

import pytest

from testgen.jobs.errors import GenerationFailure
from testgen.jobs.models import Job, QueueName
from testgen.jobs.prompts import build_file_context, get_code_prompt, get_suggestions_prompt
from testgen.jobs.tasks import parse_code, parse_suggestions, run_task, strip_code_fences

from tests.conftest import CODE_RESPONSE, FakeGenerator, SUGGESTIONS_RESPONSE


class TestStripCodeFences:
    def test_language_fence(self):
        assert strip_code_fences("```json\n[1, 2]\n```") == "[1, 2]"

    def test_bare_fence(self):
        assert strip_code_fences("```\nprint('x')\n```") == "print('x')"

    def test_no_fence(self):
        assert strip_code_fences("  plain text \n") == "plain text"

    def test_block_after_preamble(self):
        text = "Here is the test:\n```python\ndef test_x():\n    assert True\n```\nGood luck!"
        assert strip_code_fences(text) == "def test_x():\n    assert True"

    def test_block_followed_by_prose(self):
        text = "```javascript\ntest('x', () => {});\n```\nThis test checks addition."
        assert strip_code_fences(text) == "test('x', () => {});"

    def test_unclosed_fence(self):
        assert strip_code_fences("```python\ndef test_x():\n    pass") == "def test_x():\n    pass"


class TestParseSuggestions:
    def test_fenced_array(self):
        suggestions = parse_suggestions(SUGGESTIONS_RESPONSE)
        assert len(suggestions) == 2
        assert suggestions[0] == {
            "title": "Adds two positive numbers",
            "description": "add(2, 3) returns 5.",
        }

    def test_array_surrounded_by_prose(self):
        text = 'Sure! [{"title": "T", "description": "D"}] Hope this helps.'
        assert parse_suggestions(text) == [{"title": "T", "description": "D"}]

    def test_whitespace_trimmed(self):
        text = '[{"title": "  T ", "description": " D  "}]'
        assert parse_suggestions(text) == [{"title": "T", "description": "D"}]

    def test_empty_array_is_allowed(self):
        assert parse_suggestions("[]") == []

    def test_not_json(self):
        with pytest.raises(GenerationFailure, match="not valid JSON"):
            parse_suggestions("I could not find anything to test.")

    def test_object_instead_of_array(self):
        with pytest.raises(GenerationFailure, match="JSON array"):
            parse_suggestions('{"title": "T", "description": "D"}')

    def test_missing_description(self):
        with pytest.raises(GenerationFailure, match="no description"):
            parse_suggestions('[{"title": "T"}]')

    def test_empty_title(self):
        with pytest.raises(GenerationFailure, match="no title"):
            parse_suggestions('[{"title": "", "description": "D"}]')

    def test_non_object_item(self):
        with pytest.raises(GenerationFailure, match="not an object"):
            parse_suggestions('["just a string"]')


class TestParseCode:
    def test_fenced_code(self):
        code = parse_code(CODE_RESPONSE)
        assert code.startswith("const { add } = require('./a');")
        assert "```" not in code

    def test_unfenced_code_kept(self):
        assert parse_code("def test_a():\n    pass") == "def test_a():\n    pass"

    def test_empty_response(self):
        with pytest.raises(GenerationFailure):
            parse_code("```\n```")

    def test_blank_response(self):
        with pytest.raises(GenerationFailure):
            parse_code("   ")


class TestPrompts:
    def test_file_context_keeps_input_order(self):
        files = [
            {"name": "b.py", "content": "B"},
            {"name": "a.py", "content": "A"},
        ]
        context = build_file_context(files)
        assert context == "--- File: b.py ---\n\nB\n\n--- File: a.py ---\n\nA"

    def test_suggestions_prompt_is_deterministic(self, sample_files):
        assert get_suggestions_prompt(sample_files) == get_suggestions_prompt(sample_files)
        assert "--- File: a.js ---" in get_suggestions_prompt(sample_files)

    def test_code_prompt_includes_suggestion(self, sample_files, sample_suggestion):
        prompt = get_code_prompt(sample_files, sample_suggestion)
        assert 'Title: "Adds two positive numbers"' in prompt
        assert 'Description: "add(2, 3) returns 5."' in prompt
        assert "function add(a,b){return a+b}" in prompt


class TestRunTask:
    @pytest.mark.asyncio
    async def test_suggestions_result(self, sample_files):
        job = Job(job_id="j1", queue_name=QueueName.SUGGESTIONS, payload={"files": sample_files})
        generator = FakeGenerator(SUGGESTIONS_RESPONSE)

        result = await run_task(job, generator)

        assert [s["title"] for s in result["suggestions"]] == [
            "Adds two positive numbers",
            "Adds negative numbers",
        ]
        assert generator.prompts == [get_suggestions_prompt(sample_files)]

    @pytest.mark.asyncio
    async def test_code_result(self, sample_files, sample_suggestion):
        job = Job(
            job_id="j2",
            queue_name=QueueName.CODE,
            payload={"files": sample_files, "suggestion": sample_suggestion},
        )
        result = await run_task(job, FakeGenerator(CODE_RESPONSE))
        assert "expect(add(2, 3)).toBe(5);" in result["code"]

    @pytest.mark.asyncio
    async def test_timeout_becomes_generation_failure(self, sample_files):
        job = Job(job_id="j3", queue_name=QueueName.SUGGESTIONS, payload={"files": sample_files})
        generator = FakeGenerator(SUGGESTIONS_RESPONSE, delay=1.0)

        with pytest.raises(GenerationFailure, match="timed out"):
            await run_task(job, generator, timeout=0.05)

    @pytest.mark.asyncio
    async def test_zero_timeout_means_no_limit(self, sample_files):
        job = Job(job_id="j4", queue_name=QueueName.SUGGESTIONS, payload={"files": sample_files})
        generator = FakeGenerator(SUGGESTIONS_RESPONSE, delay=0.01)

        result = await run_task(job, generator, timeout=0)
        assert len(result["suggestions"]) == 2
