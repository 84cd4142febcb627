"""
Prompt builders for the two generation queues.

Files are flattened in input order with a visible header per file, so the
same request always produces the same prompt.
"""

from typing import Any, Dict, Iterable


def build_file_context(files: Iterable[Dict[str, Any]]) -> str:
    """Concatenate source files into one text block, one header per file."""
    return "\n\n".join(
        f"--- File: {f['name']} ---\n\n{f['content']}" for f in files
    )


def get_suggestions_prompt(files: Iterable[Dict[str, Any]]) -> str:
    """Ask for a strict JSON array of {title, description} test ideas."""
    return f"""As an expert software tester, analyze the following code file(s) and provide a concise list of suggested test cases.

For each suggestion, provide a short title and a one-sentence description.

Format the output as a valid JSON array of objects. Each object must have a "title" and a "description" property, both non-empty strings.
Do not include any other text or formatting before or after the JSON array.

--- Code for Analysis ---

{build_file_context(files)}"""


def get_code_prompt(files: Iterable[Dict[str, Any]], suggestion: Dict[str, Any]) -> str:
    """Ask for one fenced code block implementing a single test case."""
    title = suggestion["title"]
    description = suggestion.get("description") or ""

    return f"""As an expert test engineer, write a complete, runnable test file based on the provided code and the specific test case description.

Framework: use pytest for Python files. Use Jest and React Testing Library for JavaScript and React components.

Test Case to Implement:
- Title: "{title}"
- Description: "{description}"

Instructions:
1. Write only the code for this single test case.
2. The code must be complete and self-contained in a single file.
3. Include all necessary imports.
4. Assume the files under test are imported relative to the test file.
5. Wrap the final code in a single markdown code block. Do not add any other text or explanation.

--- Provided Code ---

{build_file_context(files)}"""
