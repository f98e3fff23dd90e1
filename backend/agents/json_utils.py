"""
Robust JSON extraction and parsing utilities for LLM responses.

PROBLEM
-------
Even in JSON mode, models sometimes wrap the object in a code fence or
add a sentence around it:
    "Here is the query: {"sql": "SELECT 1"} Let me know!"

json.loads() fails on that with "Extra data" errors.

SOLUTION
--------
Always extract ONLY the first JSON object before parsing.
"""
import json
import re
from typing import Any, Dict, Optional, Tuple

_FENCE_RE = re.compile(r"```(?:json|sql|sqlite)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


class JSONExtractionError(Exception):
    """Raised when no valid JSON object can be extracted."""
    pass


def strip_code_fences(text: str) -> str:
    """
    Remove a surrounding markdown code fence, if any.

        >>> strip_code_fences("```sql\\nSELECT 1\\n```")
        'SELECT 1'
    """
    if not text:
        return ""
    text = text.strip()
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text


def extract_first_json_block(text: str) -> Tuple[str, Optional[str]]:
    """
    Extract the first JSON object from LLM response text.

    Algorithm:
    ----------
    1. Unwrap a markdown code fence if present
    2. Find the first '{' character
    3. Track brace depth (ignoring braces inside strings) to find the match
    4. Return extracted JSON and any stripped text

    Returns:
        Tuple of (json_string, stripped_text); stripped_text is None when
        the response was nothing but the object.

    Raises:
        JSONExtractionError: If no JSON object is found

    Examples:
        >>> extract_first_json_block('{"sql": "SELECT 1"}')
        ('{"sql": "SELECT 1"}', None)

        >>> extract_first_json_block('Query: {"a": 1} Done!')
        ('{"a": 1}', 'Query: Done!')
    """
    if not text or not isinstance(text, str):
        raise JSONExtractionError("Input text is empty or not a string")

    text = text.strip()
    outside = []

    match = _FENCE_RE.search(text)
    if match:
        outside.extend([text[:match.start()].strip(), text[match.end():].strip()])
        text = match.group(1).strip()

    start_idx = text.find('{')
    if start_idx == -1:
        raise JSONExtractionError("No JSON object found (no opening brace)")

    depth = 0
    in_string = False
    escape_next = False
    end_idx = None

    for i in range(start_idx, len(text)):
        char = text[i]

        if escape_next:
            escape_next = False
            continue

        if char == '\\':
            escape_next = True
            continue

        # Braces inside strings don't count
        if char == '"':
            in_string = not in_string
            continue

        if not in_string:
            if char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth == 0:
                    end_idx = i + 1
                    break

    if end_idx is None:
        raise JSONExtractionError("No matching closing brace found (unbalanced braces)")

    json_str = text[start_idx:end_idx].strip()
    outside.extend([text[:start_idx].strip(), text[end_idx:].strip()])
    stripped = " ".join(part for part in outside if part) or None

    return json_str, stripped


def safe_parse_llm_json(text: str) -> Tuple[Dict[str, Any], Optional[str]]:
    """
    Safely parse JSON from an LLM response.

    This is the REQUIRED pipeline for all LLM response parsing:
    1. Extract first JSON object
    2. Parse it
    3. Return result + any text that was stripped

    Raises:
        JSONExtractionError: If extraction or parsing fails, or the value
            is not an object
    """
    json_str, stripped_text = extract_first_json_block(text)

    try:
        parsed = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise JSONExtractionError(
            f"Extracted text is not valid JSON: {e}\n"
            f"Extracted: {json_str[:200]}"
        ) from e

    if not isinstance(parsed, dict):
        raise JSONExtractionError(
            f"Expected JSON object (dict), got {type(parsed).__name__}: {parsed}"
        )

    return parsed, stripped_text
