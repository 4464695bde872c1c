"""
Shared JSON Repair Utility

Extracts, repairs, and parses JSON objects from LLM responses.
Models asked for "ONLY valid JSON" still wrap it in markdown fences, add a
sentence of preamble, or emit Python literals. This module handles those
failure modes in a deterministic pipeline.

Used by: SearchPlanner (search query planning)
"""

import json
import logging
import re
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)\s*```", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Remove a markdown code fence wrapping, if present.

    ```json {...} ``` and bare ``` {...} ``` both reduce to the inner text.
    Unfenced text is returned stripped.
    """
    if not text:
        return ""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    # Unterminated fence (truncated output)
    if text.lstrip().startswith("```"):
        return re.sub(r"^\s*```(?:json|JSON)?", "", text).strip()
    return text.strip()


def extract_json_from_response(text: str) -> Optional[str]:
    """
    Extract a JSON object string from an LLM response.

    Tries (in order):
    1. Fenced code block contents
    2. Raw JSON object (outermost { ... })

    Returns:
        Extracted JSON string, or None if no JSON object found
    """
    if not text:
        return None

    stripped = strip_code_fences(text)
    if stripped.startswith("{"):
        return stripped

    json_match = re.search(r"\{[\s\S]*\}", stripped)
    if json_match:
        return json_match.group(0).strip()

    return None


def repair_json(json_str: str) -> str:
    """
    Attempt to repair malformed JSON from LLM output.

    Handles common LLM JSON failure modes:
    1. Trailing content after the closing brace
    2. Python literals (None, True, False instead of null, true, false)
    3. Single-quoted keys and values
    4. Trailing commas before } or ]
    5. Unclosed braces/brackets from truncation

    Returns:
        Repaired JSON string (may still be invalid in edge cases)
    """
    original = json_str

    # Step 1: Truncate at last complete top-level brace
    brace_count = 0
    last_valid_pos = 0
    for i, c in enumerate(json_str):
        if c == "{":
            brace_count += 1
        elif c == "}":
            brace_count -= 1
            if brace_count == 0:
                last_valid_pos = i + 1
    if 0 < last_valid_pos < len(json_str):
        json_str = json_str[:last_valid_pos]

    # Step 2: Fix Python-style values
    json_str = re.sub(r"\bNone\b", "null", json_str)
    json_str = re.sub(r"\bTrue\b", "true", json_str)
    json_str = re.sub(r"\bFalse\b", "false", json_str)

    # Step 3: Single quotes to double quotes (only where they look like delimiters)
    json_str = re.sub(r"(?<=[{,:\[])\s*'([^']*?)'\s*(?=[},:\]])", r'"\1"', json_str)
    json_str = re.sub(r"'(\w+)':", r'"\1":', json_str)

    # Step 4: Remove trailing commas
    json_str = re.sub(r",\s*}", "}", json_str)
    json_str = re.sub(r",\s*]", "]", json_str)

    # Step 5: Close unclosed braces/brackets if truncated
    open_braces = json_str.count("{") - json_str.count("}")
    open_brackets = json_str.count("[") - json_str.count("]")
    if open_braces > 0 or open_brackets > 0:
        json_str += "]" * max(open_brackets, 0) + "}" * open_braces

    if json_str != original:
        logger.debug("Applied JSON repairs")

    return json_str


def parse_json_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Full pipeline: extract a JSON object from an LLM response, repair, and parse.

    Never raises. Returns None when nothing object-shaped can be recovered.
    """
    json_str = extract_json_from_response(text)
    if json_str is None:
        return None

    # Fast path
    try:
        parsed = json.loads(json_str)
    except json.JSONDecodeError:
        try:
            parsed = json.loads(repair_json(json_str))
        except json.JSONDecodeError as e:
            logger.debug(f"JSON parse failed after repairs: {e}")
            return None

    return parsed if isinstance(parsed, dict) else None
