"""
Lenient parsing of LLM categorization responses.

Models wrap JSON in code fences, prepend commentary, leave trailing commas,
or answer with a numbered list instead. Parsers here recover what they can
and return empty results rather than raising.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

NUMBERED_LINE_PATTERN = re.compile(r"(\d+)\s*[.):]\s*([A-Za-z_]+)")


def strip_code_fences(content: str) -> str:
    content = content.strip()
    if content.startswith("```json"):
        content = content[7:]
    elif content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


def parse_json_response(content: str) -> Any:
    """Parse JSON from an LLM response with robust handling of malformed output.

    Handles:
    - Markdown code blocks (```json ... ```)
    - JSON embedded in surrounding text (arrays before objects)
    - Trailing commas and stray control characters

    Args:
        content: Raw LLM response content.

    Returns:
        Parsed JSON value (list or dict).

    Raises:
        json.JSONDecodeError: If content cannot be parsed as JSON.
    """
    if not content or not content.strip():
        raise json.JSONDecodeError("Empty response", "", 0)

    content = strip_code_fences(content)

    try:
        return json.loads(content)
    except json.JSONDecodeError:
        pass

    # Arrays first so a list of objects is not cut down to its first element
    if "[" in content:
        array_match = re.search(r"\[[\s\S]*\]", content)
        if array_match:
            try:
                return json.loads(array_match.group())
            except json.JSONDecodeError:
                pass

    object_match = re.search(r"\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\}", content, re.DOTALL)
    if object_match:
        try:
            return json.loads(object_match.group())
        except json.JSONDecodeError:
            pass

    cleaned = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", content)
    cleaned = re.sub(r",\s*([}\]])", r"\1", cleaned)
    array_match = re.search(r"\[[\s\S]*\]", cleaned)
    if array_match:
        cleaned = array_match.group()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    raise json.JSONDecodeError(f"Could not parse JSON from response ({len(content)} chars)", content, 0)


def _as_confidence(value: Any, default: float) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return default
    return min(1.0, max(0.0, confidence))


def parse_indexed_categories(content: str, default_confidence: float = 0.5) -> list[tuple[int, str, float]]:
    """Read ``[{index|id, categoryId|category, confidence}]`` entries.

    Returns:
        (index, category id, confidence) triples; invalid entries are skipped.
    """
    try:
        data = parse_json_response(content)
    except json.JSONDecodeError as e:
        logger.warning(f"Malformed categorization response: {e.msg}")
        return []

    if isinstance(data, dict):
        data = data.get("results") or data.get("transactions") or [data]
    if not isinstance(data, list):
        return []

    entries = []
    for item in data:
        if not isinstance(item, dict):
            continue
        index = item.get("index", item.get("id"))
        category = item.get("categoryId") or item.get("category_id") or item.get("category")
        if index is None or not category:
            continue
        try:
            index = int(index)
        except (TypeError, ValueError):
            continue
        entries.append((index, str(category).strip().lower(), _as_confidence(item.get("confidence"), default_confidence)))
    return entries


def parse_numbered_lines(content: str) -> list[tuple[int, str]]:
    """Read ``1. groceries, 2. transport`` style answers as (number, category) pairs."""
    return [
        (int(number), category.lower())
        for number, category in NUMBERED_LINE_PATTERN.findall(content or "")
    ]


def parse_category_answer(content: str, default_confidence: float = 0.80) -> Optional[tuple[str, float]]:
    """Read a single ``{"categoryId": ..., "confidence": ...}`` answer."""
    if "{" not in (content or ""):
        return None
    try:
        data = parse_json_response(content)
    except json.JSONDecodeError:
        return None
    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict):
        return None
    category = data.get("categoryId") or data.get("category_id") or data.get("category")
    if not category:
        return None
    return str(category).strip().lower(), _as_confidence(data.get("confidence"), default_confidence)
