"""Parsing of oracle (LLM) responses into typed values."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
_GREEDY_RE = re.compile(r"\{.*\}", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Return the content of the first markdown code fence, or the text itself."""
    match = _FENCE_RE.search(text)
    return match.group(1).strip() if match else text.strip()


def first_balanced_object(text: str) -> str | None:
    """
    Find the first balanced ``{...}`` block, ignoring braces inside strings.

    Returns:
        The block including its braces, or None
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        start = text.find("{", start + 1)
    return None


def extract_json_object(text: str) -> Any:
    """
    Decode the JSON object embedded in an LLM response.

    Tries, in order: the whole (fence-stripped) text, the first balanced
    ``{...}`` block, the greedy first-``{`` to last-``}`` span.

    Raises:
        ValueError: If no candidate decodes
    """
    cleaned = strip_code_fences(text)
    candidates = [cleaned]
    balanced = first_balanced_object(cleaned)
    if balanced:
        candidates.append(balanced)
    greedy = _GREEDY_RE.search(cleaned)
    if greedy:
        candidates.append(greedy.group(0))

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    raise ValueError(f"No JSON object found in response: {text[:120]!r}")


def parse_oracle_json(text: str | None, schema: type[T], default: T | None = None) -> T | None:
    """
    Parse an oracle response against a pydantic schema.

    Args:
        text: Raw LLM output
        schema: Pydantic model the payload must satisfy
        default: Returned when the text cannot be decoded or validated

    Returns:
        The validated model, or ``default``
    """
    if not text:
        return default
    try:
        data = extract_json_object(text)
        return schema.model_validate(data)
    except (ValueError, ValidationError) as e:
        logger.warning(f"Unparseable oracle response for {schema.__name__}: {e}")
        return default
