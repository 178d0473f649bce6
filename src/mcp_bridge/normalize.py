"""
Boundary helpers for MCP tool results.

``extract_text`` produces what goes back into the LLM transcript.
``normalize_items`` is the single place that recognises list-shaped payloads,
so callers never re-implement the shape sniffing.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Final, Union

__all__ = [
    "Items",
    "Unrecognized",
    "NormalizedResult",
    "MAX_RESULT_CHARS",
    "extract_text",
    "truncate",
    "normalize_items",
]

MAX_RESULT_CHARS: Final = 50_000

_LIST_KEYS: Final = ("results", "pages", "data")


@dataclass(frozen=True, slots=True)
class Items:
    items: list[Any]


@dataclass(frozen=True, slots=True)
class Unrecognized:
    raw: Any


NormalizedResult = Union[Items, Unrecognized]


def _first_text_block(result: Any) -> str | None:
    if not isinstance(result, dict):
        return None
    content = result.get("content")
    if not isinstance(content, list) or not content:
        return None
    for block in content:
        if isinstance(block, dict) and block.get("type") == "text" and block.get("text"):
            return block["text"]
    return None


def extract_text(result: Any) -> str:
    """Text of the first text content block, else the whole result as JSON."""
    if result is None:
        return ""
    if isinstance(result, str):
        return result
    text = _first_text_block(result)
    if text is not None:
        return text
    return json.dumps(result, indent=2, ensure_ascii=False, default=str)


def truncate(text: str, limit: int = MAX_RESULT_CHARS) -> str:
    return text if len(text) <= limit else text[:limit]


def normalize_items(payload: Any) -> NormalizedResult:
    """
    Locate the list of items in a tool result.

    Accepts a bare list, a dict with a list under ``results``, ``pages`` or
    ``data``, or an MCP tool result whose first text block holds such JSON.
    """
    text = _first_text_block(payload)
    if text is not None:
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return Unrecognized(payload)

    if isinstance(payload, list):
        return Items(payload)
    if isinstance(payload, dict):
        for key in _LIST_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return Items(value)
    return Unrecognized(payload)
