"""
Chat parameter normalization for mcp-bridge.

Contract
- Standard keys work across providers:
  temperature: float
  max_tokens: int
  top_p: float
  tool_choice: str | dict
  stop: str | list[str]
  seed: int
  parallel_tool_calls: bool

- Tools are never passed here; the loop hands ToolDescriptors to the LLM
  client, which converts them with its adapter.
- Provider specific keys go under `extra` and pass through unchanged.
  Unknown top-level keys are moved into extra.
"""

from __future__ import annotations

from typing import Any, Final

# Type alias for chat messages
ChatMessage = dict[str, Any]

STANDARD_KEYS: Final = frozenset(
    {
        "temperature",
        "max_tokens",
        "top_p",
        "tool_choice",
        "stop",
        "user",
        "frequency_penalty",
        "presence_penalty",
        "parallel_tool_calls",
        "seed",
    }
)

DEFAULT_PARAMS: Final[dict[str, Any]] = {"temperature": 0.7, "max_tokens": 2000}


def normalize_params(params: dict | None) -> dict:
    """
    Normalize a user-supplied params dict to a single internal shape.

    Returns a dict with only standard keys plus an `extra` dict.
    Rules:
      - Keys not in STANDARD_KEYS are moved into extra
      - If the caller already passed an `extra` dict it is merged last
      - `tools` is rejected, tool catalogs travel separately

    Example
    -------
    >>> normalize_params({"temperature": 0.2, "safe_prompt": True})
    {'temperature': 0.2, 'extra': {'safe_prompt': True}}
    """
    if params is None:
        return {"extra": {}}
    if not isinstance(params, dict):
        raise TypeError(f"params must be a dict, got {type(params).__name__}")
    if "tools" in params:
        raise ValueError("pass tools to chat(tools=...), not inside params")

    user_extra = params.get("extra") or {}
    if not isinstance(user_extra, dict):
        raise TypeError("params['extra'] must be a dict")

    std: dict = {}
    extra: dict = {}
    for key, value in params.items():
        if key == "extra":
            continue
        if key in STANDARD_KEYS:
            std[key] = value
        else:
            extra[key] = value

    std["extra"] = {**extra, **user_extra}
    return std


def merge_params(defaults: dict | None, overrides: dict | None) -> dict:
    """
    Shallow-merge client defaults with per-call overrides, then normalize.

    Top-level keys are overwritten by overrides; `extra` is merged per key.
    An override of None removes the default.
    """
    base = normalize_params(defaults)
    over = normalize_params(overrides)

    merged_extra = {**base.pop("extra"), **over.pop("extra")}
    merged = {**base, **over}
    merged = {k: v for k, v in merged.items() if v is not None}
    merged["extra"] = merged_extra
    return merged
