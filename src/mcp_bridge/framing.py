"""
Record framing for the two MCP transports.

- Byte streams (stdio) carry one JSON-RPC message per line; partial lines are
  buffered until the rest arrives.
- HTTP replies are either plain JSON or a ``text/event-stream`` body made of
  ``data: <json>`` records.

Malformed records are skipped, never raised.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

__all__ = ["LineBuffer", "decode_record", "parse_event_stream"]

logger = logging.getLogger(__name__)


class LineBuffer:
    """Accumulates stream chunks and yields complete newline-terminated records."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self._encoding = encoding
        self._pending = ""

    @property
    def pending(self) -> str:
        """The trailing, not yet terminated, record."""
        return self._pending

    def feed(self, chunk: bytes | str) -> list[str]:
        if isinstance(chunk, bytes):
            chunk = chunk.decode(self._encoding, errors="replace")
        lines = (self._pending + chunk).split("\n")
        # Keep the last, possibly incomplete, record for the next chunk
        self._pending = lines.pop()
        return [line.rstrip("\r") for line in lines]


def decode_record(line: str) -> Optional[dict[str, Any]]:
    """Parse one record into a JSON object, or return None if it is not one."""
    text = line.strip()
    if not text:
        return None
    try:
        message = json.loads(text)
    except json.JSONDecodeError:
        logger.debug("Skipping non-JSON record: %.200s", text)
        return None
    if not isinstance(message, dict):
        logger.debug("Skipping JSON record that is not an object: %.200s", text)
        return None
    return message


def parse_event_stream(body: str) -> Optional[dict[str, Any]]:
    """
    Return the first well-formed JSON object in an event-stream body.

    ``data:`` lines are preferred; bare lines that are not SSE comments or
    field lines are tried as well, since some servers omit the prefix.
    """
    for raw_line in body.splitlines():
        line = raw_line.strip()
        if not line or line.startswith(":"):
            continue
        if line.startswith("data:"):
            message = decode_record(line[len("data:"):])
        elif line.split(":", 1)[0] in ("event", "id", "retry"):
            continue
        else:
            message = decode_record(line)
        if message is not None:
            return message
    return None
