"""A ``local_time`` tool that reports the current wall-clock time."""

from __future__ import annotations

import json
from datetime import datetime

from gluekit.types import ContentPart, ContentType, Tool, ToolCall, ToolResult

_PARAMETERS = """{
  "type": "object",
  "properties": {
    "timezone": {
      "type": "string",
      "description": "Human-readable timezone label, for example America/Toronto"
    }
  },
  "required": ["timezone"]
}"""


async def local_time(call: ToolCall) -> ToolResult:
    """Return the current local time with the requested timezone label echoed back.

    Raises ``ValueError`` for malformed arguments or a missing timezone.
    """
    args = json.loads(call.arguments) if call.arguments else {}
    if args is None:
        args = {}
    if not isinstance(args, dict):
        raise ValueError("arguments must be a JSON object")
    label = args.get("timezone") or ""
    if not isinstance(label, str):
        raise ValueError("timezone must be a string")
    if not label:
        raise ValueError("timezone is required")
    payload = {
        "timezone": label,
        "time": datetime.now().astimezone().isoformat(timespec="seconds"),
    }
    text = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return ToolResult(content=[ContentPart(type=ContentType.TEXT, text=text)])


def local_time_tool() -> Tool:
    """Return the ``local_time`` tool with its parameter schema."""
    return Tool(
        name="local_time",
        description="Return the current local time for a requested timezone label.",
        parameters=_PARAMETERS,
        execute=local_time,
    )