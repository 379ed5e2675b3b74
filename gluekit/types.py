"""Provider-neutral transcript, tool, provider and loop event types.

Every type serializes to a JSON-friendly ``dict`` with ``to_dict`` and is
rebuilt with ``from_dict``. Empty optional fields are left out of the
serialized form. Raw JSON payloads, which are tool call arguments and tool
parameter schemas, are kept as JSON text and embedded as JSON values when
serialized.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


class MessageRole(StrEnum):
    """Which actor produced a transcript message."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ContentType(StrEnum):
    """Which payload field of a :class:`ContentPart` is active."""

    TEXT = "text"
    THINKING = "thinking"
    IMAGE = "image"
    TOOL_CALL = "tool_call"


class StopReason(StrEnum):
    """Why a provider finished an assistant turn."""

    STOP = "stop"
    LENGTH = "length"
    TOOL_USE = "tool_use"
    ERROR = "error"
    CANCELED = "canceled"
    # The loop ran out of turns while the assistant still requested tools.
    MAX_TURNS = "max_turns"


class ProviderEventType(StrEnum):
    """Kinds of events a provider stream yields."""

    START = "start"
    TEXT_DELTA = "text_delta"
    THINKING_DELTA = "thinking_delta"
    TOOL_CALL = "tool_call"
    DONE = "done"
    ERROR = "error"


class EventType(StrEnum):
    """Kinds of events the agent loop emits."""

    LOOP_START = "loop_start"
    LOOP_END = "loop_end"
    TURN_START = "turn_start"
    TURN_END = "turn_end"
    MESSAGE_START = "message_start"
    MESSAGE_END = "message_end"
    TEXT_DELTA = "text_delta"
    TOOL_START = "tool_start"
    TOOL_END = "tool_end"
    ERROR = "error"


def _raw_to_value(raw: str) -> Any:
    return json.loads(raw)


def _value_to_raw(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


def _format_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.isoformat().replace("+00:00", "Z")


def _parse_time(text: str | None) -> datetime | None:
    if not text:
        return None
    moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    if moment == _ZERO_TIME:
        return None
    return moment


@dataclass
class ImageContent:
    """An inline base64-encoded image."""

    data: str
    mime_type: str


@dataclass
class ToolCall:
    """A model request to invoke a named tool with JSON object arguments."""

    id: str
    name: str
    arguments: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.arguments:
            out["arguments"] = _raw_to_value(self.arguments)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolCall:
        arguments = _value_to_raw(data["arguments"]) if "arguments" in data else ""
        return cls(id=data.get("id", ""), name=data.get("name", ""), arguments=arguments)


@dataclass
class ContentPart:
    """A provider-neutral content block; ``type`` selects the active field."""

    type: ContentType
    text: str = ""
    thinking: str = ""
    image: ImageContent | None = None
    tool_call: ToolCall | None = None
    signature: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": str(self.type)}
        if self.text:
            out["text"] = self.text
        if self.thinking:
            out["thinking"] = self.thinking
        if self.image is not None:
            out["image"] = {"data": self.image.data, "mime_type": self.image.mime_type}
        if self.tool_call is not None:
            out["tool_call"] = self.tool_call.to_dict()
        if self.signature:
            out["signature"] = self.signature
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContentPart:
        image_data = data.get("image")
        call_data = data.get("tool_call")
        return cls(
            type=ContentType(data["type"]),
            text=data.get("text", ""),
            thinking=data.get("thinking", ""),
            image=(
                ImageContent(data=image_data.get("data", ""), mime_type=image_data.get("mime_type", ""))
                if image_data is not None
                else None
            ),
            tool_call=ToolCall.from_dict(call_data) if call_data is not None else None,
            signature=data.get("signature", ""),
        )


@dataclass
class Usage:
    """Token accounting reported by a provider."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0
    total_tokens: int = 0

    def to_dict(self) -> dict[str, Any]:
        values = {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cache_read_tokens": self.cache_read_tokens,
            "cache_write_tokens": self.cache_write_tokens,
            "total_tokens": self.total_tokens,
        }
        return {key: value for key, value in values.items() if value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Usage:
        return cls(
            input_tokens=int(data.get("input_tokens", 0)),
            output_tokens=int(data.get("output_tokens", 0)),
            cache_read_tokens=int(data.get("cache_read_tokens", 0)),
            cache_write_tokens=int(data.get("cache_write_tokens", 0)),
            total_tokens=int(data.get("total_tokens", 0)),
        )


@dataclass
class Message:
    """A normalized transcript entry."""

    role: MessageRole
    content: list[ContentPart] = field(default_factory=list)
    id: str = ""
    tool_call_id: str = ""
    tool_name: str = ""
    is_error: bool = False
    provider: str = ""
    model: str = ""
    stop_reason: StopReason | None = None
    usage: Usage | None = None
    created_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.id:
            out["id"] = self.id
        out["role"] = str(self.role)
        if self.content:
            out["content"] = [part.to_dict() for part in self.content]
        if self.tool_call_id:
            out["tool_call_id"] = self.tool_call_id
        if self.tool_name:
            out["tool_name"] = self.tool_name
        if self.is_error:
            out["is_error"] = True
        if self.provider:
            out["provider"] = self.provider
        if self.model:
            out["model"] = self.model
        if self.stop_reason:
            out["stop_reason"] = str(self.stop_reason)
        if self.usage is not None:
            out["usage"] = self.usage.to_dict()
        if self.created_at is not None:
            out["created_at"] = _format_time(self.created_at)
        if self.metadata:
            out["metadata"] = dict(self.metadata)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        usage_data = data.get("usage")
        stop = data.get("stop_reason")
        return cls(
            role=MessageRole(data["role"]),
            content=[ContentPart.from_dict(part) for part in data.get("content") or []],
            id=data.get("id", ""),
            tool_call_id=data.get("tool_call_id", ""),
            tool_name=data.get("tool_name", ""),
            is_error=bool(data.get("is_error", False)),
            provider=data.get("provider", ""),
            model=data.get("model", ""),
            stop_reason=StopReason(stop) if stop else None,
            usage=Usage.from_dict(usage_data) if usage_data is not None else None,
            created_at=_parse_time(data.get("created_at")),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class ToolSpec:
    """The provider-visible description of a tool."""

    name: str
    description: str = ""
    parameters: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"name": self.name, "description": self.description}
        if self.parameters:
            out["parameters"] = _raw_to_value(self.parameters)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolSpec:
        parameters = _value_to_raw(data["parameters"]) if "parameters" in data else ""
        return cls(name=data.get("name", ""), description=data.get("description", ""), parameters=parameters)


@dataclass
class ToolResult:
    """The local result produced by a tool executor."""

    content: list[ContentPart] = field(default_factory=list)
    is_error: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.content:
            out["content"] = [part.to_dict() for part in self.content]
        if self.is_error:
            out["is_error"] = True
        if self.metadata:
            out["metadata"] = dict(self.metadata)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolResult:
        return cls(
            content=[ContentPart.from_dict(part) for part in data.get("content") or []],
            is_error=bool(data.get("is_error", False)),
            metadata=dict(data.get("metadata") or {}),
        )


ToolExecutor = Callable[[ToolCall], Awaitable[ToolResult]]


@dataclass
class Tool(ToolSpec):
    """A tool specification together with the coroutine function that runs it."""

    execute: ToolExecutor | None = field(default=None, repr=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the provider-visible part; the executor is never included."""
        return super().to_dict()


@dataclass
class ProviderRequest:
    """The normalized input sent to a provider for one assistant turn."""

    model: str = ""
    system_prompt: str = ""
    messages: list[Message] = field(default_factory=list)
    tools: list[ToolSpec] = field(default_factory=list)
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProviderEvent:
    """A provider-neutral streaming event; active fields depend on ``type``."""

    type: ProviderEventType
    message: Message | None = None
    delta: str = ""
    content_index: int = 0
    tool_call: ToolCall | None = None
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": str(self.type)}
        if self.message is not None:
            out["message"] = self.message.to_dict()
        if self.delta:
            out["delta"] = self.delta
        if self.content_index:
            out["content_index"] = self.content_index
        if self.tool_call is not None:
            out["tool_call"] = self.tool_call.to_dict()
        if self.error:
            out["error"] = self.error
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProviderEvent:
        message = data.get("message")
        call = data.get("tool_call")
        return cls(
            type=ProviderEventType(data["type"]),
            message=Message.from_dict(message) if message is not None else None,
            delta=data.get("delta", ""),
            content_index=int(data.get("content_index", 0)),
            tool_call=ToolCall.from_dict(call) if call is not None else None,
            error=data.get("error", ""),
        )


@dataclass
class Event:
    """An event emitted by the agent loop; active fields depend on ``type``."""

    type: EventType
    message: Message | None = None
    messages: list[Message] = field(default_factory=list)
    delta: str = ""
    tool_call: ToolCall | None = None
    tool_call_id: str = ""
    tool_name: str = ""
    tool_result: ToolResult | None = None
    error: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": str(self.type)}
        if self.message is not None:
            out["message"] = self.message.to_dict()
        if self.messages:
            out["messages"] = [message.to_dict() for message in self.messages]
        if self.delta:
            out["delta"] = self.delta
        if self.tool_call is not None:
            out["tool_call"] = self.tool_call.to_dict()
        if self.tool_call_id:
            out["tool_call_id"] = self.tool_call_id
        if self.tool_name:
            out["tool_name"] = self.tool_name
        if self.tool_result is not None:
            out["tool_result"] = self.tool_result.to_dict()
        if self.error:
            out["error"] = self.error
        if self.metadata:
            out["metadata"] = dict(self.metadata)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        message = data.get("message")
        call = data.get("tool_call")
        result = data.get("tool_result")
        return cls(
            type=EventType(data["type"]),
            message=Message.from_dict(message) if message is not None else None,
            messages=[Message.from_dict(item) for item in data.get("messages") or []],
            delta=data.get("delta", ""),
            tool_call=ToolCall.from_dict(call) if call is not None else None,
            tool_call_id=data.get("tool_call_id", ""),
            tool_name=data.get("tool_name", ""),
            tool_result=ToolResult.from_dict(result) if result is not None else None,
            error=data.get("error", ""),
            metadata=dict(data.get("metadata") or {}),
        )


class Provider(ABC):
    """Streams assistant events for a single assistant turn."""

    @abstractmethod
    def stream(self, request: ProviderRequest) -> AsyncIterator[ProviderEvent]:
        """Return an async iterator of events for one turn.

        A provider may raise before yielding anything, or yield an
        ``ERROR`` event. The iterator ends when the turn ends.
        """