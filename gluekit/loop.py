"""The provider-agnostic agent loop.

The loop streams an assistant response from a provider, runs the tools the
assistant asks for, appends their results and repeats until the assistant
stops asking for tools, the provider fails, the task is cancelled or the
turn budget runs out.
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import json
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from gluekit.types import (
    ContentPart,
    ContentType,
    Event,
    EventType,
    Message,
    MessageRole,
    Provider,
    ProviderEvent,
    ProviderEventType,
    ProviderRequest,
    StopReason,
    Tool,
    ToolCall,
    ToolResult,
    ToolSpec,
)

DEFAULT_MAX_TURNS = 32

Emitter = Callable[[Event], None]


@dataclass
class RunRequest:
    """Configuration for one :func:`run`.

    ``max_turns`` of zero or less means 32. ``emit`` receives a snapshot of
    every loop event in order. With ``parallel`` the tool calls of one
    assistant message run concurrently; results and tool events still come
    in the assistant's order.
    """

    provider: Provider | None = None
    model: str = ""
    system_prompt: str = ""
    messages: list[Message] = field(default_factory=list)
    tools: list[Tool] = field(default_factory=list)
    options: dict[str, Any] = field(default_factory=dict)
    max_turns: int = 0
    parallel: bool = False
    emit: Emitter | None = None


@dataclass
class RunResult:
    """The full transcript and the messages produced by this run."""

    messages: list[Message] = field(default_factory=list)
    new_messages: list[Message] = field(default_factory=list)


class LoopError(Exception):
    """A run failed; ``result`` holds the transcript as it stood."""

    def __init__(self, message: str, result: RunResult | None = None) -> None:
        super().__init__(message)
        self.result = result if result is not None else RunResult()


class MaxTurnsExceededError(LoopError):
    """The turn budget ran out while the assistant still requested tools."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def run(request: RunRequest) -> RunResult:
    """Run the agent loop and return the resulting transcript.

    Unknown tools, invalid arguments, missing executors and executor errors
    become error tool results that the model sees; they do not stop the run.
    Provider failures and an exhausted turn budget raise :class:`LoopError`.
    """
    if request.provider is None:
        raise LoopError("provider is required")

    max_turns = request.max_turns if request.max_turns > 0 else DEFAULT_MAX_TURNS
    messages = copy.deepcopy(list(request.messages))
    new_messages: list[Message] = []

    def emit(event: Event) -> None:
        if request.emit is not None:
            request.emit(event)

    def snapshot() -> RunResult:
        return RunResult(messages=copy.deepcopy(messages), new_messages=copy.deepcopy(new_messages))

    emit(Event(type=EventType.LOOP_START))
    try:
        last_message = last_new = -1
        for _ in range(max_turns):
            emit(Event(type=EventType.TURN_START))
            assistant = await _assistant_turn(request, messages, emit)
            messages.append(assistant)
            new_messages.append(assistant)
            last_message, last_new = len(messages) - 1, len(new_messages) - 1

            calls = _collect_tool_calls(assistant)
            if not calls:
                emit(Event(type=EventType.TURN_END, message=copy.deepcopy(assistant)))
                return snapshot()

            tool_messages = await _execute_tool_calls(request, calls, emit)
            messages.extend(tool_messages)
            new_messages.extend(tool_messages)
            emit(Event(type=EventType.TURN_END, message=copy.deepcopy(assistant)))

        if last_message >= 0:
            messages[last_message].stop_reason = StopReason.MAX_TURNS
        if last_new >= 0:
            new_messages[last_new].stop_reason = StopReason.MAX_TURNS
        raise MaxTurnsExceededError(f"maximum turns exceeded ({max_turns})")
    except LoopError as exc:
        exc.result = snapshot()
        emit(Event(type=EventType.ERROR, error=str(exc)))
        raise
    except asyncio.CancelledError:
        emit(Event(type=EventType.ERROR, error="canceled"))
        raise
    finally:
        emit(Event(type=EventType.LOOP_END, messages=copy.deepcopy(new_messages)))


async def _assistant_turn(request: RunRequest, messages: list[Message], emit: Emitter) -> Message:
    provider_request = ProviderRequest(
        model=request.model,
        system_prompt=request.system_prompt,
        messages=copy.deepcopy(messages),
        tools=[ToolSpec(name=t.name, description=t.description, parameters=t.parameters) for t in request.tools],
        options=dict(request.options),
    )
    assert request.provider is not None
    try:
        iterator = aiter(request.provider.stream(provider_request))
    except Exception as exc:
        raise LoopError(f"provider stream: {exc}") from exc
    try:
        return await _consume(iterator, request.model, emit)
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()


async def _consume(iterator: AsyncIterator[ProviderEvent], model: str, emit: Emitter) -> Message:
    assistant: Message | None = None
    done = False

    def started(current: Message | None) -> Message:
        if current is not None:
            return current
        fresh = Message(role=MessageRole.ASSISTANT, model=model, created_at=_now())
        emit(Event(type=EventType.MESSAGE_START, message=copy.deepcopy(fresh)))
        return fresh

    while True:
        try:
            event = await anext(iterator)
        except StopAsyncIteration:
            break
        except Exception as exc:
            raise LoopError(f"provider stream: {exc}") from exc

        kind = event.type
        if kind is ProviderEventType.START:
            if event.message is not None:
                assistant = copy.deepcopy(event.message)
            else:
                assistant = Message(role=MessageRole.ASSISTANT, model=model, created_at=_now())
            if not assistant.role:
                assistant.role = MessageRole.ASSISTANT
            if assistant.created_at is None:
                assistant.created_at = _now()
            emit(Event(type=EventType.MESSAGE_START, message=copy.deepcopy(assistant)))
        elif kind is ProviderEventType.TEXT_DELTA:
            assistant = started(assistant)
            _append_delta(assistant, ContentType.TEXT, event.content_index, event.delta)
            emit(Event(type=EventType.TEXT_DELTA, message=copy.deepcopy(assistant), delta=event.delta))
        elif kind is ProviderEventType.THINKING_DELTA:
            assistant = started(assistant)
            _append_delta(assistant, ContentType.THINKING, event.content_index, event.delta)
        elif kind is ProviderEventType.TOOL_CALL:
            assistant = started(assistant)
            if event.tool_call is None:
                raise LoopError("provider tool_call event missing tool call")
            assistant.content.append(
                ContentPart(type=ContentType.TOOL_CALL, tool_call=copy.deepcopy(event.tool_call))
            )
        elif kind is ProviderEventType.DONE:
            assistant = started(assistant)
            if event.message is not None:
                assistant = copy.deepcopy(event.message)
                if not assistant.role:
                    assistant.role = MessageRole.ASSISTANT
            if assistant.created_at is None:
                assistant.created_at = _now()
            if assistant.stop_reason is None:
                assistant.stop_reason = (
                    StopReason.TOOL_USE if _collect_tool_calls(assistant) else StopReason.STOP
                )
            done = True
            emit(Event(type=EventType.MESSAGE_END, message=copy.deepcopy(assistant)))
        elif kind is ProviderEventType.ERROR:
            raise LoopError(event.error or "provider error")
        else:
            raise LoopError(f'unknown provider event type "{kind}"')

    if not done or assistant is None:
        raise LoopError("provider stream closed before done event")
    return assistant


def _append_delta(message: Message, kind: ContentType, index: int, delta: str) -> None:
    content = message.content
    if 0 <= index < len(content) and content[index].type is kind:
        target = content[index]
    elif content and content[-1].type is kind:
        target = content[-1]
    else:
        target = ContentPart(type=kind)
        content.append(target)
    if kind is ContentType.TEXT:
        target.text += delta
    elif kind is ContentType.THINKING:
        target.thinking += delta


def _collect_tool_calls(message: Message) -> list[ToolCall]:
    return [
        part.tool_call
        for part in message.content
        if part.type is ContentType.TOOL_CALL and part.tool_call is not None
    ]


async def _execute_tool_calls(request: RunRequest, calls: list[ToolCall], emit: Emitter) -> list[Message]:
    def announce(call: ToolCall) -> None:
        emit(
            Event(
                type=EventType.TOOL_START,
                tool_call=copy.deepcopy(call),
                tool_call_id=call.id,
                tool_name=call.name,
            )
        )

    if request.parallel:
        for call in calls:
            announce(call)
        outcomes = list(await asyncio.gather(*(_execute_tool_call(request.tools, call) for call in calls)))
    else:
        outcomes = []
        for call in calls:
            announce(call)
            outcomes.append(await _execute_tool_call(request.tools, call))

    tool_messages = []
    for call, result in outcomes:
        message = Message(
            role=MessageRole.TOOL,
            content=copy.deepcopy(result.content),
            tool_call_id=call.id,
            tool_name=call.name,
            is_error=result.is_error,
            created_at=_now(),
            metadata=dict(result.metadata),
        )
        tool_messages.append(message)
        emit(
            Event(
                type=EventType.TOOL_END,
                tool_call=copy.deepcopy(call),
                tool_call_id=call.id,
                tool_name=call.name,
                tool_result=copy.deepcopy(result),
                message=copy.deepcopy(message),
            )
        )
    return tool_messages


async def _execute_tool_call(tools: list[Tool], call: ToolCall) -> tuple[ToolCall, ToolResult]:
    try:
        normalized = _normalize_arguments(call)
    except ValueError as exc:
        return call, _error_result(f'invalid arguments for tool "{call.name}": {exc}')

    tool = next((t for t in tools if t.name == normalized.name), None)
    if tool is None:
        return normalized, _error_result(f'unknown tool "{normalized.name}"')
    if tool.execute is None:
        return normalized, _error_result(f'tool "{normalized.name}" has no executor')
    try:
        outcome = tool.execute(normalized)
        if inspect.isawaitable(outcome):
            outcome = await outcome
    except Exception as exc:
        return normalized, _error_result(str(exc))
    return normalized, outcome


def _normalize_arguments(call: ToolCall) -> ToolCall:
    if not call.arguments:
        return replace(call, arguments="{}")
    args = json.loads(call.arguments)
    if not isinstance(args, dict):
        raise ValueError("arguments must be a JSON object")
    return replace(
        call,
        arguments=json.dumps(args, sort_keys=True, separators=(",", ":"), ensure_ascii=False),
    )


def _error_result(text: str) -> ToolResult:
    return ToolResult(content=[ContentPart(type=ContentType.TEXT, text=text)], is_error=True)