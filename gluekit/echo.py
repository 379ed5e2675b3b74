"""A minimal provider that echoes the latest user message back."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone

from gluekit.types import (
    ContentPart,
    ContentType,
    Message,
    MessageRole,
    Provider,
    ProviderEvent,
    ProviderEventType,
    ProviderRequest,
    StopReason,
)


def last_user_text(messages: Iterable[Message]) -> str:
    """Return the text of the most recent user message, or ``""`` if none."""
    for message in reversed(list(messages)):
        if message.role is not MessageRole.USER:
            continue
        return "".join(part.text for part in message.content if part.type is ContentType.TEXT)
    return ""


@dataclass
class EchoProvider(Provider):
    """Answers each turn with the last user text, optionally prefixed."""

    prefix: str = ""

    async def stream(self, request: ProviderRequest) -> AsyncIterator[ProviderEvent]:
        yield ProviderEvent(type=ProviderEventType.START)

        text = last_user_text(request.messages)
        if self.prefix:
            text = self.prefix + text
        if text:
            yield ProviderEvent(type=ProviderEventType.TEXT_DELTA, delta=text)

        final = Message(
            role=MessageRole.ASSISTANT,
            provider="echo",
            model=request.model,
            created_at=datetime.now(timezone.utc),
            stop_reason=StopReason.STOP,
        )
        if text:
            final.content = [ContentPart(type=ContentType.TEXT, text=text)]
        yield ProviderEvent(type=ProviderEventType.DONE, message=final)