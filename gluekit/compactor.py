"""Transcript compaction policies.

A compactor rewrites a transcript before it is sent to a provider. It keeps
the most recent turns and drops, summarizes or replaces older ones. A
compactor never mutates its input; it returns a new list.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
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
)

DEFAULT_SUMMARIZING_SYSTEM_PROMPT = """You are summarizing a conversation transcript so it can be replaced with a single compact summary message.

Preserve, in order of importance:
- facts the user stated (names, dates, numbers, IDs, places)
- decisions made and their reasons
- outcomes of any actions taken
- open questions or pending follow-ups
- the user's stated preferences

Drop:
- pleasantries
- failed tangents
- verbatim quotes you can paraphrase

Write a single coherent narrative in third person ("the user…", "the assistant…"). Do not invent details. Do not include meta-commentary about summarization."""

DEFAULT_SUMMARIZING_TARGET_TOKENS = 8000
DEFAULT_SUMMARIZING_KEEP_RECENT = 8

_WORD = re.compile(r"[^ \t\n\r\v\f]+")


class CompactionError(Exception):
    """A compactor could not produce a compacted transcript."""


class Compactor(ABC):
    """Rewrites a transcript, keeping the user's most recent intent."""

    @abstractmethod
    async def compact(self, messages: Sequence[Message]) -> list[Message]:
        """Return a compacted copy of ``messages``."""


@dataclass
class KeepRecentMessages(Compactor):
    """Keeps the last ``n`` messages and replaces the rest with one note.

    The note records how many messages were dropped. Transcripts of ``n``
    or fewer messages come back unchanged.
    """

    n: int

    async def compact(self, messages: Sequence[Message]) -> list[Message]:
        if self.n <= 0:
            raise CompactionError(f"KeepRecentMessages: n must be positive, got {self.n}")
        messages = list(messages)
        if len(messages) <= self.n:
            return messages
        dropped = len(messages) - self.n
        summary = _compaction_summary(dropped)
        summary.metadata = {"compaction": "keep_recent", "dropped": dropped}
        return [summary, *messages[dropped:]]


@dataclass
class SummarizingCompactor(Compactor):
    """Replaces older messages with a summary written by a provider.

    When the transcript has no more than ``keep_recent`` messages, or its
    estimated size is within ``target_tokens``, it comes back unchanged.
    Otherwise everything but the last ``keep_recent`` messages is sent to
    the provider in one request, and its answer becomes a single assistant
    message carrying compaction metadata. Provider failures raise
    :class:`CompactionError`; there is no silent fallback.
    """

    provider: Provider | None = None
    model: str = ""
    target_tokens: int = 0
    keep_recent: int = 0
    system_prompt: str = ""

    async def compact(self, messages: Sequence[Message]) -> list[Message]:
        if self.provider is None:
            raise CompactionError("SummarizingCompactor: Provider is required")
        keep = self.keep_recent if self.keep_recent > 0 else DEFAULT_SUMMARIZING_KEEP_RECENT
        target = self.target_tokens if self.target_tokens > 0 else DEFAULT_SUMMARIZING_TARGET_TOKENS

        messages = list(messages)
        if len(messages) <= keep or estimate_tokens(messages) <= target:
            return messages

        older, kept = messages[:-keep], messages[-keep:]
        request = ProviderRequest(
            model=self.model,
            system_prompt=self.system_prompt or DEFAULT_SUMMARIZING_SYSTEM_PROMPT,
            messages=[
                Message(
                    role=MessageRole.USER,
                    content=[ContentPart(type=ContentType.TEXT, text=render_transcript_for_summary(older))],
                )
            ],
        )
        try:
            stream = aiter(self.provider.stream(request))
        except Exception as exc:
            raise CompactionError(f"SummarizingCompactor: provider.stream: {exc}") from exc

        summary = await _collect_summary_text(stream)
        if not summary.strip():
            raise CompactionError("SummarizingCompactor: provider returned no text")

        metadata: dict[str, object] = {
            "compaction": "summarizing",
            "original_message_count": len(older),
        }
        bounds = _time_bounds(older)
        if bounds is not None:
            first, last = bounds
            metadata["original_first_ts"] = _rfc3339(first)
            metadata["original_last_ts"] = _rfc3339(last)

        marker = Message(
            role=MessageRole.ASSISTANT,
            content=[ContentPart(type=ContentType.TEXT, text=summary)],
            metadata=metadata,
        )
        return [marker, *kept]


def render_transcript_for_summary(messages: Sequence[Message]) -> str:
    """Format messages as role-tagged plain text, one line per message.

    Tool calls are rendered as bracketed notes so a summary can mention them.
    """
    lines = []
    for message in messages:
        if message.role is MessageRole.ASSISTANT:
            tag = "ASSISTANT"
        elif message.role is MessageRole.TOOL:
            tag = "TOOL"
        else:
            tag = "USER"
        pieces = []
        for part in message.content:
            if part.type is ContentType.TEXT:
                pieces.append(part.text)
            elif part.type is ContentType.TOOL_CALL and part.tool_call is not None:
                call = part.tool_call
                pieces.append(f"[tool_call name={call.name} args={call.arguments}]")
        lines.append(f"{tag}: {' '.join(pieces)}\n")
    return "".join(lines)


def count_words(text: str) -> int:
    """Count runs of characters separated by ASCII whitespace."""
    return len(_WORD.findall(text))


def estimate_tokens(messages: Sequence[Message]) -> int:
    """Estimate a transcript's token count as three quarters of its words, rounded up."""
    words = 0
    for message in messages:
        for part in message.content:
            if part.type is ContentType.TEXT:
                words += count_words(part.text)
            elif part.type is ContentType.THINKING:
                words += count_words(part.thinking)
            elif part.type is ContentType.TOOL_CALL and part.tool_call is not None:
                words += count_words(part.tool_call.name) + count_words(part.tool_call.arguments)
    if words == 0:
        return 0
    return max(1, (words * 3 + 3) // 4)


async def _collect_summary_text(stream: AsyncIterator[ProviderEvent]) -> str:
    deltas: list[str] = []
    final: Message | None = None
    try:
        async for event in stream:
            if event.type is ProviderEventType.TEXT_DELTA:
                deltas.append(event.delta)
            elif event.type is ProviderEventType.DONE:
                final = event.message
            elif event.type is ProviderEventType.ERROR:
                raise CompactionError(f"SummarizingCompactor: {event.error or 'provider stream errored'}")
    except CompactionError:
        raise
    except Exception as exc:
        raise CompactionError(f"SummarizingCompactor: {exc}") from exc
    finally:
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()

    if final is not None:
        text = "\n".join(
            part.text for part in final.content if part.type is ContentType.TEXT and part.text
        )
        if text:
            return text
    return "".join(deltas)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _time_bounds(messages: Sequence[Message]) -> tuple[datetime, datetime] | None:
    stamps = [_as_utc(m.created_at) for m in messages if m.created_at is not None]
    if not stamps:
        return None
    return min(stamps), max(stamps)


def _rfc3339(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def _compaction_summary(dropped: int) -> Message:
    noun = "message" if dropped == 1 else "messages"
    text = (
        f"Earlier conversation context omitted by compaction ({dropped} {noun} dropped). "
        "Continue from the messages that follow."
    )
    return Message(role=MessageRole.ASSISTANT, content=[ContentPart(type=ContentType.TEXT, text=text)])