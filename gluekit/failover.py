"""A provider that falls back through a list of providers."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from gluekit.types import Provider, ProviderEvent, ProviderEventType, ProviderRequest


@dataclass
class FailoverAttempt:
    """One provider's failure inside a :class:`FailoverError`."""

    index: int
    error: BaseException


class FailoverError(Exception):
    """Every provider failed; ``attempts`` records each failure in order."""

    def __init__(self, attempts: list[FailoverAttempt]) -> None:
        self.attempts = list(attempts)
        details = "; ".join(f"provider[{a.index}]: {a.error}" for a in self.attempts)
        super().__init__(f"all providers failed: {details}")


@dataclass
class FailoverProvider(Provider):
    """Tries each provider in order until one starts a usable stream.

    A provider is skipped when it raises before its first event, when its
    first event is an error, or when its stream is empty. Once a non-error
    event arrives the stream is committed to that provider for the rest of
    the turn.
    """

    providers: list[Provider] = field(default_factory=list)

    async def stream(self, request: ProviderRequest) -> AsyncIterator[ProviderEvent]:
        if not self.providers:
            raise ValueError("failover: no providers")

        attempts: list[FailoverAttempt] = []
        for index, provider in enumerate(self.providers):
            iterator: AsyncIterator[ProviderEvent] | None = None
            try:
                iterator = aiter(provider.stream(request))
                first = await anext(iterator)
            except StopAsyncIteration:
                attempts.append(FailoverAttempt(index, RuntimeError("empty stream")))
                continue
            except Exception as exc:
                attempts.append(FailoverAttempt(index, exc))
                await _close(iterator)
                continue

            if first.type is ProviderEventType.ERROR:
                try:
                    async for _ in iterator:
                        pass
                except Exception:
                    pass
                attempts.append(FailoverAttempt(index, RuntimeError(first.error or "provider error")))
                continue

            try:
                yield first
                async for event in iterator:
                    yield event
            finally:
                await _close(iterator)
            return

        raise FailoverError(attempts)


async def _close(iterator: AsyncIterator[ProviderEvent] | None) -> None:
    aclose = getattr(iterator, "aclose", None)
    if aclose is not None:
        await aclose()


def with_failover(*args: Provider) -> FailoverProvider:
    """Return a provider that tries ``args`` in order."""
    return FailoverProvider(providers=list(args))