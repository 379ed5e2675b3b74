import pytest

from gluekit.failover import FailoverError, FailoverProvider, with_failover
from gluekit.loop import RunRequest, run
from gluekit.types import (
    ContentType,
    Provider,
    ProviderEvent,
    ProviderEventType,
    ProviderRequest,
)


class StubProvider(Provider):
    def __init__(self, events=(), error=None, late_error=None):
        self.events = list(events)
        self.error = error
        self.late_error = late_error

    def stream(self, request):
        if self.error is not None:
            raise self.error
        return self._events()

    async def _events(self):
        if self.late_error is not None:
            raise self.late_error
        for event in self.events:
            yield event


def ok_stream(text):
    return [
        ProviderEvent(type=ProviderEventType.START),
        ProviderEvent(type=ProviderEventType.TEXT_DELTA, delta=text),
        ProviderEvent(type=ProviderEventType.DONE),
    ]


def error_event(text):
    return ProviderEvent(type=ProviderEventType.ERROR, error=text)


async def collect(provider):
    return [event async for event in provider.stream(ProviderRequest())]


@pytest.mark.asyncio
async def test_first_succeeds():
    provider = with_failover(StubProvider(ok_stream("first")), StubProvider(ok_stream("second")))
    got = await collect(provider)
    assert len(got) == 3
    assert got[1].delta == "first"


@pytest.mark.asyncio
async def test_stream_error_falls_through():
    provider = with_failover(StubProvider(error=RuntimeError("boom")), StubProvider(ok_stream("fallback")))
    got = await collect(provider)
    assert len(got) == 3
    assert got[1].delta == "fallback"


@pytest.mark.asyncio
async def test_error_before_first_event_falls_through():
    provider = with_failover(StubProvider(late_error=RuntimeError("late")), StubProvider(ok_stream("fallback")))
    got = await collect(provider)
    assert [e.delta for e in got] == ["", "fallback", ""]


@pytest.mark.asyncio
async def test_first_event_error_falls_through():
    provider = with_failover(StubProvider([error_event("model errored")]), StubProvider(ok_stream("fallback")))
    got = await collect(provider)
    assert len(got) == 3
    assert got[1].delta == "fallback"


@pytest.mark.asyncio
async def test_empty_stream_falls_through():
    provider = with_failover(StubProvider([]), StubProvider(ok_stream("fallback")))
    got = await collect(provider)
    assert len(got) == 3
    assert got[1].delta == "fallback"


@pytest.mark.asyncio
async def test_all_fail_returns_aggregate_error():
    provider = with_failover(StubProvider(error=RuntimeError("boom1")), StubProvider([error_event("boom2")]))
    with pytest.raises(FailoverError) as exc_info:
        await collect(provider)
    err = exc_info.value
    assert len(err.attempts) == 2
    assert [a.index for a in err.attempts] == [0, 1]
    assert "boom1" in str(err)
    assert "boom2" in str(err)
    assert str(err).startswith("all providers failed: ")


@pytest.mark.asyncio
async def test_no_providers():
    with pytest.raises(ValueError, match="no providers"):
        await collect(with_failover())


@pytest.mark.asyncio
async def test_commits_after_first_successful_event():
    provider = with_failover(
        StubProvider([ProviderEvent(type=ProviderEventType.START), error_event("mid-stream error")]),
        StubProvider(ok_stream("fallback")),
    )
    got = await collect(provider)
    assert len(got) == 2
    assert got[1].type is ProviderEventType.ERROR
    assert got[1].error == "mid-stream error"


@pytest.mark.asyncio
async def test_with_failover_builds_provider_list():
    first = StubProvider(ok_stream("a"))
    second = StubProvider(ok_stream("b"))
    provider = with_failover(first, second)
    assert provider == FailoverProvider(providers=[first, second])


@pytest.mark.asyncio
async def test_failover_drives_agent_loop():
    provider = with_failover(StubProvider(error=RuntimeError("down")), StubProvider(ok_stream("fallback")))
    res = await run(RunRequest(provider=provider))
    final = res.new_messages[0]
    assert final.content[0].type is ContentType.TEXT
    assert final.content[0].text == "fallback"