import json
from datetime import datetime, timezone

import pytest

from gluekit.types import (
    ContentPart,
    ContentType,
    Event,
    EventType,
    ImageContent,
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
    Usage,
)


def json_round_trip(data):
    return json.loads(json.dumps(data))


def test_message_json_round_trip():
    created_at = datetime(2026, 5, 2, 12, 0, 0, tzinfo=timezone.utc)
    msg = Message(
        id="msg_1",
        role=MessageRole.ASSISTANT,
        content=[
            ContentPart(type=ContentType.TEXT, text="Checking the weather."),
            ContentPart(
                type=ContentType.TOOL_CALL,
                tool_call=ToolCall(id="call_1", name="weather", arguments='{"city":"Toronto"}'),
            ),
        ],
        provider="gemini",
        model="gemini-2.5-flash",
        stop_reason=StopReason.TOOL_USE,
        usage=Usage(input_tokens=10, output_tokens=5, total_tokens=15),
        created_at=created_at,
        metadata={"response_id": "resp_1"},
    )

    got = Message.from_dict(json_round_trip(msg.to_dict()))

    assert got.role == MessageRole.ASSISTANT
    assert got.stop_reason == StopReason.TOOL_USE
    assert len(got.content) == 2
    call = got.content[1].tool_call
    assert call is not None
    assert call.id == "call_1"
    assert call.name == "weather"
    assert json.loads(call.arguments)["city"] == "Toronto"
    assert got.usage is not None and got.usage.total_tokens == 15
    assert got.created_at == created_at
    assert got.metadata == {"response_id": "resp_1"}


def test_minimal_message_omits_empty_fields():
    assert Message(role=MessageRole.USER).to_dict() == {"role": "user"}


def test_content_part_omits_inactive_fields():
    part = ContentPart(type=ContentType.TEXT, text="hi")
    assert part.to_dict() == {"type": "text", "text": "hi"}


def test_image_content_round_trip():
    part = ContentPart(type=ContentType.IMAGE, image=ImageContent(data="aGk=", mime_type="image/png"))
    data = part.to_dict()
    assert data["image"] == {"data": "aGk=", "mime_type": "image/png"}
    assert ContentPart.from_dict(json_round_trip(data)) == part


def test_tool_call_arguments_embedded_as_json():
    call = ToolCall(id="c1", name="weather", arguments='{"q":"NYC"}')
    data = call.to_dict()
    assert data == {"id": "c1", "name": "weather", "arguments": {"q": "NYC"}}
    assert ToolCall.from_dict(data).arguments == '{"q":"NYC"}'


def test_tool_call_without_arguments_omits_field():
    assert ToolCall(id="c1", name="x").to_dict() == {"id": "c1", "name": "x"}
    assert ToolCall.from_dict({"id": "c1", "name": "x"}).arguments == ""


def test_zero_time_is_read_as_missing():
    got = Message.from_dict({"role": "user", "created_at": "0001-01-01T00:00:00Z"})
    assert got.created_at is None


def test_tool_marshal_excludes_executor():
    async def execute(call):
        return ToolResult(content=[ContentPart(type=ContentType.TEXT, text="sunny")])

    tool = Tool(
        name="weather",
        description="Look up weather for a city.",
        parameters='{"type":"object","properties":{"city":{"type":"string"}}}',
        execute=execute,
    )
    data = tool.to_dict()
    encoded = json.dumps(data)
    assert "execute" not in encoded.lower()
    assert set(data) == {"name", "description", "parameters"}

    spec = ToolSpec.from_dict(json.loads(encoded))
    assert spec.name == "weather"
    assert json.loads(spec.parameters)["type"] == "object"


def test_tool_result_json_round_trip():
    res = ToolResult(
        content=[ContentPart(type=ContentType.TEXT, text="sunny, 21C")],
        is_error=False,
        metadata={"source": "fake"},
    )
    got = ToolResult.from_dict(json_round_trip(res.to_dict()))
    assert len(got.content) == 1
    assert got.content[0].text == "sunny, 21C"
    assert got.metadata["source"] == "fake"
    assert got.is_error is False


def test_provider_event_json_round_trip():
    ev = ProviderEvent(type=ProviderEventType.TEXT_DELTA, delta="hello")
    got = ProviderEvent.from_dict(json_round_trip(ev.to_dict()))
    assert got.type == ProviderEventType.TEXT_DELTA
    assert got.delta == "hello"


def test_loop_event_json_round_trip():
    ev = Event(
        type=EventType.TOOL_END,
        tool_call_id="call_1",
        tool_name="weather",
        tool_result=ToolResult(content=[ContentPart(type=ContentType.TEXT, text="sunny")]),
    )
    got = Event.from_dict(json_round_trip(ev.to_dict()))
    assert got.type == EventType.TOOL_END
    assert got.tool_result is not None
    assert len(got.tool_result.content) == 1
    assert got.tool_name == "weather"
    assert got.tool_call_id == "call_1"


def test_usage_omits_zero_counts():
    assert Usage(input_tokens=3).to_dict() == {"input_tokens": 3}
    assert Usage.from_dict({"total_tokens": 7}).total_tokens == 7


def test_provider_requires_stream():
    with pytest.raises(TypeError):
        Provider()


@pytest.mark.asyncio
async def test_provider_subclass_streams_events():
    class Static(Provider):
        async def stream(self, request):
            yield ProviderEvent(type=ProviderEventType.DONE)

    events = [event async for event in Static().stream(ProviderRequest())]
    assert [event.type for event in events] == [ProviderEventType.DONE]