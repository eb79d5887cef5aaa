"""Tests for the Anthropic Messages API client."""

import json

import pytest
import respx
from httpx import HTTPStatusError, Response

from agentkit.llm.anthropic import AnthropicClient, parse_content, to_anthropic_messages, to_anthropic_tools
from agentkit.llm.client import Message, ToolCall

MESSAGES_URL = "https://api.anthropic.com/v1/messages"


@pytest.fixture
def client():
    return AnthropicClient(api_key="sk-ant-test", model="claude-test", max_tokens=256)


@pytest.mark.asyncio
@respx.mock
async def test_complete_text(client):
    route = respx.post(MESSAGES_URL).mock(
        return_value=Response(
            200,
            json={"content": [{"type": "text", "text": "Hello!"}], "stop_reason": "end_turn"},
        )
    )

    response = await client.complete(
        [Message(role="system", content="Be brief."), Message(role="user", content="Hi")]
    )

    assert response.content == "Hello!"
    assert response.tool_calls is None
    assert response.finish_reason == "stop"

    request = route.calls[0].request
    assert request.headers["x-api-key"] == "sk-ant-test"
    assert request.headers["anthropic-version"] == "2023-06-01"
    body = json.loads(request.content)
    assert body["system"] == "Be brief."
    assert body["messages"] == [{"role": "user", "content": "Hi"}]
    assert body["max_tokens"] == 256


@pytest.mark.asyncio
@respx.mock
async def test_complete_tool_use(client):
    route = respx.post(MESSAGES_URL).mock(
        return_value=Response(
            200,
            json={
                "content": [
                    {"type": "text", "text": "Let me calculate."},
                    {"type": "tool_use", "id": "toolu_1", "name": "calculator", "input": {"expression": "2+2"}},
                ],
                "stop_reason": "tool_use",
            },
        )
    )
    tools = [
        {
            "type": "function",
            "function": {
                "name": "calculator",
                "description": "Evaluate arithmetic",
                "parameters": {"type": "object", "properties": {"expression": {"type": "string"}}},
            },
        }
    ]

    response = await client.complete([Message(role="user", content="2+2?")], tools=tools)

    assert response.finish_reason == "tool_calls"
    assert response.content == "Let me calculate."
    assert response.tool_calls[0].name == "calculator"
    assert json.loads(response.tool_calls[0].arguments) == {"expression": "2+2"}

    body = json.loads(route.calls[0].request.content)
    assert body["tools"][0]["input_schema"]["properties"] == {"expression": {"type": "string"}}


def test_convert_tool_round_trip():
    messages = [
        Message(role="user", content="2+2?"),
        Message(role="assistant", content="", tool_calls=[ToolCall(id="t1", name="calc", arguments='{"x": 1}')]),
        Message(role="tool", content="4", tool_call_id="t1", name="calc"),
        Message(role="tool", content="", tool_call_id="t2", name="calc", error="boom"),
    ]

    system, converted = to_anthropic_messages(messages)

    assert system is None
    assert converted[1] == {
        "role": "assistant",
        "content": [{"type": "tool_use", "id": "t1", "name": "calc", "input": {"x": 1}}],
    }
    assert converted[2]["content"][0] == {"type": "tool_result", "tool_use_id": "t1", "content": "4"}
    assert converted[3]["content"][0]["is_error"] is True
    assert converted[3]["content"][0]["content"] == "Error: boom"


@pytest.mark.asyncio
@respx.mock
async def test_stream_text_and_tool_use(client):
    events = [
        {"type": "message_start", "message": {"id": "msg_1"}},
        {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Checking"}},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "..."}},
        {
            "type": "content_block_start",
            "index": 1,
            "content_block": {"type": "tool_use", "id": "toolu_1", "name": "calculator", "input": {}},
        },
        {"type": "content_block_delta", "index": 1, "delta": {"type": "input_json_delta", "partial_json": '{"expression"'}},
        {"type": "content_block_delta", "index": 1, "delta": {"type": "input_json_delta", "partial_json": ': "6*7"}'}},
        {"type": "message_stop"},
    ]
    body = "".join(f"event: {e['type']}\ndata: {json.dumps(e)}\n\n" for e in events)
    respx.post(MESSAGES_URL).mock(return_value=Response(200, text=body, headers={"content-type": "text/event-stream"}))

    chunks = [chunk async for chunk in client.stream_complete([Message(role="user", content="6*7?")])]

    assert "".join(chunk.content for chunk in chunks) == "Checking..."
    assert chunks[-1].tool_calls == [ToolCall(id="toolu_1", name="calculator", arguments='{"expression": "6*7"}')]


@pytest.mark.asyncio
@respx.mock
async def test_stream_error_event(client):
    body = 'event: error\ndata: {"type": "error", "error": {"type": "overloaded_error"}}\n\n'
    respx.post(MESSAGES_URL).mock(return_value=Response(200, text=body))

    with pytest.raises(RuntimeError, match="overloaded"):
        async for _ in client.stream_complete([Message(role="user", content="Hi")]):
            pass


@pytest.mark.asyncio
@respx.mock
async def test_http_error(client):
    respx.post(MESSAGES_URL).mock(return_value=Response(529, json={"error": "overloaded"}))

    with pytest.raises(HTTPStatusError):
        await client.complete([Message(role="user", content="Hi")])


def test_convert_tools_and_content():
    tools = to_anthropic_tools([{"type": "function", "function": {"name": "noop"}}])
    assert tools == [{"name": "noop", "description": "", "input_schema": {"type": "object", "properties": {}}}]

    text, calls = parse_content(
        [
            {"type": "text", "text": "a"},
            {"type": "text", "text": "b"},
            {"type": "tool_use", "id": "t1", "name": "noop"},
        ]
    )
    assert text == "a\nb"
    assert calls == [ToolCall(id="t1", name="noop", arguments="{}")]


def test_undecodable_arguments_become_empty_input():
    _, converted = to_anthropic_messages(
        [Message(role="assistant", content="hm", tool_calls=[ToolCall(id="t1", name="calc", arguments="{bad")])]
    )
    assert converted[0]["content"] == [
        {"type": "text", "text": "hm"},
        {"type": "tool_use", "id": "t1", "name": "calc", "input": {}},
    ]


@pytest.mark.asyncio
@respx.mock
async def test_complete_with_images(client):
    route = respx.post(MESSAGES_URL).mock(
        return_value=Response(200, json={"content": [{"type": "text", "text": "A cat."}], "stop_reason": "end_turn"})
    )
    png = b"\x89PNG\r\n\x1a\ncat"

    response = await client.complete([Message(role="user", content="What is this?", images=[png])])

    assert response.content == "A cat."
    body = json.loads(route.calls[0].request.content)
    assert body["messages"] == [
        {
            "role": "user",
            "content": [
                {
                    "type": "image",
                    "source": {"type": "base64", "media_type": "image/png", "data": "iVBORw0KGgpjYXQ="},
                },
                {"type": "text", "text": "What is this?"},
            ],
        }
    ]
