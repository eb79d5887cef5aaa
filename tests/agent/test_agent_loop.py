"""Tests for the agent chat loop and tool-call resolution."""

import asyncio
import json

import pytest
from pydantic import BaseModel

from agentkit.agent.loop import Agent, AgentSettings
from agentkit.agent.memory import SimpleMemory
from agentkit.errors import AgentNotInitializedError, ConfigurationError, ProviderError, ToolLoopLimitError
from agentkit.llm.client import CompletionResponse, Message, ToolCall
from agentkit.tools.base import Tool, ToolContext


def tool_call(name: str, arguments: str, call_id: str = "call_1") -> CompletionResponse:
    return CompletionResponse(
        content="",
        tool_calls=[ToolCall(id=call_id, name=name, arguments=arguments)],
        finish_reason="tool_calls",
    )


class EchoParams(BaseModel):
    text: str


def test_agent_requires_identity():
    with pytest.raises(ConfigurationError):
        Agent(name="", model="m", provider="p")
    with pytest.raises(ConfigurationError):
        Agent(name="n", model="", provider="p")
    with pytest.raises(ConfigurationError):
        Agent(name="n", model="m", provider="")


def test_agent_defaults():
    agent = Agent(name="n", model="m", provider="p")
    assert isinstance(agent.memory, SimpleMemory)
    assert agent.memory.max_size == 100
    assert not agent.initialized
    assert agent.id


@pytest.mark.asyncio
async def test_chat_before_initialize_fails():
    agent = Agent(name="n", model="m", provider="p")
    with pytest.raises(AgentNotInitializedError):
        await agent.chat("hi")


@pytest.mark.asyncio
async def test_simple_response(make_agent, recorder):
    agent, llm = make_agent([CompletionResponse(content="Hello! I'm here to help.")])

    result = await agent.chat("Hi there")

    assert result == "Hello! I'm here to help."
    assert llm.call_count == 1
    assert recorder.types == ["start", "thinking", "complete"]
    assert recorder.events[0].data == {"model": "test-model", "provider": "mock"}
    assert recorder.events[-1].data == {"content": "Hello! I'm here to help."}
    assert all(event.agent_id == agent.id for event in recorder.events)


@pytest.mark.asyncio
async def test_system_prompt_and_history_order(make_agent):
    agent, llm = make_agent(
        [CompletionResponse(content="first"), CompletionResponse(content="second")],
        system_prompt="Be brief.",
    )

    await agent.chat("one")
    await agent.chat("two")

    sent = llm.calls[1]["messages"]
    assert [(m.role, m.content) for m in sent] == [
        ("system", "Be brief."),
        ("user", "one"),
        ("assistant", "first"),
        ("user", "two"),
    ]


@pytest.mark.asyncio
async def test_calculator_scenario(make_agent, recorder, tool_registry):
    agent, llm = make_agent(
        [
            tool_call("calculator", '{"expression":"2+2"}'),
            CompletionResponse(content="4"),
        ]
    )
    tool_registry.add_tools_to_agent(agent, "calculator")

    result = await agent.chat("2+2")

    assert result == "4"
    assert [(m.role, m.content) for m in agent.memory.get_messages()] == [("user", "2+2"), ("assistant", "4")]

    follow_up = llm.calls[1]["messages"]
    assert follow_up[-2].role == "assistant"
    assert follow_up[-2].tool_calls[0].name == "calculator"
    tool_msg = follow_up[-1]
    assert tool_msg.role == "tool"
    assert tool_msg.tool_call_id == "call_1"
    assert json.loads(tool_msg.content) == {"expression": "2+2", "result": "4"}

    assert recorder.types == ["start", "thinking", "tool_call", "tool_result", "thinking", "complete"]
    assert recorder.events[2].data == {"tool_id": "call_1", "tool_name": "calculator", "arguments": '{"expression":"2+2"}'}
    assert "result" in recorder.events[3].data


@pytest.mark.asyncio
async def test_tools_are_offered_to_provider(make_agent, tool_registry):
    agent, llm = make_agent([CompletionResponse(content="ok")])
    tool_registry.add_tools_to_agent(agent, "calculator")

    await agent.chat("hi")

    tools = llm.calls[0]["tools"]
    assert tools[0]["type"] == "function"
    assert tools[0]["function"]["name"] == "calculator"
    assert "expression" in tools[0]["function"]["parameters"]["properties"]


@pytest.mark.asyncio
async def test_no_tools_sends_none(make_agent):
    agent, llm = make_agent([CompletionResponse(content="ok")])
    await agent.chat("hi")
    assert llm.calls[0]["tools"] is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("name", "arguments", "expected"),
    [
        ("missing", "{}", "Tool not found: missing"),
        ("calculator", "{not json", "Invalid arguments"),
        ("calculator", "[1, 2]", "Invalid arguments: expected a JSON object"),
        ("calculator", "{}", "Invalid arguments for tool 'calculator'"),
        ("calculator", '{"expression": "1/0"}', "Division by zero"),
    ],
)
async def test_tool_errors_are_fed_back(make_agent, recorder, tool_registry, name, arguments, expected):
    agent, llm = make_agent([tool_call(name, arguments), CompletionResponse(content="sorry")])
    tool_registry.add_tools_to_agent(agent, "calculator")

    result = await agent.chat("compute")

    assert result == "sorry"
    tool_msg = llm.calls[1]["messages"][-1]
    assert tool_msg.role == "tool"
    assert tool_msg.error is not None
    assert expected in tool_msg.error

    result_event = recorder.events[recorder.types.index("tool_result")]
    assert expected in result_event.data["error"]


@pytest.mark.asyncio
async def test_unserializable_result_becomes_error(make_agent):
    async def broken(ctx: ToolContext, params: EchoParams) -> object:
        return object()

    agent, llm = make_agent([tool_call("broken", '{"text": "x"}'), CompletionResponse(content="done")])
    agent.add_tool(Tool(name="broken", description="Returns garbage", handler=broken, parameters=EchoParams))

    await agent.chat("go")

    assert "Failed to serialize tool result" in llm.calls[1]["messages"][-1].error


@pytest.mark.asyncio
async def test_pydantic_result_is_serialized(make_agent):
    async def echo(ctx: ToolContext, params: EchoParams) -> EchoParams:
        return params

    agent, llm = make_agent([tool_call("echo", '{"text": "héllo"}'), CompletionResponse(content="done")])
    agent.add_tool(Tool(name="echo", description="Echo", handler=echo, parameters=EchoParams))

    await agent.chat("go")

    assert llm.calls[1]["messages"][-1].content == '{"text": "héllo"}'


@pytest.mark.asyncio
async def test_handler_receives_context(make_agent):
    seen: list[ToolContext] = []

    async def capture(ctx: ToolContext, params: EchoParams) -> str:
        seen.append(ctx)
        return params.text

    agent, _ = make_agent([tool_call("capture", '{"text": "a"}', call_id="call_9"), CompletionResponse(content="ok")])
    agent.add_tool(Tool(name="capture", description="Capture", handler=capture, parameters=EchoParams))

    await agent.chat("go")

    assert seen == [ToolContext(agent_id=agent.id, tool_call_id="call_9")]


@pytest.mark.asyncio
async def test_multiple_tool_calls_in_one_response(make_agent, tool_registry):
    response = CompletionResponse(
        content="",
        tool_calls=[
            ToolCall(id="a", name="calculator", arguments='{"expression": "1+1"}'),
            ToolCall(id="b", name="calculator", arguments='{"expression": "3*3"}'),
        ],
        finish_reason="tool_calls",
    )
    agent, llm = make_agent([response, CompletionResponse(content="2 and 9")])
    tool_registry.add_tools_to_agent(agent, "calculator")

    assert await agent.chat("both") == "2 and 9"

    tool_messages = [m for m in llm.calls[1]["messages"] if m.role == "tool"]
    assert [m.tool_call_id for m in tool_messages] == ["a", "b"]
    assert [json.loads(m.content)["result"] for m in tool_messages] == ["2", "9"]


@pytest.mark.asyncio
async def test_tool_timeout(make_agent):
    async def slow(ctx: ToolContext, params: EchoParams) -> str:
        await asyncio.sleep(5)
        return params.text

    agent, llm = make_agent(
        [tool_call("slow", '{"text": "x"}'), CompletionResponse(content="gave up")],
        tool_timeout=0.01,
    )
    agent.add_tool(Tool(name="slow", description="Slow", handler=slow, parameters=EchoParams))

    assert await agent.chat("go") == "gave up"
    assert "timed out" in llm.calls[1]["messages"][-1].error


@pytest.mark.asyncio
async def test_tool_loop_is_capped(make_agent, recorder, tool_registry):
    agent, llm = make_agent([tool_call("calculator", '{"expression": "1+1"}')], max_tool_iterations=3)
    tool_registry.add_tools_to_agent(agent, "calculator")

    with pytest.raises(ToolLoopLimitError) as exc_info:
        await agent.chat("loop forever")

    assert exc_info.value.limit == 3
    assert llm.call_count == 4
    assert recorder.types.count("tool_call") == 3
    assert recorder.types[-1] == "error"
    assert [m.role for m in agent.memory.get_messages()] == ["user"]


@pytest.mark.asyncio
async def test_zero_tool_iterations_rejects_first_tool_call(make_agent, tool_registry):
    agent, llm = make_agent([tool_call("calculator", '{"expression": "1+1"}')], max_tool_iterations=0)
    tool_registry.add_tools_to_agent(agent, "calculator")

    with pytest.raises(ToolLoopLimitError):
        await agent.chat("go")
    assert llm.call_count == 1


@pytest.mark.asyncio
async def test_provider_error_is_fatal_to_turn_only(make_agent, recorder):
    agent, llm = make_agent([RuntimeError("connection refused"), CompletionResponse(content="back")])

    with pytest.raises(ProviderError, match="connection refused"):
        await agent.chat("first")

    assert recorder.types[-1] == "error"
    assert recorder.events[-1].data == {"error": "connection refused"}
    assert [m.content for m in agent.memory.get_messages()] == ["first"]

    assert await agent.chat("second") == "back"


@pytest.mark.asyncio
async def test_cancelled_turn_emits_error(make_agent, recorder):
    agent, llm = make_agent([CompletionResponse(content="never seen")])
    started = asyncio.Event()

    async def hang(**kwargs):
        started.set()
        await asyncio.sleep(10)

    llm.complete = hang

    task = asyncio.create_task(agent.chat("hi"))
    await asyncio.wait_for(started.wait(), 1)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert recorder.types[-1] == "error"
    assert recorder.events[-1].data == {"error": "turn was cancelled"}


@pytest.mark.asyncio
async def test_multimodal_turn_sends_images(make_agent, tool_registry):
    agent, llm = make_agent(
        [
            tool_call("calculator", '{"expression": "3*4"}'),
            CompletionResponse(content="The chart sums to 12"),
        ]
    )
    agent.provider = "openai"
    tool_registry.add_tools_to_agent(agent, "calculator")

    reply = await agent.chat_multimodal("What does the chart add up to?", [b"\x89PNG\r\n\x1a\nimg"])

    assert reply == "The chart sums to 12"
    sent = llm.calls[0]["messages"][-1]
    assert sent.role == "user"
    assert sent.images == [b"\x89PNG\r\n\x1a\nimg"]
    assert llm.call_count == 2
    stored = agent.memory.get_messages()
    assert stored[0].images == [b"\x89PNG\r\n\x1a\nimg"]
    assert stored[-1].content == "The chart sums to 12"


@pytest.mark.asyncio
async def test_multimodal_rejects_text_only_provider(make_agent):
    agent, llm = make_agent([CompletionResponse(content="unused")])
    agent.provider = "baidu"

    with pytest.raises(ConfigurationError, match="image input"):
        await agent.chat_multimodal("describe", [b"img"])

    assert llm.call_count == 0
    assert agent.memory.get_messages() == []


class FailingMemory:
    def add_message(self, message: Message) -> None:
        raise OSError("disk full")

    def get_messages(self) -> list[Message]:
        raise OSError("disk full")

    def clear(self) -> None:
        pass


@pytest.mark.asyncio
async def test_memory_failures_do_not_block_turn(make_agent, caplog):
    agent, llm = make_agent([CompletionResponse(content="still here")], memory=FailingMemory())

    assert await agent.chat("hello") == "still here"

    sent = llm.calls[0]["messages"]
    assert [(m.role, m.content) for m in sent] == [("user", "hello")]
    assert "Failed to add user message to memory" in caplog.text


@pytest.mark.asyncio
async def test_settings_passed_to_provider(make_agent):
    agent, llm = make_agent([CompletionResponse(content="ok")], settings=AgentSettings(temperature=0.2, max_tokens=50))

    seen: dict = {}
    original = llm.complete

    async def spy(messages, tools=None, temperature=None, max_tokens=None):
        seen.update(temperature=temperature, max_tokens=max_tokens)
        return await original(messages, tools, temperature, max_tokens)

    llm.complete = spy
    await agent.chat("hi")

    assert seen == {"temperature": 0.2, "max_tokens": 50}


def test_to_dict_round_trip(tool_registry):
    agent = Agent(
        name="helper",
        model="gpt-4o-mini",
        provider="openai",
        description="Helps",
        system_prompt="Be nice.",
        settings=AgentSettings(temperature=0.3),
        max_tool_iterations=4,
    )
    tool_registry.add_tools_to_agent(agent, "calculator")
    agent.enable_streaming()

    data = json.loads(json.dumps(agent.to_dict()))
    assert data["tools"] == ["calculator"]

    restored = Agent.from_dict(data, tools=[tool_registry.get("calculator")])
    assert restored.id == agent.id
    assert restored.system_prompt == "Be nice."
    assert restored.settings.temperature == 0.3
    assert restored.max_tool_iterations == 4
    assert restored.runtime.streaming
    assert restored.get_tool("calculator") is not None
    assert not restored.initialized


def test_get_tool_and_clear_memory():
    agent = Agent(name="n", model="m", provider="p")
    assert agent.get_tool("nothing") is None
    agent.memory.add_message(Message(role="user", content="x"))
    agent.clear_memory()
    assert agent.memory.get_messages() == []
