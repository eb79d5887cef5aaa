"""Agent execution loop: model calls, tool-call resolution and streaming."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from agentkit.agent.events import AgentRuntime, EventCallback, EventType
from agentkit.agent.memory import Memory, SimpleMemory
from agentkit.agent.stream import ChatStream
from agentkit.errors import (
    AgentNotInitializedError,
    ConfigurationError,
    ProviderError,
    ToolExecutionError,
    ToolLoopLimitError,
)
from agentkit.llm.client import CompletionResponse, LLMClient, Message, ToolCall
from agentkit.tools.base import Tool, ToolContext

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOOL_ITERATIONS = 10

# Providers whose chat APIs accept image content parts
MULTIMODAL_PROVIDERS = frozenset({"openai", "anthropic", "aliyun"})


class AgentSettings(BaseModel):
    """Sampling settings sent with every completion."""

    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, ge=1)
    extra: dict[str, Any] = Field(default_factory=dict)


class Agent:
    """A model-backed agent with tools, memory and runtime events.

    The reply of a turn is the text of every model round joined in order,
    whether it was streamed or not. Only the user message and that reply are
    written to memory; tool-call and tool-result messages live in the
    per-turn message list that is sent back to the provider.
    """

    def __init__(
        self,
        name: str,
        model: str,
        provider: str,
        *,
        description: str = "",
        system_prompt: str = "",
        tools: Iterable[Tool] | None = None,
        memory: Memory | None = None,
        settings: AgentSettings | None = None,
        llm: LLMClient | None = None,
        max_tool_iterations: int = DEFAULT_MAX_TOOL_ITERATIONS,
        tool_timeout: float | None = None,
        stream_buffer: int = 64,
        agent_id: str | None = None,
    ):
        """Create an agent.

        Args:
            name: Display name
            model: Model identifier passed to the provider
            provider: Provider name (e.g. "openai")
            description: Free-form description
            system_prompt: Prepended to every turn when non-empty
            tools: Tools the model may call
            memory: Conversation memory, ``SimpleMemory(100)`` by default
            settings: Sampling settings
            llm: Provider client; may also be attached later with ``initialize``
            max_tool_iterations: Tool-resolution rounds allowed per turn
            tool_timeout: Seconds a single tool call may run, None for no limit
            stream_buffer: Chunks buffered between a streaming turn and its reader
            agent_id: Fixed id, generated when omitted

        Raises:
            ConfigurationError: If name, model or provider is empty
        """
        if not name or not model or not provider:
            msg = "name, model and provider are required"
            raise ConfigurationError(msg)
        if max_tool_iterations < 0:
            msg = "max_tool_iterations must be >= 0"
            raise ConfigurationError(msg)

        self.id = agent_id or str(uuid.uuid4())
        self.name = name
        self.description = description
        self.model = model
        self.provider = provider
        self.system_prompt = system_prompt
        self.tools: list[Tool] = list(tools or [])
        self.memory: Memory = memory if memory is not None else SimpleMemory(100)
        self.settings = settings or AgentSettings()
        self.runtime = AgentRuntime()
        self.max_tool_iterations = max_tool_iterations
        self.tool_timeout = tool_timeout
        self.stream_buffer = stream_buffer
        self.llm = llm

    # Configuration

    def set_system_prompt(self, prompt: str) -> None:
        self.system_prompt = prompt

    def set_memory(self, memory: Memory) -> None:
        self.memory = memory

    def enable_streaming(self, enabled: bool = True) -> None:
        self.runtime.streaming = enabled

    def add_callback(self, callback: EventCallback) -> None:
        self.runtime.callbacks.append(callback)

    def add_tool(self, tool: Tool) -> None:
        self.tools.append(tool)

    def get_tool(self, name: str) -> Tool | None:
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None

    def clear_memory(self) -> None:
        self.memory.clear()

    def initialize(self, llm: LLMClient) -> None:
        """Attach the provider client and emit the ``start`` event."""
        self._emit(EventType.START, {"model": self.model, "provider": self.provider})
        self.llm = llm

    @property
    def initialized(self) -> bool:
        return self.llm is not None

    # Chat

    async def chat(self, user_message: str) -> str:
        """Run one turn and return the reply.

        In streaming mode the turn is streamed and the concatenated output is
        returned, so both modes have the same observable result.

        Raises:
            AgentNotInitializedError: If no provider client is attached
            ProviderError: If a provider call fails
            ToolLoopLimitError: If the model keeps calling tools past the limit
        """
        llm = self._require_llm()

        if self.runtime.streaming:
            stream = await self.chat_stream(user_message)
            return await stream.read_all()

        messages = self.prepare_messages(user_message)
        return await self._run_turn(llm, messages)

    async def chat_multimodal(self, text: str, images: Iterable[bytes]) -> str:
        """Run one turn whose user message carries text and images.

        The message is stored in memory like any other user message and the
        turn resolves tool calls as ``chat`` does. Images are always sent
        with a blocking completion, even in streaming mode.

        Raises:
            AgentNotInitializedError: If no provider client is attached
            ConfigurationError: If the provider cannot accept images
            ProviderError: If a provider call fails
        """
        llm = self._require_llm()
        if self.provider not in MULTIMODAL_PROVIDERS:
            msg = f"Provider '{self.provider}' does not support image input"
            raise ConfigurationError(msg)

        messages = self.prepare_messages(text, images=list(images))
        return await self._run_turn(llm, messages)

    async def chat_stream(self, user_message: str) -> ChatStream:
        """Start a streamed turn and return its read end.

        The user message is stored immediately. A background task then
        streams provider output into the returned ``ChatStream``, resolving
        tool calls between rounds, and closes it when the turn ends. A
        failure reaches the reader as the error the stream was closed with.

        Raises:
            AgentNotInitializedError: If no provider client is attached
        """
        llm = self._require_llm()
        messages = self.prepare_messages(user_message)

        stream = ChatStream(max_buffer=self.stream_buffer)
        task = asyncio.get_running_loop().create_task(
            self._stream_turn(llm, messages, stream),
            name=f"agent-stream-{self.id}",
        )
        stream.attach(task)
        return stream

    def prepare_messages(self, user_message: str, images: list[bytes] | None = None) -> list[Message]:
        """Store the user message and assemble the message list for a turn.

        Memory failures are logged and never block the turn: the returned
        list always ends with the current user message.
        """
        user_msg = Message(role="user", content=user_message, images=images or None)
        stored = self._remember(user_msg)

        messages: list[Message] = []
        if self.system_prompt:
            messages.append(Message(role="system", content=self.system_prompt))

        history: list[Message] | None = None
        try:
            history = self.memory.get_messages()
        except Exception:
            logger.warning("Failed to read messages from memory", exc_info=True)

        if history is not None:
            messages.extend(history)
        if history is None or not stored:
            messages.append(user_msg)

        return messages

    # Internals

    def _require_llm(self) -> LLMClient:
        if self.llm is None:
            msg = f"Agent '{self.name}' is not initialized; call initialize() first"
            raise AgentNotInitializedError(msg)
        return self.llm

    def _emit(self, event_type: EventType, data: dict[str, Any] | None = None) -> None:
        self.runtime.emit(self.id, event_type, data)

    def _remember(self, message: Message) -> bool:
        try:
            self.memory.add_message(message)
        except Exception:
            logger.warning("Failed to add %s message to memory", message.role, exc_info=True)
            return False
        return True

    def _tool_schemas(self) -> list[dict[str, Any]] | None:
        return [tool.to_openai_format() for tool in self.tools] or None

    def _check_tool_budget(self, rounds: int) -> None:
        if rounds >= self.max_tool_iterations:
            error = ToolLoopLimitError(self.max_tool_iterations)
            logger.error("Agent %s: %s", self.name, error)
            self._emit(EventType.ERROR, {"error": str(error)})
            raise error

    def _finish_turn(self, content: str) -> None:
        self._remember(Message(role="assistant", content=content))
        self._emit(EventType.COMPLETE, {"content": content})

    async def _complete(self, llm: LLMClient, messages: list[Message]) -> CompletionResponse:
        self._emit(EventType.THINKING)
        try:
            return await llm.complete(
                messages=messages,
                tools=self._tool_schemas(),
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_tokens,
            )
        except Exception as e:
            logger.error("Chat with agent %s failed: %s", self.name, e)
            self._emit(EventType.ERROR, {"error": str(e)})
            msg = f"Provider '{self.provider}' failed: {e}"
            raise ProviderError(msg) from e

    async def _stream_round(
        self, llm: LLMClient, messages: list[Message], stream: ChatStream
    ) -> tuple[str, list[ToolCall]]:
        self._emit(EventType.THINKING)
        parts: list[str] = []
        tool_calls: list[ToolCall] = []
        try:
            async for chunk in llm.stream_complete(
                messages=messages,
                tools=self._tool_schemas(),
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_tokens,
            ):
                if chunk.content:
                    self._emit(EventType.TOKEN, {"content": chunk.content})
                    await stream.write(chunk.content)
                    parts.append(chunk.content)
                if chunk.tool_calls:
                    tool_calls.extend(chunk.tool_calls)
        except BrokenPipeError:
            raise
        except Exception as e:
            logger.error("Error receiving stream chunk for agent %s: %s", self.name, e)
            self._emit(EventType.ERROR, {"error": str(e)})
            msg = f"Provider '{self.provider}' stream failed: {e}"
            raise ProviderError(msg) from e

        return "".join(parts), tool_calls

    async def _run_turn(self, llm: LLMClient, messages: list[Message]) -> str:
        parts: list[str] = []
        try:
            response = await self._complete(llm, messages)
            parts.append(response.content)

            rounds = 0
            while response.tool_calls:
                self._check_tool_budget(rounds)
                rounds += 1
                await self._resolve_tool_calls(messages, response.content, response.tool_calls)
                response = await self._complete(llm, messages)
                parts.append(response.content)
        except asyncio.CancelledError:
            self._emit(EventType.ERROR, {"error": "turn was cancelled"})
            raise

        reply = "".join(parts)
        self._finish_turn(reply)
        return reply

    async def _stream_turn(self, llm: LLMClient, messages: list[Message], stream: ChatStream) -> None:
        parts: list[str] = []
        try:
            content, tool_calls = await self._stream_round(llm, messages, stream)
            parts.append(content)
            rounds = 0
            while tool_calls:
                self._check_tool_budget(rounds)
                rounds += 1
                await self._resolve_tool_calls(messages, content, tool_calls)
                content, tool_calls = await self._stream_round(llm, messages, stream)
                parts.append(content)
            self._finish_turn("".join(parts))
        except asyncio.CancelledError:
            self._emit(EventType.ERROR, {"error": "turn was cancelled"})
            raise
        except Exception as e:
            stream.close(e)
        else:
            stream.close()

    async def _resolve_tool_calls(self, messages: list[Message], content: str, tool_calls: list[ToolCall]) -> None:
        messages.append(Message(role="assistant", content=content, tool_calls=tool_calls))
        for call in tool_calls:
            messages.append(await self._execute_tool_call(call))

    async def _execute_tool_call(self, call: ToolCall) -> Message:
        """Run one tool call and turn the outcome into a tool message.

        Failures of any kind (bad JSON, unknown tool, invalid arguments,
        handler errors, timeouts, unserializable results) become an error
        tool result so the model can react to them.
        """
        self._emit(
            EventType.TOOL_CALL,
            {"tool_id": call.id, "tool_name": call.name, "arguments": call.arguments},
        )

        try:
            content = await self._run_tool(call)
        except ToolExecutionError as e:
            logger.warning("Tool call %s (%s) failed: %s", call.id, call.name, e)
            self._emit(
                EventType.TOOL_RESULT,
                {"tool_id": call.id, "tool_name": call.name, "error": str(e)},
            )
            return Message(role="tool", content="", tool_call_id=call.id, name=call.name, error=str(e))

        self._emit(
            EventType.TOOL_RESULT,
            {"tool_id": call.id, "tool_name": call.name, "result": content},
        )
        return Message(role="tool", content=content, tool_call_id=call.id, name=call.name)

    async def _run_tool(self, call: ToolCall) -> str:
        try:
            arguments = json.loads(call.arguments) if call.arguments.strip() else {}
        except json.JSONDecodeError as e:
            msg = f"Invalid arguments: {e}"
            raise ToolExecutionError(msg) from e
        if not isinstance(arguments, dict):
            msg = "Invalid arguments: expected a JSON object"
            raise ToolExecutionError(msg)

        tool = self.get_tool(call.name)
        if tool is None:
            msg = f"Tool not found: {call.name}"
            raise ToolExecutionError(msg)

        ctx = ToolContext(agent_id=self.id, tool_call_id=call.id)
        try:
            if self.tool_timeout:
                result = await asyncio.wait_for(tool.invoke(ctx, arguments), self.tool_timeout)
            else:
                result = await tool.invoke(ctx, arguments)
        except ValidationError as e:
            msg = f"Invalid arguments for tool '{call.name}': {e}"
            raise ToolExecutionError(msg) from e
        except TimeoutError as e:
            msg = f"Tool '{call.name}' timed out after {self.tool_timeout}s"
            raise ToolExecutionError(msg) from e
        except Exception as e:
            raise ToolExecutionError(str(e) or type(e).__name__) from e

        try:
            return json.dumps(result, ensure_ascii=False, default=_json_default)
        except (TypeError, ValueError) as e:
            msg = f"Failed to serialize tool result: {e}"
            raise ToolExecutionError(msg) from e

    # Serialization

    def to_dict(self) -> dict[str, Any]:
        """Snapshot the agent's identity and configuration.

        Memory contents and the provider client are not included; tools are
        recorded by name.
        """
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "model": self.model,
            "provider": self.provider,
            "system_prompt": self.system_prompt,
            "settings": self.settings.model_dump(),
            "tools": [tool.name for tool in self.tools],
            "streaming": self.runtime.streaming,
            "max_tool_iterations": self.max_tool_iterations,
            "tool_timeout": self.tool_timeout,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], tools: Iterable[Tool] | None = None) -> Agent:
        """Rebuild an agent from ``to_dict`` output.

        Args:
            data: Serialized agent
            tools: Tool objects to attach; the caller resolves the names

        Raises:
            ConfigurationError: If identity fields are missing
        """
        agent = cls(
            name=data.get("name", ""),
            model=data.get("model", ""),
            provider=data.get("provider", ""),
            description=data.get("description", ""),
            system_prompt=data.get("system_prompt", ""),
            tools=tools,
            settings=AgentSettings.model_validate(data.get("settings") or {}),
            max_tool_iterations=data.get("max_tool_iterations", DEFAULT_MAX_TOOL_ITERATIONS),
            tool_timeout=data.get("tool_timeout"),
            agent_id=data.get("id"),
        )
        agent.enable_streaming(bool(data.get("streaming", False)))
        return agent


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    msg = f"Object of type {type(value).__name__} is not JSON serializable"
    raise TypeError(msg)
