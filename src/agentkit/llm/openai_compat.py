"""Client for OpenAI-compatible chat completion endpoints.

OpenAI itself, Aliyun DashScope (compatible mode), Baidu Qianfan v2, Ollama
and vLLM all expose ``/chat/completions`` with the same request and response
shapes, so one client serves them all. Provider differences stay in the base
URL, the API key and occasional extra headers.
"""

import base64
from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from agentkit.llm.client import (
    CompletionResponse,
    Message,
    StreamChunk,
    ToolCall,
    image_media_type,
    tool_message_content,
)


def to_openai_message(msg: Message) -> dict[str, Any]:
    """Render one message in chat completions format.

    Messages with images are sent as a list of content parts, the text part
    first and each image as a base64 data URL.
    """
    content: Any = tool_message_content(msg) if msg.role == "tool" else msg.content
    if msg.images:
        parts: list[dict[str, Any]] = [{"type": "text", "text": msg.content}] if msg.content else []
        parts.extend({"type": "image_url", "image_url": {"url": _data_url(image)}} for image in msg.images)
        content = parts

    rendered: dict[str, Any] = {"role": msg.role, "content": content}
    if msg.tool_calls:
        rendered["tool_calls"] = [
            {"id": tc.id, "type": "function", "function": {"name": tc.name, "arguments": tc.arguments}}
            for tc in msg.tool_calls
        ]
    if msg.tool_call_id:
        rendered["tool_call_id"] = msg.tool_call_id
    if msg.name:
        rendered["name"] = msg.name
    return rendered


def _data_url(image: bytes) -> str:
    return f"data:{image_media_type(image)};base64,{base64.b64encode(image).decode('ascii')}"


class ToolCallAccumulator:
    """Reassembles streamed tool call fragments keyed by their index.

    Providers send the call id and function name on the first fragment and
    spread the JSON arguments across later ones.
    """

    def __init__(self) -> None:
        self._slots: dict[int, ToolCall] = {}

    def add(self, fragment: Any) -> None:
        call = self._slots.setdefault(fragment.index, ToolCall(id="", name="", arguments=""))
        if fragment.id:
            call.id = fragment.id
        function = fragment.function
        if function is None:
            return
        if function.name:
            call.name += function.name
        if function.arguments:
            call.arguments += function.arguments

    def calls(self) -> list[ToolCall]:
        return [self._slots[index] for index in sorted(self._slots)]


class OpenAICompatibleClient:
    """LLM client for any OpenAI-compatible chat completion API."""

    def __init__(
        self,
        model: str,
        base_url: str,
        api_key: str = "none",
        timeout: int = 120,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        default_headers: dict[str, str] | None = None,
    ) -> None:
        """Initialise the client.

        Args:
            model: Model name served by the backend.
            base_url: Endpoint root including the version path, e.g. ``.../v1``.
            api_key: API key. Local backends ignore it but the SDK insists on one.
            timeout: Request timeout in seconds.
            temperature: Default sampling temperature.
            max_tokens: Default completion length limit.
            default_headers: Extra headers sent with every request.
        """
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = AsyncOpenAI(
            base_url=base_url,
            api_key=api_key,
            timeout=timeout,
            default_headers=default_headers,
        )

    def _request(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None,
        temperature: float | None,
        max_tokens: int | None,
        **extra: Any,
    ) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": self.model,
            "messages": [to_openai_message(msg) for msg in messages],
            "temperature": self.temperature if temperature is None else temperature,
            **extra,
        }
        if tools:
            request.update(tools=tools, tool_choice="auto")
        if limit := max_tokens or self.max_tokens:
            request["max_tokens"] = limit
        return request

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> CompletionResponse:
        """Generate a completion in one request."""
        response = await self.client.chat.completions.create(
            **self._request(messages, tools, temperature, max_tokens)
        )
        choice = response.choices[0]
        calls = [
            ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or "")
            for tc in choice.message.tool_calls or []
        ]
        return CompletionResponse(
            content=choice.message.content or "",
            tool_calls=calls or None,
            finish_reason=choice.finish_reason or "stop",
        )

    async def stream_complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a completion.

        Content deltas are yielded as they arrive; tool calls are reported on
        one final chunk after the provider closes the stream.
        """
        stream = await self.client.chat.completions.create(
            **self._request(messages, tools, temperature, max_tokens, stream=True)
        )

        accumulator = ToolCallAccumulator()
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            for fragment in delta.tool_calls or []:
                accumulator.add(fragment)
            if delta.content:
                yield StreamChunk(content=delta.content)

        if calls := accumulator.calls():
            yield StreamChunk(tool_calls=calls)
