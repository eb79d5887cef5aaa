"""Anthropic Claude client using httpx.

Implements the LLMClient protocol for the Anthropic Messages API without
depending on the anthropic SDK. Conversion between agentkit messages and
Anthropic content blocks lives in module-level functions so that it can be
tested without a client.
"""

import base64
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from agentkit.llm.client import (
    CompletionResponse,
    Message,
    StreamChunk,
    ToolCall,
    image_media_type,
    tool_message_content,
)

logger = logging.getLogger(__name__)

ANTHROPIC_BASE_URL = "https://api.anthropic.com"
ANTHROPIC_API_VERSION = "2023-06-01"
MESSAGES_PATH = "/v1/messages"


def to_anthropic_messages(messages: list[Message]) -> tuple[str | None, list[dict[str, Any]]]:
    """Convert messages to Anthropic's format.

    The system prompt travels outside the messages array, assistant tool
    calls become ``tool_use`` blocks, and tool results are sent as user
    messages carrying a ``tool_result`` block. Images become base64
    ``image`` blocks placed ahead of the message text.

    Returns:
        Tuple of (system_prompt, anthropic_messages)
    """
    system_prompt = None
    converted: list[dict[str, Any]] = []

    for msg in messages:
        if msg.role == "system":
            system_prompt = msg.content
        elif msg.role == "tool":
            block: dict[str, Any] = {
                "type": "tool_result",
                "tool_use_id": msg.tool_call_id,
                "content": tool_message_content(msg),
            }
            if msg.error:
                block["is_error"] = True
            converted.append({"role": "user", "content": [block]})
        elif msg.role == "assistant" and msg.tool_calls:
            blocks: list[dict[str, Any]] = [{"type": "text", "text": msg.content}] if msg.content else []
            blocks.extend(
                {"type": "tool_use", "id": tc.id, "name": tc.name, "input": _decode_input(tc.arguments)}
                for tc in msg.tool_calls
            )
            converted.append({"role": "assistant", "content": blocks})
        elif msg.images:
            blocks = [
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": image_media_type(image),
                        "data": base64.b64encode(image).decode("ascii"),
                    },
                }
                for image in msg.images
            ]
            if msg.content:
                blocks.append({"type": "text", "text": msg.content})
            converted.append({"role": msg.role, "content": blocks})
        else:
            converted.append({"role": msg.role, "content": msg.content})

    return system_prompt, converted


def to_anthropic_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert OpenAI function definitions to Anthropic tool definitions."""
    converted = []
    for tool in tools:
        func = tool.get("function", tool)
        converted.append(
            {
                "name": func["name"],
                "description": func.get("description", ""),
                "input_schema": func.get("parameters", {"type": "object", "properties": {}}),
            }
        )
    return converted


def parse_content(blocks: list[dict[str, Any]]) -> tuple[str, list[ToolCall]]:
    """Split response content blocks into text and tool calls."""
    text = "\n".join(block["text"] for block in blocks if block["type"] == "text")
    tool_calls = [
        ToolCall(id=block["id"], name=block["name"], arguments=json.dumps(block.get("input", {})))
        for block in blocks
        if block["type"] == "tool_use"
    ]
    return text, tool_calls


def _decode_input(arguments: str) -> Any:
    try:
        return json.loads(arguments) if arguments else {}
    except json.JSONDecodeError:
        logger.warning("Sending undecodable tool arguments as an empty object")
        return {}


async def _sse_events(response: httpx.Response) -> AsyncIterator[dict[str, Any]]:
    async for line in response.aiter_lines():
        if line.startswith("data: "):
            yield json.loads(line[len("data: ") :])


class AnthropicClient:
    """LLM client for the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        base_url: str = ANTHROPIC_BASE_URL,
        max_tokens: int = 4096,
        timeout: int = 120,
        temperature: float = 0.7,
    ):
        """Initialize Anthropic client.

        Args:
            api_key: Anthropic API key
            model: Model name
            base_url: API root, without the ``/v1/messages`` path
            max_tokens: Default max tokens for responses (the API requires one)
            timeout: Request timeout in seconds
            temperature: Default sampling temperature
        """
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_API_VERSION,
                "content-type": "application/json",
            },
            timeout=httpx.Timeout(timeout),
        )

    def _payload(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None,
        temperature: float | None,
        max_tokens: int | None,
        stream: bool = False,
    ) -> dict[str, Any]:
        system_prompt, anthropic_messages = to_anthropic_messages(messages)
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": anthropic_messages,
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": temperature if temperature is not None else self.temperature,
        }
        if system_prompt:
            payload["system"] = system_prompt
        if tools:
            payload["tools"] = to_anthropic_tools(tools)
        if stream:
            payload["stream"] = True
        return payload

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> CompletionResponse:
        """Generate a completion from Anthropic Claude.

        Raises:
            httpx.HTTPStatusError: If the API returns an error status
        """
        response = await self.client.post(
            MESSAGES_PATH, json=self._payload(messages, tools, temperature, max_tokens)
        )
        response.raise_for_status()
        data = response.json()

        text, tool_calls = parse_content(data["content"])
        return CompletionResponse(
            content=text,
            tool_calls=tool_calls or None,
            finish_reason="tool_calls" if data.get("stop_reason") == "tool_use" else "stop",
        )

    async def stream_complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a completion from Anthropic Claude.

        Text deltas are yielded as they arrive. ``tool_use`` blocks are
        assembled from their ``input_json_delta`` fragments and reported on
        a final chunk.

        Raises:
            httpx.HTTPStatusError: If the API returns an error status
            RuntimeError: If the stream carries an ``error`` event
        """
        payload = self._payload(messages, tools, temperature, max_tokens, stream=True)
        pending: dict[int, ToolCall] = {}

        async with self.client.stream("POST", MESSAGES_PATH, json=payload) as response:
            response.raise_for_status()
            async for event in _sse_events(response):
                kind = event.get("type")
                if kind == "content_block_start":
                    block = event.get("content_block", {})
                    if block.get("type") == "tool_use":
                        pending[event["index"]] = ToolCall(id=block["id"], name=block["name"], arguments="")
                elif kind == "content_block_delta":
                    delta = event.get("delta", {})
                    if delta.get("type") == "text_delta":
                        yield StreamChunk(content=delta["text"])
                    elif delta.get("type") == "input_json_delta" and event["index"] in pending:
                        pending[event["index"]].arguments += delta.get("partial_json", "")
                elif kind == "error":
                    msg = f"Anthropic stream error: {event.get('error')}"
                    raise RuntimeError(msg)

        if pending:
            calls = [pending[index] for index in sorted(pending)]
            for call in calls:
                call.arguments = call.arguments or "{}"
            yield StreamChunk(tool_calls=calls)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()
