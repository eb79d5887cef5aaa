"""Provider protocol and the message types exchanged with it."""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class ToolCall:
    """A tool call requested by the model.

    ``arguments`` is the raw JSON string produced by the provider. Parsing is
    left to the agent so that malformed arguments surface as tool errors.
    """

    id: str
    name: str
    arguments: str


@dataclass
class Message:
    """A message in the conversation."""

    role: str  # "system", "user", "assistant", "tool"
    content: str
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None  # For tool response messages
    name: str | None = None  # Tool name for tool response messages
    error: str | None = None  # Set on tool messages whose call failed
    images: list[bytes] | None = None  # Raw image data sent with user messages


@dataclass
class CompletionResponse:
    """Response from a completion call."""

    content: str
    tool_calls: list[ToolCall] | None = None
    finish_reason: str = "stop"


@dataclass
class StreamChunk:
    """One increment of a streamed completion.

    Tool calls are only reported once they are complete, usually on the
    final chunk of the stream.
    """

    content: str = ""
    tool_calls: list[ToolCall] | None = None


class LLMClient(Protocol):
    """Protocol for provider client implementations."""

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> CompletionResponse:
        """Generate a completion.

        Args:
            messages: Conversation history
            tools: Available tools in OpenAI function format
            temperature: Sampling temperature override
            max_tokens: Maximum tokens to generate

        Returns:
            CompletionResponse with content and optional tool calls
        """
        ...

    def stream_complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a completion.

        Args:
            messages: Conversation history
            tools: Available tools in OpenAI function format
            temperature: Sampling temperature override
            max_tokens: Maximum tokens to generate

        Yields:
            StreamChunk increments until the provider ends the stream
        """
        ...


def tool_message_content(msg: Message) -> str:
    """Render the content a provider sees for a tool result message."""
    if msg.error:
        return f"Error: {msg.error}"
    return msg.content


_IMAGE_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


def image_media_type(data: bytes) -> str:
    """Guess an image's MIME type from its leading bytes, defaulting to PNG."""
    for signature, media_type in _IMAGE_SIGNATURES:
        if data.startswith(signature):
            return media_type
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/png"
