"""Provider client implementations."""

from .anthropic import AnthropicClient
from .client import CompletionResponse, LLMClient, Message, StreamChunk, ToolCall
from .openai_compat import OpenAICompatibleClient
from .providers import ProviderRegistry, ProviderSettings, default_provider_registry

__all__ = [
    "AnthropicClient",
    "CompletionResponse",
    "LLMClient",
    "Message",
    "OpenAICompatibleClient",
    "ProviderRegistry",
    "ProviderSettings",
    "StreamChunk",
    "ToolCall",
    "default_provider_registry",
]
