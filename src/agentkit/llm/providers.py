"""Provider selection through a name-keyed registry of client factories."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from agentkit.errors import ConfigurationError
from agentkit.llm.anthropic import ANTHROPIC_BASE_URL, AnthropicClient
from agentkit.llm.client import LLMClient
from agentkit.llm.openai_compat import OpenAICompatibleClient

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"
ALIYUN_BASE_URL = "https://dashscope.aliyuncs.com/compatible-mode/v1"
BAIDU_BASE_URL = "https://qianfan.baidubce.com/v2"
OLLAMA_BASE_URL = "http://localhost:11434/v1"
VLLM_BASE_URL = "http://localhost:8000/v1"


@dataclass
class ProviderSettings:
    """Everything a provider factory needs to build a client."""

    model: str
    api_key: str | None = None
    base_url: str | None = None
    temperature: float = 0.7
    max_tokens: int | None = None
    timeout: int = 120
    app_id: str | None = None


ProviderFactory = Callable[[ProviderSettings], LLMClient]


class ProviderRegistry:
    """Maps provider names to client factories.

    Adding a provider means registering a factory; nothing else needs to know
    about it.
    """

    def __init__(self) -> None:
        self._factories: dict[str, ProviderFactory] = {}
        self._lock = threading.Lock()

    def register(self, name: str, factory: ProviderFactory) -> None:
        """Register (or replace) the factory for a provider name."""
        if not name:
            msg = "Provider name must not be empty"
            raise ConfigurationError(msg)
        with self._lock:
            self._factories[name] = factory

    def names(self) -> list[str]:
        """Return registered provider names, sorted."""
        with self._lock:
            return sorted(self._factories)

    def create(self, name: str, settings: ProviderSettings) -> LLMClient:
        """Build a client for a provider.

        Args:
            name: Registered provider name
            settings: Model identity and credentials

        Returns:
            A client implementing the LLMClient protocol

        Raises:
            ConfigurationError: If the provider is unknown
        """
        with self._lock:
            factory = self._factories.get(name)
        if factory is None:
            msg = f"Unknown provider: {name}"
            raise ConfigurationError(msg)
        logger.debug("Creating %s client for model %s", name, settings.model)
        return factory(settings)


def _openai_compatible(default_base_url: str, require_key: bool = True) -> ProviderFactory:
    def factory(settings: ProviderSettings) -> LLMClient:
        if require_key and not settings.api_key:
            msg = f"An API key is required for {default_base_url}"
            raise ConfigurationError(msg)
        return OpenAICompatibleClient(
            model=settings.model,
            base_url=settings.base_url or default_base_url,
            api_key=settings.api_key or "none",
            timeout=settings.timeout,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
        )

    return factory


def _baidu(settings: ProviderSettings) -> LLMClient:
    if not settings.api_key:
        msg = "An API key is required for the baidu provider"
        raise ConfigurationError(msg)
    headers = {"appid": settings.app_id} if settings.app_id else None
    return OpenAICompatibleClient(
        model=settings.model,
        base_url=settings.base_url or BAIDU_BASE_URL,
        api_key=settings.api_key,
        timeout=settings.timeout,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
        default_headers=headers,
    )


def _anthropic(settings: ProviderSettings) -> LLMClient:
    if not settings.api_key:
        msg = "An API key is required for the anthropic provider"
        raise ConfigurationError(msg)
    return AnthropicClient(
        api_key=settings.api_key,
        model=settings.model,
        base_url=settings.base_url or ANTHROPIC_BASE_URL,
        max_tokens=settings.max_tokens or 4096,
        timeout=settings.timeout,
        temperature=settings.temperature,
    )


def default_provider_registry() -> ProviderRegistry:
    """Create a registry with every built-in provider registered."""
    registry = ProviderRegistry()
    registry.register("openai", _openai_compatible(OPENAI_BASE_URL))
    registry.register("aliyun", _openai_compatible(ALIYUN_BASE_URL))
    registry.register("baidu", _baidu)
    registry.register("anthropic", _anthropic)
    registry.register("ollama", _openai_compatible(OLLAMA_BASE_URL, require_key=False))
    registry.register("vllm", _openai_compatible(VLLM_BASE_URL, require_key=False))
    return registry
