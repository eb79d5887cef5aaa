"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncIterator
from typing import Any

import pytest

from agentkit.agent.events import AgentEvent
from agentkit.agent.loop import Agent
from agentkit.config.schema import PlatformConfig
from agentkit.embeddings.hashing import HashingEmbedding
from agentkit.embeddings.manager import EmbeddingManager
from agentkit.knowledge.manager import KnowledgeBaseManager
from agentkit.knowledge.retriever import VectorRetriever
from agentkit.llm.client import CompletionResponse, Message, StreamChunk
from agentkit.tools.builtin import make_calculator_tool
from agentkit.tools.registry import ToolRegistry
from agentkit.vector.memory import InMemoryVectorDatabase


class MockLLM:
    """Scripted provider client.

    Returns the given responses in order from both ``complete`` and
    ``stream_complete``; streamed responses are split into word chunks
    followed by a chunk carrying the tool calls.
    """

    def __init__(self, responses: list[CompletionResponse | Exception]):
        self.responses = responses
        self.call_count = 0
        self.calls: list[dict[str, Any]] = []

    def _next(self, messages: list[Message], tools: list[dict[str, Any]] | None) -> CompletionResponse:
        self.calls.append({"messages": list(messages), "tools": tools})
        response = self.responses[min(self.call_count, len(self.responses) - 1)]
        self.call_count += 1
        if isinstance(response, Exception):
            raise response
        return response

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> CompletionResponse:
        return self._next(messages, tools)

    async def stream_complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[StreamChunk]:
        response = self._next(messages, tools)
        words = response.content.split(" ")
        for i, word in enumerate(words):
            yield StreamChunk(content=word if i == 0 else " " + word)
        if response.tool_calls:
            yield StreamChunk(tool_calls=response.tool_calls)


class EventRecorder:
    def __init__(self) -> None:
        self.events: list[AgentEvent] = []

    def __call__(self, event: AgentEvent) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [event.type.value for event in self.events]


@pytest.fixture
def default_config() -> PlatformConfig:
    """Provide a default configuration for tests."""
    return PlatformConfig()


@pytest.fixture
def mock_llm_class() -> type[MockLLM]:
    return MockLLM


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def make_agent(recorder: EventRecorder):
    """Build an initialized agent around a scripted provider."""

    def factory(responses: list[CompletionResponse | Exception], **kwargs: Any) -> tuple[Agent, MockLLM]:
        llm = MockLLM(responses)
        agent = Agent(name="test-agent", model="test-model", provider="mock", **kwargs)
        agent.add_callback(recorder)
        agent.initialize(llm)
        return agent, llm

    return factory


@pytest.fixture
def tool_registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(make_calculator_tool())
    return registry


@pytest.fixture
def embeddings() -> EmbeddingManager:
    manager = EmbeddingManager()
    manager.register_model(HashingEmbedding(dimension=256), name="hashing")
    return manager


@pytest.fixture
def vector_db() -> InMemoryVectorDatabase:
    return InMemoryVectorDatabase()


@pytest.fixture
def kb_manager(vector_db: InMemoryVectorDatabase, embeddings: EmbeddingManager) -> KnowledgeBaseManager:
    return KnowledgeBaseManager(vector_db, embeddings)


@pytest.fixture
def retriever(kb_manager: KnowledgeBaseManager, embeddings: EmbeddingManager) -> VectorRetriever:
    return VectorRetriever(kb_manager, embeddings)
