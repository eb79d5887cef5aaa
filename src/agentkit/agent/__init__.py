"""Agent execution engine.

An agent sends the conversation to its provider, resolves any tool calls the
model makes (up to ``max_tool_iterations`` rounds), and returns the final
reply, either at once or streamed through a ``ChatStream``. Every state
transition is reported to registered callbacks as an ``AgentEvent``.

Usage::

    from agentkit.agent import Agent
    from agentkit.llm import ProviderSettings, default_provider_registry

    llm = default_provider_registry().create("openai", ProviderSettings(model="gpt-4o-mini", api_key=key))
    agent = Agent(name="helper", model="gpt-4o-mini", provider="openai")
    agent.initialize(llm)
    reply = await agent.chat("What is 2+2?")
"""

from agentkit.agent.conversation import Conversation, ConversationManager, ConversationMessage, Feedback
from agentkit.agent.events import AgentEvent, AgentRuntime, EventType
from agentkit.agent.factory import AgentFactory, AgentTemplate, AgentType, ConfigCredentialProvider
from agentkit.agent.loop import Agent, AgentSettings
from agentkit.agent.memory import Memory, SimpleMemory
from agentkit.agent.stream import ChatStream

__all__ = [
    "Agent",
    "AgentEvent",
    "AgentFactory",
    "AgentRuntime",
    "AgentSettings",
    "AgentTemplate",
    "AgentType",
    "ChatStream",
    "ConfigCredentialProvider",
    "Conversation",
    "ConversationManager",
    "ConversationMessage",
    "EventType",
    "Feedback",
    "Memory",
    "SimpleMemory",
]
