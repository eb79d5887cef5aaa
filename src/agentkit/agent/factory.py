"""Agent construction from templates, tools and provider credentials."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, Field

from agentkit.agent.loop import DEFAULT_MAX_TOOL_ITERATIONS, Agent, AgentSettings
from agentkit.agent.memory import SimpleMemory
from agentkit.config.schema import ProviderConfig
from agentkit.errors import ConfigurationError
from agentkit.llm.providers import ProviderRegistry, ProviderSettings, default_provider_registry
from agentkit.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class AgentType(str, Enum):
    CONVERSATIONAL = "conversational"
    RAG = "rag"
    WORKFLOW = "workflow"
    CUSTOM = "custom"


class AgentTemplate(BaseModel):
    """Blueprint for creating agents of a given kind."""

    type: AgentType
    name: str
    description: str = ""
    system_prompt: str = ""
    default_tools: list[str] = Field(default_factory=list)
    settings: AgentSettings = Field(default_factory=AgentSettings)


DEFAULT_TEMPLATES: dict[str, AgentTemplate] = {
    "default_conversation": AgentTemplate(
        type=AgentType.CONVERSATIONAL,
        name="Conversational agent",
        description="General-purpose assistant for everyday questions",
        system_prompt=(
            "You are a helpful AI assistant. Answer the user's questions accurately, "
            "thoughtfully and helpfully."
        ),
        settings=AgentSettings(temperature=0.7, max_tokens=1000),
    ),
    "default_rag": AgentTemplate(
        type=AgentType.RAG,
        name="Knowledge base agent",
        description="Answers domain questions from a knowledge base",
        system_prompt=(
            "You are a knowledge base assistant. Answer using the provided knowledge; "
            "if the knowledge base has nothing relevant, say so explicitly."
        ),
        default_tools=["knowledge_search"],
        settings=AgentSettings(temperature=0.5, max_tokens=1500),
    ),
    "default_workflow": AgentTemplate(
        type=AgentType.WORKFLOW,
        name="Workflow agent",
        description="Carries out multi-step tasks with tools",
        system_prompt=(
            "You are a workflow automation assistant. Help the user complete multi-step "
            "tasks, using tools in a logical order to reach the goal."
        ),
        default_tools=["web_search", "calculator"],
        settings=AgentSettings(temperature=0.3, max_tokens=2000),
    ),
}


class CredentialProvider(Protocol):
    """Supplies provider credentials to the factory."""

    def get_api_key(self, provider: str) -> str | None:
        ...

    def get_base_url(self, provider: str) -> str | None:
        ...


class ConfigCredentialProvider:
    """Credentials taken from the ``providers`` section of the configuration."""

    def __init__(self, providers: Mapping[str, ProviderConfig]):
        self._providers = dict(providers)

    def get_api_key(self, provider: str) -> str | None:
        config = self._providers.get(provider)
        return config.resolve_api_key() if config else None

    def get_base_url(self, provider: str) -> str | None:
        config = self._providers.get(provider)
        return config.base_url if config else None

    def get_timeout(self, provider: str) -> int:
        config = self._providers.get(provider)
        return config.timeout if config else 120

    def get_app_id(self, provider: str) -> str | None:
        config = self._providers.get(provider)
        return config.app_id if config else None


class AgentFactory:
    """Builds agents from named templates or ad-hoc definitions.

    When a credential provider is configured, created agents are initialized
    with a provider client straight away; otherwise the caller attaches one
    with ``Agent.initialize``.
    """

    def __init__(
        self,
        tool_registry: ToolRegistry | None = None,
        credentials: CredentialProvider | None = None,
        providers: ProviderRegistry | None = None,
        max_tool_iterations: int = DEFAULT_MAX_TOOL_ITERATIONS,
        tool_timeout: float | None = None,
        memory_size: int = 100,
        stream_buffer: int = 64,
    ):
        self.tool_registry = tool_registry
        self.credentials = credentials
        self.providers = providers or default_provider_registry()
        self.max_tool_iterations = max_tool_iterations
        self.tool_timeout = tool_timeout
        self.memory_size = memory_size
        self.stream_buffer = stream_buffer
        self._templates: dict[str, AgentTemplate] = {}
        self._lock = threading.Lock()

        for template_id, template in DEFAULT_TEMPLATES.items():
            self.register_template(template_id, template.model_copy(deep=True))

    # Templates

    def register_template(self, template_id: str, template: AgentTemplate) -> None:
        """Register or replace a template.

        Raises:
            ValueError: If the id or the template name is empty
        """
        if not template_id:
            msg = "template id must not be empty"
            raise ValueError(msg)
        if not template.name:
            msg = "template must have a name"
            raise ValueError(msg)
        with self._lock:
            self._templates[template_id] = template

    def get_template(self, template_id: str) -> AgentTemplate:
        """Look up a template.

        Raises:
            KeyError: If the template does not exist
        """
        with self._lock:
            template = self._templates.get(template_id)
        if template is None:
            msg = f"Template '{template_id}' not found"
            raise KeyError(msg)
        return template

    def list_templates(self) -> dict[str, AgentTemplate]:
        with self._lock:
            return dict(self._templates)

    # Creation

    def create_agent(
        self,
        template_id: str,
        name: str,
        model: str,
        provider: str,
        description: str = "",
        settings: Mapping[str, Any] | None = None,
    ) -> Agent:
        """Create an agent from a template.

        Args:
            template_id: Registered template id
            name: Agent name
            model: Model identifier
            provider: Provider name
            description: Agent description
            settings: Overrides merged over the template's settings

        Raises:
            KeyError: If the template or one of its tools is unknown
            ConfigurationError: If identity or provider configuration is invalid
        """
        template = self.get_template(template_id)
        merged = template.settings.model_dump()
        merged.update(settings or {})

        return self._build(
            name=name,
            model=model,
            provider=provider,
            description=description or template.description,
            system_prompt=template.system_prompt,
            tool_names=template.default_tools,
            settings=AgentSettings.model_validate(merged),
        )

    def create_custom_agent(
        self,
        name: str,
        model: str,
        provider: str,
        system_prompt: str = "",
        tool_names: Iterable[str] = (),
        description: str = "",
        settings: Mapping[str, Any] | None = None,
    ) -> Agent:
        """Create an agent without a template."""
        return self._build(
            name=name,
            model=model,
            provider=provider,
            description=description,
            system_prompt=system_prompt,
            tool_names=list(tool_names),
            settings=AgentSettings.model_validate(dict(settings or {})),
        )

    def _build(
        self,
        name: str,
        model: str,
        provider: str,
        description: str,
        system_prompt: str,
        tool_names: list[str],
        settings: AgentSettings,
    ) -> Agent:
        agent = Agent(
            name=name,
            model=model,
            provider=provider,
            description=description,
            system_prompt=system_prompt,
            memory=SimpleMemory(self.memory_size),
            settings=settings,
            max_tool_iterations=self.max_tool_iterations,
            tool_timeout=self.tool_timeout,
            stream_buffer=self.stream_buffer,
        )

        if tool_names:
            if self.tool_registry is None:
                msg = f"Agent '{name}' needs tools but the factory has no tool registry"
                raise ConfigurationError(msg)
            self.tool_registry.add_tools_to_agent(agent, *tool_names)

        if (credentials := self.credentials) is not None:
            self._initialize(agent, credentials)

        logger.info("Created agent %s (%s/%s) with %d tools", name, provider, model, len(agent.tools))
        return agent

    def _initialize(self, agent: Agent, credentials: CredentialProvider) -> None:
        provider = agent.provider
        provider_settings = ProviderSettings(
            model=agent.model,
            api_key=credentials.get_api_key(provider),
            base_url=credentials.get_base_url(provider),
            temperature=agent.settings.temperature if agent.settings.temperature is not None else 0.7,
            max_tokens=agent.settings.max_tokens,
        )
        if isinstance(credentials, ConfigCredentialProvider):
            provider_settings.timeout = credentials.get_timeout(provider)
            provider_settings.app_id = credentials.get_app_id(provider)
        if "app_id" in agent.settings.extra:
            provider_settings.app_id = str(agent.settings.extra["app_id"])

        agent.initialize(self.providers.create(provider, provider_settings))

    # Serialization

    def serialize_agent(self, agent: Agent) -> str:
        """Serialize an agent's configuration to JSON."""
        return json.dumps(agent.to_dict(), ensure_ascii=False)

    def deserialize_agent(self, data: str | bytes) -> Agent:
        """Rebuild an agent from ``serialize_agent`` output.

        Tools are re-attached from the registry by name; names the registry
        no longer knows are logged and skipped.

        Raises:
            ValueError: If the data is not valid JSON
            ConfigurationError: If identity fields are missing
        """
        payload = json.loads(data)
        agent = Agent.from_dict(payload)
        agent.set_memory(SimpleMemory(self.memory_size))
        agent.stream_buffer = self.stream_buffer

        tool_names = payload.get("tools") or []
        if tool_names and self.tool_registry is not None:
            known = [name for name in tool_names if name in self.tool_registry]
            for name in set(tool_names) - set(known):
                logger.warning("Dropping unknown tool %s from agent %s", name, agent.name)
            self.tool_registry.add_tools_to_agent(agent, *known)

        if (credentials := self.credentials) is not None:
            self._initialize(agent, credentials)
        return agent
