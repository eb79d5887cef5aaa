"""Tests for AgentFactory and its templates."""

import json

import pytest

from agentkit.agent.factory import AgentFactory, AgentTemplate, AgentType, ConfigCredentialProvider
from agentkit.config.schema import ProviderConfig
from agentkit.errors import ConfigurationError
from agentkit.llm.openai_compat import OpenAICompatibleClient
from agentkit.llm.providers import ProviderRegistry, ProviderSettings
from agentkit.tools.builtin import make_web_search_tool


class StaticCredentials:
    def __init__(self, key: str | None = "sk-test", base_url: str | None = None):
        self.key = key
        self.base_url = base_url

    def get_api_key(self, provider: str) -> str | None:
        return self.key

    def get_base_url(self, provider: str) -> str | None:
        return self.base_url


@pytest.fixture
def registry_with_search(tool_registry):
    async def no_search(query: str, max_results: int) -> list:
        return []

    tool_registry.register(make_web_search_tool(no_search))
    return tool_registry


@pytest.fixture
def mock_providers(mock_llm_class):
    providers = ProviderRegistry()
    created: list[ProviderSettings] = []

    def factory(settings: ProviderSettings):
        created.append(settings)
        return mock_llm_class([])

    providers.register("mock", factory)
    providers.created = created
    return providers


def test_default_templates_registered():
    factory = AgentFactory()
    templates = factory.list_templates()

    assert set(templates) >= {"default_conversation", "default_rag", "default_workflow"}
    assert templates["default_conversation"].settings.temperature == 0.7
    assert templates["default_conversation"].settings.max_tokens == 1000
    assert templates["default_rag"].default_tools == ["knowledge_search"]
    assert templates["default_rag"].settings.max_tokens == 1500
    assert templates["default_workflow"].default_tools == ["web_search", "calculator"]
    assert templates["default_workflow"].settings.temperature == 0.3


def test_template_registration():
    factory = AgentFactory()
    factory.register_template("mine", AgentTemplate(type=AgentType.CUSTOM, name="Mine", system_prompt="Hi"))

    assert factory.get_template("mine").system_prompt == "Hi"
    with pytest.raises(KeyError):
        factory.get_template("unknown")
    with pytest.raises(ValueError):
        factory.register_template("", AgentTemplate(type=AgentType.CUSTOM, name="x"))


def test_create_from_template_without_credentials(registry_with_search):
    factory = AgentFactory(tool_registry=registry_with_search)

    agent = factory.create_agent("default_workflow", name="worker", model="gpt-4o-mini", provider="openai")

    assert [tool.name for tool in agent.tools] == ["web_search", "calculator"]
    assert agent.settings.temperature == 0.3
    assert agent.system_prompt
    assert not agent.initialized


def test_agent_tools_are_copies(registry_with_search):
    factory = AgentFactory(tool_registry=registry_with_search)
    agent = factory.create_agent("default_workflow", name="worker", model="m", provider="openai")

    agent.tools[1].description = "changed"

    assert registry_with_search.get("calculator").description != "changed"


def test_settings_override(registry_with_search):
    factory = AgentFactory(tool_registry=registry_with_search)
    agent = factory.create_agent(
        "default_conversation", name="chatty", model="m", provider="openai", settings={"temperature": 1.2}
    )

    assert agent.settings.temperature == 1.2
    assert agent.settings.max_tokens == 1000


def test_missing_template_tool_raises(tool_registry):
    factory = AgentFactory(tool_registry=tool_registry)
    with pytest.raises(KeyError, match="web_search"):
        factory.create_agent("default_workflow", name="worker", model="m", provider="openai")


def test_tools_without_registry_raise():
    factory = AgentFactory()
    with pytest.raises(ConfigurationError):
        factory.create_agent("default_rag", name="rag", model="m", provider="openai")


def test_credentials_initialize_agent(mock_providers):
    factory = AgentFactory(credentials=StaticCredentials(base_url="http://local"), providers=mock_providers)

    agent = factory.create_custom_agent("custom", model="m1", provider="mock", system_prompt="Be short.")

    assert agent.initialized
    settings = mock_providers.created[0]
    assert settings.model == "m1"
    assert settings.api_key == "sk-test"
    assert settings.base_url == "http://local"


def test_credentials_are_read_per_agent(mock_providers):
    factory = AgentFactory(providers=mock_providers)
    assert not factory.create_custom_agent("a", model="m", provider="mock").initialized

    factory.credentials = StaticCredentials(key="sk-late")
    assert factory.create_custom_agent("b", model="m", provider="mock").initialized
    assert mock_providers.created[-1].api_key == "sk-late"

    factory.credentials = None
    assert not factory.create_custom_agent("c", model="m", provider="mock").initialized
    assert len(mock_providers.created) == 1


def test_unknown_provider_fails_fast():
    factory = AgentFactory(credentials=StaticCredentials())
    with pytest.raises(ConfigurationError, match="Unknown provider"):
        factory.create_custom_agent("x", model="m", provider="nowhere")


def test_missing_api_key_fails_fast():
    factory = AgentFactory(credentials=StaticCredentials(key=None))
    with pytest.raises(ConfigurationError):
        factory.create_custom_agent("x", model="m", provider="openai")


def test_config_credentials(monkeypatch):
    monkeypatch.setenv("TEST_OPENAI_KEY", "sk-env")
    credentials = ConfigCredentialProvider(
        {
            "openai": ProviderConfig(api_key_env="TEST_OPENAI_KEY", timeout=30),
            "baidu": ProviderConfig(api_key="bce", app_id="app-1"),
        }
    )

    assert credentials.get_api_key("openai") == "sk-env"
    assert credentials.get_timeout("openai") == 30
    assert credentials.get_app_id("baidu") == "app-1"
    assert credentials.get_api_key("missing") is None

    factory = AgentFactory(credentials=credentials)
    agent = factory.create_custom_agent("x", model="gpt-4o-mini", provider="openai")
    assert isinstance(agent.llm, OpenAICompatibleClient)


def test_serialize_round_trip(registry_with_search, mock_providers, caplog):
    factory = AgentFactory(tool_registry=registry_with_search)
    agent = factory.create_agent("default_workflow", name="worker", model="m", provider="mock")
    data = factory.serialize_agent(agent)

    payload = json.loads(data)
    payload["tools"].append("retired_tool")

    restorer = AgentFactory(
        tool_registry=registry_with_search,
        credentials=StaticCredentials(),
        providers=mock_providers,
    )
    restored = restorer.deserialize_agent(json.dumps(payload))

    assert restored.id == agent.id
    assert [tool.name for tool in restored.tools] == ["web_search", "calculator"]
    assert restored.initialized
    assert "retired_tool" in caplog.text
