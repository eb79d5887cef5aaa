"""Tests for configuration loading."""

import pytest

from agentkit.config.loader import ConfigError, load_config, save_config
from agentkit.config.schema import PlatformConfig, ProviderConfig


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "missing.yaml")

    assert config == PlatformConfig()
    assert config.agent.max_tool_iterations == 10
    assert config.knowledge.chunk_size == 1000
    assert config.knowledge.chunk_overlap == 200
    assert config.embedding.backend == "hashing"
    assert config.vector_store.backend == "memory"


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "agentkit.yaml"
    path.write_text("")

    assert load_config(path) == PlatformConfig()


def test_partial_config(tmp_path):
    path = tmp_path / "agentkit.yaml"
    path.write_text(
        "agent:\n"
        "  default_provider: anthropic\n"
        "  max_tool_iterations: 3\n"
        "providers:\n"
        "  anthropic:\n"
        "    api_key_env: TEST_ANTHROPIC_KEY\n"
        "knowledge:\n"
        "  top_k: 8\n"
    )

    config = load_config(str(path))

    assert config.agent.default_provider == "anthropic"
    assert config.agent.max_tool_iterations == 3
    assert config.agent.default_model == "gpt-4o-mini"
    assert config.providers["anthropic"].api_key_env == "TEST_ANTHROPIC_KEY"
    assert config.knowledge.top_k == 8


def test_invalid_yaml(tmp_path):
    path = tmp_path / "agentkit.yaml"
    path.write_text("agent: [unclosed")

    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(path)


def test_root_must_be_mapping(tmp_path):
    path = tmp_path / "agentkit.yaml"
    path.write_text("- a\n- b\n")

    with pytest.raises(ConfigError, match="mapping"):
        load_config(path)


@pytest.mark.parametrize(
    "content",
    [
        "agent:\n  temperature: 5\n",
        "agent:\n  max_tool_iterations: -1\n",
        "knowledge:\n  top_k: 0\n",
        "vector_store:\n  backend: pinecone\n",
    ],
)
def test_validation_errors(tmp_path, content):
    path = tmp_path / "agentkit.yaml"
    path.write_text(content)

    with pytest.raises(ConfigError, match="validation failed"):
        load_config(path)


def test_save_and_reload(tmp_path):
    config = PlatformConfig()
    config.agent.default_model = "qwen-max"
    config.providers["aliyun"] = ProviderConfig(api_key_env="DASHSCOPE_API_KEY")
    path = tmp_path / "nested" / "agentkit.yaml"

    save_config(config, path)

    assert load_config(path) == config


def test_resolve_api_key(monkeypatch):
    monkeypatch.setenv("TEST_PROVIDER_KEY", "from-env")

    assert ProviderConfig(api_key="inline", api_key_env="TEST_PROVIDER_KEY").resolve_api_key() == "inline"
    assert ProviderConfig(api_key_env="TEST_PROVIDER_KEY").resolve_api_key() == "from-env"
    assert ProviderConfig(api_key_env="TEST_PROVIDER_KEY_UNSET").resolve_api_key() is None
    assert ProviderConfig().resolve_api_key() is None
