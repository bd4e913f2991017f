import pytest

from llm_agent.domain.exceptions import ConfigurationError
from llm_agent.providers import create_provider
from llm_agent.providers.claude_client import ClaudeClient
from llm_agent.providers.openai_client import OpenAIClient
from llm_agent.providers.registry import OPENAI_CONFIG, get_provider_config


class DummySettings:
    default_provider = "claude"
    default_model = "agent-chat"
    claude_api_key = "sk-ant-test-key"
    openai_api_key = "sk-test-key"
    http_timeout = 1.0


def test_create_provider_default(monkeypatch):
    monkeypatch.setattr("llm_agent.providers.settings", DummySettings())
    provider = create_provider()
    assert isinstance(provider, ClaudeClient)
    assert provider.name == "claude"


def test_create_provider_explicit(monkeypatch):
    monkeypatch.setattr("llm_agent.providers.settings", DummySettings())
    provider = create_provider("OpenAI")
    assert isinstance(provider, OpenAIClient)


def test_create_provider_unknown(monkeypatch):
    monkeypatch.setattr("llm_agent.providers.settings", DummySettings())
    with pytest.raises(ConfigurationError) as exc:
        create_provider("mystery")
    assert exc.value.code == "UNKNOWN_PROVIDER"


def test_resolve_model_passthrough():
    assert OPENAI_CONFIG.resolve_model("agent-chat").provider_model == "gpt-4-turbo"
    custom = OPENAI_CONFIG.resolve_model("gpt-4o-mini")
    assert custom.provider_model == "gpt-4o-mini"
    assert get_provider_config("CLAUDE").name == "claude"
