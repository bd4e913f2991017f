"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Integration 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供两种请求/响应形态的具体实现 (openai_client、claude_client)。
"""

from typing import Optional

from llm_agent.config.settings import settings
from llm_agent.domain.exceptions import ConfigurationError
from llm_agent.providers.base import Integration
from llm_agent.providers.claude_client import ClaudeClient
from llm_agent.providers.openai_client import OpenAIClient
from llm_agent.providers.registry import get_provider_config


_CLIENTS = {
    "openai": OpenAIClient,
    "claude": ClaudeClient,
}


def create_provider(name: Optional[str] = None, model: Optional[str] = None) -> Integration:
    """根据名称创建 Provider 实例，默认取配置中的 provider。"""

    provider_name = name or getattr(settings, "default_provider", "openai")
    try:
        cfg = get_provider_config(provider_name)
    except KeyError as e:
        raise ConfigurationError(code="UNKNOWN_PROVIDER", message=e.args[0]) from None
    return _CLIENTS[cfg.name](settings, model=model)
