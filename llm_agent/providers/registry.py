"""Provider 与模型配置。

本模块将“逻辑模型名”与“具体厂商模型名”解耦：

- 逻辑名（logical_name）：在代码里使用的统一名称，例如 "agent-chat"。
- provider_model：厂商实际提供的模型 ID，例如 "gpt-4-turbo"。

未登记的名称按厂商模型 ID 原样使用，便于临时切换模型。"""

from dataclasses import dataclass
from typing import Dict, Mapping


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str
    max_tokens: int
    default_temperature: float


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    models: Dict[str, ModelConfig]

    def resolve_model(self, name: str) -> ModelConfig:
        cfg = self.models.get(name)
        if cfg is not None:
            return cfg
        return ModelConfig(logical_name=name, provider_model=name, max_tokens=4096, default_temperature=1.0)


OPENAI_CONFIG = ProviderConfig(
    name="openai",
    base_url="https://api.openai.com/v1",
    models={
        "agent-chat": ModelConfig(
            logical_name="agent-chat",
            provider_model="gpt-4-turbo",
            max_tokens=4096,
            default_temperature=1.0,
        )
    },
)

CLAUDE_CONFIG = ProviderConfig(
    name="claude",
    base_url="https://api.anthropic.com/v1",
    models={
        "agent-chat": ModelConfig(
            logical_name="agent-chat",
            provider_model="claude-3-5-sonnet-20240620",
            max_tokens=4096,
            default_temperature=1.0,
        )
    },
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "openai": OPENAI_CONFIG,
    "claude": CLAUDE_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
