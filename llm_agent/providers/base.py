"""Integration 抽象接口。

Agent 循环不直接依赖具体厂商的 HTTP 协议，而是依赖此协议：

- 每个厂商实现一个 Integration（如 OpenAIClient、ClaudeClient）。
- complete(): 把消息序列与工具定义转成厂商请求，返回归一化的 Completion。
- complete_for_validation(): 发送一条不带工具的纠正请求，返回 assistant 消息。

重试/退避属于具体实现，Agent 核心不做重试。
"""

from typing import Mapping, Protocol, Sequence

from llm_agent.domain.models import Completion, Message
from llm_agent.tools.definitions import ToolDefinition


class Integration(Protocol):
    """LLM Provider 客户端协议。"""

    name: str

    def complete(self, messages: Sequence[Message], tools: Mapping[str, ToolDefinition]) -> Completion:
        ...

    def complete_for_validation(self, message: Message) -> Message:
        ...
