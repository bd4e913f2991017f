"""LLM Agent 顶层包。

该包提供基于大模型的 Agent 框架：Prompt 模板渲染与分块解析、
由函数签名推导 schema 的工具注册表、带工具调用的 Agent 执行循环、
最终回答的输出校验，以及 OpenAI / Claude 两种 Provider 适配。
"""

from llm_agent.agents.base_agent import Agent, AgentBuilder, AgentConfig, AgentState
from llm_agent.agents.chat_rephrase_agent import ChatRephraseAgent
from llm_agent.domain.models import FinishReason, Message, Role, ToolCall
from llm_agent.output.schema import OutputRule, SchemaRule
from llm_agent.providers import create_provider
from llm_agent.tools.definitions import BaseTool, Description, description
from llm_agent.tools.registry import ToolRegistry

__all__ = [
    "Agent",
    "AgentBuilder",
    "AgentConfig",
    "AgentState",
    "ChatRephraseAgent",
    "FinishReason",
    "Message",
    "Role",
    "ToolCall",
    "OutputRule",
    "SchemaRule",
    "create_provider",
    "BaseTool",
    "Description",
    "description",
    "ToolRegistry",
]
