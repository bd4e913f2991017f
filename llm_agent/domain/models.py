"""统一的对话与结果数据模型。

本模块定义了 Agent 内部在不同 Provider 之间共享的标准数据结构：

- Message: 一条对话消息（system/user/assistant/tool）。
- ToolCall: 模型发起的一次工具调用请求。
- ChatRequest: 发给底层 LLM Provider 的完整请求。
- Completion: Provider 解析后的统一响应（消息 + 结束原因）。

所有 Provider 适配器（如 OpenAIClient）都只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union, TYPE_CHECKING

from llm_agent.domain.exceptions import ToolExecutionError

if TYPE_CHECKING:
    # 仅在类型检查时导入，避免运行时循环依赖
    from llm_agent.tools.definitions import ToolDefinition


class Role(str, Enum):
    """LLM 消息角色（与 OpenAI / Anthropic 等厂商的 role 字段对应）。"""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class FinishReason(str, Enum):
    """Provider 的结束信号：继续调用工具、给出最终回答或其他未处理状态。"""

    TOOL_CALL = "tool_call"
    STOP = "stop"
    OTHER = "other"


# 工具返回值的取值范围，由 ToolExecutor 统一转成文本
ToolValue = Union[str, int, float, bool, Dict[str, Any], List[Any], None]


@dataclass(frozen=True)
class ToolCall:
    """模型发起的一次工具调用请求。

    raw_arguments 保留 Provider 给出的原始参数文本（通常是 JSON），
    以便原样记录到工具结果消息里。
    """

    id: str
    function_name: str
    raw_arguments: str = ""

    def arguments(self) -> Dict[str, Any]:
        """把 raw_arguments 解码为参数字典。"""

        text = (self.raw_arguments or "").strip()
        if not text:
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ToolExecutionError(
                code="TOOL_ARGUMENTS_INVALID",
                message=f"Error calling tool: invalid arguments for {self.function_name}: {e}",
            ) from e
        if not isinstance(data, dict):
            raise ToolExecutionError(
                code="TOOL_ARGUMENTS_INVALID",
                message=f"Error calling tool: arguments for {self.function_name} must be a JSON object",
            )
        return data


@dataclass(frozen=True)
class Message:
    """一条对话消息，构造后不可变。

    - role: 消息角色。
    - content: 文本或结构化内容，可为空（纯工具调用的 assistant 消息）。
    - tool_name / tool_arguments / tool_call_id: 仅工具结果消息使用，
      用于关联产生它的那次工具调用。
    - tool_calls: 当 role 为 assistant 且模型请求调用工具时填写。
    """

    role: Role
    content: Any = None
    tool_name: Optional[str] = None
    tool_arguments: Optional[str] = None
    tool_call_id: Optional[str] = None
    tool_calls: Tuple[ToolCall, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", Role(self.role))
        object.__setattr__(self, "tool_calls", tuple(self.tool_calls or ()))
        if self.tool_calls and self.role is not Role.ASSISTANT:
            raise ValueError("Only assistant messages may carry tool calls")

    @property
    def text(self) -> str:
        """content 的文本形式，结构化内容序列化为 JSON。"""

        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        return json.dumps(self.content, ensure_ascii=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "tool_name": self.tool_name,
            "tool_arguments": self.tool_arguments,
            "tool_call_id": self.tool_call_id,
            "tool_calls": [
                {"id": c.id, "function_name": c.function_name, "raw_arguments": c.raw_arguments}
                for c in self.tool_calls
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(
            role=data["role"],
            content=data.get("content"),
            tool_name=data.get("tool_name"),
            tool_arguments=data.get("tool_arguments"),
            tool_call_id=data.get("tool_call_id"),
            tool_calls=tuple(
                ToolCall(
                    id=c["id"],
                    function_name=c["function_name"],
                    raw_arguments=c.get("raw_arguments") or "",
                )
                for c in data.get("tool_calls") or []
            ),
        )


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatRequest:
    """一次完整的聊天请求。

    Provider 适配层负责把本结构转换成各家 API 的 JSON 请求体。
    """

    model: str  # 逻辑模型名，如 "agent-chat"（再由 registry 映射为真实模型名）
    messages: List[Message]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    tools: Dict[str, "ToolDefinition"] = field(default_factory=dict)


@dataclass
class Completion:
    """一次模型调用的最终结果。

    - message: 模型返回的 assistant 消息（可能携带 tool_calls）。
    - finish_reason: 归一化后的结束原因。
    - usage: 可选的 token 使用统计。
    - raw: 原始响应 JSON，用于调试或日志记录。
    """

    message: Message
    finish_reason: FinishReason
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None
