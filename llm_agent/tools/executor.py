import json
from typing import Any

from pydantic import BaseModel

from llm_agent.domain.exceptions import ToolExecutionError
from llm_agent.domain.models import Message, Role, ToolCall
from llm_agent.infrastructure.logging.logger import logger
from .registry import ToolRegistry

UNKNOWN_TOOL_MESSAGE = "Tool {name} is not registered"


class ToolExecutor:
    """把模型发起的 ToolCall 执行为一条工具结果消息。"""

    def __init__(self, registry: ToolRegistry):
        self._registry = registry

    def execute(self, call: ToolCall) -> Message:
        if not self._registry.has(call.function_name):
            logger.warning(
                "Model requested an unregistered tool",
                extra={"extra": {"tool": call.function_name, "tool_call_id": call.id}},
            )
            content = UNKNOWN_TOOL_MESSAGE.format(name=call.function_name)
        else:
            arguments = call.arguments()
            try:
                result = self._registry.call(call.function_name, arguments)
            except Exception as e:
                raise ToolExecutionError(
                    code="TOOL_ERROR",
                    message=f"Error calling tool: {e}",
                    tool=call.function_name,
                ) from e
            content = stringify(result)
        return Message(
            role=Role.TOOL,
            content=content,
            tool_name=call.function_name,
            tool_arguments=call.raw_arguments,
            tool_call_id=call.id,
        )


def stringify(value: Any) -> str:
    """把工具返回值转成可写入对话的文本。"""

    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    if isinstance(value, (dict, list, tuple, bool, int, float)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)
