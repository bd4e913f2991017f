from typing import List, Protocol

from .models import Message, Role


class Memory(Protocol):
    """会话记忆协议。

    Agent 循环只通过这四个操作读写对话历史；
    同一次运行内要求 append 之后立即 load 可以读回。
    """

    def load(self) -> List[Message]:
        ...

    def append(self, message: Message) -> None:
        ...

    def serialize_for_prompt(self) -> str:
        ...

    def clear(self) -> None:
        ...


def format_transcript(messages: List[Message]) -> str:
    """把消息列表格式化为注入 prompt 的纯文本记录。"""

    lines: List[str] = []
    for msg in messages:
        if msg.tool_calls:
            for call in msg.tool_calls:
                lines.append(f"assistant -> {call.function_name}({call.raw_arguments})")
            if msg.text:
                lines.append(f"assistant: {msg.text}")
        elif msg.role is Role.TOOL:
            lines.append(f"tool[{msg.tool_name or ''}]: {msg.text}")
        else:
            lines.append(f"{msg.role.value}: {msg.text}")
    return "\n".join(lines)
