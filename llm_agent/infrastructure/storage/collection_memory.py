from typing import Iterable, List, Optional

from llm_agent.domain.memory import format_transcript
from llm_agent.domain.models import Message


class CollectionMemory:
    """进程内的会话记忆，适合单次会话或测试。"""

    def __init__(self, messages: Optional[Iterable[Message]] = None):
        self._messages: List[Message] = list(messages or [])

    def load(self) -> List[Message]:
        return list(self._messages)

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def serialize_for_prompt(self) -> str:
        return format_transcript(self._messages)

    def clear(self) -> None:
        self._messages.clear()
