import json
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from llm_agent.config.settings import settings
from llm_agent.domain.exceptions import BusinessError
from llm_agent.domain.memory import format_transcript
from llm_agent.domain.models import Message


class JsonFileMemory:
    """基于 JSON Lines 文件的会话记忆。

    每个会话对应 <root>/conversations/<conversation_id>/messages.jsonl，
    只追加写入，读取顺序即写入顺序。
    """

    def __init__(self, conversation_id: Optional[str] = None, root: str | Path | None = None):
        self.conversation_id = conversation_id or f"c-{uuid4().hex}"
        self._root = Path(root or settings.storage_root).resolve()
        self._conv_dir = self._root / "conversations" / self.conversation_id
        self._conv_dir.mkdir(parents=True, exist_ok=True)
        self._path = self._conv_dir / "messages.jsonl"

    def load(self) -> List[Message]:
        items: List[Message] = []
        if not self._path.exists():
            return items
        try:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise BusinessError(code="STORE_READ_ERROR", message=str(e))
        for lineno, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                items.append(Message.from_dict(json.loads(line)))
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                raise BusinessError(
                    code="STORE_READ_ERROR",
                    message=f"{self._path}:{lineno}: {e}",
                )
        return items

    def append(self, message: Message) -> None:
        try:
            line = json.dumps(message.to_dict(), ensure_ascii=False)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except (OSError, TypeError) as e:
            raise BusinessError(code="STORE_WRITE_ERROR", message=str(e))

    def serialize_for_prompt(self) -> str:
        return format_transcript(self.load())

    def clear(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            raise BusinessError(code="STORE_DELETE_ERROR", message=str(e))
