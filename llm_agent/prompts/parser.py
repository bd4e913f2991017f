"""Prompt 分块解析。

渲染后的模板可以包含若干围栏块::

    ```<prompt:system>
    You are a helpful assistant.
    ```
    ```<prompt:user>
    {{ input }}
    ```

每个块解析为一条 Message；块内需要写字面量 ``` 时用反斜杠转义（\\```）。
没有任何围栏块时，整段文本作为一条 user 消息。
"""

import re
from typing import List

from llm_agent.domain.exceptions import PromptParseError
from llm_agent.domain.models import Message, Role

PROMPT_BLOCK_RE = re.compile(
    r"```[^\S\n]*<prompt(?P<role>:[\w \[\]|]+)?>\n(?P<body>.*?)\n```[ |\t\n]*",
    re.S,
)
ESCAPED_FENCE_RE = re.compile(r"((?<=\s)\\(?=```))|^\\(?=```)", re.M)
ROLE_WORD_RE = re.compile(r"\s*(\w+)")
LINE_START_FENCE_RE = re.compile(r"^```", re.M)

AMBIGUOUS_MESSAGE = (
    "Ambiguous prompt: multiple unroled blocks require explicit roles. "
    "Only one prompt can be defined without a role; to define several messages, "
    "tag each block with its role.\nExample:\n```<prompt:user>\nFoo {bar}\n```"
)


def parse_prompt(rendered: str) -> List[Message]:
    """把渲染后的 prompt 文本解析为有序的 Message 列表（按出现顺序）。"""

    messages: List[Message] = []
    unroled = 0
    for match in PROMPT_BLOCK_RE.finditer(rendered):
        body = ESCAPED_FENCE_RE.sub("", match.group("body")).strip()
        role_token = match.group("role")
        if not role_token:
            unroled += 1
            if unroled > 1:
                raise PromptParseError(code="PROMPT_AMBIGUOUS", message=AMBIGUOUS_MESSAGE)
            messages.append(Message(role=Role.USER, content=body))
            continue
        messages.append(Message(role=_resolve_role(role_token), content=body))

    if not messages:
        messages.append(Message(role=Role.USER, content=rendered.strip()))
    return messages


def _resolve_role(token: str) -> Role:
    # ":assistant [draft]" 之类的变体标签只取第一个单词作为角色
    word = ROLE_WORD_RE.match(token.lstrip(":"))
    name = word.group(1).lower() if word else ""
    try:
        return Role(name)
    except ValueError:
        raise PromptParseError(
            code="PROMPT_UNKNOWN_ROLE",
            message=f"Unknown role {token.lstrip(':').strip()!r} in prompt block",
        ) from None


def escape_fences(text: str) -> str:
    """给行首的 ``` 加反斜杠，使其嵌入 prompt 块时不会提前结束该块。"""

    return LINE_START_FENCE_RE.sub(r"\\```", text)
