"""Claude Provider 适配器（Anthropic messages 形态）。

与 chat/completions 的主要差异：

- system 消息不进入 messages，而是合并到顶层 system 字段。
- assistant 的工具调用以 tool_use 内容块表示，工具结果以 user 角色的
  tool_result 内容块回传。
- 相邻同角色消息必须合并为一条（接口要求 user/assistant 交替）。
"""

import json
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from llm_agent.domain.exceptions import ApiError, ConfigurationError, NetworkError, RateLimitError
from llm_agent.domain.models import (
    ChatRequest,
    ChatUsage,
    Completion,
    FinishReason,
    Message,
    Role,
    ToolCall,
)
from llm_agent.providers.registry import CLAUDE_CONFIG, ModelConfig
from llm_agent.tools.definitions import ToolDefinition

FINISH_REASONS = {
    "tool_use": FinishReason.TOOL_CALL,
    "end_turn": FinishReason.STOP,
    "stop_sequence": FinishReason.STOP,
}
EMPTY_INPUT_SCHEMA = {"type": "object", "properties": {}}


class ClaudeClient:
    """Claude 提供方客户端实现。"""

    name = "claude"

    def __init__(
        self,
        settings,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        self._settings = settings
        self._model = model or getattr(settings, "default_model", "agent-chat")
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def model(self) -> str:
        return self._model

    def complete(self, messages: Sequence[Message], tools: Mapping[str, ToolDefinition]) -> Completion:
        req = ChatRequest(
            model=self._model,
            messages=list(messages),
            temperature=self._temperature,
            max_tokens=self._max_tokens,
            tools=dict(tools or {}),
        )
        return self.chat(req)

    def complete_for_validation(self, message: Message) -> Message:
        req = ChatRequest(
            model=self._model,
            messages=[message],
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        return self.chat(req).message

    def chat(self, req: ChatRequest) -> Completion:
        if not getattr(self._settings, "claude_api_key", None):
            raise ConfigurationError(code="MISSING_API_KEY", message="CLAUDE_API_KEY not set")
        model_cfg = CLAUDE_CONFIG.resolve_model(req.model)
        payload = self._build_payload(req, model_cfg)
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                base = getattr(self._settings, "claude_base_url", None) or CLAUDE_CONFIG.base_url
                resp = client.post(
                    f"{base}/messages",
                    json=payload,
                    headers={
                        "x-api-key": self._settings.claude_api_key,
                        "anthropic-version": getattr(self._settings, "claude_api_version", "2023-06-01"),
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="Claude rate limit")
        if resp.status_code >= 400:
            raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
        return self._parse_response(resp.json())

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> dict:
        system_parts: List[str] = []
        turns: List[Dict[str, Any]] = []
        for message in req.messages:
            if message.role is Role.SYSTEM:
                if message.text:
                    system_parts.append(message.text)
                continue
            self._append_turn(turns, *self._message_to_turn(message))

        payload: Dict[str, Any] = {
            "model": model_cfg.provider_model,
            "max_tokens": req.max_tokens or model_cfg.max_tokens,
            "messages": turns,
            "temperature": req.temperature if req.temperature is not None else model_cfg.default_temperature,
        }
        if system_parts:
            payload["system"] = "\n\n".join(system_parts)
        if req.tools:
            payload["tools"] = [self._serialize_tool(tool) for tool in req.tools.values()]
        return payload

    @staticmethod
    def _serialize_tool(tool: ToolDefinition) -> Dict[str, Any]:
        return {
            "name": tool.name,
            "description": tool.description,
            "input_schema": tool.parameters or EMPTY_INPUT_SCHEMA,
        }

    @staticmethod
    def _message_to_turn(message: Message) -> tuple:
        """返回 (role, content blocks)。"""

        if message.role is Role.TOOL:
            return "user", [
                {
                    "type": "tool_result",
                    "tool_use_id": message.tool_call_id,
                    "content": message.text,
                }
            ]
        blocks: List[Dict[str, Any]] = []
        if message.text:
            blocks.append({"type": "text", "text": message.text})
        for call in message.tool_calls:
            blocks.append(
                {
                    "type": "tool_use",
                    "id": call.id,
                    "name": call.function_name,
                    "input": call.arguments(),
                }
            )
        return message.role.value, blocks

    @staticmethod
    def _append_turn(turns: List[Dict[str, Any]], role: str, blocks: List[Dict[str, Any]]) -> None:
        if not blocks:
            return
        if turns and turns[-1]["role"] == role:
            turns[-1]["content"].extend(blocks)
        else:
            turns.append({"role": role, "content": list(blocks)})

    def _parse_response(self, data: dict) -> Completion:
        texts: List[str] = []
        tool_calls: List[ToolCall] = []
        for block in data.get("content") or []:
            kind = block.get("type")
            if kind == "text":
                texts.append(block.get("text") or "")
            elif kind == "tool_use":
                tool_calls.append(
                    ToolCall(
                        id=block.get("id") or f"tool_call_{len(tool_calls)}",
                        function_name=block.get("name") or "",
                        raw_arguments=json.dumps(block.get("input") or {}, ensure_ascii=False),
                    )
                )
        usage_raw = data.get("usage") or {}
        usage = None
        if usage_raw:
            prompt_tokens = usage_raw.get("input_tokens", 0)
            completion_tokens = usage_raw.get("output_tokens", 0)
            usage = ChatUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            )
        message = Message(
            role=Role.ASSISTANT,
            content="".join(texts) if texts else None,
            tool_calls=tuple(tool_calls),
        )
        finish_reason = FINISH_REASONS.get(data.get("stop_reason") or "", FinishReason.OTHER)
        return Completion(message=message, finish_reason=finish_reason, usage=usage, raw=data)
