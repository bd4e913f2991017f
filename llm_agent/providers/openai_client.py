"""OpenAI Provider 适配器（chat/completions 形态）。

本模块负责：

1. 接收统一的 Message 序列与 ToolDefinition。
2. 将其转换为 OpenAI chat/completions 的 HTTP 请求格式。
3. 调用 HTTP 接口并处理网络/API 异常。
4. 将响应 JSON 解析为统一的 Completion（含工具调用与结束原因）。

任何兼容 chat/completions 的服务都可以通过 openai_base_url 接入。
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
from llm_agent.providers.registry import OPENAI_CONFIG, ModelConfig
from llm_agent.tools.definitions import ToolDefinition

FINISH_REASONS = {
    "tool_calls": FinishReason.TOOL_CALL,
    "function_call": FinishReason.TOOL_CALL,
    "stop": FinishReason.STOP,
}


class OpenAIClient:
    """OpenAI 提供方客户端实现。"""

    name = "openai"

    def __init__(
        self,
        settings,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        # Settings 里包含 base_url、api_key、超时等配置
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
        """执行一次非流式对话调用。

        步骤：
        1. 读取模型配置（logical model -> provider model）。
        2. 构造 HTTP 请求 payload。
        3. 发送请求并捕获网络错误/限流/服务端错误。
        4. 使用统一的解析函数构造 Completion。
        """

        if not getattr(self._settings, "openai_api_key", None):
            # 配置缺失走 ConfigurationError，方便上层统一处理
            raise ConfigurationError(code="MISSING_API_KEY", message="OPENAI_API_KEY not set")
        model_cfg = OPENAI_CONFIG.resolve_model(req.model)
        payload = self._build_payload(req, model_cfg)
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                base = getattr(self._settings, "openai_base_url", None) or OPENAI_CONFIG.base_url
                resp = client.post(
                    f"{base}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self._settings.openai_api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        if resp.status_code == 429:
            # 限流错误交给上层做重试/退避
            raise RateLimitError(code="RATE_LIMIT", message="OpenAI rate limit")
        if resp.status_code >= 400:
            raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
        return self._parse_response(resp.json())

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> dict:
        """将 ChatRequest 转成 chat/completions 所需的请求 JSON。"""

        payload: Dict[str, Any] = {
            "model": model_cfg.provider_model,
            "messages": [self._message_to_payload(m) for m in req.messages],
            "temperature": req.temperature if req.temperature is not None else model_cfg.default_temperature,
        }
        if req.max_tokens:
            payload["max_tokens"] = req.max_tokens
        if req.tools:
            payload["tools"] = [self._serialize_tool(tool) for tool in req.tools.values()]
        return payload

    @staticmethod
    def _serialize_tool(tool: ToolDefinition) -> Dict[str, Any]:
        return {"type": "function", "function": tool.to_function_schema()}

    @staticmethod
    def _message_to_payload(message: Message) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"role": message.role.value}
        if message.tool_calls:
            payload["content"] = message.text or None
            payload["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.function_name,
                        "arguments": call.raw_arguments or "{}",
                    },
                }
                for call in message.tool_calls
            ]
            return payload
        payload["content"] = message.text
        if message.role is Role.TOOL:
            payload["tool_call_id"] = message.tool_call_id
        return payload

    def _parse_response(self, data: dict) -> Completion:
        """将原始响应 JSON 解析为统一的 Completion。"""

        choices = data.get("choices") or []
        if not choices:
            raise ApiError(code="EMPTY_RESPONSE", message="OpenAI returned no choices", http_status=502)
        choice = choices[0]
        message = self._build_message(choice.get("message") or {})
        usage_raw = data.get("usage") or {}
        usage = None
        if usage_raw:
            usage = ChatUsage(
                prompt_tokens=usage_raw.get("prompt_tokens", 0),
                completion_tokens=usage_raw.get("completion_tokens", 0),
                total_tokens=usage_raw.get("total_tokens", 0),
            )
        finish_reason = FINISH_REASONS.get(choice.get("finish_reason") or "", FinishReason.OTHER)
        return Completion(message=message, finish_reason=finish_reason, usage=usage, raw=data)

    def _build_message(self, payload: Dict[str, Any]) -> Message:
        """将单条厂商 message 转换为 Message，同时解析 tool_calls。"""

        tool_calls: List[ToolCall] = []
        for idx, call in enumerate(payload.get("tool_calls") or []):
            func = call.get("function") or {}
            tool_calls.append(
                ToolCall(
                    id=call.get("id") or f"tool_call_{idx}",
                    function_name=func.get("name") or "",
                    raw_arguments=self._raw_arguments(func.get("arguments")),
                )
            )
        # 旧版 function_call 字段
        function_call = payload.get("function_call")
        if function_call:
            tool_calls.append(
                ToolCall(
                    id=function_call.get("id") or "function_call",
                    function_name=function_call.get("name") or "",
                    raw_arguments=self._raw_arguments(function_call.get("arguments")),
                )
            )
        return Message(
            role=Role.ASSISTANT,
            content=payload.get("content"),
            tool_calls=tuple(tool_calls),
        )

    @staticmethod
    def _raw_arguments(raw: Any) -> str:
        if raw is None:
            return ""
        if isinstance(raw, str):
            return raw
        return json.dumps(raw, ensure_ascii=False)
