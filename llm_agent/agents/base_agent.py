"""Agent 引擎核心模块。

实现一次 Agent 运行的完整循环：读取记忆、渲染 prompt、调用 Integration、
分发工具调用、校验最终回答。

状态流转::

    LOADING_MEMORY -> RENDERING_PROMPT -> AWAITING_MODEL
        -> DISPATCHING_TOOLS -> (回到 LOADING_MEMORY)
        -> VALIDATING_ANSWER -> DONE
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union
from uuid import uuid4
import logging
import threading
import time

from llm_agent.config.settings import settings
from llm_agent.domain.exceptions import (
    AgentCancelledError,
    ConfigurationError,
    MaxIterationsExceededError,
    OutputValidationError,
    UnknownFinishReasonError,
)
from llm_agent.domain.memory import Memory
from llm_agent.domain.models import Completion, FinishReason, Message, Role
from llm_agent.infrastructure.logging.logger import logger
from llm_agent.infrastructure.storage.collection_memory import CollectionMemory
from llm_agent.output.schema import OutputSchema, SchemaRule
from llm_agent.prompts.parser import escape_fences, parse_prompt
from llm_agent.prompts.renderer import JinjaRenderer, Renderer
from llm_agent.providers.base import Integration
from llm_agent.tools.executor import ToolExecutor
from llm_agent.tools.registry import ToolRegistry


class AgentState(str, Enum):
    LOADING_MEMORY = "loading_memory"
    RENDERING_PROMPT = "rendering_prompt"
    AWAITING_MODEL = "awaiting_model"
    DISPATCHING_TOOLS = "dispatching_tools"
    VALIDATING_ANSWER = "validating_answer"
    DONE = "done"


@dataclass
class AgentConfig:
    prompt_view: Optional[str] = None  # 为空时使用 Agent.prompt_view
    max_iterations: int = field(default_factory=lambda: settings.max_iterations)
    max_validation_attempts: int = field(default_factory=lambda: settings.max_validation_attempts)
    input_key: str = "input"


Answer = Union[str, Dict[str, Any]]


class Agent:
    """通用 Agent。

    子类可以覆盖 prompt_view、register_tools()、register_output_rules()
    提供默认的模板、工具和输出规则；构造参数显式传入时优先生效。
    """

    prompt_view = "simple_prompt"

    def __init__(
        self,
        integration: Integration,
        memory: Optional[Memory] = None,
        renderer: Optional[Renderer] = None,
        tools: Optional[Iterable[Any]] = None,
        output_rules: Optional[Sequence[SchemaRule]] = None,
        extra_inputs: Optional[Mapping[str, Any]] = None,
        config: Optional[AgentConfig] = None,
    ):
        if integration is None:
            raise ConfigurationError(code="MISSING_INTEGRATION", message="Agent requires an integration")
        self._integration = integration
        self._memory: Memory = memory if memory is not None else CollectionMemory()
        self._renderer: Renderer = renderer or JinjaRenderer()
        self._config = config or AgentConfig()
        self._registry = ToolRegistry(self.register_tools() if tools is None else tools)
        self._executor = ToolExecutor(self._registry)
        rules = self.register_output_rules() if output_rules is None else output_rules
        self._schema = OutputSchema(rules)
        self._extra_inputs: Dict[str, Any] = dict(extra_inputs or {})

    # ---- 子类扩展点 ----

    def register_tools(self) -> List[Any]:
        return []

    def register_output_rules(self) -> List[SchemaRule]:
        return []

    # ---- 只读属性 ----

    @property
    def memory(self) -> Memory:
        return self._memory

    @property
    def tools(self) -> ToolRegistry:
        return self._registry

    @property
    def output_schema(self) -> OutputSchema:
        return self._schema

    @property
    def config(self) -> AgentConfig:
        return self._config

    # ---- 对外入口 ----

    def handle(
        self,
        inputs: Optional[Mapping[str, Any]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Answer:
        """运行一次 Agent 并返回（校验后的）最终回答。

        Args:
            inputs: 模板变量，其中 config.input_key 对应的值作为用户输入写入记忆。
            cancel_event: 可选的取消信号，在每轮循环开始时检查。

        Returns:
            有输出规则时返回校验通过的 dict，否则返回回答原文。
        """

        start_time = time.time()
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "agent": type(self).__name__,
        }
        answer = self._run(dict(inputs or {}), cancel_event, log_ctx)
        self._transition(AgentState.VALIDATING_ANSWER, log_ctx)
        result = self.validate_output(answer, log_ctx)
        self._transition(AgentState.DONE, log_ctx, elapsed_seconds=round(time.time() - start_time, 2))
        return result

    def get_answer(
        self,
        inputs: Optional[Mapping[str, Any]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """运行循环直到模型给出 stop 回答，不做输出校验。"""

        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "agent": type(self).__name__,
        }
        return self._run(dict(inputs or {}), cancel_event, log_ctx)

    def render_prompt(self, inputs: Mapping[str, Any], transcript: str = "") -> List[Message]:
        """渲染 prompt 视图并解析为消息列表。"""

        inputs = dict(inputs)
        user_input = inputs.get(self._config.input_key)
        if isinstance(user_input, str):
            inputs[self._config.input_key] = escape_fences(user_input)
        variables: Dict[str, Any] = {
            **inputs,
            **self._extra_inputs,
            "tools": self._registry.names(),
            "memory": escape_fences(transcript),
            "output_rules": self._schema.describe(),
        }
        rendered = self._renderer.render(self._config.prompt_view or self.prompt_view, variables)
        return parse_prompt(rendered)

    def validate_output(self, answer: str, log_ctx: Optional[Dict[str, Any]] = None) -> Answer:
        """按输出规则校验回答；失败时发起纠正请求，重试次数用尽后抛出 OutputValidationError。"""

        if not self._schema:
            return answer
        log_ctx = log_ctx if log_ctx is not None else {}
        candidate = answer
        result = self._schema.validate(candidate)
        attempt = 0
        while not result.valid and attempt < self._config.max_validation_attempts:
            attempt += 1
            self._log(
                logging.WARNING,
                "Answer failed validation, requesting correction",
                log_ctx,
                attempt=attempt,
                errors=result.errors,
            )
            corrected = self._integration.complete_for_validation(
                self._schema.corrective_message(candidate, result.errors)
            )
            candidate = corrected.text
            result = self._schema.validate(candidate)
        if not result.valid:
            self._log(logging.WARNING, "Answer validation failed", log_ctx, errors=result.errors)
            raise OutputValidationError(errors=result.errors, candidate=candidate)
        return result.data

    # ---- 循环实现 ----

    def _run(
        self,
        inputs: Dict[str, Any],
        cancel_event: Optional[threading.Event],
        log_ctx: Dict[str, Any],
    ) -> str:
        if self._config.input_key not in inputs:
            raise ConfigurationError(
                code="MISSING_INPUT",
                message=f"Agent input {self._config.input_key!r} is required",
            )
        transcript = self._memory.serialize_for_prompt()
        run_start = len(self._memory.load())
        self._memory.append(Message(role=Role.USER, content=inputs[self._config.input_key]))
        tool_defs = self._registry.definitions()
        max_iterations = self._config.max_iterations

        for iteration in range(1, max_iterations + 1):
            if cancel_event is not None and cancel_event.is_set():
                self._log(logging.INFO, "Agent run cancelled", log_ctx, iteration=iteration)
                raise AgentCancelledError(code="AGENT_CANCELLED", message="Agent run was cancelled")

            self._transition(AgentState.LOADING_MEMORY, log_ctx, iteration=iteration)
            # 跳过本次运行的用户输入，prompt 视图里已经包含它
            recorded = self._memory.load()[run_start + 1:]

            self._transition(AgentState.RENDERING_PROMPT, log_ctx, iteration=iteration)
            messages = self.render_prompt(inputs, transcript) + recorded

            self._transition(AgentState.AWAITING_MODEL, log_ctx, iteration=iteration)
            self._log(
                logging.INFO,
                "Calling provider",
                log_ctx,
                provider=getattr(self._integration, "name", type(self._integration).__name__),
                model=getattr(self._integration, "model", None),
                message_count=len(messages),
                tool_count=len(tool_defs),
            )
            completion = self._integration.complete(messages, tool_defs)
            self._log_usage(completion, log_ctx)

            if completion.finish_reason is FinishReason.TOOL_CALL:
                self._transition(AgentState.DISPATCHING_TOOLS, log_ctx, iteration=iteration)
                self._dispatch_tools(completion.message, log_ctx)
                continue
            if completion.finish_reason is FinishReason.STOP:
                self._memory.append(completion.message)
                return completion.message.text

            self._log(
                logging.ERROR,
                "Unknown finish reason",
                log_ctx,
                finish_reason=getattr(completion.finish_reason, "value", completion.finish_reason),
            )
            raise UnknownFinishReasonError(completion.finish_reason, completion)

        self._log(logging.WARNING, "Max iterations exceeded", log_ctx, max_iterations=max_iterations)
        raise MaxIterationsExceededError(
            code="MAX_ITERATIONS_EXCEEDED",
            message=f"Agent did not finish within {max_iterations} iterations",
            max_iterations=max_iterations,
        )

    def _dispatch_tools(self, message: Message, log_ctx: Dict[str, Any]) -> None:
        # 先写入发起调用的 assistant 消息，再按顺序写入每个工具结果
        self._memory.append(message)
        if not message.tool_calls:
            self._log(logging.INFO, "Tool-call finish without tool calls, continuing", log_ctx)
            return
        for call in message.tool_calls:
            self._log(
                logging.INFO,
                "Executing tool call",
                log_ctx,
                tool=call.function_name,
                tool_call_id=call.id,
            )
            self._memory.append(self._executor.execute(call))

    def _transition(self, state: AgentState, log_ctx: Dict[str, Any], **fields: Any) -> None:
        self._log(logging.INFO, "Agent state", log_ctx, state=state.value, **fields)

    def _log_usage(self, completion: Completion, log_ctx: Dict[str, Any]) -> None:
        usage = completion.usage
        if usage is None:
            return
        self._log(
            logging.INFO,
            "Token usage",
            log_ctx,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens,
        )

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})


class AgentBuilder:
    """以链式调用组装 Agent。

    例::

        agent = (
            AgentBuilder()
            .with_integration(create_provider("openai"))
            .with_tools([SerperTool])
            .with_output_rules([SchemaRule("answer", "required|string")])
            .build()
        )
    """

    def __init__(self, agent_cls: type = Agent):
        self._agent_cls = agent_cls
        self._kwargs: Dict[str, Any] = {}

    def with_integration(self, integration: Integration) -> "AgentBuilder":
        self._kwargs["integration"] = integration
        return self

    def with_memory(self, memory: Memory) -> "AgentBuilder":
        self._kwargs["memory"] = memory
        return self

    def with_renderer(self, renderer: Renderer) -> "AgentBuilder":
        self._kwargs["renderer"] = renderer
        return self

    def with_tools(self, tools: Iterable[Any]) -> "AgentBuilder":
        self._kwargs["tools"] = list(tools)
        return self

    def with_output_rules(self, rules: Sequence[SchemaRule]) -> "AgentBuilder":
        self._kwargs["output_rules"] = list(rules)
        return self

    def with_extra_inputs(self, extra_inputs: Mapping[str, Any]) -> "AgentBuilder":
        self._kwargs["extra_inputs"] = dict(extra_inputs)
        return self

    def with_config(self, config: AgentConfig) -> "AgentBuilder":
        self._kwargs["config"] = config
        return self

    def build(self) -> Agent:
        if self._kwargs.get("integration") is None:
            raise ConfigurationError(code="MISSING_INTEGRATION", message="AgentBuilder requires an integration")
        return self._agent_cls(**self._kwargs)
