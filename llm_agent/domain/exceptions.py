"""统一业务异常模型。

库内所有对外抛出的错误都继承自 BusinessError，
调用方可以按 code 做统一捕获与提示。错误分为几类：

- 配置错误（ConfigurationError 及其子类）：编程/装配缺陷，立即失败。
- Prompt 解析错误（PromptParseError）：模板写法有歧义。
- 工具执行错误（ToolExecutionError）：工具本身抛异常，向上传播。
- 输出校验错误（OutputValidationError）：多次纠正后仍不符合输出规则。
- 运行控制（MaxIterationsExceededError / AgentCancelledError）。
- 传输层错误（NetworkError / ApiError / RateLimitError）。
"""

from typing import Any, List, Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 trace_id、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ConfigurationError(BusinessError):
    """配置或装配错误，例如缺少协作者、模板不存在、工具重名（严格模式）。"""


class UnknownFinishReasonError(ConfigurationError):
    """Provider 返回了既不是 tool_call 也不是 stop 的结束原因。"""

    def __init__(self, finish_reason: Any, completion: Any = None):
        super().__init__(
            code="UNKNOWN_FINISH_REASON",
            message=f"Unhandled finish reason from provider: {finish_reason!r}",
            http_status=500,
        )
        self.finish_reason = finish_reason
        self.completion = completion


class PromptParseError(BusinessError):
    """渲染后的 prompt 无法被解析为消息序列。"""


class ToolExecutionError(BusinessError):
    """工具执行失败，异常链保留原始错误。"""


class OutputValidationError(BusinessError):
    """最终回答在允许的纠正次数内仍未通过输出校验。"""

    def __init__(self, errors: List[str], candidate: Optional[str] = None):
        super().__init__(
            code="OUTPUT_VALIDATION_FAILED",
            message="Final answer failed output validation: " + "; ".join(errors),
            http_status=422,
        )
        self.errors = errors
        self.candidate = candidate


class MaxIterationsExceededError(BusinessError):
    """Agent 循环达到最大轮数仍未得到最终回答。"""


class AgentCancelledError(BusinessError):
    """调用方在两轮之间取消了本次运行。"""


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(BusinessError):
    """Provider 限流错误，由上层负责重试/退避策略。"""
