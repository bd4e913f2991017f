"""工具数据结构定义。

这些类型描述了“工具调用”的 schema，既用于：
- 将可用工具列表暴露给 LLM（ToolDefinition）。
- 在 ToolRegistry 中保存参数元信息并分发调用（ParameterSpec / ToolSpec）。

工具作者通过两种元数据描述工具：

    @description("Search Google and return the top results.")
    class SerperTool(BaseTool):
        def handle(self, query: Annotated[str, Description("the search query")]) -> str:
            ...
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Tuple, Type, TypeVar, runtime_checkable

from llm_agent.domain.models import ToolValue

T = TypeVar("T")

DESCRIPTIONS_ATTR = "__tool_descriptions__"


@dataclass(frozen=True)
class Description:
    """参数级描述元数据，配合 typing.Annotated 使用。"""

    value: str


def description(text: str) -> Callable[[T], T]:
    """为工具类或工具函数追加一段描述，可叠加多次（按书写顺序拼接）。"""

    def decorator(target: T) -> T:
        existing: Tuple[str, ...] = vars(target).get(DESCRIPTIONS_ATTR, ())
        # 装饰器自下而上执行，新描述放在前面以保持书写顺序
        setattr(target, DESCRIPTIONS_ATTR, (text,) + tuple(existing))
        return target

    return decorator


@dataclass(frozen=True)
class ToolDefinition:
    """一个可供 LLM 调用的工具定义（与厂商无关）。

    parameters 为 JSON-schema 风格对象：
    {"type": "object", "properties": {...}, "required": [...]}；
    无参工具不携带 parameters。
    """

    name: str
    description: str = ""
    parameters: Optional[Dict[str, Any]] = None

    def to_function_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"name": self.name, "description": self.description}
        if self.parameters is not None:
            schema["parameters"] = self.parameters
        return schema


@dataclass(frozen=True)
class ParameterSpec:
    """单个工具参数的元信息，在注册时一次性推导。"""

    name: str
    schema_type: str
    description: Optional[str] = None
    optional: bool = False
    has_default: bool = False
    default: Any = None
    enum_type: Optional[Type[Enum]] = None
    positional_only: bool = False

    @property
    def required(self) -> bool:
        return not self.optional and not self.has_default

    @property
    def display_description(self) -> str:
        """用于提示信息的描述，缺省时回退为推断出的类型名。"""
        return self.description or self.schema_type

    def to_property(self) -> Dict[str, Any]:
        prop: Dict[str, Any] = {"type": self.schema_type}
        if self.description:
            prop["description"] = self.description
        if self.enum_type is not None:
            prop["enum"] = [member.value for member in self.enum_type]
        return prop


@runtime_checkable
class ToolSpec(Protocol):
    """已注册工具的统一能力接口：名称、定义与调用。"""

    name: str

    def describe(self) -> ToolDefinition:
        ...

    def invoke(self, arguments: Mapping[str, Any]) -> ToolValue:
        ...


class BaseTool:
    """基于 handle 方法的工具基类。

    子类实现 handle(...)，ToolRegistry 会根据其签名推导参数 schema。
    description 类属性与 @description 装饰器都会进入工具描述。
    """

    description: str = ""

    def handle(self, *args: Any, **kwargs: Any) -> ToolValue:
        raise NotImplementedError(f"{type(self).__name__} must implement handle()")
