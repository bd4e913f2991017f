"""工具注册表。

注册阶段：内省每个工具的调用方法（handle 方法或函数本身），
一次性推导出与厂商无关的 ToolDefinition，并生成 RegisteredTool 描述符。

调用阶段：按声明顺序校验/补全/转换参数后调用工具，原样返回结果。
缺少必填参数时返回一段提示文本而不是抛异常，便于把它作为工具结果
回写到对话中，让模型修正参数后重试。
"""

import inspect
import re
import types
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union, get_args, get_origin, get_type_hints

from llm_agent.config.settings import settings
from llm_agent.domain.exceptions import ConfigurationError
from llm_agent.domain.models import ToolValue
from llm_agent.infrastructure.logging.logger import logger
from llm_agent.tools.definitions import DESCRIPTIONS_ATTR, Description, ParameterSpec, ToolDefinition, ToolSpec

INVOCATION_METHOD = "handle"
REQUIRED_PARAMETER_MESSAGE = "Parameter {name}({description}) is required for the tool {tool}"

_CAMEL_WORD_RE = re.compile(r"(.)([A-Z][a-z]+)")
_CAMEL_BOUNDARY_RE = re.compile(r"([a-z0-9])([A-Z])")
_NON_WORD_RE = re.compile(r"[^0-9a-zA-Z]+")

_PRIMITIVE_TYPES = {bool: "boolean", int: "integer", float: "number"}


def snake_case(identifier: str) -> str:
    """SerperTool -> serper_tool, HTTPSearch -> http_search。"""

    s = _CAMEL_WORD_RE.sub(r"\1_\2", identifier)
    s = _CAMEL_BOUNDARY_RE.sub(r"\1_\2", s)
    return _NON_WORD_RE.sub("_", s).strip("_").lower()


@dataclass(frozen=True)
class RegisteredTool:
    """由内省结果构造的静态工具描述符（实现 ToolSpec）。"""

    name: str
    definition: ToolDefinition
    handler: Callable[..., ToolValue]
    parameters: Tuple[ParameterSpec, ...]

    def describe(self) -> ToolDefinition:
        return self.definition

    def invoke(self, arguments: Mapping[str, Any]) -> ToolValue:
        positional: List[Any] = []
        keyword: Dict[str, Any] = {}
        for spec in self.parameters:
            if spec.name not in arguments and spec.required:
                return REQUIRED_PARAMETER_MESSAGE.format(
                    name=spec.name,
                    description=spec.display_description,
                    tool=self.name,
                )
            value = arguments.get(spec.name)
            if spec.enum_type is not None:
                value = _resolve_enum(spec, value)
            elif value is None:
                value = spec.default
            if spec.positional_only:
                positional.append(value)
            else:
                keyword[spec.name] = value
        return self.handler(*positional, **keyword)


class ToolRegistry:
    """按名称保存工具，供 Agent 暴露定义与分发调用。"""

    def __init__(self, tools: Optional[Iterable[Any]] = None, strict_names: Optional[bool] = None):
        self._tools: Dict[str, ToolSpec] = {}
        self._strict = settings.strict_tool_names if strict_names is None else strict_names
        if tools:
            self.register(tools)

    def register(self, tools: Iterable[Any]) -> None:
        for tool in tools:
            spec = self._build(tool)
            if spec is None:
                continue
            if spec.name in self._tools:
                if self._strict:
                    raise ConfigurationError(code="DUPLICATE_TOOL", message=f"Tool name {spec.name!r} is already registered")
                logger.warning(
                    "Duplicate tool name, last registration wins",
                    extra={"extra": {"tool": spec.name}},
                )
            self._tools[spec.name] = spec

    def call(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> Optional[ToolValue]:
        """调用已注册工具；名称未注册时返回 None。"""

        tool = self._tools.get(name)
        if tool is None:
            return None
        return tool.invoke(arguments or {})

    def has(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> Optional[ToolSpec]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def definitions(self) -> Dict[str, ToolDefinition]:
        return {name: tool.describe() for name, tool in self._tools.items()}

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def _build(self, tool: Any) -> Optional[ToolSpec]:
        if inspect.isclass(tool):
            try:
                tool = tool()
            except TypeError as e:
                raise ConfigurationError(
                    code="TOOL_INIT_ERROR",
                    message=f"Tool class {tool.__name__} cannot be instantiated without arguments: {e}",
                ) from e
        if isinstance(tool, ToolSpec) and not hasattr(tool, INVOCATION_METHOD):
            return tool
        if inspect.isfunction(tool):
            return _introspect(tool.__name__, tool, tool)
        handler = getattr(tool, INVOCATION_METHOD, None)
        if not callable(handler):
            logger.warning(
                'Tool %s has no "handle" method, skipped',
                type(tool).__name__,
                extra={"extra": {"tool": type(tool).__name__}},
            )
            return None
        return _introspect(type(tool).__name__, tool, handler)


def _introspect(identifier: str, owner: Any, handler: Callable[..., Any]) -> RegisteredTool:
    name = snake_case(identifier)
    params = _parameter_specs(handler)
    parameters: Optional[Dict[str, Any]] = None
    if params:
        parameters = {
            "type": "object",
            "properties": {p.name: p.to_property() for p in params},
            "required": [p.name for p in params if p.required],
        }
    definition = ToolDefinition(name=name, description=_tool_description(owner), parameters=parameters)
    return RegisteredTool(name=name, definition=definition, handler=handler, parameters=params)


def _tool_description(owner: Any) -> str:
    target = owner if inspect.isfunction(owner) or inspect.isclass(owner) else type(owner)
    descriptions = getattr(target, DESCRIPTIONS_ATTR, ())
    if descriptions:
        return "\n".join(descriptions)
    text = getattr(owner, "description", "")
    if isinstance(text, str) and text:
        return text
    # 仅普通函数回退到 docstring，类和实例会继承 BaseTool 的文档
    if inspect.isfunction(owner):
        return inspect.getdoc(owner) or ""
    return ""


def _parameter_specs(handler: Callable[..., Any]) -> Tuple[ParameterSpec, ...]:
    signature = inspect.signature(handler)
    try:
        hints = get_type_hints(handler, include_extras=True)
    except (NameError, TypeError) as e:
        name = getattr(handler, "__qualname__", repr(handler))
        logger.warning(
            "Cannot resolve type hints for tool handler %s, parameters default to string",
            name,
            extra={"extra": {"handler": name, "error": str(e)}},
        )
        hints = {}
    specs: List[ParameterSpec] = []
    for param in signature.parameters.values():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        annotation = hints.get(param.name, param.annotation)
        base, descriptions, optional = _unwrap(None if annotation is param.empty else annotation)
        enum_type = base if inspect.isclass(base) and issubclass(base, Enum) else None
        has_default = param.default is not param.empty
        specs.append(
            ParameterSpec(
                name=param.name,
                schema_type="string" if enum_type else _PRIMITIVE_TYPES.get(base, "string"),
                description="\n".join(descriptions) or None,
                optional=optional,
                has_default=has_default,
                default=param.default if has_default else None,
                enum_type=enum_type,
                positional_only=param.kind is param.POSITIONAL_ONLY,
            )
        )
    return tuple(specs)


def _unwrap(annotation: Any) -> Tuple[Any, List[str], bool]:
    """拆开 Annotated / Optional，返回 (基础类型, 描述列表, 是否可选)。"""

    descriptions: List[str] = []
    optional = False
    for _ in range(2):
        if get_origin(annotation) is Annotated:
            base, *metadata = get_args(annotation)
            descriptions.extend(m.value for m in metadata if isinstance(m, Description))
            annotation = base
        if get_origin(annotation) in (Union, types.UnionType):
            members = [a for a in get_args(annotation) if a is not type(None)]
            if len(members) < len(get_args(annotation)):
                optional = True
            annotation = members[0] if len(members) == 1 else None
    return annotation, descriptions, optional


def _resolve_enum(spec: ParameterSpec, value: Any) -> Any:
    if isinstance(value, spec.enum_type):
        return value
    try:
        return spec.enum_type(value)
    except ValueError:
        return spec.default
