"""最终回答的输出规则与校验。

SchemaRule 用类 Laravel 的规则串描述回答中的一个字段，例如::

    SchemaRule(name="answer", rules="required|string", description="your final answer")

支持的规则：required、nullable、string、integer、numeric/number、boolean、
array、object、in:a,b,c、min:n、max:n（字符串/数组为长度，数字为取值）。

OutputSchema 负责两件事：
1. describe(): 生成注入 prompt 的纯文本说明（不含代码围栏，避免打断 prompt 分块）。
2. validate(): 从模型回答中提取 JSON 对象，用动态构造的 pydantic 模型校验。
"""

import json
import re
from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, List, Literal, Optional, Sequence, Tuple

from pydantic import ConfigDict, Field, ValidationError, create_model

from llm_agent.domain.exceptions import ConfigurationError
from llm_agent.domain.models import Message, Role

TYPE_TOKENS: Dict[str, Any] = {
    "string": str,
    "integer": int,
    "numeric": float,
    "number": float,
    "boolean": bool,
    "array": list,
    "object": dict,
}
FLAG_TOKENS = {"required", "nullable"}
SIZED_TYPES = (str, list)

FENCED_JSON_RE = re.compile(r"```(?:json)?[^\S\n]*\n(.*?)\n?```", re.S)


@dataclass(frozen=True)
class RuleConstraints:
    required: bool = False
    nullable: bool = False
    value_type: Any = None
    choices: Tuple[str, ...] = ()
    minimum: Optional[float] = None
    maximum: Optional[float] = None


@dataclass(frozen=True)
class SchemaRule:
    """回答中一个字段的声明式约束。"""

    name: str
    rules: str = ""
    description: str = ""
    constraints: RuleConstraints = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "constraints", parse_rules(self.name, self.rules))


OutputRule = SchemaRule


@dataclass
class ValidationResult:
    valid: bool
    data: Optional[Dict[str, Any]] = None
    errors: List[str] = field(default_factory=list)


def parse_rules(name: str, rules: str) -> RuleConstraints:
    values: Dict[str, Any] = {}
    for token in filter(None, (t.strip() for t in rules.split("|"))):
        key, _, arg = token.partition(":")
        key = key.lower()
        if key in FLAG_TOKENS and not arg:
            values[key] = True
        elif key in TYPE_TOKENS and not arg:
            values["value_type"] = TYPE_TOKENS[key]
        elif key == "in" and arg:
            values["choices"] = tuple(c.strip() for c in arg.split(","))
        elif key in ("min", "max") and arg:
            try:
                values["minimum" if key == "min" else "maximum"] = float(arg)
            except ValueError:
                raise ConfigurationError(code="OUTPUT_RULE_INVALID", message=f"Rule {key} of {name!r} needs a number, got {arg!r}") from None
        else:
            raise ConfigurationError(code="OUTPUT_RULE_INVALID", message=f"Unknown output rule {token!r} for field {name!r}")
    return RuleConstraints(**values)


def describe(rules: Sequence[SchemaRule]) -> str:
    """生成告诉模型回答格式的说明文本；无规则时返回空串。"""

    if not rules:
        return ""
    lines = ["Your final answer must be a single JSON object with the following fields:"]
    for rule in rules:
        line = f'- "{rule.name}" ({rule.rules})'
        if rule.description:
            line += f": {rule.description}"
        lines.append(line)
    lines.append("Respond with the JSON object only, without any additional text.")
    return "\n".join(lines)


def extract_json(candidate: Any) -> Any:
    """从模型回答中取出 JSON：支持裸 JSON、```json 围栏块和夹杂说明文字的情况。"""

    if not isinstance(candidate, str):
        return candidate
    text = candidate.strip()
    fenced = FENCED_JSON_RE.search(text)
    if fenced:
        text = fenced.group(1).strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise
        return json.loads(text[start:end + 1])


class OutputSchema:
    def __init__(self, rules: Sequence[SchemaRule]):
        self.rules = list(rules)
        self._model = self._build_model() if self.rules else None

    def __bool__(self) -> bool:
        return bool(self.rules)

    def describe(self) -> str:
        return describe(self.rules)

    def validate(self, candidate: Any) -> ValidationResult:
        try:
            data = extract_json(candidate)
        except json.JSONDecodeError as e:
            return ValidationResult(valid=False, errors=[f"answer is not valid JSON: {e.msg}"])
        if not isinstance(data, dict):
            return ValidationResult(valid=False, errors=["answer must be a JSON object"])
        if self._model is None:
            return ValidationResult(valid=True, data=data)

        errors: List[str] = []
        try:
            self._model.model_validate(data)
        except ValidationError as e:
            for err in e.errors():
                loc = ".".join(str(part) for part in err["loc"])
                errors.append(f"{loc}: {err['msg']}")
        for rule in self.rules:
            # required 同时要求值非空（与 Laravel 的 required 语义一致）；带类型的字段由 pydantic 拒绝 null
            if rule.constraints.required and rule.name in data and _is_empty(data[rule.name], rule.constraints):
                errors.append(f"{rule.name}: field is required and must not be empty")
        if errors:
            return ValidationResult(valid=False, data=data, errors=errors)
        return ValidationResult(valid=True, data=data)

    def corrective_message(self, candidate: Any, errors: Sequence[str]) -> Message:
        previous = candidate if isinstance(candidate, str) else json.dumps(candidate, ensure_ascii=False)
        parts = [
            "The previous answer does not match the required output format.",
            "Errors:",
            *[f"- {e}" for e in errors],
            "",
            self.describe(),
            "",
            "Previous answer:",
            previous or "(empty)",
        ]
        return Message(role=Role.USER, content="\n".join(parts))

    def _build_model(self):
        fields: Dict[str, Any] = {}
        for rule in self.rules:
            fields[rule.name] = self._field_for(rule)
        return create_model(
            "OutputSchemaModel",
            __config__=ConfigDict(strict=True, extra="allow"),
            **fields,
        )

    @staticmethod
    def _field_for(rule: SchemaRule) -> Tuple[Any, Any]:
        c = rule.constraints
        annotation: Any = c.value_type or Any
        if c.choices:
            choices = tuple(_coerce_choice(v, c.value_type) for v in c.choices)
            annotation = Literal[choices]
        else:
            bounds: Dict[str, Any] = {}
            if c.value_type in SIZED_TYPES:
                if c.minimum is not None:
                    bounds["min_length"] = int(c.minimum)
                if c.maximum is not None:
                    bounds["max_length"] = int(c.maximum)
            elif c.value_type in (int, float):
                if c.minimum is not None:
                    bounds["ge"] = c.minimum
                if c.maximum is not None:
                    bounds["le"] = c.maximum
            if bounds:
                annotation = Annotated[annotation, Field(**bounds)]
        if c.nullable or not c.required:
            annotation = Optional[annotation]
        default = Field(... if c.required else None, description=rule.description or None)
        return annotation, default


def _coerce_choice(value: str, value_type: Any) -> Any:
    if value_type in (int, float):
        try:
            return value_type(value)
        except ValueError:
            return value
    return value


def _is_empty(value: Any, c: RuleConstraints) -> bool:
    if value is None:
        return not c.nullable and c.value_type is None
    return value in ("", [], {})
