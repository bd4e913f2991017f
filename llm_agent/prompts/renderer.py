"""Prompt 模板渲染。

Agent 只依赖 Renderer 协议：render(template_id, variables) -> str。
默认实现基于 Jinja2，按以下顺序查找模板：

1. 构造时传入的内存模板（templates={"id": "..."}，便于测试）。
2. 构造时传入的目录以及配置中的 templates_dir。
3. 包内置模板目录 prompts/templates。

模板 id 不带扩展名时自动补 ".md"。
"""

from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Protocol, Union

from jinja2 import (
    ChoiceLoader,
    DictLoader,
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateNotFound,
    TemplateSyntaxError,
    UndefinedError,
)

from llm_agent.config.settings import settings
from llm_agent.domain.exceptions import ConfigurationError

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
TEMPLATE_SUFFIX = ".md"


class Renderer(Protocol):
    def render(self, template_id: str, variables: Mapping[str, Any]) -> str:
        ...


class JinjaRenderer:
    def __init__(
        self,
        search_path: Optional[Iterable[Union[str, Path]]] = None,
        templates: Optional[Mapping[str, str]] = None,
    ):
        loaders = []
        if templates:
            loaders.append(DictLoader({self._template_name(k): v for k, v in templates.items()}))
        dirs = [Path(p) for p in (search_path or [])]
        if getattr(settings, "templates_dir", None):
            dirs.append(Path(settings.templates_dir))
        dirs.append(TEMPLATES_DIR)
        loaders.append(FileSystemLoader([str(d) for d in dirs]))
        self._env = Environment(
            loader=ChoiceLoader(loaders),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )

    def render(self, template_id: str, variables: Mapping[str, Any]) -> str:
        name = self._template_name(template_id)
        try:
            template = self._env.get_template(name)
        except TemplateNotFound:
            raise ConfigurationError(code="TEMPLATE_NOT_FOUND", message=f"Prompt view {template_id!r} not found") from None
        except TemplateSyntaxError as e:
            raise ConfigurationError(code="TEMPLATE_INVALID", message=f"Prompt view {template_id!r}: {e}") from e
        try:
            return template.render(**variables)
        except UndefinedError as e:
            raise ConfigurationError(
                code="TEMPLATE_VARIABLE_MISSING",
                message=f"Prompt view {template_id!r}: {e.message}",
            ) from e

    @staticmethod
    def _template_name(template_id: str) -> str:
        return template_id if Path(template_id).suffix else template_id + TEMPLATE_SUFFIX
