"""Prompt 渲染与解析。

- renderer: 基于 Jinja2 的模板渲染，内置模板位于 prompts/templates。
- parser: 把渲染结果中的 ```<prompt:role> 围栏块解析为 Message 列表。
"""

from llm_agent.prompts.parser import escape_fences, parse_prompt
from llm_agent.prompts.renderer import TEMPLATES_DIR, JinjaRenderer, Renderer

__all__ = ["parse_prompt", "escape_fences", "JinjaRenderer", "Renderer", "TEMPLATES_DIR"]
