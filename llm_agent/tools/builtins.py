"""内置工具。

- SerperTool: 通过 serper.dev 调用 Google 搜索，返回文本摘要。
- FirecrawlTool: 通过 firecrawl.dev 抓取网页，返回 markdown 内容。

两者都通过 handle 方法暴露给 ToolRegistry，参数 schema 由签名推导。
"""

import json
from enum import Enum
from typing import Annotated, Any, Dict, List

import httpx

from llm_agent.config.settings import settings as default_settings
from llm_agent.domain.exceptions import ApiError, ConfigurationError, NetworkError, RateLimitError
from .definitions import BaseTool, Description, description

SERPER_BASE_URL = "https://google.serper.dev"
FIRECRAWL_BASE_URL = "https://api.firecrawl.dev/v1"


class SearchType(str, Enum):
    SEARCH = "search"
    NEWS = "news"
    IMAGES = "images"
    PLACES = "places"


def _post_json(url: str, payload: Dict[str, Any], headers: Dict[str, str], timeout: float, service: str) -> Dict[str, Any]:
    try:
        with httpx.Client(timeout=timeout, trust_env=False) as client:
            resp = client.post(url, json=payload, headers={**headers, "Content-Type": "application/json"})
    except httpx.RequestError as e:
        raise NetworkError(code="NETWORK_ERROR", message=str(e))
    if resp.status_code == 429:
        raise RateLimitError(code="RATE_LIMIT", message=f"{service} rate limit")
    if resp.status_code >= 400:
        raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
    return resp.json()


@description("Search Google using a query.")
class SerperTool(BaseTool):
    def __init__(self, settings=None):
        self._settings = settings or default_settings

    def handle(
        self,
        query: Annotated[str, Description("the search query to execute.")],
        search_type: Annotated[SearchType, Description("the type of search to perform.")] = SearchType.SEARCH,
        number_of_results: Annotated[int, Description("the number of results to return.")] = 10,
    ) -> str:
        api_key = getattr(self._settings, "serper_api_key", None)
        if not api_key:
            raise ConfigurationError(code="MISSING_API_KEY", message="SERPER_API_KEY not set")
        data = _post_json(
            f"{SERPER_BASE_URL}/{search_type.value}",
            {"q": query, "num": number_of_results},
            {"X-API-KEY": api_key},
            self._settings.http_timeout,
            "Serper",
        )
        return self._format(data, search_type)

    @staticmethod
    def _format(data: Dict[str, Any], search_type: SearchType) -> str:
        lines: List[str] = []
        answer_box = data.get("answerBox") or {}
        answer = answer_box.get("answer") or answer_box.get("snippet")
        if answer:
            lines.append(f"Answer: {answer}")
        graph = data.get("knowledgeGraph") or {}
        if graph.get("title"):
            summary = graph.get("description")
            lines.append(f"{graph['title']}: {summary}" if summary else graph["title"])
        key = "organic" if search_type is SearchType.SEARCH else search_type.value
        for item in data.get(key) or []:
            title = item.get("title", "")
            link = item.get("link", "")
            snippet = item.get("snippet", "")
            lines.append(f"- {title} ({link})" + (f"\n  {snippet}" if snippet else ""))
        return "\n".join(lines) if lines else "No results found."


@description("Scrape a web page and return its content as markdown.")
class FirecrawlTool(BaseTool):
    def __init__(self, settings=None):
        self._settings = settings or default_settings

    def handle(
        self,
        url: Annotated[str, Description("the URL of the page to scrape.")],
        extraction_prompt: Annotated[str, Description("what to extract from the page, if anything specific.")] = "",
    ) -> str:
        api_key = getattr(self._settings, "firecrawl_api_key", None)
        if not api_key:
            raise ConfigurationError(code="MISSING_API_KEY", message="FIRECRAWL_API_KEY not set")
        payload: Dict[str, Any] = {"url": url, "formats": ["markdown"]}
        if extraction_prompt:
            payload["formats"].append("extract")
            payload["extract"] = {"prompt": extraction_prompt}
        data = _post_json(
            f"{FIRECRAWL_BASE_URL}/scrape",
            payload,
            {"Authorization": f"Bearer {api_key}"},
            self._settings.http_timeout,
            "Firecrawl",
        )
        page = data.get("data") or {}
        content = page.get("markdown") or ""
        extracted = page.get("extract")
        if extracted:
            content += "\n\nExtracted:\n" + json.dumps(extracted, ensure_ascii=False)
        return content or "The page returned no content."
