import pytest

from llm_agent.domain.exceptions import ConfigurationError, RateLimitError
from llm_agent.tools.builtins import FirecrawlTool, SearchType, SerperTool
from llm_agent.tools.registry import ToolRegistry


class SettingsStub:
    serper_api_key = "serper-test-key"
    firecrawl_api_key = "fc-test-key"
    http_timeout = 1.0


def patch_post(monkeypatch, response_json, captured, status_code=200):
    class Resp:
        text = "error"

        def __init__(self):
            self.status_code = status_code

        def json(self):
            return response_json

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, headers=None, **_):
            captured["url"] = url
            captured["payload"] = json
            captured["headers"] = headers
            return Resp()

    monkeypatch.setattr("httpx.Client", Client)


def test_serper_tool_schema():
    reg = ToolRegistry([SerperTool(SettingsStub())], strict_names=False)
    td = reg.definitions()["serper_tool"]
    assert td.description == "Search Google using a query."
    props = td.parameters["properties"]
    assert props["search_type"]["enum"] == ["search", "news", "images", "places"]
    assert props["number_of_results"]["type"] == "integer"
    assert td.parameters["required"] == ["query"]


def test_serper_tool_formats_results(monkeypatch):
    captured = {}
    patch_post(monkeypatch, {
        "answerBox": {"answer": "Joe Biden"},
        "knowledgeGraph": {"title": "President", "description": "Head of state"},
        "organic": [{"title": "White House", "link": "https://www.whitehouse.gov", "snippet": "Official site"}],
    }, captured)
    reg = ToolRegistry([SerperTool(SettingsStub())], strict_names=False)
    out = reg.call("serper_tool", {"query": "current president", "search_type": "search"})
    assert captured["url"] == "https://google.serper.dev/search"
    assert captured["payload"] == {"q": "current president", "num": 10}
    assert captured["headers"]["X-API-KEY"] == "serper-test-key"
    assert out.splitlines() == [
        "Answer: Joe Biden",
        "President: Head of state",
        "- White House (https://www.whitehouse.gov)",
        "  Official site",
    ]


def test_serper_tool_news_and_invalid_type_fallback(monkeypatch):
    captured = {}
    patch_post(monkeypatch, {"news": [{"title": "Headline", "link": "https://n.test"}]}, captured)
    tool = SerperTool(SettingsStub())
    assert tool.handle("python", SearchType.NEWS) == "- Headline (https://n.test)"
    assert captured["url"].endswith("/news")

    reg = ToolRegistry([tool], strict_names=False)
    patch_post(monkeypatch, {}, captured)
    assert reg.call("serper_tool", {"query": "python", "search_type": "videos"}) == "No results found."
    assert captured["url"].endswith("/search")


def test_serper_tool_requires_key():
    class NoKey(SettingsStub):
        serper_api_key = None

    with pytest.raises(ConfigurationError):
        SerperTool(NoKey()).handle("python")


def test_serper_tool_rate_limit(monkeypatch):
    patch_post(monkeypatch, {}, {}, status_code=429)
    with pytest.raises(RateLimitError):
        SerperTool(SettingsStub()).handle("python")


def test_firecrawl_tool_scrapes_markdown(monkeypatch):
    captured = {}
    patch_post(monkeypatch, {"success": True, "data": {"markdown": "# Title\nBody"}}, captured)
    out = FirecrawlTool(SettingsStub()).handle("https://example.com")
    assert out == "# Title\nBody"
    assert captured["url"] == "https://api.firecrawl.dev/v1/scrape"
    assert captured["payload"] == {"url": "https://example.com", "formats": ["markdown"]}
    assert captured["headers"]["Authorization"] == "Bearer fc-test-key"


def test_firecrawl_tool_extraction_prompt(monkeypatch):
    captured = {}
    patch_post(monkeypatch, {"data": {"markdown": "page", "extract": {"price": "9.99"}}}, captured)
    out = FirecrawlTool(SettingsStub()).handle("https://shop.test", extraction_prompt="the price")
    assert captured["payload"]["formats"] == ["markdown", "extract"]
    assert captured["payload"]["extract"] == {"prompt": "the price"}
    assert out == 'page\n\nExtracted:\n{"price": "9.99"}'
