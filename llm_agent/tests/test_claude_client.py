from llm_agent.domain.models import FinishReason, Message, Role, ToolCall
from llm_agent.providers.claude_client import ClaudeClient
from llm_agent.tools.definitions import ToolDefinition


class SettingsStub:
    claude_api_key = "sk-ant-test-key"
    claude_base_url = "https://api.anthropic.test/v1"
    claude_api_version = "2023-06-01"
    default_model = "agent-chat"
    http_timeout = 1.0


def patch_client(monkeypatch, response_json, captured):
    class Resp:
        status_code = 200
        text = ""

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


def test_claude_client_parse_basic(monkeypatch):
    captured = {}
    patch_client(monkeypatch, {
        "content": [{"type": "text", "text": "Hello"}, {"type": "text", "text": " there"}],
        "stop_reason": "end_turn",
        "usage": {"input_tokens": 3, "output_tokens": 2},
    }, captured)
    res = ClaudeClient(SettingsStub()).complete(
        [Message(role=Role.SYSTEM, content="be brief"), Message(role=Role.USER, content="hi")],
        {},
    )
    assert res.message.content == "Hello there"
    assert res.finish_reason is FinishReason.STOP
    assert res.usage.total_tokens == 5
    assert captured["url"] == "https://api.anthropic.test/v1/messages"
    assert captured["headers"]["x-api-key"] == "sk-ant-test-key"
    assert captured["headers"]["anthropic-version"] == "2023-06-01"
    payload = captured["payload"]
    assert payload["system"] == "be brief"
    assert payload["model"] == "claude-3-5-sonnet-20240620"
    assert payload["max_tokens"] == 4096
    assert payload["messages"] == [{"role": "user", "content": [{"type": "text", "text": "hi"}]}]


def test_claude_client_tool_round_trip_payload(monkeypatch):
    captured = {}
    patch_client(monkeypatch, {"content": [{"type": "text", "text": "ok"}], "stop_reason": "end_turn"}, captured)
    tools = {
        "serper_tool": ToolDefinition(
            name="serper_tool",
            description="Search Google using a query.",
            parameters={"type": "object", "properties": {"query": {"type": "string"}}, "required": ["query"]},
        ),
        "ping": ToolDefinition(name="ping"),
    }
    history = [
        Message(role=Role.USER, content="news?"),
        Message(role=Role.ASSISTANT, tool_calls=(
            ToolCall(id="tu_1", function_name="serper_tool", raw_arguments='{"query": "news"}'),
            ToolCall(id="tu_2", function_name="ping"),
        )),
        Message(role=Role.TOOL, content="- headline", tool_name="serper_tool", tool_call_id="tu_1"),
        Message(role=Role.TOOL, content="pong", tool_name="ping", tool_call_id="tu_2"),
    ]
    ClaudeClient(SettingsStub()).complete(history, tools)
    payload = captured["payload"]
    assert "system" not in payload
    assert payload["tools"][0]["input_schema"]["required"] == ["query"]
    assert payload["tools"][1]["input_schema"] == {"type": "object", "properties": {}}
    assert [t["role"] for t in payload["messages"]] == ["user", "assistant", "user"]
    assert payload["messages"][1]["content"] == [
        {"type": "tool_use", "id": "tu_1", "name": "serper_tool", "input": {"query": "news"}},
        {"type": "tool_use", "id": "tu_2", "name": "ping", "input": {}},
    ]
    # 相邻的两个工具结果合并到同一条 user 消息
    assert payload["messages"][2]["content"] == [
        {"type": "tool_result", "tool_use_id": "tu_1", "content": "- headline"},
        {"type": "tool_result", "tool_use_id": "tu_2", "content": "pong"},
    ]


def test_claude_client_parse_tool_use(monkeypatch):
    patch_client(monkeypatch, {
        "content": [
            {"type": "text", "text": "Let me search."},
            {"type": "tool_use", "id": "tu_9", "name": "serper_tool", "input": {"query": "python"}},
        ],
        "stop_reason": "tool_use",
    }, {})
    res = ClaudeClient(SettingsStub()).complete([Message(role=Role.USER, content="hi")], {})
    assert res.finish_reason is FinishReason.TOOL_CALL
    assert res.message.content == "Let me search."
    call = res.message.tool_calls[0]
    assert call.id == "tu_9"
    assert call.arguments() == {"query": "python"}


def test_claude_client_max_tokens_stop_is_other(monkeypatch):
    patch_client(monkeypatch, {"content": [], "stop_reason": "max_tokens"}, {})
    res = ClaudeClient(SettingsStub()).complete([Message(role=Role.USER, content="hi")], {})
    assert res.finish_reason is FinishReason.OTHER
    assert res.message.content is None
