from enum import Enum
from typing import Annotated, Optional

import pytest

from llm_agent.domain.exceptions import ConfigurationError
from llm_agent.tools.definitions import BaseTool, Description, ToolDefinition, description
from llm_agent.tools.registry import ToolRegistry, snake_case


class Unit(Enum):
    CELSIUS = "celsius"
    FAHRENHEIT = "fahrenheit"


@description("Look up the current weather.")
@description("Returns a short sentence.")
class WeatherLookup(BaseTool):
    def __init__(self):
        self.calls = []

    def handle(
        self,
        city: Annotated[str, Description("the city name")],
        unit: Annotated[Unit, Description("temperature unit")] = Unit.CELSIUS,
        days: int = 1,
        detailed: Optional[bool] = None,
    ) -> str:
        self.calls.append((city, unit, days, detailed))
        return f"{city}: 21 {unit.value} for {days} day(s)"


class PingTool(BaseTool):
    description = "Check connectivity."

    def handle(self) -> str:
        return "pong"


class NotATool:
    pass


def search(query: str, limit: int = 5, ratio: float = 0.5):
    return {"query": query, "limit": limit, "ratio": ratio}


def test_snake_case_names():
    assert snake_case("SerperTool") == "serper_tool"
    assert snake_case("HTTPSearch") == "http_search"
    assert snake_case("weatherLookup") == "weather_lookup"
    assert snake_case("search") == "search"


def test_definition_from_handle_method():
    reg = ToolRegistry([WeatherLookup()], strict_names=False)
    td = reg.definitions()["weather_lookup"]
    assert td.description == "Look up the current weather.\nReturns a short sentence."
    props = td.parameters["properties"]
    assert props["city"] == {"type": "string", "description": "the city name"}
    assert props["unit"] == {
        "type": "string",
        "description": "temperature unit",
        "enum": ["celsius", "fahrenheit"],
    }
    assert props["days"] == {"type": "integer"}
    assert props["detailed"] == {"type": "boolean"}
    assert td.parameters["required"] == ["city"]


def test_zero_parameter_tool_has_no_parameters_key():
    reg = ToolRegistry([PingTool], strict_names=False)
    td = reg.definitions()["ping_tool"]
    assert td.parameters is None
    assert "parameters" not in td.to_function_schema()
    assert td.description == "Check connectivity."
    assert reg.call("ping_tool", {}) == "pong"


def test_plain_function_registration():
    reg = ToolRegistry([search], strict_names=False)
    td = reg.definitions()["search"]
    assert td.parameters["properties"]["ratio"] == {"type": "number"}
    assert td.parameters["required"] == ["query"]
    assert reg.call("search", {"query": "python"}) == {"query": "python", "limit": 5, "ratio": 0.5}


def test_missing_required_parameter_returns_message_without_invoking():
    tool = WeatherLookup()
    reg = ToolRegistry([tool], strict_names=False)
    result = reg.call("weather_lookup", {"days": 2})
    assert result == "Parameter city(the city name) is required for the tool weather_lookup"
    assert tool.calls == []


def test_missing_parameter_message_falls_back_to_type_name():
    reg = ToolRegistry([search], strict_names=False)
    assert reg.call("search", {}) == "Parameter query(string) is required for the tool search"


def test_enum_value_is_resolved():
    tool = WeatherLookup()
    reg = ToolRegistry([tool], strict_names=False)
    reg.call("weather_lookup", {"city": "Oslo", "unit": "fahrenheit"})
    assert tool.calls[-1][1] is Unit.FAHRENHEIT


def test_unknown_enum_value_falls_back_to_default():
    tool = WeatherLookup()
    reg = ToolRegistry([tool], strict_names=False)
    result = reg.call("weather_lookup", {"city": "Oslo", "unit": "kelvin"})
    assert tool.calls[-1][1] is Unit.CELSIUS
    assert result == "Oslo: 21 celsius for 1 day(s)"


def test_unknown_tool_returns_none():
    reg = ToolRegistry([search], strict_names=False)
    assert reg.call("does_not_exist", {"query": "x"}) is None
    assert "does_not_exist" not in reg


def test_object_without_handle_is_skipped():
    reg = ToolRegistry([NotATool(), search], strict_names=False)
    assert reg.names() == ["search"]
    assert len(reg) == 1


def test_duplicate_name_last_registration_wins():
    def ping():
        return "second"

    def make_first():
        def ping():
            return "first"
        return ping

    reg = ToolRegistry([make_first(), ping], strict_names=False)
    assert reg.call("ping", {}) == "second"


def test_duplicate_name_strict_mode_raises():
    with pytest.raises(ConfigurationError) as exc:
        ToolRegistry([search, search], strict_names=True)
    assert exc.value.code == "DUPLICATE_TOOL"


def test_tool_spec_object_registered_as_is():
    class StaticTool:
        name = "static_tool"

        def describe(self):
            return ToolDefinition(name="static_tool", description="fixed")

        def invoke(self, arguments):
            return arguments.get("x", 0) * 2

    reg = ToolRegistry([StaticTool()], strict_names=False)
    assert reg.definitions()["static_tool"].description == "fixed"
    assert reg.call("static_tool", {"x": 4}) == 8


def test_class_requiring_arguments_raises_configuration_error():
    class NeedsArgs(BaseTool):
        def __init__(self, token):
            self.token = token

        def handle(self, q: str) -> str:
            return q

    with pytest.raises(ConfigurationError) as exc:
        ToolRegistry([NeedsArgs], strict_names=False)
    assert exc.value.code == "TOOL_INIT_ERROR"


def test_plain_function_docstring_becomes_description():
    def lookup_order(order_id: str) -> str:
        """Fetch an order by its id."""
        return order_id

    td = ToolRegistry([lookup_order]).definitions()["lookup_order"]
    assert td.description == "Fetch an order by its id."
    assert ToolRegistry([search]).definitions()["search"].description == ""


def test_unresolvable_annotation_is_logged_and_defaults_to_string(monkeypatch):
    warnings = []
    monkeypatch.setattr(
        "llm_agent.tools.registry.logger.warning",
        lambda msg, *args, **kwargs: warnings.append((msg % args, kwargs)),
    )

    def lookup(item: "MissingType", count: int = 1):
        return item

    reg = ToolRegistry([lookup])
    props = reg.definitions()["lookup"].parameters["properties"]
    assert props["item"]["type"] == "string"
    assert len(warnings) == 1
    message, kwargs = warnings[0]
    assert "lookup" in message
    assert "MissingType" in kwargs["extra"]["extra"]["error"]
