"""ToolRegistryのユニットテスト。"""

from typing import Annotated, Any

import pytest
from pydantic import Field

from plumb.models.errors import ConfigurationError, InvalidParamsError, UnknownToolError
from plumb.tools.registry import ToolRegistry, error_payload


@pytest.fixture
def registry() -> ToolRegistry:
    registry = ToolRegistry()

    @registry.tool(examples=[{"description": "Greet someone", "arguments": {"name": "Ada"}}])
    async def greet(
        name: Annotated[str, Field(min_length=1, description="相手の名前")],
        times: Annotated[int, Field(ge=1)] = 1,
    ) -> dict[str, Any]:
        """Greet by name.

        Repeats the greeting.
        """
        return {"success": True, "greeting": " ".join([f"hello {name}"] * times)}

    return registry


class TestRegistration:
    def test_definition(self, registry: ToolRegistry) -> None:
        (definition,) = registry.definitions()

        assert definition.name == "greet"
        assert definition.description.startswith("Greet by name.")
        assert set(definition.parameters["properties"]) == {"name", "times"}
        assert definition.parameters["required"] == ["name"]
        assert definition.examples[0].arguments == {"name": "Ada"}

    def test_duplicate_name(self, registry: ToolRegistry) -> None:
        async def greet() -> dict[str, Any]:
            return {}

        with pytest.raises(ValueError, match="already registered"):
            registry.tool()(greet)

    def test_explicit_name(self, registry: ToolRegistry) -> None:
        @registry.tool(name="ping")
        async def ping_tool() -> dict[str, Any]:
            return {"success": True}

        assert registry.names() == ["greet", "ping"]


class TestCall:
    async def test_defaults_are_applied(self, registry: ToolRegistry) -> None:
        assert await registry.call("greet", {"name": "Ada"}) == {"success": True, "greeting": "hello Ada"}

    async def test_unknown_tool(self, registry: ToolRegistry) -> None:
        with pytest.raises(UnknownToolError) as exc_info:
            await registry.call("frobnicate", {})

        assert exc_info.value.code == -32601
        assert exc_info.value.data == {"available_tools": ["greet"]}

    @pytest.mark.parametrize("arguments", [{}, {"name": ""}, {"name": "Ada", "times": 0}, {"name": "Ada", "x": 1}])
    async def test_invalid_arguments(self, registry: ToolRegistry, arguments: dict[str, Any]) -> None:
        with pytest.raises(InvalidParamsError) as exc_info:
            await registry.call("greet", arguments)

        assert exc_info.value.code == -32602
        assert exc_info.value.data["tool"] == "greet"
        assert exc_info.value.data["errors"]


class TestErrorPayload:
    def test_payload(self) -> None:
        payload = error_payload(ConfigurationError("Project path does not exist"))

        assert payload == {
            "success": False,
            "error": "ConfigurationError",
            "message": "Project path does not exist",
            "hint": ConfigurationError.hint,
        }
