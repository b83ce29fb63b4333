"""Unit tests for the tool registry and the shared tool contract."""

import pytest

from fakes import EchoTool, fake_credentials
from toolstream.core.errors import SandboxProvisioningError
from toolstream.core.tool_registry import ToolRegistry
from toolstream.models.common import StructuredError
from toolstream.tools.base_tool import SideEffect
from toolstream.tools.places_tool import PlaceSearchInput
from toolstream.tools.search_web_tool import SearchWebInput

ALL_TOOLS = {
    "web_search",
    "retrieve",
    "get_weather_data",
    "nearby_search",
    "text_search",
    "find_place",
    "text_translate",
    "programming",
}


class TestDiscovery:
    """Tests for package scanning."""

    def test_discovers_every_tool_with_credentials(self) -> None:
        """All tool modules should register when every credential is present."""
        registry = ToolRegistry.discover(fake_credentials())

        assert set(registry.names()) == ALL_TOOLS

    def test_skips_tools_without_credentials(self) -> None:
        """Tools whose provider key is missing should be left out, not crash discovery."""
        registry = ToolRegistry.discover(fake_credentials(google_maps_api_key=None, e2b_api_key=None))

        assert "nearby_search" not in registry.names()
        assert "programming" not in registry.names()
        assert "web_search" in registry.names()

    def test_programming_is_resource_mutating(self) -> None:
        """Only the code-execution tool should be classed as resource mutating."""
        registry = ToolRegistry.discover(fake_credentials())

        mutating = {tool.name for tool in registry.tools.values() if tool.side_effect is SideEffect.RESOURCE_MUTATING}
        assert mutating == {"programming"}


class TestRegistration:
    """Tests for explicit registration and definitions."""

    def test_duplicate_name_rejected(self, credentials) -> None:
        """Registering two tools under one name should fail."""
        registry = ToolRegistry([EchoTool(credentials)])

        with pytest.raises(ValueError):
            registry.register(EchoTool(credentials))

    def test_definitions_restricted_to_subset(self, registry) -> None:
        """Only the requested tools should be described to the model."""
        definitions = registry.get_definitions(["echo", "missing"])

        assert [d["function"]["name"] for d in definitions] == ["echo"]
        assert definitions[0]["type"] == "function"
        assert "text" in definitions[0]["function"]["parameters"]["properties"]

    def test_web_search_definition_uses_wire_names(self) -> None:
        """The web_search schema should expose camelCase argument names."""
        registry = ToolRegistry.discover(fake_credentials())

        properties = registry.get("web_search").get_definition()["function"]["parameters"]["properties"]
        assert {"query", "maxResults", "topic", "searchDepth", "excludeDomains"} <= set(properties)


class TestInvoke:
    """Tests for validated invocation."""

    @pytest.mark.asyncio
    async def test_invalid_arguments_never_reach_executor(self, registry, echo_tool) -> None:
        """Arguments failing the schema should produce a validation error and zero executor calls."""
        outcome = await registry.invoke("echo", {"text": "", "times": 9})

        assert isinstance(outcome, StructuredError)
        assert outcome.kind == "validation"
        assert {tuple(detail["loc"]) for detail in outcome.details} == {("text",), ("times",)}
        assert echo_tool.calls == []

    @pytest.mark.asyncio
    async def test_missing_required_argument(self, registry, echo_tool) -> None:
        """A missing required field should be reported, not raised."""
        outcome = await registry.invoke("echo", {})

        assert isinstance(outcome, StructuredError)
        assert outcome.kind == "validation"
        assert echo_tool.calls == []

    @pytest.mark.asyncio
    async def test_unknown_tool(self, registry) -> None:
        """Calling an unregistered tool should yield an unknown_tool error."""
        outcome = await registry.invoke("teleport", {})

        assert isinstance(outcome, StructuredError)
        assert outcome.kind == "unknown_tool"

    @pytest.mark.asyncio
    async def test_successful_call_returns_result(self, registry, echo_tool) -> None:
        """Valid arguments should be passed to the executor."""
        outcome = await registry.invoke("echo", {"text": "hi", "times": 2})

        assert outcome == {"echo": "hi hi"}
        assert echo_tool.calls == [{"text": "hi", "times": 2}]

    @pytest.mark.asyncio
    async def test_provider_failure_becomes_structured_error(self, registry) -> None:
        """A ToolError should come back as data for the model."""
        outcome = await registry.invoke("flaky", {"text": "x"})

        assert isinstance(outcome, StructuredError)
        assert outcome.kind == "provider"
        assert "upstream provider is down" in outcome.error

    @pytest.mark.asyncio
    async def test_infrastructure_failure_propagates(self, registry) -> None:
        """Infrastructure errors are turn-fatal and must not be swallowed."""
        with pytest.raises(SandboxProvisioningError):
            await registry.invoke("sandbox_down", {"text": "x"})


class TestArgumentNormalisation:
    """Tests for the argument rules of the bundled tool schemas."""

    def test_max_results_raised_to_floor(self) -> None:
        """maxResults below 5 should be raised to 5."""
        assert SearchWebInput.model_validate({"query": "q", "maxResults": 2}).max_results == 5
        assert SearchWebInput.model_validate({"query": "q", "maxResults": 12}).max_results == 12

    def test_search_topic_enumerated(self) -> None:
        """Only 'general' and 'news' topics are accepted."""
        with pytest.raises(ValueError):
            SearchWebInput.model_validate({"query": "q", "topic": "sports"})

    def test_radius_capped_and_defaulted(self) -> None:
        """radius defaults to 3000 and is capped at 50000."""
        assert PlaceSearchInput.model_validate({"location": "Boston", "type": "cafe"}).radius == 3000
        assert PlaceSearchInput.model_validate({"location": "Boston", "type": "cafe", "radius": 90000}).radius == 50000

    def test_radius_must_be_positive(self) -> None:
        """A non-positive radius is a validation error."""
        with pytest.raises(ValueError):
            PlaceSearchInput.model_validate({"location": "Boston", "type": "cafe", "radius": 0})
