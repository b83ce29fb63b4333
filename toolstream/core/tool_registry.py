# Discovers and manages all available tools, and validates every call before dispatch.
# Version 2.0.0: Arguments are validated against the tool schema and failures come back as data.

import inspect
import pkgutil
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, ValidationError

from toolstream import tools as tools_package
from toolstream.core.config import ProviderCredentials, get_credentials
from toolstream.core.errors import InfrastructureError
from toolstream.models.common import StructuredError
from toolstream.tools.base_tool import BaseTool
from toolstream.utils.logger import console

ToolOutcome = Union[Dict[str, Any], StructuredError]


class ToolRegistry:
    """
    A class to discover, register and invoke tools by name under one contract:
    invoke(name, args) returns the tool's result dict or a StructuredError.
    """
    def __init__(self, tools: Optional[Iterable[BaseTool]] = None):
        self.tools: Dict[str, BaseTool] = {}
        for tool in tools or []:
            self.register(tool)

    @classmethod
    def discover(cls, credentials: ProviderCredentials, **tool_kwargs: Any) -> "ToolRegistry":
        """
        Scans the toolstream.tools package, imports all modules, finds classes that
        inherit from BaseTool, and creates an instance of each to register.
        """
        registry = cls()
        for _, modname, _ in pkgutil.iter_modules(tools_package.__path__, f"{tools_package.__name__}."):
            if modname.startswith(f"{tools_package.__name__}.base_tool"):
                continue
            try:
                module = __import__(modname, fromlist="dummy")
            except Exception as e:
                console.error(f"Failed to import tool module {modname}: {e}")
                continue
            for _, obj in inspect.getmembers(module, inspect.isclass):
                if not issubclass(obj, BaseTool) or inspect.isabstract(obj) or obj.__module__ != modname:
                    continue
                try:
                    registry.register(obj(credentials, **tool_kwargs))
                except Exception as e:
                    console.error(f"Failed to register tool from module {modname}: {e}")
        console.success(f"Tool discovery complete. Found {len(registry.tools)} tools: {registry.names()}")
        return registry

    def register(self, tool: BaseTool):
        if tool.name in self.tools:
            raise ValueError(f"Tool '{tool.name}' is already registered.")
        self.tools[tool.name] = tool
        console.info(f"Successfully registered tool: '{tool.name}'")

    def names(self) -> List[str]:
        return list(self.tools.keys())

    def get(self, tool_name: str) -> Optional[BaseTool]:
        return self.tools.get(tool_name)

    def get_definitions(self, names: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
        """Returns the tool definitions for the LLM, restricted to `names` when given."""
        if names is None:
            return [tool.get_definition() for tool in self.tools.values()]
        return [self.tools[name].get_definition() for name in names if name in self.tools]

    def validate(self, tool_name: str, raw_args: Dict[str, Any]) -> Union[BaseModel, StructuredError]:
        """Validates raw arguments against the tool's schema, without calling the tool."""
        tool = self.tools.get(tool_name)
        if tool is None:
            return StructuredError(error=f"Tool '{tool_name}' not found.", kind="unknown_tool")
        try:
            return tool.args_schema.model_validate(raw_args)
        except ValidationError as e:
            details = [
                {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                for err in e.errors()
            ]
            return StructuredError(
                error=f"Invalid arguments for tool '{tool_name}': {e.error_count()} validation error(s).",
                kind="validation",
                details=details,
            )

    async def invoke(self, tool_name: str, raw_args: Dict[str, Any]) -> ToolOutcome:
        """
        Validates and executes a tool. Invalid arguments short-circuit: the executor
        is never called. Executor failures are returned as StructuredError; only
        InfrastructureError propagates.
        """
        validated = self.validate(tool_name, raw_args)
        if isinstance(validated, StructuredError):
            console.warning(f"Rejected call to '{tool_name}': {validated.error}")
            return validated

        tool = self.tools[tool_name]
        try:
            console.info(f"Executing tool '{tool_name}'.")
            result = await tool.execute(**validated.model_dump())
            console.success(f"Tool '{tool_name}' executed successfully.")
            return result
        except InfrastructureError:
            console.exception(f"Infrastructure failure while executing tool '{tool_name}'")
            raise
        except Exception as e:
            console.error(f"Tool '{tool_name}' failed: {e}")
            return StructuredError(error=str(e) or type(e).__name__, kind="provider")


# Built lazily so that importing the module never touches provider configuration.
@lru_cache
def get_tool_registry() -> ToolRegistry:
    return ToolRegistry.discover(get_credentials())
