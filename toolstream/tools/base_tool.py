# The module is to define the base class for all tools in the application.
# Date: 2025-06-11
# Version: 0.2.0

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional, Type

import httpx
from pydantic import BaseModel

from toolstream.core.config import ProviderCredentials


class SideEffect(str, Enum):
    """Whether a tool only reads from the world or provisions/creates resources."""
    READ_ONLY = "read_only"
    RESOURCE_MUTATING = "resource_mutating"


class BaseTool(ABC):
    """
    Abstract Base Class for all tools.

    This class defines a standard interface that all tools must implement.
    Attributes:
        name (str): The name of the tool, used for identification.
        description (str): A brief description of what the tool does.
        args_schema (Type[BaseModel]): A Pydantic model defining the arguments
            that the tool accepts, which will be validated before execution.
        side_effect (SideEffect): Read-only tools can be abandoned freely; resource
            mutating tools must release what they create on every exit path.
    """
    name: str
    description: str
    args_schema: Type[BaseModel]
    side_effect: SideEffect = SideEffect.READ_ONLY

    def __init__(self, credentials: ProviderCredentials, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            credentials: Provider secrets and endpoints, injected once at startup.
            transport: Optional httpx transport used by every HTTP call the tool makes.
        """
        self._credentials = credentials
        self._transport = transport

    def _http_client(self, timeout: float = 30.0) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    @abstractmethod
    async def execute(self, **kwargs) -> Dict[str, Any]:
        """
        The core logic of the tool. This method must be implemented by all subclasses.

        Args:
            **kwargs: The arguments for the tool, already validated against args_schema.

        Returns:
            A JSON-serialisable dict with the tool's result.

        Raises:
            ToolError: When the upstream provider fails; the registry reports it
                to the model as a structured error.
        """
        pass

    def get_definition(self) -> Dict[str, Any]:
        """
        Returns the tool's definition in a format compliant with OpenAI's
        function-calling specification. This method is inherited by all tools.
        """
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.args_schema.model_json_schema(by_alias=True)
            }
        }
