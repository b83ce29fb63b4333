# The module is to define the programming tool, which runs Python in an isolated sandbox.
# Date: 2025-06-14
# Version: 0.1.0

from typing import Any, Dict, Optional, Type

import httpx
from pydantic import BaseModel, Field

from toolstream.core.config import ProviderCredentials
from toolstream.services.sandbox_manager import SandboxManager
from toolstream.utils.logger import console

from .base_tool import BaseTool, SideEffect


class ProgrammingInput(BaseModel):
    """Input model for the programming tool."""
    code: str = Field(..., min_length=1, description="The Python code to execute. Use print() for any output you need back.")


class ProgrammingTool(BaseTool):
    """
    Executes model-written Python in a fresh sandbox per call. Charts rendered by
    the code are persisted and returned as URLs.
    """
    name: str = "programming"
    description: str = (
        "Writes and executes Python code in a sandbox. Use it for calculations, data analysis and charts. "
        "Print results explicitly; figures are captured automatically."
    )
    args_schema: Type[BaseModel] = ProgrammingInput
    side_effect: SideEffect = SideEffect.RESOURCE_MUTATING

    def __init__(
        self,
        credentials: ProviderCredentials,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sandbox_manager: Optional[SandboxManager] = None,
    ):
        super().__init__(credentials, transport)
        if sandbox_manager is None:
            if not credentials.e2b_api_key:
                raise ValueError("E2B_API_KEY is not set in the .env file.")
            sandbox_manager = SandboxManager.from_credentials(credentials)
        self._sandbox_manager = sandbox_manager

    async def execute(self, code: str) -> Dict[str, Any]:
        console.info(f"Executing tool '{self.name}' ({len(code.splitlines())} lines of code)")
        result = await self._sandbox_manager.execute(code)
        return result.model_dump()
