# The module is to define the retrieve tool, which extracts page content through the Firecrawl API.
# Date: 2025-06-14
# Version: 0.1.0

from typing import Any, Dict, Optional, Type

import httpx
from pydantic import BaseModel, Field

from toolstream.core.config import ProviderCredentials
from toolstream.core.errors import ToolError
from toolstream.utils.logger import console

from .base_tool import BaseTool


class RetrieveInput(BaseModel):
    """Input model for the retrieve tool."""
    url: str = Field(..., min_length=1, description="The URL to retrieve the information from.")


class RetrieveTool(BaseTool):
    """
    Scrapes a single URL and returns its main content as markdown together with
    the page metadata.
    """
    name: str = "retrieve"
    description: str = "Retrieves the full content of a web page from its URL. " \
    "Use it when a search snippet is not enough to answer."
    args_schema: Type[BaseModel] = RetrieveInput

    _service_url: str

    def __init__(self, credentials: ProviderCredentials, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(credentials, transport)
        if not credentials.firecrawl_api_key:
            raise ValueError("FIRECRAWL_API_KEY is not set in the .env file.")
        self._service_url = f"{credentials.firecrawl_base_url.rstrip('/')}/v1/scrape"

    async def execute(self, url: str) -> Dict[str, Any]:
        console.info(f"Executing tool '{self.name}' for url: '{url}'")
        headers = {"Authorization": f"Bearer {self._credentials.firecrawl_api_key}"}
        payload = {"url": url, "formats": ["markdown"]}

        try:
            async with self._http_client(timeout=60.0) as client:
                response = await client.post(self._service_url, json=payload, headers=headers)
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            console.error(f"Firecrawl API error for '{url}': {e}")
            raise ToolError("Failed to retrieve content") from e

        data = body.get("data") or {}
        metadata = data.get("metadata")
        if not body.get("success") or not metadata:
            raise ToolError("Failed to retrieve content")

        return {
            "results": [
                {
                    "title": metadata.get("title"),
                    "content": data.get("markdown"),
                    "url": metadata.get("sourceURL") or url,
                    "description": metadata.get("description"),
                    "language": metadata.get("language"),
                }
            ]
        }
