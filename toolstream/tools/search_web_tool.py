# The module is to define the web_search tool backed by the Tavily AI Search API.
# Date: 2025-06-11
# Version: 0.2.0

import asyncio
import re
from typing import Any, Dict, List, Literal, Optional, Type

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator
from tavily import AsyncTavilyClient

from toolstream.core.config import ProviderCredentials
from toolstream.core.errors import ToolError
from toolstream.utils.logger import console

from .base_tool import BaseTool

MIN_RESULTS = 5
NEWS_WINDOW_DAYS = 7


def sanitize_url(url: str) -> str:
    """Percent-encodes runs of whitespace embedded in a URL."""
    return re.sub(r"\s+", "%20", url)


class SearchWebInput(BaseModel):
    """
    Input model for the web_search tool.
    Attributes:
        query (str): The search query to look up on the web.
        max_results (int): Maximum number of results; values below 5 are raised to 5.
        topic (str): 'general' or 'news'. News searches only cover the last 7 days.
        search_depth (str): 'basic' or 'advanced'.
        exclude_domains (List[str]): Domains to leave out of the results.
    """
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(..., min_length=1, description="The search query to look up on the web. Be specific and descriptive.")
    max_results: int = Field(default=10, alias="maxResults", description="Maximum number of results to return (at least 5).")
    topic: Literal["general", "news"] = Field(default="general", description="The topic type to search for.")
    search_depth: Literal["basic", "advanced"] = Field(default="basic", alias="searchDepth", description="The search depth to use.")
    exclude_domains: List[str] = Field(default_factory=list, alias="excludeDomains", description="A list of domains to exclude from the search results.")

    @field_validator("max_results")
    @classmethod
    def _enforce_floor(cls, value: int) -> int:
        return max(value, MIN_RESULTS)


class SearchWebTool(BaseTool):
    """
    A tool that uses the Tavily AI Search API to perform web searches and
    normalizes the provider output into results and captioned images.
    """
    name: str = "web_search"
    description: str = "Searches the web for a given query using the Tavily AI search engine. " \
    "Good for finding real-time or specific information. Use topic 'news' for recent events."
    args_schema: Type[BaseModel] = SearchWebInput

    def __init__(
        self,
        credentials: ProviderCredentials,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        client: Optional[Any] = None,
        include_image_descriptions: bool = True,
        validate_images: bool = True,
    ):
        """
        Initializes the Tavily client when the tool is created.
        """
        super().__init__(credentials, transport)
        if client is None:
            if not credentials.tavily_api_key:
                raise ValueError("TAVILY_API_KEY is not set in the environment.")
            client = AsyncTavilyClient(api_key=credentials.tavily_api_key)
        self._tavily_client = client
        self._include_image_descriptions = include_image_descriptions
        self._validate_images = validate_images

    async def execute(
        self,
        query: str,
        max_results: int = 10,
        topic: str = "general",
        search_depth: str = "basic",
        exclude_domains: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        console.info(f"Executing tool '{self.name}' with query: '{query}' (topic={topic}, depth={search_depth})")
        search_kwargs: Dict[str, Any] = {
            "query": query,
            "search_depth": search_depth,
            "topic": topic,
            "max_results": max_results,
            "include_answer": True,
            "include_images": True,
            "include_image_descriptions": self._include_image_descriptions,
            "exclude_domains": exclude_domains or [],
        }
        if topic == "news":
            search_kwargs["days"] = NEWS_WINDOW_DAYS

        try:
            response = await self._tavily_client.search(**search_kwargs)
        except Exception as e:
            raise ToolError(f"Web search failed for query '{query}': {e}") from e

        results = self._format_results(response.get("results", []), is_news=topic == "news")
        images = await self._format_images(response.get("images", []))
        return {"results": results, "images": images}

    def _format_results(self, raw_results: List[Dict[str, Any]], is_news: bool) -> List[Dict[str, Any]]:
        formatted = []
        for item in raw_results:
            entry = {
                "url": item.get("url"),
                "title": item.get("title"),
                "content": item.get("content"),
            }
            if item.get("raw_content"):
                entry["raw_content"] = item["raw_content"]
            if is_news and item.get("published_date"):
                entry["published_date"] = item["published_date"]
            formatted.append(entry)
        return formatted

    async def _format_images(self, raw_images: List[Any]) -> List[Dict[str, str]]:
        """
        Tavily returns bare URL strings, or {url, description} objects when
        descriptions are requested. With descriptions requested, uncaptioned
        images are dropped.
        """
        candidates = []
        for image in raw_images:
            if isinstance(image, str):
                url, description = image, ""
            else:
                url, description = image.get("url", ""), image.get("description") or ""
            if not url:
                continue
            if self._include_image_descriptions and not description.strip():
                continue
            candidates.append({"url": sanitize_url(url), "description": description})

        if not self._validate_images or not candidates:
            return candidates

        checks = await asyncio.gather(*(self._is_valid_image_url(image["url"]) for image in candidates))
        return [image for image, ok in zip(candidates, checks) if ok]

    async def _is_valid_image_url(self, url: str) -> bool:
        try:
            async with self._http_client(timeout=5.0) as client:
                response = await client.head(url, follow_redirects=True)
        except httpx.HTTPError:
            return False
        return response.is_success and response.headers.get("content-type", "").startswith("image/")
