# The module is to define the generation engine that streams model output from OpenAI-compatible providers.
# Date: 2025-06-14
# Version: 0.2.0

from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, AsyncIterator, Dict, List, Optional
from uuid import uuid4

from openai import APIError, AsyncOpenAI
from pydantic import BaseModel

from toolstream.core.config import Settings, get_settings
from toolstream.core.errors import GenerationError
from toolstream.models.common import ToolCall
from toolstream.utils.logger import console


class GenerationChunk(BaseModel):
    """
    One piece of a streamed generation.
    Text chunks carry `text`; the last chunk carries `finish_reason` and the
    fully assembled `tool_calls`, if the model requested any.
    """
    text: Optional[str] = None
    finish_reason: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None


class GenerationEngine(ABC):
    """The model side of a turn: messages and tool definitions in, chunks out."""

    @abstractmethod
    def stream(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        top_p: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[GenerationChunk]:
        """
        Streams one generation. Implementations raise GenerationError when the
        provider fails; cancelling the consuming task aborts the request.
        """


def _api_error_message(e: APIError) -> str:
    message = str(e.body) if e.body is not None else e.message or "Unknown API Error"
    if isinstance(e.body, dict):
        message = e.body.get("message", "Unknown API Error")
    return message


class OpenAIGenerationEngine(GenerationEngine):
    """
    Streams chat completions and reassembles the tool-call fragments the API
    sends piecewise (keyed by index) into complete ToolCall records.
    """
    def __init__(self, client: AsyncOpenAI, model: str, temperature: float = 0.0):
        self._client = client
        self._model = model
        self._temperature = temperature

    @classmethod
    def from_settings(cls, settings: Settings, provider: Optional[str] = None) -> "OpenAIGenerationEngine":
        config = settings.llm_provider_config(provider)
        if not config["api_key"]:
            raise ValueError(f"No API key configured for LLM provider '{provider or settings.LLM_PROVIDER}'.")
        client = AsyncOpenAI(api_key=config["api_key"], base_url=config["base_url"])
        return cls(client, config["model"])

    async def stream(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        top_p: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[GenerationChunk]:
        request_params: Dict[str, Any] = {
            "model": model or self._model,
            "messages": messages,
            "temperature": self._temperature if temperature is None else temperature,
            "stream": True,
        }
        if top_p is not None:
            request_params["top_p"] = top_p
        if max_tokens is not None:
            request_params["max_tokens"] = max_tokens
        if tools:
            request_params["tools"] = tools
            request_params["tool_choice"] = "auto"

        fragments: Dict[int, Dict[str, str]] = {}
        finish_reason: Optional[str] = None
        try:
            response = await self._client.chat.completions.create(**request_params)
            async for chunk in response:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta
                if delta is not None:
                    if delta.content:
                        yield GenerationChunk(text=delta.content)
                    for fragment in delta.tool_calls or []:
                        entry = fragments.setdefault(fragment.index, {"id": "", "name": "", "arguments": ""})
                        if fragment.id:
                            entry["id"] = fragment.id
                        if fragment.function is not None:
                            entry["name"] += fragment.function.name or ""
                            entry["arguments"] += fragment.function.arguments or ""
                if choice.finish_reason:
                    finish_reason = choice.finish_reason
        except APIError as e:
            message = _api_error_message(e)
            console.error(f"An API error occurred: {message}")
            raise GenerationError(f"Error from LLM provider: {message}") from e

        tool_calls = [
            ToolCall(
                id=entry["id"] or f"call_{uuid4().hex[:12]}",
                function={"name": entry["name"], "arguments": entry["arguments"]},
            )
            for _, entry in sorted(fragments.items())
        ]
        yield GenerationChunk(finish_reason=finish_reason or "stop", tool_calls=tool_calls or None)


@lru_cache
def get_generation_engine() -> GenerationEngine:
    return OpenAIGenerationEngine.from_settings(get_settings())
