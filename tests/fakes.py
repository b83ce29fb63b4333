"""In-process stand-ins for the model, the tools and the sandbox provider."""

import asyncio
import base64
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type, Union

from pydantic import BaseModel, Field

from toolstream.core.config import ProviderCredentials
from toolstream.core.errors import SandboxProvisioningError, ToolError
from toolstream.models.common import ToolCall
from toolstream.services.artifact_store import ArtifactStore
from toolstream.services.llm_connector import GenerationChunk, GenerationEngine
from toolstream.tools.base_tool import BaseTool, SideEffect

# =============================================================================
# Generation engine
# =============================================================================


@dataclass
class Pause:
    """Makes the scripted engine sleep between chunks."""
    seconds: float


def text_turn(*parts: str, finish_reason: str = "stop") -> List[Any]:
    return [GenerationChunk(text=part) for part in parts] + [GenerationChunk(finish_reason=finish_reason)]


def call(name: str, arguments: Union[Dict[str, Any], str], call_id: Optional[str] = None) -> ToolCall:
    raw = arguments if isinstance(arguments, str) else json.dumps(arguments)
    return ToolCall(id=call_id or f"call_{name}", function={"name": name, "arguments": raw})


def tool_turn(*calls: ToolCall, text: Optional[str] = None) -> List[Any]:
    chunks: List[Any] = [GenerationChunk(text=text)] if text else []
    return chunks + [GenerationChunk(finish_reason="tool_calls", tool_calls=list(calls))]


class ScriptedEngine(GenerationEngine):
    """Replays one scripted list of chunks per turn and records every request."""

    def __init__(self, turns: List[Any]):
        self._turns = list(turns)
        self.requests: List[Dict[str, Any]] = []

    async def stream(self, messages, tools=None, model=None, temperature=None, top_p=None, max_tokens=None):
        self.requests.append({"messages": messages, "tools": tools, "model": model})
        turn = self._turns.pop(0) if self._turns else text_turn()
        if isinstance(turn, Exception):
            raise turn
        for item in turn:
            if isinstance(item, Pause):
                await asyncio.sleep(item.seconds)
            else:
                yield item


# =============================================================================
# Tools
# =============================================================================


def fake_credentials(**overrides: Any) -> ProviderCredentials:
    values = dict(
        tavily_api_key="tvly-test",
        firecrawl_api_key="fc-test",
        firecrawl_base_url="https://firecrawl.test",
        openweather_api_key="ow-test",
        google_maps_api_key="gm-test",
        azure_translator_key="az-test",
        azure_translator_location="westeurope",
        e2b_api_key="e2b-test",
        blob_token="blob-test",
        blob_api_url="https://blob.test",
        artifact_namespace="charts",
    )
    values.update(overrides)
    return ProviderCredentials(**values)


class EchoInput(BaseModel):
    text: str = Field(..., min_length=1)
    times: int = Field(default=1, ge=1, le=3)


class EchoTool(BaseTool):
    name: str = "echo"
    description: str = "Repeats the text."
    args_schema: Type[BaseModel] = EchoInput

    def __init__(self, credentials: ProviderCredentials, transport=None):
        super().__init__(credentials, transport)
        self.calls: List[Dict[str, Any]] = []

    async def execute(self, text: str, times: int = 1) -> Dict[str, Any]:
        self.calls.append({"text": text, "times": times})
        await asyncio.sleep(0)
        return {"echo": " ".join([text] * times)}


class SlowInput(BaseModel):
    label: str
    delay: float = Field(default=0.05, ge=0)


class SlowTool(BaseTool):
    name: str = "slow"
    description: str = "Sleeps, then returns its label."
    args_schema: Type[BaseModel] = SlowInput

    def __init__(self, credentials: ProviderCredentials, transport=None):
        super().__init__(credentials, transport)
        self.active = 0
        self.max_active = 0
        self.finished: List[str] = []
        self.cancelled: List[str] = []

    async def execute(self, label: str, delay: float = 0.05) -> Dict[str, Any]:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self.cancelled.append(label)
            raise
        finally:
            self.active -= 1
        self.finished.append(label)
        return {"label": label}


class FlakyTool(BaseTool):
    name: str = "flaky"
    description: str = "Always fails upstream."
    args_schema: Type[BaseModel] = EchoInput

    async def execute(self, text: str, times: int = 1) -> Dict[str, Any]:
        raise ToolError("upstream provider is down")


class SandboxDownTool(BaseTool):
    name: str = "sandbox_down"
    description: str = "Fails to provision its sandbox."
    args_schema: Type[BaseModel] = EchoInput
    side_effect: SideEffect = SideEffect.RESOURCE_MUTATING

    async def execute(self, text: str, times: int = 1) -> Dict[str, Any]:
        await asyncio.sleep(0.01)
        raise SandboxProvisioningError("no capacity")


# =============================================================================
# Sandbox provider and storage
# =============================================================================


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


@dataclass
class FakeResult:
    text: Optional[str] = None
    png: Optional[str] = None
    jpeg: Optional[str] = None
    svg: Optional[str] = None


@dataclass
class FakeLogs:
    stdout: List[str] = field(default_factory=list)
    stderr: List[str] = field(default_factory=list)


@dataclass
class FakeError:
    name: str
    value: str
    traceback: str


@dataclass
class FakeExecution:
    results: List[FakeResult] = field(default_factory=list)
    logs: FakeLogs = field(default_factory=FakeLogs)
    error: Optional[FakeError] = None


class FakeSandbox:
    def __init__(self, execution: Optional[FakeExecution] = None, run_delay: float = 0.0, run_error: Optional[Exception] = None):
        self.execution = execution or FakeExecution()
        self.run_delay = run_delay
        self.run_error = run_error
        self.codes: List[str] = []
        self.killed = False

    async def run_code(self, code: str, timeout: Optional[float] = None) -> FakeExecution:
        self.codes.append(code)
        if self.run_delay:
            await asyncio.sleep(self.run_delay)
        if self.run_error is not None:
            raise self.run_error
        return self.execution

    async def kill(self):
        self.killed = True


class FakeArtifactStore(ArtifactStore):
    def __init__(self, delay: float = 0.0, error: Optional[Exception] = None):
        super().__init__(token="blob-test", namespace="charts")
        self.delay = delay
        self.error = error
        self.uploads: List[Dict[str, Any]] = []
        self.aborted: List[str] = []

    async def put(self, pathname: str, data: bytes, content_type: str) -> str:
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.aborted.append(pathname)
            raise
        if self.error is not None:
            raise self.error
        self.uploads.append({"pathname": pathname, "data": data, "content_type": content_type})
        return f"https://blob.test/{pathname}"
