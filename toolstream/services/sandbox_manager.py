# This module owns the lifecycle of ephemeral code sandboxes and the artifacts they produce.
# Date: 2025-06-14
# Version: 0.1.0

import asyncio
import base64
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, Tuple

from e2b_code_interpreter import AsyncSandbox, TimeoutException
from pydantic import BaseModel, Field

from toolstream.core.config import ProviderCredentials
from toolstream.core.errors import SandboxProvisioningError, ToolError
from toolstream.services.artifact_store import CONTENT_TYPES, ArtifactStore
from toolstream.utils.logger import console

IMAGE_FORMATS = ("png", "jpeg", "svg")

SandboxFactory = Callable[[], Awaitable[Any]]


class Artifact(BaseModel):
    """A persisted image output with its durable URL."""
    format: str
    url: str


class CodeExecutionResult(BaseModel):
    """
    What the programming tool hands back to the model.
    Attributes:
        message (str): Result text, stdout, stderr and any error trace, in that order.
        images (List[Artifact]): One entry per image that was persisted in time.
    """
    message: str
    images: List[Artifact] = Field(default_factory=list)


class SessionState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    COLLECTED = "collected"
    PERSISTED = "persisted"
    CLOSED = "closed"


class SandboxSession:
    """
    One provider sandbox, scoped to exactly one code-execution invocation.
    """
    def __init__(self, sandbox: Any, run_timeout: float):
        self._sandbox = sandbox
        self._run_timeout = run_timeout
        self.state = SessionState.CREATED

    async def run(self, code: str) -> Any:
        self.state = SessionState.RUNNING
        try:
            return await self._sandbox.run_code(code, timeout=self._run_timeout)
        except TimeoutException as e:
            raise ToolError(f"Code execution timed out after {self._run_timeout:g}s: {e}") from e
        except Exception as e:
            raise SandboxProvisioningError(f"Sandbox execution failed: {e}") from e

    async def close(self):
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        try:
            await self._sandbox.kill()
            console.info("Sandbox session torn down.")
        except Exception as e:
            # The provider reaps idle sandboxes on its own; a failed kill is not worth failing the call.
            console.warning(f"Failed to kill sandbox: {e}")


def collect_outputs(execution: Any) -> Tuple[str, List[Tuple[str, bytes]]]:
    """
    Splits an execution into the message text and the raw image outputs.
    Results carrying an image contribute the image, not their text repr.
    """
    sections: List[str] = []
    images: List[Tuple[str, bytes]] = []

    for result in execution.results:
        rendered = []
        for fmt in IMAGE_FORMATS:
            data = getattr(result, fmt, None)
            if data and isinstance(data, str):
                # svg comes back as markup, the raster formats as base64
                rendered.append((fmt, data.encode("utf-8") if fmt == "svg" else base64.b64decode(data)))
        if rendered:
            images.extend(rendered)
        elif result.text:
            sections.append(result.text)

    stdout = "".join(execution.logs.stdout)
    stderr = "".join(execution.logs.stderr)
    if stdout:
        sections.append(stdout)
    if stderr:
        sections.append(stderr)

    error = execution.error
    if error is not None:
        sections.append(f"{error.name}: {error.value}\n{error.traceback}")

    message = "\n".join(section.rstrip("\n") for section in sections if section.strip())
    return message, images


class SandboxManager:
    """
    Runs model-supplied code through create -> run -> collect -> persist -> teardown.
    Teardown happens on every exit path, cancellation included.
    """
    def __init__(
        self,
        artifact_store: ArtifactStore,
        sandbox_factory: Optional[SandboxFactory] = None,
        api_key: Optional[str] = None,
        template: Optional[str] = None,
        run_timeout: float = 60.0,
        upload_timeout: float = 2.0,
    ):
        self._artifact_store = artifact_store
        self._sandbox_factory = sandbox_factory or self._create_e2b_sandbox
        self._api_key = api_key
        self._template = template
        self._run_timeout = run_timeout
        self._upload_timeout = upload_timeout

    @classmethod
    def from_credentials(cls, credentials: ProviderCredentials) -> "SandboxManager":
        store = ArtifactStore(
            token=credentials.blob_token,
            api_url=credentials.blob_api_url,
            namespace=credentials.artifact_namespace,
        )
        return cls(
            artifact_store=store,
            api_key=credentials.e2b_api_key,
            template=credentials.sandbox_template_id,
            run_timeout=credentials.sandbox_run_timeout,
            upload_timeout=credentials.artifact_upload_timeout,
        )

    async def _create_e2b_sandbox(self) -> AsyncSandbox:
        return await AsyncSandbox.create(template=self._template, api_key=self._api_key)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[SandboxSession]:
        try:
            sandbox = await self._sandbox_factory()
        except Exception as e:
            raise SandboxProvisioningError(f"Could not provision a sandbox: {e}") from e
        session = SandboxSession(sandbox, self._run_timeout)
        console.info("Sandbox session created.")
        try:
            yield session
        finally:
            await asyncio.shield(session.close())

    async def execute(self, code: str) -> CodeExecutionResult:
        async with self.session() as session:
            execution = await session.run(code)
            message, raw_images = collect_outputs(execution)
            session.state = SessionState.COLLECTED
            if execution.error is not None:
                console.warning(f"Executed code raised {execution.error.name}: {execution.error.value}")

            images = await self._persist(raw_images)
            session.state = SessionState.PERSISTED
        return CodeExecutionResult(message=message, images=images)

    async def _persist(self, raw_images: List[Tuple[str, bytes]]) -> List[Artifact]:
        artifacts = []
        for fmt, data in raw_images:
            pathname = self._artifact_store.build_path(fmt)
            try:
                url = await asyncio.wait_for(
                    self._artifact_store.put(pathname, data, CONTENT_TYPES[fmt]),
                    timeout=self._upload_timeout,
                )
            except asyncio.TimeoutError:
                console.info(f"Canceled put request for '{pathname}' due to timeout; dropping artifact.")
                continue
            artifacts.append(Artifact(format=fmt, url=url))
        return artifacts
