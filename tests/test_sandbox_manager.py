"""Unit tests for the code sandbox lifecycle and artifact persistence."""

import asyncio
import json

import httpx
import pytest
from e2b_code_interpreter import TimeoutException

from fakes import (
    FakeArtifactStore,
    FakeError,
    FakeExecution,
    FakeLogs,
    FakeResult,
    FakeSandbox,
    ScriptedEngine,
    b64,
    call,
    fake_credentials,
    text_turn,
    tool_turn,
)
from toolstream.core.errors import ArtifactStorageError, SandboxProvisioningError, ToolError
from toolstream.core.events import EventChannel, EventType, FinishReason
from toolstream.core.orchestrator import GenerationConfig, Orchestrator
from toolstream.core.tool_registry import ToolRegistry
from toolstream.models.common import Conversation, Message
from toolstream.services.artifact_store import ArtifactStore
from toolstream.services.sandbox_manager import SandboxManager, collect_outputs
from toolstream.tools.programming_tool import ProgrammingTool


def manager_for(sandbox, store=None, upload_timeout=2.0):
    async def factory():
        return sandbox

    return SandboxManager(store or FakeArtifactStore(), sandbox_factory=factory, upload_timeout=upload_timeout)


class TestExecute:
    """create -> run -> collect -> persist -> teardown."""

    @pytest.mark.asyncio
    async def test_one_image_yields_one_artifact(self) -> None:
        """One rendered image gives one URL; the message is the stdout in emission order."""
        execution = FakeExecution(
            results=[FakeResult(text="<Figure size 640x480 with 1 Axes>", png=b64(b"PNGDATA"))],
            logs=FakeLogs(stdout=["mean: 4.5\n", "max: 9\n"]),
        )
        sandbox = FakeSandbox(execution)
        store = FakeArtifactStore()

        result = await manager_for(sandbox, store).execute("import matplotlib")

        assert len(result.images) == 1
        assert result.images[0].format == "png"
        assert result.images[0].url.startswith("https://blob.test/charts/image-")
        assert result.images[0].url.endswith(".png")
        assert result.message == "mean: 4.5\nmax: 9"
        assert store.uploads[0]["data"] == b"PNGDATA"
        assert store.uploads[0]["content_type"] == "image/png"
        assert sandbox.codes == ["import matplotlib"]
        assert sandbox.killed

    @pytest.mark.asyncio
    async def test_runtime_error_returns_trace_without_images(self) -> None:
        """An exception in the user's code is part of the result, and the session is torn down."""
        execution = FakeExecution(
            logs=FakeLogs(stdout=["before\n"]),
            error=FakeError(
                name="ZeroDivisionError",
                value="division by zero",
                traceback="Traceback (most recent call last):\n  Cell In[1], line 2\n    1 / 0\nZeroDivisionError: division by zero",
            ),
        )
        sandbox = FakeSandbox(execution)

        result = await manager_for(sandbox).execute("print('before')\n1 / 0")

        assert result.images == []
        assert "ZeroDivisionError: division by zero" in result.message
        assert "Traceback" in result.message
        assert result.message.startswith("before")
        assert sandbox.killed

    @pytest.mark.asyncio
    async def test_slow_upload_drops_artifact(self) -> None:
        """An upload exceeding its timeout is aborted and the image dropped, not the call failed."""
        execution = FakeExecution(results=[FakeResult(png=b64(b"PNG"))], logs=FakeLogs(stdout=["ok\n"]))
        sandbox = FakeSandbox(execution)
        store = FakeArtifactStore(delay=1.0)

        result = await manager_for(sandbox, store, upload_timeout=0.05).execute("plot()")

        assert result.images == []
        assert result.message == "ok"
        assert len(store.aborted) == 1
        assert sandbox.killed

    @pytest.mark.asyncio
    async def test_storage_failure_is_infrastructure_error(self) -> None:
        execution = FakeExecution(results=[FakeResult(png=b64(b"PNG"))])
        sandbox = FakeSandbox(execution)
        store = FakeArtifactStore(error=ArtifactStorageError("bucket unavailable"))

        with pytest.raises(ArtifactStorageError):
            await manager_for(sandbox, store).execute("plot()")
        assert sandbox.killed

    @pytest.mark.asyncio
    async def test_provisioning_failure(self) -> None:
        """Failing to create a sandbox is an infrastructure error."""
        async def factory():
            raise RuntimeError("quota exceeded")

        manager = SandboxManager(FakeArtifactStore(), sandbox_factory=factory)

        with pytest.raises(SandboxProvisioningError):
            await manager.execute("print(1)")

    @pytest.mark.asyncio
    async def test_connection_failure_during_run_tears_down(self) -> None:
        sandbox = FakeSandbox(run_error=ConnectionError("sandbox went away"))

        with pytest.raises(SandboxProvisioningError):
            await manager_for(sandbox).execute("print(1)")
        assert sandbox.killed

    @pytest.mark.asyncio
    async def test_run_timeout_is_a_tool_error(self) -> None:
        """Code outliving the run timeout fails the call, not the sandbox infrastructure."""
        sandbox = FakeSandbox(run_error=TimeoutException("Execution timed out"))

        with pytest.raises(ToolError, match="timed out after 60s"):
            await manager_for(sandbox).execute("while True: pass")
        assert sandbox.killed

    @pytest.mark.asyncio
    async def test_cancellation_tears_down(self) -> None:
        """Cancelling the calling task still kills the sandbox."""
        sandbox = FakeSandbox(run_delay=5)
        task = asyncio.create_task(manager_for(sandbox).execute("while True: pass"))
        await asyncio.sleep(0.05)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert sandbox.killed


class TestCollectOutputs:
    """Ordering of the message sections and image decoding."""

    def test_sections_are_ordered(self) -> None:
        execution = FakeExecution(
            results=[FakeResult(text="42")],
            logs=FakeLogs(stdout=["out\n"], stderr=["warn\n"]),
            error=FakeError(name="ValueError", value="bad", traceback="Traceback ...\nValueError: bad"),
        )

        message, images = collect_outputs(execution)

        assert message == "42\nout\nwarn\nValueError: bad\nTraceback ...\nValueError: bad"
        assert images == []

    def test_svg_is_kept_as_markup(self) -> None:
        execution = FakeExecution(results=[FakeResult(svg="<svg></svg>"), FakeResult(jpeg=b64(b"JPG"))])

        _, images = collect_outputs(execution)

        assert images == [("svg", b"<svg></svg>"), ("jpeg", b"JPG")]


class TestProgrammingTool:
    """The programming tool through the registry contract."""

    @pytest.mark.asyncio
    async def test_result_shape(self) -> None:
        execution = FakeExecution(results=[FakeResult(png=b64(b"PNG"))], logs=FakeLogs(stdout=["3\n"]))
        sandbox = FakeSandbox(execution)
        tool = ProgrammingTool(fake_credentials(), sandbox_manager=manager_for(sandbox))
        registry = ToolRegistry([tool])

        outcome = await registry.invoke("programming", {"code": "print(1 + 2)"})

        assert outcome["message"] == "3"
        assert [image["format"] for image in outcome["images"]] == ["png"]
        assert sandbox.killed

    @pytest.mark.asyncio
    async def test_timed_out_code_is_fed_back_to_the_model(self) -> None:
        """The loop keeps going after a run timeout; the model sees a provider error."""
        sandbox = FakeSandbox(run_error=TimeoutException("Execution timed out"))
        tool = ProgrammingTool(fake_credentials(), sandbox_manager=manager_for(sandbox))
        engine = ScriptedEngine([
            tool_turn(call("programming", {"code": "while True: pass"})),
            text_turn("That code never finished."),
        ])
        conversation = Conversation(messages=[Message(role="user", content="run it")])
        channel = EventChannel()

        outcome = await Orchestrator(engine, ToolRegistry([tool])).run(conversation, GenerationConfig(), channel)
        channel.close()
        events = [event async for event in channel]

        assert outcome.finish_reason is FinishReason.STOP
        assert outcome.steps == 1
        assert not [event for event in events if event.type is EventType.ERROR]
        payload = json.loads(engine.requests[1]["messages"][-1]["content"])
        assert payload["kind"] == "provider"
        assert "timed out" in payload["error"]
        assert sandbox.killed

    def test_requires_sandbox_key(self) -> None:
        with pytest.raises(ValueError):
            ProgrammingTool(fake_credentials(e2b_api_key=None))


class TestArtifactStore:
    """The blob upload client."""

    @pytest.mark.asyncio
    async def test_put_returns_url(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = request.content
            return httpx.Response(200, json={"url": "https://cdn.test/charts/image-1.png", "pathname": "charts/image-1.png"})

        store = ArtifactStore("blob-test", api_url="https://blob.test", namespace="charts", transport=httpx.MockTransport(handler))

        url = await store.put("charts/image-1.png", b"PNG", "image/png")

        assert url == "https://cdn.test/charts/image-1.png"
        assert seen["method"] == "PUT"
        assert seen["url"] == "https://blob.test/charts/image-1.png"
        assert seen["headers"]["authorization"] == "Bearer blob-test"
        assert seen["headers"]["x-content-type"] == "image/png"
        assert seen["body"] == b"PNG"

    @pytest.mark.asyncio
    async def test_error_status_raises_storage_error(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(503, text="unavailable"))
        store = ArtifactStore("blob-test", api_url="https://blob.test", transport=transport)

        with pytest.raises(ArtifactStorageError):
            await store.put("charts/a.png", b"PNG", "image/png")

    @pytest.mark.asyncio
    async def test_missing_token_raises_storage_error(self) -> None:
        with pytest.raises(ArtifactStorageError):
            await ArtifactStore(None).put("charts/a.png", b"PNG", "image/png")

    def test_path_layout(self) -> None:
        path = ArtifactStore("t", namespace="charts/").build_path("svg")

        prefix, name = path.split("/")
        assert prefix == "charts"
        assert name.startswith("image-") and name.endswith(".svg")
