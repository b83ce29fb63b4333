# The agent loop: alternates model generation with concurrent tool execution until the model answers.
# Date: 2025-06-14
# Version: 4.0.0

import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field

from toolstream.core import events
from toolstream.core.errors import InfrastructureError
from toolstream.core.events import EventChannel, FinishReason
from toolstream.core.tool_registry import ToolOutcome, ToolRegistry
from toolstream.models.common import Conversation, Message, StructuredError, ToolCall, ToolInvocation
from toolstream.services.llm_connector import GenerationEngine
from toolstream.utils.logger import console

GENERIC_FAILURE_MESSAGE = "Something went wrong while generating the response. Please try again."


class GenerationConfig(BaseModel):
    """
    Per-request generation settings.
    Attributes:
        model (Optional[str]): Overrides the provider's configured model.
        tools (Optional[List[str]]): The active tool subset; None enables every registered tool.
        system_prompt (Optional[str]): Prepended to the history on every turn.
        max_steps (int): Maximum number of turns before the loop is cut off.
        time_budget (float): Wall-clock seconds for the whole loop.
        dedupe_tool_calls (bool): Share one execution between identical calls in a turn.
    """
    model: Optional[str] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    tools: Optional[List[str]] = None
    system_prompt: Optional[str] = None
    max_steps: int = Field(default=10, ge=1)
    time_budget: float = Field(default=120.0, gt=0)
    dedupe_tool_calls: bool = False


class RunOutcome(BaseModel):
    finish_reason: FinishReason
    steps: int = 0
    text: str = ""


class _RunState:
    """Progress of one run that must survive the loop being cancelled by the time budget."""
    def __init__(self):
        self.steps = 0
        self.turn_text: List[str] = []
        self.final_text = ""


def _parse_arguments(call: ToolCall) -> Tuple[Dict[str, Any], Optional[StructuredError]]:
    try:
        arguments = json.loads(call.arguments)
    except json.JSONDecodeError as e:
        return {}, StructuredError(error=f"Arguments for tool '{call.name}' are not valid JSON: {e}", kind="validation")
    if not isinstance(arguments, dict):
        return {}, StructuredError(error=f"Arguments for tool '{call.name}' must be a JSON object.", kind="validation")
    return arguments, None


def _fingerprint(invocation: ToolInvocation) -> str:
    return f"{invocation.tool_name}:{json.dumps(invocation.arguments, sort_keys=True, separators=(',', ':'))}"


class Orchestrator:
    """
    Runs the turn loop for one conversation and reports every step on an
    EventChannel. Tool failures are fed back to the model as data; only
    InfrastructureError aborts the run.
    """
    def __init__(self, engine: GenerationEngine, registry: ToolRegistry):
        self._engine = engine
        self._registry = registry

    async def run(self, conversation: Conversation, config: GenerationConfig, channel: EventChannel) -> RunOutcome:
        state = _RunState()
        try:
            finish_reason = await asyncio.wait_for(
                self._loop(conversation, config, channel, state),
                timeout=config.time_budget,
            )
        except asyncio.TimeoutError:
            console.warning(f"Time budget of {config.time_budget}s exhausted after {state.steps} step(s).")
            self._keep_partial_text(conversation, state)
            finish_reason = FinishReason.BUDGET_EXHAUSTED
        except InfrastructureError as e:
            console.error(f"Turn aborted by infrastructure failure: {e}")
            self._keep_partial_text(conversation, state)
            await channel.send(events.error(GENERIC_FAILURE_MESSAGE))
            finish_reason = FinishReason.ERROR
        except Exception:
            console.exception("An unexpected error occurred in the agent loop.")
            self._keep_partial_text(conversation, state)
            await channel.send(events.error(GENERIC_FAILURE_MESSAGE))
            finish_reason = FinishReason.ERROR

        await channel.send(events.stream_end(finish_reason, state.steps))
        console.success(f"Run finished with '{finish_reason.value}' after {state.steps} tool step(s).")
        return RunOutcome(finish_reason=finish_reason, steps=state.steps, text=state.final_text)

    async def _loop(self, conversation: Conversation, config: GenerationConfig, channel: EventChannel, state: _RunState) -> FinishReason:
        tool_definitions = self._registry.get_definitions(config.tools) or None

        for step in range(config.max_steps):
            turn = step + 1
            console.rule(f"Turn {turn}")
            state.turn_text = []

            chunk_iter = self._engine.stream(
                conversation.to_llm_messages(config.system_prompt),
                tools=tool_definitions,
                model=config.model,
                temperature=config.temperature,
                top_p=config.top_p,
                max_tokens=config.max_tokens,
            )
            finish_reason = "stop"
            tool_calls: List[ToolCall] = []
            async for chunk in chunk_iter:
                if chunk.text:
                    state.turn_text.append(chunk.text)
                    await channel.send(events.text_delta(turn, chunk.text))
                if chunk.finish_reason:
                    finish_reason = chunk.finish_reason
                    tool_calls = chunk.tool_calls or []

            text = "".join(state.turn_text)
            if finish_reason == FinishReason.LENGTH.value or not tool_calls:
                conversation.append(Message(role="assistant", content=text))
                state.turn_text = []
                state.final_text = text
                reason = FinishReason.LENGTH if finish_reason == FinishReason.LENGTH.value else FinishReason.STOP
                await channel.send(events.turn_end(turn, reason))
                return reason

            console.info(f"Model requested {len(tool_calls)} tool call(s): {[call.name for call in tool_calls]}")
            invocations = await self._dispatch(tool_calls, turn, config, channel)

            conversation.append(Message(role="assistant", content=text or None, tool_calls=tool_calls))
            for invocation in invocations:
                conversation.append(invocation.to_tool_message())
            state.turn_text = []
            state.steps += 1
            await channel.send(events.turn_end(turn, FinishReason.TOOL_CALLS))

        console.warning(f"Step budget of {config.max_steps} exhausted.")
        return FinishReason.BUDGET_EXHAUSTED

    async def _dispatch(self, tool_calls: List[ToolCall], turn: int, config: GenerationConfig, channel: EventChannel) -> List[ToolInvocation]:
        """
        Fans the calls out as concurrent tasks and waits for all of them.
        Every start frame is sent before any call runs; result frames follow in
        completion order. An InfrastructureError cancels the calls still running.
        """
        planned: List[Tuple[ToolInvocation, Optional[StructuredError]]] = []
        for call in tool_calls:
            arguments, rejection = _parse_arguments(call)
            if config.tools is not None and call.name not in config.tools:
                rejection = StructuredError(error=f"Tool '{call.name}' is not available in this conversation.", kind="unknown_tool")
            invocation = ToolInvocation(id=call.id, tool_name=call.name, arguments=arguments)
            planned.append((invocation, rejection))
            await channel.send(events.tool_call_start(turn, invocation))

        shared: Dict[str, asyncio.Task] = {}
        calls: List[asyncio.Task] = []
        for invocation, rejection in planned:
            if rejection is not None:
                source: Union[StructuredError, asyncio.Task] = rejection
            else:
                key = _fingerprint(invocation) if config.dedupe_tool_calls else invocation.id
                if key not in shared:
                    shared[key] = asyncio.create_task(self._registry.invoke(invocation.tool_name, invocation.arguments))
                elif config.dedupe_tool_calls:
                    console.info(f"Call '{invocation.id}' shares the execution of an identical '{invocation.tool_name}' call.")
                source = shared[key]
            calls.append(asyncio.create_task(self._settle(invocation, source, turn, channel)))

        all_tasks = calls + list(shared.values())
        try:
            done, _ = await asyncio.wait(calls, return_when=asyncio.FIRST_EXCEPTION)
            for task in done:
                if task.exception() is not None:
                    raise task.exception()
        finally:
            for task in all_tasks:
                if not task.done():
                    task.cancel()
            await asyncio.wait(all_tasks)

        return [invocation for invocation, _ in planned]

    async def _settle(self, invocation: ToolInvocation, source: Union[StructuredError, "asyncio.Task[ToolOutcome]"], turn: int, channel: EventChannel):
        invocation.start()
        if isinstance(source, StructuredError):
            console.warning(f"Rejected call to '{invocation.tool_name}': {source.error}")
            outcome: ToolOutcome = source
        else:
            try:
                # shield keeps a shared execution alive for its other callers
                outcome = await asyncio.shield(source)
            except InfrastructureError as e:
                invocation.fail(StructuredError(error=str(e), kind="infrastructure"))
                await channel.send(events.tool_call_result(turn, invocation))
                raise

        if isinstance(outcome, StructuredError):
            invocation.fail(outcome)
        else:
            invocation.complete(outcome)
        await channel.send(events.tool_call_result(turn, invocation))

    @staticmethod
    def _keep_partial_text(conversation: Conversation, state: _RunState):
        text = "".join(state.turn_text)
        if text:
            conversation.append(Message(role="assistant", content=text))
            state.final_text = text
            state.turn_text = []
