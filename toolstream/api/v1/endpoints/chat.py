# The module is to define the API endpoints for chat interactions.
# Date: 2025-06-14
# Version: 0.2.0

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from toolstream.core.config import Settings, get_settings
from toolstream.core.orchestrator import GenerationConfig, Orchestrator
from toolstream.core.tool_groups import get_group
from toolstream.core.tool_registry import ToolRegistry, get_tool_registry
from toolstream.core.transport import SSE_HEADERS, ChatStream, StreamRegistry, get_stream_registry
from toolstream.models.api_models import CancelResponse, ChatRequest
from toolstream.models.common import Conversation
from toolstream.services.llm_connector import GenerationEngine, get_generation_engine
from toolstream.services.rate_limiter import RateLimiter, get_rate_limiter
from toolstream.utils.logger import console

router = APIRouter()


@router.post("/")
async def stream_chat(
    body: ChatRequest,
    request: Request,
    settings: Settings = Depends(get_settings),
    registry: ToolRegistry = Depends(get_tool_registry),
    engine: GenerationEngine = Depends(get_generation_engine),
    streams: StreamRegistry = Depends(get_stream_registry),
    rate_limiter: Optional[RateLimiter] = Depends(get_rate_limiter),
):
    """
    Runs the agent loop over the posted conversation and streams its events as
    Server-Sent Events. The stream id comes back in the X-Stream-Id header.
    """
    if rate_limiter is not None:
        identifier = request.client.host if request.client else "anonymous"
        if not await rate_limiter.hit(identifier):
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Rate limit exceeded: {settings.RATE_LIMIT_REQUESTS} requests per {settings.RATE_LIMIT_WINDOW_SECONDS}s.",
            )

    group = get_group(body.group)
    config = GenerationConfig(
        model=body.model,
        temperature=body.temperature,
        top_p=body.top_p,
        max_tokens=body.max_tokens,
        tools=list(group.tools),
        system_prompt=group.render_prompt(),
        max_steps=settings.MAX_STEPS,
        time_budget=settings.TIME_BUDGET_SECONDS,
    )
    conversation = Conversation(messages=body.messages)
    orchestrator = Orchestrator(engine, registry)

    stream = ChatStream(lambda channel: orchestrator.run(conversation, config, channel))
    console.info(f"Starting stream '{stream.id}' with group '{group.name}' ({len(body.messages)} message(s)).")

    return StreamingResponse(
        streams.serve(stream),
        media_type="text/event-stream",
        headers={**SSE_HEADERS, "X-Stream-Id": stream.id},
    )


@router.post("/{stream_id}/cancel", status_code=status.HTTP_202_ACCEPTED, response_model=CancelResponse)
async def cancel_chat(stream_id: str, streams: StreamRegistry = Depends(get_stream_registry)):
    """Stops a running stream: generation and in-flight tool calls are cancelled."""
    if not streams.cancel(stream_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Stream not found or already completed",
        )
    return CancelResponse(stream_id=stream_id, cancelled=True)
