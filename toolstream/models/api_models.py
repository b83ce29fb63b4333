# The module is to define the API models for the application.
# Date: 2025-06-14
# Version: 0.2.0

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from toolstream.core.tool_groups import DEFAULT_GROUP, TOOL_GROUPS
from toolstream.models.common import Message


class ChatRequest(BaseModel):
    """
    Defines the request body for the /v1/chat endpoint.
    Attributes:
        messages (List[Message]): The conversation so far, oldest first.
        model (Optional[str]): Overrides the configured provider model.
        group (str): The tool group to activate: 'web', 'places' or 'code'.
    """
    messages: List[Message] = Field(..., min_length=1, description="The conversation history, oldest first.")
    model: Optional[str] = Field(default=None, description="Overrides the configured provider model.")
    group: str = Field(default=DEFAULT_GROUP, description="The tool group selector.")
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    top_p: Optional[float] = Field(default=None, gt=0, le=1)
    max_tokens: Optional[int] = Field(default=None, gt=0)

    @field_validator("group")
    @classmethod
    def _known_group(cls, value: str) -> str:
        if value not in TOOL_GROUPS:
            raise ValueError(f"Unknown tool group '{value}'. Available: {sorted(TOOL_GROUPS)}")
        return value


class CancelResponse(BaseModel):
    """Defines the response body for the /v1/chat/{stream_id}/cancel endpoint."""
    stream_id: str
    cancelled: bool


class ToolInfo(BaseModel):
    """
    Describes one registered tool.
    Attributes:
        name (str): The name the model calls the tool by.
        description (str): What the tool does.
        side_effect (str): 'read_only' or 'resource_mutating'.
        parameters (dict): JSON schema of the tool's arguments.
    """
    name: str
    description: str
    side_effect: str
    parameters: Dict


class ToolsResponse(BaseModel):
    """Defines the response body for the /v1/tools endpoint."""
    tools: List[ToolInfo]
    groups: Dict[str, List[str]]
