# The module is to define the common model for the application.
# Date: 2025-06-11
# Version: 0.2.0

import json
from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from toolstream.core.errors import InvalidStateTransition

Role = Literal["system", "user",
               "assistant", "tool"]


class Attachment(BaseModel):
    """
    A file the user attached to a message.
    Attributes:
        name (str): The original filename.
        content_type (str): The MIME type, e.g. 'image/png'.
        url (str): Where the model can fetch the content from.
    """
    name: str = Field(..., description="The original filename.")
    content_type: str = Field(..., description="The MIME type of the attachment.")
    url: str = Field(..., description="A URL the model can read the attachment from.")


class ToolCall(BaseModel):
    """
    Represents a tool call made by the assistant, including the function name and arguments.
    Attributes:
        id (str): The unique ID for the tool call.
        function (dict): The function name and arguments (a JSON string, as the model sent it).
        type (str): The type of the tool call, e.g., 'function'.
    """
    id: str = Field(..., description="The unique ID for the tool call.")
    function: dict = Field(..., description="The function name and arguments.")
    type: str = Field(default="function", description="The type of the tool call, e.g., 'function'.")

    @property
    def name(self) -> str:
        return self.function.get("name", "")

    @property
    def arguments(self) -> str:
        return self.function.get("arguments") or "{}"


class Message(BaseModel):
    """
    Represents a message in the conversation, which can be from the system, user, assistant, or tool.
    Attributes:
        role (Role): The role of the message sender (system, user, assistant, or tool).
        content (Optional[str]): The content of the message.
        attachments (Optional[List[Attachment]]): Files attached to a user message.
        tool_calls (Optional[List[ToolCall]]): A list of tool calls requested by the assistant.
        tool_call_id (Optional[str]): The ID of the tool call this message is a result of.
    """
    role: Role = Field(..., description="The role of the message sender.")
    content: Optional[str] = Field(default=None, description="The content of the message.")
    attachments: Optional[List[Attachment]] = Field(default=None, description="Files attached to the message.")
    tool_calls: Optional[List[ToolCall]] = Field(default=None, description="A list of tool calls requested by the assistant.")
    tool_call_id: Optional[str] = Field(default=None, description="The ID of the tool call this message is a result of.")

    def to_llm_message(self) -> Dict[str, Any]:
        """Renders the message in the OpenAI chat-completions wire format."""
        if self.role == "user" and self.attachments:
            parts: List[Dict[str, Any]] = [{"type": "text", "text": self.content or ""}]
            for attachment in self.attachments:
                if attachment.content_type.startswith("image/"):
                    parts.append({"type": "image_url", "image_url": {"url": attachment.url}})
                else:
                    parts.append({"type": "text", "text": f"[Attached file '{attachment.name}': {attachment.url}]"})
            return {"role": "user", "content": parts}
        return self.model_dump(exclude_none=True, exclude={"attachments"})


class Conversation(BaseModel):
    """
    The ordered, append-only history of one conversation.
    Tool result messages always directly follow the assistant message that
    requested them, in request order.
    """
    messages: List[Message] = Field(default_factory=list, description="The history of messages in the conversation.")

    def append(self, message: Message) -> Message:
        self.messages.append(message)
        return message

    def to_llm_messages(self, system_prompt: Optional[str] = None) -> List[Dict[str, Any]]:
        rendered = [message.to_llm_message() for message in self.messages]
        if system_prompt:
            rendered.insert(0, {"role": "system", "content": system_prompt})
        return rendered


class InvocationState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class StructuredError(BaseModel):
    """
    A tool failure expressed as data, so the model can explain or retry.
    Attributes:
        error (str): Human-readable description of what went wrong.
        kind (str): One of 'validation', 'unknown_tool', 'provider', 'infrastructure'.
        details (Optional[list]): Per-field validation errors, when relevant.
    """
    error: str
    kind: Literal["validation", "unknown_tool", "provider", "infrastructure"]
    details: Optional[List[Dict[str, Any]]] = None


class ToolInvocation(BaseModel):
    """
    One concrete, argument-bound call to a tool and its outcome.
    The state only moves forward: pending -> running -> completed | failed.
    """
    id: str = Field(default_factory=lambda: f"call_{uuid4().hex[:12]}")
    tool_name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    state: InvocationState = InvocationState.PENDING
    result: Optional[Dict[str, Any]] = None
    error: Optional[StructuredError] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (InvocationState.COMPLETED, InvocationState.FAILED)

    def start(self):
        if self.state is not InvocationState.PENDING:
            raise InvalidStateTransition(f"Invocation '{self.id}' cannot start from state '{self.state.value}'.")
        self.state = InvocationState.RUNNING

    def complete(self, result: Dict[str, Any]):
        self._finish()
        self.result = result
        self.state = InvocationState.COMPLETED

    def fail(self, error: StructuredError):
        self._finish()
        self.error = error
        self.state = InvocationState.FAILED

    def _finish(self):
        if self.is_terminal:
            raise InvalidStateTransition(f"Invocation '{self.id}' is already {self.state.value}.")

    def payload(self) -> Dict[str, Any]:
        """The result or the structured error, whichever was recorded."""
        if self.error is not None:
            return self.error.model_dump(exclude_none=True)
        return self.result or {}

    def to_tool_message(self) -> Message:
        return Message(role="tool", tool_call_id=self.id, content=json.dumps(self.payload(), default=str))
