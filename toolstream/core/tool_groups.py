# Maps the request's tool-group selector to an active tool subset and system prompt.
# Date: 2025-06-14
# Version: 0.1.0

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Tuple

_TRANSLATION_POLICY = (
    "Only use `text_translate` when the user explicitly asks for a translation; "
    "never translate search results or other content on your own initiative."
)

_CALL_POLICY = (
    "Call each tool at most once per set of arguments; do not repeat an identical "
    "call in the same step. When a tool returns an `error`, explain it or retry with "
    "corrected arguments."
)


@dataclass(frozen=True)
class ToolGroup:
    name: str
    tools: Tuple[str, ...]
    system_prompt: str

    def render_prompt(self) -> str:
        today = datetime.now(timezone.utc).strftime("%A, %B %d, %Y")
        return f"{self.system_prompt}\n\nToday's date is {today}.\n{_CALL_POLICY}"


TOOL_GROUPS: Dict[str, ToolGroup] = {
    "web": ToolGroup(
        name="web",
        tools=(
            "web_search",
            "retrieve",
            "get_weather_data",
            "programming",
            "nearby_search",
            "text_search",
            "find_place",
            "text_translate",
        ),
        system_prompt=(
            "You are an AI web search assistant. Answer the user's question using the "
            "available tools, cite the URLs you relied on, and keep the answer concise.\n"
            + _TRANSLATION_POLICY
        ),
    ),
    "places": ToolGroup(
        name="places",
        tools=("nearby_search", "text_search", "find_place", "get_weather_data"),
        system_prompt=(
            "You are a local guide. Resolve places with the places tools and report "
            "names, addresses and distances from the requested location."
        ),
    ),
    "code": ToolGroup(
        name="code",
        tools=("programming",),
        system_prompt=(
            "You are a programming assistant. Use the `programming` tool to run Python "
            "code; print the values you need to see and render charts with matplotlib."
        ),
    ),
}

DEFAULT_GROUP = "web"


def get_group(name: str) -> ToolGroup:
    """Returns the group called `name`; raises KeyError for unknown selectors."""
    try:
        return TOOL_GROUPS[name]
    except KeyError:
        raise KeyError(f"Unknown tool group '{name}'. Available: {sorted(TOOL_GROUPS)}") from None
