# The module is to define the API endpoint that lists the registered tools.
# Date: 2025-06-14
# Version: 0.1.0

from fastapi import APIRouter, Depends

from toolstream.core.tool_groups import TOOL_GROUPS
from toolstream.core.tool_registry import ToolRegistry, get_tool_registry
from toolstream.models.api_models import ToolInfo, ToolsResponse

router = APIRouter()


@router.get("/", response_model=ToolsResponse)
async def list_tools(registry: ToolRegistry = Depends(get_tool_registry)):
    """Lists every registered tool and, per group, the tools that are actually available."""
    tools = [
        ToolInfo(
            name=tool.name,
            description=tool.description,
            side_effect=tool.side_effect.value,
            parameters=tool.get_definition()["function"]["parameters"],
        )
        for tool in registry.tools.values()
    ]
    groups = {
        name: [tool_name for tool_name in group.tools if registry.get(tool_name) is not None]
        for name, group in TOOL_GROUPS.items()
    }
    return ToolsResponse(tools=tools, groups=groups)
