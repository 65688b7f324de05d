"""ヘルプツールの定義。"""

import json
from typing import Any

from plumb.config import ServerConfig
from plumb.tools.registry import ToolRegistry

_TIPS = [
    "All tools have defaults - most can be called without arguments",
    "Use analyze_project_context first to understand the codebase",
    "get_error_context works best with the exact error message",
    "Suggestions are confidence-ranked - start with the high confidence ones",
]


def register_help_tools(registry: ToolRegistry, config: ServerConfig) -> None:
    """ヘルプツールを登録する。"""

    @registry.tool(name="help", examples=[{"description": "Get general help", "arguments": {}}])
    async def help_tool() -> dict[str, Any]:
        """Get usage information for every available tool."""
        tools = []
        for definition in registry.definitions():
            example = definition.examples[0].arguments if definition.examples else {}
            tools.append(
                {
                    "name": definition.name,
                    "purpose": definition.description.splitlines()[0] if definition.description else "",
                    "quick_start": json.dumps({"name": definition.name, "arguments": example}),
                }
            )
        return {
            "success": True,
            "server_info": {
                "name": config.server_name,
                "version": config.server_version,
                "description": "Static-analysis validation and project context for Python projects",
            },
            "available_tools": tools,
            "tips": _TIPS,
        }
