#!/usr/bin/env python3
"""
Model Tools Module

This module exposes the registered tools to the host agent: it builds tool
schemas for model API calls and dispatches function calls to their handlers.
Tools register themselves in tools.registry when their module is imported.

Currently supports:
- Research tools (Manus deep research) from tools/manus_research_tool.py

Usage:
    from model_tools import get_tool_definitions, handle_function_call

    # Get all available tool definitions for model API
    tools = get_tool_definitions()

    # Get specific toolsets
    research_tools = get_tool_definitions(enabled_toolsets=['research'])

    # Handle function calls from model
    result = handle_function_call("manus_research", {"prompt": "Survey EU battery recycling startups"})
"""

import asyncio
import concurrent.futures
import json
import logging
from typing import Any, Coroutine, Dict, List

from tools.registry import registry
import tools.manus_research_tool  # noqa: F401  (registers manus_research)

logger = logging.getLogger(__name__)


def _run_async(coro: Coroutine) -> Any:
    """
    Run a coroutine to completion from synchronous tool handlers.

    Inside a running event loop (an async host agent) asyncio.run() is not
    allowed, so the coroutine gets its own loop on a worker thread.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop is None:
        return asyncio.run(coro)

    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()


def get_all_tool_names() -> List[str]:
    """
    Get the names of all available tools across all toolsets.

    Returns:
        List[str]: Names of tools whose requirements are met
    """
    return registry.get_all_tool_names()


def get_toolset_for_tool(tool_name: str) -> str:
    """
    Get the toolset that a tool belongs to.

    Returns:
        str: Name of the toolset, or "unknown" if not found
    """
    return registry.get_toolset_for_tool(tool_name)


def get_tool_definitions(
    enabled_tools: List[str] = None,
    disabled_tools: List[str] = None,
    enabled_toolsets: List[str] = None,
    disabled_toolsets: List[str] = None
) -> List[Dict[str, Any]]:
    """
    Get tool definitions for model API calls with optional filtering.

    Filter Priority (higher priority overrides lower):
    1. enabled_tools (highest priority - only these tools, overrides everything)
    2. disabled_tools (applied after toolset filtering)
    3. enabled_toolsets (only tools from these toolsets)
    4. disabled_toolsets (exclude tools from these toolsets)

    Args:
        enabled_tools (List[str]): Only include these specific tools
        disabled_tools (List[str]): Exclude these specific tools
        enabled_toolsets (List[str]): Only include tools from these toolsets
        disabled_toolsets (List[str]): Exclude tools from these toolsets

    Returns:
        List[Dict]: Filtered list of tool definitions
    """
    if enabled_tools:
        if enabled_toolsets or disabled_toolsets or disabled_tools:
            logger.warning("enabled_tools overrides all other filters")
        definitions = registry.get_definitions(list(enabled_tools))
        found = {d["function"]["name"] for d in definitions}
        missing = set(enabled_tools) - found
        if missing:
            logger.warning("Requested tools not available: %s", sorted(missing))
        return definitions

    toolsets = registry.get_toolsets()

    if enabled_toolsets:
        if disabled_toolsets and set(enabled_toolsets) & set(disabled_toolsets):
            logger.warning("Conflicting toolsets %s: enabled_toolsets takes priority",
                           sorted(set(enabled_toolsets) & set(disabled_toolsets)))
        names = []
        for toolset_name in enabled_toolsets:
            if toolset_name in toolsets:
                names.extend(toolsets[toolset_name])
            else:
                logger.warning("Unknown toolset: %s", toolset_name)
    elif disabled_toolsets:
        names = [
            name for toolset_name, tool_names in toolsets.items()
            if toolset_name not in disabled_toolsets
            for name in tool_names
        ]
    else:
        names = [name for tool_names in toolsets.values() for name in tool_names]

    if disabled_tools:
        names = [name for name in names if name not in set(disabled_tools)]

    return registry.get_definitions(names)


def handle_function_call(function_name: str, function_args: Dict[str, Any], **kw) -> str:
    """
    Main function call dispatcher.

    Args:
        function_name (str): Name of the function to call
        function_args (Dict): Arguments for the function

    Returns:
        str: Function result as JSON string

    Raises:
        None: Returns error as JSON string instead of raising exceptions
    """
    try:
        return registry.dispatch(function_name, function_args, **kw)
    except Exception as e:
        error_msg = f"Error executing {function_name}: {str(e)}"
        logger.exception(error_msg)
        return json.dumps({"error": error_msg})


def get_available_toolsets() -> Dict[str, Dict[str, Any]]:
    """
    Get information about all toolsets and their status.

    Returns:
        Dict: Availability and tool names per toolset
    """
    return {
        toolset_name: {
            "available": any(registry.get_entry(name).is_available() for name in tool_names),
            "tools": tool_names,
        }
        for toolset_name, tool_names in registry.get_toolsets().items()
    }


def check_toolset_requirements() -> Dict[str, bool]:
    """
    Check if all requirements for the registered toolsets are met.

    Returns:
        Dict: Status of each toolset's requirements
    """
    return {name: info["available"] for name, info in get_available_toolsets().items()}


if __name__ == "__main__":
    print("Model Tools Module")
    print("=" * 40)

    print("Toolset Requirements:")
    for toolset, available in check_toolset_requirements().items():
        status = "ok" if available else "missing requirements"
        print(f"  {toolset}: {status}")

    tools = get_tool_definitions()
    print(f"\nTool Definitions ({len(tools)} loaded):")
    for tool in tools:
        func_name = tool["function"]["name"]
        desc = tool["function"]["description"]
        print(f"  {func_name} ({get_toolset_for_tool(func_name)}): {desc[:60]}{'...' if len(desc) > 60 else ''}")
