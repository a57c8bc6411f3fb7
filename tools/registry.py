"""Central registry for tools.

Each tool module registers itself at import time:

    from tools.registry import registry

    registry.register(
        name="manus_research",
        toolset="research",
        schema=MANUS_RESEARCH_SCHEMA,
        handler=manus_research_tool,
        check_fn=check_manus_requirements,
    )

model_tools.py builds tool definitions and dispatches function calls from
here, so adding a tool never touches the dispatcher.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ToolEntry:
    name: str
    toolset: str
    schema: Dict[str, Any]
    handler: Callable[..., str]
    check_fn: Optional[Callable[[], bool]] = None

    def is_available(self) -> bool:
        if self.check_fn is None:
            return True
        try:
            return bool(self.check_fn())
        except Exception as e:
            logger.debug("Availability check for %s failed: %s", self.name, e)
            return False


class ToolRegistry:
    def __init__(self):
        self._tools: Dict[str, ToolEntry] = {}

    def register(
        self,
        name: str,
        toolset: str,
        schema: Dict[str, Any],
        handler: Callable[..., str],
        check_fn: Optional[Callable[[], bool]] = None,
    ) -> None:
        if name in self._tools:
            logger.debug("Re-registering tool %s", name)
        self._tools[name] = ToolEntry(name, toolset, schema, handler, check_fn)

    def get_entry(self, name: str) -> Optional[ToolEntry]:
        return self._tools.get(name)

    def get_all_tool_names(self, available_only: bool = True) -> List[str]:
        return [
            name for name, entry in self._tools.items()
            if not available_only or entry.is_available()
        ]

    def get_toolset_for_tool(self, name: str) -> str:
        entry = self._tools.get(name)
        return entry.toolset if entry else "unknown"

    def get_toolsets(self) -> Dict[str, List[str]]:
        """Map each toolset to the names of the tools registered in it."""
        toolsets: Dict[str, List[str]] = {}
        for entry in self._tools.values():
            toolsets.setdefault(entry.toolset, []).append(entry.name)
        return toolsets

    def get_definitions(self, names: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """
        Tool definitions in OpenAI's function-calling format.

        Unavailable tools (check_fn returns False) are never included.
        """
        selected = names if names is not None else list(self._tools)
        definitions = []
        for name in selected:
            entry = self._tools.get(name)
            if entry is None or not entry.is_available():
                continue
            definitions.append({"type": "function", "function": entry.schema})
        return definitions

    def dispatch(self, name: str, args: Dict[str, Any], **kw) -> str:
        """Call a tool's handler. Returns a JSON string, errors included."""
        entry = self._tools.get(name)
        if entry is None:
            return json.dumps({"error": f"Unknown function: {name}"})
        return entry.handler(args or {}, **kw)


registry = ToolRegistry()
