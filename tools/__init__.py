#!/usr/bin/env python3
"""
Tools Package

This package contains the tool implementations exposed to the host agent:

- manus_research_tool: Delegate deep research tasks to the Manus agent
- manus_client: Async client for the Manus task API (create, get, poll)
- manus_output: Flattens Manus output messages into one text result
- credentials: API key lookup (environment, auth-profiles.json)
- registry: Central tool registry used by model_tools.py

The tools are imported into model_tools.py which provides a unified interface
for the AI agent to access all capabilities.
"""

from .manus_research_tool import (
    manus_research_tool,
    run_manus_research,
    check_manus_requirements,
    ResearchParams,
    MANUS_RESEARCH_SCHEMA,
)

from .manus_client import (
    ManusClient,
    ManusError,
    InvalidResponseError,
    RemoteRequestError,
    RemoteTaskError,
    TaskTimeoutError,
)

__all__ = [
    # Research tool
    'manus_research_tool',
    'run_manus_research',
    'check_manus_requirements',
    'ResearchParams',
    'MANUS_RESEARCH_SCHEMA',
    # Manus client
    'ManusClient',
    'ManusError',
    'InvalidResponseError',
    'RemoteRequestError',
    'RemoteTaskError',
    'TaskTimeoutError',
]
