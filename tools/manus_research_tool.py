"""Manus Research Tool -- delegate deep research to the Manus agent.

Manus can browse the web, analyze documents, build reports and run multi-step
workflows on its own. Tasks run asynchronously on Manus' side: this tool
creates a task, polls it every 10 seconds until it finishes (or its wait
budget runs out, at most 10 minutes), then flattens the assistant output into
one text result.

Credentials come from MANUS_API_KEY (environment or ~/.manus-research/.env)
or from the host agent's auth-profiles.json under "manus:default".
"""

import asyncio
import json
import logging
import math
import os
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from tools.credentials import CredentialLookup, resolve_manus_api_key
from tools.manus_client import (
    AGENT_PROFILES,
    DEFAULT_AGENT_PROFILE,
    DEFAULT_REQUEST_TIMEOUT,
    MANUS_API_BASE,
    MAX_WAIT_SECONDS,
    ManusClient,
    ManusError,
    RemoteTaskError,
    TaskStatus,
)
from tools.manus_output import summarize_result

logger = logging.getLogger(__name__)

DEFAULT_MAX_WAIT_MINUTES = 10

API_KEY_HELP = (
    "Manus API key not found. Set MANUS_API_KEY (manus-research config set MANUS_API_KEY <key>) "
    "or add manus:default to auth-profiles.json "
    "(get key from https://manus.im/app?show_settings=integrations&app_name=api)"
)


MANUS_RESEARCH_SCHEMA = {
    "name": "manus_research",
    "description": (
        "Delegate a deep research task to Manus AI. Manus can browse the web, analyze documents, "
        "create reports, and execute multi-step workflows autonomously. Use for tasks that need "
        "extensive web research, competitive analysis, market research, or comprehensive reports. "
        "Tasks run asynchronously and may take several minutes."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "prompt": {
                "type": "string",
                "description": "The research task or question. Be specific and detailed for best results."
            },
            "agent_profile": {
                "type": "string",
                "enum": list(AGENT_PROFILES),
                "description": (
                    'Agent profile to use. "manus-1.6" (default, balanced), '
                    '"manus-1.6-lite" (faster, simpler tasks), '
                    '"manus-1.6-max" (most capable, complex research)'
                ),
                "default": DEFAULT_AGENT_PROFILE,
            },
            "max_wait_minutes": {
                "type": "number",
                "description": "Maximum minutes to wait for completion. Default: 10, capped at 10.",
                "default": DEFAULT_MAX_WAIT_MINUTES,
            },
        },
        "required": ["prompt"]
    }
}


class ValidationError(ValueError):
    """Tool arguments were missing or malformed."""


class ConfigurationError(ManusError):
    """No Manus API key could be resolved."""


@dataclass
class ResearchParams:
    """Validated arguments of one manus_research call."""
    prompt: str
    agent_profile: str = DEFAULT_AGENT_PROFILE
    max_wait_minutes: float = DEFAULT_MAX_WAIT_MINUTES

    @property
    def max_wait_seconds(self) -> float:
        return min(self.max_wait_minutes * 60, MAX_WAIT_SECONDS)

    @classmethod
    def from_args(cls, args: Optional[Dict[str, Any]]) -> "ResearchParams":
        args = args or {}

        prompt = args.get("prompt")
        if not prompt or not isinstance(prompt, str):
            raise ValidationError("Prompt is required and must be a string")

        agent_profile = args.get("agent_profile") or DEFAULT_AGENT_PROFILE
        if agent_profile not in AGENT_PROFILES:
            raise ValidationError(
                f"Unknown agent_profile: {agent_profile}. Available: {', '.join(AGENT_PROFILES)}"
            )

        max_wait_minutes = args.get("max_wait_minutes")
        if max_wait_minutes is None:
            max_wait_minutes = DEFAULT_MAX_WAIT_MINUTES
        elif isinstance(max_wait_minutes, bool):
            raise ValidationError("max_wait_minutes must be a number")
        else:
            try:
                max_wait_minutes = float(max_wait_minutes)
            except (TypeError, ValueError):
                raise ValidationError("max_wait_minutes must be a number")
        if not math.isfinite(max_wait_minutes):
            raise ValidationError("max_wait_minutes must be a finite number")
        if max_wait_minutes <= 0:
            raise ValidationError("max_wait_minutes must be greater than 0")

        return cls(prompt=prompt, agent_profile=agent_profile, max_wait_minutes=max_wait_minutes)


def _error_result(message: str, error: Exception, **extra) -> Dict[str, Any]:
    result = {"error": message, "error_type": type(error).__name__}
    result.update({k: v for k, v in extra.items() if v})
    return result


def _build_client(api_key: str) -> ManusClient:
    from manus_cli.config import load_config

    config = load_config()
    return ManusClient(
        api_key,
        base_url=os.getenv("MANUS_API_BASE") or config.get("api_base") or MANUS_API_BASE,
        timeout=config.get("request_timeout") or DEFAULT_REQUEST_TIMEOUT,
    )


async def run_manus_research(
    params: ResearchParams,
    credentials: Optional[CredentialLookup] = None,
    client_factory: Callable[[str], ManusClient] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Dict[str, Any]:
    """
    Create a Manus task, wait for it, and normalize its output.

    Never raises for Manus-side failures: every stage's error is returned as
    {"error": ..., "error_type": ...}.

    Args:
        params: Validated tool arguments
        credentials: Credential source (defaults to env + auth-profiles.json)
        client_factory: Builds a ManusClient from the API key
        clock: Monotonic time source for the poll deadline
        sleep: Awaitable sleep between polls

    Returns:
        Dict with "content" and "details" on success, or an error payload
    """
    api_key = resolve_manus_api_key(credentials)
    if not api_key:
        logger.error("Manus API key not found")
        return _error_result(API_KEY_HELP, ConfigurationError(API_KEY_HELP))

    client = (client_factory or _build_client)(api_key)

    logger.info(
        "Creating Manus task (profile: %s): %s...",
        params.agent_profile, params.prompt[:80],
    )

    try:
        created = await client.create_task(params.prompt, params.agent_profile)
    except ManusError as e:
        logger.error("Failed to create Manus task: %s", e)
        return _error_result(f"Failed to create Manus task: {e}", e)

    logger.info("Manus task created: %s (%s)", created.task_id, created.task_url)

    try:
        task = await client.wait_for_task(
            created.task_id,
            max_wait_seconds=params.max_wait_seconds,
            clock=clock,
            sleep=sleep,
        )
    except ManusError as e:
        logger.error("Manus task polling failed: %s", e)
        return _error_result(
            f"Manus task polling failed: {e}. Check status at: {created.task_url}",
            e,
            task_id=created.task_id,
            task_url=created.task_url,
        )

    if task.status is TaskStatus.ERROR:
        failure = RemoteTaskError(created.task_id, task.error, created.task_url)
        logger.error("Manus task %s failed: %s", created.task_id, failure.error)
        return _error_result(
            str(failure),
            failure,
            task_id=created.task_id,
            task_url=created.task_url,
        )

    summary = summarize_result(task)
    credit_info = f" ({summary.credits_used} credits used)" if summary.credits_used else ""
    logger.info("Manus task %s%s: %s", task.status.value, credit_info, created.task_id)

    return {
        "content": [
            {
                "type": "text",
                "text": summary.text,
            }
        ],
        "details": {
            "task_id": created.task_id,
            "task_url": created.task_url,
            "share_url": created.share_url,
            "status": task.status.value,
            "credit_usage": summary.credits_used,
            "agent_profile": params.agent_profile,
        },
    }


def manus_research_tool(args, **kw):
    """Handle manus_research tool calls."""
    try:
        params = ResearchParams.from_args(args)
    except ValidationError as e:
        return json.dumps(_error_result(str(e), e))

    from model_tools import _run_async
    result = _run_async(run_manus_research(params))
    return json.dumps(result, ensure_ascii=False)


def check_manus_requirements() -> bool:
    """Gate manus_research on a resolvable API key."""
    return bool(resolve_manus_api_key())


# --- Registry ---
from tools.registry import registry

registry.register(
    name="manus_research",
    toolset="research",
    schema=MANUS_RESEARCH_SCHEMA,
    handler=manus_research_tool,
    check_fn=check_manus_requirements,
)
