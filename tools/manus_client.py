#!/usr/bin/env python3
"""
Manus API Client Module

Thin async client over the Manus task API (https://open.manus.im/docs).
Tasks run asynchronously on Manus' side, so the lifecycle is:

- create_task: submit a prompt with an agent profile, get back a TaskHandle
- get_task: fetch the current TaskRecord for a task id
- wait_for_task: poll get_task every POLL_INTERVAL_SECONDS until the task
  reaches a terminal state or the deadline passes

Nothing here retries. A non-2xx response on any call raises
RemoteRequestError immediately. A 2xx response whose body is not a usable task
payload raises InvalidResponseError. A poll that runs past its deadline raises
TaskTimeoutError.

Usage:
    from tools.manus_client import ManusClient

    client = ManusClient(api_key)
    handle = await client.create_task("Compare vector databases", "manus-1.6")
    task = await client.wait_for_task(handle.task_id, max_wait_seconds=600)
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp

logger = logging.getLogger(__name__)

# ============================================================================
# Configuration
# ============================================================================

MANUS_API_BASE = os.getenv("MANUS_API_BASE", "https://api.manus.ai/v1")

# How often to poll for task completion
POLL_INTERVAL_SECONDS = 10

# Hard ceiling on how long a single invocation may wait (10 minutes)
MAX_WAIT_SECONDS = 600

DEFAULT_REQUEST_TIMEOUT = 30

AGENT_PROFILES = ("manus-1.6", "manus-1.6-lite", "manus-1.6-max")
DEFAULT_AGENT_PROFILE = "manus-1.6"


# ============================================================================
# Errors
# ============================================================================

class ManusError(Exception):
    """Base class for everything the Manus research tool raises."""


class RemoteRequestError(ManusError):
    """The Manus API answered with a non-success status (or not at all)."""

    def __init__(self, status: Optional[int], body: str):
        self.status = status
        self.body = body
        if status is None:
            super().__init__(f"Manus API request failed: {body}")
        else:
            super().__init__(f"Manus API error {status}: {body}")


class TaskTimeoutError(ManusError, TimeoutError):
    """The task did not reach a terminal state before the deadline."""

    def __init__(self, task_id: str, elapsed_seconds: float):
        self.task_id = task_id
        self.elapsed_seconds = elapsed_seconds
        super().__init__(f"Task {task_id} timed out after {elapsed_seconds:.0f}s")


class InvalidResponseError(ManusError):
    """The Manus API answered with a success status but an unusable body."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid Manus API response: {reason}")


def _require_dict(data: Any, what: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise InvalidResponseError(f"expected {what} object, got {type(data).__name__}")
    return data


class RemoteTaskError(ManusError):
    """Manus itself reports that the task ended in the error state."""

    def __init__(self, task_id: str, error: Optional[str], task_url: str = ""):
        self.task_id = task_id
        self.error = error or "unknown error"
        self.task_url = task_url
        super().__init__(f"Manus task failed: {self.error}. URL: {task_url}")


# ============================================================================
# Records
# ============================================================================

class TaskStatus(Enum):
    """Task states reported by the Manus API."""
    RUNNING = "running"
    PENDING = "pending"
    COMPLETED = "completed"
    ERROR = "error"

    @classmethod
    def parse(cls, value: Any) -> "TaskStatus":
        try:
            return cls(value)
        except ValueError:
            # Unknown states are not terminal, keep polling
            logger.debug("Unrecognized Manus task status %r, treating as running", value)
            return cls.RUNNING

    @property
    def is_terminal(self) -> bool:
        # "pending" means Manus is waiting on user input. There is no
        # interactive mode here, so it ends the wait like completed/error.
        return self is not TaskStatus.RUNNING


@dataclass(frozen=True)
class TaskHandle:
    """Identifies a created task. Returned once by create_task."""
    task_id: str
    task_url: str
    title: str = ""
    share_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskHandle":
        data = _require_dict(data, "task creation")
        if not data.get("task_id"):
            raise InvalidResponseError("task creation response has no task_id")
        return cls(
            task_id=str(data["task_id"]),
            task_url=data.get("task_url", ""),
            title=data.get("task_title", ""),
            share_url=data.get("share_url") or None,
        )


@dataclass
class OutputBlock:
    """
    One content block of an output message.

    A block is a text span when type is "output_text", and carries a file
    reference when file_url is set. The API may set both.
    """
    type: str
    text: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    mime_type: Optional[str] = None

    @property
    def is_text(self) -> bool:
        return self.type == "output_text" and bool(self.text)

    @property
    def is_file(self) -> bool:
        return bool(self.file_url)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OutputBlock":
        data = _require_dict(data, "content block")
        return cls(
            type=data.get("type", ""),
            text=data.get("text"),
            file_url=data.get("fileUrl"),
            file_name=data.get("fileName"),
            mime_type=data.get("mimeType"),
        )


@dataclass
class OutputMessage:
    """A role-tagged message in a task's output."""
    id: str
    role: str  # "user" or "assistant"
    content: List[OutputBlock] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OutputMessage":
        data = _require_dict(data, "output message")
        return cls(
            id=str(data.get("id", "")),
            role=data.get("role", ""),
            content=[OutputBlock.from_dict(b) for b in data.get("content") or []],
        )


@dataclass
class TaskRecord:
    """Snapshot of a task as returned by GET /tasks/{id}."""
    id: str
    status: TaskStatus
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    output: List[OutputMessage] = field(default_factory=list)
    credit_usage: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskRecord":
        data = _require_dict(data, "task")
        return cls(
            id=str(data.get("id", "")),
            status=TaskStatus.parse(data.get("status")),
            error=data.get("error"),
            metadata=data.get("metadata") or {},
            output=[OutputMessage.from_dict(m) for m in data.get("output") or []],
            credit_usage=data.get("credit_usage"),
        )


# ============================================================================
# Client
# ============================================================================

class ManusClient:
    """
    Async client for the Manus task endpoints.

    Each call opens its own aiohttp session, so one client can be shared by
    sequential calls without lifecycle management.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = MANUS_API_BASE,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _headers(self, with_body: bool = False) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "API_KEY": self.api_key,
        }
        if with_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make one HTTP request to the Manus API and return the JSON body."""
        url = f"{self.base_url}{endpoint}"
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(
                    method,
                    url,
                    json=data,
                    headers=self._headers(with_body=data is not None),
                ) as response:
                    if response.status < 200 or response.status >= 300:
                        error_text = await response.text()
                        raise RemoteRequestError(response.status, error_text)
                    try:
                        return await response.json(content_type=None)
                    except ValueError:
                        body = await response.text()
                        raise InvalidResponseError(
                            f"status {response.status} with non-JSON body: {body[:200]!r}"
                        ) from None
        except aiohttp.ClientError as e:
            raise RemoteRequestError(None, f"{type(e).__name__}: {e}") from e
        except asyncio.TimeoutError as e:
            raise RemoteRequestError(None, f"request to {url} timed out after {self.timeout}s") from e

    async def create_task(self, prompt: str, agent_profile: str = DEFAULT_AGENT_PROFILE) -> TaskHandle:
        """
        Submit a new task.

        Always requests agent mode, a visible task and a shareable link.

        Args:
            prompt: The research task for Manus
            agent_profile: One of AGENT_PROFILES

        Returns:
            TaskHandle with the task id and tracking URLs

        Raises:
            RemoteRequestError: on any non-success response (not retried)
            InvalidResponseError: a success response without a usable task body
        """
        result = await self._request("POST", "/tasks", {
            "prompt": prompt,
            "agentProfile": agent_profile,
            "taskMode": "agent",
            "hideInTaskList": False,
            "createShareableLink": True,
        })
        return TaskHandle.from_dict(result)

    async def get_task(self, task_id: str) -> TaskRecord:
        """Fetch the current state of a task."""
        result = await self._request("GET", f"/tasks/{task_id}")
        return TaskRecord.from_dict(result)

    async def wait_for_task(
        self,
        task_id: str,
        max_wait_seconds: float = MAX_WAIT_SECONDS,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> TaskRecord:
        """
        Poll a task until it is completed, errored or pending.

        The deadline is capped at MAX_WAIT_SECONDS whatever the caller asks
        for. Fetch failures are not retried: the first RemoteRequestError
        ends the wait.

        Args:
            task_id: Id from create_task
            max_wait_seconds: Requested deadline, measured from the first fetch
            poll_interval: Seconds to suspend between fetches
            clock: Monotonic time source
            sleep: Awaitable sleep used between fetches

        Returns:
            The first TaskRecord with a terminal status

        Raises:
            TaskTimeoutError: deadline passed while the task was still running
            RemoteRequestError: a status fetch failed
            InvalidResponseError: a status fetch returned an unusable body
        """
        deadline = min(max_wait_seconds, MAX_WAIT_SECONDS)
        start = clock()
        polls = 0

        while clock() - start < deadline:
            task = await self.get_task(task_id)
            polls += 1

            if task.status.is_terminal:
                logger.debug("Task %s reached %s after %s poll(s)", task_id, task.status.value, polls)
                return task

            logger.debug("Task %s still %s (poll %s)", task_id, task.status.value, polls)
            await sleep(poll_interval)

        raise TaskTimeoutError(task_id, clock() - start)
