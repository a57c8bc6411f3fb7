"""Tests for the manus_research tool: validation, orchestration and error payloads."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from aiohttp import web, test_utils

from tools.manus_client import (
    ManusClient,
    RemoteRequestError,
    TaskHandle,
    TaskRecord,
    TaskTimeoutError,
)
from tools.manus_research_tool import (
    MANUS_RESEARCH_SCHEMA,
    ResearchParams,
    ValidationError,
    manus_research_tool,
    run_manus_research,
)
from tools.registry import registry


HANDLE = TaskHandle(
    task_id="t-1",
    task_url="https://manus.im/app/t-1",
    title="Research",
    share_url="https://manus.im/share/t-1",
)


class KeyLookup:
    def __init__(self, key):
        self.key = key

    def lookup_credential(self, name):
        return self.key


def _mock_client(task=None, create_error=None, wait_error=None):
    client = MagicMock(spec=ManusClient)
    client.create_task = AsyncMock(return_value=HANDLE, side_effect=create_error)
    client.wait_for_task = AsyncMock(return_value=task, side_effect=wait_error)
    return client


def _completed(**extra):
    return TaskRecord.from_dict({
        "id": "t-1",
        "status": "completed",
        "credit_usage": 12,
        "output": [{"id": "m1", "role": "assistant", "content": [{"type": "output_text", "text": "Findings"}]}],
        **extra,
    })


# ── Schema Tests ──────────────────────────────────────────────────────────

class TestSchema:
    """The schema exposed to the model."""

    def test_prompt_required(self):
        """prompt is the only required parameter."""
        assert MANUS_RESEARCH_SCHEMA["parameters"]["required"] == ["prompt"]

    def test_profiles_and_defaults(self):
        """agent_profile is an enum of three tiers with the balanced default."""
        props = MANUS_RESEARCH_SCHEMA["parameters"]["properties"]
        assert props["agent_profile"]["enum"] == ["manus-1.6", "manus-1.6-lite", "manus-1.6-max"]
        assert props["agent_profile"]["default"] == "manus-1.6"
        assert props["max_wait_minutes"]["default"] == 10

    def test_registered(self):
        """The tool registers itself in the research toolset."""
        entry = registry.get_entry("manus_research")
        assert entry is not None
        assert entry.toolset == "research"
        assert entry.handler is manus_research_tool


# ── Validation Tests ─────────────────────────────────────────────────────

class TestResearchParams:
    """Boundary validation of raw tool arguments."""

    @pytest.mark.parametrize("args", [None, {}, {"prompt": ""}, {"prompt": None}, {"prompt": 42}, {"prompt": ["a"]}])
    def test_bad_prompt(self, args):
        """Missing, empty or non-string prompts are rejected."""
        with pytest.raises(ValidationError, match="Prompt is required"):
            ResearchParams.from_args(args)

    def test_defaults(self):
        """Only a prompt gives the balanced profile and a 10 minute wait."""
        params = ResearchParams.from_args({"prompt": "x"})
        assert params.agent_profile == "manus-1.6"
        assert params.max_wait_minutes == 10
        assert params.max_wait_seconds == 600

    def test_unknown_profile(self):
        """Profiles outside the enum are rejected."""
        with pytest.raises(ValidationError, match="agent_profile"):
            ResearchParams.from_args({"prompt": "x", "agent_profile": "manus-2"})

    @pytest.mark.parametrize("value", ["soon", True, 0, -5, "nan", float("nan"), "inf"])
    def test_bad_max_wait(self, value):
        """Non-numeric, non-finite and non-positive waits are rejected."""
        with pytest.raises(ValidationError, match="max_wait_minutes"):
            ResearchParams.from_args({"prompt": "x", "max_wait_minutes": value})

    def test_max_wait_is_clamped(self):
        """999 minutes never exceeds the 600 second ceiling."""
        params = ResearchParams.from_args({"prompt": "x", "max_wait_minutes": 999})
        assert params.max_wait_seconds == 600

    def test_short_wait(self):
        """Waits below the ceiling are kept."""
        assert ResearchParams.from_args({"prompt": "x", "max_wait_minutes": 2.5}).max_wait_seconds == 150


# ── Orchestration Tests ──────────────────────────────────────────────────

class TestRunManusResearch:
    """create → poll → normalize, with each stage's failure translated."""

    @pytest.mark.asyncio
    async def test_success(self):
        """A completed task returns the text and the metadata record."""
        client = _mock_client(task=_completed())
        params = ResearchParams.from_args({"prompt": "Research X", "agent_profile": "manus-1.6-max"})

        result = await run_manus_research(params, credentials=KeyLookup("k"), client_factory=lambda key: client)

        assert result["content"] == [{"type": "text", "text": "Findings"}]
        assert result["details"] == {
            "task_id": "t-1",
            "task_url": "https://manus.im/app/t-1",
            "share_url": "https://manus.im/share/t-1",
            "status": "completed",
            "credit_usage": 12,
            "agent_profile": "manus-1.6-max",
        }
        client.create_task.assert_awaited_once_with("Research X", "manus-1.6-max")

    @pytest.mark.asyncio
    async def test_missing_key_makes_no_network_call(self):
        """No credential returns a configuration error without building a client."""
        factory = MagicMock()
        result = await run_manus_research(
            ResearchParams(prompt="x"), credentials=KeyLookup(None), client_factory=factory,
        )

        assert result["error_type"] == "ConfigurationError"
        assert "API key not found" in result["error"]
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_key_is_passed_to_factory(self):
        """The resolved key is what the client is built with."""
        factory = MagicMock(return_value=_mock_client(task=_completed()))
        await run_manus_research(ResearchParams(prompt="x"), credentials=KeyLookup("mk-1"), client_factory=factory)
        factory.assert_called_once_with("mk-1")

    @pytest.mark.asyncio
    async def test_create_failure_never_polls(self):
        """A failed create is reported and the poller is never reached."""
        client = _mock_client(create_error=RemoteRequestError(402, "insufficient credits"))

        result = await run_manus_research(
            ResearchParams(prompt="x"), credentials=KeyLookup("k"), client_factory=lambda key: client,
        )

        assert result["error"] == "Failed to create Manus task: Manus API error 402: insufficient credits"
        assert result["error_type"] == "RemoteRequestError"
        client.wait_for_task.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_timeout_reports_tracking_url(self):
        """A poll timeout names the task and points at the tracking URL."""
        client = _mock_client(wait_error=TaskTimeoutError("t-1", 600))

        result = await run_manus_research(
            ResearchParams(prompt="x"), credentials=KeyLookup("k"), client_factory=lambda key: client,
        )

        assert result["error_type"] == "TaskTimeoutError"
        assert "Task t-1 timed out after 600s" in result["error"]
        assert result["error"].endswith("Check status at: https://manus.im/app/t-1")
        assert result["task_url"] == "https://manus.im/app/t-1"
        assert result["task_id"] == "t-1"

    @pytest.mark.asyncio
    async def test_poll_request_failure(self):
        """A failed status fetch is reported as a polling failure."""
        client = _mock_client(wait_error=RemoteRequestError(500, "boom"))

        result = await run_manus_research(
            ResearchParams(prompt="x"), credentials=KeyLookup("k"), client_factory=lambda key: client,
        )

        assert result["error"].startswith("Manus task polling failed: Manus API error 500: boom")

    @pytest.mark.asyncio
    async def test_remote_task_error(self):
        """A task Manus reports as errored becomes a RemoteTaskError payload."""
        task = TaskRecord.from_dict({"id": "t-1", "status": "error", "error": "browser crashed"})
        client = _mock_client(task=task)

        result = await run_manus_research(
            ResearchParams(prompt="x"), credentials=KeyLookup("k"), client_factory=lambda key: client,
        )

        assert result["error_type"] == "RemoteTaskError"
        assert result["error"] == "Manus task failed: browser crashed. URL: https://manus.im/app/t-1"

    @pytest.mark.asyncio
    async def test_remote_task_error_without_detail(self):
        """An errored task without detail says "unknown error"."""
        client = _mock_client(task=TaskRecord.from_dict({"id": "t-1", "status": "error"}))

        result = await run_manus_research(
            ResearchParams(prompt="x"), credentials=KeyLookup("k"), client_factory=lambda key: client,
        )

        assert "unknown error" in result["error"]

    @pytest.mark.asyncio
    async def test_pending_is_a_result(self):
        """A pending task is returned as a result with status pending."""
        task = TaskRecord.from_dict({"id": "t-1", "status": "pending"})
        client = _mock_client(task=task)

        result = await run_manus_research(
            ResearchParams(prompt="x"), credentials=KeyLookup("k"), client_factory=lambda key: client,
        )

        assert result["details"]["status"] == "pending"
        assert result["content"][0]["text"] == "(no output)"

    @pytest.mark.asyncio
    async def test_wait_is_clamped_before_polling(self):
        """max_wait_minutes=999 reaches the poller as 600 seconds."""
        client = _mock_client(task=_completed())
        params = ResearchParams.from_args({"prompt": "x", "max_wait_minutes": 999})

        await run_manus_research(params, credentials=KeyLookup("k"), client_factory=lambda key: client)

        assert client.wait_for_task.await_args.kwargs["max_wait_seconds"] == 600


# ── Handler Tests ─────────────────────────────────────────────────────────

class TestManusResearchToolHandler:
    """The synchronous registry handler returns JSON and never raises."""

    @pytest.mark.parametrize("args", [{}, {"prompt": ""}, {"prompt": 7}])
    def test_invalid_prompt_makes_no_network_call(self, args):
        """Validation errors are returned before any credential or client work."""
        with patch("tools.manus_research_tool.resolve_manus_api_key") as resolve, \
             patch("tools.manus_research_tool._build_client") as build:
            result = json.loads(manus_research_tool(args))

        assert result["error"] == "Prompt is required and must be a string"
        assert result["error_type"] == "ValidationError"
        resolve.assert_not_called()
        build.assert_not_called()

    def test_no_key(self):
        """Without any configured key the handler returns the configuration error."""
        with patch("tools.manus_research_tool._build_client") as build:
            result = json.loads(manus_research_tool({"prompt": "x"}))

        assert result["error_type"] == "ConfigurationError"
        build.assert_not_called()

    def test_end_to_end(self, monkeypatch):
        """With a key and a mocked client the handler returns the normalized result."""
        monkeypatch.setenv("MANUS_API_KEY", "env-key")
        client = _mock_client(task=_completed())

        with patch("tools.manus_research_tool._build_client", return_value=client) as build:
            result = json.loads(manus_research_tool({"prompt": "Research X"}))

        build.assert_called_once_with("env-key")
        assert result["content"][0]["text"] == "Findings"
        assert result["details"]["credit_usage"] == 12


    def test_nan_wait_makes_no_network_call(self, monkeypatch):
        """A NaN wait is rejected before a task is created."""
        monkeypatch.setenv("MANUS_API_KEY", "k")

        with patch("tools.manus_research_tool._build_client") as build:
            result = json.loads(manus_research_tool({"prompt": "x", "max_wait_minutes": "nan"}))

        assert result["error_type"] == "ValidationError"
        assert "finite" in result["error"]
        build.assert_not_called()


class TestMalformedResponses:
    """Unusable 2xx bodies from a live server come back as error payloads."""

    @staticmethod
    async def _run(routes, fake_clock):
        app = web.Application()
        for method, path, handler in routes:
            app.router.add_route(method, path, handler)

        async with test_utils.TestServer(app) as server:
            base_url = str(server.make_url("/"))
            return await run_manus_research(
                ResearchParams(prompt="x"),
                credentials=KeyLookup("k"),
                client_factory=lambda key: ManusClient(key, base_url=base_url),
                clock=fake_clock,
                sleep=fake_clock.sleep,
            )

    @staticmethod
    async def _create_ok(request):
        return web.json_response({"task_id": "t-1", "task_url": "https://manus.im/app/t-1"})

    @pytest.mark.asyncio
    async def test_create_returns_html(self, fake_clock):
        """A 200 HTML create response is a creation failure, not an exception."""
        async def create(request):
            return web.Response(text="<html>oops</html>", content_type="text/html")

        result = await self._run([("POST", "/tasks", create)], fake_clock)

        assert result["error"].startswith("Failed to create Manus task: Invalid Manus API response")
        assert result["error_type"] == "InvalidResponseError"

    @pytest.mark.asyncio
    async def test_create_without_task_id(self, fake_clock):
        """A create body without task_id is a creation failure."""
        async def create(request):
            return web.json_response({"message": "queued"})

        result = await self._run([("POST", "/tasks", create)], fake_clock)

        assert result["error"].startswith("Failed to create Manus task:")
        assert "task_id" in result["error"]
        assert result["error_type"] == "InvalidResponseError"

    @pytest.mark.asyncio
    async def test_status_body_not_an_object(self, fake_clock):
        """A status body that is not an object is a polling failure with the tracking URL."""
        async def get(request):
            return web.json_response("done")

        result = await self._run(
            [("POST", "/tasks", self._create_ok), ("GET", "/tasks/{task_id}", get)],
            fake_clock,
        )

        assert result["error"].startswith("Manus task polling failed: Invalid Manus API response")
        assert result["error"].endswith("Check status at: https://manus.im/app/t-1")
        assert result["error_type"] == "InvalidResponseError"
        assert result["task_id"] == "t-1"


class TestBuildClient:
    """Client settings come from config, with MANUS_API_BASE taking priority."""

    def test_defaults(self):
        """Default base URL and timeout."""
        from tools.manus_research_tool import _build_client
        client = _build_client("k")
        assert client.base_url == "https://api.manus.ai/v1"
        assert client.timeout == 30
        assert client.api_key == "k"

    def test_env_override(self, monkeypatch):
        """MANUS_API_BASE overrides the configured base URL."""
        from tools.manus_research_tool import _build_client
        monkeypatch.setenv("MANUS_API_BASE", "http://localhost:9000/v1/")
        assert _build_client("k").base_url == "http://localhost:9000/v1"
