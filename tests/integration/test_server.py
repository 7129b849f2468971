"""Integration tests for the Cardiologic MCP server."""

from __future__ import annotations

import asyncio
import json
from datetime import timedelta

import pytest
from fastmcp import Client

from conftest import NOW, TODAY, FixedClock, make_quantity_sample, make_steps, make_workout
from cardiologic.core.server.app import __version__, create_app
from cardiologic.core.server.main import check_bind_address
from cardiologic.core.config.settings import Settings
from cardiologic.domains.health.connectors.memory_store import InMemoryHealthStore


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _payload(result) -> dict:
    """Decode the JSON text of a tool result."""
    content = getattr(result, "content", result)
    return json.loads(content[0].text)


ALL_EXPECTED_TOOLS = [
    "health_check",
    "request_authorization",
    "heart_rate",
    "resting_heart_rate",
    "heart_rate_variability",
    "workouts",
    "daily_steps",
]


@pytest.fixture
def store() -> InMemoryHealthStore:
    return InMemoryHealthStore([
        make_quantity_sample(TODAY + timedelta(hours=9), 1.25, unit="count/s"),
        make_quantity_sample(TODAY + timedelta(hours=10), 66),
        make_steps(TODAY + timedelta(hours=8), 4000),
        make_steps(TODAY - timedelta(hours=12), 6000),
        make_workout(TODAY + timedelta(hours=7), activity="Cycling"),
        make_workout(TODAY + timedelta(hours=12), activity="Running"),
    ])


@pytest.fixture
def client(store):
    """Create an MCP client connected to a server over the in-memory store."""
    mcp = create_app(health_store_override=store, clock_override=FixedClock(NOW))
    return Client(mcp)


def test_server_starts_and_lists_tools(client):
    """Server should start and expose all registered tools."""
    async def _check():
        async with client:
            tools = await client.list_tools()
            tool_names = [t.name for t in tools]
            for expected in ALL_EXPECTED_TOOLS:
                assert expected in tool_names, f"Missing tool: {expected}"
    _run(_check())


def test_health_check_returns_ok(client):
    async def _check():
        async with client:
            result = await client.call_tool("health_check", {})
            assert "ok" in str(result)
            assert "memory" in str(result)
    _run(_check())


def test_queries_before_authorization_are_unauthorized(client):
    async def _check():
        async with client:
            result = await client.call_tool("heart_rate", {})
            assert _payload(result)["status"] == "unauthorized"
    _run(_check())


def test_heart_rate_in_bpm_after_authorization(client):
    async def _check():
        async with client:
            auth = await client.call_tool("request_authorization", {"read_types": ["heart_rate"]})
            assert _payload(auth)["status"] == "completed"
            result = _payload(await client.call_tool("heart_rate", {}))
            assert result["status"] == "success"
            assert sorted(s["value"] for s in result["samples"]) == [66, 75]
            assert all(s["unit"] == "count/min" for s in result["samples"])
    _run(_check())


def test_workouts_most_recent_first(client):
    async def _check():
        async with client:
            await client.call_tool("request_authorization", {"read_types": ["workout"]})
            result = _payload(await client.call_tool("workouts", {}))
            assert [w["activity"] for w in result["workouts"]] == ["running", "cycling"]
    _run(_check())


def test_daily_steps(client):
    async def _check():
        async with client:
            await client.call_tool("request_authorization", {"read_types": ["steps"]})
            result = _payload(await client.call_tool("daily_steps", {"days": 3}))
            assert [d["steps"] for d in result["days"]] == [0, 6000, 4000]
            assert result["days"][-1]["date"] == TODAY.date().isoformat()
    _run(_check())


def test_explicit_range(client):
    async def _check():
        async with client:
            await client.call_tool("request_authorization", {"read_types": ["heart_rate"]})
            result = _payload(await client.call_tool("heart_rate", {
                "start": (TODAY + timedelta(hours=9, minutes=30)).isoformat(),
                "end": NOW.isoformat(),
            }))
            assert result["count"] == 1
    _run(_check())


class TestBindAddress:
    def test_loopback_allowed(self):
        check_bind_address(Settings(cardiologic_host="127.0.0.1"))
        check_bind_address(Settings(cardiologic_host="localhost"))

    def test_public_bind_refused(self):
        with pytest.raises(RuntimeError, match="non-loopback"):
            check_bind_address(Settings(cardiologic_host="0.0.0.0"))

    def test_public_bind_override(self):
        check_bind_address(
            Settings(cardiologic_host="0.0.0.0", cardiologic_allow_insecure_bind=True)
        )


def test_authorization_defaults_to_no_types(client):
    async def _check():
        async with client:
            auth = _payload(await client.call_tool("request_authorization", {}))
            assert auth["read_types"] == []
            assert auth["write_types"] == []
            result = _payload(await client.call_tool("heart_rate", {}))
            assert result["status"] == "unauthorized"
    _run(_check())


def test_health_check_reports_package_version(client):
    async def _check():
        async with client:
            result = await client.call_tool("health_check", {})
            assert __version__ in str(result)
    _run(_check())
