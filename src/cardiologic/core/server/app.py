"""Cardiologic health query MCP server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from cardiologic.core.config.settings import get_settings
from cardiologic.domains.health.connectors import HealthStore
from cardiologic.domains.health.connectors.providers import (
    configured_time_zone,
    create_health_store,
)
from cardiologic.domains.health.domain_logic.health_manager import (
    Clock,
    HealthManager,
    system_clock,
)
from cardiologic.domains.health.tools.health_query_tools import (
    register_health_query_tools,
)

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


def create_app(
    *,
    health_store_override: HealthStore | None = None,
    clock_override: Clock | None = None,
) -> FastMCP:
    """Create and configure the Cardiologic MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Selects the health store (Apple Health export or mock data)
    3. Resolves type tokens into a HealthManager
    4. Registers the authorization and query tools
    """
    settings = get_settings()

    # --- Server instance ---
    server = FastMCP(
        "Cardiologic Health",
        instructions=(
            "Heart rate, resting heart rate, heart rate variability, workout and "
            "daily step queries over a personal health store. Call "
            "request_authorization before querying."
        ),
    )

    # --- Initialize health store ---
    if health_store_override is not None:
        store = health_store_override
    else:
        store = create_health_store(settings)

    clock = clock_override or system_clock(configured_time_zone(settings))
    manager = HealthManager(store, clock=clock)
    logger.info("Health manager ready (%s store)", store.data_source)

    # --- Register tools ---
    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": "Cardiologic Health",
            "version": __version__,
            "data_source": store.data_source,
            "data_types": sorted(t.value for t in manager.type_tokens),
        }

    register_health_query_tools(server, manager, clock)
    logger.info("Health query tools registered")

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
