"""Cardiologic server entry point — ``python -m cardiologic.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from cardiologic.core.config.settings import Settings, get_settings
from cardiologic.core.server.app import create_app

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def check_bind_address(settings: Settings) -> None:
    """Refuse non-loopback hosts unless explicitly allowed."""
    if settings.cardiologic_allow_insecure_bind or _is_loopback_host(settings.cardiologic_host):
        return
    raise RuntimeError(
        "Refusing to expose health data on a non-loopback host without an auth layer. "
        "Set CARDIOLOGIC_ALLOW_INSECURE_BIND=true to override (unsafe)."
    )


def run() -> None:
    """Start the Cardiologic MCP server with Streamable HTTP transport."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.cardiologic_log_level.upper(), logging.INFO),
        format=_LOG_FORMAT,
    )
    logger = logging.getLogger(__name__)

    check_bind_address(settings)
    logger.info(
        "Serving health queries on %s:%d",
        settings.cardiologic_host,
        settings.cardiologic_port,
    )

    mcp = create_app()
    mcp.run(
        transport="streamable-http",
        host=settings.cardiologic_host,
        port=settings.cardiologic_port,
    )


if __name__ == "__main__":
    run()
