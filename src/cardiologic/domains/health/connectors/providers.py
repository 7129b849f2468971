"""Concrete HealthStore selection."""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo

from cardiologic.core.config.settings import Settings
from cardiologic.domains.health.connectors import HealthStore
from cardiologic.domains.health.connectors.apple_health import AppleHealthStore
from cardiologic.domains.health.connectors.memory_store import InMemoryHealthStore
from cardiologic.domains.health.connectors.mock_data import generate_mock_samples
from cardiologic.domains.health.domain_logic.health_manager import system_clock

logger = logging.getLogger(__name__)


class MockHealthStore(InMemoryHealthStore):
    """In-memory store seeded with mock samples. Always available."""

    def __init__(self, now: datetime, days: int = 30) -> None:
        super().__init__(generate_mock_samples(now, days))

    @property
    def data_source(self) -> str:
        return "mock"


def configured_time_zone(settings: Settings) -> tzinfo | None:
    """IANA zone from settings, or None for the system local zone."""
    return ZoneInfo(settings.time_zone) if settings.time_zone else None


def create_health_store(settings: Settings) -> HealthStore:
    """Use the Apple Health export when one is configured, else mock data."""
    if settings.apple_health_export_path:
        store = AppleHealthStore(settings.apple_health_export_path)
        if store.is_connected():
            logger.info("Using Apple Health export at %s", store.export_path)
            return store
        logger.warning(
            "Apple Health export not found at %s; falling back to mock data",
            settings.apple_health_export_path,
        )

    now = system_clock(configured_time_zone(settings))()
    logger.info("Using mock health store (%d days of data)", settings.mock_history_days)
    return MockHealthStore(now, settings.mock_history_days)
