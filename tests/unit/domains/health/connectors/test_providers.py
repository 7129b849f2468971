"""Tests for health store selection and mock data."""

from __future__ import annotations

import asyncio
from datetime import timedelta

from conftest import NOW, TODAY
from cardiologic.core.config.settings import Settings
from cardiologic.domains.health.connectors.apple_health import AppleHealthStore
from cardiologic.domains.health.connectors.mock_data import generate_mock_samples
from cardiologic.domains.health.connectors.providers import (
    MockHealthStore,
    configured_time_zone,
    create_health_store,
)
from cardiologic.domains.health.connectors.samples import Workout
from cardiologic.domains.health.connectors.sample_types import (
    HEART_RATE_TOKEN,
    RESTING_HEART_RATE_TOKEN,
    STEPS_TOKEN,
    DataTypeIdentifier,
)
from cardiologic.domains.health.domain_logic.health_manager import HealthManager


def _run(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class TestMockData:
    def test_deterministic(self):
        assert generate_mock_samples(NOW, 7) == generate_mock_samples(NOW, 7)

    def test_nothing_in_the_future(self):
        assert all(s.end_date <= NOW for s in generate_mock_samples(NOW, 7))

    def test_covers_requested_days(self):
        samples = generate_mock_samples(NOW, 7)
        resting = [s for s in samples if s.type_token == RESTING_HEART_RATE_TOKEN]
        assert len(resting) == 7
        assert min(s.start_date for s in samples) >= TODAY - timedelta(days=6)

    def test_includes_every_type(self):
        samples = generate_mock_samples(NOW, 7)
        tokens = {s.type_token for s in samples}
        assert {HEART_RATE_TOKEN, STEPS_TOKEN} <= tokens
        assert any(isinstance(s, Workout) for s in samples)


class TestCreateHealthStore:
    def test_mock_when_no_export(self):
        store = create_health_store(Settings(apple_health_export_path=""))
        assert isinstance(store, MockHealthStore)
        assert store.data_source == "mock"

    def test_mock_when_export_missing(self, tmp_path):
        store = create_health_store(
            Settings(apple_health_export_path=str(tmp_path / "missing.xml"))
        )
        assert store.data_source == "mock"

    def test_apple_health_when_export_exists(self, tmp_path):
        export = tmp_path / "export.xml"
        export.write_text("<HealthData/>")
        store = create_health_store(Settings(apple_health_export_path=str(export)))
        assert isinstance(store, AppleHealthStore)

    def test_time_zone_setting(self):
        assert configured_time_zone(Settings(time_zone="")) is None
        assert configured_time_zone(Settings(time_zone="UTC")).key == "UTC"


class TestMockStoreEndToEnd:
    def test_daily_steps_for_the_last_week(self):
        store = MockHealthStore(NOW, days=7)
        manager = HealthManager(store, clock=lambda: NOW)
        _run(manager.authorize({DataTypeIdentifier.STEPS}))
        result = _run(manager.fetch_daily_steps())
        days = list(result.data.enumerate_statistics(TODAY - timedelta(days=6), NOW))
        assert len(days) == 7
        assert all(d.sum_quantity is not None for d in days[:-1])
