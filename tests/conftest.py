"""Shared test fixtures for Cardiologic tests."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APPLE_HEALTH_EXPORT_PATH", "")
    monkeypatch.setenv("TIME_ZONE", "UTC")
    monkeypatch.setenv("MOCK_HISTORY_DAYS", "30")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from cardiologic.domains.health.connectors import HealthStoreError  # noqa: E402
from cardiologic.domains.health.connectors.memory_store import (  # noqa: E402
    InMemoryHealthStore,
)
from cardiologic.domains.health.connectors.sample_types import (  # noqa: E402
    HEALTHKIT_TYPE_TOKENS,
    HEART_RATE_TOKEN,
    HEART_RATE_UNIT,
    STEP_UNIT,
    STEPS_TOKEN,
    Quantity,
)
from cardiologic.domains.health.connectors.samples import (  # noqa: E402
    QuantitySample,
    Workout,
)

UTC = timezone.utc

# Fixed "now": 2026-03-10 15:30 UTC
NOW = datetime(2026, 3, 10, 15, 30, tzinfo=UTC)
TODAY = datetime(2026, 3, 10, tzinfo=UTC)


def make_quantity_sample(
    start: datetime,
    value: float = 70,
    *,
    token: str = HEART_RATE_TOKEN,
    unit: str = HEART_RATE_UNIT,
    duration: timedelta = timedelta(0),
) -> QuantitySample:
    """Create a quantity sample with sensible defaults."""
    return QuantitySample(
        type_token=token,
        start_date=start,
        end_date=start + duration,
        source_name="Test Watch",
        quantity=Quantity(value, unit),
    )


def make_steps(start: datetime, count: float, hours: int = 1) -> QuantitySample:
    return make_quantity_sample(
        start, count, token=STEPS_TOKEN, unit=STEP_UNIT, duration=timedelta(hours=hours)
    )


def make_workout(start: datetime, minutes: int = 30, activity: str = "Running") -> Workout:
    return Workout(
        start_date=start,
        end_date=start + timedelta(minutes=minutes),
        source_name="Test Watch",
        activity_type=f"HKWorkoutActivityType{activity}",
        duration_min=float(minutes),
        total_energy_burned=Quantity(minutes * 10.0, "kcal"),
    )


class FixedClock:
    """Settable clock for deterministic anchoring."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class StubHealthStore:
    """Collaborator stub returning canned results and recording calls.

    ``sample_results`` / ``statistics_result`` are returned as-is (any shape);
    an exception instance in their place is raised instead.
    """

    def __init__(
        self,
        sample_results: Any = (),
        statistics_result: Any = None,
        authorization_error: Exception | None = None,
    ) -> None:
        self.sample_results = sample_results
        self.statistics_result = statistics_result
        self.authorization_error = authorization_error
        self.authorization_calls: list[tuple[frozenset[str], frozenset[str]]] = []
        self.sample_queries: list[Any] = []
        self.statistics_queries: list[Any] = []

    @property
    def data_source(self) -> str:
        return "stub"

    def type_token(self, identifier):
        return HEALTHKIT_TYPE_TOKENS[identifier]

    async def request_authorization(self, share_types, read_types):
        self.authorization_calls.append((share_types, read_types))
        if self.authorization_error is not None:
            raise self.authorization_error

    async def execute_sample_query(self, query):
        self.sample_queries.append(query)
        if isinstance(self.sample_results, Exception):
            raise self.sample_results
        if isinstance(self.sample_results, tuple):
            return list(self.sample_results)
        return self.sample_results

    async def execute_statistics_query(self, query):
        self.statistics_queries.append(query)
        if isinstance(self.statistics_result, Exception):
            raise self.statistics_result
        return self.statistics_result


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def stub_store() -> StubHealthStore:
    return StubHealthStore()


@pytest.fixture
def failing_store() -> StubHealthStore:
    """Stub whose every call fails at the transport level."""
    error = HealthStoreError("store unavailable")
    return StubHealthStore(
        sample_results=error,
        statistics_result=error,
        authorization_error=error,
    )


@pytest.fixture
def memory_store() -> InMemoryHealthStore:
    """An empty in-memory store (nothing authorized yet)."""
    return InMemoryHealthStore()
