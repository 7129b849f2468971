"""Immutable sample records produced by a health store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from cardiologic.domains.health.connectors.sample_types import (
    ENERGY_UNIT,
    WORKOUT_TOKEN,
    Quantity,
)


@dataclass(frozen=True, kw_only=True)
class Sample:
    """Base sample: a type token and the time interval it covers."""

    type_token: str
    start_date: datetime
    end_date: datetime
    source_name: str = ""

    @property
    def duration(self) -> timedelta:
        return self.end_date - self.start_date


@dataclass(frozen=True, kw_only=True)
class QuantitySample(Sample):
    """A single measurement with a unit-bearing value."""

    quantity: Quantity

    def value_in(self, unit: str) -> float:
        """Shorthand for ``sample.quantity.double_value(unit)``."""
        return self.quantity.double_value(unit)


@dataclass(frozen=True, kw_only=True)
class Workout(Sample):
    """A recorded workout session."""

    type_token: str = WORKOUT_TOKEN
    activity_type: str = ""              # e.g. 'HKWorkoutActivityTypeRunning'
    duration_min: float = 0.0
    total_energy_burned: Quantity | None = None

    @property
    def activity_name(self) -> str:
        """Activity type without the HealthKit prefix, lower-cased."""
        return self.activity_type.replace("HKWorkoutActivityType", "").lower()

    def energy_kcal(self) -> float | None:
        if self.total_energy_burned is None:
            return None
        return self.total_energy_burned.double_value(ENERGY_UNIT)
