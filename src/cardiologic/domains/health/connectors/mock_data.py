"""Mock health samples for development and testing.

All mock data represents a median healthy adult: resting heart rate in the
60s, HRV around 40 ms, 6-10k steps a day, a workout every other day. Values
are deterministic for a given ``now``.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta

from cardiologic.domains.health.connectors.samples import QuantitySample, Sample, Workout
from cardiologic.domains.health.connectors.sample_types import (
    ENERGY_UNIT,
    HEART_RATE_TOKEN,
    HEART_RATE_UNIT,
    RESTING_HEART_RATE_TOKEN,
    STEP_UNIT,
    STEPS_TOKEN,
    VARIABILITY_TOKEN,
    VARIABILITY_UNIT,
    Quantity,
)

_WORKOUT_TYPES = (
    "HKWorkoutActivityTypeRunning",
    "HKWorkoutActivityTypeCycling",
    "HKWorkoutActivityTypeYoga",
)


def _wave(day: int, period: int, amplitude: float) -> float:
    return amplitude * math.sin(2 * math.pi * day / period)


def _mock_day(day_start: datetime, day: int) -> list[Sample]:
    samples: list[Sample] = []

    # Heart rate every two waking hours
    for hour in range(7, 23, 2):
        at = day_start + timedelta(hours=hour)
        bpm = 72 + _wave(hour, 24, 10) + _wave(day, 7, 3)
        samples.append(QuantitySample(
            type_token=HEART_RATE_TOKEN,
            start_date=at,
            end_date=at,
            source_name="Mock Watch",
            quantity=Quantity(round(bpm), HEART_RATE_UNIT),
        ))

    morning = day_start + timedelta(hours=6)
    samples.append(QuantitySample(
        type_token=RESTING_HEART_RATE_TOKEN,
        start_date=morning,
        end_date=morning,
        source_name="Mock Watch",
        quantity=Quantity(round(64 + _wave(day, 7, 2)), HEART_RATE_UNIT),
    ))
    samples.append(QuantitySample(
        type_token=VARIABILITY_TOKEN,
        start_date=morning,
        end_date=morning,
        source_name="Mock Watch",
        quantity=Quantity(round(42 + _wave(day, 10, 6), 1), VARIABILITY_UNIT),
    ))

    # Steps in three blocks
    daily_steps = 8000 + _wave(day, 7, 2000)
    for start_hour, share in ((8, 0.3), (12, 0.3), (17, 0.4)):
        start = day_start + timedelta(hours=start_hour)
        samples.append(QuantitySample(
            type_token=STEPS_TOKEN,
            start_date=start,
            end_date=start + timedelta(hours=2),
            source_name="Mock Phone",
            quantity=Quantity(round(daily_steps * share), STEP_UNIT),
        ))

    if day % 2 == 0:
        start = day_start + timedelta(hours=18)
        duration = 30 + (day % 3) * 10
        samples.append(Workout(
            start_date=start,
            end_date=start + timedelta(minutes=duration),
            source_name="Mock Watch",
            activity_type=_WORKOUT_TYPES[day % len(_WORKOUT_TYPES)],
            duration_min=float(duration),
            total_energy_burned=Quantity(duration * 9.0, ENERGY_UNIT),
        ))

    return samples


def generate_mock_samples(now: datetime, days: int = 30) -> list[Sample]:
    """Return samples for the ``days`` local days up to and including today.

    Samples later than ``now`` are omitted.
    """
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    samples: list[Sample] = []
    for offset in range(days - 1, -1, -1):
        day_start = today - timedelta(days=offset)
        samples.extend(
            s for s in _mock_day(day_start, day_start.toordinal())
            if s.end_date <= now
        )
    return samples
