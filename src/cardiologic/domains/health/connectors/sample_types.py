"""Health data type identifiers, store type tokens, and unit conversion.

HealthKit type mappings:
- HEART_RATE → HKQuantityTypeIdentifierHeartRate (count/min)
- RESTING_HEART_RATE → HKQuantityTypeIdentifierRestingHeartRate (count/min)
- HEART_RATE_VARIABILITY → HKQuantityTypeIdentifierHeartRateVariabilitySDNN (ms)
- STEPS → HKQuantityTypeIdentifierStepCount (count)
- WORKOUT → HKWorkoutTypeIdentifier
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class DataTypeIdentifier(str, Enum):
    """The fixed set of data types this package can query."""

    HEART_RATE = "heart_rate"
    RESTING_HEART_RATE = "resting_heart_rate"
    HEART_RATE_VARIABILITY = "heart_rate_variability"
    STEPS = "steps"
    WORKOUT = "workout"


class TypeResolutionError(ValueError):
    """Raised when a data type identifier has no store type token."""


# HealthKit type identifiers
HEART_RATE_TOKEN = "HKQuantityTypeIdentifierHeartRate"
RESTING_HEART_RATE_TOKEN = "HKQuantityTypeIdentifierRestingHeartRate"
VARIABILITY_TOKEN = "HKQuantityTypeIdentifierHeartRateVariabilitySDNN"
STEPS_TOKEN = "HKQuantityTypeIdentifierStepCount"
WORKOUT_TOKEN = "HKWorkoutTypeIdentifier"

HEALTHKIT_TYPE_TOKENS: Mapping[DataTypeIdentifier, str] = MappingProxyType({
    DataTypeIdentifier.HEART_RATE: HEART_RATE_TOKEN,
    DataTypeIdentifier.RESTING_HEART_RATE: RESTING_HEART_RATE_TOKEN,
    DataTypeIdentifier.HEART_RATE_VARIABILITY: VARIABILITY_TOKEN,
    DataTypeIdentifier.STEPS: STEPS_TOKEN,
    DataTypeIdentifier.WORKOUT: WORKOUT_TOKEN,
})

# Units used when presenting samples to callers
HEART_RATE_UNIT = "count/min"
VARIABILITY_UNIT = "ms"
STEP_UNIT = "count"
ENERGY_UNIT = "kcal"

# unit -> (dimension, factor to the dimension's base unit)
_UNITS: dict[str, tuple[str, float]] = {
    "count": ("count", 1.0),
    "count/s": ("frequency", 60.0),
    "count/min": ("frequency", 1.0),
    "s": ("time", 1.0),
    "ms": ("time", 0.001),
    "min": ("time", 60.0),
    "hr": ("time", 3600.0),
    "kcal": ("energy", 1.0),
    "Cal": ("energy", 1.0),
    "kJ": ("energy", 1 / 4.184),
    "m": ("length", 1.0),
    "km": ("length", 1000.0),
    "mi": ("length", 1609.344),
}


class IncompatibleUnitError(ValueError):
    """Raised when converting a quantity to a unit of another dimension."""


def resolve_type_tokens(
    resolver=None,
) -> Mapping[DataTypeIdentifier, str]:
    """Build the read-only identifier → token table.

    Args:
        resolver: Optional callable mapping an identifier to a store token.
            Defaults to the HealthKit identifier table.

    Raises:
        TypeResolutionError: If any identifier cannot be resolved.
    """
    table: dict[DataTypeIdentifier, str] = {}
    for identifier in DataTypeIdentifier:
        try:
            token = resolver(identifier) if resolver else HEALTHKIT_TYPE_TOKENS[identifier]
        except (KeyError, LookupError) as exc:
            raise TypeResolutionError(
                f"No store type token for {identifier.value!r}"
            ) from exc
        if not token:
            raise TypeResolutionError(f"No store type token for {identifier.value!r}")
        table[identifier] = token
    return MappingProxyType(table)


@dataclass(frozen=True)
class Quantity:
    """A value with an associated unit, e.g. ``Quantity(72, "count/min")``."""

    value: float
    unit: str

    def __post_init__(self) -> None:
        if self.unit not in _UNITS:
            raise IncompatibleUnitError(f"Unknown unit: {self.unit!r}")

    def is_compatible(self, unit: str) -> bool:
        """Whether this quantity can be expressed in ``unit``."""
        return unit in _UNITS and _UNITS[unit][0] == _UNITS[self.unit][0]

    def double_value(self, unit: str) -> float:
        """Express the quantity in ``unit``.

        Raises:
            IncompatibleUnitError: If ``unit`` is unknown or of another dimension.
        """
        if not self.is_compatible(unit):
            raise IncompatibleUnitError(
                f"Cannot convert {self.unit!r} to {unit!r}"
            )
        source_factor = _UNITS[self.unit][1]
        target_factor = _UNITS[unit][1]
        return self.value * source_factor / target_factor
