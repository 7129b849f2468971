"""Apple Health XML export parser.

Parses the ``export.xml`` file produced by Apple Health (iOS → Share → Export
Health Data) into immutable samples. Uses iterparse so large exports are
processed incrementally.

Only the types this package queries are kept:
- HKQuantityTypeIdentifierHeartRate
- HKQuantityTypeIdentifierRestingHeartRate
- HKQuantityTypeIdentifierHeartRateVariabilitySDNN
- HKQuantityTypeIdentifierStepCount
- Workout elements
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from datetime import datetime
from pathlib import Path

from cardiologic.domains.health.connectors.samples import QuantitySample, Sample, Workout
from cardiologic.domains.health.connectors.sample_types import (
    HEART_RATE_TOKEN,
    RESTING_HEART_RATE_TOKEN,
    STEPS_TOKEN,
    VARIABILITY_TOKEN,
    IncompatibleUnitError,
    Quantity,
)

logger = logging.getLogger(__name__)

_QUANTITY_TYPES = {
    HEART_RATE_TOKEN,
    RESTING_HEART_RATE_TOKEN,
    VARIABILITY_TOKEN,
    STEPS_TOKEN,
}


class AppleHealthParseError(Exception):
    """Raised when parsing Apple Health export XML fails."""


def _parse_date(date_str: str) -> datetime:
    """Parse Apple Health date format: '2025-12-01 08:30:00 -0500'."""
    try:
        return datetime.strptime(date_str, "%Y-%m-%d %H:%M:%S %z")
    except ValueError:
        # Fallback for ISO format
        return datetime.fromisoformat(date_str)


def _parse_record(elem: ET.Element) -> QuantitySample | None:
    rec_type = elem.get("type", "")
    if rec_type not in _QUANTITY_TYPES:
        return None
    start_str = elem.get("startDate", "")
    value_str = elem.get("value", "")
    if not start_str or not value_str:
        return None
    start = _parse_date(start_str)
    end_str = elem.get("endDate", "")
    return QuantitySample(
        type_token=rec_type,
        start_date=start,
        end_date=_parse_date(end_str) if end_str else start,
        source_name=elem.get("sourceName", ""),
        quantity=Quantity(float(value_str), elem.get("unit", "count")),
    )


def _parse_workout(elem: ET.Element) -> Workout | None:
    start_str = elem.get("startDate", "")
    end_str = elem.get("endDate", "")
    if not start_str or not end_str:
        return None
    duration = Quantity(
        float(elem.get("duration", "0") or "0"),
        elem.get("durationUnit", "min"),
    )
    energy_str = elem.get("totalEnergyBurned", "")
    energy = (
        Quantity(float(energy_str), elem.get("totalEnergyBurnedUnit", "kcal"))
        if energy_str
        else None
    )
    return Workout(
        start_date=_parse_date(start_str),
        end_date=_parse_date(end_str),
        source_name=elem.get("sourceName", ""),
        activity_type=elem.get("workoutActivityType", ""),
        duration_min=duration.double_value("min"),
        total_energy_burned=energy,
    )


def parse_export_samples(
    export_path: str | Path,
    since: datetime | None = None,
) -> list[Sample]:
    """Parse an Apple Health export.xml into samples.

    Malformed records (bad dates, values or units) are skipped.

    Args:
        export_path: Path to the Apple Health export.xml file.
        since: Optional lower bound; samples starting earlier are dropped.

    Returns:
        Quantity samples and workouts in document order.

    Raises:
        AppleHealthParseError: If the file is missing, unreadable or is not
            valid XML.
    """
    path = Path(export_path)
    if not path.exists():
        raise AppleHealthParseError(f"Export file not found: {path}")

    samples: list[Sample] = []
    skipped = 0
    workouts = 0

    try:
        for _, elem in ET.iterparse(str(path), events=("end",)):
            if elem.tag not in ("Record", "Workout"):
                continue
            try:
                if elem.tag == "Record":
                    sample = _parse_record(elem)
                else:
                    sample = _parse_workout(elem)
            except (ValueError, TypeError, IncompatibleUnitError):
                sample = None
                skipped += 1
            elem.clear()

            if sample is None or (since is not None and sample.start_date < since):
                continue
            if isinstance(sample, Workout):
                workouts += 1
            samples.append(sample)
    except ET.ParseError as exc:
        raise AppleHealthParseError(f"Invalid XML: {exc}") from exc
    except OSError as exc:
        raise AppleHealthParseError(f"Cannot read export: {exc}") from exc

    logger.info(
        "Parsed Apple Health export: %d samples (%d workouts), %d malformed records skipped",
        len(samples), workouts, skipped,
    )
    return samples
