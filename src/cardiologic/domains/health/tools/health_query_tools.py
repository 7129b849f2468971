"""MCP tools for authorization and health data queries.

Each range tool takes ISO 8601 ``start``/``end`` and returns a JSON string
with the query ``status`` and values converted to display units.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from typing import Any

from fastmcp import Context, FastMCP

from cardiologic.domains.health.connectors.samples import QuantitySample, Sample, Workout
from cardiologic.domains.health.connectors.sample_types import (
    HEART_RATE_UNIT,
    STEP_UNIT,
    VARIABILITY_UNIT,
    DataTypeIdentifier,
)
from cardiologic.domains.health.domain_logic.health_manager import (
    HealthManager,
    start_of_day,
)
from cardiologic.domains.health.domain_logic.query_result import QueryResult

logger = logging.getLogger(__name__)


def _parse_range(start: str, end: str, now: datetime) -> tuple[datetime, datetime]:
    """Parse ISO 8601 bounds; blanks mean today's midnight and now.

    Naive values are taken in the zone of ``now``.
    """
    start_dt = datetime.fromisoformat(start) if start else start_of_day(now)
    end_dt = datetime.fromisoformat(end) if end else now
    if start_dt.tzinfo is None:
        start_dt = start_dt.replace(tzinfo=now.tzinfo)
    if end_dt.tzinfo is None:
        end_dt = end_dt.replace(tzinfo=now.tzinfo)
    if start_dt > end_dt:
        raise ValueError("start must not be after end")
    return start_dt, end_dt


def _quantity_rows(samples: list[Sample], unit: str) -> list[dict[str, Any]]:
    return [
        {
            "start": s.start_date.isoformat(),
            "end": s.end_date.isoformat(),
            "value": round(s.value_in(unit), 2),
            "unit": unit,
            "source": s.source_name,
        }
        for s in samples
        if isinstance(s, QuantitySample)
    ]


def _workout_rows(samples: list[Sample]) -> list[dict[str, Any]]:
    return [
        {
            "start": w.start_date.isoformat(),
            "end": w.end_date.isoformat(),
            "activity": w.activity_name,
            "duration_min": round(w.duration_min, 1),
            "energy_kcal": w.energy_kcal(),
        }
        for w in samples
        if isinstance(w, Workout)
    ]


def _failure(result: QueryResult[Any]) -> str:
    return json.dumps({"status": result.status.value, "reason": result.reason})


def register_health_query_tools(
    mcp: FastMCP,
    manager: HealthManager,
    clock,
) -> None:
    """Register authorization and query tools on the MCP server."""

    @mcp.tool
    async def request_authorization(
        ctx: Context,
        read_types: list[str] | None = None,
        write_types: list[str] | None = None,
    ) -> str:
        """Request read/write access to health data types.

        Completion means the permission flow finished, not that access was
        granted.

        Args:
            read_types: Types to read: heart_rate, resting_heart_rate,
                heart_rate_variability, steps, workout. Defaults to none.
            write_types: Types to write. Defaults to none.
        """
        reading = [DataTypeIdentifier(t) for t in read_types or ()]
        writing = [DataTypeIdentifier(t) for t in write_types or ()]
        await manager.authorize(reading, writing)
        logger.info("Authorization flow finished for %d read type(s)", len(reading))
        return json.dumps({
            "status": "completed",
            "read_types": [t.value for t in reading],
            "write_types": [t.value for t in writing],
        })

    async def _range_query(identifier: DataTypeIdentifier, start: str, end: str, unit: str) -> str:
        start_dt, end_dt = _parse_range(start, end, clock())
        result = await manager.fetch_samples(identifier, start_dt, end_dt)
        if not result.ok:
            return _failure(result)
        rows = _quantity_rows(result.data, unit)
        return json.dumps({"status": result.status.value, "count": len(rows), "samples": rows})

    @mcp.tool
    async def heart_rate(ctx: Context, start: str = "", end: str = "") -> str:
        """Heart rate samples (bpm) recorded entirely within the range.

        Args:
            start: Range start (ISO 8601). Defaults to today's midnight.
            end: Range end (ISO 8601). Defaults to now.
        """
        return await _range_query(DataTypeIdentifier.HEART_RATE, start, end, HEART_RATE_UNIT)

    @mcp.tool
    async def resting_heart_rate(ctx: Context, start: str = "", end: str = "") -> str:
        """Daily resting heart rate samples (bpm) within the range.

        Args:
            start: Range start (ISO 8601). Defaults to today's midnight.
            end: Range end (ISO 8601). Defaults to now.
        """
        return await _range_query(
            DataTypeIdentifier.RESTING_HEART_RATE, start, end, HEART_RATE_UNIT
        )

    @mcp.tool
    async def heart_rate_variability(ctx: Context, start: str = "", end: str = "") -> str:
        """HRV (SDNN, ms) samples within the range. Several per day are possible.

        Args:
            start: Range start (ISO 8601). Defaults to today's midnight.
            end: Range end (ISO 8601). Defaults to now.
        """
        return await _range_query(
            DataTypeIdentifier.HEART_RATE_VARIABILITY, start, end, VARIABILITY_UNIT
        )

    @mcp.tool
    async def workouts(ctx: Context, start: str = "", end: str = "") -> str:
        """Workouts within the range, most recent first.

        Args:
            start: Range start (ISO 8601). Defaults to today's midnight.
            end: Range end (ISO 8601). Defaults to now.
        """
        start_dt, end_dt = _parse_range(start, end, clock())
        result = await manager.fetch_workouts(start_dt, end_dt)
        if not result.ok:
            return _failure(result)
        rows = _workout_rows(result.data)
        return json.dumps({"status": result.status.value, "count": len(rows), "workouts": rows})

    @mcp.tool
    async def daily_steps(ctx: Context, days: int = 7) -> str:
        """Step totals per local day for the last ``days`` days, oldest first.

        Args:
            days: Number of days ending today (1-365).
        """
        days = max(1, min(days, 365))
        result = await manager.fetch_daily_steps()
        if not result.ok:
            return _failure(result)
        collection = result.data
        now = clock()
        first_day = collection.anchor_date - timedelta(days=days - 1)
        totals = [
            {
                "date": stats.start_date.date().isoformat(),
                "steps": (
                    round(stats.sum_quantity.double_value(STEP_UNIT))
                    if stats.sum_quantity is not None
                    else 0
                ),
            }
            for stats in collection.enumerate_statistics(first_day, now)
        ]
        return json.dumps({"status": result.status.value, "days": totals})
