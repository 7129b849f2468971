"""Apple Health store — serves queries from an exported Health data XML.

Users export via iOS Health app → Share → Export Health Data → produces
export.xml. The export is parsed on first use and then queried in memory.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from cardiologic.domains.health.connectors import HealthStoreError
from cardiologic.domains.health.connectors.apple_health_parser import (
    AppleHealthParseError,
    parse_export_samples,
)
from cardiologic.domains.health.connectors.memory_store import (
    AuthorizationPolicy,
    InMemoryHealthStore,
    grant_all,
)
from cardiologic.domains.health.connectors.queries import (
    SampleQuery,
    StatisticsCollection,
    StatisticsCollectionQuery,
)
from cardiologic.domains.health.connectors.samples import Sample

logger = logging.getLogger(__name__)


class AppleHealthStore(InMemoryHealthStore):
    """HealthStore backed by an Apple Health XML export.

    Usage::

        store = AppleHealthStore("/path/to/export.xml")
        if store.is_connected():
            await store.request_authorization(frozenset(), read_tokens)
    """

    def __init__(
        self,
        export_path: str,
        *,
        policy: AuthorizationPolicy = grant_all,
    ) -> None:
        super().__init__(policy=policy, available=True)
        self._export_path = export_path
        self._loaded = False

    @property
    def data_source(self) -> str:
        return "apple_health"

    @property
    def export_path(self) -> str:
        return self._export_path

    def is_connected(self) -> bool:
        """Check if the export file exists."""
        return bool(self._export_path) and Path(self._export_path).exists()

    async def execute_sample_query(self, query: SampleQuery) -> list[Sample]:
        self._load()
        return await super().execute_sample_query(query)

    async def execute_statistics_query(
        self, query: StatisticsCollectionQuery
    ) -> StatisticsCollection:
        self._load()
        return await super().execute_statistics_query(query)

    async def save_samples(self, samples: Iterable[Sample]) -> int:
        raise HealthStoreError("Apple Health exports are read-only")

    def _load(self) -> None:
        """Parse the export once; a failed parse is retried on the next query."""
        if self._loaded:
            return
        try:
            samples = parse_export_samples(self._export_path)
        except AppleHealthParseError as exc:
            logger.exception("Failed to parse Apple Health export")
            raise HealthStoreError(str(exc)) from exc
        self.add_samples(samples)
        self._loaded = True
