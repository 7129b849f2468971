"""Health store connectors: the boundary to the platform health-data store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from cardiologic.domains.health.connectors.queries import (
        SampleQuery,
        StatisticsCollection,
        StatisticsCollectionQuery,
    )
    from cardiologic.domains.health.connectors.sample_types import DataTypeIdentifier
    from cardiologic.domains.health.connectors.samples import Sample


class HealthStoreError(Exception):
    """Raised when the store cannot complete a request."""


class HealthAuthorizationError(HealthStoreError):
    """Raised when a query targets a type whose authorization was never requested."""


@runtime_checkable
class HealthStore(Protocol):
    """Abstract interface for a health-data store.

    The manager resolves type tokens once, then issues single-shot
    asynchronous requests. Implementations must be safe to call
    concurrently.
    """

    def type_token(self, identifier: DataTypeIdentifier) -> str:
        """Store-native token for ``identifier``."""
        ...

    async def request_authorization(
        self,
        share_types: frozenset[str],
        read_types: frozenset[str],
    ) -> None:
        """Run the permission flow; raise HealthStoreError if it cannot run."""
        ...

    async def execute_sample_query(self, query: SampleQuery) -> list[Sample]:
        """Return every sample matching ``query``."""
        ...

    async def execute_statistics_query(
        self, query: StatisticsCollectionQuery
    ) -> StatisticsCollection:
        """Return bucketed statistics for ``query``."""
        ...

    @property
    def data_source(self) -> str:
        """Label for the store: 'apple_health', 'mock', or 'memory'."""
        ...
