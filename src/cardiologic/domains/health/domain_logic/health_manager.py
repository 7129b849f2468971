"""Authorization and time-ranged queries over a HealthStore.

Two calling styles are offered for every query:

* ``fetch_*`` coroutines return a ``QueryResult`` that tells success,
  unauthorized and transport failure apart.
* Callback methods (``heart_rate``, ``workouts``, ``daily_steps`` ...) invoke a
  handler once on success. On any failure the handler is never called and a
  single warning is logged, so a silent callback cannot tell "no data",
  "no access" and "store failure" apart.

Handlers always run on the event loop thread that executed the query.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Collection
from concurrent.futures import Future
from datetime import datetime, timedelta, tzinfo
from typing import Any, Awaitable, Mapping

from cardiologic.domains.health.connectors import (
    HealthAuthorizationError,
    HealthStore,
    HealthStoreError,
)
from cardiologic.domains.health.connectors.queries import (
    START_DATE_SORT_KEY,
    QueryOptions,
    SampleQuery,
    SortDescriptor,
    StatisticsCollection,
    StatisticsCollectionQuery,
    StatisticsOptions,
    predicate_for_samples,
)
from cardiologic.domains.health.connectors.samples import QuantitySample, Sample, Workout
from cardiologic.domains.health.connectors.sample_types import (
    DataTypeIdentifier,
    resolve_type_tokens,
)
from cardiologic.domains.health.domain_logic.query_result import QueryResult

logger = logging.getLogger(__name__)

DAILY_INTERVAL = timedelta(days=1)

# Sample class each queryable identifier must yield
_SAMPLE_CLASSES: dict[DataTypeIdentifier, type[Sample]] = {
    DataTypeIdentifier.HEART_RATE: QuantitySample,
    DataTypeIdentifier.RESTING_HEART_RATE: QuantitySample,
    DataTypeIdentifier.HEART_RATE_VARIABILITY: QuantitySample,
    DataTypeIdentifier.WORKOUT: Workout,
}

Clock = Callable[[], datetime]


class AuthorizationRequestError(RuntimeError):
    """The authorization flow could not run. Not recoverable."""


def system_clock(tz: tzinfo | None = None) -> Clock:
    """Clock returning the current aware time in ``tz`` (system zone if None)."""
    if tz is not None:
        return lambda: datetime.now(tz)
    return lambda: datetime.now().astimezone()


def start_of_day(instant: datetime) -> datetime:
    """Local midnight of the calendar day containing ``instant``."""
    return instant.replace(hour=0, minute=0, second=0, microsecond=0)


class HealthManager:
    """Authorization and fixed-shape queries against one shared store.

    Usage::

        manager = HealthManager(store)
        await manager.authorize({DataTypeIdentifier.HEART_RATE})
        result = await manager.fetch_heart_rate(start, end)
        if result.ok:
            bpm = [s.value_in(HEART_RATE_UNIT) for s in result.data]
    """

    def __init__(
        self,
        store: HealthStore,
        *,
        clock: Clock | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Resolve type tokens and bind the store.

        Args:
            store: Health store shared by every query.
            clock: Returns the current aware time; anchors daily statistics.
                Defaults to the system clock in the local zone.
            loop: Loop used when callback methods are called from a thread
                without a running loop.

        Raises:
            TypeResolutionError: If the store cannot resolve every identifier.
        """
        self._store = store
        self._clock = clock or system_clock()
        self._loop = loop
        self._tokens: Mapping[DataTypeIdentifier, str] = resolve_type_tokens(
            store.type_token
        )

    @property
    def type_tokens(self) -> Mapping[DataTypeIdentifier, str]:
        return self._tokens

    # ---------------------------------------------------------------
    # Authorization
    # ---------------------------------------------------------------

    async def authorize(
        self,
        reading_types: Collection[DataTypeIdentifier] | None = None,
        writing_types: Collection[DataTypeIdentifier] | None = None,
    ) -> None:
        """Run the permission flow for the given types.

        Returning means the flow finished, not that access was granted.

        Raises:
            AuthorizationRequestError: If the store could not run the flow.
        """
        read = frozenset(self._tokens[t] for t in reading_types or ())
        share = frozenset(self._tokens[t] for t in writing_types or ())
        try:
            await self._store.request_authorization(share, read)
        except HealthStoreError as exc:
            logger.critical("Authorization failure: %s", exc)
            raise AuthorizationRequestError(f"Authorization failure: {exc}") from exc

    def request_authorization(
        self,
        reading_types: Collection[DataTypeIdentifier] | None,
        writing_types: Collection[DataTypeIdentifier] | None,
        completion: Callable[[], Any],
    ) -> asyncio.Future | Future:
        """Callback form of ``authorize``; ``completion`` runs exactly once.

        When the flow could not run, ``completion`` is not called, the
        ``AuthorizationRequestError`` is passed to the loop's exception
        handler (so fire-and-forget callers still see it) and the returned
        task raises it.
        """

        async def _request() -> None:
            try:
                await self.authorize(reading_types, writing_types)
            except AuthorizationRequestError as exc:
                asyncio.get_running_loop().call_exception_handler({
                    "message": "Health store authorization could not run",
                    "exception": exc,
                })
                raise
            completion()

        return self._dispatch(_request())

    # ---------------------------------------------------------------
    # Sample queries
    # ---------------------------------------------------------------

    def build_sample_query(
        self,
        identifier: DataTypeIdentifier,
        start: datetime,
        end: datetime,
        sort_descending: bool = False,
    ) -> SampleQuery:
        """Unlimited query for samples lying entirely inside ``[start, end]``.

        Naive bounds are taken in the zone of the manager's clock.
        """
        if identifier not in _SAMPLE_CLASSES:
            raise ValueError(f"{identifier.value!r} does not support sample queries")
        start, end = self._aware(start), self._aware(end)
        predicate = predicate_for_samples(
            start,
            end,
            QueryOptions.STRICT_START_DATE | QueryOptions.STRICT_END_DATE,
        )
        sort = (
            (SortDescriptor(key=START_DATE_SORT_KEY, ascending=False),)
            if sort_descending
            else ()
        )
        return SampleQuery(
            type_token=self._tokens[identifier],
            predicate=predicate,
            limit=None,
            sort_descriptors=sort,
        )

    async def fetch_samples(
        self,
        identifier: DataTypeIdentifier,
        start: datetime,
        end: datetime,
        sort_descending: bool = False,
    ) -> QueryResult[list[Sample]]:
        query = self.build_sample_query(identifier, start, end, sort_descending)
        try:
            results = await self._store.execute_sample_query(query)
        except HealthAuthorizationError as exc:
            return QueryResult.unauthorized(str(exc))
        except HealthStoreError as exc:
            return QueryResult.transport_failure(str(exc))
        except Exception as exc:
            return QueryResult.transport_failure(f"{type(exc).__name__}: {exc}")

        if results is None:
            return QueryResult.unauthorized(
                f"no {identifier.value} samples returned; authorization may not have been granted"
            )
        expected = _SAMPLE_CLASSES[identifier]
        if not isinstance(results, (list, tuple)) or not all(
            isinstance(s, expected) for s in results
        ):
            return QueryResult.transport_failure(
                f"unexpected {identifier.value} result: {type(results).__name__}"
            )

        samples = list(results)
        if sort_descending:
            samples.sort(key=lambda s: s.start_date, reverse=True)
        return QueryResult.success(samples)

    async def fetch_heart_rate(self, start: datetime, end: datetime) -> QueryResult[list[Sample]]:
        return await self.fetch_samples(DataTypeIdentifier.HEART_RATE, start, end)

    async def fetch_resting_heart_rate(
        self, start: datetime, end: datetime
    ) -> QueryResult[list[Sample]]:
        return await self.fetch_samples(DataTypeIdentifier.RESTING_HEART_RATE, start, end)

    async def fetch_variability(self, start: datetime, end: datetime) -> QueryResult[list[Sample]]:
        return await self.fetch_samples(DataTypeIdentifier.HEART_RATE_VARIABILITY, start, end)

    async def fetch_workouts(self, start: datetime, end: datetime) -> QueryResult[list[Sample]]:
        """Workouts in the range, most recent first."""
        return await self.fetch_samples(
            DataTypeIdentifier.WORKOUT, start, end, sort_descending=True
        )

    def query_samples(
        self,
        identifier: DataTypeIdentifier,
        start: datetime,
        end: datetime,
        sort_descending: bool,
        handler: Callable[[list[Sample]], Any],
    ) -> asyncio.Future | Future:
        """Callback form of ``fetch_samples``."""
        if identifier not in _SAMPLE_CLASSES:
            raise ValueError(f"{identifier.value!r} does not support sample queries")
        return self._dispatch(self._deliver(
            identifier.value,
            lambda: self.fetch_samples(identifier, start, end, sort_descending),
            handler,
        ))

    def heart_rate(self, start: datetime, end: datetime, handler: Callable[[list[Sample]], Any]):
        """Fetch every heart rate sample within ``[start, end]``."""
        return self.query_samples(DataTypeIdentifier.HEART_RATE, start, end, False, handler)

    def resting_heart_rate(
        self, start: datetime, end: datetime, handler: Callable[[list[Sample]], Any]
    ):
        """Fetch daily resting heart rate samples within ``[start, end]``."""
        return self.query_samples(
            DataTypeIdentifier.RESTING_HEART_RATE, start, end, False, handler
        )

    def variability(self, start: datetime, end: datetime, handler: Callable[[list[Sample]], Any]):
        """Fetch HRV (SDNN) samples; there may be several per day."""
        return self.query_samples(
            DataTypeIdentifier.HEART_RATE_VARIABILITY, start, end, False, handler
        )

    def workouts(self, start: datetime, end: datetime, handler: Callable[[list[Sample]], Any]):
        """Fetch workouts within ``[start, end]``, most recent first."""
        return self.query_samples(DataTypeIdentifier.WORKOUT, start, end, True, handler)

    # ---------------------------------------------------------------
    # Daily statistics
    # ---------------------------------------------------------------

    def build_daily_steps_query(self) -> StatisticsCollectionQuery:
        """Daily cumulative step sums anchored at today's local midnight."""
        return StatisticsCollectionQuery(
            type_token=self._tokens[DataTypeIdentifier.STEPS],
            anchor_date=start_of_day(self._clock()),
            interval=DAILY_INTERVAL,
            options=StatisticsOptions.CUMULATIVE_SUM,
            predicate=None,
        )

    async def fetch_daily_steps(self) -> QueryResult[StatisticsCollection]:
        query = self.build_daily_steps_query()
        try:
            results = await self._store.execute_statistics_query(query)
        except HealthAuthorizationError as exc:
            return QueryResult.unauthorized(str(exc))
        except HealthStoreError as exc:
            return QueryResult.transport_failure(str(exc))
        except Exception as exc:
            return QueryResult.transport_failure(f"{type(exc).__name__}: {exc}")

        if results is None:
            return QueryResult.unauthorized(
                "no step statistics returned; authorization may not have been granted"
            )
        if not isinstance(results, StatisticsCollection):
            return QueryResult.transport_failure(
                f"unexpected step statistics result: {type(results).__name__}"
            )
        return QueryResult.success(results)

    def daily_steps(self, handler: Callable[[StatisticsCollection], Any]):
        """Fetch daily step totals.

        The handler receives the collection; iterate it with
        ``collection.enumerate_statistics(start, end)``, one entry per day.
        """
        return self._dispatch(self._deliver("daily_steps", self.fetch_daily_steps, handler))

    # ---------------------------------------------------------------
    # Internals
    # ---------------------------------------------------------------

    def _aware(self, instant: datetime) -> datetime:
        if instant.tzinfo is None:
            return instant.replace(tzinfo=self._clock().tzinfo)
        return instant

    async def _deliver(
        self,
        label: str,
        fetch: Callable[[], Awaitable[QueryResult[Any]]],
        handler: Callable[[Any], Any],
    ) -> None:
        result = await fetch()
        if not result.ok:
            logger.warning("%s query failed (%s): %s", label, result.status.value, result.reason)
            return
        handler(result.data)

    def _dispatch(self, coro) -> asyncio.Future | Future:
        """Schedule ``coro`` on the running loop, or on the configured loop."""
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is not None and (self._loop is None or self._loop is running):
            return running.create_task(coro)
        if self._loop is None:
            coro.close()
            raise RuntimeError("No running event loop; pass loop= to HealthManager")
        return asyncio.run_coroutine_threadsafe(coro, self._loop)
