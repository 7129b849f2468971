"""In-memory health store.

Holds samples per type token and executes queries the way the platform store
does: strict/overlap predicates, sort descriptors, and anchored interval
buckets. Used for demo data, the Apple Health export store, and as the
collaborator in tests.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from enum import Enum
from typing import Callable, Iterable

from cardiologic.domains.health.connectors import (
    HealthAuthorizationError,
    HealthStoreError,
)
from cardiologic.domains.health.connectors.queries import (
    SampleQuery,
    StatisticsCollection,
    StatisticsCollectionQuery,
    StatisticsOptions,
)
from cardiologic.domains.health.connectors.samples import QuantitySample, Sample
from cardiologic.domains.health.connectors.sample_types import (
    HEALTHKIT_TYPE_TOKENS,
    HEART_RATE_TOKEN,
    HEART_RATE_UNIT,
    RESTING_HEART_RATE_TOKEN,
    STEP_UNIT,
    STEPS_TOKEN,
    VARIABILITY_TOKEN,
    VARIABILITY_UNIT,
    DataTypeIdentifier,
    TypeResolutionError,
)

logger = logging.getLogger(__name__)

# Unit in which each quantity type is aggregated
_STATISTICS_UNITS = {
    HEART_RATE_TOKEN: HEART_RATE_UNIT,
    RESTING_HEART_RATE_TOKEN: HEART_RATE_UNIT,
    VARIABILITY_TOKEN: VARIABILITY_UNIT,
    STEPS_TOKEN: STEP_UNIT,
}

_KNOWN_TOKENS = frozenset(HEALTHKIT_TYPE_TOKENS.values())


class AuthorizationStatus(str, Enum):
    NOT_DETERMINED = "not_determined"
    DENIED = "denied"
    AUTHORIZED = "authorized"


AuthorizationPolicy = Callable[[str, str], bool]


def grant_all(token: str, access: str) -> bool:
    return True


def deny_all(token: str, access: str) -> bool:
    return False


class InMemoryHealthStore:
    """HealthStore over samples held in memory.

    Authorization is decided once per (token, access) pair by ``policy``;
    later requests for decided pairs are no-ops. Reads of a type whose
    authorization was never requested raise ``HealthAuthorizationError``.
    Denied reads return no samples, so denial looks the same as no data.

    Usage::

        store = InMemoryHealthStore(samples, policy=grant_all)
        await store.request_authorization(frozenset(), frozenset({STEPS_TOKEN}))
        steps = await store.execute_sample_query(SampleQuery(STEPS_TOKEN))
    """

    def __init__(
        self,
        samples: Iterable[Sample] = (),
        *,
        policy: AuthorizationPolicy = grant_all,
        available: bool = True,
    ) -> None:
        self._samples: dict[str, list[Sample]] = defaultdict(list)
        self._status: dict[tuple[str, str], AuthorizationStatus] = {}
        self._policy = policy
        self._available = available
        self._lock = threading.Lock()
        self.add_samples(samples)

    @property
    def data_source(self) -> str:
        return "memory"

    def type_token(self, identifier: DataTypeIdentifier) -> str:
        try:
            return HEALTHKIT_TYPE_TOKENS[identifier]
        except KeyError as exc:
            raise TypeResolutionError(f"Unsupported data type: {identifier!r}") from exc

    def add_samples(self, samples: Iterable[Sample]) -> int:
        """Add samples without authorization checks. Returns the count added."""
        count = 0
        with self._lock:
            for sample in samples:
                self._samples[sample.type_token].append(sample)
                count += 1
        return count

    def authorization_status(self, token: str, access: str = "share") -> AuthorizationStatus:
        """Decision recorded for ``token``; ``access`` is 'share' or 'read'."""
        return self._status.get((token, access), AuthorizationStatus.NOT_DETERMINED)

    # ---------------------------------------------------------------
    # HealthStore
    # ---------------------------------------------------------------

    async def request_authorization(
        self,
        share_types: frozenset[str],
        read_types: frozenset[str],
    ) -> None:
        self._check_available()
        requested = [(t, "share") for t in share_types] + [(t, "read") for t in read_types]
        for token, _ in requested:
            self._check_token(token)

        prompted = 0
        with self._lock:
            for key in requested:
                if key in self._status:
                    continue
                granted = self._policy(*key)
                self._status[key] = (
                    AuthorizationStatus.AUTHORIZED if granted else AuthorizationStatus.DENIED
                )
                prompted += 1
        logger.debug("Authorization flow finished: %d new decision(s)", prompted)

    async def execute_sample_query(self, query: SampleQuery) -> list[Sample]:
        matched = self._matching(query.type_token, query.predicate)
        for descriptor in reversed(query.sort_descriptors):
            matched.sort(
                key=lambda s, key=descriptor.key: getattr(s, key),
                reverse=not descriptor.ascending,
            )
        if query.limit is not None:
            matched = matched[: query.limit]
        return matched

    async def execute_statistics_query(
        self, query: StatisticsCollectionQuery
    ) -> StatisticsCollection:
        if query.options is not StatisticsOptions.CUMULATIVE_SUM:
            raise HealthStoreError(f"Unsupported statistics option: {query.options!r}")
        unit = _STATISTICS_UNITS.get(query.type_token)
        if unit is None:
            raise HealthStoreError(f"Statistics are not available for {query.type_token}")
        samples = [
            s for s in self._matching(query.type_token, query.predicate)
            if isinstance(s, QuantitySample)
        ]
        return StatisticsCollection.from_samples(
            query.anchor_date, query.interval, unit, samples
        )

    async def save_samples(self, samples: Iterable[Sample]) -> int:
        """Save samples, requiring share authorization for each type."""
        self._check_available()
        samples = list(samples)
        for token in {s.type_token for s in samples}:
            self._check_token(token)
            status = self.authorization_status(token, "share")
            if status is not AuthorizationStatus.AUTHORIZED:
                raise HealthAuthorizationError(
                    f"Not authorized to share {token} ({status.value})"
                )
        return self.add_samples(samples)

    # ---------------------------------------------------------------
    # Internals
    # ---------------------------------------------------------------

    def _matching(self, token, predicate) -> list[Sample]:
        self._check_available()
        self._check_token(token)
        status = self.authorization_status(token, "read")
        if status is AuthorizationStatus.NOT_DETERMINED:
            raise HealthAuthorizationError(f"Authorization not determined for {token}")
        if status is AuthorizationStatus.DENIED:
            return []
        with self._lock:
            candidates = list(self._samples.get(token, ()))
        if predicate is None:
            return candidates
        return [s for s in candidates if predicate.matches(s)]

    def _check_available(self) -> None:
        if not self._available:
            raise HealthStoreError("Health data is not available on this device")

    def _check_token(self, token: str) -> None:
        if token not in _KNOWN_TOKENS:
            raise HealthStoreError(f"Unknown type token: {token!r}")
