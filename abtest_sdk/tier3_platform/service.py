"""
abtest_sdk.tier3_platform.service
────────────────────────────────────
ExperimentService: the only entry point that touches experiment state.

choose_variant reads without locking (slightly stale weights are fine).
record_impression / record_conversion are one read-modify-write transaction
per experiment id:

  1. a per-experiment asyncio.Lock serializes writers in this process;
  2. the repository's version stamp (compare-and-swap) catches writers in
     other processes; conflicts are retried with exponential backoff up to
     ABTEST_MAX_ATTEMPTS and then surfaced as StoreUnavailableError.

Every store call is bounded by ABTEST_STORE_TIMEOUT; a timeout surfaces as
StoreUnavailableError and is not retried here.
"""
from __future__ import annotations

import asyncio
import time
import weakref
from collections.abc import Awaitable
from typing import Any, TypeVar

from abtest_sdk.tier0_core.config import EngineConfig, get_config
from abtest_sdk.tier0_core.errors import ConcurrentUpdateConflict, StoreUnavailableError
from abtest_sdk.tier0_core.logging import get_logger
from abtest_sdk.tier0_core.metrics import counter, gauge, histogram
from abtest_sdk.tier1_runtime.retry import retrying
from abtest_sdk.tier1_runtime.validate import validate_input
from abtest_sdk.tier2_reliability.repository import ExperimentRepository, get_repository
from abtest_sdk.tier2_reliability.sticky import StickyStore, get_sticky_store
from abtest_sdk.tier3_platform.assigner import VariantAssigner
from abtest_sdk.tier3_platform.experiments import (
    Assignment,
    Experiment,
    ExperimentDraft,
    ExperimentStats,
    PublicExperiment,
    build_experiment,
)
from abtest_sdk.tier3_platform.policy import EpsilonGreedyPolicy, ReallocationPolicy
from abtest_sdk.tier3_platform.recorder import EventKind, EventRecorder

logger = get_logger(__name__)

T = TypeVar("T")

_assignments_total = counter(
    "abtest_assignments_total", "Variant assignments served", ["sticky"]
)
_events_total = counter("abtest_events_total", "Recorded experiment events", ["event"])
_reallocations_total = counter(
    "abtest_reallocations_total", "Weight recomputations triggered by conversions"
)
_conflicts_total = counter(
    "abtest_update_conflicts_total", "Optimistic-lock conflicts on experiment save"
)
_variant_weight = gauge(
    "abtest_variant_weight", "Current traffic weight per variant", ["experiment", "variant"]
)
_rmw_duration = histogram(
    "abtest_rmw_duration_seconds", "Read-modify-write duration per event", ["event"]
)


class ExperimentService:
    def __init__(
        self,
        repository: ExperimentRepository | None = None,
        sticky_store: StickyStore | None = None,
        *,
        policy: ReallocationPolicy | None = None,
        assigner: VariantAssigner | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self._config = config or get_config()
        self._repository = repository or get_repository()
        self._sticky = sticky_store or get_sticky_store()
        self._recorder = EventRecorder(policy or EpsilonGreedyPolicy(self._config.epsilon))
        self._assigner = assigner or VariantAssigner()
        # An entry lives only while some writer holds or awaits its lock.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, experiment_id: str) -> asyncio.Lock:
        lock = self._locks.get(experiment_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[experiment_id] = lock
        return lock

    async def _bounded(self, call: Awaitable[T], operation: str) -> T:
        timeout = self._config.store_timeout
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("store.timeout", operation=operation, timeout=timeout)
            raise StoreUnavailableError(
                detail=f"{operation} timed out after {timeout}s",
            ) from exc

    # ── Admin entry point ─────────────────────────────────────────────────────

    async def create_experiment(self, draft: ExperimentDraft | dict[str, Any]) -> Experiment:
        experiment = build_experiment(validate_input(ExperimentDraft, draft))
        saved = await self._bounded(self._repository.save(experiment), "save")
        logger.info(
            "experiment.created",
            experiment_id=saved.id,
            variants=len(saved.variants),
        )
        return saved

    # ── Visitor flow ──────────────────────────────────────────────────────────

    async def choose_variant(self, experiment_id: str, token: str | None = None) -> Assignment:
        experiment = await self._bounded(self._repository.load(experiment_id), "load")

        sticky_variant_id = None
        if token:
            sticky_variant_id = await self._bounded(
                self._sticky.get(experiment_id, token), "sticky_get"
            )

        assignment = self._assigner.choose(experiment, token, sticky_variant_id)
        if assignment.is_new:
            await self._bounded(
                self._sticky.set(experiment_id, assignment.token, assignment.variant_id),
                "sticky_set",
            )
            logger.debug(
                "experiment.assigned",
                experiment_id=experiment_id,
                variant_id=assignment.variant_id,
            )

        _assignments_total(sticky=str(not assignment.is_new).lower()).inc()
        return assignment

    async def record_impression(self, experiment_id: str, variant_id: str) -> Experiment:
        return await self._record(experiment_id, variant_id, EventKind.IMPRESSION)

    async def record_conversion(self, experiment_id: str, variant_id: str) -> Experiment:
        saved = await self._record(experiment_id, variant_id, EventKind.CONVERSION)
        _reallocations_total().inc()
        for variant in saved.variants:
            _variant_weight(experiment=experiment_id, variant=variant.id).set(variant.weight)
        logger.info(
            "experiment.reallocated",
            experiment_id=experiment_id,
            weights={v.id: round(v.weight, 6) for v in saved.variants},
        )
        return saved

    # ── Reporting ─────────────────────────────────────────────────────────────

    async def get_stats(self, experiment_id: str) -> ExperimentStats:
        experiment = await self._bounded(self._repository.load(experiment_id), "load")
        return ExperimentStats.from_experiment(experiment)

    async def get_public_variants(self, experiment_id: str) -> PublicExperiment:
        experiment = await self._bounded(self._repository.load(experiment_id), "load")
        return PublicExperiment.from_experiment(experiment)

    # ── Read-modify-write ─────────────────────────────────────────────────────

    async def _record(self, experiment_id: str, variant_id: str, event: EventKind) -> Experiment:
        started = time.monotonic()
        async with self._lock_for(experiment_id):
            try:
                async for attempt in retrying(
                    max_attempts=self._config.max_attempts,
                    min_wait=self._config.retry_min_wait,
                    max_wait=self._config.retry_max_wait,
                    jitter=self._config.retry_jitter,
                    on=[ConcurrentUpdateConflict],
                ):
                    with attempt:
                        saved = await self._read_modify_write(
                            experiment_id,
                            variant_id,
                            event,
                            attempt.retry_state.attempt_number,
                        )
            except ConcurrentUpdateConflict as exc:
                logger.error(
                    "experiment.update_abandoned",
                    experiment_id=experiment_id,
                    event=event.value,
                    attempts=self._config.max_attempts,
                )
                raise StoreUnavailableError(
                    detail=(
                        f"experiment {experiment_id!r}: gave up after "
                        f"{self._config.max_attempts} conflicting attempts"
                    ),
                ) from exc

        _events_total(event=event.value).inc()
        _rmw_duration(event=event.value).observe(time.monotonic() - started)
        logger.info(
            f"experiment.{event.value}_recorded",
            experiment_id=experiment_id,
            variant_id=variant_id,
            version=saved.version,
        )
        return saved

    async def _read_modify_write(
        self,
        experiment_id: str,
        variant_id: str,
        event: EventKind,
        attempt_number: int,
    ) -> Experiment:
        current = await self._bounded(self._repository.load(experiment_id), "load")
        updated = self._recorder.apply(current, variant_id, event)
        try:
            return await self._bounded(self._repository.save(updated), "save")
        except ConcurrentUpdateConflict:
            _conflicts_total().inc()
            logger.info(
                "experiment.update_conflict",
                experiment_id=experiment_id,
                event=event.value,
                attempt=attempt_number,
            )
            raise


# ── Module-level singleton ─────────────────────────────────────────────────

_service: ExperimentService | None = None


def get_service() -> ExperimentService:
    """Return the process-wide service built from the configured backends."""
    global _service
    if _service is None:
        _service = ExperimentService()
    return _service


def _reset_service() -> None:
    global _service
    _service = None


__all__ = ["ExperimentService", "get_service"]
