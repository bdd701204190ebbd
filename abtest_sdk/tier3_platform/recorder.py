"""
abtest_sdk.tier3_platform.recorder
─────────────────────────────────────
Event application: one impression or conversion bumps exactly one counter by
exactly one. A conversion also triggers reallocation over the post-increment
counts.

EventRecorder mutates a snapshot only; ExperimentService wraps every call in
the per-experiment read-modify-write transaction that makes it atomic.
"""
from __future__ import annotations

from enum import Enum

from abtest_sdk.tier0_core.errors import NotFoundError
from abtest_sdk.tier3_platform.experiments import Experiment
from abtest_sdk.tier3_platform.policy import ReallocationPolicy


class EventKind(str, Enum):
    IMPRESSION = "impression"
    CONVERSION = "conversion"


class EventRecorder:
    def __init__(self, policy: ReallocationPolicy) -> None:
        self._policy = policy

    def apply(self, experiment: Experiment, variant_id: str, event: EventKind) -> Experiment:
        idx = experiment.index_of(variant_id)
        if idx is None:
            raise NotFoundError(
                detail=f"variant {variant_id!r} not in experiment {experiment.id!r}",
            )

        variants = list(experiment.variants)
        variant = variants[idx]
        if event is EventKind.IMPRESSION:
            variants[idx] = variant.model_copy(update={"impressions": variant.impressions + 1})
        else:
            variants[idx] = variant.model_copy(update={"conversions": variant.conversions + 1})
            variants = self._policy.recompute(variants)

        return experiment.model_copy(update={"variants": variants})


__all__ = ["EventKind", "EventRecorder"]
