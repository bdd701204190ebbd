"""
abtest_sdk.tier3_platform.assigner
─────────────────────────────────────
Sticky variant assignment. A visitor whose token already maps to a variant
keeps that variant even after reallocation moves traffic elsewhere; a fresh
visitor gets one weighted random draw over the current weights.

Pure with respect to experiment state: the only side effect of a new
assignment is the caller persisting the returned mapping.
"""
from __future__ import annotations

import random

from abtest_sdk.tier0_core.errors import NoVariantsError
from abtest_sdk.tier0_core.ids import new_token
from abtest_sdk.tier3_platform.experiments import Assignment, Experiment, Variant


def weighted_index(variants: list[Variant], rng: random.Random) -> int:
    """
    Draw one index with probability weight_i / sum(weights).

    A non-positive total is treated as uniform. Zero-weight variants are
    never drawn otherwise, even when r lands exactly on 0.
    """
    weights = [v.weight for v in variants]
    total = sum(weights)
    if total <= 0:
        weights = [1.0] * len(variants)
        total = float(len(variants))

    r = rng.random() * total
    cumulative = 0.0
    last = 0
    for i, w in enumerate(weights):
        if w <= 0:
            continue
        last = i
        cumulative += w
        if cumulative >= r:
            return i

    # Fallback: last drawable variant (floating point edge cases)
    return last


class VariantAssigner:
    """
    Chooses a variant for a visitor.

    Pass a seeded ``random.Random`` for reproducible draws in tests.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def choose(
        self,
        experiment: Experiment,
        token: str | None = None,
        sticky_variant_id: str | None = None,
    ) -> Assignment:
        if not experiment.variants:
            raise NoVariantsError(detail=f"experiment {experiment.id!r} has no variants")

        if token and sticky_variant_id is not None:
            if experiment.get_variant(sticky_variant_id) is not None:
                return Assignment(
                    experiment_id=experiment.id,
                    variant_id=sticky_variant_id,
                    token=token,
                    is_new=False,
                )

        idx = weighted_index(experiment.variants, self._rng)
        return Assignment(
            experiment_id=experiment.id,
            variant_id=experiment.variants[idx].id,
            token=token or new_token(),
            is_new=True,
        )


__all__ = ["VariantAssigner", "weighted_index"]
