"""
abtest_sdk.tier3_platform.policy
───────────────────────────────────
Reallocation policy. After every conversion the engine recomputes weights
from the current counters with epsilon-greedy: the best-converting variant
gets (1 - epsilon) + epsilon/n, every other variant epsilon/n.

Epsilon is deployment configuration (ABTEST_EPSILON), not per-experiment.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from abtest_sdk.tier0_core.errors import ConfigurationError
from abtest_sdk.tier3_platform.experiments import Variant


@runtime_checkable
class ReallocationPolicy(Protocol):
    def recompute(self, variants: list[Variant]) -> list[Variant]: ...


def best_index(variants: list[Variant]) -> int:
    """Index of the highest conversion rate; ties go to the lowest index."""
    best_idx = 0
    best_rate = -1.0
    for i, variant in enumerate(variants):
        rate = variant.conversion_rate
        if rate > best_rate:
            best_rate = rate
            best_idx = i
    return best_idx


@dataclass(frozen=True)
class EpsilonGreedyPolicy:
    epsilon: float = 0.1

    def __post_init__(self) -> None:
        if not 0.0 <= self.epsilon <= 1.0:
            raise ConfigurationError(
                user_message="Exploration rate must be within [0, 1].",
                detail=f"epsilon={self.epsilon}",
            )

    def recompute(self, variants: list[Variant]) -> list[Variant]:
        """Return copies of *variants* with new weights; counters untouched."""
        n = len(variants)
        if n == 0:
            return []
        best = best_index(variants)
        explore = self.epsilon / n
        return [
            v.model_copy(update={
                "weight": min(1.0, (1.0 - self.epsilon) + explore) if i == best else explore,
            })
            for i, v in enumerate(variants)
        ]


__all__ = ["ReallocationPolicy", "EpsilonGreedyPolicy", "best_index"]
