"""
abtest_sdk.tier3_platform.experiments
─────────────────────────────────────────
Experiment data model. An Experiment is an ordered list of Variants, each
carrying its own impression/conversion counters and a traffic weight.
Weights of one experiment always sum to 1; ordinal position only matters as
the reallocation tie-break.

selector / goal_selector / content_ref are opaque to the engine; they are
produced and consumed by the page collaborator.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field

from abtest_sdk.tier0_core.errors import NoVariantsError, ValidationError


class VariantKind(str, Enum):
    """What the page collaborator injects for a variant."""
    TITLE = "title"
    CTA = "cta"
    LAYOUT = "layout"


class Variant(BaseModel):
    id: str
    name: str
    kind: VariantKind = VariantKind.TITLE
    content_ref: str = ""
    impressions: int = Field(default=0, ge=0)
    # May exceed impressions when impression events were lost upstream.
    conversions: int = Field(default=0, ge=0)
    weight: float = Field(default=0.0, ge=0.0, le=1.0)

    @property
    def conversion_rate(self) -> float:
        return self.conversions / max(1, self.impressions)


class Experiment(BaseModel):
    id: str
    name: str = ""
    selector: str = ""
    goal_selector: str = ""
    variants: list[Variant] = Field(default_factory=list)
    # Optimistic-concurrency stamp, bumped by the repository on every save.
    version: int = Field(default=0, ge=0)

    def index_of(self, variant_id: str) -> int | None:
        for i, variant in enumerate(self.variants):
            if variant.id == variant_id:
                return i
        return None

    def get_variant(self, variant_id: str) -> Variant | None:
        idx = self.index_of(variant_id)
        return None if idx is None else self.variants[idx]

    @property
    def total_weight(self) -> float:
        return sum(v.weight for v in self.variants)


@dataclass
class Assignment:
    """Result of choosing a variant for one visitor."""
    experiment_id: str
    variant_id: str
    token: str
    is_new: bool


# ── Creation payloads ─────────────────────────────────────────────────────────

class VariantDraft(BaseModel):
    """Admin-side variant. Any non-negative weight is accepted; build_experiment normalizes."""
    id: str | None = None
    name: str = Field(min_length=1)
    kind: VariantKind = VariantKind.TITLE
    content_ref: str = ""
    weight: float | None = Field(default=None, ge=0.0)


class ExperimentDraft(BaseModel):
    id: str = Field(min_length=1)
    name: str = ""
    selector: str = ""
    goal_selector: str = ""
    variants: list[VariantDraft] = Field(default_factory=list)


def normalize_weights(raw: list[float | None]) -> list[float]:
    """
    Turn admin-supplied weights into a distribution.

    Missing weights default to 1/n; the result is scaled to sum to 1, and a
    non-positive total falls back to uniform.
    """
    n = len(raw)
    if n == 0:
        return []
    filled = [1.0 / n if w is None else float(w) for w in raw]
    total = sum(filled)
    if total <= 0:
        return [1.0 / n] * n
    return [w / total for w in filled]


def build_experiment(draft: ExperimentDraft) -> Experiment:
    """Validate a draft and materialize a fresh Experiment with zeroed counters."""
    if not draft.variants:
        raise NoVariantsError(detail=f"experiment {draft.id!r} has zero variants")

    ids = [v.id if v.id is not None else str(i) for i, v in enumerate(draft.variants)]
    if len(set(ids)) != len(ids):
        raise ValidationError(
            user_message="Variant ids must be unique.",
            fields={"variants": "duplicate variant id"},
        )

    weights = normalize_weights([v.weight for v in draft.variants])
    variants = [
        Variant(
            id=variant_id,
            name=v.name,
            kind=v.kind,
            content_ref=v.content_ref,
            weight=weight,
        )
        for variant_id, v, weight in zip(ids, draft.variants, weights)
    ]
    return Experiment(
        id=draft.id,
        name=draft.name,
        selector=draft.selector,
        goal_selector=draft.goal_selector,
        variants=variants,
    )


# ── Read-only views ───────────────────────────────────────────────────────────

class VariantStats(BaseModel):
    id: str
    name: str
    impressions: int
    conversions: int
    weight: float
    conversion_rate: float


class ExperimentStats(BaseModel):
    experiment_id: str
    variants: list[VariantStats]

    @classmethod
    def from_experiment(cls, experiment: Experiment) -> "ExperimentStats":
        return cls(
            experiment_id=experiment.id,
            variants=[
                VariantStats(
                    id=v.id,
                    name=v.name,
                    impressions=v.impressions,
                    conversions=v.conversions,
                    weight=v.weight,
                    conversion_rate=v.conversion_rate,
                )
                for v in experiment.variants
            ],
        )


class PublicVariant(BaseModel):
    id: str
    name: str
    kind: VariantKind
    content_ref: str


class PublicExperiment(BaseModel):
    """Content-safe payload for the page collaborator; no counters or weights."""
    experiment_id: str
    selector: str
    goal_selector: str
    variants: list[PublicVariant]

    @classmethod
    def from_experiment(cls, experiment: Experiment) -> "PublicExperiment":
        return cls(
            experiment_id=experiment.id,
            selector=experiment.selector,
            goal_selector=experiment.goal_selector,
            variants=[
                PublicVariant(id=v.id, name=v.name, kind=v.kind, content_ref=v.content_ref)
                for v in experiment.variants
            ],
        )


__all__ = [
    "VariantKind", "Variant", "Experiment", "Assignment",
    "VariantDraft", "ExperimentDraft", "normalize_weights", "build_experiment",
    "VariantStats", "ExperimentStats", "PublicVariant", "PublicExperiment",
]
