"""
abtest_sdk
──────────
Adaptive experiment allocation: sticky variant assignment, event counting,
and epsilon-greedy traffic reallocation.

Stable top-level exports. Import from here, not from sub-modules directly.
"""
from abtest_sdk.tier0_core.logging import get_logger
from abtest_sdk.tier0_core.errors import (
    EngineError,
    NotFoundError,
    NoVariantsError,
    ValidationError,
    ConflictError,
    ConcurrentUpdateConflict,
    StoreUnavailableError,
    UpstreamError,
    ConfigurationError,
)
from abtest_sdk.tier0_core.config import get_config, EngineConfig

from abtest_sdk.tier2_reliability.repository import (
    ExperimentRepository,
    MemoryExperimentRepository,
    SqlExperimentRepository,
    get_repository,
)
from abtest_sdk.tier2_reliability.sticky import (
    StickyStore,
    MemoryStickyStore,
    RedisStickyStore,
    get_sticky_store,
)

from abtest_sdk.tier3_platform.experiments import (
    Assignment,
    Experiment,
    ExperimentDraft,
    ExperimentStats,
    PublicExperiment,
    Variant,
    VariantDraft,
    VariantKind,
)
from abtest_sdk.tier3_platform.assigner import VariantAssigner
from abtest_sdk.tier3_platform.policy import EpsilonGreedyPolicy, ReallocationPolicy
from abtest_sdk.tier3_platform.recorder import EventKind, EventRecorder
from abtest_sdk.tier3_platform.service import ExperimentService, get_service

from abtest_sdk.tier4_advanced.suggestions import generate_variants, parse_suggestions

__version__ = "0.1.0"
__all__ = [
    # logging
    "get_logger",
    # errors
    "EngineError", "NotFoundError", "NoVariantsError", "ValidationError",
    "ConflictError", "ConcurrentUpdateConflict", "StoreUnavailableError",
    "UpstreamError", "ConfigurationError",
    # config
    "get_config", "EngineConfig",
    # storage
    "ExperimentRepository", "MemoryExperimentRepository", "SqlExperimentRepository",
    "get_repository",
    "StickyStore", "MemoryStickyStore", "RedisStickyStore", "get_sticky_store",
    # model
    "Assignment", "Experiment", "ExperimentDraft", "ExperimentStats",
    "PublicExperiment", "Variant", "VariantDraft", "VariantKind",
    # engine
    "VariantAssigner", "EpsilonGreedyPolicy", "ReallocationPolicy",
    "EventKind", "EventRecorder", "ExperimentService", "get_service",
    # suggestions
    "generate_variants", "parse_suggestions",
]
