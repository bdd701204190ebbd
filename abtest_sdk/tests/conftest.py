"""
abtest_sdk test configuration.

All tests run against in-memory backends by default; no Redis or database
server required. SQL repository tests use aiosqlite on a temp file.
"""
from __future__ import annotations

import os
import random

import pytest

# ── Force in-memory providers for all tests ───────────────────────────────
# These must be set before any abtest_sdk modules are imported.

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("ABTEST_REPOSITORY_BACKEND", "memory")
os.environ.setdefault("ABTEST_STICKY_BACKEND", "memory")
os.environ.setdefault("ABTEST_SUGGESTION_PROVIDER", "mock")
os.environ.setdefault("ABTEST_ERROR_BACKEND", "none")
os.environ.setdefault("ABTEST_LOG_LEVEL", "WARNING")


# ── Fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def reset_module_singletons():
    """
    Reset cached provider singletons between tests so no state bleeds
    from one test's repository or sticky store into the next.
    """
    yield

    from abtest_sdk.tier0_core.config import _reset_config
    from abtest_sdk.tier2_reliability.repository import _reset_repository
    from abtest_sdk.tier2_reliability.sticky import _reset_sticky_store
    from abtest_sdk.tier3_platform.service import _reset_service
    from abtest_sdk.tier4_advanced.suggestions import _reset_provider

    _reset_config()
    _reset_repository()
    _reset_sticky_store()
    _reset_service()
    _reset_provider()


@pytest.fixture
def fast_config():
    """Config with zero backoff so conflict retries don't slow the suite."""
    from abtest_sdk.tier0_core.config import EngineConfig
    return EngineConfig(
        environment="test",
        epsilon=0.1,
        max_attempts=5,
        retry_min_wait=0.0,
        retry_max_wait=0.0,
        retry_jitter=0.0,
        store_timeout=1.0,
    )


@pytest.fixture
def repository():
    from abtest_sdk.tier2_reliability.repository import MemoryExperimentRepository
    return MemoryExperimentRepository()


@pytest.fixture
def sticky_store():
    from abtest_sdk.tier2_reliability.sticky import MemoryStickyStore
    return MemoryStickyStore()


@pytest.fixture
def service(repository, sticky_store, fast_config):
    """ExperimentService over fresh in-memory stores with a seeded assigner."""
    from abtest_sdk.tier3_platform.assigner import VariantAssigner
    from abtest_sdk.tier3_platform.service import ExperimentService
    return ExperimentService(
        repository,
        sticky_store,
        assigner=VariantAssigner(random.Random(7)),
        config=fast_config,
    )


@pytest.fixture
def two_variant_draft():
    return {
        "id": "exp-headline",
        "name": "Headline test",
        "selector": ".post-title",
        "goal_selector": "#signup",
        "variants": [
            {"id": "A", "name": "control", "content_ref": "Welcome"},
            {"id": "B", "name": "bold", "kind": "cta", "content_ref": "Join now"},
        ],
    }
