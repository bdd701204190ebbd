"""Tests for tier2_reliability modules: experiment repositories and sticky stores."""
from __future__ import annotations

import pytest

from abtest_sdk.tier0_core.errors import (
    ConcurrentUpdateConflict,
    ConflictError,
    NotFoundError,
)
from abtest_sdk.tier2_reliability.repository import (
    ExperimentRepository,
    MemoryExperimentRepository,
    SqlExperimentRepository,
    get_repository,
)
from abtest_sdk.tier2_reliability.sticky import (
    MemoryStickyStore,
    StickyStore,
    get_sticky_store,
)
from abtest_sdk.tier3_platform.experiments import Experiment, Variant


def _experiment(experiment_id: str = "exp-1") -> Experiment:
    return Experiment(
        id=experiment_id,
        variants=[
            Variant(id="A", name="control", weight=0.5),
            Variant(id="B", name="bold", weight=0.5),
        ],
    )


# ── memory repository ──────────────────────────────────────────────────────

class TestMemoryRepository:
    def test_satisfies_protocol(self):
        assert isinstance(MemoryExperimentRepository(), ExperimentRepository)

    @pytest.mark.asyncio
    async def test_load_missing_raises_not_found(self):
        repo = MemoryExperimentRepository()
        with pytest.raises(NotFoundError):
            await repo.load("nope")

    @pytest.mark.asyncio
    async def test_save_new_record_bumps_version(self):
        repo = MemoryExperimentRepository()
        saved = await repo.save(_experiment())
        assert saved.version == 1
        loaded = await repo.load("exp-1")
        assert loaded.version == 1
        assert [v.id for v in loaded.variants] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_stale_version_conflicts(self):
        repo = MemoryExperimentRepository()
        await repo.save(_experiment())
        first = await repo.load("exp-1")
        second = await repo.load("exp-1")

        first.variants[0].impressions += 1
        await repo.save(first)

        second.variants[1].impressions += 1
        with pytest.raises(ConcurrentUpdateConflict):
            await repo.save(second)

        loaded = await repo.load("exp-1")
        assert loaded.variants[0].impressions == 1
        assert loaded.variants[1].impressions == 0

    @pytest.mark.asyncio
    async def test_duplicate_create_is_plain_conflict(self):
        repo = MemoryExperimentRepository()
        await repo.save(_experiment())
        with pytest.raises(ConflictError) as exc_info:
            await repo.save(_experiment())
        assert not isinstance(exc_info.value, ConcurrentUpdateConflict)

    @pytest.mark.asyncio
    async def test_loads_are_independent_copies(self):
        repo = MemoryExperimentRepository()
        await repo.save(_experiment())
        loaded = await repo.load("exp-1")
        loaded.variants[0].impressions = 999
        assert (await repo.load("exp-1")).variants[0].impressions == 0


# ── SQL repository ─────────────────────────────────────────────────────────

class TestSqlRepository:
    @pytest.mark.asyncio
    async def test_cas_lifecycle(self, tmp_path):
        from abtest_sdk.tier0_core.data import create_engine

        repo = SqlExperimentRepository(create_engine(f"sqlite+aiosqlite:///{tmp_path / 'abtest.db'}"))
        try:
            await repo.create_schema()

            with pytest.raises(NotFoundError):
                await repo.load("exp-1")

            saved = await repo.save(_experiment())
            assert saved.version == 1

            loaded = await repo.load("exp-1")
            assert loaded.version == 1
            loaded.variants[1].conversions += 1
            updated = await repo.save(loaded)
            assert updated.version == 2

            with pytest.raises(ConcurrentUpdateConflict):
                await repo.save(loaded)

            with pytest.raises(ConflictError):
                await repo.save(_experiment())

            reloaded = await repo.load("exp-1")
            assert reloaded.version == 2
            assert reloaded.variants[1].conversions == 1
        finally:
            await repo.dispose()

    @pytest.mark.asyncio
    async def test_update_of_missing_record_is_not_found(self, tmp_path):
        from abtest_sdk.tier0_core.data import create_engine

        repo = SqlExperimentRepository(create_engine(f"sqlite+aiosqlite:///{tmp_path / 'abtest.db'}"))
        try:
            await repo.create_schema()
            ghost = _experiment("ghost").model_copy(update={"version": 4})
            with pytest.raises(NotFoundError):
                await repo.save(ghost)
        finally:
            await repo.dispose()


# ── sticky store ───────────────────────────────────────────────────────────

class TestStickyStore:
    def test_satisfies_protocol(self):
        assert isinstance(MemoryStickyStore(), StickyStore)

    @pytest.mark.asyncio
    async def test_get_unknown_token_returns_none(self):
        store = MemoryStickyStore()
        assert await store.get("exp-1", "tok") is None

    @pytest.mark.asyncio
    async def test_mapping_is_scoped_per_experiment(self):
        store = MemoryStickyStore()
        await store.set("exp-1", "tok", "A")
        await store.set("exp-2", "tok", "B")
        assert await store.get("exp-1", "tok") == "A"
        assert await store.get("exp-2", "tok") == "B"
        assert len(store) == 2


# ── registries ─────────────────────────────────────────────────────────────

class TestRegistries:
    def test_default_backends_are_in_memory(self):
        assert isinstance(get_repository(), MemoryExperimentRepository)
        assert isinstance(get_sticky_store(), MemoryStickyStore)

    def test_registry_returns_singleton(self):
        assert get_repository() is get_repository()
        assert get_sticky_store() is get_sticky_store()
