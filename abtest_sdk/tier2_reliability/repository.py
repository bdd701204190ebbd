"""
abtest_sdk.tier2_reliability.repository
─────────────────────────────────────────
Experiment persistence. One record per experiment: the variant array with
integer counters and float weights, the opaque selector fields, and a
version stamp used for compare-and-swap.

save() only succeeds when the caller's version matches the stored one;
otherwise it raises ConcurrentUpdateConflict and the caller reloads.
Backend I/O failures surface as StoreUnavailableError.

Select via: ABTEST_REPOSITORY_BACKEND=memory|sql
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from sqlalchemy import Integer, String, Text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import Mapped, mapped_column

from abtest_sdk.tier0_core.config import get_config
from abtest_sdk.tier0_core.data import (
    Base,
    create_engine,
    create_schema,
    session_factory,
    transaction,
)
from abtest_sdk.tier0_core.errors import (
    ConcurrentUpdateConflict,
    ConfigurationError,
    ConflictError,
    NotFoundError,
    StoreUnavailableError,
)
from abtest_sdk.tier0_core.logging import get_logger
from abtest_sdk.tier1_runtime.serialize import deserialize, serialize
from abtest_sdk.tier3_platform.experiments import Experiment

logger = get_logger(__name__)


@runtime_checkable
class ExperimentRepository(Protocol):
    async def load(self, experiment_id: str) -> Experiment: ...

    async def save(self, experiment: Experiment) -> Experiment: ...  # returns stored copy


def _not_found(experiment_id: str) -> NotFoundError:
    return NotFoundError(detail=f"experiment {experiment_id!r} not found")


def _conflict(experiment: Experiment, stored_version: int | None) -> ConcurrentUpdateConflict:
    return ConcurrentUpdateConflict(
        user_message="Experiment was modified concurrently.",
        detail=(
            f"experiment {experiment.id!r}: expected version {experiment.version}, "
            f"stored {stored_version}"
        ),
    )


# ── In-process store ─────────────────────────────────────────────────────────

class MemoryExperimentRepository:
    """
    Single-process store for development and tests.
    Records are kept serialized so every load returns an independent copy.
    """

    def __init__(self) -> None:
        self._records: dict[str, bytes] = {}

    async def load(self, experiment_id: str) -> Experiment:
        raw = self._records.get(experiment_id)
        if raw is None:
            raise _not_found(experiment_id)
        return deserialize(raw, Experiment)

    async def save(self, experiment: Experiment) -> Experiment:
        raw = self._records.get(experiment.id)
        if raw is None:
            if experiment.version != 0:
                raise _not_found(experiment.id)
        else:
            stored_version = deserialize(raw, Experiment).version
            if experiment.version == 0:
                raise ConflictError(
                    user_message="Experiment already exists.",
                    detail=f"experiment {experiment.id!r} already exists",
                )
            if stored_version != experiment.version:
                raise _conflict(experiment, stored_version)

        stored = experiment.model_copy(update={"version": experiment.version + 1})
        self._records[experiment.id] = serialize(stored)
        return stored

    async def clear(self) -> None:
        self._records.clear()


# ── SQL store ────────────────────────────────────────────────────────────────

class ExperimentRow(Base):
    __tablename__ = "abtest_experiments"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)


class SqlExperimentRepository:
    """
    SQLAlchemy async store shared across processes. CAS is a conditional
    UPDATE on (id, version); zero affected rows means someone else won.
    """

    def __init__(self, engine: AsyncEngine | None = None) -> None:
        self._engine = engine or create_engine()
        self._factory = session_factory(self._engine)

    async def create_schema(self) -> None:
        try:
            await create_schema(self._engine)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(detail=f"schema creation failed: {exc}") from exc

    async def load(self, experiment_id: str) -> Experiment:
        try:
            async with transaction(self._factory) as session:
                row = await session.get(ExperimentRow, experiment_id)
                record = None if row is None else (row.version, row.payload)
        except SQLAlchemyError as exc:
            logger.warning("repository.load_failed", experiment_id=experiment_id, error=str(exc))
            raise StoreUnavailableError(detail=f"load failed: {exc}") from exc

        if record is None:
            raise _not_found(experiment_id)
        version, payload = record
        return deserialize(payload, Experiment).model_copy(update={"version": version})

    async def save(self, experiment: Experiment) -> Experiment:
        stored = experiment.model_copy(update={"version": experiment.version + 1})
        payload = serialize(stored).decode()
        try:
            async with transaction(self._factory) as session:
                if experiment.version == 0:
                    session.add(ExperimentRow(id=experiment.id, version=1, payload=payload))
                    await session.flush()
                else:
                    result = await session.execute(
                        update(ExperimentRow)
                        .where(
                            ExperimentRow.id == experiment.id,
                            ExperimentRow.version == experiment.version,
                        )
                        .values(version=stored.version, payload=payload)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 0:
                        row = await session.get(ExperimentRow, experiment.id)
                        if row is None:
                            raise _not_found(experiment.id)
                        raise _conflict(experiment, row.version)
        except IntegrityError as exc:
            raise ConflictError(
                user_message="Experiment already exists.",
                detail=f"experiment {experiment.id!r} already exists",
            ) from exc
        except SQLAlchemyError as exc:
            logger.warning("repository.save_failed", experiment_id=experiment.id, error=str(exc))
            raise StoreUnavailableError(detail=f"save failed: {exc}") from exc
        return stored

    async def dispose(self) -> None:
        await self._engine.dispose()


# ── Provider registry ─────────────────────────────────────────────────────────

_repository: ExperimentRepository | None = None


def get_repository() -> ExperimentRepository:
    global _repository
    if _repository is not None:
        return _repository

    config = get_config()
    if config.repository_backend == "memory":
        _repository = MemoryExperimentRepository()
    elif config.repository_backend == "sql":
        _repository = SqlExperimentRepository(create_engine(config.database_url))
    else:
        raise ConfigurationError(
            detail=(
                f"Unknown ABTEST_REPOSITORY_BACKEND: {config.repository_backend!r}. "
                "Supported: memory, sql"
            ),
        )
    return _repository


def _reset_repository() -> None:
    global _repository
    _repository = None


__all__ = [
    "ExperimentRepository", "MemoryExperimentRepository",
    "SqlExperimentRepository", "ExperimentRow",
    "get_repository",
]
