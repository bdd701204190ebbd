"""Tests for tier1_runtime modules."""
from __future__ import annotations

import pytest

from abtest_sdk.tier0_core.errors import (
    ConcurrentUpdateConflict,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from abtest_sdk.tier1_runtime.retry import retrying
from abtest_sdk.tier1_runtime.serialize import deserialize, serialize, to_dict
from abtest_sdk.tier1_runtime.validate import validate_input
from abtest_sdk.tier3_platform.experiments import Experiment, ExperimentDraft, Variant


# ── retry ──────────────────────────────────────────────────────────────────

async def _run(policy, fn):
    async for attempt in policy:
        with attempt:
            return await fn()


class TestRetry:
    @pytest.mark.asyncio
    async def test_retries_conflict_until_success(self):
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConcurrentUpdateConflict()
            return "saved"

        policy = retrying(max_attempts=5, min_wait=0, max_wait=0, jitter=0, on=[ConcurrentUpdateConflict])
        assert await _run(policy, flaky) == "saved"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_exhaustion_reraises_last_error(self):
        calls = []

        async def always_conflicts():
            calls.append(1)
            raise ConcurrentUpdateConflict()

        policy = retrying(max_attempts=4, min_wait=0, max_wait=0, jitter=0, on=[ConcurrentUpdateConflict])
        with pytest.raises(ConcurrentUpdateConflict):
            await _run(policy, always_conflicts)
        assert len(calls) == 4

    @pytest.mark.asyncio
    async def test_not_found_is_never_retried(self):
        calls = []

        async def missing():
            calls.append(1)
            raise NotFoundError()

        policy = retrying(max_attempts=5, min_wait=0, max_wait=0, jitter=0)
        with pytest.raises(NotFoundError):
            await _run(policy, missing)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_transient_errors_retried_by_default(self):
        calls = []

        async def outage():
            calls.append(1)
            raise StoreUnavailableError()

        policy = retrying(max_attempts=2, min_wait=0, max_wait=0, jitter=0)
        with pytest.raises(StoreUnavailableError):
            await _run(policy, outage)
        assert len(calls) == 2


# ── serialize ──────────────────────────────────────────────────────────────

class TestSerialize:
    def test_experiment_roundtrip_preserves_counters(self):
        original = Experiment(
            id="exp-1",
            selector="#hero",
            variants=[
                Variant(id="0", name="control", impressions=100, conversions=40, weight=0.95),
                Variant(id="1", name="bold", impressions=100, conversions=10, weight=0.05),
            ],
            version=3,
        )
        recovered = deserialize(serialize(original), Experiment)
        assert recovered == original

    def test_serialize_returns_bytes(self):
        data = serialize({"experiment_id": "exp-1"})
        assert isinstance(data, bytes)
        assert b"exp-1" in data

    def test_to_dict_uses_json_values(self):
        variant = Variant(id="0", name="control", kind="layout")
        assert to_dict(variant)["kind"] == "layout"


# ── validate ───────────────────────────────────────────────────────────────

class TestValidate:
    def test_valid_input_returns_model(self):
        draft = validate_input(ExperimentDraft, {"id": "exp-1", "variants": [{"name": "a"}]})
        assert draft.id == "exp-1"
        assert draft.variants[0].weight is None

    def test_model_instance_passes_through(self):
        draft = ExperimentDraft(id="exp-1")
        assert validate_input(ExperimentDraft, draft) is draft

    def test_raw_json_body_is_accepted(self):
        draft = validate_input(ExperimentDraft, b'{"id": "exp-2", "variants": [{"name": "a", "kind": "cta"}]}')
        assert draft.variants[0].kind.value == "cta"

    def test_malformed_json_body_is_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_input(ExperimentDraft, "{not json")
        assert exc_info.value.fields

    def test_invalid_input_raises_engine_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_input(ExperimentDraft, {"id": "", "variants": [{"name": "a", "weight": -1}]})
        assert "id" in exc_info.value.fields
        assert "variants.0.weight" in exc_info.value.fields
