"""Tests for tier4_advanced modules (variant suggestions)."""
from __future__ import annotations

import json

import pytest

from abtest_sdk.tier0_core.errors import UpstreamError
from abtest_sdk.tier3_platform.experiments import VariantKind
from abtest_sdk.tier4_advanced.suggestions import (
    MockSuggestionProvider,
    build_prompt,
    extract_json,
    generate_variants,
    get_provider,
    parse_suggestions,
    sanitize_markup,
    strip_tags,
)


# ── extraction ─────────────────────────────────────────────────────────────

class TestExtractJson:
    def test_array_inside_prose_and_fences(self):
        text = 'Sure! Here you go:\n```json\n[{"name": "a", "content": "x"}]\n```\nEnjoy.'
        assert json.loads(extract_json(text)) == [{"name": "a", "content": "x"}]

    def test_brackets_inside_strings_do_not_end_the_payload(self):
        text = '[{"name": "a]", "content": "use [brackets]"}] trailing ]'
        assert json.loads(extract_json(text))[0]["name"] == "a]"

    def test_object_when_no_array(self):
        assert json.loads(extract_json('result: {"name": "solo"}')) == {"name": "solo"}

    def test_no_json(self):
        assert extract_json("no payload here") is None

    def test_unbalanced(self):
        assert extract_json('[{"name": "a"') is None


# ── sanitization ───────────────────────────────────────────────────────────

class TestSanitize:
    def test_strip_tags_removes_scripts_and_markup(self):
        assert strip_tags("<b>Buy</b> <script>alert(1)</script> now") == "Buy now"

    def test_layout_markup_keeps_structure_without_handlers(self):
        html = '<div class="hero" onclick="steal()"><a href="javascript:alert(1)">Go</a><style>p{}</style></div>'
        cleaned = sanitize_markup(html)
        assert '<div class="hero">' in cleaned
        assert "onclick" not in cleaned
        assert "javascript:" not in cleaned
        assert "<style>" not in cleaned


# ── parsing ────────────────────────────────────────────────────────────────

class TestParseSuggestions:
    def test_kinds_names_and_equal_weights(self):
        text = json.dumps([
            {"name": "short", "type": "CTA", "content": "<i>Join</i>"},
            {"type": "banner", "content": "Welcome"},
            {"name": "grid", "type": "layout", "content": "<div onload='x()'>Grid</div>"},
            "not an object",
        ])
        drafts = parse_suggestions(text)

        assert [d.kind for d in drafts] == [VariantKind.CTA, VariantKind.TITLE, VariantKind.LAYOUT]
        assert drafts[1].name == "variant-2"
        assert drafts[0].content_ref == "Join"
        assert drafts[2].content_ref == "<div>Grid</div>"
        assert all(d.weight == pytest.approx(1 / 3) for d in drafts)

    def test_single_object_is_wrapped(self):
        drafts = parse_suggestions('{"name": "only", "content": "Hello"}')
        assert len(drafts) == 1
        assert drafts[0].weight == 1.0

    @pytest.mark.parametrize("text", ["I cannot help with that.", "[1, 2, 3]", '[{"name": "a",]'])
    def test_garbage_raises_upstream_error(self, text):
        with pytest.raises(UpstreamError) as exc_info:
            parse_suggestions(text)
        assert exc_info.value.code == "unparseable_suggestions"
        assert exc_info.value.status_code == 502


# ── generation ─────────────────────────────────────────────────────────────

class TestGenerateVariants:
    def test_prompt_carries_hint_and_count(self):
        prompt = build_prompt("pricing page headline", count=4)
        assert "pricing page headline" in prompt
        assert "4 concise variants" in prompt

    def test_default_provider_is_mock(self):
        assert isinstance(get_provider(), MockSuggestionProvider)

    @pytest.mark.asyncio
    async def test_generate_with_mock_provider(self):
        provider = MockSuggestionProvider()
        drafts = await generate_variants("signup button", provider=provider)
        assert len(drafts) == 3
        assert drafts[1].kind is VariantKind.CTA
        assert "signup button" in provider.prompts[0]

    @pytest.mark.asyncio
    async def test_drafts_feed_experiment_creation(self, service):
        drafts = await generate_variants("homepage hero", provider=MockSuggestionProvider())
        created = await service.create_experiment({"id": "exp-generated", "variants": drafts})

        assert [v.id for v in created.variants] == ["0", "1", "2"]
        assert [v.name for v in created.variants] == ["control", "urgency", "benefit"]
        assert sum(v.weight for v in created.variants) == pytest.approx(1.0, abs=1e-9)

    @pytest.mark.asyncio
    async def test_unparseable_generator_output(self):
        with pytest.raises(UpstreamError):
            await generate_variants("x", provider=MockSuggestionProvider("sorry, no"))
