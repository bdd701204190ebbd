"""
abtest_sdk.tier4_advanced.suggestions
────────────────────────────────────────
Variant suggestions from an external text-generation service. The generator
is called once per experiment by the admin collaborator; this module builds
the prompt, pulls the JSON payload out of free-form model output, and
sanitizes every string before it can be stored as variant content.

The engine itself never looks inside content; sanitization happens here,
before storage, and nowhere else.

Environment variables:
  ABTEST_SUGGESTION_PROVIDER  mock | litellm (default: mock)
  ABTEST_SUGGESTION_MODEL     model name for litellm (default: gpt-4o-mini)
"""
from __future__ import annotations

import json
import re
from typing import Any, Protocol, runtime_checkable

from abtest_sdk.tier0_core.config import get_config
from abtest_sdk.tier0_core.errors import ConfigurationError, UpstreamError
from abtest_sdk.tier0_core.logging import get_logger
from abtest_sdk.tier3_platform.experiments import VariantDraft, VariantKind

logger = get_logger(__name__)

SYSTEM_PROMPT = "You are a helpful assistant that outputs concise JSON."


def build_prompt(hint: str, count: int = 3) -> str:
    return (
        "You are an expert conversion optimization assistant. "
        f"Provide {count} concise variants for a web element (titles or CTA text). "
        "Return a JSON array of objects: {name, type ('title'|'cta'|'layout'), content}. "
        "Keep content short and usable. Context/hint: " + hint
    )


# ── Protocol ───────────────────────────────────────────────────────────────

@runtime_checkable
class SuggestionProvider(Protocol):
    async def suggest(self, prompt: str) -> str: ...


class MockSuggestionProvider:
    """Returns a fixed response. No API calls made."""

    DEFAULT_RESPONSE = json.dumps([
        {"name": "control", "type": "title", "content": "Start your free trial"},
        {"name": "urgency", "type": "cta", "content": "Start free today"},
        {"name": "benefit", "type": "title", "content": "Ship faster with less effort"},
    ])

    def __init__(self, response: str | None = None) -> None:
        self._response = response if response is not None else self.DEFAULT_RESPONSE
        self.prompts: list[str] = []

    async def suggest(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self._response


class LiteLLMSuggestionProvider:
    """
    Chat-completion provider backed by LiteLLM (OpenAI-compatible models).

    Install: pip install 'abtest-sdk[genai]'
    """

    def __init__(
        self,
        model: str | None = None,
        max_tokens: int = 300,
        temperature: float = 0.8,
    ) -> None:
        import litellm

        self._litellm = litellm
        self._model = model or get_config().suggestion_model
        self._max_tokens = max_tokens
        self._temperature = temperature

    async def suggest(self, prompt: str) -> str:
        try:
            response = await self._litellm.acompletion(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except Exception as exc:
            raise UpstreamError(
                user_message="Variant generation failed.",
                detail=f"litellm completion failed: {exc}",
            ) from exc
        return response.choices[0].message.content or ""


# ── Parsing ────────────────────────────────────────────────────────────────

def _balanced(text: str, start: int, open_ch: str, close_ch: str) -> str | None:
    level = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == open_ch:
            level += 1
        elif ch == close_ch:
            level -= 1
            if level == 0:
                return text[start:i + 1]
    return None


def extract_json(text: str) -> str | None:
    """
    Return the first balanced JSON array in *text*, else the first object.
    Model output often wraps JSON in prose or code fences.
    """
    first_array = text.find("[")
    if first_array != -1:
        return _balanced(text, first_array, "[", "]")
    first_object = text.find("{")
    if first_object != -1:
        return _balanced(text, first_object, "{", "}")
    return None


_BLOCK_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")
_EVENT_ATTR_RE = re.compile(r"""\s+on\w+\s*=\s*("[^"]*"|'[^']*'|[^\s>]+)""", re.IGNORECASE)
_JS_URL_RE = re.compile(r"javascript\s*:", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")


def strip_tags(text: str) -> str:
    """Plain text only: drop script/style blocks and every tag, collapse whitespace."""
    text = _BLOCK_RE.sub("", text)
    text = _TAG_RE.sub("", text)
    return _WS_RE.sub(" ", text).strip()


def sanitize_markup(html: str) -> str:
    """Keep layout markup but drop script/style blocks, on* handlers and javascript: URLs."""
    html = _BLOCK_RE.sub("", html)
    html = _EVENT_ATTR_RE.sub("", html)
    html = _JS_URL_RE.sub("", html)
    return html.strip()


def _to_draft(index: int, item: dict[str, Any]) -> VariantDraft:
    raw_kind = str(item.get("type", "")).strip().lower()
    kind = VariantKind(raw_kind) if raw_kind in {k.value for k in VariantKind} else VariantKind.TITLE

    name = strip_tags(str(item.get("name") or "")) or f"variant-{index + 1}"
    content = str(item.get("content") or "")
    content = sanitize_markup(content) if kind is VariantKind.LAYOUT else strip_tags(content)
    return VariantDraft(name=name, kind=kind, content_ref=content)


def parse_suggestions(text: str) -> list[VariantDraft]:
    """
    Turn raw generator output into sanitized drafts with equal weights.
    Raises UpstreamError when no usable JSON array/object is present.
    """
    raw = extract_json(text)
    if raw is None:
        raise UpstreamError(
            code="unparseable_suggestions",
            user_message="Generated variants could not be parsed.",
            detail=f"no JSON found in generator output: {text[:200]!r}",
        )
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise UpstreamError(
            code="unparseable_suggestions",
            user_message="Generated variants could not be parsed.",
            detail=f"invalid JSON in generator output: {exc}",
        ) from exc

    if isinstance(data, dict):
        data = [data]
    items = [item for item in data if isinstance(item, dict)]
    if not items:
        raise UpstreamError(
            code="unparseable_suggestions",
            user_message="Generated variants could not be parsed.",
            detail="generator output contained no variant objects",
        )

    weight = 1.0 / len(items)
    return [
        _to_draft(i, item).model_copy(update={"weight": weight})
        for i, item in enumerate(items)
    ]


# ── Provider factory ───────────────────────────────────────────────────────

_provider: SuggestionProvider | None = None


def get_provider() -> SuggestionProvider:
    global _provider
    if _provider is not None:
        return _provider

    backend = get_config().suggestion_provider.lower()
    if backend == "mock":
        _provider = MockSuggestionProvider()
    elif backend == "litellm":
        _provider = LiteLLMSuggestionProvider()
    else:
        raise ConfigurationError(
            detail=f"Unknown ABTEST_SUGGESTION_PROVIDER: {backend!r}. Supported: mock, litellm",
        )
    return _provider


def _reset_provider() -> None:
    global _provider
    _provider = None


async def generate_variants(
    hint: str,
    *,
    count: int = 3,
    provider: SuggestionProvider | None = None,
) -> list[VariantDraft]:
    """
    Ask the generator for *count* variants and return sanitized drafts.

    Usage::

        drafts = await generate_variants("pricing page headline")
        await service.create_experiment({"id": "exp-1", "variants": drafts})
    """
    provider = provider or get_provider()
    text = await provider.suggest(build_prompt(hint, count))
    drafts = parse_suggestions(text)
    logger.info("suggestions.generated", requested=count, received=len(drafts))
    return drafts


__all__ = [
    "SuggestionProvider", "MockSuggestionProvider", "LiteLLMSuggestionProvider",
    "build_prompt", "extract_json", "strip_tags", "sanitize_markup",
    "parse_suggestions", "get_provider", "generate_variants",
]
