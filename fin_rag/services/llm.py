# =============================================================================
# LLM Providers - Answer and Chart Completions
# =============================================================================
#
# Two concrete clients cover every model the assistant talks to:
#   - AnthropicProvider: Claude through the anthropic SDK
#   - OpenAICompatibleProvider: anything speaking the OpenAI chat API
#     (Gemini's compatibility endpoint, DeepSeek, OpenAI, Qwen, ...)
#
# DESIGN DECISION: Protocol (structural typing) over ABC.
# Matches the VectorStore and EmbeddingProvider patterns. Any class with
# the right `complete()` method and a `name` works, which is how tests
# plug in scripted fakes.
#
# DESIGN DECISION: Ordered provider chains instead of a single provider.
# The answer path tries the primary provider and then the alternate one;
# chart extraction does the same with an optional dedicated chart model
# in front. A chain only contains providers whose API key resolves.
#
# Key resolution happens once, in build_provider(); the client classes
# receive a resolved key, model and base URL.
#
# ARCHITECTURE:
#   LLMProvider (Protocol)
#   ├── AnthropicProvider        - system prompt as top-level kwarg
#   ├── OpenAICompatibleProvider - system prompt as first message
#   ├── build_provider()         - validated construction
#   ├── get_llm_provider()       - Primary singleton
#   ├── get_alternate_provider() - Alternate singleton (or None)
#   ├── get_answer_providers()   - [primary, alternate]
#   └── get_chart_providers()    - [chart model or primary, alternate]
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from fin_rag.config import settings
from fin_rag.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_KNOWN_PROVIDER_TYPES = {"anthropic", "openai_compatible"}

_KEY_HINTS = {
    "anthropic": "LLM_API_KEY or ANTHROPIC_API_KEY",
    "openai_compatible": "LLM_API_KEY, GOOGLE_API_KEY, DEEPSEEK_API_KEY or OPENAI_API_KEY",
}


@dataclass
class LLMResponse:
    """One completion, with usage counts when the API reports them."""

    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


class LLMProvider(Protocol):
    """
    Anything that can complete a chat turn.

    `name` identifies the provider in logs ("openai_compatible/deepseek-chat").
    Messages carry only "user"/"assistant" roles; the system prompt is
    passed separately and each client places it where its API expects.
    """

    name: str

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        ...


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """Claude via the Messages API."""

    def __init__(self, api_key: str, model: str) -> None:
        from anthropic import AsyncAnthropic

        self._client = AsyncAnthropic(api_key=api_key)
        self._model = model
        self.name = f"anthropic/{model}"
        logger.info("LLM provider ready: %s", self.name)

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        request: dict = {
            "model": self._model,
            "messages": messages,
            "max_tokens": max_tokens or settings.llm_max_tokens,
            "temperature": settings.llm_temperature if temperature is None else temperature,
        }
        if system:
            request["system"] = system

        response = await self._client.messages.create(**request)

        # The reply is a list of content blocks; answers and chart JSON
        # only ever need the text ones
        text = "".join(b.text for b in response.content if b.type == "text")
        logger.debug(
            "%s: %d prompt / %d completion tokens",
            self.name, response.usage.input_tokens, response.usage.output_tokens,
        )
        return LLMResponse(
            content=text,
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )


class OpenAICompatibleProvider:
    """
    Chat Completions client with a configurable base URL.

    Gemini and DeepSeek both expose OpenAI-compatible endpoints, e.g.:
        LLM_PROVIDER=openai_compatible
        LLM_BASE_URL=https://api.deepseek.com/v1
        LLM_MODEL=deepseek-chat
    """

    def __init__(self, api_key: str, model: str, base_url: str | None = None) -> None:
        from openai import AsyncOpenAI

        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        self._model = model
        self.name = f"openai_compatible/{model}"
        logger.info("LLM provider ready: %s (%s)", self.name, base_url or "api.openai.com")

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        chat = [{"role": "system", "content": system}] if system else []
        chat.extend(messages)

        response = await self._client.chat.completions.create(
            model=self._model,
            messages=chat,
            max_tokens=max_tokens or settings.llm_max_tokens,
            temperature=settings.llm_temperature if temperature is None else temperature,
        )

        usage = response.usage
        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model or self._model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )


# ---------------------------------------------------------------------------
# Provider Construction
# ---------------------------------------------------------------------------


def build_provider(
    provider_type: str,
    model: str,
    api_key: str | None,
    base_url: str | None = None,
) -> AnthropicProvider | OpenAICompatibleProvider:
    """
    Create a fresh provider instance.

    Raises:
        ConfigurationError: Unknown provider type or missing API key.
    """
    if provider_type not in _KNOWN_PROVIDER_TYPES:
        raise ConfigurationError(
            f"Unknown LLM provider type '{provider_type}'. "
            f"Supported types: {sorted(_KNOWN_PROVIDER_TYPES)}"
        )
    if not api_key:
        raise ConfigurationError(
            f"No API key for {provider_type} model '{model}'. "
            f"Set {_KEY_HINTS[provider_type]} in .env",
            details={"provider": provider_type, "base_url": base_url},
        )
    if provider_type == "anthropic":
        return AnthropicProvider(api_key=api_key, model=model)
    return OpenAICompatibleProvider(api_key=api_key, model=model, base_url=base_url)


def _key_for(provider_type: str, base_url: str | None) -> str | None:
    """Provider-specific key when no explicit LLM key is set."""
    if provider_type == "anthropic":
        return settings.anthropic_api_key or None
    url = base_url or ""
    if "generativelanguage.googleapis.com" in url:
        return settings.google_api_key or None
    if "deepseek" in url:
        return settings.deepseek_api_key or None
    return settings.openai_api_key or None


# ---------------------------------------------------------------------------
# Factory Functions - Lazy Singletons
# ---------------------------------------------------------------------------

_provider: AnthropicProvider | OpenAICompatibleProvider | None = None
_alternate: AnthropicProvider | OpenAICompatibleProvider | None = None
_alternate_resolved = False
_chart_provider: AnthropicProvider | OpenAICompatibleProvider | None = None


def get_llm_provider() -> AnthropicProvider | OpenAICompatibleProvider:
    """
    Return the primary LLM provider.

    Reads `llm_provider` from settings:
    - "openai_compatible" → OpenAICompatibleProvider (Gemini by default)
    - "anthropic" → AnthropicProvider (Claude)

    Raises:
        ConfigurationError: Unknown provider type or no API key.
    """
    global _provider
    if _provider is None:
        base_url = settings.llm_base_url
        _provider = build_provider(
            settings.llm_provider,
            model=settings.llm_model,
            api_key=settings.llm_api_key or _key_for(settings.llm_provider, base_url),
            base_url=base_url,
        )
    return _provider


def get_alternate_provider() -> AnthropicProvider | OpenAICompatibleProvider | None:
    """
    Return the alternate LLM provider, or None when it is not configured.

    The alternate is optional: with no resolvable API key it is skipped
    silently rather than failing the request.
    """
    global _alternate, _alternate_resolved
    if not _alternate_resolved:
        _alternate_resolved = True
        provider_type = settings.llm_fallback_provider
        base_url = settings.llm_fallback_base_url
        api_key = None
        if provider_type:
            api_key = settings.llm_fallback_api_key or _key_for(provider_type, base_url)
        if provider_type and api_key:
            _alternate = build_provider(
                provider_type,
                model=settings.llm_fallback_model,
                api_key=api_key,
                base_url=base_url,
            )
        else:
            logger.info("No alternate LLM provider configured")
    return _alternate


def get_answer_providers() -> list[AnthropicProvider | OpenAICompatibleProvider]:
    """Ordered providers for answer synthesis: primary, then alternate."""
    providers = [get_llm_provider()]
    alternate = get_alternate_provider()
    if alternate is not None:
        providers.append(alternate)
    return providers


def get_chart_providers() -> list[AnthropicProvider | OpenAICompatibleProvider]:
    """
    Ordered providers for structured chart extraction.

    CHART_LLM_PROVIDER / CHART_LLM_MODEL select a dedicated chart model;
    unset fields inherit from the primary provider configuration.
    """
    global _chart_provider
    if not (settings.chart_llm_provider or settings.chart_llm_model):
        primary = get_llm_provider()
    else:
        if _chart_provider is None:
            provider_type = settings.chart_llm_provider or settings.llm_provider
            base_url = settings.chart_llm_base_url or (
                settings.llm_base_url if provider_type == settings.llm_provider else None
            )
            _chart_provider = build_provider(
                provider_type,
                model=settings.chart_llm_model or settings.llm_model,
                api_key=(
                    settings.chart_llm_api_key
                    or settings.llm_api_key
                    or _key_for(provider_type, base_url)
                ),
                base_url=base_url,
            )
        primary = _chart_provider

    providers = [primary]
    alternate = get_alternate_provider()
    if alternate is not None:
        providers.append(alternate)
    return providers
