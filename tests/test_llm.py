# =============================================================================
# Unit Tests - LLM Provider Factories
# =============================================================================
#
# SDK clients are constructed but never called; only the provider
# resolution logic is exercised.
# =============================================================================

from unittest.mock import patch

import pytest

import fin_rag.services.llm as llm_module
from fin_rag.exceptions import ConfigurationError
from fin_rag.services.llm import (
    AnthropicProvider,
    OpenAICompatibleProvider,
    build_provider,
    get_alternate_provider,
    get_answer_providers,
    get_chart_providers,
    get_llm_provider,
)

_NO_KEYS = {
    "llm_api_key": None,
    "llm_fallback_api_key": None,
    "chart_llm_api_key": None,
    "openai_api_key": "",
    "google_api_key": "",
    "deepseek_api_key": "",
    "anthropic_api_key": "",
}


def _reset_singletons():
    llm_module._provider = None
    llm_module._alternate = None
    llm_module._alternate_resolved = False
    llm_module._chart_provider = None


class TestBuildProvider:
    def test_unknown_type(self):
        with pytest.raises(ConfigurationError, match="Unknown LLM provider type"):
            build_provider("mystery", model="m", api_key="k")

    def test_anthropic(self):
        provider = build_provider("anthropic", model="claude-sonnet-4-6", api_key="k")
        assert isinstance(provider, AnthropicProvider)
        assert provider.name == "anthropic/claude-sonnet-4-6"

    def test_openai_compatible(self):
        provider = build_provider(
            "openai_compatible", model="deepseek-chat", api_key="k",
            base_url="https://api.deepseek.com/v1",
        )
        assert isinstance(provider, OpenAICompatibleProvider)
        assert provider.name == "openai_compatible/deepseek-chat"

    def test_missing_key(self):
        with patch.multiple(llm_module.settings, **_NO_KEYS):
            with pytest.raises(ConfigurationError):
                build_provider("openai_compatible", model="m", api_key=None)
            with pytest.raises(ConfigurationError):
                build_provider("anthropic", model="m", api_key=None)


class TestProviderChains:
    """Primary, alternate and chart provider resolution."""

    def setup_method(self):
        _reset_singletons()

    def teardown_method(self):
        _reset_singletons()

    def test_primary_uses_google_key_for_gemini_url(self):
        with patch.multiple(llm_module.settings, **{**_NO_KEYS, "google_api_key": "g"}):
            provider = get_llm_provider()
        assert provider.name == "openai_compatible/gemini-1.5-flash"
        assert get_llm_provider() is provider

    def test_primary_without_key_fails(self):
        with patch.multiple(llm_module.settings, **_NO_KEYS):
            with pytest.raises(ConfigurationError):
                get_llm_provider()

    def test_alternate_absent_without_key(self):
        with patch.multiple(llm_module.settings, **_NO_KEYS):
            assert get_alternate_provider() is None

    def test_answer_chain_primary_then_alternate(self):
        keys = {**_NO_KEYS, "google_api_key": "g", "deepseek_api_key": "d"}
        with patch.multiple(llm_module.settings, **keys):
            providers = get_answer_providers()
        assert [p.name for p in providers] == [
            "openai_compatible/gemini-1.5-flash",
            "openai_compatible/deepseek-chat",
        ]

    def test_answer_chain_primary_only(self):
        with patch.multiple(llm_module.settings, **{**_NO_KEYS, "google_api_key": "g"}):
            providers = get_answer_providers()
        assert len(providers) == 1

    def test_chart_chain_defaults_to_primary(self):
        with patch.multiple(
            llm_module.settings,
            **{**_NO_KEYS, "google_api_key": "g"},
            chart_llm_provider=None,
            chart_llm_model=None,
        ):
            providers = get_chart_providers()
            assert providers[0] is get_llm_provider()

    def test_chart_model_override(self):
        with patch.multiple(
            llm_module.settings,
            **{**_NO_KEYS, "anthropic_api_key": "a", "google_api_key": "g"},
            chart_llm_provider="anthropic",
            chart_llm_model="claude-haiku-4-5",
            chart_llm_base_url=None,
        ):
            providers = get_chart_providers()
        assert isinstance(providers[0], AnthropicProvider)
        assert providers[0].name == "anthropic/claude-haiku-4-5"
