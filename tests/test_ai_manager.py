import threading

import pytest

from config import AI_PROVIDERS, Config
from core.exceptions import AnalysisCancelled, ProviderRateLimited, ProviderUnavailable
from services.ai_manager import AIProviderChain, build_provider
from services.claude_service import ClaudeService
from services.openai_service import OpenAIService


def test_first_successful_provider_wins(make_provider):
    first = make_provider("deepinfra", ProviderUnavailable("503", provider="deepinfra"))
    second = make_provider("deepseek", "hello")
    third = make_provider("openai", "unused")
    chain = AIProviderChain(providers=[first, second, third])

    text, provider = chain.generate("hi", system_prompt="sys")

    assert (text, provider) == ("hello", "deepseek")
    assert len(first.calls) == 1
    assert second.calls[0]["system_prompt"] == "sys"
    assert third.calls == []


def test_history_precedes_prompt(make_provider):
    provider = make_provider("openai", "ok")
    chain = AIProviderChain(providers=[provider])

    chain.generate("latest", history=[{"role": "user", "content": "earlier"}])

    assert provider.calls[0]["messages"] == [
        {"role": "user", "content": "earlier"},
        {"role": "user", "content": "latest"},
    ]


def test_last_error_raised_when_all_fail(make_provider):
    chain = AIProviderChain(providers=[
        make_provider("openai", ProviderUnavailable("down", provider="openai")),
        make_provider("gemini", ProviderRateLimited("429", provider="gemini")),
    ])

    with pytest.raises(ProviderRateLimited):
        chain.generate("hi")


def test_empty_chain_is_unavailable():
    with pytest.raises(ProviderUnavailable):
        AIProviderChain(providers=[]).generate("hi")


def test_cancelled_before_first_provider(make_provider):
    provider = make_provider("openai", "never")
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(AnalysisCancelled):
        AIProviderChain(providers=[provider]).generate("hi", cancel_event=cancel)
    assert provider.calls == []


def test_chain_built_from_config_skips_missing_keys():
    class TestConfig(Config):
        AI_PROVIDER_ORDER = ["deepseek", "unknown", "anthropic", "openai"]
        DEEPSEEK_API_KEY = "ds-key"
        ANTHROPIC_API_KEY = "an-key"
        OPENAI_API_KEY = ""

    chain = AIProviderChain(config=TestConfig)

    assert chain.available == ["deepseek", "anthropic"]
    assert isinstance(chain.providers[0], OpenAIService)
    assert chain.providers[0].base_url == "https://api.deepseek.com/v1"
    assert isinstance(chain.providers[1], ClaudeService)


def test_build_provider_applies_timeout():
    class TestConfig(Config):
        TOGETHER_API_KEY = "tg-key"
        AI_TIMEOUT = 7

    service = build_provider("together", AI_PROVIDERS["together"], TestConfig)

    assert service.timeout == 7
    assert service.name == "together"
    assert service.model == AI_PROVIDERS["together"]["model"]
