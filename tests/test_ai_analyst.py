import json

import pytest

from core.exceptions import ProviderRateLimited, ProviderUnavailable
from services import knowledge_base
from services.ai_analyst import AIAnalyst
from services.ai_manager import AIProviderChain


def make_analyst(*providers) -> AIAnalyst:
    return AIAnalyst(AIProviderChain(providers=list(providers)))


def test_parse_json_handles_code_fence_and_prose():
    fenced = 'Here you go:\n```json\n{"sentiment": "Bullish"}\n```'
    embedded = 'Result: {"sentiment": "Bearish", "confidence": 0.7} hope it helps'

    assert AIAnalyst._parse_json(fenced) == {"sentiment": "Bullish"}
    assert AIAnalyst._parse_json(embedded)["confidence"] == 0.7
    assert AIAnalyst._parse_json("no json") == {"raw_response": "no json"}
    assert AIAnalyst._parse_json("") == {}


def test_sentiment_from_json(make_provider):
    reply = json.dumps({"sentiment": "bullish", "confidence": 1.4, "analysis": "strong momentum"})
    analyst = make_analyst(make_provider("deepinfra", reply))

    result = analyst.analyze_sentiment("SPY")

    assert result == {
        "sentiment": "Bullish",
        "confidence": 1.0,
        "analysis": "strong momentum",
        "source": "ai:deepinfra",
    }


def test_sentiment_from_plain_text(make_provider):
    analyst = make_analyst(make_provider("together", "Overall the tape looks bearish this week."))

    result = analyst.analyze_sentiment("QQQ")

    assert result["sentiment"] == "Bearish"
    assert result["confidence"] == 0.5
    assert result["analysis"].startswith("Overall")


def test_sentiment_propagates_rate_limit(make_provider):
    analyst = make_analyst(make_provider("openai", ProviderRateLimited("429", provider="openai")))

    with pytest.raises(ProviderRateLimited):
        analyst.analyze_sentiment("SPY")


def test_indicator_review(make_provider):
    reply = json.dumps({
        "recommendation": "Sell",
        "confidence": 0.75,
        "entryPrice": 200,
        "targetPrice": 180,
        "stopLoss": 210,
        "analysis": "breakdown",
    })
    provider = make_provider("deepseek", reply)
    analyst = make_analyst(provider)

    result = analyst.analyze_indicators(
        "AAPL", {"RSI": {"value": 72, "action": "Sell"}}, 200.0, mtfc={"1d": "bearish"},
    )

    assert result["recommendation"] == "Sell"
    assert result["expectedGain"] == pytest.approx(10.0)
    assert result["source"] == "ai:deepseek"
    prompt = provider.calls[0]["messages"][-1]["content"]
    assert "AAPL" in prompt and '"1d": "bearish"' in prompt


def test_indicator_review_rejects_unknown_recommendation(make_provider):
    analyst = make_analyst(make_provider("deepseek", '{"recommendation": "Moon"}'))

    with pytest.raises(ProviderUnavailable):
        analyst.analyze_indicators("AAPL", {}, 200.0)


def test_insights_and_pattern(make_provider):
    analyst = make_analyst(make_provider(
        "openai",
        '{"strategy": "breakout", "timeframe": "short-term", "insights": "watch 500"}',
    ))

    insights = analyst.generate_insights("SPY")
    pattern = analyst.explain_pattern("Head and Shoulders")

    assert insights["strategy"] == "breakout"
    assert insights["insights"] == "watch 500"
    assert pattern["pattern"] == "Head and Shoulders"
    assert pattern["source"] == "ai:openai"


def test_chat_uses_ai_with_trimmed_history(make_provider):
    provider = make_provider("anthropic", "Sure.")
    analyst = make_analyst(provider)
    history = [{"role": "user", "content": f"q{i}"} for i in range(15)]

    result = analyst.chat("What is RSI?", history, "indicators")

    assert result == {"response": "Sure.", "provider": "anthropic", "model": "ai", "category": "indicators"}
    assert len(provider.calls[0]["messages"]) == 11


def test_chat_falls_back_to_knowledge_base(make_provider):
    analyst = make_analyst(make_provider("openai", ProviderUnavailable("down", provider="openai")))

    result = analyst.chat("Can you explain a stop loss?")

    assert result["provider"] == "Local Fallback"
    assert result["model"] == "Basic Mode"
    assert result["category"] == "risk"
    assert result["response"] == knowledge_base.RISK["stop loss"]


def test_knowledge_base_matches_word_starts():
    assert knowledge_base.infer_category("how does the MACD work") == "indicators"
    assert knowledge_base.infer_category("tell me about drawdown") == "risk"
    assert knowledge_base.infer_category("hello there") == "general"
    # 語中の "rsi" には一致しない
    assert knowledge_base.lookup("universities", "general") == knowledge_base.DEFAULT_ANSWER
    assert knowledge_base.is_educational("Explain ATR")


@pytest.mark.parametrize(
    "reply",
    [
        '```json\n[{"recommendation": "Buy"}]\n```',
        '[{"recommendation": "Buy"}]',
        '42',
    ],
)
def test_parse_json_ignores_non_object_json(reply):
    assert AIAnalyst._parse_json(reply) == {"raw_response": reply}


def test_indicator_review_with_array_reply_is_provider_error(make_provider):
    analyst = make_analyst(make_provider("deepseek", '```json\n[{"recommendation": "Buy"}]\n```'))

    with pytest.raises(ProviderUnavailable):
        analyst.analyze_indicators("AAPL", {}, 200.0)


def test_sentiment_with_array_reply_uses_text(make_provider):
    analyst = make_analyst(make_provider("together", '```json\n["bullish"]\n```'))

    result = analyst.analyze_sentiment("SPY")

    assert result["sentiment"] == "Bullish"
    assert result["confidence"] == 0.5


def test_chat_skips_malformed_history_entries(make_provider):
    provider = make_provider("anthropic", "Sure.")
    analyst = make_analyst(provider)
    history = ["hi", None, {"role": "assistant", "content": "hello"}, {"role": "user"}]

    result = analyst.chat("What is RSI?", history)

    assert result["response"] == "Sure."
    messages = provider.calls[0]["messages"]
    assert messages[0] == {"role": "assistant", "content": "hello"}
    assert len(messages) == 2
