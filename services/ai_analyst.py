"""
AI Analyst - AIプロバイダへのプロンプト送信と応答のパース
センチメント / テクニカル指標レビュー / トレード洞察 / パターン解説 / 学習アシスタント
"""
import json
import re
from typing import Optional

from core.exceptions import ProviderError, ProviderUnavailable
from services import knowledge_base
from services.ai_manager import AIProviderChain
from services.prompts import (
    ASSISTANT_PROMPT,
    INSIGHTS_PROMPT,
    PATTERN_PROMPT,
    SENTIMENT_PROMPT,
    SYSTEM_PROMPT,
    TECHNICAL_ANALYSIS_PROMPT,
)
from utils.logger import get_logger

logger = get_logger("AIAnalyst")

SENTIMENTS = ("Bullish", "Bearish", "Neutral")
RECOMMENDATIONS = ("Buy", "Sell", "Hold")
MAX_HISTORY_MESSAGES = 10


def _clamp_confidence(value, default: float = 0.5) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    return min(max(value, 0.0), 1.0)


def _expected_gain(recommendation: str, entry: float, target: float) -> float:
    if entry <= 0:
        return 0.0
    if recommendation == "Sell":
        return (entry - target) / entry * 100
    return (target - entry) / entry * 100


class AIAnalyst:
    """AIProviderChain を使った各種分析（失敗時は ProviderError を送出する）"""

    def __init__(self, chain: AIProviderChain = None):
        self.chain = chain or AIProviderChain()

    # ------------------------------------------------------------------
    # パブリック API
    # ------------------------------------------------------------------
    def analyze_sentiment(self, ticker: str, cancel_event=None) -> dict:
        """
        市場センチメントを分析する。

        Returns:
            {"sentiment": "Bullish"/"Bearish"/"Neutral", "confidence": 0-1,
             "analysis": str, "source": "ai:<provider>"}
        """
        text, provider = self.chain.generate(
            SENTIMENT_PROMPT.format(ticker=ticker), SYSTEM_PROMPT, cancel_event=cancel_event,
        )
        data = self._parse_json(text)

        sentiment = str(data.get("sentiment", "")).capitalize()
        if sentiment not in SENTIMENTS:
            # JSON で返らなかった場合は本文のキーワードから判定する
            lowered = text.lower()
            if "bullish" in lowered and "bearish" not in lowered:
                sentiment = "Bullish"
            elif "bearish" in lowered and "bullish" not in lowered:
                sentiment = "Bearish"
            else:
                sentiment = "Neutral"

        return {
            "sentiment": sentiment,
            "confidence": _clamp_confidence(data.get("confidence")),
            "analysis": data.get("analysis") or data.get("raw_response") or text,
            "source": f"ai:{provider}",
        }

    def analyze_indicators(
        self,
        ticker: str,
        indicators: dict,
        current_price: float,
        mtfc: Optional[dict] = None,
        cancel_event=None,
    ) -> dict:
        """
        テクニカル指標をAIにレビューさせ、売買推奨を得る。

        Args:
            indicators: {name: {"value": number, "action": "Buy"/"Sell"/"Neutral"}}
            mtfc: {timeframe: "bullish"/"bearish"}（任意）
        Returns:
            {"recommendation", "confidence", "entryPrice", "targetPrice", "stopLoss",
             "expectedGain", "analysis", "source"}
        Raises:
            ProviderError: プロバイダ失敗、または推奨が解釈できない応答
        """
        prompt = TECHNICAL_ANALYSIS_PROMPT.format(
            ticker=ticker,
            current_price=current_price,
            indicators=json.dumps(indicators, indent=2, ensure_ascii=False, default=str),
            mtfc=json.dumps(mtfc or {}, ensure_ascii=False),
        )
        text, provider = self.chain.generate(prompt, SYSTEM_PROMPT, cancel_event=cancel_event)
        data = self._parse_json(text)

        recommendation = str(data.get("recommendation", "")).capitalize()
        if recommendation not in RECOMMENDATIONS:
            raise ProviderUnavailable(
                f"{provider}: unparseable recommendation {data.get('recommendation')!r}",
                provider=provider,
            )

        try:
            entry = float(data.get("entryPrice") or current_price)
            target = float(data.get("targetPrice") or current_price)
            stop = float(data.get("stopLoss") or current_price)
        except (TypeError, ValueError) as e:
            raise ProviderUnavailable(f"{provider}: non-numeric price levels", provider=provider) from e

        return {
            "recommendation": recommendation,
            "confidence": _clamp_confidence(data.get("confidence")),
            "entryPrice": entry,
            "targetPrice": target,
            "stopLoss": stop,
            "expectedGain": _expected_gain(recommendation, entry, target),
            "analysis": data.get("analysis") or text,
            "source": f"ai:{provider}",
        }

    def generate_insights(self, ticker: str, cancel_event=None) -> dict:
        """トレード手法・時間軸・所見を返す"""
        text, provider = self.chain.generate(
            INSIGHTS_PROMPT.format(ticker=ticker), SYSTEM_PROMPT, cancel_event=cancel_event,
        )
        data = self._parse_json(text)
        return {
            "strategy": data.get("strategy", "swing trading"),
            "timeframe": data.get("timeframe", "medium-term"),
            "insights": data.get("insights") or data.get("raw_response") or text,
            "source": f"ai:{provider}",
        }

    def explain_pattern(self, pattern: str, cancel_event=None) -> dict:
        text, provider = self.chain.generate(
            PATTERN_PROMPT.format(pattern=pattern), SYSTEM_PROMPT, cancel_event=cancel_event,
        )
        return {"pattern": pattern, "explanation": text, "source": f"ai:{provider}"}

    def chat(self, message: str, history: list = None, category: str = None,
             cancel_event=None) -> dict:
        """
        トレード学習アシスタント。AIが使えない場合は教育コンテンツから回答する。

        Returns:
            {"response": str, "provider": str, "model": str, "category": str}
        """
        if category not in knowledge_base.CATEGORIES and category != "general":
            category = (
                knowledge_base.infer_category(message)
                if knowledge_base.is_educational(message) else "general"
            )

        turns = [
            {"role": "assistant" if h.get("role") == "assistant" else "user",
             "content": str(h.get("content", ""))}
            for h in (history or [])[-MAX_HISTORY_MESSAGES:]
            if isinstance(h, dict) and h.get("content")
        ]

        try:
            text, provider = self.chain.generate(
                ASSISTANT_PROMPT.format(category=category, message=message),
                SYSTEM_PROMPT,
                history=turns,
                cancel_event=cancel_event,
            )
            return {"response": text, "provider": provider, "model": "ai", "category": category}
        except ProviderError as e:
            logger.warning("アシスタント: AI応答失敗 (%s) - 教育コンテンツで回答", e)
            return {
                "response": knowledge_base.lookup(message, category),
                "provider": "Local Fallback",
                "model": "Basic Mode",
                "category": category,
            }

    # ------------------------------------------------------------------
    # 内部ヘルパー
    # ------------------------------------------------------------------
    @staticmethod
    def _parse_json(text: str) -> dict:
        """応答テキストからJSONを取り出す（コードブロック・前後の文章を許容）"""
        if not text:
            return {}

        fence = re.search(r"```(?:json)?\s*\n?(.*?)\n?```", text, re.DOTALL)
        braces = re.search(r"\{.*\}", text, re.DOTALL)
        candidates = [text]
        if fence:
            candidates.append(fence.group(1))
        if braces:
            candidates.append(braces.group(0))

        for candidate in candidates:
            try:
                parsed = json.loads(candidate.strip())
            except json.JSONDecodeError:
                continue
            # JSON として読めてもオブジェクト以外（配列など）は採用しない
            if not isinstance(parsed, dict):
                break
            return parsed

        return {"raw_response": text}
