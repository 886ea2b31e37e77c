"""
AI推奨の付与とローカルフォールバック
AIプロバイダが失敗した場合は指標アクションの多数決で推奨を算出し、
source="local-fallback" としてAI由来と区別する。
"""
from dataclasses import replace
from typing import Optional

from core.exceptions import ProviderError
from models.analysis import LOCAL_FALLBACK_SOURCE, AnalysisResult, IndicatorSnapshot, Trend
from models.strategy import StrategyProfile
from utils.logger import get_logger

logger = get_logger("Enrichment")

RSI_OVERSOLD = 30
RSI_OVERBOUGHT = 70

# ローカル推奨の利確・損切り幅
FALLBACK_TARGET_PCT = 0.10
FALLBACK_STOP_PCT = 0.05
FALLBACK_HOLD_TARGET_PCT = 0.05


def snapshot_to_indicators(snapshot: IndicatorSnapshot) -> dict:
    """
    IndicatorSnapshot を {name: {"value", "action"}} 形式に変換する。
    AIプロンプトとローカル多数決の共通入力。
    """
    if snapshot.trend is Trend.UPTREND:
        trend_action = "Buy"
    elif snapshot.trend is Trend.DOWNTREND:
        trend_action = "Sell"
    else:
        trend_action = "Neutral"

    if snapshot.rsi <= RSI_OVERSOLD:
        rsi_action = "Buy"
    elif snapshot.rsi >= RSI_OVERBOUGHT:
        rsi_action = "Sell"
    else:
        rsi_action = "Neutral"

    return {
        "EMA Cross": {
            "value": round(snapshot.ema_short - snapshot.ema_long, 4),
            "action": "Buy" if snapshot.ema_short > snapshot.ema_long else "Sell",
        },
        "RSI": {"value": round(snapshot.rsi, 2), "action": rsi_action},
        "Trend": {"value": snapshot.trend.value, "action": trend_action},
        "ADL": {
            "value": snapshot.adl_trend.value,
            "action": "Buy" if snapshot.adl_trend is Trend.UPTREND else "Sell",
        },
        "Volume": {"value": snapshot.volume, "action": "Neutral"},
    }


def local_recommendation(indicators: dict, current_price: float, ticker: str = "") -> dict:
    """
    指標アクションの多数決による推奨（AIを使わない）。

    Buy が Sell と Neutral の両方より多ければ Buy、Sell も同様、それ以外（同数含む）は Hold。
    信頼度は 0.5 + 多数派の割合 × 0.5。
    """
    buy = sell = neutral = 0
    for indicator in indicators.values():
        action = indicator.get("action") if isinstance(indicator, dict) else None
        if action == "Buy":
            buy += 1
        elif action == "Sell":
            sell += 1
        else:
            neutral += 1
    total = buy + sell + neutral

    recommendation = "Hold"
    confidence = 0.5
    if total and buy > sell and buy > neutral:
        recommendation = "Buy"
        confidence = 0.5 + buy / total * 0.5
    elif total and sell > buy and sell > neutral:
        recommendation = "Sell"
        confidence = 0.5 + sell / total * 0.5

    entry = current_price
    if recommendation == "Buy":
        target = current_price * (1 + FALLBACK_TARGET_PCT)
        stop = current_price * (1 - FALLBACK_STOP_PCT)
        gain = (target - entry) / entry * 100
    elif recommendation == "Sell":
        target = current_price * (1 - FALLBACK_TARGET_PCT)
        stop = current_price * (1 + FALLBACK_STOP_PCT)
        gain = (entry - target) / entry * 100
    else:
        target = current_price * (1 + FALLBACK_HOLD_TARGET_PCT)
        stop = current_price * (1 - FALLBACK_STOP_PCT)
        gain = (target - entry) / entry * 100

    name = ticker or "this ticker"
    analysis = (
        f"Trading Recommendation: {recommendation}\n\n"
        f"Based on the technical indicators ({buy} bullish, {sell} bearish, {neutral} neutral), "
        f"the recommendation is to {recommendation.lower()} {name} with a confidence of "
        f"{confidence * 100:.1f}%. Target price: ${target:.2f}, Stop loss: ${stop:.2f}, "
        f"Expected gain: {gain:.2f}%. (Local fallback, not AI-generated.)"
    )

    return {
        "recommendation": recommendation,
        "confidence": confidence,
        "entryPrice": entry,
        "targetPrice": target,
        "stopLoss": stop,
        "expectedGain": gain,
        "analysis": analysis,
        "source": LOCAL_FALLBACK_SOURCE,
    }


def recommend(analyst, ticker: str, indicators: dict, current_price: float,
              mtfc: Optional[dict] = None, cancel_event=None) -> dict:
    """AI推奨を取得し、プロバイダ失敗時はローカル多数決にフォールバックする"""
    if analyst is None:
        return local_recommendation(indicators, current_price, ticker)
    try:
        return analyst.analyze_indicators(
            ticker, indicators, current_price, mtfc=mtfc, cancel_event=cancel_event,
        )
    except ProviderError as e:
        logger.warning("%s: AI推奨取得失敗 (%s) - ローカル推奨にフォールバック", ticker, e)
        return local_recommendation(indicators, current_price, ticker)


def enrich_result(
    result: AnalysisResult,
    profile: StrategyProfile,
    analyst=None,
    cancel_event=None,
) -> AnalysisResult:
    """
    AnalysisResult にAI推奨を付与した新しいインスタンスを返す。
    AIの信頼度が profile.ml_confidence_threshold 未満なら推奨は表示しない（信頼度のみ記録）。
    ローカル推奨は閾値に関係なく source 付きで付与する。
    """
    indicators = snapshot_to_indicators(result.snapshot)
    mtfc = {tf: c.value for tf, c in result.snapshot.multi_timeframe_confluence.items()}
    rec = recommend(
        analyst, result.ticker, indicators, result.last_close, mtfc=mtfc, cancel_event=cancel_event,
    )

    surfaced = rec["recommendation"]
    if rec["source"] != LOCAL_FALLBACK_SOURCE and rec["confidence"] < profile.ml_confidence_threshold:
        logger.info(
            "%s: AI信頼度 %.2f < 閾値 %.2f - 推奨を非表示",
            result.ticker, rec["confidence"], profile.ml_confidence_threshold,
        )
        surfaced = None

    return replace(
        result,
        ai_recommendation=surfaced,
        ai_confidence=rec["confidence"],
        ai_source=rec["source"],
        ai_analysis=rec["analysis"],
    )
