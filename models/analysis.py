"""テクニカル分析 データモデル"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class Trend(Enum):
    UPTREND = "Uptrend"
    DOWNTREND = "Downtrend"
    SIDEWAYS = "Sideways"


class VolumeCategory(Enum):
    HIGH = "High"
    LOW = "Low"


class Signal(Enum):
    BUY = "Buy"
    SELL = "Sell"
    NEUTRAL = "Neutral"


class Confluence(Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"


class MarketCondition(Enum):
    NORMAL = "Normal"
    VOLATILE = "Volatile"


LOCAL_FALLBACK_SOURCE = "local-fallback"


@dataclass(frozen=True)
class IndicatorSnapshot:
    """1銘柄分のテクニカル指標（分析ごとに生成、保存しない）"""
    ema_short: float
    ema_long: float
    rsi: float                                   # 0-100
    atr: float                                   # >= 0
    trend: Trend
    volume: float
    volume_category: VolumeCategory
    adl_trend: Trend                             # Uptrend / Downtrend のみ
    multi_timeframe_confluence: Dict[str, Confluence] = field(default_factory=dict)
    percent_change: Optional[float] = None       # 主時間足の前回終値比 (%)

    def to_dict(self) -> dict:
        return {
            "emaShort": self.ema_short,
            "emaLong": self.ema_long,
            "rsi": self.rsi,
            "atr": self.atr,
            "trend": self.trend.value,
            "volume": self.volume,
            "volumeCategory": self.volume_category.value,
            "adlTrend": self.adl_trend.value,
            "mtfc": {tf: c.value for tf, c in self.multi_timeframe_confluence.items()},
            "percentChange": self.percent_change,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "IndicatorSnapshot":
        return cls(
            ema_short=float(data["emaShort"]),
            ema_long=float(data["emaLong"]),
            rsi=float(data["rsi"]),
            atr=float(data["atr"]),
            trend=Trend(data["trend"]),
            volume=float(data.get("volume", 0.0)),
            volume_category=VolumeCategory(data["volumeCategory"]),
            adl_trend=Trend(data["adlTrend"]),
            multi_timeframe_confluence={
                tf: Confluence(c) for tf, c in (data.get("mtfc") or {}).items()
            },
            percent_change=data.get("percentChange"),
        )


@dataclass(frozen=True)
class AnalysisResult:
    """
    SignalEngine.analyze の結果。生成後は変更しない（AI付与は dataclasses.replace で新規作成）。
    to_dict はフロントエンド / 保存リスト向けの camelCase 表現。
    """
    id: str
    ticker: str
    strategy_name: str
    weighted_score: float
    signal: Signal
    stop_loss: float
    take_profit: float
    last_close: float
    expected_gain: float
    snapshot: IndicatorSnapshot
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    short_term_signal: Signal = Signal.NEUTRAL
    long_term_signal: Signal = Signal.NEUTRAL
    market_condition: MarketCondition = MarketCondition.NORMAL
    explanation: str = ""
    position_size: Optional[float] = None
    ai_recommendation: Optional[str] = None      # "Buy" / "Sell" / "Hold"
    ai_confidence: Optional[float] = None        # 0-1
    ai_source: Optional[str] = None              # "ai:<provider>" / "local-fallback"
    ai_analysis: Optional[str] = None
    option_data: Optional[Dict[str, Any]] = None

    @property
    def entry_price(self) -> float:
        return self.last_close

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "ticker": self.ticker,
            "strategy": self.strategy_name,
            "weightedScore": self.weighted_score,
            "signal": self.signal.value,
            "stopLoss": self.stop_loss,
            "takeProfit": self.take_profit,
            "lastClose": self.last_close,
            "entryPrice": self.entry_price,
            "expectedGain": self.expected_gain,
            "timestamp": self.timestamp.isoformat(),
            "shortTermSignal": self.short_term_signal.value,
            "longTermSignal": self.long_term_signal.value,
            "marketCondition": self.market_condition.value,
            "explanation": self.explanation,
            "positionSize": self.position_size,
            "aiRecommendation": self.ai_recommendation,
            "aiConfidence": self.ai_confidence,
            "aiSource": self.ai_source,
            "aiAnalysis": self.ai_analysis,
            "optionData": self.option_data,
        }
        data.update(self.snapshot.to_dict())
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "AnalysisResult":
        return cls(
            id=data["id"],
            ticker=data["ticker"],
            strategy_name=data["strategy"],
            weighted_score=float(data["weightedScore"]),
            signal=Signal(data["signal"]),
            stop_loss=float(data["stopLoss"]),
            take_profit=float(data["takeProfit"]),
            last_close=float(data["lastClose"]),
            expected_gain=float(data["expectedGain"]),
            snapshot=IndicatorSnapshot.from_dict(data),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            short_term_signal=Signal(data.get("shortTermSignal", "Neutral")),
            long_term_signal=Signal(data.get("longTermSignal", "Neutral")),
            market_condition=MarketCondition(data.get("marketCondition", "Normal")),
            explanation=data.get("explanation", ""),
            position_size=data.get("positionSize"),
            ai_recommendation=data.get("aiRecommendation"),
            ai_confidence=data.get("aiConfidence"),
            ai_source=data.get("aiSource"),
            ai_analysis=data.get("aiAnalysis"),
            option_data=data.get("optionData"),
        )
