"""
シグナルエンジン - SignalEngine
IndicatorSnapshot を加重スコアに集約し、Buy / Sell / Neutral シグナルと
ATR ベースの損切り・利確ラインを算出する。
"""
from datetime import datetime, timezone
from typing import Dict, Optional

from core.exceptions import DataUnavailableError, InvalidInputError
from models.analysis import (
    AnalysisResult,
    Confluence,
    IndicatorSnapshot,
    MarketCondition,
    Signal,
    Trend,
)
from models.strategy import SHORT_TERM, StrategyProfile
from utils.logger import get_logger

logger = get_logger("SignalEngine")

# シグナル閾値（固定値。profile.ml_confidence_threshold はAI推奨の表示判定用）
BUY_THRESHOLD = 0.1
SELL_THRESHOLD = -0.1
HORIZON_THRESHOLD = 0.05

# 加重スコアの配分（合計 1.0 なのでスコアは [-1, 1] に収まる）
SCORE_WEIGHTS = {
    "trend": 0.3,
    "rsi": 0.2,
    "adl": 0.2,
    "mtfc": 0.3,
}

# ATR / 価格 がこの値以上なら "Volatile"
VOLATILE_ATR_RATIO = 0.02

_TREND_DIRECTION = {
    Trend.UPTREND: 1.0,
    Trend.DOWNTREND: -1.0,
    Trend.SIDEWAYS: 0.0,
}


class IndicatorSource:
    """
    OHLCV履歴から IndicatorSnapshot を生成するデータ源のインターフェース。
    取得できない場合は DataUnavailableError を送出すること。
    """

    def get_snapshot(self, ticker: str, profile: StrategyProfile) -> IndicatorSnapshot:
        raise NotImplementedError


# ----------------------------------------------------------------------
# スコアリング
# ----------------------------------------------------------------------
def mtfc_score(confluence: Dict[str, Confluence], weights: Dict[str, float]) -> float:
    """
    複数時間足コンフルエンスを [-1, 1] に正規化する。
    強気の時間足の重み合計 - 弱気の重み合計 を、対象時間足の重み合計で割る。
    """
    total = 0.0
    net = 0.0
    for tf, reading in confluence.items():
        if tf not in weights:
            raise InvalidInputError(f"timeframe {tf} has no mtf weight")
        weight = weights[tf]
        total += weight
        net += weight if reading is Confluence.BULLISH else -weight
    if total == 0:
        return 0.0
    return net / total


def weighted_score(snapshot: IndicatorSnapshot, profile: StrategyProfile) -> float:
    """トレンド・RSI・ADL・MTFC の線形結合で加重スコアを算出する"""
    rsi = min(max(snapshot.rsi, 0.0), 100.0)
    components = {
        "trend": _TREND_DIRECTION[snapshot.trend],
        "rsi": (rsi - 50.0) / 50.0,
        "adl": 1.0 if snapshot.adl_trend is Trend.UPTREND else -1.0,
        "mtfc": mtfc_score(snapshot.multi_timeframe_confluence, profile.mtf_weights),
    }
    return sum(SCORE_WEIGHTS[k] * v for k, v in components.items())


def classify_signal(score: float) -> Signal:
    """スコア > 0.1 で Buy、< -0.1 で Sell、それ以外は Neutral（境界値は Neutral）"""
    if score > BUY_THRESHOLD:
        return Signal.BUY
    if score < SELL_THRESHOLD:
        return Signal.SELL
    return Signal.NEUTRAL


def _horizon_signal(score: float) -> Signal:
    if score > HORIZON_THRESHOLD:
        return Signal.BUY
    if score < -HORIZON_THRESHOLD:
        return Signal.SELL
    return Signal.NEUTRAL


# ----------------------------------------------------------------------
# 損切り・利確
# ----------------------------------------------------------------------
def exit_levels(signal: Signal, price: float, atr: float, profile: StrategyProfile) -> tuple:
    """
    ATR 倍率から (stop_loss, take_profit) を算出する。

    Buy / Sell は損切りを最小倍率（タイト）、利確を最大倍率（遠め）で取る。
    Neutral は買い方向を仮定し、損切りを最大倍率、利確を最小倍率で保守的に置く。
    """
    sl_min, sl_max = profile.stop_loss_atr_multiplier
    tp_min, tp_max = profile.take_profit_atr_multiplier

    if signal is Signal.BUY:
        return price - atr * sl_min, price + atr * tp_max
    if signal is Signal.SELL:
        return price + atr * sl_min, price - atr * tp_max
    return price - atr * sl_max, price + atr * tp_min


def expected_gain_percent(signal: Signal, price: float, take_profit: float) -> float:
    if signal is Signal.SELL:
        return (price - take_profit) / price * 100
    return (take_profit - price) / price * 100


def position_size(
    profile: StrategyProfile,
    account_balance: float,
    entry: float,
    stop_loss: float,
) -> Optional[float]:
    """1トレードのリスク額 / 1単位あたりの損失幅 × サイズ係数"""
    risk_per_unit = abs(entry - stop_loss)
    if account_balance <= 0 or risk_per_unit == 0:
        return None
    units = account_balance * profile.risk_per_trade / risk_per_unit
    return units * profile.position_size_factor


def _explanation(ticker: str, profile: StrategyProfile, signal: Signal, score: float,
                 snapshot: IndicatorSnapshot) -> str:
    horizon = "short-term" if profile.strategy_type == SHORT_TERM else "long-term"
    trend = snapshot.trend.value.lower()
    volume = snapshot.volume_category.value.lower()
    if signal is Signal.BUY:
        return (
            f"The {horizon} analysis for {ticker} shows bullish signals with a weighted score of "
            f"{score:.2f}. The price is in an {trend} with {volume} volume, suggesting potential "
            f"upward movement."
        )
    if signal is Signal.SELL:
        return (
            f"The {horizon} analysis for {ticker} shows bearish signals with a weighted score of "
            f"{score:.2f}. The price is in a {trend} with {volume} volume, suggesting potential "
            f"downward movement."
        )
    return (
        f"The {horizon} analysis for {ticker} shows mixed signals with a weighted score of "
        f"{score:.2f}. The price is moving {trend} with {volume} volume, suggesting a "
        f"wait-and-see approach."
    )


# ----------------------------------------------------------------------
# 集約
# ----------------------------------------------------------------------
def evaluate_snapshot(
    ticker: str,
    current_price: float,
    profile: StrategyProfile,
    snapshot: IndicatorSnapshot,
    option_data: Optional[dict] = None,
    account_balance: Optional[float] = None,
    now: Optional[datetime] = None,
) -> AnalysisResult:
    """
    IndicatorSnapshot を AnalysisResult に集約する。
    同じ snapshot に対しては常に同じ signal / stop_loss / take_profit / expected_gain を返す。
    """
    ticker = (ticker or "").strip().upper()
    if not ticker:
        raise InvalidInputError("ticker is required")
    if current_price is None or current_price <= 0:
        raise InvalidInputError(f"currentPrice must be > 0: {current_price!r}")

    now = now or datetime.now(timezone.utc)
    score = weighted_score(snapshot, profile)
    signal = classify_signal(score)
    stop_loss, take_profit = exit_levels(signal, current_price, snapshot.atr, profile)
    gain = expected_gain_percent(signal, current_price, take_profit)

    horizon = _horizon_signal(score)
    if profile.strategy_type == SHORT_TERM:
        short_term_signal, long_term_signal = horizon, Signal.NEUTRAL
    else:
        short_term_signal, long_term_signal = Signal.NEUTRAL, horizon

    condition = (
        MarketCondition.VOLATILE
        if snapshot.atr / current_price >= VOLATILE_ATR_RATIO
        else MarketCondition.NORMAL
    )

    size = None
    if account_balance is not None:
        size = position_size(profile, account_balance, current_price, stop_loss)

    return AnalysisResult(
        id=f"{ticker}-{int(now.timestamp() * 1000)}",
        ticker=ticker,
        strategy_name=profile.name,
        weighted_score=score,
        signal=signal,
        stop_loss=stop_loss,
        take_profit=take_profit,
        last_close=current_price,
        expected_gain=gain,
        snapshot=snapshot,
        timestamp=now,
        short_term_signal=short_term_signal,
        long_term_signal=long_term_signal,
        market_condition=condition,
        explanation=_explanation(ticker, profile, signal, score, snapshot),
        position_size=size,
        option_data=option_data,
    )


class SignalEngine:
    """IndicatorSource から指標を取得し、シグナルを生成する"""

    def __init__(self, indicator_source: IndicatorSource):
        self.indicator_source = indicator_source

    def analyze(
        self,
        ticker: str,
        current_price: float,
        profile: StrategyProfile,
        option_data: Optional[dict] = None,
        account_balance: Optional[float] = None,
    ) -> AnalysisResult:
        """
        1銘柄を分析する。

        Raises:
            InvalidInputError: ticker / current_price が不正
            DataUnavailableError: 指標データが取得できない（結果を捏造しない）
        """
        ticker = (ticker or "").strip().upper()
        if not ticker:
            raise InvalidInputError("ticker is required")
        if current_price is None or current_price <= 0:
            raise InvalidInputError(f"currentPrice must be > 0: {current_price!r}")

        try:
            snapshot = self.indicator_source.get_snapshot(ticker, profile)
        except DataUnavailableError:
            logger.warning("%s: 指標データ取得不可 (%s)", ticker, profile.name)
            raise

        result = evaluate_snapshot(
            ticker,
            current_price,
            profile,
            snapshot,
            option_data=option_data,
            account_balance=account_balance,
        )
        logger.info(
            "%s (%s): score=%.3f signal=%s SL=%.2f TP=%.2f",
            ticker, profile.name, result.weighted_score, result.signal.value,
            result.stop_loss, result.take_profit,
        )
        return result
