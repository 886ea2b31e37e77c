"""
Cyber Trader Pro - テクニカル分析エンジン
OHLCV データから EMA / RSI / ATR / 出来高区分 / ADL トレンド / 複数時間足コンフルエンス を計算し、
SignalEngine に渡す IndicatorSnapshot を生成する。
"""
import math
from typing import Dict, Optional

import numpy as np
import pandas as pd
import ta

from core.exceptions import DataUnavailableError
from core.signal_engine import IndicatorSource
from models.analysis import Confluence, IndicatorSnapshot, Trend, VolumeCategory
from models.strategy import StrategyProfile
from utils.logger import get_logger

logger = get_logger("TechnicalAnalyzer")


def _last(series: pd.Series) -> Optional[float]:
    if series is None or series.empty:
        return None
    val = series.iloc[-1]
    return None if val is None or math.isnan(val) else float(val)


class TechnicalAnalyzer:
    """ローソク足データに対するテクニカル分析"""

    # ------------------------------------------------------------------
    # 定数
    # ------------------------------------------------------------------
    VOLUME_AVG_PERIOD = 20
    ADL_LOOKBACK = 10

    # ------------------------------------------------------------------
    # 個別指標の算出
    # ------------------------------------------------------------------
    def calc_ema(self, df: pd.DataFrame, window: int) -> Optional[float]:
        """EMA の最新値"""
        if len(df) < window:
            return None
        return _last(ta.trend.ema_indicator(df["close"], window=window))

    def calc_rsi(self, df: pd.DataFrame, window: int) -> Optional[float]:
        """RSI（相対力指数）の最新値"""
        if len(df) <= window:
            return None
        return _last(ta.momentum.rsi(df["close"], window=window))

    def calc_atr(self, df: pd.DataFrame, window: int) -> Optional[float]:
        """ATR（平均真の値幅）の最新値。ta は先頭 window 本を 0 で埋めるため本数を確認する"""
        if len(df) <= window:
            return None
        return _last(ta.volatility.average_true_range(df["high"], df["low"], df["close"], window=window))

    def classify_volume(self, df: pd.DataFrame) -> tuple:
        """直近出来高と、平均出来高以上なら High / 未満なら Low"""
        period = min(self.VOLUME_AVG_PERIOD, len(df))
        avg_vol = float(df["volume"].iloc[-period:].mean())
        current_vol = float(df["volume"].iloc[-1])
        if avg_vol > 0 and current_vol >= avg_vol:
            return current_vol, VolumeCategory.HIGH
        return current_vol, VolumeCategory.LOW

    def calc_adl_trend(self, df: pd.DataFrame) -> Trend:
        """Accumulation/Distribution Line の直近 ADL_LOOKBACK 本の傾きで判定する"""
        adl = ta.volume.acc_dist_index(df["high"], df["low"], df["close"], df["volume"])
        adl = adl.dropna()
        if len(adl) < 2:
            return Trend.DOWNTREND
        lookback = min(self.ADL_LOOKBACK, len(adl) - 1)
        slope = np.sign(adl.iloc[-1] - adl.iloc[-1 - lookback])
        return Trend.UPTREND if slope >= 0 else Trend.DOWNTREND

    @staticmethod
    def classify_trend(close: float, ema_short: float, ema_long: float) -> Trend:
        """短期EMA・長期EMA・終値の並びでトレンドを判定する"""
        if ema_short > ema_long and close > ema_long:
            return Trend.UPTREND
        if ema_short < ema_long and close < ema_long:
            return Trend.DOWNTREND
        return Trend.SIDEWAYS

    def timeframe_reading(self, df: pd.DataFrame, window: int) -> Optional[Confluence]:
        """終値が短期EMA以上なら bullish、未満なら bearish"""
        ema = self.calc_ema(df, window)
        if ema is None:
            return None
        close = float(df["close"].iloc[-1])
        return Confluence.BULLISH if close >= ema else Confluence.BEARISH

    # ------------------------------------------------------------------
    # スナップショット
    # ------------------------------------------------------------------
    def build_snapshot(
        self,
        df: pd.DataFrame,
        profile: StrategyProfile,
        confluence: Optional[Dict[str, Confluence]] = None,
    ) -> IndicatorSnapshot:
        """
        主時間足の OHLCV から IndicatorSnapshot を生成する。

        Raises:
            DataUnavailableError: データ不足で指標が算出できない
        """
        fast, slow = profile.ema_windows
        min_bars = max(slow, profile.rsi_window, profile.atr_window) + 1
        if df is None or df.empty or len(df) < min_bars:
            raise DataUnavailableError(
                f"not enough bars for {profile.name}: {0 if df is None else len(df)} < {min_bars}"
            )

        ema_short = self.calc_ema(df, fast)
        ema_long = self.calc_ema(df, slow)
        rsi = self.calc_rsi(df, profile.rsi_window)
        atr = self.calc_atr(df, profile.atr_window)
        if None in (ema_short, ema_long, rsi, atr):
            raise DataUnavailableError(f"indicator calculation failed for {profile.name}")

        close = float(df["close"].iloc[-1])
        volume, volume_category = self.classify_volume(df)
        percent_change = None
        if len(df) >= 2 and df["close"].iloc[-2]:
            percent_change = (close / float(df["close"].iloc[-2]) - 1) * 100

        return IndicatorSnapshot(
            ema_short=ema_short,
            ema_long=ema_long,
            rsi=rsi,
            atr=max(atr, 0.0),
            trend=self.classify_trend(close, ema_short, ema_long),
            volume=volume,
            volume_category=volume_category,
            adl_trend=self.calc_adl_trend(df),
            multi_timeframe_confluence=dict(confluence or {}),
            percent_change=percent_change,
        )


class OHLCVIndicatorSource(IndicatorSource):
    """MarketDataService の履歴から IndicatorSnapshot を生成する IndicatorSource 実装"""

    def __init__(self, market_data, analyzer: TechnicalAnalyzer = None):
        """
        Args:
            market_data: get_history(ticker, timeframe) を持つオブジェクト
            analyzer: TechnicalAnalyzer（省略時は新規作成）
        """
        self.market_data = market_data
        self.analyzer = analyzer or TechnicalAnalyzer()

    @staticmethod
    def primary_timeframe(profile: StrategyProfile) -> str:
        """指標算出に使う主時間足（日足があれば日足、なければ最上位足）"""
        return "1d" if "1d" in profile.timeframes else profile.timeframes[-1]

    def get_snapshot(self, ticker: str, profile: StrategyProfile) -> IndicatorSnapshot:
        primary = self.primary_timeframe(profile)
        fast, _ = profile.ema_windows
        frames = {primary: self.market_data.get_history(ticker, primary)}

        confluence: Dict[str, Confluence] = {}
        for tf in profile.timeframes:
            try:
                df = frames.get(tf)
                if df is None:
                    df = self.market_data.get_history(ticker, tf)
                    frames[tf] = df
            except DataUnavailableError as e:
                # 主時間足以外の欠損はコンフルエンスから除外するだけ
                logger.warning("%s (%s): 履歴取得失敗 - %s", ticker, tf, e)
                continue
            reading = self.analyzer.timeframe_reading(df, fast)
            if reading is None:
                logger.warning("%s (%s): データ不足 (%d本) - MTFC対象外", ticker, tf, len(df))
                continue
            confluence[tf] = reading

        return self.analyzer.build_snapshot(frames[primary], profile, confluence)
