import numpy as np
import pandas as pd
import pytest

from core.exceptions import DataUnavailableError, MarketDataError
from models.analysis import Confluence, Trend, VolumeCategory
from services.technical_analysis import OHLCVIndicatorSource, TechnicalAnalyzer


def make_candles(n: int = 120, step: float = 0.5, last_volume: float = 5000.0) -> pd.DataFrame:
    """一定幅で動くローソク足。上昇時は高値寄り、下落時は安値寄りで引ける"""
    close = 100.0 + step * np.arange(n)
    if step >= 0:
        high, low = close + 0.2, close - 1.0
    else:
        high, low = close + 1.0, close - 0.2
    volume = np.full(n, 1000.0)
    volume[-1] = last_volume
    return pd.DataFrame(
        {"open": close - step / 2, "high": high, "low": low, "close": close, "volume": volume},
        index=pd.date_range("2024-01-01", periods=n, freq="h", tz="UTC"),
    )


class FakeMarketData:
    def __init__(self, frames, failing=()):
        self.frames = frames
        self.failing = set(failing)
        self.requested = []

    def get_history(self, ticker, timeframe):
        self.requested.append(timeframe)
        if timeframe in self.failing:
            raise MarketDataError(f"{ticker}: no chart data")
        return self.frames[timeframe]


def test_uptrend_snapshot(short_profile):
    df = make_candles()

    snapshot = TechnicalAnalyzer().build_snapshot(df, short_profile)

    assert snapshot.trend is Trend.UPTREND
    assert snapshot.adl_trend is Trend.UPTREND
    assert snapshot.ema_short > snapshot.ema_long
    assert snapshot.rsi > 70
    assert snapshot.atr == pytest.approx(1.2, rel=1e-6)
    assert snapshot.volume == 5000.0
    assert snapshot.volume_category is VolumeCategory.HIGH
    assert snapshot.percent_change == pytest.approx((df["close"].iloc[-1] / df["close"].iloc[-2] - 1) * 100)


def test_downtrend_snapshot(short_profile):
    df = make_candles(step=-0.3, last_volume=500.0)

    snapshot = TechnicalAnalyzer().build_snapshot(df, short_profile)

    assert snapshot.trend is Trend.DOWNTREND
    assert snapshot.adl_trend is Trend.DOWNTREND
    assert snapshot.rsi < 30
    assert snapshot.volume_category is VolumeCategory.LOW


def test_mixed_ema_alignment_is_sideways():
    assert TechnicalAnalyzer.classify_trend(close=99.0, ema_short=101.0, ema_long=100.0) is Trend.SIDEWAYS
    assert TechnicalAnalyzer.classify_trend(close=101.0, ema_short=99.0, ema_long=100.0) is Trend.SIDEWAYS


def test_insufficient_bars_raise(short_profile, long_profile):
    analyzer = TechnicalAnalyzer()

    with pytest.raises(DataUnavailableError):
        analyzer.build_snapshot(make_candles(n=15), short_profile)
    with pytest.raises(DataUnavailableError):
        analyzer.build_snapshot(make_candles(n=150), long_profile)


def test_timeframe_reading():
    analyzer = TechnicalAnalyzer()

    assert analyzer.timeframe_reading(make_candles(), 9) is Confluence.BULLISH
    assert analyzer.timeframe_reading(make_candles(step=-0.3), 9) is Confluence.BEARISH
    assert analyzer.timeframe_reading(make_candles(n=5), 9) is None


def test_source_builds_confluence_across_timeframes(short_profile):
    frames = {tf: make_candles() for tf in short_profile.timeframes}
    frames["30m"] = make_candles(step=-0.3)
    market_data = FakeMarketData(frames, failing={"5m"})

    snapshot = OHLCVIndicatorSource(market_data).get_snapshot("SPY", short_profile)

    assert OHLCVIndicatorSource.primary_timeframe(short_profile) == "1h"
    assert snapshot.multi_timeframe_confluence == {
        "15m": Confluence.BULLISH,
        "30m": Confluence.BEARISH,
        "1h": Confluence.BULLISH,
    }
    assert market_data.requested.count("1h") == 1


def test_source_prefers_daily_for_long_term(long_profile):
    frames = {tf: make_candles(n=260) for tf in long_profile.timeframes}
    market_data = FakeMarketData(frames)

    snapshot = OHLCVIndicatorSource(market_data).get_snapshot("SPY", long_profile)

    assert market_data.requested[0] == "1d"
    assert set(snapshot.multi_timeframe_confluence) == {"4h", "1d", "1wk"}


def test_source_fails_when_primary_history_missing(short_profile):
    market_data = FakeMarketData({}, failing={"1h"})

    with pytest.raises(DataUnavailableError):
        OHLCVIndicatorSource(market_data).get_snapshot("SPY", short_profile)
