import pytest

from core.exceptions import DataUnavailableError
from core.signal_engine import IndicatorSource
from models.analysis import Confluence, IndicatorSnapshot, Trend, VolumeCategory
from models.strategy import LONG_TERM, SHORT_TERM, get_profile


class FakeProvider:
    """send_message の結果（文字列 or 例外）を順番に返す AIProvider"""

    def __init__(self, name, *responses):
        self.name = name
        self.is_configured = True
        self.responses = list(responses)
        self.calls = []

    def send_message(self, messages, system_prompt=None, cancel_event=None):
        self.calls.append({"messages": messages, "system_prompt": system_prompt})
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


class StaticSource(IndicatorSource):
    """固定の snapshot を返す（ticker -> snapshot、未登録は DataUnavailableError）"""

    def __init__(self, snapshots):
        self.snapshots = snapshots
        self.calls = []

    def get_snapshot(self, ticker, profile):
        self.calls.append((ticker, profile.strategy_type))
        if ticker not in self.snapshots:
            raise DataUnavailableError(f"no data for {ticker}")
        return self.snapshots[ticker]


def build_snapshot(**overrides) -> IndicatorSnapshot:
    values = {
        "ema_short": 101.0,
        "ema_long": 99.0,
        "rsi": 50.0,
        "atr": 1.0,
        "trend": Trend.SIDEWAYS,
        "volume": 1_000_000.0,
        "volume_category": VolumeCategory.HIGH,
        "adl_trend": Trend.UPTREND,
        "multi_timeframe_confluence": {},
    }
    values.update(overrides)
    return IndicatorSnapshot(**values)


@pytest.fixture
def short_profile():
    return get_profile(SHORT_TERM)


@pytest.fixture
def long_profile():
    return get_profile(LONG_TERM)


@pytest.fixture
def bullish_snapshot():
    return build_snapshot(
        rsi=60.0,
        trend=Trend.UPTREND,
        adl_trend=Trend.UPTREND,
        multi_timeframe_confluence={
            "5m": Confluence.BULLISH,
            "15m": Confluence.BULLISH,
            "30m": Confluence.BULLISH,
            "1h": Confluence.BULLISH,
        },
    )


@pytest.fixture
def bearish_snapshot():
    return build_snapshot(
        ema_short=97.0,
        rsi=35.0,
        trend=Trend.DOWNTREND,
        adl_trend=Trend.DOWNTREND,
        multi_timeframe_confluence={
            "5m": Confluence.BEARISH,
            "15m": Confluence.BEARISH,
            "30m": Confluence.BEARISH,
            "1h": Confluence.BEARISH,
        },
    )


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def make_source():
    return StaticSource
