from types import SimpleNamespace

import pandas as pd
import pytest

from core.exceptions import InvalidInputError, MarketDataError
from services.market_data import MarketDataService


def make_history(closes, freq="h", tz="America/New_York") -> pd.DataFrame:
    """yf.Ticker.history と同じ列構成の DataFrame"""
    index = pd.date_range("2024-04-01 09:00", periods=len(closes), freq=freq, tz=tz)
    return pd.DataFrame(
        {
            "Open": list(closes),
            "High": [c + 1 if c is not None else None for c in closes],
            "Low": [c - 1 if c is not None else None for c in closes],
            "Close": list(closes),
            "Volume": [1000] * len(closes),
            "Dividends": [0.0] * len(closes),
            "Stock Splits": [0.0] * len(closes),
        },
        index=index,
    )


class FakeTicker:
    def __init__(self, history=None, fast_info=None, error=None):
        self._history = history
        self._fast_info = fast_info
        self.error = error
        self.calls = []

    def history(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return self._history

    @property
    def fast_info(self):
        if self.error:
            raise self.error
        return self._fast_info


def make_service(ticker: FakeTicker) -> tuple:
    requested = []

    def factory(symbol):
        requested.append(symbol)
        return ticker

    return MarketDataService(timeout=3, ticker_factory=factory), requested


def make_fast_info(**overrides):
    values = {
        "last_price": 105.0,
        "previous_close": 100.0,
        "day_high": 106.0,
        "day_low": 99.0,
        "last_volume": 123456,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_history_dataframe():
    ticker = FakeTicker(history=make_history([10.0, None, 11.0, 12.0]))
    service, requested = make_service(ticker)

    df = service.get_history("SPY", "1h")

    assert requested == ["SPY"]
    assert ticker.calls[0]["interval"] == "60m"
    assert ticker.calls[0]["period"] == "3mo"
    assert ticker.calls[0]["timeout"] == 3
    assert list(df.columns) == ["open", "high", "low", "close", "volume"]
    assert list(df["close"]) == [10.0, 11.0, 12.0]
    assert str(df.index.tz) == "UTC"


def test_four_hour_bars_are_resampled():
    history = make_history([float(i) for i in range(8)], tz="UTC")
    history.index = pd.date_range("2024-04-01", periods=8, freq="h", tz="UTC")
    service, _ = make_service(FakeTicker(history=history))

    df = service.get_history("SPY", "4h")

    assert len(df) == 2
    assert list(df["close"]) == [3.0, 7.0]
    assert list(df["volume"]) == [4000, 4000]
    assert list(df["high"]) == [4.0, 8.0]


def test_unsupported_timeframe():
    ticker = FakeTicker(history=make_history([1.0]))
    service, _ = make_service(ticker)

    with pytest.raises(InvalidInputError):
        service.get_history("SPY", "2h")
    assert ticker.calls == []


@pytest.mark.parametrize(
    "ticker",
    [
        FakeTicker(error=ConnectionError("timed out")),
        FakeTicker(history=pd.DataFrame()),
        FakeTicker(history=None),
        FakeTicker(history=make_history([1.0, 2.0]).drop(columns=["Volume"])),
    ],
)
def test_history_failures_raise_market_data_error(ticker):
    service, _ = make_service(ticker)

    with pytest.raises(MarketDataError):
        service.get_history("NOPE", "1d")


def test_quote():
    service, _ = make_service(FakeTicker(fast_info=make_fast_info()))

    quote = service.get_quote("SPY")

    assert quote == {
        "ticker": "SPY",
        "price": 105.0,
        "change": pytest.approx(5.0),
        "changePercent": pytest.approx(5.0),
        "high": 106.0,
        "low": 99.0,
        "volume": 123456,
        "success": True,
    }


def test_quote_without_previous_close():
    service, _ = make_service(FakeTicker(fast_info=make_fast_info(previous_close=None, day_high=None)))

    quote = service.get_quote("SPY")

    assert quote["change"] == 0.0
    assert quote["changePercent"] == 0.0
    assert quote["high"] == 105.0


@pytest.mark.parametrize("price", [None, float("nan"), 0.0])
def test_quote_without_price(price):
    service, _ = make_service(FakeTicker(fast_info=make_fast_info(last_price=price)))

    with pytest.raises(MarketDataError):
        service.get_quote("SPY")


def test_quote_request_failure():
    service, _ = make_service(FakeTicker(error=KeyError("currentTradingPeriod")))

    with pytest.raises(MarketDataError):
        service.get_quote("NOPE")
