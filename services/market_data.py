"""
Cyber Trader Pro - マーケットデータAPIラッパー
yfinance 経由で Yahoo Finance から OHLCV 履歴と現在値を取得する。
"""
import math

import pandas as pd
import yfinance as yf

from config import Config
from core.exceptions import InvalidInputError, MarketDataError
from utils.logger import get_logger

logger = get_logger("MarketDataService")

# 時間足 -> (yfinance interval, 取得期間, リサンプル規則)
TIMEFRAME_MAP = {
    "5m": ("5m", "5d", None),
    "15m": ("15m", "1mo", None),
    "30m": ("30m", "1mo", None),
    "1h": ("60m", "3mo", None),
    "4h": ("60m", "6mo", "4h"),
    "1d": ("1d", "1y", None),
    "1wk": ("1wk", "5y", None),
    "1w": ("1wk", "5y", None),
}

_OHLCV_COLUMNS = ["open", "high", "low", "close", "volume"]


def _finite(value):
    """数値化できて有限なら float、それ以外は None"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class MarketDataService:
    """OHLCV 履歴・現在値の取得"""

    def __init__(self, timeout: float = None, ticker_factory=None):
        """
        Args:
            timeout: yfinance のリクエストタイムアウト秒
            ticker_factory: シンボルから yf.Ticker 互換オブジェクトを作る関数（省略時は yf.Ticker）
        """
        self.timeout = timeout or Config.MARKET_DATA_TIMEOUT
        self._ticker_factory = ticker_factory or yf.Ticker
        logger.info("MarketDataService initialized timeout=%s", self.timeout)

    # ------------------------------------------------------------------
    # 内部ヘルパー
    # ------------------------------------------------------------------
    def _download(self, ticker: str, interval: str, period: str) -> pd.DataFrame:
        """
        yf.Ticker.history を呼び出し、open/high/low/close/volume の DataFrame を返す。

        Raises:
            MarketDataError: 取得失敗・データなし
        """
        logger.debug("history %s interval=%s period=%s", ticker, interval, period)
        try:
            raw = self._ticker_factory(ticker).history(
                period=period, interval=interval, auto_adjust=True, timeout=self.timeout,
            )
        except Exception as e:
            logger.error("History request failed: %s - %s", ticker, e)
            raise MarketDataError(f"{ticker}: request failed: {e}") from e

        if raw is None or raw.empty:
            raise MarketDataError(f"{ticker}: no chart data")
        return self._normalize(raw)

    @staticmethod
    def _normalize(raw: pd.DataFrame) -> pd.DataFrame:
        """yfinance の列名（Open, High ...）を小文字に揃え、UTC の DatetimeIndex にする"""
        df = raw.rename(columns=str.lower)
        missing = [col for col in _OHLCV_COLUMNS if col not in df.columns]
        if missing:
            raise MarketDataError(f"missing columns: {missing}")

        df = df[_OHLCV_COLUMNS].apply(pd.to_numeric, errors="coerce")
        index = pd.DatetimeIndex(df.index)
        df.index = index.tz_convert("UTC") if index.tz is not None else index.tz_localize("UTC")

        # 値のない足（休場・未確定）は除外
        df = df.dropna(subset=["open", "high", "low", "close"])
        df["volume"] = df["volume"].fillna(0)
        return df.sort_index()

    @staticmethod
    def _resample(df: pd.DataFrame, rule: str) -> pd.DataFrame:
        if df.empty:
            return df
        return df.resample(rule).agg({
            "open": "first",
            "high": "max",
            "low": "min",
            "close": "last",
            "volume": "sum",
        }).dropna(subset=["close"])

    # ------------------------------------------------------------------
    # パブリックAPI
    # ------------------------------------------------------------------
    def get_history(self, ticker: str, timeframe: str) -> pd.DataFrame:
        """
        指定時間足の OHLCV 履歴を取得する。

        Args:
            ticker: 銘柄シンボル（例: "SPY", "BTC-USD"）
            timeframe: "5m" / "15m" / "30m" / "1h" / "4h" / "1d" / "1wk"

        Returns:
            DatetimeIndex (UTC) を持つ DataFrame（open, high, low, close, volume）
        """
        if timeframe not in TIMEFRAME_MAP:
            raise InvalidInputError(f"unsupported timeframe: {timeframe}")
        interval, period, rule = TIMEFRAME_MAP[timeframe]

        df = self._download(ticker, interval, period)
        if rule:
            df = self._resample(df, rule)
        logger.info("History %s %s: %d bars", ticker, timeframe, len(df))
        return df

    def get_quote(self, ticker: str) -> dict:
        """
        現在値を取得する（yfinance の fast_info）。

        Returns:
            {"ticker", "price", "change", "changePercent", "high", "low", "volume", "success"}
        """
        try:
            info = self._ticker_factory(ticker).fast_info
            price = _finite(info.last_price)
            previous = _finite(info.previous_close)
            high = _finite(info.day_high)
            low = _finite(info.day_low)
            volume = _finite(info.last_volume)
        except Exception as e:
            logger.error("Quote request failed: %s - %s", ticker, e)
            raise MarketDataError(f"{ticker}: request failed: {e}") from e

        if price is None or price <= 0:
            raise MarketDataError(f"{ticker}: no market price")

        change = price - previous if previous else 0.0
        change_percent = change / previous * 100 if previous else 0.0

        quote = {
            "ticker": ticker,
            "price": price,
            "change": change,
            "changePercent": change_percent,
            "high": high if high is not None else price,
            "low": low if low is not None else price,
            "volume": int(volume or 0),
            "success": True,
        }
        logger.info("Quote %s: %s", ticker, quote["price"])
        return quote
