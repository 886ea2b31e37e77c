"""
Cyber Trader Pro - マーケットスキャナー
主要指数の構成銘柄を騰落率でスキャンし、5分足 EMA65/EMA200 と RSI から
平均回帰のセットアップを抽出する。
"""
import math
from datetime import datetime, timezone
from typing import Optional

from core.exceptions import DataUnavailableError, InvalidInputError
from services.technical_analysis import TechnicalAnalyzer
from utils.logger import get_logger

logger = get_logger("MarketScanner")

# 主要指数の構成銘柄（簡略版）
MAJOR_INDEXES = {
    "S&P 500": [
        "AAPL", "MSFT", "AMZN", "NVDA", "GOOGL", "META", "TSLA", "BRK-B", "UNH", "XOM",
        "JPM", "JNJ", "V", "PG", "MA", "HD", "CVX", "MRK", "LLY", "AVGO",
    ],
    "Nasdaq": [
        "AAPL", "MSFT", "AMZN", "NVDA", "GOOGL", "META", "TSLA", "AVGO", "COST", "PEP",
        "ADBE", "CSCO", "NFLX", "CMCSA", "AMD", "TMUS", "INTC", "INTU", "QCOM", "AMAT",
    ],
    "Dow Jones": [
        "UNH", "GS", "HD", "MSFT", "MCD", "CAT", "CRM", "V", "AMGN", "TRV",
        "JPM", "BA", "PG", "IBM", "WMT", "JNJ", "AXP", "NKE", "MRK", "HON",
    ],
}

# シンボル -> (銘柄名, セクター)
COMPANY_INFO = {
    "AAPL": ("Apple Inc.", "Technology"),
    "MSFT": ("Microsoft Corp.", "Technology"),
    "AMZN": ("Amazon.com Inc.", "Consumer Cyclical"),
    "NVDA": ("NVIDIA Corp.", "Technology"),
    "GOOGL": ("Alphabet Inc.", "Communication Services"),
    "META": ("Meta Platforms Inc.", "Communication Services"),
    "TSLA": ("Tesla Inc.", "Consumer Cyclical"),
    "BRK-B": ("Berkshire Hathaway Inc.", "Financial Services"),
    "UNH": ("UnitedHealth Group Inc.", "Healthcare"),
    "JPM": ("JPMorgan Chase & Co.", "Financial Services"),
    "V": ("Visa Inc.", "Financial Services"),
    "XOM": ("Exxon Mobil Corp.", "Energy"),
    "JNJ": ("Johnson & Johnson", "Healthcare"),
    "PG": ("Procter & Gamble Co.", "Consumer Defensive"),
    "MA": ("Mastercard Inc.", "Financial Services"),
    "HD": ("Home Depot Inc.", "Consumer Cyclical"),
    "AVGO": ("Broadcom Inc.", "Technology"),
    "CVX": ("Chevron Corp.", "Energy"),
    "MRK": ("Merck & Co. Inc.", "Healthcare"),
    "LLY": ("Eli Lilly and Co.", "Healthcare"),
    "COST": ("Costco Wholesale Corp.", "Consumer Defensive"),
    "PEP": ("PepsiCo Inc.", "Consumer Defensive"),
    "ADBE": ("Adobe Inc.", "Technology"),
    "CSCO": ("Cisco Systems Inc.", "Technology"),
    "NFLX": ("Netflix Inc.", "Communication Services"),
    "CMCSA": ("Comcast Corp.", "Communication Services"),
    "AMD": ("Advanced Micro Devices Inc.", "Technology"),
    "TMUS": ("T-Mobile US Inc.", "Communication Services"),
    "INTC": ("Intel Corp.", "Technology"),
    "INTU": ("Intuit Inc.", "Technology"),
    "QCOM": ("Qualcomm Inc.", "Technology"),
    "AMAT": ("Applied Materials Inc.", "Technology"),
    "GS": ("Goldman Sachs Group Inc.", "Financial Services"),
    "MCD": ("McDonald's Corp.", "Consumer Cyclical"),
    "CAT": ("Caterpillar Inc.", "Industrials"),
    "CRM": ("Salesforce Inc.", "Technology"),
    "AMGN": ("Amgen Inc.", "Healthcare"),
    "TRV": ("Travelers Companies Inc.", "Financial Services"),
    "BA": ("Boeing Co.", "Industrials"),
    "IBM": ("International Business Machines Corp.", "Technology"),
    "WMT": ("Walmart Inc.", "Consumer Defensive"),
    "AXP": ("American Express Co.", "Financial Services"),
    "NKE": ("Nike Inc.", "Consumer Cyclical"),
    "HON": ("Honeywell International Inc.", "Industrials"),
}

SIGNAL_TYPES = ("all", "bullish", "bearish")


class MarketScanner:
    """騰落率スキャンと EMA/RSI セットアップのスキャン"""

    # ------------------------------------------------------------------
    # 定数
    # ------------------------------------------------------------------
    MOVE_THRESHOLD_PCT = 1.5      # 騰落率がこれを超えると bullish / bearish
    STRENGTH_PER_PCT = 20         # 騰落率 1% あたりの強度（上限 100）
    EMA_RSI_TIMEFRAME = "5m"
    EMA_FAST = 65
    EMA_SLOW = 200
    RSI_WINDOW = 14
    RSI_OVERBOUGHT = 70
    RSI_OVERSOLD = 30

    def __init__(self, market_data, analyzer: TechnicalAnalyzer = None, max_symbols: int = 50):
        """
        Args:
            market_data: get_quote / get_history を持つオブジェクト
            analyzer: TechnicalAnalyzer（省略時は新規作成）
            max_symbols: 1回のスキャンで扱う最大銘柄数
        """
        self.market_data = market_data
        self.analyzer = analyzer or TechnicalAnalyzer()
        self.max_symbols = max_symbols

    # ------------------------------------------------------------------
    # 騰落率スキャン
    # ------------------------------------------------------------------
    def classify_move(self, change_percent: float) -> str:
        if change_percent > self.MOVE_THRESHOLD_PCT:
            return "bullish"
        if change_percent < -self.MOVE_THRESHOLD_PCT:
            return "bearish"
        return "neutral"

    def move_strength(self, change_percent: float) -> int:
        """騰落率の大きさを 0-100 の強度に換算する"""
        return min(100, int(round(abs(change_percent) * self.STRENGTH_PER_PCT)))

    def scan_market(self, index: str) -> list:
        """
        指数構成銘柄の騰落率から bullish / bearish / neutral を判定し、強度の降順で返す。
        現在値が取れない銘柄は結果から除外する。
        """
        if index not in MAJOR_INDEXES:
            raise InvalidInputError(f"unknown index: {index!r} (choose from {list(MAJOR_INDEXES)})")

        results = []
        for symbol in MAJOR_INDEXES[index]:
            try:
                quote = self.market_data.get_quote(symbol)
            except DataUnavailableError as e:
                logger.warning("%s: 現在値取得失敗 - %s", symbol, e)
                continue

            change_percent = float(quote["changePercent"])
            signal = self.classify_move(change_percent)
            results.append({
                "symbol": symbol,
                "name": COMPANY_INFO.get(symbol, (symbol, "Unknown"))[0],
                "price": quote["price"],
                "change": quote["change"],
                "changePercent": change_percent,
                "volume": quote["volume"],
                "signal": signal,
                "strength": self.move_strength(change_percent),
            })

        results.sort(key=lambda r: r["strength"], reverse=True)
        logger.info("マーケットスキャン完了: %s %d/%d銘柄", index, len(results), len(MAJOR_INDEXES[index]))
        return results

    # ------------------------------------------------------------------
    # EMA / RSI スキャン
    # ------------------------------------------------------------------
    def evaluate_ema_rsi(self, price: float, ema_fast: float, ema_slow: float, rsi: float,
                         min_deviation: float) -> Optional[str]:
        """
        EMA平均から min_deviation 以上離れ、RSI が極端な水準なら反転方向を返す。
        上方乖離 + 買われ過ぎは bearish、下方乖離 + 売られ過ぎは bullish。
        """
        avg_ema = (ema_fast + ema_slow) / 2
        if price > avg_ema + min_deviation and rsi > self.RSI_OVERBOUGHT:
            return "bearish"
        if price < avg_ema - min_deviation and rsi < self.RSI_OVERSOLD:
            return "bullish"
        return None

    def scan_ema_rsi(self, symbols: list, signal_type: str = "all", min_deviation: float = 2.0) -> list:
        """
        5分足の EMA65 / EMA200 と RSI から平均回帰のセットアップを探す。

        Args:
            symbols: スキャン対象シンボル
            signal_type: "all" / "bullish" / "bearish"
            min_deviation: EMA平均からの最小乖離（価格単位）
        Returns:
            乖離の降順に並べた結果。目標値は EMA平均
        """
        if not isinstance(symbols, list) or not symbols:
            raise InvalidInputError("symbols must be a non-empty list")
        if len(symbols) > self.max_symbols:
            raise InvalidInputError(f"too many symbols (max {self.max_symbols})")
        if signal_type not in SIGNAL_TYPES:
            raise InvalidInputError(f"signal_type must be one of {SIGNAL_TYPES}: {signal_type!r}")
        try:
            min_deviation = float(min_deviation)
        except (TypeError, ValueError):
            raise InvalidInputError(f"min_deviation must be a number: {min_deviation!r}") from None
        if not math.isfinite(min_deviation) or min_deviation < 0:
            raise InvalidInputError(f"min_deviation must be >= 0: {min_deviation}")

        results = []
        for raw in symbols:
            symbol = str(raw or "").strip().upper()
            if not symbol:
                continue
            result = self._scan_symbol(symbol, signal_type, min_deviation)
            if result is not None:
                results.append(result)

        results.sort(key=lambda r: r["deviation"], reverse=True)
        logger.info("EMA/RSIスキャン完了: %d/%d銘柄がヒット", len(results), len(symbols))
        return results

    def _scan_symbol(self, symbol: str, signal_type: str, min_deviation: float) -> Optional[dict]:
        try:
            quote = self.market_data.get_quote(symbol)
            df = self.market_data.get_history(symbol, self.EMA_RSI_TIMEFRAME)
        except DataUnavailableError as e:
            logger.warning("%s: データ取得失敗 - %s", symbol, e)
            return None

        ema_fast = self.analyzer.calc_ema(df, self.EMA_FAST)
        ema_slow = self.analyzer.calc_ema(df, self.EMA_SLOW)
        rsi = self.analyzer.calc_rsi(df, self.RSI_WINDOW)
        if ema_fast is None or ema_slow is None or rsi is None:
            logger.warning("%s: データ不足 (%d本) - スキャン対象外", symbol, len(df))
            return None

        price = float(quote["price"])
        signal = self.evaluate_ema_rsi(price, ema_fast, ema_slow, rsi, min_deviation)
        if signal is None or (signal_type != "all" and signal != signal_type):
            return None

        avg_ema = (ema_fast + ema_slow) / 2
        name, sector = COMPANY_INFO.get(symbol, (symbol, "Unknown"))
        return {
            "symbol": symbol,
            "name": name,
            "currentPrice": price,
            "ema65": ema_fast,
            "ema200": ema_slow,
            "rsi": rsi,
            "deviation": abs(price - avg_ema),
            "signal": signal,
            "potentialTarget": avg_ema,
            "sector": sector,
            "volume": quote["volume"],
            "lastUpdate": datetime.now(timezone.utc).isoformat(),
        }
