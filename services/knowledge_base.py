"""
教育コンテンツ（トレードアシスタントのローカル応答用）
AIプロバイダが利用できない場合にキーワード一致で解説を返す。
"""
import re

INDICATORS = {
    "sma": "Simple Moving Average (SMA) averages the closing price over a fixed number of periods. "
           "It is used to identify trend direction and dynamic support or resistance.",
    "ema": "Exponential Moving Average (EMA) weights recent prices more heavily, so it reacts faster "
           "to price changes than an SMA of the same length.",
    "rsi": "Relative Strength Index (RSI) measures the speed and change of price moves on a 0-100 scale. "
           "Readings above 70 suggest overbought conditions, below 30 oversold.",
    "macd": "MACD shows the relationship between two EMAs. The MACD line, signal line and histogram "
            "are used to read momentum, trend direction and possible reversals.",
    "atr": "Average True Range (ATR) measures volatility from the full range of each bar. "
           "It is commonly used to size stop-loss distances and positions.",
    "bollinger": "Bollinger Bands place bands a number of standard deviations around a moving average. "
                 "They widen with volatility and tighten before breakouts.",
    "adl": "The Accumulation/Distribution Line tracks the cumulative flow of money into and out of "
           "a security and is used to confirm trends or spot divergences.",
    "obv": "On-Balance Volume adds volume on up days and subtracts it on down days to gauge buying "
           "and selling pressure.",
    "stochastic": "The Stochastic Oscillator compares the close to the recent range. Readings above 80 "
                  "are overbought and below 20 oversold.",
    "adx": "Average Directional Index (ADX) measures trend strength regardless of direction. "
           "Above 25 indicates a strong trend.",
}

FUNDAMENTALS = {
    "support": "Support is a price area where falling prices tend to stop; resistance is where rising "
               "prices tend to stall. Both form from earlier market reactions.",
    "trend": "Trend analysis identifies whether a market is moving up, down or sideways using "
             "trendlines, moving averages and the sequence of highs and lows.",
    "price action": "Price action trading reads raw price movement, candlestick patterns and key levels "
                    "without relying on indicators.",
    "market cycle": "Markets move through accumulation, markup, distribution and markdown phases.",
    "timeframe": "Multi-timeframe analysis checks that the higher timeframe trend agrees with the "
                 "entry timeframe before taking a trade.",
}

RISK = {
    "stop loss": "A stop loss closes a position at a predefined price to cap the loss. ATR-based stops "
                 "adapt the distance to current volatility.",
    "position size": "Position size = account risk amount / distance between entry and stop. "
                     "Risking about 1% of the account per trade is a common rule.",
    "risk reward": "The risk/reward ratio compares the distance to the target with the distance to the "
                   "stop. Many traders require at least 2:1.",
    "drawdown": "Drawdown is the decline from an equity peak. Limiting risk per trade keeps drawdowns "
                "recoverable.",
    "expected move": "The expected move is price x implied volatility x sqrt(days / 365). About 68% of "
                     "outcomes are expected within one expected move and about 95% within two.",
}

CATEGORIES = {
    "indicators": INDICATORS,
    "fundamentals": FUNDAMENTALS,
    "risk": RISK,
}

_CATEGORY_KEYWORDS = {
    "indicators": ["indicator", "oscillator", "moving average", "macd", "rsi", "bollinger",
                   "stochastic", "atr", "ema", "sma", "adx", "obv", "adl"],
    "risk": ["risk", "stop loss", "position size", "drawdown", "reward", "expected move"],
    "fundamentals": ["support", "resistance", "trend", "price action", "cycle", "timeframe"],
}

_EDUCATIONAL_MARKERS = ("what is", "how does", "explain", "teach me", "learn about", "understand")

DEFAULT_ANSWER = (
    "I'm currently answering from the built-in study guide because no AI provider is reachable. "
    "Ask about indicators (RSI, MACD, ATR), trading fundamentals (support, trends) or risk "
    "management (stop losses, position sizing, expected move)."
)


def _mentions(text: str, key: str) -> bool:
    return re.search(rf"\b{re.escape(key)}", text) is not None


def infer_category(message: str) -> str:
    """メッセージからカテゴリ（indicators / fundamentals / risk / general）を推定する"""
    text = message.lower()
    for category, keywords in _CATEGORY_KEYWORDS.items():
        if any(_mentions(text, k) for k in keywords):
            return category
    return "general"


def is_educational(message: str) -> bool:
    text = message.lower()
    return any(marker in text for marker in _EDUCATIONAL_MARKERS)


def lookup(message: str, category: str = "general") -> str:
    """キーワード一致（語頭）で解説文を返す。見つからなければ DEFAULT_ANSWER"""
    text = message.lower()
    if category in CATEGORIES:
        search = [CATEGORIES[category]]
    else:
        search = list(CATEGORIES.values())
    for topics in search:
        for key, answer in topics.items():
            if _mentions(text, key):
                return answer
    return DEFAULT_ANSWER
