"""
Cyber Trader Pro - 設定管理
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _env_list(name: str, default: str) -> list:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class Config:
    """アプリケーション設定"""

    VERSION = "1.0.0"

    # Flask
    SECRET_KEY = os.getenv("FLASK_SECRET_KEY", "dev-secret-key")
    DEBUG = os.getenv("FLASK_DEBUG", "false").lower() == "true"
    JSON_SORT_KEYS = False

    # AI API Keys（Together / DeepInfra は旧環境変数 CYBER_TRADER_PRO も参照）
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
    ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
    GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY", "")
    DEEPSEEK_API_KEY = os.getenv("DEEPSEEK_API_KEY", "")
    TOGETHER_API_KEY = os.getenv("TOGETHER_API_KEY", os.getenv("CYBER_TRADER_PRO", ""))
    DEEPINFRA_API_KEY = os.getenv("DEEPINFRA_API_KEY", os.getenv("CYBER_TRADER_PRO", ""))

    # AIプロバイダの優先順位（先頭から順に試行）
    AI_PROVIDER_ORDER = _env_list(
        "AI_PROVIDER_ORDER", "deepinfra,deepseek,together,openai,anthropic,gemini"
    )
    AI_TIMEOUT = float(os.getenv("AI_TIMEOUT", "10"))

    # Market Data（yfinance）
    MARKET_DATA_TIMEOUT = float(os.getenv("MARKET_DATA_TIMEOUT", "10"))

    # Saved Predictions
    PREDICTION_STORE_PATH = os.getenv("PREDICTION_STORE_PATH", "data/predictions.json")

    # Analysis
    MAX_TICKERS_PER_REQUEST = int(os.getenv("MAX_TICKERS_PER_REQUEST", "20"))
    MAX_SCAN_SYMBOLS = int(os.getenv("MAX_SCAN_SYMBOLS", "50"))


# ============================================================
# AIプロバイダ定義
# ============================================================
# OpenAI互換API（DeepSeek / Together / DeepInfra）は base_url を切り替えて利用する
AI_PROVIDERS = {
    "deepinfra": {
        "label": "DeepInfra",
        "service": "openai",
        "api_key_attr": "DEEPINFRA_API_KEY",
        "base_url": "https://api.deepinfra.com/v1/openai",
        "model": "meta-llama/Meta-Llama-3-70B-Instruct",
    },
    "deepseek": {
        "label": "DeepSeek",
        "service": "openai",
        "api_key_attr": "DEEPSEEK_API_KEY",
        "base_url": "https://api.deepseek.com/v1",
        "model": "deepseek-chat",
    },
    "together": {
        "label": "Together AI",
        "service": "openai",
        "api_key_attr": "TOGETHER_API_KEY",
        "base_url": "https://api.together.xyz/v1",
        "model": "mistralai/Mixtral-8x7B-Instruct-v0.1",
    },
    "openai": {
        "label": "OpenAI",
        "service": "openai",
        "api_key_attr": "OPENAI_API_KEY",
        "base_url": None,
        "model": "gpt-4.1",
    },
    "anthropic": {
        "label": "Claude",
        "service": "anthropic",
        "api_key_attr": "ANTHROPIC_API_KEY",
        "base_url": None,
        "model": "claude-sonnet-4-20250514",
    },
    "gemini": {
        "label": "Gemini",
        "service": "gemini",
        "api_key_attr": "GOOGLE_API_KEY",
        "base_url": None,
        "model": "gemini-2.0-flash",
    },
}


# ============================================================
# 戦略プロファイル定義（2種類）
# ============================================================
STRATEGY_CONFIGS = {
    "short-term": {
        "name": "Short-Term",
        "ema_windows": (9, 20),
        "rsi_window": 10,
        "atr_window": 14,
        "timeframes": ("5m", "15m", "30m", "1h"),
        "risk_per_trade": 0.01,
        "max_drawdown": 0.05,
        "stop_loss_atr_multiplier": (1.0, 1.5),
        "take_profit_atr_multiplier": (1.5, 2.0),
        "position_size_factor": 1.0,
        "mtf_weights": {
            "5m": 1.0,
            "15m": 1.0,
            "30m": 1.0,
            "1h": 0.8,
            "4h": 0.5,
            "1d": 0.3,
        },
        "ml_confidence_threshold": 0.6,
    },
    "long-term": {
        "name": "Long-Term",
        "ema_windows": (50, 200),
        "rsi_window": 14,
        "atr_window": 14,
        "timeframes": ("4h", "1d", "1wk"),
        "risk_per_trade": 0.01,
        "max_drawdown": 0.05,
        "stop_loss_atr_multiplier": (2.0, 3.0),
        "take_profit_atr_multiplier": (3.0, 5.0),
        "position_size_factor": 2.0,
        "mtf_weights": {
            "5m": 0.3,
            "15m": 0.3,
            "30m": 0.5,
            "1h": 0.8,
            "4h": 1.0,
            "1d": 1.0,
            "1wk": 1.0,
        },
        "ml_confidence_threshold": 0.6,
    },
}
