"""
Cyber Trader Pro - ロガーユーティリティ
全ロガーを "cybertrader" 配下にまとめ、ファイル出力（logs/cybertrader.log）と
コンソール出力を一度だけ設定する。
"""
import os
import logging
from logging.handlers import RotatingFileHandler

ROOT_LOGGER_NAME = "cybertrader"

# ログディレクトリ（CYBERTRADER_LOG_DIR で上書き可能）
_LOG_DIR = os.getenv(
    "CYBERTRADER_LOG_DIR",
    os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "logs"),
)
_LOG_FILE = os.path.join(_LOG_DIR, "cybertrader.log")
_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
_CONSOLE_LEVEL = os.getenv("CYBERTRADER_LOG_LEVEL", "INFO").upper()


def _configure_root() -> logging.Logger:
    """ルートロガーにハンドラを設定する（設定済みなら何もしない）"""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return root

    os.makedirs(_LOG_DIR, exist_ok=True)
    root.setLevel(logging.DEBUG)
    formatter = logging.Formatter(_FORMAT)

    # ファイルハンドラ（最大5MB、バックアップ3世代）
    file_handler = RotatingFileHandler(
        _LOG_FILE, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, _CONSOLE_LEVEL, logging.INFO))
    console_handler.setFormatter(formatter)

    root.addHandler(file_handler)
    root.addHandler(console_handler)
    return root


def get_logger(name: str) -> logging.Logger:
    """
    "cybertrader.<name>" という子ロガーを取得する。
    ハンドラはルートロガーにのみ付与し、子ロガーは伝播で出力する。

    Args:
        name: ロガー名（例: "SignalEngine", "MarketDataService"）

    Returns:
        logging.Logger: 設定済みロガー
    """
    _configure_root()
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
