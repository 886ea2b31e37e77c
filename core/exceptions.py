"""例外定義"""


class CyberTraderError(Exception):
    """アプリケーション共通の基底例外"""
    pass


class InvalidInputError(CyberTraderError, ValueError):
    """呼び出し側の入力値が不正（リトライ不要）"""
    pass


class DataUnavailableError(CyberTraderError):
    """価格・指標データの取得元が利用できない"""
    pass


class MarketDataError(DataUnavailableError):
    """マーケットデータAPI固有のエラー"""
    pass


class ProviderError(CyberTraderError):
    """AIプロバイダ呼び出しの失敗"""

    def __init__(self, message: str, provider: str = None):
        super().__init__(message)
        self.provider = provider


class ProviderRateLimited(ProviderError):
    """AIプロバイダのレート制限（429）"""
    pass


class ProviderUnavailable(ProviderError):
    """AIプロバイダが利用不可（キー未設定・4xx・5xx・タイムアウト等）"""
    pass


class AnalysisCancelled(CyberTraderError):
    """呼び出し元によって処理がキャンセルされた"""
    pass


class PersistenceError(CyberTraderError):
    """保存済み予測ストアの読み書きに失敗した"""
    pass
