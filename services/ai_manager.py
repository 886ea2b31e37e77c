"""
AI Manager - AIプロバイダの優先順位付きフォールバックチェーン
設定済みのAPIキーに応じて各サービス（OpenAI互換 / Claude / Gemini）を生成し、
先頭から順に試行する。全て失敗した場合は最後のエラーを送出する。
"""
import logging

from config import AI_PROVIDERS, Config
from core.exceptions import (
    AnalysisCancelled,
    ProviderError,
    ProviderRateLimited,
    ProviderUnavailable,
)
from services.claude_service import ClaudeService
from services.gemini_service import GeminiService
from services.openai_service import OpenAIService

logger = logging.getLogger(__name__)

# サービス名 -> サービスクラス
SERVICE_MAP = {
    "openai": OpenAIService,
    "anthropic": ClaudeService,
    "gemini": GeminiService,
}


def build_provider(provider_id: str, profile: dict, config) -> object:
    """AI_PROVIDERS の定義からサービスインスタンスを作成する"""
    service_cls = SERVICE_MAP[profile["service"]]
    api_key = getattr(config, profile["api_key_attr"], "")
    timeout = getattr(config, "AI_TIMEOUT", 10)
    kwargs = {"api_key": api_key, "model": profile["model"], "timeout": timeout, "name": provider_id}
    if profile["service"] == "openai":
        kwargs["base_url"] = profile.get("base_url")
    return service_cls(**kwargs)


class AIProviderChain:
    """優先順位付き AIProvider リスト（全プロバイダ共通のエラー処理）"""

    def __init__(self, providers: list = None, config=None):
        """
        Args:
            providers: send_message / name / is_configured を持つサービスのリスト。
                       None の場合は config.AI_PROVIDER_ORDER から生成する。
            config: Config オブジェクト。None の場合は Config() を使用。
        """
        if providers is None:
            config = config or Config()
            providers = self._build_from_config(config)
        self.providers = providers

    @staticmethod
    def _build_from_config(config) -> list:
        providers = []
        for provider_id in getattr(config, "AI_PROVIDER_ORDER", []):
            profile = AI_PROVIDERS.get(provider_id)
            if profile is None:
                logger.warning("不明なAIプロバイダ '%s' - スキップ", provider_id)
                continue
            service = build_provider(provider_id, profile, config)
            if not service.is_configured:
                logger.info("%s: APIキー未設定 - チェーンから除外", profile["label"])
                continue
            providers.append(service)
        return providers

    @property
    def available(self) -> list:
        """利用可能なプロバイダ名リスト（優先順）"""
        return [p.name for p in self.providers]

    def generate(self, prompt: str, system_prompt: str = None, history: list = None,
                 cancel_event=None) -> tuple:
        """
        先頭のプロバイダから順にメッセージを送信し、最初の成功結果を返す。

        Args:
            prompt: ユーザーメッセージ
            system_prompt: システムプロンプト（任意）
            history: 直前までの会話履歴 [{"role", "content"}]（任意）
            cancel_event: threading.Event（任意）。セットされると AnalysisCancelled
        Returns:
            (レスポンステキスト, プロバイダ名)

        Raises:
            ProviderRateLimited: 全プロバイダが失敗し、最後の失敗がレート制限
            ProviderUnavailable: プロバイダ未設定、または全て失敗
            AnalysisCancelled: キャンセルされた
        """
        if not self.providers:
            raise ProviderUnavailable("no AI provider is configured")

        messages = list(history or []) + [{"role": "user", "content": prompt}]
        last_error: ProviderError = None

        for provider in self.providers:
            if cancel_event is not None and cancel_event.is_set():
                raise AnalysisCancelled("AI request cancelled")
            try:
                text = provider.send_message(
                    messages, system_prompt=system_prompt, cancel_event=cancel_event,
                )
                logger.info("AI応答取得: provider=%s", provider.name)
                return text, provider.name
            except ProviderRateLimited as e:
                logger.warning("%s: レート制限 - 次のプロバイダへ", provider.name)
                last_error = e
            except ProviderUnavailable as e:
                logger.warning("%s: 利用不可 (%s) - 次のプロバイダへ", provider.name, e)
                last_error = e

        raise last_error
