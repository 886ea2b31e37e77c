"""
OpenAI Service - OpenAI Chat Completions API ラッパー
base_url を切り替えることで DeepSeek / Together AI / DeepInfra の
OpenAI互換エンドポイントにも利用する。
"""
import logging
import time

import openai

from core.exceptions import AnalysisCancelled, ProviderRateLimited, ProviderUnavailable

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2  # 一時的なエラー（5xx / 接続）のみ 1 回リトライ
RETRY_DELAY = 1  # seconds


class OpenAIService:
    """OpenAI互換 Chat Completions API とのやり取りを管理するサービス"""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4.1",
        base_url: str = None,
        timeout: float = 10,
        name: str = "openai",
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self.name = name
        self._client = None

    @property
    def client(self):
        if self._client is None and self.api_key:
            kwargs = {
                "api_key": self.api_key,
                "timeout": self.timeout,
                "max_retries": 0,  # リトライはこのクラスで制御する
            }
            if self.base_url:
                kwargs["base_url"] = self.base_url
            self._client = openai.OpenAI(**kwargs)
        return self._client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def send_message(self, messages: list, system_prompt: str = None, cancel_event=None) -> str:
        """
        Chat Completions API を呼び出してレスポンスを返す。

        Args:
            messages: [{"role": "user"/"assistant", "content": "..."}]
            system_prompt: システムプロンプト（任意）
            cancel_event: threading.Event。セット済みなら呼び出し前に中断する（任意）
        Returns:
            レスポンステキスト

        Raises:
            ProviderRateLimited: 429（リトライしない）
            ProviderUnavailable: キー未設定・4xx・リトライ後も解消しない 5xx / 接続エラー
            AnalysisCancelled: cancel_event がセットされた
        """
        if not self.client:
            raise ProviderUnavailable(f"{self.name}: API key is not configured", provider=self.name)

        api_messages = self._build_messages(messages, system_prompt)

        for attempt in range(1, MAX_ATTEMPTS + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise AnalysisCancelled(f"{self.name}: request cancelled")
            try:
                response = self.client.chat.completions.create(
                    model=self.model,
                    messages=api_messages,
                    max_tokens=1024,
                )
                content = response.choices[0].message.content if response.choices else None
                if not content:
                    raise ProviderUnavailable(f"{self.name}: empty response", provider=self.name)
                return content
            except openai.RateLimitError as e:
                logger.warning("%s: レート制限 - %s", self.name, e)
                raise ProviderRateLimited(f"{self.name}: rate limited", provider=self.name) from e
            except (openai.InternalServerError, openai.APIConnectionError) as e:
                logger.warning("%s: 一時的なエラー (attempt %d/%d): %s", self.name, attempt, MAX_ATTEMPTS, e)
                if attempt < MAX_ATTEMPTS:
                    time.sleep(RETRY_DELAY)
                    continue
                raise ProviderUnavailable(f"{self.name}: {e}", provider=self.name) from e
            except openai.APIError as e:
                logger.error("%s API エラー: %s", self.name, e)
                raise ProviderUnavailable(f"{self.name}: {e}", provider=self.name) from e

        raise ProviderUnavailable(f"{self.name}: max attempts reached", provider=self.name)

    def _build_messages(self, messages: list, system_prompt: str = None) -> list:
        """統一メッセージ形式を OpenAI API 形式に変換する（system_prompt は先頭に追加）"""
        api_messages = []
        if system_prompt:
            api_messages.append({"role": "system", "content": system_prompt})
        for msg in messages:
            api_messages.append({"role": msg["role"], "content": msg["content"]})
        return api_messages
