"""
Claude Service - Anthropic Claude API ラッパー
"""
import logging
import time

import anthropic

from core.exceptions import AnalysisCancelled, ProviderRateLimited, ProviderUnavailable

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2  # 一時的なエラー（5xx / 接続）のみ 1 回リトライ
RETRY_DELAY = 1  # seconds


class ClaudeService:
    """Anthropic Claude API とのやり取りを管理するサービス"""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        timeout: float = 10,
        name: str = "anthropic",
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.name = name
        self._client = None

    @property
    def client(self):
        if self._client is None and self.api_key:
            self._client = anthropic.Anthropic(
                api_key=self.api_key,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def send_message(self, messages: list, system_prompt: str = None, cancel_event=None) -> str:
        """
        Claude Messages API を呼び出してレスポンスを返す。

        Args:
            messages: [{"role": "user"/"assistant", "content": "..."}]
            system_prompt: システムプロンプト（任意）
            cancel_event: threading.Event（任意）
        Returns:
            レスポンステキスト

        Raises:
            ProviderRateLimited / ProviderUnavailable / AnalysisCancelled
        """
        if not self.client:
            raise ProviderUnavailable(f"{self.name}: API key is not configured", provider=self.name)

        kwargs = {
            "model": self.model,
            "max_tokens": 1024,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        for attempt in range(1, MAX_ATTEMPTS + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise AnalysisCancelled(f"{self.name}: request cancelled")
            try:
                response = self.client.messages.create(**kwargs)
                if not response.content:
                    raise ProviderUnavailable(f"{self.name}: empty response", provider=self.name)
                return response.content[0].text
            except anthropic.RateLimitError as e:
                logger.warning("Claude: レート制限 - %s", e)
                raise ProviderRateLimited(f"{self.name}: rate limited", provider=self.name) from e
            except (anthropic.InternalServerError, anthropic.APIConnectionError) as e:
                logger.warning("Claude: 一時的なエラー (attempt %d/%d): %s", attempt, MAX_ATTEMPTS, e)
                if attempt < MAX_ATTEMPTS:
                    time.sleep(RETRY_DELAY)
                    continue
                raise ProviderUnavailable(f"{self.name}: {e}", provider=self.name) from e
            except anthropic.APIError as e:
                logger.error("Claude API エラー: %s", e)
                raise ProviderUnavailable(f"{self.name}: {e}", provider=self.name) from e

        raise ProviderUnavailable(f"{self.name}: max attempts reached", provider=self.name)
