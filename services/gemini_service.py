"""
Gemini Service - Google Gemini API ラッパー
"""
import logging
import time

import google.generativeai as genai

from core.exceptions import AnalysisCancelled, ProviderRateLimited, ProviderUnavailable

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2  # 一時的なエラー（5xx）のみ 1 回リトライ
RETRY_DELAY = 1  # seconds

_RATE_LIMIT_MARKERS = ("429", "resource_exhausted", "resource exhausted")
_TRANSIENT_MARKERS = ("500", "502", "503", "504", "unavailable", "deadline", "timed out")


class GeminiService:
    """Google Gemini API とのやり取りを管理するサービス"""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        timeout: float = 10,
        name: str = "gemini",
    ):
        self.api_key = api_key
        self.model_name = model
        self.timeout = timeout
        self.name = name
        self._configured = False

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_model(self, system_prompt: str = None):
        """system_prompt が指定された場合、system_instruction 付きモデルを返す。"""
        if not self._configured:
            genai.configure(api_key=self.api_key)
            self._configured = True
        if system_prompt:
            return genai.GenerativeModel(self.model_name, system_instruction=system_prompt)
        return genai.GenerativeModel(self.model_name)

    def send_message(self, messages: list, system_prompt: str = None, cancel_event=None) -> str:
        """
        Gemini generateContent API を呼び出してレスポンスを返す。

        Raises:
            ProviderRateLimited / ProviderUnavailable / AnalysisCancelled
        """
        if not self.api_key:
            raise ProviderUnavailable(f"{self.name}: API key is not configured", provider=self.name)

        model = self._get_model(system_prompt)
        contents = self._build_contents(messages)

        for attempt in range(1, MAX_ATTEMPTS + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise AnalysisCancelled(f"{self.name}: request cancelled")
            try:
                response = model.generate_content(
                    contents,
                    generation_config=genai.types.GenerationConfig(max_output_tokens=1024),
                    request_options={"timeout": self.timeout},
                )
                text = response.text
            except Exception as e:
                # SDK の例外型は google.api_core 由来でバージョン差があるため文字列で判定する
                error_str = str(e).lower()
                if any(m in error_str for m in _RATE_LIMIT_MARKERS):
                    logger.warning("Gemini: レート制限 - %s", e)
                    raise ProviderRateLimited(f"{self.name}: rate limited", provider=self.name) from e
                if any(m in error_str for m in _TRANSIENT_MARKERS):
                    logger.warning("Gemini: 一時的なエラー (attempt %d/%d): %s", attempt, MAX_ATTEMPTS, e)
                    if attempt < MAX_ATTEMPTS:
                        time.sleep(RETRY_DELAY)
                        continue
                logger.error("Gemini API エラー: %s", e)
                raise ProviderUnavailable(f"{self.name}: {e}", provider=self.name) from e
            if not text:
                raise ProviderUnavailable(f"{self.name}: empty response", provider=self.name)
            return text

        raise ProviderUnavailable(f"{self.name}: max attempts reached", provider=self.name)

    def _build_contents(self, messages: list) -> list:
        """Gemini は role が "user" と "model" なので assistant -> model に変換する"""
        contents = []
        for msg in messages:
            role = "model" if msg["role"] == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": msg["content"]}]})
        return contents
