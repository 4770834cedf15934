"""OpenAI Provider 适配器（流式增量）。

- URL: {base_url}/chat/completions，stream=true
- 认证: Authorization: Bearer <api_key>

每个 SSE chunk 取 choices[0].delta.content 作为片段（缺失时为空串），
直接写入输出流，不在内存中缓冲完整回答。
"""

import logging
from typing import Any, Dict

from chat_core.config.settings import settings
from chat_core.domain.exceptions import ValidationError
from chat_core.domain.models import ProviderRequest, StreamEnvelope, messages_to_payload
from chat_core.infrastructure.logging.logger import log_event
from chat_core.providers.registry import OPENAI_CONFIG
from chat_core.providers.sse import open_stream, stream_fragments


class OpenAIClient:
    """OpenAI 流式适配器。"""

    name = "openai"

    def __init__(self, cfg=settings):
        self._settings = cfg

    def invoke(self, req: ProviderRequest) -> StreamEnvelope:
        if not getattr(self._settings, "openai_api_key", None):
            raise ValidationError(code="MISSING_API_KEY", message="OPENAI_API_KEY not set")
        model = req.model or OPENAI_CONFIG.default_model
        payload = self._build_payload(req, model)
        base = getattr(self._settings, "openai_base_url", None) or "https://api.openai.com/v1"
        log_ctx = {"provider": self.name, "model": model}
        stack, resp = open_stream(
            f"{base}/chat/completions",
            payload,
            headers={
                "Authorization": f"Bearer {self._settings.openai_api_key}",
                "Content-Type": "application/json",
            },
            timeout=getattr(self._settings, "http_timeout", None),
            provider=self.name,
        )
        log_event(logging.INFO, "Upstream stream opened", log_ctx, message_count=len(req.messages))
        return stream_fragments(stack, resp, self.extract_delta, self.name, log_ctx)

    def _build_payload(self, req: ProviderRequest, model: str) -> Dict[str, Any]:
        return {
            "model": model,
            "messages": messages_to_payload(req.messages),
            "stream": True,
        }

    @staticmethod
    def extract_delta(chunk: Dict[str, Any]) -> str:
        """取出单个增量 chunk 的文本，缺失时返回空串。"""

        choices = chunk.get("choices") or []
        if not choices:
            return ""
        delta = choices[0].get("delta") or {}
        return delta.get("content") or ""
