"""Google Gemini Provider 适配器（文本分块流）。

- URL: {base_url}/models/{model}:streamGenerateContent?alt=sse
- 认证: x-goog-api-key

请求前把消息改写为 Gemini 的轮次格式：assistant 角色映射为 "model"，
内容包成 text part。流中每个元素经 chunk_text 取出文本后写入输出流。
"""

import logging
from typing import Any, Dict, List, Sequence

from chat_core.config.settings import settings
from chat_core.domain.exceptions import ValidationError
from chat_core.domain.models import Message, ProviderRequest, StreamEnvelope
from chat_core.infrastructure.logging.logger import log_event
from chat_core.providers.registry import GOOGLE_CONFIG
from chat_core.providers.sse import open_stream, stream_fragments


class GoogleClient:
    """Google Gemini 流式适配器。"""

    name = "google"

    def __init__(self, cfg=settings):
        self._settings = cfg

    def invoke(self, req: ProviderRequest) -> StreamEnvelope:
        if not getattr(self._settings, "google_api_key", None):
            raise ValidationError(code="MISSING_API_KEY", message="GOOGLE_API_KEY not set")
        model = req.model or GOOGLE_CONFIG.default_model
        base = getattr(self._settings, "google_base_url", None) or "https://generativelanguage.googleapis.com/v1beta"
        log_ctx = {"provider": self.name, "model": model}
        stack, resp = open_stream(
            f"{base}/models/{model}:streamGenerateContent?alt=sse",
            {"contents": self.to_contents(req.messages)},
            headers={
                "x-goog-api-key": self._settings.google_api_key,
                "Content-Type": "application/json",
            },
            timeout=getattr(self._settings, "http_timeout", None),
            provider=self.name,
        )
        log_event(logging.INFO, "Upstream stream opened", log_ctx, message_count=len(req.messages))
        return stream_fragments(stack, resp, self.chunk_text, self.name, log_ctx)

    @staticmethod
    def to_contents(messages: Sequence[Message]) -> List[Dict[str, Any]]:
        return [
            {
                "role": "model" if m.role == "assistant" else "user",
                "parts": [{"text": m.content}],
            }
            for m in messages
        ]

    @staticmethod
    def chunk_text(chunk: Dict[str, Any]) -> str:
        """取出流中单个元素的文本（首个候选的所有 text part 拼接）。"""

        candidates = chunk.get("candidates") or []
        if not candidates:
            return ""
        content = candidates[0].get("content") or {}
        parts = content.get("parts") or []
        return "".join(p.get("text") or "" for p in parts if isinstance(p, dict))
