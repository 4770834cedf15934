"""Anthropic Provider 适配器（单次整体返回）。

本模块负责：

1. 把全部历史消息按分隔符拼成一个 prompt（分隔符按适配器配置，默认单个空格）。
2. 发出一次阻塞的 {base_url}/messages 调用。
3. 把回复中所有 text 内容块拼接为完整文本，包装成 WholeEnvelope。

调用方在拿到结果之前看不到任何部分输出。
"""

import logging
from typing import Any, Dict, Optional, Sequence

import httpx

from chat_core.config.settings import settings
from chat_core.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from chat_core.domain.models import Message, ProviderRequest, WholeEnvelope
from chat_core.infrastructure.logging.logger import log_event
from chat_core.providers.registry import ANTHROPIC_CONFIG


class AnthropicClient:
    """Anthropic 单次调用适配器。

    - separator: 拼接历史消息时使用的分隔符，不同部署可以改为 "\\n\\n" 等。
    """

    name = "anthropic"

    def __init__(self, cfg=settings, separator: Optional[str] = None):
        self._settings = cfg
        if separator is None:
            separator = getattr(cfg, "anthropic_prompt_separator", " ")
        self.separator = separator

    def invoke(self, req: ProviderRequest) -> WholeEnvelope:
        if not getattr(self._settings, "anthropic_api_key", None):
            raise ValidationError(code="MISSING_API_KEY", message="ANTHROPIC_API_KEY not set")
        model = req.model or ANTHROPIC_CONFIG.default_model
        payload = self._build_payload(req, model)
        base = getattr(self._settings, "anthropic_base_url", None) or "https://api.anthropic.com/v1"
        try:
            with httpx.Client(timeout=getattr(self._settings, "http_timeout", None), trust_env=False) as client:
                resp = client.post(
                    f"{base}/messages",
                    json=payload,
                    headers={
                        "x-api-key": self._settings.anthropic_api_key,
                        "anthropic-version": getattr(self._settings, "anthropic_version", "2023-06-01"),
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), provider=self.name)
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="Anthropic rate limit", provider=self.name)
        if resp.status_code >= 400:
            raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code, provider=self.name)
        text = self._parse_response(resp.json())
        log_event(
            logging.INFO,
            "Upstream response received",
            {"provider": self.name, "model": model},
            message_count=len(req.messages),
            response_chars=len(text),
        )
        return WholeEnvelope(response=text)

    def build_prompt(self, messages: Sequence[Message]) -> str:
        """按顺序拼接所有消息内容，角色信息不进入 prompt。"""

        return self.separator.join(m.content for m in messages)

    def _build_payload(self, req: ProviderRequest, model: str) -> Dict[str, Any]:
        return {
            "model": model,
            "max_tokens": getattr(self._settings, "anthropic_max_tokens", 1024),
            "messages": [{"role": "user", "content": self.build_prompt(req.messages)}],
        }

    @staticmethod
    def _parse_response(data: Dict[str, Any]) -> str:
        blocks = data.get("content")
        if not isinstance(blocks, list):
            raise ApiError(code="MALFORMED_RESPONSE", message="Anthropic response has no content", http_status=502)
        return "".join(
            block.get("text") or ""
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        )
