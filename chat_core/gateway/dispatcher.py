"""网关 Dispatcher。

只按 request.provider 路由到三个适配器之一，不检查请求内容，
不做重试，也不设置自己的超时。
"""

import logging
import time
from typing import Optional
from uuid import uuid4

from chat_core.domain.exceptions import UpstreamError
from chat_core.domain.models import ProviderName, ProviderRequest, ResponseEnvelope
from chat_core.infrastructure.logging.logger import log_event
from chat_core.providers import create_provider
from chat_core.providers.base import ProviderAdapter
from chat_core.providers.registry import PROVIDER_REGISTRY, parse_provider


class GatewayDispatcher:
    def __init__(
        self,
        openai: Optional[ProviderAdapter] = None,
        anthropic: Optional[ProviderAdapter] = None,
        google: Optional[ProviderAdapter] = None,
    ):
        self._openai = openai or create_provider(ProviderName.OPENAI.value)
        self._anthropic = anthropic or create_provider(ProviderName.ANTHROPIC.value)
        self._google = google or create_provider(ProviderName.GOOGLE.value)

    def dispatch(self, request: ProviderRequest) -> ResponseEnvelope:
        """把请求交给对应适配器。

        Raises:
            InvalidProviderError: provider 不在已知列表内（在任何网络调用之前）。
            UpstreamError: 适配器调用抛出异常，message 带 Provider 前缀。
        """
        log_ctx = {"trace_id": f"tr-{uuid4().hex}", "provider": request.provider}
        provider = parse_provider(request.provider)
        adapter = self._select(provider)

        log_event(
            logging.INFO,
            "Dispatching request",
            log_ctx,
            model=request.model,
            message_count=len(request.messages),
        )
        start_time = time.time()
        try:
            envelope = adapter.invoke(request)
        except Exception as e:
            label = PROVIDER_REGISTRY[provider].error_label
            detail = getattr(e, "message", None) or str(e)
            log_event(logging.ERROR, "Adapter call failed", log_ctx, error=detail, error_type=type(e).__name__)
            raise UpstreamError(provider=provider.value, message=f"{label} error: {detail}") from e

        log_event(
            logging.INFO,
            "Adapter returned envelope",
            log_ctx,
            envelope=type(envelope).__name__,
            elapsed_seconds=round(time.time() - start_time, 2),
        )
        return envelope

    def _select(self, provider: ProviderName) -> ProviderAdapter:
        if provider is ProviderName.OPENAI:
            return self._openai
        if provider is ProviderName.ANTHROPIC:
            return self._anthropic
        if provider is ProviderName.GOOGLE:
            return self._google
        raise AssertionError(f"Unhandled provider: {provider!r}")
