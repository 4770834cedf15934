"""客户端侧的网关访问。

ConversationController 只依赖 GatewayClient 协议：

- LocalGatewayClient: 进程内直接调用 GatewayDispatcher。
- HttpGatewayClient: 通过 HTTP 调用 /api/chat，按 Content-Type 区分两种响应：
  application/json 为 WholeEnvelope，其他为原始字节流 StreamEnvelope。
"""

from contextlib import ExitStack
from typing import Iterator, Optional, Protocol

import httpx

from chat_core.config.settings import settings
from chat_core.domain.exceptions import GatewayError, NetworkError
from chat_core.domain.models import ProviderRequest, ResponseEnvelope, StreamEnvelope, WholeEnvelope
from chat_core.gateway.dispatcher import GatewayDispatcher


class GatewayClient(Protocol):
    def send(self, request: ProviderRequest) -> ResponseEnvelope:
        ...


class LocalGatewayClient:
    """进程内网关客户端，错误以 BusinessError 形式原样抛出。"""

    def __init__(self, dispatcher: Optional[GatewayDispatcher] = None):
        self._dispatcher = dispatcher or GatewayDispatcher()

    def send(self, request: ProviderRequest) -> ResponseEnvelope:
        return self._dispatcher.dispatch(request)


class HttpGatewayClient:
    """通过 HTTP 访问网关。"""

    def __init__(self, url: Optional[str] = None, cfg=settings):
        self._url = url or cfg.gateway_url
        self._timeout = getattr(cfg, "http_timeout", None)

    def send(self, request: ProviderRequest) -> ResponseEnvelope:
        stack = ExitStack()
        try:
            client = stack.enter_context(httpx.Client(timeout=self._timeout, trust_env=False))
            resp = stack.enter_context(client.stream("POST", self._url, json=request.to_payload()))
        except httpx.RequestError as e:
            stack.close()
            raise NetworkError(code="NETWORK_ERROR", message=str(e))

        content_type = resp.headers.get("content-type", "")
        if resp.status_code < 400 and not content_type.startswith("application/json"):
            return StreamEnvelope(chunks=self._iter_bytes(stack, resp), on_close=stack.close)

        with stack:
            resp.read()
            if resp.status_code >= 400:
                raise GatewayError(
                    code="GATEWAY_ERROR",
                    message=self._error_message(resp),
                    http_status=resp.status_code,
                )
            data = resp.json()
        return WholeEnvelope(response=data["response"])

    @staticmethod
    def _iter_bytes(stack: ExitStack, resp: httpx.Response) -> Iterator[bytes]:
        try:
            for chunk in resp.iter_bytes():
                if chunk:
                    yield chunk
        finally:
            stack.close()

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            return resp.text or resp.reason_phrase
        if isinstance(data, dict) and data.get("error"):
            return str(data["error"])
        return resp.text
