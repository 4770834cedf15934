"""网关层：按 provider 路由请求并返回归一化响应信封。"""

from chat_core.gateway.client import GatewayClient, HttpGatewayClient, LocalGatewayClient
from chat_core.gateway.dispatcher import GatewayDispatcher

__all__ = ["GatewayClient", "GatewayDispatcher", "HttpGatewayClient", "LocalGatewayClient"]
