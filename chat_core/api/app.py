"""HTTP 网关入口（FastAPI）。

POST /api/chat
    请求体: {"messages": [{"role", "content"}], "provider": "...", "model": "..."}
    流式 Provider: 200 + text/plain 原始字节流
    整体 Provider: 200 + {"response": "..."}
    失败: {"error": "..."}，未知 provider 为 400，上游或其他错误为 500
"""

from typing import Any, Iterator, List, Literal, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from chat_core.domain.exceptions import BusinessError
from chat_core.domain.models import Message, ProviderRequest, StreamEnvelope
from chat_core.gateway.dispatcher import GatewayDispatcher
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.registry import provider_table


class MessageBody(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequestBody(BaseModel):
    messages: List[MessageBody]
    # 缺失或非字符串的 provider 交给 dispatcher 判定为 Invalid provider
    provider: Optional[Any] = None
    model: Optional[str] = None

    def to_request(self) -> ProviderRequest:
        return ProviderRequest(
            messages=tuple(Message(role=m.role, content=m.content) for m in self.messages),
            provider=self.provider,
            model=self.model,
        )


def iter_and_close(envelope: StreamEnvelope) -> Iterator[bytes]:
    """逐片转发；正常结束、出错或客户端断开时都会关闭上游连接。"""
    try:
        yield from envelope
    finally:
        envelope.close()


def create_app(dispatcher: Optional[GatewayDispatcher] = None) -> FastAPI:
    """创建网关应用；测试时可注入带假适配器的 dispatcher。"""

    gateway = dispatcher or GatewayDispatcher()
    router = APIRouter()

    @router.post("/chat")
    def chat(body: ChatRequestBody):
        request = body.to_request()
        try:
            envelope = gateway.dispatch(request)
        except BusinessError as e:
            return JSONResponse({"error": e.message}, status_code=e.http_status)
        except Exception as e:
            logger.error(f"General error: {e}", extra={"extra": {"provider": body.provider}})
            return JSONResponse({"error": f"Server error: {e}"}, status_code=500)

        if isinstance(envelope, StreamEnvelope):
            return StreamingResponse(iter_and_close(envelope), media_type="text/plain; charset=utf-8")
        return JSONResponse({"response": envelope.response})

    @router.get("/providers")
    def providers():
        return provider_table()

    @router.get("/health")
    def health():
        return {"status": "ok"}

    app = FastAPI(title="Chat Gateway", version="0.1.0")
    app.include_router(router, prefix="/api")

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError):
        logger.error("Invalid request body", extra={"extra": {"path": request.url.path}})
        return JSONResponse({"error": f"Server error: {exc.errors()}"}, status_code=500)

    return app
