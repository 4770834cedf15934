"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在网关层或客户端统一捕获与提示。
"""

from typing import Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "UPSTREAM_ERROR"）。
        message: 可读错误信息。
        http_status: 映射到 HTTP 时使用的状态码，默认 400。
        extra: 其他补充字段（例如 provider）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(BusinessError):
    """Provider 限流错误。网关不做重试。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class InvalidProviderError(BusinessError):
    """请求中的 provider 不在已知列表内，可由调用方修正。"""

    def __init__(self, provider: Optional[str] = None):
        super().__init__(
            code="INVALID_PROVIDER",
            message="Invalid provider",
            http_status=400,
            provider=provider,
        )
        self.provider = provider


class UpstreamError(BusinessError):
    """适配器调用失败，message 带 Provider 前缀。"""

    def __init__(self, provider: str, message: str):
        super().__init__(code="UPSTREAM_ERROR", message=message, http_status=500, provider=provider)
        self.provider = provider


class StreamInterruptedError(BusinessError):
    """上游流在传输中途异常结束。

    只用于日志记录：已经写出的片段保留，字节流直接关闭，不向调用方抛出。
    """

    def __init__(self, provider: str, message: str):
        super().__init__(code="STREAM_INTERRUPTED", message=message, http_status=500, provider=provider)
        self.provider = provider


class TitleGenerationError(BusinessError):
    """标题生成失败，始终被吞掉并替换为默认标题。"""

    def __init__(self, message: str):
        super().__init__(code="TITLE_GENERATION_ERROR", message=message, http_status=500)


class SessionNotFoundError(BusinessError):
    """按 id 修改会话时找不到对应会话。"""

    def __init__(self, session_id: str):
        super().__init__(code="SESSION_NOT_FOUND", message=session_id, http_status=404)


class GatewayError(BusinessError):
    """客户端收到网关的非 2xx 响应。"""
