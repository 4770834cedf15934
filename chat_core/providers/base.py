"""Provider 抽象接口。

网关不直接依赖具体厂商的 HTTP 细节，而是依赖此协议：

- 每个厂商实现一个 ProviderAdapter（如 OpenAIClient）。
- 负责：将 ProviderRequest 转成具体 API 请求，并把回复归一化为
  StreamEnvelope 或 WholeEnvelope。

返回哪种信封由 Provider 决定，与请求内容无关。
"""

from typing import Protocol

from chat_core.domain.models import ProviderRequest, ResponseEnvelope


class ProviderAdapter(Protocol):
    """LLM Provider 适配器协议。

    实现者需要提供：
    - name: Provider 名称，用于日志。
    - invoke(req): 调用上游并返回归一化的响应信封。
      上游连接失败、鉴权失败等错误必须在 invoke 内同步抛出；
      流式传输开始后的错误只记录日志并关闭流。
    """

    name: str

    def invoke(self, req: ProviderRequest) -> ResponseEnvelope:
        ...
