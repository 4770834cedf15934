"""统一的对话与响应数据模型。

本模块定义了网关、Provider 适配器与客户端之间共享的标准数据结构：

- Message: 一条对话消息（user/assistant），追加后不可变。
- ProviderRequest: 客户端发给网关的完整请求（全部历史 + provider + model）。
- StreamEnvelope / WholeEnvelope: 网关返回的两种归一化响应形态。

所有 Provider 适配器都只依赖这些模型，
并负责在各自厂商的 JSON 与这些模型之间做转换。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Literal, Optional, Sequence, Union


# 消息角色，仅 user / assistant 两种；不强制交替
Role = Literal["user", "assistant"]
ROLES = ("user", "assistant")


class ProviderName(str, Enum):
    """受支持的上游 Provider（封闭枚举）。"""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


@dataclass(frozen=True)
class Message:
    """一条对话消息。

    - role: "user" 或 "assistant"。
    - content: 纯文本内容。
    """

    role: Role
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        role = data.get("role")
        if role not in ROLES:
            raise ValueError(f"Unknown message role: {role!r}")
        content = data.get("content")
        if not isinstance(content, str):
            raise ValueError("Message content must be a string")
        return cls(role=role, content=content)


@dataclass(frozen=True)
class ProviderRequest:
    """一次完整的网关请求。

    messages 携带会话的全部历史（而非仅最新一轮），网关在多次调用之间不保留状态。
    provider 保留原始字符串，由 Dispatcher 负责解析为 ProviderName。
    """

    messages: Sequence[Message]
    provider: str
    model: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "messages": [m.to_dict() for m in self.messages],
            "provider": self.provider,
        }
        if self.model:
            payload["model"] = self.model
        return payload


@dataclass
class StreamEnvelope:
    """流式响应：UTF-8 文本片段的字节流，迭代器耗尽即代表关闭。

    - chunks: 逐片产出的 bytes。
    - on_close: 可选回调，用于释放上游连接。
    """

    chunks: Iterator[bytes]
    on_close: Optional[Callable[[], None]] = field(default=None, repr=False)

    def __iter__(self) -> Iterator[bytes]:
        return iter(self.chunks)

    def close(self) -> None:
        close_gen = getattr(self.chunks, "close", None)
        if callable(close_gen):
            close_gen()
        if self.on_close is not None:
            callback, self.on_close = self.on_close, None
            callback()


@dataclass(frozen=True)
class WholeEnvelope:
    """一次性返回的完整文本，对应 JSON {"response": ...}。"""

    response: str


ResponseEnvelope = Union[StreamEnvelope, WholeEnvelope]


def messages_to_payload(messages: Sequence[Message]) -> List[Dict[str, Any]]:
    return [m.to_dict() for m in messages]
