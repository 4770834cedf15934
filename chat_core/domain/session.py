from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol, Tuple

from .models import Message


DEFAULT_TITLE = "New Chat"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Session:
    """一个独立的对话线程。

    会话是不可变值，修改都通过 dataclasses.replace 生成新对象（copy-on-write），
    因此对一个会话的修改不会影响其他会话持有的消息序列。
    """

    id: str
    title: str
    provider: str
    model: str
    messages: Tuple[Message, ...] = ()
    created_at: datetime = field(default_factory=_utcnow)

    def with_message(self, message: Message) -> "Session":
        return replace(self, messages=self.messages + (message,))

    def with_last_message(self, message: Message) -> "Session":
        if not self.messages:
            return self.with_message(message)
        return replace(self, messages=self.messages[:-1] + (message,))

    def with_title(self, title: str) -> "Session":
        return replace(self, title=title)

    def with_model(self, provider: str, model: str) -> "Session":
        return replace(self, provider=provider, model=model)

    def user_message_count(self) -> int:
        return sum(1 for m in self.messages if m.role == "user")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
            "provider": self.provider,
            "model": self.model,
            "createdAt": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        return cls(
            id=str(data["id"]),
            title=data.get("title") or DEFAULT_TITLE,
            provider=data["provider"],
            model=data["model"],
            messages=tuple(Message.from_dict(m) for m in data.get("messages") or []),
            created_at=parse_timestamp(data["createdAt"]),
        )


class KeyValueStore(Protocol):
    """持久化层的窄接口：按 key 读写一段字符串。"""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...
