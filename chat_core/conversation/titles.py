"""会话标题生成。

对会话的第一条用户消息发起一次旁路请求（固定 provider/model，
与用户当前选择无关），请求一个不超过 4 个词的标题。
任何失败都回退到默认标题，不影响正常的消息投递。
"""

import logging
from typing import Optional

from chat_core.config.settings import settings
from chat_core.domain.exceptions import TitleGenerationError
from chat_core.domain.models import Message, ProviderRequest, StreamEnvelope, WholeEnvelope
from chat_core.domain.session import DEFAULT_TITLE
from chat_core.gateway.client import GatewayClient
from chat_core.infrastructure.logging.logger import log_event


MAX_TITLE_WORDS = 4
TITLE_PROMPT = (
    "Generate a short title of at most 4 words for a conversation that starts with "
    "the following message. Reply with the title only.\n\n{message}"
)


class TitleGenerator:
    def __init__(
        self,
        gateway: GatewayClient,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ):
        self._gateway = gateway
        self.provider = provider or settings.title_provider
        self.model = model or settings.title_model

    def generate(self, first_message: str) -> str:
        """返回清理后的标题，失败时返回 "New Chat"。"""
        try:
            return self._request_title(first_message)
        except Exception as e:
            err = e if isinstance(e, TitleGenerationError) else TitleGenerationError(str(e))
            log_event(
                logging.WARNING,
                "Title generation failed",
                {"provider": self.provider, "model": self.model},
                code=err.code,
                error=err.message,
            )
            return DEFAULT_TITLE

    def _request_title(self, first_message: str) -> str:
        request = ProviderRequest(
            messages=(Message(role="user", content=TITLE_PROMPT.format(message=first_message)),),
            provider=self.provider,
            model=self.model,
        )
        envelope = self._gateway.send(request)
        if isinstance(envelope, WholeEnvelope):
            text = envelope.response
        elif isinstance(envelope, StreamEnvelope):
            try:
                text = b"".join(envelope).decode("utf-8", errors="replace")
            finally:
                envelope.close()
        else:
            raise TitleGenerationError(f"Unexpected envelope: {type(envelope).__name__}")

        title = clean_title(text)
        if not title:
            raise TitleGenerationError("Empty title")
        return title


def clean_title(text: Optional[str]) -> str:
    """去掉引号与多余空白，最多保留 4 个词。"""

    words = (text or "").strip().strip("\"'").split()
    return " ".join(words[:MAX_TITLE_WORDS]).strip("\"'.")
