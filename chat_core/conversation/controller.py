"""对话控制器。

把用户输入变成网关请求，消费响应信封（流式或整体），
并把结果写回当前会话。每次发送的状态流转：

    IDLE -> SENDING -> (STREAMING | COMPLETED) -> IDLE
                  \\-> ERRORED -> IDLE

同一时刻只允许一轮请求在途（busy 标记），不排队；出错时追加固定的
兜底回复，不再向上抛出。
"""

import codecs
import logging
import time
from enum import Enum
from typing import Callable, Optional
from uuid import uuid4

from chat_core.conversation.titles import TitleGenerator
from chat_core.domain.exceptions import BusinessError
from chat_core.domain.models import Message, ProviderRequest, ResponseEnvelope, StreamEnvelope, WholeEnvelope
from chat_core.domain.session import Session
from chat_core.gateway.client import GatewayClient
from chat_core.infrastructure.logging.logger import log_event
from chat_core.infrastructure.storage.session_store import SessionStore
from chat_core.providers.registry import first_model


FALLBACK_MESSAGE = "Sorry, there was an error processing your request. Please try again."


class TurnState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ERRORED = "errored"


class ConversationController:
    def __init__(
        self,
        store: SessionStore,
        gateway: GatewayClient,
        title_generator: Optional[TitleGenerator] = None,
        on_change: Optional[Callable[[Session], None]] = None,
    ):
        self._store = store
        self._gateway = gateway
        self._titles = title_generator
        self._on_change = on_change
        self._busy = False
        self._state = TurnState.IDLE

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def state(self) -> TurnState:
        return self._state

    def active_session(self) -> Session:
        return self._store.current()

    # ---- 发送 ----

    def send_message(self, text: str) -> Optional[Message]:
        """发送一条用户消息，返回最终的助手消息。

        空白输入或上一轮尚未结束时直接拒绝，返回 None 且不追加任何消息。
        """
        content = (text or "").strip()
        if not content:
            return None
        if self._busy:
            log_event(logging.INFO, "Rejected send while busy", {"session_id": self._store.current_id})
            return None

        self._busy = True
        # 本轮所有修改都按开始时的会话 id 进行，中途切换会话不会串写
        session_id = self._store.current().id
        log_ctx = {"trace_id": f"tr-{uuid4().hex}", "session_id": session_id}
        start_time = time.time()
        try:
            self._set_state(TurnState.SENDING, log_ctx)
            is_first = self._store.get(session_id).user_message_count() == 0
            session = self._append(session_id, Message(role="user", content=content))
            request = ProviderRequest(
                messages=session.messages,
                provider=session.provider,
                model=session.model,
            )
            try:
                reply = self._run_turn(session_id, request, log_ctx)
            except Exception as e:
                self._set_state(TurnState.ERRORED, log_ctx)
                log_event(logging.ERROR, "Turn failed", log_ctx, error=str(e), error_type=type(e).__name__)
                reply = Message(role="assistant", content=FALLBACK_MESSAGE)
                self._append(session_id, reply)

            if is_first and self._titles is not None:
                self._derive_title(session_id, content)

            log_event(
                logging.INFO,
                "Completed turn",
                log_ctx,
                state=self._state.value,
                elapsed_seconds=round(time.time() - start_time, 2),
            )
            return reply
        finally:
            self._busy = False
            self._state = TurnState.IDLE

    def _run_turn(self, session_id: str, request: ProviderRequest, log_ctx: dict) -> Message:
        envelope: ResponseEnvelope = self._gateway.send(request)
        if isinstance(envelope, WholeEnvelope):
            reply = Message(role="assistant", content=envelope.response)
            self._append(session_id, reply)
            self._set_state(TurnState.COMPLETED, log_ctx)
            return reply
        if isinstance(envelope, StreamEnvelope):
            self._set_state(TurnState.STREAMING, log_ctx)
            reply = self._consume_stream(session_id, envelope, log_ctx)
            self._set_state(TurnState.COMPLETED, log_ctx)
            return reply
        raise TypeError(f"Unexpected envelope: {type(envelope).__name__}")

    def _consume_stream(self, session_id: str, envelope: StreamEnvelope, log_ctx: dict) -> Message:
        """先追加空占位消息，再随每个片段原地覆盖其内容。"""
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        accumulated = ""
        fragments = 0
        self._append(session_id, Message(role="assistant", content=""))
        try:
            for fragment in envelope:
                fragments += 1
                accumulated += decoder.decode(fragment)
                self._replace_last(session_id, Message(role="assistant", content=accumulated))
            tail = decoder.decode(b"", final=True)
            if tail:
                accumulated += tail
                self._replace_last(session_id, Message(role="assistant", content=accumulated))
        finally:
            envelope.close()
        log_event(logging.INFO, "Stream consumed", log_ctx, fragments=fragments, chars=len(accumulated))
        return Message(role="assistant", content=accumulated)

    def _derive_title(self, session_id: str, first_message: str) -> None:
        title = self._titles.generate(first_message)
        try:
            self._notify(self._store.rename_title(session_id, title))
        except BusinessError as e:
            log_event(logging.WARNING, "Failed to store title", {"session_id": session_id}, error=e.message)

    # ---- 会话操作 ----

    def new_chat(self) -> Optional[Session]:
        if self._busy:
            return None
        current = self._store.current()
        session = self._store.create(provider=current.provider, model=current.model)
        self._notify(session)
        return session

    def select_session(self, session_id: str) -> Session:
        if not self._busy:
            self._store.select(session_id)
        return self._store.current()

    def rename_session(self, session_id: str, title: str) -> Optional[Session]:
        """手动改标题；空白标题忽略。"""
        title = (title or "").strip()
        if not title:
            return None
        session = self._store.rename_title(session_id, title)
        self._notify(session)
        return session

    def change_provider(self, provider: str) -> Optional[Session]:
        """切换 Provider，同时把模型重置为该 Provider 的第一个模型。"""
        if self._busy:
            return None
        return self._set_model(provider, first_model(provider))

    def change_model(self, model: str) -> Optional[Session]:
        if self._busy:
            return None
        return self._set_model(self._store.current().provider, model)

    def _set_model(self, provider: str, model: str) -> Session:
        session = self._store.set_model(self._store.current().id, provider, model)
        self._notify(session)
        return session

    # ---- 辅助方法 ----

    def _append(self, session_id: str, message: Message) -> Session:
        session = self._store.append_message(session_id, message)
        self._notify(session)
        return session

    def _replace_last(self, session_id: str, message: Message) -> Session:
        session = self._store.replace_last_message(session_id, message)
        self._notify(session)
        return session

    def _notify(self, session: Session) -> None:
        if self._on_change is not None:
            self._on_change(session)

    def _set_state(self, state: TurnState, log_ctx: dict) -> None:
        self._state = state
        log_event(logging.DEBUG, "Turn state changed", log_ctx, state=state.value)
