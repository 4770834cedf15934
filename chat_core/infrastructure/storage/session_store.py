"""会话集合的存储。

内部用 id -> Session 的字典加一个按最近创建排序的 id 列表，
每次修改都按 id 替换对应会话（copy-on-write），随后把整个集合
序列化写回 KeyValueStore 的固定 key。
"""

import json
import logging
from typing import Dict, List, Optional
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.exceptions import BusinessError, SessionNotFoundError
from chat_core.domain.models import Message
from chat_core.domain.session import DEFAULT_TITLE, KeyValueStore, Session
from chat_core.infrastructure.logging.logger import log_event
from chat_core.providers.registry import first_model, validate_model


SESSIONS_KEY = "chatSessions"


class SessionStore:
    def __init__(self, kv: KeyValueStore, cfg=settings):
        self._kv = kv
        self._settings = cfg
        self._sessions: Dict[str, Session] = {}
        self._order: List[str] = []
        self._current_id: Optional[str] = None
        self._load()

    # ---- 查询 ----

    def list(self) -> List[Session]:
        """按最近创建在前的顺序返回全部会话。"""
        return [self._sessions[sid] for sid in self._order]

    def get(self, session_id: str) -> Session:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id)

    def current(self) -> Session:
        if self._current_id is None:
            return self.create()
        return self._sessions[self._current_id]

    @property
    def current_id(self) -> Optional[str]:
        return self._current_id

    # ---- 修改 ----

    def create(self, provider: Optional[str] = None, model: Optional[str] = None) -> Session:
        """新建会话，插到列表最前并设为当前会话。"""
        provider = provider or self._settings.default_provider
        model = model or getattr(self._settings, "default_model", None) or first_model(provider)
        validate_model(provider, model)
        session = Session(id=f"s-{uuid4().hex}", title=DEFAULT_TITLE, provider=provider, model=model)
        self._sessions[session.id] = session
        self._order.insert(0, session.id)
        self._current_id = session.id
        self._persist()
        log_event(logging.INFO, "Created session", {"session_id": session.id}, provider=provider, model=model)
        return session

    def select(self, session_id: str) -> None:
        """切换当前会话；未知 id 静默忽略。"""
        if session_id in self._sessions:
            self._current_id = session_id

    def append_message(self, session_id: str, message: Message) -> Session:
        return self._update(session_id, self.get(session_id).with_message(message))

    def replace_last_message(self, session_id: str, message: Message) -> Session:
        """覆盖最后一条消息，用于流式占位消息的原地更新。"""
        return self._update(session_id, self.get(session_id).with_last_message(message))

    def rename_title(self, session_id: str, title: str) -> Session:
        return self._update(session_id, self.get(session_id).with_title(title))

    def set_model(self, session_id: str, provider: str, model: str) -> Session:
        validate_model(provider, model)
        return self._update(session_id, self.get(session_id).with_model(provider, model))

    # ---- 持久化 ----

    def serialize(self) -> str:
        return json.dumps([s.to_dict() for s in self.list()], ensure_ascii=False)

    def _update(self, session_id: str, session: Session) -> Session:
        self._sessions[session_id] = session
        self._persist()
        return session

    def _persist(self) -> None:
        self._kv.set(SESSIONS_KEY, self.serialize())

    def _load(self) -> None:
        try:
            raw = self._kv.get(SESSIONS_KEY)
            sessions = self._deserialize(raw) if raw else []
        except (BusinessError, ValueError, KeyError, TypeError, AttributeError) as e:
            log_event(logging.WARNING, "Failed to load sessions", {"key": SESSIONS_KEY}, error=str(e))
            sessions = []

        if not sessions:
            self.create()
            return
        for session in sessions:
            if session.id in self._sessions:
                continue
            self._sessions[session.id] = session
            self._order.append(session.id)
        self._current_id = self._order[0]

    @staticmethod
    def _deserialize(raw: str) -> List[Session]:
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError("Session collection must be a list")
        sessions = []
        for item in data:
            session = Session.from_dict(item)
            validate_model(session.provider, session.model)
            sessions.append(session)
        return sessions
