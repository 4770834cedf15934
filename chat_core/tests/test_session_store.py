import json
import tempfile
from pathlib import Path

import pytest

from chat_core.infrastructure.storage.json_store import InMemoryKeyValueStore, JsonFileKeyValueStore
from chat_core.infrastructure.storage.session_store import SESSIONS_KEY, SessionStore
from chat_core.domain.exceptions import SessionNotFoundError, ValidationError
from chat_core.domain.models import Message


class SettingsStub:
    default_provider = "openai"
    default_model = None


def test_empty_storage_synthesizes_one_session():
    kv = InMemoryKeyValueStore()
    store = SessionStore(kv, SettingsStub())
    sessions = store.list()
    assert len(sessions) == 1
    assert store.current().id == sessions[0].id
    assert sessions[0].title == "New Chat"
    assert (sessions[0].provider, sessions[0].model) == ("openai", "gpt-3.5-turbo")
    assert json.loads(kv.get(SESSIONS_KEY))[0]["id"] == sessions[0].id


def test_create_prepends_and_becomes_current():
    store = SessionStore(InMemoryKeyValueStore(), SettingsStub())
    first = store.current()
    second = store.create(provider="google", model="gemini-pro")
    assert [s.id for s in store.list()] == [second.id, first.id]
    assert store.current_id == second.id


def test_create_rejects_model_outside_table():
    store = SessionStore(InMemoryKeyValueStore(), SettingsStub())
    with pytest.raises(ValidationError):
        store.create(provider="google", model="gpt-4")


def test_select_unknown_id_is_noop():
    store = SessionStore(InMemoryKeyValueStore(), SettingsStub())
    current = store.current_id
    store.select("s-missing")
    assert store.current_id == current


def test_round_trip_preserves_session():
    kv = InMemoryKeyValueStore()
    store = SessionStore(kv, SettingsStub())
    session = store.create(provider="anthropic", model="claude-3-sonnet-20240229")
    store.append_message(session.id, Message(role="user", content="hi"))
    store.append_message(session.id, Message(role="assistant", content="hello ✨"))
    store.rename_title(session.id, "Greetings")
    before = store.get(session.id)

    reloaded = SessionStore(kv, SettingsStub())
    after = reloaded.get(session.id)
    assert after.id == before.id
    assert after.title == "Greetings"
    assert after.messages == before.messages
    assert (after.provider, after.model) == ("anthropic", "claude-3-sonnet-20240229")
    assert after.created_at == before.created_at
    assert [s.id for s in reloaded.list()] == [s.id for s in store.list()]


def test_serialized_shape_uses_iso_timestamp():
    store = SessionStore(InMemoryKeyValueStore(), SettingsStub())
    data = json.loads(store.serialize())[0]
    assert set(data) == {"id", "title", "messages", "provider", "model", "createdAt"}
    assert data["createdAt"].endswith("Z")


def test_mutations_do_not_touch_other_sessions():
    store = SessionStore(InMemoryKeyValueStore(), SettingsStub())
    a = store.current()
    b = store.create()
    store.append_message(a.id, Message(role="user", content="for a"))
    store.replace_last_message(a.id, Message(role="user", content="for a, edited"))
    assert store.get(b.id).messages == ()
    assert store.get(a.id).messages == (Message(role="user", content="for a, edited"),)
    # 旧快照不受影响
    assert a.messages == ()


def test_unknown_session_mutation_raises():
    store = SessionStore(InMemoryKeyValueStore(), SettingsStub())
    with pytest.raises(SessionNotFoundError):
        store.append_message("s-missing", Message(role="user", content="x"))


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        json.dumps({"id": "x"}),
        json.dumps([{"id": "x"}]),
        json.dumps([{"id": "x", "title": "t", "messages": [], "provider": "foo", "model": "m", "createdAt": "2024-01-01T00:00:00Z"}]),
        json.dumps([{"id": "x", "title": "t", "messages": [{"role": "system", "content": "s"}], "provider": "openai", "model": "gpt-4o-mini", "createdAt": "2024-01-01T00:00:00Z"}]),
    ],
)
def test_corrupted_storage_falls_back_to_fresh_session(raw):
    kv = InMemoryKeyValueStore({SESSIONS_KEY: raw})
    store = SessionStore(kv, SettingsStub())
    sessions = store.list()
    assert len(sessions) == 1
    assert sessions[0].id != "x"
    assert sessions[0].messages == ()


def test_json_file_store_persists_across_instances():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d) / ".storage"
        store = SessionStore(JsonFileKeyValueStore(root=root, filename="sessions.json"), SettingsStub())
        sid = store.current_id
        store.append_message(sid, Message(role="user", content="persist me"))

        assert (root / "sessions.json").exists()
        assert not list(root.glob("*.tmp"))
        reloaded = SessionStore(JsonFileKeyValueStore(root=root, filename="sessions.json"), SettingsStub())
        assert reloaded.current_id == sid
        assert reloaded.get(sid).messages[0].content == "persist me"


def test_json_file_store_unreadable_file_recovers():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d)
        (root / "sessions.json").write_text("{broken", encoding="utf-8")
        store = SessionStore(JsonFileKeyValueStore(root=root, filename="sessions.json"), SettingsStub())
        assert len(store.list()) == 1
        data = json.loads((root / "sessions.json").read_text(encoding="utf-8"))
        assert json.loads(data[SESSIONS_KEY])[0]["id"] == store.current_id
