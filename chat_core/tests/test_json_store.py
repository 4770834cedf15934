import json
import tempfile
from pathlib import Path

import pytest

from chat_core.domain.exceptions import BusinessError
from chat_core.infrastructure.storage.json_store import JsonFileKeyValueStore


def test_json_store_set_and_get():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d) / ".storage"
        store = JsonFileKeyValueStore(root=root, filename="kv.json")
        assert store.get("chatSessions") is None
        store.set("chatSessions", "[]")
        store.set("other", "värde")
        assert store.get("chatSessions") == "[]"
        assert JsonFileKeyValueStore(root=root, filename="kv.json").get("other") == "värde"
        assert json.loads(store.path.read_text(encoding="utf-8")) == {"chatSessions": "[]", "other": "värde"}


def test_json_store_non_string_value_reads_as_missing():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d)
        (root / "kv.json").write_text(json.dumps({"k": 1}), encoding="utf-8")
        assert JsonFileKeyValueStore(root=root, filename="kv.json").get("k") is None


def test_json_store_unreadable_file_raises_on_get():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d)
        (root / "kv.json").write_text("[1, 2]", encoding="utf-8")
        store = JsonFileKeyValueStore(root=root, filename="kv.json")
        with pytest.raises(BusinessError) as exc:
            store.get("k")
        assert exc.value.code == "STORE_READ_ERROR"
        store.set("k", "v")
        assert store.get("k") == "v"
