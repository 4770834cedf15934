import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.exceptions import BusinessError
from chat_core.domain.session import KeyValueStore
from chat_core.infrastructure.logging.logger import log_event


class JsonFileKeyValueStore(KeyValueStore):
    """把所有 key 存进同一个 JSON 文件，写入走临时文件 + os.replace。"""

    def __init__(self, root: str | Path | None = None, filename: Optional[str] = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._path = self._root / (filename or settings.sessions_file)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> Optional[str]:
        data = self._read_all()
        value = data.get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        try:
            data = self._read_all()
        except BusinessError as e:
            # 文件损坏时整体重写
            log_event(logging.WARNING, "Overwriting unreadable store", {"path": str(self._path)}, error=e.message)
            data = {}
        data[key] = value
        tmp_path = self._root / f"{self._path.name}.{uuid4().hex}.tmp"
        try:
            tmp_path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise BusinessError(code="STORE_WRITE_ERROR", message=str(e))

    def _read_all(self) -> Dict[str, object]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise BusinessError(code="STORE_READ_ERROR", message=str(e))
        if not isinstance(data, dict):
            raise BusinessError(code="STORE_READ_ERROR", message=f"{self._path} is not a JSON object")
        return data


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
