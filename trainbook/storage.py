from __future__ import annotations

import json
import os
import tempfile
from typing import Mapping, Protocol

from trainbook.domain import StateCorruptedError

MEMORY_PATH = ":memory:"


class KeyValueStorage(Protocol):
    """localStorage-like string store.

    ``write_many`` applies several keys in one step; a ``None`` value removes
    the key. File-backed implementations must make that step atomic.
    """

    def get_item(self, key: str) -> str | None: ...

    def write_many(self, items: Mapping[str, str | None]) -> None: ...


class MemoryStorage:
    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def write_many(self, items: Mapping[str, str | None]) -> None:
        for key, value in items.items():
            if value is None:
                self._data.pop(key, None)
            else:
                self._data[key] = value


class JsonFileStorage:
    """All keys live in a single JSON object file: ``{"key": "<json text>", ...}``."""

    def __init__(self, path: str) -> None:
        self.path = path

    def _load(self) -> dict[str, str]:
        if not os.path.exists(self.path):
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise StateCorruptedError(f"State file {self.path} is not valid JSON") from e

        if not isinstance(raw, dict):
            raise StateCorruptedError(f"State file {self.path} must contain a JSON object")
        return {str(k): str(v) for k, v in raw.items()}

    def _save(self, data: Mapping[str, str]) -> None:
        folder = os.path.dirname(os.path.abspath(self.path))
        if folder and not os.path.exists(folder):
            os.makedirs(folder, exist_ok=True)

        # Atomic write
        with tempfile.NamedTemporaryFile("w", delete=False, encoding="utf-8", dir=folder, suffix=".tmp") as tf:
            json.dump(dict(data), tf, ensure_ascii=False, indent=2)
            tmp_name = tf.name

        os.replace(tmp_name, self.path)

    def get_item(self, key: str) -> str | None:
        return self._load().get(key)

    def write_many(self, items: Mapping[str, str | None]) -> None:
        data = self._load()
        for key, value in items.items():
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value
        self._save(data)


def open_storage(path: str) -> KeyValueStorage:
    if path == MEMORY_PATH:
        return MemoryStorage()
    return JsonFileStorage(path)
