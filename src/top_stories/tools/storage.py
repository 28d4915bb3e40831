"""Opaque key-value storage and versioned persistence of state slices.

Each slice (``articles``, ``preferences``) is serialized as JSON under
``persist:root:<name>`` together with the layout version it was written
with. A slice written with another version is discarded on restore.
"""

import json
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from ..logging_config import get_logger


logger = get_logger("tools.storage")

PERSIST_NAMESPACE = "persist:root"
PERSIST_VERSION = 1


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Process-local storage; nothing survives a restart."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStorage:
    """All keys kept in one JSON document on disk.

    Writes go to a temporary sibling file that then replaces the
    existing one, so readers never observe a half-written document.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._items: Dict[str, str] = self._read()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("storage_file_unreadable", path=str(self.path), error=str(exc))
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _flush(self, items: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(items), encoding="utf-8")
        os.replace(tmp_path, self.path)
        self._items = items

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._flush({**self._items, key: value})

    def remove_item(self, key: str) -> None:
        with self._lock:
            if key in self._items:
                self._flush({k: v for k, v in self._items.items() if k != key})


def slice_key(name: str) -> str:
    return f"{PERSIST_NAMESPACE}:{name}"


def load_slice(storage: KeyValueStorage, name: str) -> Optional[Dict[str, Any]]:
    raw = storage.get_item(slice_key(name))
    if raw is None:
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("persisted_slice_corrupt", slice=name, error=str(exc))
        return None
    if not isinstance(payload, dict) or payload.get("version") != PERSIST_VERSION:
        logger.warning(
            "persisted_slice_version_mismatch",
            slice=name,
            version=payload.get("version") if isinstance(payload, dict) else None,
        )
        return None
    state = payload.get("state")
    return state if isinstance(state, dict) else None


def save_slice(storage: KeyValueStorage, name: str, state: Dict[str, Any]) -> None:
    payload = {"version": PERSIST_VERSION, "state": state}
    storage.set_item(slice_key(name), json.dumps(payload))


def clear_slice(storage: KeyValueStorage, name: str) -> None:
    storage.remove_item(slice_key(name))
