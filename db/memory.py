# db/memory.py
"""
In-process backends with the same contract as the firebase ones.
Used by CHAT_BACKEND=memory and by the test suite.
"""
from __future__ import annotations

import copy
import hashlib
import json
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from db.document_store import DocumentStore, ValueCallback
from db.object_store import ObjectStore, StoredObject

logger = logging.getLogger(__name__)


def _segments(path: str) -> List[str]:
    return [s for s in path.strip("/").split("/") if s]


def _etag(value: Any) -> str:
    raw = json.dumps(value, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha1(raw).hexdigest()


def _is_empty(value: Any) -> bool:
    return value is None or value == {} or value == []


class _MemoryListener:
    def __init__(self, store: "InMemoryDocumentStore", path: str, callback: ValueCallback):
        self.store = store
        self.path = path
        self.callback = callback

    def close(self) -> None:
        self.store._remove_listener(self)


class InMemoryDocumentStore(DocumentStore):
    """
    A nested dict guarded by one lock. Empty containers read back as None,
    the way the realtime database drops empty nodes.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._root: Dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._lock = threading.RLock()
        self._listeners: List[_MemoryListener] = []

    # ---- tree access (lock held by caller) ----
    def _read(self, path: str) -> Any:
        node: Any = self._root
        for seg in _segments(path):
            if isinstance(node, dict):
                node = node.get(seg)
            elif isinstance(node, list) and seg.isdigit() and int(seg) < len(node):
                node = node[int(seg)]
            else:
                return None
            if node is None:
                return None
        return None if _is_empty(node) else copy.deepcopy(node)

    def _write(self, path: str, value: Any) -> None:
        segs = _segments(path)
        if not segs:
            self._root = copy.deepcopy(value) if isinstance(value, dict) else {}
            return
        node = self._root
        for seg in segs[:-1]:
            child = node.get(seg)
            if not isinstance(child, dict):
                if _is_empty(value):
                    return
                child = {}
                node[seg] = child
            node = child
        if _is_empty(value):
            node.pop(segs[-1], None)
        else:
            node[segs[-1]] = copy.deepcopy(value)

    # ---- DocumentStore ----
    def get(self, path: str) -> Any:
        with self._lock:
            return self._read(path)

    def get_with_etag(self, path: str) -> Tuple[Any, str]:
        with self._lock:
            value = self._read(path)
            return value, _etag(value)

    def set(self, path: str, value: Any) -> None:
        with self._lock:
            self._write(path, value)
        self._notify(path)

    def update(self, path: str, fields: dict) -> None:
        with self._lock:
            for key, value in fields.items():
                self._write(f"{path}/{key}", value)
        self._notify(path)

    def set_if_unchanged(self, path: str, etag: str, value: Any) -> bool:
        with self._lock:
            if _etag(self._read(path)) != etag:
                return False
            self._write(path, value)
        self._notify(path)
        return True

    def listen(self, path: str, callback: ValueCallback) -> _MemoryListener:
        listener = _MemoryListener(self, path, callback)
        with self._lock:
            self._listeners.append(listener)
            current = self._read(path)
        callback(current)
        return listener

    # ---- listeners ----
    def _remove_listener(self, listener: _MemoryListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self, changed_path: str) -> None:
        changed = _segments(changed_path)
        with self._lock:
            targets = []
            for listener in self._listeners:
                watched = _segments(listener.path)
                n = min(len(watched), len(changed))
                if watched[:n] == changed[:n]:
                    targets.append((listener, self._read(listener.path)))
        for listener, value in targets:
            listener.callback(value)

    def dump(self) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._root)


class InMemoryObjectStore(ObjectStore):
    """Blobs kept in a dict; urls look like memory://<bucket>/<path>."""

    def __init__(self, bucket: str = "local"):
        self.bucket = bucket
        self._objects: Dict[str, StoredObject] = {}
        self._lock = threading.Lock()

    def put(self, path: str, data: bytes, content_type: str) -> None:
        with self._lock:
            self._objects[path] = StoredObject(data=bytes(data), content_type=content_type)

    def download_url(self, path: str) -> Optional[str]:
        with self._lock:
            if path not in self._objects:
                return None
        return f"memory://{self.bucket}/{path}"

    def read(self, path: str) -> Optional[StoredObject]:
        with self._lock:
            return self._objects.get(path)
