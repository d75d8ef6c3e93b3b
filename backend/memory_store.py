"""In-process document store with the same surface as the MongoDB store.

Selected with ``DATABASE_URL=memory://``; the test suite runs on it too.
Every operation holds the collection lock, so conditional updates are atomic.
"""
import copy
import logging
import threading
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


def _matches(doc: Dict[str, Any], filter_dict: Dict[str, Any]) -> bool:
    return all(doc.get(k) == v for k, v in filter_dict.items())


class MemoryCollection:
    def __init__(self, name: str):
        self.name = name
        self._docs: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def find_one(self, filter_dict: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            for doc in self._docs:
                if _matches(doc, filter_dict):
                    return copy.deepcopy(doc)
        return None

    def find(self, filter_dict: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(d) for d in self._docs if _matches(d, filter_dict or {})]

    def insert_one(self, data: Dict[str, Any], key: str) -> bool:
        with self._lock:
            if any(d.get(key) == data.get(key) for d in self._docs):
                return False
            self._docs.append(copy.deepcopy(data))
        return True

    def update_one(self, filter_dict: Dict[str, Any], fields: Dict[str, Any]) -> bool:
        with self._lock:
            for doc in self._docs:
                if _matches(doc, filter_dict):
                    doc.update(copy.deepcopy(fields))
                    return True
        return False

    def delete_one(self, filter_dict: Dict[str, Any]) -> bool:
        with self._lock:
            for i, doc in enumerate(self._docs):
                if _matches(doc, filter_dict):
                    del self._docs[i]
                    return True
        return False

    def delete_many(self, filter_dict: Optional[Dict[str, Any]] = None) -> int:
        with self._lock:
            keep = [d for d in self._docs if not _matches(d, filter_dict or {})]
            deleted = len(self._docs) - len(keep)
            self._docs = keep
        return deleted


class MemoryStore:
    def __init__(self, name: str = "carehub"):
        self.name = name
        self._collections: Dict[str, MemoryCollection] = {}
        self._lock = threading.Lock()
        self.closed = False

    def collection(self, name: str) -> MemoryCollection:
        with self._lock:
            if name not in self._collections:
                self._collections[name] = MemoryCollection(name)
            return self._collections[name]

    def ping(self) -> bool:
        return not self.closed

    def close(self):
        self.closed = True
        logger.info("In-memory store closed")
