"""
Draft Storage Backends
======================
"""

import threading
from typing import Dict, Optional

from src.inbox.application.drafts import IDraftStorage


class InMemoryDraftStorage(IDraftStorage):
    """Process-local, thread-safe key/value storage for drafts."""

    def __init__(self):
        self._values: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)
