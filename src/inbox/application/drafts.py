"""
Manual FAQ Draft Store
======================

Keeps an unfinished manual FAQ between editor sessions.

Drafts are stored as JSON text under a key; the backend only has to hold
strings, so it can be process memory, a cache, or a per-user table.
"""

import json
from abc import ABC, abstractmethod
from typing import Optional

from src.config import DRAFT_STORAGE_KEY
from src.inbox.domain import ManualFAQDraft
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Storage Interface ==========

class IDraftStorage(ABC):
    """Interface for keyed string storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored text or None."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store text under a key, replacing any previous value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key; missing keys are ignored."""


# ========== Draft Store ==========

class DraftStore:
    """Loads, saves and clears `ManualFAQDraft` values."""

    def __init__(self, storage: IDraftStorage, default_key: str = DRAFT_STORAGE_KEY):
        self._storage = storage
        self.default_key = default_key

    def load(self, key: Optional[str] = None) -> Optional[ManualFAQDraft]:
        """
        Load a draft.

        Corrupt entries are removed and reported as missing.
        """
        key = key or self.default_key
        raw = self._storage.get(key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("draft is not an object")
            return ManualFAQDraft.from_dict(data)
        except (ValueError, TypeError) as e:
            logger.warning("Discarding corrupt FAQ draft", extra={"draft_key": key, "error": str(e)})
            self._storage.delete(key)
            return None

    def save(self, draft: ManualFAQDraft, key: Optional[str] = None) -> None:
        self._storage.set(key or self.default_key, json.dumps(draft.to_dict()))

    def clear(self, key: Optional[str] = None) -> None:
        self._storage.delete(key or self.default_key)
