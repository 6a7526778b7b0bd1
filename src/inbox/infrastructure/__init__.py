"""
Inbox Infrastructure Layer
==========================

Adapters for the Admin API and draft storage.
"""

from src.inbox.infrastructure.drafts import InMemoryDraftStorage
from src.inbox.infrastructure.external import HttpInboxAPI

__all__ = [
    "HttpInboxAPI",
    "InMemoryDraftStorage",
]
