"""
Inbox Interfaces Layer
======================

Interface adapters (controllers) for the inbox review workflow.

Contains:
- Controllers: FastAPI route handlers under /admin/inbox
"""

from src.inbox.interfaces.controllers import inbox_router

__all__ = ["inbox_router"]
