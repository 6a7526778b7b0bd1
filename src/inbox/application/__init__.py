"""
Inbox Application Layer
=======================

Use cases for the review workflow: the action gateway, list
synchronisation, orchestration and the manual FAQ draft store.
"""

from src.inbox.application.drafts import DraftStore, IDraftStorage
from src.inbox.application.errors import ApiError, FieldError, parse_validation_errors
from src.inbox.application.gateway import IInboxAPI, InboxActionGateway, success_message
from src.inbox.application.orchestrator import InboxFilters, Notice, WorkflowOrchestrator
from src.inbox.application.results import (
    ActionOutcome,
    ActionResult,
    BulkFailure,
    BulkResult,
    ListPage,
)
from src.inbox.application.synchronizer import ListSynchronizer, SyncReport

__all__ = [
    "DraftStore",
    "IDraftStorage",
    "ApiError",
    "FieldError",
    "parse_validation_errors",
    "IInboxAPI",
    "InboxActionGateway",
    "success_message",
    "InboxFilters",
    "Notice",
    "WorkflowOrchestrator",
    "ActionOutcome",
    "ActionResult",
    "BulkFailure",
    "BulkResult",
    "ListPage",
    "ListSynchronizer",
    "SyncReport",
]
