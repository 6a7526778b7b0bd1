"""
Inbox Domain Layer
==================

Domain layer for the inbox review workflow.

Contains:
- Entities: Core business objects (InboxItem, Citation, Assignee, Actor)
- Value Objects: Citation rows, validator, manual FAQ draft
- Workflow: State machine, ownership policy, approval intents

This layer is framework-agnostic and contains pure business logic.
"""

from src.inbox.domain.entities import (
    Actor,
    Assignee,
    Citation,
    CitationSpan,
    InboxItem,
    Requester,
)
from src.inbox.domain.value_objects import (
    CitationRowError,
    CitationValidationResult,
    CitationValidator,
    EditableCitationRow,
    ManualFAQDraft,
    SpanTextPolicy,
    REQUIRED_CITATION_MESSAGE,
    DUPLICATE_DOC_MESSAGE,
)
from src.inbox.domain.workflow import (
    ApprovalIntent,
    ApproveIntent,
    PromoteIntent,
    ReviewRequest,
    Transition,
    TRANSITIONS,
    WorkflowPolicy,
    resolve_approval_intent,
)

__all__ = [
    "Actor",
    "Assignee",
    "Citation",
    "CitationSpan",
    "InboxItem",
    "Requester",
    "CitationRowError",
    "CitationValidationResult",
    "CitationValidator",
    "EditableCitationRow",
    "ManualFAQDraft",
    "SpanTextPolicy",
    "REQUIRED_CITATION_MESSAGE",
    "DUPLICATE_DOC_MESSAGE",
    "ApprovalIntent",
    "ApproveIntent",
    "PromoteIntent",
    "ReviewRequest",
    "Transition",
    "TRANSITIONS",
    "WorkflowPolicy",
    "resolve_approval_intent",
]
