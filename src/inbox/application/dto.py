"""
Inbox Application DTOs
======================

Data Transfer Objects for the console HTTP surface.

Pydantic models for request/response validation. Citation rows are
accepted as free text so the domain validator, not pydantic, produces
the field-level messages.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Literal, Optional

from src.config import settings
from src.inbox.application.results import ActionOutcome, ActionResult, BulkResult
from src.inbox.domain import (
    Assignee,
    Citation,
    EditableCitationRow,
    InboxItem,
    ManualFAQDraft,
)


# ========== Type Aliases for Literals ==========
InboxStatusStr = Literal[
    "pending", "needs_review", "approved", "rejected", "promoted", "reviewed", "dismissed"
]
InboxSourceStr = Literal["auto", "manual", "admin_review", "live_session"]


# ========== Request DTOs ==========

class CitationRowIn(BaseModel):
    """One editor row; every field is free text."""
    model_config = ConfigDict(populate_by_name=True)

    doc_id: str = Field(default="", alias="docId")
    page: str = ""
    span_start: str = Field(default="", alias="spanStart")
    span_end: str = Field(default="", alias="spanEnd")
    span_text: str = Field(default="", alias="spanText")

    @field_validator("doc_id", "page", "span_start", "span_end", "span_text", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        """Numbers arrive from JSON clients; keep them as typed text."""
        if v is None:
            return ""
        return str(v)

    def to_row(self) -> EditableCitationRow:
        return EditableCitationRow(
            doc_id=self.doc_id,
            page=self.page,
            span_start=self.span_start,
            span_end=self.span_end,
            span_text=self.span_text,
        )


def _rows(citations: Optional[List[CitationRowIn]]) -> Optional[List[EditableCitationRow]]:
    if citations is None:
        return None
    return [row.to_row() for row in citations]


class AttachSourceRequest(BaseModel):
    """Request model for replacing an item's citations."""
    citations: List[CitationRowIn] = Field(default_factory=list)

    @field_validator("citations")
    @classmethod
    def validate_row_count(cls, v: List[CitationRowIn]) -> List[CitationRowIn]:
        if len(v) > settings.max_citations:
            raise ValueError(f"At most {settings.max_citations} citations can be attached")
        return v

    def rows(self) -> List[EditableCitationRow]:
        return _rows(self.citations) or []


class ApproveRequest(BaseModel):
    """Request model for approve / promote (resolved server-side)."""
    as_faq: bool = Field(default=False, description="Create an FAQ entry when enabled")
    answer: Optional[str] = Field(None, max_length=5000)
    title: Optional[str] = Field(None, max_length=200)
    citations: Optional[List[CitationRowIn]] = None

    def rows(self) -> Optional[List[EditableCitationRow]]:
        return _rows(self.citations)


class ConvertToFAQRequest(BaseModel):
    """Request model for converting an item into an FAQ."""
    answer: Optional[str] = Field(None, max_length=5000)
    title: Optional[str] = Field(None, max_length=200)
    citations: Optional[List[CitationRowIn]] = None

    def rows(self) -> Optional[List[EditableCitationRow]]:
        return _rows(self.citations)


class NoteRequest(BaseModel):
    """Optional free-text note for reject / mark-reviewed."""
    note: Optional[str] = Field(None, max_length=1000)


class DismissRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class RequestReviewRequest(BaseModel):
    """Request model for SME review assignment."""
    reason: str = ""
    assignees: List[str] = Field(default_factory=list)


class BulkActionRequest(BaseModel):
    """Request model for bulk approve / reject."""
    ids: List[str] = Field(..., min_length=1)
    as_faq: bool = False


class ManualFAQRequest(BaseModel):
    """Request model for a staff-authored FAQ."""
    question: str = ""
    answer: str = ""
    citations: List[CitationRowIn] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    request_sme_review: bool = False
    assignees: List[str] = Field(default_factory=list)

    def to_draft(self) -> ManualFAQDraft:
        draft = ManualFAQDraft(
            question=self.question,
            answer=self.answer,
            rows=tuple(_rows(self.citations) or [EditableCitationRow()]),
            request_sme_review=self.request_sme_review,
            assignees=tuple(self.assignees),
        )
        for tag in self.tags:
            draft = draft.with_tag(tag)
        return draft


# ========== Response DTOs ==========

class SpanInfo(BaseModel):
    start: Optional[int] = None
    end: Optional[int] = None
    text: Optional[str] = None


class CitationInfo(BaseModel):
    """Citation information in API response."""
    doc_id: str
    page: Optional[int] = None
    span: Optional[SpanInfo] = None
    title: Optional[str] = None

    @classmethod
    def from_domain(cls, citation: Citation) -> "CitationInfo":
        span = None
        if citation.span is not None:
            span = SpanInfo(start=citation.span.start, end=citation.span.end, text=citation.span.text)
        return cls(doc_id=citation.doc_id, page=citation.page, span=span, title=citation.title)


class AssigneeInfo(BaseModel):
    id: str
    email: str = ""
    name: Optional[str] = None
    role: Optional[str] = None

    @classmethod
    def from_domain(cls, assignee: Assignee) -> "AssigneeInfo":
        return cls(id=assignee.id, email=assignee.email, name=assignee.name, role=assignee.role)


class InboxItemResponse(BaseModel):
    """Inbox item as served to the console."""
    id: str
    status: InboxStatusStr
    source: InboxSourceStr
    question: Optional[str] = None
    answer_draft: Optional[str] = None
    answer_final: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    pii_flags: List[str] = Field(default_factory=list)
    q_hash: Optional[str] = None
    asked_at: Optional[str] = None
    channel: Optional[str] = None
    dup_count: int = 1
    assignees: List[AssigneeInfo] = Field(default_factory=list)
    assignment_reason: Optional[str] = None
    has_requester: bool = False
    citations: List[CitationInfo] = Field(default_factory=list)
    promoted_pair_id: Optional[str] = None

    @classmethod
    def from_domain(cls, item: InboxItem) -> "InboxItemResponse":
        """Create from domain entity."""
        return cls(
            id=item.id,
            status=item.status,
            source=item.source,
            question=item.question,
            answer_draft=item.answer_draft,
            answer_final=item.answer_final,
            tags=list(item.tags),
            pii_flags=list(item.pii_flags),
            q_hash=item.q_hash,
            asked_at=item.asked_at,
            channel=item.channel,
            dup_count=item.dup_count,
            assignees=[AssigneeInfo.from_domain(a) for a in item.assignees],
            assignment_reason=item.assignment_reason,
            has_requester=item.has_requester,
            citations=[CitationInfo.from_domain(c) for c in item.citations],
            promoted_pair_id=item.promoted_pair_id,
        )


class InboxListResponse(BaseModel):
    """One cursor page."""
    items: List[InboxItemResponse]
    next_cursor: Optional[str] = None


class ActionResponse(BaseModel):
    """Uniform action result."""
    action: str
    item_id: str
    outcome: ActionOutcome
    message: str
    row_errors: List[Dict[str, str]] = Field(default_factory=list)
    general_error: Optional[str] = None
    conflict_id: Optional[str] = None
    data: Any = None

    @classmethod
    def from_result(cls, result: ActionResult) -> "ActionResponse":
        data = result.data
        if isinstance(data, InboxItem):
            data = InboxItemResponse.from_domain(data).model_dump()
        return cls(
            action=result.action,
            item_id=result.item_id,
            outcome=result.outcome,
            message=result.message,
            row_errors=[err.to_dict() for err in result.row_errors],
            general_error=result.general_error,
            conflict_id=result.conflict_id,
            data=data,
        )


class BulkFailureInfo(BaseModel):
    id: str
    message: str = ""


class BulkActionResponse(BaseModel):
    """Bulk result with succeeded and failed ids."""
    action: str
    outcome: ActionOutcome
    message: str
    succeeded_ids: List[str]
    failed: List[BulkFailureInfo]

    @classmethod
    def from_result(cls, result: BulkResult) -> "BulkActionResponse":
        return cls(
            action=result.action,
            outcome=result.outcome,
            message=result.message,
            succeeded_ids=list(result.succeeded_ids),
            failed=[BulkFailureInfo(id=f.id, message=f.message) for f in result.failures],
        )


class AvailableActionsResponse(BaseModel):
    item_id: str
    status: InboxStatusStr
    actions: List[str]
