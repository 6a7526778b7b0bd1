"""
Inbox Domain Entities
=====================

Pure Python domain entities for the inbox review workflow.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns. Raw Admin API
payloads are normalised here (`from_api`) so the rest of the system only
sees one shape.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, List, Optional, Tuple

from src.config import (
    InboxStatus, InboxSource, ActorRole,
    ACTIVE_STATUSES, TERMINAL_STATUSES, VALID_STATUSES, VALID_SOURCES,
    REVIEW_REQUEST_SOURCES, INBOX_APPROVER_ROLES, ASSIGNMENT_OVERRIDE_ROLES,
)


def _parse_optional_number(value: Any) -> Optional[int]:
    """Lenient integer parsing for upstream payloads (never for user input)."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip():
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if isinstance(value, float):
        # NaN and infinities have no integer value
        return int(value) if math.isfinite(value) else None
    return None


def _first_str(raw: dict, *keys: str) -> Optional[str]:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(frozen=True)
class CitationSpan:
    """Character span inside a cited document."""
    start: Optional[int] = None
    end: Optional[int] = None
    text: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.start is None and self.end is None and not self.text

    def to_payload(self) -> dict:
        payload = {}
        if self.start is not None:
            payload["start"] = self.start
        if self.end is not None:
            payload["end"] = self.end
        if self.text:
            payload["text"] = self.text
        return payload


@dataclass(frozen=True)
class Citation:
    """
    Reference to a document offered as evidence for an answer.

    `title` is resolved from the document store for display only and is
    never sent back to the API.
    """
    doc_id: str
    page: Optional[int] = None
    span: Optional[CitationSpan] = None
    title: Optional[str] = None

    def __post_init__(self):
        if not self.doc_id:
            raise ValueError("Citation requires a document id")
        if self.page is not None and self.page < 0:
            raise ValueError("page must be non-negative")
        if (
            self.span is not None
            and self.span.start is not None
            and self.span.end is not None
            and self.span.start > self.span.end
        ):
            raise ValueError("span start cannot be after span end")

    @property
    def doc_key(self) -> str:
        """Case-insensitive identity used for duplicate detection."""
        return self.doc_id.strip().lower()

    def to_payload(self) -> dict:
        """Serialise to the Admin API citation shape."""
        payload: dict = {"doc_id": self.doc_id}
        if self.page is not None:
            payload["page"] = self.page
        if self.span is not None and not self.span.is_empty:
            payload["span"] = self.span.to_payload()
        return payload

    @classmethod
    def from_api(cls, raw: Any) -> Optional["Citation"]:
        """Normalise one upstream citation; returns None when unusable."""
        if not isinstance(raw, dict):
            return None
        doc_id = _first_str(raw, "doc_id", "docId")
        if not doc_id:
            return None

        page = _parse_optional_number(
            raw.get("page", raw.get("page_number", raw.get("pageIndex")))
        )

        span_source = raw.get("span") if isinstance(raw.get("span"), dict) else None
        if span_source is None and isinstance(raw.get("span_range"), dict):
            span_source = raw["span_range"]

        span = None
        if span_source:
            start = _parse_optional_number(
                span_source.get("start", span_source.get("start_offset", span_source.get("begin")))
            )
            end = _parse_optional_number(
                span_source.get("end", span_source.get("end_offset", span_source.get("finish")))
            )
            text = span_source.get("text") if isinstance(span_source.get("text"), str) else None
            candidate = CitationSpan(start=start, end=end, text=text or None)
            if not candidate.is_empty:
                span = candidate

        try:
            return cls(
                doc_id=doc_id,
                page=page if page is not None and page >= 0 else None,
                span=span,
                title=_first_str(raw, "title", "doc_title"),
            )
        except ValueError:
            # Upstream data that breaks our invariants is dropped, not repaired
            return None


@dataclass(frozen=True)
class Assignee:
    """SME granted mutation rights over an assigned item."""
    id: str
    email: str = ""
    name: Optional[str] = None
    role: Optional[str] = None

    @classmethod
    def from_api(cls, raw: Any) -> Optional["Assignee"]:
        if not isinstance(raw, dict):
            return None
        member_id = _first_str(raw, "id", "user_id")
        if not member_id:
            return None
        return cls(
            id=member_id,
            email=raw.get("email") or "",
            name=raw.get("name") or None,
            role=raw.get("role") or None,
        )


@dataclass(frozen=True)
class Requester:
    """Whoever triggered a review request (internal actor or external contact)."""
    actor_id: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_present(self) -> bool:
        return bool(self.actor_id or self.email)

    @classmethod
    def from_api(cls, raw: dict) -> Optional["Requester"]:
        source = raw.get("requested_by") if isinstance(raw.get("requested_by"), dict) else {}
        actor_id = _first_str(source, "id", "user_id") or _first_str(raw, "requester_id")
        email = _first_str(source, "email") or _first_str(raw, "requester_email", "contact_email")
        requester = cls(actor_id=actor_id, email=email)
        return requester if requester.is_present else None


@dataclass(frozen=True)
class Actor:
    """Identity and role supplied by the external auth collaborator."""
    id: str
    role: str = ActorRole.CURATOR
    email: Optional[str] = None

    @property
    def can_curate(self) -> bool:
        """Role is allowed to run inbox workflow actions."""
        return self.role in INBOX_APPROVER_ROLES

    @property
    def overrides_assignment(self) -> bool:
        return self.role in ASSIGNMENT_OVERRIDE_ROLES


@dataclass
class InboxItem:
    """
    Candidate question/answer pair awaiting curation.

    The client never changes `status` on its own; `with_status` exists for
    optimistic copies that are later reconciled against the API.
    """

    # Core attributes
    id: str
    status: str = InboxStatus.PENDING
    source: str = InboxSource.AUTO

    # Content
    question: Optional[str] = None
    answer_draft: Optional[str] = None
    answer_final: Optional[str] = None
    tags: Tuple[str, ...] = ()
    pii_flags: Tuple[str, ...] = ()

    # List metadata
    q_hash: Optional[str] = None
    asked_at: Optional[str] = None
    channel: Optional[str] = None
    dup_count: int = 1

    # Assignment
    assignees: Tuple[Assignee, ...] = ()
    assignment_reason: Optional[str] = None
    assigned_at: Optional[datetime] = None
    requester: Optional[Requester] = None

    # Evidence
    citations: List[Citation] = field(default_factory=list)

    # Promotion
    promoted_pair_id: Optional[str] = None
    promoted_at: Optional[str] = None

    def __post_init__(self):
        """Validate item on initialization."""
        if not self.id:
            raise ValueError("Inbox item id is required")
        if self.status not in VALID_STATUSES:
            raise ValueError(f"Unknown inbox status: {self.status}")
        if self.dup_count < 1:
            self.dup_count = 1
        # Keep first occurrence of each assignee id
        seen = set()
        unique = []
        for assignee in self.assignees:
            if assignee.id not in seen:
                seen.add(assignee.id)
                unique.append(assignee)
        self.assignees = tuple(unique)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_assigned(self) -> bool:
        return len(self.assignees) > 0

    @property
    def is_review_request(self) -> bool:
        return self.source in REVIEW_REQUEST_SOURCES

    @property
    def has_requester(self) -> bool:
        return self.requester is not None and self.requester.is_present

    @property
    def answer(self) -> Optional[str]:
        """Best available answer text."""
        return self.answer_final or self.answer_draft

    def is_assignee(self, actor: Actor) -> bool:
        """Check whether the actor is one of the listed assignees."""
        actor_email = (actor.email or "").strip().lower()
        for assignee in self.assignees:
            if assignee.id == actor.id:
                return True
            if actor_email and assignee.email.strip().lower() == actor_email:
                return True
        return False

    def can_be_modified_by(self, actor: Actor) -> bool:
        """
        Ownership rule for every mutating action.

        Unassigned items are open to any curating role. Assigned items are
        restricted to listed assignees plus admins/owners.
        """
        if not actor.can_curate:
            return False
        if not self.is_assigned:
            return True
        return self.is_assignee(actor) or actor.overrides_assignment

    def with_status(self, status: str) -> "InboxItem":
        """Copy with a new status (used for optimistic updates)."""
        return replace(self, status=status)

    def with_citations(self, citations: List[Citation]) -> "InboxItem":
        return replace(self, citations=list(citations))

    @classmethod
    def from_api(cls, raw: Any) -> Optional["InboxItem"]:
        """
        Normalise a list or detail payload from the Admin API.

        Returns None for payloads without an id or with an unknown status.
        """
        if not isinstance(raw, dict):
            return None
        id_value = raw.get("id", raw.get("ref_id"))
        if id_value in (None, ""):
            return None

        status = raw.get("status") if isinstance(raw.get("status"), str) else InboxStatus.PENDING
        if status not in VALID_STATUSES:
            return None

        source = _first_str(raw, "source", "origin", "source_type") or InboxSource.AUTO
        if source not in VALID_SOURCES:
            source = InboxSource.AUTO

        tags = raw.get("tags") if isinstance(raw.get("tags"), list) else []
        pii = raw.get("pii_flags") if isinstance(raw.get("pii_flags"), list) else []

        dup_count = raw.get("dup_count", raw.get("duplicate_count"))
        if isinstance(dup_count, bool) or not isinstance(dup_count, int) or dup_count < 1:
            dup_count = 1

        raw_citations = raw.get("suggested_citations")
        if not isinstance(raw_citations, list):
            raw_citations = raw.get("citations") if isinstance(raw.get("citations"), list) else []
        citations = [c for c in (Citation.from_api(entry) for entry in raw_citations) if c]

        raw_assignees = raw.get("assigned_to", raw.get("assignees"))
        assignees = tuple(
            a for a in (Assignee.from_api(entry) for entry in (raw_assignees or [])) if a
        ) if isinstance(raw_assignees, list) else ()

        return cls(
            id=str(id_value),
            status=status,
            source=source,
            question=raw.get("question") if isinstance(raw.get("question"), str) else None,
            answer_draft=_first_str(raw, "answer_draft", "model_answer"),
            answer_final=_first_str(raw, "answer_final", "answer"),
            tags=tuple(dict.fromkeys(t for t in tags if isinstance(t, str))),
            pii_flags=tuple(dict.fromkeys(p for p in pii if isinstance(p, str))),
            q_hash=_first_str(raw, "q_hash", "question_hash"),
            asked_at=_first_str(raw, "asked_at", "created_at"),
            channel=_first_str(raw, "channel"),
            dup_count=dup_count,
            assignees=assignees,
            assignment_reason=_first_str(raw, "assignment_reason", "review_reason", "reason"),
            assigned_at=_parse_datetime(raw.get("assigned_at")),
            requester=Requester.from_api(raw),
            citations=citations,
            promoted_pair_id=_first_str(raw, "promoted_pair_id", "qa_pair_id"),
            promoted_at=_first_str(raw, "promoted_at", "published_at"),
        )
