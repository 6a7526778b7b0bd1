"""
Inbox Value Objects
===================

Immutable value objects for the inbox domain.

Holds the citation editing/validation vocabulary and the manual FAQ draft.
Validation is pure: no I/O and no mutation of the submitted rows, so the same
code serves live-typing feedback and the pre-submit gate.
"""

import re
from dataclasses import dataclass, field, asdict
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple

from src.config import MAX_SPAN_TEXT_CHARS
from src.inbox.domain.entities import Citation, CitationSpan


REQUIRED_CITATION_MESSAGE = "Attach at least one citation before continuing."
DUPLICATE_DOC_MESSAGE = "Duplicate document ID."
MISSING_DOC_MESSAGE = "Document ID is required."
SPAN_ORDER_START_MESSAGE = "Start cannot be after end."
SPAN_ORDER_END_MESSAGE = "End cannot be before start."
SPAN_TEXT_LENGTH_MESSAGE = f"Span text must be {MAX_SPAN_TEXT_CHARS} characters or less."

# Plain decimal notation only; exponents are rejected
_NUMBER_PATTERN = re.compile(r"^[+-]?(?P<whole>\d+)(\.\d+)?$")
MAX_INTEGER_DIGITS = 15


class SpanTextPolicy(str, Enum):
    """What to do with span text longer than the limit."""
    REJECT = "reject"       # attach / approve / promote
    TRUNCATE = "truncate"   # manual FAQ creation


@dataclass(frozen=True)
class EditableCitationRow:
    """Pre-validation staging form of a citation; every field is free text."""
    doc_id: str = ""
    page: str = ""
    span_start: str = ""
    span_end: str = ""
    span_text: str = ""

    @property
    def is_blank(self) -> bool:
        return not any(
            value.strip()
            for value in (self.doc_id, self.page, self.span_start, self.span_end, self.span_text)
        )

    @classmethod
    def blank(cls) -> "EditableCitationRow":
        return cls()

    @classmethod
    def from_citation(cls, citation: Citation) -> "EditableCitationRow":
        """Prefill an editor row from a suggested citation."""
        span = citation.span or CitationSpan()
        return cls(
            doc_id=citation.doc_id,
            page="" if citation.page is None else str(citation.page),
            span_start="" if span.start is None else str(span.start),
            span_end="" if span.end is None else str(span.end),
            span_text=span.text or "",
        )

    @classmethod
    def from_dict(cls, raw: dict) -> "EditableCitationRow":
        """Build from a stored/posted mapping (camelCase or snake_case keys)."""
        def pick(*keys: str) -> str:
            for key in keys:
                value = raw.get(key)
                if value is not None:
                    return str(value)
            return ""

        return cls(
            doc_id=pick("doc_id", "docId"),
            page=pick("page"),
            span_start=pick("span_start", "spanStart"),
            span_end=pick("span_end", "spanEnd"),
            span_text=pick("span_text", "spanText"),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CitationRowError:
    """Field-level messages for one editor row; empty means the row is fine."""
    doc_id: Optional[str] = None
    page: Optional[str] = None
    span_start: Optional[str] = None
    span_end: Optional[str] = None
    span_text: Optional[str] = None
    root: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not any(self.to_dict().values())

    def to_dict(self) -> dict:
        return {key: value for key, value in asdict(self).items() if value}


@dataclass(frozen=True)
class CitationValidationResult:
    """Outcome of validating a set of editor rows."""
    citations: List[Citation] = field(default_factory=list)
    row_errors: List[CitationRowError] = field(default_factory=list)
    general_error: Optional[str] = None
    # Editor row position of each entry in `citations`
    row_indexes: List[int] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.general_error is None and all(err.is_empty for err in self.row_errors)

    def payload(self) -> List[dict]:
        """API-ready citation list."""
        return [citation.to_payload() for citation in self.citations]


class CitationValidator:
    """
    Pure functions for citation row validation.

    Stateless utility class - all citation validation rules in one place.
    """

    @staticmethod
    def parse_non_negative_int(raw: str, label: str) -> Tuple[Optional[int], Optional[str]]:
        """
        Parse an optional non-negative integer field.

        Args:
            raw: Field text as typed
            label: Human label used in the message ("Page", "Span start")

        Returns:
            Tuple of (value or None, error message or None). A blank field
            yields (None, None).
        """
        text = raw.strip()
        if not text:
            return None, None
        match = _NUMBER_PATTERN.match(text)
        if match is None:
            return None, f"{label} must be a number."
        number = Decimal(text)
        if number != number.to_integral_value():
            return None, f"{label} must be a whole number."
        if number < 0:
            return None, f"{label} must be a non-negative integer."
        if len(match.group("whole").lstrip("0")) > MAX_INTEGER_DIGITS:
            return None, f"{label} is too large."
        return int(number), None

    @staticmethod
    def validate(
        rows: List[EditableCitationRow],
        allow_empty: bool,
        span_text_policy: SpanTextPolicy = SpanTextPolicy.REJECT
    ) -> CitationValidationResult:
        """
        Turn editor rows into API-ready citations or a structured error set.

        Args:
            rows: Rows as entered (blank rows are ignored)
            allow_empty: Whether zero resulting citations is acceptable
            span_text_policy: Reject or truncate over-long span text

        Returns:
            CitationValidationResult
        """
        row_errors = [CitationRowError() for _ in rows]
        parsed: List[Optional[dict]] = []
        doc_rows: dict[str, List[int]] = {}

        for index, row in enumerate(rows):
            if row.is_blank:
                parsed.append(None)
                continue

            errors = row_errors[index]
            doc_id = row.doc_id.strip()
            if not doc_id:
                errors.doc_id = MISSING_DOC_MESSAGE
            else:
                doc_rows.setdefault(doc_id.lower(), []).append(index)

            page, errors.page = CitationValidator.parse_non_negative_int(row.page, "Page")
            start, errors.span_start = CitationValidator.parse_non_negative_int(
                row.span_start, "Span start"
            )
            end, errors.span_end = CitationValidator.parse_non_negative_int(
                row.span_end, "Span end"
            )
            if start is not None and end is not None and start > end:
                errors.span_start = SPAN_ORDER_START_MESSAGE
                errors.span_end = SPAN_ORDER_END_MESSAGE

            text = row.span_text.strip() or None
            if text and len(text) > MAX_SPAN_TEXT_CHARS:
                if span_text_policy == SpanTextPolicy.TRUNCATE:
                    text = text[:MAX_SPAN_TEXT_CHARS]
                else:
                    errors.span_text = SPAN_TEXT_LENGTH_MESSAGE

            parsed.append({
                "doc_id": doc_id, "page": page,
                "start": start, "end": end, "text": text,
            })

        for indices in doc_rows.values():
            if len(indices) > 1:
                for index in indices:
                    row_errors[index].doc_id = DUPLICATE_DOC_MESSAGE

        citations: List[Citation] = []
        row_indexes: List[int] = []
        for index, entry in enumerate(parsed):
            if entry is None or not row_errors[index].is_empty:
                continue
            span = CitationSpan(start=entry["start"], end=entry["end"], text=entry["text"])
            citations.append(Citation(
                doc_id=entry["doc_id"],
                page=entry["page"],
                span=None if span.is_empty else span,
            ))
            row_indexes.append(index)

        general_error = None
        if not allow_empty and not citations:
            general_error = REQUIRED_CITATION_MESSAGE

        return CitationValidationResult(
            citations=citations,
            row_errors=row_errors,
            general_error=general_error,
            row_indexes=row_indexes,
        )


# ========== Manual FAQ creation ==========

QUESTION_MIN_CHARS = 10
QUESTION_MAX_CHARS = 500
ANSWER_MIN_CHARS = 20
ANSWER_MAX_CHARS = 5000


@dataclass(frozen=True)
class ManualFAQDraft:
    """
    Staff-authored question/answer waiting to be submitted to the inbox.

    Serialisable with `to_dict`/`from_dict` so it can live in a draft store
    between editor sessions.
    """
    question: str = ""
    answer: str = ""
    rows: Tuple[EditableCitationRow, ...] = (EditableCitationRow(),)
    tags: Tuple[str, ...] = ()
    request_sme_review: bool = False
    assignees: Tuple[str, ...] = ()

    def with_tag(self, tag: str) -> "ManualFAQDraft":
        trimmed = tag.strip()
        if not trimmed or trimmed in self.tags:
            return self
        return ManualFAQDraft(
            question=self.question, answer=self.answer, rows=self.rows,
            tags=self.tags + (trimmed,), request_sme_review=self.request_sme_review,
            assignees=self.assignees,
        )

    def validate(self) -> Tuple[CitationValidationResult, List[str]]:
        """
        Validate the whole draft.

        Returns:
            Tuple of (citation result, list of form-level messages). The draft
            is submittable when the citation result is valid and there are
            no form messages.
        """
        messages = []
        question = self.question.strip()
        answer = self.answer.strip()
        if not QUESTION_MIN_CHARS <= len(question) <= QUESTION_MAX_CHARS:
            messages.append(
                f"Question must be between {QUESTION_MIN_CHARS} and {QUESTION_MAX_CHARS} characters."
            )
        if not ANSWER_MIN_CHARS <= len(answer) <= ANSWER_MAX_CHARS:
            messages.append(
                f"Answer must be between {ANSWER_MIN_CHARS} and {ANSWER_MAX_CHARS} characters."
            )
        if self.request_sme_review and not self.assignees:
            messages.append("Select at least one SME.")

        citations = CitationValidator.validate(
            list(self.rows),
            allow_empty=False,
            span_text_policy=SpanTextPolicy.TRUNCATE,
        )
        return citations, messages

    def to_payload(self, citations: CitationValidationResult) -> dict:
        return {
            "question": self.question.strip(),
            "answer": self.answer.strip(),
            "citations": citations.payload(),
            "tags": list(self.tags),
            "as_faq": True,
            "request_sme_review": self.request_sme_review,
            "assignees": list(self.assignees) if self.request_sme_review else [],
        }

    def to_dict(self) -> dict:
        return {
            "question": self.question,
            "answer": self.answer,
            "citations": [row.to_dict() for row in self.rows],
            "tags": list(self.tags),
            "request_sme_review": self.request_sme_review,
            "assignees": list(self.assignees),
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "ManualFAQDraft":
        rows = tuple(
            EditableCitationRow.from_dict(entry)
            for entry in _list_field(raw, "citations")
            if isinstance(entry, dict)
        )
        return cls(
            question=str(raw.get("question") or ""),
            answer=str(raw.get("answer") or ""),
            rows=rows or (EditableCitationRow(),),
            tags=tuple(t for t in _list_field(raw, "tags") if isinstance(t, str)),
            request_sme_review=bool(raw.get("request_sme_review", False)),
            assignees=tuple(a for a in _list_field(raw, "assignees") if isinstance(a, str)),
        )


def _list_field(raw: dict, key: str) -> list:
    value = raw.get(key)
    return value if isinstance(value, list) else []
