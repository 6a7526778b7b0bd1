"""
Inbox API Error Normalisation
=============================

One canonical error type for everything the Admin API can send back.

Accepted envelopes:
- Structured: {"detail": {"error": {"code", "message", "details"?, "fields": [...]}}}
- Flat:       {"error", "details"?, "message"?, "qa_pair_id"?}
- FastAPI:    {"detail": "text"}
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

from src.inbox.domain import CitationRowError


USER_FRIENDLY_MESSAGES = {
    "invalid_doc_id": "Invalid document ID format",
    "doc_not_found": "Document not found",
    "document_not_accessible": "This document is not accessible (may be deleted or superseded)",
    "unauthorized": "You are not authenticated. Please sign in.",
    "forbidden": "You do not have permission to perform this action",
    "duplicate_faq_exists": "This FAQ already exists",
    "duplicate_inbox_item": "This item already exists",
    "citations_required": "Attach at least one citation before promoting.",
}

CONFLICT_ID_KEYS = ("qa_pair_id", "conflicting_id", "faq_id", "existing_id")


@dataclass(frozen=True)
class FieldError:
    """Server-side validation message for one field, optionally row-indexed."""
    field: str
    message: str
    index: Optional[int] = None


@dataclass(frozen=True)
class ApiError:
    """Normalised Admin API error."""
    status_code: int
    code: str
    message: str
    details: Optional[str] = None
    fields: Tuple[FieldError, ...] = field(default_factory=tuple)
    conflict_id: Optional[str] = None

    @property
    def user_message(self) -> str:
        """Message suitable for a notification."""
        message = USER_FRIENDLY_MESSAGES.get(self.code, self.message)
        if self.details and self.details not in message:
            message = f"{message}. {self.details}"
        return message

    @classmethod
    def from_response(cls, status_code: int, payload: Any) -> "ApiError":
        """
        Build from a status code and whatever body came back.

        Args:
            status_code: HTTP status
            payload: Decoded JSON body (may be None, a string, or malformed)

        Returns:
            ApiError
        """
        default_message = f"Request failed ({status_code})"
        code = "unknown_error"
        message = default_message
        details = None
        fields: List[FieldError] = []
        conflict_id = None

        if isinstance(payload, dict):
            detail = payload.get("detail")
            structured = detail.get("error") if isinstance(detail, dict) else None

            if isinstance(structured, dict):
                code = _str_or(structured.get("code"), "api_error")
                message = _str_or(structured.get("message"), default_message)
                details = _str_or(structured.get("details"), None) or _str_or(payload.get("details"), None)
                fields = _parse_fields(structured.get("fields"))
                conflict_id = _find_conflict_id(structured) or _find_conflict_id(detail)
            elif payload.get("error") is not None:
                error = payload.get("error")
                if isinstance(error, dict):
                    code = _str_or(error.get("code"), "api_error")
                    message = _str_or(error.get("message"), default_message)
                    fields = _parse_fields(error.get("fields"))
                else:
                    code = _str_or(error, "api_error")
                    message = (
                        _str_or(payload.get("message"), None)
                        or _str_or(payload.get("details"), None)
                        or code
                    )
                details = _str_or(payload.get("details"), None)
                if not fields:
                    fields = _parse_fields(payload.get("fields"))
            elif isinstance(detail, str) and detail:
                code = "api_error"
                message = detail
            elif payload.get("message") or payload.get("details"):
                code = "api_error"
                message = _str_or(payload.get("message"), None) or _str_or(payload.get("details"), default_message)
                details = _str_or(payload.get("details"), None)

            if conflict_id is None:
                conflict_id = _find_conflict_id(payload)
        elif isinstance(payload, str) and payload.strip():
            message = payload.strip()

        return cls(
            status_code=status_code,
            code=code,
            message=message,
            details=details,
            fields=tuple(fields),
            conflict_id=conflict_id,
        )


def _str_or(value: Any, default: Optional[str]) -> Optional[str]:
    return value if isinstance(value, str) and value else default


def _find_conflict_id(source: Any) -> Optional[str]:
    if not isinstance(source, dict):
        return None
    for key in CONFLICT_ID_KEYS:
        value = source.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _parse_fields(raw: Any) -> List[FieldError]:
    if not isinstance(raw, list):
        return []
    fields = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        message = (
            _str_or(entry.get("message"), None)
            or _str_or(entry.get("detail"), None)
            or _str_or(entry.get("error"), None)
        )
        if not message:
            continue
        index = entry.get("index")
        if isinstance(index, bool) or not isinstance(index, int):
            index = None
        fields.append(FieldError(
            field=_str_or(entry.get("field"), "") or "",
            message=message,
            index=index,
        ))
    return fields


_FIELD_KEYS = {
    "doc_id": "doc_id",
    "docId": "doc_id",
    "page": "page",
    "span.start": "span_start",
    "span_start": "span_start",
    "spanStart": "span_start",
    "span.end": "span_end",
    "span_end": "span_end",
    "spanEnd": "span_end",
    "span.text": "span_text",
    "span_text": "span_text",
    "spanText": "span_text",
}


def parse_validation_errors(
    count: int,
    error: ApiError,
    row_indexes: Optional[Sequence[int]] = None
) -> Tuple[List[CitationRowError], Optional[str]]:
    """
    Map server field errors onto editor rows.

    Server indexes refer to the submitted citation list, which skips blank
    and dropped rows; `row_indexes` translates them back to editor positions
    (identity when omitted). Entries that resolve to a row land there
    (unknown field names go to `root`); everything else is folded into one
    general message.

    Returns:
        Tuple of (row errors, general message or None)
    """
    rows = [CitationRowError() for _ in range(count)]
    general: Optional[str] = None
    positions = list(row_indexes) if row_indexes is not None else list(range(count))

    if error.fields:
        for entry in error.fields:
            target = None
            if entry.index is not None and 0 <= entry.index < len(positions):
                target = positions[entry.index]
            if target is None or not 0 <= target < count:
                general = f"{general}; {entry.message}" if general else entry.message
                continue
            key = _FIELD_KEYS.get(entry.field, "root")
            setattr(rows[target], key, entry.message)
    else:
        general = error.user_message

    return rows, general
