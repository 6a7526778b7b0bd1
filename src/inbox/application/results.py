"""
Inbox Action Results
====================

Uniform result types returned by the gateway so the synchronizer and the
orchestrator can react without knowing action-specific detail.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple

from src.config import TERMINAL_STATUSES
from src.inbox.domain import CitationRowError, InboxItem


class ActionOutcome(str, Enum):
    """Classification of a workflow action's result."""
    SUCCESS = "success"
    VALIDATION = "validation"     # client gate or HTTP 400
    PERMISSION = "permission"     # HTTP 401/403 or local ownership check
    CONFLICT = "conflict"         # HTTP 409 or action not offered
    NOT_FOUND = "not_found"       # HTTP 404
    FAILURE = "failure"           # other status or transport error
    NOOP = "noop"                 # item already terminal, nothing sent

    @classmethod
    def from_status(cls, status_code: int) -> "ActionOutcome":
        if 200 <= status_code < 300:
            return cls.SUCCESS
        if status_code == 400 or status_code == 422:
            return cls.VALIDATION
        if status_code in (401, 403):
            return cls.PERMISSION
        if status_code == 409:
            return cls.CONFLICT
        if status_code == 404:
            return cls.NOT_FOUND
        return cls.FAILURE


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one single-item workflow action."""
    action: str
    item_id: str
    outcome: ActionOutcome
    message: str = ""
    row_errors: List[CitationRowError] = field(default_factory=list)
    general_error: Optional[str] = None
    conflict_id: Optional[str] = None
    status_code: Optional[int] = None
    # Status the item reached when the action succeeded (None: unchanged)
    new_status: Optional[str] = None
    data: Any = None
    network_attempted: bool = True

    @property
    def ok(self) -> bool:
        return self.outcome == ActionOutcome.SUCCESS

    @property
    def is_terminal_success(self) -> bool:
        return self.ok and self.new_status in TERMINAL_STATUSES

    @property
    def needs_resync(self) -> bool:
        """Server disagreed with our view of the item; refresh before retrying."""
        return self.outcome in (ActionOutcome.CONFLICT, ActionOutcome.PERMISSION) and self.network_attempted


@dataclass(frozen=True)
class BulkFailure:
    """Per-id failure reported by a bulk endpoint."""
    id: str
    message: str = ""


@dataclass(frozen=True)
class BulkResult:
    """Outcome of a bulk approve/reject over a selected id set."""
    action: str
    selected_ids: Tuple[str, ...]
    failures: Tuple[BulkFailure, ...] = ()
    outcome: ActionOutcome = ActionOutcome.SUCCESS
    message: str = ""

    @property
    def failed_ids(self) -> frozenset:
        return frozenset(f.id for f in self.failures)

    @property
    def succeeded_ids(self) -> Tuple[str, ...]:
        """Selected minus failed, in selection order. Empty if the request failed."""
        if self.outcome != ActionOutcome.SUCCESS:
            return ()
        failed = self.failed_ids
        return tuple(i for i in self.selected_ids if i not in failed)

    @property
    def failure_count(self) -> int:
        if self.outcome != ActionOutcome.SUCCESS:
            return len(self.selected_ids)
        return len(self.failed_ids & set(self.selected_ids))

    @staticmethod
    def parse_failures(payload: Any) -> Tuple[BulkFailure, ...]:
        """Read `{"errors": [{"id", "message"}]}`; anything else means no failures."""
        if not isinstance(payload, dict) or not isinstance(payload.get("errors"), list):
            return ()
        failures = []
        for entry in payload["errors"]:
            if isinstance(entry, dict) and entry.get("id") not in (None, ""):
                message = entry.get("message") or entry.get("error") or ""
                failures.append(BulkFailure(id=str(entry["id"]), message=str(message)))
            elif isinstance(entry, str) and entry:
                failures.append(BulkFailure(id=entry))
        return tuple(failures)


@dataclass(frozen=True)
class ListPage:
    """One cursor page of inbox items."""
    items: List[InboxItem]
    next_cursor: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Any) -> "ListPage":
        """
        Normalise a list response.

        Accepts {"items": [...]}, {"data": {"items": [...]}} and a bare list.
        Unparseable entries are skipped.
        """
        raw_items = None
        if isinstance(payload, dict):
            if isinstance(payload.get("items"), list):
                raw_items = payload["items"]
            elif isinstance(payload.get("data"), dict) and isinstance(payload["data"].get("items"), list):
                raw_items = payload["data"]["items"]
        elif isinstance(payload, list):
            raw_items = payload

        if not raw_items:
            return cls(items=[], next_cursor=None)

        items = [item for item in (InboxItem.from_api(raw) for raw in raw_items) if item]
        next_cursor = None
        if isinstance(payload, dict):
            cursor = payload.get("next_cursor")
            if isinstance(cursor, str) and cursor:
                next_cursor = cursor
        return cls(items=items, next_cursor=next_cursor)
