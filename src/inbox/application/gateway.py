"""
Inbox Action Gateway
====================

Single entry point for every inbox mutation.

For each action the gateway:
1. Applies the local guards (terminal no-op, offered-for-state, ownership)
2. Validates user input (citations, review reason, manual draft)
3. Serialises the minimal payload and calls the Inbox API
4. Classifies the response into an `ActionResult`

Nothing is sent when a local guard or validation fails.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from src.config import ActionKind, InboxStatus, settings
from src.core import (
    ConflictException,
    InboxAPIException,
    InboxAPIResponseError,
    PermissionDeniedException,
    ValidationException,
)
from src.inbox.application.errors import ApiError, parse_validation_errors
from src.inbox.application.results import ActionOutcome, ActionResult, BulkResult, ListPage
from src.inbox.domain import (
    Actor,
    CitationRowError,
    CitationValidationResult,
    CitationValidator,
    EditableCitationRow,
    InboxItem,
    ManualFAQDraft,
    PromoteIntent,
    ReviewRequest,
    SpanTextPolicy,
    WorkflowPolicy,
    resolve_approval_intent,
)
from src.shared.infrastructure.logging import get_logger, log_event

logger = get_logger(__name__)


# ========== External Interfaces ==========

class IInboxAPI(ABC):
    """
    Interface for the upstream Admin API that owns inbox items.

    Implementations return decoded JSON bodies and raise
    `InboxAPIResponseError` for non-2xx answers and `InboxAPIException`
    when no usable response arrived.
    """

    @abstractmethod
    async def list(
        self,
        status: str,
        cursor: Optional[str] = None,
        filters: Optional[Dict[str, str]] = None,
        limit: int = 25
    ) -> Any:
        """Fetch one cursor page of items in a status bucket."""

    @abstractmethod
    async def get(self, item_id: str) -> Any:
        """Fetch the authoritative copy of one item."""

    @abstractmethod
    async def attach_source(self, item_id: str, payload: dict) -> Any:
        """Replace an item's citations."""

    @abstractmethod
    async def approve(self, item_id: str, payload: dict) -> Any:
        """Approve without creating an FAQ entry."""

    @abstractmethod
    async def promote(self, item_id: str, payload: dict) -> Any:
        """Promote into the verified knowledge base."""

    @abstractmethod
    async def reject(self, item_id: str, payload: dict) -> Any:
        """Reject an item."""

    @abstractmethod
    async def dismiss(self, item_id: str, payload: dict) -> Any:
        """Dismiss a review request."""

    @abstractmethod
    async def mark_reviewed(self, item_id: str, payload: dict) -> Any:
        """Close a review request as reviewed."""

    @abstractmethod
    async def convert_to_faq(self, item_id: str, payload: dict) -> Any:
        """Turn a review request into an FAQ entry."""

    @abstractmethod
    async def request_review(self, item_id: str, payload: dict) -> Any:
        """Assign SMEs to an item."""

    @abstractmethod
    async def bulk_approve(self, payload: dict) -> Any:
        """Approve many items in one request."""

    @abstractmethod
    async def bulk_reject(self, payload: dict) -> Any:
        """Reject many items in one request."""

    @abstractmethod
    async def create_manual(self, payload: dict) -> Any:
        """Create a staff-authored inbox item."""


# ========== Messages ==========

SUCCESS_MESSAGES = {
    ActionKind.ATTACH_SOURCE: "Citations saved.",
    ActionKind.REQUEST_REVIEW: "Review requested.",
    ActionKind.APPROVE: "Item approved.",
    ActionKind.PROMOTE: "Promoted to FAQ.",
    ActionKind.CONVERT_TO_FAQ: "Converted to FAQ.",
    ActionKind.REJECT: "Item rejected.",
    ActionKind.MARK_REVIEWED: "Marked as reviewed.",
    ActionKind.DISMISS: "Review request dismissed.",
    ActionKind.CREATE_MANUAL: "FAQ created.",
}

# Actions whose success is reported back to whoever asked for the review
NOTIFYING_ACTIONS = {
    ActionKind.APPROVE, ActionKind.PROMOTE, ActionKind.CONVERT_TO_FAQ,
    ActionKind.REJECT, ActionKind.MARK_REVIEWED, ActionKind.DISMISS,
}

REQUESTER_NOTICE = "The requester will be notified."
EVIDENCE_REQUIRED_MESSAGE = "Attach at least one citation before promoting."
TRANSPORT_FAILURE_MESSAGE = "Could not reach the inbox service. Please try again."
UNREADABLE_RESPONSE_MESSAGE = "The inbox service returned an unreadable response."
TERMINAL_NOOP_MESSAGE = "This item is already {status}; nothing to do."

_OUTCOME_DEFAULT_MESSAGES = {
    ActionOutcome.PERMISSION: "You do not have permission to perform this action",
    ActionOutcome.CONFLICT: "This item was changed elsewhere. Refresh and try again.",
    ActionOutcome.NOT_FOUND: "This item no longer exists.",
}


def success_message(action: str, item: Optional[InboxItem] = None) -> str:
    """Success text, with the requester notice when someone is waiting on it."""
    message = SUCCESS_MESSAGES.get(action, "Done.")
    if item is not None and item.has_requester and action in NOTIFYING_ACTIONS:
        message = f"{message} {REQUESTER_NOTICE}"
    return message


# ========== Gateway ==========

class InboxActionGateway:
    """
    Runs workflow actions against the Inbox API.

    Every public coroutine returns an `ActionResult` (or `BulkResult`);
    API and transport errors never propagate to the caller.
    """

    def __init__(
        self,
        api: IInboxAPI,
        faq_creation_enabled: bool = settings.faq_creation_enabled,
        allow_empty_citations: bool = settings.allow_empty_citations,
        page_limit: int = settings.inbox_page_limit
    ):
        self._api = api
        self.faq_creation_enabled = faq_creation_enabled
        self.allow_empty_citations = allow_empty_citations
        self.page_limit = page_limit

    # ---------- Reads ----------

    async def list_page(
        self,
        status: str,
        cursor: Optional[str] = None,
        filters: Optional[Dict[str, str]] = None
    ) -> ActionResult:
        """Fetch one page; `data` holds a `ListPage` on success."""
        return await self._execute(
            "list",
            status,
            lambda: self._api.list(status, cursor=cursor, filters=filters, limit=self.page_limit),
            parse=ListPage.from_api,
            log_events=False,
        )

    async def fetch_item(self, item_id: str) -> ActionResult:
        """Fetch the authoritative copy; `data` holds an `InboxItem` on success."""
        result = await self._execute(
            "get",
            item_id,
            lambda: self._api.get(item_id),
            parse=_parse_item,
            log_events=False,
        )
        if result.ok and result.data is None:
            return _result(
                "get", item_id, ActionOutcome.FAILURE,
                message="The inbox service returned an unreadable item.",
            )
        return result

    # ---------- Single-item actions ----------

    async def attach_source(
        self,
        item: InboxItem,
        actor: Actor,
        rows: Sequence[EditableCitationRow]
    ) -> ActionResult:
        """
        Replace the item's citations.

        Args:
            item: Current view of the item
            actor: Acting user
            rows: Editor rows (blank rows are ignored)

        Returns:
            ActionResult; row errors line up with `rows` on validation failure
        """
        action = ActionKind.ATTACH_SOURCE
        blocked = self._guard(item, actor, action)
        if blocked:
            return blocked

        citations = CitationValidator.validate(
            list(rows), allow_empty=self.allow_empty_citations,
            span_text_policy=SpanTextPolicy.REJECT,
        )
        if not citations.is_valid:
            return _validation_result(action, item.id, citations)

        payload = {"citations": citations.payload()}
        return await self._execute(
            action, item.id,
            lambda: self._api.attach_source(item.id, payload),
            item=item, row_count=len(rows), row_indexes=citations.row_indexes,
        )

    async def request_review(
        self,
        item: InboxItem,
        actor: Actor,
        reason: str,
        assignee_ids: Sequence[str]
    ) -> ActionResult:
        """Route a pending, unassigned item to one or more SMEs."""
        action = ActionKind.REQUEST_REVIEW
        blocked = self._guard(item, actor, action)
        if blocked:
            return blocked

        try:
            request = ReviewRequest(reason=reason or "", assignee_ids=tuple(assignee_ids)).validate()
        except ValidationException as e:
            return _result(
                action, item.id, ActionOutcome.VALIDATION,
                message=e.message, general_error=e.message, network_attempted=False,
            )

        return await self._execute(
            action, item.id,
            lambda: self._api.request_review(item.id, request.to_payload()),
            item=item, new_status=InboxStatus.NEEDS_REVIEW,
        )

    async def approve(
        self,
        item: InboxItem,
        actor: Actor,
        wants_faq: bool = False,
        answer: Optional[str] = None,
        title: Optional[str] = None,
        rows: Optional[Sequence[EditableCitationRow]] = None
    ) -> ActionResult:
        """
        Approve an item, promoting it to an FAQ when requested and enabled.

        The approve/promote choice is resolved once here. Edited citation rows
        only travel with a promotion; a plain approve relies on the citations
        already stored on the item.

        Args:
            item: Current view of the item
            actor: Acting user
            wants_faq: Caller asked for an FAQ entry
            answer: Optional edited answer
            title: Optional FAQ title (promote only)
            rows: Optional edited citation rows (promote only)

        Returns:
            ActionResult
        """
        citations = None
        if rows is not None and self.faq_creation_enabled and wants_faq:
            citations = CitationValidator.validate(
                list(rows), allow_empty=self.allow_empty_citations,
                span_text_policy=SpanTextPolicy.REJECT,
            )

        intent = resolve_approval_intent(
            self.faq_creation_enabled, wants_faq,
            answer=answer, title=title, citations=citations,
        )

        blocked = self._guard(item, actor, intent.action)
        if blocked:
            return blocked

        if citations is not None and not citations.is_valid:
            return _validation_result(intent.action, item.id, citations)

        evidence = item.citations
        if isinstance(intent, PromoteIntent) and intent.citations is not None:
            evidence = intent.citations
        if not self.allow_empty_citations and not evidence:
            return _result(
                intent.action, item.id, ActionOutcome.VALIDATION,
                message=EVIDENCE_REQUIRED_MESSAGE, general_error=EVIDENCE_REQUIRED_MESSAGE,
                network_attempted=False,
            )

        payload = intent.to_payload()
        if isinstance(intent, PromoteIntent):
            send, new_status = self._api.promote, InboxStatus.PROMOTED
        else:
            send, new_status = self._api.approve, InboxStatus.APPROVED

        return await self._execute(
            intent.action, item.id,
            lambda: send(item.id, payload),
            item=item, new_status=new_status,
            row_count=len(rows) if citations is not None else 0,
            row_indexes=citations.row_indexes if citations is not None else None,
        )

    async def convert_to_faq(
        self,
        item: InboxItem,
        actor: Actor,
        answer: Optional[str] = None,
        title: Optional[str] = None,
        rows: Optional[Sequence[EditableCitationRow]] = None
    ) -> ActionResult:
        """Convert an active item straight into an FAQ entry."""
        action = ActionKind.CONVERT_TO_FAQ
        blocked = self._guard(item, actor, action)
        if blocked:
            return blocked

        payload: dict = {}
        evidence = item.citations
        row_indexes = None
        if rows is not None:
            citations = CitationValidator.validate(
                list(rows), allow_empty=self.allow_empty_citations,
                span_text_policy=SpanTextPolicy.REJECT,
            )
            if not citations.is_valid:
                return _validation_result(action, item.id, citations)
            payload["citations"] = citations.payload()
            evidence = citations.citations
            row_indexes = citations.row_indexes

        if not self.allow_empty_citations and not evidence:
            return _result(
                action, item.id, ActionOutcome.VALIDATION,
                message=EVIDENCE_REQUIRED_MESSAGE, general_error=EVIDENCE_REQUIRED_MESSAGE,
                network_attempted=False,
            )

        if answer and answer.strip():
            payload["answer"] = answer.strip()
        if title and title.strip():
            payload["title"] = title.strip()

        return await self._execute(
            action, item.id,
            lambda: self._api.convert_to_faq(item.id, payload),
            item=item, new_status=InboxStatus.PROMOTED,
            row_count=len(rows) if rows is not None else 0,
            row_indexes=row_indexes,
        )

    async def reject(self, item: InboxItem, actor: Actor, note: Optional[str] = None) -> ActionResult:
        action = ActionKind.REJECT
        blocked = self._guard(item, actor, action)
        if blocked:
            return blocked
        payload = _optional_text("note", note)
        return await self._execute(
            action, item.id, lambda: self._api.reject(item.id, payload),
            item=item, new_status=InboxStatus.REJECTED,
        )

    async def mark_reviewed(
        self,
        item: InboxItem,
        actor: Actor,
        note: Optional[str] = None
    ) -> ActionResult:
        action = ActionKind.MARK_REVIEWED
        blocked = self._guard(item, actor, action)
        if blocked:
            return blocked
        payload = _optional_text("note", note)
        return await self._execute(
            action, item.id, lambda: self._api.mark_reviewed(item.id, payload),
            item=item, new_status=InboxStatus.REVIEWED,
        )

    async def dismiss(self, item: InboxItem, actor: Actor, reason: Optional[str] = None) -> ActionResult:
        action = ActionKind.DISMISS
        blocked = self._guard(item, actor, action)
        if blocked:
            return blocked
        payload = _optional_text("reason", reason)
        return await self._execute(
            action, item.id, lambda: self._api.dismiss(item.id, payload),
            item=item, new_status=InboxStatus.DISMISSED,
        )

    # ---------- Bulk actions ----------

    async def bulk_approve(
        self,
        ids: Sequence[str],
        actor: Actor,
        as_faq: bool = False
    ) -> BulkResult:
        """Approve the selected ids in one request; `as_faq` only honoured when enabled."""
        payload_faq = bool(as_faq and self.faq_creation_enabled)
        return await self._bulk(
            ActionKind.BULK_APPROVE, ids, actor,
            lambda selected: self._api.bulk_approve({"ids": selected, "as_faq": payload_faq}),
        )

    async def bulk_reject(self, ids: Sequence[str], actor: Actor) -> BulkResult:
        """Reject the selected ids in one request."""
        return await self._bulk(
            ActionKind.BULK_REJECT, ids, actor,
            lambda selected: self._api.bulk_reject({"ids": selected}),
        )

    # ---------- Manual creation ----------

    async def create_manual_faq(self, draft: ManualFAQDraft, actor: Actor) -> ActionResult:
        """
        Submit a staff-authored FAQ.

        Over-long span text is truncated here rather than rejected. On
        success `data` holds the created item when the API returns one.
        """
        action = ActionKind.CREATE_MANUAL
        if not actor.can_curate:
            message = "Your role cannot create FAQ entries."
            log_event(logger, f"inbox.{action}.fail", reason="permission")
            return _result(action, "", ActionOutcome.PERMISSION, message=message, network_attempted=False)

        citations, form_messages = draft.validate()
        if form_messages or not citations.is_valid:
            general = "; ".join(m for m in form_messages + [citations.general_error or ""] if m)
            return ActionResult(
                action=action,
                item_id="",
                outcome=ActionOutcome.VALIDATION,
                message=general or "Fix the highlighted citation fields.",
                row_errors=citations.row_errors,
                general_error=general or None,
                network_attempted=False,
            )

        payload = draft.to_payload(citations)
        return await self._execute(
            action, "",
            lambda: self._api.create_manual(payload),
            parse=_parse_item, row_count=len(draft.rows), row_indexes=citations.row_indexes,
        )

    # ---------- Internals ----------

    def _guard(self, item: InboxItem, actor: Actor, action: str) -> Optional[ActionResult]:
        """Local checks that short-circuit before any network call."""
        if item.is_terminal:
            log_event(logger, f"inbox.{action}.fail", ref_id=item.id, reason="terminal", status=item.status)
            return _result(
                action, item.id, ActionOutcome.NOOP,
                message=TERMINAL_NOOP_MESSAGE.format(status=item.status),
                network_attempted=False,
            )
        try:
            WorkflowPolicy.ensure_allowed(item, actor, action, self.faq_creation_enabled)
        except ConflictException as e:
            log_event(logger, f"inbox.{action}.fail", ref_id=item.id, reason="not_offered")
            return _result(action, item.id, ActionOutcome.CONFLICT, message=e.message, network_attempted=False)
        except PermissionDeniedException as e:
            log_event(logger, f"inbox.{action}.fail", ref_id=item.id, reason="ownership")
            return _result(action, item.id, ActionOutcome.PERMISSION, message=e.message, network_attempted=False)
        return None

    async def _execute(
        self,
        action: str,
        item_id: str,
        call: Callable[[], Awaitable[Any]],
        item: Optional[InboxItem] = None,
        new_status: Optional[str] = None,
        row_count: int = 0,
        row_indexes: Optional[Sequence[int]] = None,
        parse: Optional[Callable[[Any], Any]] = None,
        log_events: bool = True
    ) -> ActionResult:
        """Run one API call and classify whatever comes back."""
        if log_events:
            log_event(logger, f"inbox.{action}.click", ref_id=item_id or None)

        try:
            body = await call()
        except InboxAPIResponseError as e:
            error = ApiError.from_response(e.status_code, e.payload)
            return self._classify_error(action, item_id, error, row_count, row_indexes)
        except InboxAPIException as e:
            log_event(
                logger, f"inbox.{action}.fail", logging.WARNING,
                ref_id=item_id or None, reason="transport", error=e.message,
            )
            return _result(action, item_id, ActionOutcome.FAILURE, message=TRANSPORT_FAILURE_MESSAGE)

        try:
            data = parse(body) if parse else body
        except (ValueError, TypeError, OverflowError) as e:
            log_event(
                logger, f"inbox.{action}.fail", logging.WARNING,
                ref_id=item_id or None, reason="unreadable_response", error=str(e),
            )
            return _result(action, item_id, ActionOutcome.FAILURE, message=UNREADABLE_RESPONSE_MESSAGE)

        if log_events:
            log_event(logger, f"inbox.{action}.success", ref_id=item_id or None, status=new_status)
        return ActionResult(
            action=action,
            item_id=item_id,
            outcome=ActionOutcome.SUCCESS,
            message=success_message(action, item),
            new_status=new_status,
            data=data,
            status_code=200,
        )

    def _classify_error(
        self,
        action: str,
        item_id: str,
        error: ApiError,
        row_count: int,
        row_indexes: Optional[Sequence[int]] = None
    ) -> ActionResult:
        outcome = ActionOutcome.from_status(error.status_code)

        row_errors: List[CitationRowError] = []
        general_error = None
        if outcome == ActionOutcome.VALIDATION:
            row_errors, general_error = parse_validation_errors(row_count, error, row_indexes)
            message = general_error or "Fix the highlighted citation fields."
        elif error.code == "unknown_error" and outcome in _OUTCOME_DEFAULT_MESSAGES:
            message = _OUTCOME_DEFAULT_MESSAGES[outcome]
        else:
            message = error.user_message

        log_event(
            logger, f"inbox.{action}.fail",
            logging.WARNING if outcome == ActionOutcome.FAILURE else logging.INFO,
            ref_id=item_id or None, reason=error.code, status=error.status_code, conflict_id=error.conflict_id,
        )

        return ActionResult(
            action=action,
            item_id=item_id,
            outcome=outcome,
            message=message,
            row_errors=row_errors,
            general_error=general_error,
            conflict_id=error.conflict_id,
            status_code=error.status_code,
        )

    async def _bulk(
        self,
        action: str,
        ids: Sequence[str],
        actor: Actor,
        call: Callable[[List[str]], Awaitable[Any]]
    ) -> BulkResult:
        selected = tuple(dict.fromkeys(i for i in ids if i))
        if not selected:
            return BulkResult(action=action, selected_ids=(), outcome=ActionOutcome.NOOP,
                              message="Nothing selected.")
        if not actor.can_curate:
            log_event(logger, f"inbox.{action}.fail", reason="permission", count=len(selected))
            return BulkResult(
                action=action, selected_ids=selected, outcome=ActionOutcome.PERMISSION,
                message="Your role cannot change inbox items.",
            )

        log_event(logger, f"inbox.{action}.click", count=len(selected))
        try:
            body = await call(list(selected))
        except InboxAPIResponseError as e:
            error = ApiError.from_response(e.status_code, e.payload)
            log_event(
                logger, f"inbox.{action}.fail", logging.WARNING,
                reason=error.code, status=error.status_code, count=len(selected),
            )
            return BulkResult(
                action=action, selected_ids=selected,
                outcome=ActionOutcome.from_status(error.status_code),
                message=error.user_message,
            )
        except InboxAPIException as e:
            log_event(
                logger, f"inbox.{action}.fail", logging.WARNING,
                reason="transport", error=e.message, count=len(selected),
            )
            return BulkResult(
                action=action, selected_ids=selected, outcome=ActionOutcome.FAILURE,
                message=TRANSPORT_FAILURE_MESSAGE,
            )

        failures = BulkResult.parse_failures(body)
        result = BulkResult(action=action, selected_ids=selected, failures=failures)
        verb = "approved" if action == ActionKind.BULK_APPROVE else "rejected"
        succeeded = len(result.succeeded_ids)
        if result.failure_count:
            message = f"{succeeded} {verb}, {result.failure_count} failed."
            log_event(
                logger, f"inbox.{action}.fail", logging.WARNING,
                reason="partial", count=len(selected), failed=result.failure_count,
            )
        else:
            message = f"{succeeded} item{'s' if succeeded != 1 else ''} {verb}."
            log_event(logger, f"inbox.{action}.success", count=succeeded)

        return BulkResult(
            action=action, selected_ids=selected, failures=failures, message=message,
        )


def _result(
    action: str,
    item_id: str,
    outcome: ActionOutcome,
    message: str = "",
    general_error: Optional[str] = None,
    network_attempted: bool = True
) -> ActionResult:
    return ActionResult(
        action=action,
        item_id=item_id,
        outcome=outcome,
        message=message,
        general_error=general_error,
        network_attempted=network_attempted,
    )


def _validation_result(action: str, item_id: str, citations: CitationValidationResult) -> ActionResult:
    return ActionResult(
        action=action,
        item_id=item_id,
        outcome=ActionOutcome.VALIDATION,
        message=citations.general_error or "Fix the highlighted citation fields.",
        row_errors=citations.row_errors,
        general_error=citations.general_error,
        network_attempted=False,
    )


def _optional_text(key: str, value: Optional[str]) -> dict:
    if value and value.strip():
        return {key: value.strip()}
    return {}


def _parse_item(body: Any) -> Optional[InboxItem]:
    """Read an item from a bare or `{"item": ...}` / `{"data": ...}` wrapped body."""
    if isinstance(body, dict):
        for key in ("item", "data"):
            if isinstance(body.get(key), dict):
                return InboxItem.from_api(body[key])
    return InboxItem.from_api(body)
