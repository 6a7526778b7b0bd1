"""
Inbox Workflow Orchestrator
===========================

Outermost coordination layer of the review console.

Holds filters, the open detail item and the acting user, and routes every
user intent through the gateway and back into the synchronizer. Failures
are turned into `Notice` values; nothing raised by the network reaches
the caller.
"""

import asyncio
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence

from src.config import ActionKind, DEFAULT_TAG_FILTER, settings
from src.inbox.application.drafts import DraftStore
from src.inbox.application.gateway import InboxActionGateway
from src.inbox.application.results import ActionOutcome, ActionResult, BulkResult
from src.inbox.application.synchronizer import ListSynchronizer, SyncReport
from src.inbox.domain import (
    Actor,
    EditableCitationRow,
    InboxItem,
    ManualFAQDraft,
    WorkflowPolicy,
)
from src.shared.infrastructure.concurrency import Debouncer
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class InboxFilters:
    """List filters; empty values are not sent."""
    ref: Optional[str] = None
    tag: Optional[str] = DEFAULT_TAG_FILTER
    q_hash: Optional[str] = None
    search: Optional[str] = None

    def to_query(self) -> Dict[str, str]:
        query = {}
        for key in ("ref", "tag", "q_hash", "search"):
            value = getattr(self, key)
            if value and value.strip():
                query[key] = value.strip()
        return query


@dataclass(frozen=True)
class Notice:
    """User-facing notification."""
    level: str          # success | error | info
    message: str

    @classmethod
    def for_outcome(cls, outcome: ActionOutcome, message: str) -> "Notice":
        if outcome == ActionOutcome.SUCCESS:
            return cls("success", message)
        if outcome == ActionOutcome.NOOP:
            return cls("info", message)
        return cls("error", message)


class WorkflowOrchestrator:
    """
    Ties filters, selection, detail view, gateway and synchronizer together.

    Usage:
        orchestrator = WorkflowOrchestrator(gateway, actor)
        await orchestrator.start()
        result = await orchestrator.approve("inbox-1", wants_faq=True)
    """

    def __init__(
        self,
        gateway: InboxActionGateway,
        actor: Actor,
        synchronizer: Optional[ListSynchronizer] = None,
        draft_store: Optional[DraftStore] = None,
        refresh_debounce_ms: int = settings.refresh_debounce_ms,
        search_debounce_ms: int = settings.search_debounce_ms
    ):
        self._gateway = gateway
        self.actor = actor
        self.synchronizer = synchronizer or ListSynchronizer(gateway)
        self._drafts = draft_store
        self._filters = InboxFilters()
        self._current: Optional[InboxItem] = None
        self._notices: List[Notice] = []

        self._refresh_debouncer = Debouncer(
            self.refresh, delay_seconds=refresh_debounce_ms / 1000, name="inbox-refresh"
        )
        self._search_debouncer = Debouncer(
            self._apply_search, delay_seconds=search_debounce_ms / 1000, name="inbox-search"
        )

    # ---------- State ----------

    @property
    def filters(self) -> InboxFilters:
        return self._filters

    @property
    def items(self):
        return self.synchronizer.snapshot()

    @property
    def current_item(self) -> Optional[InboxItem]:
        return self._current

    @property
    def selected_ids(self):
        return self.synchronizer.selected_ids

    @property
    def notices(self) -> List[Notice]:
        return list(self._notices)

    @property
    def last_notice(self) -> Optional[Notice]:
        return self._notices[-1] if self._notices else None

    def available_actions(self, item_id: str) -> List[str]:
        """Actions to offer the current actor for one item."""
        item = self._lookup(item_id)
        if item is None:
            return []
        return WorkflowPolicy.available_actions(item, self.actor, self._gateway.faq_creation_enabled)

    # ---------- Listing ----------

    async def start(self) -> SyncReport:
        """Initial load with the default filters."""
        return await self.refresh()

    async def refresh(self) -> SyncReport:
        report = await self.synchronizer.refresh(self._filters.to_query())
        if not report.ok:
            self._notify(Notice("error", report.message or "Could not load the inbox."))
        return report

    def request_refresh(self) -> asyncio.Task:
        """Debounced refresh; a burst of calls results in one load."""
        return self._refresh_debouncer.trigger()

    async def load_more(self, status: Optional[str] = None) -> SyncReport:
        report = await self.synchronizer.load_more(status)
        if report.outcome not in (ActionOutcome.SUCCESS, ActionOutcome.NOOP):
            self._notify(Notice("error", report.message or "Could not load more items."))
        return report

    async def apply_filters(self, **changes: Optional[str]) -> SyncReport:
        """
        Change one or more filters and reload.

        Args:
            **changes: Any of ref, tag, q_hash, search

        Returns:
            SyncReport from the reload
        """
        unknown = set(changes) - {"ref", "tag", "q_hash", "search"}
        if unknown:
            raise ValueError(f"Unknown inbox filters: {sorted(unknown)}")
        self._search_debouncer.cancel()
        self._filters = replace(self._filters, **changes)
        return await self.refresh()

    async def reset_filters(self) -> SyncReport:
        self._search_debouncer.cancel()
        self._filters = InboxFilters()
        return await self.refresh()

    def set_search_text(self, text: str) -> asyncio.Task:
        """Debounced free-text search."""
        return self._search_debouncer.trigger(text)

    async def _apply_search(self, text: str) -> SyncReport:
        self._filters = replace(self._filters, search=text)
        return await self.refresh()

    # ---------- Detail ----------

    async def open_item(self, item_id: str) -> Optional[InboxItem]:
        """
        Load an item's detail and make it current.

        A response overtaken by a newer open of the same id is ignored.
        """
        result = await self.synchronizer.load_detail(item_id)
        if result is None:
            return self._current
        if result.ok:
            self._current = result.data
            return self._current
        if result.outcome == ActionOutcome.NOT_FOUND and self._current and self._current.id == item_id:
            self._current = None
        self._notify(Notice.for_outcome(result.outcome, result.message))
        return None

    def close_item(self) -> None:
        self._current = None

    # ---------- Selection ----------

    def toggle_selection(self, item_id: str) -> bool:
        return self.synchronizer.toggle_selection(item_id)

    def select_all(self):
        return self.synchronizer.select_all()

    def clear_selection(self) -> None:
        self.synchronizer.clear_selection()

    # ---------- Single-item actions ----------

    async def attach_source(self, item_id: str, rows: Sequence[EditableCitationRow]) -> ActionResult:
        item = self._lookup(item_id)
        if item is None:
            return self._missing(item_id, ActionKind.ATTACH_SOURCE)
        result = await self._gateway.attach_source(item, self.actor, rows)
        return await self._finish(result)

    async def request_review(
        self,
        item_id: str,
        reason: str,
        assignee_ids: Sequence[str]
    ) -> ActionResult:
        item = self._lookup(item_id)
        if item is None:
            return self._missing(item_id, ActionKind.REQUEST_REVIEW)
        result = await self._gateway.request_review(item, self.actor, reason, assignee_ids)
        return await self._finish(result)

    async def approve(
        self,
        item_id: str,
        wants_faq: bool = False,
        answer: Optional[str] = None,
        title: Optional[str] = None,
        rows: Optional[Sequence[EditableCitationRow]] = None
    ) -> ActionResult:
        item = self._lookup(item_id)
        if item is None:
            return self._missing(item_id, ActionKind.APPROVE)
        result = await self._gateway.approve(
            item, self.actor, wants_faq=wants_faq, answer=answer, title=title, rows=rows
        )
        return await self._finish(result)

    async def convert_to_faq(
        self,
        item_id: str,
        answer: Optional[str] = None,
        title: Optional[str] = None,
        rows: Optional[Sequence[EditableCitationRow]] = None
    ) -> ActionResult:
        item = self._lookup(item_id)
        if item is None:
            return self._missing(item_id, ActionKind.CONVERT_TO_FAQ)
        result = await self._gateway.convert_to_faq(item, self.actor, answer=answer, title=title, rows=rows)
        return await self._finish(result)

    async def reject(self, item_id: str, note: Optional[str] = None) -> ActionResult:
        item = self._lookup(item_id)
        if item is None:
            return self._missing(item_id, ActionKind.REJECT)
        return await self._finish(await self._gateway.reject(item, self.actor, note))

    async def mark_reviewed(self, item_id: str, note: Optional[str] = None) -> ActionResult:
        item = self._lookup(item_id)
        if item is None:
            return self._missing(item_id, ActionKind.MARK_REVIEWED)
        return await self._finish(await self._gateway.mark_reviewed(item, self.actor, note))

    async def dismiss(self, item_id: str, reason: Optional[str] = None) -> ActionResult:
        item = self._lookup(item_id)
        if item is None:
            return self._missing(item_id, ActionKind.DISMISS)
        return await self._finish(await self._gateway.dismiss(item, self.actor, reason))

    # ---------- Bulk actions ----------

    async def bulk_approve(self, as_faq: bool = False) -> BulkResult:
        result = await self._gateway.bulk_approve(self.synchronizer.selected_ids, self.actor, as_faq=as_faq)
        return self._finish_bulk(result)

    async def bulk_reject(self) -> BulkResult:
        result = await self._gateway.bulk_reject(self.synchronizer.selected_ids, self.actor)
        return self._finish_bulk(result)

    # ---------- Manual FAQ ----------

    def load_draft(self) -> ManualFAQDraft:
        """Stored draft, or a fresh one."""
        if self._drafts is None:
            return ManualFAQDraft()
        return self._drafts.load() or ManualFAQDraft()

    def save_draft(self, draft: ManualFAQDraft) -> None:
        if self._drafts is not None:
            self._drafts.save(draft)

    def discard_draft(self) -> None:
        if self._drafts is not None:
            self._drafts.clear()

    async def create_manual_faq(self, draft: ManualFAQDraft) -> ActionResult:
        """Submit a manual FAQ; the stored draft is cleared and the list reloaded on success."""
        result = await self._gateway.create_manual_faq(draft, self.actor)
        self._notify(Notice.for_outcome(result.outcome, result.message))
        if result.ok:
            self.discard_draft()
            await self.synchronizer.refresh(self._filters.to_query())
        return result

    async def close(self) -> None:
        """Drop any pending debounced work."""
        self._refresh_debouncer.cancel()
        self._search_debouncer.cancel()

    # ---------- Internals ----------

    def _lookup(self, item_id: str) -> Optional[InboxItem]:
        item = self.synchronizer.get(item_id)
        if item is None and self._current is not None and self._current.id == item_id:
            item = self._current
        return item

    def _missing(self, item_id: str, action: str) -> ActionResult:
        logger.info("Inbox action on unknown item", extra={"ref_id": item_id, "action": action})
        message = "This item is no longer in the inbox. Refresh to see the latest list."
        self._notify(Notice("error", message))
        return ActionResult(
            action=action, item_id=item_id, outcome=ActionOutcome.NOT_FOUND,
            message=message, network_attempted=False,
        )

    async def _finish(self, result: ActionResult) -> ActionResult:
        refreshed = await self.synchronizer.apply_result(result)
        if self._current is not None and self._current.id == result.item_id:
            if result.outcome == ActionOutcome.NOT_FOUND or result.is_terminal_success:
                self._current = None
            elif refreshed is not None:
                self._current = refreshed
        self._notify(Notice.for_outcome(result.outcome, result.message))
        return result

    def _finish_bulk(self, result: BulkResult) -> BulkResult:
        message = self.synchronizer.apply_bulk_result(result)
        if self._current is not None and self._current.id in result.succeeded_ids:
            self._current = None
        level = "success" if result.outcome == ActionOutcome.SUCCESS and not result.failure_count else "error"
        if result.outcome == ActionOutcome.NOOP:
            level = "info"
        self._notify(Notice(level, message))
        return result

    def _notify(self, notice: Notice) -> None:
        if notice.message:
            self._notices.append(notice)
            # Keep the most recent notices only
            del self._notices[:-20]
