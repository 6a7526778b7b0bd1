"""
Inbox List Synchronizer
=======================

Owns the client-visible collection of active inbox items.

The collection holds `pending` and `needs_review` items only and is
mutated exclusively here; everything else reads `snapshot()` and hands
action results back through `apply_result` / `apply_bulk_result`.
"""

import asyncio
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from src.config import ACTIVE_STATUSES, ActionKind
from src.inbox.application.gateway import InboxActionGateway
from src.inbox.application.results import ActionOutcome, ActionResult, BulkResult, ListPage
from src.inbox.domain import InboxItem
from src.shared.infrastructure.concurrency import RequestFence
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

# Successful actions whose result must be confirmed with a fresh copy
_NON_TERMINAL_ACTIONS = {ActionKind.ATTACH_SOURCE, ActionKind.REQUEST_REVIEW}


@dataclass(frozen=True)
class SyncReport:
    """Result of a list load."""
    outcome: ActionOutcome
    message: str = ""
    added: int = 0
    superseded: bool = False

    @property
    def ok(self) -> bool:
        return self.outcome == ActionOutcome.SUCCESS


class ListSynchronizer:
    """
    Cursor-paginated, de-duplicated view of active inbox items.

    Pages are fetched per status bucket. Items already present are never
    overwritten by a later page, so local edits survive `load_more()`.
    """

    def __init__(
        self,
        gateway: InboxActionGateway,
        statuses: Sequence[str] = tuple(ACTIVE_STATUSES)
    ):
        self._gateway = gateway
        self.statuses = tuple(statuses)
        self._items: "OrderedDict[str, InboxItem]" = OrderedDict()
        self._cursors: Dict[str, Optional[str]] = {}
        self._selection: "OrderedDict[str, None]" = OrderedDict()
        self._stale: set = set()
        self._filters: Dict[str, str] = {}
        self._fence = RequestFence()
        # Bumped by every refresh; page loads from an older generation are dropped
        self._generation = 0

    # ---------- Read access ----------

    def snapshot(self) -> Tuple[InboxItem, ...]:
        """Immutable view of the active collection, in display order."""
        return tuple(self._items.values())

    def get(self, item_id: str) -> Optional[InboxItem]:
        return self._items.get(item_id)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(self._items)

    @property
    def has_more(self) -> bool:
        return any(cursor for cursor in self._cursors.values())

    @property
    def filters(self) -> Dict[str, str]:
        return dict(self._filters)

    def needs_resync(self, item_id: str) -> bool:
        """Server disagreed with our last-known copy of this item."""
        return item_id in self._stale

    @property
    def stale_ids(self) -> Tuple[str, ...]:
        return tuple(i for i in self._items if i in self._stale)

    # ---------- Loading ----------

    async def refresh(self, filters: Optional[Dict[str, str]] = None) -> SyncReport:
        """
        Replace the collection with the first page of every bucket.

        Selection is cleared up front. A failed load keeps the previous
        collection; a load superseded by a newer refresh is discarded.
        """
        if filters is not None:
            self._filters = dict(filters)
        self.clear_selection()

        self._generation += 1
        generation = self._generation
        results = await asyncio.gather(*(
            self._gateway.list_page(status, cursor=None, filters=self._filters)
            for status in self.statuses
        ))

        if generation != self._generation:
            logger.debug("Discarding superseded inbox refresh")
            return SyncReport(outcome=ActionOutcome.SUCCESS, superseded=True)

        failed = next((r for r in results if not r.ok), None)
        if failed is not None:
            logger.warning(
                "Inbox refresh failed",
                extra={"status": failed.item_id, "reason": failed.outcome.value}
            )
            return SyncReport(outcome=failed.outcome, message=failed.message)

        self._items = OrderedDict()
        self._stale.clear()
        self._cursors = {}
        added = 0
        for status, result in zip(self.statuses, results):
            page: ListPage = result.data
            self._cursors[status] = page.next_cursor
            added += self._merge(page.items)

        logger.info("Inbox refreshed", extra={"count": added, "filters": self._filters})
        return SyncReport(outcome=ActionOutcome.SUCCESS, added=added)

    async def load_more(self, status: Optional[str] = None) -> SyncReport:
        """Fetch the next page of one bucket (or every bucket with a cursor) and merge."""
        buckets = [status] if status else [s for s in self.statuses if self._cursors.get(s)]
        buckets = [s for s in buckets if self._cursors.get(s)]
        if not buckets:
            return SyncReport(outcome=ActionOutcome.NOOP, message="No more items.")

        generation = self._generation
        results = await asyncio.gather(*(
            self._gateway.list_page(s, cursor=self._cursors[s], filters=self._filters)
            for s in buckets
        ))
        if generation != self._generation:
            return SyncReport(outcome=ActionOutcome.SUCCESS, superseded=True)

        added = 0
        failure: Optional[ActionResult] = None
        for bucket, result in zip(buckets, results):
            if not result.ok:
                failure = failure or result
                continue
            page: ListPage = result.data
            self._cursors[bucket] = page.next_cursor
            added += self._merge(page.items)

        if failure is not None:
            return SyncReport(outcome=failure.outcome, message=failure.message, added=added)
        return SyncReport(outcome=ActionOutcome.SUCCESS, added=added)

    async def load_detail(self, item_id: str) -> Optional[ActionResult]:
        """
        Fetch one item's authoritative copy.

        Returns None when a newer request for the same id was issued while
        this one was in flight; the stale response is discarded.
        """
        token = self._fence.issue(item_id)
        result = await self._gateway.fetch_item(item_id)
        if not self._fence.is_latest(item_id, token):
            logger.debug("Discarding stale detail response", extra={"ref_id": item_id})
            return None
        self._fence.release(item_id, token)

        if result.ok:
            self._replace(result.data)
        elif result.outcome == ActionOutcome.NOT_FOUND:
            self._remove(item_id)
        return result

    # ---------- Reconciliation ----------

    async def apply_result(self, result: ActionResult) -> Optional[InboxItem]:
        """
        Reconcile the collection after a single-item action.

        Returns the freshly fetched copy after a successful non-terminal
        mutation, otherwise None.
        """
        if result.outcome == ActionOutcome.SUCCESS:
            if result.is_terminal_success:
                self._remove(result.item_id)
                return None
            if result.action in _NON_TERMINAL_ACTIONS:
                detail = await self.load_detail(result.item_id)
                if detail is not None and detail.ok:
                    return detail.data
            return None

        if result.outcome == ActionOutcome.NOT_FOUND:
            self._remove(result.item_id)
        elif result.needs_resync and result.item_id in self._items:
            self._stale.add(result.item_id)
            logger.info(
                "Inbox item flagged for re-sync",
                extra={"ref_id": result.item_id, "reason": result.outcome.value}
            )
        return None

    def apply_bulk_result(self, result: BulkResult) -> str:
        """
        Reconcile after a bulk action: drop succeeded ids, keep failed ones,
        then clear the selection.

        Returns:
            Aggregate message for a single notification
        """
        for item_id in result.succeeded_ids:
            self._remove(item_id)

        self.clear_selection()
        logger.info(
            "Bulk result applied",
            extra={
                "action": result.action,
                "removed": len(result.succeeded_ids),
                "failed": result.failure_count,
            }
        )
        return result.message

    # ---------- Selection ----------

    @property
    def selected_ids(self) -> Tuple[str, ...]:
        return tuple(self._selection)

    def is_selected(self, item_id: str) -> bool:
        return item_id in self._selection

    def toggle_selection(self, item_id: str) -> bool:
        """Flip one id; ids outside the collection are ignored. Returns new state."""
        if item_id in self._selection:
            del self._selection[item_id]
            return False
        if item_id not in self._items:
            return False
        self._selection[item_id] = None
        return True

    def select(self, item_ids: Iterable[str]) -> None:
        for item_id in item_ids:
            if item_id in self._items:
                self._selection[item_id] = None

    def select_all(self) -> Tuple[str, ...]:
        self.select(self._items)
        return self.selected_ids

    def clear_selection(self) -> None:
        self._selection.clear()

    # ---------- Internals ----------

    def _merge(self, items: List[InboxItem]) -> int:
        """Append active items whose id is not yet present."""
        added = 0
        for item in items:
            if not item.is_active or item.id in self._items:
                continue
            self._items[item.id] = item
            added += 1
        return added

    def _replace(self, item: InboxItem) -> None:
        """Swap in an authoritative copy, keeping position."""
        self._stale.discard(item.id)
        if item.id not in self._items:
            return
        if item.is_active:
            self._items[item.id] = item
        else:
            self._remove(item.id)

    def _remove(self, item_id: str) -> None:
        self._items.pop(item_id, None)
        self._selection.pop(item_id, None)
        self._stale.discard(item_id)
