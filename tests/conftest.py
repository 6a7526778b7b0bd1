"""Shared fixtures: an in-memory Admin API and a few actors."""

import copy
from typing import Any, Dict, List, Optional, Tuple

import pytest

from src.config import ActorRole, InboxSource, InboxStatus
from src.core import InboxAPIResponseError
from src.inbox.application import IInboxAPI, InboxActionGateway
from src.inbox.domain import Actor, InboxItem


def make_raw(
    item_id: str,
    status: str = InboxStatus.PENDING,
    source: str = InboxSource.AUTO,
    citations: Optional[List[dict]] = None,
    assigned_to: Optional[List[dict]] = None,
    **extra: Any
) -> dict:
    raw = {
        "id": item_id,
        "status": status,
        "source": source,
        "question": f"Question for {item_id}?",
        "answer_draft": f"Draft answer for {item_id}.",
        "suggested_citations": [{"doc_id": "D1"}] if citations is None else citations,
        "assigned_to": assigned_to or [],
    }
    raw.update(extra)
    return raw


def make_item(item_id: str = "inbox-1", **kwargs: Any) -> InboxItem:
    item = InboxItem.from_api(make_raw(item_id, **kwargs))
    assert item is not None
    return item


class FakeInboxAPI(IInboxAPI):
    """In-memory Admin API that records every call."""

    def __init__(self):
        self.items: Dict[str, dict] = {}
        self.calls: List[Tuple[str, Any]] = []
        self.errors: Dict[str, Exception] = {}
        self.pages: Dict[Tuple[str, Optional[str]], dict] = {}
        self.bulk_errors: List[dict] = []
        self.created: List[dict] = []

    def add(self, *raws: dict) -> None:
        for raw in raws:
            self.items[raw["id"]] = copy.deepcopy(raw)

    def fail(self, method: str, exc: Exception) -> None:
        """Make the next calls to `method` raise `exc`."""
        self.errors[method] = exc

    def called(self, method: str) -> List[Any]:
        return [args for name, args in self.calls if name == method]

    def _enter(self, method: str, args: Any) -> None:
        self.calls.append((method, args))
        if method in self.errors:
            raise self.errors[method]

    def _require(self, item_id: str) -> dict:
        if item_id not in self.items:
            raise InboxAPIResponseError(404, {"detail": "Inbox item not found"})
        return self.items[item_id]

    def _set_status(self, item_id: str, status: str) -> dict:
        item = self._require(item_id)
        item["status"] = status
        return copy.deepcopy(item)

    async def list(self, status, cursor=None, filters=None, limit=25):
        self._enter("list", {"status": status, "cursor": cursor, "filters": filters, "limit": limit})
        if (status, cursor) in self.pages:
            return copy.deepcopy(self.pages[(status, cursor)])
        return {
            "items": [copy.deepcopy(i) for i in self.items.values() if i["status"] == status],
            "next_cursor": None,
        }

    async def get(self, item_id):
        self._enter("get", item_id)
        return copy.deepcopy(self._require(item_id))

    async def attach_source(self, item_id, payload):
        self._enter("attach_source", (item_id, payload))
        item = self._require(item_id)
        item["suggested_citations"] = payload["citations"]
        return copy.deepcopy(item)

    async def approve(self, item_id, payload):
        self._enter("approve", (item_id, payload))
        self._set_status(item_id, InboxStatus.APPROVED)
        return {"qa_pair_id": f"qa-{item_id}"}

    async def promote(self, item_id, payload):
        self._enter("promote", (item_id, payload))
        self._set_status(item_id, InboxStatus.PROMOTED)
        return {"qa_pair_id": f"qa-{item_id}", "published_at": "2026-01-01T00:00:00Z"}

    async def reject(self, item_id, payload):
        self._enter("reject", (item_id, payload))
        return self._set_status(item_id, InboxStatus.REJECTED)

    async def dismiss(self, item_id, payload):
        self._enter("dismiss", (item_id, payload))
        return self._set_status(item_id, InboxStatus.DISMISSED)

    async def mark_reviewed(self, item_id, payload):
        self._enter("mark_reviewed", (item_id, payload))
        return self._set_status(item_id, InboxStatus.REVIEWED)

    async def convert_to_faq(self, item_id, payload):
        self._enter("convert_to_faq", (item_id, payload))
        return self._set_status(item_id, InboxStatus.PROMOTED)

    async def request_review(self, item_id, payload):
        self._enter("request_review", (item_id, payload))
        item = self._require(item_id)
        item["status"] = InboxStatus.NEEDS_REVIEW
        item["assigned_to"] = [{"id": a, "email": f"{a}@example.com"} for a in payload["assignees"]]
        item["assignment_reason"] = payload["reason"]
        return {"assigned_to": item["assigned_to"], "status": item["status"]}

    async def bulk_approve(self, payload):
        self._enter("bulk_approve", payload)
        return self._bulk(payload["ids"], InboxStatus.APPROVED)

    async def bulk_reject(self, payload):
        self._enter("bulk_reject", payload)
        return self._bulk(payload["ids"], InboxStatus.REJECTED)

    def _bulk(self, ids, status):
        failed = {e["id"] for e in self.bulk_errors}
        for item_id in ids:
            if item_id not in failed and item_id in self.items:
                self.items[item_id]["status"] = status
        return {"errors": copy.deepcopy(self.bulk_errors)} if self.bulk_errors else {}

    async def create_manual(self, payload):
        self._enter("create_manual", payload)
        self.created.append(payload)
        raw = make_raw(
            f"manual-{len(self.created)}",
            source=InboxSource.MANUAL,
            citations=payload["citations"],
            question=payload["question"],
            answer_final=payload["answer"],
        )
        self.items[raw["id"]] = raw
        return copy.deepcopy(raw)


@pytest.fixture
def fake_api() -> FakeInboxAPI:
    return FakeInboxAPI()


@pytest.fixture
def gateway(fake_api: FakeInboxAPI) -> InboxActionGateway:
    return InboxActionGateway(fake_api, faq_creation_enabled=True, allow_empty_citations=False)


@pytest.fixture
def curator() -> Actor:
    return Actor(id="user-curator", role=ActorRole.CURATOR, email="curator@example.com")


@pytest.fixture
def admin() -> Actor:
    return Actor(id="user-admin", role=ActorRole.ADMIN, email="admin@example.com")


@pytest.fixture
def viewer() -> Actor:
    return Actor(id="user-viewer", role=ActorRole.VIEWER)
