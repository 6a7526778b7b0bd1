import pytest

from src.config import ActorRole, InboxSource, InboxStatus
from src.inbox.domain import Actor, Assignee, Citation, CitationSpan, InboxItem

from conftest import make_item, make_raw


def test_citation_from_api_accepts_key_variants() -> None:
    citation = Citation.from_api({
        "docId": "DOC-9",
        "page_number": "3",
        "span_range": {"start_offset": 4, "end_offset": 12, "text": "quote"},
        "doc_title": "Handbook",
    })

    assert citation == Citation(
        doc_id="DOC-9", page=3, span=CitationSpan(start=4, end=12, text="quote"), title="Handbook"
    )


def test_citation_from_api_drops_unusable_entries() -> None:
    assert Citation.from_api({"page": 1}) is None
    assert Citation.from_api("DOC-1") is None
    assert Citation.from_api({"doc_id": "D1", "span": {"start": 9, "end": 2}}) is None


def test_citation_from_api_ignores_non_finite_numbers() -> None:
    assert Citation.from_api({"doc_id": "D1", "page": "1e400"}) == Citation(doc_id="D1")
    assert Citation.from_api({"doc_id": "D2", "page": float("inf")}) == Citation(doc_id="D2")
    assert Citation.from_api({"doc_id": "D3", "page": "NaN"}) == Citation(doc_id="D3")
    assert Citation.from_api({"doc_id": "D4", "span": {"start": "-inf", "end": 7}}) == Citation(
        doc_id="D4", span=CitationSpan(end=7)
    )


def test_citation_rejects_inverted_span() -> None:
    with pytest.raises(ValueError):
        Citation(doc_id="D1", span=CitationSpan(start=5, end=1))


def test_citation_payload_omits_title_and_empty_span() -> None:
    citation = Citation(doc_id="D1", page=2, span=CitationSpan(), title="Shown only")

    assert citation.to_payload() == {"doc_id": "D1", "page": 2}


def test_item_from_api_normalises_payload() -> None:
    item = InboxItem.from_api(make_raw(
        "inbox-7",
        status=InboxStatus.NEEDS_REVIEW,
        source=InboxSource.LIVE_SESSION,
        tags=["billing", "billing", 3],
        assigned_to=[{"id": "sme-1", "email": "SME@example.com"}, {"id": "sme-1"}],
        requester_email="customer@example.com",
        dup_count=0,
    ))

    assert item.id == "inbox-7"
    assert item.is_active and not item.is_terminal
    assert item.is_review_request
    assert item.tags == ("billing",)
    assert [a.id for a in item.assignees] == ["sme-1"]
    assert item.has_requester
    assert item.dup_count == 1
    assert [c.doc_id for c in item.citations] == ["D1"]


def test_item_from_api_rejects_missing_id_or_unknown_status() -> None:
    assert InboxItem.from_api({"status": "pending"}) is None
    assert InboxItem.from_api({"id": "x", "status": "archived"}) is None


def test_unknown_source_falls_back_to_auto() -> None:
    item = InboxItem.from_api({"id": "x", "source": "mystery"})

    assert item.source == InboxSource.AUTO
    assert item.status == InboxStatus.PENDING


def test_unassigned_item_open_to_curating_roles_only() -> None:
    item = make_item()

    assert item.can_be_modified_by(Actor(id="anyone", role=ActorRole.CURATOR))
    assert not item.can_be_modified_by(Actor(id="v", role=ActorRole.VIEWER))
    assert not item.can_be_modified_by(Actor(id="g", role=ActorRole.GUEST))


def test_assigned_item_restricted_to_assignees_and_admins() -> None:
    item = make_item(assigned_to=[{"id": "sme-1", "email": "sme@example.com"}])

    assert item.can_be_modified_by(Actor(id="sme-1", role=ActorRole.CURATOR))
    assert item.can_be_modified_by(Actor(id="other-id", role=ActorRole.CURATOR, email="SME@Example.com"))
    assert item.can_be_modified_by(Actor(id="boss", role=ActorRole.ADMIN))
    assert item.can_be_modified_by(Actor(id="founder", role=ActorRole.OWNER))
    assert not item.can_be_modified_by(Actor(id="someone-else", role=ActorRole.CURATOR))


def test_with_status_returns_copy() -> None:
    item = make_item()
    approved = item.with_status(InboxStatus.APPROVED)

    assert item.status == InboxStatus.PENDING
    assert approved.is_terminal


def test_assignees_deduplicated_on_construction() -> None:
    item = InboxItem(id="x", assignees=(Assignee(id="a"), Assignee(id="a", email="dup")))

    assert item.assignees == (Assignee(id="a"),)
