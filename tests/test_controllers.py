import pytest
from fastapi.testclient import TestClient

from src.config import InboxStatus
from src.core import InboxAPIResponseError
from src.inbox.application import DraftStore, InboxActionGateway
from src.inbox.domain.value_objects import DUPLICATE_DOC_MESSAGE
from src.inbox.infrastructure import InMemoryDraftStorage
from src.inbox.interfaces.controllers import get_draft_store, get_gateway
from src.main import app

from conftest import make_raw

CURATOR = {"X-Actor-Id": "user-curator", "X-Actor-Role": "curator", "X-Actor-Email": "curator@example.com"}
VIEWER = {"X-Actor-Id": "user-viewer", "X-Actor-Role": "viewer"}


@pytest.fixture
def client(fake_api):
    storage = InMemoryDraftStorage()
    app.dependency_overrides[get_gateway] = lambda: InboxActionGateway(
        fake_api, faq_creation_enabled=True, allow_empty_citations=False
    )
    app.dependency_overrides[get_draft_store] = lambda: DraftStore(storage)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health_check(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Correlation-ID" in response.headers


def test_missing_actor_header_is_unauthorized(client) -> None:
    assert client.get("/admin/inbox").status_code == 401


def test_unknown_actor_role_is_rejected(client) -> None:
    response = client.get("/admin/inbox", headers={"X-Actor-Id": "u", "X-Actor-Role": "wizard"})

    assert response.status_code == 400


def test_list_items_with_filters(client, fake_api) -> None:
    fake_api.add(make_raw("A"), make_raw("B", status=InboxStatus.NEEDS_REVIEW))

    response = client.get("/admin/inbox", params={"status": "pending", "tag": "billing"}, headers=CURATOR)

    assert response.status_code == 200
    body = response.json()
    assert [i["id"] for i in body["items"]] == ["A"]
    assert body["next_cursor"] is None
    assert fake_api.called("list")[0]["filters"] == {"tag": "billing"}


def test_list_rejects_unknown_status(client) -> None:
    response = client.get("/admin/inbox", params={"status": "archived"}, headers=CURATOR)

    assert response.status_code == 400


def test_get_missing_item_is_not_found(client) -> None:
    assert client.get("/admin/inbox/ghost", headers=CURATOR).status_code == 404


def test_available_actions_depend_on_role(client, fake_api) -> None:
    fake_api.add(make_raw("A"))

    curator_actions = client.get("/admin/inbox/A/actions", headers=CURATOR).json()["actions"]
    viewer_actions = client.get("/admin/inbox/A/actions", headers=VIEWER).json()["actions"]

    assert "approve" in curator_actions
    assert "promote" in curator_actions
    assert viewer_actions == []


def test_attach_source_accepts_camel_case_rows(client, fake_api) -> None:
    fake_api.add(make_raw("A"))

    response = client.post(
        "/admin/inbox/A/attach_source",
        json={"citations": [{"docId": "KB-1", "page": 3}, {"doc_id": ""}]},
        headers=CURATOR,
    )

    assert response.status_code == 200
    assert response.json()["outcome"] == "success"
    assert fake_api.called("attach_source") == [("A", {"citations": [{"doc_id": "KB-1", "page": 3}]})]


def test_attach_source_reports_row_errors(client, fake_api) -> None:
    fake_api.add(make_raw("A"))

    response = client.post(
        "/admin/inbox/A/attach_source",
        json={"citations": [{"docId": "KB-1"}, {"docId": "kb-1"}]},
        headers=CURATOR,
    )

    assert response.status_code == 400
    body = response.json()
    assert body["outcome"] == "validation"
    assert body["row_errors"] == [{"doc_id": DUPLICATE_DOC_MESSAGE}, {"doc_id": DUPLICATE_DOC_MESSAGE}]
    assert fake_api.called("attach_source") == []


def test_approve_as_faq_promotes(client, fake_api) -> None:
    fake_api.add(make_raw("A"))

    response = client.post("/admin/inbox/A/approve", json={"as_faq": True, "title": "Refunds"}, headers=CURATOR)

    assert response.status_code == 200
    assert response.json()["action"] == "promote"
    assert fake_api.called("promote") == [("A", {"title": "Refunds", "is_faq": True})]


def test_promote_conflict_returns_409_with_conflict_id(client, fake_api) -> None:
    fake_api.add(make_raw("A"))
    fake_api.fail("promote", InboxAPIResponseError(409, {"error": "duplicate_faq_exists", "qa_pair_id": "qa-3"}))

    response = client.post("/admin/inbox/A/approve", json={"as_faq": True}, headers=CURATOR)

    assert response.status_code == 409
    assert response.json()["conflict_id"] == "qa-3"


def test_reject_on_item_assigned_to_someone_else_is_forbidden(client, fake_api) -> None:
    fake_api.add(make_raw("A", assigned_to=[{"id": "sme-1", "email": "sme@example.com"}]))

    response = client.post("/admin/inbox/A/reject", json={"note": "dup"}, headers=CURATOR)

    assert response.status_code == 403
    assert fake_api.called("reject") == []


def test_reject_on_terminal_item_is_noop(client, fake_api) -> None:
    fake_api.add(make_raw("A", status=InboxStatus.REJECTED))

    response = client.post("/admin/inbox/A/reject", json={}, headers=CURATOR)

    assert response.status_code == 200
    assert response.json()["outcome"] == "noop"


def test_request_review_short_reason(client, fake_api) -> None:
    fake_api.add(make_raw("A"))

    response = client.post(
        "/admin/inbox/A/request-review", json={"reason": "check", "assignees": ["sme-1"]}, headers=CURATOR
    )

    assert response.status_code == 400
    assert response.json()["general_error"] == "Explain the concern (20 chars min)."


def test_bulk_approve_partial_failure(client, fake_api) -> None:
    fake_api.add(make_raw("A"), make_raw("B"))
    fake_api.bulk_errors = [{"id": "B", "message": "Locked"}]

    response = client.post("/admin/inbox/bulk-approve", json={"ids": ["A", "B"]}, headers=CURATOR)

    assert response.status_code == 200
    body = response.json()
    assert body["succeeded_ids"] == ["A"]
    assert body["failed"] == [{"id": "B", "message": "Locked"}]
    assert body["message"] == "1 approved, 1 failed."


def test_bulk_requires_ids(client) -> None:
    response = client.post("/admin/inbox/bulk-reject", json={"ids": []}, headers=CURATOR)

    assert response.status_code == 422


def test_manual_draft_lifecycle(client, fake_api) -> None:
    draft = {
        "question": "How long do refunds take?",
        "answer": "Refunds settle within five business days.",
        "citations": [{"docId": "KB-3"}],
        "tags": ["billing"],
    }

    saved = client.put("/admin/inbox/manual/draft", json=draft, headers=CURATOR)
    assert saved.status_code == 200
    assert client.get("/admin/inbox/manual/draft", headers=CURATOR).json()["question"] == draft["question"]
    assert client.get("/admin/inbox/manual/draft", headers=VIEWER).json()["question"] == ""

    created = client.post("/admin/inbox/manual", json=draft, headers=CURATOR)

    assert created.status_code == 200
    assert created.json()["data"]["id"] == "manual-1"
    assert client.get("/admin/inbox/manual/draft", headers=CURATOR).json()["question"] == ""


def test_manual_faq_by_viewer_is_forbidden(client, fake_api) -> None:
    response = client.post("/admin/inbox/manual", json={"question": "q"}, headers=VIEWER)

    assert response.status_code == 403
    assert fake_api.called("create_manual") == []
