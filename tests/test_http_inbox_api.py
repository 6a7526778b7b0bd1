import json

import httpx
import pytest

from src.core import InboxAPIException, InboxAPIResponseError
from src.inbox.infrastructure import HttpInboxAPI

BASE_URL = "https://admin.example.test"


def make_api(handler) -> HttpInboxAPI:
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return HttpInboxAPI(base_url=BASE_URL, token="secret", client=client)


async def test_list_sends_status_cursor_and_filters() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"items": [], "next_cursor": None})

    api = make_api(handler)
    body = await api.list("pending", cursor="c2", filters={"tag": "billing", "search": "", "ref": "t-1"}, limit=10)

    assert body == {"items": [], "next_cursor": None}
    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/admin/inbox"
    assert dict(request.url.params) == {
        "status": "pending", "limit": "10", "cursor": "c2", "tag": "billing", "ref": "t-1",
    }


@pytest.mark.parametrize("method, path", [
    ("attach_source", "/admin/inbox/item%201/attach_source"),
    ("approve", "/admin/inbox/item%201/approve"),
    ("promote", "/admin/inbox/item%201/promote"),
    ("reject", "/admin/inbox/item%201/reject"),
    ("dismiss", "/admin/inbox/item%201/dismiss"),
    ("mark_reviewed", "/admin/inbox/item%201/mark-reviewed"),
    ("convert_to_faq", "/admin/inbox/item%201/convert-to-faq"),
    ("request_review", "/admin/inbox/item%201/request-review"),
])
async def test_single_item_routes(method: str, path: str) -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    api = make_api(handler)
    await getattr(api, method)("item 1", {"note": "x"})

    assert seen[0].method == "POST"
    assert seen[0].url.raw_path.decode() == path
    assert json.loads(seen[0].content) == {"note": "x"}


async def test_bulk_and_manual_routes() -> None:
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json={})

    api = make_api(handler)
    await api.bulk_approve({"ids": ["A"], "as_faq": False})
    await api.bulk_reject({"ids": ["A"]})
    await api.create_manual({"question": "q"})

    assert paths == ["/admin/inbox/bulk-approve", "/admin/inbox/bulk-reject", "/admin/inbox/manual"]


async def test_error_status_raises_with_decoded_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"error": "duplicate_faq_exists", "qa_pair_id": "qa-1"})

    api = make_api(handler)

    with pytest.raises(InboxAPIResponseError) as exc_info:
        await api.promote("A", {})

    assert exc_info.value.status_code == 409
    assert exc_info.value.payload["qa_pair_id"] == "qa-1"


async def test_non_json_error_body_kept_as_text() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="upstream unavailable")

    api = make_api(handler)

    with pytest.raises(InboxAPIResponseError) as exc_info:
        await api.get("A")

    assert exc_info.value.payload == "upstream unavailable"


async def test_empty_success_body_is_none() -> None:
    api = make_api(lambda request: httpx.Response(204))

    assert await api.reject("A", {}) is None


async def test_transport_error_raises_inbox_api_exception() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    api = make_api(handler)

    with pytest.raises(InboxAPIException):
        await api.get("A")


async def test_default_client_carries_bearer_token() -> None:
    api = HttpInboxAPI(base_url=BASE_URL + "/", token="secret", timeout=5)

    client = await api._get_client()

    assert client.headers["Authorization"] == "Bearer secret"
    assert str(client.base_url).rstrip("/") == BASE_URL
    await api.close()
    assert api._http_client is None
