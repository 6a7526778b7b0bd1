"""
Inbox External Service Integrations
===================================

HTTP client for the upstream Admin API that owns inbox items.

Implements `IInboxAPI` over httpx. Responses are returned as decoded JSON;
non-2xx answers raise `InboxAPIResponseError` with the raw body so the
gateway can normalise it once.
"""

from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from src.config import settings
from src.core import InboxAPIException, InboxAPIResponseError
from src.inbox.application.gateway import IInboxAPI
from src.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)

LIST_FILTER_KEYS = ("ref", "tag", "q_hash", "search")


class HttpInboxAPI(IInboxAPI):
    """
    Admin API client.

    Routes:
    - GET  /admin/inbox                       list (status, cursor, limit, filters)
    - GET  /admin/inbox/{id}                  detail
    - POST /admin/inbox/{id}/{action}         single-item actions
    - POST /admin/inbox/bulk-approve|reject   bulk actions
    - POST /admin/inbox/manual                staff-authored item
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.base_url = (base_url or settings.inbox_api_base_url).rstrip("/")
        self._token = token if token is not None else settings.inbox_api_token
        self._timeout = timeout or settings.inbox_api_timeout_seconds
        self._http_client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            headers = {"Accept": "application/json"}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self._timeout,
                headers=headers
            )
        return self._http_client

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Any:
        client = await self._get_client()
        try:
            with log_latency(logger, "inbox_api", method=method, path=path):
                response = await client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            logger.error(
                "Inbox API request failed",
                extra={"method": method, "path": path, "error": str(e)}
            )
            raise InboxAPIException(str(e) or e.__class__.__name__, {"path": path}) from e

        body = _decode(response)
        if response.is_success:
            return body

        logger.warning(
            "Inbox API returned error status",
            extra={"method": method, "path": path, "status_code": response.status_code}
        )
        raise InboxAPIResponseError(response.status_code, body)

    @staticmethod
    def _item_path(item_id: str, action: Optional[str] = None) -> str:
        path = f"/admin/inbox/{quote(item_id, safe='')}"
        return f"{path}/{action}" if action else path

    # ========== Reads ==========

    async def list(
        self,
        status: str,
        cursor: Optional[str] = None,
        filters: Optional[Dict[str, str]] = None,
        limit: int = 25
    ) -> Any:
        params: Dict[str, Any] = {"status": status, "limit": limit}
        if cursor:
            params["cursor"] = cursor
        for key in LIST_FILTER_KEYS:
            value = (filters or {}).get(key)
            if value:
                params[key] = value
        return await self._request("GET", "/admin/inbox", params=params)

    async def get(self, item_id: str) -> Any:
        return await self._request("GET", self._item_path(item_id))

    # ========== Single-item actions ==========

    async def attach_source(self, item_id: str, payload: dict) -> Any:
        return await self._request("POST", self._item_path(item_id, "attach_source"), json=payload)

    async def approve(self, item_id: str, payload: dict) -> Any:
        return await self._request("POST", self._item_path(item_id, "approve"), json=payload)

    async def promote(self, item_id: str, payload: dict) -> Any:
        return await self._request("POST", self._item_path(item_id, "promote"), json=payload)

    async def reject(self, item_id: str, payload: dict) -> Any:
        return await self._request("POST", self._item_path(item_id, "reject"), json=payload)

    async def dismiss(self, item_id: str, payload: dict) -> Any:
        return await self._request("POST", self._item_path(item_id, "dismiss"), json=payload)

    async def mark_reviewed(self, item_id: str, payload: dict) -> Any:
        return await self._request("POST", self._item_path(item_id, "mark-reviewed"), json=payload)

    async def convert_to_faq(self, item_id: str, payload: dict) -> Any:
        return await self._request("POST", self._item_path(item_id, "convert-to-faq"), json=payload)

    async def request_review(self, item_id: str, payload: dict) -> Any:
        return await self._request("POST", self._item_path(item_id, "request-review"), json=payload)

    # ========== Bulk and creation ==========

    async def bulk_approve(self, payload: dict) -> Any:
        return await self._request("POST", "/admin/inbox/bulk-approve", json=payload)

    async def bulk_reject(self, payload: dict) -> Any:
        return await self._request("POST", "/admin/inbox/bulk-reject", json=payload)

    async def create_manual(self, payload: dict) -> Any:
        return await self._request("POST", "/admin/inbox/manual", json=payload)

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


def _decode(response: httpx.Response) -> Any:
    """JSON body if there is one, else the text (None when empty)."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
