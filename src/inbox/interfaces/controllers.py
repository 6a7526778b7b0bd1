"""
Inbox Controllers (API Routes)
==============================

FastAPI routes for the review console.

Controllers resolve the acting user from the auth headers, load the
item's authoritative copy, and delegate to the action gateway. Action
outcomes map onto HTTP status codes; the body is always the uniform
action result.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from src.config import settings, ActorRole, DRAFT_STORAGE_KEY, VALID_ROLES, VALID_STATUSES
from src.core import ResourceNotFoundException
from src.inbox.application import (
    ActionOutcome,
    ActionResult,
    DraftStore,
    IInboxAPI,
    InboxActionGateway,
)
from src.inbox.application.dto import (
    ActionResponse,
    ApproveRequest,
    AttachSourceRequest,
    AvailableActionsResponse,
    BulkActionRequest,
    BulkActionResponse,
    ConvertToFAQRequest,
    DismissRequest,
    InboxItemResponse,
    InboxListResponse,
    ManualFAQRequest,
    NoteRequest,
    RequestReviewRequest,
)
from src.inbox.domain import Actor, InboxItem, ManualFAQDraft, WorkflowPolicy
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/admin/inbox", tags=["Inbox Review"])


OUTCOME_STATUS_CODES = {
    ActionOutcome.SUCCESS: status.HTTP_200_OK,
    ActionOutcome.NOOP: status.HTTP_200_OK,
    ActionOutcome.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ActionOutcome.PERMISSION: status.HTTP_403_FORBIDDEN,
    ActionOutcome.CONFLICT: status.HTTP_409_CONFLICT,
    ActionOutcome.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ActionOutcome.FAILURE: status.HTTP_502_BAD_GATEWAY,
}


# ========== Dependencies ==========

def get_inbox_api(request: Request) -> IInboxAPI:
    """Get the shared Admin API client from app state."""
    api = getattr(request.app.state, "inbox_api", None)
    if api is None:
        raise HTTPException(
            status_code=503,
            detail="Inbox API client not initialized"
        )
    return api


def get_gateway(api: IInboxAPI = Depends(get_inbox_api)) -> InboxActionGateway:
    return InboxActionGateway(
        api,
        faq_creation_enabled=settings.faq_creation_enabled,
        allow_empty_citations=settings.allow_empty_citations,
        page_limit=settings.inbox_page_limit,
    )


def get_draft_store(request: Request) -> DraftStore:
    storage = getattr(request.app.state, "draft_storage", None)
    if storage is None:
        raise HTTPException(status_code=503, detail="Draft storage not initialized")
    return DraftStore(storage)


def get_actor(
    x_actor_id: Optional[str] = Header(None),
    x_actor_email: Optional[str] = Header(None),
    x_actor_role: Optional[str] = Header(None)
) -> Actor:
    """Acting user as asserted by the upstream auth layer."""
    if not x_actor_id:
        raise HTTPException(status_code=401, detail="Missing X-Actor-Id header")
    role = (x_actor_role or ActorRole.VIEWER).strip().lower()
    if role not in VALID_ROLES:
        raise HTTPException(status_code=400, detail=f"Unknown actor role: {role}")
    return Actor(id=x_actor_id, role=role, email=x_actor_email or None)


def _action_response(result: ActionResult) -> JSONResponse:
    return JSONResponse(
        status_code=OUTCOME_STATUS_CODES[result.outcome],
        content=ActionResponse.from_result(result).model_dump(mode="json"),
    )


async def _load_item(gateway: InboxActionGateway, item_id: str) -> InboxItem:
    """Authoritative copy, or an HTTP error mirroring the lookup outcome."""
    result = await gateway.fetch_item(item_id)
    if result.outcome == ActionOutcome.NOT_FOUND:
        raise ResourceNotFoundException("Inbox item", item_id)
    if not result.ok:
        raise HTTPException(
            status_code=OUTCOME_STATUS_CODES[result.outcome],
            detail=result.message
        )
    return result.data


# ========== Reads ==========

@router.get(
    "",
    response_model=InboxListResponse,
    summary="List inbox items",
)
async def list_items(
    status_filter: str = Query("pending", alias="status"),
    cursor: Optional[str] = Query(None),
    ref: Optional[str] = Query(None),
    tag: Optional[str] = Query(None),
    q_hash: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    gateway: InboxActionGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
):
    if status_filter not in VALID_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown status: {status_filter}")

    filters = {k: v for k, v in {"ref": ref, "tag": tag, "q_hash": q_hash, "search": search}.items() if v}
    result = await gateway.list_page(status_filter, cursor=cursor, filters=filters)
    if not result.ok:
        raise HTTPException(status_code=OUTCOME_STATUS_CODES[result.outcome], detail=result.message)

    page = result.data
    return InboxListResponse(
        items=[InboxItemResponse.from_domain(item) for item in page.items],
        next_cursor=page.next_cursor,
    )


@router.get("/manual/draft", summary="Load the actor's manual FAQ draft")
async def load_draft(
    actor: Actor = Depends(get_actor),
    drafts: DraftStore = Depends(get_draft_store)
):
    draft = drafts.load(_draft_key(actor)) or ManualFAQDraft()
    return draft.to_dict()


@router.put("/manual/draft", summary="Save the actor's manual FAQ draft")
async def save_draft(
    payload: ManualFAQRequest,
    actor: Actor = Depends(get_actor),
    drafts: DraftStore = Depends(get_draft_store)
):
    draft = payload.to_draft()
    drafts.save(draft, _draft_key(actor))
    return draft.to_dict()


@router.delete("/manual/draft", status_code=204, summary="Discard the actor's manual FAQ draft")
async def discard_draft(
    actor: Actor = Depends(get_actor),
    drafts: DraftStore = Depends(get_draft_store)
):
    drafts.clear(_draft_key(actor))


@router.get("/{item_id}", response_model=InboxItemResponse, summary="Get inbox item detail")
async def get_item(
    item_id: str,
    gateway: InboxActionGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
):
    item = await _load_item(gateway, item_id)
    return InboxItemResponse.from_domain(item)


@router.get(
    "/{item_id}/actions",
    response_model=AvailableActionsResponse,
    summary="Actions the actor may run on an item",
)
async def available_actions(
    item_id: str,
    gateway: InboxActionGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
):
    item = await _load_item(gateway, item_id)
    return AvailableActionsResponse(
        item_id=item.id,
        status=item.status,
        actions=WorkflowPolicy.available_actions(item, actor, gateway.faq_creation_enabled),
    )


# ========== Single-item actions ==========

@router.post("/{item_id}/attach_source", summary="Replace an item's citations")
async def attach_source(
    item_id: str,
    payload: AttachSourceRequest,
    gateway: InboxActionGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
):
    item = await _load_item(gateway, item_id)
    return _action_response(await gateway.attach_source(item, actor, payload.rows()))


@router.post("/{item_id}/request-review", summary="Assign SMEs to an item")
async def request_review(
    item_id: str,
    payload: RequestReviewRequest,
    gateway: InboxActionGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
):
    item = await _load_item(gateway, item_id)
    return _action_response(
        await gateway.request_review(item, actor, payload.reason, payload.assignees)
    )


@router.post(
    "/{item_id}/approve",
    summary="Approve an item (promotes to FAQ when requested and enabled)",
)
async def approve(
    item_id: str,
    payload: ApproveRequest,
    gateway: InboxActionGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
):
    item = await _load_item(gateway, item_id)
    result = await gateway.approve(
        item, actor,
        wants_faq=payload.as_faq,
        answer=payload.answer,
        title=payload.title,
        rows=payload.rows(),
    )
    return _action_response(result)


@router.post("/{item_id}/convert-to-faq", summary="Convert an item into an FAQ entry")
async def convert_to_faq(
    item_id: str,
    payload: ConvertToFAQRequest,
    gateway: InboxActionGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
):
    item = await _load_item(gateway, item_id)
    result = await gateway.convert_to_faq(
        item, actor, answer=payload.answer, title=payload.title, rows=payload.rows()
    )
    return _action_response(result)


@router.post("/{item_id}/reject", summary="Reject an item")
async def reject(
    item_id: str,
    payload: NoteRequest,
    gateway: InboxActionGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
):
    item = await _load_item(gateway, item_id)
    return _action_response(await gateway.reject(item, actor, payload.note))


@router.post("/{item_id}/mark-reviewed", summary="Close a review request as reviewed")
async def mark_reviewed(
    item_id: str,
    payload: NoteRequest,
    gateway: InboxActionGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
):
    item = await _load_item(gateway, item_id)
    return _action_response(await gateway.mark_reviewed(item, actor, payload.note))


@router.post("/{item_id}/dismiss", summary="Dismiss a review request")
async def dismiss(
    item_id: str,
    payload: DismissRequest,
    gateway: InboxActionGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
):
    item = await _load_item(gateway, item_id)
    return _action_response(await gateway.dismiss(item, actor, payload.reason))


# ========== Bulk and creation ==========

def _bulk_response(result) -> JSONResponse:
    code = OUTCOME_STATUS_CODES[result.outcome]
    # Partial failure still reports 200; per-id failures are in the body
    return JSONResponse(
        status_code=code,
        content=BulkActionResponse.from_result(result).model_dump(mode="json"),
    )


@router.post("/bulk-approve", summary="Approve selected items")
async def bulk_approve(
    payload: BulkActionRequest,
    gateway: InboxActionGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
):
    return _bulk_response(await gateway.bulk_approve(payload.ids, actor, as_faq=payload.as_faq))


@router.post("/bulk-reject", summary="Reject selected items")
async def bulk_reject(
    payload: BulkActionRequest,
    gateway: InboxActionGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
):
    return _bulk_response(await gateway.bulk_reject(payload.ids, actor))


@router.post("/manual", summary="Create a staff-authored FAQ")
async def create_manual(
    payload: ManualFAQRequest,
    gateway: InboxActionGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor),
    drafts: DraftStore = Depends(get_draft_store)
):
    result = await gateway.create_manual_faq(payload.to_draft(), actor)
    if result.ok:
        drafts.clear(_draft_key(actor))
        logger.info("Manual FAQ draft cleared", extra={"actor_id": actor.id})
    return _action_response(result)


def _draft_key(actor: Actor) -> str:
    return f"{DRAFT_STORAGE_KEY}:{actor.id}"

# Alias for module import
inbox_router = router
