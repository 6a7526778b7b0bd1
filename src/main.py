"""
Inbox Review Console - Main Application
=======================================

Admin console backend for curating machine-suggested question/answer
pairs before they reach the verified knowledge base.

Modules:
- Inbox: citation validation, item lifecycle, workflow actions, list sync

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Gateway, synchronizer, orchestrator, DTOs
- Domain: Entities, value objects, workflow rules
- Infrastructure: Admin API client, draft storage
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from src.config import settings
from src.core import ApplicationException
from src.inbox.infrastructure import HttpInboxAPI, InMemoryDraftStorage
from src.inbox.interfaces import inbox_router
from src.shared.infrastructure.logging import setup_logging, get_logger
from src.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Configure logging and own the Admin API client for the process lifetime."""
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Inbox Review Console", extra={
        "version": settings.app_version,
        "environment": settings.environment,
        "faq_creation_enabled": settings.faq_creation_enabled
    })

    inbox_api = HttpInboxAPI(
        base_url=settings.inbox_api_base_url,
        token=settings.inbox_api_token,
        timeout=settings.inbox_api_timeout_seconds
    )
    app.state.inbox_api = inbox_api
    app.state.draft_storage = InMemoryDraftStorage()
    app.state.settings = settings

    logger.info("Inbox Review Console started", extra={"inbox_api": settings.inbox_api_base_url})

    yield

    logger.info("Shutting down Inbox Review Console")
    await inbox_api.close()
    logger.info("Inbox Review Console shutdown complete")


app = FastAPI(
    title="Inbox Review Console API",
    description="""
    ## Inbox Review Workflow

    Curate machine-suggested question/answer pairs, attach citations,
    route items to subject-matter experts and promote vetted answers.

    **Endpoints:**
    - `GET /admin/inbox` - List items (cursor pagination, filters)
    - `GET /admin/inbox/{id}` - Item detail
    - `GET /admin/inbox/{id}/actions` - Actions available to the caller
    - `POST /admin/inbox/{id}/attach_source` - Replace citations
    - `POST /admin/inbox/{id}/request-review` - Assign SMEs
    - `POST /admin/inbox/{id}/approve` - Approve or promote
    - `POST /admin/inbox/{id}/convert-to-faq` - Convert to FAQ
    - `POST /admin/inbox/{id}/reject` - Reject
    - `POST /admin/inbox/{id}/mark-reviewed` - Close a review request
    - `POST /admin/inbox/{id}/dismiss` - Dismiss a review request
    - `POST /admin/inbox/bulk-approve`, `POST /admin/inbox/bulk-reject`
    - `POST /admin/inbox/manual` - Staff-authored FAQ

    Caller identity comes from `X-Actor-Id`, `X-Actor-Email` and
    `X-Actor-Role` headers set by the auth layer in front of this service.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Starlette runs the last-added middleware first
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

app.include_router(inbox_router)


# === Service Endpoints ===

@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """Liveness probe. Reports whether the Admin API client exists; does not call it."""
    inbox_api = getattr(request.app.state, "inbox_api", None)
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": {
            "inbox_api": "configured" if inbox_api else "not_initialized",
            "faq_creation": "enabled" if settings.faq_creation_enabled else "disabled",
        },
    }


@app.get("/", tags=["Root"])
async def root():
    routes = sorted(
        f"{method} {route.path}"
        for route in inbox_router.routes
        for method in getattr(route, "methods", ())
    )
    return {
        "service": "Inbox Review Console",
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
        "inbox": routes,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
    )
