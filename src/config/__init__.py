"""
Configuration Module
====================

Environment-driven settings plus the status, source, role and action
vocabulary shared by every inbox layer.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    """
    Console settings. Every field can be set from the environment or `.env`,
    e.g. `INBOX_API_BASE_URL`, `FAQ_CREATION_ENABLED=true`.
    """

    # ========== Application ==========
    app_name: str = Field(default="inbox-review-console", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Upstream Inbox API ==========
    inbox_api_base_url: str = Field(
        default="http://localhost:8080",
        description="Base URL of the Admin API that owns inbox items"
    )
    inbox_api_token: Optional[str] = Field(
        default=None,
        description="Bearer token forwarded to the Admin API"
    )
    inbox_api_timeout_seconds: float = Field(
        default=30.0,
        description="Transport timeout for Admin API calls",
        ge=1,
        le=120
    )
    inbox_page_limit: int = Field(
        default=25,
        description="Page size for cursor-paginated inbox listing",
        ge=1,
        le=200
    )

    # ========== Workflow ==========
    faq_creation_enabled: bool = Field(
        default=False,
        validation_alias="ENABLE_REVIEW_PROMOTE",
        description="Route approvals to the promote (FAQ) endpoint when requested"
    )
    allow_empty_citations: bool = Field(
        default=False,
        description="Allow approve/promote without any attached citation"
    )
    max_citations: int = Field(
        default=3,
        description="Maximum citation rows offered by the editor",
        ge=1,
        le=10
    )
    review_reason_min_chars: int = Field(default=20, ge=1)
    review_reason_max_chars: int = Field(default=500, ge=1)

    # ========== Debouncing ==========
    refresh_debounce_ms: int = Field(
        default=350,
        description="Quiet period before a manual refresh burst is sent",
        ge=0,
        le=2000
    )
    search_debounce_ms: int = Field(
        default=350,
        description="Quiet period before a free-text search is sent",
        ge=0,
        le=2000
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Reject unknown deployment names early."""
        allowed = {"development", "test", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("review_reason_max_chars")
    @classmethod
    def validate_reason_bounds(cls, v: int, info) -> int:
        """Reason bounds must form a non-empty range."""
        minimum = info.data.get("review_reason_min_chars", 1)
        if v < minimum:
            raise ValueError("review_reason_max_chars must be >= review_reason_min_chars")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Settings are read once per process."""
    return Settings()


settings = get_settings()


# ========== Constants ==========

class InboxStatus(str):
    """Inbox item lifecycle statuses."""
    PENDING = "pending"
    NEEDS_REVIEW = "needs_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROMOTED = "promoted"
    REVIEWED = "reviewed"
    DISMISSED = "dismissed"


class InboxSource(str):
    """Where an inbox item came from."""
    AUTO = "auto"                   # Generated by the answer pipeline
    MANUAL = "manual"               # Authored by staff
    ADMIN_REVIEW = "admin_review"   # Admin-initiated SME review
    LIVE_SESSION = "live_session"   # Review requested from a live chat


class ActorRole(str):
    """Console roles supplied by the auth collaborator."""
    OWNER = "owner"
    ADMIN = "admin"
    CURATOR = "curator"
    VIEWER = "viewer"
    GUEST = "guest"


class ActionKind(str):
    """Workflow actions on inbox items."""
    ATTACH_SOURCE = "attach_source"
    REQUEST_REVIEW = "request_review"
    APPROVE = "approve"
    PROMOTE = "promote"
    CONVERT_TO_FAQ = "convert_to_faq"
    REJECT = "reject"
    MARK_REVIEWED = "mark_reviewed"
    DISMISS = "dismiss"
    BULK_APPROVE = "bulk_approve"
    BULK_REJECT = "bulk_reject"
    CREATE_MANUAL = "create_manual"


# ========== Lists for validation ==========

ACTIVE_STATUSES = [InboxStatus.PENDING, InboxStatus.NEEDS_REVIEW]
TERMINAL_STATUSES = [
    InboxStatus.APPROVED, InboxStatus.REJECTED, InboxStatus.PROMOTED,
    InboxStatus.REVIEWED, InboxStatus.DISMISSED
]
VALID_STATUSES = ACTIVE_STATUSES + TERMINAL_STATUSES
VALID_SOURCES = [
    InboxSource.AUTO, InboxSource.MANUAL,
    InboxSource.ADMIN_REVIEW, InboxSource.LIVE_SESSION
]
REVIEW_REQUEST_SOURCES = [InboxSource.ADMIN_REVIEW, InboxSource.LIVE_SESSION]
VALID_ROLES = [
    ActorRole.OWNER, ActorRole.ADMIN, ActorRole.CURATOR,
    ActorRole.VIEWER, ActorRole.GUEST
]
# Roles allowed to run inbox workflow actions at all
INBOX_APPROVER_ROLES = [ActorRole.OWNER, ActorRole.ADMIN, ActorRole.CURATOR]
# Roles that may act on items assigned to someone else
ASSIGNMENT_OVERRIDE_ROLES = [ActorRole.OWNER, ActorRole.ADMIN]

MAX_SPAN_TEXT_CHARS = 400
DRAFT_STORAGE_KEY = "manualFaqCreationDraft"
DEFAULT_TAG_FILTER = "no_source"
