"""
Inbox Workflow Rules
====================

State machine for inbox items plus the approval intent variants.

All terminal states are absorbing. Each action has a set of states it may
start from and (for status-changing actions) the state it leads to.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Union

from src.config import InboxStatus, ActionKind, settings
from src.core import ConflictException, PermissionDeniedException, ValidationException
from src.inbox.domain.entities import Actor, InboxItem
from src.inbox.domain.value_objects import CitationValidationResult


@dataclass(frozen=True)
class Transition:
    """Allowed source states and resulting status for one action."""
    action: str
    sources: FrozenSet[str]
    target: Optional[str]              # None: status unchanged
    review_requests_only: bool = False
    requires_unassigned: bool = False
    requires_faq: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.target is not None and self.target not in (
            InboxStatus.PENDING, InboxStatus.NEEDS_REVIEW
        )


_ACTIVE = frozenset({InboxStatus.PENDING, InboxStatus.NEEDS_REVIEW})

TRANSITIONS: Dict[str, Transition] = {
    ActionKind.ATTACH_SOURCE: Transition(ActionKind.ATTACH_SOURCE, _ACTIVE, None),
    ActionKind.REQUEST_REVIEW: Transition(
        ActionKind.REQUEST_REVIEW,
        frozenset({InboxStatus.PENDING}),
        InboxStatus.NEEDS_REVIEW,
        requires_unassigned=True,
    ),
    ActionKind.APPROVE: Transition(ActionKind.APPROVE, _ACTIVE, InboxStatus.APPROVED),
    ActionKind.PROMOTE: Transition(
        ActionKind.PROMOTE, _ACTIVE, InboxStatus.PROMOTED, requires_faq=True
    ),
    ActionKind.CONVERT_TO_FAQ: Transition(
        ActionKind.CONVERT_TO_FAQ, _ACTIVE, InboxStatus.PROMOTED, requires_faq=True
    ),
    ActionKind.REJECT: Transition(ActionKind.REJECT, _ACTIVE, InboxStatus.REJECTED),
    ActionKind.MARK_REVIEWED: Transition(
        ActionKind.MARK_REVIEWED, _ACTIVE, InboxStatus.REVIEWED, review_requests_only=True
    ),
    ActionKind.DISMISS: Transition(
        ActionKind.DISMISS, _ACTIVE, InboxStatus.DISMISSED, review_requests_only=True
    ),
}


class WorkflowPolicy:
    """
    Decides whether an actor may run an action on an item.

    Checks are ordered: terminal (idempotent no-op, reported by the caller),
    offered-for-state/source (conflict), ownership (permission).
    """

    @staticmethod
    def transition_for(action: str) -> Transition:
        try:
            return TRANSITIONS[action]
        except KeyError:
            raise ValueError(f"Unknown workflow action: {action}") from None

    @staticmethod
    def is_offered(item: InboxItem, action: str, faq_enabled: bool) -> bool:
        """Check whether an action is offered for the item's state and source."""
        transition = WorkflowPolicy.transition_for(action)
        if item.status not in transition.sources:
            return False
        if transition.review_requests_only and not item.is_review_request:
            return False
        if transition.requires_unassigned and item.is_assigned:
            return False
        if transition.requires_faq and not faq_enabled:
            return False
        return True

    @staticmethod
    def ensure_allowed(item: InboxItem, actor: Actor, action: str, faq_enabled: bool) -> Transition:
        """
        Raise if the action cannot be attempted.

        Raises:
            PermissionDeniedException: Ownership rule violated (checked first)
            ConflictException: Item state/source does not offer the action
        """
        transition = WorkflowPolicy.transition_for(action)
        if not item.can_be_modified_by(actor):
            raise PermissionDeniedException(item.id, action, permission_message(item, actor))
        if not WorkflowPolicy.is_offered(item, action, faq_enabled):
            raise ConflictException(
                item.id, action, WorkflowPolicy.unavailable_reason(item, transition, faq_enabled)
            )
        return transition

    @staticmethod
    def unavailable_reason(item: InboxItem, transition: Transition, faq_enabled: bool) -> str:
        if transition.requires_unassigned and item.is_assigned:
            return "Already assigned. Use reassign workflow."
        if transition.review_requests_only and not item.is_review_request:
            return "Only review requests can be marked reviewed or dismissed."
        if transition.requires_faq and not faq_enabled:
            return "FAQ creation is disabled for this workspace."
        return f"Action '{transition.action}' is not available while the item is {item.status}."

    @staticmethod
    def available_actions(item: InboxItem, actor: Actor, faq_enabled: bool) -> List[str]:
        """Actions to offer; empty for terminal items or unauthorised actors."""
        if item.is_terminal or not item.can_be_modified_by(actor):
            return []
        return [
            action for action in TRANSITIONS
            if WorkflowPolicy.is_offered(item, action, faq_enabled)
        ]


def permission_message(item: InboxItem, actor: Actor) -> str:
    if not actor.can_curate:
        return "Your role cannot change inbox items."
    if item.is_assigned:
        return "This item is assigned to another reviewer. Only assignees or admins can act on it."
    return "You do not have permission to act on this item."


# ========== Approval intents ==========

@dataclass(frozen=True)
class ApproveIntent:
    """Plain approval: QA pair is stored and re-embedded, no FAQ entry."""
    answer: Optional[str] = None
    reembed: bool = True
    action: str = ActionKind.APPROVE

    def to_payload(self) -> dict:
        payload: dict = {"reembed": self.reembed}
        if self.answer:
            payload["answer"] = self.answer
        return payload


@dataclass(frozen=True)
class PromoteIntent:
    """Promotion into the verified knowledge base."""
    citations: Optional[tuple] = None
    answer: Optional[str] = None
    title: Optional[str] = None
    action: str = ActionKind.PROMOTE

    def to_payload(self) -> dict:
        payload: dict = {}
        if self.citations is not None:
            payload["citations"] = [c.to_payload() for c in self.citations]
        if self.answer:
            payload["answer"] = self.answer
        if self.title:
            payload["title"] = self.title
        payload["is_faq"] = True
        return payload


ApprovalIntent = Union[ApproveIntent, PromoteIntent]


def _clean(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    trimmed = text.strip()
    return trimmed or None


def resolve_approval_intent(
    faq_creation_enabled: bool,
    wants_faq: bool,
    answer: Optional[str] = None,
    title: Optional[str] = None,
    citations: Optional[CitationValidationResult] = None,
) -> ApprovalIntent:
    """
    Pick the approval variant once per submission.

    Promote is chosen strictly when FAQ creation is enabled AND the caller
    asked for an FAQ; everything else is a plain approve, which carries
    neither title nor citations.
    """
    if faq_creation_enabled and wants_faq:
        return PromoteIntent(
            citations=tuple(citations.citations) if citations is not None else None,
            answer=_clean(answer),
            title=_clean(title),
        )
    return ApproveIntent(answer=_clean(answer))


# ========== SME review request ==========

@dataclass(frozen=True)
class ReviewRequest:
    """Route an item to one or more SMEs with a reason."""
    reason: str
    assignee_ids: tuple

    def validate(
        self,
        min_chars: int = settings.review_reason_min_chars,
        max_chars: int = settings.review_reason_max_chars
    ) -> "ReviewRequest":
        """
        Return a normalised copy or raise.

        Raises:
            ValidationException: Reason length out of range or no assignee
        """
        reason = self.reason.strip()
        if len(reason) < min_chars:
            raise ValidationException(
                f"Explain the concern ({min_chars} chars min).",
                {"field": "reason", "length": len(reason)}
            )
        if len(reason) > max_chars:
            raise ValidationException(
                f"Please shorten to {max_chars} characters.",
                {"field": "reason", "length": len(reason)}
            )
        assignees = tuple(dict.fromkeys(a.strip() for a in self.assignee_ids if a and a.strip()))
        if not assignees:
            raise ValidationException("Select at least one SME.", {"field": "assignees"})
        return ReviewRequest(reason=reason, assignee_ids=assignees)

    def to_payload(self) -> dict:
        return {"reason": self.reason, "assignees": list(self.assignee_ids)}
