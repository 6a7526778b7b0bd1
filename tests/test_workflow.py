import pytest

from src.config import ActionKind, InboxSource, InboxStatus
from src.core import ConflictException, PermissionDeniedException, ValidationException
from src.inbox.domain import (
    ApproveIntent,
    CitationValidator,
    EditableCitationRow,
    PromoteIntent,
    ReviewRequest,
    TRANSITIONS,
    WorkflowPolicy,
    resolve_approval_intent,
)

from conftest import make_item


def test_terminal_states_have_no_outgoing_transitions() -> None:
    terminal = {
        InboxStatus.APPROVED, InboxStatus.REJECTED, InboxStatus.PROMOTED,
        InboxStatus.REVIEWED, InboxStatus.DISMISSED,
    }
    for transition in TRANSITIONS.values():
        assert not (transition.sources & terminal)


def test_available_actions_for_pending_auto_item(curator) -> None:
    item = make_item()

    actions = WorkflowPolicy.available_actions(item, curator, faq_enabled=False)

    assert ActionKind.ATTACH_SOURCE in actions
    assert ActionKind.REQUEST_REVIEW in actions
    assert ActionKind.APPROVE in actions
    assert ActionKind.REJECT in actions
    assert ActionKind.PROMOTE not in actions
    assert ActionKind.DISMISS not in actions
    assert ActionKind.MARK_REVIEWED not in actions


def test_review_request_items_offer_review_actions(curator) -> None:
    item = make_item(source=InboxSource.ADMIN_REVIEW)

    actions = WorkflowPolicy.available_actions(item, curator, faq_enabled=True)

    assert ActionKind.MARK_REVIEWED in actions
    assert ActionKind.DISMISS in actions
    assert ActionKind.PROMOTE in actions
    assert ActionKind.CONVERT_TO_FAQ in actions


def test_no_actions_for_terminal_items_or_viewers(curator, viewer) -> None:
    assert WorkflowPolicy.available_actions(make_item(status=InboxStatus.APPROVED), curator, True) == []
    assert WorkflowPolicy.available_actions(make_item(), viewer, True) == []


def test_request_review_on_assigned_item_is_conflict(admin) -> None:
    item = make_item(assigned_to=[{"id": "sme-1"}])

    with pytest.raises(ConflictException) as exc_info:
        WorkflowPolicy.ensure_allowed(item, admin, ActionKind.REQUEST_REVIEW, faq_enabled=False)

    assert exc_info.value.message == "Already assigned. Use reassign workflow."


def test_ownership_is_checked_before_action_availability(curator) -> None:
    item = make_item(assigned_to=[{"id": "sme-1"}])

    with pytest.raises(PermissionDeniedException):
        WorkflowPolicy.ensure_allowed(item, curator, ActionKind.REQUEST_REVIEW, faq_enabled=False)


def test_request_review_only_from_pending(curator) -> None:
    item = make_item(status=InboxStatus.NEEDS_REVIEW)

    assert not WorkflowPolicy.is_offered(item, ActionKind.REQUEST_REVIEW, faq_enabled=False)


def test_ownership_violation_is_permission_error(curator) -> None:
    item = make_item(assigned_to=[{"id": "sme-1"}])

    with pytest.raises(PermissionDeniedException):
        WorkflowPolicy.ensure_allowed(item, curator, ActionKind.REJECT, faq_enabled=False)


def test_unknown_action_raises_value_error() -> None:
    with pytest.raises(ValueError):
        WorkflowPolicy.transition_for("archive")


def test_promote_chosen_only_when_enabled_and_requested() -> None:
    assert isinstance(resolve_approval_intent(True, True), PromoteIntent)
    assert isinstance(resolve_approval_intent(True, False), ApproveIntent)
    assert isinstance(resolve_approval_intent(False, True), ApproveIntent)
    assert isinstance(resolve_approval_intent(False, False), ApproveIntent)


def test_approve_intent_carries_neither_title_nor_citations() -> None:
    citations = CitationValidator.validate([EditableCitationRow(doc_id="D1")], allow_empty=False)

    intent = resolve_approval_intent(False, True, answer="  Final answer ", title="T", citations=citations)

    assert intent.to_payload() == {"reembed": True, "answer": "Final answer"}


def test_promote_intent_payload() -> None:
    citations = CitationValidator.validate([EditableCitationRow(doc_id="D1", page="2")], allow_empty=False)

    intent = resolve_approval_intent(True, True, answer="A", title=" Title ", citations=citations)

    assert intent.to_payload() == {
        "citations": [{"doc_id": "D1", "page": 2}],
        "answer": "A",
        "title": "Title",
        "is_faq": True,
    }


def test_promote_intent_without_edited_citations_omits_key() -> None:
    assert resolve_approval_intent(True, True).to_payload() == {"is_faq": True}


def test_review_request_validation_messages() -> None:
    with pytest.raises(ValidationException, match="20 chars min"):
        ReviewRequest(reason="too short", assignee_ids=("sme-1",)).validate()
    with pytest.raises(ValidationException, match="shorten to 500"):
        ReviewRequest(reason="x" * 501, assignee_ids=("sme-1",)).validate()
    with pytest.raises(ValidationException, match="Select at least one SME"):
        ReviewRequest(reason="x" * 30, assignee_ids=(" ",)).validate()


def test_review_request_normalises_reason_and_assignees() -> None:
    request = ReviewRequest(
        reason="   Please double-check the refund policy.   ",
        assignee_ids=("sme-1", "sme-1", "sme-2"),
    ).validate()

    assert request.to_payload() == {
        "reason": "Please double-check the refund policy.",
        "assignees": ["sme-1", "sme-2"],
    }
