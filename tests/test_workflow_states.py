from powerquote.core.workflow import (
    WorkflowState,
    derive_workflow_state,
    is_final_state,
    is_pending_state,
    lane_for_state,
    status_to_workflow_state,
)


def test_under_review_with_finance_flag_is_finance_review():
    assert derive_workflow_state("under-review", True) == WorkflowState.FINANCE_REVIEW


def test_under_review_without_flag_is_admin_review():
    assert derive_workflow_state("under-review", False) == WorkflowState.ADMIN_REVIEW


def test_finance_flag_wins_over_stored_state():
    assert derive_workflow_state("under-review", True, "admin_review") == WorkflowState.FINANCE_REVIEW


def test_stored_state_wins_over_legacy_status():
    assert derive_workflow_state("draft", False, "approved") == WorkflowState.APPROVED


def test_unknown_stored_state_falls_back_to_status():
    assert derive_workflow_state("pending_approval", False, "bogus") == WorkflowState.SUBMITTED


def test_unmapped_status_is_draft():
    assert derive_workflow_state("pending", False) == WorkflowState.DRAFT
    assert derive_workflow_state(None) == WorkflowState.DRAFT


def test_status_lookup():
    assert status_to_workflow_state("closed") == WorkflowState.CLOSED
    assert status_to_workflow_state("") is None
    assert status_to_workflow_state("nope") is None


def test_lanes():
    assert lane_for_state("submitted") == "admin"
    assert lane_for_state(WorkflowState.ADMIN_REVIEW) == "admin"
    assert lane_for_state("finance_review") == "finance"
    assert lane_for_state("approved") is None
    assert lane_for_state(None) is None


def test_pending_and_final():
    assert is_pending_state("finance_review")
    assert not is_pending_state("draft")
    assert is_final_state("rejected")
    assert is_final_state("needs_revision")
    assert not is_final_state("submitted")
    assert not is_final_state("garbage")
