"""
Quote workflow states.

A quote carries two status fields:

- `status`: the legacy status string written by older clients
  ("pending_approval", "under-review", ...)
- `workflow_state`: one of the WorkflowState values below

The workflow state is always derivable from (status, requires_finance_approval):
a quote that is "under-review" with the finance flag set sits in the finance
lane, everything else goes through LEGACY_STATUS_STATE_MAP.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class WorkflowState(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    ADMIN_REVIEW = "admin_review"
    FINANCE_REVIEW = "finance_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_REVISION = "needs_revision"
    CLOSED = "closed"


UNDER_REVIEW_STATUS = "under-review"

LEGACY_STATUS_STATE_MAP = {
    "draft": WorkflowState.DRAFT,
    "submitted": WorkflowState.SUBMITTED,
    "pending_approval": WorkflowState.SUBMITTED,
    UNDER_REVIEW_STATUS: WorkflowState.ADMIN_REVIEW,
    "admin_review": WorkflowState.ADMIN_REVIEW,
    "finance_review": WorkflowState.FINANCE_REVIEW,
    "approved": WorkflowState.APPROVED,
    "rejected": WorkflowState.REJECTED,
    "needs_revision": WorkflowState.NEEDS_REVISION,
    "closed": WorkflowState.CLOSED,
}

ADMIN_REVIEW_STATES = frozenset({WorkflowState.SUBMITTED, WorkflowState.ADMIN_REVIEW})
FINANCE_REVIEW_STATES = frozenset({WorkflowState.FINANCE_REVIEW})
WORKFLOW_QUEUE_STATES = ADMIN_REVIEW_STATES | FINANCE_REVIEW_STATES
FINAL_STATES = frozenset({
    WorkflowState.APPROVED,
    WorkflowState.REJECTED,
    WorkflowState.NEEDS_REVISION,
    WorkflowState.CLOSED,
})


def _coerce(state) -> Optional[WorkflowState]:
    if state is None or state == "":
        return None
    if isinstance(state, WorkflowState):
        return state
    try:
        return WorkflowState(str(state))
    except ValueError:
        return None


def status_to_workflow_state(status: Optional[str]) -> Optional[WorkflowState]:
    """
    Looks up a legacy status in LEGACY_STATUS_STATE_MAP.

    Returns None for empty or unknown statuses so callers can decide on a
    fallback themselves.
    """
    if not status:
        return None
    return LEGACY_STATUS_STATE_MAP.get(str(status))


def derive_workflow_state(
    status: Optional[str],
    requires_finance_approval: bool = False,
    workflow_state: Optional[str] = None,
) -> WorkflowState:
    """
    Derives the workflow state of a quote.

    Rules, in order:
      1) status "under-review" with the finance flag set -> finance_review
      2) an explicitly stored workflow_state (if it is a known state)
      3) the legacy status mapping
      4) draft
    """
    if status == UNDER_REVIEW_STATUS and requires_finance_approval:
        return WorkflowState.FINANCE_REVIEW

    stored = _coerce(workflow_state)
    if stored is not None:
        return stored

    return status_to_workflow_state(status) or WorkflowState.DRAFT


def is_pending_state(state) -> bool:
    coerced = _coerce(state)
    return coerced is not None and coerced in WORKFLOW_QUEUE_STATES


def lane_for_state(state) -> Optional[str]:
    """Returns "admin", "finance" or None for the review lane a state belongs to."""
    coerced = _coerce(state)
    if coerced is None:
        return None
    if coerced in ADMIN_REVIEW_STATES:
        return "admin"
    if coerced in FINANCE_REVIEW_STATES:
        return "finance"
    return None


def is_final_state(state) -> bool:
    coerced = _coerce(state)
    return coerced is not None and coerced in FINAL_STATES
