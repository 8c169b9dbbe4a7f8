"""
Quote approval workflow: sales -> admin -> finance.

    draft / needs_revision --submit--> submitted
    submitted --claim(admin)--> admin_review
    admin_review --admin decision--> approved | rejected | needs_revision
                                   | finance_review (requires_finance)
    finance_review --claim(finance)--> finance_review (reviewer assigned)
    finance_review --finance decision--> approved | rejected

Every transition writes `status` and recomputes `workflow_state` from
(status, requires_finance_approval) so the stored state never drifts from the
derivation in core.workflow. Each transition is logged as a QuoteEvent.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from powerquote.core.errors import WorkflowError
from powerquote.core.margin import FinanceApprovalRequirement, check_finance_approval_required
from powerquote.core.quote_fields import validate_quote_fields
from powerquote.core.roles import ADMIN, FINANCE, MASTER, SALES, RequestContext, assert_role
from powerquote.core.workflow import (
    ADMIN_REVIEW_STATES,
    FINANCE_REVIEW_STATES,
    UNDER_REVIEW_STATUS,
    WorkflowState,
    derive_workflow_state,
)
from powerquote.server.models import Profile, Quote, QuoteEvent, utcnow
from powerquote.services.quote_service import assert_can_view, get_quote
from powerquote.services.settings_service import get_finance_margin_limit, get_quote_field_definitions

log = logging.getLogger("powerquote.workflow")

SUBMITTABLE_STATES = (WorkflowState.DRAFT, WorkflowState.NEEDS_REVISION)


# ==============================
# HELPERS
# ==============================

def current_state(quote: Quote) -> WorkflowState:
    return derive_workflow_state(quote.status, quote.requires_finance_approval, quote.workflow_state)


def _set_status(quote: Quote, status: str, requires_finance_approval: Optional[bool] = None) -> WorkflowState:
    if requires_finance_approval is not None:
        quote.requires_finance_approval = requires_finance_approval
    quote.status = status
    state = derive_workflow_state(status, quote.requires_finance_approval)
    quote.workflow_state = state.value
    quote.updated_at = utcnow()
    return state


def log_event(
    session: Session,
    quote_id: str,
    event_type: str,
    context: RequestContext,
    previous_state: Optional[str],
    new_state: Optional[str],
    payload: Optional[Dict[str, Any]] = None,
) -> QuoteEvent:
    event = QuoteEvent(
        quote_id=quote_id,
        event_type=event_type,
        actor_id=context.user_id,
        actor_role=context.role,
        previous_state=previous_state,
        new_state=new_state,
        payload=payload,
    )
    session.add(event)
    log.info(
        "%s quote=%s actor=%s(%s) %s -> %s",
        event_type,
        quote_id,
        context.user_id,
        context.role,
        previous_state,
        new_state,
    )
    return event


def list_events(session: Session, quote_id: str) -> List[QuoteEvent]:
    stmt = select(QuoteEvent).where(QuoteEvent.quote_id == quote_id).order_by(QuoteEvent.id)
    return list(session.exec(stmt).all())


def _finish(session: Session, quote: Quote) -> Quote:
    session.add(quote)
    session.commit()
    session.refresh(quote)
    return quote


# ==============================
# APPROVAL GATE
# ==============================

def approval_check(session: Session, context: RequestContext, quote_id: str) -> FinanceApprovalRequirement:
    """Margin gate for the caller on the quote's discounted margin."""
    quote = get_quote(session, quote_id)
    assert_can_view(context, quote)
    limit = get_finance_margin_limit(session)["percent"]
    return check_finance_approval_required(quote.discounted_margin, context.role, limit)


# ==============================
# TRANSITIONS
# ==============================

def submit(session: Session, context: RequestContext, quote_id: str) -> Quote:
    assert_role(context, [SALES, ADMIN, MASTER])
    quote = get_quote(session, quote_id)

    if quote.owner_id and quote.owner_id != context.user_id and context.role != MASTER:
        raise WorkflowError(403, "Only the owner or a master operator can submit this quote")

    before = current_state(quote)
    if before not in SUBMITTABLE_STATES:
        raise WorkflowError(400, f"Quote in state {before.value} cannot be submitted")

    field_errors = validate_quote_fields(quote, get_quote_field_definitions(session))
    if field_errors:
        raise WorkflowError(400, "; ".join(field_errors))

    requirement = check_finance_approval_required(
        quote.discounted_margin,
        context.role,
        get_finance_margin_limit(session)["percent"],
    )

    now = utcnow()
    quote.owner_id = quote.owner_id or context.user_id
    quote.submitted_at = now
    quote.submitted_by_email = context.email
    quote.submitted_by_name = context.full_name
    quote.finance_margin_breached = requirement.below_limit
    after = _set_status(quote, "submitted", requires_finance_approval=False)

    log_event(session, quote.id, "quote_submitted", context, before.value, after.value, {
        "owner_id": quote.owner_id,
        "margin_percent": quote.discounted_margin,
        "below_finance_limit": requirement.below_limit,
    })
    return _finish(session, quote)


def claim(session: Session, context: RequestContext, quote_id: str, lane: str) -> Quote:
    """
    Takes a quote from a review queue.

    admin lane: submitted/admin_review -> admin_review, reviewer = caller
    finance lane: finance_review stays, finance reviewer = caller
    """
    if lane == "admin":
        assert_role(context, [ADMIN, MASTER])
        allowed = ADMIN_REVIEW_STATES
    elif lane == "finance":
        assert_role(context, [FINANCE, MASTER])
        allowed = FINANCE_REVIEW_STATES
    else:
        raise WorkflowError(400, "Lane must be admin or finance")

    quote = get_quote(session, quote_id)
    before = current_state(quote)
    if before not in allowed:
        raise WorkflowError(400, f"Quote in state {before.value} is not in the {lane} queue")

    now = utcnow()
    if lane == "admin":
        quote.admin_reviewer_id = context.user_id
    else:
        quote.finance_reviewer_id = context.user_id
    quote.reviewed_by = context.user_id
    quote.reviewed_at = now
    after = _set_status(quote, UNDER_REVIEW_STATUS)

    log_event(
        session,
        quote.id,
        "quote_claimed_admin" if lane == "admin" else "quote_claimed_finance",
        context,
        before.value,
        after.value,
        {"lane": lane},
    )
    return _finish(session, quote)


def admin_decision(
    session: Session,
    context: RequestContext,
    quote_id: str,
    decision: str,
    notes: Optional[str] = None,
    margin_percent: Optional[float] = None,
    finance_limit_percent: Optional[float] = None,
) -> Quote:
    assert_role(context, [ADMIN, MASTER])
    quote = get_quote(session, quote_id)
    before = current_state(quote)
    if before != WorkflowState.ADMIN_REVIEW:
        raise WorkflowError(400, "Quote is not in admin review")

    now = utcnow()
    quote.admin_decision_status = decision
    quote.admin_decision_notes = notes
    quote.admin_decision_by = context.user_id
    quote.admin_decision_at = now

    margin = margin_percent if margin_percent is not None else quote.discounted_margin
    limit = finance_limit_percent
    if limit is None:
        limit = get_finance_margin_limit(session)["percent"]

    if decision == "requires_finance":
        breached = margin < limit
        quote.finance_margin_breached = breached
        quote.finance_threshold_snapshot = {
            "marginPercent": margin,
            "limitPercent": limit,
            "breached": breached,
            "capturedAt": now.isoformat(),
        }
        after = _set_status(quote, "finance_review", requires_finance_approval=True)
    elif decision == "approved":
        quote.finance_margin_breached = False
        after = _set_status(quote, "approved", requires_finance_approval=False)
    elif decision == "rejected":
        after = _set_status(quote, "rejected", requires_finance_approval=False)
    elif decision == "needs_revision":
        after = _set_status(quote, "needs_revision", requires_finance_approval=False)
    else:
        raise WorkflowError(400, f"Unknown admin decision: {decision}")

    log_event(session, quote.id, "quote_admin_decision", context, before.value, after.value, {
        "decision": decision,
        "notes": notes,
        "margin_percent": margin,
        "finance_limit_percent": limit,
        "below_finance_limit": margin < limit,
    })
    return _finish(session, quote)


def finance_decision(
    session: Session,
    context: RequestContext,
    quote_id: str,
    decision: str,
    notes: Optional[str] = None,
    margin_percent: Optional[float] = None,
    finance_limit_percent: Optional[float] = None,
) -> Quote:
    """
    Final finance sign-off.

    The limit comes from the request, else the snapshot taken when admin
    routed the quote, else the current setting. Approving while the margin is
    still below that limit is refused with 422.
    """
    assert_role(context, [FINANCE, MASTER])
    if decision not in ("approved", "rejected"):
        raise WorkflowError(400, f"Unknown finance decision: {decision}")

    quote = get_quote(session, quote_id)
    before = current_state(quote)
    if before != WorkflowState.FINANCE_REVIEW:
        raise WorkflowError(400, "Quote is not waiting for finance")

    snapshot = quote.finance_threshold_snapshot or {}
    limit = finance_limit_percent
    if limit is None:
        limit = snapshot.get("limitPercent")
    if limit is None:
        limit = get_finance_margin_limit(session)["percent"]

    margin = margin_percent
    if margin is None:
        margin = snapshot.get("marginPercent")

    if decision == "approved" and margin is not None and margin < limit:
        raise WorkflowError(422, "Margin is still below the finance guardrail")

    now = utcnow()
    quote.finance_decision_status = decision
    quote.finance_decision_notes = notes
    quote.finance_decision_by = context.user_id
    quote.finance_decision_at = now
    quote.finance_margin_breached = margin < limit if margin is not None else False
    after = _set_status(quote, decision, requires_finance_approval=False)

    log_event(session, quote.id, "quote_finance_decision", context, before.value, after.value, {
        "decision": decision,
        "notes": notes,
        "margin_percent": margin,
        "finance_limit_percent": limit,
    })
    return _finish(session, quote)


_REASSIGN_COLUMNS = {
    "owner": "owner_id",
    "admin": "admin_reviewer_id",
    "finance": "finance_reviewer_id",
}


def reassign(
    session: Session,
    context: RequestContext,
    quote_id: str,
    lane: str,
    target_user_id: Optional[str] = None,
) -> Quote:
    assert_role(context, [MASTER])
    column = _REASSIGN_COLUMNS.get(lane)
    if column is None:
        raise WorkflowError(400, "lane must be owner, admin, or finance")
    if target_user_id is not None and session.get(Profile, target_user_id) is None:
        raise WorkflowError(404, "Target user not found")

    quote = get_quote(session, quote_id)
    setattr(quote, column, target_user_id)
    quote.updated_at = utcnow()

    log_event(session, quote.id, f"quote_reassigned_{lane}", context, None, quote.workflow_state, {
        "target_user_id": target_user_id,
        "lane": lane,
    })
    return _finish(session, quote)


# ==============================
# QUEUES
# ==============================

def review_queue(session: Session, context: RequestContext, lane: str) -> List[Quote]:
    """Quotes waiting in the admin or finance lane, oldest submission first."""
    if lane == "admin":
        assert_role(context, [ADMIN, MASTER])
        states = ADMIN_REVIEW_STATES
    elif lane == "finance":
        assert_role(context, [FINANCE, MASTER])
        states = FINANCE_REVIEW_STATES
    else:
        raise WorkflowError(400, "Lane must be admin or finance")

    stmt = (
        select(Quote)
        .where(Quote.workflow_state.in_([s.value for s in states]))
        .order_by(Quote.submitted_at, Quote.created_at)
    )
    return list(session.exec(stmt).all())
