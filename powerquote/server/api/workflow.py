
from typing import List

from fastapi import APIRouter, Depends
from sqlmodel import Session

from powerquote.core.roles import RequestContext
from powerquote.server.api.deps import get_context, http_errors
from powerquote.server.api.quotes import _serialize_quote
from powerquote.server.db.session import get_session
from powerquote.server.schemas.workflow import (
    AdminDecisionIn,
    ClaimIn,
    FinanceDecisionIn,
    MarginLimitIn,
    QuoteFieldIn,
    ReassignIn,
)
from powerquote.services import settings_service, workflow_service

router = APIRouter(prefix="/workflow", tags=["workflow"])


# ==============================
# SETTINGS
# ==============================

@router.get("/finance-margin-limit")
def get_finance_margin_limit(
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    return settings_service.get_finance_margin_limit(session)


@router.put("/finance-margin-limit")
def put_finance_margin_limit(
    payload: MarginLimitIn,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        return settings_service.update_finance_margin_limit(session, context, payload.percent, payload.currency)


@router.get("/quote-fields", summary="Quote header fields checked on submit")
def get_quote_fields(
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    return settings_service.get_quote_field_definitions(session)


@router.put("/quote-fields")
def put_quote_fields(
    payload: List[QuoteFieldIn],
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        return settings_service.update_quote_field_definitions(
            session, context, [f.model_dump(exclude_none=True) for f in payload]
        )


# ==============================
# QUEUES
# ==============================

@router.get("/queue/{lane}", summary="Quotes waiting in the admin or finance lane")
def review_queue(
    lane: str,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        rows = workflow_service.review_queue(session, context, lane)
    return [_serialize_quote(q, session, with_items=False) for q in rows]


# ==============================
# TRANSITIONS
# ==============================

@router.get("/{quote_id}/approval-check", summary="Margin gate for the caller")
def approval_check(
    quote_id: str,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        return workflow_service.approval_check(session, context, quote_id).as_dict()


@router.post("/{quote_id}/submit")
def submit_quote(
    quote_id: str,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        q = workflow_service.submit(session, context, quote_id)
    return _serialize_quote(q, session)


@router.post("/{quote_id}/claim")
def claim_quote(
    quote_id: str,
    payload: ClaimIn,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        q = workflow_service.claim(session, context, quote_id, payload.lane)
    return _serialize_quote(q, session)


@router.post("/{quote_id}/admin-decision")
def admin_decision(
    quote_id: str,
    payload: AdminDecisionIn,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        q = workflow_service.admin_decision(
            session,
            context,
            quote_id,
            payload.decision,
            notes=payload.notes,
            margin_percent=payload.margin_percent,
            finance_limit_percent=payload.finance_limit_percent,
        )
    return _serialize_quote(q, session)


@router.post("/{quote_id}/finance-decision")
def finance_decision(
    quote_id: str,
    payload: FinanceDecisionIn,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        q = workflow_service.finance_decision(
            session,
            context,
            quote_id,
            payload.decision,
            notes=payload.notes,
            margin_percent=payload.margin_percent,
            finance_limit_percent=payload.finance_limit_percent,
        )
    return _serialize_quote(q, session)


@router.post("/{quote_id}/reassign")
def reassign_quote(
    quote_id: str,
    payload: ReassignIn,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        q = workflow_service.reassign(session, context, quote_id, payload.lane, payload.target_user_id)
    return _serialize_quote(q, session)
