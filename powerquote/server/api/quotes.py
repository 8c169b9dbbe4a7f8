from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from powerquote.core.roles import RequestContext
from powerquote.core.workflow import lane_for_state
from powerquote.server.api.deps import get_context, http_errors
from powerquote.server.db.session import get_session
from powerquote.server.models import Quote
from powerquote.server.schemas.quote import QuoteCreate, QuoteUpdate
from powerquote.services import quote_service, workflow_service
from powerquote.services.analytics import calculate_quote_analytics

router = APIRouter(prefix="/quotes", tags=["quotes"])


# ==============================
# HELPERS
# ==============================

def _serialize_quote(q: Quote, session: Session, with_items: bool = True) -> dict:
    state = workflow_service.current_state(q)
    data = q.model_dump()
    data["workflow_state"] = state.value
    data["lane"] = lane_for_state(state)
    if with_items:
        data["bom_items"] = [item.model_dump() for item in quote_service.get_items(session, q.id)]
    return data


# ==============================
# LIST & ANALYTICS
# ==============================

@router.get("", summary="List quotes visible to the caller")
@router.get("/", include_in_schema=False)
def list_quotes(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    workflow_state: Optional[str] = None,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
) -> List[dict]:
    rows = quote_service.list_quotes(session, context, skip=skip, limit=limit, workflow_state=workflow_state)
    return [_serialize_quote(q, session, with_items=False) for q in rows]


@router.get("/analytics", summary="Month/year quote stats and 12 month breakdown")
def quote_analytics(
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    rows = quote_service.list_quotes(session, context, limit=None)
    return calculate_quote_analytics(rows)


# ==============================
# CREATE / UPDATE / DELETE
# ==============================

@router.post("", summary="Create a draft quote", status_code=201)
def create_quote(
    payload: QuoteCreate,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        q = quote_service.create_quote(session, context, payload)
    return _serialize_quote(q, session)


@router.get("/{quote_id}")
def get_quote(
    quote_id: str,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        q = quote_service.get_quote(session, quote_id)
        quote_service.assert_can_view(context, q)
    return _serialize_quote(q, session)


@router.patch("/{quote_id}")
def update_quote(
    quote_id: str,
    payload: QuoteUpdate,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        q = quote_service.update_quote(session, context, quote_id, payload)
    return _serialize_quote(q, session)


@router.delete("/{quote_id}", status_code=204)
def delete_quote(
    quote_id: str,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        quote_service.delete_quote(session, context, quote_id)


@router.post("/{quote_id}/clone", status_code=201)
def clone_quote(
    quote_id: str,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        q = quote_service.clone_quote(session, context, quote_id)
    return _serialize_quote(q, session)


# ==============================
# HISTORY
# ==============================

@router.get("/{quote_id}/events")
def quote_events(
    quote_id: str,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        q = quote_service.get_quote(session, quote_id)
        quote_service.assert_can_view(context, q)
    return [e.model_dump() for e in workflow_service.list_events(session, quote_id)]
