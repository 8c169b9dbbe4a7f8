from fastapi import APIRouter, Depends
from sqlmodel import Session

from powerquote.core.margin import check_finance_approval_required
from powerquote.core.roles import RequestContext
from powerquote.server.api.deps import get_context, http_errors
from powerquote.server.db.session import get_session
from powerquote.server.schemas.bom import MarginIn, PartNumberIn
from powerquote.services import quote_service
from powerquote.services.settings_service import get_finance_margin_limit

router = APIRouter(prefix="/bom", tags=["bom"])


def _consolidate(payload: PartNumberIn, session: Session) -> dict:
    return quote_service.consolidate_item(
        session,
        payload.chassis_id,
        payload.slot_assignments,
        has_remote_display=payload.has_remote_display,
        card_configurations=payload.card_configurations,
        slot_level4_selections=payload.slot_level4_selections,
    )


@router.post("/part-number", summary="Part number for a chassis and its slot assignments")
def part_number(
    payload: PartNumberIn,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        line = _consolidate(payload, session)
    return {"part_number": line["part_number"]}


@router.post("/consolidate", summary="Chassis + cards as one BOM line")
def consolidate(
    payload: PartNumberIn,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        return _consolidate(payload, session)


@router.post("/margin", summary="Price a BOM and run the finance margin gate")
def bom_margin(
    payload: MarginIn,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    """
    Prices the lines without saving a quote.

    The approval block is the gate the caller would hit on submit.
    """
    with http_errors():
        lines = [quote_service.price_bom_item(session, item) for item in payload.items]
    totals = quote_service.compute_totals(lines, payload.requested_discount)
    limit = get_finance_margin_limit(session)["percent"]
    requirement = check_finance_approval_required(totals["discounted_margin"], context.role, limit)
    return {
        "items": lines,
        "totals": totals,
        "approval": requirement.as_dict(),
    }
