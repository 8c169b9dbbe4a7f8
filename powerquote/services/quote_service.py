from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from powerquote.core.errors import ServiceError
from powerquote.core.level4 import apply_level4_selections
from powerquote.core.margin import calculate_margin_percentage, calculate_total_margin, discounted_margin
from powerquote.core.part_numbers import chassis_type_of, generate_card_part_number, generate_product_part_number
from powerquote.core.quote_ids import draft_name, next_quote_id
from powerquote.core.roles import MASTER, SALES, RequestContext
from powerquote.core.slots import (
    is_bushing_card,
    max_slots_for_chassis,
    validate_bushing_placement,
    validate_slot_assignments,
)
from powerquote.core.workflow import WorkflowState, derive_workflow_state
from powerquote.server.models import BOMItem, Product, Quote, utcnow
from powerquote.server.schemas.quote import BOMItemIn, QuoteCreate, QuoteUpdate
from powerquote.server.settings.config import settings
from powerquote.services.consolidation import consolidate_chassis
from powerquote.services.product_service import get_code_map, get_part_number_config, get_product
from powerquote.services.settings_service import get_quote_id_prefix

log = logging.getLogger("powerquote.quotes")

EDITABLE_STATES = (WorkflowState.DRAFT, WorkflowState.NEEDS_REVISION)


# ==============================
# BOM PRICING
# ==============================

def _level4_fields(session: Session, product: Product) -> Optional[List[Dict[str, Any]]]:
    rows = session.exec(
        select(Product).where(
            Product.parent_product_id == product.id,
            Product.product_level == 4,
            Product.enabled == True,  # noqa: E712
        )
    ).all()
    for row in rows:
        fields = (row.specifications or {}).get("fields")
        if fields:
            return list(fields)
    return None


def _resolve_level4(session: Session, product: Product, selections: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    fields = _level4_fields(session, product)
    if fields is None:
        if selections:
            raise ServiceError(400, f"Product {product.id} has no level 4 configuration")
        return None
    resolved, errors = apply_level4_selections(fields, selections)
    if errors:
        raise ServiceError(400, "; ".join(errors))
    return resolved


def _slot_level4(session: Session, cards: Dict[int, Product], selections: Dict[str, Dict[str, Any]]) -> Dict[int, Any]:
    """Level 4 selections per slot, keyed "slot-<n>" on the way in."""
    unknown = [key for key in selections if key not in {f"slot-{slot}" for slot in cards}]
    if unknown:
        raise ServiceError(400, f"Level 4 selections for empty slots: {', '.join(sorted(unknown))}")

    resolved: Dict[int, Any] = {}
    for slot, card in cards.items():
        try:
            level4 = _resolve_level4(session, card, selections.get(f"slot-{slot}") or {})
        except ServiceError as e:
            raise ServiceError(400, f"Slot {slot}: {e.message}") from e
        if level4 is not None:
            resolved[slot] = level4
    return resolved


def _price_chassis(session: Session, chassis: Product, item: BOMItemIn) -> Dict[str, Any]:
    cards: Dict[int, Product] = {}
    for slot, card_id in item.slot_assignments.items():
        card = get_product(session, card_id, enabled_only=True)
        if card.product_level != 3:
            raise ServiceError(400, f"Product {card_id} is not a level 3 card")
        cards[int(slot)] = card

    code_map = get_code_map(session, chassis.id)
    pn_config = get_part_number_config(session, chassis.id)

    errors = validate_slot_assignments(chassis, cards, code_map)
    # overlaps are already reported above, only start slots are checked here
    if max_slots_for_chassis(chassis_type_of(chassis)):
        for slot, card in sorted(cards.items()):
            if is_bushing_card(card):
                placement = validate_bushing_placement(slot, chassis, {})
                if not placement.is_valid:
                    errors.append(placement.error_message)
    if errors:
        raise ServiceError(400, "; ".join(errors))

    level4 = _slot_level4(session, cards, item.slot_level4_selections)

    parent = session.get(Product, chassis.parent_product_id) if chassis.parent_product_id else None
    return consolidate_chassis(
        chassis,
        cards,
        has_remote_display=item.has_remote_display,
        pn_config=pn_config,
        code_map=code_map,
        card_configurations=item.card_configurations,
        parent=parent,
        slot_level4_selections=level4,
    )


def consolidate_item(
    session: Session,
    chassis_id: str,
    slot_assignments: Dict[int, str],
    has_remote_display: bool = False,
    card_configurations: Optional[Dict[str, Any]] = None,
    slot_level4_selections: Optional[Dict[str, Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """Validated consolidated line for a chassis without saving anything."""
    chassis = get_product(session, chassis_id, enabled_only=True)
    if chassis.product_level != 2:
        raise ServiceError(400, f"Product {chassis.id} is not a chassis")
    item = BOMItemIn(
        product_id=chassis_id,
        slot_assignments=slot_assignments,
        has_remote_display=has_remote_display,
        card_configurations=card_configurations or {},
        slot_level4_selections=slot_level4_selections or {},
    )
    return _price_chassis(session, chassis, item)


def price_bom_item(session: Session, item: BOMItemIn) -> Dict[str, Any]:
    """
    Prices one BOM line against the catalog.

    - chassis lines (slot assignments given) are consolidated into one line
      whose price/cost is chassis + cards
    - other lines use the product price/cost and a generated part number
    - unit_price on the payload overrides the catalog price, never the cost
    """
    product = get_product(session, item.product_id, enabled_only=True)
    level4 = _resolve_level4(session, product, item.level4_selections)

    if item.slot_assignments:
        if product.product_level != 2:
            raise ServiceError(400, f"Product {product.id} is not a chassis")
        consolidated = _price_chassis(session, product, item)
        name = consolidated["name"]
        description = consolidated["description"]
        part_number = consolidated["part_number"]
        catalog_price = consolidated["price"]
        unit_cost = consolidated["cost"]
        configuration = dict(consolidated["configuration"])
        configuration["components"] = consolidated["components"]
    else:
        name = product.display_name or product.name
        description = product.description
        if product.product_level == 3:
            part_number = generate_card_part_number(product, item.configuration)
        else:
            part_number = generate_product_part_number(product, item.configuration)
        catalog_price = product.price
        unit_cost = product.cost
        configuration = dict(item.configuration) or None

    unit_price = catalog_price if item.unit_price is None else item.unit_price
    return {
        "product_id": product.id,
        "name": name,
        "description": description,
        "part_number": part_number,
        "quantity": item.quantity,
        "unit_price": round(unit_price, 2),
        "unit_cost": round(unit_cost, 2),
        "total_price": round(unit_price * item.quantity, 2),
        "total_cost": round(unit_cost * item.quantity, 2),
        "margin": calculate_margin_percentage(unit_price, unit_cost) or 0.0,
        "enabled": item.enabled,
        "configuration": configuration,
        "level4_selections": level4,
    }


def compute_totals(lines: List[Dict[str, Any]], requested_discount: float) -> Dict[str, float]:
    """
    Quote level totals over enabled lines.

    gross_profit is taken after the discount (discounted value - cost).
    """
    totals = calculate_total_margin(
        {
            "quantity": line["quantity"],
            "enabled": line.get("enabled", True),
            "product": {"price": line["unit_price"], "cost": line["unit_cost"]},
        }
        for line in lines
    )
    discounted = discounted_margin(totals["total_revenue"], totals["total_cost"], requested_discount)
    return {
        "original_quote_value": round(totals["total_revenue"], 2),
        "total_cost": round(totals["total_cost"], 2),
        "original_margin": round(totals["margin_percentage"], 2),
        "requested_discount": requested_discount,
        "discounted_value": round(discounted["discounted_revenue"], 2),
        "discounted_margin": round(discounted["discounted_margin"], 2),
        "gross_profit": round(discounted["discounted_revenue"] - totals["total_cost"], 2),
    }


def _replace_items(session: Session, quote: Quote, lines: List[Dict[str, Any]]) -> None:
    for old in session.exec(select(BOMItem).where(BOMItem.quote_id == quote.id)).all():
        session.delete(old)
    for line in lines:
        session.add(BOMItem(quote_id=quote.id, **line))


# ==============================
# QUERIES
# ==============================

def get_quote(session: Session, quote_id: str) -> Quote:
    quote = session.get(Quote, quote_id)
    if quote is None:
        raise ServiceError(404, "Quote not found")
    return quote


def get_items(session: Session, quote_id: str) -> List[BOMItem]:
    return list(session.exec(select(BOMItem).where(BOMItem.quote_id == quote_id).order_by(BOMItem.id)).all())


def assert_can_view(context: RequestContext, quote: Quote) -> None:
    if context.role == SALES and context.user_id not in (quote.user_id, quote.owner_id):
        raise ServiceError(403, "You do not have access to this quote")


def assert_can_edit(context: RequestContext, quote: Quote) -> None:
    if context.role != MASTER and context.user_id not in (quote.user_id, quote.owner_id):
        raise ServiceError(403, "Only the owner or a master operator can change this quote")


def list_quotes(
    session: Session,
    context: RequestContext,
    skip: int = 0,
    limit: Optional[int] = 50,
    workflow_state: Optional[str] = None,
) -> List[Quote]:
    """Sales users see their own quotes, every other role sees all."""
    stmt = select(Quote)
    if context.role == SALES:
        stmt = stmt.where((Quote.user_id == context.user_id) | (Quote.owner_id == context.user_id))
    if workflow_state:
        stmt = stmt.where(Quote.workflow_state == workflow_state)
    stmt = stmt.order_by(Quote.created_at.desc()).offset(skip).limit(limit)
    return list(session.exec(stmt).all())


# ==============================
# CREATE / UPDATE / CLONE / DELETE
# ==============================

def _new_quote_id(session: Session, context: RequestContext) -> str:
    existing = session.exec(select(Quote.id)).all()
    return next_quote_id(context.email, context.user_id, existing, get_quote_id_prefix(session))


def _draft_count(session: Session, user_id: str) -> int:
    rows = session.exec(select(Quote.id).where(Quote.user_id == user_id, Quote.status == "draft")).all()
    return len(rows)


def create_quote(session: Session, context: RequestContext, payload: QuoteCreate) -> Quote:
    lines = [price_bom_item(session, item) for item in payload.items]
    totals = compute_totals(lines, payload.requested_discount)

    quote = Quote(
        id=_new_quote_id(session, context),
        draft_name=draft_name(context.email, _draft_count(session, context.user_id)),
        owner_id=context.user_id,
        user_id=context.user_id,
        customer_name=payload.customer_name or "Unknown Customer",
        oracle_customer_id=payload.oracle_customer_id,
        sfdc_opportunity=payload.sfdc_opportunity,
        priority=payload.priority,
        payment_terms=payload.payment_terms,
        shipping_terms=payload.shipping_terms,
        currency=payload.currency or settings.default_currency,
        is_rep_involved=payload.is_rep_involved,
        quote_fields=dict(payload.quote_fields),
        discount_justification=payload.discount_justification,
        status="draft",
        workflow_state=derive_workflow_state("draft", False).value,
        **totals,
    )
    session.add(quote)
    session.flush()
    _replace_items(session, quote, lines)
    session.commit()
    session.refresh(quote)

    log.info("Quote %s created by %s (%s lines, margin %.2f%%)", quote.id, context.user_id, len(lines), quote.discounted_margin)
    return quote


def update_quote(session: Session, context: RequestContext, quote_id: str, payload: QuoteUpdate) -> Quote:
    quote = get_quote(session, quote_id)
    assert_can_edit(context, quote)
    if derive_workflow_state(quote.status, quote.requires_finance_approval, quote.workflow_state) not in EDITABLE_STATES:
        raise ServiceError(400, "Only draft or needs-revision quotes can be edited")

    data = payload.model_dump(exclude_unset=True, exclude={"items"})
    for key, value in data.items():
        if value is not None:
            setattr(quote, key, dict(value) if isinstance(value, dict) else value)

    if payload.items is not None:
        lines = [price_bom_item(session, item) for item in payload.items]
        _replace_items(session, quote, lines)
    else:
        lines = [
            {"quantity": i.quantity, "enabled": i.enabled, "unit_price": i.unit_price, "unit_cost": i.unit_cost}
            for i in get_items(session, quote.id)
        ]
    for key, value in compute_totals(lines, quote.requested_discount).items():
        setattr(quote, key, value)

    quote.updated_at = utcnow()
    session.add(quote)
    session.commit()
    session.refresh(quote)
    return quote


def clone_quote(session: Session, context: RequestContext, quote_id: str) -> Quote:
    """Copies a quote (header + BOM lines) into a new draft owned by the caller."""
    source = get_quote(session, quote_id)
    assert_can_view(context, source)

    clone = Quote(
        id=_new_quote_id(session, context),
        draft_name=draft_name(context.email, _draft_count(session, context.user_id)),
        owner_id=context.user_id,
        user_id=context.user_id,
        customer_name=source.customer_name,
        oracle_customer_id=source.oracle_customer_id,
        sfdc_opportunity=source.sfdc_opportunity,
        priority=source.priority,
        payment_terms=source.payment_terms,
        shipping_terms=source.shipping_terms,
        currency=source.currency,
        is_rep_involved=source.is_rep_involved,
        quote_fields=dict(source.quote_fields or {}),
        requested_discount=source.requested_discount,
        discount_justification=source.discount_justification,
        original_quote_value=source.original_quote_value,
        discounted_value=source.discounted_value,
        total_cost=source.total_cost,
        original_margin=source.original_margin,
        discounted_margin=source.discounted_margin,
        gross_profit=source.gross_profit,
        status="draft",
        workflow_state=WorkflowState.DRAFT.value,
    )
    session.add(clone)
    session.flush()
    for item in get_items(session, source.id):
        data = item.model_dump(exclude={"id", "quote_id"})
        session.add(BOMItem(quote_id=clone.id, **data))
    session.commit()
    session.refresh(clone)

    log.info("Quote %s cloned into %s by %s", source.id, clone.id, context.user_id)
    return clone


def delete_quote(session: Session, context: RequestContext, quote_id: str) -> None:
    quote = get_quote(session, quote_id)
    assert_can_edit(context, quote)
    if quote.status != "draft":
        raise ServiceError(400, "Only draft quotes can be deleted")
    for item in get_items(session, quote.id):
        session.delete(item)
    session.delete(quote)
    session.commit()
