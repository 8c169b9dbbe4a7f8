import pytest

from powerquote.core.errors import ServiceError
from powerquote.server.schemas.quote import BOMItemIn, QuoteCreate, QuoteUpdate
from powerquote.services import quote_service

LTX_RACK = BOMItemIn(
    product_id="qtms-ltx",
    slot_assignments={1: "ltx-relay", 2: "ltx-fiber", 3: "ltx-bushing"},
    card_configurations={"slot-3": {"numberOfBushings": 3}},
)


def test_chassis_line_is_consolidated(catalog):
    line = quote_service.price_bom_item(catalog, LTX_RACK)
    assert line["part_number"] == "QTMS-LTX-RF8B3" + "0" * 11 + "-0"
    assert line["name"] == "QTMS LTX Configuration"
    assert line["unit_price"] == 4200 + 850 + 1900 + 2600
    assert line["unit_cost"] == 2300 + 400 + 950 + 1350
    assert [c["product_id"] for c in line["configuration"]["components"]] == [
        "qtms-ltx", "ltx-relay", "ltx-fiber", "ltx-bushing",
    ]


def test_bushing_on_forbidden_slot_is_rejected(catalog):
    item = BOMItemIn(product_id="qtms-ltx", slot_assignments={7: "ltx-bushing"})
    with pytest.raises(ServiceError) as exc:
        quote_service.price_bom_item(catalog, item)
    assert exc.value.status_code == 400
    assert "Slot 7 is not allowed for bushing cards" in exc.value.message

    last = BOMItemIn(product_id="qtms-ltx", slot_assignments={14: "ltx-bushing"})
    with pytest.raises(ServiceError) as exc:
        quote_service.price_bom_item(catalog, last)
    assert "Cannot place 2-slot bushing card at slot 14 (last slot)" in exc.value.message


def test_overlapping_cards_are_rejected(catalog):
    item = BOMItemIn(product_id="qtms-ltx", slot_assignments={1: "ltx-bushing", 2: "ltx-relay"})
    with pytest.raises(ServiceError) as exc:
        quote_service.price_bom_item(catalog, item)
    assert "Slot 2 is already occupied" in exc.value.message


def test_slot_assignments_on_a_card_are_rejected(catalog):
    item = BOMItemIn(product_id="ltx-relay", slot_assignments={1: "ltx-relay"})
    with pytest.raises(ServiceError):
        quote_service.price_bom_item(catalog, item)


def test_unit_price_overrides_price_not_cost(catalog):
    line = quote_service.price_bom_item(catalog, BOMItemIn(product_id="ltx-relay", quantity=3, unit_price=500))
    assert line["part_number"] == "RLY-8"
    assert line["unit_price"] == 500
    assert line["unit_cost"] == 400
    assert line["total_price"] == 1500
    assert line["total_cost"] == 1200
    assert line["margin"] == 20.0
    assert line["level4_selections"] is None


def test_level4_defaults_are_resolved(catalog):
    line = quote_service.price_bom_item(
        catalog, BOMItemIn(product_id="ltx-analog", level4_selections={"input_type": "RTD"})
    )
    assert line["level4_selections"] == {"input_type": "RTD", "channels": "8"}

    with pytest.raises(ServiceError) as exc:
        quote_service.price_bom_item(catalog, BOMItemIn(product_id="ltx-analog", level4_selections={"input_type": "x"}))
    assert "Invalid value" in exc.value.message


def test_level4_selections_per_chassis_slot(catalog):
    item = BOMItemIn(
        product_id="qtms-ltx",
        slot_assignments={1: "ltx-relay", 4: "ltx-analog", 5: "ltx-analog"},
        slot_level4_selections={"slot-4": {"input_type": "RTD"}},
    )
    line = quote_service.price_bom_item(catalog, item)
    slots = {e["slot"]: e for e in line["configuration"]["slot_assignments"]}

    assert slots[4]["level4_selections"] == {"input_type": "RTD", "channels": "8"}
    assert slots[4]["has_level4_configuration"] is True
    # slot 5 took the defaults, the relay has no field set
    assert slots[5]["level4_selections"] == {"input_type": "4-20mA", "channels": "8"}
    assert slots[1]["level4_selections"] is None
    layout = {e["slot"]: e for e in line["configuration"]["rack_layout"]["slots"]}
    assert layout[4]["level4_selections"]["input_type"] == "RTD"


def test_level4_selections_per_slot_are_validated(catalog):
    bad_value = BOMItemIn(
        product_id="qtms-ltx",
        slot_assignments={4: "ltx-analog"},
        slot_level4_selections={"slot-4": {"input_type": "x"}},
    )
    with pytest.raises(ServiceError) as exc:
        quote_service.price_bom_item(catalog, bad_value)
    assert exc.value.message.startswith("Slot 4: Invalid value")

    on_relay = BOMItemIn(
        product_id="qtms-ltx",
        slot_assignments={1: "ltx-relay"},
        slot_level4_selections={"slot-1": {"input_type": "RTD"}},
    )
    with pytest.raises(ServiceError) as exc:
        quote_service.price_bom_item(catalog, on_relay)
    assert "has no level 4 configuration" in exc.value.message

    empty_slot = BOMItemIn(
        product_id="qtms-ltx",
        slot_assignments={1: "ltx-relay"},
        slot_level4_selections={"slot-9": {"input_type": "RTD"}},
    )
    with pytest.raises(ServiceError) as exc:
        quote_service.price_bom_item(catalog, empty_slot)
    assert exc.value.message == "Level 4 selections for empty slots: slot-9"


def test_compute_totals_discount_and_disabled_lines():
    lines = [
        {"quantity": 2, "unit_price": 500.0, "unit_cost": 300.0, "enabled": True},
        {"quantity": 1, "unit_price": 999.0, "unit_cost": 1.0, "enabled": False},
    ]
    totals = quote_service.compute_totals(lines, 10)
    assert totals["original_quote_value"] == 1000
    assert totals["total_cost"] == 600
    assert totals["original_margin"] == 40.0
    assert totals["discounted_value"] == 900
    assert totals["discounted_margin"] == 33.33
    assert totals["gross_profit"] == 300


def test_create_quote_assigns_ids_and_totals(catalog, sales):
    q = quote_service.create_quote(catalog, sales, QuoteCreate(customer_name="Grid Co", items=[LTX_RACK]))
    assert q.id == "sam.sales-QLT-1"
    assert q.draft_name == "sam.sales Draft 1"
    assert q.status == "draft" and q.workflow_state == "draft"
    assert q.owner_id == "u-sales"
    assert q.original_quote_value == 9550
    assert q.total_cost == 5000
    assert q.discounted_margin == 47.64
    assert len(quote_service.get_items(catalog, q.id)) == 1

    second = quote_service.create_quote(catalog, sales, QuoteCreate())
    assert second.id == "sam.sales-QLT-2"
    assert second.draft_name == "sam.sales Draft 2"


def test_update_recomputes_totals(catalog, sales):
    q = quote_service.create_quote(catalog, sales, QuoteCreate(items=[BOMItemIn(product_id="ltx-relay")]))
    q = quote_service.update_quote(catalog, sales, q.id, QuoteUpdate(requested_discount=10, customer_name="New"))
    assert q.customer_name == "New"
    assert q.discounted_value == 765
    assert q.gross_profit == 365

    q = quote_service.update_quote(catalog, sales, q.id, QuoteUpdate(items=[BOMItemIn(product_id="ltx-fiber", quantity=2)]))
    assert q.original_quote_value == 3800
    assert [i.product_id for i in quote_service.get_items(catalog, q.id)] == ["ltx-fiber"]


def test_only_owner_or_master_can_edit(catalog, sales, admin, master):
    q = quote_service.create_quote(catalog, sales, QuoteCreate())
    with pytest.raises(ServiceError) as exc:
        quote_service.update_quote(catalog, admin, q.id, QuoteUpdate(priority="High"))
    assert exc.value.status_code == 403
    assert quote_service.update_quote(catalog, master, q.id, QuoteUpdate(priority="High")).priority == "High"


def test_sales_only_sees_own_quotes(catalog, sales, admin):
    mine = quote_service.create_quote(catalog, sales, QuoteCreate())
    theirs = quote_service.create_quote(catalog, admin, QuoteCreate())

    assert [q.id for q in quote_service.list_quotes(catalog, sales)] == [mine.id]
    assert {q.id for q in quote_service.list_quotes(catalog, admin)} == {mine.id, theirs.id}
    with pytest.raises(ServiceError):
        quote_service.assert_can_view(sales, theirs)


def test_clone_copies_lines_into_new_draft(catalog, sales, admin):
    source = quote_service.create_quote(catalog, sales, QuoteCreate(requested_discount=5, items=[LTX_RACK]))
    clone = quote_service.clone_quote(catalog, admin, source.id)
    assert clone.id == "ada.admin-QLT-1"
    assert clone.owner_id == "u-admin"
    assert clone.requested_discount == 5
    assert clone.discounted_value == source.discounted_value
    items = quote_service.get_items(catalog, clone.id)
    assert len(items) == 1 and items[0].part_number.startswith("QTMS-LTX-")


def test_delete_only_drafts(catalog, sales):
    q = quote_service.create_quote(catalog, sales, QuoteCreate(items=[BOMItemIn(product_id="ltx-relay")]))
    quote_service.delete_quote(catalog, sales, q.id)
    with pytest.raises(ServiceError) as exc:
        quote_service.get_quote(catalog, q.id)
    assert exc.value.status_code == 404
    assert quote_service.get_items(catalog, q.id) == []


def test_unknown_or_disabled_product(catalog, sales):
    with pytest.raises(ServiceError) as exc:
        quote_service.create_quote(catalog, sales, QuoteCreate(items=[BOMItemIn(product_id="nope")]))
    assert exc.value.status_code == 404
