from powerquote.core.level4 import apply_level4_selections, default_value
from powerquote.core.quote_ids import draft_name, email_prefix, next_quote_id, normalize_quote_id
from powerquote.core.slots import (
    build_rack_layout,
    deserialize_slot_assignments,
    is_bushing_slot_allowed,
    serialize_slot_assignments,
    validate_bushing_placement,
    validate_slot_assignments,
)

STX = {"id": "stx", "chassis_type": "STX"}
RELAY = {"id": "relay", "name": "Relay Card", "type": "relay"}
BUSHING = {"id": "bush", "name": "Bushing Card", "type": "bushing", "specifications": {"slotRequirement": 2}}


# ==============================
# SLOTS
# ==============================

def test_valid_layout_has_no_errors():
    assert validate_slot_assignments(STX, {1: BUSHING, 3: RELAY}) == []


def test_out_of_range_and_overrun():
    errors = validate_slot_assignments(STX, {5: RELAY, 4: BUSHING, "x": RELAY})
    assert "Invalid slot number: x" in errors
    assert "Slot 5 is outside chassis range 1-4" in errors
    assert "Card in slot 4 needs 2 slots but chassis only has 4" in errors


def test_overlap_with_multi_slot_card():
    errors = validate_slot_assignments(STX, {1: BUSHING, 2: RELAY})
    assert errors == ["Slot 2 is already occupied by the card in slot 1"]


def test_code_map_span_overrides_card():
    errors = validate_slot_assignments(STX, {3: RELAY}, {"relay": {"slot_span": 3}})
    assert errors == ["Card in slot 3 needs 3 slots but chassis only has 4"]


def test_bushing_positions():
    assert is_bushing_slot_allowed(6, "LTX")
    assert not is_bushing_slot_allowed(7, "LTX")
    assert is_bushing_slot_allowed(13, "ltx")
    assert not is_bushing_slot_allowed(14, "LTX")
    assert not is_bushing_slot_allowed(7, "MTX")
    assert is_bushing_slot_allowed(3, "STX")
    assert not is_bushing_slot_allowed(1, "XYZ")


def test_bushing_placement():
    ok = validate_bushing_placement(1, STX, {})
    assert ok.is_valid and ok.occupied_slots == [1, 2]

    last = validate_bushing_placement(4, STX, {})
    assert not last.is_valid
    assert "last slot" in last.error_message

    blocked = validate_bushing_placement(2, STX, {3: RELAY})
    assert blocked.error_message == "Slot 3 is already occupied (required for 2-slot bushing card)"


def test_serialized_assignments_round_into_rack_layout():
    stored = serialize_slot_assignments({
        3: {"id": "bush", "name": "Bushing Card", "is_bushing_secondary": True, "bushing_pair_slot": 2},
        2: {"id": "bush", "name": "Bushing Card", "is_bushing_primary": True, "bushing_pair_slot": 3},
        1: RELAY,
    })
    assert [e["slot"] for e in stored] == [1, 2, 3]

    layout = build_rack_layout(stored)["slots"]
    assert layout[0]["primary_slot"] == 1
    assert layout[2]["primary_slot"] == 2
    assert layout[2]["shared_from_slot"] == 2
    assert layout[2]["span"] == 2

    restored = deserialize_slot_assignments(stored)
    assert restored[1]["id"] == "relay"
    assert restored[3]["is_bushing_secondary"] is True
    assert build_rack_layout([]) is None


# ==============================
# QUOTE IDS
# ==============================

def test_normalize_quote_id():
    assert normalize_quote_id(" jdoe - QLT - 007 ") == "jdoe-QLT-7"
    assert normalize_quote_id("jdoe-QLT-0012-Draft") == "jdoe-QLT-12-Draft"
    assert normalize_quote_id("free form") == "free form"
    assert normalize_quote_id(None) == ""


def test_next_quote_id_uses_highest_counter_of_same_user_and_prefix():
    existing = ["jdoe-QLT-3", "jdoe-qlt-9-Draft", "other-QLT-50", "jdoe-ABC-99"]
    assert next_quote_id("JDoe@example.com", "u1", existing) == "jdoe-QLT-10"
    assert next_quote_id("jdoe@example.com", "u1", existing, prefix="abc") == "jdoe-ABC-100"
    assert next_quote_id("new@example.com", "u2", existing) == "new-QLT-1"


def test_email_prefix_falls_back_to_user_id():
    assert email_prefix(None, "1234567890") == "12345678"
    assert email_prefix("", None) == "user"


def test_draft_name():
    assert draft_name("jdoe@example.com", 2) == "jdoe Draft 3"
    assert draft_name("jdoe@example.com", None).startswith("jdoe Draft ")
    assert draft_name(None, 0) == "User Draft 1"


# ==============================
# LEVEL 4
# ==============================

FIELDS = [
    {"id": "range", "label": "Range", "options": [
        {"value": "0-10", "label": "0-10 V", "is_default": True},
        {"value": "4-20", "label": "4-20 mA"},
    ]},
    {"id": "mode", "label": "Mode", "options": [{"value": "a"}, {"value": "b"}]},
]


def test_level4_defaults_fill_missing_fields():
    resolved, errors = apply_level4_selections(FIELDS, {"mode": "b"})
    assert errors == []
    assert resolved == {"range": "0-10", "mode": "b"}
    assert default_value(FIELDS[1]) is None


def test_level4_errors():
    _, errors = apply_level4_selections(FIELDS, {})
    assert errors == ["Missing selection for field Mode"]

    _, errors = apply_level4_selections(FIELDS, {"mode": "z", "extra": 1})
    assert "Invalid value 'z' for field Mode" in errors
    assert "Unknown field extra" in errors
