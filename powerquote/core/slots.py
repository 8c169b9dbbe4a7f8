"""
Slot assignment rules for chassis products.

Slot numbers are 1-based. A card occupies `span` consecutive slots starting at
its assigned slot. Bushing cards always take two slots and may only start at
the positions allowed for the chassis type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from powerquote.core.part_numbers import (
    LEGACY_CHASSIS_SLOTS,
    _get,
    card_slot_span,
    chassis_slot_count,
    chassis_type_of,
)


@dataclass
class SlotValidation:
    is_valid: bool
    error_message: Optional[str] = None
    occupied_slots: List[int] = field(default_factory=list)


def max_slots_for_chassis(chassis_type: str) -> int:
    return LEGACY_CHASSIS_SLOTS.get(str(chassis_type or "").upper(), 0)


def is_bushing_slot_allowed(slot: int, chassis_type: str) -> bool:
    chassis_type = str(chassis_type or "").upper()
    if chassis_type == "LTX":
        # slot 7 would straddle the two LTX banks, slot 14 has no neighbour
        return 1 <= slot <= 6 or 8 <= slot <= 13
    if chassis_type == "MTX":
        return 1 <= slot <= 6
    if chassis_type == "STX":
        return 1 <= slot <= 3
    return False


def is_bushing_card(card: Any) -> bool:
    name = str(_get(card, "name") or "").lower()
    return "bushing" in name or _get(card, "type") == "bushing"


def validate_bushing_placement(
    slot: int,
    chassis: Any,
    current_assignments: Mapping[int, Any],
) -> SlotValidation:
    chassis_type = chassis_type_of(chassis)
    max_slots = max_slots_for_chassis(chassis_type)
    next_slot = slot + 1

    if slot < 1 or slot > max_slots:
        return SlotValidation(False, f"Slot {slot} is not valid for {chassis_type} chassis")
    if slot == max_slots:
        return SlotValidation(False, f"Cannot place 2-slot bushing card at slot {slot} (last slot)")
    if not is_bushing_slot_allowed(slot, chassis_type):
        return SlotValidation(False, f"Slot {slot} is not allowed for bushing cards in {chassis_type} chassis")
    if current_assignments.get(slot) is not None:
        return SlotValidation(False, f"Slot {slot} is already occupied")
    if current_assignments.get(next_slot) is not None:
        return SlotValidation(
            False,
            f"Slot {next_slot} is already occupied (required for 2-slot bushing card)",
        )
    return SlotValidation(True, occupied_slots=[slot, next_slot])


def validate_slot_assignments(
    chassis: Any,
    slot_assignments: Mapping[Any, Any],
    code_map: Optional[Mapping[str, Any]] = None,
) -> List[str]:
    """
    Checks a full set of slot assignments for one chassis instance.

    Returns a list of error messages (empty when the layout is valid):
      - slot numbers must be integers inside 1..slot_count
      - a multi-slot card may not run past the last slot
      - no slot may be covered by two cards
    """
    code_map = code_map or {}
    total = chassis_slot_count(chassis)
    errors: List[str] = []
    owner: Dict[int, int] = {}

    normalized: Dict[int, Any] = {}
    for raw_slot, card in slot_assignments.items():
        try:
            slot = int(raw_slot)
        except (TypeError, ValueError):
            errors.append(f"Invalid slot number: {raw_slot}")
            continue
        if card is None:
            continue
        if slot in normalized:
            errors.append(f"Slot {slot} is assigned more than once")
            continue
        normalized[slot] = card

    for slot in sorted(normalized):
        card = normalized[slot]
        if slot < 1 or slot > total:
            errors.append(f"Slot {slot} is outside chassis range 1-{total}")
            continue

        span = card_slot_span(card, code_map.get(str(_get(card, "id"))))
        last = slot + span - 1
        if last > total:
            errors.append(f"Card in slot {slot} needs {span} slots but chassis only has {total}")
            continue

        for covered in range(slot, last + 1):
            if covered in owner:
                errors.append(f"Slot {covered} is already occupied by the card in slot {owner[covered]}")
                break
            owner[covered] = slot

    return errors


def _safe_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def serialize_slot_assignments(
    assignments: Mapping[Any, Any],
    level4_selections: Optional[Mapping[int, Any]] = None,
) -> List[Dict[str, Any]]:
    """
    Turns {slot: card} into the list form stored in BOMItem.configuration.

    level4_selections holds resolved Level 4 selections per slot number and
    wins over a level4_selections value carried on the card itself.
    """
    level4_selections = level4_selections or {}
    out: List[Dict[str, Any]] = []
    for raw_slot, card in assignments.items():
        slot = _safe_int(raw_slot) or 0
        level4 = level4_selections.get(slot)
        if level4 is None:
            level4 = _get(card, "level4_selections")
        specs = _get(card, "specifications") or {}
        slot_requirement = _safe_int(_get(card, "slot_requirement")) or _safe_int(specs.get("slotRequirement"))
        out.append({
            "slot": slot,
            "product_id": _get(card, "id"),
            "name": _get(card, "name"),
            "display_name": _get(card, "display_name") or _get(card, "name"),
            "part_number": _get(card, "part_number"),
            "has_level4_configuration": bool(_get(card, "has_level4")) or level4 is not None,
            "level4_selections": level4,
            "is_bushing_primary": bool(_get(card, "is_bushing_primary")),
            "is_bushing_secondary": bool(_get(card, "is_bushing_secondary")),
            "bushing_pair_slot": _safe_int(_get(card, "bushing_pair_slot")),
            "slot_requirement": slot_requirement,
            "slot_span": _safe_int(_get(card, "slot_span")) or slot_requirement,
        })
    return sorted(out, key=lambda e: e["slot"])


def deserialize_slot_assignments(stored: Optional[List[Dict[str, Any]]]) -> Dict[int, Dict[str, Any]]:
    result: Dict[int, Dict[str, Any]] = {}
    for entry in stored or []:
        slot = _safe_int(entry.get("slot"))
        if slot is None:
            continue
        result[slot] = {
            "id": entry.get("product_id") or f"slot-{slot}",
            "name": entry.get("name") or entry.get("display_name") or f"Slot {slot} Card",
            "display_name": entry.get("display_name") or entry.get("name") or f"Slot {slot} Card",
            "part_number": entry.get("part_number"),
            "level4_selections": entry.get("level4_selections"),
            "slot_requirement": entry.get("slot_requirement"),
            "slot_span": entry.get("slot_span"),
            "is_bushing_primary": bool(entry.get("is_bushing_primary")),
            "is_bushing_secondary": bool(entry.get("is_bushing_secondary")),
            "bushing_pair_slot": entry.get("bushing_pair_slot"),
        }
    return result


def build_rack_layout(stored: Optional[List[Dict[str, Any]]]) -> Optional[Dict[str, Any]]:
    """
    Rack view of stored assignments, sorted by slot.

    A secondary bushing slot points back at its primary via primary_slot and
    shared_from_slot.
    """
    if not stored:
        return None

    slots = []
    for entry in sorted(stored, key=lambda e: _safe_int(e.get("slot")) or 0):
        slot = _safe_int(entry.get("slot"))
        pair = _safe_int(entry.get("bushing_pair_slot"))
        span = _safe_int(entry.get("slot_span")) or _safe_int(entry.get("slot_requirement"))
        if span is None and slot is not None and pair is not None:
            span = abs(pair - slot) + 1
        secondary = bool(entry.get("is_bushing_secondary"))
        slots.append({
            "slot": slot,
            "card_name": entry.get("display_name") or entry.get("name"),
            "part_number": entry.get("part_number"),
            "level4_selections": entry.get("level4_selections"),
            "span": span,
            "is_bushing_primary": bool(entry.get("is_bushing_primary")),
            "is_bushing_secondary": secondary,
            "bushing_pair_slot": pair,
            "primary_slot": pair if secondary else slot,
            "shared_from_slot": pair if secondary else None,
        })
    return {"slots": slots}
