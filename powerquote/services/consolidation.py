"""
Consolidation of chassis configurations into a single BOM line.

The BOM builder lets the user drop cards into chassis slots. On the quote the
whole rack is one line: the chassis part number (see core.part_numbers), the
summed price/cost of chassis + cards, and the component list kept in the line
configuration.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional

from powerquote.core.part_numbers import _get, build_chassis_part_number, chassis_type_of
from powerquote.core.slots import build_rack_layout, serialize_slot_assignments

_TIMESTAMP_ID_RE = re.compile(r"\d{13}")


def consolidate_chassis(
    chassis: Any,
    slot_assignments: Mapping[int, Any],
    has_remote_display: bool = False,
    pn_config: Any = None,
    code_map: Optional[Mapping[str, Any]] = None,
    card_configurations: Optional[Mapping[str, Any]] = None,
    parent: Any = None,
    slot_level4_selections: Optional[Mapping[int, Any]] = None,
) -> Dict[str, Any]:
    """
    Builds the consolidated line for one chassis instance.

    Returns a dict with id, name, description, part_number, price, cost,
    components and configuration. The line id is derived from the part
    number so the same rack always consolidates to the same id.
    """
    part_number = build_chassis_part_number(
        chassis,
        slot_assignments,
        has_remote_display=has_remote_display,
        pn_config=pn_config,
        code_map=code_map,
        card_configurations=card_configurations,
    )

    cards = [card for _, card in sorted(slot_assignments.items()) if card is not None]
    price = float(_get(chassis, "price") or 0) + sum(float(_get(c, "price") or 0) for c in cards)
    cost = float(_get(chassis, "cost") or 0) + sum(float(_get(c, "cost") or 0) for c in cards)

    components: List[Dict[str, Any]] = [{
        "product_id": _get(chassis, "id"),
        "name": _get(chassis, "name"),
        "part_number": _get(chassis, "part_number"),
        "price": float(_get(chassis, "price") or 0),
        "cost": float(_get(chassis, "cost") or 0),
        "slot": None,
    }]
    for slot, card in sorted(slot_assignments.items()):
        if card is None:
            continue
        components.append({
            "product_id": _get(card, "id"),
            "name": _get(card, "name"),
            "part_number": _get(card, "part_number"),
            "price": float(_get(card, "price") or 0),
            "cost": float(_get(card, "cost") or 0),
            "slot": int(slot),
        })

    serialized = serialize_slot_assignments(slot_assignments, slot_level4_selections)
    family = _get(parent, "name") or "QTMS"
    return {
        "id": f"qtms-{part_number.lower()}",
        "name": f"{family} {chassis_type_of(chassis)} Configuration".strip(),
        "description": f"{_get(chassis, 'name')} with {len(cards)} card(s)",
        "part_number": part_number,
        "price": price,
        "cost": cost,
        "components": components,
        "configuration": {
            "chassis_id": _get(chassis, "id"),
            "slot_assignments": serialized,
            "card_configurations": dict(card_configurations or {}),
            "has_remote_display": bool(has_remote_display),
            "rack_layout": build_rack_layout(serialized),
        },
    }


def extract_components(configuration: Optional[Mapping[str, Any]]) -> List[str]:
    """Unique product ids (chassis first, then cards by slot) of a consolidated line."""
    if not configuration:
        return []
    ids: List[str] = []
    chassis_id = configuration.get("chassis_id")
    if chassis_id:
        ids.append(chassis_id)
    for entry in configuration.get("slot_assignments") or []:
        product_id = entry.get("product_id")
        if product_id and product_id not in ids:
            ids.append(product_id)
    return ids


def is_chassis_configuration(item: Mapping[str, Any]) -> bool:
    return bool((item.get("configuration") or {}).get("chassis_id"))


def is_dynamic_product(product_id: str) -> bool:
    """Consolidated or timestamp-suffixed ids that have no catalog row of their own."""
    product_id = str(product_id or "")
    return product_id.startswith("qtms-") or ("-" in product_id and bool(_TIMESTAMP_ID_RE.search(product_id)))
