"""
Part number assembly for chassis-based products.

A chassis part number is the chassis prefix followed by one code per slot and
an accessory suffix:

    QTMS-LTX- R F8 0 B4 0 ... -1
    ^prefix   ^slot codes     ^suffix (remote display count or code)

Slot codes come from per-card templates (PartNumberCode rows). Templates may
contain placeholders:

- {inputs}            -> card.specifications["inputs"]
- {numberOfBushings}  -> number of bushings configured for the slot

Unresolved placeholders are stripped. A card spanning several slots writes its
code in its first slot; the slots it covers keep the placeholder and are not
read for assignments.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Mapping, Optional

log = logging.getLogger("powerquote.part_numbers")

_PLACEHOLDER_RE = re.compile(r"\{[^}]+\}")

DEFAULT_SLOT_PLACEHOLDER = "0"
DEFAULT_SUFFIX_SEPARATOR = "-"

# Legacy fixed slot counts (used when a chassis carries no specifications)
LEGACY_CHASSIS_SLOTS = {"LTX": 14, "MTX": 7, "STX": 4}

LEGACY_SLOT_CODES = {
    "relay": "R",
    "analog": "A",
    "fiber": "F",
    "display": "D",
    "bushing": "B",
}

DGA_TYPES = ("TM8", "TM3", "TM1")
DGA_OPTION_CODES = (
    ("CalGas", "CG"),
    ("Helium Bottle", "HB"),
    ("Moisture Sensor", "MS"),
    ("4-20mA bridge", "MA"),
)


def _get(obj: Any, key: str, default: Any = None) -> Any:
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _specs(obj: Any) -> Dict[str, Any]:
    specs = _get(obj, "specifications")
    return specs if isinstance(specs, Mapping) else {}


def _int_or_none(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def chassis_type_of(chassis: Any) -> str:
    return str(_get(chassis, "chassis_type") or _get(chassis, "type") or "").upper()


def chassis_slot_count(chassis: Any) -> int:
    slots = _int_or_none(_specs(chassis).get("slots"))
    if slots:
        return slots
    return LEGACY_CHASSIS_SLOTS.get(chassis_type_of(chassis), 0)


def card_slot_span(card: Any, code_def: Any = None) -> int:
    span = (
        _int_or_none(_get(code_def, "slot_span"))
        or _int_or_none(_get(card, "slot_requirement"))
        or _int_or_none(_specs(card).get("slotRequirement"))
        or 1
    )
    return max(span, 1)


def bushing_count(card_configuration: Any) -> Optional[int]:
    """
    Number of bushings configured for a slot.

    Accepts either a list of bushing entries or a dict with
    "numberOfBushings".
    """
    if isinstance(card_configuration, (list, tuple)):
        return len(card_configuration)
    if isinstance(card_configuration, Mapping):
        count = _int_or_none(card_configuration.get("numberOfBushings"))
        if count is not None:
            return count
        bushings = card_configuration.get("bushings")
        if isinstance(bushings, (list, tuple)):
            return len(bushings)
    return None


def render_slot_code(template: str, card: Any, card_configuration: Any = None) -> str:
    code = template or "X"

    inputs = _specs(card).get("inputs")
    code = code.replace("{inputs}", "" if inputs is None else str(inputs))

    count = bushing_count(card_configuration)
    if count is not None:
        code = code.replace("{numberOfBushings}", str(count))

    return _PLACEHOLDER_RE.sub("", code)


def build_chassis_part_number(
    chassis: Any,
    slot_assignments: Mapping[int, Any],
    has_remote_display: bool = False,
    pn_config: Any = None,
    code_map: Optional[Mapping[str, Any]] = None,
    card_configurations: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Builds the part number for a chassis and its slot assignments.

    - pn_config (prefix, slot_count, slot_placeholder, suffix_separator,
      remote_display_code) falls back to defaults derived from the chassis.
    - code_map is keyed by card id; a missing entry renders as "X".
    - card_configurations is keyed "slot-<n>".
    """
    card_configurations = card_configurations or {}
    code_map = code_map or {}

    prefix = _get(pn_config, "prefix") or f"QTMS-{chassis_type_of(chassis)}-"
    total_slots = _int_or_none(_get(pn_config, "slot_count")) or chassis_slot_count(chassis)
    placeholder = _get(pn_config, "slot_placeholder") or DEFAULT_SLOT_PLACEHOLDER
    separator = _get(pn_config, "suffix_separator") or DEFAULT_SUFFIX_SEPARATOR
    remote_display_code = _get(pn_config, "remote_display_code")

    assignments = {int(k): v for k, v in slot_assignments.items() if v is not None}

    slots = [placeholder] * total_slots
    covered = set()
    for slot in range(1, total_slots + 1):
        if slot in covered:
            continue
        card = assignments.get(slot)
        if card is None:
            continue

        code_def = code_map.get(str(_get(card, "id")))
        template = _get(code_def, "template") or "X"
        slots[slot - 1] = render_slot_code(template, card, card_configurations.get(f"slot-{slot}"))

        span = card_slot_span(card, code_def)
        covered.update(slot + extra for extra in range(1, span))

    if has_remote_display and remote_display_code:
        suffix = f"{separator}{remote_display_code}"
    else:
        suffix = f"{separator}{1 if has_remote_display else 0}"

    part_number = f"{prefix}{''.join(slots)}{suffix}"
    log.debug("Built part number %s for chassis %s", part_number, _get(chassis, "id"))
    return part_number


def generate_legacy_part_number(
    chassis: Any,
    slot_assignments: Mapping[int, Any],
    has_remote_display: bool = False,
    analog_configurations: Optional[Mapping[str, Any]] = None,
    bushing_configurations: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Fixed-code part number used before admin-managed templates existed.

    Slot codes: R relay, A<n> analog (n = distinct sensor types), F<n> fiber
    (n = inputs), D display, B<n> bushing (two slots), X unknown, E empty.
    """
    analog_configurations = analog_configurations or {}
    bushing_configurations = bushing_configurations or {}
    chassis_type = chassis_type_of(chassis)
    max_slots = LEGACY_CHASSIS_SLOTS.get(chassis_type, 0)

    assignments = {int(k): v for k, v in slot_assignments.items() if v is not None}
    codes = []
    covered = set()
    for slot in range(1, max_slots + 1):
        if slot in covered:
            continue
        card = assignments.get(slot)
        if card is None:
            codes.append("E")
            continue

        card_type = str(_get(card, "type") or "").lower()
        card_id = str(_get(card, "id"))
        code = LEGACY_SLOT_CODES.get(card_type, "X")

        if card_type == "analog":
            sensor_types = (analog_configurations.get(card_id) or {}).get("sensorTypes")
            if sensor_types:
                code = f"A{len(set(sensor_types.values()))}"
        elif card_type == "fiber":
            inputs = _specs(card).get("inputs")
            if inputs:
                code = f"F{inputs}"
        elif card_type == "bushing":
            count = (bushing_configurations.get(card_id) or {}).get("numberOfBushings")
            if count:
                code = f"B{count}"
            covered.add(slot + 1)

        codes.append(code)

    part_number = f"QTMS-{chassis_type}-" + "".join(codes)
    if has_remote_display:
        part_number += "-RD"
    return part_number


def generate_product_part_number(product: Any, configuration: Optional[Mapping[str, Any]] = None) -> str:
    """Part number for a standalone (non-chassis) Level 1 product."""
    part_number = _get(product, "part_number") or str(_get(product, "id")).upper()
    product_type = _get(product, "type")

    if product_type in DGA_TYPES and configuration:
        options = "".join(code for key, code in DGA_OPTION_CODES if configuration.get(key))
        if options:
            part_number += "-" + options

    if product_type == "QPDM" and configuration:
        if configuration.get("quantity"):
            part_number += f"-Q{configuration['quantity']}"
        if configuration.get("channels") == "6-channel":
            part_number += "-6CH"

    return part_number


def generate_card_part_number(card: Any, configuration: Optional[Mapping[str, Any]] = None) -> str:
    part_number = _get(card, "part_number") or str(_get(card, "id")).upper()
    if not configuration:
        return part_number

    card_type = _get(card, "type")
    if card_type == "analog" and configuration.get("sensorTypes"):
        part_number += f"-{len(set(configuration['sensorTypes'].values()))}S"
    if card_type == "bushing" and configuration.get("numberOfBushings"):
        part_number += f"-{configuration['numberOfBushings']}B"
    return part_number
