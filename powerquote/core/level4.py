"""
Level 4 configuration: a field set of dropdowns attached to a Level 3 card.

Definition shape (stored in Product.specifications["fields"] of the Level 4
product):

    [
        {"id": "range", "label": "Range", "options": [
            {"value": "0-10", "label": "0-10 V", "is_default": True},
            {"value": "4-20", "label": "4-20 mA"},
        ]},
        ...
    ]

Selections are a {field_id: value} dict.
"""

from typing import Any, Dict, List, Tuple


def _options(field: Dict[str, Any]) -> List[Dict[str, Any]]:
    return list(field.get("options") or field.get("dropdown_options") or [])


def default_value(field: Dict[str, Any]):
    opts = _options(field)
    for opt in opts:
        if opt.get("is_default"):
            return opt.get("value")
    return None


def apply_level4_selections(
    fields: List[Dict[str, Any]],
    selections: Dict[str, Any],
) -> Tuple[Dict[str, Any], List[str]]:
    """
    Validates selections against the field definitions.

    Returns (resolved selections, errors). Missing fields take the default
    option; fields without a default and without a selection are errors, as
    are unknown field ids and values that are not among the options.
    """
    selections = dict(selections or {})
    resolved: Dict[str, Any] = {}
    errors: List[str] = []
    known = set()

    for field in fields or []:
        field_id = str(field.get("id"))
        known.add(field_id)
        allowed = [o.get("value") for o in _options(field)]

        if field_id in selections:
            value = selections[field_id]
            if value not in allowed:
                errors.append(f"Invalid value {value!r} for field {field.get('label') or field_id}")
                continue
            resolved[field_id] = value
            continue

        fallback = default_value(field)
        if fallback is None:
            errors.append(f"Missing selection for field {field.get('label') or field_id}")
            continue
        resolved[field_id] = fallback

    for field_id in selections:
        if field_id not in known:
            errors.append(f"Unknown field {field_id}")

    return resolved, errors
