"""
Quote header fields that must be filled before a quote can be submitted.

A field definition is a plain dict (stored as JSON when an admin edits the
table):

    {"id": "payment_terms", "label": "Payment Terms", "type": "select",
     "required": True, "enabled": True, "options": ["Prepaid", "30 days"]}

Ids matching a Quote column are read from the column, any other id from
Quote.quote_fields.
"""

from typing import Any, Dict, List, Mapping

FIELD_TYPES = ("text", "number", "select", "textarea", "date")

DEFAULT_QUOTE_FIELDS: List[Dict[str, Any]] = [
    {"id": "customer_name", "label": "Customer Name", "type": "text", "required": True, "enabled": True},
    {"id": "oracle_customer_id", "label": "Oracle Customer ID", "type": "text", "required": True, "enabled": True},
    {"id": "sfdc_opportunity", "label": "SFDC Opportunity", "type": "text", "required": True, "enabled": True},
    {"id": "contact_person", "label": "Contact Person", "type": "text", "required": False, "enabled": True},
    {"id": "contact_email", "label": "Contact Email", "type": "text", "required": False, "enabled": True},
    {"id": "project_name", "label": "Project Name", "type": "text", "required": False, "enabled": True},
    {"id": "expected_close_date", "label": "Expected Close Date", "type": "date", "required": False, "enabled": True},
    {"id": "competitor_info", "label": "Competitor Information", "type": "textarea", "required": False, "enabled": True},
    {
        "id": "payment_terms",
        "label": "Payment Terms",
        "type": "select",
        "required": True,
        "enabled": True,
        "options": ["Prepaid", "15 days", "30 days", "60 days", "90 days", "120 days"],
    },
    {
        "id": "shipping_terms",
        "label": "Shipping Terms",
        "type": "select",
        "required": True,
        "enabled": True,
        "options": ["Ex-Works", "CFR", "CIF", "CIP", "CPT", "DDP", "DAP", "FCA", "Prepaid"],
    },
    {
        "id": "currency",
        "label": "Currency",
        "type": "select",
        "required": True,
        "enabled": True,
        "options": ["USD", "EURO", "GBP", "CAD"],
    },
]


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def field_value(quote: Any, field_id: str) -> Any:
    if isinstance(quote, Mapping):
        if field_id in quote:
            return quote.get(field_id)
        return (quote.get("quote_fields") or {}).get(field_id)
    if hasattr(quote, field_id):
        return getattr(quote, field_id)
    return (getattr(quote, "quote_fields", None) or {}).get(field_id)


def validate_quote_fields(quote: Any, fields: List[Dict[str, Any]]) -> List[str]:
    """
    Checks enabled fields of a quote against the definitions.

    Returns error messages: one listing every missing required field, then
    one per select value that is not among its options.
    """
    missing: List[str] = []
    errors: List[str] = []
    for field in fields or []:
        if not field.get("enabled", True):
            continue
        label = field.get("label") or field.get("id")
        value = field_value(quote, str(field.get("id")))
        if _blank(value):
            if field.get("required"):
                missing.append(label)
            continue
        options = field.get("options")
        if field.get("type") == "select" and options and value not in options:
            errors.append(f"Invalid value {value!r} for {label}")

    if missing:
        errors.insert(0, f"Missing required fields: {', '.join(missing)}")
    return errors
