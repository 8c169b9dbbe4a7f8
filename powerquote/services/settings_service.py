"""
Admin-managed settings stored in the app_setting table.

- workflow.finance_margin_limit: {"percent", "currency", "updatedBy", "updatedAt"}
- quote_id_prefix: plain string
- quote_fields: list of quote header field definitions, see core.quote_fields
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlmodel import Session

from powerquote.core.errors import WorkflowError
from powerquote.core.quote_fields import DEFAULT_QUOTE_FIELDS, FIELD_TYPES
from powerquote.core.roles import ADMIN, FINANCE, MASTER, RequestContext, assert_role
from powerquote.server.models import AppSetting, utcnow
from powerquote.server.settings.config import settings

log = logging.getLogger("powerquote.settings")

FINANCE_MARGIN_LIMIT_KEY = "workflow.finance_margin_limit"
QUOTE_ID_PREFIX_KEY = "quote_id_prefix"
QUOTE_FIELDS_KEY = "quote_fields"


def get_finance_margin_limit(session: Session) -> Dict[str, Any]:
    """
    Returns the finance guardrail.

    Falls back to FINANCE_MARGIN_LIMIT from the environment when no row
    exists or the stored value has no numeric percent.
    """
    row = session.get(AppSetting, FINANCE_MARGIN_LIMIT_KEY)
    value = row.value if row is not None else None
    if isinstance(value, dict) and isinstance(value.get("percent"), (int, float)):
        return {
            "percent": float(value["percent"]),
            "currency": value.get("currency") or settings.default_currency,
            "updatedAt": row.updated_at.isoformat() if row.updated_at else None,
        }
    return {"percent": settings.finance_margin_limit, "currency": settings.default_currency}


def update_finance_margin_limit(
    session: Session,
    context: RequestContext,
    percent: Any,
    currency: Optional[str] = None,
) -> Dict[str, Any]:
    assert_role(context, [ADMIN, FINANCE, MASTER])
    if isinstance(percent, bool) or not isinstance(percent, (int, float)) or percent <= 0:
        raise WorkflowError(400, "percent must be a positive number")

    now = utcnow()
    payload = {
        "percent": float(percent),
        "currency": currency or settings.default_currency,
        "updatedBy": context.user_id,
        "updatedAt": now.isoformat(),
    }

    row = session.get(AppSetting, FINANCE_MARGIN_LIMIT_KEY)
    if row is None:
        row = AppSetting(key=FINANCE_MARGIN_LIMIT_KEY)
    row.value = payload
    row.updated_by = context.user_id
    row.updated_at = now
    session.add(row)
    session.commit()

    log.info("Finance margin limit set to %s%% by %s", payload["percent"], context.user_id)
    return payload


def get_quote_id_prefix(session: Session) -> str:
    row = session.get(AppSetting, QUOTE_ID_PREFIX_KEY)
    if row is not None and isinstance(row.value, str) and row.value.strip():
        return row.value.strip().upper()
    return settings.quote_id_prefix.upper()


def get_quote_field_definitions(session: Session) -> List[Dict[str, Any]]:
    """Admin-edited field table, else the built-in defaults."""
    row = session.get(AppSetting, QUOTE_FIELDS_KEY)
    if row is not None and isinstance(row.value, list) and row.value:
        return [dict(f) for f in row.value]
    return [dict(f) for f in DEFAULT_QUOTE_FIELDS]


def update_quote_field_definitions(
    session: Session,
    context: RequestContext,
    fields: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    assert_role(context, [ADMIN, MASTER])
    seen = set()
    for field in fields:
        field_id = field.get("id")
        if not field_id or field_id in seen:
            raise WorkflowError(400, f"Quote field ids must be unique and non-empty: {field_id!r}")
        if field.get("type", "text") not in FIELD_TYPES:
            raise WorkflowError(400, f"Unknown field type {field.get('type')!r} for {field_id}")
        seen.add(field_id)

    row = session.get(AppSetting, QUOTE_FIELDS_KEY)
    if row is None:
        row = AppSetting(key=QUOTE_FIELDS_KEY)
    row.value = [dict(f) for f in fields]
    row.updated_by = context.user_id
    row.updated_at = utcnow()
    session.add(row)
    session.commit()

    log.info("Quote field table updated by %s (%s fields)", context.user_id, len(fields))
    return get_quote_field_definitions(session)
