"""
Quote ids and draft names.

Submitted quote ids look like `<email prefix>-<PREFIX>-<sequence>`, e.g.
`jdoe-QLT-7`. Older drafts may carry a `-Draft` suffix.
"""

from __future__ import annotations

import re
import time
from typing import Iterable, Optional

DEFAULT_QUOTE_PREFIX = "QLT"

_STRUCTURED_ID_RE = re.compile(
    r"^(?P<user>[^-]+)-(?P<prefix>[A-Za-z0-9]+)-(?P<counter>\d+)(?P<draft>-Draft)?$"
)
_EMAIL_PREFIX_CLEAN_RE = re.compile(r"[^a-z0-9._-]", re.IGNORECASE)


def normalize_quote_id(raw_id: Optional[str]) -> str:
    """
    Collapses whitespace around dashes and strips leading zeros from the counter.

        " jdoe - QLT - 007 "  -> "jdoe-QLT-7"
    """
    if not raw_id:
        return ""
    trimmed = raw_id.strip()
    if not trimmed:
        return ""

    sanitized = re.sub(r"\s*-\s*", "-", trimmed)
    match = _STRUCTURED_ID_RE.match(sanitized)
    if not match:
        return sanitized

    user = match.group("user").strip()
    prefix = match.group("prefix").strip()
    counter = str(int(match.group("counter")))
    draft = match.group("draft") or ""
    if user:
        return f"{user}-{prefix}-{counter}{draft}"
    return f"{prefix}-{counter}{draft}"


def email_prefix(email: Optional[str], user_id: Optional[str] = None, fallback: str = "user") -> str:
    local = (email or "").split("@")[0]
    cleaned = _EMAIL_PREFIX_CLEAN_RE.sub("", local.strip().lower())
    return cleaned or (user_id or "")[:8] or fallback


def next_quote_id(
    email: Optional[str],
    user_id: Optional[str],
    existing_ids: Iterable[str],
    prefix: Optional[str] = None,
) -> str:
    """
    Next id in the caller's sequence.

    The sequence is one above the highest counter among existing ids that
    belong to the same email prefix and quote prefix (case-insensitive),
    starting at 1.
    """
    user_part = email_prefix(email, user_id)
    quote_prefix = (prefix or "").strip().upper() or DEFAULT_QUOTE_PREFIX

    sequence_re = re.compile(
        rf"^{re.escape(user_part)}-{re.escape(quote_prefix)}-(\d+)(?:-Draft)?$",
        re.IGNORECASE,
    )
    highest = 0
    for quote_id in existing_ids:
        match = sequence_re.match(str(quote_id or ""))
        if match:
            highest = max(highest, int(match.group(1)))

    return normalize_quote_id(f"{user_part}-{quote_prefix}-{highest + 1}")


def draft_name(email: Optional[str], existing_draft_count: Optional[int]) -> str:
    """`<email prefix> Draft <n>`; falls back to a time-based suffix when the count is unknown."""
    prefix = (email or "").split("@")[0] or "User"
    if existing_draft_count is None:
        return f"{prefix} Draft {str(int(time.time() * 1000))[-6:]}"
    return f"{prefix} Draft {existing_draft_count + 1}"
