from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List

from powerquote.core.errors import WorkflowError


SALES = "SALES"
ADMIN = "ADMIN"
FINANCE = "FINANCE"
MASTER = "MASTER"

ROLES = (SALES, ADMIN, FINANCE, MASTER)

# Raw profile roles -> workflow roles
_ROLE_ALIASES: Dict[str, str] = {
    "LEVEL1": SALES,
    "LEVEL_1": SALES,
    "LEVEL2": SALES,
    "LEVEL_2": SALES,
    "SALES": SALES,
    "LEVEL3": ADMIN,
    "LEVEL_3": ADMIN,
    "ADMIN": ADMIN,
    "FINANCE": FINANCE,
    "MASTER": MASTER,
}

# Roles allowed to approve a quote whose margin is below the finance limit
APPROVER_ROLES = frozenset({ADMIN, FINANCE, MASTER})


@dataclass
class RequestContext:
    user_id: str
    role: str
    email: str
    full_name: str


def normalize_role(raw_role) -> str:
    """Maps a stored profile role onto SALES / ADMIN / FINANCE / MASTER (default SALES)."""
    key = str(raw_role or SALES).strip().upper()
    return _ROLE_ALIASES.get(key, SALES)


def can_approve_below_limit(role) -> bool:
    return normalize_role(role) in APPROVER_ROLES


def assert_role(context: RequestContext, allowed: Iterable[str]) -> None:
    if context.role not in set(allowed):
        raise WorkflowError(403, "Insufficient role for this action")


@dataclass
class RoleMetadata:
    role_name: str
    display_name: str
    description: str


DEFAULT_ROLES: List[RoleMetadata] = [
    RoleMetadata("LEVEL_1", "Level 1 - Channel Partners", "Access for external channel partners."),
    RoleMetadata("LEVEL_2", "Level 2 - Sales", "Access for sales team members."),
    RoleMetadata("LEVEL_3", "Level 3 - Directors", "Access for department directors and managers."),
    RoleMetadata("ADMIN", "Admin - Administrators", "Full administrative access to the system."),
    RoleMetadata("FINANCE", "Finance - Finance Team", "Access for the finance department."),
]
