# event_approval/core/roles.py

from enum import Enum
from typing import List, Tuple


class Role(str, Enum):
    """Closed set of account roles. Values are the strings stored in MongoDB."""
    STAFF = "STAFF"
    HOD = "HOD"
    IQAC = "IQAC"
    PRINCIPAL = "PRINCIPAL"
    DIRECTOR = "DIRECTOR"
    AO = "AO"
    CEO = "CEO"
    ADMIN = "ADMIN"


class RoleSentinel(str, Enum):
    """Values of `current_role` that are not an approver role."""
    AWAITING_STAFF = "AWAITING_STAFF"
    COMPLETED = "COMPLETED"


# Every request passes these two roles first, in this order.
PREFIX_ROLES: Tuple[Role, ...] = (Role.HOD, Role.IQAC)

# Roles IQAC may pick from, in canonical priority order.
WORKFLOW_ROLE_ORDER: Tuple[Role, ...] = (Role.PRINCIPAL, Role.DIRECTOR, Role.AO, Role.CEO)

APPROVER_ROLES: Tuple[Role, ...] = PREFIX_ROLES + WORKFLOW_ROLE_ORDER

# Roles that log in by role name alone (one shared account per role).
SINGLE_ACCOUNT_ROLES: Tuple[Role, ...] = (
    Role.ADMIN, Role.IQAC, Role.PRINCIPAL, Role.DIRECTOR, Role.AO, Role.CEO
)

DEPARTMENTS: List[str] = [
    "AI&DS", "CSE", "ECE", "IT", "MECH", "AI&ML", "CYS", "R&A", "CSBS", "S&H"
]


def parse_role(value: str) -> Role:
    """Case-insensitive lookup; raises ValueError for unknown roles."""
    try:
        return Role(str(value).strip().upper())
    except ValueError:
        raise ValueError(f"Unknown role '{value}'. Must be one of: {', '.join(r.value for r in Role)}")
