"""
Role-based access policy.
Maps (resource, action) pairs to the set of role names allowed to perform them.
"""
import uuid
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple

import structlog

from ..errors import AuthorizationError


logger = structlog.get_logger(__name__)


ADMIN = "admin"
CHIEF_OF_STAFF = "chief_of_staff"
TEAM_LEADER = "team_leader"
GUARD = "guard"

ROLE_NAMES: Tuple[str, ...] = (ADMIN, CHIEF_OF_STAFF, TEAM_LEADER, GUARD)

ROLE_DESCRIPTIONS: Dict[str, str] = {
    ADMIN: "Full system access",
    CHIEF_OF_STAFF: "Manages guards, clients, sites and schedules",
    TEAM_LEADER: "Supervises shifts, attendance and incidents",
    GUARD: "Records own attendance and reports incidents",
}

EVERYONE: FrozenSet[str] = frozenset(ROLE_NAMES)
MANAGERS: FrozenSet[str] = frozenset({ADMIN, CHIEF_OF_STAFF})
SUPERVISORS: FrozenSet[str] = frozenset({ADMIN, CHIEF_OF_STAFF, TEAM_LEADER})
ADMINS: FrozenSet[str] = frozenset({ADMIN})


POLICY: Dict[Tuple[str, str], FrozenSet[str]] = {
    ("users", "read"): MANAGERS,
    ("users", "create"): ADMINS,
    ("users", "update"): ADMINS,
    ("roles", "read"): EVERYONE,
    ("guards", "read"): EVERYONE,
    ("guards", "create"): MANAGERS,
    ("guards", "update"): MANAGERS,
    ("clients", "read"): EVERYONE,
    ("clients", "create"): MANAGERS,
    ("clients", "update"): MANAGERS,
    ("locations", "read"): EVERYONE,
    ("locations", "create"): MANAGERS,
    ("locations", "update"): MANAGERS,
    ("shifts", "read"): EVERYONE,
    ("shifts", "create"): MANAGERS,
    ("shifts", "update"): MANAGERS,
    ("schedules", "read"): EVERYONE,
    ("schedules", "create"): SUPERVISORS,
    ("schedules", "update"): SUPERVISORS,
    ("attendance", "read"): EVERYONE,
    ("attendance", "create"): EVERYONE,
    ("attendance", "update"): SUPERVISORS,
    ("incident_categories", "read"): EVERYONE,
    ("incident_categories", "create"): MANAGERS,
    ("incident_categories", "update"): MANAGERS,
    ("incidents", "read"): EVERYONE,
    ("incidents", "create"): EVERYONE,
    ("incidents", "update"): SUPERVISORS,
    ("incidents", "override"): ADMINS,
    ("dashboard", "read"): EVERYONE,
    ("audit", "read"): ADMINS,
}


@dataclass(frozen=True)
class Identity:
    """Authenticated caller as seen by the service layer."""

    user_id: uuid.UUID
    username: str
    role: Optional[str]


def is_allowed(role: Optional[str], resource: str, action: str) -> bool:
    """
    Check whether a role may perform an action on a resource.

    Unknown (resource, action) pairs and callers without a role are denied.
    """
    if not role:
        return False
    allowed = POLICY.get((resource, action))
    if allowed is None:
        return False
    return role in allowed


def check_permission(identity: Identity, resource: str, action: str) -> None:
    if not is_allowed(identity.role, resource, action):
        logger.warning(
            "permission_denied",
            user_id=str(identity.user_id),
            role=identity.role,
            resource=resource,
            action=action,
        )
        raise AuthorizationError(f"Role '{identity.role}' may not {action} {resource}")


def is_guard(identity: Identity) -> bool:
    return identity.role == GUARD
