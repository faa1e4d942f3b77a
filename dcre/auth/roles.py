"""Role hierarchy and permission helpers."""

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Workflow roles. private_host never appears here; see normalize_role."""

    RENTER = "renter"
    DEALER = "dealer"
    ADMIN = "admin"
    PRIME_ADMIN = "prime_admin"
    SUPER_ADMIN = "super_admin"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]


# Higher number = more permissions
_ROLE_RANK: dict[Role, int] = {
    Role.RENTER: 1,
    Role.DEALER: 2,
    Role.ADMIN: 3,
    Role.PRIME_ADMIN: 4,
    Role.SUPER_ADMIN: 5,
}

_ROLE_ALIASES = {"private_host": Role.DEALER}


def normalize_role(raw: str | None) -> Role | None:
    """Map a stored profile role onto the workflow role set.

    Private hosts are treated as dealers for every workflow decision.
    Unknown or empty roles map to None.
    """
    if not raw:
        return None
    if raw in _ROLE_ALIASES:
        return _ROLE_ALIASES[raw]
    try:
        return Role(raw)
    except ValueError:
        return None


def role_at_least(role: Role | None, required: Role) -> bool:
    """Check if a role has at least the permissions of another role."""
    if role is None:
        return False
    return role.rank >= required.rank


def is_admin(role: Role | None) -> bool:
    return role_at_least(role, Role.ADMIN)


def is_prime_admin_or_higher(role: Role | None) -> bool:
    return role_at_least(role, Role.PRIME_ADMIN)


@dataclass(frozen=True)
class Actor:
    """Authenticated caller plus the request metadata the audit trail records."""

    actor_id: str
    role: Role
    ip_address: str | None = None
    user_agent: str | None = None
