"""
Role types (``freight_kernel.domain.roles``).

A user carries zero or more roles.  Authorization is evaluated with
union semantics: a capability is granted if ANY held role grants it.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum


class Role(str, Enum):
    """Roles a user may hold."""

    ADMIN = "admin"
    SALES = "sales"
    PRICING = "pricing"
    OPS = "ops"
    COLLECTIONS = "collections"
    FINANCE = "finance"


RoleSet = frozenset[Role]

_BY_VALUE: dict[str, Role] = {r.value: r for r in Role}


def normalize_roles(roles: Iterable[Role | str] | None) -> RoleSet:
    """Coerce an iterable of roles / role strings into a ``frozenset[Role]``.

    Unknown role strings are dropped; ``None`` yields the empty set.
    Never raises.
    """
    if roles is None:
        return frozenset()
    result: set[Role] = set()
    for role in roles:
        if isinstance(role, Role):
            result.add(role)
        elif isinstance(role, str):
            matched = _BY_VALUE.get(role.strip().lower())
            if matched is not None:
                result.add(matched)
    return frozenset(result)
