from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated JWT.

    user_id: subject from JWT
    roles:   platform roles (admin, user)
    org:     issuing organization the caller acts for, if any
    """

    user_id: str
    roles: frozenset[str]
    org: str | None = None

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def is_platform_admin(self) -> bool:
        return "admin" in self.roles
