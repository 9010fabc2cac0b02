from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Caller identity resolved from a validated bearer token.

    user_id is the token subject; it is the student_id on enrollments and
    the user_id on reviews and lesson progress.  roles are platform roles
    (user, instructor, admin).
    """

    user_id: str
    roles: frozenset[str]

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: set[str]) -> bool:
        return bool(self.roles & roles)

    def is_platform_admin(self) -> bool:
        return "admin" in self.roles

    def can_moderate(self) -> bool:
        return self.has_any_role({"admin", "instructor"})
