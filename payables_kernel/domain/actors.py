"""
Actors and roles.

Responsibility:
    Immutable value object describing who is performing an operation.
    Identity and role storage are external; callers build an ``Actor`` from
    whatever their authentication layer returns and pass it explicitly.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Roles recognised by the payables workflow."""

    ADMIN = "admin"
    REVIEWER = "reviewer"
    FINANCE = "finance"
    USER = "user"


@dataclass(frozen=True)
class Actor:
    """A username plus the roles it holds."""

    username: str
    roles: frozenset[Role] = frozenset({Role.USER})

    def __post_init__(self):
        if not self.username or not self.username.strip():
            raise ValueError("Actor username cannot be empty")
        object.__setattr__(self, "roles", frozenset(Role(r) for r in self.roles))

    def has_role(self, role: Role) -> bool:
        return role in self.roles

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles

    @classmethod
    def of(cls, username: str, *roles: Role | str) -> "Actor":
        """Convenience constructor: ``Actor.of("alice", Role.ADMIN)``."""
        return cls(username=username, roles=frozenset(Role(r) for r in roles or (Role.USER,)))

    def __str__(self) -> str:
        return self.username


SYSTEM_ACTOR = Actor(username="system", roles=frozenset({Role.ADMIN}))
