"""Capability checks used to decide which content types a user may see."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Final

__all__ = [
    "CapabilityCheck",
    "MANAGE_LIBRARIES_CAPABILITY",
    "UserContext",
    "anonymous_user",
    "capability_check",
]

MANAGE_LIBRARIES_CAPABILITY: Final[str] = "manage_h5p_libraries"
"""Capability granting access to restricted content types."""

CapabilityCheck = Callable[[], bool]
"""Zero-argument predicate answering whether the current user is privileged."""


@dataclass(frozen=True, slots=True)
class UserContext:
    """Identity and granted capabilities of the user issuing a request."""

    user_id: int | None
    capabilities: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if not isinstance(self.capabilities, frozenset):
            object.__setattr__(self, "capabilities", frozenset(self.capabilities))

    @classmethod
    def with_capabilities(
        cls, user_id: int | None, capabilities: Iterable[str]
    ) -> UserContext:
        return cls(user_id=user_id, capabilities=frozenset(capabilities))

    def can(self, capability: str) -> bool:
        """Return ``True`` when *capability* has been granted."""

        return capability in self.capabilities


def anonymous_user() -> UserContext:
    """Return a context without any capabilities."""

    return UserContext(user_id=None)


def capability_check(
    user: UserContext, capability: str = MANAGE_LIBRARIES_CAPABILITY
) -> CapabilityCheck:
    """Bind *user* and *capability* into a :data:`CapabilityCheck`."""

    def check() -> bool:
        return user.can(capability)

    return check
