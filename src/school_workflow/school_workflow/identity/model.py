from __future__ import annotations

from dataclasses import dataclass, field

from ..core.enums import Capability, Role

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.PRINCIPAL: frozenset(
        {
            Capability.MANAGE_ISSUES,
            Capability.REVIEW_REPORTS,
            Capability.REVIEW_ACHIEVEMENTS,
            Capability.TAKE_ATTENDANCE,
        }
    ),
    Role.MANAGER: frozenset(
        {
            Capability.MANAGE_ISSUES,
            Capability.REVIEW_REPORTS,
            Capability.REVIEW_ACHIEVEMENTS,
            Capability.TAKE_ATTENDANCE,
        }
    ),
    Role.TEACHER: frozenset({Capability.TAKE_ATTENDANCE}),
    Role.STUDENT: frozenset({Capability.SUBMIT_ACHIEVEMENTS}),
}


def capabilities_for(role: Role, *, can_review_achievements: bool = False) -> frozenset[Capability]:
    """Resolve the capability set of a role plus any delegated grant."""
    caps = set(ROLE_CAPABILITIES.get(role, frozenset()))
    if can_review_achievements:
        caps.add(Capability.REVIEW_ACHIEVEMENTS)
    return frozenset(caps)


@dataclass(frozen=True)
class Actor:
    """The acting principal, resolved once per request and passed explicitly."""

    user_id: int
    role: Role
    capabilities: frozenset[Capability] = field(default_factory=frozenset)
    name: str = ""

    @classmethod
    def for_role(cls, user_id: int, role: Role, *, can_review_achievements: bool = False, name: str = "") -> "Actor":
        return cls(
            user_id=int(user_id),
            role=role,
            capabilities=capabilities_for(role, can_review_achievements=can_review_achievements),
            name=name,
        )

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities
