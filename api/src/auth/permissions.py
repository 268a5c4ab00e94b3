"""Role-based access control for CourseHub.

Roles map to a fixed set of capabilities. Every check returns an
`AccessDecision` so callers can report why access was refused:
- ADMIN: everything
- TUTOR: author courses, lessons and transcripts
- STUDENT: enroll, track progress, chat
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID


class UserRole(str, Enum):
    """User roles."""

    STUDENT = "student"
    TUTOR = "tutor"
    ADMIN = "admin"


class Capability(str, Enum):
    """Actions guarded by role."""

    VIEW_CATALOG = "view_catalog"
    ENROLL = "enroll"
    TRACK_PROGRESS = "track_progress"
    CHAT = "chat"
    MANAGE_COURSES = "manage_courses"
    MANAGE_CONTENT = "manage_content"
    MANAGE_ANY_COURSE = "manage_any_course"


_STUDENT_CAPABILITIES = frozenset(
    {
        Capability.VIEW_CATALOG,
        Capability.ENROLL,
        Capability.TRACK_PROGRESS,
        Capability.CHAT,
    }
)

_TUTOR_CAPABILITIES = _STUDENT_CAPABILITIES | {
    Capability.MANAGE_COURSES,
    Capability.MANAGE_CONTENT,
}

ROLE_CAPABILITIES: dict[UserRole, frozenset[Capability]] = {
    UserRole.STUDENT: _STUDENT_CAPABILITIES,
    UserRole.TUTOR: _TUTOR_CAPABILITIES,
    UserRole.ADMIN: frozenset(Capability),
}


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of an access check."""

    allowed: bool
    capability: Capability | None = None
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.allowed


def parse_role(role: UserRole | str) -> UserRole | None:
    """Convert a role string to UserRole, None when unknown."""
    if isinstance(role, UserRole):
        return role
    try:
        return UserRole(role)
    except ValueError:
        return None


def check_capability(role: UserRole | str, capability: Capability) -> AccessDecision:
    """Check whether a role grants a capability.

    Examples:
        >>> check_capability(UserRole.TUTOR, Capability.MANAGE_CONTENT).allowed
        True
        >>> check_capability("student", Capability.MANAGE_COURSES).reason
        "Perfil 'student' nao possui permissao 'manage_courses'"
    """
    parsed = parse_role(role)
    if parsed is None:
        return AccessDecision(
            allowed=False,
            capability=capability,
            reason=f"Perfil desconhecido: '{role}'",
        )

    if capability in ROLE_CAPABILITIES[parsed]:
        return AccessDecision(allowed=True, capability=capability)

    return AccessDecision(
        allowed=False,
        capability=capability,
        reason=f"Perfil '{parsed.value}' nao possui permissao '{capability.value}'",
    )


def can_manage_course(
    user_id: UUID | str,
    role: UserRole | str,
    course_tutor_id: Any,
) -> AccessDecision:
    """Check whether a user may change a given course.

    Tutors manage only their own courses, admins manage every course.
    """
    if check_capability(role, Capability.MANAGE_ANY_COURSE):
        return AccessDecision(allowed=True, capability=Capability.MANAGE_ANY_COURSE)

    decision = check_capability(role, Capability.MANAGE_COURSES)
    if not decision:
        return decision

    if str(course_tutor_id) != str(user_id):
        return AccessDecision(
            allowed=False,
            capability=Capability.MANAGE_COURSES,
            reason="Apenas o tutor responsavel pode alterar este curso",
        )

    return decision


def is_admin(role: UserRole | str) -> bool:
    """Check if role is ADMIN."""
    return parse_role(role) == UserRole.ADMIN
