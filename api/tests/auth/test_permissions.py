"""Tests for auth permissions."""

from uuid import uuid4

import pytest

from src.auth.permissions import (
    ROLE_CAPABILITIES,
    Capability,
    UserRole,
    can_manage_course,
    check_capability,
    is_admin,
    parse_role,
)


class TestUserRole:
    """Tests for UserRole enum."""

    def test_role_values(self) -> None:
        """Roles should have correct string values."""
        assert UserRole.STUDENT.value == "student"
        assert UserRole.TUTOR.value == "tutor"
        assert UserRole.ADMIN.value == "admin"

    def test_all_roles_have_capabilities(self) -> None:
        """Every role has an entry in the capability table."""
        for role in UserRole:
            assert role in ROLE_CAPABILITIES

    def test_admin_has_every_capability(self) -> None:
        """Admins hold all capabilities."""
        assert ROLE_CAPABILITIES[UserRole.ADMIN] == frozenset(Capability)

    @pytest.mark.parametrize(
        "role,expected",
        [
            ("student", UserRole.STUDENT),
            ("tutor", UserRole.TUTOR),
            (UserRole.ADMIN, UserRole.ADMIN),
            ("instructor", None),
        ],
    )
    def test_parse_role(self, role: str | UserRole, expected: UserRole | None) -> None:
        """Known role strings parse and unknown ones give None."""
        assert parse_role(role) == expected


class TestCheckCapability:
    """Tests for check_capability function."""

    @pytest.mark.parametrize(
        "capability",
        [
            Capability.VIEW_CATALOG,
            Capability.ENROLL,
            Capability.TRACK_PROGRESS,
            Capability.CHAT,
        ],
    )
    def test_student_learning_capabilities(self, capability: Capability) -> None:
        """Students can learn and chat."""
        assert check_capability(UserRole.STUDENT, capability).allowed is True

    def test_student_cannot_author(self) -> None:
        """Students cannot manage courses and the decision says why."""
        decision = check_capability("student", Capability.MANAGE_COURSES)
        assert decision.allowed is False
        assert decision.capability == Capability.MANAGE_COURSES
        assert decision.reason == "Perfil 'student' nao possui permissao 'manage_courses'"

    def test_tutor_authors_own_content(self) -> None:
        """Tutors manage their own courses but not others'."""
        assert check_capability(UserRole.TUTOR, Capability.MANAGE_COURSES)
        assert check_capability(UserRole.TUTOR, Capability.MANAGE_CONTENT)
        assert not check_capability(UserRole.TUTOR, Capability.MANAGE_ANY_COURSE)

    def test_unknown_role_is_refused(self) -> None:
        """An unknown role has no capabilities."""
        decision = check_capability("superadmin", Capability.VIEW_CATALOG)
        assert decision.allowed is False
        assert "superadmin" in (decision.reason or "")

    def test_decision_is_truthy_only_when_allowed(self) -> None:
        """A decision is truthy exactly when allowed."""
        assert bool(check_capability(UserRole.ADMIN, Capability.CHAT)) is True
        assert bool(check_capability(UserRole.STUDENT, Capability.MANAGE_CONTENT)) is False


class TestCanManageCourse:
    """Tests for course ownership checks."""

    def test_owner_tutor_can_manage(self) -> None:
        """The owning tutor may change the course."""
        tutor_id = uuid4()
        assert can_manage_course(tutor_id, UserRole.TUTOR, tutor_id).allowed is True

    def test_owner_compared_as_string(self) -> None:
        """Owner ids match whether given as str or UUID."""
        tutor_id = uuid4()
        assert can_manage_course(str(tutor_id), "tutor", tutor_id).allowed is True

    def test_other_tutor_is_refused(self) -> None:
        """Another tutor is refused with the ownership message."""
        decision = can_manage_course(uuid4(), UserRole.TUTOR, uuid4())
        assert decision.allowed is False
        assert decision.reason == "Apenas o tutor responsavel pode alterar este curso"

    def test_admin_manages_any_course(self) -> None:
        """Admins change any course through the override capability."""
        decision = can_manage_course(uuid4(), UserRole.ADMIN, uuid4())
        assert decision.allowed is True
        assert decision.capability == Capability.MANAGE_ANY_COURSE

    def test_student_is_refused_even_as_owner(self) -> None:
        """Students never manage courses."""
        user_id = uuid4()
        decision = can_manage_course(user_id, UserRole.STUDENT, user_id)
        assert decision.allowed is False
        assert decision.capability == Capability.MANAGE_COURSES


class TestRoleHelpers:
    """Tests for role shortcut helpers."""

    def test_is_admin(self) -> None:
        """Only the admin role is admin."""
        assert is_admin("admin") is True
        assert is_admin(UserRole.TUTOR) is False
