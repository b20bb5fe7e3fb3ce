import pytest
from sqlalchemy import select

from smartedu.core.exceptions import (
    AccountDeactivated, EmailExists, InternalError, InvalidCredentials, InvalidCurrentPassword,
    InvalidRefreshToken, InvalidSession, InvalidToken, NotFound, ValidationError, WeakPassword,
)
from smartedu.models import ActivityLog, User
from smartedu.schemas.auth import RegisterRequest

from .conftest import STRONG_PASSWORD, register


def _deactivate(container, user_id):
    with container.session_factory() as db:
        db.get(User, user_id).is_active = False
        db.commit()


def _actions(container, user_id):
    with container.session_factory() as db:
        return [a.action for a in db.scalars(select(ActivityLog).where(ActivityLog.user_id == user_id))]


# ============= register =============

def test_register_student_creates_profile(container, student):
    assert student.role == "student"
    assert student.email == "student@school.org"
    assert student.student_profile.grade_level == 7
    assert student.teacher_profile is None
    assert not hasattr(student, "password_hash")
    assert "REGISTER" in _actions(container, student.id)


def test_register_teacher_creates_profile(teacher):
    assert teacher.role == "teacher"
    assert teacher.teacher_profile.academic_year == "2024-2025"
    assert teacher.student_profile is None


def test_register_normalizes_email(container):
    user = register(container, "admin", "  Head.Admin@School.ORG ")
    assert user.email == "head.admin@school.org"
    assert container.auth.login(" HEAD.admin@school.org", STRONG_PASSWORD).user.id == user.id


def test_register_collects_all_field_errors(container):
    with pytest.raises(ValidationError) as exc:
        container.auth.register(RegisterRequest(
            email="not-an-email", password="weak", first_name="A", last_name="", role="student",
        ))
    fields = {e.field for e in exc.value.errors}
    assert {"email", "password", "first_name", "last_name", "grade_level"} <= fields
    assert exc.value.status_code == 400


def test_register_rejects_unknown_role_and_bad_grade(container):
    with pytest.raises(ValidationError) as exc:
        container.auth.register(RegisterRequest(
            email="x@school.org", password=STRONG_PASSWORD, first_name="Xan", last_name="Doe", role="parent",
        ))
    assert [e.code for e in exc.value.errors] == ["INVALID_ROLE"]

    with pytest.raises(ValidationError) as exc:
        register(container, "student", "y@school.org", grade_level=13)
    assert [e.code for e in exc.value.errors] == ["INVALID_GRADE_LEVEL"]


def test_teacher_needs_academic_year(container):
    with pytest.raises(ValidationError) as exc:
        register(container, "teacher", "t2@school.org", academic_year="  ")
    assert [e.code for e in exc.value.errors] == ["MISSING_ACADEMIC_YEAR"]


def test_duplicate_email(container, student):
    with pytest.raises(EmailExists):
        register(container, "student", "STUDENT@school.org")


# ============= login =============

def test_login_returns_tokens_and_stamps_last_login(container, student, clock):
    result = container.auth.login("student@school.org", STRONG_PASSWORD, "10.0.0.9", "pytest")
    assert result.user.id == student.id
    assert result.user.last_login == clock.now
    assert result.expires_in == 900
    assert result.token_type == "bearer"
    assert "LOGIN" in _actions(container, student.id)


def test_login_same_error_for_unknown_email_and_wrong_password(container, student):
    with pytest.raises(InvalidCredentials) as unknown:
        container.auth.login("nobody@school.org", STRONG_PASSWORD)
    with pytest.raises(InvalidCredentials) as wrong:
        container.auth.login("student@school.org", "Wr0ng$Secret")
    assert unknown.value.message == wrong.value.message


def test_login_deactivated_only_after_correct_password(container, student):
    _deactivate(container, student.id)
    with pytest.raises(InvalidCredentials):
        container.auth.login("student@school.org", "Wr0ng$Secret")
    with pytest.raises(AccountDeactivated):
        container.auth.login("student@school.org", STRONG_PASSWORD)


# ============= session round trip =============

def test_verify_refresh_verify_round_trip(container, student):
    login = container.auth.login("student@school.org", STRONG_PASSWORD)
    assert container.auth.verify_token(login.access_token).id == student.id

    pair = container.auth.refresh_token(login.refresh_token)
    assert pair.access_token != login.access_token
    assert pair.refresh_token != login.refresh_token
    assert container.auth.verify_token(pair.access_token).id == student.id
    assert "REFRESH_TOKEN" in _actions(container, student.id)


def test_refresh_token_is_single_use(container, student):
    login = container.auth.login("student@school.org", STRONG_PASSWORD)
    container.auth.refresh_token(login.refresh_token)
    with pytest.raises(InvalidRefreshToken):
        container.auth.refresh_token(login.refresh_token)


def test_refresh_rejects_garbage_and_access_tokens(container, student):
    login = container.auth.login("student@school.org", STRONG_PASSWORD)
    with pytest.raises(InvalidRefreshToken):
        container.auth.refresh_token("garbage")
    with pytest.raises(InvalidRefreshToken):
        container.auth.refresh_token(login.access_token)


def test_refresh_for_deactivated_owner(container, student):
    login = container.auth.login("student@school.org", STRONG_PASSWORD)
    _deactivate(container, student.id)
    with pytest.raises(AccountDeactivated):
        container.auth.refresh_token(login.refresh_token)


def test_refresh_after_session_expiry(container, student, clock):
    login = container.auth.login("student@school.org", STRONG_PASSWORD)
    clock.advance(days=31)
    with pytest.raises(InvalidRefreshToken):
        container.auth.refresh_token(login.refresh_token)


def test_verify_token_failures(container, student, clock):
    login = container.auth.login("student@school.org", STRONG_PASSWORD)
    with pytest.raises(InvalidToken):
        container.auth.verify_token("garbage")

    _deactivate(container, student.id)
    with pytest.raises(AccountDeactivated):
        container.auth.verify_token(login.access_token)

    clock.advance(days=31)
    with pytest.raises(InvalidSession):
        container.auth.verify_token(login.access_token)


# ============= logout =============

def test_logout_is_idempotent(container, student):
    login = container.auth.login("student@school.org", STRONG_PASSWORD)
    claims = container.tokens.verify_access(login.access_token)

    container.auth.logout(claims.session_id)
    container.auth.logout(claims.session_id)
    container.auth.logout("unknown-session")

    with pytest.raises(InvalidSession):
        container.auth.verify_token(login.access_token)
    assert _actions(container, student.id).count("LOGOUT") == 1


# ============= change password =============

def test_change_password_revokes_every_session(container, student):
    first = container.auth.login("student@school.org", STRONG_PASSWORD)
    second = container.auth.login("student@school.org", STRONG_PASSWORD)

    container.auth.change_password(student.id, STRONG_PASSWORD, "N3w&Better!")

    for login in (first, second):
        with pytest.raises(InvalidSession):
            container.auth.verify_token(login.access_token)
    with pytest.raises(InvalidCredentials):
        container.auth.login("student@school.org", STRONG_PASSWORD)
    assert container.auth.login("student@school.org", "N3w&Better!").user.id == student.id


def test_change_password_failures(container, student):
    with pytest.raises(NotFound):
        container.auth.change_password(9999, STRONG_PASSWORD, "N3w&Better!")
    with pytest.raises(InvalidCurrentPassword):
        container.auth.change_password(student.id, "Wr0ng$Secret", "N3w&Better!")
    with pytest.raises(WeakPassword) as exc:
        container.auth.change_password(student.id, STRONG_PASSWORD, "short")
    assert exc.value.errors
    assert all(e.field == "new_password" and e.code == "WEAK_PASSWORD" for e in exc.value.errors)


def test_get_profile(container, teacher):
    assert container.auth.get_profile(teacher.id).email == teacher.email
    with pytest.raises(NotFound):
        container.auth.get_profile(9999)


def test_get_profile_store_failure(container, engine, student):
    User.__table__.drop(engine)
    with pytest.raises(InternalError):
        container.auth.get_profile(student.id)
