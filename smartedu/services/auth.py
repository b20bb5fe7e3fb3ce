"""
Authentication: registration, login, token refresh, logout, password
change and access-token verification.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from smartedu.core.exceptions import (
    AccountDeactivated, EmailExists, FieldError, InternalError, InvalidCredentials,
    InvalidCurrentPassword, InvalidRefreshToken, InvalidSession, NotFound, TokenError,
    ValidationError, WeakPassword,
)
from smartedu.core.security import PasswordHasher, generate_session_token, score_password_strength
from smartedu.core.tokens import TokenClaims, TokenService
from smartedu.models import Gender, StudentProfile, TeacherProfile, User, UserRole, utcnow
from smartedu.schemas.auth import LoginResult, RegisterRequest, TokenPair, UserProfile
from smartedu.services.activity import ActivityLogger
from smartedu.services.sessions import SessionStore

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _with_profiles():
    return (selectinload(User.student_profile), selectinload(User.teacher_profile))


class AuthService:
    def __init__(
        self,
        session_factory: sessionmaker,
        hasher: PasswordHasher,
        tokens: TokenService,
        sessions: SessionStore,
        activity: ActivityLogger,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.hasher = hasher
        self.tokens = tokens
        self.sessions = sessions
        self.activity = activity
        self.clock = clock

    # ============= Registration =============

    def validate_registration(self, data: RegisterRequest) -> List[FieldError]:
        """Collect every field problem in one pass."""
        errors: List[FieldError] = []

        try:
            validate_email(normalize_email(data.email or ""), check_deliverability=False)
        except EmailNotValidError:
            errors.append(FieldError("email", "Valid email is required", "INVALID_EMAIL"))

        strength = score_password_strength(data.password or "")
        for message in strength.errors:
            errors.append(FieldError("password", message, "WEAK_PASSWORD"))

        if len((data.first_name or "").strip()) < 2:
            errors.append(FieldError("first_name", "First name must be at least 2 characters", "INVALID_FIRST_NAME"))
        if len((data.last_name or "").strip()) < 2:
            errors.append(FieldError("last_name", "Last name must be at least 2 characters", "INVALID_LAST_NAME"))

        role = data.role if data.role in {r.value for r in UserRole} else None
        if role is None:
            errors.append(FieldError("role", "Valid role is required", "INVALID_ROLE"))
        elif role == UserRole.STUDENT.value:
            if data.grade_level is None or not 1 <= data.grade_level <= 12:
                errors.append(FieldError("grade_level", "Grade level must be between 1 and 12", "INVALID_GRADE_LEVEL"))
        elif role == UserRole.TEACHER.value:
            if not (data.academic_year or "").strip():
                errors.append(FieldError("academic_year", "Academic year is required for teachers", "MISSING_ACADEMIC_YEAR"))

        if data.gender is not None and data.gender not in {g.value for g in Gender}:
            errors.append(FieldError("gender", "Gender must be male or female", "INVALID_GENDER"))

        return errors

    def register(self, data: RegisterRequest) -> UserProfile:
        errors = self.validate_registration(data)
        if errors:
            raise ValidationError("Validation failed", errors)

        email = normalize_email(data.email)
        password_hash = self.hasher.hash(data.password)
        role = UserRole(data.role)

        try:
            with self.session_factory() as db:
                if db.scalar(select(User.id).where(User.email == email)) is not None:
                    raise EmailExists()

                user = User(
                    email=email,
                    password_hash=password_hash,
                    first_name=data.first_name.strip(),
                    last_name=data.last_name.strip(),
                    role=role,
                    phone=data.phone,
                    date_of_birth=data.date_of_birth,
                    gender=Gender(data.gender) if data.gender else None,
                )
                db.add(user)
                db.flush()

                if role is UserRole.STUDENT:
                    user.student_profile = StudentProfile(
                        grade_level=data.grade_level,
                        class_section=data.class_section,
                        parent_name=data.parent_name,
                        parent_phone=data.parent_phone,
                        parent_email=data.parent_email,
                    )
                elif role is UserRole.TEACHER:
                    user.teacher_profile = TeacherProfile(
                        employee_id=data.employee_id,
                        school_id=data.school_id,
                        specialization=data.specialization,
                        years_experience=data.years_experience,
                        qualification=data.qualification,
                        academic_year=data.academic_year.strip(),
                        bio=data.bio,
                    )
                db.commit()

                profile = self._profile(db, user.id)
        except IntegrityError as e:
            logger.info(f"Registration raced on existing email {email}: {e.orig}")
            raise EmailExists() from e
        except SQLAlchemyError as e:
            logger.exception("Registration failed")
            raise InternalError("Registration failed") from e

        self.activity.record(profile.id, "REGISTER", "user", profile.id)
        logger.info(f"User registered successfully: {email}")
        return profile

    # ============= Login / refresh / logout =============

    def login(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> LoginResult:
        try:
            with self.session_factory() as db:
                user = db.scalar(select(User).where(User.email == normalize_email(email or "")))
                if user is None:
                    self.hasher.dummy_verify()
                    logger.info("Login failed: unknown email")
                    raise InvalidCredentials()
                if not self.hasher.verify(password or "", user.password_hash):
                    logger.info(f"Login failed: wrong password for user {user.id}")
                    raise InvalidCredentials()
                if not user.is_active:
                    raise AccountDeactivated()

                claims = TokenClaims(
                    user_id=user.id,
                    email=user.email,
                    role=user.role.value,
                    session_id=generate_session_token(),
                )
                refresh_token = self.tokens.issue_refresh(claims)
                self.sessions.create(
                    db,
                    user.id,
                    refresh_token,
                    session_token=claims.session_id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
                user.last_login = self.clock()
                db.commit()

                access_token = self.tokens.issue_access(claims)
                profile = self._profile(db, user.id)
        except SQLAlchemyError as e:
            logger.exception("Login failed")
            raise InternalError("Login failed") from e

        self.activity.record(
            profile.id, "LOGIN", "user", profile.id,
            details={"ip_address": ip_address, "user_agent": user_agent},
            ip_address=ip_address, user_agent=user_agent,
        )
        logger.info(f"User logged in: {profile.email}")
        return LoginResult(
            user=profile,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.tokens.access_token_ttl_seconds,
        )

    def refresh_token(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new pair; the old refresh token dies."""
        try:
            self.tokens.verify_refresh(refresh_token)
        except TokenError as e:
            raise InvalidRefreshToken() from e

        try:
            with self.session_factory() as db:
                session = self.sessions.find_by_refresh_token(db, refresh_token)
                if session is None:
                    raise InvalidRefreshToken()
                user = db.get(User, session.user_id)
                if user is None:
                    raise InvalidRefreshToken()
                if not user.is_active:
                    raise AccountDeactivated()

                claims = TokenClaims(
                    user_id=user.id,
                    email=user.email,
                    role=user.role.value,
                    session_id=session.session_token,
                )
                new_access = self.tokens.issue_access(claims)
                new_refresh = self.tokens.issue_refresh(claims)
                if not self.sessions.rotate(db, session, refresh_token, new_refresh):
                    db.rollback()
                    raise InvalidRefreshToken()
                db.commit()
        except SQLAlchemyError as e:
            logger.exception("Token refresh failed")
            raise InternalError("Token refresh failed") from e

        self.activity.record(user.id, "REFRESH_TOKEN", "user", user.id)
        logger.info(f"Token refreshed for user: {user.email}")
        return TokenPair(
            access_token=new_access,
            refresh_token=new_refresh,
            expires_in=self.tokens.access_token_ttl_seconds,
        )

    def logout(self, session_id: str) -> None:
        try:
            with self.session_factory() as db:
                session = self.sessions.find_by_session_id(db, session_id)
                user_id = session.user_id if session else None
                removed = self.sessions.revoke(db, session_id)
                db.commit()
        except SQLAlchemyError as e:
            logger.exception("Logout failed")
            raise InternalError("Logout failed") from e

        if removed:
            self.activity.record(user_id, "LOGOUT", "user", user_id)
            logger.info(f"User logged out: {user_id}")

    # ============= Password =============

    def change_password(self, user_id: int, current_password: str, new_password: str) -> None:
        try:
            with self.session_factory() as db:
                user = db.get(User, user_id)
                if user is None:
                    raise NotFound("User not found")
                if not self.hasher.verify(current_password or "", user.password_hash):
                    raise InvalidCurrentPassword()

                strength = score_password_strength(new_password or "")
                if not strength.is_valid:
                    raise WeakPassword(errors=[
                        FieldError("new_password", message, "WEAK_PASSWORD") for message in strength.errors
                    ])

                user.password_hash = self.hasher.hash(new_password)
                revoked = self.sessions.revoke_all_for_user(db, user_id)
                db.commit()
        except SQLAlchemyError as e:
            logger.exception("Change password failed")
            raise InternalError("Change password failed") from e

        self.activity.record(user_id, "CHANGE_PASSWORD", "user", user_id, details={"sessions_revoked": revoked})
        logger.info(f"Password changed for user ID: {user_id}")

    # ============= Verification =============

    def verify_token(self, access_token: str) -> UserProfile:
        """Resolve an access token to its user. Token errors propagate unchanged."""
        claims = self.tokens.verify_access(access_token)
        try:
            with self.session_factory() as db:
                session = self.sessions.find_by_session_id(db, claims.session_id)
                if session is None:
                    raise InvalidSession()
                user = db.get(User, session.user_id)
                if user is None:
                    raise InvalidSession()
                if not user.is_active:
                    raise AccountDeactivated()
                self.sessions.touch(db, session)
                db.commit()
                return self._profile(db, user.id)
        except SQLAlchemyError as e:
            logger.exception("Token verification failed")
            raise InternalError("Token verification failed") from e

    def get_profile(self, user_id: int) -> UserProfile:
        try:
            with self.session_factory() as db:
                return self._profile(db, user_id)
        except SQLAlchemyError as e:
            logger.exception("Profile lookup failed")
            raise InternalError("Profile lookup failed") from e

    def _profile(self, db: Session, user_id: int) -> UserProfile:
        user = db.scalar(select(User).options(*_with_profiles()).where(User.id == user_id))
        if user is None:
            raise NotFound("User not found")
        return UserProfile.model_validate(user)
