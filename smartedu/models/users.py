"""
User, profile, session and activity-log models.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
import enum

from sqlalchemy import (
    Boolean, DateTime, Enum as SQLEnum, ForeignKey, Index, Integer, JSON,
    String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, ModelMixin, TimestampMixin, UuidMixin, utcnow


def enum_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


class UserRole(str, enum.Enum):
    """User roles, lowest to highest privilege."""
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"


class User(Base, ModelMixin, TimestampMixin, UuidMixin):
    """Identity record. Deactivated rather than deleted."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Profile
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, values_callable=enum_values, name="user_role"), nullable=False, index=True
    )
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    date_of_birth: Mapped[Optional[datetime]] = mapped_column(DateTime)
    gender: Mapped[Optional[Gender]] = mapped_column(SQLEnum(Gender, values_callable=enum_values, name="gender"))

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Relationships
    student_profile: Mapped[Optional["StudentProfile"]] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    teacher_profile: Mapped[Optional["TeacherProfile"]] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    sessions: Mapped[List["UserSession"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class StudentProfile(Base, ModelMixin):
    __tablename__ = "student_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    student_id: Mapped[Optional[str]] = mapped_column(String(50), unique=True)
    grade_level: Mapped[int] = mapped_column(Integer, nullable=False)
    class_section: Mapped[Optional[str]] = mapped_column(String(20))
    parent_name: Mapped[Optional[str]] = mapped_column(String(200))
    parent_phone: Mapped[Optional[str]] = mapped_column(String(50))
    parent_email: Mapped[Optional[str]] = mapped_column(String(255))

    # Gamification counters
    total_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    current_level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    current_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    user: Mapped["User"] = relationship(back_populates="student_profile")


class TeacherProfile(Base, ModelMixin):
    __tablename__ = "teacher_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    employee_id: Mapped[Optional[str]] = mapped_column(String(50))
    school_id: Mapped[Optional[int]] = mapped_column(Integer)
    specialization: Mapped[Optional[str]] = mapped_column(String(200))
    years_experience: Mapped[Optional[int]] = mapped_column(Integer)
    qualification: Mapped[Optional[str]] = mapped_column(String(200))
    academic_year: Mapped[str] = mapped_column(String(20), nullable=False)
    bio: Mapped[Optional[str]] = mapped_column(Text)

    user: Mapped["User"] = relationship(back_populates="teacher_profile")


class UserSession(Base, ModelMixin):
    """One authenticated device/login, bound to the current refresh token."""

    __tablename__ = "user_sessions"
    __table_args__ = (
        Index("idx_user_sessions_user", "user_id"),
        Index("idx_user_sessions_expires", "expires_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    session_token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    refresh_token: Mapped[str] = mapped_column(String(1024), unique=True, nullable=False)

    # Session info
    ip_address: Mapped[Optional[str]] = mapped_column(String(45))
    user_agent: Mapped[Optional[str]] = mapped_column(String(500))

    # Timestamps
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    last_activity: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    user: Mapped["User"] = relationship(back_populates="sessions")

    def is_valid(self, now: datetime) -> bool:
        """Check if session is still usable at ``now``."""
        return now < self.expires_at


class ActivityLog(Base, ModelMixin):
    """Audit trail entry."""

    __tablename__ = "activity_logs"
    __table_args__ = (
        Index("idx_activity_user", "user_id"),
        Index("idx_activity_resource", "resource_type", "resource_id"),
        Index("idx_activity_created", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_type: Mapped[Optional[str]] = mapped_column(String(50))
    resource_id: Mapped[Optional[int]] = mapped_column(Integer)
    details: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45))
    user_agent: Mapped[Optional[str]] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
