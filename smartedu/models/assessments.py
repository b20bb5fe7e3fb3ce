"""
Assessment, question and attempt models.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
import enum

from sqlalchemy import (
    Boolean, DateTime, Enum as SQLEnum, Float, ForeignKey, Index, Integer,
    JSON, String, Text, text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, ModelMixin, TimestampMixin, UuidMixin, utcnow
from .users import User, enum_values


class Difficulty(str, enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class QuestionType(str, enum.Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    FILL_BLANK = "fill_blank"
    ESSAY = "essay"

    @property
    def has_options(self) -> bool:
        return self in (QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE)


class AttemptStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SUBMITTED = "submitted"
    AUTO_SUBMITTED = "auto_submitted"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not AttemptStatus.IN_PROGRESS


# Statuses that use up one of the assessment's max_attempts.
COUNTED_STATUSES = (AttemptStatus.COMPLETED, AttemptStatus.SUBMITTED, AttemptStatus.AUTO_SUBMITTED)


@dataclass
class AnswerSheet:
    """A student's answers keyed by question id (stored as a JSON object)."""

    answers: Dict[int, str] = field(default_factory=dict)

    @classmethod
    def from_json(cls, raw: Optional[Dict[str, Any]]) -> "AnswerSheet":
        return cls({int(k): str(v) for k, v in (raw or {}).items()})

    def to_json(self) -> Dict[str, str]:
        return {str(k): v for k, v in self.answers.items()}

    def record(self, question_id: int, answer: str) -> None:
        self.answers[question_id] = answer

    def answer_for(self, question_id: int) -> str:
        return self.answers.get(question_id, "")


class Assessment(Base, ModelMixin, TimestampMixin, UuidMixin):
    __tablename__ = "assessments"
    __table_args__ = (
        Index("idx_assessments_creator", "created_by"),
        Index("idx_assessments_subject", "subject_id"),
        Index("idx_assessments_published", "is_published"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    subject_id: Mapped[int] = mapped_column(Integer, nullable=False)
    grade_level: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty_level: Mapped[Difficulty] = mapped_column(
        SQLEnum(Difficulty, values_callable=enum_values, name="difficulty"),
        default=Difficulty.MEDIUM, nullable=False,
    )
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    passing_score: Mapped[float] = mapped_column(Float, nullable=False)
    max_attempts: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_by: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)

    creator: Mapped["User"] = relationship()
    questions: Mapped[List["AssessmentQuestion"]] = relationship(
        back_populates="assessment",
        cascade="all, delete-orphan",
        order_by="AssessmentQuestion.order_index",
    )
    attempts: Mapped[List["AssessmentAttempt"]] = relationship(
        back_populates="assessment", cascade="all, delete-orphan"
    )

    @property
    def creator_name(self) -> str:
        return self.creator.full_name if self.creator else ""


class AssessmentQuestion(Base, ModelMixin):
    __tablename__ = "assessment_questions"
    __table_args__ = (
        Index("idx_questions_assessment", "assessment_id", "order_index"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    assessment_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False
    )
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[QuestionType] = mapped_column(
        SQLEnum(QuestionType, values_callable=enum_values, name="question_type"), nullable=False
    )
    options: Mapped[Optional[List[str]]] = mapped_column(JSON)
    correct_answer: Mapped[str] = mapped_column(Text, nullable=False)
    explanation: Mapped[Optional[str]] = mapped_column(Text)
    points: Mapped[float] = mapped_column(Float, default=1, nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    assessment: Mapped["Assessment"] = relationship(back_populates="questions")

    @property
    def option_list(self) -> Optional[List[str]]:
        return list(self.options) if isinstance(self.options, list) else None


class AssessmentAttempt(Base, ModelMixin, UuidMixin):
    __tablename__ = "assessment_attempts"
    __table_args__ = (
        Index("idx_attempts_student", "student_id", "assessment_id"),
        Index("idx_attempts_status_started", "status", "started_at"),
        # At most one in-progress attempt per (student, assessment).
        Index(
            "uq_attempts_one_active",
            "student_id",
            "assessment_id",
            unique=True,
            sqlite_where=text("status = 'in_progress'"),
            postgresql_where=text("status = 'in_progress'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    assessment_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False
    )
    student_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    status: Mapped[AttemptStatus] = mapped_column(
        SQLEnum(AttemptStatus, values_callable=enum_values, name="attempt_status"),
        default=AttemptStatus.IN_PROGRESS, nullable=False,
    )
    started_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    answers: Mapped[Dict[str, str]] = mapped_column(JSON, default=dict, nullable=False)
    total_score: Mapped[Optional[float]] = mapped_column(Float)
    max_score: Mapped[Optional[float]] = mapped_column(Float)
    percentage_score: Mapped[Optional[float]] = mapped_column(Float)
    time_spent: Mapped[Optional[int]] = mapped_column(Integer)

    assessment: Mapped["Assessment"] = relationship(back_populates="attempts")
    student: Mapped["User"] = relationship()

    @property
    def answer_sheet(self) -> AnswerSheet:
        return AnswerSheet.from_json(self.answers)

    @answer_sheet.setter
    def answer_sheet(self, sheet: AnswerSheet) -> None:
        # Reassign so the JSON column is flagged dirty.
        self.answers = sheet.to_json()

    @property
    def assessment_title(self) -> str:
        return self.assessment.title if self.assessment else ""

    @property
    def student_name(self) -> str:
        return self.student.full_name if self.student else ""

    @property
    def passed(self) -> Optional[bool]:
        if self.percentage_score is None or self.assessment is None:
            return None
        return self.percentage_score >= self.assessment.passing_score
