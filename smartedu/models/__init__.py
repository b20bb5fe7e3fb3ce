from .base import Base, utcnow
from .users import ActivityLog, Gender, StudentProfile, TeacherProfile, User, UserRole, UserSession
from .assessments import (
    AnswerSheet, Assessment, AssessmentAttempt, AssessmentQuestion, AttemptStatus,
    COUNTED_STATUSES, Difficulty, QuestionType,
)

__all__ = [
    "Base", "utcnow",
    "ActivityLog", "Gender", "StudentProfile", "TeacherProfile", "User", "UserRole", "UserSession",
    "AnswerSheet", "Assessment", "AssessmentAttempt", "AssessmentQuestion", "AttemptStatus",
    "COUNTED_STATUSES", "Difficulty", "QuestionType",
]
