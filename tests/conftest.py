from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from smartedu.container import build_container
from smartedu.core.config import Settings
from smartedu.core.database import build_session_factory, init_db
from smartedu.models import QuestionType, utcnow
from smartedu.schemas.assessments import AssessmentCreate, QuestionCreate
from smartedu.schemas.auth import RegisterRequest

STRONG_PASSWORD = "Sup3r$ecret!"


class FakeClock:
    def __init__(self, now=None):
        self.now = now or utcnow().replace(microsecond=0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def settings():
    return Settings(
        ENVIRONMENT="testing",
        DATABASE_URL="sqlite://",
        JWT_SECRET="test-access-secret-0123456789abcdef",
        JWT_REFRESH_SECRET="test-refresh-secret-fedcba9876543210",
        BCRYPT_ROUNDS=4,
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def container(settings, session_factory, clock):
    return build_container(settings, session_factory, clock=clock)


def register(container, role, email, **extra):
    fields = dict(
        email=email,
        password=STRONG_PASSWORD,
        first_name="Test",
        last_name=role.capitalize(),
        role=role,
    )
    if role == "student":
        fields["grade_level"] = 7
    if role == "teacher":
        fields["academic_year"] = "2024-2025"
    fields.update(extra)
    return container.auth.register(RegisterRequest(**fields))


@pytest.fixture
def student(container):
    return register(container, "student", "student@school.org")


@pytest.fixture
def other_student(container):
    return register(container, "student", "other.student@school.org")


@pytest.fixture
def teacher(container):
    return register(container, "teacher", "teacher@school.org")


@pytest.fixture
def other_teacher(container):
    return register(container, "teacher", "other.teacher@school.org")


@pytest.fixture
def admin(container):
    return register(container, "admin", "admin@school.org")


def make_assessment(container, teacher, publish=True, **overrides):
    data = dict(
        title="Fractions quiz",
        description="Adding and comparing fractions",
        subject_id=1,
        grade_level=7,
        duration_minutes=30,
        passing_score=60,
        max_attempts=1,
    )
    data.update(overrides)
    assessment = container.assessments.create_assessment(AssessmentCreate(**data), teacher.id)
    container.assessments.bulk_create_questions(
        assessment.id,
        [
            QuestionCreate(
                question_text="Which is larger, 1/2 (A) or 1/3 (B)?",
                question_type=QuestionType.MULTIPLE_CHOICE,
                options=["A", "B"],
                correct_answer="A",
                points=5,
                order_index=1,
            ),
            QuestionCreate(
                question_text="1/4 + 1/4 equals 1/3 (A), 1/2 (B) or 2/8 (C)?",
                question_type=QuestionType.MULTIPLE_CHOICE,
                options=["A", "B", "C"],
                correct_answer="B",
                points=3,
                order_index=2,
            ),
        ],
        teacher.id,
        teacher.role,
    )
    if publish:
        container.assessments.publish_assessment(assessment.id, teacher.id, teacher.role)
    return container.assessments.get_assessment(assessment.id, include_questions=True)


@pytest.fixture
def quiz(container, teacher):
    return make_assessment(container, teacher)
