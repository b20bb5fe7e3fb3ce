from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from smartedu.models import AttemptStatus, Difficulty, QuestionType


class AssessmentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    subject_id: int
    grade_level: int = Field(ge=1, le=12)
    difficulty_level: Difficulty = Difficulty.MEDIUM
    duration_minutes: int = Field(gt=0)
    passing_score: float = Field(ge=0, le=100)
    max_attempts: int = Field(default=1, ge=1)
    is_published: bool = False


class AssessmentUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    subject_id: Optional[int] = None
    grade_level: Optional[int] = Field(default=None, ge=1, le=12)
    difficulty_level: Optional[Difficulty] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    passing_score: Optional[float] = Field(default=None, ge=0, le=100)
    max_attempts: Optional[int] = Field(default=None, ge=1)
    is_published: Optional[bool] = None


class QuestionCreate(BaseModel):
    question_text: str = Field(min_length=1)
    question_type: QuestionType
    options: Optional[List[str]] = None
    correct_answer: str
    explanation: Optional[str] = None
    points: float = Field(default=1, ge=0)
    order_index: int = 0


class QuestionUpdate(BaseModel):
    question_text: Optional[str] = Field(default=None, min_length=1)
    question_type: Optional[QuestionType] = None
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    points: Optional[float] = Field(default=None, ge=0)
    order_index: Optional[int] = None


class StudentQuestionOut(BaseModel):
    """A question as shown to a student: no correct answer, no explanation."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    assessment_id: int
    question_text: str
    question_type: QuestionType
    options: Optional[List[str]] = Field(default=None, validation_alias="option_list")
    points: float
    order_index: int


class QuestionOut(StudentQuestionOut):
    correct_answer: str
    explanation: Optional[str] = None


class AssessmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    uuid: str
    title: str
    description: Optional[str] = None
    subject_id: int
    grade_level: int
    difficulty_level: Difficulty
    duration_minutes: int
    total_questions: int
    passing_score: float
    max_attempts: int
    is_published: bool
    published_at: Optional[datetime] = None
    created_by: int
    creator_name: str = ""
    created_at: datetime
    updated_at: datetime


class AssessmentDetail(AssessmentOut):
    questions: List[QuestionOut] = []


class AssessmentFilters(BaseModel):
    subject_id: Optional[int] = None
    grade_level: Optional[int] = None
    difficulty_level: Optional[Difficulty] = None
    is_published: Optional[bool] = None
    created_by: Optional[int] = None
    search: Optional[str] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    sort_by: Literal["created_at", "updated_at", "title", "total_questions", "duration_minutes"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"


class AssessmentPage(BaseModel):
    assessments: List[AssessmentOut]
    total: int
    page: int
    limit: int
    total_pages: int


class AttemptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    uuid: str
    assessment_id: int
    assessment_title: str = ""
    student_id: int
    student_name: str = ""
    status: AttemptStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    total_score: Optional[float] = None
    max_score: Optional[float] = None
    percentage_score: Optional[float] = None
    time_spent: Optional[int] = None
    answers: Dict[int, str] = {}
    passed: Optional[bool] = None


class StudentAssessmentView(BaseModel):
    assessment: AssessmentOut
    questions: List[StudentQuestionOut]
    attempt: Optional[AttemptOut] = None


class QuestionResult(BaseModel):
    question_id: int
    question_text: str
    question_type: QuestionType
    student_answer: str
    correct_answer: str
    is_correct: bool
    points: float
    earned_points: float


class AssessmentResult(BaseModel):
    attempt_id: int
    assessment_title: str
    student_name: str
    status: AttemptStatus
    total_score: float
    max_score: float
    percentage_score: float
    passed: bool
    time_spent: int
    completed_at: datetime
    question_results: List[QuestionResult]


class AssessmentStats(BaseModel):
    total_assessments: int
    published_assessments: int
    draft_assessments: int
    total_attempts: int
    completed_attempts: int
    average_score: float
    pass_rate: float
    assessments_by_subject: Dict[int, int]
    assessments_by_grade: Dict[int, int]
    assessments_by_difficulty: Dict[str, int]
    recent_attempts: List[AttemptOut]
