from .auth import (
    LoginResult, RegisterRequest, StudentProfileOut, TeacherProfileOut, TokenPair, UserProfile,
)
from .assessments import (
    AssessmentCreate, AssessmentDetail, AssessmentFilters, AssessmentOut, AssessmentPage, AssessmentResult,
    AssessmentStats, AssessmentUpdate, AttemptOut, QuestionCreate, QuestionOut, QuestionResult,
    QuestionUpdate, StudentAssessmentView, StudentQuestionOut,
)
