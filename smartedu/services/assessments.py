"""
Assessment authoring: assessments, their questions, listing and statistics.

Mutations are restricted to the assessment's creator or an admin through
``AuthorizationService.ensure_owner_or_admin``. Question rows and the
denormalized ``Assessment.total_questions`` counter always change in the
same transaction.
"""
import logging
import math
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy import asc, desc, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from smartedu.core.exceptions import InternalError, NotFound, NotPublished
from smartedu.models import (
    Assessment, AssessmentAttempt, AssessmentQuestion, AttemptStatus, COUNTED_STATUSES, QuestionType, utcnow,
)
from smartedu.schemas.assessments import (
    AssessmentCreate, AssessmentDetail, AssessmentFilters, AssessmentOut, AssessmentPage,
    AssessmentStats, AssessmentUpdate, AttemptOut, QuestionCreate, QuestionOut, QuestionUpdate,
    StudentAssessmentView, StudentQuestionOut,
)
from smartedu.services.authorization import AuthorizationService

logger = logging.getLogger(__name__)

RECENT_ATTEMPTS_LIMIT = 10
LIKE_ESCAPE = "\\"


def _options_for(question_type: QuestionType, options: Optional[List[str]]) -> Optional[List[str]]:
    return list(options) if question_type.has_options and options else None


def _contains_pattern(term: str) -> str:
    """LIKE pattern matching ``term`` literally anywhere in the value."""
    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


class AssessmentService:
    def __init__(
        self,
        session_factory: sessionmaker,
        authz: AuthorizationService,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.authz = authz
        self.clock = clock

    # ============= Assessments =============

    def create_assessment(self, data: AssessmentCreate, created_by: int) -> AssessmentOut:
        try:
            with self.session_factory() as db:
                assessment = Assessment(**data.model_dump(), total_questions=0, created_by=created_by)
                if assessment.is_published:
                    assessment.published_at = self.clock()
                db.add(assessment)
                db.commit()
                logger.info(f"Assessment {assessment.id} created by user {created_by}")
                return AssessmentOut.model_validate(assessment)
        except SQLAlchemyError as e:
            logger.exception("Create assessment failed")
            raise InternalError("Create assessment failed") from e

    def get_assessment(self, assessment_id: int, include_questions: bool = False) -> AssessmentOut:
        try:
            with self.session_factory() as db:
                assessment = self._load(db, Assessment.id == assessment_id, include_questions)
                return self._out(assessment, include_questions)
        except SQLAlchemyError as e:
            logger.exception("Get assessment failed")
            raise InternalError("Get assessment failed") from e

    def get_assessment_by_uuid(self, uuid: str, include_questions: bool = False) -> AssessmentOut:
        try:
            with self.session_factory() as db:
                assessment = self._load(db, Assessment.uuid == uuid, include_questions)
                return self._out(assessment, include_questions)
        except SQLAlchemyError as e:
            logger.exception("Get assessment failed")
            raise InternalError("Get assessment failed") from e

    def list_assessments(self, filters: Optional[AssessmentFilters] = None) -> AssessmentPage:
        filters = filters or AssessmentFilters()
        conditions = []
        if filters.subject_id is not None:
            conditions.append(Assessment.subject_id == filters.subject_id)
        if filters.grade_level is not None:
            conditions.append(Assessment.grade_level == filters.grade_level)
        if filters.difficulty_level is not None:
            conditions.append(Assessment.difficulty_level == filters.difficulty_level)
        if filters.is_published is not None:
            conditions.append(Assessment.is_published == filters.is_published)
        if filters.created_by is not None:
            conditions.append(Assessment.created_by == filters.created_by)
        if filters.search:
            pattern = _contains_pattern(filters.search)
            conditions.append(or_(
                Assessment.title.ilike(pattern, escape=LIKE_ESCAPE),
                Assessment.description.ilike(pattern, escape=LIKE_ESCAPE),
            ))

        order = asc if filters.sort_order == "asc" else desc
        sort_column = getattr(Assessment, filters.sort_by)

        try:
            with self.session_factory() as db:
                total = db.scalar(select(func.count(Assessment.id)).where(*conditions)) or 0
                rows = db.scalars(
                    select(Assessment)
                    .options(selectinload(Assessment.creator))
                    .where(*conditions)
                    .order_by(order(sort_column), order(Assessment.id))
                    .offset((filters.page - 1) * filters.limit)
                    .limit(filters.limit)
                ).all()
                return AssessmentPage(
                    assessments=[AssessmentOut.model_validate(a) for a in rows],
                    total=total,
                    page=filters.page,
                    limit=filters.limit,
                    total_pages=math.ceil(total / filters.limit),
                )
        except SQLAlchemyError as e:
            logger.exception("List assessments failed")
            raise InternalError("List assessments failed") from e

    def update_assessment(self, assessment_id: int, data: AssessmentUpdate, user_id: int, role) -> AssessmentOut:
        try:
            with self.session_factory() as db:
                assessment = self._load(db, Assessment.id == assessment_id)
                self.authz.ensure_owner_or_admin(role, user_id, assessment.created_by, "update_assessment", assessment_id)

                changes = data.model_dump(exclude_unset=True)
                publish = changes.pop("is_published", None)
                for key, value in changes.items():
                    if value is not None:
                        setattr(assessment, key, value)
                if publish is not None:
                    self._set_published(assessment, publish)
                db.commit()
                return AssessmentOut.model_validate(assessment)
        except SQLAlchemyError as e:
            logger.exception("Update assessment failed")
            raise InternalError("Update assessment failed") from e

    def publish_assessment(self, assessment_id: int, user_id: int, role) -> AssessmentOut:
        try:
            with self.session_factory() as db:
                assessment = self._load(db, Assessment.id == assessment_id)
                self.authz.ensure_owner_or_admin(role, user_id, assessment.created_by, "publish_assessment", assessment_id)
                self._set_published(assessment, True)
                db.commit()
                logger.info(f"Assessment {assessment_id} published by user {user_id}")
                return AssessmentOut.model_validate(assessment)
        except SQLAlchemyError as e:
            logger.exception("Publish assessment failed")
            raise InternalError("Publish assessment failed") from e

    def delete_assessment(self, assessment_id: int, user_id: int, role) -> None:
        try:
            with self.session_factory() as db:
                assessment = self._load(db, Assessment.id == assessment_id)
                self.authz.ensure_owner_or_admin(role, user_id, assessment.created_by, "delete_assessment", assessment_id)
                db.delete(assessment)
                db.commit()
                logger.info(f"Assessment {assessment_id} deleted by user {user_id}")
        except SQLAlchemyError as e:
            logger.exception("Delete assessment failed")
            raise InternalError("Delete assessment failed") from e

    # ============= Questions =============

    def add_question(self, assessment_id: int, data: QuestionCreate, user_id: int, role) -> QuestionOut:
        try:
            with self.session_factory() as db:
                assessment = self._load(db, Assessment.id == assessment_id)
                self.authz.ensure_owner_or_admin(role, user_id, assessment.created_by, "add_question", assessment_id)
                question = self._new_question(assessment_id, data)
                db.add(question)
                db.flush()
                self._bump_question_count(db, assessment_id, 1)
                db.commit()
                return QuestionOut.model_validate(question)
        except SQLAlchemyError as e:
            logger.exception("Add question failed")
            raise InternalError("Add question failed") from e

    def bulk_create_questions(
        self, assessment_id: int, questions: List[QuestionCreate], user_id: int, role
    ) -> List[QuestionOut]:
        try:
            with self.session_factory() as db:
                assessment = self._load(db, Assessment.id == assessment_id)
                self.authz.ensure_owner_or_admin(role, user_id, assessment.created_by, "bulk_create_questions", assessment_id)
                rows = [self._new_question(assessment_id, q) for q in questions]
                db.add_all(rows)
                db.flush()
                self._bump_question_count(db, assessment_id, len(rows))
                db.commit()
                return [QuestionOut.model_validate(q) for q in rows]
        except SQLAlchemyError as e:
            logger.exception("Bulk question create failed")
            raise InternalError("Bulk question create failed") from e

    def update_question(self, question_id: int, data: QuestionUpdate, user_id: int, role) -> QuestionOut:
        try:
            with self.session_factory() as db:
                question = self._load_question(db, question_id)
                self.authz.ensure_owner_or_admin(
                    role, user_id, question.assessment.created_by, "update_question", question_id
                )
                changes = data.model_dump(exclude_unset=True)
                for key, value in changes.items():
                    if value is not None or key in ("options", "explanation"):
                        setattr(question, key, value)
                question.options = _options_for(question.question_type, question.options)
                db.commit()
                return QuestionOut.model_validate(question)
        except SQLAlchemyError as e:
            logger.exception("Update question failed")
            raise InternalError("Update question failed") from e

    def delete_question(self, question_id: int, user_id: int, role) -> None:
        try:
            with self.session_factory() as db:
                question = self._load_question(db, question_id)
                assessment_id = question.assessment_id
                self.authz.ensure_owner_or_admin(
                    role, user_id, question.assessment.created_by, "delete_question", question_id
                )
                db.delete(question)
                db.flush()
                self._bump_question_count(db, assessment_id, -1)
                db.commit()
        except SQLAlchemyError as e:
            logger.exception("Delete question failed")
            raise InternalError("Delete question failed") from e

    # ============= Student view =============

    def get_assessment_for_student(self, assessment_id: int, student_id: int) -> StudentAssessmentView:
        try:
            with self.session_factory() as db:
                assessment = self._load(db, Assessment.id == assessment_id, include_questions=True)
                if not assessment.is_published:
                    raise NotPublished()
                active = db.scalar(
                    select(AssessmentAttempt).where(
                        AssessmentAttempt.assessment_id == assessment_id,
                        AssessmentAttempt.student_id == student_id,
                        AssessmentAttempt.status == AttemptStatus.IN_PROGRESS,
                    )
                )
                return StudentAssessmentView(
                    assessment=AssessmentOut.model_validate(assessment),
                    questions=[StudentQuestionOut.model_validate(q) for q in assessment.questions],
                    attempt=AttemptOut.model_validate(active) if active else None,
                )
        except SQLAlchemyError as e:
            logger.exception("Get student assessment failed")
            raise InternalError("Get student assessment failed") from e

    # ============= Statistics =============

    def get_stats(self) -> AssessmentStats:
        try:
            with self.session_factory() as db:
                total_assessments = db.scalar(select(func.count(Assessment.id))) or 0
                published = db.scalar(select(func.count(Assessment.id)).where(Assessment.is_published.is_(True))) or 0
                total_attempts = db.scalar(select(func.count(AssessmentAttempt.id))) or 0

                counted = AssessmentAttempt.status.in_(COUNTED_STATUSES)
                completed = db.scalar(select(func.count(AssessmentAttempt.id)).where(counted)) or 0
                average = db.scalar(select(func.avg(AssessmentAttempt.percentage_score)).where(counted))
                passed = db.scalar(
                    select(func.count(AssessmentAttempt.id))
                    .select_from(AssessmentAttempt)
                    .join(Assessment, Assessment.id == AssessmentAttempt.assessment_id)
                    .where(counted, AssessmentAttempt.percentage_score >= Assessment.passing_score)
                ) or 0

                by_subject = self._group_count(db, Assessment.subject_id)
                by_grade = self._group_count(db, Assessment.grade_level)
                by_difficulty = {
                    getattr(key, "value", key): count
                    for key, count in self._group_count(db, Assessment.difficulty_level).items()
                }

                recent = db.scalars(
                    select(AssessmentAttempt)
                    .options(selectinload(AssessmentAttempt.assessment), selectinload(AssessmentAttempt.student))
                    .where(counted)
                    .order_by(desc(AssessmentAttempt.completed_at), desc(AssessmentAttempt.id))
                    .limit(RECENT_ATTEMPTS_LIMIT)
                ).all()

                return AssessmentStats(
                    total_assessments=total_assessments,
                    published_assessments=published,
                    draft_assessments=total_assessments - published,
                    total_attempts=total_attempts,
                    completed_attempts=completed,
                    average_score=float(average or 0),
                    pass_rate=(passed / completed) * 100 if completed > 0 else 0.0,
                    assessments_by_subject=by_subject,
                    assessments_by_grade=by_grade,
                    assessments_by_difficulty=by_difficulty,
                    recent_attempts=[AttemptOut.model_validate(a) for a in recent],
                )
        except SQLAlchemyError as e:
            logger.exception("Assessment stats failed")
            raise InternalError("Assessment stats failed") from e

    # ============= Helpers =============

    def _load(self, db: Session, condition, include_questions: bool = False) -> Assessment:
        options = [selectinload(Assessment.creator)]
        if include_questions:
            options.append(selectinload(Assessment.questions))
        assessment = db.scalar(select(Assessment).options(*options).where(condition))
        if assessment is None:
            raise NotFound("Assessment not found")
        return assessment

    def _load_question(self, db: Session, question_id: int) -> AssessmentQuestion:
        question = db.scalar(
            select(AssessmentQuestion)
            .options(selectinload(AssessmentQuestion.assessment))
            .where(AssessmentQuestion.id == question_id)
        )
        if question is None:
            raise NotFound("Question not found")
        return question

    def _out(self, assessment: Assessment, include_questions: bool) -> AssessmentOut:
        if include_questions:
            return AssessmentDetail.model_validate(assessment)
        return AssessmentOut.model_validate(assessment)

    def _set_published(self, assessment: Assessment, publish: bool) -> None:
        assessment.is_published = publish
        if publish and assessment.published_at is None:
            assessment.published_at = self.clock()

    @staticmethod
    def _new_question(assessment_id: int, data: QuestionCreate) -> AssessmentQuestion:
        return AssessmentQuestion(
            assessment_id=assessment_id,
            question_text=data.question_text,
            question_type=data.question_type,
            options=_options_for(data.question_type, data.options),
            correct_answer=data.correct_answer,
            explanation=data.explanation,
            points=data.points,
            order_index=data.order_index,
        )

    @staticmethod
    def _bump_question_count(db: Session, assessment_id: int, delta: int) -> None:
        db.execute(
            update(Assessment)
            .where(Assessment.id == assessment_id)
            .values(total_questions=Assessment.total_questions + delta)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    def _group_count(db: Session, column) -> Dict:
        rows = db.execute(select(column, func.count(Assessment.id)).group_by(column)).all()
        return {key: count for key, count in rows}
