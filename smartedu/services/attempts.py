"""
Assessment attempt lifecycle.

    in_progress -> submitted | auto_submitted | cancelled

Every transition out of ``in_progress`` is a conditional UPDATE on the
current status, so an attempt is finalized exactly once even when a student
submit races the auto-submit sweep.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy import desc, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from smartedu.core.exceptions import (
    ActiveAttemptExists, AttemptNotActive, InternalError, MaxAttemptsExceeded, NotFound,
    NotPublished, Unauthorized,
)
from smartedu.models import (
    AnswerSheet, Assessment, AssessmentAttempt, AttemptStatus, COUNTED_STATUSES, utcnow,
)
from smartedu.schemas.assessments import AssessmentResult, AttemptOut
from smartedu.services.scoring import ScoreCard, score_answers

logger = logging.getLogger(__name__)


class AttemptService:
    def __init__(
        self,
        session_factory: sessionmaker,
        auto_submit_min_age_hours: int = 24,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.auto_submit_min_age = timedelta(hours=auto_submit_min_age_hours)
        self.clock = clock

    def start(self, assessment_id: int, student_id: int) -> AttemptOut:
        try:
            with self.session_factory() as db:
                assessment = db.get(Assessment, assessment_id)
                if assessment is None:
                    raise NotFound("Assessment not found")
                if not assessment.is_published:
                    raise NotPublished()

                used = db.scalar(
                    select(func.count(AssessmentAttempt.id)).where(
                        AssessmentAttempt.assessment_id == assessment_id,
                        AssessmentAttempt.student_id == student_id,
                        AssessmentAttempt.status.in_(COUNTED_STATUSES),
                    )
                ) or 0
                if used >= assessment.max_attempts:
                    raise MaxAttemptsExceeded()

                if self._active_attempt_id(db, assessment_id, student_id) is not None:
                    raise ActiveAttemptExists()

                attempt = AssessmentAttempt(
                    assessment_id=assessment_id,
                    student_id=student_id,
                    status=AttemptStatus.IN_PROGRESS,
                    started_at=self.clock(),
                    answers={},
                )
                db.add(attempt)
                try:
                    db.commit()
                except IntegrityError as e:
                    db.rollback()
                    raise ActiveAttemptExists() from e

                logger.info(f"Student {student_id} started attempt {attempt.id} on assessment {assessment_id}")
                return AttemptOut.model_validate(attempt)
        except SQLAlchemyError as e:
            logger.exception("Start attempt failed")
            raise InternalError("Start attempt failed") from e

    def record_answer(self, attempt_id: int, question_id: int, answer: str, student_id: int) -> None:
        try:
            with self.session_factory() as db:
                attempt = self._owned_active(db, attempt_id, student_id, "modify")
                if question_id not in {q.id for q in attempt.assessment.questions}:
                    raise NotFound("Question not found")

                # Row lock serializes concurrent answers on the same attempt.
                current = db.scalar(
                    select(AssessmentAttempt.answers)
                    .where(AssessmentAttempt.id == attempt_id)
                    .with_for_update()
                )
                sheet = AnswerSheet.from_json(current)
                sheet.record(question_id, answer)
                result = db.execute(
                    update(AssessmentAttempt)
                    .where(
                        AssessmentAttempt.id == attempt_id,
                        AssessmentAttempt.status == AttemptStatus.IN_PROGRESS,
                    )
                    .values(answers=sheet.to_json())
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    db.rollback()
                    raise AttemptNotActive()
                db.commit()
        except SQLAlchemyError as e:
            logger.exception("Record answer failed")
            raise InternalError("Record answer failed") from e

    def submit(self, attempt_id: int, student_id: int) -> AssessmentResult:
        try:
            with self.session_factory() as db:
                attempt = self._owned_active(db, attempt_id, student_id, "submit")
                now = self.clock()
                card = score_answers(attempt.assessment.questions, attempt.answer_sheet, attempt.assessment.passing_score)
                time_spent = self._elapsed_seconds(attempt, now)
                if not self._finalize(db, attempt, AttemptStatus.SUBMITTED, card, now, time_spent):
                    db.rollback()
                    raise AttemptNotActive()
                db.commit()

                logger.info(
                    f"Attempt {attempt_id} submitted by student {student_id}: "
                    f"{card.total_score}/{card.max_score} ({card.percentage_score:.1f}%)"
                )
                return AssessmentResult(
                    attempt_id=attempt.id,
                    assessment_title=attempt.assessment.title,
                    student_name=attempt.student_name,
                    status=AttemptStatus.SUBMITTED,
                    total_score=card.total_score,
                    max_score=card.max_score,
                    percentage_score=card.percentage_score,
                    passed=card.passed,
                    time_spent=time_spent,
                    completed_at=now,
                    question_results=card.question_results,
                )
        except SQLAlchemyError as e:
            logger.exception("Submit attempt failed")
            raise InternalError("Submit attempt failed") from e

    def cancel(self, attempt_id: int, student_id: int) -> AttemptOut:
        try:
            with self.session_factory() as db:
                attempt = self._owned_active(db, attempt_id, student_id, "cancel")
                result = db.execute(
                    update(AssessmentAttempt)
                    .where(
                        AssessmentAttempt.id == attempt_id,
                        AssessmentAttempt.status == AttemptStatus.IN_PROGRESS,
                    )
                    .values(status=AttemptStatus.CANCELLED, completed_at=self.clock())
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    db.rollback()
                    raise AttemptNotActive()
                db.commit()
                db.refresh(attempt)
                return AttemptOut.model_validate(attempt)
        except SQLAlchemyError as e:
            logger.exception("Cancel attempt failed")
            raise InternalError("Cancel attempt failed") from e

    def auto_submit_expired(self) -> int:
        """Finalize timed-out attempts. Returns how many this call finalized."""
        now = self.clock()
        cutoff = now - self.auto_submit_min_age
        finalized = 0
        try:
            with self.session_factory() as db:
                candidates = db.scalars(
                    select(AssessmentAttempt)
                    .options(selectinload(AssessmentAttempt.assessment).selectinload(Assessment.questions))
                    .where(
                        AssessmentAttempt.status == AttemptStatus.IN_PROGRESS,
                        AssessmentAttempt.started_at < cutoff,
                    )
                ).all()

                for attempt in candidates:
                    assessment = attempt.assessment
                    if now - attempt.started_at < timedelta(minutes=assessment.duration_minutes):
                        continue
                    card = score_answers(assessment.questions, attempt.answer_sheet, assessment.passing_score)
                    if self._finalize(
                        db, attempt, AttemptStatus.AUTO_SUBMITTED, card, now, self._elapsed_seconds(attempt, now)
                    ):
                        finalized += 1
                db.commit()
        except SQLAlchemyError as e:
            logger.exception("Auto-submit sweep failed")
            raise InternalError("Auto-submit sweep failed") from e

        if finalized:
            logger.info(f"Auto-submitted {finalized} expired attempts")
        return finalized

    def get_attempt(self, attempt_id: int, student_id: int) -> AttemptOut:
        try:
            with self.session_factory() as db:
                attempt = self._owned(db, attempt_id, student_id, "view")
                return AttemptOut.model_validate(attempt)
        except SQLAlchemyError as e:
            logger.exception("Get attempt failed")
            raise InternalError("Get attempt failed") from e

    def list_student_attempts(self, student_id: int, assessment_id: Optional[int] = None) -> List[AttemptOut]:
        conditions = [AssessmentAttempt.student_id == student_id]
        if assessment_id is not None:
            conditions.append(AssessmentAttempt.assessment_id == assessment_id)
        try:
            with self.session_factory() as db:
                rows = db.scalars(
                    select(AssessmentAttempt)
                    .options(selectinload(AssessmentAttempt.assessment), selectinload(AssessmentAttempt.student))
                    .where(*conditions)
                    .order_by(desc(AssessmentAttempt.started_at), desc(AssessmentAttempt.id))
                ).all()
                return [AttemptOut.model_validate(a) for a in rows]
        except SQLAlchemyError as e:
            logger.exception("List attempts failed")
            raise InternalError("List attempts failed") from e

    # ============= Helpers =============

    @staticmethod
    def _active_attempt_id(db: Session, assessment_id: int, student_id: int) -> Optional[int]:
        return db.scalar(
            select(AssessmentAttempt.id).where(
                AssessmentAttempt.assessment_id == assessment_id,
                AssessmentAttempt.student_id == student_id,
                AssessmentAttempt.status == AttemptStatus.IN_PROGRESS,
            )
        )

    def _owned(self, db: Session, attempt_id: int, student_id: int, action: str) -> AssessmentAttempt:
        attempt = db.scalar(
            select(AssessmentAttempt)
            .options(selectinload(AssessmentAttempt.assessment).selectinload(Assessment.questions))
            .where(AssessmentAttempt.id == attempt_id)
        )
        if attempt is None:
            raise NotFound("Assessment attempt not found")
        if attempt.student_id != student_id:
            logger.warning(f"Student {student_id} tried to {action} attempt {attempt_id} owned by {attempt.student_id}")
            raise Unauthorized(f"Unauthorized to {action} this attempt")
        return attempt

    def _owned_active(self, db: Session, attempt_id: int, student_id: int, action: str) -> AssessmentAttempt:
        attempt = self._owned(db, attempt_id, student_id, action)
        if attempt.status is not AttemptStatus.IN_PROGRESS:
            raise AttemptNotActive()
        return attempt

    @staticmethod
    def _elapsed_seconds(attempt: AssessmentAttempt, now: datetime) -> int:
        return max(0, int((now - attempt.started_at).total_seconds()))

    @staticmethod
    def _finalize(
        db: Session,
        attempt: AssessmentAttempt,
        status: AttemptStatus,
        card: ScoreCard,
        now: datetime,
        time_spent: int,
    ) -> bool:
        result = db.execute(
            update(AssessmentAttempt)
            .where(
                AssessmentAttempt.id == attempt.id,
                AssessmentAttempt.status == AttemptStatus.IN_PROGRESS,
            )
            .values(
                status=status,
                completed_at=now,
                submitted_at=now,
                total_score=card.total_score,
                max_score=card.max_score,
                percentage_score=card.percentage_score,
                time_spent=time_spent,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
