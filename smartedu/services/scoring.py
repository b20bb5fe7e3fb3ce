"""
Answer checking and attempt scoring.
"""
from dataclasses import dataclass, field
from typing import List, Sequence

from smartedu.models import AnswerSheet, AssessmentQuestion, QuestionType
from smartedu.schemas.assessments import QuestionResult


def normalize_answer(answer) -> str:
    return str(answer or "").strip().lower()


def check_answer(question_type: QuestionType, correct_answer: str, student_answer: str) -> bool:
    student = normalize_answer(student_answer)
    correct = normalize_answer(correct_answer)

    if question_type in (QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE):
        return student == correct
    if question_type == QuestionType.FILL_BLANK:
        # "|" separates accepted variants
        return student in [variant.strip() for variant in correct.split("|")]
    # essays are graded by hand
    return False


@dataclass
class ScoreCard:
    total_score: float
    max_score: float
    percentage_score: float
    passed: bool
    question_results: List[QuestionResult] = field(default_factory=list)


def score_answers(
    questions: Sequence[AssessmentQuestion],
    sheet: AnswerSheet,
    passing_score: float,
) -> ScoreCard:
    earned = 0.0
    possible = 0.0
    results: List[QuestionResult] = []

    for question in questions:
        answer = sheet.answer_for(question.id)
        is_correct = check_answer(question.question_type, question.correct_answer, answer)
        points = float(question.points)
        possible += points
        if is_correct:
            earned += points
        results.append(QuestionResult(
            question_id=question.id,
            question_text=question.question_text,
            question_type=question.question_type,
            student_answer=answer,
            correct_answer=question.correct_answer,
            is_correct=is_correct,
            points=points,
            earned_points=points if is_correct else 0.0,
        ))

    percentage = (earned / possible) * 100 if possible > 0 else 0.0
    return ScoreCard(
        total_score=earned,
        max_score=possible,
        percentage_score=percentage,
        passed=percentage >= passing_score,
        question_results=results,
    )
