import pytest

from smartedu.core.exceptions import InternalError, NotFound, NotPublished, Unauthorized
from smartedu.models import Assessment, Difficulty, QuestionType
from smartedu.schemas.assessments import (
    AssessmentCreate, AssessmentFilters, AssessmentUpdate, QuestionCreate, QuestionUpdate,
)

from .conftest import make_assessment


def _question(**overrides):
    data = dict(
        question_text="Is 3/6 equal to 1/2?",
        question_type=QuestionType.TRUE_FALSE,
        options=["true", "false"],
        correct_answer="true",
        points=2,
        order_index=3,
    )
    data.update(overrides)
    return QuestionCreate(**data)


def test_create_starts_as_draft(container, teacher):
    created = container.assessments.create_assessment(
        AssessmentCreate(title="Draft", subject_id=2, grade_level=5, duration_minutes=20, passing_score=50),
        teacher.id,
    )
    assert created.is_published is False
    assert created.published_at is None
    assert created.total_questions == 0
    assert created.max_attempts == 1
    assert created.difficulty_level is Difficulty.MEDIUM
    assert created.creator_name == "Test Teacher"


def test_create_published_stamps_time(container, teacher, clock):
    created = container.assessments.create_assessment(
        AssessmentCreate(
            title="Live", subject_id=2, grade_level=5, duration_minutes=20, passing_score=50, is_published=True,
        ),
        teacher.id,
    )
    assert created.published_at == clock.now


def test_publish_stamps_once(container, teacher, clock):
    draft = make_assessment(container, teacher, publish=False)
    first = container.assessments.publish_assessment(draft.id, teacher.id, teacher.role)
    assert first.is_published and first.published_at == clock.now

    clock.advance(hours=1)
    again = container.assessments.update_assessment(
        draft.id, AssessmentUpdate(is_published=True), teacher.id, teacher.role
    )
    assert again.published_at == first.published_at


def test_get_with_and_without_questions(container, quiz):
    plain = container.assessments.get_assessment(quiz.id)
    assert not hasattr(plain, "questions")
    detail = container.assessments.get_assessment(quiz.id, include_questions=True)
    assert [q.points for q in detail.questions] == [5, 3]
    assert detail.questions[0].correct_answer == "A"
    assert container.assessments.get_assessment_by_uuid(quiz.uuid).id == quiz.id
    with pytest.raises(NotFound):
        container.assessments.get_assessment(9999)


def test_question_counter_tracks_add_bulk_and_delete(container, teacher, quiz):
    assert quiz.total_questions == 2

    added = container.assessments.add_question(quiz.id, _question(), teacher.id, teacher.role)
    assert container.assessments.get_assessment(quiz.id).total_questions == 3

    container.assessments.bulk_create_questions(
        quiz.id, [_question(order_index=4), _question(order_index=5)], teacher.id, teacher.role
    )
    assert container.assessments.get_assessment(quiz.id).total_questions == 5

    container.assessments.delete_question(added.id, teacher.id, teacher.role)
    refreshed = container.assessments.get_assessment(quiz.id, include_questions=True)
    assert refreshed.total_questions == 4
    assert len(refreshed.questions) == 4


def test_options_only_kept_for_choice_types(container, teacher, quiz):
    blank = container.assessments.add_question(
        quiz.id,
        _question(question_type=QuestionType.FILL_BLANK, options=["ignored"], correct_answer="half|one half"),
        teacher.id,
        teacher.role,
    )
    assert blank.options is None

    updated = container.assessments.update_question(
        quiz.questions[0].id, QuestionUpdate(question_type=QuestionType.ESSAY), teacher.id, teacher.role
    )
    assert updated.question_type is QuestionType.ESSAY
    assert updated.options is None


def test_only_creator_or_admin_may_mutate(container, teacher, other_teacher, admin, quiz):
    question_id = quiz.questions[0].id
    attempts = [
        lambda: container.assessments.update_assessment(
            quiz.id, AssessmentUpdate(title="Hijacked"), other_teacher.id, other_teacher.role),
        lambda: container.assessments.publish_assessment(quiz.id, other_teacher.id, other_teacher.role),
        lambda: container.assessments.delete_assessment(quiz.id, other_teacher.id, other_teacher.role),
        lambda: container.assessments.add_question(quiz.id, _question(), other_teacher.id, other_teacher.role),
        lambda: container.assessments.update_question(
            question_id, QuestionUpdate(points=50), other_teacher.id, other_teacher.role),
        lambda: container.assessments.delete_question(question_id, other_teacher.id, other_teacher.role),
    ]
    for attempt in attempts:
        with pytest.raises(Unauthorized):
            attempt()

    updated = container.assessments.update_assessment(
        quiz.id, AssessmentUpdate(title="Renamed by admin", duration_minutes=45), admin.id, admin.role
    )
    assert updated.title == "Renamed by admin"
    assert updated.duration_minutes == 45
    assert container.assessments.get_assessment(quiz.id).total_questions == 2


def test_delete_assessment(container, teacher, quiz):
    container.assessments.delete_assessment(quiz.id, teacher.id, teacher.role)
    with pytest.raises(NotFound):
        container.assessments.get_assessment(quiz.id)
    with pytest.raises(NotFound):
        container.assessments.delete_assessment(quiz.id, teacher.id, teacher.role)


def test_list_filters_sort_and_paginate(container, teacher, other_teacher):
    make_assessment(container, teacher, title="Algebra basics", subject_id=1, grade_level=8)
    make_assessment(container, teacher, title="Geometry", subject_id=2, grade_level=8, publish=False)
    make_assessment(
        container, other_teacher, title="Reading", subject_id=3, grade_level=4,
        description="Short algebra word problems", difficulty_level=Difficulty.HARD,
    )

    page = container.assessments.list_assessments(AssessmentFilters(grade_level=8))
    assert page.total == 2

    assert container.assessments.list_assessments(AssessmentFilters(is_published=False)).total == 1
    assert container.assessments.list_assessments(AssessmentFilters(created_by=other_teacher.id)).total == 1
    assert container.assessments.list_assessments(AssessmentFilters(difficulty_level="hard")).total == 1

    searched = container.assessments.list_assessments(AssessmentFilters(search="algebra", sort_by="title", sort_order="asc"))
    assert [a.title for a in searched.assessments] == ["Algebra basics", "Reading"]

    first = container.assessments.list_assessments(AssessmentFilters(limit=2, sort_by="title", sort_order="asc"))
    second = container.assessments.list_assessments(AssessmentFilters(limit=2, page=2, sort_by="title", sort_order="asc"))
    assert first.total == 3 and first.total_pages == 2
    assert [a.title for a in first.assessments] == ["Algebra basics", "Geometry"]
    assert [a.title for a in second.assessments] == ["Reading"]


def test_student_view_hides_answers(container, teacher, student, quiz):
    view = container.assessments.get_assessment_for_student(quiz.id, student.id)
    assert view.attempt is None
    assert [q.options for q in view.questions] == [["A", "B"], ["A", "B", "C"]]
    for q in view.questions:
        dumped = q.model_dump()
        assert "correct_answer" not in dumped
        assert "explanation" not in dumped

    attempt = container.attempts.start(quiz.id, student.id)
    assert container.assessments.get_assessment_for_student(quiz.id, student.id).attempt.id == attempt.id

    draft = make_assessment(container, teacher, publish=False)
    with pytest.raises(NotPublished):
        container.assessments.get_assessment_for_student(draft.id, student.id)


def test_stats(container, teacher, student, other_student, quiz):
    make_assessment(container, teacher, title="Unpublished", publish=False, difficulty_level=Difficulty.EASY)

    passing = container.attempts.start(quiz.id, student.id)
    container.attempts.record_answer(passing.id, quiz.questions[0].id, "A", student.id)
    container.attempts.submit(passing.id, student.id)

    failing = container.attempts.start(quiz.id, other_student.id)
    container.attempts.submit(failing.id, other_student.id)

    stats = container.assessments.get_stats()
    assert stats.total_assessments == 2
    assert stats.published_assessments == 1
    assert stats.draft_assessments == 1
    assert stats.total_attempts == 2
    assert stats.completed_attempts == 2
    assert stats.average_score == pytest.approx(31.25)
    assert stats.pass_rate == pytest.approx(50.0)
    assert stats.assessments_by_grade == {7: 2}
    assert stats.assessments_by_difficulty == {"medium": 1, "easy": 1}
    assert {a.id for a in stats.recent_attempts} == {passing.id, failing.id}
    assert {a.passed for a in stats.recent_attempts} == {True, False}


def test_search_treats_wildcards_literally(container, teacher):
    make_assessment(container, teacher, title="100% mastery check")
    make_assessment(container, teacher, title="1000 mastery drills")
    make_assessment(container, teacher, title="snake_case review")
    make_assessment(container, teacher, title="snakeXcase review")

    percent = container.assessments.list_assessments(AssessmentFilters(search="100%"))
    assert [a.title for a in percent.assessments] == ["100% mastery check"]

    underscore = container.assessments.list_assessments(AssessmentFilters(search="e_c"))
    assert [a.title for a in underscore.assessments] == ["snake_case review"]


def test_read_failures_surface_as_internal_errors(container, engine, student, quiz):
    Assessment.__table__.drop(engine)
    reads = [
        lambda: container.assessments.get_assessment(quiz.id),
        lambda: container.assessments.get_assessment_by_uuid(quiz.uuid),
        lambda: container.assessments.list_assessments(),
        lambda: container.assessments.get_assessment_for_student(quiz.id, student.id),
        container.assessments.get_stats,
    ]
    for read in reads:
        with pytest.raises(InternalError):
            read()
