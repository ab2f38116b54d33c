from datetime import timedelta

import pytest
from sqlalchemy import insert
from sqlalchemy.orm import sessionmaker

from app import models
from app.core import exceptions
from app.core.randomness import SeededRandomSource
from app.models.test import AttemptStatus, SelectionMode
from app.services.answer_recorder import AnswerRecorder
from app.services.attempt_manager import AttemptManager
from app.services.scorer import Scorer

USER = "user-1"
OTHER = "user-2"


@pytest.fixture
def manager(db, rng):
    return AttemptManager(db, rng)


def _answer(db, attempt_id, question_id, selected, user=USER):
    return AnswerRecorder(db).record_answer(attempt_id, user, question_id, selected)


def _complete(db, manager, deck_test):
    started = manager.start_attempt(USER, deck_test_id=deck_test.id)
    Scorer(db).submit_attempt(started.attempt.id, USER)
    return started


# ============= Start =============

def test_start_serves_pool_in_stored_order_without_answer_keys(manager, make_quiz):
    deck_test, questions = make_quiz(3)

    started = manager.start_attempt(USER, deck_test_id=deck_test.id)

    assert started.attempt.status == AttemptStatus.IN_PROGRESS
    assert started.attempt.test_type == models.TestType.DECK
    assert started.attempt.total_questions == 3
    assert started.attempt.passing_score == 70
    assert [q.id for q in started.questions] == [q.id for q in questions]
    for served in started.questions:
        dumped = served.model_dump()
        assert "correct_answers" not in dumped
        assert "explanation" not in dumped
        assert served.choices == ["A", "B", "C", "D"]


def test_start_persists_choice_permutation_per_slot(db, manager, make_quiz):
    deck_test, _ = make_quiz(2, shuffle_choices=True)

    started = manager.start_attempt(USER, deck_test_id=deck_test.id)

    slots = db.query(models.TestAttemptQuestion).filter(
        models.TestAttemptQuestion.attempt_id == started.attempt.id
    ).order_by(models.TestAttemptQuestion.position).all()
    assert [s.position for s in slots] == [0, 1]
    for slot, served in zip(slots, started.questions):
        assert sorted(slot.choice_order) == [0, 1, 2, 3]
        assert served.choices == [["A", "B", "C", "D"][i] for i in slot.choice_order]


def test_subset_mode_draws_question_count(manager, make_quiz):
    deck_test, questions = make_quiz(
        5, selection_mode=SelectionMode.FIXED_POOL_SUBSET, question_count=2
    )

    started = manager.start_attempt(USER, deck_test_id=deck_test.id)

    served_ids = [q.id for q in started.questions]
    assert started.attempt.total_questions == 2
    assert len(set(served_ids)) == 2
    assert set(served_ids) <= {q.id for q in questions}


def test_deactivated_questions_are_not_served(db, manager, make_quiz):
    deck_test, questions = make_quiz(3)
    questions[1].is_active = False
    db.commit()

    started = manager.start_attempt(USER, deck_test_id=deck_test.id)

    assert [q.id for q in started.questions] == [questions[0].id, questions[2].id]


def test_start_without_active_questions_creates_nothing(db, manager, make_quiz):
    deck_test, questions = make_quiz(2)
    for question in questions:
        question.is_active = False
    db.commit()

    with pytest.raises(exceptions.NoQuestionsAvailable):
        manager.start_attempt(USER, deck_test_id=deck_test.id)
    assert db.query(models.TestAttempt).count() == 0


def test_unpublished_or_missing_test_is_not_found(db, manager, make_quiz):
    deck_test, _ = make_quiz(1, is_published=False)

    with pytest.raises(exceptions.TestNotFound):
        manager.start_attempt(USER, deck_test_id=deck_test.id)
    with pytest.raises(exceptions.TestNotFound):
        manager.start_attempt(USER, deck_test_id=9999)
    with pytest.raises(exceptions.FlashcardNotFound):
        manager.start_attempt(USER, flashcard_id=9999)


def test_single_flashcard_attempt_uses_default_rules(manager, make_flashcard, make_question):
    flashcard = make_flashcard()
    first = make_question(flashcard, order=1)
    second = make_question(flashcard, order=0)

    started = manager.start_attempt(USER, flashcard_id=flashcard.id)

    assert started.attempt.test_type == models.TestType.FLASHCARD
    assert started.attempt.passing_score == 70
    assert started.attempt.time_limit is None
    assert [q.id for q in started.questions] == [second.id, first.id]


def test_single_item_deck_test_reads_its_flashcard(manager, make_flashcard, make_question, make_deck_test):
    target = make_flashcard(question="Target card?")
    other = make_flashcard(question="Other card?")
    wanted = make_question(target)
    make_question(other)
    deck_test = make_deck_test(selection_mode=SelectionMode.SINGLE_ITEM, flashcard_id=target.id)

    started = manager.start_attempt(USER, deck_test_id=deck_test.id)

    assert [q.id for q in started.questions] == [wanted.id]
    assert started.attempt.test_type == models.TestType.DECK


# ============= Attempt cap =============

def test_attempt_cap_counts_completed_attempts_only(db, manager, make_quiz):
    deck_test, _ = make_quiz(1, max_attempts=2)

    _complete(db, manager, deck_test)
    abandoned = manager.start_attempt(USER, deck_test_id=deck_test.id)
    manager.abandon_attempt(abandoned.attempt.id, USER)
    _complete(db, manager, deck_test)

    with pytest.raises(exceptions.AttemptLimitReached) as exc_info:
        manager.start_attempt(USER, deck_test_id=deck_test.id)
    assert exc_info.value.status_code == 403
    assert exc_info.value.extra["max_attempts"] == 2

    # The cap is per user
    assert manager.start_attempt(OTHER, deck_test_id=deck_test.id).attempt.total_questions == 1


def test_no_retakes_allows_a_single_completion(db, manager, make_quiz):
    deck_test, _ = make_quiz(1, allow_retakes=False)

    _complete(db, manager, deck_test)

    with pytest.raises(exceptions.AttemptLimitReached):
        manager.start_attempt(USER, deck_test_id=deck_test.id)


def test_flashcard_attempts_are_uncapped(db, manager, make_flashcard, make_question):
    flashcard = make_flashcard()
    make_question(flashcard)

    for _ in range(3):
        started = manager.start_attempt(USER, flashcard_id=flashcard.id)
        Scorer(db).submit_attempt(started.attempt.id, USER)

    assert manager.start_attempt(USER, flashcard_id=flashcard.id).attempt.status == AttemptStatus.IN_PROGRESS


# ============= Answers =============

def test_answers_are_graded_and_counted(db, manager, make_quiz):
    deck_test, questions = make_quiz(3)
    attempt_id = manager.start_attempt(USER, deck_test_id=deck_test.id).attempt.id

    right = _answer(db, attempt_id, questions[0].id, [0])
    wrong = _answer(db, attempt_id, questions[1].id, [2])

    assert right.answer.is_correct and right.answer.points_earned == 1
    assert not wrong.answer.is_correct and wrong.answer.points_earned == 0
    assert wrong.progress.questions_answered == 2
    assert wrong.progress.correct_answers == 1
    assert wrong.progress.total_questions == 3


def test_multi_answer_question_needs_the_exact_set(db, manager, make_flashcard, make_question, make_deck_test):
    for _ in range(3):
        make_question(make_flashcard(), correct_answers=[0, 2])
    deck_test = make_deck_test()
    questions = db.query(models.TestQuestion).order_by(models.TestQuestion.id).all()
    attempt_id = manager.start_attempt(USER, deck_test_id=deck_test.id).attempt.id

    assert _answer(db, attempt_id, questions[0].id, [2, 0]).answer.is_correct
    assert not _answer(db, attempt_id, questions[1].id, [0]).answer.is_correct
    assert not _answer(db, attempt_id, questions[2].id, [0, 1, 2]).answer.is_correct


def test_shuffled_choices_are_graded_on_true_indices(db, make_quiz, positions):
    deck_test, questions = make_quiz(1, shuffle_choices=True)
    manager = AttemptManager(db, SeededRandomSource(5))
    attempt_id = manager.start_attempt(USER, deck_test_id=deck_test.id).attempt.id
    shown = positions(attempt_id, questions[0].id, [0])

    result = _answer(db, attempt_id, questions[0].id, shown)

    assert result.answer.is_correct
    stored = db.query(models.TestAnswer).one()
    assert stored.selected_answers == [0]


def test_duplicate_answer_is_rejected_without_touching_progress(db, manager, make_quiz):
    deck_test, questions = make_quiz(2)
    attempt_id = manager.start_attempt(USER, deck_test_id=deck_test.id).attempt.id
    _answer(db, attempt_id, questions[0].id, [0])

    with pytest.raises(exceptions.DuplicateAnswer):
        _answer(db, attempt_id, questions[0].id, [1])

    attempt = db.get(models.TestAttempt, attempt_id)
    assert attempt.questions_answered == 1
    assert attempt.correct_answers == 1
    assert db.query(models.TestAnswer).count() == 1


def test_out_of_range_choice_is_rejected(db, manager, make_quiz):
    deck_test, questions = make_quiz(1)
    attempt_id = manager.start_attempt(USER, deck_test_id=deck_test.id).attempt.id

    with pytest.raises(exceptions.InvalidChoiceIndex) as exc_info:
        _answer(db, attempt_id, questions[0].id, [4])
    assert exc_info.value.extra["max_index"] == 3
    with pytest.raises(exceptions.InvalidChoiceIndex):
        _answer(db, attempt_id, questions[0].id, [-1])

    assert db.query(models.TestAnswer).count() == 0


def test_question_outside_the_attempt_is_rejected(db, manager, make_quiz, make_flashcard, make_question):
    deck_test, _ = make_quiz(1)
    stray = make_question(make_flashcard())
    attempt_id = manager.start_attempt(USER, deck_test_id=deck_test.id).attempt.id

    with pytest.raises(exceptions.QuestionNotInAttempt):
        _answer(db, attempt_id, stray.id, [0])


def test_other_users_attempt_looks_missing(db, manager, make_quiz):
    deck_test, questions = make_quiz(1)
    attempt_id = manager.start_attempt(USER, deck_test_id=deck_test.id).attempt.id

    with pytest.raises(exceptions.AttemptNotFound):
        _answer(db, attempt_id, questions[0].id, [0], user=OTHER)
    with pytest.raises(exceptions.AttemptNotFound):
        Scorer(db).submit_attempt(attempt_id, OTHER)
    with pytest.raises(exceptions.AttemptNotFound):
        manager.get_results(attempt_id, OTHER)


# ============= Submit =============

def test_seven_of_ten_meets_a_seventy_percent_bar(db, manager, make_quiz):
    deck_test, questions = make_quiz(10, passing_score=70)
    attempt_id = manager.start_attempt(USER, deck_test_id=deck_test.id).attempt.id
    for i, question in enumerate(questions):
        _answer(db, attempt_id, question.id, [0] if i < 7 else [1])

    result = Scorer(db).submit_attempt(attempt_id, USER)

    assert result.status == AttemptStatus.COMPLETED
    assert result.score == 70.0
    assert result.passed is True
    assert result.correct_answers == 7
    assert result.questions_answered == 10


def test_seventy_percent_fails_a_seventy_one_bar(db, manager, make_quiz):
    deck_test, questions = make_quiz(10, passing_score=71)
    attempt_id = manager.start_attempt(USER, deck_test_id=deck_test.id).attempt.id
    for i, question in enumerate(questions):
        _answer(db, attempt_id, question.id, [0] if i < 7 else [1])

    result = Scorer(db).submit_attempt(attempt_id, USER)

    assert result.score == 70.0
    assert result.passed is False


def test_unanswered_questions_count_as_incorrect(db, manager, make_flashcard, make_question, make_deck_test):
    heavy = make_question(make_flashcard(), point_value=3)
    make_question(make_flashcard())
    make_question(make_flashcard())
    deck_test = make_deck_test()
    attempt_id = manager.start_attempt(USER, deck_test_id=deck_test.id).attempt.id
    _answer(db, attempt_id, heavy.id, [0])

    result = Scorer(db).submit_attempt(attempt_id, USER)

    assert result.score == 33.33
    assert result.questions_answered == 1
    assert result.points_earned == 3
    assert result.points_possible == 5


def test_time_spent_is_measured_from_start(db, manager, make_quiz):
    deck_test, _ = make_quiz(1)
    attempt_id = manager.start_attempt(USER, deck_test_id=deck_test.id).attempt.id
    started_at = db.get(models.TestAttempt, attempt_id).started_at

    result = Scorer(db).submit_attempt(attempt_id, USER, now=started_at + timedelta(seconds=125))

    assert result.time_spent == 125


def test_completed_attempt_is_immutable(db, manager, make_quiz):
    deck_test, questions = make_quiz(2)
    attempt_id = manager.start_attempt(USER, deck_test_id=deck_test.id).attempt.id
    _answer(db, attempt_id, questions[0].id, [0])
    first = Scorer(db).submit_attempt(attempt_id, USER)

    with pytest.raises(exceptions.AttemptNotActive) as exc_info:
        _answer(db, attempt_id, questions[1].id, [0])
    assert exc_info.value.current_status == AttemptStatus.COMPLETED

    with pytest.raises(exceptions.AttemptAlreadyFinalized):
        Scorer(db).submit_attempt(attempt_id, USER)
    with pytest.raises(exceptions.AttemptNotActive):
        manager.abandon_attempt(attempt_id, USER)

    attempt = db.get(models.TestAttempt, attempt_id)
    assert attempt.status == AttemptStatus.COMPLETED
    assert attempt.score == first.score
    assert attempt.questions_answered == 1


# ============= Abandon & resume =============

def test_abandoned_attempt_rejects_further_work(db, manager, make_quiz):
    deck_test, questions = make_quiz(1)
    attempt_id = manager.start_attempt(USER, deck_test_id=deck_test.id).attempt.id

    record = manager.abandon_attempt(attempt_id, USER)
    assert record.status == AttemptStatus.ABANDONED
    assert record.score is None

    with pytest.raises(exceptions.AttemptNotActive):
        _answer(db, attempt_id, questions[0].id, [0])
    with pytest.raises(exceptions.AttemptAlreadyFinalized) as exc_info:
        Scorer(db).submit_attempt(attempt_id, USER)
    assert exc_info.value.current_status == AttemptStatus.ABANDONED
    with pytest.raises(exceptions.AttemptNotActive):
        manager.abandon_attempt(attempt_id, USER)


def test_resume_serves_the_same_questions_and_choice_order(db, make_quiz):
    deck_test, questions = make_quiz(4, shuffle_questions=True, shuffle_choices=True)
    manager = AttemptManager(db, SeededRandomSource(77))
    started = manager.start_attempt(USER, deck_test_id=deck_test.id)
    _answer(db, started.attempt.id, started.questions[0].id, [0])

    # A different randomness source must not change what was served
    resumed = AttemptManager(db, SeededRandomSource(1)).get_attempt_questions(started.attempt.id, USER)

    assert resumed.questions == started.questions
    assert resumed.answered_question_ids == [started.questions[0].id]


def test_resume_of_finished_attempt_is_rejected(db, manager, make_quiz):
    deck_test, _ = make_quiz(1)
    attempt_id = manager.start_attempt(USER, deck_test_id=deck_test.id).attempt.id
    Scorer(db).submit_attempt(attempt_id, USER)

    with pytest.raises(exceptions.AttemptNotActive):
        manager.get_attempt_questions(attempt_id, USER)


def test_unknown_question_is_not_found(db, manager, make_quiz):
    deck_test, _ = make_quiz(1)
    attempt_id = manager.start_attempt(USER, deck_test_id=deck_test.id).attempt.id

    with pytest.raises(exceptions.QuestionNotFound):
        _answer(db, attempt_id, 9999, [0])


def test_pass_verdict_is_not_rounded_up(db, manager, make_quiz):
    deck_test, _ = make_quiz(1, passing_score=70)
    attempt_id = manager.start_attempt(USER, deck_test_id=deck_test.id).attempt.id
    attempt = db.get(models.TestAttempt, attempt_id)
    attempt.total_questions = 2003
    db.execute(insert(models.TestAnswer), [
        {
            "attempt_id": attempt_id,
            "test_question_id": 10000 + i,
            "selected_answers": [0],
            "is_correct": True,
            "points_earned": 1,
        }
        for i in range(1402)
    ])
    db.commit()

    result = Scorer(db).submit_attempt(attempt_id, USER)

    # 1402 / 2003 is 69.995...%
    assert result.score == 70.0
    assert result.passed is False


# ============= Concurrent finalization =============

def test_answer_racing_a_submit_is_rolled_back(db, manager, make_quiz):
    deck_test, questions = make_quiz(2)
    attempt_id = manager.start_attempt(USER, deck_test_id=deck_test.id).attempt.id
    # This session still holds the attempt as in progress
    assert db.get(models.TestAttempt, attempt_id).status == AttemptStatus.IN_PROGRESS

    other = sessionmaker(bind=db.get_bind())()
    try:
        Scorer(other).submit_attempt(attempt_id, USER)
    finally:
        other.close()

    with pytest.raises(exceptions.AttemptNotActive) as exc_info:
        _answer(db, attempt_id, questions[0].id, [0])
    assert exc_info.value.current_status == AttemptStatus.COMPLETED

    db.expire_all()
    attempt = db.get(models.TestAttempt, attempt_id)
    assert db.query(models.TestAnswer).count() == 0
    assert attempt.questions_answered == 0
    assert attempt.correct_answers == 0
    assert attempt.status == AttemptStatus.COMPLETED


def test_stale_second_submit_is_rejected(db, manager, make_quiz):
    deck_test, questions = make_quiz(2)
    attempt_id = manager.start_attempt(USER, deck_test_id=deck_test.id).attempt.id
    _answer(db, attempt_id, questions[0].id, [0])
    assert db.get(models.TestAttempt, attempt_id).status == AttemptStatus.IN_PROGRESS

    other = sessionmaker(bind=db.get_bind())()
    try:
        first = Scorer(other).submit_attempt(attempt_id, USER)
    finally:
        other.close()

    with pytest.raises(exceptions.AttemptAlreadyFinalized) as exc_info:
        Scorer(db).submit_attempt(attempt_id, USER)
    assert exc_info.value.current_status == AttemptStatus.COMPLETED

    db.expire_all()
    attempt = db.get(models.TestAttempt, attempt_id)
    assert attempt.score == first.score == 50.0
    assert attempt.questions_answered == 1
    assert attempt.completed_at is not None
