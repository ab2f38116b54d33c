"""
Pydantic schemas for test attempts, answers and results.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ============= Requests =============

class TestAttemptStart(BaseModel):
    """Schema for starting a test attempt. Exactly one reference is required."""

    deck_test_id: Optional[int] = Field(None, description="Deck test to take")
    flashcard_id: Optional[int] = Field(None, description="Flashcard to quiz on")

    @model_validator(mode="after")
    def exactly_one_reference(self):
        if (self.deck_test_id is None) == (self.flashcard_id is None):
            raise ValueError("Either deck_test_id or flashcard_id must be provided, but not both")
        return self


class AnswerSubmit(BaseModel):
    """
    Schema for answering one question of an attempt.

    ``selected_answers`` are positions in the choice list as it was displayed
    for this attempt.
    """

    attempt_id: int
    test_question_id: int
    selected_answers: List[int] = Field(..., min_length=1, max_length=6)
    time_spent: Optional[int] = Field(None, ge=0, description="Seconds spent on the question")
    marked_for_review: bool = False


class AttemptReference(BaseModel):
    """Schema for submitting or abandoning an attempt."""

    attempt_id: int


# ============= Attempt payloads =============

class AttemptSummary(BaseModel):
    """Attempt header returned when an attempt is started or resumed."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    status: str
    test_type: str
    total_questions: int
    time_limit: Optional[int] = None
    passing_score: int
    started_at: datetime


class SanitizedQuestion(BaseModel):
    """A question as served during an attempt: no answer key, no explanation."""

    id: int
    question: str
    choices: List[str]
    point_value: int
    time_limit: Optional[int] = None
    difficulty: Optional[int] = None


class StartAttemptResponse(BaseModel):
    """Schema for a freshly started attempt."""

    attempt: AttemptSummary
    questions: List[SanitizedQuestion]


class AttemptQuestionsResponse(StartAttemptResponse):
    """Schema for resuming an attempt."""

    answered_question_ids: List[int]


class AnswerResult(BaseModel):
    id: int
    is_correct: bool
    points_earned: int


class AttemptProgress(BaseModel):
    questions_answered: int
    total_questions: int
    correct_answers: int


class RecordAnswerResponse(BaseModel):
    """Schema for a recorded answer."""

    answer: AnswerResult
    progress: AttemptProgress


class SubmissionResult(BaseModel):
    """Final, authoritative outcome of an attempt."""

    attempt_id: int
    status: str
    total_questions: int
    questions_answered: int
    correct_answers: int
    score: float
    passed: bool
    passing_score: int
    points_earned: int
    points_possible: int
    time_spent: int
    completed_at: datetime


class SubmitAttemptResponse(BaseModel):
    result: SubmissionResult


# ============= History & results =============

class AttemptRecord(BaseModel):
    """Stored state of an attempt."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    test_type: str
    deck_test_id: Optional[int] = None
    flashcard_id: Optional[int] = None
    status: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    total_questions: int
    questions_answered: int
    correct_answers: int
    score: Optional[float] = None
    passed: Optional[bool] = None
    time_spent: Optional[int] = None


class Pagination(BaseModel):
    limit: int
    offset: int
    total: int


class AttemptHistory(BaseModel):
    """Schema for the user's attempt history."""

    attempts: List[AttemptRecord]
    pagination: Pagination


class TestDescriptor(BaseModel):
    """What the attempt was taken against."""

    deck_test_id: Optional[int] = None
    flashcard_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    passing_score: int
    deck_id: Optional[int] = None
    deck_name: Optional[str] = None


class QuestionReview(BaseModel):
    """Per-question detail revealed after completion."""

    question_id: int
    question: str
    choices: List[str]
    correct_answers: List[int]
    selected_answers: Optional[List[int]] = None
    is_correct: bool
    points_earned: int
    time_spent: Optional[int] = None
    marked_for_review: bool = False
    explanation: Optional[str] = None


class Performance(BaseModel):
    accuracy: float
    average_time_per_question: Optional[float] = None


class AttemptResults(BaseModel):
    """
    Schema for attempt results.

    ``questions`` is None unless the attempt is completed and the test
    reveals correct answers.
    """

    attempt: AttemptRecord
    test: Optional[TestDescriptor] = None
    questions: Optional[List[QuestionReview]] = None
    performance: Performance
