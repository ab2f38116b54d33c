"""Schemas module - Import all schemas."""
from app.schemas.test import (
    TestAttemptStart,
    AnswerSubmit,
    AttemptReference,
    AttemptSummary,
    SanitizedQuestion,
    StartAttemptResponse,
    AttemptQuestionsResponse,
    AnswerResult,
    AttemptProgress,
    RecordAnswerResponse,
    SubmissionResult,
    SubmitAttemptResponse,
    AttemptRecord,
    Pagination,
    AttemptHistory,
    TestDescriptor,
    QuestionReview,
    Performance,
    AttemptResults,
)
from app.schemas.admin import (
    TestQuestionCreate,
    TestQuestionRead,
    DeckTestCreate,
    DeckTestRead,
)

__all__ = [
    "TestAttemptStart",
    "AnswerSubmit",
    "AttemptReference",
    "AttemptSummary",
    "SanitizedQuestion",
    "StartAttemptResponse",
    "AttemptQuestionsResponse",
    "AnswerResult",
    "AttemptProgress",
    "RecordAnswerResponse",
    "SubmissionResult",
    "SubmitAttemptResponse",
    "AttemptRecord",
    "Pagination",
    "AttemptHistory",
    "TestDescriptor",
    "QuestionReview",
    "Performance",
    "AttemptResults",
    "TestQuestionCreate",
    "TestQuestionRead",
    "DeckTestCreate",
    "DeckTestRead",
]
