"""
Typed failures raised by the assessment engine.

Services raise these instead of ``HTTPException``; the API layer renders them
through a single exception handler using ``status_code`` and ``code``.
"""
from typing import Any, Dict, Optional

from fastapi import status


class AssessmentError(Exception):
    """Base class for every business-rule failure of the engine."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "assessment_error"
    default_message: str = "Assessment request failed"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the failure for an API response body."""
        return {"detail": self.message, "code": self.code, **self.extra}


# ============= Taxonomy =============

class NotFoundError(AssessmentError):
    """Entity absent, or not owned by the caller. Both look the same."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Resource not found"


class InvalidStateError(AssessmentError):
    """Operation not allowed in the entity's current state."""

    code = "invalid_state"
    default_message = "Operation not allowed in the current state"


class ValidationFailure(AssessmentError):
    """Input violates a business constraint."""

    code = "validation_failed"
    default_message = "Validation failed"


class CapacityExceeded(AssessmentError):
    """A supply or quota limit prevents the operation."""

    code = "capacity_exceeded"
    default_message = "Capacity exceeded"


# ============= Not found =============

class AttemptNotFound(NotFoundError):
    code = "attempt_not_found"
    default_message = "Test attempt not found"


class TestNotFound(NotFoundError):
    code = "test_not_found"
    default_message = "Test not found or not published"


class QuestionNotFound(NotFoundError):
    code = "question_not_found"
    default_message = "Test question not found"


class FlashcardNotFound(NotFoundError):
    code = "flashcard_not_found"
    default_message = "Flashcard not found"


class DeckNotFound(NotFoundError):
    code = "deck_not_found"
    default_message = "Deck not found"


# ============= Invalid state =============

class AttemptNotActive(InvalidStateError):
    """Raised on mutation of an attempt that is no longer in progress."""

    code = "attempt_not_active"

    def __init__(self, current_status: str, message: Optional[str] = None):
        self.current_status = current_status
        super().__init__(
            message or f"Cannot modify attempt. Test status is: {current_status}",
            status=current_status,
        )


class AttemptAlreadyFinalized(InvalidStateError):
    """Raised on a second submission; callers may treat ``completed`` as success."""

    code = "attempt_already_finalized"

    def __init__(self, current_status: str):
        self.current_status = current_status
        super().__init__(f"Test already {current_status}", status=current_status)


class DuplicateAnswer(InvalidStateError):
    code = "duplicate_answer"
    default_message = "Answer already submitted for this question"


# ============= Validation =============

class QuestionNotInAttempt(ValidationFailure):
    code = "question_not_in_attempt"
    default_message = "Question is not part of this attempt"


class InvalidChoiceIndex(ValidationFailure):
    code = "invalid_choice_index"

    def __init__(self, max_index: int):
        super().__init__(
            f"Invalid answer indices. Must be between 0 and {max_index}",
            max_index=max_index,
        )


class InvalidSubsetSize(ValidationFailure):
    code = "invalid_subset_size"

    def __init__(self, requested: int, available: int):
        super().__init__(
            f"Requested {requested} questions but only {available} available",
            requested=requested,
            available=available,
        )


class InvalidAnswerKey(ValidationFailure):
    code = "invalid_answer_key"
    default_message = "Correct answers must reference existing choices"


# ============= Capacity =============

class NoQuestionsAvailable(CapacityExceeded):
    code = "no_questions_available"
    default_message = "No questions available for this test"


class AttemptLimitReached(CapacityExceeded):
    status_code = status.HTTP_403_FORBIDDEN
    code = "attempt_limit_reached"

    def __init__(self, max_attempts: int):
        self.max_attempts = max_attempts
        super().__init__(
            f"Maximum attempts ({max_attempts}) reached for this test",
            max_attempts=max_attempts,
        )
