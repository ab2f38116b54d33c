"""
Pydantic schemas for creating test questions and deck tests.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.models.test import SelectionMode


class TestQuestionCreate(BaseModel):
    """Schema for test question creation."""

    flashcard_id: int
    question: str = Field(..., min_length=10, max_length=1000)
    choices: List[str] = Field(..., min_length=2, max_length=6)
    correct_answers: List[int] = Field(..., min_length=1)
    explanation: Optional[str] = Field(None, max_length=1000)
    point_value: int = Field(1, ge=1, le=10)
    time_limit: Optional[int] = Field(None, ge=10, le=600, description="Seconds")
    difficulty: Optional[int] = Field(None, ge=1, le=5)
    order: int = Field(0, ge=0)
    is_active: bool = True

    @field_validator("choices")
    @classmethod
    def choices_not_blank(cls, v: List[str]) -> List[str]:
        if any(not c.strip() or len(c) > 500 for c in v):
            raise ValueError("Choices must be 1-500 characters")
        return v

    @model_validator(mode="after")
    def answer_key_within_choices(self):
        if len(set(self.correct_answers)) != len(self.correct_answers):
            raise ValueError("Correct answers must be unique")
        max_index = len(self.choices) - 1
        if any(i < 0 or i > max_index for i in self.correct_answers):
            raise ValueError(f"Correct answer indices must be between 0 and {max_index}")
        return self


class TestQuestionRead(BaseModel):
    """Admin view of a test question, answer key included."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    flashcard_id: int
    question: str
    choices: List[str]
    correct_answers: List[int]
    explanation: Optional[str] = None
    point_value: int
    time_limit: Optional[int] = None
    difficulty: Optional[int] = None
    order: int
    is_active: bool


class DeckTestCreate(BaseModel):
    """Schema for deck test creation."""

    deck_id: int
    flashcard_id: Optional[int] = None
    name: str = Field(..., min_length=3, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    selection_mode: str = SelectionMode.FIXED_POOL
    question_count: Optional[int] = Field(None, ge=1, le=100)
    time_limit: Optional[int] = Field(None, ge=60, le=7200, description="Seconds")
    passing_score: int = Field(70, ge=0, le=100)
    shuffle_questions: bool = True
    shuffle_choices: bool = True
    show_correct_answers: bool = True
    allow_retakes: bool = True
    max_attempts: Optional[int] = Field(None, ge=1, le=100)
    is_published: bool = True

    @model_validator(mode="after")
    def mode_requirements(self):
        if self.selection_mode not in SelectionMode.ALL:
            raise ValueError(f"selection_mode must be one of {', '.join(SelectionMode.ALL)}")
        if self.selection_mode == SelectionMode.FIXED_POOL_SUBSET and self.question_count is None:
            raise ValueError("question_count is required for fixed_pool_subset tests")
        if self.selection_mode == SelectionMode.SINGLE_ITEM and self.flashcard_id is None:
            raise ValueError("flashcard_id is required for single_item tests")
        return self


class DeckTestRead(BaseModel):
    """Schema for a created deck test."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    deck_id: int
    flashcard_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    selection_mode: str
    question_count: Optional[int] = None
    time_limit: Optional[int] = None
    passing_score: int
    shuffle_questions: bool
    shuffle_choices: bool
    show_correct_answers: bool
    allow_retakes: bool
    max_attempts: Optional[int] = None
    is_published: bool
    created_at: Optional[datetime] = None
    pool_size: int = 0
