"""SQLModel data models.

This module defines the service's database tables using SQLModel. User
ids come from the sibling auth service and are stored as plain strings.
"""

from enum import Enum
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnswerStatus(str, Enum):
    """Outcome of an exercise submission as reported by the client."""
    CORRECT = "CORRECT"
    INCORRECT = "INCORRECT"
    SKIPPED = "SKIPPED"
    REVEALED = "REVEALED"


class UserSettings(SQLModel, table=True):
    """Per-user preferences and onboarding state.

    Fields:
    - `native_language` / `target_language`: two-letter language codes
    - `onboarding_step`: one of native, learning, level, complete
    - `user_level`: CEFR level picked during onboarding, if any
    """
    __tablename__ = "user_settings"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, unique=True, nullable=False, max_length=64)
    native_language: str = Field(default="en", max_length=10)
    target_language: str = Field(default="es", max_length=10)
    dark_mode: bool = False
    onboarding_step: str = Field(default="native", max_length=50)
    user_level: Optional[str] = Field(default=None, max_length=5)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ExerciseAttempt(SQLModel, table=True):
    """A single submission for an exercise; rows are never updated."""
    __tablename__ = "exercise_attempts"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, nullable=False, max_length=64)
    lang: str = Field(max_length=10)
    module_id: str = Field(index=True, max_length=100)
    unit_id: str = Field(index=True, max_length=100)
    exercise_id: str = Field(max_length=100)
    user_answer: str = ""
    answer_status: AnswerStatus
    is_correct: bool = False
    attempted_at: datetime = Field(default_factory=utcnow)
