"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. Fields are snake_case in Python and
camelCase on the wire.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Dict, List, Optional
from .models import AnswerStatus
from .utils.content_library import Exercise, Prompt


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(CamelModel):
    status: str
    service: str


class ErrorDetail(CamelModel):
    type: str
    message: str
    status: int
    timestamp: str
    path: str


class ErrorResponse(CamelModel):
    """Envelope returned for every handled error."""
    error: ErrorDetail


class ModuleResponse(CamelModel):
    """Module overview entry with per-user unit counters."""
    id: str
    title: Dict[str, str]
    description: Dict[str, str]
    level: str
    total_units: int
    completed_units: int
    status: str


class UnitSummary(CamelModel):
    id: str
    title: Dict[str, str]
    description: Optional[Dict[str, str]] = None
    total_exercises: int
    completed_exercises: int
    status: str


class ModuleDetailResponse(CamelModel):
    id: str
    title: Dict[str, str]
    description: Dict[str, str]
    level: str
    units: List[UnitSummary]


class ExerciseSummary(CamelModel):
    """Exercise entry without prompt/solution.

    `is_correct` is None when the user never attempted the exercise.
    """
    id: str
    type: str
    status: str
    is_correct: Optional[bool] = None


class UnitDetailResponse(CamelModel):
    id: str
    title: Dict[str, str]
    description: Optional[Dict[str, str]] = None
    tip: Optional[Dict[str, str]] = None
    exercises: List[ExerciseSummary]


class UnitProgress(CamelModel):
    """Aggregate counters for one user in one unit."""
    unit_id: str
    completed_exercises: int
    correct_answers: int
    wrong_answers: int
    total_exercises: int
    last_attempted: Optional[str] = None


class ExerciseProgress(CamelModel):
    exercise_id: str
    is_completed: bool
    is_correct: Optional[bool] = None
    attempts: int = 0
    last_attempted: Optional[str] = None


class SubmitExerciseRequest(CamelModel):
    """Client-graded submission for a single exercise."""
    user_answer: str = ""
    answer_status: AnswerStatus


class SubmitExerciseResponse(CamelModel):
    success: bool
    answer_status: AnswerStatus
    correct_answer: str
    explanation: Optional[Dict[str, str]] = None
    progress: Optional[UnitProgress] = None


class ExerciseResponse(CamelModel):
    """Exercise payload served by the next-exercise endpoint."""
    id: str
    unit_id: str
    type: str
    prompt: Prompt
    solution: Optional[str] = None
    options: Optional[List[str]] = None
    previous_attempts: int = 0
    is_completed: bool = False
    tip: Optional[Dict[str, str]] = None

    @classmethod
    def from_exercise(cls, exercise: Exercise, unit_id: str, progress: ExerciseProgress) -> "ExerciseResponse":
        return cls(
            id=exercise.id,
            unit_id=unit_id,
            type=exercise.type,
            prompt=exercise.prompt,
            solution=exercise.solution,
            options=exercise.options,
            previous_attempts=progress.attempts,
            is_completed=progress.is_completed,
            tip=exercise.tip,
        )


class NextExerciseResponse(CamelModel):
    exercise: Optional[ExerciseResponse] = None
    has_more_exercises: bool
    message: Optional[str] = None


class UserSettingsResponse(CamelModel):
    user_id: str
    native_language: str
    target_language: str
    dark_mode: bool
    onboarding_step: str
    user_level: Optional[str] = None


class UpdateUserSettingsRequest(CamelModel):
    """Partial settings update; omitted fields are left unchanged."""
    native_language: Optional[str] = None
    target_language: Optional[str] = None
    dark_mode: Optional[bool] = None
    onboarding_step: Optional[str] = None
    user_level: Optional[str] = None


class UpdateUserSettingsResponse(CamelModel):
    settings: UserSettingsResponse
    warnings: List[str] = []


class CreateUserRequest(CamelModel):
    user_id: str


class UserManagementResponse(CamelModel):
    success: bool
    message: str
    user_id: Optional[str] = None
