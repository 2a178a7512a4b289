"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories and
the content library. Services perform validation, execute domain logic
and persist aggregates via repositories. Client errors are signalled
with `ValueError` so controllers can map them to 400 responses.
"""

import logging
import random
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from . import models, repositories, schemas
from .models import AnswerStatus
from .utils.content_library import ContentLibrary, Exercise, UnitContent

logger = logging.getLogger("learning_service.services")

SUPPORTED_LANGUAGES = ("en", "es")
ONBOARDING_STEPS = ("native", "learning", "level", "complete")
USER_LEVELS = ("A1", "A2", "B1", "B2", "C1", "C2")

STATUS_AVAILABLE = "available"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"

# category weights for next-exercise selection; empty categories are skipped
NEXT_EXERCISE_WEIGHTS = (("new", 0.6), ("failed", 0.3), ("completed", 0.1))


class UserAlreadyExists(Exception):
    """Raised when creating a user whose settings row already exists."""


def iso_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Format `value` as ISO-8601, treating naive datetimes as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def other_language(lang: str) -> str:
    return "es" if lang == "en" else "en"


def validate_user_id(raw: Optional[str]) -> str:
    """Return the stripped user id or raise ValueError if it is not a UUID."""
    user_id = (raw or "").strip()
    if not user_id:
        raise ValueError("User ID is required")
    try:
        uuid.UUID(user_id)
    except ValueError:
        raise ValueError("Invalid user ID format")
    return user_id


def settings_to_response(row: models.UserSettings) -> schemas.UserSettingsResponse:
    return schemas.UserSettingsResponse(
        user_id=row.user_id,
        native_language=row.native_language,
        target_language=row.target_language,
        dark_mode=row.dark_mode,
        onboarding_step=row.onboarding_step,
        user_level=row.user_level,
    )


class SettingsService:
    """Read and update per-user settings.

    Updates are partial. When a request changes only one of the two
    languages and it collides with the stored other language, the other
    language is flipped and a warning is returned instead of an error.
    """
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.SettingsRepository(session)

    def get_or_create(self, user_id: str) -> models.UserSettings:
        """Return the user's settings, inserting defaults on first access."""
        row = self.repo.get(user_id)
        if row is None:
            row = self.repo.save(models.UserSettings(user_id=user_id))
            logger.info("created default settings for user %s", user_id)
        return row

    def _validate(self, native_language, target_language, onboarding_step, user_level):
        supported = ", ".join(SUPPORTED_LANGUAGES)
        if native_language is not None and native_language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported native language: {native_language}. Supported: {supported}")
        if target_language is not None and target_language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported target language: {target_language}. Supported: {supported}")
        if native_language is not None and native_language == target_language:
            raise ValueError("Native language and target language cannot be the same")
        if onboarding_step is not None and onboarding_step not in ONBOARDING_STEPS:
            raise ValueError(f"Invalid onboarding step. Valid steps are: {', '.join(ONBOARDING_STEPS)}")
        if user_level is not None and user_level not in USER_LEVELS:
            raise ValueError(f"Invalid user level. Valid levels are: {', '.join(USER_LEVELS)}")

    def update(
        self,
        user_id: str,
        native_language: Optional[str] = None,
        target_language: Optional[str] = None,
        dark_mode: Optional[bool] = None,
        onboarding_step: Optional[str] = None,
        user_level: Optional[str] = None,
    ) -> Tuple[models.UserSettings, List[str]]:
        """Apply a partial update and return `(settings, warnings)`.

        Raises ValueError for unsupported languages, identical languages,
        unknown onboarding steps and unknown levels. A missing row is
        created from the supplied values and the defaults.
        """
        self._validate(native_language, target_language, onboarding_step, user_level)
        warnings: List[str] = []
        row = self.repo.get(user_id) or models.UserSettings(user_id=user_id)
        previous_step = row.onboarding_step

        native, target = row.native_language, row.target_language
        if native_language is not None and target_language is not None:
            native, target = native_language, target_language
        elif native_language is not None:
            native = native_language
            if native == target:
                target = other_language(native)
                warnings.append(f"Target language automatically changed to {target} to avoid conflict")
        elif target_language is not None:
            target = target_language
            if target == native:
                native = other_language(target)
                warnings.append(f"Native language automatically changed to {native} to avoid conflict")
        row.native_language = native
        row.target_language = target

        if dark_mode is not None:
            row.dark_mode = dark_mode
        if user_level is not None:
            row.user_level = user_level
        if onboarding_step is not None:
            blocker = None
            if onboarding_step == "complete":
                languages_in_request = native_language is not None or target_language is not None
                if not native or not target:
                    blocker = "native and target languages must both be set"
                elif previous_step == "native" and not languages_in_request:
                    blocker = "languages have not been chosen yet"
            if blocker:
                warnings.append(f"Onboarding completion ignored: {blocker}")
            else:
                row.onboarding_step = onboarding_step

        saved = self.repo.save(row)
        for warning in warnings:
            logger.info("settings for user %s: %s", user_id, warning)
        return saved, warnings


class UserService:
    """User lifecycle driven by the auth service."""
    def __init__(self, session: Session):
        self.session = session
        self.settings_repo = repositories.SettingsRepository(session)
        self.attempt_repo = repositories.AttemptRepository(session)

    def create_user(self, user_id: str) -> models.UserSettings:
        """Create the default settings row for a new user."""
        if self.settings_repo.get(user_id) is not None:
            raise UserAlreadyExists(user_id)
        try:
            row = self.settings_repo.save(models.UserSettings(user_id=user_id))
        except IntegrityError:
            self.session.rollback()
            raise UserAlreadyExists(user_id)
        logger.info("created user %s", user_id)
        return row

    def delete_user(self, user_id: str) -> Dict[str, int]:
        """Remove settings and attempts for `user_id`; unknown users are a no-op."""
        removed = {
            "settings": self.settings_repo.delete_for_user(user_id),
            "attempts": self.attempt_repo.delete_for_user(user_id),
        }
        self.session.commit()
        logger.info("deleted user %s (%s settings, %s attempts)", user_id, removed["settings"], removed["attempts"])
        return removed


def summarize_unit(unit_id: str, attempts: List[models.ExerciseAttempt], exercise_ids: Optional[List[str]]) -> schemas.UnitProgress:
    """Build unit counters from the attempt log.

    `correct_answers` and `wrong_answers` count every attempt; an
    exercise counts as completed when its latest attempt is correct.
    When `exercise_ids` is given, only those exercises can be completed.
    """
    # attempts are oldest first, so the last one per exercise wins
    latest = {a.exercise_id: a for a in attempts}
    if exercise_ids is not None:
        known = set(exercise_ids)
        latest = {k: v for k, v in latest.items() if k in known}
    correct = sum(1 for a in attempts if a.answer_status == AnswerStatus.CORRECT)
    return schemas.UnitProgress(
        unit_id=unit_id,
        completed_exercises=sum(1 for a in latest.values() if a.is_correct),
        correct_answers=correct,
        wrong_answers=len(attempts) - correct,
        total_exercises=len(exercise_ids or []),
        last_attempted=iso_timestamp(max((a.attempted_at for a in attempts), default=None)),
    )


def unit_status(progress: schemas.UnitProgress, attempted: bool) -> str:
    if progress.total_exercises > 0 and progress.completed_exercises >= progress.total_exercises:
        return STATUS_COMPLETED
    if attempted:
        return STATUS_IN_PROGRESS
    return STATUS_AVAILABLE


def choose_next(buckets: Dict[str, List[Exercise]], rng) -> Optional[Exercise]:
    """Pick a category by weight among non-empty ones, then an exercise in it."""
    available = [(name, weight) for name, weight in NEXT_EXERCISE_WEIGHTS if buckets.get(name)]
    if not available:
        return None
    names = [name for name, _ in available]
    weights = [weight for _, weight in available]
    category = rng.choices(names, weights=weights, k=1)[0]
    return rng.choice(buckets[category])


class ProgressService:
    """Record attempts and derive progress from the attempt log."""
    def __init__(self, session: Session, library: ContentLibrary):
        self.session = session
        self.library = library
        self.attempts = repositories.AttemptRepository(session)

    def record_attempt(self, user_id: str, lang: str, module_id: str, unit_id: str, exercise_id: str, answer_status: AnswerStatus, user_answer: str = "") -> models.ExerciseAttempt:
        attempt = models.ExerciseAttempt(
            user_id=user_id,
            lang=lang,
            module_id=module_id,
            unit_id=unit_id,
            exercise_id=exercise_id,
            user_answer=user_answer,
            answer_status=answer_status,
            is_correct=answer_status == AnswerStatus.CORRECT,
        )
        return self.attempts.add(attempt)

    def get_unit_progress(self, user_id: str, lang: str, module_id: str, unit_id: str) -> Optional[schemas.UnitProgress]:
        """Return unit counters, or None when the user has no attempts there."""
        attempts = self.attempts.list_for_unit(user_id, lang, module_id, unit_id)
        if not attempts:
            return None
        unit = self.library.get_unit_content(lang, module_id, unit_id)
        exercise_ids = [e.id for e in unit.exercises] if unit else None
        return summarize_unit(unit_id, attempts, exercise_ids)

    def get_exercise_progress(self, user_id: str, lang: str, module_id: str, unit_id: str, exercise_id: str) -> schemas.ExerciseProgress:
        attempts = [a for a in self.attempts.list_for_unit(user_id, lang, module_id, unit_id) if a.exercise_id == exercise_id]
        return exercise_progress(exercise_id, attempts)

    def get_next_exercise(self, user_id: str, lang: str, module_id: str, unit_id: str, current_exercise_id: Optional[str] = None, rng=None) -> Optional[Exercise]:
        """Pick the next exercise to practise in a unit.

        The current exercise is never returned. Remaining exercises are
        split into new (never attempted), failed (latest attempt not
        correct) and completed; new ones are favoured, failed ones come
        back for review and completed ones only occasionally.
        """
        candidates = [e for e in self.library.get_exercises(lang, module_id, unit_id) if e.id != current_exercise_id]
        if not candidates:
            return None
        latest = self.attempts.latest_attempts(user_id, lang, module_id, unit_id)
        buckets: Dict[str, List[Exercise]] = {"new": [], "failed": [], "completed": []}
        for exercise in candidates:
            attempt = latest.get(exercise.id)
            if attempt is None:
                buckets["new"].append(exercise)
            elif attempt.is_correct:
                buckets["completed"].append(exercise)
            else:
                buckets["failed"].append(exercise)
        return choose_next(buckets, rng or random.Random())


def exercise_progress(exercise_id: str, attempts: List[models.ExerciseAttempt]) -> schemas.ExerciseProgress:
    if not attempts:
        return schemas.ExerciseProgress(exercise_id=exercise_id, is_completed=False)
    last = attempts[-1]
    return schemas.ExerciseProgress(
        exercise_id=exercise_id,
        is_completed=last.is_correct,
        is_correct=last.is_correct,
        attempts=len(attempts),
        last_attempted=iso_timestamp(last.attempted_at),
    )


class ContentService:
    """Combine static content with the user's progress for API responses."""
    def __init__(self, session: Session, library: ContentLibrary):
        self.session = session
        self.library = library
        self.progress = ProgressService(session, library)
        self.attempts = self.progress.attempts

    def _unit_summary(self, lang: str, module_id: str, unit_id: str, title, description, attempts) -> schemas.UnitSummary:
        unit = self.library.get_unit_content(lang, module_id, unit_id)
        exercise_ids = [e.id for e in unit.exercises] if unit else []
        unit_attempts = [a for a in attempts if a.unit_id == unit_id]
        progress = summarize_unit(unit_id, unit_attempts, exercise_ids)
        return schemas.UnitSummary(
            id=unit_id,
            title=title,
            description=description,
            total_exercises=progress.total_exercises,
            completed_exercises=progress.completed_exercises,
            status=unit_status(progress, bool(unit_attempts)),
        )

    def _unit_summaries(self, user_id: str, lang: str, module_id: str, attempts=None) -> List[schemas.UnitSummary]:
        if attempts is None:
            attempts = self.attempts.list_for_module(user_id, lang, module_id)
        return [
            self._unit_summary(lang, module_id, unit.unit_id, unit.title, unit.description, attempts)
            for unit in self.library.get_units(lang, module_id)
        ]

    def list_modules(self, user_id: str, lang: str) -> List[schemas.ModuleResponse]:
        all_attempts = self.attempts.list_for_language(user_id, lang)
        out = []
        for module in self.library.get_modules(lang):
            attempts = [a for a in all_attempts if a.module_id == module.module_id]
            units = self._unit_summaries(user_id, lang, module.module_id, attempts)
            completed_units = sum(1 for u in units if u.status == STATUS_COMPLETED)
            if units and completed_units == len(units):
                status = STATUS_COMPLETED
            elif any(u.status != STATUS_AVAILABLE for u in units):
                status = STATUS_IN_PROGRESS
            else:
                status = STATUS_AVAILABLE
            out.append(schemas.ModuleResponse(
                id=module.module_id,
                title=module.title,
                description=module.description,
                level=module.difficulty[0] if module.difficulty else "A1",
                total_units=len(units),
                completed_units=completed_units,
                status=status,
            ))
        return out

    def get_module(self, user_id: str, lang: str, module_id: str) -> Optional[schemas.ModuleDetailResponse]:
        module = self.library.get_module(lang, module_id)
        if module is None:
            return None
        return schemas.ModuleDetailResponse(
            id=module.module_id,
            title=module.title,
            description=module.description,
            level=module.difficulty[0] if module.difficulty else "A1",
            units=self._unit_summaries(user_id, lang, module_id),
        )

    def list_units(self, user_id: str, lang: str, module_id: str) -> List[schemas.UnitSummary]:
        return self._unit_summaries(user_id, lang, module_id)

    def _exercise_summaries(self, user_id: str, lang: str, module_id: str, unit: UnitContent) -> List[schemas.ExerciseSummary]:
        latest = self.attempts.latest_attempts(user_id, lang, module_id, unit.unit_id)
        out = []
        for exercise in unit.exercises:
            attempt = latest.get(exercise.id)
            out.append(schemas.ExerciseSummary(
                id=exercise.id,
                type=exercise.type,
                status=STATUS_COMPLETED if attempt is not None and attempt.is_correct else STATUS_AVAILABLE,
                is_correct=None if attempt is None else attempt.is_correct,
            ))
        return out

    def get_unit(self, user_id: str, lang: str, module_id: str, unit_id: str) -> Optional[schemas.UnitDetailResponse]:
        unit = self.library.get_unit_content(lang, module_id, unit_id)
        if unit is None:
            return None
        return schemas.UnitDetailResponse(
            id=unit.unit_id,
            title=unit.title,
            description=unit.description,
            tip=unit.tip,
            exercises=self._exercise_summaries(user_id, lang, module_id, unit),
        )

    def list_exercises(self, user_id: str, lang: str, module_id: str, unit_id: str) -> List[schemas.ExerciseSummary]:
        unit = self.library.get_unit_content(lang, module_id, unit_id)
        if unit is None:
            return []
        return self._exercise_summaries(user_id, lang, module_id, unit)

    def get_exercise(self, lang: str, module_id: str, unit_id: str, exercise_id: str) -> Optional[Exercise]:
        return self.library.get_exercise(lang, module_id, unit_id, exercise_id)

    def unit_progress(self, user_id: str, lang: str, module_id: str, unit_id: str) -> Optional[schemas.UnitProgress]:
        """Return counters for a known unit; zero counters if never attempted."""
        unit = self.library.get_unit_content(lang, module_id, unit_id)
        if unit is None:
            return None
        attempts = self.attempts.list_for_unit(user_id, lang, module_id, unit_id)
        return summarize_unit(unit_id, attempts, [e.id for e in unit.exercises])

    def submit(self, user_id: str, lang: str, module_id: str, unit_id: str, exercise_id: str, answer_status: AnswerStatus, user_answer: str = "") -> Optional[schemas.SubmitExerciseResponse]:
        """Record a submission; returns None when the exercise does not exist."""
        exercise = self.library.get_exercise(lang, module_id, unit_id, exercise_id)
        if exercise is None:
            return None
        self.progress.record_attempt(user_id, lang, module_id, unit_id, exercise_id, answer_status, user_answer)
        return schemas.SubmitExerciseResponse(
            success=True,
            answer_status=answer_status,
            correct_answer=exercise.solution,
            explanation=exercise.tip,
            progress=self.progress.get_unit_progress(user_id, lang, module_id, unit_id),
        )

    def next_exercise(self, user_id: str, lang: str, module_id: str, unit_id: str, current_exercise_id: Optional[str] = None, rng=None) -> schemas.NextExerciseResponse:
        if self.library.get_unit_content(lang, module_id, unit_id) is None:
            return schemas.NextExerciseResponse(has_more_exercises=False, message="Unit not found")
        exercise = self.progress.get_next_exercise(user_id, lang, module_id, unit_id, current_exercise_id, rng)
        if exercise is None:
            return schemas.NextExerciseResponse(has_more_exercises=False, message="No other exercises available")
        progress = self.progress.get_exercise_progress(user_id, lang, module_id, unit_id, exercise.id)
        return schemas.NextExerciseResponse(
            exercise=schemas.ExerciseResponse.from_exercise(exercise, unit_id, progress),
            has_more_exercises=True,
        )
