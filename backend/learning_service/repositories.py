"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (user
settings, exercise attempts). Repositories return SQLModel objects and
perform commits/refreshes where appropriate.
"""

from typing import Dict, List, Optional
from sqlmodel import Session, select
from . import models


class SettingsRepository:
    """CRUD operations for `UserSettings` rows (one per user)."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: str) -> Optional[models.UserSettings]:
        """Return the settings row for `user_id` or `None`."""
        stmt = select(models.UserSettings).where(models.UserSettings.user_id == user_id)
        return self.session.exec(stmt).first()

    def save(self, row: models.UserSettings) -> models.UserSettings:
        """Insert or update `row` and return the refreshed instance."""
        row.updated_at = models.utcnow()
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row

    def delete_for_user(self, user_id: str) -> int:
        rows = self.session.exec(
            select(models.UserSettings).where(models.UserSettings.user_id == user_id)
        ).all()
        for row in rows:
            self.session.delete(row)
        return len(rows)


class AttemptRepository:
    """Append-only access to the exercise attempt log."""
    def __init__(self, session: Session):
        self.session = session

    def add(self, attempt: models.ExerciseAttempt) -> models.ExerciseAttempt:
        self.session.add(attempt)
        self.session.commit()
        self.session.refresh(attempt)
        return attempt

    def list_for_unit(self, user_id: str, lang: str, module_id: str, unit_id: str) -> List[models.ExerciseAttempt]:
        """Return the user's attempts in a unit, oldest first."""
        stmt = select(models.ExerciseAttempt).where(
            models.ExerciseAttempt.user_id == user_id,
            models.ExerciseAttempt.lang == lang,
            models.ExerciseAttempt.module_id == module_id,
            models.ExerciseAttempt.unit_id == unit_id,
        ).order_by(models.ExerciseAttempt.attempted_at, models.ExerciseAttempt.id)
        return self.session.exec(stmt).all()

    def list_for_module(self, user_id: str, lang: str, module_id: str) -> List[models.ExerciseAttempt]:
        """Return the user's attempts across all units of a module, oldest first."""
        stmt = select(models.ExerciseAttempt).where(
            models.ExerciseAttempt.user_id == user_id,
            models.ExerciseAttempt.lang == lang,
            models.ExerciseAttempt.module_id == module_id,
        ).order_by(models.ExerciseAttempt.attempted_at, models.ExerciseAttempt.id)
        return self.session.exec(stmt).all()

    def list_for_language(self, user_id: str, lang: str) -> List[models.ExerciseAttempt]:
        stmt = select(models.ExerciseAttempt).where(
            models.ExerciseAttempt.user_id == user_id,
            models.ExerciseAttempt.lang == lang,
        ).order_by(models.ExerciseAttempt.attempted_at, models.ExerciseAttempt.id)
        return self.session.exec(stmt).all()

    def latest_attempts(self, user_id: str, lang: str, module_id: str, unit_id: str) -> Dict[str, models.ExerciseAttempt]:
        """Map each attempted exercise id to its most recent attempt."""
        # rows are ordered oldest first, so later rows overwrite
        return {a.exercise_id: a for a in self.list_for_unit(user_id, lang, module_id, unit_id)}

    def delete_for_user(self, user_id: str) -> int:
        rows = self.session.exec(
            select(models.ExerciseAttempt).where(models.ExerciseAttempt.user_id == user_id)
        ).all()
        for row in rows:
            self.session.delete(row)
        return len(rows)
