"""Read-only access to the static content tree.

Content lives on disk as JSON, one tree per target language:

    <base>/<lang>/modules/<moduleId>/meta.json
    <base>/<lang>/modules/<moduleId>/units/<unitId>/unit.json
    <base>/<lang>/modules/<moduleId>/units/<unitId>.json   (flat layout)

Files are parsed with pydantic on every call. Missing directories yield
empty results and unreadable files are logged and skipped, so a single
bad file never hides the rest of a module.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_serializer, model_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger("learning_service.content")

EXERCISE_TYPES = ("translation", "fill-in-the-blank", "multiple-choice")


class _ContentModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Prompt(BaseModel):
    """Exercise prompt in one or both interface languages.

    Content files may give a plain string, which is read as English text.
    """
    en: Optional[str] = None
    es: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_plain_text(cls, value):
        if isinstance(value, str):
            return {"en": value}
        return value

    @model_serializer
    def _serialize(self) -> Dict[str, str]:
        return {k: v for k, v in (("en", self.en), ("es", self.es)) if v is not None}

    def get_text(self, language: str = "en") -> str:
        if language == "es":
            return self.es or self.en or ""
        return self.en or self.es or ""


class Exercise(_ContentModel):
    id: str
    type: str
    prompt: Prompt
    solution: str
    options: Optional[List[str]] = None
    tip: Optional[Dict[str, str]] = None


class ModuleMeta(_ContentModel):
    module_id: str
    difficulty: List[str] = Field(default_factory=list)
    title: Dict[str, str]
    description: Dict[str, str] = Field(default_factory=dict)
    order: int = 0


class UnitMeta(_ContentModel):
    unit_id: Optional[str] = None
    module_id: Optional[str] = None
    target_language: Optional[str] = None
    title: Dict[str, str]
    description: Dict[str, str] = Field(default_factory=dict)
    tip: Optional[Dict[str, str]] = None


class UnitContent(UnitMeta):
    exercises: List[Exercise] = Field(default_factory=list)

    def meta(self) -> UnitMeta:
        return UnitMeta(**self.model_dump(exclude={"exercises"}))


def _is_safe_segment(segment: str) -> bool:
    """Return True if `segment` can be used as a single path component."""
    if not segment or segment == ".":
        return False
    return ".." not in segment and "/" not in segment and "\\" not in segment and "\x00" not in segment


def _read_json(path: Path):
    return json.loads(path.read_text(encoding="utf-8"))


class ContentLibrary:
    """Lookup of modules, units and exercises by language and id."""

    def __init__(self, base_path):
        self.base_path = Path(base_path)

    def _modules_dir(self, lang: str) -> Optional[Path]:
        if not _is_safe_segment(lang):
            return None
        path = self.base_path / lang / "modules"
        return path if path.is_dir() else None

    def _module_dir(self, lang: str, module_id: str) -> Optional[Path]:
        modules_dir = self._modules_dir(lang)
        if modules_dir is None or not _is_safe_segment(module_id):
            return None
        path = modules_dir / module_id
        return path if path.is_dir() else None

    def _load_unit_file(self, path: Path, unit_id: str, module_id: str) -> Optional[UnitContent]:
        try:
            unit = UnitContent.model_validate(_read_json(path))
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning("skipping unreadable unit file %s: %s", path, exc)
            return None
        return unit.model_copy(update={
            "unit_id": unit.unit_id or unit_id,
            "module_id": unit.module_id or module_id,
        })

    def get_modules(self, lang: str) -> List[ModuleMeta]:
        """Return module metadata for `lang`, ordered by `order` then id."""
        modules_dir = self._modules_dir(lang)
        if modules_dir is None:
            logger.info("no modules directory for language %r under %s", lang, self.base_path)
            return []
        modules = []
        for module_dir in sorted(p for p in modules_dir.iterdir() if p.is_dir()):
            meta_file = module_dir / "meta.json"
            if not meta_file.is_file():
                continue
            try:
                modules.append(ModuleMeta.model_validate(_read_json(meta_file)))
            except (OSError, ValueError, ValidationError) as exc:
                logger.warning("skipping module %s: invalid meta.json: %s", module_dir.name, exc)
        return sorted(modules, key=lambda m: (m.order, m.module_id))

    def get_module(self, lang: str, module_id: str) -> Optional[ModuleMeta]:
        for module in self.get_modules(lang):
            if module.module_id == module_id:
                return module
        return None

    def get_units(self, lang: str, module_id: str) -> List[UnitMeta]:
        """Return unit metadata (without exercises) for a module.

        Both layouts are read; when a unit exists in both, the directory
        version wins, matching `get_unit_content`.
        """
        module_dir = self._module_dir(lang, module_id)
        if module_dir is None:
            return []
        units_dir = module_dir / "units"
        if not units_dir.is_dir():
            return []
        units: Dict[str, UnitMeta] = {}
        for unit_dir in sorted(p for p in units_dir.iterdir() if p.is_dir()):
            unit_file = unit_dir / "unit.json"
            if not unit_file.is_file():
                continue
            unit = self._load_unit_file(unit_file, unit_dir.name, module_id)
            if unit is not None:
                units[unit.unit_id] = unit.meta()
        for unit_file in sorted(units_dir.glob("*.json")):
            unit = self._load_unit_file(unit_file, unit_file.stem, module_id)
            if unit is not None and unit.unit_id not in units:
                units[unit.unit_id] = unit.meta()
        return sorted(units.values(), key=lambda u: u.unit_id)

    def get_unit_content(self, lang: str, module_id: str, unit_id: str) -> Optional[UnitContent]:
        """Return the full unit including exercises, or None."""
        module_dir = self._module_dir(lang, module_id)
        if module_dir is None or not _is_safe_segment(unit_id):
            return None
        units_dir = module_dir / "units"
        for candidate in (units_dir / unit_id / "unit.json", units_dir / f"{unit_id}.json"):
            if candidate.is_file():
                return self._load_unit_file(candidate, unit_id, module_id)
        return None

    def get_exercises(self, lang: str, module_id: str, unit_id: str) -> List[Exercise]:
        unit = self.get_unit_content(lang, module_id, unit_id)
        return list(unit.exercises) if unit else []

    def get_exercise(self, lang: str, module_id: str, unit_id: str, exercise_id: str) -> Optional[Exercise]:
        for exercise in self.get_exercises(lang, module_id, unit_id):
            if exercise.id == exercise_id:
                return exercise
        return None

    def get_all_exercises_in_module(self, lang: str, module_id: str) -> List[Exercise]:
        exercises = []
        for unit in self.get_units(lang, module_id):
            exercises.extend(self.get_exercises(lang, module_id, unit.unit_id))
        return exercises


def validate_unit(unit: UnitContent) -> List[str]:
    """Return a list of integrity problems found in `unit`.

    Checks for duplicate exercise ids, unknown exercise types, empty
    solutions and multiple-choice solutions missing from their options.
    """
    problems = []
    seen = set()
    for exercise in unit.exercises:
        if exercise.id in seen:
            problems.append(f"duplicate exercise id: {exercise.id}")
        seen.add(exercise.id)
        if exercise.type not in EXERCISE_TYPES:
            problems.append(f"{exercise.id}: unknown exercise type {exercise.type!r}")
        if not exercise.solution.strip():
            problems.append(f"{exercise.id}: empty solution")
        if exercise.type == "multiple-choice":
            if not exercise.options:
                problems.append(f"{exercise.id}: multiple-choice exercise without options")
            elif exercise.solution not in exercise.options:
                problems.append(f"{exercise.id}: solution is not one of the options")
        if not exercise.prompt.get_text():
            problems.append(f"{exercise.id}: empty prompt")
    return problems
