import uuid
import pytest
from learning_service.models import AnswerStatus, ExerciseAttempt
from learning_service.services import ProgressService, exercise_progress, summarize_unit

MODULE = "articles-determiners"
UNIT = "the_article_general_vs_specific_1"


@pytest.fixture
def progress(session, library):
    return ProgressService(session, library)


def _record(progress, user_id, *answers):
    for exercise_id, status in answers:
        progress.record_attempt(user_id, "en", MODULE, UNIT, exercise_id, AnswerStatus(status))


def test_no_attempts_means_no_progress(progress, user_id):
    assert progress.get_unit_progress(user_id, "en", MODULE, UNIT) is None


def test_single_correct_answer(progress, user_id):
    _record(progress, user_id, ("ex_1", "CORRECT"))
    p = progress.get_unit_progress(user_id, "en", MODULE, UNIT)
    assert (p.completed_exercises, p.correct_answers, p.wrong_answers) == (1, 1, 0)
    assert p.total_exercises == 5
    assert p.last_attempted is not None


def test_single_incorrect_answer(progress, user_id):
    _record(progress, user_id, ("ex_1", "INCORRECT"))
    p = progress.get_unit_progress(user_id, "en", MODULE, UNIT)
    assert (p.completed_exercises, p.correct_answers, p.wrong_answers) == (0, 0, 1)


def test_skipped_and_revealed_count_as_wrong(progress, user_id):
    _record(
        progress,
        user_id,
        ("ex_1", "CORRECT"),
        ("ex_2", "CORRECT"),
        ("ex_3", "INCORRECT"),
        ("ex_4", "SKIPPED"),
        ("ex_5", "REVEALED"),
    )
    p = progress.get_unit_progress(user_id, "en", MODULE, UNIT)
    assert (p.completed_exercises, p.correct_answers, p.wrong_answers) == (2, 2, 3)


def test_retries_until_correct(progress, user_id):
    _record(progress, user_id, ("ex_1", "INCORRECT"), ("ex_1", "INCORRECT"), ("ex_1", "CORRECT"))
    p = progress.get_unit_progress(user_id, "en", MODULE, UNIT)
    assert (p.completed_exercises, p.correct_answers, p.wrong_answers) == (1, 1, 2)


def test_latest_attempt_decides_completion(progress, user_id):
    _record(progress, user_id, ("ex_1", "CORRECT"), ("ex_1", "INCORRECT"))
    p = progress.get_unit_progress(user_id, "en", MODULE, UNIT)
    assert (p.completed_exercises, p.correct_answers, p.wrong_answers) == (0, 1, 1)


def test_progress_is_scoped_to_unit(progress, user_id):
    progress.record_attempt(user_id, "en", MODULE, "quantifiers_some_any", "q_1", AnswerStatus.CORRECT)
    assert progress.get_unit_progress(user_id, "en", MODULE, UNIT) is None
    p = progress.get_unit_progress(user_id, "en", MODULE, "quantifiers_some_any")
    assert p.total_exercises == 3
    assert p.completed_exercises == 1


def test_unknown_unit_reports_zero_total(progress, user_id):
    progress.record_attempt(user_id, "en", MODULE, "retired_unit", "old_1", AnswerStatus.CORRECT)
    p = progress.get_unit_progress(user_id, "en", MODULE, "retired_unit")
    assert p.total_exercises == 0
    assert p.correct_answers == 1


def test_summarize_ignores_exercises_outside_unit():
    user = str(uuid.uuid4())
    attempts = [
        ExerciseAttempt(user_id=user, lang="en", module_id="m", unit_id="u", exercise_id="gone", answer_status=AnswerStatus.CORRECT, is_correct=True),
        ExerciseAttempt(user_id=user, lang="en", module_id="m", unit_id="u", exercise_id="a", answer_status=AnswerStatus.CORRECT, is_correct=True),
    ]
    p = summarize_unit("u", attempts, ["a", "b"])
    assert p.completed_exercises == 1
    assert p.correct_answers == 2
    assert p.total_exercises == 2


def test_exercise_progress(progress, user_id):
    assert exercise_progress("ex_1", []).is_completed is False
    _record(progress, user_id, ("ex_1", "INCORRECT"), ("ex_1", "CORRECT"))
    p = progress.get_exercise_progress(user_id, "en", MODULE, UNIT, "ex_1")
    assert p.attempts == 2
    assert p.is_completed is True
    assert p.is_correct is True
    assert progress.get_exercise_progress(user_id, "en", MODULE, UNIT, "ex_2").attempts == 0


def test_attempts_on_retired_units_do_not_start_a_module(tmp_path, session, user_id):
    import json
    from learning_service.services import ContentService
    from learning_service.utils.content_library import ContentLibrary
    module_dir = tmp_path / "en" / "modules" / "m"
    (module_dir / "units").mkdir(parents=True)
    (module_dir / "meta.json").write_text(json.dumps({"moduleId": "m", "title": {"en": "M"}}))
    (module_dir / "units" / "u1.json").write_text(json.dumps({
        "title": {"en": "U1"},
        "exercises": [{"id": "e_1", "type": "translation", "prompt": "Hi", "solution": "Hola"}],
    }))
    svc = ContentService(session, ContentLibrary(tmp_path))
    svc.progress.record_attempt(user_id, "en", "m", "retired", "old_1", AnswerStatus.CORRECT)
    module = svc.list_modules(user_id, "en")[0]
    assert [u.status for u in svc.list_units(user_id, "en", "m")] == ["available"]
    assert module.status == "available"
    assert module.completed_units == 0

    svc.progress.record_attempt(user_id, "en", "m", "u1", "e_1", AnswerStatus.INCORRECT)
    assert svc.list_modules(user_id, "en")[0].status == "in_progress"
