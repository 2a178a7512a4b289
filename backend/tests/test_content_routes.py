from fastapi.testclient import TestClient
from learning_service.main import app

client = TestClient(app)

ARTICLES = "/content/en/modules/articles-determiners"
UNIT = f"{ARTICLES}/units/the_article_general_vs_specific_1"


def _submit(headers, exercise_id, status, answer="", base=UNIT):
    return client.post(
        f"{base}/exercises/{exercise_id}/submit",
        json={"userAnswer": answer, "answerStatus": status},
        headers=headers,
    )


def test_list_modules_for_new_user(auth_headers):
    r = client.get("/content/en/modules", headers=auth_headers)
    assert r.status_code == 200
    modules = r.json()
    assert [m["id"] for m in modules] == ["basics", "articles-determiners"]
    basics, articles = modules
    assert basics["level"] == "A1"
    assert articles["level"] == "A2"
    assert articles["totalUnits"] == 2
    assert articles["completedUnits"] == 0
    assert articles["status"] == "available"


def test_module_detail_and_missing_module(auth_headers):
    r = client.get(ARTICLES, headers=auth_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["title"]["en"] == "Articles and determiners"
    assert [u["id"] for u in body["units"]] == ["quantifiers_some_any", "the_article_general_vs_specific_1"]
    assert body["units"][1]["totalExercises"] == 5

    r = client.get("/content/en/modules/nope", headers=auth_headers)
    assert r.status_code == 404
    assert r.json()["error"]["message"] == "Module not found"
    assert r.json()["error"]["type"] == "NOT_FOUND"


def test_list_units_of_unknown_module_is_empty(auth_headers):
    r = client.get("/content/en/modules/nope/units", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == []


def test_unit_detail_and_exercise_list(auth_headers):
    r = client.get(UNIT, headers=auth_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["tip"]["en"] == "Use no article for things in general."
    assert len(body["exercises"]) == 5
    assert all(e["status"] == "available" and e["isCorrect"] is None for e in body["exercises"])
    assert "solution" not in body["exercises"][0]

    r = client.get(f"{UNIT}/exercises", headers=auth_headers)
    assert [e["id"] for e in r.json()] == ["ex_1", "ex_2", "ex_3", "ex_4", "ex_5"]

    r = client.get(f"{ARTICLES}/units/nope", headers=auth_headers)
    assert r.status_code == 404
    assert r.json()["error"]["message"] == "Unit not found"
    assert client.get(f"{ARTICLES}/units/nope/exercises", headers=auth_headers).json() == []


def test_get_exercise(auth_headers):
    r = client.get(f"{UNIT}/exercises/ex_3", headers=auth_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["solution"] == "-"
    assert body["options"] == ["the", "a", "-"]

    r = client.get(f"{UNIT}/exercises/ex_99", headers=auth_headers)
    assert r.status_code == 404
    assert r.json()["error"]["message"] == "Exercise not found"


def test_submit_returns_feedback_and_progress(auth_headers):
    r = _submit(auth_headers, "ex_1", "INCORRECT", "The men don't understand the women.")
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["answerStatus"] == "INCORRECT"
    assert body["correctAnswer"] == "Men don't understand women."
    assert body["explanation"]["en"] == "General statement: no article."
    progress = body["progress"]
    assert progress["unitId"] == "the_article_general_vs_specific_1"
    assert progress["completedExercises"] == 0
    assert progress["wrongAnswers"] == 1
    assert progress["totalExercises"] == 5
    assert progress["lastAttempted"]

    r = _submit(auth_headers, "ex_1", "CORRECT", "Men don't understand women.")
    progress = r.json()["progress"]
    assert progress["completedExercises"] == 1
    assert progress["correctAnswers"] == 1
    assert progress["wrongAnswers"] == 1


def test_submit_rejects_bad_status_and_unknown_exercise(auth_headers):
    r = _submit(auth_headers, "ex_1", "MAYBE")
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Invalid request body"

    r = _submit(auth_headers, "ex_99", "CORRECT")
    assert r.status_code == 404


def test_statuses_follow_submissions(auth_headers):
    _submit(auth_headers, "ex_2", "CORRECT", "The")
    unit = client.get(UNIT, headers=auth_headers).json()
    statuses = {e["id"]: (e["status"], e["isCorrect"]) for e in unit["exercises"]}
    assert statuses["ex_2"] == ("completed", True)
    assert statuses["ex_1"] == ("available", None)

    units = client.get(f"{ARTICLES}/units", headers=auth_headers).json()
    the_unit = units[1]
    assert the_unit["status"] == "in_progress"
    assert the_unit["completedExercises"] == 1
    modules = {m["id"]: m for m in client.get("/content/en/modules", headers=auth_headers).json()}
    assert modules["articles-determiners"]["status"] == "in_progress"
    assert modules["basics"]["status"] == "available"

    basics_unit = "/content/en/modules/basics/units/greetings_1"
    _submit(auth_headers, "g_1", "CORRECT", "Hello", base=basics_unit)
    _submit(auth_headers, "g_2", "CORRECT", "Goodbye", base=basics_unit)
    modules = {m["id"]: m for m in client.get("/content/en/modules", headers=auth_headers).json()}
    assert modules["basics"]["status"] == "completed"
    assert modules["basics"]["completedUnits"] == 1


def test_later_wrong_answer_reopens_exercise(auth_headers):
    _submit(auth_headers, "ex_5", "CORRECT")
    _submit(auth_headers, "ex_5", "REVEALED")
    exercises = {e["id"]: e for e in client.get(f"{UNIT}/exercises", headers=auth_headers).json()}
    assert exercises["ex_5"]["status"] == "available"
    assert exercises["ex_5"]["isCorrect"] is False


def test_progress_endpoint(auth_headers):
    r = client.get(f"{UNIT}/progress", headers=auth_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["completedExercises"] == 0
    assert body["correctAnswers"] == 0
    assert body["wrongAnswers"] == 0
    assert body["totalExercises"] == 5
    assert body["lastAttempted"] is None

    _submit(auth_headers, "ex_3", "SKIPPED")
    body = client.get(f"{UNIT}/progress", headers=auth_headers).json()
    assert body["wrongAnswers"] == 1

    r = client.get(f"{ARTICLES}/units/nope/progress", headers=auth_headers)
    assert r.status_code == 404


def test_progress_is_per_user():
    from learning_service.auth import create_access_token
    alice = {"Authorization": f"Bearer {create_access_token('alice-isolation')}"}
    bob = {"Authorization": f"Bearer {create_access_token('bob-isolation')}"}
    _submit(alice, "ex_4", "CORRECT", "Life is beautiful.")
    assert client.get(f"{UNIT}/progress", headers=alice).json()["completedExercises"] == 1
    assert client.get(f"{UNIT}/progress", headers=bob).json()["completedExercises"] == 0


def test_progress_is_per_language(auth_headers):
    base = "/content/es/modules/saludos/units/saludos_1"
    _submit(auth_headers, "s_1", "CORRECT", base=base)
    assert client.get(f"{base}/progress", headers=auth_headers).json()["completedExercises"] == 1
    assert client.get(f"{UNIT}/progress", headers=auth_headers).json()["completedExercises"] == 0
