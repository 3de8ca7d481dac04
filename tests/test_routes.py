from models import db
from models.attempts import TestAttempt


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "OK"


def test_unknown_route_returns_json_404(client):
    response = client.get("/api/nowhere")
    assert response.status_code == 404
    assert response.get_json() == {"error": "Route not found"}


def test_login_and_check_auth(client, make_user):
    make_user("student", username="alice", password="pw-alice")

    bad = client.post("/api/auth/login", json={"username_or_email": "alice", "password": "nope"})
    assert bad.status_code == 401

    missing = client.post("/api/auth/login", json={"username_or_email": "alice"})
    assert missing.status_code == 400
    assert "password" in missing.get_json()["error"]

    response = client.post("/api/auth/login", json={"username_or_email": "alice@example.com", "password": "pw-alice"})
    assert response.status_code == 200
    body = response.get_json()
    assert body["user"]["role"] == "student"

    check = client.get("/api/auth/check-auth", headers={"Authorization": f"Bearer {body['token']}"})
    assert check.status_code == 200
    assert check.get_json()["user"]["username_or_email"] == "alice"


def test_questions_require_a_token(client, scenario):
    response = client.get("/api/questions?test_id=32")
    assert response.status_code == 401

    response = client.get("/api/questions?test_id=32", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.get_json() == {"error": "Invalid token"}


def test_student_gets_only_their_attempt_questions_without_answers(client, scenario, auth_headers):
    response = client.get("/api/questions?test_id=32", headers=auth_headers(scenario["student"]))

    assert response.status_code == 200
    questions = response.get_json()["questions"]
    assert [q["id"] for q in questions] == [102, 104]
    for question in questions:
        assert "correct_answer" not in question
        assert "explanation" not in question
        assert "test_cases" not in question


def test_teacher_gets_every_question_with_answers(client, scenario, auth_headers):
    response = client.get("/api/questions?test_id=32", headers=auth_headers(scenario["teacher"]))

    questions = response.get_json()["questions"]
    assert [q["id"] for q in questions] == [101, 102, 103, 104, 105]
    assert all("correct_answer" in q for q in questions)


def test_question_query_errors(client, scenario, auth_headers):
    headers = auth_headers(scenario["student"])

    assert client.get("/api/questions", headers=headers).status_code == 400
    assert client.get("/api/questions?test_id=abc", headers=headers).status_code == 400
    assert client.get("/api/questions?test_id=999", headers=headers).status_code == 404


def test_only_staff_create_questions(client, scenario, auth_headers):
    payload = {
        "test_id": 32,
        "question_type": "short_answer",
        "question_text": "<script>x</script>Capital of <b>France</b>?",
        "correct_answer": "Paris",
    }

    denied = client.post("/api/questions", json=payload, headers=auth_headers(scenario["student"]))
    assert denied.status_code == 403

    created = client.post("/api/questions", json=payload, headers=auth_headers(scenario["teacher"]))
    assert created.status_code == 201
    question = created.get_json()["question"]
    assert question["order_number"] == 6
    assert "<script>" not in question["question_text"]
    assert "<b>France</b>" in question["question_text"]


def test_create_question_validation(client, scenario, auth_headers):
    headers = auth_headers(scenario["teacher"])

    response = client.post("/api/questions", json={"test_id": 32}, headers=headers)
    assert response.status_code == 400

    response = client.post("/api/questions", json={
        "test_id": 32, "question_type": "essay", "question_text": "?", "correct_answer": "x",
    }, headers=headers)
    assert response.status_code == 400


def test_students_see_only_active_tests(client, make_test, make_user, auth_headers):
    make_test(title="Open")
    make_test(title="Hidden", is_active=False)

    anonymous = client.get("/api/tests").get_json()["tests"]
    assert [t["title"] for t in anonymous] == ["Open"]

    teacher = make_user("teacher")
    staff = client.get("/api/tests", headers=auth_headers(teacher)).get_json()["tests"]
    assert {t["title"] for t in staff} == {"Open", "Hidden"}


def test_create_test_as_teacher(client, make_user, auth_headers):
    teacher = make_user("teacher")
    response = client.post("/api/tests", json={
        "title": "Loops",
        "quiz_type": "mcq",
        "test_type": "graded",
        "duration_minutes": 20,
        "questions_to_ask": 5,
    }, headers=auth_headers(teacher))

    assert response.status_code == 201
    test = response.get_json()["test"]
    assert test["questions_to_ask"] == 5
    assert test["created_by"] == teacher.id
    assert test["question_count"] == 0


def test_attempt_flow(client, make_test, make_user, auth_headers):
    test = make_test(question_count=4, questions_to_ask=2, max_attempts=2)
    student = make_user("student")
    headers = auth_headers(student)

    started = client.post("/api/attempts", json={"test_id": test.id}, headers=headers)
    assert started.status_code == 201
    attempt = started.get_json()["attempt"]
    assert len(attempt["selected_questions"]) == 2

    resumed = client.post("/api/attempts", json={"test_id": test.id}, headers=headers)
    assert resumed.status_code == 200
    assert resumed.get_json()["attempt"]["id"] == attempt["id"]

    violation = client.post(
        f"/api/attempts/{attempt['id']}/violations",
        json={"violation_type": "screenshot_attempt"},
        headers=headers,
    )
    assert violation.status_code == 200
    assert violation.get_json()["attempt"]["total_violations"] == 1

    questions = client.get(f"/api/attempts/{attempt['id']}/questions", headers=headers).get_json()["questions"]
    assert [q["id"] for q in questions] == attempt["selected_questions"]

    submitted = client.post(f"/api/attempts/{attempt['id']}/submit", json={"answers": {}}, headers=headers)
    assert submitted.status_code == 200
    body = submitted.get_json()
    assert body["correct"] == 0
    assert body["total_questions"] == 2
    assert body["score"] == 0.0
    assert body["passed"] is False

    again = client.post(f"/api/attempts/{attempt['id']}/submit", json={"answers": {}}, headers=headers)
    assert again.status_code == 409
    assert again.get_json() == {"error": "Attempt has already been submitted"}

    db.session.expire_all()
    assert db.session.get(TestAttempt, attempt["id"]).status == "graded"


def test_attempt_is_private_to_its_student(client, scenario, make_user, auth_headers):
    other = make_user("student", username="other")

    assert client.get("/api/attempts/45", headers=auth_headers(other)).status_code == 404
    assert client.get("/api/attempts/45", headers=auth_headers(scenario["student"])).status_code == 200
    assert client.get("/api/attempts/45", headers=auth_headers(scenario["teacher"])).status_code == 200


def test_teacher_lists_attempts_for_a_test(client, scenario, auth_headers):
    response = client.get("/api/attempts/test/32", headers=auth_headers(scenario["teacher"]))
    assert response.status_code == 200
    assert [a["id"] for a in response.get_json()["attempts"]] == [45]

    assert client.get("/api/attempts/test/32", headers=auth_headers(scenario["student"])).status_code == 403


def test_tests_filter_by_course(client, make_test, make_user, auth_headers):
    from models.courses import Course

    course = Course(title="Intro to Python")
    db.session.add(course)
    db.session.commit()
    make_test(title="In course", course_id=course.id)
    make_test(title="Standalone")

    tests = client.get(f"/api/tests?course_id={course.id}").get_json()["tests"]
    assert [t["title"] for t in tests] == ["In course"]
    assert tests[0]["course_title"] == "Intro to Python"

    teacher = make_user("teacher")
    response = client.post("/api/tests", json={
        "title": "Orphan", "quiz_type": "mcq", "test_type": "practice",
        "duration_minutes": 10, "course_id": 999,
    }, headers=auth_headers(teacher))
    assert response.status_code == 400
    assert response.get_json() == {"error": "Course not found"}


def test_update_and_delete_test(client, make_test, make_user, auth_headers):
    test = make_test(question_count=2)
    teacher = make_user("teacher")
    admin = make_user("admin")

    updated = client.put(f"/api/tests/{test.id}", json={"questions_to_ask": 1}, headers=auth_headers(teacher))
    assert updated.status_code == 200
    assert updated.get_json()["test"]["questions_to_ask"] == 1

    assert client.put(f"/api/tests/{test.id}", json={}, headers=auth_headers(teacher)).status_code == 400
    assert client.delete(f"/api/tests/{test.id}", headers=auth_headers(teacher)).status_code == 403
    assert client.delete(f"/api/tests/{test.id}", headers=auth_headers(admin)).status_code == 200
    assert client.get(f"/api/tests/{test.id}").status_code == 404


def test_update_and_delete_question(client, scenario, make_user, auth_headers):
    teacher_headers = auth_headers(scenario["teacher"])
    admin_headers = auth_headers(make_user("admin"))

    updated = client.put("/api/questions/101", json={"explanation": "Counting"}, headers=teacher_headers)
    assert updated.status_code == 200
    assert updated.get_json()["question"]["explanation"] == "Counting"

    blank = client.put("/api/questions/101", json={"question_text": ""}, headers=teacher_headers)
    assert blank.status_code == 400

    assert client.delete("/api/questions/101", headers=teacher_headers).status_code == 403
    assert client.delete("/api/questions/101", headers=admin_headers).status_code == 200
    assert client.delete("/api/questions/101", headers=admin_headers).status_code == 404
