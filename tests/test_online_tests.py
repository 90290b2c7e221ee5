import pytest

from schooldesk.models import AssignmentSubmission, Grade, Notification, SubmissionStatus

TEACHER = "/api/protected/teachers/subject"
STUDENT = "/api/protected/students"

CAPITAL = {"type": "multiple_choice", "question": "Capital of Nigeria?", "options": ["Lagos", "Abuja"], "correct_answer": 1, "marks": 2}
ESSAY = {"type": "essay", "question": "Describe the water cycle", "marks": 3}


@pytest.fixture
def setup(make_user, make_subject, auth_client):
    teacher = make_user("teacher", department="subject_teacher")
    subject = make_subject("Social Studies", code="SOC", classes=["JSS1"], teacher=teacher)
    student = make_user("student", class_name="JSS1A")
    return subject, auth_client(teacher), auth_client(student)


def create_test(api, subject, questions, **extra):
    payload = {"subject_id": str(subject.id), "title": "Week 3 quiz", "classes": ["JSS1A"], "passing_score": 1, "questions": questions}
    payload.update(extra)
    return api.post(f"{TEACHER}/online-tests", json=payload)


def test_objective_questions_need_a_correct_answer(setup):
    subject, teacher, _ = setup
    response = create_test(teacher, subject, [ESSAY, {**CAPITAL, "correct_answer": None}])
    assert response.status_code == 400
    assert response.json()["error"] == "Question 2 needs a correct answer"

    duplicate = create_test(teacher, subject, [{**CAPITAL, "id": "a"}, {**ESSAY, "id": "a"}])
    assert duplicate.status_code == 400

    objective = create_test(teacher, subject, [{**CAPITAL, "type": "objective", "correct_answer": None}])
    assert objective.status_code == 400
    assert objective.json()["error"] == "Question 1 needs a correct answer"

    assert create_test(teacher, subject, [{**ESSAY, "type": "esay"}]).status_code == 400


def test_question_typed_objective_is_auto_graded(setup):
    subject, teacher, student = setup
    test_id = create_test(teacher, subject, [{**CAPITAL, "type": "objective"}]).json()["test"]["id"]

    result = student.post(f"{STUDENT}/tests/submit", json={"test_id": test_id, "answers": {"q1": 1}}).json()["result"]

    assert result["status"] == "graded"
    assert result["objective_score"] == 2


def test_unassigned_teacher_cannot_create_tests(setup, make_user, auth_client):
    subject, _, _ = setup
    stranger = auth_client(make_user("teacher", department="subject_teacher"))
    assert create_test(stranger, subject, [CAPITAL]).status_code == 403


def test_created_test_totals_marks(setup):
    subject, teacher, _ = setup
    test = create_test(teacher, subject, [CAPITAL, ESSAY]).json()["test"]

    assert test["max_score"] == 5
    assert test["is_online_test"] is True
    assert test["settings"]["duration"] == 60
    assert [q["id"] for q in test["questions"]] == ["q1", "q2"]

    listed = teacher.get(f"{TEACHER}/online-tests").json()["tests"]
    assert [t["id"] for t in listed] == [test["id"]]
    assert teacher.get(f"{TEACHER}/assignments").json()["assignments"] == []


def test_student_paper_hides_answers(setup):
    subject, teacher, student = setup
    test_id = create_test(teacher, subject, [CAPITAL, ESSAY]).json()["test"]["id"]

    paper = student.get(f"{STUDENT}/tests/{test_id}").json()["test"]

    assert len(paper["questions"]) == 2
    for question in paper["questions"]:
        assert "correct_answer" not in question
        assert set(question) == {"id", "type", "question", "options", "marks"}


def test_shuffled_options_keep_their_stored_index(setup):
    subject, teacher, student = setup
    letters = {"type": "multiple_choice", "question": "First letter?", "options": ["A", "B", "C", "D"], "correct_answer": 0, "marks": 1}
    test_id = create_test(teacher, subject, [letters], shuffle_options=True).json()["test"]["id"]

    options = student.get(f"{STUDENT}/tests/{test_id}").json()["test"]["questions"][0]["options"]
    assert sorted(o["text"] for o in options) == ["A", "B", "C", "D"]
    chosen = next(o["index"] for o in options if o["text"] == "A")

    result = student.post(f"{STUDENT}/tests/submit", json={"test_id": test_id, "answers": {"q1": chosen}}).json()["result"]
    assert result["objective_score"] == 1


def test_other_classes_and_future_tests_are_blocked(setup, make_user, auth_client):
    subject, teacher, student = setup
    test_id = create_test(teacher, subject, [CAPITAL]).json()["test"]["id"]
    later_id = create_test(teacher, subject, [CAPITAL], available_from="2999-01-01T00:00:00").json()["test"]["id"]

    other = auth_client(make_user("student", class_name="JSS2A"))
    assert other.get(f"{STUDENT}/tests/{test_id}").status_code == 403
    assert student.get(f"{STUDENT}/tests/{later_id}").status_code == 403


def test_objective_test_is_graded_on_submit(db, setup):
    subject, teacher, student = setup
    test_id = create_test(teacher, subject, [CAPITAL]).json()["test"]["id"]

    response = student.post(f"{STUDENT}/tests/submit", json={"test_id": test_id, "answers": {"q1": "Abuja"}, "time_spent": 45})

    assert response.status_code == 200
    result = response.json()["result"]
    assert result["status"] == "graded"
    assert result["objective_score"] == 2
    assert result["percentage"] == 100.0

    grade = db.query(Grade).one()
    assert grade.grade == "A"
    assert grade.subject_id == subject.id

    again = student.post(f"{STUDENT}/tests/submit", json={"test_id": test_id, "answers": {"q1": "Lagos"}})
    assert again.status_code == 400

    summary = student.get(f"{STUDENT}/tests/result/{test_id}").json()["result"]
    assert summary["statistics"]["correct"] == 1
    assert summary["passed"] is True


def test_retake_allowed_when_configured(setup):
    subject, teacher, student = setup
    test_id = create_test(teacher, subject, [CAPITAL], allow_retake=True).json()["test"]["id"]

    for answer in ("Lagos", "Abuja"):
        assert student.post(f"{STUDENT}/tests/submit", json={"test_id": test_id, "answers": {"q1": answer}}).status_code == 200

    listed = student.get(f"{STUDENT}/tests").json()["tests"]
    assert listed[0]["attempts"] == 2
    assert listed[0]["can_attempt"] is True


def test_theory_answers_wait_for_the_teacher(db, setup):
    subject, teacher, student = setup
    test_id = create_test(teacher, subject, [CAPITAL, ESSAY]).json()["test"]["id"]

    submitted = student.post(
        f"{STUDENT}/tests/submit",
        json={"test_id": test_id, "answers": {"q1": "Abuja", "q2": "Evaporation then rain"}},
    ).json()["result"]
    assert submitted["status"] == "submitted"
    assert submitted["needs_manual_grading"] is True
    assert db.query(Grade).count() == 0

    submission_id = submitted["submission_id"]
    pending = teacher.get(f"{TEACHER}/grading", params={"status": "submitted"}).json()["submissions"]
    assert [s["id"] for s in pending] == [submission_id]

    bad = teacher.post(f"{TEACHER}/online-tests/grade-theory", json={"submission_id": submission_id, "theory_grades": {"q9": 1}})
    assert bad.status_code == 400

    graded = teacher.post(
        f"{TEACHER}/online-tests/grade-theory",
        json={"submission_id": submission_id, "theory_grades": {"q2": 2}, "feedback": "Mention condensation"},
    )
    assert graded.status_code == 200
    assert graded.json()["submission"]["score"] == 4
    assert graded.json()["submission"]["content"]["theory_score"] == 2

    submission = db.query(AssignmentSubmission).one()
    assert submission.status == SubmissionStatus.graded
    grade = db.query(Grade).one()
    assert grade.percentage == 80.0
    assert grade.grade == "B"
    assert db.query(Notification).filter(Notification.user_id == submission.student_id).count() == 1
