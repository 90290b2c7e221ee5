import pytest

from schooldesk.models import Grade, Notification

TEACHER = "/api/protected/teachers/subject"
STUDENT = "/api/protected/students"


@pytest.fixture
def geography(make_user, make_subject, auth_client):
    teacher = make_user("teacher", department="subject_teacher")
    subject = make_subject("Geography", code="GEO", classes=["JSS1"], teacher=teacher)
    student = make_user("student", class_name="JSS1A")
    return subject, teacher, student, auth_client(teacher), auth_client(student)


def homework(api, subject, due_date, max_score=20):
    response = api.post(
        f"{TEACHER}/assignments",
        json={
            "subject_id": str(subject.id),
            "title": "Map of Africa",
            "classes": ["JSS1A"],
            "max_score": max_score,
            "passing_score": 10,
            "due_date": due_date,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["assignment"]["id"]


def test_homework_submitted_after_due_date_is_late(geography):
    subject, _, _, teacher, student = geography
    overdue = homework(teacher, subject, "2020-01-01T00:00:00")
    upcoming = homework(teacher, subject, "2999-01-01T00:00:00")

    late = student.post(f"{STUDENT}/assignments/{overdue}/submit", json={"text": "Sahara, Nile, Congo"})
    assert late.status_code == 200
    assert late.json()["submission"]["is_late"] is True
    assert late.json()["message"] == "Assignment submitted late"

    on_time = student.post(f"{STUDENT}/assignments/{upcoming}/submit", json={"text": "Draft"}).json()
    assert on_time["submission"]["is_late"] is False

    resubmitted = student.post(f"{STUDENT}/assignments/{upcoming}/submit", json={"text": "Final"}).json()
    assert resubmitted["submission"]["id"] == on_time["submission"]["id"]


def test_grading_writes_grade_and_notification(db, geography):
    subject, _, learner, teacher, student = geography
    assignment_id = homework(teacher, subject, "2999-01-01T00:00:00")
    submission_id = student.post(f"{STUDENT}/assignments/{assignment_id}/submit", json={"text": "Done"}).json()["submission"]["id"]

    too_high = teacher.post(f"{TEACHER}/grading", json={"submission_id": submission_id, "score": 25})
    assert too_high.status_code == 400
    assert db.query(Grade).count() == 0

    graded = teacher.post(f"{TEACHER}/grading", json={"submission_id": submission_id, "score": 15, "feedback": "Label the rivers"})
    assert graded.status_code == 200
    assert graded.json()["submission"]["status"] == "graded"

    grade = db.query(Grade).one()
    assert grade.student_id == learner.id
    assert grade.subject_id == subject.id
    assert grade.percentage == 75.0
    assert grade.grade == "C"
    assert db.query(Notification).filter(Notification.user_id == learner.id).count() == 1

    again = student.post(f"{STUDENT}/assignments/{assignment_id}/submit", json={"text": "Second try"})
    assert again.status_code == 400
    assert again.json()["error"] == "Assignment has already been graded"


def test_other_teachers_cannot_grade(geography, make_user, auth_client):
    subject, _, _, teacher, student = geography
    assignment_id = homework(teacher, subject, "2999-01-01T00:00:00")
    submission_id = student.post(f"{STUDENT}/assignments/{assignment_id}/submit", json={"text": "Done"}).json()["submission"]["id"]

    stranger = auth_client(make_user("teacher", department="subject_teacher"))
    assert stranger.post(f"{TEACHER}/grading", json={"submission_id": submission_id, "score": 5}).status_code == 404


def test_bulk_grading_reports_each_row(db, geography, make_user):
    subject, _, learner, teacher, _ = geography
    classmate = make_user("student", class_name="JSS1B")
    outsider = make_user("student", class_name="JSS2A")
    payload = {"subject_id": str(subject.id), "assessment_name": "Mid-term", "max_score": 50}

    empty = teacher.post(f"{TEACHER}/grading/bulk", json={**payload, "grades": []})
    assert empty.status_code == 400

    response = teacher.post(
        f"{TEACHER}/grading/bulk",
        json={
            **payload,
            "grades": [
                {"student_id": str(learner.id), "score": 40},
                {"student_id": str(outsider.id), "score": 30},
                {"student_id": str(classmate.id), "score": 60},
            ],
        },
    )
    assert response.status_code == 200
    results = response.json()["results"]
    assert results["successful"] == [{"student_id": str(learner.id), "percentage": 80.0, "grade": "B"}]
    assert results["failed"] == [
        {"student_id": str(outsider.id), "error": "Student does not take this subject"},
        {"student_id": str(classmate.id), "error": "Score exceeds maximum of 50.0"},
    ]
    assert db.query(Grade).filter(Grade.assessment_name == "Mid-term").count() == 1
