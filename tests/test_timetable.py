from collections import Counter

import pytest

from schooldesk.models import SubjectCategory, Timetable, TimetableStatus
from schooldesk.services.timetable import MAX_SUBJECT_PERIODS_PER_DAY, TimetableEngine, TimetableError

DIRECTOR = "/api/protected/teachers/director"


@pytest.fixture
def junior_school(make_user, make_subject):
    maths_teacher = make_user("teacher", first_name="Musa")
    english_teacher = make_user("teacher", first_name="Efe")
    make_subject("Mathematics", code="MTH", classes=["JSS"], teacher=maths_teacher, teacher_classes=[])
    make_subject("English", code="ENG", classes=["JSS"], teacher=english_teacher, teacher_classes=[])
    make_subject("Basic Science", code="BSC", category=SubjectCategory.SCIENCE, classes=["JSS"])
    make_user("teacher", department="class_teacher", assigned_class="JSS1A")
    director = make_user("teacher", department="director")
    return director, maths_teacher


def test_generate_places_every_subject_and_skips_management(db, school, junior_school):
    director, _ = junior_school

    result = TimetableEngine(db, school.id, seed=7).generate("jss1a", director)

    assert result["class_name"] == "JSS1A"
    assert result["subjects_included"] == 3
    assert result["subjects_without_teachers"] == ["Basic Science"]

    rows = db.query(Timetable).filter(Timetable.class_name == "JSS1A").all()
    assert {r.status for r in rows} == {TimetableStatus.pending}
    names = Counter(r.subject.name for r in rows)
    assert set(names) == {"Mathematics", "English", "Basic Science"}
    assert 2 <= names["Mathematics"] <= 4
    assert names["Basic Science"] == 2

    per_day = Counter((r.day_of_week, r.subject_id) for r in rows)
    assert max(per_day.values()) <= MAX_SUBJECT_PERIODS_PER_DAY


def test_shared_teacher_is_never_double_booked(db, school, junior_school):
    director, maths_teacher = junior_school

    engine = TimetableEngine(db, school.id, seed=1)
    engine.generate("JSS1A", director)
    TimetableEngine(db, school.id, seed=1).generate("JSS1B", director)

    slots = Counter(
        (r.day_of_week, r.period)
        for r in db.query(Timetable).filter(Timetable.teacher_id == maths_teacher.id).all()
    )
    assert slots
    assert max(slots.values()) == 1


def test_existing_timetable_needs_overwrite(db, school, junior_school):
    director, _ = junior_school
    TimetableEngine(db, school.id).generate("JSS1A", director)

    with pytest.raises(TimetableError, match="already exists"):
        TimetableEngine(db, school.id).generate("JSS1A", director)

    result = TimetableEngine(db, school.id).generate("JSS1A", director, overwrite=True)
    assert db.query(Timetable).filter(Timetable.class_name == "JSS1A").count() == result["total_periods"]


def test_class_without_subjects_is_refused(db, school, junior_school):
    director, _ = junior_school
    with pytest.raises(TimetableError, match="No subjects"):
        TimetableEngine(db, school.id).generate("SS3A", director)


def test_students_only_see_approved_timetables(junior_school, make_user, auth_client):
    director, _ = junior_school
    directors = auth_client(director)
    students = auth_client(make_user("student", class_name="JSS1A"))

    generated = directors.post(f"{DIRECTOR}/timetable/generate", json={"class_name": "JSS1A"})
    assert generated.status_code == 200
    assert directors.post(f"{DIRECTOR}/timetable/generate", json={"class_name": "JSS1A"}).status_code == 400
    assert directors.get(f"{DIRECTOR}/timetable", params={"class_name": "JSS1A"}).json()["status"] == "pending"

    grid = students.get("/api/protected/students/timetable").json()["timetable"]
    assert all(day == [] for day in grid.values())

    assert directors.put(f"{DIRECTOR}/timetable/approve", json={"class_name": "JSS1A"}).status_code == 200
    assert directors.put(f"{DIRECTOR}/timetable/approve", json={"class_name": "JSS1A"}).status_code == 404

    grid = students.get("/api/protected/students/timetable").json()["timetable"]
    assert sum(len(day) for day in grid.values()) == generated.json()["data"]["total_periods"]
