import uuid

import pytest

from schooldesk.models import Subject

BASE = "/api/protected/teachers/director"


@pytest.fixture
def director(make_user, auth_client):
    return auth_client(make_user("teacher", department="director"))


def test_subject_lifecycle(db, director, make_user):
    teacher = make_user("teacher", department="subject_teacher", first_name="Ngozi")
    physics = {"name": "Physics", "code": "phy", "category": "SCIENCE", "classes": ["ss1a", "SS1B"], "teacher_ids": [str(teacher.id)]}

    created = director.post(f"{BASE}/subjects", json=physics)
    assert created.status_code == 201
    subject = created.json()["subject"]
    assert subject["code"] == "PHY"
    assert subject["classes"] == ["SS1A", "SS1B"]
    assert subject["teachers"] == [{"id": str(teacher.id), "name": "Ngozi Tester", "classes": ["SS1A", "SS1B"]}]

    assert director.post(f"{BASE}/subjects", json={**physics, "code": "Phy"}).status_code == 409
    unknown = director.post(f"{BASE}/subjects", json={**physics, "code": "PHY2", "teacher_ids": [str(uuid.uuid4())]})
    assert unknown.status_code == 400

    director.post(f"{BASE}/subjects", json={"name": "Chemistry", "code": "CHM"})
    assert director.put(f"{BASE}/subjects/{subject['id']}", json={"code": "chm"}).status_code == 409

    updated = director.put(f"{BASE}/subjects/{subject['id']}", json={"name": "Applied Physics", "teacher_ids": []})
    assert updated.status_code == 200
    assert updated.json()["subject"]["name"] == "Applied Physics"
    assert updated.json()["subject"]["teachers"] == []

    names = [s["name"] for s in director.get(f"{BASE}/subjects").json()["subjects"]]
    assert names == ["Applied Physics", "Chemistry"]

    assert director.delete(f"{BASE}/subjects/{subject['id']}").status_code == 200
    assert [s["name"] for s in director.get(f"{BASE}/subjects").json()["subjects"]] == ["Chemistry"]
    assert db.query(Subject).filter(Subject.code == "PHY").one().is_active is False


def test_missing_subject_gives_404(director):
    assert director.put(f"{BASE}/subjects/{uuid.uuid4()}", json={"name": "Ghost"}).status_code == 404
    assert director.delete(f"{BASE}/subjects/{uuid.uuid4()}").status_code == 404


def test_teacher_listing_and_update(director, make_user, make_subject):
    teacher = make_user("teacher", department="subject_teacher", first_name="Tunde")
    history = make_subject("History", code="HIS", classes=["JSS1"], teacher=teacher)
    civics = make_subject("Civic Education", code="CIV", classes=["JSS2"])

    teachers = director.get(f"{BASE}/teachers").json()["teachers"]
    listed = next(t for t in teachers if t["id"] == str(teacher.id))
    assert [s["code"] for s in listed["subjects"]] == ["HIS"]
    assert listed["weekly_load"] == 0

    response = director.put(
        f"{BASE}/teachers/{teacher.id}",
        json={"qualification": "B.Ed", "subjects": [{"subject_id": str(civics.id), "classes": ["jss2b"]}]},
    )
    assert response.status_code == 200
    updated = response.json()["teacher"]
    assert updated["teacher_profile"]["qualification"] == "B.Ed"
    assert updated["subjects"] == [
        {"subject_id": str(civics.id), "name": "Civic Education", "code": "CIV", "classes": ["JSS2B"]}
    ]
    assert str(history.id) not in [s["subject_id"] for s in updated["subjects"]]


def test_update_rejects_non_teachers(director, make_user):
    student = make_user("student")
    assert director.put(f"{BASE}/teachers/{student.id}", json={"qualification": "B.Sc"}).status_code == 404
    assert director.put(f"{BASE}/teachers/{uuid.uuid4()}", json={"qualification": "B.Sc"}).status_code == 404
