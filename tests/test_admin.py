import io

import pandas as pd

from schooldesk.models import AuditLog, Subject, TeacherSubject, User

USERS = "/api/protected/admin/users"


def new_user(**overrides):
    payload = {
        "first_name": "Chidi",
        "last_name": "Okafor",
        "email": "chidi@example.com",
        "password": "Str0ng!pass",
        "role": "teacher",
        "teacher_type": "subject_teacher",
    }
    payload.update(overrides)
    return payload


def test_create_user_writes_profile_and_audit(db, make_user, auth_client):
    admin = make_user("admin")
    api = auth_client(admin)

    response = api.post(USERS, json=new_user())

    assert response.status_code == 201
    user = response.json()["user"]
    assert user["email"] == "chidi@example.com"
    assert user["teacher_profile"]["department"] == "subject_teacher"
    assert db.query(AuditLog).filter(AuditLog.action == "create", AuditLog.resource == "user").count() == 1


def test_create_user_rejects_duplicates_and_weak_passwords(make_user, auth_client):
    api = auth_client(make_user("admin"))

    assert api.post(USERS, json=new_user()).status_code == 201
    duplicate = api.post(USERS, json=new_user(email="CHIDI@example.com"))
    assert duplicate.status_code == 409

    weak = api.post(USERS, json=new_user(email="weak@example.com", password="password"))
    assert weak.status_code == 400
    assert "uppercase" in weak.json()["error"]

    missing = api.post(USERS, json={"email": "x@example.com", "role": "student"})
    assert missing.status_code == 400


def test_coordinator_needs_classes_and_gets_coordination_subjects(db, make_user, auth_client):
    api = auth_client(make_user("admin"))

    response = api.post(USERS, json=new_user(teacher_type="coordinator"))
    assert response.status_code == 400

    response = api.post(USERS, json=new_user(teacher_type="coordinator", coordinator_classes=["jss1a", "JSS1B"]))
    assert response.status_code == 201

    codes = sorted(s.code for s in db.query(Subject).all())
    assert codes == ["COORD_JSS1A", "COORD_JSS1B"]
    assert db.query(TeacherSubject).count() == 2


def test_student_requires_class_name(make_user, auth_client):
    api = auth_client(make_user("admin"))
    response = api.post(USERS, json=new_user(role="student", teacher_type=None))
    assert response.status_code == 400


def test_list_users_filters_and_paginates(make_user, auth_client):
    admin = make_user("admin")
    for _ in range(3):
        make_user("student")
    make_user("teacher", first_name="Zainab")
    api = auth_client(admin)

    body = api.get(USERS, params={"role": "student", "limit": 2}).json()
    assert body["pagination"]["total"] == 3
    assert body["pagination"]["pages"] == 2
    assert len(body["users"]) == 2

    found = api.get(USERS, params={"search": "zain"}).json()["users"]
    assert [u["first_name"] for u in found] == ["Zainab"]


def test_toggle_and_soft_delete(db, make_user, auth_client):
    admin = make_user("admin")
    student = make_user("student")
    api = auth_client(admin)

    response = api.patch(f"{USERS}/{student.id}/toggle-status")
    assert response.json()["is_active"] is False
    response = api.patch(f"{USERS}/{student.id}/toggle-status")
    assert response.json()["is_active"] is True

    assert api.delete(f"{USERS}/{student.id}").status_code == 200
    assert db.query(User).filter(User.id == student.id).one().is_active is False


def test_admin_cannot_disable_self(make_user, auth_client):
    admin = make_user("admin")
    api = auth_client(admin)

    assert api.patch(f"{USERS}/{admin.id}/toggle-status").status_code == 400
    assert api.delete(f"{USERS}/{admin.id}").status_code == 400


def test_update_user(make_user, auth_client):
    admin = make_user("admin")
    student = make_user("student")
    api = auth_client(admin)

    response = api.put(f"{USERS}/{student.id}", json={"phone": "+2348000000000", "first_name": "Bola"})
    assert response.status_code == 200
    assert response.json()["user"]["first_name"] == "Bola"
    assert api.put(f"{USERS}/{student.id}", json={"first_name": "  "}).status_code == 400


def test_user_stats(make_user, auth_client):
    admin = make_user("admin")
    make_user("student")
    make_user("teacher")
    api = auth_client(admin)

    stats = api.get("/api/protected/admin/stats/users").json()["stats"]
    assert stats["total"] == 3
    assert stats["by_role"] == {"admin": 1, "teacher": 1, "student": 1}


def test_csv_import_reports_row_errors(db, make_user, auth_client):
    api = auth_client(make_user("admin"))
    make_user("teacher", email="taken@example.com")
    csv = (
        "first_name,last_name,email,username,password,teacher_type,coordinator_classes\n"
        "Ngozi,Eze,ngozi@example.com,ngozi,Str0ng!pass,coordinator,SS1A;SS1B\n"
        "Dup,Licate,taken@example.com,dup,Str0ng!pass,,\n"
        ",NoFirst,nofirst@example.com,nf,Str0ng!pass,,\n"
    )

    response = api.post(
        f"{USERS}/import",
        files={"file": ("teachers.csv", csv.encode(), "text/csv")},
        data={"role": "teacher"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] == 1
    assert body["failed"] == 2
    assert body["errors"][0].startswith("Row 3:")
    assert body["errors"][1].startswith("Row 4:")
    assert db.query(Subject).filter(Subject.code.like("COORD_%")).count() == 2


def test_csv_import_requires_headers(make_user, auth_client):
    api = auth_client(make_user("admin"))
    response = api.post(
        f"{USERS}/import",
        files={"file": ("users.csv", b"first_name,email\nA,a@example.com\n", "text/csv")},
        data={"role": "student"},
    )
    assert response.status_code == 400
    assert "Missing required headers" in response.json()["error"]


def test_subject_codes_are_unique_per_school(make_user, auth_client):
    api = auth_client(make_user("admin"))
    payload = {"name": "Biology", "code": "bio", "category": "SCIENCE", "classes": ["SS"]}

    first = api.post("/api/protected/admin/subjects", json=payload)
    assert first.status_code == 201
    assert first.json()["subject"]["code"] == "BIO"
    assert api.post("/api/protected/admin/subjects", json=payload).status_code == 409


def test_analytics_export_is_csv(make_user, auth_client):
    api = auth_client(make_user("admin"))
    make_user("student")

    response = api.get("/api/protected/admin/analytics/export")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    frame = pd.read_csv(io.StringIO(response.text))
    assert list(frame.columns) == ["section", "metric", "value"]
    row = frame[(frame.section == "users_by_role") & (frame.metric == "student")]
    assert int(row.value.iloc[0]) == 1


def test_announcements(make_user, auth_client):
    api = auth_client(make_user("admin"))
    response = api.post(
        "/api/protected/admin/announcements",
        json={"title": "Sports day", "content": "Friday", "audience": "students"},
    )
    assert response.status_code == 201
    assert api.post(
        "/api/protected/admin/announcements",
        json={"title": "x", "content": "y", "audience": "parents"},
    ).status_code == 400
    listed = api.get("/api/protected/admin/announcements").json()["announcements"]
    assert [a["title"] for a in listed] == ["Sports day"]
