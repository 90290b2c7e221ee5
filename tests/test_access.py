import pytest


PROTECTED_ROUTES = [
    "/api/protected/admin/users",
    "/api/protected/teachers/director/dashboard",
    "/api/protected/teachers/coordinator/dashboard",
    "/api/protected/teachers/class/dashboard",
    "/api/protected/teachers/subject/dashboard",
    "/api/protected/students/dashboard",
]


@pytest.mark.parametrize("path", PROTECTED_ROUTES)
def test_anonymous_requests_are_rejected(client, path):
    response = client.get(path)
    assert response.status_code == 401
    assert "error" in response.json()


def test_student_cannot_reach_admin_or_teacher_routes(make_user, auth_client):
    api = auth_client(make_user("student"))

    assert api.get("/api/protected/admin/users").status_code == 403
    assert api.get("/api/protected/teachers/subject/dashboard").status_code == 403
    assert api.get("/api/protected/students/dashboard").status_code == 200


def test_admin_is_not_a_teacher(make_user, auth_client):
    api = auth_client(make_user("admin"))
    assert api.get("/api/protected/teachers/director/dashboard").status_code == 403
    assert api.get("/api/protected/students/dashboard").status_code == 403


def test_departments_are_separate(make_user, auth_client):
    api = auth_client(make_user("teacher", department="subject_teacher"))

    assert api.get("/api/protected/teachers/subject/dashboard").status_code == 200
    for path in PROTECTED_ROUTES[:4]:
        assert api.get(path).status_code == 403


def test_admin_only_sees_own_school(db, make_school, make_user, auth_client):
    other_school = make_school(name="Riverside College", slug="riverside")
    outsider = make_user("student", school=other_school, email="outsider@example.com")
    admin = make_user("admin")
    api = auth_client(admin)

    assert api.get(f"/api/protected/admin/users/{outsider.id}").status_code == 404
    emails = [u["email"] for u in api.get("/api/protected/admin/users").json()["users"]]
    assert "outsider@example.com" not in emails
    assert api.delete(f"/api/protected/admin/users/{outsider.id}").status_code == 404


def test_same_email_allowed_in_different_schools(make_school, make_user, auth_client):
    other_school = make_school(name="Riverside College", slug="riverside")
    make_user("student", school=other_school, email="shared@example.com")
    api = auth_client(make_user("admin"))

    response = api.post(
        "/api/protected/admin/users",
        json={
            "first_name": "Ada",
            "last_name": "Obi",
            "email": "shared@example.com",
            "password": "Str0ng!pass",
            "role": "student",
            "class_name": "JSS2B",
        },
    )
    assert response.status_code == 201


def test_director_stage_scoping(make_user, auth_client):
    director = make_user("teacher", department="director", stage="SS")
    senior = make_user("student", class_name="SS1A")
    junior = make_user("student", class_name="JSS1A")
    api = auth_client(director)

    ids = [s["id"] for s in api.get("/api/protected/teachers/director/students").json()["students"]]
    assert str(senior.id) in ids
    assert str(junior.id) not in ids
    assert api.get(f"/api/protected/teachers/director/students/{junior.id}").status_code == 404
