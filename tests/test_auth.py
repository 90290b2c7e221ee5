from schooldesk.api.v1 import auth as auth_routes
from schooldesk.core.config import settings
from schooldesk.models import UserSession


class RecordingLogger:
    def __init__(self):
        self.events = []

    def _record(self, event, **values):
        self.events.append((event, values))

    debug = info = warning = error = exception = _record


def test_login_sets_cookie_and_redirect(client, make_user, login):
    admin = make_user("admin")

    response = login(admin)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["redirect_to"] == "/admin/dashboard"
    assert body["user"]["email"] == admin.email
    assert body["school"]["slug"] == "greenfield"
    assert response.cookies.get(settings.AUTH_COOKIE_NAME)


def test_teacher_redirect_follows_department(make_user, login):
    director = make_user("teacher", department="director")
    class_teacher = make_user("teacher", department="class_teacher", assigned_class="JSS1A")

    assert login(director).json()["redirect_to"] == "/teachers/director/dashboard"
    assert login(class_teacher).json()["redirect_to"] == "/teachers/class/dashboard"


def test_login_accepts_username(client, make_user, school):
    student = make_user("student")
    response = client.post(
        "/api/auth/school/login",
        json={"identifier": student.username, "password": "Passw0rd!", "role": "student", "school_slug": school.slug},
    )
    assert response.status_code == 200
    assert response.json()["redirect_to"] == "/student/dashboard"


def test_login_unknown_school_or_user(client, make_user):
    student = make_user("student")
    response = client.post(
        "/api/auth/school/login",
        json={"identifier": student.email, "password": "Passw0rd!", "role": "student", "school_slug": "nowhere"},
    )
    assert response.status_code == 404
    assert "error" in response.json()

    response = client.post(
        "/api/auth/school/login",
        json={"identifier": "ghost@example.com", "password": "Passw0rd!", "role": "student", "school_slug": "greenfield"},
    )
    assert response.status_code == 404


def test_wrong_role_is_not_found(make_user, client):
    teacher = make_user("teacher")
    response = client.post(
        "/api/auth/school/login",
        json={"identifier": teacher.email, "password": "Passw0rd!", "role": "admin", "school_slug": "greenfield"},
    )
    assert response.status_code == 404


def test_repeated_failures_lock_the_account(db, make_user, login):
    student = make_user("student")

    for _ in range(settings.MAX_LOGIN_ATTEMPTS):
        assert login(student, password="wrong").status_code == 401

    db.refresh(student)
    assert student.lock_until is not None
    assert login(student).status_code == 423


def test_lockout_logs_the_attempt_count(monkeypatch, make_user, login):
    recorder = RecordingLogger()
    monkeypatch.setattr(auth_routes, "logger", recorder)
    student = make_user("student")

    for _ in range(settings.MAX_LOGIN_ATTEMPTS):
        login(student, password="wrong")

    locked = [values for event, values in recorder.events if event == "account_locked"]
    assert locked == [{"user_id": str(student.id), "attempts": settings.MAX_LOGIN_ATTEMPTS}]


def test_inactive_user_cannot_log_in(db, make_user, login):
    student = make_user("student")
    student.is_active = False
    db.commit()

    assert login(student).status_code == 403
    assert login(student, password="wrong").status_code == 401


def test_verify_and_logout(client, make_user, login):
    admin = make_user("admin")
    login(admin)

    response = client.get("/api/auth/verify")
    assert response.status_code == 200
    assert response.json()["authenticated"] is True

    assert client.post("/api/auth/logout").status_code == 200
    assert client.get("/api/auth/verify").status_code == 401


def test_logout_revokes_bearer_token(db, make_user, auth_client):
    admin = make_user("admin")
    api = auth_client(admin)

    assert api.get("/api/auth/verify").status_code == 200
    api.post("/api/auth/logout")

    assert db.query(UserSession).filter(UserSession.is_active == True).count() == 0
    assert api.get("/api/auth/verify").status_code == 401


def test_missing_and_garbage_tokens(client):
    response = client.get("/api/auth/verify")
    assert response.status_code == 401
    assert response.json() == {"error": "Authentication required"}

    response = client.get("/api/auth/verify", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_inactive_school_is_forbidden(db, make_user, auth_client, school):
    admin = make_user("admin")
    api = auth_client(admin)

    school.is_active = False
    db.commit()

    assert api.get("/api/auth/verify").status_code == 403


def test_validation_errors_are_400(client):
    response = client.post("/api/auth/school/login", json={"identifier": "x"})
    assert response.status_code == 400
    assert "password" in response.json()["error"]
