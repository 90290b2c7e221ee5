import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient

from schooldesk.core import security
from schooldesk.core.database import Base, SessionLocal, engine, get_db
from schooldesk.main import app
from schooldesk.models import School, Subject, SubjectCategory, TeacherSubject, User, UserRole
from schooldesk.models.profiles import TeacherDepartment
from schooldesk.services import accounts

PASSWORD = "Passw0rd!"
PASSWORD_HASH = security.get_password_hash(PASSWORD)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def _get_db():
        try:
            yield db
        finally:
            db.rollback()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_school(db):
    def _make(name="Greenfield Academy", slug="greenfield", is_active=True):
        school = School(name=name, slug=slug, is_active=is_active)
        db.add(school)
        db.commit()
        return school

    return _make


@pytest.fixture
def school(make_school):
    return make_school()


@pytest.fixture
def make_user(db, school):
    counter = {"n": 0}

    def _make(
        role="student",
        department=None,
        class_name=None,
        assigned_class=None,
        stage=None,
        coordinator_classes=(),
        first_name=None,
        last_name="Tester",
        email=None,
        school=school,
    ):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            school_id=school.id,
            first_name=first_name or f"{role.capitalize()}{n}",
            last_name=last_name,
            email=email or f"{role}{n}@example.com",
            username=f"{role}{n}",
            password_hash=PASSWORD_HASH,
            role=UserRole(role),
            is_active=True,
        )
        db.add(user)
        db.flush()
        if role == "student":
            accounts.upsert_student_profile(db, user, {"class_name": class_name or "JSS1A"}, f"STU{n:03d}")
        elif role == "teacher":
            accounts.create_teacher_profile(
                db,
                user,
                TeacherDepartment(department or "subject_teacher"),
                assigned_class=assigned_class,
                stage=stage,
                coordinator_classes=coordinator_classes,
            )
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_subject(db, school):
    def _make(name="Mathematics", code=None, category=SubjectCategory.CORE, classes=(), teacher=None, teacher_classes=None, school=school):
        subject = Subject(
            school_id=school.id,
            name=name,
            code=code or name[:4].upper(),
            category=category,
            classes=list(classes),
            is_active=True,
        )
        db.add(subject)
        db.flush()
        if teacher is not None:
            db.add(TeacherSubject(
                teacher_id=teacher.teacher_profile.id,
                subject_id=subject.id,
                classes=list(teacher_classes if teacher_classes is not None else classes),
            ))
        db.commit()
        return subject

    return _make


@pytest.fixture
def login(client, db):
    def _login(user, password=PASSWORD, remember_me=False):
        return client.post(
            "/api/auth/school/login",
            json={
                "identifier": user.email,
                "password": password,
                "role": user.role.value,
                "school_slug": user.school.slug,
                "remember_me": remember_me,
            },
        )

    return _login


@pytest.fixture
def auth_client(client, login):
    """A separate client per user, authenticated through a real session."""

    def _auth(user):
        response = login(user)
        assert response.status_code == 200, response.text
        authed = TestClient(app)
        authed.headers["Authorization"] = f"Bearer {response.cookies.get('auth_token')}"
        return authed

    return _auth
