"""User and profile creation shared by the admin, director and import paths."""
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from schooldesk.core import security
from schooldesk.models.auth import School, User, UserRole
from schooldesk.models.profiles import StudentProfile, TeacherDepartment, TeacherProfile
from schooldesk.models.academics import Subject, SubjectCategory, TeacherSubject
from schooldesk.schemas.users import StudentProfileResponse, TeacherProfileResponse, UserResponse
from schooldesk.services.scope import normalize_class_list, normalize_class_name

STUDENT_FIELDS = ("class_name", "section", "parent_name", "parent_phone", "parent_email")
USER_FIELDS = ("first_name", "last_name", "username", "phone", "gender", "date_of_birth", "address")
MANAGEMENT_CODE_PREFIXES = ("COORD_", "CLASS_")


def parse_date(value: Any) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def find_user_by_email(db: Session, school_id: UUID, email: str) -> Optional[User]:
    return db.query(User).filter(
        User.school_id == school_id,
        func.lower(User.email) == email.strip().lower(),
    ).first()


def generate_student_id(school: School, class_name: Optional[str], index: int) -> str:
    """``<first 3 letters of school><YY><class code><NNN>``, e.g. ``GRE26SS1A004``."""
    year = str(datetime.utcnow().year)[-2:]
    school_code = (school.name or "SCH")[:3].upper()
    class_code = "".join(c for c in normalize_class_name(class_name or "GEN") if c.isalnum())
    return f"{school_code}{year}{class_code}{index:03d}"


def next_student_index(db: Session, school_id: UUID) -> int:
    return db.query(User).filter(User.school_id == school_id, User.role == UserRole.student).count() + 1


def create_user(
    db: Session,
    school_id: UUID,
    data: Dict[str, Any],
    role: UserRole,
    password: str,
) -> User:
    email = data["email"].strip().lower()
    user = User(
        school_id=school_id,
        first_name=data["first_name"].strip(),
        last_name=data["last_name"].strip(),
        email=email,
        username=(data.get("username") or email.split("@")[0]).strip(),
        password_hash=security.get_password_hash(password),
        role=role,
        phone=data.get("phone"),
        gender=str(data["gender"]).lower() if data.get("gender") else None,
        date_of_birth=parse_date(data.get("date_of_birth")),
        address=data.get("address"),
        is_active=True,
    )
    db.add(user)
    db.flush()
    return user


def upsert_student_profile(db: Session, user: User, data: Dict[str, Any], student_id: Optional[str]) -> StudentProfile:
    profile = db.query(StudentProfile).filter(StudentProfile.user_id == user.id).first()
    if profile is None:
        profile = StudentProfile(user_id=user.id, admission_date=date.today())
        db.add(profile)
    if student_id:
        profile.student_id = student_id
    for field in STUDENT_FIELDS:
        if field in data and data[field] is not None:
            setattr(profile, field, data[field])
    if profile.class_name:
        profile.class_name = normalize_class_name(profile.class_name)
    if data.get("admission_date"):
        profile.admission_date = parse_date(data["admission_date"])
    db.flush()
    return profile


def is_management_subject(subject: Subject) -> bool:
    return (subject.code or "").upper().startswith(MANAGEMENT_CODE_PREFIXES)


def _management_subject(db: Session, school_id: UUID, class_name: str, kind: str) -> Subject:
    if kind == "coordinator":
        name, code = f"{class_name} Coordination", f"COORD_{class_name.replace(' ', '_')}"
    else:
        name, code = f"{class_name} Class Management", f"CLASS_{class_name.replace(' ', '_')}"
    subject = db.query(Subject).filter(Subject.school_id == school_id, Subject.code == code).first()
    if subject is None:
        subject = Subject(
            school_id=school_id,
            name=name,
            code=code,
            category=SubjectCategory.CORE,
            classes=[class_name],
            is_active=True,
        )
        db.add(subject)
        db.flush()
    return subject


def attach_management_subjects(db: Session, profile: TeacherProfile, school_id: UUID, classes: Iterable[str], kind: str) -> List[Subject]:
    """Create the coordination or class-management subject per class and link the teacher."""
    subjects = []
    for class_name in normalize_class_list(classes):
        subject = _management_subject(db, school_id, class_name, kind)
        link = db.query(TeacherSubject).filter(
            TeacherSubject.teacher_id == profile.id,
            TeacherSubject.subject_id == subject.id,
        ).first()
        if link is None:
            db.add(TeacherSubject(teacher_id=profile.id, subject_id=subject.id, classes=[class_name]))
        subjects.append(subject)
    db.flush()
    return subjects


def create_teacher_profile(
    db: Session,
    user: User,
    department: Optional[TeacherDepartment],
    assigned_class: Optional[str] = None,
    stage: Optional[str] = None,
    coordinator_classes: Iterable[str] = (),
    class_teacher_arms: Iterable[str] = (),
    qualification: Optional[str] = None,
    experience_years: Optional[int] = None,
) -> TeacherProfile:
    department = department or TeacherDepartment.subject_teacher
    arms = normalize_class_list(class_teacher_arms)
    if department == TeacherDepartment.class_teacher and not assigned_class and len(arms) == 1:
        assigned_class = arms[0]
    profile = TeacherProfile(
        user_id=user.id,
        department=department,
        assigned_class=normalize_class_name(assigned_class) or None,
        stage=normalize_class_name(stage) or None,
        qualification=qualification,
        experience_years=experience_years or 0,
        joining_date=date.today(),
    )
    db.add(profile)
    db.flush()
    if department == TeacherDepartment.coordinator:
        attach_management_subjects(db, profile, user.school_id, coordinator_classes, "coordinator")
    if department == TeacherDepartment.class_teacher:
        attach_management_subjects(db, profile, user.school_id, arms or [assigned_class or ""], "class_teacher")
    return profile


def user_summary(user: User) -> Dict[str, Any]:
    data = UserResponse.model_validate(user).model_dump(mode="json")
    data["name"] = user.full_name
    if user.student_profile is not None:
        data["student_profile"] = StudentProfileResponse.model_validate(user.student_profile).model_dump(mode="json")
    if user.teacher_profile is not None:
        data["teacher_profile"] = TeacherProfileResponse.model_validate(user.teacher_profile).model_dump(mode="json")
    return data
