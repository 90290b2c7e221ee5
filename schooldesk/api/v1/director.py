import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from schooldesk.api import deps
from schooldesk.core import security
from schooldesk.models.auth import User, UserRole
from schooldesk.models.profiles import StudentProfile, TeacherProfile
from schooldesk.models.academics import Subject, TeacherSubject, Timetable, TimetableStatus
from schooldesk.models.assessments import Grade
from schooldesk.models.records import AlertStatus, AlertType, StudentAlert
from schooldesk.schemas.academics import (
    SubjectCreate,
    SubjectResponse,
    SubjectUpdate,
    TimetableApproveRequest,
    TimetableGenerateRequest,
)
from schooldesk.schemas.users import StudentCreate, StudentImportRequest, StudentUpdate, TeacherUpdate
from schooldesk.services import accounts, audit, reports
from schooldesk.services.imports import STUDENT_CSV_FORMAT, STUDENT_CSV_SAMPLE, import_students
from schooldesk.services.scope import (
    class_column_in,
    covers_class,
    normalize_class_list,
    normalize_class_name,
    search_filter,
    stage_filter,
)
from schooldesk.services.timetable import TimetableEngine, TimetableError, timetable_grid

router = APIRouter()

PASS_MARK = 50


def director_stage(director: User) -> Optional[str]:
    return director.teacher_profile.stage if director.teacher_profile else None


def in_stage(director: User, class_name: Optional[str]) -> bool:
    stage = director_stage(director)
    if not stage:
        return True
    return covers_class(normalize_class_name(stage), normalize_class_name(class_name))


def scoped_students(db: Session, director: User):
    query = (
        db.query(User)
        .join(StudentProfile, StudentProfile.user_id == User.id)
        .filter(User.school_id == director.school_id, User.role == UserRole.student)
    )
    condition = stage_filter(StudentProfile.class_name, director_stage(director))
    if condition is not None:
        query = query.filter(condition)
    return query


def get_scoped_student(db: Session, director: User, student_id: uuid.UUID) -> User:
    student = scoped_students(db, director).filter(User.id == student_id).first()
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    return student


def get_school_subject(db: Session, director: User, subject_id: uuid.UUID) -> Subject:
    subject = db.query(Subject).filter(Subject.id == subject_id, Subject.school_id == director.school_id).first()
    if not subject:
        raise HTTPException(status_code=404, detail="Subject not found")
    return subject


def teacher_loads(db: Session, school_id: uuid.UUID) -> dict:
    return dict(
        db.query(Timetable.teacher_id, func.count(Timetable.id))
        .filter(Timetable.school_id == school_id, Timetable.teacher_id != None)
        .group_by(Timetable.teacher_id)
        .all()
    )


# ==================== DASHBOARD ====================

@router.get("/dashboard")
def dashboard(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_director),
):
    """Stage-wide counts for the director's landing page"""
    student_ids = [u.id for u in scoped_students(db, current_user).filter(User.is_active == True).all()]
    teachers = db.query(User).filter(
        User.school_id == current_user.school_id,
        User.role == UserRole.teacher,
        User.is_active == True,
    ).count()

    grades = db.query(Grade.percentage).filter(
        Grade.school_id == current_user.school_id,
        Grade.student_id.in_(student_ids),
    ).all() if student_ids else []
    passed = sum(1 for (pct,) in grades if pct >= PASS_MARK)

    pending = db.query(Timetable.class_name).filter(
        Timetable.school_id == current_user.school_id,
        Timetable.status == TimetableStatus.pending,
    )
    condition = stage_filter(Timetable.class_name, director_stage(current_user))
    if condition is not None:
        pending = pending.filter(condition)

    low_performance = db.query(StudentAlert).filter(
        StudentAlert.school_id == current_user.school_id,
        StudentAlert.alert_type == AlertType.performance_concern,
        StudentAlert.status == AlertStatus.active,
        StudentAlert.student_id.in_(student_ids),
    ).count() if student_ids else 0

    return {
        "success": True,
        "dashboard": {
            "stage": director_stage(current_user),
            "total_students": len(student_ids),
            "total_teachers": teachers,
            "pass_rate": round(passed / len(grades) * 100, 1) if grades else None,
            "pending_timetables": pending.distinct().count(),
            "low_performance_alerts": low_performance,
        },
    }


# ==================== STUDENTS ====================

@router.get("/students")
def list_students(
    class_name: Optional[str] = None,
    search: Optional[str] = None,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_director),
):
    query = scoped_students(db, current_user).filter(User.is_active == True)
    if class_name:
        query = query.filter(class_column_in(StudentProfile.class_name, [class_name]))
    condition = search_filter(search)
    if condition is not None:
        query = query.filter(condition)
    students = query.order_by(User.first_name, User.last_name).all()
    return {"success": True, "students": [accounts.user_summary(s) for s in students], "total": len(students)}


@router.post("/students", status_code=201)
def create_student(
    student_in: StudentCreate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_director),
):
    if not in_stage(current_user, student_in.class_name):
        raise HTTPException(status_code=400, detail="Class is outside your stage")
    if accounts.find_user_by_email(db, current_user.school_id, student_in.email):
        raise HTTPException(status_code=409, detail="A user with this email already exists in this school")

    password = student_in.password or security.generate_password()
    errors = security.validate_password(password)
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors))

    data = student_in.model_dump()
    user = accounts.create_user(db, current_user.school_id, data, UserRole.student, password)
    student_id = student_in.student_id or accounts.generate_student_id(
        current_user.school, student_in.class_name, accounts.next_student_index(db, current_user.school_id) - 1
    )
    accounts.upsert_student_profile(db, user, data, student_id)
    audit.record(db, current_user, "create", "student", user.id, f"Enrolled {user.full_name} in {student_in.class_name}")
    db.commit()
    db.refresh(user)
    return {
        "success": True,
        "student": accounts.user_summary(user),
        "default_password": None if student_in.password else password,
    }


@router.get("/students/import")
def import_info(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_director),
):
    """Current student counts plus the expected import columns"""
    students = scoped_students(db, current_user).filter(User.is_active == True).all()
    by_class = {}
    for s in students:
        name = s.student_profile.class_name or "UNASSIGNED"
        by_class[name] = by_class.get(name, 0) + 1
    return {
        "success": True,
        "data": {
            "stats": {"total_students": len(students), "by_class": by_class},
            "csv_format": {"headers": STUDENT_CSV_FORMAT, "sample": STUDENT_CSV_SAMPLE},
        },
    }


@router.post("/students/import")
def import_student_rows(
    import_in: StudentImportRequest,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_director),
):
    if not import_in.students:
        raise HTTPException(status_code=400, detail="Students array is required and cannot be empty")

    data = import_students(db, current_user, import_in.students, import_in.options)
    audit.record(
        db, current_user, "import", "student", None,
        f"Imported {data['summary']['successful']} student(s)",
        data["summary"],
    )
    db.commit()
    return {
        "success": True,
        "message": f"Import completed. {data['summary']['successful']} students imported successfully.",
        "data": data,
    }


@router.get("/students/{student_id}")
def get_student(
    student_id: uuid.UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_director),
):
    student = get_scoped_student(db, current_user, student_id)
    return {
        "success": True,
        "student": accounts.user_summary(student),
        "performance": reports.student_performance(db, student),
    }


@router.put("/students/{student_id}")
def update_student(
    student_id: uuid.UUID,
    student_in: StudentUpdate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_director),
):
    student = get_scoped_student(db, current_user, student_id)
    changes = student_in.model_dump(exclude_unset=True)
    if "class_name" in changes and not in_stage(current_user, changes["class_name"]):
        raise HTTPException(status_code=400, detail="Class is outside your stage")

    for field in accounts.USER_FIELDS:
        if field in changes:
            setattr(student, field, changes[field])
    accounts.upsert_student_profile(db, student, changes, None)
    audit.record(db, current_user, "update", "student", student.id, f"Updated {student.full_name}", {"fields": sorted(changes)})
    db.commit()
    db.refresh(student)
    return {"success": True, "student": accounts.user_summary(student)}


@router.delete("/students/{student_id}")
def deactivate_student(
    student_id: uuid.UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_director),
):
    student = get_scoped_student(db, current_user, student_id)
    student.is_active = False
    audit.record(db, current_user, "delete", "student", student.id, f"Deactivated {student.full_name}")
    db.commit()
    return {"success": True, "message": "Student deactivated successfully"}


# ==================== TEACHERS ====================

def teacher_payload(teacher: User, loads: dict) -> dict:
    data = accounts.user_summary(teacher)
    profile = teacher.teacher_profile
    data["subjects"] = [
        {
            "subject_id": str(ts.subject_id),
            "name": ts.subject.name if ts.subject else None,
            "code": ts.subject.code if ts.subject else None,
            "classes": ts.classes or [],
        }
        for ts in (profile.teacher_subjects if profile else [])
    ]
    data["weekly_load"] = loads.get(teacher.id, 0)
    return data


@router.get("/teachers")
def list_teachers(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_director),
):
    teachers = (
        db.query(User)
        .join(TeacherProfile, TeacherProfile.user_id == User.id)
        .filter(User.school_id == current_user.school_id, User.role == UserRole.teacher)
        .order_by(User.first_name, User.last_name)
        .all()
    )
    loads = teacher_loads(db, current_user.school_id)
    return {"success": True, "teachers": [teacher_payload(t, loads) for t in teachers]}


@router.put("/teachers/{teacher_id}")
def update_teacher(
    teacher_id: uuid.UUID,
    teacher_in: TeacherUpdate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_director),
):
    teacher = db.query(User).filter(
        User.id == teacher_id,
        User.school_id == current_user.school_id,
        User.role == UserRole.teacher,
    ).first()
    if not teacher or teacher.teacher_profile is None:
        raise HTTPException(status_code=404, detail="Teacher not found")

    profile = teacher.teacher_profile
    changes = teacher_in.model_dump(exclude_unset=True)
    subjects = changes.pop("subjects", None)
    if "is_active" in changes:
        teacher.is_active = changes.pop("is_active")
    for field in ("stage", "assigned_class"):
        if field in changes:
            changes[field] = normalize_class_name(changes[field]) or None
    for field, value in changes.items():
        setattr(profile, field, value)

    if subjects is not None:
        for link in list(profile.teacher_subjects):
            if not (link.subject and accounts.is_management_subject(link.subject)):
                profile.teacher_subjects.remove(link)
        db.flush()
        for item in teacher_in.subjects:
            subject = get_school_subject(db, current_user, item.subject_id)
            profile.teacher_subjects.append(
                TeacherSubject(subject_id=subject.id, classes=normalize_class_list(item.classes) or list(subject.classes or []))
            )

    audit.record(db, current_user, "update", "teacher", teacher.id, f"Updated teacher {teacher.full_name}", {"fields": sorted(teacher_in.model_dump(exclude_unset=True))})
    db.commit()
    db.refresh(teacher)
    return {"success": True, "teacher": teacher_payload(teacher, teacher_loads(db, current_user.school_id))}


# ==================== SUBJECTS ====================

def subject_payload(subject: Subject) -> dict:
    data = SubjectResponse.model_validate(subject).model_dump(mode="json")
    data["teachers"] = [
        {"id": str(ts.teacher.user_id), "name": ts.teacher.user.full_name, "classes": ts.classes or []}
        for ts in subject.teachers
        if ts.teacher and ts.teacher.user
    ]
    return data


def set_subject_teachers(db: Session, director: User, subject: Subject, teacher_ids) -> None:
    db.query(TeacherSubject).filter(TeacherSubject.subject_id == subject.id).delete(synchronize_session=False)
    db.flush()
    for teacher_id in teacher_ids:
        profile = (
            db.query(TeacherProfile)
            .join(User, User.id == TeacherProfile.user_id)
            .filter(User.id == teacher_id, User.school_id == director.school_id)
            .first()
        )
        if profile is None:
            raise HTTPException(status_code=400, detail=f"Teacher {teacher_id} not found in this school")
        db.add(TeacherSubject(teacher_id=profile.id, subject_id=subject.id, classes=list(subject.classes or [])))
    db.flush()
    db.expire(subject, ["teachers"])


@router.get("/subjects")
def list_subjects(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_director),
):
    subjects = (
        db.query(Subject)
        .filter(Subject.school_id == current_user.school_id, Subject.is_active == True)
        .order_by(Subject.name)
        .all()
    )
    return {"success": True, "subjects": [subject_payload(s) for s in subjects]}


@router.post("/subjects", status_code=201)
def create_subject(
    subject_in: SubjectCreate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_director),
):
    code = subject_in.code.strip().upper()
    if db.query(Subject).filter(Subject.school_id == current_user.school_id, func.upper(Subject.code) == code).first():
        raise HTTPException(status_code=409, detail="A subject with this code already exists")

    subject = Subject(
        school_id=current_user.school_id,
        name=subject_in.name.strip(),
        code=code,
        description=subject_in.description,
        category=subject_in.category,
        classes=normalize_class_list(subject_in.classes),
        is_active=True,
    )
    db.add(subject)
    db.flush()
    if subject_in.teacher_ids:
        set_subject_teachers(db, current_user, subject, subject_in.teacher_ids)
    audit.record(db, current_user, "create", "subject", subject.id, f"Created subject {subject.name}")
    db.commit()
    db.refresh(subject)
    return {"success": True, "subject": subject_payload(subject)}


@router.put("/subjects/{subject_id}")
def update_subject(
    subject_id: uuid.UUID,
    subject_in: SubjectUpdate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_director),
):
    subject = get_school_subject(db, current_user, subject_id)
    changes = subject_in.model_dump(exclude_unset=True)
    teacher_ids = changes.pop("teacher_ids", None)

    if "code" in changes:
        code = (changes["code"] or "").strip().upper()
        clash = db.query(Subject).filter(
            Subject.school_id == current_user.school_id,
            func.upper(Subject.code) == code,
            Subject.id != subject.id,
        ).first()
        if not code or clash:
            raise HTTPException(status_code=409 if clash else 400, detail="Subject code is missing or already used")
        changes["code"] = code
    if "classes" in changes:
        changes["classes"] = normalize_class_list(changes["classes"])
    for field, value in changes.items():
        setattr(subject, field, value)

    if teacher_ids is not None:
        set_subject_teachers(db, current_user, subject, teacher_ids)
    audit.record(db, current_user, "update", "subject", subject.id, f"Updated subject {subject.name}")
    db.commit()
    db.refresh(subject)
    return {"success": True, "subject": subject_payload(subject)}


@router.delete("/subjects/{subject_id}")
def deactivate_subject(
    subject_id: uuid.UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_director),
):
    subject = get_school_subject(db, current_user, subject_id)
    subject.is_active = False
    audit.record(db, current_user, "delete", "subject", subject.id, f"Deactivated subject {subject.name}")
    db.commit()
    return {"success": True, "message": "Subject deactivated successfully"}


# ==================== REPORTS ====================

@router.get("/reports")
def stage_reports(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_director),
):
    class_names = reports.school_class_names(db, current_user.school_id, director_stage(current_user))
    return {
        "success": True,
        "stage": director_stage(current_user),
        "classes": reports.class_summary(db, current_user.school_id, class_names),
    }


# ==================== TIMETABLE ====================

@router.get("/timetable")
def get_timetable(
    class_name: str = Query(..., min_length=1),
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_director),
):
    rows = db.query(Timetable).filter(
        Timetable.school_id == current_user.school_id,
        class_column_in(Timetable.class_name, [class_name]),
    ).all()
    statuses = {getattr(r.status, "value", r.status) for r in rows}
    return {
        "success": True,
        "class_name": normalize_class_name(class_name),
        "status": "approved" if statuses == {"approved"} else ("pending" if rows else None),
        "timetable": timetable_grid(rows),
        "total_slots": len(rows),
    }


@router.post("/timetable/generate")
def generate_timetable(
    request_in: TimetableGenerateRequest,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_director),
):
    """Run the scheduler for one class; the result is saved as pending"""
    if not in_stage(current_user, request_in.class_name):
        raise HTTPException(status_code=400, detail="Class is outside your stage")
    engine = TimetableEngine(db, current_user.school_id)
    try:
        result = engine.generate(request_in.class_name, current_user, overwrite=request_in.overwrite)
    except TimetableError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))

    audit.record(db, current_user, "generate", "timetable", None, f"Generated timetable for {result['class_name']}", {"total_periods": result["total_periods"]})
    db.commit()
    return {"success": True, "message": "Timetable generated successfully", "data": result}


@router.put("/timetable/approve")
def approve_timetable(
    request_in: TimetableApproveRequest,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_director),
):
    rows = db.query(Timetable).filter(
        Timetable.school_id == current_user.school_id,
        class_column_in(Timetable.class_name, [request_in.class_name]),
        Timetable.status == TimetableStatus.pending,
    ).all()
    if not rows:
        raise HTTPException(status_code=404, detail="No pending timetable for this class")
    for row in rows:
        row.status = TimetableStatus.approved
    audit.record(db, current_user, "approve", "timetable", None, f"Approved timetable for {normalize_class_name(request_in.class_name)}")
    db.commit()
    return {"success": True, "message": "Timetable approved", "approved_slots": len(rows)}
