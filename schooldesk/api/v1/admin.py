import uuid
from datetime import datetime, timedelta
from typing import Any, Optional

import pandas as pd
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile
from sqlalchemy import func
from sqlalchemy.orm import Session

from schooldesk.api import deps
from schooldesk.core import security
from schooldesk.core.logging import get_logger
from schooldesk.models.auth import User, UserRole
from schooldesk.models.profiles import TeacherDepartment
from schooldesk.models.academics import Subject, TeacherSubject
from schooldesk.models.assessments import Assignment, AssignmentSubmission, Grade, SubmissionStatus
from schooldesk.models.records import Announcement, Attendance, AttendanceStatus
from schooldesk.schemas.academics import SubjectCreate, SubjectResponse
from schooldesk.schemas.records import AnnouncementCreate
from schooldesk.schemas.users import UserCreate, UserUpdate
from schooldesk.services import accounts, audit
from schooldesk.services.activity import build_activity_feed
from schooldesk.services.imports import ImportFormatError, import_users_csv
from schooldesk.services.scope import normalize_class_list, search_filter

logger = get_logger(__name__)

router = APIRouter()


def get_school_user(db: Session, admin: User, user_id: uuid.UUID) -> User:
    user = db.query(User).filter(User.id == user_id, User.school_id == admin.school_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# ==================== USERS ====================

@router.get("/users")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    role: Optional[UserRole] = None,
    search: Optional[str] = None,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_admin),
):
    """List the school's users with pagination"""
    query = db.query(User).filter(User.school_id == current_user.school_id)
    if role:
        query = query.filter(User.role == role)
    condition = search_filter(search)
    if condition is not None:
        query = query.filter(condition)

    total = query.count()
    users = (
        query.order_by(User.created_at.desc(), User.last_name)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "success": True,
        "users": [accounts.user_summary(u) for u in users],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


@router.post("/users", status_code=201)
def create_user(
    user_in: UserCreate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_admin),
):
    """Create a user together with the profile for their role"""
    errors = security.validate_password(user_in.password)
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors))

    if accounts.find_user_by_email(db, current_user.school_id, user_in.email):
        raise HTTPException(status_code=409, detail="A user with this email already exists in this school")

    coordinator_classes = normalize_class_list(user_in.coordinator_classes)
    if user_in.role == UserRole.teacher and user_in.teacher_type == TeacherDepartment.coordinator and not coordinator_classes:
        raise HTTPException(status_code=400, detail="Coordinators must be assigned at least one class")
    if user_in.role == UserRole.student and not user_in.class_name:
        raise HTTPException(status_code=400, detail="Students must have a class name")

    data = user_in.model_dump()
    user = accounts.create_user(db, current_user.school_id, data, user_in.role, user_in.password)
    if user_in.role == UserRole.student:
        student_id = accounts.generate_student_id(
            current_user.school, user_in.class_name, accounts.next_student_index(db, current_user.school_id) - 1
        )
        accounts.upsert_student_profile(db, user, data, student_id)
    elif user_in.role == UserRole.teacher:
        accounts.create_teacher_profile(
            db,
            user,
            user_in.teacher_type,
            assigned_class=user_in.assigned_class,
            stage=user_in.stage,
            coordinator_classes=coordinator_classes,
        )

    audit.record(db, current_user, "create", "user", user.id, f"Created {user_in.role.value} {user.full_name}")
    db.commit()
    db.refresh(user)
    logger.info("user_created", admin_id=str(current_user.id), user_id=str(user.id), role=user_in.role.value)
    return {"success": True, "message": "User created successfully", "user": accounts.user_summary(user)}


@router.get("/users/{user_id}")
def get_user(
    user_id: uuid.UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_admin),
):
    user = get_school_user(db, current_user, user_id)
    return {"success": True, "user": accounts.user_summary(user)}


@router.put("/users/{user_id}")
def update_user(
    user_id: uuid.UUID,
    user_in: UserUpdate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_admin),
):
    user = get_school_user(db, current_user, user_id)
    changes = user_in.model_dump(exclude_unset=True)

    password = changes.pop("password", None)
    if password:
        errors = security.validate_password(password)
        if errors:
            raise HTTPException(status_code=400, detail="; ".join(errors))
        user.password_hash = security.get_password_hash(password)

    for field, value in changes.items():
        if field in ("first_name", "last_name") and not (value or "").strip():
            raise HTTPException(status_code=400, detail=f"{field} cannot be empty")
        setattr(user, field, value)

    audit.record(db, current_user, "update", "user", user.id, f"Updated {user.full_name}", {"fields": sorted(changes)})
    db.commit()
    db.refresh(user)
    return {"success": True, "message": "User updated successfully", "user": accounts.user_summary(user)}


@router.patch("/users/{user_id}/toggle-status")
def toggle_user_status(
    user_id: uuid.UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_admin),
):
    user = get_school_user(db, current_user, user_id)
    if user.id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

    user.is_active = not user.is_active
    state = "activated" if user.is_active else "deactivated"
    audit.record(db, current_user, "update", "user", user.id, f"{state.capitalize()} {user.full_name}")
    db.commit()
    return {"success": True, "message": f"User {state} successfully", "is_active": user.is_active}


@router.delete("/users/{user_id}")
def delete_user(
    user_id: uuid.UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_admin),
):
    """Soft-delete: the account is deactivated and keeps its history"""
    user = get_school_user(db, current_user, user_id)
    if user.id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")

    user.is_active = False
    audit.record(db, current_user, "delete", "user", user.id, f"Deleted {user.full_name}")
    db.commit()
    return {"success": True, "message": "User deleted successfully"}


@router.post("/users/import")
async def import_users(
    file: UploadFile = File(...),
    role: str = Form(...),
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_admin),
):
    """Import users of one role from a CSV upload"""
    try:
        user_role = UserRole(role)
    except ValueError:
        raise HTTPException(status_code=400, detail="Role must be one of admin, teacher, student")
    if file.filename and not file.filename.lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="Only CSV files allowed")

    content = await file.read()
    try:
        results = import_users_csv(db, current_user, content, user_role)
    except ImportFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))

    audit.record(
        db, current_user, "import", "user", None,
        f"Imported {results['success']} {user_role.value} account(s) from CSV",
        {"success": results["success"], "failed": results["failed"]},
    )
    db.commit()
    return {"success": True, **results}


@router.get("/stats/users")
def user_stats(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_admin),
):
    rows = (
        db.query(User.role, User.is_active, func.count(User.id))
        .filter(User.school_id == current_user.school_id)
        .group_by(User.role, User.is_active)
        .all()
    )
    by_role = {role.value: 0 for role in UserRole}
    active = inactive = 0
    for role, is_active, count in rows:
        by_role[role.value] += count
        if is_active:
            active += count
        else:
            inactive += count
    return {
        "success": True,
        "stats": {
            "total": active + inactive,
            "active": active,
            "inactive": inactive,
            "by_role": by_role,
        },
    }


# ==================== SUBJECTS ====================

@router.get("/subjects")
def list_subjects(
    include_inactive: bool = False,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_admin),
):
    query = db.query(Subject).filter(Subject.school_id == current_user.school_id)
    if not include_inactive:
        query = query.filter(Subject.is_active == True)
    subjects = query.order_by(Subject.name).all()
    return {
        "success": True,
        "subjects": [SubjectResponse.model_validate(s).model_dump(mode="json") for s in subjects],
    }


@router.post("/subjects", status_code=201)
def create_subject(
    subject_in: SubjectCreate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_admin),
):
    code = subject_in.code.strip().upper()
    exists = db.query(Subject).filter(
        Subject.school_id == current_user.school_id,
        func.upper(Subject.code) == code,
    ).first()
    if exists:
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
    _link_teachers(db, current_user, subject, subject_in.teacher_ids)

    audit.record(db, current_user, "create", "subject", subject.id, f"Created subject {subject.name}")
    db.commit()
    db.refresh(subject)
    return {"success": True, "subject": SubjectResponse.model_validate(subject).model_dump(mode="json")}


def _link_teachers(db: Session, admin: User, subject: Subject, teacher_ids) -> None:
    for teacher_id in teacher_ids or []:
        teacher = get_school_user(db, admin, teacher_id)
        if teacher.teacher_profile is None:
            raise HTTPException(status_code=400, detail=f"User {teacher_id} is not a teacher")
        db.add(TeacherSubject(teacher_id=teacher.teacher_profile.id, subject_id=subject.id, classes=list(subject.classes or [])))


# ==================== ACTIVITY & ANALYTICS ====================

@router.get("/activity")
def activity_feed(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_admin),
):
    """Merged, newest-first feed of what happened in the school"""
    feed = build_activity_feed(db, current_user.school_id, limit=limit, offset=offset)
    for item in feed["activities"]:
        if item["timestamp"] is not None:
            item["timestamp"] = item["timestamp"].isoformat()
    return {
        "success": True,
        **feed,
        "school": {"id": str(current_user.school_id), "name": current_user.school.name},
    }


def school_analytics(db: Session, school_id: uuid.UUID) -> dict:
    users_by_role = {role.value: 0 for role in UserRole}
    for role, count in (
        db.query(User.role, func.count(User.id))
        .filter(User.school_id == school_id, User.is_active == True)
        .group_by(User.role)
        .all()
    ):
        users_by_role[role.value] = count

    since = datetime.utcnow().date() - timedelta(days=30)
    attendance = dict(
        db.query(Attendance.status, func.count(Attendance.id))
        .filter(Attendance.school_id == school_id, Attendance.date >= since)
        .group_by(Attendance.status)
        .all()
    )
    marked = sum(attendance.values())
    attended = sum(attendance.get(s, 0) for s in (AttendanceStatus.present, AttendanceStatus.late, AttendanceStatus.excused))

    distribution = {letter: 0 for letter in ("A", "B", "C", "D", "F")}
    for letter, count in (
        db.query(Grade.grade, func.count(Grade.id))
        .filter(Grade.school_id == school_id)
        .group_by(Grade.grade)
        .all()
    ):
        distribution[letter] = distribution.get(letter, 0) + count

    average = db.query(func.avg(Grade.percentage)).filter(Grade.school_id == school_id).scalar()
    submissions = db.query(AssignmentSubmission).filter(AssignmentSubmission.school_id == school_id)

    return {
        "users_by_role": users_by_role,
        "attendance": {
            "period_days": 30,
            "records": marked,
            "rate": round(attended / marked * 100, 1) if marked else None,
        },
        "grades": {
            "distribution": distribution,
            "average_percentage": round(float(average), 1) if average is not None else None,
        },
        "assignments": {
            "total": db.query(Assignment).filter(Assignment.school_id == school_id).count(),
            "submissions": submissions.count(),
            "graded": submissions.filter(AssignmentSubmission.status == SubmissionStatus.graded).count(),
        },
    }


@router.get("/analytics")
def analytics(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_admin),
):
    return {"success": True, "analytics": school_analytics(db, current_user.school_id)}


@router.get("/analytics/export")
def export_analytics(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_admin),
):
    """Same numbers as /analytics, flattened to a metric,value CSV"""
    data = school_analytics(db, current_user.school_id)
    rows = []
    for section, values in data.items():
        for key, value in values.items():
            if isinstance(value, dict):
                rows.extend({"section": section, "metric": f"{key}.{k}", "value": v} for k, v in value.items())
            else:
                rows.append({"section": section, "metric": key, "value": value})
    df = pd.DataFrame(rows, columns=["section", "metric", "value"])
    filename = f"analytics-{datetime.utcnow():%Y%m%d}.csv"
    return Response(
        content=df.to_csv(index=False),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ==================== ANNOUNCEMENTS ====================

def announcement_payload(a: Announcement) -> dict:
    return {
        "id": str(a.id),
        "title": a.title,
        "content": a.content,
        "audience": a.audience,
        "priority": a.priority,
        "is_active": a.is_active,
        "expires_at": a.expires_at.isoformat() if a.expires_at else None,
        "created_at": a.created_at.isoformat() if a.created_at else None,
        "author": a.author.full_name if a.author else None,
    }


@router.get("/announcements")
def list_announcements(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_admin),
):
    announcements = (
        db.query(Announcement)
        .filter(Announcement.school_id == current_user.school_id)
        .order_by(Announcement.created_at.desc())
        .all()
    )
    return {"success": True, "announcements": [announcement_payload(a) for a in announcements]}


@router.post("/announcements", status_code=201)
def create_announcement(
    announcement_in: AnnouncementCreate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_admin),
):
    announcement = Announcement(
        school_id=current_user.school_id,
        author_id=current_user.id,
        **announcement_in.model_dump(),
    )
    db.add(announcement)
    db.flush()
    audit.record(db, current_user, "create", "announcement", announcement.id, f"Posted {announcement.title}")
    db.commit()
    db.refresh(announcement)
    return {"success": True, "announcement": announcement_payload(announcement)}
