from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from schooldesk.api import deps
from schooldesk.models.auth import User, UserRole
from schooldesk.models.profiles import TeacherDepartment, TeacherProfile
from schooldesk.models.academics import Timetable
from schooldesk.services import accounts, reports
from schooldesk.services.scope import class_column_in, search_filter, student_query, teacher_classes

router = APIRouter()

SLOTS_PER_CLASS = 30


def classroom_teachers(db: Session, coordinator: User, classes: List[str]) -> List[dict]:
    """Class and subject teachers who teach at least one of ``classes``."""
    teachers = (
        db.query(User)
        .join(TeacherProfile, TeacherProfile.user_id == User.id)
        .filter(
            User.school_id == coordinator.school_id,
            User.role == UserRole.teacher,
            User.is_active == True,
            TeacherProfile.department.in_([TeacherDepartment.class_teacher, TeacherDepartment.subject_teacher]),
        )
        .order_by(User.first_name, User.last_name)
        .all()
    )
    wanted = set(classes)
    result = []
    for teacher in teachers:
        shared = [c for c in teacher_classes(db, teacher) if c in wanted]
        if not shared:
            continue
        data = accounts.user_summary(teacher)
        data["classes"] = shared
        result.append(data)
    return result


@router.get("/dashboard")
def dashboard(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_coordinator),
):
    classes = teacher_classes(db, current_user)
    if not classes:
        return {
            "success": True,
            "dashboard": {
                "classes": [],
                "total_students": 0,
                "total_teachers": 0,
                "timetable": {"total_slots": 0, "completion_rate": 0},
                "class_stats": [],
                "recent_timetable_entries": [],
            },
        }

    students = student_query(db, current_user.school_id, classes).count()
    teachers = classroom_teachers(db, current_user, classes)
    class_stats = reports.class_summary(db, current_user.school_id, classes)
    total_slots = sum(c["timetable_slots"] for c in class_stats)
    expected = SLOTS_PER_CLASS * len(classes)

    recent = (
        db.query(Timetable)
        .filter(Timetable.school_id == current_user.school_id, class_column_in(Timetable.class_name, classes))
        .order_by(Timetable.created_at.desc(), Timetable.day_of_week, Timetable.period)
        .limit(10)
        .all()
    )
    return {
        "success": True,
        "dashboard": {
            "classes": classes,
            "total_students": students,
            "total_teachers": len(teachers),
            "timetable": {
                "total_slots": total_slots,
                "completion_rate": min(100, round(total_slots / expected * 100)),
            },
            "class_stats": class_stats,
            "recent_timetable_entries": [
                {
                    "id": str(row.id),
                    "class_name": row.class_name,
                    "day_of_week": row.day_of_week,
                    "period": row.period,
                    "subject": row.subject.name if row.subject else None,
                    "teacher": row.teacher.full_name if row.teacher else None,
                    "status": getattr(row.status, "value", row.status),
                }
                for row in recent
            ],
        },
    }


@router.get("/students")
def list_students(
    class_name: Optional[str] = None,
    search: Optional[str] = None,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_coordinator),
):
    classes = teacher_classes(db, current_user)
    if class_name:
        classes = [c for c in classes if c in class_name.strip().upper().split(",")]
    if not classes:
        return {"success": True, "students": [], "total": 0}

    query = student_query(db, current_user.school_id, classes)
    condition = search_filter(search)
    if condition is not None:
        query = query.filter(condition)
    rows = query.order_by(User.first_name, User.last_name).all()
    return {"success": True, "students": [accounts.user_summary(user) for user, _ in rows], "total": len(rows)}


@router.get("/teachers")
def list_teachers(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_coordinator),
):
    classes = teacher_classes(db, current_user)
    teachers = classroom_teachers(db, current_user, classes) if classes else []
    return {"success": True, "teachers": teachers, "total": len(teachers)}


@router.get("/reports")
def class_reports(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_coordinator),
):
    classes = teacher_classes(db, current_user)
    return {"success": True, "classes": reports.class_summary(db, current_user.school_id, classes)}
