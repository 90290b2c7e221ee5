from collections import defaultdict
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from schooldesk.models.auth import User
from schooldesk.models.academics import Subject, Timetable
from schooldesk.models.assessments import Grade
from schooldesk.models.profiles import StudentProfile
from schooldesk.models.records import Attendance, AttendanceStatus
from schooldesk.services.grading import letter_grade
from schooldesk.services.scope import class_column_in, covers_class, normalize_class_list, student_query

ATTENDED = (AttendanceStatus.present, AttendanceStatus.late, AttendanceStatus.excused)
AT_RISK_AVERAGE = 50
AT_RISK_ATTENDANCE = 75
ATTENDANCE_WINDOW_DAYS = 30


def attendance_rate(db: Session, school_id: UUID, student_ids: Iterable[UUID], since: Optional[date] = None) -> Optional[float]:
    """Share of marked sessions attended, as a percentage; ``None`` when nothing is marked."""
    student_ids = list(student_ids)
    if not student_ids:
        return None
    query = db.query(Attendance.status, func.count(Attendance.id)).filter(
        Attendance.school_id == school_id,
        Attendance.student_id.in_(student_ids),
    )
    if since is not None:
        query = query.filter(Attendance.date >= since)
    counts = dict(query.group_by(Attendance.status).all())
    total = sum(counts.values())
    if not total:
        return None
    attended = sum(counts.get(status, 0) for status in ATTENDED)
    return round(attended / total * 100, 1)


def average_percentage(db: Session, school_id: UUID, student_ids: Iterable[UUID]) -> Optional[float]:
    student_ids = list(student_ids)
    if not student_ids:
        return None
    value = db.query(func.avg(Grade.percentage)).filter(
        Grade.school_id == school_id,
        Grade.student_id.in_(student_ids),
    ).scalar()
    return round(float(value), 1) if value is not None else None


def class_summary(db: Session, school_id: UUID, class_names: Iterable[str]) -> List[Dict[str, Any]]:
    since = date.today() - timedelta(days=ATTENDANCE_WINDOW_DAYS)
    summaries = []
    for class_name in normalize_class_list(class_names):
        ids = [user.id for user, _ in student_query(db, school_id, [class_name]).all()]
        slots = db.query(func.count(Timetable.id)).filter(
            Timetable.school_id == school_id,
            class_column_in(Timetable.class_name, [class_name]),
        ).scalar()
        summaries.append({
            "class_name": class_name,
            "student_count": len(ids),
            "average_grade": average_percentage(db, school_id, ids),
            "attendance_rate": attendance_rate(db, school_id, ids, since),
            "timetable_slots": slots or 0,
        })
    return summaries


def school_class_names(db: Session, school_id: UUID, stage: Optional[str] = None) -> List[str]:
    """Distinct class names of active students, optionally limited to a stage prefix."""
    rows = (
        db.query(StudentProfile.class_name)
        .join(User, User.id == StudentProfile.user_id)
        .filter(User.school_id == school_id, User.is_active == True, StudentProfile.class_name != None)
        .distinct()
        .all()
    )
    names = sorted(normalize_class_list(r[0] for r in rows))
    if stage:
        prefix = normalize_class_list([stage])[0]
        names = [n for n in names if covers_class(prefix, n)]
    return names


def student_performance(db: Session, student: User) -> Dict[str, Any]:
    grades = (
        db.query(Grade, Subject.name)
        .join(Subject, Subject.id == Grade.subject_id)
        .filter(Grade.school_id == student.school_id, Grade.student_id == student.id)
        .all()
    )
    per_subject: Dict[str, List[float]] = defaultdict(list)
    for grade, subject_name in grades:
        per_subject[subject_name].append(grade.percentage)

    subjects = [
        {
            "subject": name,
            "average": round(sum(values) / len(values), 1),
            "grade": letter_grade(sum(values) / len(values)),
            "assessments": len(values),
        }
        for name, values in sorted(per_subject.items())
    ]
    all_values = [g.percentage for g, _ in grades]
    overall = round(sum(all_values) / len(all_values), 1) if all_values else None
    attendance = attendance_rate(db, student.school_id, [student.id])

    at_risk = (overall is not None and overall < AT_RISK_AVERAGE) or (
        attendance is not None and attendance < AT_RISK_ATTENDANCE
    )
    return {
        "subjects": subjects,
        "overall_average": overall,
        "overall_grade": letter_grade(overall) if overall is not None else None,
        "attendance_rate": attendance,
        "total_assessments": len(all_values),
        "at_risk": at_risk,
    }
