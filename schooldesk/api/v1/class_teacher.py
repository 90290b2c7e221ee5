import uuid
from datetime import date, datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from schooldesk.api import deps
from schooldesk.core.logging import get_logger
from schooldesk.models.auth import User
from schooldesk.models.records import (
    AlertPriority,
    AlertStatus,
    AlertType,
    Attendance,
    AttendanceStatus,
    CalendarEvent,
    StudentAlert,
)
from schooldesk.schemas.records import (
    AlertCreate,
    AlertUpdate,
    AttendanceMark,
    AttendanceUpdate,
    CalendarEventCreate,
    CalendarEventUpdate,
)
from schooldesk.services import accounts, audit, reports
from schooldesk.services.scope import class_column_in, student_query, teacher_classes
from schooldesk.utils.dates import iso, naive_utc

logger = get_logger(__name__)

router = APIRouter()

ABSENCE_ALERT_THRESHOLD = 3
ABSENCE_WINDOW_DAYS = 7
ALERT_TYPES = [t.value for t in AlertType]
ALERT_PRIORITIES = [p.value for p in AlertPriority]
ALERT_STATUSES = [s.value for s in AlertStatus]


def my_classes(db: Session, teacher: User) -> List[str]:
    classes = teacher_classes(db, teacher)
    if not classes:
        raise HTTPException(status_code=404, detail="No class assigned to this teacher")
    return classes


def class_student(db: Session, teacher: User, classes: List[str], student_id: uuid.UUID) -> User:
    row = student_query(db, teacher.school_id, classes).filter(User.id == student_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Student not found in your class")
    return row[0]


def attendance_payload(record: Attendance) -> dict:
    return {
        "id": str(record.id),
        "student_id": str(record.student_id),
        "student_name": record.student.full_name if record.student else None,
        "date": iso(record.date),
        "period": record.period,
        "status": getattr(record.status, "value", record.status),
        "arrival_time": record.arrival_time,
        "notes": record.notes,
        "reason": record.reason,
        "marked_by": record.marked_by.full_name if record.marked_by else None,
    }


def alert_payload(alert: StudentAlert) -> dict:
    return {
        "id": str(alert.id),
        "student_id": str(alert.student_id),
        "student_name": alert.student.full_name if alert.student else None,
        "alert_type": getattr(alert.alert_type, "value", alert.alert_type),
        "priority": getattr(alert.priority, "value", alert.priority),
        "title": alert.title,
        "description": alert.description,
        "status": getattr(alert.status, "value", alert.status),
        "parent_notified": alert.parent_notified,
        "follow_up_date": iso(alert.follow_up_date),
        "resolution_notes": alert.resolution_notes,
        "resolved_at": iso(alert.resolved_at),
        "created_by": alert.created_by.full_name if alert.created_by else "System",
        "created_at": iso(alert.created_at),
    }


def event_payload(event: CalendarEvent) -> dict:
    return {
        "id": str(event.id),
        "title": event.title,
        "description": event.description,
        "event_type": event.event_type,
        "class_name": event.class_name,
        "start_date": iso(event.start_date),
        "end_date": iso(event.end_date),
        "is_all_day": event.is_all_day,
        "location": event.location,
        "created_by_id": str(event.created_by_id),
        "created_by": event.created_by.full_name if event.created_by else None,
    }


def status_counts(records: List[Attendance]) -> dict:
    counts = {s.value: 0 for s in AttendanceStatus}
    for record in records:
        counts[getattr(record.status, "value", record.status)] += 1
    counts["total"] = len(records)
    return counts


def class_events(db: Session, teacher: User, classes: List[str]):
    return db.query(CalendarEvent).filter(
        CalendarEvent.school_id == teacher.school_id,
        or_(CalendarEvent.class_name == None, class_column_in(CalendarEvent.class_name, classes)),
    )


# ==================== DASHBOARD ====================

@router.get("/dashboard")
def dashboard(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_class_teacher),
):
    """Today's attendance, open alerts and upcoming events for the class"""
    classes = my_classes(db, current_user)
    students = [user for user, _ in student_query(db, current_user.school_id, classes).all()]
    student_ids = [s.id for s in students]
    today = date.today()

    todays = db.query(Attendance).filter(
        Attendance.school_id == current_user.school_id,
        Attendance.student_id.in_(student_ids),
        Attendance.date == today,
    ).all() if student_ids else []
    summary = status_counts(todays)
    summary["unmarked"] = max(0, len(students) - len({r.student_id for r in todays}))

    alerts = db.query(StudentAlert).filter(
        StudentAlert.school_id == current_user.school_id,
        StudentAlert.student_id.in_(student_ids),
        StudentAlert.status == AlertStatus.active,
    ).order_by(StudentAlert.created_at.desc()).all() if student_ids else []

    events = (
        class_events(db, current_user, classes)
        .filter(CalendarEvent.start_date >= datetime.combine(today, datetime.min.time()))
        .order_by(CalendarEvent.start_date)
        .limit(5)
        .all()
    )
    return {
        "success": True,
        "dashboard": {
            "classes": classes,
            "total_students": len(students),
            "today_attendance": summary,
            "active_alerts": len(alerts),
            "recent_alerts": [alert_payload(a) for a in alerts[:5]],
            "upcoming_events": [event_payload(e) for e in events],
        },
    }


@router.get("/students")
def list_students(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_class_teacher),
):
    classes = my_classes(db, current_user)
    rows = student_query(db, current_user.school_id, classes).order_by(User.first_name, User.last_name).all()
    students = []
    for user, _ in rows:
        data = accounts.user_summary(user)
        performance = reports.student_performance(db, user)
        data["performance"] = {
            "overall_average": performance["overall_average"],
            "overall_grade": performance["overall_grade"],
            "attendance_rate": performance["attendance_rate"],
            "at_risk": performance["at_risk"],
        }
        students.append(data)
    return {"success": True, "classes": classes, "students": students, "total": len(students)}


# ==================== ATTENDANCE ====================

@router.get("/attendance")
def get_attendance(
    on: Optional[date] = Query(None, alias="date"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    student_id: Optional[uuid.UUID] = None,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_class_teacher),
):
    classes = my_classes(db, current_user)
    if student_id:
        student_ids = [class_student(db, current_user, classes, student_id).id]
    else:
        student_ids = [user.id for user, _ in student_query(db, current_user.school_id, classes).all()]
    if not student_ids:
        return {"success": True, "attendance": [], "summary": status_counts([])}

    query = db.query(Attendance).filter(
        Attendance.school_id == current_user.school_id,
        Attendance.student_id.in_(student_ids),
    )
    if on:
        query = query.filter(Attendance.date == on)
    else:
        if start_date:
            query = query.filter(Attendance.date >= start_date)
        if end_date:
            query = query.filter(Attendance.date <= end_date)
        if not start_date and not end_date:
            query = query.filter(Attendance.date == date.today())
    records = query.order_by(Attendance.date.desc(), Attendance.period).all()
    return {
        "success": True,
        "attendance": [attendance_payload(r) for r in records],
        "summary": status_counts(records),
    }


def raise_absence_alerts(db: Session, teacher: User, student_ids, on: date) -> List[str]:
    """Open an attendance alert for students absent too often in the trailing week."""
    since = on - timedelta(days=ABSENCE_WINDOW_DAYS - 1)
    raised = []
    for student_id in student_ids:
        absences = db.query(Attendance).filter(
            Attendance.school_id == teacher.school_id,
            Attendance.student_id == student_id,
            Attendance.status == AttendanceStatus.absent,
            Attendance.date >= since,
            Attendance.date <= on,
        ).count()
        if absences < ABSENCE_ALERT_THRESHOLD:
            continue
        already_open = db.query(StudentAlert).filter(
            StudentAlert.school_id == teacher.school_id,
            StudentAlert.student_id == student_id,
            StudentAlert.alert_type == AlertType.attendance_issue,
            StudentAlert.status == AlertStatus.active,
        ).first()
        if already_open:
            continue
        db.add(StudentAlert(
            school_id=teacher.school_id,
            student_id=student_id,
            created_by_id=teacher.id,
            alert_type=AlertType.attendance_issue,
            priority=AlertPriority.high,
            title="Frequent absences",
            description=f"Absent {absences} times in the last {ABSENCE_WINDOW_DAYS} days",
            status=AlertStatus.active,
        ))
        raised.append(str(student_id))
    return raised


@router.post("/attendance")
def mark_attendance(
    attendance_in: AttendanceMark,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_class_teacher),
):
    """Upsert one attendance row per student for the given date and period"""
    classes = my_classes(db, current_user)
    allowed = {user.id for user, _ in student_query(db, current_user.school_id, classes).all()}
    period = attendance_in.period.strip().lower() or "morning"
    results = {"successful": [], "updated": [], "failed": []}
    absent = []

    for entry in attendance_in.records:
        if entry.student_id not in allowed:
            results["failed"].append({"student_id": str(entry.student_id), "error": "Student not found in your class"})
            continue
        try:
            with db.begin_nested():
                record = db.query(Attendance).filter(
                    Attendance.student_id == entry.student_id,
                    Attendance.date == attendance_in.date,
                    Attendance.period == period,
                ).first()
                if record is None:
                    record = Attendance(
                        school_id=current_user.school_id,
                        student_id=entry.student_id,
                        date=attendance_in.date,
                        period=period,
                    )
                    db.add(record)
                    bucket = "successful"
                else:
                    bucket = "updated"
                record.status = entry.status
                record.arrival_time = entry.arrival_time
                record.notes = entry.notes
                record.reason = entry.reason
                record.marked_by_id = current_user.id
                db.flush()
            results[bucket].append({"student_id": str(entry.student_id), "status": entry.status.value})
            if entry.status == AttendanceStatus.absent:
                absent.append(entry.student_id)
        except Exception as e:
            logger.warning("attendance_mark_failed", student_id=str(entry.student_id), date=attendance_in.date.isoformat(), error=str(e))
            results["failed"].append({"student_id": str(entry.student_id), "error": str(e)})

    alerts = raise_absence_alerts(db, current_user, absent, attendance_in.date)
    audit.record(
        db, current_user, "mark", "attendance", None,
        f"Marked attendance for {attendance_in.date.isoformat()} ({period})",
        {k: len(v) for k, v in results.items()},
    )
    db.commit()
    return {
        "success": True,
        "message": f"Attendance saved: {len(results['successful'])} new, {len(results['updated'])} updated",
        "results": results,
        "alerts_raised": alerts,
    }


@router.put("/attendance")
def update_attendance(
    update_in: AttendanceUpdate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_class_teacher),
):
    classes = my_classes(db, current_user)
    record = db.query(Attendance).filter(
        Attendance.id == update_in.attendance_id,
        Attendance.school_id == current_user.school_id,
    ).first()
    if not record:
        raise HTTPException(status_code=404, detail="Attendance record not found")
    class_student(db, current_user, classes, record.student_id)

    for field, value in update_in.model_dump(exclude_unset=True, exclude={"attendance_id"}).items():
        setattr(record, field, value)
    record.marked_by_id = current_user.id
    audit.record(db, current_user, "update", "attendance", record.id, "Updated attendance record")
    db.commit()
    db.refresh(record)
    return {"success": True, "attendance": attendance_payload(record)}


# ==================== ALERTS ====================

@router.get("/alerts")
def list_alerts(
    status: Optional[str] = None,
    student_id: Optional[uuid.UUID] = None,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_class_teacher),
):
    classes = my_classes(db, current_user)
    student_ids = [user.id for user, _ in student_query(db, current_user.school_id, classes).all()]
    if student_id:
        student_ids = [s for s in student_ids if s == student_id]
    if not student_ids:
        return {"success": True, "alerts": []}

    query = db.query(StudentAlert).filter(
        StudentAlert.school_id == current_user.school_id,
        StudentAlert.student_id.in_(student_ids),
    )
    if status:
        if status not in ALERT_STATUSES:
            raise HTTPException(status_code=400, detail=f"Invalid status. Must be one of: {', '.join(ALERT_STATUSES)}")
        query = query.filter(StudentAlert.status == AlertStatus(status))
    alerts = query.order_by(StudentAlert.created_at.desc()).all()
    return {"success": True, "alerts": [alert_payload(a) for a in alerts]}


@router.post("/alerts", status_code=201)
def create_alert(
    alert_in: AlertCreate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_class_teacher),
):
    if alert_in.alert_type not in ALERT_TYPES:
        raise HTTPException(status_code=400, detail=f"Invalid alert type. Must be one of: {', '.join(ALERT_TYPES)}")
    if alert_in.priority not in ALERT_PRIORITIES:
        raise HTTPException(status_code=400, detail=f"Invalid priority. Must be one of: {', '.join(ALERT_PRIORITIES)}")

    classes = my_classes(db, current_user)
    student = class_student(db, current_user, classes, alert_in.student_id)
    alert = StudentAlert(
        school_id=current_user.school_id,
        student_id=student.id,
        created_by_id=current_user.id,
        alert_type=AlertType(alert_in.alert_type),
        priority=AlertPriority(alert_in.priority),
        title=alert_in.title,
        description=alert_in.description,
        parent_notified=alert_in.parent_notified,
        follow_up_date=alert_in.follow_up_date,
        status=AlertStatus.active,
    )
    db.add(alert)
    db.flush()
    audit.record(db, current_user, "create", "alert", alert.id, f"Raised {alert_in.alert_type} alert for {student.full_name}")
    db.commit()
    db.refresh(alert)
    return {"success": True, "alert": alert_payload(alert)}


@router.put("/alerts/{alert_id}")
def update_alert(
    alert_id: uuid.UUID,
    alert_in: AlertUpdate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_class_teacher),
):
    classes = my_classes(db, current_user)
    alert = db.query(StudentAlert).filter(
        StudentAlert.id == alert_id,
        StudentAlert.school_id == current_user.school_id,
    ).first()
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")
    class_student(db, current_user, classes, alert.student_id)

    changes = alert_in.model_dump(exclude_unset=True)
    if "priority" in changes:
        if changes["priority"] not in ALERT_PRIORITIES:
            raise HTTPException(status_code=400, detail=f"Invalid priority. Must be one of: {', '.join(ALERT_PRIORITIES)}")
        changes["priority"] = AlertPriority(changes["priority"])
    if "status" in changes:
        if changes["status"] not in ALERT_STATUSES:
            raise HTTPException(status_code=400, detail=f"Invalid status. Must be one of: {', '.join(ALERT_STATUSES)}")
        changes["status"] = AlertStatus(changes["status"])
        alert.resolved_at = datetime.utcnow() if changes["status"] == AlertStatus.resolved else None
    for field, value in changes.items():
        setattr(alert, field, value)

    audit.record(db, current_user, "update", "alert", alert.id, f"Updated alert {alert.title}")
    db.commit()
    db.refresh(alert)
    return {"success": True, "alert": alert_payload(alert)}


# ==================== CALENDAR ====================

def check_event_window(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start and end and naive_utc(end) < naive_utc(start):
        raise HTTPException(status_code=400, detail="End date cannot be before start date")


def get_class_event(db: Session, teacher: User, classes: List[str], event_id: uuid.UUID) -> CalendarEvent:
    event = class_events(db, teacher, classes).filter(CalendarEvent.id == event_id).first()
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@router.get("/calendar")
def list_events(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_class_teacher),
):
    classes = my_classes(db, current_user)
    query = class_events(db, current_user, classes)
    if start_date:
        query = query.filter(CalendarEvent.start_date >= naive_utc(start_date))
    if end_date:
        query = query.filter(CalendarEvent.start_date <= naive_utc(end_date))
    events = query.order_by(CalendarEvent.start_date).all()
    return {"success": True, "events": [event_payload(e) for e in events]}


@router.post("/calendar", status_code=201)
def create_event(
    event_in: CalendarEventCreate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_class_teacher),
):
    check_event_window(event_in.start_date, event_in.end_date)
    classes = my_classes(db, current_user)
    event = CalendarEvent(
        school_id=current_user.school_id,
        created_by_id=current_user.id,
        class_name=classes[0],
        **event_in.model_dump(),
    )
    event.start_date = naive_utc(event.start_date)
    event.end_date = naive_utc(event.end_date)
    db.add(event)
    db.flush()
    audit.record(db, current_user, "create", "calendar_event", event.id, f"Created event {event.title}")
    db.commit()
    db.refresh(event)
    return {"success": True, "event": event_payload(event)}


@router.put("/calendar/{event_id}")
def update_event(
    event_id: uuid.UUID,
    event_in: CalendarEventUpdate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_class_teacher),
):
    classes = my_classes(db, current_user)
    event = get_class_event(db, current_user, classes, event_id)
    if event.created_by_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the creator can edit this event")

    changes = event_in.model_dump(exclude_unset=True)
    for field in ("start_date", "end_date"):
        if field in changes:
            changes[field] = naive_utc(changes[field])
    check_event_window(changes.get("start_date", event.start_date), changes.get("end_date", event.end_date))
    for field, value in changes.items():
        setattr(event, field, value)

    audit.record(db, current_user, "update", "calendar_event", event.id, f"Updated event {event.title}")
    db.commit()
    db.refresh(event)
    return {"success": True, "event": event_payload(event)}


@router.delete("/calendar/{event_id}")
def delete_event(
    event_id: uuid.UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_class_teacher),
):
    classes = my_classes(db, current_user)
    event = get_class_event(db, current_user, classes, event_id)
    if event.created_by_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the creator can delete this event")
    audit.record(db, current_user, "delete", "calendar_event", event.id, f"Deleted event {event.title}")
    db.delete(event)
    db.commit()
    return {"success": True, "message": "Event deleted successfully"}


# ==================== PERFORMANCE ====================

@router.get("/performance")
def class_performance(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_class_teacher),
):
    classes = my_classes(db, current_user)
    rows = student_query(db, current_user.school_id, classes).order_by(User.first_name, User.last_name).all()
    students = []
    for user, profile in rows:
        performance = reports.student_performance(db, user)
        performance.update({"student_id": str(user.id), "name": user.full_name, "class_name": profile.class_name})
        students.append(performance)
    averages = [s["overall_average"] for s in students if s["overall_average"] is not None]
    return {
        "success": True,
        "classes": classes,
        "class_average": round(sum(averages) / len(averages), 1) if averages else None,
        "at_risk_count": sum(1 for s in students if s["at_risk"]),
        "students": students,
    }
