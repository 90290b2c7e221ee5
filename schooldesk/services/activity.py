"""Admin activity feed.

Nine record types are read for one school, turned into uniform feed items and
merged newest first. Each source loads at most ``offset + limit`` rows, which is
enough to fill any requested page, and reports its full row count so ``total``
and ``has_more`` describe the whole feed.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Query, Session, joinedload

from schooldesk.core.logging import get_logger
from schooldesk.models.auth import AuditLog, User
from schooldesk.models.assessments import Assignment, AssignmentSubmission, Grade
from schooldesk.models.records import Announcement, Attendance, StudentAlert
from schooldesk.utils.dates import naive_utc

logger = get_logger(__name__)

RECENT_DAYS = 7
LOGIN_HOURS = 24
MAX_PER_SOURCE = 500

Source = Tuple[List[Dict[str, Any]], int]


def _role(user: Optional[User]) -> Optional[str]:
    if user is None:
        return None
    return getattr(user.role, "value", user.role)


def _item(
    item_id: str,
    item_type: str,
    actor: Optional[User],
    description: str,
    timestamp: Optional[datetime],
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    return {
        "id": item_id,
        "type": item_type,
        "user": actor.full_name if actor else "System",
        "user_initials": actor.initials if actor else "SY",
        "user_role": _role(actor) or "system",
        "user_avatar": actor.avatar if actor else None,
        "description": description,
        "timestamp": naive_utc(timestamp),
        "metadata": metadata or {},
    }


def _newest(query: Query, column, cap: int) -> Tuple[list, int]:
    """The newest ``cap`` rows of a source and how many rows it has in all."""
    return query.order_by(column.desc()).limit(cap).all(), query.count()


def _audit_items(db: Session, school_id: UUID, cap: int) -> Source:
    logs, count = _newest(
        db.query(AuditLog).options(joinedload(AuditLog.user)).filter(AuditLog.school_id == school_id),
        AuditLog.created_at,
        cap,
    )
    items = []
    for log in logs:
        metadata = {"action": log.action, "resource": log.resource, "resource_id": log.resource_id}
        metadata.update(log.details or {})
        items.append(_item(
            str(log.id),
            "audit",
            log.user,
            log.description or f"{log.action} on {log.resource}",
            log.created_at,
            metadata,
        ))
    return items, count


def _login_items(db: Session, school_id: UUID, cap: int) -> Source:
    since = datetime.utcnow() - timedelta(hours=LOGIN_HOURS)
    users, count = _newest(
        db.query(User).filter(User.school_id == school_id, User.last_login != None, User.last_login >= since),
        User.last_login,
        cap,
    )
    items = [
        _item(f"login-{u.id}", "login", u, f"{_role(u)} logged into the system", u.last_login, {"action": "login"})
        for u in users
    ]
    return items, count


def _user_created_items(db: Session, school_id: UUID, since: datetime, cap: int) -> Source:
    users, count = _newest(
        db.query(User).filter(User.school_id == school_id, User.created_at >= since),
        User.created_at,
        cap,
    )
    items = [
        _item(
            f"user-{u.id}",
            "user_created",
            u,
            f"New {_role(u)} account created for {u.full_name}",
            u.created_at,
            {"action": "create_user", "email": u.email},
        )
        for u in users
    ]
    return items, count


def _assignment_items(db: Session, school_id: UUID, since: datetime, cap: int) -> Source:
    rows, count = _newest(
        db.query(Assignment)
        .options(joinedload(Assignment.teacher), joinedload(Assignment.subject))
        .filter(Assignment.school_id == school_id, Assignment.created_at >= since),
        Assignment.created_at,
        cap,
    )
    items = []
    for a in rows:
        subject_name = a.subject.name if a.subject else "Unknown subject"
        items.append(_item(
            f"assignment-{a.id}",
            "assignment",
            a.teacher,
            f'Created assignment "{a.title}" for {subject_name}',
            a.created_at,
            {"action": "create_assignment", "subject": subject_name, "classes": a.classes or []},
        ))
    return items, count


def _grade_items(db: Session, school_id: UUID, since: datetime, cap: int) -> Source:
    rows, count = _newest(
        db.query(Grade)
        .options(joinedload(Grade.teacher), joinedload(Grade.student), joinedload(Grade.subject))
        .filter(Grade.school_id == school_id, Grade.created_at >= since),
        Grade.created_at,
        cap,
    )
    items = []
    for g in rows:
        student = g.student.full_name if g.student else "a student"
        subject_name = g.subject.name if g.subject else "Unknown subject"
        items.append(_item(
            f"grade-{g.id}",
            "grade",
            g.teacher,
            f"Graded {student} in {subject_name} - {g.score:g}/{g.max_score:g}",
            g.created_at,
            {"action": "grade_student", "subject": subject_name, "score": g.score, "max_score": g.max_score},
        ))
    return items, count


def _submission_items(db: Session, school_id: UUID, since: datetime, cap: int) -> Source:
    rows, count = _newest(
        db.query(AssignmentSubmission)
        .options(joinedload(AssignmentSubmission.student), joinedload(AssignmentSubmission.assignment))
        .filter(AssignmentSubmission.school_id == school_id, AssignmentSubmission.submitted_at >= since),
        AssignmentSubmission.submitted_at,
        cap,
    )
    items = []
    for s in rows:
        title = s.assignment.title if s.assignment else "an assignment"
        items.append(_item(
            f"submission-{s.id}",
            "submission",
            s.student,
            f'Submitted "{title}"' + (" (late)" if s.is_late else ""),
            s.submitted_at,
            {"action": "submit_assignment", "assignment_id": str(s.assignment_id), "is_late": bool(s.is_late)},
        ))
    return items, count


def _attendance_items(db: Session, school_id: UUID, since: datetime, cap: int) -> Source:
    rows, count = _newest(
        db.query(Attendance)
        .options(joinedload(Attendance.student), joinedload(Attendance.marked_by))
        .filter(Attendance.school_id == school_id, Attendance.created_at >= since),
        Attendance.created_at,
        cap,
    )
    items = []
    for r in rows:
        student = r.student.full_name if r.student else "a student"
        status = getattr(r.status, "value", r.status)
        items.append(_item(
            f"attendance-{r.id}",
            "attendance",
            r.marked_by,
            f"Marked {student} {status} for {r.date.isoformat()}",
            r.created_at,
            {"action": "mark_attendance", "status": status, "period": r.period},
        ))
    return items, count


def _alert_items(db: Session, school_id: UUID, since: datetime, cap: int) -> Source:
    rows, count = _newest(
        db.query(StudentAlert)
        .options(joinedload(StudentAlert.student), joinedload(StudentAlert.created_by))
        .filter(StudentAlert.school_id == school_id, StudentAlert.created_at >= since),
        StudentAlert.created_at,
        cap,
    )
    items = []
    for a in rows:
        student = a.student.full_name if a.student else "a student"
        alert_type = getattr(a.alert_type, "value", a.alert_type)
        items.append(_item(
            f"alert-{a.id}",
            "alert",
            a.created_by,
            f"Raised {alert_type.replace('_', ' ')} alert for {student}",
            a.created_at,
            {"action": "create_alert", "alert_type": alert_type, "priority": getattr(a.priority, "value", a.priority)},
        ))
    return items, count


def _announcement_items(db: Session, school_id: UUID, since: datetime, cap: int) -> Source:
    rows, count = _newest(
        db.query(Announcement)
        .options(joinedload(Announcement.author))
        .filter(Announcement.school_id == school_id, Announcement.created_at >= since),
        Announcement.created_at,
        cap,
    )
    items = [
        _item(
            f"announcement-{a.id}",
            "announcement",
            a.author,
            f'Posted announcement "{a.title}"',
            a.created_at,
            {"action": "post_announcement", "audience": a.audience},
        )
        for a in rows
    ]
    return items, count


def merge_feed(
    sources: List[List[Dict[str, Any]]],
    limit: int,
    offset: int,
    total: Optional[int] = None,
) -> Dict[str, Any]:
    """Merge feed items newest first and cut one page out of them.

    ``total`` is the number of items across all sources when the sources were
    truncated before merging; it defaults to the number of items passed in.
    """
    activities = [item for source in sources for item in source]
    activities.sort(key=lambda item: item["timestamp"] or datetime.min, reverse=True)
    if total is None:
        total = len(activities)
    return {
        "activities": activities[offset:offset + limit],
        "total": total,
        "has_more": offset + limit < total,
    }


def build_activity_feed(db: Session, school_id: UUID, limit: int = 20, offset: int = 0) -> Dict[str, Any]:
    cap = min(offset + limit, MAX_PER_SOURCE)
    since = datetime.utcnow() - timedelta(days=RECENT_DAYS)
    sources = [
        _audit_items(db, school_id, cap),
        _login_items(db, school_id, cap),
        _user_created_items(db, school_id, since, cap),
        _assignment_items(db, school_id, since, cap),
        _grade_items(db, school_id, since, cap),
        _submission_items(db, school_id, since, cap),
        _attendance_items(db, school_id, since, cap),
        _alert_items(db, school_id, since, cap),
        _announcement_items(db, school_id, since, cap),
    ]
    feed = merge_feed([items for items, _ in sources], limit, offset, total=sum(count for _, count in sources))
    logger.debug("activity_feed_built", school_id=str(school_id), total=feed["total"])
    return feed
