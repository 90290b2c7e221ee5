from sqlalchemy import (
    Column,
    String,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Text,
    Uuid,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid
import enum
from schooldesk.core.database import Base


class AttendanceStatus(str, enum.Enum):
    present = "present"
    absent = "absent"
    late = "late"
    excused = "excused"


class AlertType(str, enum.Enum):
    performance_concern = "performance_concern"
    attendance_issue = "attendance_issue"
    behavioral_issue = "behavioral_issue"
    parent_meeting_required = "parent_meeting_required"
    academic_support_needed = "academic_support_needed"
    commendation = "commendation"
    disciplinary_action = "disciplinary_action"


class AlertPriority(str, enum.Enum):
    low = "low"
    normal = "normal"
    high = "high"
    urgent = "urgent"


class AlertStatus(str, enum.Enum):
    active = "active"
    resolved = "resolved"


class Attendance(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("student_id", "date", "period", name="uq_attendance_student_date_period"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    date = Column(Date, nullable=False)
    period = Column(String, nullable=False, default="morning")
    status = Column(Enum(AttendanceStatus), nullable=False)
    arrival_time = Column(String)
    notes = Column(Text)
    reason = Column(Text)
    marked_by_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    student = relationship("schooldesk.models.auth.User", foreign_keys=[student_id])
    marked_by = relationship("schooldesk.models.auth.User", foreign_keys=[marked_by_id])


class CalendarEvent(Base):
    __tablename__ = "calendar_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    created_by_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text)
    event_type = Column(String, default="event")  # event, exam, meeting, holiday
    class_name = Column(String)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True))
    is_all_day = Column(Boolean, default=False)
    location = Column(String)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    created_by = relationship("schooldesk.models.auth.User")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    title = Column(String, nullable=False)
    content = Column(Text)
    type = Column(String, default="info")  # info, success, warning, error
    action_url = Column(String)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class StudentAlert(Base):
    __tablename__ = "student_alerts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    created_by_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    alert_type = Column(Enum(AlertType), nullable=False)
    priority = Column(Enum(AlertPriority), default=AlertPriority.normal)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    status = Column(Enum(AlertStatus), default=AlertStatus.active)
    parent_notified = Column(Boolean, default=False)
    follow_up_date = Column(Date)
    resolution_notes = Column(Text)
    resolved_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    student = relationship("schooldesk.models.auth.User", foreign_keys=[student_id])
    created_by = relationship("schooldesk.models.auth.User", foreign_keys=[created_by_id])


class Announcement(Base):
    __tablename__ = "announcements"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    author_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    audience = Column(String, default="all")  # all, students, teachers
    priority = Column(String, default="normal")
    is_active = Column(Boolean, default=True)
    expires_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    author = relationship("schooldesk.models.auth.User")
