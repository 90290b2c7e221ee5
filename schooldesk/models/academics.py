from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Text,
    JSON,
    Uuid,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid
import enum
from schooldesk.core.database import Base


class SubjectCategory(str, enum.Enum):
    CORE = "CORE"
    SCIENCE = "SCIENCE"
    ARTS = "ARTS"
    COMMERCIAL = "COMMERCIAL"
    VOCATIONAL = "VOCATIONAL"


class TimetableStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"


class Subject(Base):
    __tablename__ = "subjects"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    code = Column(String, nullable=False)
    description = Column(Text)
    category = Column(Enum(SubjectCategory), default=SubjectCategory.CORE)
    classes = Column(JSON, default=list)  # Class names or stage prefixes; empty = all
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    teachers = relationship("TeacherSubject", back_populates="subject")


class TeacherSubject(Base):
    __tablename__ = "teacher_subjects"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    teacher_id = Column(Uuid, ForeignKey("teacher_profiles.id"), nullable=False)
    subject_id = Column(Uuid, ForeignKey("subjects.id"), nullable=False)
    classes = Column(JSON, default=list)
    assigned_at = Column(DateTime(timezone=True), server_default=func.now())

    teacher = relationship(
        "schooldesk.models.profiles.TeacherProfile", back_populates="teacher_subjects"
    )
    subject = relationship("Subject", back_populates="teachers")


class Timetable(Base):
    __tablename__ = "timetables"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    class_name = Column(String, nullable=False, index=True)
    subject_id = Column(Uuid, ForeignKey("subjects.id"), nullable=False)
    teacher_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    day_of_week = Column(String, nullable=False)
    period = Column(Integer, nullable=False)  # 1-indexed
    start_time = Column(String, nullable=False)  # HH:MM
    end_time = Column(String, nullable=False)
    room = Column(String)
    status = Column(Enum(TimetableStatus), default=TimetableStatus.pending)
    created_by_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    subject = relationship("Subject")
    teacher = relationship("schooldesk.models.auth.User", foreign_keys=[teacher_id])
