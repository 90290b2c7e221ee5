from sqlalchemy import (
    Column,
    String,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Text,
    JSON,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
import enum
from schooldesk.core.database import Base


class TeacherDepartment(str, enum.Enum):
    director = "director"
    coordinator = "coordinator"
    class_teacher = "class_teacher"
    subject_teacher = "subject_teacher"


class StudentProfile(Base):
    __tablename__ = "student_profiles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), unique=True, nullable=False)
    student_id = Column(String, index=True)  # e.g. GRE26SS1A004
    class_name = Column(String, index=True)  # e.g. SS1A
    section = Column(String)
    parent_name = Column(String)
    parent_phone = Column(String)
    parent_email = Column(String)
    admission_date = Column(Date)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("schooldesk.models.auth.User", back_populates="student_profile")


class TeacherProfile(Base):
    __tablename__ = "teacher_profiles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), unique=True, nullable=False)
    employee_id = Column(String)
    department = Column(
        Enum(TeacherDepartment), nullable=False, default=TeacherDepartment.subject_teacher
    )
    stage = Column(String)  # Director's class prefix, e.g. JS or SS
    assigned_class = Column(String)  # Class teacher's own arm
    qualification = Column(Text)
    experience_years = Column(Integer, default=0)
    specializations = Column(JSON, default=list)
    joining_date = Column(Date)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("schooldesk.models.auth.User", back_populates="teacher_profile")
    teacher_subjects = relationship(
        "schooldesk.models.academics.TeacherSubject",
        back_populates="teacher",
        cascade="all, delete-orphan",
    )
