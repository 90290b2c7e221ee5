from sqlalchemy import (
    Column,
    String,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Text,
    JSON,
    Uuid,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid
import enum
from schooldesk.core.database import Base


class AssignmentType(str, enum.Enum):
    homework = "homework"
    quiz = "quiz"
    test = "test"
    exam = "exam"
    project = "project"


class AssignmentStatus(str, enum.Enum):
    draft = "draft"
    active = "active"
    closed = "closed"


class SubmissionStatus(str, enum.Enum):
    submitted = "submitted"
    graded = "graded"


class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    subject_id = Column(Uuid, ForeignKey("subjects.id"), nullable=False)
    teacher_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text)
    instructions = Column(Text)
    assignment_type = Column(Enum(AssignmentType), default=AssignmentType.homework)
    classes = Column(JSON, default=list)
    max_score = Column(Float, default=100)
    passing_score = Column(Float, default=50)
    status = Column(Enum(AssignmentStatus), default=AssignmentStatus.active)
    available_from = Column(DateTime(timezone=True))
    due_date = Column(DateTime(timezone=True))
    # Online tests only: {"duration", "allow_retake", "show_results_immediately",
    # "shuffle_questions", "shuffle_options", "questions": [...]}
    test_config = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    subject = relationship("schooldesk.models.academics.Subject")
    teacher = relationship("schooldesk.models.auth.User")
    submissions = relationship(
        "AssignmentSubmission", back_populates="assignment", cascade="all, delete-orphan"
    )

    @property
    def is_online_test(self) -> bool:
        return bool(self.test_config)


class AssignmentSubmission(Base):
    __tablename__ = "assignment_submissions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    assignment_id = Column(Uuid, ForeignKey("assignments.id"), nullable=False)
    student_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    content = Column(JSON)
    score = Column(Float, nullable=True)
    max_score = Column(Float)
    status = Column(Enum(SubmissionStatus), default=SubmissionStatus.submitted)
    feedback = Column(Text)
    is_late = Column(Boolean, default=False)
    graded_by_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    graded_at = Column(DateTime(timezone=True), nullable=True)
    submitted_at = Column(DateTime(timezone=True), server_default=func.now())

    assignment = relationship("Assignment", back_populates="submissions")
    student = relationship("schooldesk.models.auth.User", foreign_keys=[student_id])


class Grade(Base):
    __tablename__ = "grades"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    subject_id = Column(Uuid, ForeignKey("subjects.id"), nullable=False)
    teacher_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    assignment_id = Column(Uuid, ForeignKey("assignments.id"), nullable=True)
    assessment_type = Column(String, nullable=False)
    assessment_name = Column(String, nullable=False)
    score = Column(Float, nullable=False)
    max_score = Column(Float, nullable=False)
    percentage = Column(Float, nullable=False)
    grade = Column(String(2), nullable=False)
    term_name = Column(String, default="Current Term")
    academic_year = Column(String)
    assessment_date = Column(Date)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    student = relationship("schooldesk.models.auth.User", foreign_keys=[student_id])
    teacher = relationship("schooldesk.models.auth.User", foreign_keys=[teacher_id])
    subject = relationship("schooldesk.models.academics.Subject")
