"""Writing assessment outcomes to the gradebook and telling the student."""
from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from schooldesk.core.logging import get_logger
from schooldesk.models.assessments import Assignment, Grade
from schooldesk.models.records import Notification
from schooldesk.services.grading import letter_grade, percentage_of

logger = get_logger(__name__)

DEFAULT_TERM = "Current Term"


def record_grade(
    db: Session,
    school_id: UUID,
    student_id: UUID,
    subject_id: UUID,
    score: float,
    max_score: float,
    assessment_type: str,
    assessment_name: str,
    teacher_id: Optional[UUID] = None,
    assignment_id: Optional[UUID] = None,
    term_name: Optional[str] = None,
    academic_year: Optional[str] = None,
    assessment_date: Optional[date] = None,
) -> Grade:
    """Insert a grade, or overwrite the one already recorded for this assignment."""
    grade = None
    if assignment_id is not None:
        grade = db.query(Grade).filter(
            Grade.school_id == school_id,
            Grade.student_id == student_id,
            Grade.assignment_id == assignment_id,
        ).first()
    if grade is None:
        grade = Grade(school_id=school_id, student_id=student_id, assignment_id=assignment_id)
        db.add(grade)

    percentage = percentage_of(score, max_score)
    grade.subject_id = subject_id
    grade.teacher_id = teacher_id
    grade.assessment_type = assessment_type
    grade.assessment_name = assessment_name
    grade.score = score
    grade.max_score = max_score
    grade.percentage = percentage
    grade.grade = letter_grade(percentage)
    grade.term_name = term_name or DEFAULT_TERM
    grade.academic_year = academic_year or str(date.today().year)
    grade.assessment_date = assessment_date or date.today()
    db.flush()
    return grade


def grade_assignment(db: Session, assignment: Assignment, student_id: UUID, score: float, max_score: float, teacher_id: Optional[UUID] = None) -> Grade:
    return record_grade(
        db,
        school_id=assignment.school_id,
        student_id=student_id,
        subject_id=assignment.subject_id,
        score=score,
        max_score=max_score,
        assessment_type=getattr(assignment.assignment_type, "value", assignment.assignment_type) or "homework",
        assessment_name=assignment.title,
        teacher_id=teacher_id or assignment.teacher_id,
        assignment_id=assignment.id,
    )


def notify(db: Session, school_id: UUID, user_id: UUID, title: str, content: str, type: str = "info", action_url: Optional[str] = None) -> Notification:
    notification = Notification(
        school_id=school_id,
        user_id=user_id,
        title=title,
        content=content,
        type=type,
        action_url=action_url,
        is_read=False,
    )
    db.add(notification)
    logger.debug("notification_queued", title=title, user_id=str(user_id))
    return notification
