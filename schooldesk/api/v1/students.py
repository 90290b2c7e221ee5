import random
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from schooldesk.api import deps
from schooldesk.core import security
from schooldesk.core.logging import get_logger
from schooldesk.models.auth import User
from schooldesk.models.academics import Subject, Timetable, TimetableStatus
from schooldesk.models.assessments import Assignment, AssignmentStatus, AssignmentSubmission, Grade, SubmissionStatus
from schooldesk.models.records import Announcement, Notification
from schooldesk.models.profiles import StudentProfile
from schooldesk.schemas.auth import ChangePassword
from schooldesk.schemas.assessments import HomeworkSubmitRequest, TestSubmitRequest
from schooldesk.schemas.users import StudentSelfUpdate
from schooldesk.services import accounts, gradebook, reports
from schooldesk.services.grading import grade_submission, letter_grade, percentage_of
from schooldesk.services.scope import applies_to_class, class_column_in, normalize_class_name
from schooldesk.services.timetable import timetable_grid
from schooldesk.utils.dates import iso, naive_utc

logger = get_logger(__name__)

router = APIRouter()

PUBLIC_QUESTION_FIELDS = ("id", "type", "question", "options", "marks")


def student_profile(student: User) -> StudentProfile:
    if student.student_profile is None:
        raise HTTPException(status_code=404, detail="Student profile not found")
    return student.student_profile


def student_class(student: User) -> str:
    return normalize_class_name(student_profile(student).class_name)


def visible_assignments(db: Session, student: User, online: Optional[bool] = None) -> List[Assignment]:
    """Published assignments for the student's class, newest first."""
    class_name = student_class(student)
    rows = (
        db.query(Assignment)
        .filter(
            Assignment.school_id == student.school_id,
            Assignment.status != AssignmentStatus.draft,
        )
        .order_by(Assignment.created_at.desc())
        .all()
    )
    result = []
    for assignment in rows:
        if not applies_to_class(assignment.classes or ["-"], class_name):
            continue
        if online is not None and assignment.is_online_test != online:
            continue
        result.append(assignment)
    return result


def get_visible_test(db: Session, student: User, test_id: uuid.UUID) -> Assignment:
    test = db.query(Assignment).filter(
        Assignment.id == test_id,
        Assignment.school_id == student.school_id,
        Assignment.status != AssignmentStatus.draft,
    ).first()
    if not test or not test.is_online_test:
        raise HTTPException(status_code=404, detail="Test not found")
    if not applies_to_class(test.classes or ["-"], student_class(student)):
        raise HTTPException(status_code=403, detail="This test is not assigned to your class")
    return test


def my_submissions(db: Session, student: User, assignment_id: uuid.UUID) -> List[AssignmentSubmission]:
    return (
        db.query(AssignmentSubmission)
        .filter(
            AssignmentSubmission.school_id == student.school_id,
            AssignmentSubmission.assignment_id == assignment_id,
            AssignmentSubmission.student_id == student.id,
        )
        .order_by(AssignmentSubmission.submitted_at.desc())
        .all()
    )


def is_past_due(assignment: Assignment) -> bool:
    due = naive_utc(assignment.due_date)
    return bool(due and datetime.utcnow() > due)


def assignment_summary(assignment: Assignment, submission: Optional[AssignmentSubmission]) -> dict:
    return {
        "id": str(assignment.id),
        "title": assignment.title,
        "description": assignment.description,
        "instructions": assignment.instructions,
        "subject": assignment.subject.name if assignment.subject else None,
        "teacher": assignment.teacher.full_name if assignment.teacher else None,
        "assignment_type": getattr(assignment.assignment_type, "value", assignment.assignment_type),
        "max_score": assignment.max_score,
        "due_date": iso(assignment.due_date),
        "is_overdue": is_past_due(assignment),
        "submission_status": getattr(submission.status, "value", submission.status) if submission else "pending",
        "score": submission.score if submission else None,
        "is_late": submission.is_late if submission else None,
        "submitted_at": iso(submission.submitted_at) if submission else None,
    }


def grade_payload(grade: Grade) -> dict:
    return {
        "id": str(grade.id),
        "subject": grade.subject.name if grade.subject else None,
        "assessment_type": grade.assessment_type,
        "assessment_name": grade.assessment_name,
        "score": grade.score,
        "max_score": grade.max_score,
        "percentage": grade.percentage,
        "grade": grade.grade,
        "term_name": grade.term_name,
        "academic_year": grade.academic_year,
        "assessment_date": iso(grade.assessment_date),
    }


# ==================== DASHBOARD ====================

@router.get("/dashboard")
def dashboard(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_student),
):
    """Everything the student portal shows on its landing page"""
    student_profile(current_user)
    now = datetime.utcnow()

    upcoming = []
    for assignment in visible_assignments(db, current_user):
        due = naive_utc(assignment.due_date)
        if assignment.status != AssignmentStatus.active or not due or due < now:
            continue
        if my_submissions(db, current_user, assignment.id):
            continue
        upcoming.append(assignment)
    upcoming.sort(key=lambda a: naive_utc(a.due_date))

    recent_grades = (
        db.query(Grade)
        .filter(Grade.school_id == current_user.school_id, Grade.student_id == current_user.id)
        .order_by(Grade.created_at.desc())
        .limit(5)
        .all()
    )
    unread = db.query(Notification).filter(
        Notification.school_id == current_user.school_id,
        Notification.user_id == current_user.id,
        Notification.is_read == False,
    ).count()
    announcements = (
        db.query(Announcement)
        .filter(
            Announcement.school_id == current_user.school_id,
            Announcement.is_active == True,
            Announcement.audience.in_(["all", "students"]),
            or_(Announcement.expires_at == None, Announcement.expires_at > now),
        )
        .order_by(Announcement.created_at.desc())
        .limit(5)
        .all()
    )
    return {
        "success": True,
        "dashboard": {
            "profile": accounts.user_summary(current_user),
            "upcoming_assignments": [assignment_summary(a, None) for a in upcoming[:5]],
            "recent_grades": [grade_payload(g) for g in recent_grades],
            "attendance_rate": reports.attendance_rate(db, current_user.school_id, [current_user.id]),
            "unread_notifications": unread,
            "announcements": [
                {
                    "id": str(a.id),
                    "title": a.title,
                    "content": a.content,
                    "priority": a.priority,
                    "created_at": iso(a.created_at),
                }
                for a in announcements
            ],
        },
    }


@router.get("/subjects")
def list_subjects(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_student),
):
    class_name = student_class(current_user)
    subjects = (
        db.query(Subject)
        .filter(Subject.school_id == current_user.school_id, Subject.is_active == True)
        .order_by(Subject.name)
        .all()
    )
    result = []
    for subject in subjects:
        if accounts.is_management_subject(subject) or not applies_to_class(subject.classes, class_name):
            continue
        teachers = [
            link.teacher.user.full_name
            for link in subject.teachers
            if link.teacher and link.teacher.user and applies_to_class(link.classes, class_name)
        ]
        result.append({
            "id": str(subject.id),
            "name": subject.name,
            "code": subject.code,
            "category": getattr(subject.category, "value", subject.category),
            "teachers": teachers,
        })
    return {"success": True, "class_name": class_name, "subjects": result}


# ==================== ASSIGNMENTS ====================

@router.get("/assignments")
def list_assignments(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_student),
):
    assignments = []
    for assignment in visible_assignments(db, current_user, online=False):
        submissions = my_submissions(db, current_user, assignment.id)
        assignments.append(assignment_summary(assignment, submissions[0] if submissions else None))
    return {"success": True, "assignments": assignments}


@router.post("/assignments/{assignment_id}/submit")
def submit_assignment(
    assignment_id: uuid.UUID,
    submission_in: HomeworkSubmitRequest,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_student),
):
    """Turn in a text answer; submissions after the due date are flagged late"""
    assignment = next((a for a in visible_assignments(db, current_user, online=False) if a.id == assignment_id), None)
    if assignment is None:
        raise HTTPException(status_code=404, detail="Assignment not found")
    if assignment.status != AssignmentStatus.active:
        raise HTTPException(status_code=400, detail="Assignment is closed")

    existing = my_submissions(db, current_user, assignment.id)
    submission = existing[0] if existing else None
    if submission is not None and submission.status == SubmissionStatus.graded:
        raise HTTPException(status_code=400, detail="Assignment has already been graded")

    if submission is None:
        submission = AssignmentSubmission(
            school_id=current_user.school_id,
            assignment_id=assignment.id,
            student_id=current_user.id,
            max_score=assignment.max_score,
        )
        db.add(submission)
    submission.content = {"text": submission_in.text}
    submission.status = SubmissionStatus.submitted
    submission.is_late = is_past_due(assignment)
    submission.submitted_at = datetime.utcnow()
    db.commit()
    db.refresh(submission)
    return {
        "success": True,
        "message": "Assignment submitted late" if submission.is_late else "Assignment submitted successfully",
        "submission": {
            "id": str(submission.id),
            "assignment_id": str(assignment.id),
            "status": submission.status.value,
            "is_late": submission.is_late,
            "submitted_at": iso(submission.submitted_at),
        },
    }


# ==================== ONLINE TESTS ====================

@router.get("/tests")
def list_tests(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_student),
):
    tests = []
    for test in visible_assignments(db, current_user, online=True):
        attempts = my_submissions(db, current_user, test.id)
        latest = attempts[0] if attempts else None
        config = test.test_config
        shows_score = latest is not None and (
            latest.status == SubmissionStatus.graded or config.get("show_results_immediately")
        )
        tests.append({
            "id": str(test.id),
            "title": test.title,
            "subject": test.subject.name if test.subject else None,
            "duration": config.get("duration"),
            "question_count": len(config.get("questions") or []),
            "max_score": test.max_score,
            "available_from": iso(test.available_from),
            "due_date": iso(test.due_date),
            "status": getattr(test.status, "value", test.status),
            "attempts": len(attempts),
            "can_attempt": not attempts or bool(config.get("allow_retake")),
            "latest_status": getattr(latest.status, "value", latest.status) if latest else None,
            "latest_score": latest.score if shows_score else None,
        })
    return {"success": True, "tests": tests}


@router.get("/tests/result/{test_id}")
def test_result(
    test_id: uuid.UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_student),
):
    test = get_visible_test(db, current_user, test_id)
    attempts = my_submissions(db, current_user, test.id)
    if not attempts:
        raise HTTPException(status_code=404, detail="No submission found for this test")
    submission = attempts[0]
    content = submission.content or {}
    graded = content.get("graded_answers") or []

    result = {
        "test_id": str(test.id),
        "title": test.title,
        "submission_id": str(submission.id),
        "status": getattr(submission.status, "value", submission.status),
        "submitted_at": iso(submission.submitted_at),
        "attempts": len(attempts),
        "time_spent": content.get("time_spent"),
        "statistics": {
            "total_questions": len(graded),
            "correct": sum(1 for g in graded if g.get("is_correct") is True),
            "incorrect": sum(1 for g in graded if g.get("is_correct") is False and g.get("answer") not in (None, "", [])),
            "unanswered": sum(1 for g in graded if g.get("answer") in (None, "", [])),
            "pending_grading": sum(1 for g in graded if g.get("needs_grading")),
        },
    }
    if submission.status == SubmissionStatus.graded or test.test_config.get("show_results_immediately"):
        score = submission.score if submission.score is not None else content.get("objective_score")
        max_score = submission.max_score or test.max_score
        percentage = percentage_of(score, max_score)
        result.update({
            "score": score,
            "max_score": max_score,
            "percentage": percentage,
            "grade": letter_grade(percentage),
            "passed": score is not None and score >= (test.passing_score or 0),
            "feedback": submission.feedback or content.get("teacher_feedback"),
            "answers": [
                {k: g.get(k) for k in ("question_id", "answer", "is_correct", "marks", "awarded")}
                for g in graded
            ],
        })
    return {"success": True, "result": result}


@router.get("/tests/{test_id}")
def get_test(
    test_id: uuid.UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_student),
):
    """Test paper without answers, shuffled when the test asks for it.

    Shuffled options are sent as ``{"index", "text"}`` pairs; ``index`` is the
    option's stored position and is what an index answer must refer to.
    """
    test = get_visible_test(db, current_user, test_id)
    config = test.test_config
    available_from = naive_utc(test.available_from)
    if available_from and available_from > datetime.utcnow():
        raise HTTPException(status_code=403, detail="This test is not available yet")

    questions = [{k: q.get(k) for k in PUBLIC_QUESTION_FIELDS} for q in config.get("questions") or []]
    if config.get("shuffle_questions"):
        random.shuffle(questions)
    if config.get("shuffle_options"):
        for question in questions:
            options = [{"index": i, "text": text} for i, text in enumerate(question.get("options") or [])]
            random.shuffle(options)
            question["options"] = options

    attempts = my_submissions(db, current_user, test.id)
    return {
        "success": True,
        "test": {
            "id": str(test.id),
            "title": test.title,
            "description": test.description,
            "instructions": test.instructions,
            "subject": test.subject.name if test.subject else None,
            "duration": config.get("duration"),
            "max_score": test.max_score,
            "passing_score": test.passing_score,
            "due_date": iso(test.due_date),
            "allow_retake": bool(config.get("allow_retake")),
            "attempts": len(attempts),
            "questions": questions,
        },
    }


@router.post("/tests/submit")
def submit_test(
    submit_in: TestSubmitRequest,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_student),
):
    """Auto-grade the objective answers; theory answers wait for the teacher"""
    test = get_visible_test(db, current_user, submit_in.test_id)
    config = test.test_config
    if test.status != AssignmentStatus.active:
        raise HTTPException(status_code=400, detail="Test is closed")
    if my_submissions(db, current_user, test.id) and not config.get("allow_retake"):
        raise HTTPException(status_code=400, detail="You have already taken this test")

    result = grade_submission(config.get("questions") or [], submit_in.answers)
    now = datetime.utcnow()
    submission = AssignmentSubmission(
        school_id=current_user.school_id,
        assignment_id=test.id,
        student_id=current_user.id,
        content=result.to_content(submit_in.answers, submit_in.time_spent, submit_in.auto_submit),
        max_score=result.max_score,
        is_late=is_past_due(test),
        submitted_at=now,
    )
    if result.needs_manual_grading:
        submission.status = SubmissionStatus.submitted
    else:
        submission.status = SubmissionStatus.graded
        submission.score = result.objective_score
        submission.graded_at = now
    db.add(submission)
    db.flush()

    if not result.needs_manual_grading:
        gradebook.grade_assignment(db, test, current_user.id, result.objective_score, result.max_score)
    db.commit()
    db.refresh(submission)
    logger.info("test_submitted", student_id=str(current_user.id), test_id=str(test.id), status=submission.status.value)

    payload = {
        "submission_id": str(submission.id),
        "status": submission.status.value,
        "needs_manual_grading": result.needs_manual_grading,
    }
    if config.get("show_results_immediately"):
        payload.update({
            "objective_score": result.objective_score,
            "objective_max_score": result.objective_max_score,
            "max_score": result.max_score,
            "percentage": percentage_of(result.objective_score, result.max_score),
        })
    return {"success": True, "message": "Test submitted successfully", "result": payload}


# ==================== GRADES ====================

@router.get("/grades")
def list_grades(
    subject_id: Optional[uuid.UUID] = None,
    term_name: Optional[str] = None,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_student),
):
    query = db.query(Grade).filter(Grade.school_id == current_user.school_id, Grade.student_id == current_user.id)
    if subject_id:
        query = query.filter(Grade.subject_id == subject_id)
    if term_name:
        query = query.filter(Grade.term_name == term_name)
    grades = query.order_by(Grade.created_at.desc()).all()
    return {"success": True, "grades": [grade_payload(g) for g in grades]}


@router.get("/performance")
def performance(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_student),
):
    return {"success": True, "performance": reports.student_performance(db, current_user)}


@router.get("/timetable")
def timetable(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_student),
):
    class_name = student_class(current_user)
    rows = db.query(Timetable).filter(
        Timetable.school_id == current_user.school_id,
        class_column_in(Timetable.class_name, [class_name]),
        Timetable.status == TimetableStatus.approved,
    ).all()
    return {"success": True, "class_name": class_name, "timetable": timetable_grid(rows)}


# ==================== PROFILE ====================

@router.get("/profile")
def get_profile(current_user: User = Depends(deps.require_student)):
    return {"success": True, "profile": accounts.user_summary(current_user)}


@router.put("/profile")
def update_profile(
    profile_in: StudentSelfUpdate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_student),
):
    """Contact details only; class and identity fields stay with the school"""
    changes = profile_in.model_dump(exclude_unset=True)
    profile = student_profile(current_user)
    for field in ("phone", "address", "avatar"):
        if field in changes:
            setattr(current_user, field, changes[field])
    for field in ("parent_phone", "parent_email"):
        if field in changes:
            setattr(profile, field, changes[field])
    db.commit()
    db.refresh(current_user)
    return {"success": True, "profile": accounts.user_summary(current_user)}


@router.post("/change-password")
def change_password(
    password_in: ChangePassword,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_student),
):
    if not security.verify_password(password_in.current_password, current_user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    errors = security.validate_password(password_in.new_password)
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors))
    current_user.password_hash = security.get_password_hash(password_in.new_password)
    db.commit()
    logger.info("password_changed", user_id=str(current_user.id))
    return {"success": True, "message": "Password changed successfully"}
