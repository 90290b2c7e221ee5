import copy
import uuid
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from schooldesk.api import deps
from schooldesk.core.logging import get_logger
from schooldesk.models.auth import User
from schooldesk.models.profiles import StudentProfile
from schooldesk.models.academics import Subject, TeacherSubject, Timetable
from schooldesk.models.assessments import (
    Assignment,
    AssignmentStatus,
    AssignmentSubmission,
    Grade,
    SubmissionStatus,
)
from schooldesk.schemas.assessments import (
    AssignmentCreate,
    AssignmentUpdate,
    BulkGradeRequest,
    GradeSubmissionRequest,
    OnlineTestCreate,
    TheoryGradeRequest,
)
from schooldesk.services import accounts, audit, gradebook
from schooldesk.services.grading import apply_theory_grades, percentage_of
from schooldesk.services.scope import class_prefix_filter, normalize_class_list, student_query
from schooldesk.utils.dates import iso, weekday_name

logger = get_logger(__name__)

router = APIRouter()

SUBMISSION_STATUSES = [s.value for s in SubmissionStatus]


def my_subject_links(db: Session, teacher: User) -> List[TeacherSubject]:
    profile = teacher.teacher_profile
    if profile is None:
        return []
    rows = (
        db.query(TeacherSubject)
        .join(Subject, Subject.id == TeacherSubject.subject_id)
        .filter(
            TeacherSubject.teacher_id == profile.id,
            Subject.school_id == teacher.school_id,
            Subject.is_active == True,
        )
        .order_by(Subject.name)
        .all()
    )
    return [row for row in rows if not accounts.is_management_subject(row.subject)]


def owned_link(db: Session, teacher: User, subject_id: uuid.UUID) -> TeacherSubject:
    for link in my_subject_links(db, teacher):
        if link.subject_id == subject_id:
            return link
    raise HTTPException(status_code=403, detail="You are not assigned to this subject")


def link_classes(link: TeacherSubject) -> List[str]:
    return normalize_class_list(link.classes) or normalize_class_list(link.subject.classes)


def subject_students(db: Session, teacher: User, link: TeacherSubject):
    query = student_query(db, teacher.school_id)
    condition = class_prefix_filter(StudentProfile.class_name, link_classes(link))
    if condition is not None:
        query = query.filter(condition)
    return query


def own_assignment(db: Session, teacher: User, assignment_id: uuid.UUID) -> Assignment:
    assignment = db.query(Assignment).filter(
        Assignment.id == assignment_id,
        Assignment.school_id == teacher.school_id,
        Assignment.teacher_id == teacher.id,
    ).first()
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return assignment


def own_submission(db: Session, teacher: User, submission_id: uuid.UUID) -> AssignmentSubmission:
    submission = (
        db.query(AssignmentSubmission)
        .join(Assignment, Assignment.id == AssignmentSubmission.assignment_id)
        .filter(
            AssignmentSubmission.id == submission_id,
            AssignmentSubmission.school_id == teacher.school_id,
            Assignment.teacher_id == teacher.id,
        )
        .first()
    )
    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")
    return submission


def teacher_assignments(db: Session, teacher: User, subject_id: Optional[uuid.UUID] = None) -> List[Assignment]:
    query = db.query(Assignment).filter(
        Assignment.school_id == teacher.school_id,
        Assignment.teacher_id == teacher.id,
    )
    if subject_id:
        query = query.filter(Assignment.subject_id == subject_id)
    return query.order_by(Assignment.created_at.desc()).all()


def assignment_payload(assignment: Assignment, include_questions: bool = False) -> dict:
    submissions = assignment.submissions
    data = {
        "id": str(assignment.id),
        "subject_id": str(assignment.subject_id),
        "subject": assignment.subject.name if assignment.subject else None,
        "title": assignment.title,
        "description": assignment.description,
        "instructions": assignment.instructions,
        "assignment_type": getattr(assignment.assignment_type, "value", assignment.assignment_type),
        "classes": assignment.classes or [],
        "max_score": assignment.max_score,
        "passing_score": assignment.passing_score,
        "status": getattr(assignment.status, "value", assignment.status),
        "available_from": iso(assignment.available_from),
        "due_date": iso(assignment.due_date),
        "is_online_test": assignment.is_online_test,
        "submission_count": len(submissions),
        "graded_count": sum(1 for s in submissions if s.status == SubmissionStatus.graded),
        "created_at": iso(assignment.created_at),
    }
    if assignment.is_online_test:
        config = assignment.test_config
        data["settings"] = {k: v for k, v in config.items() if k != "questions"}
        data["question_count"] = len(config.get("questions") or [])
        if include_questions:
            data["questions"] = config.get("questions") or []
    return data


def submission_payload(submission: AssignmentSubmission) -> dict:
    assignment = submission.assignment
    return {
        "id": str(submission.id),
        "assignment_id": str(submission.assignment_id),
        "assignment_title": assignment.title if assignment else None,
        "is_online_test": assignment.is_online_test if assignment else False,
        "student_id": str(submission.student_id),
        "student_name": submission.student.full_name if submission.student else None,
        "status": getattr(submission.status, "value", submission.status),
        "score": submission.score,
        "max_score": submission.max_score,
        "percentage": percentage_of(submission.score, submission.max_score) if submission.score is not None else None,
        "is_late": submission.is_late,
        "feedback": submission.feedback,
        "content": submission.content,
        "submitted_at": iso(submission.submitted_at),
        "graded_at": iso(submission.graded_at),
    }


# ==================== DASHBOARD ====================

@router.get("/dashboard")
def dashboard(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_subject_teacher),
):
    """Subjects, pending grading and today's periods for the teacher"""
    links = my_subject_links(db, current_user)
    student_ids = set()
    for link in links:
        student_ids.update(user.id for user, _ in subject_students(db, current_user, link).all())

    assignments = teacher_assignments(db, current_user)
    assignment_ids = [a.id for a in assignments]
    pending = db.query(AssignmentSubmission).filter(
        AssignmentSubmission.school_id == current_user.school_id,
        AssignmentSubmission.assignment_id.in_(assignment_ids),
        AssignmentSubmission.status == SubmissionStatus.submitted,
    ).count() if assignment_ids else 0

    now = datetime.utcnow()
    upcoming = (
        db.query(Assignment)
        .filter(
            Assignment.school_id == current_user.school_id,
            Assignment.teacher_id == current_user.id,
            Assignment.status == AssignmentStatus.active,
            Assignment.due_date >= now,
        )
        .order_by(Assignment.due_date)
        .limit(5)
        .all()
    )
    schedule = (
        db.query(Timetable)
        .filter(
            Timetable.school_id == current_user.school_id,
            Timetable.teacher_id == current_user.id,
            Timetable.day_of_week == weekday_name(date.today()),
        )
        .order_by(Timetable.period)
        .all()
    )
    return {
        "success": True,
        "dashboard": {
            "subjects": [
                {"id": str(l.subject_id), "name": l.subject.name, "code": l.subject.code, "classes": link_classes(l)}
                for l in links
            ],
            "total_students": len(student_ids),
            "total_assignments": len(assignments),
            "pending_grading": pending,
            "upcoming_assignments": [assignment_payload(a) for a in upcoming],
            "today_schedule": [
                {
                    "period": row.period,
                    "start_time": row.start_time,
                    "end_time": row.end_time,
                    "class_name": row.class_name,
                    "subject": row.subject.name if row.subject else None,
                    "room": row.room,
                }
                for row in schedule
            ],
        },
    }


@router.get("/subjects")
def list_subjects(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_subject_teacher),
):
    subjects = []
    for link in my_subject_links(db, current_user):
        subjects.append({
            "id": str(link.subject_id),
            "name": link.subject.name,
            "code": link.subject.code,
            "category": getattr(link.subject.category, "value", link.subject.category),
            "classes": link_classes(link),
            "student_count": subject_students(db, current_user, link).count(),
        })
    return {"success": True, "subjects": subjects}


@router.get("/students")
def list_students(
    subject_id: Optional[uuid.UUID] = None,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_subject_teacher),
):
    links = [owned_link(db, current_user, subject_id)] if subject_id else my_subject_links(db, current_user)
    subject_ids = [l.subject_id for l in links]

    seen = {}
    for link in links:
        for user, profile in subject_students(db, current_user, link).order_by(User.first_name, User.last_name).all():
            seen.setdefault(user.id, (user, profile))

    averages = dict(
        db.query(Grade.student_id, func.avg(Grade.percentage))
        .filter(
            Grade.school_id == current_user.school_id,
            Grade.subject_id.in_(subject_ids),
            Grade.student_id.in_(list(seen)),
        )
        .group_by(Grade.student_id)
        .all()
    ) if seen and subject_ids else {}

    students = []
    for user, profile in seen.values():
        average = averages.get(user.id)
        students.append({
            "id": str(user.id),
            "name": user.full_name,
            "email": user.email,
            "student_id": profile.student_id,
            "class_name": profile.class_name,
            "average": round(float(average), 1) if average is not None else None,
        })
    return {"success": True, "students": students, "total": len(students)}


# ==================== ASSIGNMENTS ====================

@router.get("/assignments")
def list_assignments(
    subject_id: Optional[uuid.UUID] = None,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_subject_teacher),
):
    if subject_id:
        owned_link(db, current_user, subject_id)
    assignments = [a for a in teacher_assignments(db, current_user, subject_id) if not a.is_online_test]
    return {"success": True, "assignments": [assignment_payload(a) for a in assignments]}


@router.post("/assignments", status_code=201)
def create_assignment(
    assignment_in: AssignmentCreate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_subject_teacher),
):
    owned_link(db, current_user, assignment_in.subject_id)
    if assignment_in.passing_score > assignment_in.max_score:
        raise HTTPException(status_code=400, detail="Passing score cannot exceed the maximum score")

    data = assignment_in.model_dump()
    data["classes"] = normalize_class_list(data["classes"])
    assignment = Assignment(school_id=current_user.school_id, teacher_id=current_user.id, **data)
    db.add(assignment)
    db.flush()
    audit.record(db, current_user, "create", "assignment", assignment.id, f"Created assignment {assignment.title}")
    db.commit()
    db.refresh(assignment)
    return {"success": True, "assignment": assignment_payload(assignment)}


@router.get("/assignments/{assignment_id}")
def get_assignment(
    assignment_id: uuid.UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_subject_teacher),
):
    assignment = own_assignment(db, current_user, assignment_id)
    data = assignment_payload(assignment, include_questions=True)
    data["submissions"] = [submission_payload(s) for s in assignment.submissions]
    return {"success": True, "assignment": data}


@router.put("/assignments/{assignment_id}")
def update_assignment(
    assignment_id: uuid.UUID,
    assignment_in: AssignmentUpdate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_subject_teacher),
):
    assignment = own_assignment(db, current_user, assignment_id)
    changes = assignment_in.model_dump(exclude_unset=True)
    if "classes" in changes:
        changes["classes"] = normalize_class_list(changes["classes"])
        if not changes["classes"]:
            raise HTTPException(status_code=400, detail="At least one class is required")
    max_score = changes.get("max_score") or assignment.max_score
    passing = changes.get("passing_score", assignment.passing_score)
    if passing is not None and passing > max_score:
        raise HTTPException(status_code=400, detail="Passing score cannot exceed the maximum score")

    for field, value in changes.items():
        setattr(assignment, field, value)
    audit.record(db, current_user, "update", "assignment", assignment.id, f"Updated assignment {assignment.title}")
    db.commit()
    db.refresh(assignment)
    return {"success": True, "assignment": assignment_payload(assignment)}


@router.delete("/assignments/{assignment_id}")
def delete_assignment(
    assignment_id: uuid.UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_subject_teacher),
):
    assignment = own_assignment(db, current_user, assignment_id)
    db.query(Grade).filter(Grade.assignment_id == assignment.id).update(
        {Grade.assignment_id: None}, synchronize_session=False
    )
    audit.record(db, current_user, "delete", "assignment", assignment.id, f"Deleted assignment {assignment.title}")
    db.delete(assignment)
    db.commit()
    return {"success": True, "message": "Assignment deleted successfully"}


# ==================== ONLINE TESTS ====================

@router.get("/online-tests")
def list_online_tests(
    subject_id: Optional[uuid.UUID] = None,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_subject_teacher),
):
    if subject_id:
        owned_link(db, current_user, subject_id)
    tests = [a for a in teacher_assignments(db, current_user, subject_id) if a.is_online_test]
    return {"success": True, "tests": [assignment_payload(t) for t in tests]}


@router.post("/online-tests", status_code=201)
def create_online_test(
    test_in: OnlineTestCreate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_subject_teacher),
):
    """Create a test; objective questions are graded automatically on submit"""
    owned_link(db, current_user, test_in.subject_id)

    questions = []
    for index, question in enumerate(test_in.questions):
        if question.is_objective and question.correct_answer in (None, "", []):
            raise HTTPException(status_code=400, detail=f"Question {index + 1} needs a correct answer")
        item = question.model_dump()
        item["id"] = question.id or f"q{index + 1}"
        questions.append(item)
    ids = [q["id"] for q in questions]
    if len(set(ids)) != len(ids):
        raise HTTPException(status_code=400, detail="Question ids must be unique")

    max_score = sum(q["marks"] for q in questions)
    if test_in.passing_score > max_score:
        raise HTTPException(status_code=400, detail="Passing score cannot exceed the total marks")

    test = Assignment(
        school_id=current_user.school_id,
        subject_id=test_in.subject_id,
        teacher_id=current_user.id,
        title=test_in.title,
        description=test_in.description,
        instructions=test_in.instructions,
        assignment_type=test_in.assignment_type,
        classes=normalize_class_list(test_in.classes),
        max_score=max_score,
        passing_score=test_in.passing_score,
        status=AssignmentStatus.active,
        available_from=test_in.available_from,
        due_date=test_in.due_date,
        test_config={
            "duration": test_in.duration,
            "allow_retake": test_in.allow_retake,
            "show_results_immediately": test_in.show_results_immediately,
            "shuffle_questions": test_in.shuffle_questions,
            "shuffle_options": test_in.shuffle_options,
            "questions": questions,
        },
    )
    db.add(test)
    db.flush()
    audit.record(db, current_user, "create", "online_test", test.id, f"Created online test {test.title}", {"questions": len(questions)})
    db.commit()
    db.refresh(test)
    return {"success": True, "test": assignment_payload(test, include_questions=True)}


@router.post("/online-tests/grade-theory")
def grade_theory(
    grade_in: TheoryGradeRequest,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_subject_teacher),
):
    """Apply manual marks to theory answers and finalize the submission"""
    submission = own_submission(db, current_user, grade_in.submission_id)
    assignment = submission.assignment
    if not assignment.is_online_test:
        raise HTTPException(status_code=400, detail="Submission is not for an online test")

    content = copy.deepcopy(submission.content or {})
    try:
        total = apply_theory_grades(content, grade_in.theory_grades, grade_in.feedback)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    submission.content = content
    flag_modified(submission, "content")
    submission.score = total
    submission.status = SubmissionStatus.graded
    submission.feedback = grade_in.feedback
    submission.graded_by_id = current_user.id
    submission.graded_at = datetime.utcnow()

    max_score = submission.max_score or assignment.max_score
    grade = gradebook.grade_assignment(db, assignment, submission.student_id, total, max_score, current_user.id)
    gradebook.notify(
        db, current_user.school_id, submission.student_id,
        "Test graded", f"Your result for {assignment.title} is ready: {grade.percentage}% ({grade.grade})",
        type="success", action_url=f"/student/tests/result/{assignment.id}",
    )
    audit.record(db, current_user, "grade", "submission", submission.id, f"Graded theory answers for {assignment.title}")
    db.commit()
    db.refresh(submission)
    return {"success": True, "submission": submission_payload(submission)}


# ==================== GRADING ====================

@router.get("/grading")
def list_submissions(
    status: Optional[str] = None,
    assignment_id: Optional[uuid.UUID] = None,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_subject_teacher),
):
    query = (
        db.query(AssignmentSubmission)
        .join(Assignment, Assignment.id == AssignmentSubmission.assignment_id)
        .filter(
            AssignmentSubmission.school_id == current_user.school_id,
            Assignment.teacher_id == current_user.id,
        )
    )
    if status:
        if status not in SUBMISSION_STATUSES:
            raise HTTPException(status_code=400, detail=f"Invalid status. Must be one of: {', '.join(SUBMISSION_STATUSES)}")
        query = query.filter(AssignmentSubmission.status == SubmissionStatus(status))
    if assignment_id:
        query = query.filter(AssignmentSubmission.assignment_id == assignment_id)
    submissions = query.order_by(AssignmentSubmission.submitted_at.desc()).all()
    return {"success": True, "submissions": [submission_payload(s) for s in submissions], "total": len(submissions)}


@router.post("/grading")
def grade_submission(
    grade_in: GradeSubmissionRequest,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_subject_teacher),
):
    submission = own_submission(db, current_user, grade_in.submission_id)
    assignment = submission.assignment
    max_score = submission.max_score or assignment.max_score
    if grade_in.score > max_score:
        raise HTTPException(status_code=400, detail=f"Score cannot exceed the maximum of {max_score}")

    submission.score = grade_in.score
    submission.max_score = max_score
    submission.feedback = grade_in.feedback
    submission.status = SubmissionStatus.graded
    submission.graded_by_id = current_user.id
    submission.graded_at = datetime.utcnow()

    grade = gradebook.grade_assignment(db, assignment, submission.student_id, grade_in.score, max_score, current_user.id)
    gradebook.notify(
        db, current_user.school_id, submission.student_id,
        "Assignment graded", f"{assignment.title}: {grade.score}/{grade.max_score} ({grade.grade})",
        type="success", action_url="/student/grades",
    )
    audit.record(db, current_user, "grade", "submission", submission.id, f"Graded {assignment.title}", {"score": grade_in.score})
    db.commit()
    db.refresh(submission)
    return {"success": True, "submission": submission_payload(submission)}


@router.post("/grading/bulk")
def bulk_grade(
    bulk_in: BulkGradeRequest,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_subject_teacher),
):
    """Record one assessment's grades for many students"""
    if not bulk_in.grades:
        raise HTTPException(status_code=400, detail="Grades array is required and cannot be empty")
    link = owned_link(db, current_user, bulk_in.subject_id)
    allowed = {user.id for user, _ in subject_students(db, current_user, link).all()}
    results = {"successful": [], "failed": []}

    for entry in bulk_in.grades:
        if entry.student_id not in allowed:
            results["failed"].append({"student_id": str(entry.student_id), "error": "Student does not take this subject"})
            continue
        if entry.score > bulk_in.max_score:
            results["failed"].append({"student_id": str(entry.student_id), "error": f"Score exceeds maximum of {bulk_in.max_score}"})
            continue
        try:
            with db.begin_nested():
                grade = gradebook.record_grade(
                    db,
                    school_id=current_user.school_id,
                    student_id=entry.student_id,
                    subject_id=link.subject_id,
                    score=entry.score,
                    max_score=bulk_in.max_score,
                    assessment_type=bulk_in.assessment_type,
                    assessment_name=bulk_in.assessment_name,
                    teacher_id=current_user.id,
                    term_name=bulk_in.term_name,
                    academic_year=bulk_in.academic_year,
                    assessment_date=bulk_in.assessment_date,
                )
            results["successful"].append({"student_id": str(entry.student_id), "percentage": grade.percentage, "grade": grade.grade})
        except Exception as e:
            logger.warning("bulk_grade_failed", student_id=str(entry.student_id), error=str(e))
            results["failed"].append({"student_id": str(entry.student_id), "error": str(e)})

    audit.record(
        db, current_user, "grade", "grade", None,
        f"Recorded {bulk_in.assessment_name} for {len(results['successful'])} student(s)",
        {"successful": len(results["successful"]), "failed": len(results["failed"])},
    )
    db.commit()
    return {"success": True, "results": results}
