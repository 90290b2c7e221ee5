from typing import Any, Dict, List, Literal, Optional
from uuid import UUID
from datetime import date, datetime
from pydantic import BaseModel, Field

from schooldesk.models.assessments import AssignmentStatus, AssignmentType
from schooldesk.services.grading import OBJECTIVE_TYPES

QuestionType = Literal["objective", "multiple_choice", "true_false", "short_answer", "fill_blank", "theory", "essay"]


class AssignmentCreate(BaseModel):
    subject_id: UUID
    title: str = Field(min_length=1)
    description: Optional[str] = None
    instructions: Optional[str] = None
    assignment_type: AssignmentType = AssignmentType.homework
    classes: List[str] = Field(min_length=1)
    max_score: float = Field(default=100, gt=0)
    passing_score: float = Field(default=50, ge=0)
    status: AssignmentStatus = AssignmentStatus.active
    available_from: Optional[datetime] = None
    due_date: Optional[datetime] = None


class AssignmentUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    instructions: Optional[str] = None
    classes: Optional[List[str]] = None
    max_score: Optional[float] = Field(default=None, gt=0)
    passing_score: Optional[float] = Field(default=None, ge=0)
    status: Optional[AssignmentStatus] = None
    available_from: Optional[datetime] = None
    due_date: Optional[datetime] = None


class QuestionIn(BaseModel):
    id: Optional[str] = None
    type: QuestionType = "multiple_choice"
    question: str = Field(min_length=1)
    options: List[str] = []
    correct_answer: Optional[Any] = None
    marks: float = Field(default=1, gt=0)
    explanation: Optional[str] = None
    sample_answer: Optional[str] = None

    @property
    def is_objective(self) -> bool:
        return self.type in OBJECTIVE_TYPES


class OnlineTestCreate(BaseModel):
    subject_id: UUID
    title: str = Field(min_length=1)
    description: Optional[str] = None
    instructions: Optional[str] = None
    assignment_type: AssignmentType = AssignmentType.test
    classes: List[str] = Field(min_length=1)
    duration: int = Field(default=60, gt=0)  # minutes
    passing_score: float = Field(default=50, ge=0)
    allow_retake: bool = False
    show_results_immediately: bool = True
    shuffle_questions: bool = False
    shuffle_options: bool = False
    available_from: Optional[datetime] = None
    due_date: Optional[datetime] = None
    questions: List[QuestionIn] = Field(min_length=1)


class GradeSubmissionRequest(BaseModel):
    submission_id: UUID
    score: float = Field(ge=0)
    feedback: Optional[str] = None


class BulkGradeEntry(BaseModel):
    student_id: UUID
    score: float = Field(ge=0)


class BulkGradeRequest(BaseModel):
    subject_id: UUID
    assessment_type: str = "test"
    assessment_name: str = Field(min_length=1)
    max_score: float = Field(default=100, gt=0)
    term_name: Optional[str] = None
    academic_year: Optional[str] = None
    assessment_date: Optional[date] = None
    grades: List[BulkGradeEntry]


class TheoryGradeRequest(BaseModel):
    submission_id: UUID
    # question id -> awarded marks
    theory_grades: Dict[str, float]
    feedback: Optional[str] = None


class TestSubmitRequest(BaseModel):
    test_id: UUID
    answers: Dict[str, Any] = {}
    time_spent: Optional[int] = None  # seconds
    auto_submit: bool = False


class HomeworkSubmitRequest(BaseModel):
    text: str = Field(min_length=1)
