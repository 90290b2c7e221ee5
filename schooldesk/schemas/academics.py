from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field

from schooldesk.models.academics import SubjectCategory


class SubjectBase(BaseModel):
    name: str = Field(min_length=1)
    code: str = Field(min_length=1)
    description: Optional[str] = None
    category: SubjectCategory = SubjectCategory.CORE
    classes: List[str] = []


class SubjectCreate(SubjectBase):
    teacher_ids: List[UUID] = []


class SubjectUpdate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None
    category: Optional[SubjectCategory] = None
    classes: Optional[List[str]] = None
    is_active: Optional[bool] = None
    teacher_ids: Optional[List[UUID]] = None


class SubjectResponse(SubjectBase):
    id: UUID
    is_active: bool

    class Config:
        from_attributes = True


class TeacherSubjectAssignment(BaseModel):
    subject_id: UUID
    classes: List[str] = []


class TimetableGenerateRequest(BaseModel):
    class_name: str = Field(min_length=1)
    overwrite: bool = False


class TimetableApproveRequest(BaseModel):
    class_name: str = Field(min_length=1)
