from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import date, datetime
from pydantic import BaseModel, Field

from schooldesk.models.auth import UserRole
from schooldesk.models.profiles import TeacherDepartment
from schooldesk.schemas.academics import TeacherSubjectAssignment


class UserCreate(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = Field(pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    username: Optional[str] = None
    password: str
    role: UserRole
    teacher_type: Optional[TeacherDepartment] = None
    coordinator_classes: List[str] = []
    assigned_class: Optional[str] = None
    stage: Optional[str] = None
    phone: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    class_name: Optional[str] = None
    section: Optional[str] = None


class UserUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    phone: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    password: Optional[str] = None


class UserResponse(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    email: str
    username: Optional[str] = None
    role: UserRole
    is_active: bool
    phone: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    avatar: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StudentProfileResponse(BaseModel):
    student_id: Optional[str] = None
    class_name: Optional[str] = None
    section: Optional[str] = None
    parent_name: Optional[str] = None
    parent_phone: Optional[str] = None
    parent_email: Optional[str] = None
    admission_date: Optional[date] = None

    class Config:
        from_attributes = True


class TeacherProfileResponse(BaseModel):
    employee_id: Optional[str] = None
    department: TeacherDepartment
    stage: Optional[str] = None
    assigned_class: Optional[str] = None
    qualification: Optional[str] = None
    experience_years: Optional[int] = 0

    class Config:
        from_attributes = True


class StudentCreate(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = Field(pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    password: Optional[str] = None
    student_id: Optional[str] = None
    class_name: str = Field(min_length=1)
    section: Optional[str] = None
    phone: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    parent_name: Optional[str] = None
    parent_phone: Optional[str] = None
    parent_email: Optional[str] = None


class StudentUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    class_name: Optional[str] = None
    section: Optional[str] = None
    parent_name: Optional[str] = None
    parent_phone: Optional[str] = None
    parent_email: Optional[str] = None


class StudentSelfUpdate(BaseModel):
    phone: Optional[str] = None
    address: Optional[str] = None
    avatar: Optional[str] = None
    parent_phone: Optional[str] = None
    parent_email: Optional[str] = None


class ImportOptions(BaseModel):
    skip_duplicates: bool = False
    update_duplicates: bool = False
    include_passwords: bool = False
    default_password: Optional[str] = None


class StudentImportRequest(BaseModel):
    # Rows are validated one at a time by the importer.
    students: List[Dict[str, Any]]
    options: ImportOptions = ImportOptions()


class TeacherUpdate(BaseModel):
    department: Optional[TeacherDepartment] = None
    stage: Optional[str] = None
    assigned_class: Optional[str] = None
    qualification: Optional[str] = None
    experience_years: Optional[int] = None
    is_active: Optional[bool] = None
    subjects: Optional[List[TeacherSubjectAssignment]] = None
