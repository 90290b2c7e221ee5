"""Class-name scoping shared by the teacher and director endpoints.

Class names are stored normalized (upper case, single spaces). Lookups compare
``upper(trim(column))`` against normalized input.
"""
import re
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from schooldesk.models.auth import User, UserRole
from schooldesk.models.profiles import StudentProfile, TeacherProfile
from schooldesk.models.academics import Subject, TeacherSubject


def normalize_class_name(name: Optional[str]) -> str:
    if not name:
        return ""
    return re.sub(r"\s+", " ", str(name)).strip().upper()


def normalize_class_list(names: Optional[Iterable[str]]) -> List[str]:
    seen = []
    for name in names or []:
        cleaned = normalize_class_name(name)
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


def class_column_in(column, class_names: Iterable[str]):
    return func.upper(func.trim(column)).in_(normalize_class_list(class_names))


def teacher_classes(db: Session, user: User) -> List[str]:
    """A teacher's classes: their assigned class, else every class of their subjects."""
    profile = user.teacher_profile
    if profile is None:
        return []
    if profile.assigned_class:
        return [normalize_class_name(profile.assigned_class)]
    classes: List[str] = []
    rows = (
        db.query(TeacherSubject)
        .join(Subject, TeacherSubject.subject_id == Subject.id)
        .filter(
            TeacherSubject.teacher_id == profile.id,
            Subject.school_id == user.school_id,
            Subject.is_active == True,
        )
        .all()
    )
    for row in rows:
        for name in normalize_class_list(row.classes):
            if name not in classes:
                classes.append(name)
    return classes


def stage_filter(column, stage: Optional[str]):
    """Director scope: ``None`` means the whole school."""
    if not stage:
        return None
    return class_prefix_filter(column, [stage])


def student_query(db: Session, school_id: UUID, class_names: Optional[Iterable[str]] = None):
    """Active students of a school joined to their profile, optionally narrowed to classes."""
    query = (
        db.query(User, StudentProfile)
        .join(StudentProfile, StudentProfile.user_id == User.id)
        .filter(
            User.school_id == school_id,
            User.role == UserRole.student,
            User.is_active == True,
        )
    )
    if class_names is not None:
        query = query.filter(class_column_in(StudentProfile.class_name, class_names))
    return query


def search_filter(search: Optional[str]):
    if not search:
        return None
    term = f"%{search.strip().lower()}%"
    return or_(
        func.lower(User.first_name).like(term),
        func.lower(User.last_name).like(term),
        func.lower(User.email).like(term),
        func.lower(func.coalesce(User.username, "")).like(term),
    )


DIGITS = "0123456789"


def covers_class(entry: str, class_name: str) -> bool:
    """Whether a normalized entry names ``class_name`` or one of its stages.

    A prefix only counts at a letter/digit boundary: ``JSS`` and ``JSS1`` cover
    ``JSS1A`` but ``JSS1`` does not cover ``JSS10``.
    """
    if not entry or not class_name.startswith(entry):
        return False
    if class_name == entry:
        return True
    following = class_name[len(entry)]
    if entry[-1] in DIGITS:
        return following not in DIGITS
    return following in DIGITS or following == " "


def applies_to_class(classes: Optional[Iterable[str]], class_name: Optional[str]) -> bool:
    """Empty ``classes`` means every class; entries may be full names or stage prefixes."""
    target = normalize_class_name(class_name)
    entries = normalize_class_list(classes)
    if not entries:
        return True
    return bool(target) and any(covers_class(entry, target) for entry in entries)


def subject_applies_to(subject: Subject, class_name: str) -> bool:
    return applies_to_class(subject.classes, class_name)


def teacher_profile_for(db: Session, user_id: UUID) -> Optional[TeacherProfile]:
    return db.query(TeacherProfile).filter(TeacherProfile.user_id == user_id).first()


def class_prefix_filter(column, entries: Iterable[str]):
    """Match full class names or stage prefixes; ``None`` when ``entries`` is empty."""
    names = normalize_class_list(entries)
    if not names:
        return None
    normalized = func.upper(func.trim(column))
    conditions = []
    for name in names:
        following = func.substr(normalized, len(name) + 1, 1)
        if name[-1] in DIGITS:
            boundary = following.notin_(list(DIGITS))
        else:
            boundary = following.in_(list(DIGITS + " "))
        conditions.append(or_(normalized == name, and_(normalized.like(f"{name}%"), boundary)))
    return or_(*conditions)
