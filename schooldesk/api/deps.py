from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from pydantic import ValidationError
from sqlalchemy.orm import Session

from schooldesk.core import security
from schooldesk.core.config import settings
from schooldesk.core.database import get_db
from schooldesk.core.logging import bind_request_context
from schooldesk.models.auth import User, UserSession
from schooldesk.models.profiles import TeacherProfile
from schooldesk.schemas.auth import TokenPayload

# Header extraction only; the auth cookie takes precedence.
reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_PREFIX}/auth/school/login",
    auto_error=False,
)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_token(request: Request, header_token: Optional[str] = Depends(reusable_oauth2)) -> Optional[str]:
    return request.cookies.get(settings.AUTH_COOKIE_NAME) or header_token


def get_current_user(
    db: Session = Depends(get_db),
    token: Optional[str] = Depends(get_token),
) -> User:
    if not token:
        raise _unauthorized("Authentication required")

    try:
        payload = security.decode_access_token(token)
        token_data = TokenPayload(**payload)
        user_id = UUID(token_data.sub)
    except (JWTError, ValidationError, TypeError, ValueError):
        raise _unauthorized("Invalid or expired token")

    session = db.query(UserSession).filter(
        UserSession.token_hash == security.hash_token(token),
        UserSession.user_id == user_id,
        UserSession.is_active == True,
        UserSession.expires_at > datetime.utcnow(),
    ).first()
    if not session:
        raise _unauthorized("Session expired or revoked")

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise _unauthorized("User not found or inactive")
    if token_data.school_id and str(user.school_id) != token_data.school_id:
        raise _unauthorized("Invalid or expired token")
    if not user.school or not user.school.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="School account is inactive",
        )
    bind_request_context(user_id=str(user.id), school_id=str(user.school_id))
    return user


class RoleChecker:
    def __init__(self, allowed_roles: List[str]):
        self.allowed_roles = allowed_roles

    def __call__(self, current_user: User = Depends(get_current_user)) -> User:
        role = current_user.role.value if hasattr(current_user.role, "value") else current_user.role
        if role not in self.allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied - {' or '.join(self.allowed_roles)} privileges required",
            )
        return current_user


class DepartmentChecker:
    """Dependency to verify the user is a teacher in the given department"""

    def __init__(self, department: str):
        self.department = department

    def __call__(self, current_user: User = Depends(get_current_user)) -> User:
        profile: Optional[TeacherProfile] = current_user.teacher_profile
        department = getattr(profile.department, "value", profile.department) if profile else None
        if current_user.role != "teacher" or department != self.department:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied - {self.department.replace('_', ' ')} access required",
            )
        return current_user


require_admin = RoleChecker(["admin"])
require_student = RoleChecker(["student"])
require_director = DepartmentChecker("director")
require_coordinator = DepartmentChecker("coordinator")
require_class_teacher = DepartmentChecker("class_teacher")
require_subject_teacher = DepartmentChecker("subject_teacher")
