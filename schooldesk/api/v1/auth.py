from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from schooldesk.api import deps
from schooldesk.core import security
from schooldesk.core.config import settings
from schooldesk.core.logging import get_logger
from schooldesk.models.auth import School, User, UserRole, UserSession
from schooldesk.schemas.auth import SchoolLogin
from schooldesk.services.accounts import user_summary
from schooldesk.utils.dates import naive_utc

logger = get_logger(__name__)

router = APIRouter()

TEACHER_REDIRECTS = {
    "director": "/teachers/director/dashboard",
    "coordinator": "/teachers/coordinator/dashboard",
    "class_teacher": "/teachers/class/dashboard",
    "subject_teacher": "/teachers/subject/dashboard",
}


def redirect_for(user: User) -> str:
    if user.role == UserRole.admin:
        return "/admin/dashboard"
    if user.role == UserRole.student:
        return "/student/dashboard"
    profile = user.teacher_profile
    department = getattr(profile.department, "value", profile.department) if profile else None
    return TEACHER_REDIRECTS.get(department, "/teachers/subject/dashboard")


def find_login_user(db: Session, school: School, identifier: str, role: UserRole) -> Optional[User]:
    ident = identifier.strip().lower()
    return db.query(User).filter(
        User.school_id == school.id,
        User.role == role,
        or_(func.lower(User.email) == ident, func.lower(User.username) == ident),
    ).first()


@router.post("/school/login")
def school_login(
    login_in: SchoolLogin,
    request: Request,
    response: Response,
    db: Session = Depends(deps.get_db),
) -> Any:
    """Log a school user in and set the auth cookie"""
    school = db.query(School).filter(School.slug == login_in.school_slug.strip().lower()).first()
    if not school or not school.is_active:
        raise HTTPException(status_code=404, detail="School not found or inactive")

    user = find_login_user(db, school, login_in.identifier, login_in.role)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    now = datetime.utcnow()
    lock_until = naive_utc(user.lock_until)
    if lock_until and lock_until > now:
        raise HTTPException(
            status_code=status.HTTP_423_LOCKED,
            detail=f"Account locked. Try again after {lock_until.strftime('%H:%M:%S')} UTC",
        )

    if not security.verify_password(login_in.password, user.password_hash):
        user.login_attempts = (user.login_attempts or 0) + 1
        if user.login_attempts >= settings.MAX_LOGIN_ATTEMPTS:
            logger.warning("account_locked", user_id=str(user.id), attempts=user.login_attempts)
            user.lock_until = now + timedelta(minutes=settings.LOCKOUT_MINUTES)
            user.login_attempts = 0
        db.commit()
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is deactivated")

    user.login_attempts = 0
    user.lock_until = None
    user.last_login = now

    if login_in.remember_me:
        lifetime = timedelta(days=settings.REMEMBER_ME_EXPIRE_DAYS)
    else:
        lifetime = timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS)

    token = security.create_access_token(
        user.id,
        claims={"role": user.role.value, "school_id": str(user.school_id)},
        expires_delta=lifetime,
    )
    db.add(UserSession(
        user_id=user.id,
        token_hash=security.hash_token(token),
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
        expires_at=now + lifetime,
        is_active=True,
    ))
    db.commit()
    db.refresh(user)

    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=int(lifetime.total_seconds()),
        path="/",
    )
    logger.info("user_logged_in", user_id=str(user.id), school=school.slug, role=user.role.value)

    return {
        "success": True,
        "message": "Login successful",
        "user": user_summary(user),
        "school": {"id": str(school.id), "name": school.name, "slug": school.slug},
        "redirect_to": redirect_for(user),
    }


@router.post("/logout")
def logout(
    response: Response,
    db: Session = Depends(deps.get_db),
    token: Optional[str] = Depends(deps.get_token),
) -> Any:
    """Deactivate the current session and clear the cookie"""
    if token:
        session = db.query(UserSession).filter(UserSession.token_hash == security.hash_token(token)).first()
        if session:
            session.is_active = False
            db.commit()
    response.delete_cookie(settings.AUTH_COOKIE_NAME, path="/")
    return {"success": True, "message": "Logged out successfully"}


@router.get("/verify")
def verify(current_user: User = Depends(deps.get_current_user)) -> Any:
    """Report whether the caller's token and session are still valid"""
    return {
        "authenticated": True,
        "user": user_summary(current_user),
        "redirect_to": redirect_for(current_user),
    }
