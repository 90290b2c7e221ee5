from typing import Optional
from pydantic import BaseModel

from schooldesk.models.auth import UserRole


class SchoolLogin(BaseModel):
    identifier: str
    password: str
    role: UserRole
    school_slug: str
    remember_me: bool = False


class ChangePassword(BaseModel):
    current_password: str
    new_password: str


class TokenPayload(BaseModel):
    sub: Optional[str] = None
    role: Optional[str] = None
    school_id: Optional[str] = None
