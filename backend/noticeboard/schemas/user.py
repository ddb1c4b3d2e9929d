# backend/noticeboard/schemas/user.py
from typing import Optional

from .base import BaseSchema, TimestampMixin
from ..models.user import UserRole


class UserSummary(BaseSchema):
    id: int
    name: str
    email: str
    role: UserRole
    department: Optional[str] = None


class UserUpdate(BaseSchema):
    name: Optional[str] = None
    email: Optional[str] = None
    department: Optional[str] = None
    student_id: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class User(UserSummary, TimestampMixin):
    student_id: Optional[str] = None
    is_active: bool = True


class UserList(BaseSchema):
    count: int
    total: int
    users: list[User] = []
