# backend/noticeboard/schemas/notice.py
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import field_validator

from .base import BaseSchema, TimestampMixin
from .user import UserSummary
from ..models.notice import NoticeCategory
from ..models.user import UserRole

AUDIENCE_NAMES = [role.value for role in UserRole] + ["all"]


def normalize_audience(value: List[str]) -> List[str]:
    audience = [str(entry).strip().lower() for entry in value if str(entry).strip()]
    unknown = [entry for entry in audience if entry not in AUDIENCE_NAMES]
    if unknown:
        raise ValueError(f"Unknown target audience: {', '.join(unknown)}")
    if not audience:
        raise ValueError("Target audience must not be empty")
    return list(dict.fromkeys(audience))


def normalize_expiry(value: Optional[datetime]) -> Optional[datetime]:
    """Store expiry as naive UTC; offset-aware input is converted first"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class NoticeAttachment(BaseSchema):
    position: int
    filename: str
    mime_type: str
    size: int
    download_count: int = 0


class NoticeBase(BaseSchema):
    title: str
    content: str
    category: NoticeCategory = NoticeCategory.GENERAL
    target_audience: List[str] = ["all"]
    department: Optional[str] = None
    expiry_date: Optional[datetime] = None

    @field_validator("target_audience")
    @classmethod
    def check_target_audience(cls, value):
        return normalize_audience(value)

    @field_validator("expiry_date")
    @classmethod
    def check_expiry_date(cls, value):
        return normalize_expiry(value)


class NoticeCreate(NoticeBase):
    pass


class NoticeUpdate(BaseSchema):
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[NoticeCategory] = None
    target_audience: Optional[List[str]] = None
    department: Optional[str] = None
    expiry_date: Optional[datetime] = None

    @field_validator("target_audience")
    @classmethod
    def check_target_audience(cls, value):
        return None if value is None else normalize_audience(value)

    @field_validator("expiry_date")
    @classmethod
    def check_expiry_date(cls, value):
        return normalize_expiry(value)


class Notice(NoticeBase, TimestampMixin):
    id: int
    owner_id: int
    owner: Optional[UserSummary] = None
    is_active: bool = True
    attachments: List[NoticeAttachment] = []


class NoticeList(BaseSchema):
    count: int
    total: int
    notices: List[Notice] = []
