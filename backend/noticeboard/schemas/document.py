# backend/noticeboard/schemas/document.py
from typing import List, Optional, Union

from pydantic import field_validator

from .base import BaseSchema, TimestampMixin
from .user import UserSummary
from ..models.document import DocumentCategory
from ..models.user import UserRole

ROLE_NAMES = [role.value for role in UserRole]


def normalize_access_level(value: List[str]) -> List[str]:
    """Expand the "all" shorthand and reject unknown or empty role lists"""
    roles = [str(entry).strip().lower() for entry in value if str(entry).strip()]
    if "all" in roles:
        return list(ROLE_NAMES)
    unknown = [role for role in roles if role not in ROLE_NAMES]
    if unknown:
        raise ValueError(f"Unknown access level: {', '.join(unknown)}")
    if not roles:
        raise ValueError("Access level must name at least one role")
    # Keep first occurrence order, drop duplicates
    return list(dict.fromkeys(roles))


def normalize_tags(value: List[str]) -> List[str]:
    return [tag.strip() for tag in value if tag and tag.strip()]


class DocumentBase(BaseSchema):
    title: str
    description: Optional[str] = None
    category: DocumentCategory = DocumentCategory.OTHER
    access_level: List[str] = ["student"]
    department: Optional[str] = None
    tags: List[str] = []

    @field_validator("access_level")
    @classmethod
    def check_access_level(cls, value):
        return normalize_access_level(value)

    @field_validator("tags")
    @classmethod
    def check_tags(cls, value):
        return normalize_tags(value)


class DocumentCreate(DocumentBase):
    pass


class DocumentUpdate(BaseSchema):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[DocumentCategory] = None
    access_level: Optional[List[str]] = None
    department: Optional[str] = None
    tags: Optional[List[str]] = None

    @field_validator("access_level")
    @classmethod
    def check_access_level(cls, value):
        return None if value is None else normalize_access_level(value)

    @field_validator("tags")
    @classmethod
    def check_tags(cls, value):
        return None if value is None else normalize_tags(value)


class DocumentItem(DocumentBase, TimestampMixin):
    """A real document or a projected notice attachment, in one shape"""
    id: Union[int, str]
    original_name: str
    mime_type: str
    size: int
    owner_id: int
    owner: Optional[UserSummary] = None
    download_count: int = 0
    is_active: bool = True
    is_notice_attachment: bool = False
    notice_id: Optional[int] = None
    attachment_index: Optional[int] = None


class DocumentList(BaseSchema):
    count: int
    total: int
    documents: List[DocumentItem] = []
