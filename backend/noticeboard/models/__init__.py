# backend/noticeboard/models/__init__.py
from ..database import Base
from .user import User, UserRole
from .document import Document, DocumentCategory
from .notice import Notice, NoticeAttachment, NoticeCategory

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Document",
    "DocumentCategory",
    "Notice",
    "NoticeAttachment",
    "NoticeCategory"
]
