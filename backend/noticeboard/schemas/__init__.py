# backend/noticeboard/schemas/__init__.py
from .user import User, UserSummary, UserUpdate, UserList
from .document import DocumentCreate, DocumentUpdate, DocumentItem, DocumentList
from .notice import Notice, NoticeCreate, NoticeUpdate, NoticeAttachment, NoticeList

__all__ = [
    "User", "UserSummary", "UserUpdate", "UserList",
    "DocumentCreate", "DocumentUpdate", "DocumentItem", "DocumentList",
    "Notice", "NoticeCreate", "NoticeUpdate", "NoticeAttachment", "NoticeList"
]
