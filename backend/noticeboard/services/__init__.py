# backend/noticeboard/services/__init__.py
from .documents import document_service
from .notices import notice_service
from .notifier import notifier
from .storage import file_storage

__all__ = ["document_service", "notice_service", "notifier", "file_storage"]
