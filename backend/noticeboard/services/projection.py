# backend/noticeboard/services/projection.py
"""
Attachment projector.

Notice attachments are owned by their notice and have no identity of their own.
For the merged documents feed each one is presented as a read-only,
Document-shaped ``ProjectedDocument`` whose id encodes the source notice and
the attachment's current position: ``notice_<noticeId>_<index>``. Positions
shift whenever earlier attachments are removed, so a synthetic id is only
valid until the next structural edit of that notice.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from .visibility import Actor, is_listable_notice
from ..exceptions import NotFoundError
from ..models.document import DocumentCategory
from ..models.notice import Notice, NoticeAttachment, NoticeCategory
from ..models.user import User

SYNTHETIC_ID_PREFIX = "notice"

NOTICE_TO_DOCUMENT_CATEGORY = {
    NoticeCategory.ACADEMIC: DocumentCategory.ACADEMIC,
    NoticeCategory.GENERAL: DocumentCategory.OTHER,
    NoticeCategory.EVENT: DocumentCategory.OTHER,
    NoticeCategory.IMPORTANT: DocumentCategory.ADMINISTRATIVE,
}


@dataclass
class ProjectedDocument:
    id: str
    title: str
    description: str
    original_name: str
    mime_type: str
    size: int
    file_locator: str
    owner_id: int
    owner: Optional[User]
    category: DocumentCategory
    department: Optional[str]
    download_count: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    notice_id: int
    attachment_index: int
    access_level: List[str] = field(default_factory=lambda: ["student"])
    tags: List[str] = field(default_factory=list)
    is_active: bool = True
    is_notice_attachment: bool = True


def map_notice_category(category) -> DocumentCategory:
    try:
        return NOTICE_TO_DOCUMENT_CATEGORY[NoticeCategory(category)]
    except (KeyError, ValueError):
        return DocumentCategory.OTHER


def build_synthetic_id(notice_id: int, index: int) -> str:
    return f"{SYNTHETIC_ID_PREFIX}_{notice_id}_{index}"


def is_synthetic_id(value) -> bool:
    return str(value).startswith(f"{SYNTHETIC_ID_PREFIX}_")


def _is_plain_number(value: str) -> bool:
    return value.isascii() and value.isdigit()


def parse_synthetic_id(value) -> Tuple[int, int]:
    """Split ``notice_<noticeId>_<index>``; anything else is reported as not found"""
    parts = str(value).split("_")
    if len(parts) != 3 or parts[0] != SYNTHETIC_ID_PREFIX:
        raise NotFoundError("Attachment not found")
    notice_part, index_part = parts[1], parts[2]
    if not _is_plain_number(notice_part) or not _is_plain_number(index_part):
        raise NotFoundError("Attachment not found")
    return int(notice_part), int(index_part)


def project_attachment(notice: Notice, index: int, attachment: NoticeAttachment) -> ProjectedDocument:
    return ProjectedDocument(
        id=build_synthetic_id(notice.id, index),
        title=attachment.filename,
        description=f"Attached to notice: {notice.title}",
        original_name=attachment.filename,
        mime_type=attachment.mime_type,
        size=attachment.size or 0,
        file_locator=attachment.file_locator,
        owner_id=notice.owner_id,
        owner=notice.owner,
        category=map_notice_category(notice.category),
        department=notice.department or None,
        download_count=attachment.download_count or 0,
        created_at=notice.created_at,
        updated_at=notice.updated_at,
        notice_id=notice.id,
        attachment_index=index,
        tags=[NoticeCategory(notice.category).value],
    )


def _matches_search(search: str, notice: Notice, attachment: NoticeAttachment) -> bool:
    term = search.lower()
    return term in (notice.title or "").lower() or term in (attachment.filename or "").lower()


def project_notice(
        notice: Notice,
        search: Optional[str] = None,
        category: Optional[DocumentCategory] = None
) -> List[ProjectedDocument]:
    """Project every attachment of one notice that passes the search and category filters"""
    if category is not None and map_notice_category(notice.category) != DocumentCategory(category):
        return []

    projections = []
    for index, attachment in enumerate(notice.attachments):
        if search and not _matches_search(search, notice, attachment):
            continue
        projections.append(project_attachment(notice, index, attachment))
    return projections


def build_projections(
        actor: Actor,
        notices: Sequence[Notice],
        search: Optional[str] = None,
        category: Optional[DocumentCategory] = None,
        now: Optional[datetime] = None
) -> List[ProjectedDocument]:
    projections = []
    for notice in notices:
        if not notice.attachments:
            continue
        if not is_listable_notice(actor, notice, now):
            continue
        projections.extend(project_notice(notice, search=search, category=category))
    return projections
