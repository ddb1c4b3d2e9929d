# backend/noticeboard/services/accounting.py
"""
Download accounting.

Counters are bumped with a single ``UPDATE ... SET n = n + 1`` against the
persisted row, so concurrent downloads of the same item never lose an
increment to a value read earlier in the request.
"""
from sqlalchemy.orm import Session

from ..exceptions import NotFoundError
from ..models.document import Document
from ..models.notice import NoticeAttachment
from ..utils.logging import service_logger


def record_document_download(db: Session, document_id: int) -> int:
    updated = db.query(Document) \
        .filter(Document.id == document_id) \
        .update({Document.download_count: Document.download_count + 1}, synchronize_session=False)
    if not updated:
        db.rollback()
        raise NotFoundError("Document not found")
    db.commit()

    count = db.query(Document.download_count).filter(Document.id == document_id).scalar()
    service_logger.info("Recorded document download", extra={
        "document_id": document_id,
        "download_count": count
    })
    return count


def record_attachment_download(db: Session, attachment_id: int) -> int:
    updated = db.query(NoticeAttachment) \
        .filter(NoticeAttachment.id == attachment_id) \
        .update(
            {NoticeAttachment.download_count: NoticeAttachment.download_count + 1},
            synchronize_session=False
        )
    if not updated:
        db.rollback()
        raise NotFoundError("Attachment not found")
    db.commit()

    count = db.query(NoticeAttachment.download_count) \
        .filter(NoticeAttachment.id == attachment_id) \
        .scalar()
    service_logger.info("Recorded attachment download", extra={
        "attachment_id": attachment_id,
        "download_count": count
    })
    return count
