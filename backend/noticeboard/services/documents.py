# backend/noticeboard/services/documents.py
"""
Documents feed and single-document operations.

The feed merges real documents with projections of notice attachments. Its
paging is deliberately two-stage and kept for compatibility with existing
clients: documents are paginated on their own first, then every matching
projection is merged in, the union is re-sorted by recency and cut back to
``limit``. Projections can therefore repeat across pages or push documents
off a page; ``total`` still counts every visible item exactly once.
"""
from datetime import timezone
from typing import List, Optional, Union

from fastapi import UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from .accounting import record_document_download
from .notices import NoticeService, notice_service
from .pagination import DownloadResult, FeedPage, paginate, validate_paging
from .projection import (
    ProjectedDocument,
    build_projections,
    is_synthetic_id,
    parse_synthetic_id,
    project_attachment,
)
from .storage import FileStorage, file_storage, iter_chunks
from .visibility import (
    Actor,
    can_download_document,
    can_modify_document,
    can_publish,
    can_see_document,
    utcnow,
)
from ..config import settings
from ..exceptions import ForbiddenError, NotFoundError, ValidationFailedError
from ..models.document import Document, DocumentCategory
from ..models.notice import Notice
from ..schemas.document import DocumentCreate, DocumentUpdate
from ..utils.logging import service_logger

DOCUMENT_UPLOAD_DIR = "documents"

FeedItem = Union[Document, ProjectedDocument]


def coerce_document_category(value) -> Optional[DocumentCategory]:
    if value is None or value == "":
        return None
    try:
        return DocumentCategory(value)
    except ValueError:
        raise ValidationFailedError(f"Unknown document category: {value}")


def parse_document_id(value) -> int:
    """Numeric ids only; anything else cannot name a stored document"""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = str(value)
    if not (text.isascii() and text.isdigit()):
        raise NotFoundError("Document not found")
    return int(text)


def matches_document_search(document: Document, search: str) -> bool:
    term = search.lower()
    if term in (document.title or "").lower():
        return True
    if term in (document.description or "").lower():
        return True
    return any(term in str(tag).lower() for tag in (document.tags or []))


def merge_feed(
        documents: List[Document],
        projections: List[ProjectedDocument],
        page: int,
        limit: int
) -> FeedPage[FeedItem]:
    """Combine visible documents and projections into one page"""
    page_documents = paginate(documents, page, limit)
    total = len(documents) + len(projections)

    if not projections:
        return FeedPage(items=page_documents, count=len(page_documents), total=total)

    combined: List[FeedItem] = page_documents + projections
    # Stable sort keeps documents ahead of projections with the same timestamp
    combined.sort(key=lambda item: _sort_key(item.created_at), reverse=True)
    items = combined[:limit]
    return FeedPage(items=items, count=len(items), total=total)


def _sort_key(created_at) -> float:
    if created_at is None:
        return 0.0
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return created_at.timestamp()


class DocumentService:
    def __init__(self, storage: FileStorage = file_storage, notices: NoticeService = notice_service):
        self.storage = storage
        self.notices = notices

    @staticmethod
    def _query(db: Session):
        return db.query(Document).options(joinedload(Document.owner))

    def _load(self, db: Session, document_id: int) -> Document:
        document = self._query(db).filter(Document.id == document_id).first()
        if not document:
            service_logger.warning("Document not found", extra={"document_id": document_id})
            raise NotFoundError("Document not found")
        return document

    def visible_documents(
            self,
            db: Session,
            actor: Actor,
            category: Optional[DocumentCategory] = None,
            department: Optional[str] = None,
            search: Optional[str] = None
    ) -> List[Document]:
        query = self._query(db).filter(Document.is_active.is_(True))
        if category is not None:
            query = query.filter(Document.category == category)
        # Department filtering is an admin-only query option
        if department and actor.is_admin:
            query = query.filter(Document.department == department)
        documents = query.order_by(Document.created_at.desc(), Document.id.desc()).all()

        return [
            document for document in documents
            if can_see_document(actor, document) and (not search or matches_document_search(document, search))
        ]

    def visible_projections(
            self,
            db: Session,
            actor: Actor,
            category: Optional[DocumentCategory] = None,
            search: Optional[str] = None
    ) -> List[ProjectedDocument]:
        notices = db.query(Notice) \
            .options(joinedload(Notice.owner), selectinload(Notice.attachments)) \
            .filter(Notice.is_active.is_(True), Notice.attachments.any()) \
            .order_by(Notice.created_at.desc(), Notice.id.desc()) \
            .all()
        return build_projections(actor, notices, search=search, category=category, now=utcnow())

    def list_documents(
            self,
            db: Session,
            actor: Actor,
            category=None,
            department: Optional[str] = None,
            search: Optional[str] = None,
            page: int = 1,
            limit: int = settings.DEFAULT_PAGE_LIMIT
    ) -> FeedPage[FeedItem]:
        validate_paging(page, limit)
        category = coerce_document_category(category)

        documents = self.visible_documents(db, actor, category, department, search)
        projections = self.visible_projections(db, actor, category, search)
        feed = merge_feed(documents, projections, page, limit)

        service_logger.debug("Built documents feed", extra={
            "actor_id": actor.id,
            "document_count": len(documents),
            "projection_count": len(projections),
            "returned": feed.count
        })
        return feed

    def get_document(self, db: Session, actor: Actor, item_id) -> FeedItem:
        if is_synthetic_id(item_id):
            notice_id, index = parse_synthetic_id(item_id)
            notice, attachment = self.notices.resolve_attachment(db, actor, notice_id, index)
            return project_attachment(notice, index, attachment)

        document = self._load(db, parse_document_id(item_id))
        if not document.is_active:
            raise NotFoundError("Document not found")
        if not can_see_document(actor, document):
            raise ForbiddenError("Not authorized to access this document")
        return document

    def download_document(self, db: Session, actor: Actor, item_id) -> DownloadResult:
        if is_synthetic_id(item_id):
            notice_id, index = parse_synthetic_id(item_id)
            return self.notices.download_attachment(db, actor, notice_id, index)

        document = self._load(db, parse_document_id(item_id))
        if not document.is_active:
            raise NotFoundError("Document not found")
        if not can_download_document(actor, document):
            raise ForbiddenError("Not authorized to download this document")
        if not self.storage.exists(document.file_locator):
            service_logger.warning("Document file missing", extra={"document_id": document.id})
            raise NotFoundError("File not found on server")

        document_id = document.id
        locator = document.file_locator
        filename = document.original_name
        mime_type = document.mime_type
        size = document.size
        count = record_document_download(db, document_id)

        return DownloadResult(
            stream=iter_chunks(self.storage.open(locator)),
            filename=filename,
            mime_type=mime_type,
            size=size,
            download_count=count
        )

    async def create_document(
            self,
            db: Session,
            actor: Actor,
            data: DocumentCreate,
            upload: Optional[UploadFile]
    ) -> Document:
        if not can_publish(actor):
            raise ForbiddenError("Not authorized to upload documents")
        if upload is None or not upload.filename:
            raise ValidationFailedError("Please upload a file")

        stored = await self.storage.put(upload, DOCUMENT_UPLOAD_DIR)
        document = Document(
            owner_id=actor.id,
            title=data.title,
            description=data.description,
            file_locator=stored.locator,
            original_name=stored.original_name,
            mime_type=stored.mime_type,
            size=stored.size,
            category=data.category,
            access_level=data.access_level,
            department=data.department or None,
            tags=data.tags
        )

        try:
            db.add(document)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            self.storage.delete(stored.locator)
            raise

        service_logger.info("Document uploaded", extra={
            "document_id": document.id,
            "owner_id": actor.id,
            "size": stored.size
        })
        return self._load(db, document.id)

    def update_document(self, db: Session, actor: Actor, document_id: int, data: DocumentUpdate) -> Document:
        document = self._load(db, document_id)
        if not can_modify_document(actor, document):
            raise ForbiddenError("Not authorized to update this document")

        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if value is not None:
                setattr(document, field, value)
        if "department" in changes:
            document.department = changes["department"] or None
        if "description" in changes:
            document.description = changes["description"] or None

        db.commit()
        return self._load(db, document_id)

    def delete_document(self, db: Session, actor: Actor, document_id: int) -> None:
        document = self._load(db, document_id)
        if not can_modify_document(actor, document):
            raise ForbiddenError("Not authorized to delete this document")

        locator = document.file_locator
        db.delete(document)
        db.commit()

        self.storage.delete(locator)
        service_logger.info("Document deleted", extra={"document_id": document_id})


document_service = DocumentService()
