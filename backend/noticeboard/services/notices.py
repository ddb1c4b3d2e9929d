# backend/noticeboard/services/notices.py
import json
from typing import List, Optional, Sequence, Tuple, Union

from fastapi import UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from .accounting import record_attachment_download
from .notifier import NoticeMessage, Recipient, build_notice_message, resolve_recipients
from .pagination import DownloadResult, FeedPage, paginate, validate_paging
from .storage import FileStorage, StoredFile, file_storage, iter_chunks
from .visibility import (
    Actor,
    can_delete_notice,
    can_modify_notice,
    can_publish,
    can_see_notice,
    is_expired,
    is_listable_notice,
    utcnow,
)
from ..config import settings
from ..exceptions import ForbiddenError, NotFoundError, UpstreamError, ValidationFailedError
from ..models.notice import Notice, NoticeAttachment, NoticeCategory
from ..schemas.notice import NoticeCreate, NoticeUpdate
from ..utils.logging import service_logger

NOTICE_UPLOAD_DIR = "notices"


def coerce_notice_category(value) -> Optional[NoticeCategory]:
    if value is None or value == "":
        return None
    try:
        return NoticeCategory(value)
    except ValueError:
        raise ValidationFailedError(f"Unknown notice category: {value}")


def parse_removal_indices(raw: Union[str, Sequence[int], None]) -> List[int]:
    """Decode the JSON list of attachment positions to drop"""
    if raw is None:
        return []
    if isinstance(raw, str):
        if not raw.strip():
            return []
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            raise ValidationFailedError("remove_attachments must be a JSON list of indices")

    if not isinstance(raw, list):
        raise ValidationFailedError("remove_attachments must be a JSON list of indices")
    for entry in raw:
        if isinstance(entry, bool) or not isinstance(entry, int):
            raise ValidationFailedError("remove_attachments must only contain integers")
    return list(raw)


def remove_attachments(notice: Notice, indices: Sequence[int]) -> List[NoticeAttachment]:
    """
    Drop attachments by position, highest first so pending lower positions stay
    valid. Out-of-range positions are skipped. Positions of the remaining
    attachments are renumbered by the ordering list.
    """
    removed = []
    for index in sorted(set(indices), reverse=True):
        if 0 <= index < len(notice.attachments):
            removed.append(notice.attachments.pop(index))
    return removed


def _matches_search(notice: Notice, search: str) -> bool:
    term = search.lower()
    return term in (notice.title or "").lower() or term in (notice.content or "").lower()


class NoticeService:
    def __init__(self, storage: FileStorage = file_storage):
        self.storage = storage

    @staticmethod
    def _query(db: Session):
        return db.query(Notice).options(
            joinedload(Notice.owner),
            selectinload(Notice.attachments)
        )

    def _load(self, db: Session, notice_id: int) -> Notice:
        notice = self._query(db).filter(Notice.id == notice_id).first()
        if not notice:
            service_logger.warning("Notice not found", extra={"notice_id": notice_id})
            raise NotFoundError("Notice not found")
        return notice

    @staticmethod
    def _check_readable(actor: Actor, notice: Notice, denial: str) -> None:
        """Inactive or expired (for non-owners) is not found; policy rejection is forbidden"""
        if not notice.is_active:
            raise NotFoundError("Notice not found")
        if notice.owner_id != actor.id and is_expired(notice):
            raise NotFoundError("Notice not found")
        if not can_see_notice(actor, notice):
            raise ForbiddenError(denial)

    def _check_batch(self, uploads: Sequence[UploadFile]) -> None:
        if len(uploads) > settings.MAX_NOTICE_ATTACHMENTS:
            raise ValidationFailedError(
                f"A notice accepts at most {settings.MAX_NOTICE_ATTACHMENTS} attachments per upload"
            )

    async def _store_uploads(self, uploads: Sequence[UploadFile]) -> List[StoredFile]:
        stored = []
        try:
            for upload in uploads:
                stored.append(await self.storage.put(upload, NOTICE_UPLOAD_DIR))
        except UpstreamError:
            self._release(item.locator for item in stored)
            raise
        return stored

    def _release(self, locators) -> None:
        for locator in locators:
            self.storage.delete(locator)

    def list_notices(
            self,
            db: Session,
            actor: Actor,
            category=None,
            search: Optional[str] = None,
            page: int = 1,
            limit: int = settings.DEFAULT_PAGE_LIMIT
    ) -> FeedPage[Notice]:
        validate_paging(page, limit)

        query = self._query(db).filter(Notice.is_active.is_(True))
        category = coerce_notice_category(category)
        if category is not None:
            query = query.filter(Notice.category == category)
        notices = query.order_by(Notice.created_at.desc(), Notice.id.desc()).all()

        now = utcnow()
        visible = [
            notice for notice in notices
            if is_listable_notice(actor, notice, now) and (not search or _matches_search(notice, search))
        ]
        items = paginate(visible, page, limit)
        return FeedPage(items=items, count=len(items), total=len(visible))

    def get_notice(self, db: Session, actor: Actor, notice_id: int) -> Notice:
        notice = self._load(db, notice_id)
        self._check_readable(actor, notice, "Not authorized to view this notice")
        return notice

    def resolve_attachment(
            self,
            db: Session,
            actor: Actor,
            notice_id: int,
            index: int
    ) -> Tuple[Notice, NoticeAttachment]:
        notice = self._load(db, notice_id)
        if not notice.is_active:
            raise NotFoundError("Notice not found")
        if index < 0 or index >= len(notice.attachments):
            raise NotFoundError("Attachment not found")
        self._check_readable(actor, notice, "Not authorized to download this attachment")
        return notice, notice.attachments[index]

    def download_attachment(self, db: Session, actor: Actor, notice_id: int, index: int) -> DownloadResult:
        notice, attachment = self.resolve_attachment(db, actor, notice_id, index)
        if not self.storage.exists(attachment.file_locator):
            service_logger.warning("Attachment file missing", extra={
                "notice_id": notice_id,
                "attachment_index": index
            })
            raise NotFoundError("File not found on server")

        locator = attachment.file_locator
        filename = attachment.filename
        mime_type = attachment.mime_type
        size = attachment.size
        count = record_attachment_download(db, attachment.id)

        return DownloadResult(
            stream=iter_chunks(self.storage.open(locator)),
            filename=filename,
            mime_type=mime_type,
            size=size,
            download_count=count
        )

    async def create_notice(
            self,
            db: Session,
            actor: Actor,
            data: NoticeCreate,
            uploads: Sequence[UploadFile] = ()
    ) -> Notice:
        if not can_publish(actor):
            raise ForbiddenError("Not authorized to create notices")

        uploads = [upload for upload in uploads if upload is not None and upload.filename]
        self._check_batch(uploads)

        # Faculty notices always carry the poster's department
        department = data.department if actor.is_admin else actor.department
        stored = await self._store_uploads(uploads)

        notice = Notice(
            owner_id=actor.id,
            title=data.title,
            content=data.content,
            category=data.category,
            target_audience=data.target_audience,
            department=department or None,
            expiry_date=data.expiry_date
        )
        for item in stored:
            notice.attachments.append(NoticeAttachment(
                filename=item.original_name,
                file_locator=item.locator,
                mime_type=item.mime_type,
                size=item.size
            ))

        try:
            db.add(notice)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            self._release(item.locator for item in stored)
            raise

        service_logger.info("Notice created", extra={
            "notice_id": notice.id,
            "owner_id": actor.id,
            "attachment_count": len(stored)
        })
        return self._load(db, notice.id)

    async def update_notice(
            self,
            db: Session,
            actor: Actor,
            notice_id: int,
            data: NoticeUpdate,
            removal: Union[str, Sequence[int], None] = None,
            uploads: Sequence[UploadFile] = ()
    ) -> Notice:
        notice = self._load(db, notice_id)
        if not can_modify_notice(actor, notice):
            raise ForbiddenError("Not authorized to update this notice")

        indices = parse_removal_indices(removal)
        uploads = [upload for upload in uploads if upload is not None and upload.filename]
        self._check_batch(uploads)
        stored = await self._store_uploads(uploads)

        # Removals first, then new files are appended after what remains
        removed = remove_attachments(notice, indices)
        released = [attachment.file_locator for attachment in removed]
        for item in stored:
            notice.attachments.append(NoticeAttachment(
                filename=item.original_name,
                file_locator=item.locator,
                mime_type=item.mime_type,
                size=item.size
            ))

        for field, value in data.model_dump(exclude_unset=True, exclude={"department"}).items():
            if value is not None:
                setattr(notice, field, value)

        if actor.is_admin and "department" in data.model_fields_set:
            notice.department = data.department or None
        elif actor.is_faculty and not notice.department:
            notice.department = actor.department or None

        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            self._release(item.locator for item in stored)
            raise

        self._release(released)
        service_logger.info("Notice updated", extra={
            "notice_id": notice_id,
            "removed_attachments": len(removed),
            "added_attachments": len(stored)
        })
        return self._load(db, notice_id)

    def delete_notice(self, db: Session, actor: Actor, notice_id: int) -> None:
        notice = self._load(db, notice_id)
        if not can_delete_notice(actor, notice):
            raise ForbiddenError("Not authorized to delete this notice")

        locators = [attachment.file_locator for attachment in notice.attachments]
        db.delete(notice)
        db.commit()

        self._release(locators)
        service_logger.info("Notice deleted", extra={
            "notice_id": notice_id,
            "released_files": len(locators)
        })

    @staticmethod
    def prepare_notification(db: Session, notice: Notice) -> Tuple[NoticeMessage, List[Recipient]]:
        return build_notice_message(notice), resolve_recipients(db, notice)


notice_service = NoticeService()
