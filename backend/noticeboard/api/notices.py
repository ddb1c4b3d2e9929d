# backend/noticeboard/api/notices.py
import time
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from .deps import download_response, get_current_actor, parse_form
from ..config import settings
from ..database import get_db
from ..exceptions import PortalError
from ..models.notice import NoticeCategory
from ..schemas.base import split_csv
from ..schemas.notice import Notice as NoticeSchema, NoticeCreate, NoticeList, NoticeUpdate
from ..services.notices import notice_service
from ..services.notifier import notifier
from ..services.visibility import Actor
from ..utils.logging import api_logger

router = APIRouter(prefix="/api/notices", tags=["notices"])


@router.get("", response_model=NoticeList)
async def list_notices(
        category: Optional[NoticeCategory] = None,
        search: Optional[str] = None,
        page: int = Query(1, ge=1),
        limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
        actor: Actor = Depends(get_current_actor),
        db: Session = Depends(get_db)
):
    api_logger.info("Listing notices", extra={
        "actor_id": actor.id,
        "role": actor.role.value,
        "page": page,
        "limit": limit
    })

    try:
        start_time = time.time()
        feed = notice_service.list_notices(db, actor, category=category, search=search, page=page, limit=limit)

        execution_time = time.time() - start_time
        api_logger.info("Successfully listed notices", extra={
            "count": feed.count,
            "total": feed.total,
            "execution_time_ms": round(execution_time * 1000, 2)
        })
        return NoticeList(
            count=feed.count,
            total=feed.total,
            notices=[NoticeSchema.model_validate(notice) for notice in feed.items]
        )

    except PortalError:
        raise
    except Exception as e:
        api_logger.error("Error listing notices", extra={"actor_id": actor.id, "error": str(e)})
        raise


@router.get("/{notice_id}/attachments/{attachment_index}")
async def download_attachment(
        notice_id: int,
        attachment_index: int,
        actor: Actor = Depends(get_current_actor),
        db: Session = Depends(get_db)
):
    api_logger.info("Downloading notice attachment", extra={
        "notice_id": notice_id,
        "attachment_index": attachment_index,
        "actor_id": actor.id
    })

    try:
        result = notice_service.download_attachment(db, actor, notice_id, attachment_index)
        return download_response(result)

    except PortalError as e:
        api_logger.warning("Attachment download refused", extra={
            "notice_id": notice_id,
            "attachment_index": attachment_index,
            "reason": e.error_code
        })
        raise
    except Exception as e:
        api_logger.error("Error downloading attachment", extra={
            "notice_id": notice_id,
            "error": str(e)
        })
        db.rollback()
        raise


@router.get("/{notice_id}", response_model=NoticeSchema)
async def get_notice(
        notice_id: int,
        actor: Actor = Depends(get_current_actor),
        db: Session = Depends(get_db)
):
    api_logger.info("Retrieving notice", extra={"notice_id": notice_id, "actor_id": actor.id})

    try:
        return notice_service.get_notice(db, actor, notice_id)

    except PortalError:
        raise
    except Exception as e:
        api_logger.error("Error retrieving notice", extra={"notice_id": notice_id, "error": str(e)})
        raise


@router.post("", response_model=NoticeSchema)
async def create_notice(
        background_tasks: BackgroundTasks,
        title: str = Form(...),
        content: str = Form(...),
        category: Optional[str] = Form(None),
        target_audience: Optional[str] = Form(None),
        department: Optional[str] = Form(None),
        expiry_date: Optional[str] = Form(None),
        attachments: Optional[List[UploadFile]] = File(None),
        actor: Actor = Depends(get_current_actor),
        db: Session = Depends(get_db)
):
    api_logger.info("Creating notice", extra={
        "actor_id": actor.id,
        "title": title,
        "file_count": len(attachments or [])
    })

    try:
        start_time = time.time()
        data = parse_form(
            NoticeCreate,
            title=title,
            content=content,
            category=category or None,
            target_audience=split_csv(target_audience) if target_audience else None,
            department=department or None,
            expiry_date=expiry_date or None
        )
        notice = await notice_service.create_notice(db, actor, data, attachments or [])

        try:
            message, recipients = notice_service.prepare_notification(db, notice)
            background_tasks.add_task(notifier.notify_notice_created, message, recipients)
        except Exception as e:
            # Broadcast problems never fail notice creation
            api_logger.error("Could not schedule notice emails", extra={
                "notice_id": notice.id,
                "error": str(e)
            })

        execution_time = time.time() - start_time
        api_logger.info("Successfully created notice", extra={
            "notice_id": notice.id,
            "execution_time_ms": round(execution_time * 1000, 2)
        })
        return notice

    except PortalError:
        raise
    except Exception as e:
        api_logger.error("Error creating notice", extra={
            "actor_id": actor.id,
            "title": title,
            "error": str(e)
        })
        db.rollback()
        raise


@router.put("/{notice_id}", response_model=NoticeSchema)
async def update_notice(
        notice_id: int,
        title: Optional[str] = Form(None),
        content: Optional[str] = Form(None),
        category: Optional[str] = Form(None),
        target_audience: Optional[str] = Form(None),
        department: Optional[str] = Form(None),
        expiry_date: Optional[str] = Form(None),
        remove_attachments: Optional[str] = Form(None),
        attachments: Optional[List[UploadFile]] = File(None),
        actor: Actor = Depends(get_current_actor),
        db: Session = Depends(get_db)
):
    api_logger.info("Updating notice", extra={
        "notice_id": notice_id,
        "actor_id": actor.id,
        "remove_attachments": remove_attachments,
        "file_count": len(attachments or [])
    })

    try:
        data = parse_form(
            NoticeUpdate,
            title=title or None,
            content=content or None,
            category=category or None,
            target_audience=split_csv(target_audience) if target_audience else None,
            department=department,
            expiry_date=expiry_date or None
        )
        notice = await notice_service.update_notice(
            db, actor, notice_id, data,
            removal=remove_attachments,
            uploads=attachments or []
        )
        api_logger.info("Successfully updated notice", extra={
            "notice_id": notice_id,
            "attachment_count": len(notice.attachments)
        })
        return notice

    except PortalError:
        raise
    except Exception as e:
        api_logger.error("Error updating notice", extra={"notice_id": notice_id, "error": str(e)})
        db.rollback()
        raise


@router.delete("/{notice_id}")
async def delete_notice(
        notice_id: int,
        actor: Actor = Depends(get_current_actor),
        db: Session = Depends(get_db)
):
    api_logger.info("Deleting notice", extra={"notice_id": notice_id, "actor_id": actor.id})

    try:
        notice_service.delete_notice(db, actor, notice_id)
        api_logger.info(f"Successfully deleted notice {notice_id}")
        return {"success": True}

    except PortalError:
        raise
    except Exception as e:
        db.rollback()
        api_logger.error(f"Failed to delete notice: {str(e)}")
        raise
