# backend/noticeboard/api/documents.py
import time
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from .deps import download_response, get_current_actor, parse_form
from ..config import settings
from ..database import get_db
from ..exceptions import PortalError
from ..models.document import DocumentCategory
from ..schemas.base import split_csv
from ..schemas.document import DocumentCreate, DocumentItem, DocumentList, DocumentUpdate
from ..services.documents import document_service
from ..services.visibility import Actor
from ..utils.logging import api_logger

router = APIRouter(prefix="/api/documents", tags=["documents"])


@router.get("", response_model=DocumentList)
async def list_documents(
        category: Optional[DocumentCategory] = None,
        department: Optional[str] = None,
        search: Optional[str] = None,
        page: int = Query(1, ge=1),
        limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
        actor: Actor = Depends(get_current_actor),
        db: Session = Depends(get_db)
):
    api_logger.info("Listing documents", extra={
        "actor_id": actor.id,
        "role": actor.role.value,
        "category": category.value if category else None,
        "search": search,
        "page": page,
        "limit": limit
    })

    try:
        start_time = time.time()
        feed = document_service.list_documents(
            db, actor,
            category=category,
            department=department,
            search=search,
            page=page,
            limit=limit
        )

        execution_time = time.time() - start_time
        api_logger.info("Successfully listed documents", extra={
            "actor_id": actor.id,
            "count": feed.count,
            "total": feed.total,
            "execution_time_ms": round(execution_time * 1000, 2)
        })
        return DocumentList(
            count=feed.count,
            total=feed.total,
            documents=[DocumentItem.model_validate(item) for item in feed.items]
        )

    except PortalError:
        raise
    except Exception as e:
        api_logger.error("Error listing documents", extra={
            "actor_id": actor.id,
            "error": str(e)
        })
        raise


@router.get("/{item_id}", response_model=DocumentItem)
async def get_document(
        item_id: str,
        actor: Actor = Depends(get_current_actor),
        db: Session = Depends(get_db)
):
    api_logger.info("Retrieving document", extra={"item_id": item_id, "actor_id": actor.id})

    try:
        item = document_service.get_document(db, actor, item_id)
        return DocumentItem.model_validate(item)

    except PortalError as e:
        api_logger.warning("Document not available", extra={
            "item_id": item_id,
            "actor_id": actor.id,
            "reason": e.error_code
        })
        raise
    except Exception as e:
        api_logger.error("Error retrieving document", extra={
            "item_id": item_id,
            "error": str(e)
        })
        raise


@router.get("/{item_id}/download")
async def download_document(
        item_id: str,
        actor: Actor = Depends(get_current_actor),
        db: Session = Depends(get_db)
):
    api_logger.info("Downloading document", extra={"item_id": item_id, "actor_id": actor.id})

    try:
        result = document_service.download_document(db, actor, item_id)
        api_logger.info("Serving document download", extra={
            "item_id": item_id,
            "download_count": result.download_count
        })
        return download_response(result)

    except PortalError as e:
        api_logger.warning("Download refused", extra={
            "item_id": item_id,
            "actor_id": actor.id,
            "reason": e.error_code
        })
        raise
    except Exception as e:
        api_logger.error("Error downloading document", extra={
            "item_id": item_id,
            "error": str(e)
        })
        db.rollback()
        raise


@router.post("", response_model=DocumentItem)
async def create_document(
        title: str = Form(...),
        description: Optional[str] = Form(None),
        category: Optional[str] = Form(None),
        access_level: Optional[str] = Form(None),
        department: Optional[str] = Form(None),
        tags: Optional[str] = Form(None),
        file: Optional[UploadFile] = File(None),
        actor: Actor = Depends(get_current_actor),
        db: Session = Depends(get_db)
):
    api_logger.info("Uploading document", extra={
        "actor_id": actor.id,
        "title": title,
        "file_name": file.filename if file else None
    })

    try:
        start_time = time.time()
        data = parse_form(
            DocumentCreate,
            title=title,
            description=description,
            category=category or None,
            access_level=split_csv(access_level) if access_level else None,
            department=department,
            tags=split_csv(tags)
        )
        document = await document_service.create_document(db, actor, data, file)

        execution_time = time.time() - start_time
        api_logger.info("Successfully uploaded document", extra={
            "document_id": document.id,
            "execution_time_ms": round(execution_time * 1000, 2)
        })
        return DocumentItem.model_validate(document)

    except PortalError:
        raise
    except Exception as e:
        api_logger.error("Error uploading document", extra={
            "actor_id": actor.id,
            "title": title,
            "error": str(e)
        })
        db.rollback()
        raise


@router.put("/{document_id}", response_model=DocumentItem)
async def update_document(
        document_id: int,
        document: DocumentUpdate,
        actor: Actor = Depends(get_current_actor),
        db: Session = Depends(get_db)
):
    api_logger.info("Updating document", extra={
        "document_id": document_id,
        "update_fields": list(document.model_dump(exclude_unset=True).keys())
    })

    try:
        updated = document_service.update_document(db, actor, document_id, document)
        api_logger.info("Successfully updated document", extra={"document_id": document_id})
        return DocumentItem.model_validate(updated)

    except PortalError:
        raise
    except Exception as e:
        api_logger.error("Error updating document", extra={
            "document_id": document_id,
            "error": str(e)
        })
        db.rollback()
        raise


@router.delete("/{document_id}")
async def delete_document(
        document_id: int,
        actor: Actor = Depends(get_current_actor),
        db: Session = Depends(get_db)
):
    api_logger.info("Deleting document", extra={"document_id": document_id, "actor_id": actor.id})

    try:
        document_service.delete_document(db, actor, document_id)
        api_logger.info(f"Successfully deleted document {document_id}")
        return {"success": True}

    except PortalError:
        raise
    except Exception as e:
        db.rollback()
        api_logger.error(f"Failed to delete document: {str(e)}")
        raise
