# backend/noticeboard/api/deps.py
from typing import Optional, Type, TypeVar
from urllib.parse import quote

from fastapi import Depends, Header, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import ValidationFailedError
from ..models.user import User
from ..services.pagination import DownloadResult
from ..services.visibility import Actor
from ..utils.logging import api_logger

SchemaT = TypeVar("SchemaT", bound=BaseModel)


async def get_current_actor(
        x_user_id: Optional[str] = Header(None),
        db: Session = Depends(get_db)
) -> Actor:
    """Resolve the identity established upstream; this service never authenticates"""
    if not x_user_id or not x_user_id.isdigit():
        raise HTTPException(status_code=401, detail="Not authenticated")

    user = db.query(User).filter(User.id == int(x_user_id)).first()
    if not user or not user.is_active:
        api_logger.warning("Rejected request for unknown or inactive user", extra={
            "user_id": x_user_id
        })
        raise HTTPException(status_code=401, detail="Not authenticated")
    return Actor.from_user(user)


def parse_form(schema: Type[SchemaT], **values) -> SchemaT:
    """Validate multipart form values; fields left as None fall back to schema defaults"""
    provided = {key: value for key, value in values.items() if value is not None}
    try:
        return schema(**provided)
    except ValidationError as e:
        messages = "; ".join(error["msg"] for error in e.errors())
        raise ValidationFailedError(messages)


def download_response(result: DownloadResult) -> StreamingResponse:
    return StreamingResponse(
        result.stream,
        media_type=result.mime_type or "application/octet-stream",
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(result.filename)}"
        }
    )
