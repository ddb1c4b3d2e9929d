# backend/noticeboard/schemas/base.py
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict

class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

class TimestampMixin(BaseModel):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

def split_csv(value: Optional[str]) -> Optional[List[str]]:
    """Split a comma separated form value, dropping blanks; None stays None"""
    if value is None:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]
