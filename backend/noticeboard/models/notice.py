# backend/noticeboard/models/notice.py
import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Boolean, Enum
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from ..database import Base


class NoticeCategory(str, enum.Enum):
    GENERAL = "general"
    ACADEMIC = "academic"
    EVENT = "event"
    IMPORTANT = "important"


class NoticeAttachment(Base):
    __tablename__ = "notice_attachments"

    id = Column(Integer, primary_key=True, index=True)
    notice_id = Column(Integer, ForeignKey("notices.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)  # External identity is (notice_id, position)
    filename = Column(String(255), nullable=False)
    file_locator = Column(String(255), nullable=False)
    mime_type = Column(String(255), nullable=False, default="application/octet-stream")
    size = Column(Integer, nullable=False, default=0)
    download_count = Column(Integer, nullable=False, default=0)

    notice = relationship("Notice", back_populates="attachments")


class Notice(Base):
    __tablename__ = "notices"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    category = Column(Enum(NoticeCategory), nullable=False, default=NoticeCategory.GENERAL)
    target_audience = Column(JSON, nullable=False, default=lambda: ["all"])
    department = Column(String(255), nullable=True)
    expiry_date = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    owner = relationship("User", back_populates="notices")
    attachments = relationship(
        "NoticeAttachment",
        back_populates="notice",
        order_by="NoticeAttachment.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan"
    )
