# backend/noticeboard/models/document.py
import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Boolean, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from ..database import Base


class DocumentCategory(str, enum.Enum):
    ACADEMIC = "academic"
    ADMINISTRATIVE = "administrative"
    SYLLABUS = "syllabus"
    FORM = "form"
    OTHER = "other"


class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Stored file reference
    file_locator = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    mime_type = Column(String(255), nullable=False, default="application/octet-stream")
    size = Column(Integer, nullable=False, default=0)

    category = Column(Enum(DocumentCategory), nullable=False, default=DocumentCategory.OTHER)
    access_level = Column(JSON, nullable=False, default=lambda: ["student"])  # Roles allowed to see it
    department = Column(String(255), nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    download_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    owner = relationship("User", back_populates="documents")
