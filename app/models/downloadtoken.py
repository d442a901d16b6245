import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from app.models.base import Base, TimestampMixin


class PdfDownloadToken(Base, TimestampMixin):
    """Model for expiring links that gate PDF report downloads."""

    __tablename__ = "pdf_download_tokens"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    token = Column(String(64), nullable=False, unique=True, index=True)
    assessment_id = Column(String, ForeignKey("assessment_records.id"), nullable=False, index=True)
    participant_email = Column(String, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    download_count = Column(Integer, default=0, nullable=False)
    last_downloaded_at = Column(DateTime, nullable=True)
