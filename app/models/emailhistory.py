import uuid
from sqlalchemy import Column, DateTime, ForeignKey, Index, String

from app.constants.constants import EmailStatus
from app.models.base import Base
from app.utils.clock import utcnow


class EmailHistory(Base):
    """Model for sent emails and their first open / first click."""

    __tablename__ = "email_history"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tracking_id = Column(String(64), nullable=False, unique=True, index=True)
    recipient_email = Column(String, nullable=False)
    email_type = Column(String(50), nullable=False)
    subject = Column(String, nullable=False)
    assessment_id = Column(String, ForeignKey("assessment_records.id"), nullable=True)
    status = Column(String(20), default=EmailStatus.sent.value, nullable=False)
    sent_at = Column(DateTime, default=utcnow, nullable=False)
    # Write-once: only set while still NULL
    opened_at = Column(DateTime, nullable=True)
    clicked_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('idx_email_history_recipient', 'recipient_email', 'sent_at'),
    )
