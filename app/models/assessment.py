"""Question bank and submitted assessment records."""

import uuid
from sqlalchemy import Column, Float, Index, Integer, String, Text, DateTime, JSON

from app.models.base import Base
from app.utils.clock import utcnow


class AssessmentQuestion(Base):
    """Model representing a quiz question as stored by the admin back office.

    ``options`` is stored exactly as authored: either a list or an object keyed
    by A-D, with string or ``{"text", "score"}`` entries.
    """

    __tablename__ = "assessment_questions"

    id = Column(Integer, primary_key=True, index=True)
    question_text = Column(Text, nullable=False)
    dimension = Column(String(50), nullable=False, index=True)
    options = Column(JSON, nullable=True)
    correct_answer = Column(String(50), nullable=True)
    explanation = Column(Text, nullable=True)


class AssessmentRecord(Base):
    """Model representing one completed quiz submission."""

    __tablename__ = "assessment_records"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_name = Column(String, nullable=True)
    user_email = Column(String, nullable=True)
    user_company = Column(String, nullable=True)
    answers = Column(JSON, nullable=False)
    scores = Column(JSON, nullable=False)
    total_score = Column(Float, nullable=False, default=0)
    assessment_level = Column(String(20), nullable=False)
    ip_address = Column(String, nullable=True)
    user_agent = Column(Text, nullable=True)
    computer_name = Column(String, nullable=True)
    completed_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index('idx_assessment_email_completed', 'user_email', 'completed_at'),
    )
