from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Any, List, Optional
from datetime import datetime


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# Submission Schemas
class UserInfo(_CamelModel):
    """Respondent details entered before the quiz."""
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    company: Optional[str] = None

    @field_validator("name", "email", "company", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ClientInfo(_CamelModel):
    """Browser-reported client details."""
    computer_name: Optional[str] = Field(None, alias="computerName")


class AssessmentSubmitRequest(_CamelModel):
    """Schema for a quiz submission. ``answers`` is validated by the scoring route."""
    answers: Any = None
    user_info: Optional[UserInfo] = Field(None, alias="userInfo")
    client_info: Optional[ClientInfo] = Field(None, alias="clientInfo")


# PDF Schemas
class PdfUserInfo(_CamelModel):
    name: str = ""
    email: str = ""
    company: Optional[str] = ""


class PdfDimensionScore(_CamelModel):
    dimension: str
    score: float = 0
    max_score: float = Field(100, alias="maxScore")


class PdfAdvice(_CamelModel):
    overall_level: str = Field("", alias="overallLevel")
    dimension_advice: List[str] = Field(default_factory=list, alias="dimensionAdvice")
    next_steps: List[str] = Field(default_factory=list, alias="nextSteps")


class PdfReportRequest(_CamelModel):
    """Schema for rendering a report from client-held result data."""
    user_info: PdfUserInfo = Field(..., alias="userInfo")
    total_score: float = Field(..., alias="totalScore")
    max_total_score: float = Field(100, alias="maxTotalScore")
    dimension_scores: List[PdfDimensionScore] = Field(default_factory=list, alias="dimensionScores")
    personalized_advice: PdfAdvice = Field(default_factory=PdfAdvice, alias="personalizedAdvice")
    completed_at: Optional[datetime] = Field(None, alias="completedAt")


# Download Token Schemas
class DownloadTokenRequest(_CamelModel):
    """Optional override of the participant email bound to the token."""
    participant_email: Optional[EmailStr] = Field(None, alias="participantEmail")


class DownloadTokenResponse(_CamelModel):
    token: str
    expires_at: datetime = Field(..., alias="expiresAt")
    download_url: str = Field(..., alias="downloadUrl")
