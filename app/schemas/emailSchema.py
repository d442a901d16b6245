from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Any, Dict, List, Optional


class EmailSendRequest(BaseModel):
    """Schema for sending a templated assessment email."""
    model_config = ConfigDict(populate_by_name=True)

    type: str
    recipient_email: EmailStr = Field(..., alias="recipientEmail")
    data: Dict[str, Any] = Field(default_factory=dict)


class ResultEmailAdvice(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    level: Optional[str] = None
    level_description: Optional[str] = Field(None, alias="levelDescription")
    overall_advice: Optional[str] = Field(None, alias="overallAdvice")
    next_steps: List[str] = Field(default_factory=list, alias="nextSteps")


class ResultEmailData(BaseModel):
    """Fields of the assessment_result email body. Unknown keys are ignored."""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    total_score: float = Field(0, alias="totalScore")
    dimension_scores: Dict[str, Optional[float]] = Field(default_factory=dict, alias="dimensionScores")
    advice: Optional[ResultEmailAdvice] = None
    download_url: Optional[str] = Field(None, alias="downloadUrl")
