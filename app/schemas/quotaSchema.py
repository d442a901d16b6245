from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List


class QuotaMetric(BaseModel):
    """Usage of one quota metric of an external service."""
    metric: str
    percentage: float = Field(..., ge=0)
    used: float = 0
    limit: float = 0


class QuotaAlertRequest(BaseModel):
    """Schema for a quota report, keyed by service name (e.g. supabase, vercel)."""
    model_config = ConfigDict(populate_by_name=True)

    quota_data: Dict[str, List[QuotaMetric]] = Field(..., alias="quotaData")
