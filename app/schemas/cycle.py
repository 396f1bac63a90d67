from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from typing import Optional


class CycleCreate(BaseModel):
    label: str = Field(..., min_length=1, max_length=80)
    period_start: date
    period_end: date


class CycleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    label: str
    period_start: date
    period_end: date
    status: str
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
