from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional


class ReviewApproveRequest(BaseModel):
    rating: int  # 1-5, validated by the workflow engine
    comments: Optional[str] = None


class ReviewAmendRequest(BaseModel):
    rating: int
    comments: Optional[str] = None


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    goal_id: int
    cycle_id: int
    employee_id: int
    reviewer_id: int
    reviewer_role: str
    rating: int
    rating_label: str
    comments: Optional[str] = None
    composite_score: Optional[float] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ApprovalResponse(BaseModel):
    goal_id: int
    state: str
    review: ReviewResponse


class SelfAssessmentRequest(BaseModel):
    cycle_id: int
    comments: Optional[str] = None
    rating: Optional[int] = None


class SelfAssessmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    cycle_id: int
    comments: Optional[str] = None
    rating: Optional[int] = None
    submitted_at: Optional[datetime] = None
