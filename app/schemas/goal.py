from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional

from app.models.goal import GoalChain, GoalState, Timeline


class GoalAssignRequest(BaseModel):
    """Create (or draft) a goal for a manager (HR) or a direct report (manager)."""
    cycle_id: int
    target_id: int
    title: str = Field(..., min_length=1, max_length=140)
    description: Optional[str] = None
    timeline: str = "quarterly"


class GoalSubmitRequest(BaseModel):
    # Range checks happen in the workflow engine so errors carry the InvalidInput kind
    progress: Optional[int] = None
    comments: Optional[str] = None


class GoalProgressUpdate(BaseModel):
    progress: int


class GoalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    cycle_id: int
    title: str
    description: Optional[str] = None
    timeline: Timeline
    chain: GoalChain
    assigned_by_role: str
    assigned_by_id: int
    assignee_id: int
    owner_id: int
    progress: int
    state: GoalState
    version: int
    submission_comments: Optional[str] = None
    accepted_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
