from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import UserRole
from app.routers.auth_deps import get_current_actor, require_role
from app.schemas.review import (
    ApprovalResponse,
    ReviewAmendRequest,
    ReviewApproveRequest,
    ReviewResponse,
    SelfAssessmentRequest,
    SelfAssessmentResponse,
)
from app.services.directory import Actor
from app.services.reporting import ReportingProjector
from app.services.review_aggregator import ReviewAggregator
from app.services.self_assessment import submit_self_assessment
from app.services.workflow import WorkflowEngine

router = APIRouter(prefix="/pms", tags=["reviews"])


@router.post("/reviews/{goal_id}/approve", response_model=ApprovalResponse)
def approve_goal(
    goal_id: int,
    request: ReviewApproveRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_role([UserRole.HR, UserRole.MANAGER])),
):
    """
    HR approves manager goals, managers approve their direct reports' goals.
    Approving an already-approved goal updates its review in place.
    """
    goal = WorkflowEngine(db).approve(actor, goal_id, rating=request.rating, comments=request.comments)
    return ApprovalResponse(
        goal_id=goal.id,
        state=goal.state.value,
        review=ReviewResponse.model_validate(goal.review),
    )


@router.patch("/reviews/{review_id}", response_model=ReviewResponse)
def amend_review(
    review_id: int,
    request: ReviewAmendRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_role([UserRole.HR, UserRole.MANAGER])),
):
    return ReviewAggregator(db).amend_review(actor, review_id, rating=request.rating, comments=request.comments)


@router.get("/reviews-given", response_model=List[ReviewResponse])
def reviews_given(
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_role([UserRole.HR, UserRole.MANAGER])),
):
    return ReportingProjector(db).reviews_given(actor.id)


@router.get("/my-reviews", response_model=List[ReviewResponse])
def my_reviews(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Employees see their own reviews, managers add their team, HR sees all."""
    return ReportingProjector(db).my_reviews(actor)


@router.post("/self-assess", response_model=SelfAssessmentResponse)
def self_assess(
    request: SelfAssessmentRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return submit_self_assessment(db, actor, request.cycle_id, comments=request.comments, rating=request.rating)
