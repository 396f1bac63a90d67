from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.exceptions import Unauthorized
from app.database import get_db
from app.models.user import UserRole
from app.routers.auth_deps import get_current_actor, require_role
from app.schemas.goal import (
    GoalAssignRequest,
    GoalProgressUpdate,
    GoalResponse,
    GoalSubmitRequest,
)
from app.services.directory import Actor
from app.services.reporting import ReportingProjector
from app.services.workflow import WorkflowEngine

router = APIRouter(prefix="/pms", tags=["goals"])


def get_engine(db: Session = Depends(get_db)) -> WorkflowEngine:
    return WorkflowEngine(db)


def get_projector(db: Session = Depends(get_db)) -> ReportingProjector:
    return ReportingProjector(db)


# --- Assignment ---

@router.post("/goals/assign", response_model=GoalResponse, status_code=status.HTTP_201_CREATED)
def assign_goal(
    request: GoalAssignRequest,
    engine: WorkflowEngine = Depends(get_engine),
    actor: Actor = Depends(require_role([UserRole.HR, UserRole.MANAGER])),
):
    """HR assigns to a manager, a manager assigns to a direct report."""
    return engine.assign_new(
        actor,
        cycle_id=request.cycle_id,
        target_id=request.target_id,
        title=request.title,
        description=request.description,
        timeline=request.timeline,
    )


@router.post("/goals/drafts", response_model=GoalResponse, status_code=status.HTTP_201_CREATED)
def create_draft(
    request: GoalAssignRequest,
    engine: WorkflowEngine = Depends(get_engine),
    actor: Actor = Depends(require_role([UserRole.HR, UserRole.MANAGER])),
):
    return engine.create_draft(
        actor,
        cycle_id=request.cycle_id,
        target_id=request.target_id,
        title=request.title,
        description=request.description,
        timeline=request.timeline,
    )


@router.post("/goals/{goal_id}/assign", response_model=GoalResponse)
def assign_draft(
    goal_id: int,
    engine: WorkflowEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor),
):
    return engine.assign(actor, goal_id)


# --- Execution ---

@router.post("/goals/{goal_id}/accept", response_model=GoalResponse)
def accept_goal(
    goal_id: int,
    engine: WorkflowEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor),
):
    return engine.accept(actor, goal_id)


@router.put("/goals/{goal_id}", response_model=GoalResponse)
def update_goal_progress(
    goal_id: int,
    update: GoalProgressUpdate,
    engine: WorkflowEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor),
):
    return engine.update_progress(actor, goal_id, update.progress)


@router.post("/goals/{goal_id}/submit", response_model=GoalResponse)
def submit_goal(
    goal_id: int,
    request: Optional[GoalSubmitRequest] = None,
    engine: WorkflowEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor),
):
    request = request or GoalSubmitRequest()
    return engine.submit(actor, goal_id, progress=request.progress, comments=request.comments)


@router.get("/goals/{goal_id}", response_model=GoalResponse)
def get_goal(
    goal_id: int,
    engine: WorkflowEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor),
):
    goal = engine.store.get(goal_id)
    if not engine.directory.authorize(actor, goal):
        raise Unauthorized("You cannot view this goal")
    return goal


# --- Views ---

@router.get("/my-assigned-goals", response_model=List[GoalResponse])
def my_assigned_goals(
    cycle_id: Optional[int] = None,
    projector: ReportingProjector = Depends(get_projector),
    actor: Actor = Depends(get_current_actor),
):
    return projector.my_assigned_goals(actor.id, cycle_id)


@router.get("/pending-approvals", response_model=List[GoalResponse])
def pending_approvals(
    projector: ReportingProjector = Depends(get_projector),
    actor: Actor = Depends(get_current_actor),
):
    return projector.pending_approvals(actor.role, actor.id)


@router.get("/manager/goals", response_model=List[GoalResponse])
def team_member_goals(
    employee_id: int,
    cycle_id: Optional[int] = None,
    projector: ReportingProjector = Depends(get_projector),
    actor: Actor = Depends(require_role([UserRole.HR, UserRole.MANAGER])),
):
    """All goals of one direct report (any employee for HR), whatever their state."""
    return projector.team_goals(actor, employee_id, cycle_id)
