from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import UserRole
from app.routers.auth_deps import get_current_actor, require_role
from app.schemas.cycle import CycleCreate, CycleResponse
from app.services.cycles import CycleService
from app.services.directory import Actor

router = APIRouter(prefix="/pms/cycles", tags=["review-cycles"])


@router.post("", response_model=CycleResponse, status_code=status.HTTP_201_CREATED)
def create_cycle(
    request: CycleCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_role([UserRole.HR])),
):
    return CycleService(db).create(actor, request.label, request.period_start, request.period_end)


@router.get("", response_model=List[CycleResponse])
def list_cycles(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return CycleService(db).list_cycles(status)


@router.post("/{cycle_id}/close", response_model=CycleResponse)
def close_cycle(
    cycle_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_role([UserRole.HR])),
):
    """Closing a cycle makes every review in it final."""
    return CycleService(db).close(actor, cycle_id)
