from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.routers.auth_deps import get_current_actor
from app.schemas.report import PerformanceReportRow
from app.services.directory import Actor
from app.services.reporting import ReportFilters, ReportingProjector

router = APIRouter(prefix="/pms/reports", tags=["reports"])


@router.get("/performance", response_model=List[PerformanceReportRow])
def performance_report(
    cycle_id: Optional[int] = None,
    status: Optional[str] = None,
    department_id: Optional[int] = None,
    employee_id: Optional[int] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    Per-employee rollup: average rating, goals completed/total and completion %.
    Employees only see themselves; managers see themselves and their team.
    """
    filters = ReportFilters(status=status, department_id=department_id, employee_id=employee_id)
    return ReportingProjector(db).performance_report(cycle_id, filters, viewer=actor)
