from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import InvalidInput, InvalidTransition, NotFound, Unauthorized
from app.core.security import sanitize_input
from app.models.review_cycle import CycleStatus, ReviewCycle
from app.models.user import UserRole
from app.services.base import BaseService
from app.services.directory import Actor
from app.services.review_aggregator import ReviewAggregator


class CycleService(BaseService):
    def __init__(self, db: Session, aggregator: Optional[ReviewAggregator] = None):
        super().__init__(db)
        self.aggregator = aggregator or ReviewAggregator(db)

    def create(self, actor: Actor, label: str, period_start: date, period_end: date) -> ReviewCycle:
        self._require_hr(actor)
        label = sanitize_input(label)
        if not label:
            raise InvalidInput("Cycle label is required")
        if period_end < period_start:
            raise InvalidInput("Cycle period_end must not be before period_start")

        cycle = ReviewCycle(
            label=label,
            period_start=period_start,
            period_end=period_end,
            status=CycleStatus.OPEN.value,
            created_by=actor.id,
        )
        self.db.add(cycle)
        self.commit()
        self.db.refresh(cycle)
        self.log_info(f"Review cycle {cycle.id} '{cycle.label}' opened")
        return cycle

    def list_cycles(self, status: Optional[str] = None) -> List[ReviewCycle]:
        query = self.db.query(ReviewCycle)
        if status:
            try:
                query = query.filter(ReviewCycle.status == CycleStatus(status).value)
            except ValueError:
                raise InvalidInput(f"Unknown cycle status '{status}'")
        return query.order_by(ReviewCycle.period_start.desc()).all()

    def get(self, cycle_id: int) -> ReviewCycle:
        cycle = self.db.query(ReviewCycle).filter(ReviewCycle.id == cycle_id).first()
        if not cycle:
            raise NotFound(f"Review cycle {cycle_id} not found")
        return cycle

    def close(self, actor: Actor, cycle_id: int) -> ReviewCycle:
        """Closes the cycle and freezes its reviews."""
        self._require_hr(actor)
        cycle = self.get(cycle_id)
        if not cycle.is_open:
            raise InvalidTransition(f"Review cycle '{cycle.label}' is already closed")

        cycle.status = CycleStatus.CLOSED.value
        cycle.closed_at = datetime.now(timezone.utc)
        try:
            finalized = self.aggregator.finalize_cycle(cycle.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(cycle)
        self.log_info(f"Review cycle {cycle.id} closed, {finalized} review(s) finalized")
        return cycle

    @staticmethod
    def _require_hr(actor: Actor):
        if actor.role != UserRole.HR:
            raise Unauthorized("HR access only")
