"""
Goal Store.

Owns reads and writes of the goals table. Every write is a compare-and-set
keyed by (id, expected state, expected version), so at most one transition
commits per prior state no matter how many callers race.
"""
from typing import Any, Optional

from sqlalchemy import func, text, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import NotFound, StateConflict
from app.models.goal import Goal, GoalState
from app.services.base import BaseService


class GoalStore(BaseService):
    def __init__(self, db: Session, lock_timeout_ms: Optional[int] = None):
        super().__init__(db)
        self.lock_timeout_ms = lock_timeout_ms or settings.store_lock_timeout_ms

    def get(self, goal_id: int) -> Goal:
        goal = self.db.query(Goal).filter(Goal.id == goal_id).first()
        if not goal:
            raise NotFound(f"Goal {goal_id} not found")
        return goal

    def add(self, goal: Goal) -> Goal:
        self.db.add(goal)
        self.db.flush()
        return goal

    def _apply_lock_timeout(self):
        # SQLite gets its busy timeout from connect_args (see app.database)
        if self.db.get_bind().dialect.name == "postgresql":
            self.db.execute(text(f"SET LOCAL lock_timeout = {int(self.lock_timeout_ms)}"))

    def compare_and_set(
        self,
        goal: Goal,
        expected_state: GoalState,
        expected_version: int,
        new_state: GoalState,
        **changes: Any,
    ) -> Goal:
        """
        Moves `goal` from `expected_state` to `new_state` (plus column
        `changes`) only if nobody committed a write since it was read.
        Does not commit; the caller owns the transaction.
        """
        stmt = (
            update(Goal)
            .where(
                Goal.id == goal.id,
                Goal.state == expected_state,
                Goal.version == expected_version,
            )
            .values(state=new_state, version=Goal.version + 1, updated_at=func.now(), **changes)
            .execution_options(synchronize_session=False)
        )
        try:
            self._apply_lock_timeout()
            result = self.db.execute(stmt)
        except OperationalError as e:
            # Lock wait exceeded: the other writer is still holding the row
            self.log_warning(f"Goal {goal.id}: lock timeout during transition", goal_id=goal.id)
            raise StateConflict(
                "Timed out waiting for a concurrent update of this goal, retry",
                details={"goal_id": goal.id},
            ) from e

        if result.rowcount != 1:
            self.log_warning(
                f"Goal {goal.id}: compare-and-set lost (expected {expected_state.value} v{expected_version})",
                goal_id=goal.id,
            )
            raise StateConflict(
                details={"goal_id": goal.id, "expected_state": expected_state.value},
            )

        self.db.refresh(goal)
        return goal
