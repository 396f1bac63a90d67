"""
Directory Resolver.

Answers "who reports to whom" and "may this actor act on this goal". It never
raises for a denial; callers turn a False into an Unauthorized error.
"""
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.goal import Goal, GoalAction, GoalChain, GoalState
from app.models.user import User, UserRole
from app.services.base import BaseService

# Actions only the current owner of a goal may perform
OWNER_ACTIONS = frozenset({GoalAction.ACCEPT, GoalAction.SUBMIT, GoalAction.UPDATE_PROGRESS})


@dataclass(frozen=True)
class Actor:
    """Authenticated identity passed explicitly into every workflow call."""
    id: int
    role: UserRole

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(id=user.id, role=user.role)


class DirectoryResolver(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id, User.is_active == True).first()

    def manager_of(self, user_id: int) -> Optional[int]:
        user = self.get_user(user_id)
        return user.manager_id if user else None

    def direct_reports(self, manager_id: int) -> List[int]:
        rows = (
            self.db.query(User.id)
            .filter(User.manager_id == manager_id, User.is_active == True)
            .all()
        )
        return [row.id for row in rows]

    def is_direct_report(self, manager_id: int, user_id: Optional[int]) -> bool:
        if user_id is None or user_id == manager_id:
            return False
        return self.manager_of(user_id) == manager_id

    def authorize(self, actor: Actor, goal: Goal, action: Optional[GoalAction] = None) -> bool:
        """
        Whether `actor` may perform `action` on `goal` in its current state.
        With no action, answers the general visibility question.
        """
        owns = goal.owner_id == actor.id

        if action in OWNER_ACTIONS:
            return owns

        if action == GoalAction.ASSIGN:
            if goal.state != GoalState.DRAFT or goal.assigned_by_id != actor.id:
                return False
            if actor.role == UserRole.MANAGER:
                return self.is_direct_report(actor.id, goal.assignee_id)
            return actor.role == UserRole.HR

        if actor.role == UserRole.HR:
            if goal.state == GoalState.DRAFT:
                return goal.assigned_by_id == actor.id
            return goal.chain == GoalChain.HR_MANAGER

        if actor.role == UserRole.MANAGER:
            on_team = self.is_direct_report(actor.id, goal.owner_id)
            if action == GoalAction.APPROVE:
                return on_team
            return owns or on_team

        if action == GoalAction.APPROVE:
            return False
        return owns
