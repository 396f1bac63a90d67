"""
Reporting Projector.

Read-only views over committed Goal/Review state. Nothing here writes or
locks; callers re-fetch after each mutation.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import InvalidInput, NotFound, Unauthorized
from app.models.department import Department
from app.models.goal import APPROVED_STATES, Goal, GoalAction, GoalState
from app.models.performance_summary import PerformanceSummary
from app.models.review import Review, ReviewStatus
from app.models.user import User, UserRole
from app.services.base import BaseService
from app.services.directory import Actor, DirectoryResolver

# Which submitted state each approver role works through
PENDING_STATE_FOR_ROLE = {
    UserRole.HR: GoalState.MANAGER_SUBMITTED,
    UserRole.MANAGER: GoalState.EMPLOYEE_SUBMITTED,
}


def completion_percentage(completed: int, total: int) -> int:
    """completed/total as a whole percentage, rounded half up; 0 for no goals."""
    if total <= 0:
        return 0
    return (completed * 200 + total) // (2 * total)


@dataclass
class ReportFilters:
    status: Optional[str] = None
    department_id: Optional[int] = None
    employee_id: Optional[int] = None


@dataclass
class PerformanceRow:
    employee_id: int
    employee_name: str
    department_name: str
    cycle_id: int
    average_rating: Optional[float]
    goals_completed: int
    goals_total: int
    completion_percentage: int
    status: Optional[str]
    goal_titles: str = ""


class ReportingProjector(BaseService):
    def __init__(self, db: Session, directory: Optional[DirectoryResolver] = None):
        super().__init__(db)
        self.directory = directory or DirectoryResolver(db)

    def my_assigned_goals(self, actor_id: int, cycle_id: Optional[int] = None) -> List[Goal]:
        query = self.db.query(Goal).filter(
            Goal.owner_id == actor_id,
            Goal.state.notin_(APPROVED_STATES + (GoalState.DRAFT,)),
        )
        if cycle_id is not None:
            query = query.filter(Goal.cycle_id == cycle_id)
        return query.order_by(Goal.created_at.desc(), Goal.id.desc()).all()

    def team_goals(self, viewer: Actor, employee_id: int, cycle_id: Optional[int] = None) -> List[Goal]:
        """Every goal assigned to one employee, in any state. HR may look at anyone."""
        if viewer.role == UserRole.MANAGER:
            if not self.directory.is_direct_report(viewer.id, employee_id):
                raise Unauthorized("Employee is not in your team")
        elif viewer.role != UserRole.HR:
            raise Unauthorized("Only HR and managers can list another user's goals")
        elif not self.directory.get_user(employee_id):
            raise NotFound(f"User {employee_id} not found")

        query = self.db.query(Goal).filter(Goal.assignee_id == employee_id)
        if cycle_id is not None:
            query = query.filter(Goal.cycle_id == cycle_id)
        return query.order_by(Goal.created_at.desc(), Goal.id.desc()).all()

    def pending_approvals(self, approver_role: UserRole, approver_id: int) -> List[Goal]:
        state = PENDING_STATE_FOR_ROLE.get(approver_role)
        if state is None:
            raise Unauthorized("Only HR and managers have approvals")

        query = self.db.query(Goal).filter(Goal.state == state)
        if approver_role == UserRole.MANAGER:
            team = self.directory.direct_reports(approver_id)
            if not team:
                return []
            query = query.filter(Goal.owner_id.in_(team))

        actor = Actor(id=approver_id, role=approver_role)
        goals = query.order_by(Goal.submitted_at.asc(), Goal.id.asc()).all()
        return [g for g in goals if self.directory.authorize(actor, g, GoalAction.APPROVE)]

    def performance_report(
        self,
        cycle_id: Optional[int] = None,
        filters: Optional[ReportFilters] = None,
        viewer: Optional[Actor] = None,
    ) -> List[PerformanceRow]:
        filters = filters or ReportFilters()
        status = self._parse_review_status(filters.status)

        query = (
            self.db.query(PerformanceSummary, User, Department)
            .join(User, User.id == PerformanceSummary.employee_id)
            .outerjoin(Department, Department.id == User.department_id)
        )
        if cycle_id is not None:
            query = query.filter(PerformanceSummary.cycle_id == cycle_id)
        if filters.department_id is not None:
            query = query.filter(User.department_id == filters.department_id)
        if filters.employee_id is not None:
            query = query.filter(PerformanceSummary.employee_id == filters.employee_id)

        visible = self._visible_employees(viewer)
        if visible is not None:
            query = query.filter(PerformanceSummary.employee_id.in_(visible))

        rows = query.order_by(PerformanceSummary.employee_id.asc(), PerformanceSummary.cycle_id.asc()).all()
        statuses = self._review_statuses(cycle_id)
        titles = self._goal_titles(cycle_id)

        report = []
        for summary, user, department in rows:
            row_status = statuses.get((summary.cycle_id, summary.employee_id))
            if status is not None and row_status != status.value:
                continue
            report.append(PerformanceRow(
                employee_id=user.id,
                employee_name=user.full_name or user.email,
                department_name=department.name if department else "N/A",
                cycle_id=summary.cycle_id,
                average_rating=summary.composite_score,
                goals_completed=summary.goals_completed,
                goals_total=summary.goals_total,
                completion_percentage=completion_percentage(summary.goals_completed, summary.goals_total),
                status=row_status,
                goal_titles=", ".join(titles.get((summary.cycle_id, summary.employee_id), [])),
            ))
        return report

    def reviews_given(self, reviewer_id: int) -> List[Review]:
        return (
            self.db.query(Review)
            .filter(Review.reviewer_id == reviewer_id)
            .order_by(Review.updated_at.desc(), Review.id.desc())
            .all()
        )

    def my_reviews(self, actor: Actor) -> List[Review]:
        query = self.db.query(Review)
        visible = self._visible_employees(actor)
        if visible is not None:
            query = query.filter(Review.employee_id.in_(visible))
        return query.order_by(Review.created_at.desc(), Review.id.desc()).all()

    # ------------------------------------------------------------------
    def _visible_employees(self, viewer: Optional[Actor]) -> Optional[List[int]]:
        """None means unrestricted (HR or internal callers)."""
        if viewer is None or viewer.role == UserRole.HR:
            return None
        if viewer.role == UserRole.MANAGER:
            return [viewer.id] + self.directory.direct_reports(viewer.id)
        return [viewer.id]

    def _review_statuses(self, cycle_id: Optional[int]) -> Dict[tuple, str]:
        """(cycle, employee) -> "pending" if any review is still open, else "final"."""
        query = self.db.query(Review.cycle_id, Review.employee_id, Review.status)
        if cycle_id is not None:
            query = query.filter(Review.cycle_id == cycle_id)
        statuses: Dict[tuple, str] = {}
        for row_cycle, employee_id, status in query.all():
            key = (row_cycle, employee_id)
            if status == ReviewStatus.PENDING.value or key not in statuses:
                statuses[key] = status
        return statuses

    def _goal_titles(self, cycle_id: Optional[int]) -> Dict[tuple, List[str]]:
        """(cycle, employee) -> distinct titles of the assigned (non-draft) goals."""
        query = self.db.query(Goal.cycle_id, Goal.assignee_id, Goal.title).filter(Goal.state != GoalState.DRAFT)
        if cycle_id is not None:
            query = query.filter(Goal.cycle_id == cycle_id)
        titles: Dict[tuple, List[str]] = {}
        for row_cycle, assignee_id, title in query.order_by(Goal.id.asc()).all():
            bucket = titles.setdefault((row_cycle, assignee_id), [])
            if title not in bucket:
                bucket.append(title)
        return titles

    @staticmethod
    def _parse_review_status(value: Optional[str]) -> Optional[ReviewStatus]:
        if value is None or value == "":
            return None
        try:
            return ReviewStatus(value.lower())
        except ValueError:
            raise InvalidInput(
                f"Unknown review status '{value}'",
                details={"allowed": [s.value for s in ReviewStatus]},
            )
