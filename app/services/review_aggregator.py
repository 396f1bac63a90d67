"""
Review Aggregator.

Reacts to workflow events inside the transition's transaction: writes the
1:1 Review for an approved goal and keeps the per (cycle, employee) rollup
current. It never commits on behalf of the workflow engine; a failure here
aborts the whole transition.
"""
from datetime import datetime, timezone
from statistics import mean
from typing import Optional

from sqlalchemy.orm import Session

from app.core.exceptions import InvalidInput, InvalidTransition, NotFound, Unauthorized
from app.core.security import sanitize_input
from app.models.goal import APPROVED_STATES, Goal, GoalAction, GoalChain, GoalState
from app.models.performance_summary import PerformanceSummary
from app.models.review import Review, ReviewStatus
from app.models.review_cycle import ReviewCycle
from app.models.user import UserRole
from app.services.base import BaseService
from app.services.directory import Actor, DirectoryResolver

# The role that approves each chain, and therefore owns its reviews
APPROVER_ROLE = {
    GoalChain.HR_MANAGER: UserRole.HR,
    GoalChain.MANAGER_EMPLOYEE: UserRole.MANAGER,
}


def validate_rating(rating) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise InvalidInput("Rating must be an integer between 1 and 5", details={"rating": rating})
    return rating


class ReviewAggregator(BaseService):
    def __init__(self, db: Session, directory: Optional[DirectoryResolver] = None):
        super().__init__(db)
        self.directory = directory or DirectoryResolver(db)

    # ------------------------------------------------------------------
    # Workflow event subscriber
    # ------------------------------------------------------------------
    def handle_event(self, event, goal: Goal):
        if event.to_state in APPROVED_STATES:
            self.on_approved(
                goal,
                rating=event.payload.get("rating"),
                comments=event.payload.get("comments"),
                reviewer_id=event.actor.id,
            )
        elif event.action == GoalAction.ASSIGN:
            # A new assignment changes goals_total for the assignee
            self.recompute(goal.cycle_id, goal.assignee_id)

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------
    def on_approved(self, goal: Optional[Goal], rating: int, comments: Optional[str], reviewer_id: int) -> Review:
        """
        Creates the goal's Review, or updates it in place when the goal was
        already approved. Flushes but does not commit.
        """
        if goal is None:
            raise NotFound("Goal not found")
        if goal.state not in APPROVED_STATES:
            raise InvalidTransition(
                f"Reviews can only be recorded for approved goals (goal is {goal.state.value})"
            )
        validate_rating(rating)
        self._require_open_cycle(goal.cycle_id)

        review = self.db.query(Review).filter(Review.goal_id == goal.id).first()
        if review:
            if review.status == ReviewStatus.FINAL.value:
                raise InvalidTransition("Review is final and can no longer be changed")
            review.rating = rating
            review.comments = sanitize_input(comments)
            review.reviewer_id = reviewer_id
            review.updated_at = datetime.now(timezone.utc)
            self.log_info(f"Review {review.id} updated on re-approval of goal {goal.id}", goal_id=goal.id)
        else:
            review = Review(
                goal_id=goal.id,
                cycle_id=goal.cycle_id,
                employee_id=goal.assignee_id,
                reviewer_id=reviewer_id,
                reviewer_role=APPROVER_ROLE[goal.chain].value,
                rating=rating,
                comments=sanitize_input(comments),
                status=ReviewStatus.PENDING.value,
            )
            self.db.add(review)
            self.log_info(f"Review created for goal {goal.id}", goal_id=goal.id)

        self.db.flush()
        self.recompute(goal.cycle_id, goal.assignee_id)
        return review

    def amend_review(self, actor: Actor, review_id: int, rating: int, comments: Optional[str] = None) -> Review:
        validate_rating(rating)
        review = self.db.query(Review).filter(Review.id == review_id).first()
        if not review:
            raise NotFound(f"Review {review_id} not found")

        if actor.role.value != review.reviewer_role:
            raise Unauthorized("Only the approving role may amend this review")
        if actor.role == UserRole.MANAGER and not self.directory.is_direct_report(actor.id, review.employee_id):
            raise Unauthorized("Managers may only amend reviews of their direct reports")
        if review.status == ReviewStatus.FINAL.value:
            raise InvalidTransition("Review is final and can no longer be changed")
        self._require_open_cycle(review.cycle_id)

        review.rating = rating
        if comments is not None:
            review.comments = sanitize_input(comments)
        review.reviewer_id = actor.id
        review.updated_at = datetime.now(timezone.utc)
        try:
            self.db.flush()
            self.recompute(review.cycle_id, review.employee_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(review)
        return review

    def finalize_cycle(self, cycle_id: int) -> int:
        """Marks every review of the cycle final. Flushes but does not commit."""
        count = (
            self.db.query(Review)
            .filter(Review.cycle_id == cycle_id, Review.status != ReviewStatus.FINAL.value)
            .update({Review.status: ReviewStatus.FINAL.value}, synchronize_session=False)
        )
        self.db.flush()
        return count

    # ------------------------------------------------------------------
    # Rollups
    # ------------------------------------------------------------------
    def recompute(self, cycle_id: int, employee_id: int) -> PerformanceSummary:
        """
        Composite score = mean rating over the employee's approved goals in
        the cycle; written to each of those reviews and to the summary row.
        """
        reviews = (
            self.db.query(Review)
            .join(Goal, Goal.id == Review.goal_id)
            .filter(
                Review.cycle_id == cycle_id,
                Review.employee_id == employee_id,
                Goal.state.in_(APPROVED_STATES),
            )
            .all()
        )
        composite = round(float(mean(r.rating for r in reviews)), 2) if reviews else None
        for review in reviews:
            review.composite_score = composite

        assigned = self.db.query(Goal).filter(
            Goal.cycle_id == cycle_id,
            Goal.assignee_id == employee_id,
            Goal.state != GoalState.DRAFT,
        )
        goals_total = assigned.count()
        goals_completed = assigned.filter(Goal.state.in_(APPROVED_STATES)).count()

        summary = (
            self.db.query(PerformanceSummary)
            .filter(PerformanceSummary.cycle_id == cycle_id, PerformanceSummary.employee_id == employee_id)
            .first()
        )
        if not summary:
            summary = PerformanceSummary(cycle_id=cycle_id, employee_id=employee_id)
            self.db.add(summary)
        summary.composite_score = composite
        summary.goals_total = goals_total
        summary.goals_completed = goals_completed
        summary.updated_at = datetime.now(timezone.utc)
        self.db.flush()
        return summary

    def _require_open_cycle(self, cycle_id: int):
        cycle = self.db.query(ReviewCycle).filter(ReviewCycle.id == cycle_id).first()
        if not cycle:
            raise NotFound(f"Review cycle {cycle_id} not found")
        if not cycle.is_open:
            raise InvalidTransition(f"Review cycle '{cycle.label}' is closed")
