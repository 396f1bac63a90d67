"""
Workflow Engine — the goal lifecycle state machine.

Every intent (assign, accept, submit, approve, update_progress) follows the
same path:

1. load the goal from the store
2. look up the transition for (action, actor role, goal chain)
3. ask the directory whether this actor may act on this goal
4. check the source state and guard conditions
5. compare-and-set the new state
6. emit a GoalEvent to subscribers (the review aggregator by default)
7. commit, or roll everything back if any step raised

The transition table is fixed; there is no user-editable workflow graph.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.exceptions import InvalidInput, InvalidTransition, NotFound, Unauthorized
from app.core.security import sanitize_input
from app.models.goal import Goal, GoalAction, GoalChain, GoalState, Timeline
from app.models.review_cycle import ReviewCycle
from app.models.user import UserRole
from app.services.base import BaseService
from app.services.directory import Actor, DirectoryResolver
from app.services.goal_store import GoalStore
from app.services.review_aggregator import ReviewAggregator, validate_rating


@dataclass(frozen=True)
class Transition:
    sources: Tuple[GoalState, ...]
    destination: GoalState


TRANSITIONS: Dict[Tuple[GoalAction, UserRole, GoalChain], Transition] = {
    (GoalAction.ASSIGN, UserRole.HR, GoalChain.HR_MANAGER):
        Transition((GoalState.DRAFT,), GoalState.HR_ASSIGNED),
    (GoalAction.ASSIGN, UserRole.MANAGER, GoalChain.MANAGER_EMPLOYEE):
        Transition((GoalState.DRAFT,), GoalState.MANAGER_ASSIGNED),
    (GoalAction.ACCEPT, UserRole.MANAGER, GoalChain.HR_MANAGER):
        Transition((GoalState.HR_ASSIGNED,), GoalState.MANAGER_ACCEPTED),
    (GoalAction.ACCEPT, UserRole.EMPLOYEE, GoalChain.MANAGER_EMPLOYEE):
        Transition((GoalState.MANAGER_ASSIGNED,), GoalState.EMPLOYEE_ACCEPTED),
    (GoalAction.SUBMIT, UserRole.MANAGER, GoalChain.HR_MANAGER):
        Transition((GoalState.MANAGER_ACCEPTED,), GoalState.MANAGER_SUBMITTED),
    (GoalAction.SUBMIT, UserRole.EMPLOYEE, GoalChain.MANAGER_EMPLOYEE):
        Transition((GoalState.EMPLOYEE_ACCEPTED,), GoalState.EMPLOYEE_SUBMITTED),
    # Approving an already-approved goal amends its review in place
    (GoalAction.APPROVE, UserRole.HR, GoalChain.HR_MANAGER):
        Transition((GoalState.MANAGER_SUBMITTED, GoalState.MANAGER_APPROVED), GoalState.MANAGER_APPROVED),
    (GoalAction.APPROVE, UserRole.MANAGER, GoalChain.MANAGER_EMPLOYEE):
        Transition((GoalState.EMPLOYEE_SUBMITTED, GoalState.HR_APPROVED), GoalState.HR_APPROVED),
}

# Role that creates goals on each chain, and the role its assignee must hold
ASSIGNMENT_CHAINS = {
    UserRole.HR: (GoalChain.HR_MANAGER, UserRole.MANAGER),
    UserRole.MANAGER: (GoalChain.MANAGER_EMPLOYEE, UserRole.EMPLOYEE),
}

# Timestamp column stamped when an action commits
_ACTION_TIMESTAMPS = {
    GoalAction.ACCEPT: "accepted_at",
    GoalAction.SUBMIT: "submitted_at",
    GoalAction.APPROVE: "approved_at",
}


def resolve_transition(action: GoalAction, role: UserRole, chain: GoalChain) -> Optional[Transition]:
    return TRANSITIONS.get((action, role, chain))


def parse_state(value: str) -> GoalState:
    """Maps an external state string to the enum; anything else is rejected."""
    try:
        return GoalState(value)
    except ValueError:
        raise InvalidInput(
            f"Unknown goal state '{value}'",
            details={"allowed": [s.value for s in GoalState]},
        )


def validate_progress(progress) -> int:
    if isinstance(progress, bool) or not isinstance(progress, int) or not 0 <= progress <= 100:
        raise InvalidInput("Progress must be an integer between 0 and 100", details={"progress": progress})
    return progress


@dataclass(frozen=True)
class GoalEvent:
    goal_id: int
    action: GoalAction
    from_state: GoalState
    to_state: GoalState
    actor: Actor
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


EventHandler = Callable[[GoalEvent, Goal], None]


class WorkflowEngine(BaseService):
    def __init__(
        self,
        db: Session,
        directory: Optional[DirectoryResolver] = None,
        store: Optional[GoalStore] = None,
        aggregator: Optional[ReviewAggregator] = None,
    ):
        super().__init__(db)
        self.directory = directory or DirectoryResolver(db)
        self.store = store or GoalStore(db)
        self.aggregator = aggregator or ReviewAggregator(db, self.directory)
        self._subscribers: List[EventHandler] = [self.aggregator.handle_event]

    def subscribe(self, handler: EventHandler):
        """Handlers run synchronously inside the transition's transaction."""
        self._subscribers.append(handler)

    # ------------------------------------------------------------------
    # Public intents
    # ------------------------------------------------------------------
    def create_draft(
        self,
        actor: Actor,
        cycle_id: int,
        target_id: int,
        title: str,
        description: Optional[str] = None,
        timeline: Any = Timeline.QUARTERLY,
    ) -> Goal:
        goal = self._in_transaction(
            lambda: self._new_draft(actor, cycle_id, target_id, title, description, timeline)
        )
        self.log_info(f"Draft goal {goal.id} created by user {actor.id}", goal_id=goal.id)
        return goal

    def assign_new(
        self,
        actor: Actor,
        cycle_id: int,
        target_id: int,
        title: str,
        description: Optional[str] = None,
        timeline: Any = Timeline.QUARTERLY,
    ) -> Goal:
        """Creates a goal and assigns it in one transaction."""
        def work():
            goal = self._new_draft(actor, cycle_id, target_id, title, description, timeline)
            return self._apply(actor, goal, GoalAction.ASSIGN)
        return self._in_transaction(work)

    def assign(self, actor: Actor, goal_id: int) -> Goal:
        return self._in_transaction(
            lambda: self._apply(actor, self.store.get(goal_id), GoalAction.ASSIGN)
        )

    def accept(self, actor: Actor, goal_id: int) -> Goal:
        return self._in_transaction(
            lambda: self._apply(actor, self.store.get(goal_id), GoalAction.ACCEPT)
        )

    def submit(self, actor: Actor, goal_id: int, progress: Optional[int] = None, comments: Optional[str] = None) -> Goal:
        if progress is not None:
            validate_progress(progress)

        def guard(goal: Goal):
            effective = goal.progress if progress is None else progress
            if effective != 100:
                raise InvalidTransition(
                    f"Goal can only be submitted at 100% progress (currently {effective}%)",
                    details={"progress": effective},
                )

        changes: Dict[str, Any] = {}
        if progress is not None:
            changes["progress"] = progress
        if comments:
            changes["submission_comments"] = sanitize_input(comments)

        return self._in_transaction(
            lambda: self._apply(actor, self.store.get(goal_id), GoalAction.SUBMIT, changes=changes, guard=guard)
        )

    def approve(self, actor: Actor, goal_id: int, rating: int, comments: Optional[str] = None) -> Goal:
        validate_rating(rating)
        payload = {"rating": rating, "comments": comments}
        return self._in_transaction(
            lambda: self._apply(actor, self.store.get(goal_id), GoalAction.APPROVE, payload=payload)
        )

    def update_progress(self, actor: Actor, goal_id: int, progress: int) -> Goal:
        validate_progress(progress)

        def work():
            goal = self.store.get(goal_id)
            if not self.directory.authorize(actor, goal, GoalAction.UPDATE_PROGRESS):
                raise Unauthorized("Only the goal owner may update its progress")
            if goal.is_terminal:
                raise InvalidTransition("Progress cannot change once a goal is approved")
            if goal.progress == progress:
                return goal
            return self.store.compare_and_set(goal, goal.state, goal.version, goal.state, progress=progress)

        return self._in_transaction(work)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _in_transaction(self, work: Callable[[], Goal]) -> Goal:
        try:
            goal = work()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(goal)
        return goal

    def _new_draft(self, actor, cycle_id, target_id, title, description, timeline) -> Goal:
        if actor.role not in ASSIGNMENT_CHAINS:
            raise Unauthorized(f"{actor.role.value} users cannot assign goals")
        chain, target_role = ASSIGNMENT_CHAINS[actor.role]

        title = sanitize_input(title)
        if not title:
            raise InvalidInput("Title is required")
        try:
            timeline = Timeline.parse(timeline)
        except ValueError:
            raise InvalidInput(
                f"Unknown timeline '{timeline}'",
                details={"allowed": [t.value for t in Timeline]},
            )

        cycle = self.db.query(ReviewCycle).filter(ReviewCycle.id == cycle_id).first()
        if not cycle:
            raise NotFound(f"Review cycle {cycle_id} not found")
        if not cycle.is_open:
            raise InvalidTransition(f"Review cycle '{cycle.label}' is closed")

        target = self.directory.get_user(target_id)
        if not target:
            raise NotFound(f"User {target_id} not found")
        if target.role != target_role:
            raise InvalidInput(f"Target user is not a {target_role.value.lower()}")
        if actor.role == UserRole.MANAGER and not self.directory.is_direct_report(actor.id, target_id):
            raise Unauthorized("Employee is not in your team")

        goal = Goal(
            cycle_id=cycle_id,
            title=title,
            description=sanitize_input(description),
            timeline=timeline,
            chain=chain,
            assigned_by_role=actor.role.value,
            assigned_by_id=actor.id,
            assignee_id=target_id,
            owner_id=actor.id,
            progress=0,
            state=GoalState.DRAFT,
            version=1,
        )
        return self.store.add(goal)

    def _apply(
        self,
        actor: Actor,
        goal: Goal,
        action: GoalAction,
        changes: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
        guard: Optional[Callable[[Goal], None]] = None,
    ) -> Goal:
        transition = resolve_transition(action, actor.role, goal.chain)
        if transition is None:
            self.log_warning(f"Denied {action.value} on goal {goal.id}: role {actor.role.value}", goal_id=goal.id)
            raise Unauthorized(f"{actor.role.value} users cannot {action.value} this goal")
        if not self.directory.authorize(actor, goal, action):
            self.log_warning(f"Denied {action.value} on goal {goal.id}: user {actor.id}", goal_id=goal.id)
            raise Unauthorized(f"You are not allowed to {action.value} this goal")
        if goal.state not in transition.sources:
            raise InvalidTransition(
                f"Cannot {action.value} a goal in state '{goal.state.value}'",
                details={"state": goal.state.value, "allowed": [s.value for s in transition.sources]},
            )
        if guard:
            guard(goal)

        from_state, version = goal.state, goal.version
        changes = dict(changes or {})
        if action == GoalAction.ASSIGN:
            changes["owner_id"] = goal.assignee_id
        stamp = _ACTION_TIMESTAMPS.get(action)
        if stamp:
            changes[stamp] = datetime.now(timezone.utc)

        self.store.compare_and_set(goal, from_state, version, transition.destination, **changes)

        event = GoalEvent(
            goal_id=goal.id,
            action=action,
            from_state=from_state,
            to_state=transition.destination,
            actor=actor,
            payload=payload or {},
        )
        for handler in self._subscribers:
            handler(event, goal)

        self.log_info(
            f"Goal {goal.id}: {from_state.value} -> {transition.destination.value} ({action.value} by user {actor.id})",
            goal_id=goal.id,
        )
        return goal
