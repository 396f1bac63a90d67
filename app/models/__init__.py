# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    user, department, review_cycle, goal, review,
    performance_summary, self_assessment,
)

# Explicit class exports for cleaner imports
from .user import User, UserRole
from .department import Department
from .review_cycle import ReviewCycle, CycleStatus
from .goal import Goal, GoalState, GoalChain, GoalAction, Timeline
from .review import Review, ReviewStatus
from .performance_summary import PerformanceSummary
from .self_assessment import SelfAssessment

__all__ = [
    "User",
    "UserRole",
    "Department",
    "ReviewCycle",
    "CycleStatus",
    "Goal",
    "GoalState",
    "GoalChain",
    "GoalAction",
    "Timeline",
    "Review",
    "ReviewStatus",
    "PerformanceSummary",
    "SelfAssessment",
]
