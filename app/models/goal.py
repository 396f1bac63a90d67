from sqlalchemy import Column, Integer, String, Text, Enum, ForeignKey, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base
import enum


def _enum_values(enum_cls):
    # Persist the lower-case values ("hr_assigned"), not the member names
    return [member.value for member in enum_cls]


class GoalState(str, enum.Enum):
    DRAFT = "draft"
    HR_ASSIGNED = "hr_assigned"
    MANAGER_ASSIGNED = "manager_assigned"
    MANAGER_ACCEPTED = "manager_accepted"
    EMPLOYEE_ACCEPTED = "employee_accepted"
    MANAGER_SUBMITTED = "manager_submitted"
    EMPLOYEE_SUBMITTED = "employee_submitted"
    MANAGER_APPROVED = "manager_approved"
    HR_APPROVED = "hr_approved"

    @property
    def is_terminal(self) -> bool:
        return self in APPROVED_STATES


APPROVED_STATES = (GoalState.MANAGER_APPROVED, GoalState.HR_APPROVED)


class GoalChain(str, enum.Enum):
    """Which participant pair a goal travels between. Fixed at creation."""
    HR_MANAGER = "hr_manager"
    MANAGER_EMPLOYEE = "manager_employee"


# States each chain may occupy; the two chains never share a non-draft state
CHAIN_STATES = {
    GoalChain.HR_MANAGER: (
        GoalState.DRAFT,
        GoalState.HR_ASSIGNED,
        GoalState.MANAGER_ACCEPTED,
        GoalState.MANAGER_SUBMITTED,
        GoalState.MANAGER_APPROVED,
    ),
    GoalChain.MANAGER_EMPLOYEE: (
        GoalState.DRAFT,
        GoalState.MANAGER_ASSIGNED,
        GoalState.EMPLOYEE_ACCEPTED,
        GoalState.EMPLOYEE_SUBMITTED,
        GoalState.HR_APPROVED,
    ),
}


class Timeline(str, enum.Enum):
    QUARTERLY = "quarterly"
    HALF_YEARLY = "half-yearly"
    ANNUAL = "annual"

    @classmethod
    def parse(cls, value) -> "Timeline":
        """Also accepts "half_yearly", which older clients send."""
        if isinstance(value, str):
            value = value.strip().lower().replace("_", "-")
        return cls(value)


class Goal(Base):
    __tablename__ = "goals"

    id = Column(Integer, primary_key=True, index=True)
    cycle_id = Column(Integer, ForeignKey("review_cycles.id"), nullable=False, index=True)

    title = Column(String(140), nullable=False)
    description = Column(Text, nullable=True)
    timeline = Column(Enum(Timeline, native_enum=False, values_callable=_enum_values, length=20), nullable=False)

    chain = Column(Enum(GoalChain, native_enum=False, values_callable=_enum_values, length=20), nullable=False)
    assigned_by_role = Column(String(20), nullable=False)
    assigned_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    assignee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    progress = Column(Integer, default=0, nullable=False)
    state = Column(
        Enum(GoalState, native_enum=False, values_callable=_enum_values, length=30, validate_strings=True),
        default=GoalState.DRAFT,
        nullable=False,
        index=True,
    )
    # Compare-and-set token, bumped on every committed write
    version = Column(Integer, default=1, nullable=False)

    submission_comments = Column(Text, nullable=True)

    accepted_at = Column(DateTime(timezone=True), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    assignee = relationship("User", foreign_keys=[assignee_id])
    owner = relationship("User", foreign_keys=[owner_id])
    cycle = relationship("ReviewCycle")
    review = relationship("Review", back_populates="goal", uselist=False)

    def __repr__(self):
        return f"<Goal {self.id} {self.state.value if self.state else None}>"

    @property
    def is_terminal(self) -> bool:
        return self.state in APPROVED_STATES


class GoalAction(str, enum.Enum):
    """Intents a caller can issue against a goal."""
    ASSIGN = "assign"
    ACCEPT = "accept"
    SUBMIT = "submit"
    APPROVE = "approve"
    UPDATE_PROGRESS = "update_progress"
