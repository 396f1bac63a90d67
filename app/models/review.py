from sqlalchemy import Column, Integer, String, Text, Float, ForeignKey, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base
import enum

class ReviewStatus(str, enum.Enum):
    PENDING = "pending"  # amendable while the cycle is open
    FINAL = "final"

RATING_LABELS = {
    5: "Excellent",
    4: "Good",
    3: "Satisfactory",
    2: "Needs Improvement",
    1: "Unsatisfactory",
}

class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    goal_id = Column(Integer, ForeignKey("goals.id"), unique=True, nullable=False)
    cycle_id = Column(Integer, ForeignKey("review_cycles.id"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    reviewer_role = Column(String(20), nullable=False)

    rating = Column(Integer, nullable=False)  # 1-5
    comments = Column(Text, nullable=True)
    composite_score = Column(Float, nullable=True)
    status = Column(String(20), default=ReviewStatus.PENDING.value, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    goal = relationship("Goal", back_populates="review")
    employee = relationship("User", foreign_keys=[employee_id])

    @property
    def rating_label(self) -> str:
        return RATING_LABELS.get(self.rating, "Unrated")
