from sqlalchemy import Column, Integer, Float, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base

class PerformanceSummary(Base):
    """Per (cycle, employee) rollup maintained by the review aggregator."""
    __tablename__ = "performance_summaries"
    __table_args__ = (UniqueConstraint("cycle_id", "employee_id", name="uq_summary_cycle_employee"),)

    id = Column(Integer, primary_key=True, index=True)
    cycle_id = Column(Integer, ForeignKey("review_cycles.id"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    composite_score = Column(Float, nullable=True)  # None until the first approved review
    goals_completed = Column(Integer, default=0, nullable=False)
    goals_total = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    employee = relationship("User")
