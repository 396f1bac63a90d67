from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey
from sqlalchemy.sql import func
from app.database import Base
import enum

class CycleStatus(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"

class ReviewCycle(Base):
    __tablename__ = "review_cycles"

    id = Column(Integer, primary_key=True, index=True)
    label = Column(String(80), nullable=False)  # e.g. "Q3 2026"
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    status = Column(String(20), default=CycleStatus.OPEN.value, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    closed_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_open(self) -> bool:
        return self.status == CycleStatus.OPEN.value
