"""
User Model (directory data).
Owned by the identity service; the workflow only reads roles and reporting lines.
"""
from sqlalchemy import Column, Integer, String, Enum, DateTime, Boolean, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from app.database import Base


class UserRole(str, enum.Enum):
    """
    Workflow roles.

    - HR: assigns goals to managers, approves manager submissions
    - MANAGER: accepts HR goals, assigns goals to direct reports, approves their submissions
    - EMPLOYEE: accepts and executes goals assigned by their manager
    """
    HR = "HR"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"

    @classmethod
    def parse(cls, value: str) -> "UserRole":
        """Accepts the casing variants the identity service emits ("hr", "Manager", "admin")."""
        normalized = (value or "").strip().upper()
        if normalized == "ADMIN":
            normalized = "HR"
        return cls(normalized)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)

    role = Column(Enum(UserRole), default=UserRole.EMPLOYEE, nullable=False)

    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    # Reporting line: the user's direct manager
    manager_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    department = relationship("Department", back_populates="members")
    manager = relationship("User", remote_side=[id], back_populates="direct_reports")
    direct_reports = relationship("User", back_populates="manager")

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"

    @property
    def is_hr(self) -> bool:
        return self.role == UserRole.HR

    @property
    def is_manager(self) -> bool:
        return self.role == UserRole.MANAGER
