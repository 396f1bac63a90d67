from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base


class Department(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    code = Column(String, nullable=False, index=True)  # Short code like "ENG", "HR", "FIN"
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    members = relationship("User", back_populates="department")

    def __repr__(self):
        return f"<Department {self.code}: {self.name}>"
