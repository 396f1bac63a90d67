from pydantic import BaseModel, ConfigDict
from typing import Optional


class PerformanceReportRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: int
    employee_name: str
    department_name: str
    cycle_id: int
    average_rating: Optional[float] = None
    goals_completed: int
    goals_total: int
    completion_percentage: int
    status: Optional[str] = None
    goal_titles: str = ""
