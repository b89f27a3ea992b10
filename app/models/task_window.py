"""
Allowed capture window per task type (times of day in the operational zone)
"""
from sqlalchemy import Column, Integer, DateTime, Time
from app.db.base import Base, enum_type
from app.models.field_session import TaskType


class TaskWindow(Base):
    __tablename__ = "task_windows"

    id = Column(Integer, primary_key=True, index=True)
    task_type = Column(enum_type(TaskType), nullable=False, unique=True)
    allowed_start = Column(Time, nullable=False)
    allowed_end = Column(Time, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
