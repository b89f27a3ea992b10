"""
Task window schemas (allowed capture time of day per task type)
"""
from datetime import time
from typing import List
from pydantic import BaseModel

from app.models.field_session import TaskType


class TaskWindowOut(BaseModel):
    task_type: TaskType
    allowed_start: time
    allowed_end: time


class TaskWindowUpdate(BaseModel):
    allowed_start: time
    allowed_end: time


class TaskWindowListResponse(BaseModel):
    items: List[TaskWindowOut]
