"""
Database models
"""
from app.models.actor import Actor, Role, FIELD_ROLES
from app.models.audit_log import AuditLog
from app.models.market import Market, MarketScheduleOverride
from app.models.field_session import (
    MarketSession,
    TaskEvent,
    TaskStatus,
    SessionSummary,
    SessionStatus,
    TaskType,
    TaskState,
    TaskAction,
    REQUIRED_TASK_TYPES,
    COMPLETED_TASK_STATES,
    INCOMPLETE_EXPIRED,
)
from app.models.attendance import AttendanceRecord, AttendanceStatus
from app.models.media import Media, MediaType
from app.models.stall import StallConfirmation, Collection, CollectionMode
from app.models.task_window import TaskWindow

__all__ = [
    "Actor",
    "Role",
    "FIELD_ROLES",
    "AuditLog",
    "Market",
    "MarketScheduleOverride",
    "MarketSession",
    "TaskEvent",
    "TaskStatus",
    "SessionSummary",
    "SessionStatus",
    "TaskType",
    "TaskState",
    "TaskAction",
    "REQUIRED_TASK_TYPES",
    "COMPLETED_TASK_STATES",
    "INCOMPLETE_EXPIRED",
    "AttendanceRecord",
    "AttendanceStatus",
    "Media",
    "MediaType",
    "StallConfirmation",
    "Collection",
    "CollectionMode",
    "TaskWindow",
]
