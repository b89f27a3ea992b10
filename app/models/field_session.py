"""
Market session, task event log and task status projection models.

One session per (actor, session_date). TaskEvent is append-only and authoritative;
TaskStatus is a projection of it, one row per (session, task_type).
"""
from sqlalchemy import (
    Column, Integer, Date, DateTime, ForeignKey, String, Boolean, Float, JSON,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.db.base import Base, enum_type


class SessionStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    FINALIZED = "finalized"
    LOCKED = "locked"


# Display-only classification, never stored in sessions.status
INCOMPLETE_EXPIRED = "incomplete_expired"


class TaskType(str, enum.Enum):
    PUNCH = "punch"
    STALL_CONFIRM = "stall_confirm"
    OUTSIDE_RATES = "outside_rates"
    SELFIE_GPS = "selfie_gps"
    RATE_BOARD = "rate_board"
    MARKET_VIDEO = "market_video"
    CLEANING_VIDEO = "cleaning_video"
    COLLECTION = "collection"


REQUIRED_TASK_TYPES = tuple(TaskType)


class TaskState(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    LOCKED = "locked"


COMPLETED_TASK_STATES = (TaskState.SUBMITTED, TaskState.LOCKED)


class TaskAction(str, enum.Enum):
    PUNCH_IN = "punch_in"
    PUNCH_OUT = "punch_out"
    SUBMIT = "submit"
    LOCK = "lock"


class MarketSession(Base):
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(Integer, ForeignKey("actors.id"), nullable=False, index=True)
    market_id = Column(Integer, ForeignKey("markets.id"), nullable=True, index=True)
    session_date = Column(Date, nullable=False, index=True)  # operational-zone date
    market_date = Column(Date, nullable=True, index=True)
    status = Column(enum_type(SessionStatus), nullable=False, default=SessionStatus.ACTIVE)
    punch_in_time = Column(DateTime(timezone=True), nullable=True)
    punch_out_time = Column(DateTime(timezone=True), nullable=True)
    punch_in_geo = Column(JSON, nullable=True)
    selfie_ref = Column(String, nullable=True)
    finalized_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    __table_args__ = (
        UniqueConstraint("actor_id", "session_date", name="uq_sessions_actor_session_date"),
    )

    actor = relationship("Actor")
    market = relationship("Market")
    events = relationship("TaskEvent", back_populates="session", order_by="TaskEvent.id")
    task_statuses = relationship("TaskStatus", back_populates="session", order_by="TaskStatus.id")
    summary = relationship("SessionSummary", back_populates="session", uselist=False)

    @property
    def operational_date(self):
        """The day this session's data is attributed to."""
        return self.market_date or self.session_date


class TaskEvent(Base):
    __tablename__ = "task_events"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=False, index=True)
    task_type = Column(enum_type(TaskType), nullable=False)
    payload = Column(JSON, nullable=True)
    gps_lat = Column(Float, nullable=True)
    gps_lng = Column(Float, nullable=True)
    file_url = Column(String, nullable=True)
    is_late = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_task_events_session_task", "session_id", "task_type"),
    )

    session = relationship("MarketSession", back_populates="events")

    @property
    def action(self) -> str:
        return (self.payload or {}).get("action", TaskAction.SUBMIT.value)


class TaskStatus(Base):
    __tablename__ = "task_status"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=False, index=True)
    task_type = Column(enum_type(TaskType), nullable=False)
    status = Column(enum_type(TaskState), nullable=False, default=TaskState.PENDING)
    latest_event_id = Column(Integer, ForeignKey("task_events.id"), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("session_id", "task_type", name="uq_task_status_session_task"),
    )

    session = relationship("MarketSession", back_populates="task_statuses")
    latest_event = relationship("TaskEvent")


class SessionSummary(Base):
    """Snapshot written at punch-out; the attendance-eligible completion for the day."""
    __tablename__ = "session_summaries"

    session_id = Column(Integer, ForeignKey("sessions.id"), primary_key=True)
    stalls_count = Column(Integer, nullable=False, default=0)
    media_count = Column(Integer, nullable=False, default=0)
    late_uploads_count = Column(Integer, nullable=False, default=0)
    first_activity_at = Column(DateTime(timezone=True), nullable=True)
    last_activity_at = Column(DateTime(timezone=True), nullable=True)
    completed_tasks = Column(Integer, nullable=False, default=0)
    completed_task_types = Column(JSON, nullable=True)
    finalized_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)

    session = relationship("MarketSession", back_populates="summary")
