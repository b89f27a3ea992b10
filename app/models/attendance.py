"""
Attendance record model (derived, one row per actor per day)
"""
from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.db.base import Base, enum_type


class AttendanceStatus(str, enum.Enum):
    FULL_DAY = "full_day"
    HALF_DAY = "half_day"
    ABSENT = "absent"
    WEEKLY_OFF = "weekly_off"


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(Integer, ForeignKey("actors.id"), nullable=False, index=True)
    attendance_date = Column(Date, nullable=False, index=True)  # operational-zone date
    role = Column(String, nullable=False)
    market_id = Column(Integer, ForeignKey("markets.id"), nullable=True)
    city = Column(String, nullable=True)
    total_tasks = Column(Integer, nullable=False, default=0)
    completed_tasks = Column(Integer, nullable=False, default=0)
    status = Column(enum_type(AttendanceStatus), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    __table_args__ = (
        UniqueConstraint("actor_id", "attendance_date", name="uq_attendance_actor_date"),
    )

    actor = relationship("Actor")
    market = relationship("Market")
