"""
Media capture model. Bytes live in object storage; only the reference is stored.
"""
from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, String, Boolean, Float, Time
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.db.base import Base, enum_type


class MediaType(str, enum.Enum):
    OUTSIDE_RATES = "outside_rates"
    SELFIE_GPS = "selfie_gps"
    RATE_BOARD = "rate_board"
    MARKET_VIDEO = "market_video"
    CLEANING_VIDEO = "cleaning_video"
    CUSTOMER_FEEDBACK = "customer_feedback"


class Media(Base):
    __tablename__ = "media"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(Integer, ForeignKey("actors.id"), nullable=False, index=True)
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=False, index=True)
    market_id = Column(Integer, ForeignKey("markets.id"), nullable=True, index=True)
    market_date = Column(Date, nullable=True, index=True)
    media_type = Column(enum_type(MediaType), nullable=False)
    file_url = Column(String, nullable=False)
    file_name = Column(String, nullable=False)
    content_type = Column(String, nullable=False)
    gps_lat = Column(Float, nullable=True)
    gps_lng = Column(Float, nullable=True)
    captured_at = Column(DateTime(timezone=True), nullable=False)
    # Window in force at capture time; is_late is frozen against it
    allowed_start = Column(Time, nullable=True)
    allowed_end = Column(Time, nullable=True)
    is_late = Column(Boolean, nullable=False, default=False)
    task_event_id = Column(Integer, ForeignKey("task_events.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)

    session = relationship("MarketSession")
