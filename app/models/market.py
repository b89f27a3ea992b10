"""
Market and market schedule override models
"""
from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, String, Boolean, Float, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base


class Market(Base):
    __tablename__ = "markets"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    location = Column(String(255), nullable=False)
    city = Column(String(120), nullable=True, index=True)
    address = Column(String, nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    day_of_week = Column(Integer, nullable=True)  # Sunday=0 ... Saturday=6
    schedule_json = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    overrides = relationship("MarketScheduleOverride", back_populates="market", cascade="all, delete-orphan")


class MarketScheduleOverride(Base):
    """Marks a market live on a date outside its weekday recurrence. Additive only."""
    __tablename__ = "market_schedule"

    id = Column(Integer, primary_key=True, index=True)
    market_id = Column(Integer, ForeignKey("markets.id"), nullable=False, index=True)
    schedule_date = Column(Date, nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("actors.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("market_id", "schedule_date", name="uq_market_schedule_market_date"),
    )

    market = relationship("Market", back_populates="overrides")
