"""
Stall confirmation and collection models
"""
from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, String, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.db.base import Base, enum_type


class CollectionMode(str, enum.Enum):
    CASH = "cash"
    UPI = "upi"


class StallConfirmation(Base):
    __tablename__ = "stall_confirmations"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=False, index=True)
    actor_id = Column(Integer, ForeignKey("actors.id"), nullable=False, index=True)
    market_id = Column(Integer, ForeignKey("markets.id"), nullable=True, index=True)
    market_date = Column(Date, nullable=False, index=True)
    farmer_name = Column(String, nullable=False)
    stall_name = Column(String, nullable=False)
    stall_no = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    session = relationship("MarketSession")


class Collection(Base):
    __tablename__ = "collections"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=False, index=True)
    market_id = Column(Integer, ForeignKey("markets.id"), nullable=True, index=True)
    market_date = Column(Date, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    mode = Column(enum_type(CollectionMode), nullable=False)
    collected_by = Column(Integer, ForeignKey("actors.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    session = relationship("MarketSession")
