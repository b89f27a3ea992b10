"""
Audit log model
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from app.db.base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(Integer, ForeignKey("actors.id"), nullable=False)
    action = Column(String, nullable=False)  # e.g. "MARKET_CREATE", "SESSION_LOCK"
    entity_type = Column(String, nullable=False)  # e.g. "markets", "sessions", "task_windows"
    entity_id = Column(Integer, nullable=True)
    meta_json = Column(JSON, nullable=True)
    # Set explicitly by log_audit(); SQLite server defaults are handled by the migration
    created_at = Column(DateTime(timezone=True), nullable=False)
