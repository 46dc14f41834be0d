"""
Audit database model for system-wide audit logging
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, JSON, Uuid

from cyberquote.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditLog(Base):
    """System-wide audit log for all state transitions."""

    __tablename__ = "audit_logs"

    log_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_type = Column(String(100), nullable=False, index=True)

    # Resource being modified
    resource_type = Column(String(50), nullable=True)  # e.g., "quote", "underwriting_case", "policy"
    resource_id = Column(String(100), nullable=True, index=True)

    # Actor
    actor_id = Column(String(64), nullable=True)
    actor_type = Column(String(50), nullable=False)  # e.g., "customer", "underwriter", "system"

    details = Column(JSON, default=dict)

    timestamp = Column(DateTime, default=_utcnow, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<AuditLog {self.event_type} at {self.timestamp}>"
