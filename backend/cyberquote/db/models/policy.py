"""
Policy database model
"""
import uuid
from datetime import date, datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import Column, String, Date, DateTime, Enum, ForeignKey, BigInteger, JSON, Uuid
from sqlalchemy.orm import relationship

from cyberquote.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PolicyStatus(str, PyEnum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


POLICY_TRANSITIONS = {
    PolicyStatus.ACTIVE: {PolicyStatus.CANCELLED, PolicyStatus.EXPIRED},
    PolicyStatus.CANCELLED: set(),
    PolicyStatus.EXPIRED: set(),
}


class Policy(Base):
    """Bound cyber insurance contract."""

    __tablename__ = "policies"

    policy_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    policy_number = Column(String(50), unique=True, nullable=False, index=True)
    # Unique: a quote can be bound exactly once
    quote_id = Column(Uuid, ForeignKey("quotes.quote_id"), unique=True, nullable=False)
    customer_id = Column(String(64), nullable=False, index=True)

    coverage = Column(JSON, default=dict)
    premium = Column(BigInteger, nullable=False)  # Rappen
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(Enum(PolicyStatus), default=PolicyStatus.ACTIVE, nullable=False)

    created_at = Column(DateTime, default=_utcnow, nullable=False)
    cancelled_at = Column(DateTime, nullable=True)

    # Relationships
    quote = relationship("Quote", back_populates="policy")

    def __repr__(self) -> str:
        return f"<Policy {self.policy_number} ({self.status.value})>"

    def is_active(self, on: date = None) -> bool:
        """Check if policy is in force on the given day (default today)."""
        day = on or date.today()
        return (
            self.status == PolicyStatus.ACTIVE
            and self.start_date <= day < self.end_date
        )
