"""
Underwriting case database model
"""
import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import Column, String, DateTime, Enum, ForeignKey, BigInteger, Text, Uuid
from sqlalchemy.orm import relationship

from cyberquote.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UnderwritingStatus(str, PyEnum):
    PENDING = "pending"
    IN_REVIEW = "in_review"
    NEEDS_INFO = "needs_info"
    APPROVED = "approved"
    REJECTED = "rejected"


class UnderwritingDecision(str, PyEnum):
    APPROVE = "approve"
    REJECT = "reject"
    NEEDS_INFO = "needs_info"


# Both entry states mean "awaiting a human decision".
OPEN_STATUSES = (UnderwritingStatus.PENDING, UnderwritingStatus.IN_REVIEW)

CASE_TRANSITIONS = {
    UnderwritingStatus.PENDING: {
        UnderwritingStatus.IN_REVIEW,
        UnderwritingStatus.NEEDS_INFO,
        UnderwritingStatus.APPROVED,
        UnderwritingStatus.REJECTED,
    },
    UnderwritingStatus.IN_REVIEW: {
        UnderwritingStatus.NEEDS_INFO,
        UnderwritingStatus.APPROVED,
        UnderwritingStatus.REJECTED,
    },
    UnderwritingStatus.NEEDS_INFO: {UnderwritingStatus.IN_REVIEW},
    UnderwritingStatus.APPROVED: set(),
    UnderwritingStatus.REJECTED: set(),
}

DECISION_TARGETS = {
    UnderwritingDecision.APPROVE: UnderwritingStatus.APPROVED,
    UnderwritingDecision.REJECT: UnderwritingStatus.REJECTED,
    UnderwritingDecision.NEEDS_INFO: UnderwritingStatus.NEEDS_INFO,
}


class UnderwritingCase(Base):
    """Human review record for a quote that cannot be bound directly."""

    __tablename__ = "underwriting_cases"

    case_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    quote_id = Column(Uuid, ForeignKey("quotes.quote_id"), unique=True, nullable=False)
    status = Column(Enum(UnderwritingStatus), default=UnderwritingStatus.PENDING, nullable=False)
    decision = Column(Enum(UnderwritingDecision), nullable=True)  # approve/reject only

    # Append-only log: reviewer notes, information requests and customer responses
    notes = Column(Text, default="", nullable=False)
    adjusted_premium = Column(BigInteger, nullable=True)  # Rappen

    created_by = Column(String(64), nullable=True)
    last_reviewer_id = Column(String(64), nullable=True)
    sla_due_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
    decided_at = Column(DateTime, nullable=True)

    # Relationships
    quote = relationship("Quote", back_populates="underwriting_case")

    def __repr__(self) -> str:
        return f"<UnderwritingCase {self.case_id} ({self.status.value})>"

    def is_resolved(self) -> bool:
        return self.status in (UnderwritingStatus.APPROVED, UnderwritingStatus.REJECTED)
