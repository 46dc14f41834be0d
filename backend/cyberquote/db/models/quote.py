"""
Quote database model
"""
import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import Column, String, DateTime, Enum, Float, Integer, Numeric, BigInteger, JSON, Uuid
from sqlalchemy.orm import relationship

from cyberquote.db.base import Base
from cyberquote.services.pricing import CoverageTier
from cyberquote.services.risk_scoring.grades import RiskGrade, is_direct_bind_eligible
from cyberquote.services.risk_scoring.engine import RiskAssessment


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuoteStatus(str, PyEnum):
    DRAFT = "draft"
    CALCULATED = "calculated"
    PENDING_UNDERWRITING = "pending_underwriting"
    APPROVED = "approved"
    REJECTED = "rejected"
    POLICIED = "policied"
    CANCELLED = "cancelled"


# Allowed target states per current state.
QUOTE_TRANSITIONS = {
    QuoteStatus.DRAFT: {QuoteStatus.DRAFT, QuoteStatus.CALCULATED, QuoteStatus.CANCELLED},
    QuoteStatus.CALCULATED: {
        QuoteStatus.DRAFT,
        QuoteStatus.CALCULATED,
        QuoteStatus.PENDING_UNDERWRITING,
        QuoteStatus.POLICIED,
        QuoteStatus.CANCELLED,
    },
    QuoteStatus.PENDING_UNDERWRITING: {
        QuoteStatus.PENDING_UNDERWRITING,
        QuoteStatus.APPROVED,
        QuoteStatus.REJECTED,
        QuoteStatus.CANCELLED,
    },
    QuoteStatus.APPROVED: {QuoteStatus.POLICIED, QuoteStatus.CANCELLED},
    QuoteStatus.REJECTED: set(),
    QuoteStatus.POLICIED: set(),
    QuoteStatus.CANCELLED: set(),
}


class IntakeStep(str, PyEnum):
    COMPANY_DATA = "company_data"
    CYBER_RISK_PROFILE = "cyber_risk_profile"
    CYBER_SECURITY = "cyber_security"
    COVERAGE = "coverage"


class Quote(Base):
    """Cyber insurance proposal."""

    __tablename__ = "quotes"

    quote_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    quote_number = Column(String(50), unique=True, nullable=False, index=True)
    customer_id = Column(String(64), nullable=False, index=True)
    broker_id = Column(String(64), nullable=True, index=True)
    status = Column(Enum(QuoteStatus), default=QuoteStatus.DRAFT, nullable=False)

    # Intake snapshots
    company_data = Column(JSON, default=dict)
    cyber_risk_profile = Column(JSON, default=dict)
    cyber_security = Column(JSON, default=dict)
    annual_revenue = Column(Numeric(15, 2), nullable=True)

    # Current risk assessment, overwritten on every security step submission
    risk_grade = Column(Enum(RiskGrade), nullable=True)
    risk_percentage = Column(Float, nullable=True)
    risk_rationale = Column(String(255), nullable=True)
    risk_earned_points = Column(Float, nullable=True)
    risk_max_points = Column(Integer, nullable=True)
    risk_rule_version = Column(String(20), nullable=True)
    assessed_at = Column(DateTime, nullable=True)

    coverage_tier = Column(Enum(CoverageTier), nullable=True)
    premium = Column(BigInteger, nullable=True)  # Rappen

    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    # Relationships
    underwriting_case = relationship("UnderwritingCase", back_populates="quote", uselist=False)
    policy = relationship("Policy", back_populates="quote", uselist=False)

    def __repr__(self) -> str:
        return f"<Quote {self.quote_number} ({self.status.value})>"

    @property
    def direct_bind_eligible(self) -> bool:
        """Derived from the grade so the two can never disagree."""
        if self.risk_grade is None:
            return False
        return is_direct_bind_eligible(self.risk_grade)

    @property
    def risk_assessment(self) -> Optional[RiskAssessment]:
        if self.risk_grade is None:
            return None
        return RiskAssessment(
            grade=self.risk_grade,
            percentage=self.risk_percentage,
            rationale=self.risk_rationale,
            earned_points=self.risk_earned_points,
            max_points=self.risk_max_points,
            rule_version=self.risk_rule_version,
        )

    def apply_assessment(self, assessment: RiskAssessment) -> None:
        """Overwrite the stored assessment with a fresh one."""
        self.risk_grade = assessment.grade
        self.risk_percentage = assessment.percentage
        self.risk_rationale = assessment.rationale
        self.risk_earned_points = assessment.earned_points
        self.risk_max_points = assessment.max_points
        self.risk_rule_version = assessment.rule_version
        self.assessed_at = _utcnow()
