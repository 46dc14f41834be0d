"""
Policy binding.

Turns an eligible quote into a policy exactly once: the quote is moved to
`policied` with a conditional UPDATE and `policies.quote_id` is unique.
"""
import uuid as uuid_lib
from datetime import date, datetime, timezone
from typing import List, Mapping, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cyberquote.core.config import settings
from cyberquote.core.logging import get_logger
from cyberquote.db.models import (
    Policy,
    PolicyStatus,
    Quote,
    QuoteStatus,
    UnderwritingDecision,
    POLICY_TRANSITIONS,
    QUOTE_TRANSITIONS,
)
from cyberquote.db.transitions import compare_and_set_status
from cyberquote.services.audit import AuditService
from cyberquote.services.pricing import PRICE_LIST, CoveragePackage, CoverageTier, format_chf, package_for
from cyberquote.services.results import OperationResult

logger = get_logger(__name__)


def generate_policy_number(start_date: date) -> str:
    """Generate a unique policy number."""
    random_part = uuid_lib.uuid4().hex[:8].upper()
    return f"{settings.POLICY_NUMBER_PREFIX}-{start_date.year}-{random_part}"


def add_one_year(day: date) -> date:
    """Same calendar day next year; 29 February maps to 28 February."""
    try:
        return day.replace(year=day.year + 1)
    except ValueError:
        return day.replace(year=day.year + 1, day=28)


def bind_eligibility(quote: Quote) -> Optional[QuoteStatus]:
    """
    Return the status the quote is bound from, or None if it may not be bound.

    Direct bind requires a calculated A/B quote. Otherwise the quote must be
    approved by an underwriting case whose decision is `approve`.
    """
    if quote.status == QuoteStatus.CALCULATED and quote.direct_bind_eligible:
        return QuoteStatus.CALCULATED
    case = quote.underwriting_case
    if (
        quote.status == QuoteStatus.APPROVED
        and case is not None
        and case.decision == UnderwritingDecision.APPROVE
    ):
        return QuoteStatus.APPROVED
    return None


class BindingService:
    """Creates and cancels policies."""

    def __init__(self, db: Session, price_list: Mapping[CoverageTier, CoveragePackage] = PRICE_LIST):
        self.db = db
        self.price_list = price_list
        self.audit = AuditService(db)

    def get_policy(self, policy_id: UUID) -> Optional[Policy]:
        return self.db.query(Policy).filter(Policy.policy_id == policy_id).first()

    def list_policies(self, customer_id: Optional[str] = None) -> List[Policy]:
        query = self.db.query(Policy)
        if customer_id is not None:
            query = query.filter(Policy.customer_id == customer_id)
        return query.order_by(Policy.created_at.desc()).all()

    def bind(
        self,
        quote_id: UUID,
        start_date: date,
        actor_id: Optional[str] = None,
        actor_type: str = "customer",
    ) -> OperationResult[Policy]:
        """
        Bind a quote into a policy.

        Args:
            quote_id: Quote to bind
            start_date: First day of cover; the policy runs one year

        Returns:
            OperationResult with the new policy. Fails with `already_bound`
            for a policied quote and `not_eligible_to_bind` when neither a
            direct bind nor an approved underwriting case allows it.
        """
        if not isinstance(start_date, date) or isinstance(start_date, datetime):
            return OperationResult.invalid("invalid_start_date", "start_date must be a calendar date")

        quote = self.db.query(Quote).filter(Quote.quote_id == quote_id).first()
        if quote is None:
            return OperationResult.not_found("quote")
        if quote.status == QuoteStatus.POLICIED or quote.policy is not None:
            return OperationResult.precondition("already_bound", "Quote is already bound")

        source_status = bind_eligibility(quote)
        if source_status is None:
            return OperationResult.precondition("not_eligible_to_bind", "Quote is not eligible to bind")
        if quote.coverage_tier is None:
            return OperationResult.precondition("coverage_not_selected", "Select a coverage tier before binding")

        package = package_for(quote.coverage_tier, self.price_list)
        case = quote.underwriting_case
        if case is not None and case.adjusted_premium is not None:
            premium = case.adjusted_premium
        else:
            premium = package.price

        if not compare_and_set_status(
            self.db, Quote, Quote.quote_id, quote_id, QUOTE_TRANSITIONS, QuoteStatus.POLICIED,
            expected=[source_status], premium=premium,
        ):
            self.db.rollback()
            self.db.refresh(quote)
            if quote.status == QuoteStatus.POLICIED:
                return OperationResult.precondition("already_bound", "Quote is already bound")
            return OperationResult.precondition("not_eligible_to_bind", "Quote is not eligible to bind")

        coverage = package.snapshot()
        coverage["quote_number"] = quote.quote_number
        coverage["risk_grade"] = quote.risk_grade.value if quote.risk_grade else None

        policy = Policy(
            policy_number=generate_policy_number(start_date),
            quote_id=quote_id,
            customer_id=quote.customer_id,
            coverage=coverage,
            premium=premium,
            start_date=start_date,
            end_date=add_one_year(start_date),
            status=PolicyStatus.ACTIVE,
        )
        self.db.add(policy)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            return OperationResult.precondition("already_bound", "Quote is already bound")

        self.audit.log(
            "policy.bound", actor_type, actor_id, "policy", str(policy.policy_id),
            {"quote_id": str(quote_id), "premium": premium, "tier": quote.coverage_tier.value},
        )
        self.db.commit()
        self.db.refresh(policy)

        logger.info(f"Policy {policy.policy_number} bound from quote {quote.quote_number} at {format_chf(premium)}")
        return OperationResult.success(policy, code="policy_bound")

    def cancel_policy(
        self,
        policy_id: UUID,
        actor_id: Optional[str] = None,
        actor_type: str = "customer",
        reason: str = "",
    ) -> OperationResult[Policy]:
        policy = self.get_policy(policy_id)
        if policy is None:
            return OperationResult.not_found("policy")

        if not compare_and_set_status(
            self.db, Policy, Policy.policy_id, policy_id, POLICY_TRANSITIONS, PolicyStatus.CANCELLED,
            cancelled_at=datetime.now(timezone.utc),
        ):
            self.db.rollback()
            return OperationResult.precondition(
                "policy_not_active", f"Policy in status '{policy.status.value}' cannot be cancelled",
            )

        self.audit.log("policy.cancelled", actor_type, actor_id, "policy", str(policy_id), {"reason": reason})
        self.db.commit()
        self.db.refresh(policy)
        return OperationResult.success(policy, code="policy_cancelled")
