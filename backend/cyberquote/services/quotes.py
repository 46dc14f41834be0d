"""
Quote lifecycle service.

Drives a quote through the intake wizard (draft <-> calculated), runs the
risk scoring engine when the security step is submitted and refers
non-eligible quotes to underwriting.
"""
import uuid as uuid_lib
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cyberquote.core.config import settings
from cyberquote.core.logging import get_logger
from cyberquote.db.models import (
    Quote, QuoteStatus, IntakeStep, UnderwritingCase, QUOTE_TRANSITIONS,
)
from cyberquote.db.transitions import can_transition, compare_and_set_status
from cyberquote.services.audit import AuditService
from cyberquote.services.pricing import CoverageTier
from cyberquote.services.results import OperationResult
from cyberquote.services.risk_scoring import (
    DEFAULT_CATALOG,
    AnswerValidationError,
    QuestionCatalog,
    QuestionnaireAnswers,
    RiskAssessment,
    score,
)
from cyberquote.services.underwriting import UnderwritingService

logger = get_logger(__name__)

EDITABLE_STATUSES = (QuoteStatus.DRAFT, QuoteStatus.CALCULATED)
RESCORABLE_STATUSES = (QuoteStatus.DRAFT, QuoteStatus.CALCULATED, QuoteStatus.PENDING_UNDERWRITING)
COVERAGE_STATUSES = (
    QuoteStatus.DRAFT,
    QuoteStatus.CALCULATED,
    QuoteStatus.PENDING_UNDERWRITING,
    QuoteStatus.APPROVED,
)


@dataclass
class SecuritySubmission:
    """Outcome of submitting the security questionnaire step."""
    quote: Quote
    assessment: RiskAssessment
    underwriting_case: Optional[UnderwritingCase] = None
    case_created: bool = False


def generate_quote_number() -> str:
    """Generate a unique quote number."""
    random_part = uuid_lib.uuid4().hex[:8].upper()
    return f"{settings.QUOTE_NUMBER_PREFIX}-{date.today().year}-{random_part}"


def parse_revenue(value: Any) -> Decimal:
    """Parse a declared annual revenue; raises ValueError when unusable."""
    if value is None or isinstance(value, bool):
        raise ValueError("annual_revenue is required")
    try:
        revenue = Decimal(str(value))
    except InvalidOperation:
        raise ValueError("annual_revenue must be a number")
    if not revenue.is_finite():
        raise ValueError("annual_revenue must be a number")
    if revenue < 0:
        raise ValueError("annual_revenue cannot be negative")
    return revenue


class QuoteService:
    """Quote intake and lifecycle transitions."""

    def __init__(self, db: Session, catalog: QuestionCatalog = DEFAULT_CATALOG):
        self.db = db
        self.catalog = catalog
        self.audit = AuditService(db)

    def get(self, quote_id: UUID) -> Optional[Quote]:
        return self.db.query(Quote).filter(Quote.quote_id == quote_id).first()

    def list_quotes(
        self,
        customer_id: Optional[str] = None,
        status: Optional[QuoteStatus] = None,
    ) -> List[Quote]:
        query = self.db.query(Quote)
        if customer_id is not None:
            query = query.filter(Quote.customer_id == customer_id)
        if status is not None:
            query = query.filter(Quote.status == status)
        return query.order_by(Quote.created_at.desc()).all()

    def create(
        self,
        customer_id: str,
        broker_id: Optional[str] = None,
        company_data: Optional[Dict[str, Any]] = None,
        actor_id: Optional[str] = None,
        actor_type: str = "customer",
    ) -> OperationResult[Quote]:
        """Start a new draft quote."""
        if not customer_id:
            return OperationResult.invalid("customer_required", "A quote needs an owning customer")

        quote = Quote(
            quote_number=generate_quote_number(),
            customer_id=customer_id,
            broker_id=broker_id,
            status=QuoteStatus.DRAFT,
            company_data=company_data or {},
            cyber_risk_profile={},
            cyber_security={},
        )
        self.db.add(quote)
        self.db.flush()

        self.audit.log(
            "quote.created", actor_type, actor_id or customer_id, "quote", str(quote.quote_id),
            {"quote_number": quote.quote_number},
        )
        self.db.commit()
        self.db.refresh(quote)
        return OperationResult.success(quote, code="quote_created")

    def save_step(
        self,
        quote_id: UUID,
        step: IntakeStep,
        data: Dict[str, Any],
        actor_id: Optional[str] = None,
        actor_type: str = "customer",
    ) -> OperationResult[Any]:
        """Save one intake wizard step."""
        try:
            step = IntakeStep(step)
        except ValueError:
            return OperationResult.invalid(
                "invalid_step", f"step must be one of: {', '.join(s.value for s in IntakeStep)}",
            )
        if not isinstance(data, dict):
            return OperationResult.invalid("invalid_step_data", "Step data must be an object")
        if step == IntakeStep.CYBER_SECURITY:
            return self.submit_security_step(quote_id, data, actor_id=actor_id, actor_type=actor_type)
        if step == IntakeStep.COVERAGE:
            return self.select_coverage(quote_id, data.get("tier"), actor_id=actor_id, actor_type=actor_type)

        quote = self.get(quote_id)
        if quote is None:
            return OperationResult.not_found("quote")

        values: Dict[str, Any] = {}
        if step == IntakeStep.COMPANY_DATA:
            values["company_data"] = dict(data)
        else:
            try:
                revenue = parse_revenue(data.get("annual_revenue"))
            except ValueError as e:
                return OperationResult.invalid("invalid_revenue", str(e), {"annual_revenue": str(e)})
            profile = dict(data)
            profile["annual_revenue"] = str(revenue)
            values["cyber_risk_profile"] = profile
            values["annual_revenue"] = revenue

        # Editing an intake step sends a calculated quote back to draft.
        if not compare_and_set_status(
            self.db, Quote, Quote.quote_id, quote_id, QUOTE_TRANSITIONS, QuoteStatus.DRAFT,
            expected=EDITABLE_STATUSES, **values,
        ):
            self.db.rollback()
            return OperationResult.precondition("quote_locked", "Quote can no longer be edited")

        self.audit.log("quote.step_saved", actor_type, actor_id, "quote", str(quote_id), {"step": step.value})
        self.db.commit()
        self.db.refresh(quote)
        return OperationResult.success(quote, code="step_saved")

    def submit_security_step(
        self,
        quote_id: UUID,
        raw_answers: Dict[str, Any],
        annual_revenue: Any = None,
        actor_id: Optional[str] = None,
        actor_type: str = "customer",
    ) -> OperationResult[SecuritySubmission]:
        """
        Score the security questionnaire and route the quote.

        The fresh assessment always overwrites the previous one. Grades A/B
        leave the quote `calculated` (direct bind offered); C/D/E refer it to
        underwriting, reusing an existing case if there is one. The assessment
        and the referral are committed together or not at all.
        """
        quote = self.get(quote_id)
        if quote is None:
            return OperationResult.not_found("quote")
        if quote.status not in RESCORABLE_STATUSES:
            return OperationResult.precondition("quote_locked", "Quote can no longer be re-scored")

        try:
            revenue = parse_revenue(annual_revenue if annual_revenue is not None else quote.annual_revenue)
        except ValueError as e:
            return OperationResult.invalid(
                "revenue_required", "Declared annual revenue is required before scoring", {"annual_revenue": str(e)},
            )

        try:
            answers = QuestionnaireAnswers.parse(raw_answers or {}, self.catalog)
        except AnswerValidationError as e:
            return OperationResult.invalid("invalid_answers", str(e), e.errors)

        assessment = score(answers, revenue, self.catalog)
        previous_status = quote.status
        existing_case = quote.underwriting_case
        target = (
            QuoteStatus.PENDING_UNDERWRITING
            if previous_status == QuoteStatus.PENDING_UNDERWRITING
            else QuoteStatus.CALCULATED
        )

        values: Dict[str, Any] = {
            "cyber_security": answers.to_dict(),
            "annual_revenue": revenue,
            "risk_grade": assessment.grade,
            "risk_percentage": assessment.percentage,
            "risk_rationale": assessment.rationale,
            "risk_earned_points": assessment.earned_points,
            "risk_max_points": assessment.max_points,
            "risk_rule_version": assessment.rule_version,
        }
        if not compare_and_set_status(
            self.db, Quote, Quote.quote_id, quote_id, QUOTE_TRANSITIONS, target,
            expected=[previous_status], **values,
        ):
            self.db.rollback()
            return OperationResult.precondition("quote_state_changed", "Quote changed while scoring, please retry")

        quote.apply_assessment(assessment)
        self.audit.log(
            "quote.assessed", actor_type, actor_id, "quote", str(quote_id),
            {"grade": assessment.grade.value, "percentage": round(assessment.percentage, 1)},
        )

        submission = SecuritySubmission(quote=quote, assessment=assessment, underwriting_case=existing_case)
        if not assessment.direct_bind_eligible and existing_case is None:
            # The referral commits or rolls back together with the assessment
            try:
                case = UnderwritingService(self.db).stage_case(quote)
            except IntegrityError:
                case = None
            if case is None:
                self.db.rollback()
                return OperationResult.precondition(
                    "quote_state_changed", "Quote changed while scoring, please retry",
                )
            submission.underwriting_case = case
            submission.case_created = True

        self.db.commit()
        self.db.refresh(quote)

        logger.info(
            f"Quote {quote.quote_number} scored {assessment.grade.value} "
            f"({assessment.percentage:.1f}%, {assessment.max_points} questions)"
        )
        return OperationResult.success(submission, code="assessed", message=assessment.rationale)

    def select_coverage(
        self,
        quote_id: UUID,
        tier: Any,
        actor_id: Optional[str] = None,
        actor_type: str = "customer",
    ) -> OperationResult[Quote]:
        """Choose the coverage tier whose price applies on binding."""
        try:
            tier = CoverageTier(tier)
        except ValueError:
            return OperationResult.invalid(
                "invalid_tier", f"tier must be one of: {', '.join(t.value for t in CoverageTier)}",
            )

        quote = self.get(quote_id)
        if quote is None:
            return OperationResult.not_found("quote")

        result = self.db.execute(
            update(Quote)
            .where(Quote.quote_id == quote_id, Quote.status.in_(COVERAGE_STATUSES))
            .values(coverage_tier=tier)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            return OperationResult.precondition("quote_locked", "Coverage can no longer be changed")

        self.audit.log("quote.step_saved", actor_type, actor_id, "quote", str(quote_id), {"step": "coverage", "tier": tier.value})
        self.db.commit()
        self.db.refresh(quote)
        return OperationResult.success(quote, code="coverage_selected")

    def cancel(
        self,
        quote_id: UUID,
        actor_id: Optional[str] = None,
        actor_type: str = "customer",
        reason: str = "",
    ) -> OperationResult[Quote]:
        """Withdraw a quote. Terminal; the quote is kept for the record."""
        quote = self.get(quote_id)
        if quote is None:
            return OperationResult.not_found("quote")
        if not can_transition(QUOTE_TRANSITIONS, quote.status, QuoteStatus.CANCELLED):
            return OperationResult.precondition(
                "quote_closed", f"Quote cannot be cancelled in status '{quote.status.value}'",
            )

        if not compare_and_set_status(
            self.db, Quote, Quote.quote_id, quote_id, QUOTE_TRANSITIONS, QuoteStatus.CANCELLED,
        ):
            self.db.rollback()
            return OperationResult.precondition(
                "quote_closed", f"Quote cannot be cancelled in status '{quote.status.value}'",
            )

        self.audit.log("quote.cancelled", actor_type, actor_id, "quote", str(quote_id), {"reason": reason})
        self.db.commit()
        self.db.refresh(quote)
        return OperationResult.success(quote, code="quote_cancelled")
