"""
Underwriting case workflow.

A case is opened once per referred quote and worked by a human reviewer:

    pending -> in_review -> {needs_info <-> in_review} -> {approved | rejected}

Every status change is a conditional UPDATE against CASE_TRANSITIONS, so
two reviewers deciding the same case at once cannot both win.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cyberquote.core.config import settings
from cyberquote.core.logging import get_logger
from cyberquote.core.security import ActorRole
from cyberquote.db.models import (
    Quote,
    QuoteStatus,
    UnderwritingCase,
    UnderwritingDecision,
    UnderwritingStatus,
    CASE_TRANSITIONS,
    DECISION_TARGETS,
    OPEN_STATUSES,
    QUOTE_TRANSITIONS,
)
from cyberquote.db.transitions import compare_and_set_status
from cyberquote.services.audit import AuditService
from cyberquote.services.results import OperationResult
from cyberquote.services.risk_scoring import RiskGrade

logger = get_logger(__name__)

QUEUE_STATUSES = (
    UnderwritingStatus.PENDING,
    UnderwritingStatus.IN_REVIEW,
    UnderwritingStatus.NEEDS_INFO,
)

# Who may approve a case, by the quote's risk grade. Grade E is reject-only.
APPROVAL_AUTHORITY: Dict[RiskGrade, set] = {
    RiskGrade.A: {ActorRole.UNDERWRITER, ActorRole.TEAM_LEAD, ActorRole.HEAD_UNDERWRITING, ActorRole.ADMIN},
    RiskGrade.B: {ActorRole.UNDERWRITER, ActorRole.TEAM_LEAD, ActorRole.HEAD_UNDERWRITING, ActorRole.ADMIN},
    RiskGrade.C: {ActorRole.TEAM_LEAD, ActorRole.HEAD_UNDERWRITING, ActorRole.ADMIN},
    RiskGrade.D: {ActorRole.HEAD_UNDERWRITING, ActorRole.ADMIN},
    RiskGrade.E: set(),
}

REVIEWER_ROLES = {
    ActorRole.BROKER,
    ActorRole.UNDERWRITER,
    ActorRole.TEAM_LEAD,
    ActorRole.HEAD_UNDERWRITING,
    ActorRole.ADMIN,
}


def can_decide(role: ActorRole, grade: Optional[RiskGrade], decision: UnderwritingDecision) -> bool:
    """Check whether a role may record `decision` on a case of the given grade."""
    if role not in REVIEWER_ROLES:
        return False
    if decision != UnderwritingDecision.APPROVE:
        return True
    if grade is None:
        return False
    return role in APPROVAL_AUTHORITY[grade]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _note_block(heading: str, body: str) -> str:
    """Format one timestamped entry of the case note log."""
    stamp = _utcnow().strftime("%Y-%m-%d %H:%M UTC")
    return f"[{stamp}] {heading}\n{body.strip()}\n\n"


def _append_note(block: str):
    """SQL expression appending `block` to the stored notes."""
    return func.coalesce(UnderwritingCase.notes, "") + block


class UnderwritingService:
    """Creates underwriting cases and records reviewer and customer actions."""

    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    def get_case(self, case_id: UUID) -> Optional[UnderwritingCase]:
        return self.db.query(UnderwritingCase).filter(UnderwritingCase.case_id == case_id).first()

    def get_case_for_quote(self, quote_id: UUID) -> Optional[UnderwritingCase]:
        return self.db.query(UnderwritingCase).filter(UnderwritingCase.quote_id == quote_id).first()

    def list_queue(self, statuses: Optional[List[UnderwritingStatus]] = None) -> List[UnderwritingCase]:
        """Cases awaiting someone, most urgent SLA first."""
        return (
            self.db.query(UnderwritingCase)
            .filter(UnderwritingCase.status.in_(statuses or QUEUE_STATUSES))
            .order_by(UnderwritingCase.sla_due_at.asc(), UnderwritingCase.created_at.asc())
            .all()
        )

    def create_case_if_absent(
        self,
        quote_id: UUID,
        actor_id: Optional[str] = None,
        actor_type: str = "system",
    ) -> OperationResult[UnderwritingCase]:
        """
        Open the underwriting case for a quote, at most once.

        A second call returns the existing case with code `case_exists`
        instead of creating a duplicate. The quote moves to
        `pending_underwriting` in the same transaction.
        """
        quote = self.db.query(Quote).filter(Quote.quote_id == quote_id).first()
        if quote is None:
            return OperationResult.not_found("quote")

        existing = self.get_case_for_quote(quote_id)
        if existing is not None:
            return OperationResult.success(existing, code="case_exists", message="Underwriting case already exists")

        if quote.risk_grade is None:
            return OperationResult.precondition("quote_not_assessed", "Quote has no risk assessment yet")

        try:
            case = self.stage_case(quote, actor_id=actor_id, actor_type=actor_type)
        except IntegrityError:
            # Lost the race against a concurrent creation for the same quote
            self.db.rollback()
            existing = self.get_case_for_quote(quote_id)
            if existing is None:
                raise
            return OperationResult.success(existing, code="case_exists", message="Underwriting case already exists")
        if case is None:
            self.db.rollback()
            return OperationResult.precondition(
                "quote_not_referable", f"Quote in status '{quote.status.value}' cannot be referred to underwriting",
            )

        self.db.commit()
        self.db.refresh(case)

        logger.info(f"Underwriting case {case.case_id} opened for quote {quote.quote_number}")
        return OperationResult.success(case, code="case_created")

    def stage_case(
        self,
        quote: Quote,
        actor_id: Optional[str] = None,
        actor_type: str = "system",
    ) -> Optional[UnderwritingCase]:
        """
        Refer an assessed quote inside the caller's transaction.

        Moves the quote to `pending_underwriting` and flushes a new pending
        case. The caller commits or rolls back.

        Returns:
            The new case, or None if the quote is not in a referable state.

        Raises:
            IntegrityError: A case for this quote already exists.
        """
        if not compare_and_set_status(
            self.db, Quote, Quote.quote_id, quote.quote_id, QUOTE_TRANSITIONS, QuoteStatus.PENDING_UNDERWRITING,
            expected=[QuoteStatus.CALCULATED, QuoteStatus.PENDING_UNDERWRITING],
        ):
            return None

        case = UnderwritingCase(
            quote_id=quote.quote_id,
            status=UnderwritingStatus.PENDING,
            notes="",
            created_by=actor_id,
            sla_due_at=_utcnow() + timedelta(hours=settings.UNDERWRITING_SLA_HOURS),
        )
        self.db.add(case)
        self.db.flush()

        self.audit.log(
            "case.created", actor_type, actor_id, "underwriting_case", str(case.case_id),
            {"quote_id": str(quote.quote_id), "grade": quote.risk_grade.value},
        )
        return case

    def record_decision(
        self,
        case_id: UUID,
        decision: Any,
        notes: str,
        adjusted_premium: Optional[int] = None,
        reviewer_id: Optional[str] = None,
        reviewer_type: str = "underwriter",
    ) -> OperationResult[UnderwritingCase]:
        """
        Record a reviewer decision on an open case.

        Args:
            case_id: Case to decide
            decision: approve, reject or needs_info
            notes: Reviewer note, appended to the case log (required)
            adjusted_premium: Overrides the tier price on binding; approve only
            reviewer_id: Acting reviewer

        Returns:
            OperationResult with the updated case, or `already_decided` if the
            case was resolved before this call.
        """
        try:
            decision = UnderwritingDecision(decision)
        except ValueError:
            return OperationResult.invalid(
                "invalid_decision", f"decision must be one of: {', '.join(d.value for d in UnderwritingDecision)}",
            )
        if not isinstance(notes, str) or not notes.strip():
            return OperationResult.invalid("notes_required", "A note is required with every decision")
        if adjusted_premium is not None:
            if isinstance(adjusted_premium, bool) or not isinstance(adjusted_premium, int) or adjusted_premium <= 0:
                return OperationResult.invalid("invalid_premium", "adjusted_premium must be a positive amount in Rappen")
            if decision != UnderwritingDecision.APPROVE:
                return OperationResult.invalid("premium_requires_approval", "adjusted_premium can only be set when approving")

        case = self.get_case(case_id)
        if case is None:
            return OperationResult.not_found("underwriting_case")
        if case.is_resolved():
            return OperationResult.precondition("already_decided", "Underwriting case already decided", value=case)
        if case.status == UnderwritingStatus.NEEDS_INFO:
            return OperationResult.precondition(
                "awaiting_customer", "Underwriting case is waiting for the customer's response", value=case,
            )

        target = DECISION_TARGETS[decision]
        heading = f"{reviewer_type} {reviewer_id or 'unknown'} - {decision.value.replace('_', ' ').upper()}"
        values: Dict[str, Any] = {
            "notes": _append_note(_note_block(heading, notes)),
            "last_reviewer_id": reviewer_id,
        }
        if decision != UnderwritingDecision.NEEDS_INFO:
            values["decision"] = decision
            values["decided_at"] = _utcnow()
        if decision == UnderwritingDecision.APPROVE:
            values["adjusted_premium"] = adjusted_premium

        if not compare_and_set_status(
            self.db, UnderwritingCase, UnderwritingCase.case_id, case_id, CASE_TRANSITIONS, target,
            expected=OPEN_STATUSES, **values,
        ):
            self.db.rollback()
            self.db.refresh(case)
            if case.is_resolved():
                return OperationResult.precondition("already_decided", "Underwriting case already decided", value=case)
            return OperationResult.precondition(
                "case_not_open", f"Underwriting case in status '{case.status.value}' cannot be decided", value=case,
            )

        quote_values: Dict[str, Any] = {}
        quote_target = None
        if decision == UnderwritingDecision.APPROVE:
            quote_target = QuoteStatus.APPROVED
            if adjusted_premium is not None:
                quote_values["premium"] = adjusted_premium
        elif decision == UnderwritingDecision.REJECT:
            quote_target = QuoteStatus.REJECTED

        if quote_target is not None and not compare_and_set_status(
            self.db, Quote, Quote.quote_id, case.quote_id, QUOTE_TRANSITIONS, quote_target,
            expected=[QuoteStatus.PENDING_UNDERWRITING], **quote_values,
        ):
            self.db.rollback()
            return OperationResult.precondition("quote_not_pending", "Quote is no longer awaiting underwriting")

        event = "case.info_requested" if decision == UnderwritingDecision.NEEDS_INFO else "case.decided"
        details: Dict[str, Any] = {"decision": decision.value, "quote_id": str(case.quote_id)}
        if adjusted_premium is not None:
            details["adjusted_premium"] = adjusted_premium
        self.audit.log(event, reviewer_type, reviewer_id, "underwriting_case", str(case_id), details)
        self.db.commit()
        self.db.refresh(case)

        logger.info(f"Underwriting case {case_id}: {decision.value} by {reviewer_id}")
        return OperationResult.success(case, code=f"case_{target.value}")

    def submit_customer_response(
        self,
        case_id: UUID,
        response: str,
        customer_id: Optional[str] = None,
    ) -> OperationResult[UnderwritingCase]:
        """Append the customer's answer to an information request and reopen review."""
        if not isinstance(response, str) or not response.strip():
            return OperationResult.invalid("response_required", "A response is required")

        case = self.get_case(case_id)
        if case is None:
            return OperationResult.not_found("underwriting_case")
        if case.status != UnderwritingStatus.NEEDS_INFO:
            return OperationResult.precondition(
                "no_pending_request", "No pending information request for this case", value=case,
            )

        block = _note_block(f"customer {customer_id or 'unknown'} - RESPONSE", response)
        if not compare_and_set_status(
            self.db, UnderwritingCase, UnderwritingCase.case_id, case_id, CASE_TRANSITIONS,
            UnderwritingStatus.IN_REVIEW, expected=[UnderwritingStatus.NEEDS_INFO],
            notes=_append_note(block),
        ):
            self.db.rollback()
            self.db.refresh(case)
            return OperationResult.precondition(
                "no_pending_request", "No pending information request for this case", value=case,
            )

        self.audit.log(
            "case.customer_responded", "customer", customer_id, "underwriting_case", str(case_id),
            {"response": response},
        )
        self.db.commit()
        self.db.refresh(case)
        return OperationResult.success(case, code="case_in_review")
