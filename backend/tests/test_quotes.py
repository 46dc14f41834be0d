"""
Tests for the quote lifecycle service.
"""
import uuid

import pytest
from sqlalchemy.orm import Session

from cyberquote.db.models import AuditLog, Quote, QuoteStatus, UnderwritingCase
from cyberquote.services.results import ErrorKind
from cyberquote.services.quotes import QuoteService, parse_revenue
from cyberquote.services.underwriting import UnderwritingService


@pytest.fixture
def service(db: Session) -> QuoteService:
    return QuoteService(db)


@pytest.fixture
def draft_quote(service: QuoteService) -> Quote:
    quote = service.create(customer_id="customer-1", company_data={"name": "Muster AG"}).value
    service.save_step(quote.quote_id, "cyber_risk_profile", {"annual_revenue": 1_000_000, "industry": "retail"})
    return quote


class TestQuoteCreation:
    """Test starting a quote."""

    def test_create_draft(self, service: QuoteService):
        """Test a new quote starts as draft with a quote number."""
        result = service.create(customer_id="customer-1")
        assert result.ok
        quote = result.value
        assert quote.status == QuoteStatus.DRAFT
        assert quote.quote_number.startswith("Z1-")
        assert quote.risk_grade is None
        assert quote.direct_bind_eligible is False

    def test_create_requires_customer(self, service: QuoteService):
        """Test a quote needs an owner."""
        result = service.create(customer_id="")
        assert not result.ok
        assert result.error == ErrorKind.VALIDATION

    def test_create_writes_audit_entry(self, service: QuoteService, db: Session):
        """Test creation is audited."""
        quote = service.create(customer_id="customer-1").value
        entries = db.query(AuditLog).filter(AuditLog.resource_id == str(quote.quote_id)).all()
        assert [e.event_type for e in entries] == ["quote.created"]


class TestIntakeSteps:
    """Test saving wizard steps."""

    def test_profile_stores_revenue(self, draft_quote: Quote):
        """Test the risk profile step records annual revenue."""
        assert float(draft_quote.annual_revenue) == 1_000_000
        assert draft_quote.cyber_risk_profile["industry"] == "retail"

    def test_profile_requires_revenue(self, service: QuoteService, draft_quote: Quote):
        """Test missing revenue is a validation error."""
        result = service.save_step(draft_quote.quote_id, "cyber_risk_profile", {"industry": "retail"})
        assert not result.ok
        assert result.error == ErrorKind.VALIDATION

    def test_profile_rejects_negative_revenue(self, service: QuoteService, draft_quote: Quote):
        """Test negative revenue is a validation error."""
        result = service.save_step(draft_quote.quote_id, "cyber_risk_profile", {"annual_revenue": -5})
        assert result.error == ErrorKind.VALIDATION

    def test_security_step_scores(self, service: QuoteService, draft_quote: Quote, grade_a_answers):
        """Test submitting the security step calculates the quote."""
        result = service.save_step(draft_quote.quote_id, "cyber_security", grade_a_answers)
        assert result.ok
        submission = result.value
        assert submission.assessment.grade.value == "A"
        assert submission.underwriting_case is None
        assert submission.quote.status == QuoteStatus.CALCULATED
        assert submission.quote.cyber_security == grade_a_answers
        assert submission.quote.direct_bind_eligible is True

    def test_security_step_needs_revenue(self, service: QuoteService, grade_a_answers):
        """Test scoring without a declared revenue fails."""
        quote = service.create(customer_id="customer-1").value
        result = service.save_step(quote.quote_id, "cyber_security", grade_a_answers)
        assert result.error == ErrorKind.VALIDATION
        assert result.code == "revenue_required"

    def test_security_step_invalid_answers(self, service: QuoteService, draft_quote: Quote):
        """Test out-of-vocabulary answers are rejected and nothing is stored."""
        result = service.save_step(draft_quote.quote_id, "cyber_security", {"had_cyber_incidents": "sometimes"})
        assert result.error == ErrorKind.VALIDATION
        assert "had_cyber_incidents" in result.details
        assert service.get(draft_quote.quote_id).status == QuoteStatus.DRAFT

    def test_low_grade_refers_to_underwriting(self, service: QuoteService, draft_quote: Quote,
                                               grade_d_answers, db: Session):
        """Test a D grade opens an underwriting case."""
        result = service.save_step(draft_quote.quote_id, "cyber_security", grade_d_answers)
        assert result.ok
        assert result.value.case_created is True
        assert result.value.quote.status == QuoteStatus.PENDING_UNDERWRITING
        assert db.query(UnderwritingCase).count() == 1

    def test_editing_calculated_quote_returns_to_draft(self, service: QuoteService, draft_quote: Quote,
                                                       grade_a_answers):
        """Test editing company data after scoring resets to draft."""
        service.save_step(draft_quote.quote_id, "cyber_security", grade_a_answers)
        result = service.save_step(draft_quote.quote_id, "company_data", {"name": "Muster Holding AG"})
        assert result.ok
        assert result.value.status == QuoteStatus.DRAFT
        assert result.value.company_data == {"name": "Muster Holding AG"}

    def test_rescoring_overwrites_assessment(self, service: QuoteService, draft_quote: Quote,
                                             grade_a_answers, grade_b_answers):
        """Test a fresh submission replaces the stored assessment."""
        service.save_step(draft_quote.quote_id, "cyber_security", grade_a_answers)
        result = service.save_step(draft_quote.quote_id, "cyber_security", grade_b_answers)
        assert result.value.quote.risk_grade.value == "B"
        assert result.value.quote.risk_percentage == 75.0

    def test_rescoring_pending_quote_keeps_case(self, service: QuoteService, draft_quote: Quote,
                                                grade_e_answers, grade_a_answers, db: Session):
        """Test rescoring a referred quote reuses its case and stays pending."""
        first = service.save_step(draft_quote.quote_id, "cyber_security", grade_e_answers).value
        second = service.save_step(draft_quote.quote_id, "cyber_security", grade_a_answers).value
        assert second.quote.status == QuoteStatus.PENDING_UNDERWRITING
        assert second.quote.risk_grade.value == "A"
        assert second.case_created is False
        assert second.underwriting_case.case_id == first.underwriting_case.case_id
        assert db.query(UnderwritingCase).count() == 1

    def test_pending_quote_is_locked_for_edits(self, service: QuoteService, draft_quote: Quote, grade_e_answers):
        """Test company data cannot change while under review."""
        service.save_step(draft_quote.quote_id, "cyber_security", grade_e_answers)
        result = service.save_step(draft_quote.quote_id, "company_data", {"name": "Other"})
        assert result.error == ErrorKind.PRECONDITION

    def test_select_coverage(self, service: QuoteService, draft_quote: Quote):
        """Test choosing a coverage tier."""
        result = service.save_step(draft_quote.quote_id, "coverage", {"tier": "PREMIUM"})
        assert result.ok
        assert result.value.coverage_tier.value == "PREMIUM"
        assert result.value.status == QuoteStatus.DRAFT

    def test_select_unknown_coverage(self, service: QuoteService, draft_quote: Quote):
        """Test unknown tiers are rejected."""
        result = service.select_coverage(draft_quote.quote_id, "PLATINUM")
        assert result.error == ErrorKind.VALIDATION

    def test_unknown_step(self, service: QuoteService, draft_quote: Quote):
        """Test an unknown step name is a validation error."""
        result = service.save_step(draft_quote.quote_id, "payment", {})
        assert result.error == ErrorKind.VALIDATION
        assert result.code == "invalid_step"

    def test_step_data_must_be_mapping(self, service: QuoteService, draft_quote: Quote):
        result = service.save_step(draft_quote.quote_id, "company_data", ["Muster AG"])
        assert result.error == ErrorKind.VALIDATION
        assert result.code == "invalid_step_data"

    def test_failed_referral_keeps_previous_state(self, service: QuoteService, draft_quote: Quote,
                                                  grade_d_answers, db: Session, monkeypatch):
        """Test the assessment is not stored when the underwriting referral fails."""
        monkeypatch.setattr(UnderwritingService, "stage_case", lambda self, quote, **kwargs: None)

        result = service.save_step(draft_quote.quote_id, "cyber_security", grade_d_answers)
        assert result.error == ErrorKind.PRECONDITION
        assert result.code == "quote_state_changed"

        quote = service.get(draft_quote.quote_id)
        db.refresh(quote)
        assert quote.status == QuoteStatus.DRAFT
        assert quote.risk_grade is None
        assert quote.cyber_security == {}
        assert db.query(UnderwritingCase).count() == 0
        assert db.query(AuditLog).filter(AuditLog.event_type == "quote.assessed").count() == 0

    def test_referral_shares_assessment_transaction(self, service: QuoteService, draft_quote: Quote,
                                                    grade_c_answers, db: Session):
        """Test a C grade is stored already pending with its case and both audit entries."""
        result = service.save_step(draft_quote.quote_id, "cyber_security", grade_c_answers)
        assert result.ok
        assert result.value.quote.status == QuoteStatus.PENDING_UNDERWRITING
        assert result.value.underwriting_case.quote_id == draft_quote.quote_id
        events = {e.event_type for e in db.query(AuditLog).all()}
        assert {"quote.assessed", "case.created"} <= events

    def test_unknown_quote(self, service: QuoteService):
        """Test steps on a missing quote report not found."""
        result = service.save_step(uuid.uuid4(), "company_data", {})
        assert result.error == ErrorKind.NOT_FOUND
        assert result.code == "quote_not_found"


class TestQuoteCancellation:
    """Test withdrawing quotes."""

    def test_cancel_draft(self, service: QuoteService, draft_quote: Quote):
        """Test a draft can be cancelled."""
        result = service.cancel(draft_quote.quote_id, reason="no longer needed")
        assert result.ok
        assert result.value.status == QuoteStatus.CANCELLED

    def test_cancel_is_terminal(self, service: QuoteService, draft_quote: Quote, grade_a_answers):
        """Test a cancelled quote can be neither cancelled again nor rescored."""
        service.cancel(draft_quote.quote_id)
        assert service.cancel(draft_quote.quote_id).error == ErrorKind.PRECONDITION
        assert service.save_step(draft_quote.quote_id, "cyber_security", grade_a_answers).error == ErrorKind.PRECONDITION

    def test_cancel_pending_keeps_case(self, service: QuoteService, draft_quote: Quote,
                                       grade_e_answers, db: Session):
        """Test the underwriting case survives quote cancellation."""
        service.save_step(draft_quote.quote_id, "cyber_security", grade_e_answers)
        assert service.cancel(draft_quote.quote_id).ok
        assert db.query(UnderwritingCase).count() == 1


class TestParseRevenue:
    """Test revenue parsing."""

    @pytest.mark.parametrize("value", [None, "abc", True, "NaN", -1])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_revenue(value)

    def test_string_number(self):
        assert parse_revenue("5000000.50") > 5_000_000
