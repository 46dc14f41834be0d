"""
Quote API routes
"""
from decimal import Decimal
from typing import List, Optional, Dict, Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from cyberquote.api.deps import ensure_quote_access, raise_for_result
from cyberquote.core import Actor, ActorRole, get_current_actor, require_role
from cyberquote.db import get_db
from cyberquote.db.models import Quote, QuoteStatus, IntakeStep
from cyberquote.services.audit import AuditService
from cyberquote.services.pricing import PRICE_LIST, format_chf
from cyberquote.services.quotes import QuoteService
from cyberquote.services.risk_scoring import (
    DEFAULT_CATALOG,
    AnswerValidationError,
    QuestionnaireAnswers,
    score,
)
from cyberquote.services.risk_scoring.answers import VOCABULARY

router = APIRouter()


# Request/Response schemas
class CreateQuoteRequest(BaseModel):
    customer_id: Optional[str] = None  # required when a broker creates the quote
    company_data: Dict[str, Any] = {}


class StepRequest(BaseModel):
    data: Dict[str, Any]


class CancelRequest(BaseModel):
    reason: str = ""


class PreviewRequest(BaseModel):
    answers: Dict[str, Any]
    annual_revenue: Decimal = Field(ge=0)


class QuoteResponse(BaseModel):
    quote_id: str
    quote_number: str
    customer_id: str
    broker_id: Optional[str]
    status: str
    company_data: Dict[str, Any]
    cyber_risk_profile: Dict[str, Any]
    cyber_security: Dict[str, Any]
    annual_revenue: Optional[float]
    risk_assessment: Optional[Dict[str, Any]]
    direct_bind_eligible: bool
    coverage_tier: Optional[str]
    premium: Optional[int]
    underwriting_case_id: Optional[str]
    policy_id: Optional[str]
    created_at: str


class AuditEntryResponse(BaseModel):
    event_type: str
    actor_id: Optional[str]
    actor_type: str
    details: Dict[str, Any]
    timestamp: str


def quote_to_response(quote: Quote) -> QuoteResponse:
    assessment = quote.risk_assessment
    return QuoteResponse(
        quote_id=str(quote.quote_id),
        quote_number=quote.quote_number,
        customer_id=quote.customer_id,
        broker_id=quote.broker_id,
        status=quote.status.value,
        company_data=quote.company_data or {},
        cyber_risk_profile=quote.cyber_risk_profile or {},
        cyber_security=quote.cyber_security or {},
        annual_revenue=float(quote.annual_revenue) if quote.annual_revenue is not None else None,
        risk_assessment=assessment.to_dict() if assessment else None,
        direct_bind_eligible=quote.direct_bind_eligible,
        coverage_tier=quote.coverage_tier.value if quote.coverage_tier else None,
        premium=quote.premium,
        underwriting_case_id=str(quote.underwriting_case.case_id) if quote.underwriting_case else None,
        policy_id=str(quote.policy.policy_id) if quote.policy else None,
        created_at=quote.created_at.isoformat(),
    )


def load_quote(quote_id: UUID, actor: Actor, db: Session) -> Quote:
    quote = QuoteService(db).get(quote_id)
    if not quote:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "quote_not_found", "message": "Quote not found"},
        )
    ensure_quote_access(quote, actor)
    return quote


@router.get("/catalog")
async def get_catalog():
    """Question catalog used by the security step."""
    return {
        "version": DEFAULT_CATALOG.version,
        "questions": [
            {
                "id": q.id,
                "text": q.text,
                "kind": q.kind.value,
                "options": [v.value for v in VOCABULARY[q.kind]],
                "tier": q.tier.value,
                "scored": q.scored,
                "condition": (
                    {"question_id": q.condition.question_id, "answer": q.condition.answer.value}
                    if q.condition else None
                ),
            }
            for q in DEFAULT_CATALOG
        ],
    }


@router.get("/coverage-tiers")
async def get_coverage_tiers():
    """Fixed price list for the coverage step."""
    return [
        {**package.snapshot(), "price_display": format_chf(package.price)}
        for package in PRICE_LIST.values()
    ]


@router.post("/risk-score/preview")
async def preview_risk_score(
    request: PreviewRequest,
    actor: Actor = Depends(get_current_actor),
):
    """Score answers without touching any quote."""
    try:
        answers = QuestionnaireAnswers.parse(request.answers, DEFAULT_CATALOG)
    except AnswerValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"code": "invalid_answers", "message": str(e), "errors": e.errors},
        )
    return score(answers, request.annual_revenue, DEFAULT_CATALOG).to_dict()


@router.post("/", response_model=QuoteResponse, status_code=status.HTTP_201_CREATED)
async def create_quote(
    request: CreateQuoteRequest,
    actor: Actor = Depends(require_role([
        ActorRole.CUSTOMER.value, ActorRole.BROKER.value, ActorRole.ADMIN.value,
    ])),
    db: Session = Depends(get_db),
):
    """Start a new draft quote."""
    if actor.is_customer:
        customer_id, broker_id = actor.actor_id, None
    else:
        if not request.customer_id:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail={"code": "customer_required", "message": "customer_id is required"},
            )
        customer_id = request.customer_id
        broker_id = actor.actor_id if actor.role == ActorRole.BROKER else None

    result = QuoteService(db).create(
        customer_id=customer_id,
        broker_id=broker_id,
        company_data=request.company_data,
        actor_id=actor.actor_id,
        actor_type=actor.role.value,
    )
    raise_for_result(result)
    return quote_to_response(result.value)


@router.get("/", response_model=List[QuoteResponse])
async def list_quotes(
    status_filter: Optional[QuoteStatus] = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """List quotes; customers only see their own."""
    customer_id = actor.actor_id if actor.is_customer else None
    quotes = QuoteService(db).list_quotes(customer_id=customer_id, status=status_filter)
    return [quote_to_response(q) for q in quotes]


@router.get("/{quote_id}", response_model=QuoteResponse)
async def get_quote(
    quote_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Get quote details by ID."""
    return quote_to_response(load_quote(quote_id, actor, db))


@router.put("/{quote_id}/steps/{step}", response_model=QuoteResponse)
async def save_step(
    quote_id: UUID,
    step: IntakeStep,
    request: StepRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Save one intake step. The cyber_security step scores the quote."""
    load_quote(quote_id, actor, db)

    result = QuoteService(db).save_step(
        quote_id, step, request.data, actor_id=actor.actor_id, actor_type=actor.role.value,
    )
    raise_for_result(result)

    quote = result.value.quote if step == IntakeStep.CYBER_SECURITY else result.value
    return quote_to_response(quote)


@router.post("/{quote_id}/cancel", response_model=QuoteResponse)
async def cancel_quote(
    quote_id: UUID,
    request: CancelRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Withdraw a quote."""
    load_quote(quote_id, actor, db)

    result = QuoteService(db).cancel(
        quote_id, actor_id=actor.actor_id, actor_type=actor.role.value, reason=request.reason,
    )
    raise_for_result(result)
    return quote_to_response(result.value)


@router.get("/{quote_id}/history", response_model=List[AuditEntryResponse])
async def get_quote_history(
    quote_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Audit trail of a quote."""
    load_quote(quote_id, actor, db)

    entries = AuditService(db).get_resource_history("quote", str(quote_id))
    return [
        AuditEntryResponse(
            event_type=e.event_type,
            actor_id=e.actor_id,
            actor_type=e.actor_type,
            details=e.details or {},
            timestamp=e.timestamp.isoformat(),
        )
        for e in entries
    ]
