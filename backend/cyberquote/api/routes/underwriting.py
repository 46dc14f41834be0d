"""
Underwriting API routes
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from cyberquote.api.deps import ensure_quote_access, raise_for_result
from cyberquote.core import Actor, ActorRole, UNDERWRITING_ROLES, get_current_actor, require_role
from cyberquote.db import get_db
from cyberquote.db.models import Quote, UnderwritingCase, UnderwritingDecision
from cyberquote.services.underwriting import UnderwritingService, can_decide

router = APIRouter()


# Request/Response schemas
class CreateCaseRequest(BaseModel):
    quote_id: UUID


class DecisionRequest(BaseModel):
    decision: UnderwritingDecision
    notes: str
    adjusted_premium: Optional[int] = Field(default=None, gt=0)

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("notes cannot be empty")
        return v


class CustomerResponseRequest(BaseModel):
    response: str

    @field_validator("response")
    @classmethod
    def validate_response(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("response cannot be empty")
        return v


class CaseResponse(BaseModel):
    case_id: str
    quote_id: str
    quote_number: str
    risk_grade: Optional[str]
    status: str
    decision: Optional[str]
    notes: str
    adjusted_premium: Optional[int]
    last_reviewer_id: Optional[str]
    sla_due_at: Optional[str]
    created_at: str
    decided_at: Optional[str]


def case_to_response(case: UnderwritingCase) -> CaseResponse:
    quote = case.quote
    return CaseResponse(
        case_id=str(case.case_id),
        quote_id=str(case.quote_id),
        quote_number=quote.quote_number,
        risk_grade=quote.risk_grade.value if quote.risk_grade else None,
        status=case.status.value,
        decision=case.decision.value if case.decision else None,
        notes=case.notes or "",
        adjusted_premium=case.adjusted_premium,
        last_reviewer_id=case.last_reviewer_id,
        sla_due_at=case.sla_due_at.isoformat() if case.sla_due_at else None,
        created_at=case.created_at.isoformat(),
        decided_at=case.decided_at.isoformat() if case.decided_at else None,
    )


def load_case(case_id: UUID, actor: Actor, db: Session) -> UnderwritingCase:
    case = UnderwritingService(db).get_case(case_id)
    if not case:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "underwriting_case_not_found", "message": "Underwriting case not found"},
        )
    ensure_quote_access(case.quote, actor)
    return case


@router.post("/cases", response_model=CaseResponse)
async def create_case(
    request: CreateCaseRequest,
    actor: Actor = Depends(require_role(UNDERWRITING_ROLES)),
    db: Session = Depends(get_db),
):
    """Refer a quote to underwriting. Returns the existing case if there is one."""
    quote = db.query(Quote).filter(Quote.quote_id == request.quote_id).first()
    if not quote:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "quote_not_found", "message": "Quote not found"},
        )

    result = UnderwritingService(db).create_case_if_absent(
        request.quote_id, actor_id=actor.actor_id, actor_type=actor.role.value,
    )
    raise_for_result(result)
    return case_to_response(result.value)


@router.get("/queue", response_model=List[CaseResponse])
async def get_queue(
    actor: Actor = Depends(require_role(UNDERWRITING_ROLES)),
    db: Session = Depends(get_db),
):
    """Open cases ordered by SLA due date."""
    return [case_to_response(c) for c in UnderwritingService(db).list_queue()]


@router.get("/cases/{case_id}", response_model=CaseResponse)
async def get_case(
    case_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Get case details; customers only for their own quotes."""
    return case_to_response(load_case(case_id, actor, db))


@router.post("/cases/{case_id}/decision", response_model=CaseResponse)
async def record_decision(
    case_id: UUID,
    request: DecisionRequest,
    actor: Actor = Depends(require_role(UNDERWRITING_ROLES)),
    db: Session = Depends(get_db),
):
    """Approve, reject or request more information."""
    case = load_case(case_id, actor, db)

    if not can_decide(actor.role, case.quote.risk_grade, request.decision):
        grade = case.quote.risk_grade.value if case.quote.risk_grade else "unassessed"
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": "insufficient_authority",
                "message": f"Role '{actor.role.value}' may not {request.decision.value} a grade {grade} case",
            },
        )

    result = UnderwritingService(db).record_decision(
        case_id,
        request.decision,
        request.notes,
        adjusted_premium=request.adjusted_premium,
        reviewer_id=actor.actor_id,
        reviewer_type=actor.role.value,
    )
    raise_for_result(result)
    return case_to_response(result.value)


@router.post("/cases/{case_id}/response", response_model=CaseResponse)
async def submit_customer_response(
    case_id: UUID,
    request: CustomerResponseRequest,
    actor: Actor = Depends(require_role([ActorRole.CUSTOMER.value, ActorRole.BROKER.value])),
    db: Session = Depends(get_db),
):
    """Answer an underwriter's information request."""
    load_case(case_id, actor, db)

    result = UnderwritingService(db).submit_customer_response(
        case_id, request.response, customer_id=actor.actor_id,
    )
    raise_for_result(result)
    return case_to_response(result.value)
