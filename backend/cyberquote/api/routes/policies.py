"""
Policy API routes
"""
from datetime import date
from typing import List, Dict, Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from cyberquote.api.deps import ensure_quote_access, raise_for_result
from cyberquote.core import Actor, get_current_actor
from cyberquote.db import get_db
from cyberquote.db.models import Policy, Quote
from cyberquote.services.binding import BindingService
from cyberquote.services.pricing import format_chf

router = APIRouter()


# Request/Response schemas
class BindRequest(BaseModel):
    quote_id: UUID
    start_date: date


class CancelPolicyRequest(BaseModel):
    reason: str = ""


class PolicyResponse(BaseModel):
    policy_id: str
    policy_number: str
    quote_id: str
    customer_id: str
    status: str
    premium: int
    premium_display: str
    coverage: Dict[str, Any]
    start_date: str
    end_date: str
    is_active: bool


def policy_to_response(policy: Policy) -> PolicyResponse:
    return PolicyResponse(
        policy_id=str(policy.policy_id),
        policy_number=policy.policy_number,
        quote_id=str(policy.quote_id),
        customer_id=policy.customer_id,
        status=policy.status.value,
        premium=policy.premium,
        premium_display=format_chf(policy.premium),
        coverage=policy.coverage or {},
        start_date=policy.start_date.isoformat(),
        end_date=policy.end_date.isoformat(),
        is_active=policy.is_active(),
    )


def load_policy(policy_id: UUID, actor: Actor, db: Session) -> Policy:
    policy = BindingService(db).get_policy(policy_id)
    if not policy or (actor.is_customer and policy.customer_id != actor.actor_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "policy_not_found", "message": "Policy not found"},
        )
    return policy


@router.post("/bind", response_model=PolicyResponse, status_code=status.HTTP_201_CREATED)
async def bind_policy(
    request: BindRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Bind an eligible quote into a one-year policy."""
    quote = db.query(Quote).filter(Quote.quote_id == request.quote_id).first()
    if not quote:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "quote_not_found", "message": "Quote not found"},
        )
    ensure_quote_access(quote, actor)

    result = BindingService(db).bind(
        request.quote_id, request.start_date, actor_id=actor.actor_id, actor_type=actor.role.value,
    )
    raise_for_result(result)
    return policy_to_response(result.value)


@router.get("/", response_model=List[PolicyResponse])
async def list_policies(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """List policies; customers only see their own."""
    customer_id = actor.actor_id if actor.is_customer else None
    return [policy_to_response(p) for p in BindingService(db).list_policies(customer_id=customer_id)]


@router.get("/{policy_id}", response_model=PolicyResponse)
async def get_policy(
    policy_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Get policy details by ID."""
    return policy_to_response(load_policy(policy_id, actor, db))


@router.post("/{policy_id}/cancel", response_model=PolicyResponse)
async def cancel_policy(
    policy_id: UUID,
    request: CancelPolicyRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Cancel an active policy."""
    load_policy(policy_id, actor, db)

    result = BindingService(db).cancel_policy(
        policy_id, actor_id=actor.actor_id, actor_type=actor.role.value, reason=request.reason,
    )
    raise_for_result(result)
    return policy_to_response(result.value)
