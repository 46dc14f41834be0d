"""
API dependencies
"""
from fastapi import HTTPException, status

from cyberquote.db import get_db
from cyberquote.db.models import Quote
from cyberquote.core import Actor, get_current_actor, require_role
from cyberquote.services.results import ErrorKind, OperationResult

ERROR_STATUS = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.PRECONDITION: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def raise_for_result(result: OperationResult) -> None:
    """Translate a failed operation into an HTTP error."""
    if result.ok:
        return
    detail = {"code": result.code, "message": result.message}
    if result.details:
        detail["errors"] = result.details
    raise HTTPException(status_code=ERROR_STATUS[result.error], detail=detail)


def ensure_quote_access(quote: Quote, actor: Actor) -> None:
    """Customers only see their own quotes."""
    if actor.is_customer and quote.customer_id != actor.actor_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "quote_not_found", "message": "Quote not found"},
        )


__all__ = [
    "get_db",
    "get_current_actor",
    "require_role",
    "raise_for_result",
    "ensure_quote_access",
]
