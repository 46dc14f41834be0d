"""
Audit service for quote, underwriting and policy transitions.

Entries are added to the caller's session and committed together with the
transition they describe.
"""
from typing import Any, Optional

from sqlalchemy.orm import Session

from cyberquote.db.models import AuditLog
from cyberquote.core.logging import get_logger, log_audit_event

logger = get_logger(__name__)


class AuditService:
    """Service for creating and querying audit logs."""

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        event_type: str,
        actor_type: str,
        actor_id: Optional[str],
        resource_type: str,
        resource_id: str,
        details: Optional[dict[str, Any]] = None,
    ) -> AuditLog:
        """
        Stage an audit log entry in the current transaction.

        Args:
            event_type: Type of event (e.g., "case.decided", "policy.bound")
            actor_type: Who performed the action ("customer", "underwriter", "system")
            actor_id: ID of the actor
            resource_type: Type of resource affected
            resource_id: ID of the resource
            details: Additional event details
        """
        audit_log = AuditLog(
            event_type=event_type,
            actor_type=actor_type,
            actor_id=actor_id,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details or {},
        )
        self.db.add(audit_log)

        log_audit_event(event_type, actor_id or "system", actor_type, {resource_type: resource_id, **(details or {})})
        return audit_log

    def get_resource_history(
        self,
        resource_type: str,
        resource_id: str,
        limit: int = 50,
    ) -> list[AuditLog]:
        """Get audit history for a specific resource, oldest first."""
        return (
            self.db.query(AuditLog)
            .filter(
                AuditLog.resource_type == resource_type,
                AuditLog.resource_id == resource_id,
            )
            .order_by(AuditLog.timestamp.asc())
            .limit(limit)
            .all()
        )
