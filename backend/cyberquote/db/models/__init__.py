"""
Database models package
"""
from cyberquote.db.models.quote import Quote, QuoteStatus, IntakeStep, QUOTE_TRANSITIONS
from cyberquote.db.models.underwriting import (
    UnderwritingCase, UnderwritingStatus, UnderwritingDecision,
    CASE_TRANSITIONS, DECISION_TARGETS, OPEN_STATUSES,
)
from cyberquote.db.models.policy import Policy, PolicyStatus, POLICY_TRANSITIONS
from cyberquote.db.models.audit import AuditLog

__all__ = [
    # Quote
    "Quote",
    "QuoteStatus",
    "IntakeStep",
    "QUOTE_TRANSITIONS",
    # Underwriting
    "UnderwritingCase",
    "UnderwritingStatus",
    "UnderwritingDecision",
    "CASE_TRANSITIONS",
    "DECISION_TARGETS",
    "OPEN_STATUSES",
    # Policy
    "Policy",
    "PolicyStatus",
    "POLICY_TRANSITIONS",
    # Audit
    "AuditLog",
]
