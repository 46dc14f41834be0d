"""
Core module exports
"""
from cyberquote.core.config import settings
from cyberquote.core.security import (
    Actor,
    ActorRole,
    UNDERWRITING_ROLES,
    create_access_token,
    decode_access_token,
    get_current_actor,
    require_role,
)
from cyberquote.core.logging import logger, get_logger, log_audit_event

__all__ = [
    "settings",
    "Actor",
    "ActorRole",
    "UNDERWRITING_ROLES",
    "create_access_token",
    "decode_access_token",
    "get_current_actor",
    "require_role",
    "logger",
    "get_logger",
    "log_audit_event",
]
