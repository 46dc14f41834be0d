"""
API routes package
"""
from cyberquote.api.routes import quotes, underwriting, policies

__all__ = [
    "quotes",
    "underwriting",
    "policies",
]
