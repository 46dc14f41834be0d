"""
Database package
"""
from cyberquote.db.base import Base
from cyberquote.db.session import engine, SessionLocal, get_db
from cyberquote.db.models import *

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
]
