"""
Test configuration and fixtures for CyberQuote backend tests.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from typing import Callable, Dict, Generator, Tuple
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from main import app
from cyberquote.db.base import Base
from cyberquote.db.session import get_db
from cyberquote.core.security import create_access_token
from cyberquote.services.quotes import QuoteService


# Use in-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _headers(actor_id: str, role: str) -> dict:
    token = create_access_token(data={"sub": actor_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers() -> dict:
    return _headers("customer-1", "customer")


@pytest.fixture
def other_customer_headers() -> dict:
    return _headers("customer-2", "customer")


@pytest.fixture
def broker_headers() -> dict:
    return _headers("broker-1", "broker")


@pytest.fixture
def underwriter_headers() -> dict:
    return _headers("underwriter-1", "underwriter")


@pytest.fixture
def team_lead_headers() -> dict:
    return _headers("team-lead-1", "team_lead")


@pytest.fixture
def head_headers() -> dict:
    return _headers("head-1", "head_underwriting")


# Answer sets for a company with 1M revenue (base tier only)

@pytest.fixture
def grade_a_answers() -> Dict[str, str]:
    """2 / 2 points = 100%."""
    return {"had_cyber_incidents": "no", "has_end_of_life_systems": "no"}


@pytest.fixture
def grade_b_answers() -> Dict[str, str]:
    """1.5 / 2 points = 75%."""
    return {"had_cyber_incidents": "no", "has_end_of_life_systems": "partial"}


@pytest.fixture
def grade_c_answers() -> Dict[str, str]:
    """4.5 / 7 points = 64.3%."""
    return {
        "had_cyber_incidents": "yes",
        "multiple_incidents": "no",
        "incident_downtime_72h": "no",
        "incident_financial_loss": "no",
        "incident_liability_claims": "no",
        "business_continuity_after_it_failure": "fails_immediately",
        "has_end_of_life_systems": "partial",
    }


@pytest.fixture
def grade_d_answers() -> Dict[str, str]:
    """4 / 7 points = 57.1%."""
    return {
        "had_cyber_incidents": "yes",
        "multiple_incidents": "no",
        "incident_downtime_72h": "no",
        "incident_financial_loss": "no",
        "incident_liability_claims": "no",
        "business_continuity_after_it_failure": "fails_immediately",
        "has_end_of_life_systems": "yes",
    }


@pytest.fixture
def grade_e_answers() -> Dict[str, str]:
    """0 / 7 points."""
    return {
        "had_cyber_incidents": "yes",
        "multiple_incidents": "yes",
        "incident_downtime_72h": "yes",
        "incident_financial_loss": "yes",
        "incident_liability_claims": "yes",
        "business_continuity_after_it_failure": "fails_immediately",
        "has_end_of_life_systems": "yes",
    }


def build_quote(db: Session, answers, revenue=1_000_000, customer_id="customer-1", tier="OPTIMUM"):
    """Run a quote through the intake wizard on the given session."""
    service = QuoteService(db)
    quote = service.create(customer_id=customer_id, company_data={"name": "Muster AG"}).value
    service.save_step(quote.quote_id, "cyber_risk_profile", {"annual_revenue": revenue})
    result = service.save_step(quote.quote_id, "cyber_security", answers)
    assert result.ok, result.message
    if tier is not None:
        assert service.select_coverage(quote.quote_id, tier).ok
    db.refresh(quote)
    return quote


@pytest.fixture
def make_quote(db: Session) -> Callable:
    """
    Factory running a quote through the intake wizard.

    Returns the quote after scoring and, when `tier` is given, coverage
    selection. `session` runs it on another session than `db`.
    """
    def _make(answers, session=None, **kwargs):
        return build_quote(session if session is not None else db, answers, **kwargs)

    return _make


@pytest.fixture
def session_pair(tmp_path) -> Generator[Tuple[Session, Session], None, None]:
    """
    Two independent sessions on one file-backed SQLite database.

    Each session holds its own connection, so objects loaded in one go
    stale when the other commits.
    """
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=file_engine)
    SessionFactory = sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
    first, second = SessionFactory(), SessionFactory()
    try:
        yield first, second
    finally:
        first.close()
        second.close()
        file_engine.dispose()
