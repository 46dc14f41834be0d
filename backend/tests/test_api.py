"""
Tests for the HTTP API.
"""
import uuid

import pytest
from fastapi.testclient import TestClient


def start_quote(client: TestClient, headers: dict, answers: dict, revenue: int = 1_000_000,
                tier: str = "OPTIMUM") -> dict:
    """Run a quote through all four intake steps."""
    response = client.post("/quotes/", headers=headers, json={"company_data": {"name": "Muster AG"}})
    assert response.status_code == 201
    quote_id = response.json()["quote_id"]

    client.put(
        f"/quotes/{quote_id}/steps/cyber_risk_profile",
        headers=headers,
        json={"data": {"annual_revenue": revenue}},
    )
    response = client.put(f"/quotes/{quote_id}/steps/cyber_security", headers=headers, json={"data": answers})
    assert response.status_code == 200
    response = client.put(f"/quotes/{quote_id}/steps/coverage", headers=headers, json={"data": {"tier": tier}})
    assert response.status_code == 200
    return response.json()


class TestQuoteEndpoints:
    """Test quote API endpoints."""

    def test_health(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_requires_auth(self, client: TestClient):
        """Test endpoints reject anonymous calls."""
        response = client.get("/quotes/")
        assert response.status_code in (401, 403)

    def test_invalid_token(self, client: TestClient):
        response = client.get("/quotes/", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_catalog(self, client: TestClient):
        """Test the questionnaire catalog is published."""
        response = client.get("/quotes/catalog")
        assert response.status_code == 200
        catalog = response.json()
        ids = [q["id"] for q in catalog["questions"]]
        assert "had_cyber_incidents" in ids
        follow_up = next(q for q in catalog["questions"] if q["id"] == "multiple_incidents")
        assert follow_up["condition"] == {"question_id": "had_cyber_incidents", "answer": "yes"}
        assert follow_up["options"] == ["yes", "no", "partial"]

    def test_coverage_tiers(self, client: TestClient):
        response = client.get("/quotes/coverage-tiers")
        assert response.status_code == 200
        prices = {t["tier"]: t["price"] for t in response.json()}
        assert prices == {"BASIC": 250000, "OPTIMUM": 420000, "PREMIUM": 680000}

    def test_preview(self, client: TestClient, customer_headers, grade_c_answers):
        """Test scoring without a quote."""
        response = client.post(
            "/quotes/risk-score/preview",
            headers=customer_headers,
            json={"answers": grade_c_answers, "annual_revenue": 1_000_000},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["grade"] == "C"
        assert data["percentage"] == 64.3
        assert data["direct_bind_eligible"] is False

    def test_preview_invalid_answers(self, client: TestClient, customer_headers):
        response = client.post(
            "/quotes/risk-score/preview",
            headers=customer_headers,
            json={"answers": {"had_cyber_incidents": "often"}, "annual_revenue": 1_000_000},
        )
        assert response.status_code == 422
        assert "had_cyber_incidents" in response.json()["detail"]["errors"]

    def test_grade_a_quote(self, client: TestClient, customer_headers, grade_a_answers):
        """Test an A grade quote is calculated and direct-bind eligible."""
        quote = start_quote(client, customer_headers, grade_a_answers)
        assert quote["status"] == "calculated"
        assert quote["risk_assessment"]["grade"] == "A"
        assert quote["direct_bind_eligible"] is True
        assert quote["underwriting_case_id"] is None
        assert quote["coverage_tier"] == "OPTIMUM"

    def test_grade_e_quote_referred(self, client: TestClient, customer_headers, grade_e_answers):
        """Test an E grade quote is referred to underwriting."""
        quote = start_quote(client, customer_headers, grade_e_answers)
        assert quote["status"] == "pending_underwriting"
        assert quote["underwriting_case_id"] is not None

    def test_invalid_answers_rejected(self, client: TestClient, customer_headers):
        response = client.post("/quotes/", headers=customer_headers, json={})
        quote_id = response.json()["quote_id"]
        client.put(
            f"/quotes/{quote_id}/steps/cyber_risk_profile",
            headers=customer_headers,
            json={"data": {"annual_revenue": 1_000_000}},
        )
        response = client.put(
            f"/quotes/{quote_id}/steps/cyber_security",
            headers=customer_headers,
            json={"data": {"had_cyber_incidents": "maybe"}},
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "invalid_answers"

    def test_unknown_step(self, client: TestClient, customer_headers):
        response = client.post("/quotes/", headers=customer_headers, json={})
        quote_id = response.json()["quote_id"]
        response = client.put(f"/quotes/{quote_id}/steps/payment", headers=customer_headers, json={"data": {}})
        assert response.status_code == 422

    def test_customer_sees_only_own_quotes(self, client: TestClient, customer_headers,
                                           other_customer_headers, grade_a_answers):
        """Test quotes are private to their customer."""
        quote = start_quote(client, customer_headers, grade_a_answers)

        response = client.get(f"/quotes/{quote['quote_id']}", headers=other_customer_headers)
        assert response.status_code == 404
        assert client.get("/quotes/", headers=other_customer_headers).json() == []
        assert len(client.get("/quotes/", headers=customer_headers).json()) == 1

    def test_broker_creates_for_customer(self, client: TestClient, broker_headers):
        response = client.post("/quotes/", headers=broker_headers, json={"customer_id": "customer-9"})
        assert response.status_code == 201
        assert response.json()["customer_id"] == "customer-9"
        assert response.json()["broker_id"] == "broker-1"

    def test_broker_must_name_customer(self, client: TestClient, broker_headers):
        response = client.post("/quotes/", headers=broker_headers, json={})
        assert response.status_code == 422

    def test_underwriter_cannot_create_quote(self, client: TestClient, underwriter_headers):
        response = client.post("/quotes/", headers=underwriter_headers, json={"customer_id": "customer-1"})
        assert response.status_code == 403

    def test_cancel_quote(self, client: TestClient, customer_headers, grade_a_answers):
        quote = start_quote(client, customer_headers, grade_a_answers)
        response = client.post(f"/quotes/{quote['quote_id']}/cancel", headers=customer_headers, json={})
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        response = client.post(f"/quotes/{quote['quote_id']}/cancel", headers=customer_headers, json={})
        assert response.status_code == 409

    def test_history(self, client: TestClient, customer_headers, grade_a_answers):
        """Test the quote audit trail."""
        quote = start_quote(client, customer_headers, grade_a_answers)
        response = client.get(f"/quotes/{quote['quote_id']}/history", headers=customer_headers)
        assert response.status_code == 200
        events = [e["event_type"] for e in response.json()]
        assert events[0] == "quote.created"
        assert "quote.assessed" in events


class TestUnderwritingEndpoints:
    """Test underwriting API endpoints."""

    def test_queue_requires_underwriting_role(self, client: TestClient, customer_headers):
        response = client.get("/underwriting/queue", headers=customer_headers)
        assert response.status_code == 403

    def test_queue(self, client: TestClient, customer_headers, underwriter_headers, grade_d_answers):
        start_quote(client, customer_headers, grade_d_answers)
        response = client.get("/underwriting/queue", headers=underwriter_headers)
        assert response.status_code == 200
        queue = response.json()
        assert len(queue) == 1
        assert queue[0]["risk_grade"] == "D"
        assert queue[0]["status"] == "pending"

    def test_broker_referral_is_idempotent(self, client: TestClient, customer_headers, broker_headers,
                                           grade_a_answers):
        """Test creating a case twice returns the same case."""
        quote = start_quote(client, customer_headers, grade_a_answers)
        first = client.post("/underwriting/cases", headers=broker_headers, json={"quote_id": quote["quote_id"]})
        second = client.post("/underwriting/cases", headers=broker_headers, json={"quote_id": quote["quote_id"]})
        assert first.status_code == 200
        assert second.status_code == 200
        assert first.json()["case_id"] == second.json()["case_id"]

    def test_underwriter_cannot_approve_grade_c(self, client: TestClient, customer_headers,
                                                 underwriter_headers, grade_c_answers):
        quote = start_quote(client, customer_headers, grade_c_answers)
        response = client.post(
            f"/underwriting/cases/{quote['underwriting_case_id']}/decision",
            headers=underwriter_headers,
            json={"decision": "approve", "notes": "fine"},
        )
        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "insufficient_authority"

    def test_nobody_approves_grade_e(self, client: TestClient, customer_headers, head_headers, grade_e_answers):
        quote = start_quote(client, customer_headers, grade_e_answers)
        case_id = quote["underwriting_case_id"]
        response = client.post(
            f"/underwriting/cases/{case_id}/decision",
            headers=head_headers,
            json={"decision": "approve", "notes": "fine"},
        )
        assert response.status_code == 403

        response = client.post(
            f"/underwriting/cases/{case_id}/decision",
            headers=head_headers,
            json={"decision": "reject", "notes": "too many incidents"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "rejected"

    def test_decision_requires_notes(self, client: TestClient, customer_headers, team_lead_headers, grade_c_answers):
        quote = start_quote(client, customer_headers, grade_c_answers)
        response = client.post(
            f"/underwriting/cases/{quote['underwriting_case_id']}/decision",
            headers=team_lead_headers,
            json={"decision": "approve", "notes": ""},
        )
        assert response.status_code == 422

    def test_already_decided(self, client: TestClient, customer_headers, team_lead_headers, grade_c_answers):
        quote = start_quote(client, customer_headers, grade_c_answers)
        url = f"/underwriting/cases/{quote['underwriting_case_id']}/decision"
        assert client.post(url, headers=team_lead_headers, json={"decision": "approve", "notes": "ok"}).status_code == 200

        response = client.post(url, headers=team_lead_headers, json={"decision": "reject", "notes": "no"})
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "already_decided"

    def test_respond_without_request(self, client: TestClient, customer_headers, grade_c_answers):
        quote = start_quote(client, customer_headers, grade_c_answers)
        response = client.post(
            f"/underwriting/cases/{quote['underwriting_case_id']}/response",
            headers=customer_headers,
            json={"response": "hello"},
        )
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "no_pending_request"

    def test_other_customer_cannot_respond(self, client: TestClient, customer_headers, other_customer_headers,
                                           team_lead_headers, grade_c_answers):
        quote = start_quote(client, customer_headers, grade_c_answers)
        case_id = quote["underwriting_case_id"]
        client.post(
            f"/underwriting/cases/{case_id}/decision",
            headers=team_lead_headers,
            json={"decision": "needs_info", "notes": "send details"},
        )
        response = client.post(
            f"/underwriting/cases/{case_id}/response",
            headers=other_customer_headers,
            json={"response": "not my case"},
        )
        assert response.status_code == 404

    def test_missing_case(self, client: TestClient, underwriter_headers):
        response = client.get(f"/underwriting/cases/{uuid.uuid4()}", headers=underwriter_headers)
        assert response.status_code == 404


class TestPolicyEndpoints:
    """Test binding over HTTP."""

    def test_direct_bind(self, client: TestClient, customer_headers, grade_a_answers):
        quote = start_quote(client, customer_headers, grade_a_answers, tier="PREMIUM")
        response = client.post(
            "/policies/bind",
            headers=customer_headers,
            json={"quote_id": quote["quote_id"], "start_date": "2026-11-01"},
        )
        assert response.status_code == 201
        policy = response.json()
        assert policy["premium"] == 680000
        assert policy["premium_display"] == "CHF 6800.00"
        assert policy["end_date"] == "2027-11-01"

        again = client.post(
            "/policies/bind",
            headers=customer_headers,
            json={"quote_id": quote["quote_id"], "start_date": "2026-11-01"},
        )
        assert again.status_code == 409
        assert again.json()["detail"]["code"] == "already_bound"

    def test_bind_ineligible(self, client: TestClient, customer_headers, grade_d_answers):
        quote = start_quote(client, customer_headers, grade_d_answers)
        response = client.post(
            "/policies/bind",
            headers=customer_headers,
            json={"quote_id": quote["quote_id"], "start_date": "2026-11-01"},
        )
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "not_eligible_to_bind"

    def test_end_to_end_underwriting(self, client: TestClient, customer_headers, team_lead_headers,
                                     grade_c_answers):
        """Test needs_info, response, approval with adjusted premium, then bind."""
        quote = start_quote(client, customer_headers, grade_c_answers)
        case_url = f"/underwriting/cases/{quote['underwriting_case_id']}"

        response = client.post(
            f"{case_url}/decision",
            headers=team_lead_headers,
            json={"decision": "needs_info", "notes": "please clarify backup cadence"},
        )
        assert response.json()["status"] == "needs_info"

        response = client.post(f"{case_url}/response", headers=customer_headers, json={"response": "weekly, encrypted"})
        assert response.json()["status"] == "in_review"

        response = client.post(
            f"{case_url}/decision",
            headers=team_lead_headers,
            json={"decision": "approve", "notes": "sufficient", "adjusted_premium": 450000},
        )
        assert response.json()["status"] == "approved"
        assert client.get(f"/quotes/{quote['quote_id']}", headers=customer_headers).json()["status"] == "approved"

        response = client.post(
            "/policies/bind",
            headers=customer_headers,
            json={"quote_id": quote["quote_id"], "start_date": "2026-11-01"},
        )
        assert response.status_code == 201
        policy = response.json()
        assert policy["premium"] == 450000

        response = client.get(f"/policies/{policy['policy_id']}", headers=customer_headers)
        assert response.status_code == 200
        assert response.json()["policy_number"] == policy["policy_number"]

    def test_cancel_policy(self, client: TestClient, customer_headers, other_customer_headers, grade_a_answers):
        quote = start_quote(client, customer_headers, grade_a_answers)
        policy = client.post(
            "/policies/bind",
            headers=customer_headers,
            json={"quote_id": quote["quote_id"], "start_date": "2026-11-01"},
        ).json()

        response = client.post(f"/policies/{policy['policy_id']}/cancel", headers=other_customer_headers, json={})
        assert response.status_code == 404

        response = client.post(f"/policies/{policy['policy_id']}/cancel", headers=customer_headers, json={})
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert response.json()["is_active"] is False
