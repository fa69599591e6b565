"""
API tests through FastAPI's TestClient.

get_db is overridden to hand every request the test's own session.
"""
import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def client(db):
    from app.database import get_db
    from app.main import app

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    from app.auth import create_access_token

    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id, role=user.role.value)}"}
    return _headers


@pytest.fixture
def internal_headers():
    from app.routers.scheduler import INTERNAL_API_KEY
    return {"X-Internal-Key": INTERNAL_API_KEY}


COMPLAINT = {
    "category": "Road Damage",
    "latitude": 28.6315,
    "longitude": 77.2167,
    "severity": "HIGH",
    "description": "Deep pothole at the roundabout",
}


def _file(client, headers, **overrides):
    return client.post("/complaints", json={**COMPLAINT, **overrides}, headers=headers)


# =============================================================================
# TEST: SERVICE
# =============================================================================

class TestService:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": "1.0.0"}

    def test_root(self, client):
        assert client.get("/").json()["name"] == "CiviLens Accountability Engine"


# =============================================================================
# TEST: AUTH
# =============================================================================

class TestAuth:

    def test_missing_token(self, client):
        assert client.get("/gamification/wallet").status_code in (401, 403)

    def test_bad_token(self, client):
        response = client.get("/gamification/wallet", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401

    def test_token_for_unknown_user(self, client):
        from app.auth import create_access_token

        headers = {"Authorization": f"Bearer {create_access_token('ghost')}"}

        assert client.get("/gamification/wallet", headers=headers).status_code == 401

    def test_expired_token(self, client, make_user):
        from app.auth import create_access_token

        user = make_user()
        headers = {"Authorization": f"Bearer {create_access_token(user.id, expires_hours=-1)}"}

        assert client.get("/gamification/wallet", headers=headers).status_code == 401

    def test_citizen_cannot_use_authority_routes(self, client, make_user, auth_headers):
        citizen = make_user()

        assert client.get("/complaints", headers=auth_headers(citizen)).status_code == 403
        assert client.get("/dashboard/summary", headers=auth_headers(citizen)).status_code == 403


# =============================================================================
# TEST: COMPLAINTS
# =============================================================================

class TestComplaintRoutes:

    def test_submit(self, client, catalog, make_user, auth_headers):
        citizen = make_user()

        response = _file(client, auth_headers(citizen))

        assert response.status_code == 201
        body = response.json()
        assert body["hours_allowed"] == 12
        assert body["priority_breakdown"]["zone"]["label"] == "Market Zone - Connaught Place"
        assert sum(c["amount"] for c in body["coins_awarded"]) == 30

    def test_submit_validation_error(self, client, make_user, auth_headers):
        citizen = make_user()

        response = _file(client, auth_headers(citizen), latitude=123.0)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"

    def test_citizen_sees_only_own_complaint(self, client, catalog, make_user, auth_headers):
        owner, stranger = make_user(), make_user()
        complaint_id = _file(client, auth_headers(owner)).json()["complaint"]["id"]

        assert client.get(f"/complaints/{complaint_id}", headers=auth_headers(owner)).status_code == 200
        assert client.get(f"/complaints/{complaint_id}", headers=auth_headers(stranger)).status_code == 404

    def test_lifecycle(self, client, catalog, make_user, auth_headers):
        from app.models.db_models import UserRole

        citizen = make_user()
        officer = make_user(role=UserRole.AUTHORITY)
        complaint_id = _file(client, auth_headers(citizen)).json()["complaint"]["id"]

        assigned = client.patch(
            f"/complaints/{complaint_id}/assign",
            json={"assignee_id": officer.id},
            headers=auth_headers(officer),
        )
        resolved = client.patch(
            f"/complaints/{complaint_id}/status",
            json={"status": "RESOLVED", "note": "Patched"},
            headers=auth_headers(officer),
        )
        detail = client.get(f"/complaints/{complaint_id}", headers=auth_headers(citizen)).json()

        assert assigned.json()["status"] == "ASSIGNED"
        assert resolved.status_code == 200
        assert {c["reason"] for c in resolved.json()["coins_awarded"]} == {"COMPLAINT_RESOLVED", "SLA_RESOLVED"}
        assert [h["status"] for h in detail["status_history"]] == ["SUBMITTED", "ASSIGNED", "RESOLVED"]
        assert detail["status_history"][-1]["note"] == "Patched"

    def test_invalid_transition(self, client, catalog, make_user, auth_headers):
        from app.models.db_models import UserRole

        citizen = make_user()
        officer = make_user(role=UserRole.AUTHORITY)
        complaint_id = _file(client, auth_headers(citizen)).json()["complaint"]["id"]

        response = client.patch(
            f"/complaints/{complaint_id}/status",
            json={"status": "BREACHED"},
            headers=auth_headers(officer),
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_STATUS_TRANSITION"

    def test_unknown_complaint(self, client, make_user, auth_headers):
        from app.models.db_models import UserRole

        officer = make_user(role=UserRole.AUTHORITY)

        response = client.patch("/complaints/missing/status", json={"status": "CLOSED"}, headers=auth_headers(officer))

        assert response.status_code == 404

    def test_authority_queue(self, client, catalog, make_user, auth_headers):
        from app.models.db_models import UserRole

        citizen = make_user()
        officer = make_user(role=UserRole.AUTHORITY)
        _file(client, auth_headers(citizen))
        _file(client, auth_headers(citizen), severity="LOW")

        body = client.get("/complaints?severity=LOW", headers=auth_headers(officer)).json()

        assert body["total"] == 1
        assert body["complaints"][0]["severity"] == "LOW"

    def test_mine(self, client, catalog, make_user, auth_headers):
        citizen = make_user()
        _file(client, auth_headers(citizen))

        mine = client.get("/complaints/mine", headers=auth_headers(citizen)).json()

        assert len(mine) == 1
        assert "sla_status" in mine[0]

    def test_notifications(self, client, catalog, make_user, auth_headers):
        citizen, other = make_user(), make_user()
        complaint_id = _file(client, auth_headers(citizen)).json()["complaint"]["id"]

        feed = client.get("/complaints/notifications", headers=auth_headers(citizen))
        empty = client.get("/complaints/notifications", headers=auth_headers(other))

        assert feed.status_code == 200
        assert [n["title"] for n in feed.json()] == ["Issue Registered"]
        assert feed.json()[0]["complaint_id"] == complaint_id
        assert feed.json()[0]["read"] is False
        assert empty.json() == []
        assert client.get("/complaints/notifications?limit=0", headers=auth_headers(citizen)).status_code == 422


# =============================================================================
# TEST: GAMIFICATION
# =============================================================================

class TestGamificationRoutes:

    def test_wallet_after_submission(self, client, catalog, make_user, auth_headers):
        citizen = make_user()
        _file(client, auth_headers(citizen))

        wallet = client.get("/gamification/wallet", headers=auth_headers(citizen)).json()

        assert wallet["balance"] == 30
        assert len(wallet["transactions"]) == 2

    def test_redeem_insufficient_balance(self, client, catalog, make_user, auth_headers):
        citizen = make_user()
        rewards = client.get("/gamification/rewards", headers=auth_headers(citizen)).json()["rewards"]

        response = client.post(
            "/gamification/redeem",
            json={"reward_id": rewards[0]["id"]},
            headers=auth_headers(citizen),
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INSUFFICIENT_BALANCE"

    def test_redeem(self, client, db, catalog, make_user, auth_headers):
        from app.services.rewards import Ledger

        citizen = make_user()
        Ledger(db).award_coins(citizen.id, 120, "SLA_BREACH_CITIZEN")
        cheapest = client.get("/gamification/rewards", headers=auth_headers(citizen)).json()["rewards"][0]

        response = client.post(
            "/gamification/redeem",
            json={"reward_id": cheapest["id"]},
            headers=auth_headers(citizen),
        )
        redemptions = client.get("/gamification/my-redemptions", headers=auth_headers(citizen)).json()

        assert cheapest["name"] == "Zomato Free Delivery"
        assert response.status_code == 200
        assert response.json()["balance"] == 20
        assert response.json()["code"].startswith("CL-ZOM-")
        assert [r["code"] for r in redemptions] == [response.json()["code"]]

    def test_redeem_unknown_reward(self, client, make_user, auth_headers):
        citizen = make_user()

        response = client.post("/gamification/redeem", json={"reward_id": "missing"}, headers=auth_headers(citizen))

        assert response.status_code == 404

    def test_unknown_reward_category(self, client, make_user, auth_headers):
        citizen = make_user()

        assert client.get("/gamification/rewards?category=luxury", headers=auth_headers(citizen)).status_code == 400

    def test_leaderboard_limit_clamped(self, client, make_user, auth_headers):
        citizen = make_user()

        body = client.get("/gamification/leaderboard?limit=500", headers=auth_headers(citizen)).json()

        assert body["limit"] == 50
        assert body["my_rank"] is None

    def test_leaderboard_bad_scope(self, client, make_user, auth_headers):
        citizen = make_user()

        assert client.get("/gamification/leaderboard?scope=planet", headers=auth_headers(citizen)).status_code == 422

    def test_leaderboard_city_scope_needs_a_city(self, client, make_user, auth_headers):
        unplaced = make_user(city=None, state=None)

        response = client.get("/gamification/leaderboard?scope=city", headers=auth_headers(unplaced))
        explicit = client.get("/gamification/leaderboard?scope=city&city=Pune", headers=auth_headers(unplaced))

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_LEADERBOARD_SCOPE"
        assert explicit.status_code == 200
        assert explicit.json()["scope"] == "city"

    def test_profile_admin_only(self, client, make_user, auth_headers):
        from app.models.db_models import UserRole

        citizen = make_user()
        admin = make_user(role=UserRole.ADMIN)

        assert client.get(f"/gamification/profile/{citizen.id}", headers=auth_headers(citizen)).status_code == 403
        assert client.get(f"/gamification/profile/{citizen.id}", headers=auth_headers(admin)).status_code == 200
        assert client.get("/gamification/profile/missing", headers=auth_headers(admin)).status_code == 404

    def test_badges(self, client, catalog, make_user, auth_headers):
        citizen = make_user()
        _file(client, auth_headers(citizen))

        badges = client.get("/gamification/badges", headers=auth_headers(citizen)).json()

        assert [b["slug"] for b in badges["earned"]] == ["first-reporter"]


# =============================================================================
# TEST: INTERNAL & DASHBOARD
# =============================================================================

class TestInternalRoutes:

    def test_sweep_requires_key(self, client):
        assert client.post("/internal/sla-sweep", headers={"X-Internal-Key": "wrong"}).status_code == 403

    def test_sweep(self, client, internal_headers):
        response = client.post("/internal/sla-sweep", headers=internal_headers)

        assert response.status_code == 200
        assert response.json()["breaches_flagged"] == 0

    def test_deadlines(self, client, catalog, make_user, auth_headers, internal_headers):
        citizen = make_user()
        _file(client, auth_headers(citizen))

        body = client.get("/internal/deadlines?hours_ahead=24", headers=internal_headers).json()

        assert body["count"] == 1
        assert body["hours_ahead"] == 24


class TestDashboardRoutes:

    def test_summary_and_sla_stats(self, client, catalog, make_user, auth_headers):
        from app.models.db_models import UserRole

        citizen = make_user()
        officer = make_user(role=UserRole.AUTHORITY)
        _file(client, auth_headers(citizen))

        summary = client.get("/dashboard/summary", headers=auth_headers(officer)).json()
        stats = client.get("/dashboard/sla-stats", headers=auth_headers(officer)).json()

        assert summary["totalOpen"] == 1
        assert summary["totalComplaints"] == 1
        roads = next(d for d in stats if d["departmentName"] == "Roads")
        assert roads["totalComplaints"] == 1
        assert roads["slaComplianceRate"] == 100


class TestClassifyRoute:

    def test_classify(self, client, make_user, auth_headers):
        citizen = make_user()

        body = client.post("/classify", json={"text": "garbage dump overflowing"}, headers=auth_headers(citizen)).json()

        assert body["top"]["category"] == "Garbage"
