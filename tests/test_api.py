"""Tests for the HTTP API, driven in-process through httpx."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.main import create_app
from aidledger.models import DonationStatus


@pytest_asyncio.fixture
async def client(components):
    app = create_app(components)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def _as(account) -> dict:
    return {"user-id": str(account.id)}


async def _donate(client, account_id, amount=5000, method="mobile_money", details=None):
    return await client.post("/api/donations/create", json={
        "userId": account_id,
        "amount": amount,
        "purpose": "health",
        "paymentMethod": method,
        "paymentDetails": details if details is not None else {"phoneNumber": "0781234567"},
    })


class TestAuthRoutes:

    @pytest.mark.asyncio
    async def test_signup_and_login(self, client):
        response = await client.post("/api/auth/signup", json={
            "name": "Grace Ingabire",
            "email": "grace@example.org",
            "phone": "0788000111",
            "password": "secret1",
        })
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["user"]["isAdmin"] is False
        assert "password_hash" not in body["user"]

        response = await client.post("/api/auth/login", json={
            "email": "grace@example.org",
            "password": "secret1",
        })
        assert response.status_code == 200
        assert response.json()["message"] == "Login successful"

    @pytest.mark.asyncio
    async def test_signup_duplicate(self, client, donor):
        response = await client.post("/api/auth/signup", json={
            "name": "Alice", "email": "alice@example.org", "password": "secret1",
        })
        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "An account with this email already exists",
        }

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client, donor):
        response = await client.post("/api/auth/login", json={
            "email": "alice@example.org", "password": "nope-nope",
        })
        assert response.status_code == 401
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_admin_login_for_donor_is_forbidden(self, client, donor):
        response = await client.post("/api/auth/login", json={
            "email": "alice@example.org", "password": "secret1", "isAdmin": True,
        })
        assert response.status_code == 403
        assert response.json()["message"] == "Admin access required"


class TestDonationRoutes:

    @pytest.mark.asyncio
    async def test_create_donation(self, client, donor):
        response = await _donate(client, donor.id)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["donation"]["amount"] == 5000
        assert body["donation"]["status"] == "completed"
        assert body["donation"]["transactionId"]

    @pytest.mark.asyncio
    async def test_declined_donation_is_reported_not_raised(self, client, donor, momo):
        momo.script(DonationStatus.FAILED)
        response = await _donate(client, donor.id)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["donation"]["status"] == "failed"

    @pytest.mark.asyncio
    async def test_below_minimum(self, client, donor):
        response = await _donate(client, donor.id, amount=999, method="bank_transfer", details={})
        assert response.status_code == 400
        assert response.json()["message"] == "Minimum donation amount is 1,000 RWF"

    @pytest.mark.asyncio
    async def test_missing_fields(self, client):
        response = await client.post("/api/donations/create", json={"amount": 5000})
        assert response.status_code == 400
        assert response.json()["message"] == "All fields are required"

    @pytest.mark.asyncio
    async def test_malformed_amount(self, client, donor):
        response = await _donate(client, donor.id, amount="lots")
        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_user_history(self, client, donor):
        await _donate(client, donor.id, amount=1000)
        await _donate(client, donor.id, amount=2000, method="bank_transfer", details={})

        response = await client.get(f"/api/donations/user/{donor.id}")
        data = response.json()["data"]
        assert [d["amount"] for d in data] == [2000, 1000]
        assert data[0]["status"] == "pending"
        assert data[0]["donorName"] == "Alice Uwase"

    @pytest.mark.asyncio
    async def test_all_donations_requires_admin(self, client, donor, admin):
        await _donate(client, donor.id)

        assert (await client.get("/api/donations/all")).status_code == 401
        assert (await client.get("/api/donations/all", headers=_as(donor))).status_code == 403

        response = await client.get("/api/donations/all", headers=_as(admin))
        assert response.status_code == 200
        assert response.json()["data"][0]["donorName"] == "Alice Uwase"

    @pytest.mark.asyncio
    async def test_confirm_bank_transfer(self, client, donor, admin):
        created = await _donate(client, donor.id, method="bank_transfer", details={})
        donation_id = created.json()["donation"]["id"]

        response = await client.post(
            f"/api/donations/{donation_id}/status",
            json={"status": "completed"},
            headers=_as(admin),
        )
        assert response.status_code == 200
        assert response.json()["donation"]["status"] == "completed"

        summary = (await client.get("/api/funds/summary")).json()["data"]
        assert summary["available"] == 5000


class TestFundRoutes:

    @pytest.mark.asyncio
    async def test_allocation_flow(self, client, donor, admin):
        await _donate(client, donor.id, amount=5000)
        created = await client.post(
            "/api/beneficiaries/create",
            json={"name": "Jean", "age": 14, "gender": "male", "supportType": "education"},
            headers=_as(admin),
        )
        assert created.status_code == 200
        beneficiary_id = created.json()["beneficiary"]["id"]
        assert created.json()["beneficiary"]["status"] == "active"

        allocation = {"beneficiaryId": beneficiary_id, "amount": 3000, "supportType": "education"}
        response = await client.post("/api/funds/allocate", json=allocation, headers=_as(admin))
        assert response.status_code == 200
        assert response.json()["allocation"]["amount"] == 3000

        response = await client.post("/api/funds/allocate", json=allocation, headers=_as(admin))
        assert response.status_code == 400
        assert response.json()["message"] == "Insufficient funds. Available: 2,000 RWF"
        assert response.json()["available"] == 2000

        first = (await client.get("/api/funds/summary")).json()
        second = (await client.get("/api/funds/summary")).json()
        assert first == second
        assert first["data"] == {"totalDonated": 5000, "totalAllocated": 3000, "available": 2000}

        listed = (await client.get("/api/beneficiaries/all")).json()["data"]
        assert listed[0]["supportReceived"] == 3000

    @pytest.mark.asyncio
    async def test_beneficiary_with_long_notes(self, client, admin):
        response = await client.post(
            "/api/beneficiaries/create",
            json={
                "name": "Jean",
                "age": 14,
                "gender": "male",
                "supportType": "education",
                "notes": "x" * 1500,
            },
            headers=_as(admin),
        )
        assert response.status_code == 200
        assert len(response.json()["beneficiary"]["notes"]) == 1500

    @pytest.mark.asyncio
    async def test_allocate_requires_admin(self, client, donor, beneficiary):
        response = await client.post(
            "/api/funds/allocate",
            json={"beneficiaryId": beneficiary.id, "amount": 100, "supportType": "education"},
            headers=_as(donor),
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_allocate_unknown_beneficiary(self, client, donor, admin):
        await _donate(client, donor.id)
        response = await client.post(
            "/api/funds/allocate",
            json={"beneficiaryId": 999, "amount": 100, "supportType": "health"},
            headers=_as(admin),
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_non_numeric_identity(self, client):
        response = await client.get("/api/donations/all", headers={"user-id": "abc"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid user"


class TestImpactAndMisc:

    @pytest.mark.asyncio
    async def test_impact(self, client, donor, admin, beneficiary):
        created = await _donate(client, donor.id, amount=2000)
        donation_id = created.json()["donation"]["id"]
        await client.post(
            "/api/funds/allocate",
            json={
                "beneficiaryId": beneficiary.id,
                "amount": 2000,
                "supportType": "education",
                "donationId": donation_id,
            },
            headers=_as(admin),
        )

        response = await client.get(f"/api/impact/user/{donor.id}")
        assert response.json() == {
            "success": True,
            "data": {"totalDonated": 2000, "donationCount": 1, "beneficiariesHelped": 1},
        }

    @pytest.mark.asyncio
    async def test_impact_unknown_user(self, client):
        response = await client.get("/api/impact/user/999")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_audit_recent(self, client, admin, donor):
        response = await client.get("/api/audit/recent", params={"limit": 5}, headers=_as(admin))
        assert response.status_code == 200
        events = response.json()["data"]
        assert 0 < len(events) <= 5
        assert events[0]["event_type"] == "account_created"

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["success"] is True

    @pytest.mark.asyncio
    async def test_unknown_route(self, client):
        response = await client.get("/api/nowhere")
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Route not found"}
