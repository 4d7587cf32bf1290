"""
Integration tests for the Investment Platform API
Tests end-to-end workflows using FastAPI TestClient
"""

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient

from investment_platform.api import create_app
from investment_platform.api.auth import PlatformSystem, get_platform, set_platform
from investment_platform.config import PlatformConfig
from investment_platform.security import create_access_token
from investment_platform.storage import InMemoryStorage
from investment_platform.users import UserRole


@pytest.fixture
def system():
    config = PlatformConfig(
        storage_backend="memory",
        jwt_secret="integration-test-secret-0123456789abcdef",
        password_min_length=6
    )
    return PlatformSystem(config=config, storage=InMemoryStorage())


@pytest.fixture
def client(system):
    """Create a test client backed by in-memory storage"""
    app = create_app(system)
    app.dependency_overrides[get_platform] = lambda: system
    yield TestClient(app)
    app.dependency_overrides.clear()
    set_platform(None)


@pytest.fixture
def admin_headers(system):
    admin = system.user_manager.register("root", "root@example.com", "rootpass",
                                         role=UserRole.ADMIN)
    token = create_access_token(admin.id, admin.role.value, system.config)
    return {"Authorization": f"Bearer {token}"}


def register(client, username, password="secret1"):
    r = client.post("/api/users", json={
        "username": username,
        "email": f"{username}@example.com",
        "password": password
    })
    assert r.status_code == 201
    data = r.json()
    return data, {"Authorization": f"Bearer {data['token']}"}


def balance_of(client, headers):
    r = client.get("/api/users/profile", headers=headers)
    assert r.status_code == 200
    return Decimal(r.json()["balance"])


class TestHealthEndpoints:

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "ok"
        assert "timestamp" in data


class TestUserFlow:

    def test_register_returns_token_without_secrets(self, client):
        data, _ = register(client, "alice")

        assert data["username"] == "alice"
        assert data["role"] == "user"
        assert data["balance"] == "0"
        assert "token" in data
        assert "password_hash" not in data
        assert "password_salt" not in data

    def test_duplicate_registration(self, client):
        register(client, "alice")
        r = client.post("/api/users", json={
            "username": "alice", "email": "alice@example.com", "password": "secret1"
        })
        assert r.status_code == 400
        assert r.json() == {"detail": "User already exists", "code": "DUPLICATE"}

    def test_login(self, client):
        register(client, "alice")

        r = client.post("/api/users/login", json={"email": "alice@example.com", "password": "secret1"})
        assert r.status_code == 200
        assert r.json()["last_login"] is not None

        r = client.post("/api/users/login", json={"email": "alice@example.com", "password": "nope123"})
        assert r.status_code == 401
        assert r.json()["code"] == "NOT_AUTHORIZED"

    def test_profile_requires_token(self, client):
        r = client.get("/api/users/profile")
        assert r.status_code == 401
        assert r.json()["detail"] == "Not authorized, no token"

        r = client.get("/api/users/profile", headers={"Authorization": "Bearer garbage"})
        assert r.status_code == 401

    def test_update_profile(self, client):
        _, headers = register(client, "alice")
        r = client.put("/api/users/profile", headers=headers, json={"full_name": "Alice L"})
        assert r.status_code == 200
        assert r.json()["full_name"] == "Alice L"

    def test_admin_only_listing(self, client, admin_headers):
        _, headers = register(client, "alice")

        r = client.get("/api/users/all", headers=headers)
        assert r.status_code == 401
        assert r.json()["detail"] == "Not authorized as an admin"

        r = client.get("/api/users/all", headers=admin_headers)
        assert r.status_code == 200
        assert len(r.json()) == 2

    def test_get_user_by_id(self, client, admin_headers):
        alice, alice_headers = register(client, "alice")
        _, bob_headers = register(client, "bob")

        assert client.get(f"/api/users/{alice['id']}", headers=alice_headers).status_code == 200
        assert client.get(f"/api/users/{alice['id']}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/users/{alice['id']}", headers=bob_headers).status_code == 401
        assert client.get("/api/users/missing", headers=admin_headers).status_code == 404

    def test_admin_balance_edit_goes_through_ledger(self, client, admin_headers):
        alice, headers = register(client, "alice")

        r = client.patch(f"/api/users/{alice['id']}", headers=admin_headers,
                         json={"balance": "100", "account_status": "verified"})
        assert r.status_code == 200
        assert r.json()["account_status"] == "verified"
        assert balance_of(client, headers) == Decimal("100")

        r = client.get(f"/api/users/{alice['id']}/ledger", headers=headers)
        assert r.status_code == 200
        ledger = r.json()
        assert Decimal(ledger["balance"]) == Decimal("100")
        assert [e["entry_type"] for e in ledger["entries"]] == ["adjustment"]

    def test_role_comes_from_stored_user(self, client, system):
        alice, _ = register(client, "alice")
        forged = create_access_token(alice["id"], "admin", system.config)

        r = client.get("/api/users/all", headers={"Authorization": f"Bearer {forged}"})
        assert r.status_code == 401


class TestWithdrawalFlow:

    def test_withdraw_then_reject(self, client, admin_headers):
        alice, headers = register(client, "alice")
        client.patch(f"/api/users/{alice['id']}", headers=admin_headers, json={"balance": 100})

        r = client.post("/api/withdrawalRequests", headers=headers, json={
            "amount": "40", "wallet_address": "bc1q-test", "method": "bitcoin"
        })
        assert r.status_code == 201
        request = r.json()
        assert request["status"] == "pending"
        assert balance_of(client, headers) == Decimal("60")

        r = client.put(f"/api/withdrawalRequests/{request['id']}/status",
                       headers=admin_headers, json={"status": "rejected"})
        assert r.status_code == 200
        assert r.json()["status"] == "rejected"
        assert r.json()["user"]["username"] == "alice"
        assert balance_of(client, headers) == Decimal("100")

        # Rejecting again does not refund twice
        client.put(f"/api/withdrawalRequests/{request['id']}/status",
                   headers=admin_headers, json={"status": "rejected"})
        assert balance_of(client, headers) == Decimal("100")

        # A rejected request stays rejected
        r = client.put(f"/api/withdrawalRequests/{request['id']}/status",
                       headers=admin_headers, json={"status": "confirmed"})
        assert r.status_code == 400
        assert balance_of(client, headers) == Decimal("100")

    def test_withdraw_more_than_balance(self, client):
        _, headers = register(client, "alice")
        r = client.post("/api/withdrawalRequests", headers=headers, json={"amount": "1"})

        assert r.status_code == 400
        assert r.json() == {"detail": "Insufficient balance", "code": "INSUFFICIENT_FUNDS"}

    def test_other_user_cannot_read_request(self, client, admin_headers):
        alice, alice_headers = register(client, "alice")
        _, bob_headers = register(client, "bob")
        client.patch(f"/api/users/{alice['id']}", headers=admin_headers, json={"balance": 10})
        request = client.post("/api/withdrawalRequests", headers=alice_headers,
                              json={"amount": "5"}).json()

        r = client.get(f"/api/withdrawalRequests/{request['id']}", headers=bob_headers)
        assert r.status_code == 401
        assert r.json()["code"] == "NOT_AUTHORIZED"

        r = client.get(f"/api/withdrawalRequests/{request['id']}", headers=alice_headers)
        assert r.status_code == 200

    def test_invalid_status_value(self, client, admin_headers):
        alice, headers = register(client, "alice")
        client.patch(f"/api/users/{alice['id']}", headers=admin_headers, json={"balance": 10})
        request = client.post("/api/withdrawalRequests", headers=headers, json={"amount": "5"}).json()

        r = client.put(f"/api/withdrawalRequests/{request['id']}/status",
                       headers=admin_headers, json={"status": "approved"})
        assert r.status_code == 422

    def test_admin_list_is_populated(self, client, admin_headers):
        alice, headers = register(client, "alice")
        client.patch(f"/api/users/{alice['id']}", headers=admin_headers, json={"balance": 10})
        client.post("/api/withdrawalRequests", headers=headers, json={"amount": "5"})

        assert len(client.get("/api/withdrawalRequests", headers=headers).json()) == 1
        everything = client.get("/api/withdrawalRequests/all", headers=admin_headers).json()
        assert everything[0]["user"] == {
            "id": alice["id"], "username": "alice", "email": "alice@example.com"
        }


class TestLoanFlow:

    def _loan_type(self, client, admin_headers):
        r = client.post("/api/loanTypes", headers=admin_headers, json={
            "name": "Personal",
            "interest_rate": "5%",
            "term": "12 months",
            "amount_range": "$100 - $1,000",
            "quota": "10",
            "max_amount": "1000",
            "description_points": [{"text": "No hidden fees", "included": True}]
        })
        assert r.status_code == 201
        return r.json()

    def test_loan_types_are_public(self, client, admin_headers):
        loan_type = self._loan_type(client, admin_headers)

        assert len(client.get("/api/loanTypes").json()) == 1
        assert client.get(f"/api/loanTypes/{loan_type['id']}").json()["name"] == "Personal"

    @pytest.mark.parametrize("rate", ["nan", "Infinity"])
    def test_non_finite_interest_rate_rejected(self, client, admin_headers, rate):
        r = client.post("/api/loanTypes", headers=admin_headers, json={
            "name": "Broken", "interest_rate": rate, "term": "12 months",
            "amount_range": "$100 - $1,000", "quota": "10"
        })

        assert r.status_code == 400
        assert r.json()["code"] == "VALIDATION_ERROR"
        assert client.get("/api/loanTypes").json() == []

    def test_approve_twice_credits_once(self, client, admin_headers):
        loan_type = self._loan_type(client, admin_headers)
        alice, headers = register(client, "alice")

        r = client.post("/api/loanOrders", headers=headers, json={
            "loan_type_id": loan_type["id"], "amount": "500", "duration": 12
        })
        assert r.status_code == 201
        order = r.json()
        assert order["loan_type"]["name"] == "Personal"
        assert Decimal(order["monthly_payment"]) > Decimal("0")

        for _ in range(2):
            r = client.put(f"/api/loanOrders/{order['id']}/status",
                           headers=admin_headers, json={"status": "approved"})
            assert r.status_code == 200

        assert balance_of(client, headers) == Decimal("500")
        ledger = client.get(f"/api/users/{alice['id']}/ledger", headers=headers).json()
        assert len(ledger["entries"]) == 1

    def test_amount_above_max(self, client, admin_headers):
        loan_type = self._loan_type(client, admin_headers)
        _, headers = register(client, "alice")

        r = client.post("/api/loanOrders", headers=headers, json={
            "loan_type_id": loan_type["id"], "amount": "5000", "duration": 12
        })
        assert r.status_code == 400
        assert r.json()["detail"] == "Amount exceeds maximum for this loan type"

    def test_unknown_loan_type(self, client):
        _, headers = register(client, "alice")
        r = client.post("/api/loanOrders", headers=headers, json={
            "loan_type_id": "missing", "amount": "50", "duration": 12
        })
        assert r.status_code == 404
        assert r.json()["code"] == "NOT_FOUND"


class TestTransactionsAndBonuses:

    def test_completed_deposit_applies_once(self, client, admin_headers):
        _, headers = register(client, "alice")
        txn = client.post("/api/transactions", headers=headers, json={
            "amount": "75", "transaction_type": "deposit"
        }).json()
        assert txn["reference"].startswith("TXN-")

        for _ in range(2):
            client.put(f"/api/transactions/{txn['id']}/status",
                       headers=admin_headers, json={"status": "completed"})

        assert balance_of(client, headers) == Decimal("75")

    def test_bonus_credit(self, client, admin_headers):
        alice, headers = register(client, "alice")

        r = client.post("/api/bonuses", headers=headers, json={"user_id": alice["id"], "amount": "10"})
        assert r.status_code == 401

        bonus = client.post("/api/bonuses", headers=admin_headers, json={
            "user_id": alice["id"], "amount": "10", "bonus_type": "welcome"
        }).json()
        client.put(f"/api/bonuses/{bonus['id']}/status", headers=admin_headers,
                   json={"status": "credited"})

        assert balance_of(client, headers) == Decimal("10")
        assert client.get("/api/bonuses", headers=headers).json()[0]["status"] == "credited"

    def test_bonus_for_unknown_user(self, client, admin_headers):
        r = client.post("/api/bonuses", headers=admin_headers, json={"user_id": "missing", "amount": "10"})
        assert r.status_code == 404


class TestAssetsAndDeposits:

    def test_buy_order_requires_funds(self, client, admin_headers):
        asset = client.post("/api/assets", headers=admin_headers, json={
            "name": "Gold", "symbol": "XAU", "price_range": "$50+",
            "profit_potential": "5", "price": "20"
        }).json()
        _, headers = register(client, "alice")

        r = client.post("/api/assetOrders", headers=headers, json={
            "asset_id": asset["id"], "order_type": "buy", "amount": "1"
        })
        assert r.status_code == 400
        assert r.json()["code"] == "INSUFFICIENT_FUNDS"

    def test_asset_admin_gating(self, client, admin_headers):
        _, headers = register(client, "alice")
        payload = {"name": "Gold", "symbol": "XAU", "price_range": "$50+", "profit_potential": "5"}

        assert client.post("/api/assets", headers=headers, json=payload).status_code == 401
        asset = client.post("/api/assets", headers=admin_headers, json=payload).json()
        assert client.get(f"/api/assets/{asset['id']}").status_code == 200
        assert client.delete(f"/api/assets/{asset['id']}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/assets/{asset['id']}").status_code == 404

    def test_deposit_confirmation_leaves_balance(self, client, admin_headers):
        _, headers = register(client, "alice")
        request = client.post("/api/depositRequests", headers=headers, json={
            "amount": "250", "crypto": "BTC", "blockchain": "BTC",
            "wallet_address": "bc1q-admin", "payment_method": "crypto"
        }).json()
        assert request["transaction_ref"] == "N/A"

        r = client.put(f"/api/depositRequests/{request['id']}/status", headers=admin_headers,
                       json={"status": "confirmed", "transaction_ref": "0xabc"})
        assert r.json()["transaction_ref"] == "0xabc"
        assert balance_of(client, headers) == Decimal("0")


class TestActivitiesAndSettings:

    def test_activities(self, client, admin_headers):
        _, headers = register(client, "alice")
        r = client.post("/api/activities", headers=headers, json={
            "activity_type": "login", "details": {"ip_address": "10.0.0.1", "country": "NL"}
        })
        assert r.status_code == 201

        mine = client.get("/api/activities/myactivities", headers=headers).json()
        assert mine[0]["details"]["country"] == "NL"
        assert client.get("/api/activities/all", headers=headers).status_code == 401
        assert len(client.get("/api/activities", headers=admin_headers).json()) == 1

    def test_admin_settings(self, client, admin_headers):
        _, headers = register(client, "alice")

        view = client.get("/api/adminSettings/view").json()
        assert view["bitcoin"]["blockchain"] == "BTC"

        r = client.put("/api/adminSettings/edit", headers=headers,
                       json={"bitcoin": {"wallet_address": "bc1q-new"}})
        assert r.status_code == 401

        r = client.put("/api/adminSettings/edit", headers=admin_headers,
                       json={"bitcoin": {"wallet_address": "bc1q-new"}})
        assert r.status_code == 200
        assert client.get("/api/adminSettings/view").json()["bitcoin"] == {
            "blockchain": "BTC", "wallet_address": "bc1q-new"
        }
