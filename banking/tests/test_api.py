"""
HTTP Tests for the Banking API

Tests cover:
1. Account endpoints
2. Transfer endpoints and lazy expiration reporting
3. Serverless entry point
"""

import pytest
from fastapi.testclient import TestClient
from mangum import Mangum

from api import index
from banking.api import app, get_service
from banking.config import BankingSettings
from banking.models import DAY
from banking.service import BankingService


@pytest.fixture
def client():
    service = BankingService(settings=BankingSettings())
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def open_accounts(client, *account_ids):
    for i, account_id in enumerate(account_ids):
        response = client.post("/accounts", json={"timestamp": i, "account_id": account_id})
        assert response.status_code == 201


def open_transfer(client, sender, recipient, amount, timestamp):
    response = client.post("/transfers", json={
        "timestamp": timestamp, "from_account_id": sender, "to_account_id": recipient, "amount": amount,
    })
    assert response.status_code == 201
    return response.json()["transfer_id"]


class TestAccountEndpoints:
    """Tests for account creation, balances and ranking over HTTP."""

    def test_health(self, client):
        """Test the health check."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_create_duplicate_account(self, client):
        """Test that a duplicate account id returns 409."""
        open_accounts(client, "alice")
        response = client.post("/accounts", json={"timestamp": 5, "account_id": "alice"})
        assert response.status_code == 409

    def test_deposit_and_pay(self, client):
        """Test that deposit and pay return the new balance."""
        open_accounts(client, "alice")

        response = client.post("/accounts/alice/deposit", json={"timestamp": 2, "amount": 200})
        assert response.json() == {"account_id": "alice", "balance": 200}

        response = client.post("/accounts/alice/pay", json={"timestamp": 3, "amount": 200})
        assert response.json()["balance"] == 0

    def test_rejections(self, client):
        """Test that unknown accounts give 404 and rejected amounts give 400."""
        open_accounts(client, "alice")

        assert client.post("/accounts/ghost/deposit", json={"timestamp": 1, "amount": 5}).status_code == 404
        assert client.post("/accounts/alice/deposit", json={"timestamp": 1, "amount": -5}).status_code == 400
        assert client.post("/accounts/alice/pay", json={"timestamp": 2, "amount": 1}).status_code == 400

    def test_top_accounts(self, client):
        """Test that the ranking endpoint honours the requested count."""
        open_accounts(client, "a", "b")
        client.post("/accounts/a/deposit", json={"timestamp": 3, "amount": 10})
        client.post("/accounts/b/deposit", json={"timestamp": 4, "amount": 30})

        response = client.get("/top-accounts", params={"timestamp": 5, "n": 1})
        assert response.json() == ["b(30)"]

    def test_history(self, client):
        """Test transaction history retrieval."""
        open_accounts(client, "a")
        client.post("/accounts/a/deposit", json={"timestamp": 3, "amount": 10})

        response = client.get("/accounts/a/history")
        body = response.json()
        assert body["total_count"] == 1
        assert body["transactions"][0]["action"] == "deposit"
        assert client.get("/accounts/ghost/history").status_code == 404


class TestTransferEndpoints:
    """Tests for the transfer lifecycle over HTTP."""

    def test_transfer_accept(self, client):
        """Test that a transfer can be accepted once."""
        open_accounts(client, "alice", "bob")
        client.post("/accounts/alice/deposit", json={"timestamp": 3, "amount": 200})

        transfer_id = open_transfer(client, "alice", "bob", 150, timestamp=4)
        assert transfer_id == "transfer0"

        response = client.post(f"/accounts/bob/transfers/{transfer_id}/accept", json={"timestamp": 5})
        assert response.status_code == 200
        assert response.json()["status"] == "accepted"

        response = client.post(f"/accounts/bob/transfers/{transfer_id}/accept", json={"timestamp": 6})
        assert response.status_code == 400

    def test_transfer_insufficient_funds(self, client):
        """Test that an unfunded transfer returns 400."""
        open_accounts(client, "alice", "bob")
        response = client.post("/transfers", json={
            "timestamp": 4, "from_account_id": "alice", "to_account_id": "bob", "amount": 1,
        })
        assert response.status_code == 400

    def test_transfer_unknown_recipient(self, client):
        """Test that a transfer to an unknown account returns 404."""
        open_accounts(client, "alice")
        response = client.post("/transfers", json={
            "timestamp": 4, "from_account_id": "alice", "to_account_id": "ghost", "amount": 0,
        })
        assert response.status_code == 404

    def test_expired_accept_reports_refund(self, client):
        """Test that the accept which expires a transfer reports the refund."""
        open_accounts(client, "s", "r")
        client.post("/accounts/s/deposit", json={"timestamp": 3, "amount": 100})
        transfer_id = open_transfer(client, "s", "r", 100, timestamp=10)

        response = client.post(f"/accounts/r/transfers/{transfer_id}/accept", json={"timestamp": 11 + DAY})
        assert response.status_code == 400
        assert "refunded" in response.json()["detail"]
        assert client.get("/accounts/s").json()["balance"] == 100

        response = client.get(f"/accounts/r/transfers/{transfer_id}")
        assert response.json()["status"] == "expired"

    def test_repeat_accept_after_expiry_reports_state(self, client):
        """Test that a later accept at the same timestamp does not claim a second refund."""
        open_accounts(client, "s", "r")
        client.post("/accounts/s/deposit", json={"timestamp": 3, "amount": 100})
        transfer_id = open_transfer(client, "s", "r", 100, timestamp=10)
        url = f"/accounts/r/transfers/{transfer_id}/accept"

        client.post(url, json={"timestamp": 11 + DAY})
        response = client.post(url, json={"timestamp": 11 + DAY})

        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot accept transfer in expired state"
        assert client.get("/accounts/s").json()["balance"] == 100

    def test_revoke_and_list(self, client):
        """Test that only the sender can revoke and listings filter by status."""
        open_accounts(client, "s", "r")
        client.post("/accounts/s/deposit", json={"timestamp": 3, "amount": 100})
        transfer_id = open_transfer(client, "s", "r", 60, timestamp=4)

        assert client.post(f"/accounts/r/transfers/{transfer_id}/revoke", json={"timestamp": 5}).status_code == 400
        response = client.post(f"/accounts/s/transfers/{transfer_id}/revoke", json={"timestamp": 5})
        assert response.json()["status"] == "revoked"

        response = client.get("/accounts/r/transfers", params={"status": "revoked"})
        assert [t["transfer_id"] for t in response.json()] == [transfer_id]
        assert client.get("/accounts/r/transfers", params={"status": "pending"}).json() == []

    def test_unknown_transfer(self, client):
        """Test that unknown transfer ids return 404."""
        open_accounts(client, "r")
        assert client.get("/accounts/r/transfers/transfer3").status_code == 404
        assert client.post("/accounts/r/transfers/transfer3/accept", json={"timestamp": 1}).status_code == 404


class TestServerlessEntryPoint:
    """Tests for the Mangum-wrapped deployment app."""

    @pytest.fixture
    def index_client(self):
        service = BankingService(settings=BankingSettings())
        index.app.dependency_overrides[get_service] = lambda: service
        yield TestClient(index.app)
        index.app.dependency_overrides.clear()

    def test_handler_wraps_app(self):
        """Test that the handler is a Mangum adapter mounted under /api."""
        assert isinstance(index.handler, Mangum)
        assert index.app.root_path == "/api"

    def test_routes_mounted(self, index_client):
        """Test that the shared router serves requests through the entry point."""
        assert index_client.get("/health").json()["status"] == "healthy"

        response = index_client.post("/accounts", json={"timestamp": 1, "account_id": "alice"})
        assert response.status_code == 201
        assert index_client.get("/top-accounts", params={"timestamp": 2}).json() == ["alice(0)"]
