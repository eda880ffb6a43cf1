"""HTTP surface: envelopes, authentication and error-kind to status mapping."""

from sqlalchemy.exc import OperationalError

from account_service.auth import create_token
from account_service.stores.sql import SqlAccountStore


def create(client, name, balance=0):
    response = client.post("/accounts", json={"name": name, "balance": balance})
    assert response.status_code == 200
    return response.json()["data"]["account_id"]


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_account_crud(client):
    account_id = create(client, "Alice", 10)

    assert client.get(f"/accounts/{account_id}").json()["data"] == {
        "account_id": account_id,
        "name": "Alice",
        "balance": 10,
    }

    response = client.put(f"/accounts/{account_id}", json={"name": "Alicia", "balance": 999})
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Alicia"
    assert response.json()["data"]["balance"] == 10

    assert len(client.get("/accounts").json()["data"]) == 1

    response = client.delete(f"/accounts/{account_id}")
    assert response.json() == {"message": "Delete success", "data": {"account_id": account_id}}
    assert client.get(f"/accounts/{account_id}").status_code == 404


def test_my_account(client, auth_header):
    account_id = create(client, "Alice")
    response = client.get("/accounts/my", headers=auth_header(account_id))
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Alice"


def test_money_flow(client, auth_header):
    alice = create(client, "Alice", 100)
    bob = create(client, "Bob", 50)

    response = client.post("/accounts/topup", json={"account_id": alice, "amount": 50})
    assert response.json() == {"message": "Top up successful", "balance": 150}

    response = client.post("/accounts/transfer", json={"to_account_id": bob, "amount": 75},
                           headers=auth_header(alice))
    assert response.status_code == 200
    assert response.json()["message"] == "Transfer successful"

    assert client.get("/accounts/balance", headers=auth_header(alice)).json() == {"balance": 75}
    assert client.get("/accounts/balance", headers=auth_header(bob)).json() == {"balance": 125}

    history = client.get("/accounts/mutation", headers=auth_header(alice)).json()["data"]
    assert len(history) == 1
    assert history[0]["amount"] == 75
    assert history[0]["to_account_id"] == bob

    response = client.post("/accounts/transfer", json={"to_account_id": alice, "amount": 1000},
                           headers=auth_header(bob))
    assert response.status_code == 400
    assert response.json()["kind"] == "insufficient_funds"


def test_statistics(client, auth_header):
    alice = create(client, "Alice", 100)
    create(client, "Bob", 300)

    stats = client.get("/accounts/statistics", headers=auth_header(alice)).json()["stats"]

    assert stats["creator"] == "Alice"
    assert stats["total_user"] == 2
    assert stats["total_balance"] == 400
    assert stats["average_balance"] == 200
    assert stats["top_user_balance"]["name"] == "Bob"


def test_statistics_without_accounts(client, auth_header):
    response = client.get("/accounts/statistics", headers=auth_header(1))
    assert response.status_code == 200
    assert response.json() == {"kind": "no_accounts", "message": "No users found"}


def test_error_kinds(client, auth_header):
    alice = create(client, "Alice", 10)

    response = client.post("/accounts/topup", json={"account_id": alice, "amount": 0})
    assert (response.status_code, response.json()["kind"]) == (400, "invalid_amount")

    response = client.post("/accounts/topup", json={"account_id": 999, "amount": 5})
    assert (response.status_code, response.json()["kind"]) == (404, "not_found")

    response = client.post("/accounts/transfer", json={"to_account_id": alice, "amount": 5},
                           headers=auth_header(alice))
    assert (response.status_code, response.json()["kind"]) == (400, "same_account")

    response = client.post("/accounts", json={"name": "   "})
    assert (response.status_code, response.json()["kind"]) == (400, "validation_failure")

    response = client.post("/accounts", json={"balance": 5})
    assert (response.status_code, response.json()["kind"]) == (400, "validation_failure")


def test_authentication_required(client):
    assert client.get("/accounts/balance").status_code == 401
    assert client.get("/accounts/balance", headers={"Authorization": "Bearer nope"}).status_code == 401

    expired = create_token(1, expires_minutes=-5)
    assert client.get("/accounts/balance", headers={"Authorization": f"Bearer {expired}"}).status_code == 401


def test_integer_fields_are_strict(client, auth_header):
    alice = create(client, "Alice", 10)
    bob = create(client, "Bob")

    for amount in [True, "7", 2.0]:
        response = client.post("/accounts/topup", json={"account_id": alice, "amount": amount})
        assert (response.status_code, response.json()["kind"]) == (400, "validation_failure")

        response = client.post("/accounts/transfer", json={"to_account_id": bob, "amount": amount},
                               headers=auth_header(alice))
        assert (response.status_code, response.json()["kind"]) == (400, "validation_failure")

    response = client.post("/accounts", json={"name": "Carol", "balance": "5"})
    assert (response.status_code, response.json()["kind"]) == (400, "validation_failure")

    assert client.get("/accounts/balance", headers=auth_header(alice)).json() == {"balance": 10}


def test_amount_past_balance_bound(client):
    alice = create(client, "Alice", 1)

    response = client.post("/accounts/topup", json={"account_id": alice, "amount": 2**63})
    assert (response.status_code, response.json()["kind"]) == (400, "invalid_amount")

    response = client.post("/accounts/topup", json={"account_id": alice, "amount": 2**63 - 1})
    assert (response.status_code, response.json()["kind"]) == (400, "invalid_amount")


def test_store_errors_map_to_5xx(client, monkeypatch):
    alice = create(client, "Alice", 10)

    def failing_update(message):
        def update(self, account):
            raise OperationalError("UPDATE accounts", {}, Exception(message))
        return update

    monkeypatch.setattr(SqlAccountStore, "update", failing_update("disk I/O error"))
    response = client.post("/accounts/topup", json={"account_id": alice, "amount": 5})
    assert response.status_code == 500
    assert response.json() == {"error": "Store operation failed", "kind": "store_failure",
                               "message": "Store operation failed"}

    monkeypatch.setattr(SqlAccountStore, "update", failing_update("database is locked"))
    response = client.post("/accounts/topup", json={"account_id": alice, "amount": 5})
    assert (response.status_code, response.json()["kind"]) == (503, "store_conflict")

    monkeypatch.undo()
    assert client.get(f"/accounts/{alice}").json()["data"]["balance"] == 10
