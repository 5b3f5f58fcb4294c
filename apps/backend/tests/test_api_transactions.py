from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

from sqlalchemy.exc import OperationalError, SQLAlchemyError

from fintrack import models


def _account(client, name: str, opening_balance: float = 0) -> dict:
    r = client.post("/api/accounts", json={"name": name, "opening_balance": opening_balance})
    assert r.status_code == 201, r.text
    return r.json()


def _balance(client, account_id: int) -> float:
    r = client.get(f"/api/accounts/{account_id}")
    assert r.status_code == 200
    return r.json()["balance"]


def _expense(client, account_id: int, amount: float = 50, **extra) -> dict:
    body = {
        "account_id": account_id,
        "type": "expense",
        "amount": amount,
        "category": "Food",
        "division": "personal",
        "description": "Groceries",
    }
    body.update(extra)
    r = client.post("/api/transactions", json=body)
    assert r.status_code == 201, r.text
    return r.json()


def _age(db_session, txn_id: int, hours: int) -> None:
    tx = db_session.get(models.Transaction, txn_id)
    tx.created_at = models.now_local_naive() - timedelta(hours=hours)
    db_session.commit()


def test_create_transfer_over_http(client):
    x = _account(client, "X", 500)
    y = _account(client, "Y", 200)

    r = client.post(
        "/api/transactions",
        json={
            "account_id": x["id"],
            "to_account_id": y["id"],
            "type": "transfer",
            "amount": 100,
            "division": "office",
            "description": "Move to Y",
        },
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["transfer_type"] == "transfer_out"
    assert body["category"] == "Transfer"
    assert body["is_editable"] is True

    assert _balance(client, x["id"]) == 400
    assert _balance(client, y["id"]) == 300

    page = client.get("/api/transactions", params={"type": "transfer"}).json()
    assert page["pagination"]["total"] == 2
    assert {t["transfer_type"] for t in page["transactions"]} == {"transfer_out", "transfer_in"}


def test_request_validation_errors(client):
    x = _account(client, "X")
    base = {"account_id": x["id"], "division": "personal", "description": "d"}

    r = client.post("/api/transactions", json={**base, "type": "expense", "amount": 10})
    assert r.status_code == 422  # category missing

    r = client.post("/api/transactions", json={**base, "type": "transfer", "amount": 10})
    assert r.status_code == 422  # destination missing

    r = client.post("/api/transactions", json={**base, "type": "income", "amount": 0, "category": "c"})
    assert r.status_code == 422

    r = client.post("/api/transactions", json={**base, "type": "income", "amount": 5, "category": "c", "description": "  "})
    assert r.status_code == 422


def test_unknown_account_maps_to_404(client):
    r = client.post(
        "/api/transactions",
        json={
            "account_id": 999,
            "type": "income",
            "amount": 10,
            "category": "Salary",
            "division": "office",
            "description": "x",
        },
    )
    assert r.status_code == 404
    assert r.json() == {"detail": "Account not found", "code": "account_not_found"}


def test_update_expense_to_income(client):
    x = _account(client, "X", 1000)
    tx = _expense(client, x["id"], 50)
    before = _balance(client, x["id"])

    r = client.patch(f"/api/transactions/{tx['id']}", json={"type": "income", "category": "Refund"})
    assert r.status_code == 200, r.text
    assert r.json()["type"] == "income"
    assert _balance(client, x["id"]) == before + 100


def test_put_behaves_like_patch(client):
    x = _account(client, "X", 100)
    tx = _expense(client, x["id"], 10)

    r = client.put(f"/api/transactions/{tx['id']}", json={"amount": 30})
    assert r.status_code == 200
    assert _balance(client, x["id"]) == 70


def test_blank_description_patch_rejected(client):
    x = _account(client, "X", 100)
    tx = _expense(client, x["id"], 10)

    r = client.patch(f"/api/transactions/{tx['id']}", json={"description": "   "})
    assert r.status_code == 422
    assert client.get(f"/api/transactions/{tx['id']}").json()["description"] == "Groceries"

    r = client.patch(f"/api/transactions/{tx['id']}", json={"description": "  Weekly shop "})
    assert r.status_code == 200
    assert r.json()["description"] == "Weekly shop"


def test_edit_window_over_http(client, db_session):
    x = _account(client, "X", 1000)
    old = _expense(client, x["id"], 10)
    fresh = _expense(client, x["id"], 20)
    _age(db_session, old["id"], 13)
    _age(db_session, fresh["id"], 11)

    r = client.patch(f"/api/transactions/{old['id']}", json={"amount": 99})
    assert r.status_code == 403
    assert r.json()["code"] == "edit_window_expired"
    assert "12 hours" in r.json()["detail"]
    assert client.delete(f"/api/transactions/{old['id']}").status_code == 403
    assert client.get(f"/api/transactions/{old['id']}").json()["is_editable"] is False

    r = client.patch(f"/api/transactions/{fresh['id']}", json={"amount": 25})
    assert r.status_code == 200
    assert _balance(client, x["id"]) == 1000 - 10 - 25


def test_delete_income(client):
    x = _account(client, "X", 100)
    r = client.post(
        "/api/transactions",
        json={
            "account_id": x["id"],
            "type": "income",
            "amount": 40,
            "category": "Salary",
            "division": "office",
            "description": "pay",
        },
    )
    tx = r.json()

    assert client.delete(f"/api/transactions/{tx['id']}").status_code == 204
    assert _balance(client, x["id"]) == 100
    assert client.get(f"/api/transactions/{tx['id']}").status_code == 404


def test_list_filters_and_pagination(client):
    x = _account(client, "X", 1000)
    for amount in (10, 20, 30):
        _expense(client, x["id"], amount)
    _expense(client, x["id"], 5, category="Travel", division="office")

    r = client.get("/api/transactions", params={"limit": 2, "page": 1})
    assert r.status_code == 200
    assert r.headers["X-Total-Count"] == "4"
    body = r.json()
    assert len(body["transactions"]) == 2
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 4, "total_pages": 2}

    office = client.get("/api/transactions", params={"division": "office"}).json()
    assert [t["category"] for t in office["transactions"]] == ["Travel"]

    food = client.get("/api/transactions", params={"category": "Food"}).json()
    assert food["pagination"]["total"] == 3

    assert client.get("/api/transactions", params={"limit": 0}).status_code == 422


def test_category_summary_endpoint(client):
    x = _account(client, "X", 1000)
    _expense(client, x["id"], 10)
    _expense(client, x["id"], 15)

    r = client.get("/api/transactions/summary/category", params={"type": "expense"})
    assert r.status_code == 200
    assert r.json() == [{"category": "Food", "type": "expense", "total": 25.0, "count": 2}]


def test_partial_failure_maps_to_500(client, db_session):
    x = _account(client, "X", 100)
    commit_error = OperationalError("COMMIT", {}, Exception("disk I/O error"))

    with patch.object(db_session, "commit", side_effect=commit_error), patch.object(
        db_session, "rollback", side_effect=SQLAlchemyError("connection lost")
    ):
        r = client.post(
            "/api/transactions",
            json={
                "account_id": x["id"],
                "type": "expense",
                "amount": 10,
                "category": "Food",
                "division": "personal",
                "description": "x",
            },
        )
    db_session.rollback()

    assert r.status_code == 500
    body = r.json()
    assert body["code"] == "partial_failure"
    assert body["recalibration_recommended"] is True
    assert body["account_ids"] == [x["id"]]
